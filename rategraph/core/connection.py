from __future__ import annotations
import duckdb
import logging
import threading
from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Union
import pyarrow as pa
from rategraph.core.schema import RecordTypeDefinition
from rategraph.errors import DuplicatePrimaryKey, StoreUnavailable, UnknownRecordType

logger = logging.getLogger(__name__)


def quote(identifier: str) -> str:
    return '"' + identifier.replace('"', '""') + '"'


class DuckDBConnection:
    """Wrapper for DuckDB connection with utility methods."""
    def __init__(
        self,
        database: Union[str, Path] = ":memory:",
        memory_limit: Optional[str] = None,
        threads: Optional[int] = None,
    ):
        self._database = str(database)
        if self._database != ":memory:":
            Path(self._database).parent.mkdir(parents=True, exist_ok=True)
        self.conn = duckdb.connect(self._database)
        self._closed = False
        self._write_depth = 0
        self._write_lock = threading.RLock()

        if memory_limit:
            self.conn.execute(f"SET memory_limit='{memory_limit}'")
        if threads:
            self.conn.execute(f"SET threads={threads}")

    @property
    def database(self) -> str:
        return self._database

    @property
    def closed(self) -> bool:
        return self._closed

    def execute(self, query: str, params: Optional[Union[list, dict]] = None) -> duckdb.DuckDBPyConnection:
        if self._closed:
            raise StoreUnavailable(f"Connection to {self._database!r} is closed")
        return self.conn.execute(query, params)

    def query(self, query: str, params: Optional[Union[list, dict]] = None) -> pa.Table:
        res = self.execute(query, params)
        table = res.arrow()
        if hasattr(table, "read_all"):
             return table.read_all()
        return table

    def table_columns(self, table_name: str) -> List[str]:
        rows = self.execute(
            "SELECT column_name FROM information_schema.columns "
            "WHERE lower(table_name) = lower(?) AND table_schema = 'main' AND table_catalog = current_database() "
            "ORDER BY ordinal_position",
            [table_name],
        ).fetchall()
        return [row[0] for row in rows]

    def table_exists(self, table_name: str) -> bool:
        return bool(self.table_columns(table_name))

    @contextmanager
    def transaction(self) -> Iterator[DuckDBConnection]:
        # One writer thread at a time; nested blocks on that thread join the outermost transaction
        with self._write_lock:
            if self._write_depth:
                self._write_depth += 1
                try:
                    yield self
                finally:
                    self._write_depth -= 1
                return

            self.execute("BEGIN TRANSACTION")
            self._write_depth = 1
            try:
                yield self
            except BaseException:
                self.conn.execute("ROLLBACK")
                raise
            else:
                self.conn.execute("COMMIT")
            finally:
                self._write_depth = 0

    def close(self):
        if not self._closed:
            self.conn.close()
            self._closed = True

    def __enter__(self):
        return self

    def __exit__(self, *_):
        self.close()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(database={self._database!r})"


class UpdateMode(Enum):
    NEVER = "never"
    ALL = "all"


class StoreHandle(DuckDBConnection):
    """
    An open data file whose tables mirror the record types known at open time.

    Types registered after opening stay invisible until the file is reopened.
    """
    def __init__(
        self,
        database: Union[str, Path],
        record_types: Iterable[RecordTypeDefinition],
        memory_limit: Optional[str] = None,
        threads: Optional[int] = None,
    ):
        super().__init__(database, memory_limit=memory_limit, threads=threads)
        self.record_types: Dict[str, RecordTypeDefinition] = {t.name: t for t in record_types}
        try:
            self._sync_tables()
        except Exception:
            self.close()
            raise

    def _sync_tables(self):
        for definition in self.record_types.values():
            table = quote(definition.name)
            existing = self.table_columns(definition.name)
            if not existing:
                cols = ", ".join(f"{quote(n)} {definition.column_type(n)}" for n in definition.field_names)
                self.execute(f"CREATE TABLE {table} ({cols})")
                continue

            present = {c.lower() for c in existing}
            for name in definition.field_names:
                if name.lower() in present: continue
                col_type = definition.column_type(name)
                self.execute(f"ALTER TABLE {table} ADD COLUMN {quote(name)} {col_type}")
                self.execute(f"UPDATE {table} SET {quote(name)} = CAST(? AS {col_type})", [definition.default_value(name)])
                logger.debug("Added field %s to %s in %s", name, definition.name, self._database)

            wanted = {n.lower() for n in definition.field_names}
            for column in existing:
                if column.lower() not in wanted:
                    self.execute(f"ALTER TABLE {table} DROP COLUMN {quote(column)}")
                    logger.debug("Dropped field %s from %s in %s", column, definition.name, self._database)

    def definition(self, type_name: str) -> RecordTypeDefinition:
        try:
            return self.record_types[type_name]
        except KeyError:
            raise UnknownRecordType(type_name) from None

    @contextmanager
    def write(self) -> Iterator[StoreHandle]:
        with self.transaction():
            yield self

    def _to_record(self, definition: RecordTypeDefinition, row: Dict[str, Any]) -> Dict[str, Any]:
        return {n: definition.default_value(n) if row.get(n) is None else row[n] for n in definition.field_names}

    def _select(self, definition: RecordTypeDefinition) -> str:
        cols = ", ".join(quote(n) for n in definition.field_names)
        return f"SELECT {cols} FROM {quote(definition.name)}"

    def objects_table(self, type_name: str) -> pa.Table:
        definition = self.definition(type_name)
        return self.query(f"{self._select(definition)} ORDER BY {quote(definition.primary_key)}")

    def objects(self, type_name: str) -> List[Dict[str, Any]]:
        definition = self.definition(type_name)
        return [self._to_record(definition, row) for row in self.objects_table(type_name).to_pylist()]

    def object_for_primary_key(self, type_name: str, key: str) -> Optional[Dict[str, Any]]:
        definition = self.definition(type_name)
        rows = self.query(f"{self._select(definition)} WHERE {quote(definition.primary_key)} = ?", [key]).to_pylist()
        return self._to_record(definition, rows[0]) if rows else None

    def exists(self, type_name: str, key: str) -> bool:
        definition = self.definition(type_name)
        res = self.execute(f"SELECT COUNT(*) FROM {quote(type_name)} WHERE {quote(definition.primary_key)} = ?", [key]).fetchone()
        return res[0] > 0

    def count(self, type_name: str) -> int:
        self.definition(type_name)
        return self.execute(f"SELECT COUNT(*) FROM {quote(type_name)}").fetchone()[0]

    def create(self, type_name: str, record: Dict[str, Any], update_mode: UpdateMode = UpdateMode.NEVER) -> Dict[str, Any]:
        definition = self.definition(type_name)
        if definition.primary_key not in record:
            raise ValueError(f"Record for {type_name!r} is missing its primary key {definition.primary_key!r}")
        key = record[definition.primary_key]

        if self.exists(type_name, key):
            if update_mode is UpdateMode.NEVER:
                raise DuplicatePrimaryKey(type_name, key)
            self.update(type_name, record)
        else:
            names = definition.field_names
            values = [record.get(n, definition.default_value(n)) for n in names]
            placeholders = ", ".join(f"CAST(? AS {definition.column_type(n)})" for n in names)
            self.execute(f"INSERT INTO {quote(type_name)} ({', '.join(quote(n) for n in names)}) VALUES ({placeholders})", values)
        return self.object_for_primary_key(type_name, key)

    def update(self, type_name: str, record: Dict[str, Any]) -> bool:
        """Overwrite the given fields of an existing record; False if there is none."""
        definition = self.definition(type_name)
        key = record.get(definition.primary_key)
        if key is None or not self.exists(type_name, key):
            return False
        names = [n for n in record if n in definition.fields and n != definition.primary_key]
        if names:
            assignments = ", ".join(f"{quote(n)} = CAST(? AS {definition.column_type(n)})" for n in names)
            self.execute(
                f"UPDATE {quote(type_name)} SET {assignments} WHERE {quote(definition.primary_key)} = ?",
                [record[n] for n in names] + [key],
            )
        return True

    def delete(self, type_name: str, key: str) -> bool:
        definition = self.definition(type_name)
        if not self.exists(type_name, key):
            return False
        self.execute(f"DELETE FROM {quote(type_name)} WHERE {quote(definition.primary_key)} = ?", [key])
        return True

    def drop(self, type_name: str):
        """Drop a record type's table; the type is unusable on this handle afterwards."""
        self.definition(type_name)
        self.execute(f"DROP TABLE IF EXISTS {quote(type_name)}")
        del self.record_types[type_name]
