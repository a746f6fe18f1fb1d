from __future__ import annotations
import logging
import threading
from pathlib import Path
from typing import Dict, List, Optional, Union
from rategraph.core.connection import DuckDBConnection
from rategraph.core.naming import base_name, node_type_name, edge_type_name
from rategraph.core.paths import catalog_key, data_file_key
from rategraph.core.schema import RecordTypeDefinition, build_graph_types, property_names_from_type
from rategraph.errors import SchemaConflict

logger = logging.getLogger(__name__)

_CREATE_TABLES = """
CREATE TABLE IF NOT EXISTS record_types (
    data_file VARCHAR NOT NULL,
    type_name VARCHAR NOT NULL,
    primary_key VARCHAR NOT NULL,
    fields VARCHAR NOT NULL
);
CREATE TABLE IF NOT EXISTS graph_index (
    data_file VARCHAR NOT NULL,
    graph_name VARCHAR NOT NULL,
    position BIGINT NOT NULL
);
"""


class SchemaCatalog:
    """
    Registry of record-type definitions, one DuckDB catalog file per catalog path.

    Rows are keyed by (data file, type name). Graph membership of a data file is
    tracked by an explicit index written in the same transaction as the types.
    """

    def __init__(self, memory_limit: Optional[str] = None, threads: Optional[int] = None):
        self.memory_limit, self.threads = memory_limit, threads
        self._conns: Dict[str, DuckDBConnection] = {}
        self._lock = threading.RLock()

    @staticmethod
    def _key(catalog_path: Union[str, Path]) -> str:
        return catalog_key(catalog_path)

    def _conn(self, catalog_path: Union[str, Path]) -> DuckDBConnection:
        key = self._key(catalog_path)
        conn = self._conns.get(key)
        if conn is None or conn.closed:
            conn = DuckDBConnection(key, memory_limit=self.memory_limit, threads=self.threads)
            conn.execute(_CREATE_TABLES)
            self._conns[key] = conn
        return conn

    # Record types

    def _row(self, conn: DuckDBConnection, data_file: str, type_name: str) -> Optional[RecordTypeDefinition]:
        row = conn.execute(
            "SELECT type_name, primary_key, fields FROM record_types WHERE data_file = ? AND lower(type_name) = lower(?)",
            [data_file, type_name],
        ).fetchone()
        return RecordTypeDefinition.from_json(*row) if row else None

    def _insert_type(self, conn: DuckDBConnection, data_file: str, definition: RecordTypeDefinition):
        conn.execute(
            "INSERT INTO record_types VALUES (?, ?, ?, ?)",
            [data_file, definition.name, definition.primary_key, definition.fields_json()],
        )

    def _delete_type(self, conn: DuckDBConnection, data_file: str, type_name: str):
        conn.execute("DELETE FROM record_types WHERE data_file = ? AND type_name = ?", [data_file, type_name])

    def get_record_type(self, catalog_path, data_file_path, type_name: str) -> Optional[RecordTypeDefinition]:
        with self._lock:
            return self._row(self._conn(catalog_path), data_file_key(catalog_path, data_file_path), type_name)

    def get_fields(self, catalog_path, data_file_path, type_name: str) -> Optional[Dict[str, str]]:
        definition = self.get_record_type(catalog_path, data_file_path, type_name)
        return dict(definition.fields) if definition is not None else None

    def list_record_types(self, catalog_path, data_file_path) -> List[RecordTypeDefinition]:
        with self._lock:
            rows = self._conn(catalog_path).execute(
                "SELECT type_name, primary_key, fields FROM record_types WHERE data_file = ? ORDER BY type_name",
                [data_file_key(catalog_path, data_file_path)],
            ).fetchall()
        return [RecordTypeDefinition.from_json(*row) for row in rows]

    def list_type_names(self, catalog_path, data_file_path) -> List[str]:
        return [d.name for d in self.list_record_types(catalog_path, data_file_path)]

    # Graph index

    def _index_graph(self, conn: DuckDBConnection, data_file: str, graph_name: str):
        exists = conn.execute(
            "SELECT COUNT(*) FROM graph_index WHERE data_file = ? AND graph_name = ?", [data_file, graph_name]
        ).fetchone()[0]
        if not exists:
            position = conn.execute(
                "SELECT COALESCE(MAX(position) + 1, 0) FROM graph_index WHERE data_file = ?", [data_file]
            ).fetchone()[0]
            conn.execute("INSERT INTO graph_index VALUES (?, ?, ?)", [data_file, graph_name, position])

    def list_graph_names(self, catalog_path, data_file_path) -> List[str]:
        with self._lock:
            rows = self._conn(catalog_path).execute(
                "SELECT graph_name FROM graph_index WHERE data_file = ? ORDER BY position", [data_file_key(catalog_path, data_file_path)]
            ).fetchall()
        return [row[0] for row in rows]

    def discover_graph_names(self, catalog_path, data_file_path) -> List[str]:
        """Graph names derived from type names alone, first-seen order."""
        names: List[str] = []
        for type_name in self.list_type_names(catalog_path, data_file_path):
            graph_name = base_name(type_name)
            if graph_name not in names:
                names.append(graph_name)
        return names

    def rebuild_index(self, catalog_path, data_file_path) -> List[str]:
        data_file = data_file_key(catalog_path, data_file_path)
        with self._lock:
            discovered = self.discover_graph_names(catalog_path, data_file)
            conn = self._conn(catalog_path)
            with conn.transaction():
                conn.execute("DELETE FROM graph_index WHERE data_file = ?", [data_file])
                for graph_name in discovered:
                    self._index_graph(conn, data_file, graph_name)
        logger.info("Rebuilt graph index of %s in %s: %s", data_file, catalog_path, discovered)
        return discovered

    # Graph schemas

    def save_graph_schemas(self, catalog_path, data_file_path, graph_name: str, property_names: List[str]) -> bool:
        """Register a graph's node and edge types. Returns False if they were already present."""
        data_file = data_file_key(catalog_path, data_file_path)
        definitions = build_graph_types(graph_name, property_names)
        with self._lock:
            conn = self._conn(catalog_path)
            existing = [self._row(conn, data_file, d.name) for d in definitions]
            for definition, current in zip(definitions, existing):
                if current is not None and (current.name != definition.name or not current.same_shape(definition)):
                    raise SchemaConflict(definition.name, data_file)
            if all(current is not None for current in existing):
                with conn.transaction():
                    self._index_graph(conn, data_file, graph_name)
                return False

            with conn.transaction():
                for definition, current in zip(definitions, existing):
                    if current is None:
                        self._insert_type(conn, data_file, definition)
                self._index_graph(conn, data_file, graph_name)
        logger.info("Saved schemas for graph %s in %s (catalog %s)", graph_name, data_file, catalog_path)
        return True

    def update_graph_schemas(self, catalog_path, data_file_path, graph_name: str, new_property_names: List[str]):
        data_file = data_file_key(catalog_path, data_file_path)
        definitions = build_graph_types(graph_name, new_property_names)
        with self._lock:
            conn = self._conn(catalog_path)
            with conn.transaction():
                for definition in definitions:
                    self._delete_type(conn, data_file, definition.name)
                    self._insert_type(conn, data_file, definition)
                self._index_graph(conn, data_file, graph_name)
        logger.info("Updated schemas for graph %s in %s: %s", graph_name, data_file, list(new_property_names))

    def remove_graph_schemas(self, catalog_path, data_file_path, graph_name: str):
        data_file = data_file_key(catalog_path, data_file_path)
        with self._lock:
            conn = self._conn(catalog_path)
            with conn.transaction():
                for type_name in (node_type_name(graph_name), edge_type_name(graph_name)):
                    self._delete_type(conn, data_file, type_name)
                conn.execute("DELETE FROM graph_index WHERE data_file = ? AND graph_name = ?", [data_file, graph_name])
        logger.info("Removed schemas for graph %s from %s", graph_name, data_file)

    def get_property_names(self, catalog_path, data_file_path, graph_name: str) -> Optional[List[str]]:
        definition = self.get_record_type(catalog_path, data_file_path, node_type_name(graph_name))
        return property_names_from_type(definition) if definition is not None else None

    def close(self, catalog_path=None):
        with self._lock:
            keys = list(self._conns) if catalog_path is None else [self._key(catalog_path)]
            for key in keys:
                conn = self._conns.pop(key, None)
                if conn is not None: conn.close()

    def __repr__(self) -> str:
        return f"SchemaCatalog(catalogs={sorted(self._conns)!r})"
