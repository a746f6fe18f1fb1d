from __future__ import annotations
import duckdb
import logging
import threading
from pathlib import Path
from typing import Callable, Dict, Optional, Tuple
from rategraph.core.catalog import SchemaCatalog
from rategraph.core.connection import StoreHandle
from rategraph.core.paths import catalog_key, data_file_key, resolve_location
from rategraph.errors import StoreUnavailable

logger = logging.getLogger(__name__)

Address = Tuple[str, str]


class StoreHandleCache:
    """Single currently-open StoreHandle per (catalog path, data file path)."""

    def __init__(self, catalog: SchemaCatalog, memory_limit: Optional[str] = None, threads: Optional[int] = None):
        self.catalog = catalog
        self.memory_limit, self.threads = memory_limit, threads
        self._handles: Dict[Address, StoreHandle] = {}
        self._lock = threading.RLock()

    @staticmethod
    def address(catalog_path, data_file_path) -> Address:
        """Canonical (catalog, data file) key; every spelling of one file maps to the same address."""
        return catalog_key(catalog_path), data_file_key(catalog_path, data_file_path)

    @staticmethod
    def resolve_location(catalog_path, data_file_path) -> Path:
        return resolve_location(catalog_path, data_file_path)

    def _open(self, catalog_path, data_file_path) -> StoreHandle:
        record_types = self.catalog.list_record_types(catalog_path, data_file_path)
        location = self.resolve_location(catalog_path, data_file_path)
        try:
            return StoreHandle(location, record_types, memory_limit=self.memory_limit, threads=self.threads)
        except (duckdb.Error, OSError) as e:
            raise StoreUnavailable(f"Could not open {location} for catalog {catalog_path}: {e}") from e

    def peek(self, catalog_path, data_file_path) -> Optional[StoreHandle]:
        return self._handles.get(self.address(catalog_path, data_file_path))

    def get_or_open(self, catalog_path, data_file_path) -> StoreHandle:
        key = self.address(catalog_path, data_file_path)
        with self._lock:
            handle = self._handles.get(key)
            if handle is None or handle.closed:
                handle = self._open(catalog_path, data_file_path)
                self._handles[key] = handle
                logger.debug("Opened store %s with types %s", handle.database, sorted(handle.record_types))
            return handle

    def reload(self, catalog_path, data_file_path, on_swap: Optional[Callable[[StoreHandle], None]] = None) -> StoreHandle:
        """
        Replace the cached handle with one reflecting the current catalog state.

        The fresh handle is opened before the previous one is closed, so a failed
        open leaves the cache entry as it was. ``on_swap`` runs with the fresh
        handle while the previous one is still open.
        """
        key = self.address(catalog_path, data_file_path)
        with self._lock:
            fresh = self._open(catalog_path, data_file_path)
            previous = self._handles.get(key)
            self._handles[key] = fresh
            try:
                if on_swap is not None: on_swap(fresh)
            finally:
                if previous is not None:
                    previous.close()
        logger.info("Reloaded store %s with types %s", fresh.database, sorted(fresh.record_types))
        return fresh

    def close(self, catalog_path, data_file_path):
        with self._lock:
            handle = self._handles.pop(self.address(catalog_path, data_file_path), None)
            if handle is not None: handle.close()

    def close_all(self):
        with self._lock:
            for handle in self._handles.values():
                handle.close()
            self._handles.clear()

    def __len__(self) -> int:
        return len(self._handles)
