from __future__ import annotations
import logging
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional, Sequence, Set
from rategraph.config import GraphStoreConfig, default_data_file_path
from rategraph.core.cache import Address, StoreHandleCache
from rategraph.core.catalog import SchemaCatalog
from rategraph.core.connection import StoreHandle
from rategraph.core.naming import validate_graph_name
from rategraph.core.paths import data_file_key
from rategraph.core.schema import validate_property_names
from rategraph.errors import GraphStoreError, UnknownGraph
from rategraph.graph import GraphDescriptor, GraphHandle

logger = logging.getLogger(__name__)


class GraphRegistry:
    """
    Graph name -> GraphHandle, plus the store handles those graphs share.

    Every reload of a data file is fanned out to all graphs living in it, and
    mutations touching one (catalog path, data file path) are serialised.
    """

    def __init__(
        self,
        config: Optional[GraphStoreConfig] = None,
        catalog: Optional[SchemaCatalog] = None,
        cache: Optional[StoreHandleCache] = None,
    ):
        self.config = config or GraphStoreConfig()
        self.catalog = catalog or SchemaCatalog(**self.config.connection_kwargs)
        self.cache = cache or StoreHandleCache(self.catalog, **self.config.connection_kwargs)
        self._graphs: Dict[str, GraphHandle] = {}
        self._by_address: Dict[Address, Set[str]] = {}
        self._locks: Dict[Address, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    # Serialisation

    def _lock_for(self, address: Address) -> threading.RLock:
        with self._locks_guard:
            return self._locks.setdefault(address, threading.RLock())

    @contextmanager
    def locked(self, catalog_path, data_file_path) -> Iterator[None]:
        with self._lock_for(StoreHandleCache.address(catalog_path, data_file_path)):
            yield

    # Lookup

    def has_graph(self, graph_name: str) -> bool:
        return graph_name in self._graphs

    def get_graph(self, graph_name: str) -> GraphHandle:
        try:
            return self._graphs[graph_name]
        except KeyError:
            raise UnknownGraph(graph_name, "get_graph") from None

    def loaded_graph_names(self) -> List[str]:
        return list(self._graphs)

    def loaded_graphs(self) -> List[GraphHandle]:
        return list(self._graphs.values())

    def loadable_graph_names(self, catalog_path, data_file_path) -> List[str]:
        return self.catalog.list_graph_names(catalog_path, data_file_path)

    def graphs_at(self, catalog_path, data_file_path) -> List[GraphHandle]:
        names = self._by_address.get(StoreHandleCache.address(catalog_path, data_file_path), set())
        return [self._graphs[name] for name in sorted(names)]

    # Registration

    def _register(self, graph: GraphHandle):
        self._graphs[graph.graph_name] = graph
        self._by_address.setdefault(StoreHandleCache.address(*graph.descriptor.address), set()).add(graph.graph_name)

    def _forget(self, graph: GraphHandle):
        if self._graphs.get(graph.graph_name) is graph:
            del self._graphs[graph.graph_name]
        names = self._by_address.get(StoreHandleCache.address(*graph.descriptor.address))
        if names is not None:
            names.discard(graph.graph_name)

    def _rebinder(self, catalog_path, data_file_path, extra: Sequence[GraphHandle] = ()):
        def rebind(store: StoreHandle):
            for graph in list(self.graphs_at(catalog_path, data_file_path)) + list(extra):
                graph.rebind(store)
        return rebind

    def reload_address(self, catalog_path, data_file_path) -> StoreHandle:
        """Reopen a data file and rebind every graph registered under it."""
        with self.locked(catalog_path, data_file_path):
            return self.cache.reload(catalog_path, data_file_path, self._rebinder(catalog_path, data_file_path))

    def create_graph(
        self,
        graph_name: str,
        property_names: Sequence[str],
        catalog_path: Optional[str] = None,
        data_file_path: Optional[str] = None,
    ) -> GraphHandle:
        """Create a graph, or return the one already registered under ``graph_name``."""
        if graph_name in self._graphs:
            return self._graphs[graph_name]
        validate_graph_name(graph_name)
        names = validate_property_names(property_names)
        catalog_path = str(catalog_path or self.config.catalog_path)
        data_file_path = data_file_key(catalog_path, data_file_path or default_data_file_path(graph_name))

        with self.locked(catalog_path, data_file_path):
            if graph_name in self._graphs:
                return self._graphs[graph_name]
            created = self.catalog.save_graph_schemas(catalog_path, data_file_path, graph_name, names)
            graph = GraphHandle(GraphDescriptor(graph_name, catalog_path, data_file_path, names), self.catalog, self)
            try:
                self.cache.reload(catalog_path, data_file_path, self._rebinder(catalog_path, data_file_path, [graph]))
            except GraphStoreError:
                if created:
                    self.catalog.remove_graph_schemas(catalog_path, data_file_path, graph_name)
                raise
            self._register(graph)
        logger.info("Created graph %s in %s (catalog %s)", graph_name, data_file_path, catalog_path)
        return graph

    def load_graphs(self, catalog_path: Optional[str] = None, data_file_path: Optional[str] = None) -> List[str]:
        """Register every cataloged graph of a data file that is not loaded yet; returns their names."""
        catalog_path = str(catalog_path or self.config.catalog_path)
        if data_file_path is None:
            raise ValueError("data_file_path is required to load graphs")
        data_file_path = data_file_key(catalog_path, data_file_path)

        with self.locked(catalog_path, data_file_path):
            pending: List[GraphHandle] = []
            for graph_name in self.catalog.list_graph_names(catalog_path, data_file_path):
                if graph_name in self._graphs: continue
                property_names = self.catalog.get_property_names(catalog_path, data_file_path, graph_name)
                if property_names is None:
                    logger.warning("Graph %s is indexed in %s but has no node type; skipped", graph_name, data_file_path)
                    continue
                descriptor = GraphDescriptor(graph_name, catalog_path, data_file_path, property_names)
                pending.append(GraphHandle(descriptor, self.catalog, self))

            # One reload for the whole batch
            self.cache.reload(catalog_path, data_file_path, self._rebinder(catalog_path, data_file_path, pending))
            for graph in pending:
                self._register(graph)

        loaded = [graph.graph_name for graph in pending]
        logger.info("Loaded %d graph(s) from %s: %s", len(loaded), data_file_path, loaded)
        return loaded

    def remove_graph(self, graph_name: str):
        graph = self._graphs.get(graph_name)
        if graph is None:
            return
        graph.delete_graph()
        logger.info("Removed graph %s", graph_name)

    def close(self):
        self.cache.close_all()
        self.catalog.close()
        self._graphs.clear()
        self._by_address.clear()

    def __enter__(self):
        return self

    def __exit__(self, *_):
        self.close()

    def __contains__(self, graph_name: str) -> bool:
        return self.has_graph(graph_name)

    def __len__(self) -> int:
        return len(self._graphs)

    def __repr__(self) -> str:
        return f"GraphRegistry(graphs={self.loaded_graph_names()!r})"
