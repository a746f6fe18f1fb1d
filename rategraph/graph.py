from __future__ import annotations
import logging
import weakref
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Optional, Sequence, Union
import pyarrow as pa
from rategraph.core.catalog import SchemaCatalog
from rategraph.core.connection import StoreHandle, UpdateMode
from rategraph.core.naming import (
    ID_KEY, EDGE_IDS_KEY, COLLECTIVE_TALLY_KEY, node_type_name, edge_type_name,
    single_avg_key, collective_avg_key,
)
from rategraph.core.schema import validate_property_names
from rategraph.errors import DuplicatePrimaryKey, NotInitialized, StoreUnavailable, UnknownGraph
from rategraph.rating import EntityKind, RateResult, RatingEngine, RatingMode
from rategraph.ranking.heap import BoundedMaxHeap
from rategraph.ranking.pagerank import WeightMap
from rategraph.recommenders.pipeline import RankedNode, RecommendationPipeline

if TYPE_CHECKING:
    from rategraph.registry import GraphRegistry

logger = logging.getLogger(__name__)

Record = Dict[str, Any]


@dataclass
class GraphDescriptor:
    graph_name: str
    catalog_path: str
    data_file_path: str
    property_names: List[str] = field(default_factory=list)

    @property
    def address(self):
        return self.catalog_path, self.data_file_path


class GraphHandle:
    """
    Facade over one graph living in a shared data file.

    The store handle is owned by the registry's StoreHandleCache and pushed in
    through ``rebind``; the graph never opens or closes it.
    """

    def __init__(self, descriptor: GraphDescriptor, catalog: SchemaCatalog, registry: GraphRegistry):
        self.descriptor = descriptor
        self._catalog = catalog
        self._registry = weakref.ref(registry)
        self._store: Optional[StoreHandle] = None
        self._deleted = False
        self._engine = self._create_engine(descriptor.property_names)

    # Identity

    @property
    def graph_name(self) -> str: return self.descriptor.graph_name
    @property
    def catalog_path(self) -> str: return self.descriptor.catalog_path
    @property
    def data_file_path(self) -> str: return self.descriptor.data_file_path
    @property
    def node_type_name(self) -> str: return node_type_name(self.graph_name)
    @property
    def edge_type_name(self) -> str: return edge_type_name(self.graph_name)

    def get_property_names(self) -> List[str]:
        return list(self.descriptor.property_names)

    # Store binding

    def rebind(self, store: StoreHandle):
        self._store = store

    @property
    def is_bound(self) -> bool:
        return self._store is not None and not self._deleted

    def _require_store(self, calling_method: str) -> StoreHandle:
        if self._deleted:
            raise UnknownGraph(self.graph_name, calling_method)
        if self._store is None:
            raise NotInitialized(calling_method)
        if self._store.closed:
            raise StoreUnavailable(f"{calling_method}: store for {self.graph_name!r} is closed")
        return self._store

    def _owner(self, calling_method: str) -> GraphRegistry:
        registry = self._registry()
        if registry is None:
            raise NotInitialized(calling_method)
        return registry

    # Persistence callbacks for the rating engine

    def _save(self, type_name: str, record: Record):
        try:
            self._require_store("save").create(type_name, record, UpdateMode.NEVER)
        except DuplicatePrimaryKey as e:
            logger.debug("Skipped duplicate write: %s", e)

    def _get(self, type_name: str, key: str) -> Optional[Record]:
        return self._require_store("get").object_for_primary_key(type_name, key)

    def _update(self, type_name: str, record: Record):
        self._require_store("update").update(type_name, record)

    def _create_engine(self, property_names: Sequence[str]) -> RatingEngine:
        return RatingEngine(
            property_names,
            save_node=lambda node: self._save(self.node_type_name, node),
            save_edge=lambda edge: self._save(self.edge_type_name, edge),
            get_node=lambda node_id: self._get(self.node_type_name, node_id),
            get_edge=lambda edge_id: self._get(self.edge_type_name, edge_id),
            update_node=lambda node: self._update(self.node_type_name, node),
            update_edge=lambda edge: self._update(self.edge_type_name, edge),
        )

    # Records

    def get_all_nodes(self) -> List[Record]:
        return self._require_store("get_all_nodes").objects(self.node_type_name)

    def get_all_edges(self) -> List[Record]:
        return self._require_store("get_all_edges").objects(self.edge_type_name)

    def get_node(self, node_id: str) -> Optional[Record]:
        return self._require_store("get_node").object_for_primary_key(self.node_type_name, node_id)

    def get_edge(self, edge_id: str) -> Optional[Record]:
        return self._require_store("get_edge").object_for_primary_key(self.edge_type_name, edge_id)

    def get_entity(self, ids: Sequence[str], kind: Union[EntityKind, str]) -> Optional[Record]:
        self._require_store("get_entity")
        return self._engine.get_entity(ids, kind)

    def to_arrow(self, kind: Union[EntityKind, str] = EntityKind.NODE) -> pa.Table:
        store = self._require_store("to_arrow")
        type_name = self.node_type_name if EntityKind(kind) is EntityKind.NODE else self.edge_type_name
        return store.objects_table(type_name)

    # Mutation

    @contextmanager
    def _writing(self, calling_method: str) -> Iterator[StoreHandle]:
        # Same lock as reloads of this data file, so the store cannot be swapped mid-write
        registry = self._owner(calling_method)
        with registry.locked(self.catalog_path, self.data_file_path):
            store = self._require_store(calling_method)
            with store.write():
                yield store

    def rate(self, property_name: str, node_ids: Sequence[str], rating: float, weights: Sequence[float], mode: Union[RatingMode, str]) -> RateResult:
        """
        Rate ``node_ids`` as one group.

        Writes from several threads are serialised per data file; reads are not
        isolated from a write in progress on another thread.
        """
        with self._writing("rate"):
            return self._engine.rate(property_name, node_ids, rating, weights, mode)

    def undo_rate(self, property_name: str, node_ids: Sequence[str], rating: float, weights: Sequence[float], mode: Union[RatingMode, str]) -> RateResult:
        """
        Apply the exact negation of a ``rate`` call with the same arguments.

        Nothing checks that such a call happened; nodes and edges the earlier
        call created are kept.
        """
        with self._writing("undo_rate"):
            return self._engine.rate(property_name, node_ids, -rating, weights, mode, tally_step=-1)

    def delete_graph(self):
        registry = self._owner("delete_graph")
        with registry.locked(self.catalog_path, self.data_file_path):
            store = self._require_store("delete_graph")
            with store.write():
                store.drop(self.node_type_name)
                store.drop(self.edge_type_name)
            self._catalog.remove_graph_schemas(self.catalog_path, self.data_file_path, self.graph_name)
            registry._forget(self)
            self._deleted = True
            registry.reload_address(self.catalog_path, self.data_file_path)
        logger.info("Deleted graph %s from %s", self.graph_name, self.data_file_path)

    def update_property_names(self, new_property_names: Sequence[str]):
        new_names = validate_property_names(new_property_names)
        registry = self._owner("update_property_names")
        with registry.locked(self.catalog_path, self.data_file_path):
            self._require_store("update_property_names")
            previous = self.get_property_names()
            self._catalog.update_graph_schemas(self.catalog_path, self.data_file_path, self.graph_name, new_names)
            try:
                registry.reload_address(self.catalog_path, self.data_file_path)
            except StoreUnavailable:
                self._catalog.update_graph_schemas(self.catalog_path, self.data_file_path, self.graph_name, previous)
                raise
            self.descriptor.property_names = list(new_names)
            self._engine = self._create_engine(new_names)

    # Ranking

    def _pipeline(self, calling_method: str) -> RecommendationPipeline:
        self._require_store(calling_method)
        return RecommendationPipeline(self.get_property_names(), self.get_all_nodes, self.get_all_edges)

    def _defaults(self, iterations: Optional[int], damping_factor: Optional[float]):
        registry = self._registry()
        config = registry.config if registry is not None else None
        if iterations is None: iterations = config.iterations if config else 50
        if damping_factor is None: damping_factor = config.damping_factor if config else 0.85
        return iterations, damping_factor

    def page_rank(self, iterations: Optional[int] = None, damping_factor: Optional[float] = None) -> WeightMap:
        return self._pipeline("page_rank").page_rank(*self._defaults(iterations, damping_factor))

    def recommend_rank(
        self,
        central_node_ids: Sequence[str],
        target_central_weight: float,
        edge_inflation_magnitude: float,
        iterations: Optional[int] = None,
        damping_factor: Optional[float] = None,
    ) -> WeightMap:
        return self._pipeline("recommend_rank").recommend_rank(
            central_node_ids, target_central_weight, edge_inflation_magnitude, *self._defaults(iterations, damping_factor)
        )

    def recommend(
        self,
        desired_attr_key: str,
        central_node_ids: Sequence[str],
        target_central_weight: float,
        edge_inflation_magnitude: float,
        iterations: Optional[int] = None,
        damping_factor: Optional[float] = None,
        top_k: bool = False,
    ) -> Union[List[RankedNode], BoundedMaxHeap]:
        return self._pipeline("recommend").recommend(
            desired_attr_key, central_node_ids, target_central_weight, edge_inflation_magnitude,
            *self._defaults(iterations, damping_factor), top_k=top_k,
        )

    # Neighbourhood queries

    def _incident_edges(self, node_id: str, calling_method: str) -> List[Record]:
        store = self._require_store(calling_method)
        node = store.object_for_primary_key(self.node_type_name, node_id)
        if node is None: return []
        edges = (store.object_for_primary_key(self.edge_type_name, eid) for eid in node[EDGE_IDS_KEY])
        return [edge for edge in edges if edge is not None]

    def _sorted_incident(self, node_id: str, key: str, calling_method: str) -> List[Record]:
        edges = self._incident_edges(node_id, calling_method)
        return sorted(edges, key=lambda edge: (-edge[key], edge[ID_KEY]))

    def _require_property(self, property_name: str):
        if property_name not in self.descriptor.property_names:
            raise ValueError(f"Unknown property {property_name!r}; expected one of {self.descriptor.property_names}")

    def commonly_done_with(self, node_id: str) -> List[Record]:
        """Edges of ``node_id``, most often collectively rated first."""
        return self._sorted_incident(node_id, COLLECTIVE_TALLY_KEY, "commonly_done_with")

    def commonly_done_by_output(self, node_id: str, output: str) -> List[Record]:
        self._require_property(output)
        return self._sorted_incident(node_id, collective_avg_key(output), "commonly_done_by_output")

    def highly_rated_by_output(self, node_id: str, output: str) -> List[Record]:
        self._require_property(output)
        return self._sorted_incident(node_id, single_avg_key(output), "highly_rated_by_output")

    def __repr__(self) -> str:
        return f"GraphHandle(graph_name={self.graph_name!r}, data_file_path={self.data_file_path!r}, properties={self.get_property_names()!r})"
