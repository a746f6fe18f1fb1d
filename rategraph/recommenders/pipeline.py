from __future__ import annotations
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Sequence, Union
from rategraph.core.naming import ID_KEY, EDGE_IDS_KEY, NODE_ID1_KEY, NODE_ID2_KEY
from rategraph.core.schema import aggregate_field_names
from rategraph.ranking.heap import BoundedMaxHeap
from rategraph.ranking.pagerank import (
    WeightMap, get_initial_weights, redistribute_node_weight, inflate_edge_attrs, page_rank,
)

Record = Dict[str, Any]
RankedNode = Dict[str, Any]


class NodeView(NamedTuple):
    nodes: List[Record]
    get_node_id: Callable[[Record], str]
    get_node_attrs: Callable[[Record], Dict[str, float]]


class EdgeView(NamedTuple):
    edges: List[Record]
    get_edges: Callable[[Record], List[Record]]
    get_edge_attrs: Callable[[Record], Dict[str, float]]
    get_destination_node: Callable[[Record, Record], Optional[Record]]


class RecommendationPipeline:
    """Feeds a graph snapshot to the ranking engine and shapes what comes back."""

    def __init__(
        self,
        property_names: Sequence[str],
        get_all_nodes: Callable[[], List[Record]],
        get_all_edges: Callable[[], List[Record]],
    ):
        self.property_names = list(property_names)
        self.get_all_nodes, self.get_all_edges = get_all_nodes, get_all_edges

    def weight_keys(self) -> List[str]:
        return aggregate_field_names(self.property_names)

    def _keep(self, record: Record) -> Dict[str, float]:
        return {key: record[key] for key in self.weight_keys() if key in record}

    def build_node_view(self) -> NodeView:
        nodes = [dict(node) for node in self.get_all_nodes()]
        return NodeView(nodes, lambda node: node[ID_KEY], self._keep)

    def build_edge_view(self, nodes: List[Record], edges: Optional[List[Record]] = None) -> EdgeView:
        node_map = {node[ID_KEY]: node for node in nodes}
        edge_list = [dict(edge) for edge in (self.get_all_edges() if edges is None else edges)]
        edge_map = {edge[ID_KEY]: edge for edge in edge_list}

        def get_edges(node: Record) -> List[Record]:
            return [edge_map[eid] for eid in node.get(EDGE_IDS_KEY) or [] if eid in edge_map]

        def get_destination_node(node: Record, edge: Record) -> Optional[Record]:
            dest_id = edge[NODE_ID2_KEY] if edge[NODE_ID1_KEY] == node[ID_KEY] else edge[NODE_ID1_KEY]
            return node_map.get(dest_id)

        return EdgeView(edge_list, get_edges, self._keep, get_destination_node)

    def page_rank(self, iterations: int = 50, damping_factor: float = 0.85) -> WeightMap:
        node_view = self.build_node_view()
        edge_view = self.build_edge_view(node_view.nodes)
        initial = get_initial_weights(*node_view)
        return page_rank(
            initial, node_view.nodes, node_view.get_node_id, edge_view.get_edges,
            edge_view.get_edge_attrs, edge_view.get_destination_node, iterations, damping_factor,
        )

    def recommend_rank(
        self,
        central_node_ids: Sequence[str],
        target_central_weight: float,
        edge_inflation_magnitude: float,
        iterations: int = 50,
        damping_factor: float = 0.85,
    ) -> WeightMap:
        node_view = self.build_node_view()
        initial = get_initial_weights(*node_view)
        biased = redistribute_node_weight(initial, target_central_weight, central_node_ids)
        biased_nodes = [{**node, **biased.get(node[ID_KEY], {})} for node in node_view.nodes]

        edge_view = self.build_edge_view(biased_nodes)
        central = set(central_node_ids)
        touches_central = lambda edge: edge[NODE_ID1_KEY] in central or edge[NODE_ID2_KEY] in central
        inflated = inflate_edge_attrs(edge_view.edges, edge_view.get_edge_attrs, edge_inflation_magnitude, touches_central)
        inflated_view = self.build_edge_view(biased_nodes, inflated)

        return page_rank(
            biased, biased_nodes, node_view.get_node_id, inflated_view.get_edges,
            edge_view.get_edge_attrs, edge_view.get_destination_node, iterations, damping_factor,
        )

    def recommend(
        self,
        desired_attr_key: str,
        central_node_ids: Sequence[str],
        target_central_weight: float,
        edge_inflation_magnitude: float,
        iterations: int = 50,
        damping_factor: float = 0.85,
        top_k: bool = False,
    ) -> Union[List[RankedNode], BoundedMaxHeap]:
        """
        Ranked nodes as a list sorted ascending by ``desired_attr_key``, or, with
        ``top_k``, a BoundedMaxHeap holding as many of the best nodes as there
        are central nodes.
        """
        if desired_attr_key not in self.weight_keys():
            raise ValueError(f"Unknown attribute {desired_attr_key!r}; expected one of {self.weight_keys()}")
        ranks = self.recommend_rank(central_node_ids, target_central_weight, edge_inflation_magnitude, iterations, damping_factor)
        ranked = [{ID_KEY: node_id, **attrs} for node_id, attrs in ranks.items()]

        if top_k:
            heap = BoundedMaxHeap(key=lambda node: node[desired_attr_key], capacity=len(central_node_ids))
            for node in ranked:
                heap.push(node)
            return heap
        return sorted(ranked, key=lambda node: node[desired_attr_key])
