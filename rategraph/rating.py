from __future__ import annotations
import math
from dataclasses import dataclass, field
from enum import Enum
from itertools import combinations
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple
from rategraph.core.naming import (
    ID_KEY, EDGE_IDS_KEY, NODE_ID1_KEY, NODE_ID2_KEY, COLLECTIVE_TALLY_KEY, EDGE_ID_DELIMITER, edge_id,
)
from rategraph.core.schema import PropertyAggregates, property_aggregates, validate_property_names

Record = Dict[str, Any]

# Aggregates live on a fixed decimal grid so that a negated delta cancels exactly.
# Below MAX_MAGNITUDE a double resolves that grid with room to spare.
PRECISION = 9
MAX_MAGNITUDE = float(2 ** 20)


class RatingMode(str, Enum):
    SINGLE = "Single"
    COLLECTIVE = "Collective"


class EntityKind(str, Enum):
    NODE = "Node"
    EDGE = "Edge"


@dataclass
class RateResult:
    nodes: List[Record] = field(default_factory=list)
    edges: List[Record] = field(default_factory=list)


def _check_delta(delta: float) -> float:
    if not math.isfinite(delta) or abs(delta) >= MAX_MAGNITUDE:
        raise ValueError(f"Rating delta {delta!r} is outside (-{MAX_MAGNITUDE:g}, {MAX_MAGNITUDE:g})")
    if delta != 0 and round(delta, PRECISION) == 0:
        raise ValueError(f"Rating delta {delta!r} is below the 1e-{PRECISION} resolution of stored aggregates")
    return delta


def _step(value: float, delta: float) -> float:
    result = round(value + round(delta, PRECISION), PRECISION)
    if abs(result) >= MAX_MAGNITUDE:
        raise ValueError(f"Aggregate {result!r} would leave (-{MAX_MAGNITUDE:g}, {MAX_MAGNITUDE:g})")
    return result


class RatingEngine:
    """
    Turns a rated group of items into node and edge aggregate updates.

    Persistence is delegated to the callbacks; save callbacks are expected to
    ignore records that already exist.
    """

    def __init__(
        self,
        property_names: Sequence[str],
        save_node: Callable[[Record], None],
        save_edge: Callable[[Record], None],
        get_node: Callable[[str], Optional[Record]],
        get_edge: Callable[[str], Optional[Record]],
        update_node: Callable[[Record], None],
        update_edge: Callable[[Record], None],
        gen_edge_id: Callable[[str, str], str] = edge_id,
    ):
        self.property_names = validate_property_names(property_names)
        self.save_node, self.save_edge = save_node, save_edge
        self.get_node, self.get_edge = get_node, get_edge
        self.update_node, self.update_edge = update_node, update_edge
        self.gen_edge_id = gen_edge_id

    @property
    def aggregates(self) -> Dict[str, PropertyAggregates]:
        return property_aggregates(self.property_names)

    def _blank(self, record_id: str) -> Record:
        record: Record = {ID_KEY: record_id}
        for agg in self.aggregates.values():
            record[agg.single_avg] = 0.0
            record[agg.collective_avg] = 0.0
        record[COLLECTIVE_TALLY_KEY] = 0.0
        return record

    def new_node(self, node_id: str) -> Record:
        node = self._blank(node_id)
        node[EDGE_IDS_KEY] = []
        return node

    def new_edge(self, node_id1: str, node_id2: str) -> Record:
        eid = self.gen_edge_id(node_id1, node_id2)
        edge = self._blank(eid)
        # Endpoints are stored in the same order as they appear in the id
        if eid == f"{node_id2}{EDGE_ID_DELIMITER}{node_id1}":
            node_id1, node_id2 = node_id2, node_id1
        edge[NODE_ID1_KEY], edge[NODE_ID2_KEY] = node_id1, node_id2
        return edge

    def get_entity(self, ids: Sequence[str], kind: EntityKind) -> Optional[Record]:
        kind = EntityKind(kind)
        if kind is EntityKind.NODE:
            if len(ids) != 1: raise ValueError("A node is addressed by exactly one id")
            return self.get_node(ids[0])
        if len(ids) != 2: raise ValueError("An edge is addressed by exactly two node ids")
        return self.get_edge(self.gen_edge_id(ids[0], ids[1]))

    def _ensure_node(self, node_id: str) -> Record:
        node = self.get_node(node_id)
        if node is None:
            self.save_node(self.new_node(node_id))
            node = self.get_node(node_id) or self.new_node(node_id)
        return node

    def _ensure_edge(self, node1: Record, node2: Record) -> Record:
        eid = self.gen_edge_id(node1[ID_KEY], node2[ID_KEY])
        edge = self.get_edge(eid)
        if edge is None:
            self.save_edge(self.new_edge(node1[ID_KEY], node2[ID_KEY]))
            edge = self.get_edge(eid) or self.new_edge(node1[ID_KEY], node2[ID_KEY])
        for node in (node1, node2):
            if eid not in node[EDGE_IDS_KEY]:
                node[EDGE_IDS_KEY] = list(node[EDGE_IDS_KEY]) + [eid]
        return edge

    def rate(
        self,
        property_name: str,
        item_ids: Sequence[str],
        rating: float,
        weights: Sequence[float],
        mode: RatingMode,
        tally_step: float = 1,
    ) -> RateResult:
        mode = RatingMode(mode)
        if property_name not in self.property_names:
            raise ValueError(f"Unknown property {property_name!r}; expected one of {self.property_names}")
        if len(item_ids) != len(weights):
            raise ValueError("item_ids and weights must have the same length")
        if len(set(item_ids)) != len(item_ids):
            raise ValueError(f"Duplicate item ids: {list(item_ids)}")
        # Edge ids join node ids with the delimiter, so it may not appear inside one
        bad_ids = [nid for nid in item_ids if EDGE_ID_DELIMITER in nid]
        if bad_ids:
            raise ValueError(f"Item ids may not contain {EDGE_ID_DELIMITER!r}: {bad_ids}")
        if not item_ids:
            return RateResult()

        weight_of = dict(zip(item_ids, weights))
        pairs = list(combinations(item_ids, 2))
        if mode is RatingMode.SINGLE:
            node_delta = {nid: _check_delta(rating * w) for nid, w in weight_of.items()}
            edge_delta = {(a, b): _check_delta(rating * (weight_of[a] + weight_of[b]) / 2) for a, b in pairs}
        else:
            share = _check_delta(rating * (sum(weights) / len(weights)))

        agg = self.aggregates[property_name]
        nodes = {nid: self._ensure_node(nid) for nid in item_ids}
        edges: List[Tuple[Record, str, str]] = []
        for a, b in pairs:
            edge = self._ensure_edge(nodes[a], nodes[b])
            edges.append((edge, a, b))

        if mode is RatingMode.SINGLE:
            for nid, node in nodes.items():
                node[agg.single_avg] = _step(node[agg.single_avg], node_delta[nid])
            for edge, a, b in edges:
                edge[agg.single_avg] = _step(edge[agg.single_avg], edge_delta[(a, b)])
        else:
            for record in list(nodes.values()) + [e for e, _, _ in edges]:
                record[agg.collective_avg] = _step(record[agg.collective_avg], share)
                record[COLLECTIVE_TALLY_KEY] = _step(record[COLLECTIVE_TALLY_KEY], tally_step)

        for node in nodes.values():
            self.update_node(node)
        for edge, _, _ in edges:
            self.update_edge(edge)
        return RateResult(nodes=list(nodes.values()), edges=[e for e, _, _ in edges])
