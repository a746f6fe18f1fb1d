from __future__ import annotations
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence
import numpy as np

WeightMap = Dict[str, Dict[str, float]]


def _keys_of(weights: WeightMap) -> List[str]:
    keys: List[str] = []
    for attrs in weights.values():
        for key in attrs:
            if key not in keys: keys.append(key)
    return keys


def get_initial_weights(
    nodes: Sequence[Any],
    get_node_id: Callable[[Any], str],
    get_node_attrs: Callable[[Any], Dict[str, float]],
) -> WeightMap:
    """Each node's attribute divided by the attribute's total over all nodes (uniform when the total is 0)."""
    if not nodes: return {}
    ids = [get_node_id(n) for n in nodes]
    attrs = [get_node_attrs(n) for n in nodes]
    keys = _keys_of(dict(zip(ids, attrs)))
    values = np.array([[max(float(a.get(k) or 0.0), 0.0) for k in keys] for a in attrs], dtype=float).reshape(len(ids), len(keys))
    totals = values.sum(axis=0)
    shares = np.where(totals > 0, values / np.where(totals > 0, totals, 1.0), 1.0 / len(ids))
    return {nid: {k: float(shares[i, j]) for j, k in enumerate(keys)} for i, nid in enumerate(ids)}


def redistribute_node_weight(weights: WeightMap, target_weight: float, central_node_ids: Iterable[str]) -> WeightMap:
    """Rescale every attribute so that the central nodes together hold ``target_weight``."""
    if not 0.0 <= target_weight <= 1.0:
        raise ValueError("target_weight must be within [0, 1]")
    central = {nid for nid in central_node_ids if nid in weights}
    biased = {nid: dict(attrs) for nid, attrs in weights.items()}
    if not central: return biased
    others = [nid for nid in weights if nid not in central]
    central_target = target_weight if others else 1.0

    for key in _keys_of(weights):
        for group, share in ((central, central_target), (others, 1.0 - central_target)):
            if not group: continue
            total = sum(weights[nid].get(key, 0.0) for nid in group)
            for nid in group:
                biased[nid][key] = weights[nid].get(key, 0.0) * share / total if total > 0 else share / len(group)
    return biased


def inflate_edge_attrs(
    edges: Sequence[Dict[str, Any]],
    get_edge_attrs: Callable[[Any], Dict[str, float]],
    magnitude: float,
    predicate: Callable[[Any], bool],
) -> List[Dict[str, Any]]:
    """Copies of ``edges`` with the attributes of matching edges scaled by ``1 + magnitude``."""
    inflated = []
    for edge in edges:
        copy = dict(edge)
        if predicate(edge):
            for key, value in get_edge_attrs(edge).items():
                copy[key] = value * (1.0 + magnitude)
        inflated.append(copy)
    return inflated


def page_rank(
    initial_weights: WeightMap,
    nodes: Sequence[Any],
    get_node_id: Callable[[Any], str],
    get_edges: Callable[[Any], Iterable[Any]],
    get_edge_attrs: Callable[[Any], Dict[str, float]],
    get_destination_node: Callable[[Any, Any], Optional[Any]],
    iterations: int = 50,
    damping_factor: float = 0.85,
) -> WeightMap:
    """
    Personalised PageRank run independently for every attribute key.

    ``initial_weights`` is both the starting distribution and the teleport
    vector. A node's rank flows along its edges in proportion to each edge's
    attribute; nodes without positive outgoing weight hand their rank back
    through the teleport vector.
    """
    if not nodes: return {}
    if iterations < 0: raise ValueError("iterations must be >= 0")
    ids = [get_node_id(n) for n in nodes]
    index = {nid: i for i, nid in enumerate(ids)}
    keys = _keys_of(initial_weights)
    n, k = len(ids), len(keys)
    teleport = np.array([[initial_weights.get(nid, {}).get(key, 0.0) for key in keys] for nid in ids], dtype=float).reshape(n, k)

    src, dst, flow = [], [], []
    for node in nodes:
        i = index[get_node_id(node)]
        for edge in get_edges(node):
            if edge is None: continue
            dest = get_destination_node(node, edge)
            if dest is None or get_node_id(dest) not in index: continue
            attrs = get_edge_attrs(edge)
            src.append(i)
            dst.append(index[get_node_id(dest)])
            flow.append([max(float(attrs.get(key) or 0.0), 0.0) for key in keys])

    src_idx, dst_idx = np.array(src, dtype=int), np.array(dst, dtype=int)
    flow_arr = np.array(flow, dtype=float).reshape(len(flow), k)
    out_weight = np.zeros((n, k))
    np.add.at(out_weight, src_idx, flow_arr)
    share = flow_arr / np.where(out_weight[src_idx] > 0, out_weight[src_idx], 1.0)
    dangling = out_weight <= 0

    rank = teleport.copy()
    for _ in range(iterations):
        spread = np.zeros((n, k))
        np.add.at(spread, dst_idx, rank[src_idx] * share)
        leaked = (rank * dangling).sum(axis=0)
        rank = (1.0 - damping_factor) * teleport + damping_factor * (spread + teleport * leaked)

    return {nid: {key: float(rank[i, j]) for j, key in enumerate(keys)} for i, nid in enumerate(ids)}
