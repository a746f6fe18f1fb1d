from __future__ import annotations
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Tuple, Union
import narwhals as nw
from rategraph.rating import RatingMode

if TYPE_CHECKING:
    from rategraph.graph import GraphHandle

DEFAULT_MODES = (RatingMode.SINGLE, RatingMode.COLLECTIVE)


def _to_frame(data: Any) -> nw.DataFrame:
    try:
        frame = nw.from_native(data)
    except TypeError as e:
        raise ValueError(f"Unsupported data source: {type(data).__name__}") from e
    if isinstance(frame, nw.LazyFrame):
        frame = frame.collect()
    return frame


def group_interactions(data: Any, set_col: str = "set_id", node_col: str = "node_id", rating_col: str = "rating") -> Dict[Any, Tuple[List[str], List[float]]]:
    """set id -> (distinct node ids in first-seen order, ratings of the set's rows)"""
    frame = _to_frame(data)
    missing = [c for c in (set_col, node_col, rating_col) if c not in frame.columns]
    if missing:
        raise ValueError(f"Missing columns: {missing}")

    groups: Dict[Any, Tuple[List[str], List[float]]] = {}
    for row in frame.select([set_col, node_col, rating_col]).drop_nulls().rows(named=True):
        items, ratings = groups.setdefault(row[set_col], ([], []))
        node_id = str(row[node_col])
        if node_id not in items: items.append(node_id)
        ratings.append(float(row[rating_col]))
    return groups


def rate_interactions(
    graph: GraphHandle,
    data: Any,
    property_name: str,
    set_col: str = "set_id",
    node_col: str = "node_id",
    rating_col: str = "rating",
    modes: Iterable[Union[RatingMode, str]] = DEFAULT_MODES,
) -> int:
    """
    Rate every set of a long-format interaction frame (pandas, polars, pyarrow, ...)
    as one group with equal weights and the set's mean rating. Returns the number of sets rated.
    """
    modes = [RatingMode(m) for m in modes]
    groups = group_interactions(data, set_col=set_col, node_col=node_col, rating_col=rating_col)
    for items, ratings in groups.values():
        rating = sum(ratings) / len(ratings)
        weights = [1.0 / len(items)] * len(items)
        for mode in modes:
            graph.rate(property_name, items, rating, weights, mode)
    return len(groups)
