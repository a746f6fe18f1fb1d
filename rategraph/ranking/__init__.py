from .pagerank import get_initial_weights, redistribute_node_weight, inflate_edge_attrs, page_rank
from .heap import BoundedMaxHeap

__all__ = ["get_initial_weights", "redistribute_node_weight", "inflate_edge_attrs", "page_rank", "BoundedMaxHeap"]
