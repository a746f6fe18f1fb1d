from __future__ import annotations
from typing import Optional

SUFFIX_DELIMITER = "_"
NODE_TYPE_SUFFIX = "NODE"
EDGE_TYPE_SUFFIX = "EDGE"
RESERVED_SUFFIXES = (NODE_TYPE_SUFFIX, EDGE_TYPE_SUFFIX)

# Record field names
ID_KEY = "id"
EDGE_IDS_KEY = "edgeIds"
NODE_ID1_KEY = "nodeId1"
NODE_ID2_KEY = "nodeId2"
COLLECTIVE_TALLY_KEY = "COLLECTIVE_TALLY"
SINGLE_AVG_SUFFIX = "SINGLE_AVG"
COLLECTIVE_AVG_SUFFIX = "COLLECTIVE_AVG"

EDGE_ID_DELIMITER = "-"


def node_type_name(graph_name: str) -> str:
    return f"{graph_name}{SUFFIX_DELIMITER}{NODE_TYPE_SUFFIX}"


def edge_type_name(graph_name: str) -> str:
    return f"{graph_name}{SUFFIX_DELIMITER}{EDGE_TYPE_SUFFIX}"


def base_name(type_name: str) -> str:
    """Graph name a node/edge type name was derived from."""
    index = type_name.rfind(SUFFIX_DELIMITER)
    return type_name[:index] if index >= 0 else type_name


def validate_graph_name(graph_name: str) -> str:
    if not isinstance(graph_name, str) or not graph_name:
        raise ValueError("graph_name must be a non-empty string")
    if '"' in graph_name:
        raise ValueError(f"graph_name may not contain '\"': {graph_name!r}")
    for suffix in RESERVED_SUFFIXES:
        if graph_name.endswith(f"{SUFFIX_DELIMITER}{suffix}"):
            raise ValueError(f"graph_name may not end with the reserved suffix {SUFFIX_DELIMITER}{suffix}: {graph_name!r}")
    return graph_name


def single_avg_key(property_name: str) -> str:
    return f"{property_name}{SUFFIX_DELIMITER}{SINGLE_AVG_SUFFIX}"


def collective_avg_key(property_name: str) -> str:
    return f"{property_name}{SUFFIX_DELIMITER}{COLLECTIVE_AVG_SUFFIX}"


def property_name_from_key(key: str) -> Optional[str]:
    for suffix in (SINGLE_AVG_SUFFIX, COLLECTIVE_AVG_SUFFIX):
        tail = f"{SUFFIX_DELIMITER}{suffix}"
        if key.endswith(tail) and len(key) > len(tail):
            return key[: -len(tail)]
    return None


def edge_id(node_id1: str, node_id2: str) -> str:
    """Order-independent id of the edge joining two nodes; ids equal up to case fall back to a case-sensitive order."""
    if (node_id1.lower(), node_id1) < (node_id2.lower(), node_id2):
        return f"{node_id1}{EDGE_ID_DELIMITER}{node_id2}"
    return f"{node_id2}{EDGE_ID_DELIMITER}{node_id1}"
