from __future__ import annotations
import json
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, NamedTuple, Tuple
import pyarrow as pa
from rategraph.core.naming import (
    ID_KEY, EDGE_IDS_KEY, NODE_ID1_KEY, NODE_ID2_KEY, COLLECTIVE_TALLY_KEY,
    node_type_name, edge_type_name, single_avg_key, collective_avg_key, property_name_from_key,
)

# type token -> (DuckDB column type, arrow type)
FIELD_TYPES: Dict[str, Tuple[str, pa.DataType]] = {
    "string": ("VARCHAR", pa.string()),
    "float": ("DOUBLE", pa.float64()),
    "int": ("BIGINT", pa.int64()),
    "string[]": ("VARCHAR[]", pa.list_(pa.string())),
}

# Fields that never name a rated property
RESERVED_FIELDS = frozenset({ID_KEY, EDGE_IDS_KEY, NODE_ID1_KEY, NODE_ID2_KEY, COLLECTIVE_TALLY_KEY})


def default_value(type_token: str) -> Any:
    if type_token == "string[]": return []
    if type_token == "float": return 0.0
    if type_token == "int": return 0
    return ""


class PropertyAggregates(NamedTuple):
    """Aggregate field names persisted for one rated property."""
    single_avg: str
    collective_avg: str

    @classmethod
    def for_property(cls, property_name: str) -> PropertyAggregates:
        return cls(single_avg_key(property_name), collective_avg_key(property_name))


@dataclass(frozen=True)
class RecordTypeDefinition:
    name: str
    fields: Dict[str, str] = field(default_factory=dict)
    primary_key: str = ID_KEY

    def __post_init__(self):
        unknown = {t for t in self.fields.values() if t not in FIELD_TYPES}
        if unknown: raise ValueError(f"Unsupported field types for {self.name!r}: {sorted(unknown)}")
        if self.primary_key not in self.fields:
            raise ValueError(f"Primary key {self.primary_key!r} is not a field of {self.name!r}")

    @property
    def field_names(self) -> List[str]:
        return list(self.fields)

    def column_type(self, field_name: str) -> str:
        return FIELD_TYPES[self.fields[field_name]][0]

    def default_value(self, field_name: str) -> Any:
        return default_value(self.fields[field_name])

    def arrow_schema(self) -> pa.Schema:
        return pa.schema([(name, FIELD_TYPES[token][1]) for name, token in self.fields.items()])

    def same_shape(self, other: RecordTypeDefinition) -> bool:
        return self.primary_key == other.primary_key and list(self.fields.items()) == list(other.fields.items())

    def fields_json(self) -> str:
        return json.dumps([[name, token] for name, token in self.fields.items()])

    @classmethod
    def from_json(cls, name: str, primary_key: str, fields_json: str) -> RecordTypeDefinition:
        return cls(name=name, fields={k: v for k, v in json.loads(fields_json)}, primary_key=primary_key)


def validate_property_names(property_names: Iterable[str]) -> List[str]:
    names = list(property_names)
    for name in names:
        if not isinstance(name, str) or not name:
            raise ValueError("property names must be non-empty strings")
        if name in RESERVED_FIELDS:
            raise ValueError(f"{name!r} is a reserved field name")
    # DuckDB column names are case-insensitive
    if len({n.lower() for n in names}) != len(names):
        raise ValueError(f"Duplicate property names: {names}")
    return names


def property_aggregates(property_names: Iterable[str]) -> Dict[str, PropertyAggregates]:
    return {p: PropertyAggregates.for_property(p) for p in property_names}


def aggregate_field_names(property_names: Iterable[str]) -> List[str]:
    return [key for agg in property_aggregates(property_names).values() for key in agg]


def _base_fields(property_names: List[str]) -> Dict[str, str]:
    fields = {ID_KEY: "string"}
    fields.update({key: "float" for key in aggregate_field_names(property_names)})
    fields[COLLECTIVE_TALLY_KEY] = "float"
    return fields


def build_node_type(graph_name: str, property_names: Iterable[str]) -> RecordTypeDefinition:
    fields = _base_fields(validate_property_names(property_names))
    fields[EDGE_IDS_KEY] = "string[]"
    return RecordTypeDefinition(name=node_type_name(graph_name), fields=fields)


def build_edge_type(graph_name: str, property_names: Iterable[str]) -> RecordTypeDefinition:
    fields = _base_fields(validate_property_names(property_names))
    fields[NODE_ID1_KEY] = "string"
    fields[NODE_ID2_KEY] = "string"
    return RecordTypeDefinition(name=edge_type_name(graph_name), fields=fields)


def build_graph_types(graph_name: str, property_names: Iterable[str]) -> Tuple[RecordTypeDefinition, RecordTypeDefinition]:
    names = list(property_names)
    return build_node_type(graph_name, names), build_edge_type(graph_name, names)


def property_names_from_type(definition: RecordTypeDefinition) -> List[str]:
    """Recover a graph's rated properties, in saved order, from its node or edge type."""
    names: List[str] = []
    for key in definition.fields:
        if key in RESERVED_FIELDS: continue
        name = property_name_from_key(key)
        if name is not None and name not in names:
            names.append(name)
    return names
