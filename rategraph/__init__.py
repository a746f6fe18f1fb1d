import logging

from .api import connect, get_default_registry, reset_default_registry
from .config import GraphStoreConfig
from .core.cache import StoreHandleCache
from .core.catalog import SchemaCatalog
from .core.connection import DuckDBConnection, StoreHandle, UpdateMode
from .core.schema import RecordTypeDefinition
from .errors import (
    GraphStoreError,
    SchemaConflict,
    UnknownGraph,
    StoreUnavailable,
    NotInitialized,
    UnknownRecordType,
    DuplicatePrimaryKey,
)
from .graph import GraphDescriptor, GraphHandle
from .ingestion import rate_interactions
from .rating import EntityKind, RateResult, RatingEngine, RatingMode
from .ranking import BoundedMaxHeap
from .recommenders.pipeline import RecommendationPipeline
from .registry import GraphRegistry

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "connect",
    "get_default_registry",
    "reset_default_registry",
    "GraphStoreConfig",
    "GraphRegistry",
    "GraphHandle",
    "GraphDescriptor",
    "SchemaCatalog",
    "StoreHandleCache",
    "DuckDBConnection",
    "StoreHandle",
    "UpdateMode",
    "RecordTypeDefinition",
    "RatingEngine",
    "RatingMode",
    "EntityKind",
    "RateResult",
    "RecommendationPipeline",
    "BoundedMaxHeap",
    "rate_interactions",
    # Errors
    "GraphStoreError",
    "SchemaConflict",
    "UnknownGraph",
    "StoreUnavailable",
    "NotInitialized",
    "UnknownRecordType",
    "DuplicatePrimaryKey",
]
