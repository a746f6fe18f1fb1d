from .cache import StoreHandleCache
from .catalog import SchemaCatalog
from .connection import DuckDBConnection, StoreHandle, UpdateMode
from .schema import RecordTypeDefinition, PropertyAggregates

__all__ = ["StoreHandleCache", "SchemaCatalog", "DuckDBConnection", "StoreHandle", "UpdateMode", "RecordTypeDefinition", "PropertyAggregates"]
