from __future__ import annotations


class GraphStoreError(Exception):
    """Base class for every error raised by rategraph."""


class SchemaConflict(GraphStoreError):
    def __init__(self, type_name: str, data_file_path: str):
        self.type_name, self.data_file_path = type_name, data_file_path
        super().__init__(f"Record type {type_name!r} already exists in {data_file_path!r} with a different shape")


class UnknownGraph(GraphStoreError):
    def __init__(self, graph_name: str, calling_method: str = ""):
        self.graph_name = graph_name
        suffix = f"; called by {calling_method!r}" if calling_method else ""
        super().__init__(f"No graph {graph_name!r} exists{suffix}")


class StoreUnavailable(GraphStoreError):
    """No open store handle could be obtained for an address."""


class NotInitialized(GraphStoreError):
    def __init__(self, calling_method: str):
        super().__init__(f"{calling_method} cannot be called before the graph is registered")


class UnknownRecordType(GraphStoreError):
    def __init__(self, type_name: str):
        self.type_name = type_name
        super().__init__(f"Record type {type_name!r} was not known when the store was opened")


class DuplicatePrimaryKey(GraphStoreError):
    def __init__(self, type_name: str, key: str):
        self.type_name, self.key = type_name, key
        super().__init__(f"{type_name!r} already holds a record with id {key!r}")
