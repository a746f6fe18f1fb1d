from __future__ import annotations
import threading
from typing import Optional
from rategraph.config import GraphStoreConfig
from rategraph.registry import GraphRegistry

_default_registry: Optional[GraphRegistry] = None
_default_lock = threading.Lock()


def connect(config: Optional[GraphStoreConfig] = None, **kwargs) -> GraphRegistry:
    """A new, independent registry. Keyword arguments build a GraphStoreConfig."""
    return GraphRegistry(config or GraphStoreConfig(**kwargs))


def get_default_registry() -> GraphRegistry:
    """Process-wide registry for applications that do not manage their own."""
    global _default_registry
    with _default_lock:
        if _default_registry is None:
            _default_registry = GraphRegistry()
        return _default_registry


def reset_default_registry():
    global _default_registry
    with _default_lock:
        if _default_registry is not None:
            _default_registry.close()
        _default_registry = None
