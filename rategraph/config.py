from __future__ import annotations
import os
from dataclasses import dataclass, field
from typing import Optional

DEFAULT_PATH_PREFIX = "RATEGRAPH"
DEFAULT_ITERATIONS = 50
DEFAULT_DAMPING_FACTOR = 0.85


def default_catalog_path() -> str:
    return f"{DEFAULT_PATH_PREFIX}-meta.duckdb"


def default_data_file_path(graph_name: str) -> str:
    return f"{DEFAULT_PATH_PREFIX}-{graph_name}.duckdb"


def _env_int(name: str) -> Optional[int]:
    value = os.environ.get(name)
    return int(value) if value else None


@dataclass
class GraphStoreConfig:
    """Settings shared by every catalog and store connection of a registry."""
    catalog_path: str = field(default_factory=lambda: os.environ.get("RATEGRAPH_CATALOG_PATH", default_catalog_path()))
    memory_limit: Optional[str] = field(default_factory=lambda: os.environ.get("RATEGRAPH_MEMORY_LIMIT") or None)
    threads: Optional[int] = field(default_factory=lambda: _env_int("RATEGRAPH_THREADS"))

    # Ranking defaults
    iterations: int = DEFAULT_ITERATIONS
    damping_factor: float = DEFAULT_DAMPING_FACTOR

    def __post_init__(self):
        if self.iterations < 0:
            raise ValueError("iterations must be >= 0")
        if not 0.0 <= self.damping_factor <= 1.0:
            raise ValueError("damping_factor must be within [0, 1]")

    @property
    def connection_kwargs(self) -> dict:
        return {"memory_limit": self.memory_limit, "threads": self.threads}
