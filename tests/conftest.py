# ---------------------------------------------------------------------------
# Tests configuration
# ---------------------------------------------------------------------------

import pytest
import pandas as pd

from rategraph.config import GraphStoreConfig
from rategraph.registry import GraphRegistry
from rategraph.rating import RatingMode


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def catalog_path(tmp_path):
    """Catalog file inside the test's temporary directory."""
    return str(tmp_path / "meta.duckdb")


@pytest.fixture
def registry(catalog_path):
    """Registry whose default catalog lives in tmp_path; closed on teardown."""
    reg = GraphRegistry(GraphStoreConfig(catalog_path=catalog_path))
    yield reg
    reg.close()


@pytest.fixture
def graph(registry):
    """Empty graph 'TestGraph1' with properties prop1/prop2 in loadable1.duckdb."""
    return registry.create_graph("TestGraph1", ["prop1", "prop2"], data_file_path="loadable1.duckdb")


ACTIVITY_RATINGS = [
    (["basketball", "eat", "run", "sleep"], 9, [0.25, 0.25, 0.25, 0.25]),
    (["basketball", "eat", "sleep"], 7.5, [0.333, 0.333, 0.333]),
    (["eat", "run", "sleep"], 5, [0.333, 0.333, 0.333]),
    (["basketball", "sleep"], 7, [0.5, 0.5]),
    (["eat", "sleep"], 4, [0.5, 0.5]),
    (["basketball", "sleep", "skate"], 7.5, [0.333, 0.333, 0.333]),
]


@pytest.fixture
def activity_ratings():
    return list(ACTIVITY_RATINGS)


@pytest.fixture
def rated_graph(graph):
    """TestGraph1 rated on prop1 with a small activity log, in both modes."""
    for node_ids, rating, weights in ACTIVITY_RATINGS:
        graph.rate("prop1", node_ids, rating, weights, RatingMode.SINGLE)
        graph.rate("prop1", node_ids, rating, weights, RatingMode.COLLECTIVE)
    return graph


@pytest.fixture
def cycle_graph(registry):
    """
    Symmetric 4-cycle a-b-c-d-a, every pair rated identically,
    so uniform weights are already the ranking fixed point.
    """
    g = registry.create_graph("Cycle", ["p1"], data_file_path="cycle.duckdb")
    for pair in (["a", "b"], ["b", "c"], ["c", "d"], ["d", "a"]):
        g.rate("p1", pair, 4, [0.5, 0.5], RatingMode.SINGLE)
        g.rate("p1", pair, 4, [0.5, 0.5], RatingMode.COLLECTIVE)
    return g


@pytest.fixture
def interactions_df():
    """Long-format rating log: one row per (session, activity)."""
    data = [
        ("S1", "run", 8.0), ("S1", "swim", 8.0),
        ("S2", "run", 6.0), ("S2", "bike", 6.0), ("S2", "swim", 6.0),
        ("S3", "bike", 3.0),
    ]
    return pd.DataFrame(data, columns=["session_id", "activity", "score"])
