"""Integration tests for the top-level rategraph API."""

import pytest

import rategraph
from rategraph import GraphRegistry, GraphStoreConfig, RatingMode


@pytest.fixture
def default_registry(tmp_path, monkeypatch):
    monkeypatch.setenv("RATEGRAPH_CATALOG_PATH", str(tmp_path / "default-meta.duckdb"))
    rategraph.reset_default_registry()
    yield
    rategraph.reset_default_registry()


class TestConnect:

    def test_connect_builds_config(self, catalog_path):
        with rategraph.connect(catalog_path=catalog_path, iterations=10) as reg:
            assert isinstance(reg, GraphRegistry)
            assert reg.config.catalog_path == catalog_path
            assert reg.config.iterations == 10

    def test_connections_are_independent(self, catalog_path):
        with rategraph.connect(catalog_path=catalog_path) as first, rategraph.connect(catalog_path=catalog_path) as second:
            first.create_graph("G", ["p1"], data_file_path="F.duckdb")
            assert "G" in first
            assert "G" not in second
            assert second.loadable_graph_names(catalog_path, "F.duckdb") == ["G"]

    def test_end_to_end(self, catalog_path):
        with rategraph.connect(catalog_path=catalog_path) as reg:
            graph = reg.create_graph("Activities", ["fun"], data_file_path="activities.duckdb")
            graph.rate("fun", ["hike", "swim", "read"], 9, [0.4, 0.4, 0.2], RatingMode.SINGLE)
            graph.rate("fun", ["read", "nap"], 3, [0.5, 0.5], RatingMode.SINGLE)
            best = graph.recommend("fun_SINGLE_AVG", ["hike"], 0.5, 1.0, top_k=True)
            assert [node["id"] for node in best] == ["hike"]


class TestDefaultRegistry:

    def test_singleton(self, default_registry):
        first = rategraph.get_default_registry()
        assert rategraph.get_default_registry() is first

    def test_reset(self, default_registry):
        first = rategraph.get_default_registry()
        rategraph.reset_default_registry()
        assert rategraph.get_default_registry() is not first

    def test_reads_environment(self, default_registry, tmp_path):
        reg = rategraph.get_default_registry()
        assert reg.config.catalog_path == str(tmp_path / "default-meta.duckdb")
        graph = reg.create_graph("EnvGraph", ["p1"])
        assert (tmp_path / "RATEGRAPH-EnvGraph.duckdb").exists()
        assert graph.data_file_path == "RATEGRAPH-EnvGraph.duckdb"


class TestConfig:

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("RATEGRAPH_CATALOG_PATH", "/data/meta.duckdb")
        monkeypatch.setenv("RATEGRAPH_MEMORY_LIMIT", "512MB")
        monkeypatch.setenv("RATEGRAPH_THREADS", "2")
        config = GraphStoreConfig()
        assert config.catalog_path == "/data/meta.duckdb"
        assert config.connection_kwargs == {"memory_limit": "512MB", "threads": 2}

    def test_defaults(self, monkeypatch):
        for name in ("RATEGRAPH_CATALOG_PATH", "RATEGRAPH_MEMORY_LIMIT", "RATEGRAPH_THREADS"):
            monkeypatch.delenv(name, raising=False)
        config = GraphStoreConfig()
        assert config.catalog_path == "RATEGRAPH-meta.duckdb"
        assert config.threads is None
        assert (config.iterations, config.damping_factor) == (50, 0.85)

    @pytest.mark.parametrize("kwargs", [{"iterations": -1}, {"damping_factor": 1.5}])
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            GraphStoreConfig(**kwargs)
