"""Tests for the store handle cache."""

import duckdb
import pytest
from pathlib import Path
from unittest.mock import patch
from rategraph.core.cache import StoreHandleCache
from rategraph.core.catalog import SchemaCatalog
from rategraph.core.paths import catalog_key, data_file_key
from rategraph.errors import StoreUnavailable


@pytest.fixture
def cache():
    c = StoreHandleCache(SchemaCatalog())
    yield c
    c.close_all()
    c.catalog.close()


class TestStoreHandleCache:

    def test_get_or_open_reuses_handle(self, cache, catalog_path):
        first = cache.get_or_open(catalog_path, "data.duckdb")
        assert cache.get_or_open(catalog_path, "data.duckdb") is first
        assert len(cache) == 1

    def test_reload_replaces_and_closes(self, cache, catalog_path):
        first = cache.get_or_open(catalog_path, "data.duckdb")
        second = cache.reload(catalog_path, "data.duckdb")
        assert second is not first
        assert first.closed
        assert cache.peek(catalog_path, "data.duckdb") is second

    def test_reload_picks_up_new_types(self, cache, catalog_path):
        before = cache.get_or_open(catalog_path, "data.duckdb")
        assert before.record_types == {}

        cache.catalog.save_graph_schemas(catalog_path, "data.duckdb", "G", ["p1"])
        after = cache.reload(catalog_path, "data.duckdb")
        assert set(after.record_types) == {"G_NODE", "G_EDGE"}
        assert after.table_exists("G_NODE")

    def test_reopens_closed_handle(self, cache, catalog_path):
        first = cache.get_or_open(catalog_path, "data.duckdb")
        first.close()
        assert cache.get_or_open(catalog_path, "data.duckdb") is not first

    def test_failed_reload_keeps_previous(self, cache, catalog_path):
        first = cache.get_or_open(catalog_path, "data.duckdb")
        with patch("rategraph.core.cache.StoreHandle", side_effect=duckdb.IOException("locked")):
            with pytest.raises(StoreUnavailable):
                cache.reload(catalog_path, "data.duckdb")
        assert cache.peek(catalog_path, "data.duckdb") is first
        assert not first.closed

    def test_resolve_location(self, tmp_path):
        catalog_path = tmp_path / "meta.duckdb"
        assert StoreHandleCache.resolve_location(catalog_path, "data.duckdb") == tmp_path / "data.duckdb"
        absolute = tmp_path / "elsewhere" / "data.duckdb"
        assert StoreHandleCache.resolve_location(catalog_path, absolute) == absolute

    def test_data_file_created_next_to_catalog(self, cache, catalog_path):
        handle = cache.get_or_open(catalog_path, "sub/data.duckdb")
        assert Path(handle.database) == Path(catalog_path).parent / "sub" / "data.duckdb"
        assert Path(handle.database).exists()

    def test_on_swap_runs_before_previous_closes(self, cache, catalog_path):
        first = cache.get_or_open(catalog_path, "data.duckdb")
        seen = []
        cache.reload(catalog_path, "data.duckdb", lambda fresh: seen.append((fresh, first.closed)))
        assert seen == [(cache.peek(catalog_path, "data.duckdb"), False)]
        assert first.closed

    def test_path_spellings_share_one_handle(self, cache, catalog_path, tmp_path):
        (tmp_path / "sub").mkdir()
        first = cache.get_or_open(catalog_path, "data.duckdb")
        assert cache.get_or_open(catalog_path, "./data.duckdb") is first
        assert cache.get_or_open(catalog_path, tmp_path / "data.duckdb") is first
        assert cache.get_or_open(str(tmp_path / "sub" / ".." / "meta.duckdb"), "data.duckdb") is first
        assert len(cache) == 1


class TestAddressKeys:

    def test_data_file_key_relative_to_catalog(self, tmp_path):
        catalog_path = tmp_path / "meta.duckdb"
        assert data_file_key(catalog_path, "./F.duckdb") == "F.duckdb"
        assert data_file_key(catalog_path, tmp_path / "sub" / "F.duckdb") == "sub/F.duckdb"
        outside = tmp_path.parent / "elsewhere.duckdb"
        assert data_file_key(catalog_path, outside) == str(outside.resolve())

    def test_catalog_key_is_absolute(self, tmp_path):
        (tmp_path / "a").mkdir()
        assert catalog_key(tmp_path / "a" / ".." / "meta.duckdb") == str((tmp_path / "meta.duckdb").resolve())
