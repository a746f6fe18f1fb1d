"""Tests for the record-type catalog."""

import pytest
from rategraph.core.catalog import SchemaCatalog
from rategraph.errors import SchemaConflict


@pytest.fixture
def catalog():
    cat = SchemaCatalog()
    yield cat
    cat.close()


class TestSaveAndList:

    def test_two_graphs_share_a_data_file(self, catalog, catalog_path):
        assert catalog.save_graph_schemas(catalog_path, "F", "G", ["p1", "p2"]) is True
        catalog.save_graph_schemas(catalog_path, "F", "H", ["p3", "p4"])
        assert set(catalog.list_type_names(catalog_path, "F")) == {"G_NODE", "G_EDGE", "H_NODE", "H_EDGE"}
        assert catalog.list_graph_names(catalog_path, "F") == ["G", "H"]

    def test_identical_save_is_noop(self, catalog, catalog_path):
        catalog.save_graph_schemas(catalog_path, "F", "G", ["p1"])
        assert catalog.save_graph_schemas(catalog_path, "F", "G", ["p1"]) is False
        assert len(catalog.list_type_names(catalog_path, "F")) == 2

    def test_different_shape_conflicts(self, catalog, catalog_path):
        catalog.save_graph_schemas(catalog_path, "F", "G", ["p1"])
        with pytest.raises(SchemaConflict) as exc:
            catalog.save_graph_schemas(catalog_path, "F", "G", ["p9"])
        assert exc.value.type_name == "G_NODE"
        assert catalog.get_property_names(catalog_path, "F", "G") == ["p1"]

    def test_case_variant_conflicts(self, catalog, catalog_path):
        catalog.save_graph_schemas(catalog_path, "F", "G", ["p1"])
        with pytest.raises(SchemaConflict):
            catalog.save_graph_schemas(catalog_path, "F", "g", ["p1"])

    def test_addresses_are_independent(self, catalog, tmp_path):
        meta1, meta2 = str(tmp_path / "meta1.duckdb"), str(tmp_path / "meta2.duckdb")
        catalog.save_graph_schemas(meta1, "L1", "TestGraph1", ["prop1"])
        catalog.save_graph_schemas(meta1, "L1", "TestGraph2", ["prop3"])
        catalog.save_graph_schemas(meta1, "L2", "TestGraph3", ["prop5"])
        catalog.save_graph_schemas(meta2, "L1", "TestGraph4", ["prop7"])

        assert sorted(catalog.list_graph_names(meta1, "L1")) == ["TestGraph1", "TestGraph2"]
        assert catalog.list_graph_names(meta1, "L2") == ["TestGraph3"]
        assert catalog.list_graph_names(meta2, "L1") == ["TestGraph4"]
        assert catalog.list_graph_names(meta2, "L2") == []

    def test_persists_across_instances(self, catalog, catalog_path):
        catalog.save_graph_schemas(catalog_path, "F", "G", ["p1", "p2"])
        catalog.close()

        reopened = SchemaCatalog()
        try:
            assert reopened.list_graph_names(catalog_path, "F") == ["G"]
            assert reopened.get_property_names(catalog_path, "F", "G") == ["p1", "p2"]
        finally:
            reopened.close()


class TestRemoveAndUpdate:

    def test_remove(self, catalog, catalog_path):
        catalog.save_graph_schemas(catalog_path, "F", "G", ["p1", "p2"])
        catalog.save_graph_schemas(catalog_path, "F", "H", ["p3", "p4"])
        catalog.remove_graph_schemas(catalog_path, "F", "G")
        assert set(catalog.list_type_names(catalog_path, "F")) == {"H_NODE", "H_EDGE"}
        assert catalog.list_graph_names(catalog_path, "F") == ["H"]

    def test_remove_absent_is_noop(self, catalog, catalog_path):
        catalog.remove_graph_schemas(catalog_path, "F", "Nope")
        assert catalog.list_type_names(catalog_path, "F") == []

    def test_update_replaces_both_types(self, catalog, catalog_path):
        catalog.save_graph_schemas(catalog_path, "F", "G", ["p1"])
        catalog.update_graph_schemas(catalog_path, "F", "G", ["p1", "p2"])
        assert catalog.get_property_names(catalog_path, "F", "G") == ["p1", "p2"]
        edge = catalog.get_record_type(catalog_path, "F", "G_EDGE")
        assert "p2_SINGLE_AVG" in edge.fields
        assert catalog.get_fields(catalog_path, "F", "G_NODE")["edgeIds"] == "string[]"
        assert catalog.get_fields(catalog_path, "F", "Nope_NODE") is None
        assert catalog.list_graph_names(catalog_path, "F") == ["G"]


class TestDiscovery:

    def test_discover_from_type_names(self, catalog, catalog_path):
        catalog.save_graph_schemas(catalog_path, "F", "my_graph", ["p1"])
        catalog.save_graph_schemas(catalog_path, "F", "Other", ["p1"])
        assert sorted(catalog.discover_graph_names(catalog_path, "F")) == ["Other", "my_graph"]

    def test_rebuild_index(self, catalog, catalog_path):
        catalog.save_graph_schemas(catalog_path, "F", "G", ["p1"])
        catalog._conn(catalog_path).execute("DELETE FROM graph_index")
        assert catalog.list_graph_names(catalog_path, "F") == []

        assert catalog.rebuild_index(catalog_path, "F") == ["G"]
        assert catalog.list_graph_names(catalog_path, "F") == ["G"]

    def test_data_file_spellings_share_entries(self, catalog, catalog_path):
        catalog.save_graph_schemas(catalog_path, "F.duckdb", "G", ["p1"])
        assert catalog.save_graph_schemas(catalog_path, "./F.duckdb", "G", ["p1"]) is False
        assert catalog.list_graph_names(catalog_path, "./F.duckdb") == ["G"]
