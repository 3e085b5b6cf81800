"""Unit tests for turning catalog objects into generic instances.

Tests cover:
- Raw field value conversion
- Entity headers, properties and classifications
- Relationships from linkage fields, SELF links and backing objects
- Page draining: budgets, placeholders and termination
"""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from catalog_bridge.lib.errors import EntityNotKnownError, InvalidEntityFromStoreError
from catalog_bridge.lib.materialize import ResultMaterializer, to_datetime, to_property_value
from catalog_bridge.lib.schema import FieldKind
from catalog_bridge.lib.search import CatalogObject, CatalogQuery, SearchPage
from catalog_bridge.lib.types import ArrayValue, EntityDetail, EntitySummary, EnumValue, PrimitiveKind, PrimitiveValue
from tests.conftest import COLLECTION_ID


@pytest.fixture
def materializer(registry, catalog):
    return ResultMaterializer(registry, catalog, COLLECTION_ID)


class TestValueConversion:
    """Tests for to_datetime and to_property_value."""

    def test_epoch_millis(self):
        assert to_datetime(1577836800000) == datetime(2020, 1, 1, tzinfo=timezone.utc)

    def test_iso_text(self):
        assert to_datetime("2020-01-01T00:00:00Z") == datetime(2020, 1, 1, tzinfo=timezone.utc)

    def test_empty_values(self):
        assert to_datetime(None) is None
        assert to_property_value("", FieldKind.STRING) is None
        assert to_property_value([], FieldKind.REFERENCE_LIST) is None

    def test_number_and_boolean(self):
        assert to_property_value(12, FieldKind.NUMBER) == PrimitiveValue(12, PrimitiveKind.LONG)
        assert to_property_value(0.5, FieldKind.NUMBER) == PrimitiveValue(0.5, PrimitiveKind.DOUBLE)
        assert to_property_value("true", FieldKind.BOOLEAN) == PrimitiveValue(True, PrimitiveKind.BOOLEAN)

    def test_enum(self):
        assert to_property_value("ACTIVE", FieldKind.STRING, "TermStatus") == EnumValue("ACTIVE")

    def test_references_use_names(self):
        refs = [{"_id": "t-1", "_type": "term", "_name": "Customer"}, {"_id": "t-2", "_type": "term"}]
        assert to_property_value(refs, FieldKind.REFERENCE_LIST) == ArrayValue(
            (PrimitiveValue("Customer"), PrimitiveValue("t-2"))
        )
        assert to_property_value({"items": refs[:1]}, FieldKind.REFERENCE_LIST) == ArrayValue(
            (PrimitiveValue("Customer"),)
        )


class TestMaterializeEntity:
    """Tests for ResultMaterializer.materialize_entity."""

    def test_asset_detail(self, registry, catalog, materializer):
        entity = materializer.materialize_entity(registry.entity_mapping("Asset"), catalog.get_object("1-2-3"))
        assert isinstance(entity, EntityDetail)
        assert entity.guid == "1-2-3"
        assert entity.type_name == "Asset"
        assert entity.metadata_collection_id == COLLECTION_ID
        assert entity.property_value("name") == "customer_accounts.csv"
        assert entity.property_value("qualifiedName") == "(data_file)=1-2-3"
        assert entity.property_value("recordCount") == 1200
        assert entity.created_by == "etl"
        assert entity.update_time == datetime(2021, 1, 1, tzinfo=timezone.utc)
        assert entity.version == 1609459200000

    def test_classifications_from_presence(self, registry, catalog, materializer):
        entity = materializer.materialize_entity(registry.entity_mapping("DataField"), catalog.get_object("f-1"))
        names = [c.name for c in entity.classifications]
        assert names == ["Confidentiality", "PrimaryKey"]
        assert entity.classifications[0].properties["level"] == PrimitiveValue("Internal")

        plain = materializer.materialize_entity(registry.entity_mapping("DataField"), catalog.get_object("f-2"))
        assert plain.classifications == []

    def test_synthesized_entity(self, registry, catalog, materializer):
        mapping = registry.entity_mapping("AssetType")
        entity = materializer.materialize_entity(mapping, catalog.get_object("4-5-6"))
        assert entity.guid == "__|AT|__4-5-6"
        assert entity.property_value("name") == "parquet"
        assert entity.property_value("qualifiedName") == "__|AT|__(data_file)=4-5-6"

    def test_summary(self, registry, catalog, materializer):
        summary = materializer.materialize_entity(
            registry.entity_mapping("Asset"), catalog.get_object("1-2-3"), detail=False
        )
        assert type(summary) is EntitySummary
        assert [c.name for c in summary.classifications] == ["Confidentiality"]

    def test_missing_object(self, registry, materializer):
        with pytest.raises(EntityNotKnownError):
            materializer.materialize_entity(registry.entity_mapping("Asset"), None, "9-9-9")

    def test_placeholder_object(self, registry, catalog, materializer):
        with pytest.raises(InvalidEntityFromStoreError):
            materializer.materialize_entity(registry.entity_mapping("Asset"), catalog.get_object("m-1"))


class TestRelationships:
    """Tests for relationships reachable from an object."""

    def test_linkage_field(self, registry, catalog, materializer):
        relationships = list(materializer.relationships_for_entity(
            registry.entity_mapping("Asset"), catalog.get_object("1-2-3")
        ))
        assert [r.guid for r in relationships] == ["1-2-3{(SemanticAssignment)}t-1"]
        assert relationships[0].entity_one.type_name == "Asset"
        assert relationships[0].entity_two.guid == "t-1"
        assert relationships[0].entity_two.unique_properties["qualifiedName"] == PrimitiveValue("(term)=t-1")

    def test_from_end_two(self, registry, catalog, materializer):
        relationships = list(materializer.relationships_for_entity(
            registry.entity_mapping("GlossaryTerm"), catalog.get_object("t-1"), "SemanticAssignment"
        ))
        assert sorted(r.guid for r in relationships) == [
            "1-2-3{(SemanticAssignment)}t-1",
            "f-1{(SemanticAssignment)}t-1",
        ]

    def test_self_contained(self, registry, catalog, materializer):
        relationships = list(materializer.relationships_for_entity(
            registry.entity_mapping("DataField"), catalog.get_object("f-1"), "DataClassAssignment"
        ))
        assert len(relationships) == 1
        relationship = relationships[0]
        assert relationship.guid == "c-1{(DataClassAssignment)}c-1"
        assert relationship.entity_one.guid == "f-1"
        assert relationship.entity_two.guid == "dc-1"
        assert relationship.properties["confidence"] == PrimitiveValue(92, PrimitiveKind.LONG)
        assert relationship.created_by == "etl"

    def test_self_link(self, registry, catalog, materializer):
        relationships = list(materializer.relationships_for_entity(
            registry.entity_mapping("Person"), catalog.get_object("u-1")
        ))
        assert [r.guid for r in relationships] == ["u-1{(ContactThrough)}__|CD|__u-1"]
        assert relationships[0].entity_two.type_name == "ContactDetails"


class TestDrainPages:
    """Tests for ResultMaterializer.drain_pages."""

    @staticmethod
    def _page(ids, has_more=False, obj_type="data_file"):
        return SearchPage(
            items=[CatalogObject(i, obj_type) for i in ids],
            has_more=has_more,
            next_url="next" if has_more else None,
        )

    def _materializer(self, registry, *pages):
        transport = MagicMock()
        transport.search.return_value = pages[0]
        transport.next_page.side_effect = list(pages[1:])
        return ResultMaterializer(registry, transport, COLLECTION_ID), transport

    def test_follows_pages_until_exhausted(self, registry):
        materializer, transport = self._materializer(
            registry, self._page(["a", "b"], True), self._page(["c"])
        )
        results = materializer.drain_pages(CatalogQuery(("data_file",)), 0, lambda o: o.id)
        assert results == ["a", "b", "c"]
        assert transport.next_page.call_count == 1

    def test_stops_at_budget(self, registry):
        materializer, transport = self._materializer(
            registry, self._page(["a", "b"], True), self._page(["c", "d"], True)
        )
        results = materializer.drain_pages(CatalogQuery(("data_file",)), 3, lambda o: o.id)
        assert results == ["a", "b", "c"]

    def test_placeholders_use_no_budget(self, registry):
        page = SearchPage(items=[CatalogObject("m", "main_object"), CatalogObject("a", "data_file")])
        materializer, _ = self._materializer(registry, page)
        assert materializer.drain_pages(CatalogQuery(("data_file",)), 1, lambda o: o.id) == ["a"]

    def test_skipped_items(self, registry):
        materializer, _ = self._materializer(registry, self._page(["a", "b", "c"]))
        results = materializer.drain_pages(
            CatalogQuery(("data_file",)), 0, lambda o: None if o.id == "b" else o.id
        )
        assert results == ["a", "c"]

    def test_empty_page_ends_paging(self, registry):
        """A page with no items ends paging even if more are advertised."""
        materializer, transport = self._materializer(
            registry, self._page(["a"], True), self._page([], True)
        )
        assert materializer.drain_pages(CatalogQuery(("data_file",)), 0, lambda o: o.id) == ["a"]
        assert transport.next_page.call_count == 1
