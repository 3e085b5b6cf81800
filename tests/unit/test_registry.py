"""Unit tests for the mapping registry.

Tests cover:
- Implemented, unimplemented and unknown types
- Resolution by generic guid, catalog type and prefix
- Release-dependent narrowing of classification mappings
- Relationship mapping selection and endpoint orientation
- Rejection of conflicting mapping definitions
"""

import pytest

from catalog_bridge.lib.errors import InvalidParameterError, TypeNotSupportedError
from catalog_bridge.lib.mapping import EntityMapping, PropertyMapping
from catalog_bridge.lib.registry import MappingRegistry
from catalog_bridge.lib.schema import load_schema
from catalog_bridge.lib.types import TypeDef, TypeDefCategory
from catalog_bridge.mappings import STANDARD_BUILDERS, build_registry, list_implemented_types

ENTITY = TypeDefCategory.ENTITY_DEF


def clashing_builders():
    """Standard builders plus a type that claims the AssetType prefix."""
    builders = dict(STANDARD_BUILDERS)
    builders[(ENTITY, "Clash")] = lambda s: [
        EntityMapping("Clash", "term", prefix="AT", properties=(PropertyMapping("name", "name"),))
    ]
    return builders


class TestTypeRegistration:
    """Tests for registering generic type definitions."""

    def test_standard_types_implemented(self, registry):
        names = {t.name for t in registry.type_defs()}
        assert {"Referenceable", "Asset", "AssetType", "GlossaryTerm", "Person", "ContactDetails"} <= names
        assert {"SemanticAssignment", "DataClassAssignment", "Confidentiality"} <= names

    def test_types_without_builder_are_unimplemented(self, registry):
        """Process and DataFlow are known but have no mapping."""
        assert registry.type_def("Process") is None
        assert registry.unimplemented_type_def("Process") is not None
        assert registry.unimplemented_type_def("DataFlow") is not None

    def test_unknown_type(self, registry):
        assert registry.type_def("Nonexistent") is None
        assert registry.unimplemented_type_def("Nonexistent") is None

    def test_register_without_builder_raises(self, registry_11502):
        registry = MappingRegistry(registry_11502.schema)
        with pytest.raises(TypeNotSupportedError, match="No mapping is implemented"):
            registry.register(TypeDef("g-1", "Asset", ENTITY))
        assert registry.unimplemented_type_def_by_guid("g-1").name == "Asset"

    def test_register_malformed_type_def(self, registry):
        with pytest.raises(InvalidParameterError):
            registry.register(TypeDef("", "Asset", ENTITY))

    def test_register_all_reports_unsupported(self):
        registry = MappingRegistry(load_schema("11.7.0.2"), STANDARD_BUILDERS)
        unsupported = registry.register_all([
            TypeDef("g-1", "Asset", ENTITY),
            TypeDef("g-2", "Process", ENTITY, super_type="Asset"),
        ])
        assert unsupported == ["Process"]
        assert registry.entity_mapping("Asset") is not None

    def test_registering_twice_is_idempotent(self, registry):
        asset = registry.type_def("Asset")
        installed = registry.register(asset)
        assert [m.generic_type for m in installed] == ["Asset"]

    def test_enums_tracked_from_mappings(self, registry):
        assert registry.is_enum_mapped("TermStatus")
        assert registry.is_enum_mapped("ContactMethodType")
        assert not registry.is_enum_mapped("ConfidentialityLevel")

    def test_list_implemented_types(self):
        names = list_implemented_types()
        assert "Asset" in names
        assert "Process" not in names
        assert names == sorted(names)


class TestInheritance:
    """Tests for supertype handling."""

    def test_is_type_of(self, registry):
        assert registry.is_type_of("Asset", "Referenceable")
        assert registry.is_type_of("Asset", "Asset")
        assert not registry.is_type_of("Referenceable", "Asset")

    def test_abstract_supertype_has_no_mapping(self, registry):
        assert registry.entity_mapping("Referenceable") is None
        generic_types = {m.generic_type for m in registry.mappings_for_entity_type("Referenceable")}
        assert {"Asset", "AssetType", "DataField", "GlossaryTerm"} <= generic_types

    def test_implemented_subtypes(self, registry):
        assert registry.implemented_subtypes("Asset") == ["Asset"]
        assert "GlossaryCategory" in registry.implemented_subtypes("Referenceable")


class TestEntityResolution:
    """Tests for looking up entity mappings."""

    def test_resolve_by_generic_id(self, registry, type_guid):
        assert registry.resolve_by_generic_id(type_guid("GlossaryTerm")).external_type == "term"
        assert registry.resolve_by_generic_id("no-such-guid") is None

    def test_resolve_by_external_type_and_prefix(self, registry):
        assert registry.resolve_by_external_type("data_file").generic_type == "Asset"
        assert registry.resolve_by_external_type("data_file", "AT").generic_type == "AssetType"
        assert registry.resolve_by_external_type("user", "CD").generic_type == "ContactDetails"

    def test_unknown_prefix_falls_back_to_default(self, registry):
        assert registry.resolve_by_external_type("data_file", "ZZ").generic_type == "Asset"

    def test_unmapped_catalog_type(self, registry):
        assert registry.resolve_by_external_type("main_object") is None
        assert registry.resolve_by_external_type("no_such_type") is None

    def test_mappings_for_external_type(self, registry):
        generic_types = {m.generic_type for m in registry.mappings_for_external_type("data_file")}
        assert generic_types == {"Asset", "AssetType"}

    def test_prefix_collision_is_unsupported(self, registry):
        clashing = MappingRegistry(registry.schema, clashing_builders())
        clashing.register(TypeDef("g-1", "AssetType", ENTITY))
        with pytest.raises(TypeNotSupportedError) as exc_info:
            clashing.register(TypeDef("g-2", "Clash", ENTITY))
        assert "already used" in exc_info.value.details["reason"]
        assert clashing.unimplemented_type_def("Clash") is not None
        assert clashing.type_def("Clash") is None
        assert clashing.resolve_by_external_type("data_file", "AT").generic_type == "AssetType"

    def test_register_all_continues_past_collision(self, registry):
        clashing = MappingRegistry(registry.schema, clashing_builders())
        unsupported = clashing.register_all(
            [TypeDef("g-1", "AssetType", ENTITY), TypeDef("g-2", "Clash", ENTITY), TypeDef("g-3", "Asset", ENTITY)]
        )
        assert unsupported == ["Clash"]
        assert clashing.type_def("Asset") is not None
        assert clashing.resolve_by_external_type("data_file").generic_type == "Asset"

    def test_collision_leaves_nothing_installed(self, registry):
        """A builder whose second mapping collides installs neither."""
        builders = clashing_builders()
        builders[(ENTITY, "Pair")] = lambda s: [
            EntityMapping("Pair", "term", prefix="PX", properties=(PropertyMapping("name", "name"),)),
            EntityMapping("Pair", "data_file", prefix="AT", properties=(PropertyMapping("name", "name"),)),
        ]
        clashing = MappingRegistry(registry.schema, builders)
        clashing.register(TypeDef("g-1", "AssetType", ENTITY))
        with pytest.raises(TypeNotSupportedError):
            clashing.register(TypeDef("g-4", "Pair", ENTITY))
        assert clashing.entity_mapping("Pair") is None
        assert clashing.mappings_for_external_type("term") == []
        assert clashing.resolve_by_external_type("data_file", "AT").generic_type == "AssetType"

    def test_second_default_mapping_is_unsupported(self, registry):
        builders = clashing_builders()
        builders[(ENTITY, "FileCopy")] = lambda s: [
            EntityMapping("FileCopy", "data_file", properties=(PropertyMapping("name", "name"),))
        ]
        clashing = MappingRegistry(registry.schema, builders)
        clashing.register(TypeDef("g-3", "Asset", ENTITY))
        with pytest.raises(TypeNotSupportedError) as exc_info:
            clashing.register(TypeDef("g-5", "FileCopy", ENTITY))
        assert "default mapping" in exc_info.value.details["reason"]
        assert [m.generic_type for m in clashing.mappings_for_external_type("data_file")] == ["Asset"]

    def test_missing_schema_field_is_unsupported(self, registry):
        builders = {
            (ENTITY, "Broken"): lambda s: [
                EntityMapping("Broken", "term", properties=(PropertyMapping("name", "no_such_field"),))
            ]
        }
        broken = MappingRegistry(registry.schema, builders)
        with pytest.raises(TypeNotSupportedError) as exc_info:
            broken.register(TypeDef("g-1", "Broken", ENTITY))
        assert "no_such_field" in exc_info.value.details["reason"]


class TestClassificationMappings:
    """Tests for classification mappings across catalog releases."""

    def test_confidentiality_applies_to_files_and_fields(self, registry):
        mapping = registry.classification_mapping("Confidentiality")
        assert mapping.external_types == ("data_file", "data_file_field")

    def test_older_release_narrows_confidentiality(self, registry_11502):
        """11.5.0.2 has no confidentiality level on fields."""
        mapping = registry_11502.classification_mapping("Confidentiality")
        assert mapping.external_types == ("data_file",)
        field_mapping = registry_11502.entity_mapping("DataField")
        assert [c.generic_type for c in registry_11502.classification_mappings_for(field_mapping)] == ["PrimaryKey"]

    def test_classifications_for_entity(self, registry):
        field_mapping = registry.entity_mapping("DataField")
        names = [c.generic_type for c in registry.classification_mappings_for(field_mapping)]
        assert names == ["Confidentiality", "PrimaryKey"]


class TestRelationshipMappings:
    """Tests for relationship mapping selection."""

    def test_semantic_assignment_has_one_mapping_per_end_type(self, registry):
        mappings = registry.relationship_mappings("SemanticAssignment")
        assert {m.end_one.entity_type for m in mappings} == {"Asset", "DataField"}

    def test_mapping_for_concrete_ends(self, registry):
        mapping = registry.relationship_mapping_for("SemanticAssignment", "data_file_field", "term")
        assert mapping.end_one.entity_type == "DataField"
        assert registry.relationship_mapping_for("SemanticAssignment", "user", "term") is None

    def test_prefix_selects_mapping(self, registry):
        assert registry.relationship_mapping_for("ContactThrough", "user", "user", None, "CD") is not None
        assert registry.relationship_mapping_for("ContactThrough", "user", "user", None, None) is None

    def test_orient_relationship(self, registry):
        mapping, swapped = registry.orient_relationship("SemanticAssignment", "data_file", "term")
        assert mapping.end_one.entity_type == "Asset" and not swapped
        mapping, swapped = registry.orient_relationship("SemanticAssignment", "term", "data_file")
        assert mapping.end_one.entity_type == "Asset" and swapped
        assert registry.orient_relationship("SemanticAssignment", "term", "user") == (None, False)

    def test_self_contained_mapping(self, registry):
        mapping = registry.self_contained_mapping_for("DataClassAssignment", "classification")
        assert mapping.self_contained
        assert registry.self_contained_mapping_for("SemanticAssignment", "classification") is None

    def test_relationships_for_entity(self, registry):
        names = {m.generic_type for m in registry.relationship_mappings_for_entity(registry.entity_mapping("DataField"))}
        assert names == {"SemanticAssignment", "DataClassAssignment"}


def test_build_registry_for_each_release():
    for version in ("11.5.0.2", "11.7.0.2"):
        registry = build_registry(version)
        assert registry.schema.version == version
        assert registry.entity_mapping("Asset") is not None
