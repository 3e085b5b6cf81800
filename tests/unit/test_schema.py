"""Tests for the catalog schema descriptors."""

import pytest

from catalog_bridge.lib.schema import FieldKind, available_versions, load_schema


class TestPackagedSchemas:
    """Tests for the descriptors shipped with the package."""

    def test_available_versions(self):
        assert available_versions() == ["11.5.0.2", "11.7.0.2"]

    @pytest.mark.parametrize("version", ["11.5.0.2", "11.7.0.2"])
    def test_load_each_release(self, version):
        schema = load_schema(version)
        assert schema.version == version
        assert schema.has_type("data_file")
        assert schema.has_type("main_object")

    def test_missing_release(self):
        with pytest.raises(FileNotFoundError, match="9.9"):
            load_schema("9.9")

    def test_field_lookups(self):
        schema = load_schema("11.7.0.2")
        assert schema.has_field("data_file", "path")
        assert not schema.has_field("data_file", "no_such_field")
        assert not schema.has_field("no_such_type", "path")
        assert schema.is_list("data_file", "assigned_to_terms")
        assert not schema.is_list("data_file", "path")
        assert schema.is_string("data_file", "path")
        assert not schema.is_string("data_file", "record_count")

    def test_releases_differ(self):
        """Only the newer release knows confidentiality levels on fields."""
        assert not load_schema("11.5.0.2").has_field("data_file_field", "confidentiality_level")
        assert load_schema("11.7.0.2").has_field("data_file_field", "confidentiality_level")


class TestFreeTextFields:
    """Tests for SchemaCatalog.free_text_fields."""

    def test_release_exclusions(self):
        newer = load_schema("11.7.0.2").free_text_fields("term")
        older = load_schema("11.5.0.2").free_text_fields("term")
        assert "long_description" not in newer
        assert "long_description" in older
        assert "name" in newer

    def test_only_string_fields(self):
        fields = load_schema("11.7.0.2").free_text_fields("data_file")
        assert "record_count" not in fields
        assert "assigned_to_terms" not in fields

    def test_extra_exclusions(self):
        fields = load_schema("11.7.0.2").free_text_fields("data_file", frozenset({"path"}))
        assert "path" not in fields

    def test_unknown_type(self):
        assert load_schema("11.7.0.2").free_text_fields("no_such_type") == []


class TestDescriptorFiles:
    """Tests for loading descriptors from an explicit path."""

    def test_custom_descriptor(self, tmp_path):
        path = tmp_path / "custom.yaml"
        path.write_text(
            'version: "1.0"\n'
            "free_text_exclusions: [notes]\n"
            "types:\n"
            "  report:\n"
            "    display_name: Report\n"
            "    fields:\n"
            "      name: string\n"
            "      notes: string\n"
            "      pages: number\n"
            "      owners: reference_list\n"
        )
        schema = load_schema("1.0", path)
        report = schema.get("report")
        assert report.display_name == "Report"
        assert report.field_names == ["name", "notes", "pages", "owners"]
        assert report.kind_of("owners") == FieldKind.REFERENCE_LIST
        assert report.non_reference_fields == ["name", "notes", "pages"]
        assert schema.free_text_fields("report") == ["name"]

    def test_version_mismatch(self, tmp_path):
        path = tmp_path / "custom.yaml"
        path.write_text('version: "2.0"\ntypes: {}\n')
        with pytest.raises(ValueError, match="describes catalog version 2.0"):
            load_schema("1.0", path)

    def test_unknown_field_kind(self, tmp_path):
        path = tmp_path / "custom.yaml"
        path.write_text('version: "1.0"\ntypes:\n  report:\n    fields:\n      name: text\n')
        with pytest.raises(ValueError, match="unknown field kind"):
            load_schema("1.0", path)
