"""Tests for connector YAML configuration loading."""

import pytest

from catalog_bridge.lib.collection import MetadataCollection
from catalog_bridge.lib.config_loader import (
    ConfigError,
    ConnectorConfig,
    build_metadata_collection,
    expand_env_vars,
    load_connector_config,
    parse_connector_config,
)
from catalog_bridge.lib.transport import AuthType, RestCatalogClient
from tests.helpers import build_sample_catalog

MINIMAL = {
    "catalog": {"base_url": "https://catalog.example.com/igc-rest/v1"},
    "collection": {"id": "cat-001"},
}


class TestExpandEnvVars:
    """Tests for ${VAR} expansion."""

    def test_braced_and_bare(self, monkeypatch):
        monkeypatch.setenv("CATALOG_HOST", "catalog.example.com")
        monkeypatch.setenv("CATALOG_PORT", "9443")
        assert expand_env_vars("https://${CATALOG_HOST}:$CATALOG_PORT/") == "https://catalog.example.com:9443/"

    def test_nested_structures(self, monkeypatch):
        monkeypatch.setenv("CATALOG_USER", "isadmin")
        expanded = expand_env_vars({"auth": {"username": "${CATALOG_USER}"}, "tags": ["${CATALOG_USER}", 3]})
        assert expanded == {"auth": {"username": "isadmin"}, "tags": ["isadmin", 3]}

    def test_missing_variable(self, monkeypatch):
        monkeypatch.delenv("CATALOG_MISSING", raising=False)
        with pytest.raises(ConfigError, match="CATALOG_MISSING"):
            expand_env_vars("${CATALOG_MISSING}")


class TestParseConnectorConfig:
    """Tests for parse_connector_config."""

    def test_minimal_config_defaults(self):
        config = parse_connector_config(MINIMAL)
        assert config.base_url == "https://catalog.example.com/igc-rest/v1"
        assert config.metadata_collection_id == "cat-001"
        assert config.catalog_version == "11.7.0.2"
        assert config.auth.auth_type == AuthType.NONE
        assert config.default_page_size == 100
        assert config.max_page_size == 1000
        assert config.retry.max_attempts == 3

    def test_full_config(self):
        config = parse_connector_config({
            "catalog": {
                "base_url": "https://catalog/igc-rest/v1",
                "version": "11.5.0.2",
                "auth": {"type": "basic", "username": "isadmin", "password": "secret"},
                "timeout": 10,
                "verify_ssl": False,
                "retry": {"max_attempts": 5, "backoff_seconds": 0.5},
            },
            "collection": {
                "id": "cat-002",
                "name": "Governance Catalog",
                "default_page_size": 20,
                "max_page_size": 200,
                "free_text_exclusions": ["abbreviation"],
            },
        })
        assert config.catalog_version == "11.5.0.2"
        assert config.auth.username == "isadmin"
        assert config.timeout == 10.0
        assert config.verify_ssl is False
        assert config.retry.max_attempts == 5
        assert config.metadata_collection_name == "Governance Catalog"
        assert config.free_text_exclusions == ["abbreviation"]

    @pytest.mark.parametrize(
        "data, message",
        [
            ({"collection": {"id": "x"}}, "'catalog' section"),
            ({"catalog": {}, "collection": {"id": "x"}}, "catalog.base_url is required"),
            ({"catalog": {"base_url": "u"}}, "collection.id is required"),
            ({**MINIMAL, "catalog": {"base_url": "u", "version": "9.1"}}, "Unsupported catalog.version"),
            ({**MINIMAL, "catalog": {"base_url": "u", "auth": {"type": "kerberos"}}}, "Invalid catalog.auth.type"),
            ({**MINIMAL, "catalog": {"base_url": "u", "auth": {"type": "bearer"}}}, "token"),
            ({**MINIMAL, "catalog": {"base_url": "u", "retry": {"max_attempts": 0}}}, "catalog.retry"),
            ({**MINIMAL, "collection": {"id": "x", "max_page_size": 0}}, "at least 1"),
            ({**MINIMAL, "collection": {"id": "x", "max_page_size": "lots"}}, "must be an integer"),
            ({**MINIMAL, "collection": {"id": "x", "default_page_size": 500, "max_page_size": 100}}, "exceeds"),
            ({**MINIMAL, "collection": {"id": "x", "free_text_exclusions": "name"}}, "must be a list"),
        ],
    )
    def test_invalid(self, data, message):
        with pytest.raises(ConfigError, match=message):
            parse_connector_config(data)

    def test_not_a_mapping(self):
        with pytest.raises(ConfigError, match="YAML mapping"):
            parse_connector_config(["catalog"])


class TestLoadConnectorConfig:
    """Tests for load_connector_config."""

    def test_load_with_env_file(self, tmp_path, monkeypatch):
        monkeypatch.delenv("CATALOG_PASSWORD", raising=False)
        env_file = tmp_path / ".env"
        env_file.write_text("CATALOG_PASSWORD=from-dotenv\n")
        config_file = tmp_path / "connector.yaml"
        config_file.write_text(
            "catalog:\n"
            "  base_url: https://catalog/igc-rest/v1\n"
            "  auth:\n"
            "    type: basic\n"
            "    username: isadmin\n"
            "    password: ${CATALOG_PASSWORD}\n"
            "collection:\n"
            "  id: cat-001\n"
        )
        config = load_connector_config(config_file, env_file=env_file)
        assert config.auth.password == "from-dotenv"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_connector_config(tmp_path / "missing.yaml")

    def test_empty_file(self, tmp_path):
        config_file = tmp_path / "empty.yaml"
        config_file.write_text("")
        with pytest.raises(ConfigError, match="Empty configuration"):
            load_connector_config(config_file)

    def test_invalid_yaml(self, tmp_path):
        config_file = tmp_path / "broken.yaml"
        config_file.write_text("catalog: [unclosed\n")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_connector_config(config_file)


class TestBuildMetadataCollection:
    """Tests for wiring a collection from configuration."""

    def test_with_given_transport(self):
        config = ConnectorConfig(
            base_url="https://catalog/igc-rest/v1",
            metadata_collection_id="cat-001",
            max_page_size=25,
            free_text_exclusions=["path"],
        )
        collection = build_metadata_collection(config, build_sample_catalog())
        assert isinstance(collection, MetadataCollection)
        assert collection.max_page_size == 25
        assert "path" in collection.translator.free_text_exclusions
        assert collection.get_entity_detail("steward", "1-2-3").type_name == "Asset"

    def test_builds_rest_client(self):
        config = parse_connector_config(MINIMAL)
        collection = build_metadata_collection(config)
        assert isinstance(collection.transport, RestCatalogClient)
        assert collection.transport.base_url == "https://catalog.example.com/igc-rest/v1/"
        collection.transport.close()
