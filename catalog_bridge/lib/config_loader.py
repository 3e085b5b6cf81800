"""YAML configuration for a catalog connection.

Example YAML (connector.yaml):
    catalog:
      base_url: "https://catalog.example.com:9443/ibm/iis/igc-rest/v1"
      version: "11.7.0.2"
      auth:
        type: basic
        username: "${CATALOG_USER}"
        password: "${CATALOG_PASSWORD}"
      timeout: 30
      verify_ssl: true
      retry:
        max_attempts: 3
        backoff_seconds: 1.0

    collection:
      id: "f2a5c7e0-catalog-001"
      name: "Governance Catalog"
      default_page_size: 100
      max_page_size: 1000
      free_text_exclusions: [abbreviation]

Usage:
    config = load_connector_config("connector.yaml")
    collection = build_metadata_collection(config)
    entity = collection.get_entity_detail("admin", "1-2-3")
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from dotenv import load_dotenv

from catalog_bridge.lib.collection import DEFAULT_MAX_PAGE_SIZE, MetadataCollection
from catalog_bridge.lib.resilience import RetryConfig
from catalog_bridge.lib.schema import available_versions
from catalog_bridge.lib.transport import AuthConfig, AuthType, CatalogTransport, RestCatalogClient

logger = logging.getLogger(__name__)

__all__ = [
    "ConfigError",
    "ConnectorConfig",
    "expand_env_vars",
    "load_connector_config",
    "parse_connector_config",
    "build_metadata_collection",
]

# Pattern for ${VAR_NAME} or $VAR_NAME
ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}|\$([A-Za-z_][A-Za-z0-9_]*)")


class ConfigError(Exception):
    """Error in connector configuration."""

    pass


def expand_env_vars(value: Any) -> Any:
    """Recursively expand ${VAR} references in strings, lists and dicts.

    Raises:
        ConfigError: If a referenced variable is not set
    """
    if isinstance(value, str):

        def replacer(match: re.Match[str]) -> str:
            var_name = match.group(1) or match.group(2)
            env_value = os.environ.get(var_name)
            if env_value is None:
                raise ConfigError(f"Environment variable not set: {var_name}")
            return env_value

        return ENV_VAR_PATTERN.sub(replacer, value)
    if isinstance(value, dict):
        return {k: expand_env_vars(v) for k, v in value.items()}
    if isinstance(value, list):
        return [expand_env_vars(item) for item in value]
    return value


@dataclass(frozen=True)
class ConnectorConfig:
    """Settings for one catalog connection."""

    base_url: str
    metadata_collection_id: str
    catalog_version: str = "11.7.0.2"
    metadata_collection_name: Optional[str] = None
    auth: AuthConfig = field(default_factory=AuthConfig)
    timeout: float = 30.0
    verify_ssl: bool = True
    retry: RetryConfig = field(default_factory=RetryConfig)
    default_page_size: int = 100
    max_page_size: int = DEFAULT_MAX_PAGE_SIZE
    free_text_exclusions: List[str] = field(default_factory=list)


def _require(section: Dict[str, Any], key: str, prefix: str) -> Any:
    value = section.get(key)
    if value in (None, ""):
        raise ConfigError(f"{prefix}.{key} is required")
    return value


def _positive_int(section: Dict[str, Any], key: str, prefix: str, default: int) -> int:
    raw = section.get(key, default)
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ConfigError(f"{prefix}.{key} must be an integer, got {raw!r}")
    if value < 1:
        raise ConfigError(f"{prefix}.{key} must be at least 1, got {value}")
    return value


def _parse_auth(data: Optional[Dict[str, Any]]) -> AuthConfig:
    if not data:
        return AuthConfig()
    auth_type = str(data.get("type", "none")).lower()
    try:
        parsed_type = AuthType(auth_type)
    except ValueError:
        valid = ", ".join(t.value for t in AuthType)
        raise ConfigError(f"Invalid catalog.auth.type: '{auth_type}'. Valid options: {valid}")
    try:
        return AuthConfig(
            auth_type=parsed_type,
            username=data.get("username"),
            password=data.get("password"),
            token=data.get("token"),
        )
    except ValueError as exc:
        raise ConfigError(f"catalog.auth: {exc}")


def parse_connector_config(data: Dict[str, Any]) -> ConnectorConfig:
    """Build a ConnectorConfig from an already loaded (and expanded) dict."""
    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a YAML mapping")
    catalog = data.get("catalog")
    collection = data.get("collection") or {}
    if not isinstance(catalog, dict):
        raise ConfigError("Configuration must contain a 'catalog' section")
    if not isinstance(collection, dict):
        raise ConfigError("'collection' must be a mapping")

    version = str(catalog.get("version", "11.7.0.2"))
    versions = available_versions()
    if version not in versions:
        raise ConfigError(
            f"Unsupported catalog.version: '{version}'. Valid options: {', '.join(versions)}"
        )

    default_page_size = _positive_int(collection, "default_page_size", "collection", 100)
    max_page_size = _positive_int(collection, "max_page_size", "collection", DEFAULT_MAX_PAGE_SIZE)
    if default_page_size > max_page_size:
        raise ConfigError(
            f"collection.default_page_size ({default_page_size}) exceeds "
            f"collection.max_page_size ({max_page_size})"
        )

    try:
        retry = RetryConfig.from_dict(catalog.get("retry"))
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"catalog.retry: {exc}")

    exclusions = collection.get("free_text_exclusions") or []
    if not isinstance(exclusions, list):
        raise ConfigError("collection.free_text_exclusions must be a list")

    return ConnectorConfig(
        base_url=str(_require(catalog, "base_url", "catalog")),
        metadata_collection_id=str(_require(collection, "id", "collection")),
        catalog_version=version,
        metadata_collection_name=collection.get("name"),
        auth=_parse_auth(catalog.get("auth")),
        timeout=float(catalog.get("timeout", 30.0)),
        verify_ssl=bool(catalog.get("verify_ssl", True)),
        retry=retry,
        default_page_size=default_page_size,
        max_page_size=max_page_size,
        free_text_exclusions=[str(e) for e in exclusions],
    )


def load_connector_config(
    path: Union[str, Path],
    *,
    env_file: Optional[Union[str, Path]] = None,
) -> ConnectorConfig:
    """Load connector settings from a YAML file.

    A .env file (``env_file``, or one found by python-dotenv) is loaded
    first so that ${VAR} references can be expanded from it.

    Raises:
        ConfigError: If the file is missing, not valid YAML, or invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise ConfigError(f"Configuration file not found: {config_path}")

    load_dotenv(dotenv_path=env_file, override=False)
    logger.info("Loading connector configuration from %s", config_path)

    try:
        with open(config_path, "r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML syntax: {e}")

    if not data:
        raise ConfigError("Empty configuration file")
    return parse_connector_config(expand_env_vars(data))


def build_metadata_collection(
    config: ConnectorConfig,
    transport: Optional[CatalogTransport] = None,
) -> MetadataCollection:
    """Wire transport, mapping registry and facade for a configuration."""
    # Imported here: the mappings package depends on this library.
    from catalog_bridge.mappings import build_registry

    if transport is None:
        transport = RestCatalogClient(
            config.base_url,
            config.auth,
            timeout=config.timeout,
            verify_ssl=config.verify_ssl,
            retry=config.retry,
        )
    registry = build_registry(config.catalog_version)
    logger.info(
        "Metadata collection %s ready on catalog %s (%s)",
        config.metadata_collection_name or config.metadata_collection_id,
        config.catalog_version,
        config.base_url,
    )
    return MetadataCollection(
        registry,
        transport,
        config.metadata_collection_id,
        max_page_size=config.max_page_size,
        free_text_exclusions=config.free_text_exclusions,
    )
