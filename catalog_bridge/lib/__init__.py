"""Mapping engine between the generic metadata model and the catalog.

This package contains the mapping definitions and registry, the identifier
codec, the query translator, the result materializer, the metadata
collection facade and the catalog transport.
"""

from catalog_bridge.lib.collection import MetadataCollection
from catalog_bridge.lib.config_loader import (
    ConfigError,
    ConnectorConfig,
    build_metadata_collection,
    load_connector_config,
)
from catalog_bridge.lib.errors import (
    BridgeError,
    ClassificationError,
    EntityNotKnownError,
    FunctionNotSupportedError,
    InvalidParameterError,
    RelationshipNotKnownError,
    RepositoryError,
    TypeNotKnownError,
    TypeNotSupportedError,
)
from catalog_bridge.lib.ids import (
    Identity,
    decode_external_id,
    decode_prefix,
    decode_relationship_id,
    encode_prefixed,
    encode_relationship_id,
)
from catalog_bridge.lib.mapping import (
    CUSTOM,
    ClassificationMapping,
    EntityMapping,
    PropertyMapping,
    RelationshipEndpoint,
    RelationshipMapping,
)
from catalog_bridge.lib.registry import MappingRegistry
from catalog_bridge.lib.schema import load_schema
from catalog_bridge.lib.transport import AuthConfig, AuthType, CatalogTransport, RestCatalogClient

__all__ = [
    # Facade
    "MetadataCollection",
    "ConfigError",
    "ConnectorConfig",
    "build_metadata_collection",
    "load_connector_config",
    # Errors
    "BridgeError",
    "ClassificationError",
    "EntityNotKnownError",
    "FunctionNotSupportedError",
    "InvalidParameterError",
    "RelationshipNotKnownError",
    "RepositoryError",
    "TypeNotKnownError",
    "TypeNotSupportedError",
    # Identifiers
    "Identity",
    "decode_external_id",
    "decode_prefix",
    "decode_relationship_id",
    "encode_prefixed",
    "encode_relationship_id",
    # Mapping definitions
    "CUSTOM",
    "ClassificationMapping",
    "EntityMapping",
    "MappingRegistry",
    "PropertyMapping",
    "RelationshipEndpoint",
    "RelationshipMapping",
    "load_schema",
    # Transport
    "AuthConfig",
    "AuthType",
    "CatalogTransport",
    "RestCatalogClient",
]
