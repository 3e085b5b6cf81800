"""Pytest configuration and fixtures."""

import pytest

from catalog_bridge.lib.collection import MetadataCollection
from catalog_bridge.mappings import build_registry
from tests.helpers import InMemoryCatalog, build_sample_catalog

COLLECTION_ID = "test-collection-001"
USER = "steward"


@pytest.fixture(scope="session")
def registry():
    """Registry for the newest catalog release. Read-only, so shared."""
    return build_registry("11.7.0.2")


@pytest.fixture(scope="session")
def registry_11502():
    return build_registry("11.5.0.2")


@pytest.fixture
def catalog() -> InMemoryCatalog:
    return build_sample_catalog()


@pytest.fixture
def collection(registry, catalog) -> MetadataCollection:
    return MetadataCollection(registry, catalog, COLLECTION_ID, max_page_size=50)


@pytest.fixture
def type_guid(registry):
    """Look up the guid of a registered (or unimplemented) type by name."""

    def lookup(name: str) -> str:
        type_def = registry.type_def(name) or registry.unimplemented_type_def(name)
        assert type_def is not None, f"{name} is not registered"
        return type_def.guid

    return lookup
