"""Concrete mapping definitions for the catalog.

Importing this package fills :data:`STANDARD_BUILDERS`, the builder table
keyed by (category, generic type name). :func:`build_registry` creates the
registry for one catalog release from it.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Optional

from catalog_bridge.lib.registry import BuilderTable, MappingRegistry
from catalog_bridge.lib.schema import load_schema
from catalog_bridge.lib.types import AttributeTypeDef, TypeDef

from catalog_bridge.mappings.builders import STANDARD_BUILDERS, list_implemented_types, register_builder
from catalog_bridge.mappings import classifications, entities, relationships  # noqa: F401
from catalog_bridge.mappings.typedefs import (
    STANDARD_ATTRIBUTE_TYPE_DEFS,
    STANDARD_TYPE_DEFS,
    standard_gallery,
)

logger = logging.getLogger(__name__)

__all__ = [
    "STANDARD_BUILDERS",
    "STANDARD_TYPE_DEFS",
    "STANDARD_ATTRIBUTE_TYPE_DEFS",
    "build_registry",
    "list_implemented_types",
    "register_builder",
    "standard_gallery",
]


def build_registry(
    version: str,
    type_defs: Optional[Iterable[TypeDef]] = None,
    attribute_type_defs: Optional[Iterable[AttributeTypeDef]] = None,
    *,
    builders: Optional[BuilderTable] = None,
    schema_path: Optional[Path] = None,
) -> MappingRegistry:
    """Create and fill the mapping registry for a catalog release.

    Args:
        version: Catalog release, e.g. "11.7.0.2"
        type_defs: Generic type definitions to register (standard set by default)
        attribute_type_defs: Attribute type definitions (standard set by default)
        builders: Builder table (STANDARD_BUILDERS by default)
        schema_path: Schema descriptor file overriding the packaged one
    """
    registry = MappingRegistry(load_schema(version, schema_path), builders or STANDARD_BUILDERS)
    for attribute_type_def in STANDARD_ATTRIBUTE_TYPE_DEFS if attribute_type_defs is None else attribute_type_defs:
        registry.add_attribute_type_def(attribute_type_def)
    unsupported = registry.register_all(STANDARD_TYPE_DEFS if type_defs is None else type_defs)
    logger.info(
        "Mapping registry for catalog %s ready: %d type(s) implemented, %d unsupported",
        version,
        len(registry.type_defs()),
        len(unsupported),
    )
    return registry
