"""Schema descriptor table for catalog object types.

Each supported catalog release ships a YAML descriptor under
``catalog_bridge/schemas/`` listing every object type and its fields in
order, with a field kind. Mapping definitions and the query translator use
it to answer three questions: does type T have field F, is F list-valued,
and is F a string.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

import yaml

logger = logging.getLogger(__name__)

__all__ = [
    "PLACEHOLDER_TYPE",
    "FieldKind",
    "ObjectSchema",
    "SchemaCatalog",
    "available_versions",
    "load_schema",
]

# The catalog's "unspecified object" type; never surfaced as an entity.
PLACEHOLDER_TYPE = "main_object"

SCHEMA_DIR = Path(__file__).resolve().parent.parent / "schemas"


class FieldKind(Enum):
    """Kind of value held by a catalog object field."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"
    REFERENCE = "reference"
    REFERENCE_LIST = "reference_list"

    @property
    def is_reference(self) -> bool:
        return self in (FieldKind.REFERENCE, FieldKind.REFERENCE_LIST)


@dataclass(frozen=True)
class ObjectSchema:
    """Ordered field list of one catalog object type."""

    name: str
    display_name: str
    fields: Tuple[Tuple[str, FieldKind], ...] = ()

    def kind_of(self, field_name: str) -> Optional[FieldKind]:
        for name, kind in self.fields:
            if name == field_name:
                return kind
        return None

    def has_field(self, field_name: str) -> bool:
        return self.kind_of(field_name) is not None

    def is_list(self, field_name: str) -> bool:
        return self.kind_of(field_name) == FieldKind.REFERENCE_LIST

    def is_string(self, field_name: str) -> bool:
        return self.kind_of(field_name) == FieldKind.STRING

    @property
    def field_names(self) -> List[str]:
        return [name for name, _ in self.fields]

    @property
    def string_fields(self) -> List[str]:
        return [name for name, kind in self.fields if kind == FieldKind.STRING]

    @property
    def non_reference_fields(self) -> List[str]:
        return [name for name, kind in self.fields if not kind.is_reference]


@dataclass(frozen=True)
class SchemaCatalog:
    """All object type schemas of one catalog release.

    Attributes:
        version: Catalog release, e.g. "11.7.0.2"
        types: Object schemas keyed by catalog type name
        free_text_exclusions: Fields left out of free-text searches for
            this release
    """

    version: str
    types: Dict[str, ObjectSchema] = field(default_factory=dict)
    free_text_exclusions: FrozenSet[str] = frozenset()

    def get(self, type_name: str) -> Optional[ObjectSchema]:
        return self.types.get(type_name)

    def has_type(self, type_name: str) -> bool:
        return type_name in self.types

    def has_field(self, type_name: str, field_name: str) -> bool:
        schema = self.types.get(type_name)
        return schema is not None and schema.has_field(field_name)

    def is_list(self, type_name: str, field_name: str) -> bool:
        schema = self.types.get(type_name)
        return schema is not None and schema.is_list(field_name)

    def is_string(self, type_name: str, field_name: str) -> bool:
        schema = self.types.get(type_name)
        return schema is not None and schema.is_string(field_name)

    def free_text_fields(
        self, type_name: str, extra_exclusions: FrozenSet[str] = frozenset()
    ) -> List[str]:
        """String fields of a type that take part in free-text search."""
        schema = self.types.get(type_name)
        if schema is None:
            return []
        excluded = self.free_text_exclusions | extra_exclusions
        return [name for name in schema.string_fields if name not in excluded]


def _version_file(version: str) -> Path:
    return SCHEMA_DIR / f"v{version.replace('.', '')}.yaml"


def available_versions() -> List[str]:
    """List catalog releases that have a schema descriptor."""
    versions = []
    for path in sorted(SCHEMA_DIR.glob("v*.yaml")):
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if "version" in data:
            versions.append(str(data["version"]))
    return versions


def _parse_types(raw_types: Dict[str, Any], source: Path) -> Dict[str, ObjectSchema]:
    types: Dict[str, ObjectSchema] = {}
    for type_name, body in raw_types.items():
        body = body or {}
        fields: List[Tuple[str, FieldKind]] = []
        for field_name, kind in (body.get("fields") or {}).items():
            try:
                fields.append((field_name, FieldKind(kind)))
            except ValueError:
                raise ValueError(
                    f"{source.name}: unknown field kind '{kind}' for {type_name}.{field_name}"
                ) from None
        types[type_name] = ObjectSchema(
            name=type_name,
            display_name=body.get("display_name", type_name),
            fields=tuple(fields),
        )
    return types


def load_schema(version: str, path: Optional[Path] = None) -> SchemaCatalog:
    """Load the schema descriptor for a catalog release.

    Args:
        version: Catalog release, e.g. "11.5.0.2"
        path: Explicit descriptor file, overriding the packaged one

    Raises:
        FileNotFoundError: If no descriptor exists for the release
        ValueError: If the descriptor is malformed
    """
    source = path or _version_file(version)
    if not source.exists():
        raise FileNotFoundError(
            f"No schema descriptor for catalog version {version} ({source})"
        )

    with open(source, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    declared = str(data.get("version", version))
    if declared != version:
        raise ValueError(
            f"{source.name} describes catalog version {declared}, not {version}"
        )

    types = _parse_types(data.get("types") or {}, source)
    exclusions = frozenset(data.get("free_text_exclusions") or [])
    logger.debug(
        "Loaded schema for catalog %s: %d object types", version, len(types)
    )
    return SchemaCatalog(version=version, types=types, free_text_exclusions=exclusions)
