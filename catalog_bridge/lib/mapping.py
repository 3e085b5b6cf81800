"""Mapping definitions between generic types and catalog object types.

A mapping definition is an immutable value describing how one generic type
is represented in the catalog:

- :class:`EntityMapping` maps a generic entity type onto one catalog object
  type, optionally under an identifier prefix (a synthesized entity).
- :class:`RelationshipMapping` maps a generic relationship onto the catalog
  fields that link two objects, or onto one object that carries both ends.
- :class:`ClassificationMapping` maps a generic classification onto a
  presence test over fields of the objects it applies to.

Field correspondences whose external side is :data:`CUSTOM` need a custom
derivation (reading) and a custom search builder (querying), both supplied as
callables keyed by the generic property name.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from catalog_bridge.lib.errors import MappingDefinitionError
from catalog_bridge.lib.ids import Identity, encode_prefixed
from catalog_bridge.lib.schema import PLACEHOLDER_TYPE, SchemaCatalog
from catalog_bridge.lib.search import (
    EQUALS,
    IS_NULL,
    CatalogObject,
    Condition,
    ConditionSet,
)
from catalog_bridge.lib.types import PropertyValue

__all__ = [
    "CUSTOM",
    "SELF",
    "AUDIT_FIELDS",
    "PropertyMapping",
    "EntityMapping",
    "RelationshipEndpoint",
    "RelationshipMapping",
    "ClassificationMapping",
    "AnyMapping",
]

# External side of a correspondence that needs a custom derivation.
CUSTOM = "__custom__"

# Linkage field meaning "the endpoint is this same object".
SELF = "__self__"

AUDIT_FIELDS = ("created_by", "created_on", "modified_by", "modified_on")

# (object, mapping) -> value for a CUSTOM property
Derivation = Callable[[CatalogObject, Any], Optional[PropertyValue]]
# (mapping, property name, value) -> conditions and local filters, or None
# when no object of this mapping can match
SearchBuilder = Callable[[Any, str, PropertyValue], Optional[List[Any]]]


@dataclass(frozen=True)
class PropertyMapping:
    """Correspondence between a generic property and a catalog field.

    Attributes:
        generic: Generic property name, e.g. "displayName"
        external: Catalog field name, or CUSTOM
        enum_type: Generic enum type name when the field holds enum symbols
    """

    generic: str
    external: str
    enum_type: Optional[str] = None

    @property
    def is_custom(self) -> bool:
        return self.external == CUSTOM


def _check_fields(schema: SchemaCatalog, type_name: str, fields: Sequence[str], owner: str) -> None:
    if not schema.has_type(type_name):
        raise MappingDefinitionError(
            f"Catalog type '{type_name}' does not exist in catalog {schema.version}",
            type_name=owner,
        )
    missing = [f for f in fields if f not in (CUSTOM, SELF) and not schema.has_field(type_name, f)]
    if missing:
        raise MappingDefinitionError(
            f"Catalog type '{type_name}' has no field(s) {', '.join(missing)} in catalog {schema.version}",
            type_name=owner,
            details={"missing_fields": missing},
        )


@dataclass(frozen=True)
class EntityMapping:
    """Mapping of a generic entity type onto one catalog object type."""

    generic_type: str
    external_type: str
    prefix: Optional[str] = None
    properties: Tuple[PropertyMapping, ...] = ()
    relationships: Tuple[str, ...] = ()
    classifications: Tuple[str, ...] = ()
    # Catalog fields read by custom derivations
    extra_fields: Tuple[str, ...] = ()
    derivations: Dict[str, Derivation] = field(default_factory=dict, hash=False, compare=False)
    search_builders: Dict[str, SearchBuilder] = field(default_factory=dict, hash=False, compare=False)

    def __post_init__(self) -> None:
        if self.external_type == PLACEHOLDER_TYPE:
            raise MappingDefinitionError(
                "Entities cannot be mapped onto the placeholder type",
                type_name=self.generic_type,
            )
        for prop in self.properties:
            if prop.is_custom and prop.generic not in self.derivations:
                raise MappingDefinitionError(
                    f"Custom property '{prop.generic}' has no derivation",
                    type_name=self.generic_type,
                    property_name=prop.generic,
                )

    @property
    def mapped_properties(self) -> List[str]:
        return [p.generic for p in self.properties]

    def property_mapping(self, generic_name: str) -> Optional[PropertyMapping]:
        for prop in self.properties:
            if prop.generic == generic_name:
                return prop
        return None

    def external_field(self, generic_name: str) -> Optional[str]:
        prop = self.property_mapping(generic_name)
        return prop.external if prop else None

    @property
    def projection(self) -> List[str]:
        """Catalog fields to request when materializing this entity."""
        fields: List[str] = []
        for name in [p.external for p in self.properties if not p.is_custom]:
            if name not in fields:
                fields.append(name)
        for name in self.extra_fields:
            if name not in fields:
                fields.append(name)
        return fields

    def guid_for(self, external_id: str) -> str:
        return encode_prefixed(self.prefix, external_id)

    def identity_of(self, obj: CatalogObject) -> Identity:
        return Identity(obj.type, obj.id)

    def qualified_name(self, obj: CatalogObject) -> str:
        return self.identity_of(obj).qualified_name(self.prefix)

    def check_against(self, schema: SchemaCatalog) -> None:
        """Raise MappingDefinitionError if a mapped field is not in the schema."""
        _check_fields(
            schema,
            self.external_type,
            [p.external for p in self.properties] + list(self.extra_fields),
            self.generic_type,
        )


@dataclass(frozen=True)
class RelationshipEndpoint:
    """One end of a relationship mapping.

    Attributes:
        entity_type: Generic entity type at this end
        external_types: Catalog object types accepted at this end
        link_field: For entity-level mappings, the field on this end's object
            listing the other end (SELF when the other end is the same
            object). For self-contained mappings, the field on the backing
            object pointing at this end.
        prefix: Identifier prefix of the entity at this end
        backlink: For self-contained mappings, the field on this end's
            object listing the backing objects
    """

    entity_type: str
    external_types: Tuple[str, ...]
    link_field: Optional[str] = None
    prefix: Optional[str] = None
    backlink: Optional[str] = None

    def accepts(self, external_type: str, prefix: Optional[str] = None) -> bool:
        return external_type in self.external_types and prefix == self.prefix


@dataclass(frozen=True)
class RelationshipMapping:
    """Mapping of a generic relationship onto catalog linkage fields.

    Entity-level mappings link two independent catalog objects. Self-contained
    mappings derive both ends from fields of one backing object of
    ``backing_type``, whose id then identifies the relationship.
    """

    generic_type: str
    end_one: RelationshipEndpoint
    end_two: RelationshipEndpoint
    self_contained: bool = False
    backing_type: Optional[str] = None
    properties: Tuple[PropertyMapping, ...] = ()
    # For entity-level mappings, which end's object holds the properties
    properties_end: int = 1
    derivations: Dict[str, Derivation] = field(default_factory=dict, hash=False, compare=False)

    def __post_init__(self) -> None:
        if self.self_contained and not self.backing_type:
            raise MappingDefinitionError(
                "Self-contained relationship needs a backing type",
                type_name=self.generic_type,
            )
        if self.end_one.link_field == SELF and self.end_one.prefix == self.end_two.prefix:
            raise MappingDefinitionError(
                "A relationship from an object to itself needs distinct endpoint prefixes",
                type_name=self.generic_type,
            )

    def endpoint(self, end: int) -> RelationshipEndpoint:
        return self.end_one if end == 1 else self.end_two

    def ends_accepting(self, external_type: str, prefix: Optional[str] = None) -> List[int]:
        """Which ends (1, 2) an object of this type and prefix can occupy."""
        return [
            end for end in (1, 2)
            if self.endpoint(end).accepts(external_type, prefix)
        ]

    def accepts(
        self,
        one_type: str,
        two_type: str,
        one_prefix: Optional[str] = None,
        two_prefix: Optional[str] = None,
    ) -> bool:
        return self.end_one.accepts(one_type, one_prefix) and self.end_two.accepts(two_type, two_prefix)

    @property
    def projection(self) -> List[str]:
        """Fields to request on the backing object of a self-contained mapping."""
        fields = [self.end_one.link_field, self.end_two.link_field]
        fields += [p.external for p in self.properties if not p.is_custom]
        return [f for f in fields if f]

    def check_against(self, schema: SchemaCatalog) -> None:
        for end in (self.end_one, self.end_two):
            for external_type in end.external_types:
                fields = [end.backlink] if self.self_contained else [end.link_field]
                _check_fields(schema, external_type, [f for f in fields if f], self.generic_type)
        if self.self_contained:
            fields = [self.end_one.link_field, self.end_two.link_field]
            fields += [p.external for p in self.properties]
            _check_fields(schema, self.backing_type, [f for f in fields if f], self.generic_type)
        elif self.properties:
            holder = self.endpoint(self.properties_end)
            for external_type in holder.external_types:
                _check_fields(schema, external_type, [p.external for p in self.properties], self.generic_type)


@dataclass(frozen=True)
class ClassificationMapping:
    """Mapping of a generic classification onto a field presence test.

    The classification is present on an object when ``presence_field`` is
    set (or equals ``presence_value`` when one is given).
    """

    generic_type: str
    external_types: Tuple[str, ...]
    presence_field: str
    presence_value: Optional[str] = None
    properties: Tuple[PropertyMapping, ...] = ()
    derivations: Dict[str, Derivation] = field(default_factory=dict, hash=False, compare=False)

    def applies_to(self, external_type: str) -> bool:
        return external_type in self.external_types

    def presence_conditions(self) -> ConditionSet:
        """Condition set selecting objects that carry this classification."""
        if self.presence_value is None:
            condition = Condition(self.presence_field, IS_NULL, negated=True)
        else:
            condition = Condition(self.presence_field, EQUALS, self.presence_value)
        return ConditionSet([condition])

    def is_present(self, obj: CatalogObject) -> bool:
        return self.presence_conditions().matches(obj.fields)

    @property
    def projection(self) -> List[str]:
        fields = [self.presence_field]
        for prop in self.properties:
            if not prop.is_custom and prop.external not in fields:
                fields.append(prop.external)
        return fields

    def property_mapping(self, generic_name: str) -> Optional[PropertyMapping]:
        for prop in self.properties:
            if prop.generic == generic_name:
                return prop
        return None

    def usable_types(self, schema: SchemaCatalog) -> List[str]:
        """Return the applicable catalog types that have every mapped field."""
        usable = []
        for external_type in self.external_types:
            if all(schema.has_field(external_type, f) for f in self.projection):
                usable.append(external_type)
        return usable


AnyMapping = Union[EntityMapping, RelationshipMapping, ClassificationMapping]
