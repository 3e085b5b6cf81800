"""Registry of mapping definitions and generic type definitions.

The registry is filled once at start-up from an explicit builder table keyed
by (category, generic type name) and is read-only afterwards. It keeps three
kinds of generic type apart:

- implemented: known and backed by one or more mapping definitions (or an
  abstract supertype with implemented subtypes)
- unimplemented: known to the framework but with no builder, or whose
  builder cannot be satisfied by this catalog release
- unknown: never registered at all
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from catalog_bridge.lib.errors import (
    InvalidParameterError,
    MappingDefinitionError,
    TypeNotSupportedError,
)
from catalog_bridge.lib.mapping import (
    AnyMapping,
    ClassificationMapping,
    EntityMapping,
    RelationshipMapping,
)
from catalog_bridge.lib.schema import SchemaCatalog
from catalog_bridge.lib.types import AttributeTypeDef, TypeDef, TypeDefCategory

logger = logging.getLogger(__name__)

__all__ = ["Builder", "BuilderTable", "MappingRegistry"]

Builder = Callable[[SchemaCatalog], Sequence[AnyMapping]]
BuilderTable = Mapping[Tuple[TypeDefCategory, str], Builder]


class MappingRegistry:
    """All mapping definitions for one catalog release.

    Example:
        registry = MappingRegistry(load_schema("11.7.0.2"), STANDARD_BUILDERS)
        registry.register_all(type_defs)
        mapping = registry.resolve_by_external_type("data_file", "AT")
    """

    def __init__(self, schema: SchemaCatalog, builders: Optional[BuilderTable] = None) -> None:
        self.schema = schema
        self._builders: Dict[Tuple[TypeDefCategory, str], Builder] = dict(builders or {})

        self._type_defs: Dict[str, TypeDef] = {}
        self._type_defs_by_guid: Dict[str, TypeDef] = {}
        self._unimplemented: Dict[str, TypeDef] = {}
        self._unimplemented_by_guid: Dict[str, TypeDef] = {}
        self._super_types: Dict[str, Optional[str]] = {}
        self._attribute_type_defs: Dict[str, AttributeTypeDef] = {}

        self._entities: Dict[str, EntityMapping] = {}
        self._entities_by_external: Dict[str, List[EntityMapping]] = {}
        self._entities_by_prefix: Dict[str, EntityMapping] = {}
        self._relationships: Dict[str, List[RelationshipMapping]] = {}
        self._classifications: Dict[str, ClassificationMapping] = {}
        self._enum_types: Set[str] = set()

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, type_def: TypeDef, builder: Optional[Builder] = None) -> List[AnyMapping]:
        """Register a generic type and install its mapping definitions.

        Args:
            type_def: Generic type definition
            builder: Explicit builder; defaults to the builder table entry

        Returns:
            Installed mapping definitions (empty for abstract supertypes)

        Raises:
            InvalidParameterError: If the type definition is malformed
            TypeNotSupportedError: If no implementation can be built
        """
        if type_def is None or not type_def.name or not type_def.guid:
            raise InvalidParameterError(
                "Type definition must have a name and a guid",
                operation="register",
                type_name=getattr(type_def, "name", None),
            )
        if not isinstance(type_def.category, TypeDefCategory):
            raise InvalidParameterError(
                f"Unknown type definition category: {type_def.category!r}",
                operation="register",
                type_name=type_def.name,
            )

        self._super_types[type_def.name] = type_def.super_type
        if type_def.name in self._type_defs:
            logger.debug("Type %s already registered", type_def.name)
            return self._installed_for(type_def)

        builder = builder or self._builders.get((type_def.category, type_def.name))
        if builder is None:
            self._mark_unimplemented(type_def)
            raise TypeNotSupportedError(
                f"No mapping is implemented for {type_def.category.value} type {type_def.name}",
                operation="register",
                type_name=type_def.name,
                identifier=type_def.guid,
            )

        try:
            mappings = [self._fit_to_schema(m) for m in builder(self.schema)]
            self._check_conflicts(mappings)
        except MappingDefinitionError as exc:
            self._mark_unimplemented(type_def)
            raise TypeNotSupportedError(
                f"Type {type_def.name} cannot be mapped in catalog {self.schema.version}",
                operation="register",
                type_name=type_def.name,
                identifier=type_def.guid,
                details={"reason": exc.message},
            ) from exc

        for mapping in mappings:
            self._install(mapping)
        self._type_defs[type_def.name] = type_def
        self._type_defs_by_guid[type_def.guid] = type_def
        self._unimplemented.pop(type_def.name, None)
        self._unimplemented_by_guid.pop(type_def.guid, None)
        logger.debug("Registered %s with %d mapping(s)", type_def.name, len(mappings))
        return mappings

    def register_all(self, type_defs: Iterable[TypeDef]) -> List[str]:
        """Register a batch of types, continuing past unsupported ones.

        Returns:
            Names of the types that could not be supported
        """
        unsupported: List[str] = []
        for type_def in type_defs:
            try:
                self.register(type_def)
            except TypeNotSupportedError as exc:
                logger.info("Type %s not supported: %s", type_def.name, exc.message)
                unsupported.append(type_def.name)
        if unsupported:
            logger.info(
                "Registered %d type(s); %d unsupported",
                len(self._type_defs),
                len(unsupported),
            )
        return unsupported

    def add_attribute_type_def(self, attribute_type_def: AttributeTypeDef) -> None:
        self._attribute_type_defs[attribute_type_def.name] = attribute_type_def

    def _mark_unimplemented(self, type_def: TypeDef) -> None:
        self._unimplemented[type_def.name] = type_def
        self._unimplemented_by_guid[type_def.guid] = type_def

    def _fit_to_schema(self, mapping: AnyMapping) -> AnyMapping:
        if isinstance(mapping, ClassificationMapping):
            usable = mapping.usable_types(self.schema)
            if not usable:
                raise MappingDefinitionError(
                    f"No catalog type carries the fields of {mapping.generic_type}",
                    type_name=mapping.generic_type,
                )
            if len(usable) != len(mapping.external_types):
                mapping = dataclasses.replace(mapping, external_types=tuple(usable))
            return mapping
        mapping.check_against(self.schema)
        return mapping

    def _check_conflicts(self, mappings: List[AnyMapping]) -> None:
        """Reject entity mappings that would take over another type's ids.

        Runs before anything is installed so a failing builder leaves the
        registry untouched. Mappings from the same batch count as installed.
        """
        prefixes = {p: m.generic_type for p, m in self._entities_by_prefix.items()}
        defaults = {
            external: m.generic_type
            for external, installed in self._entities_by_external.items()
            for m in installed
            if m.prefix is None
        }
        for mapping in mappings:
            if not isinstance(mapping, EntityMapping):
                continue
            if mapping.prefix is not None:
                owner = prefixes.setdefault(mapping.prefix, mapping.generic_type)
                if owner != mapping.generic_type:
                    raise MappingDefinitionError(
                        f"Prefix '{mapping.prefix}' is already used by {owner}",
                        type_name=mapping.generic_type,
                    )
            else:
                owner = defaults.setdefault(mapping.external_type, mapping.generic_type)
                if owner != mapping.generic_type:
                    raise MappingDefinitionError(
                        f"Catalog type '{mapping.external_type}' already has a default mapping ({owner})",
                        type_name=mapping.generic_type,
                    )

    def _install(self, mapping: AnyMapping) -> None:
        if isinstance(mapping, EntityMapping):
            if mapping.prefix is not None:
                self._entities_by_prefix[mapping.prefix] = mapping
            self._entities[mapping.generic_type] = mapping
            self._entities_by_external.setdefault(mapping.external_type, []).append(mapping)
            self._collect_enums(mapping.properties)
        elif isinstance(mapping, RelationshipMapping):
            self._relationships.setdefault(mapping.generic_type, []).append(mapping)
            self._collect_enums(mapping.properties)
        else:
            self._classifications[mapping.generic_type] = mapping
            self._collect_enums(mapping.properties)

    def _collect_enums(self, properties: Iterable) -> None:
        for prop in properties:
            if prop.enum_type:
                self._enum_types.add(prop.enum_type)

    def _installed_for(self, type_def: TypeDef) -> List[AnyMapping]:
        if type_def.category == TypeDefCategory.ENTITY_DEF:
            mapping = self._entities.get(type_def.name)
            return [mapping] if mapping else []
        if type_def.category == TypeDefCategory.RELATIONSHIP_DEF:
            return list(self._relationships.get(type_def.name, []))
        mapping = self._classifications.get(type_def.name)
        return [mapping] if mapping else []

    # ------------------------------------------------------------------
    # Type definitions
    # ------------------------------------------------------------------

    def type_def(self, name: str) -> Optional[TypeDef]:
        return self._type_defs.get(name)

    def type_def_by_guid(self, guid: str) -> Optional[TypeDef]:
        return self._type_defs_by_guid.get(guid)

    def unimplemented_type_def(self, name: str) -> Optional[TypeDef]:
        return self._unimplemented.get(name)

    def unimplemented_type_def_by_guid(self, guid: str) -> Optional[TypeDef]:
        return self._unimplemented_by_guid.get(guid)

    def type_defs(self, category: Optional[TypeDefCategory] = None) -> List[TypeDef]:
        """Implemented type definitions, optionally of one category."""
        return [
            t for t in self._type_defs.values()
            if category is None or t.category == category
        ]

    def attribute_type_defs(self) -> List[AttributeTypeDef]:
        return list(self._attribute_type_defs.values())

    def is_enum_mapped(self, enum_name: str) -> bool:
        return enum_name in self._enum_types

    def is_type_of(self, type_name: str, super_name: str) -> bool:
        """True when type_name is super_name or inherits from it."""
        seen: Set[str] = set()
        current: Optional[str] = type_name
        while current and current not in seen:
            if current == super_name:
                return True
            seen.add(current)
            current = self._super_types.get(current)
        return False

    # ------------------------------------------------------------------
    # Entity mappings
    # ------------------------------------------------------------------

    def entity_mapping(self, generic_type: str) -> Optional[EntityMapping]:
        return self._entities.get(generic_type)

    def entity_mappings(self) -> List[EntityMapping]:
        return list(self._entities.values())

    def resolve_by_generic_id(self, type_guid: str) -> Optional[EntityMapping]:
        """Mapping of the entity type with the given type definition guid."""
        type_def = self._type_defs_by_guid.get(type_guid)
        if type_def is None:
            return None
        return self._entities.get(type_def.name)

    def resolve_by_external_type(
        self, external_type: str, prefix: Optional[str] = None
    ) -> Optional[EntityMapping]:
        """Mapping for a catalog type and prefix.

        Falls back to the default (unprefixed) mapping of the catalog type
        when no mapping uses the prefix.
        """
        candidates = self._entities_by_external.get(external_type, [])
        default = None
        for mapping in candidates:
            if mapping.prefix == prefix:
                return mapping
            if mapping.prefix is None:
                default = mapping
        return default

    def implemented_subtypes(self, generic_type: str) -> List[str]:
        """Names of implemented types inheriting from generic_type (itself included)."""
        return [name for name in self._type_defs if self.is_type_of(name, generic_type)]

    def mappings_for_external_type(self, external_type: str) -> List[EntityMapping]:
        return list(self._entities_by_external.get(external_type, []))

    def mappings_for_entity_type(self, generic_type: str) -> List[EntityMapping]:
        """Mappings of a generic type and all of its implemented subtypes."""
        return [
            mapping for name, mapping in self._entities.items()
            if self.is_type_of(name, generic_type)
        ]

    # ------------------------------------------------------------------
    # Relationship and classification mappings
    # ------------------------------------------------------------------

    def relationship_mappings(self, generic_type: str) -> List[RelationshipMapping]:
        return list(self._relationships.get(generic_type, []))

    def relationship_mapping_for(
        self,
        generic_type: str,
        one_type: str,
        two_type: str,
        one_prefix: Optional[str] = None,
        two_prefix: Optional[str] = None,
    ) -> Optional[RelationshipMapping]:
        """Relationship mapping selected by name and concrete endpoint types."""
        for mapping in self._relationships.get(generic_type, []):
            if mapping.accepts(one_type, two_type, one_prefix, two_prefix):
                return mapping
        return None

    def orient_relationship(
        self,
        generic_type: str,
        one_type: str,
        two_type: str,
        one_prefix: Optional[str] = None,
        two_prefix: Optional[str] = None,
    ) -> Tuple[Optional[RelationshipMapping], bool]:
        """Relationship mapping for two endpoints given in either order.

        Returns the mapping and whether the endpoints had to be swapped.
        """
        mapping = self.relationship_mapping_for(generic_type, one_type, two_type, one_prefix, two_prefix)
        if mapping is not None:
            return mapping, False
        mapping = self.relationship_mapping_for(generic_type, two_type, one_type, two_prefix, one_prefix)
        return mapping, mapping is not None

    def self_contained_mapping_for(
        self, generic_type: str, backing_type: str
    ) -> Optional[RelationshipMapping]:
        for mapping in self._relationships.get(generic_type, []):
            if mapping.self_contained and mapping.backing_type == backing_type:
                return mapping
        return None

    def relationship_mappings_for_entity(self, mapping: EntityMapping) -> List[RelationshipMapping]:
        """Relationship mappings an object of this entity mapping takes part in."""
        found = []
        for name in mapping.relationships:
            for rel in self._relationships.get(name, []):
                if rel.ends_accepting(mapping.external_type, mapping.prefix):
                    found.append(rel)
        return found

    def classification_mapping(self, generic_type: str) -> Optional[ClassificationMapping]:
        return self._classifications.get(generic_type)

    def classification_mappings_for(self, mapping: EntityMapping) -> List[ClassificationMapping]:
        """Classification mappings applicable to an entity mapping."""
        found = []
        for name in mapping.classifications:
            classification = self._classifications.get(name)
            if classification is not None and classification.applies_to(mapping.external_type):
                found.append(classification)
        return found
