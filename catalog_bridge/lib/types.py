"""Generic metadata model consumed and produced by the collection.

These are the calling framework's types: type definitions, match and
sequencing enums, instance property values and the entity, relationship
and classification instances returned to callers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

__all__ = [
    "TypeDefCategory",
    "AttributeTypeDefCategory",
    "ExternalStandardMapping",
    "TypeDef",
    "AttributeTypeDef",
    "TypeDefGallery",
    "MatchCriteria",
    "SequencingOrder",
    "InstanceStatus",
    "PrimitiveKind",
    "PrimitiveValue",
    "EnumValue",
    "MapValue",
    "ArrayValue",
    "PropertyValue",
    "InstanceProperties",
    "Classification",
    "EntitySummary",
    "EntityDetail",
    "EntityProxy",
    "Relationship",
    "exact_match_regex",
    "contains_regex",
    "starts_with_regex",
    "ends_with_regex",
    "unquote_literal",
]


class TypeDefCategory(Enum):
    """Category of a generic type definition."""

    ENTITY_DEF = "entity"
    RELATIONSHIP_DEF = "relationship"
    CLASSIFICATION_DEF = "classification"


class AttributeTypeDefCategory(Enum):
    """Category of a generic attribute (property value) type."""

    PRIMITIVE = "primitive"
    COLLECTION = "collection"
    ENUM_DEF = "enum"


@dataclass(frozen=True)
class ExternalStandardMapping:
    """Correspondence of a generic type to a type in an external standard."""

    standard_name: Optional[str] = None
    organization: Optional[str] = None
    type_name: Optional[str] = None

    def matches(
        self,
        standard: Optional[str],
        organization: Optional[str],
        identifier: Optional[str],
    ) -> bool:
        """True when every given criterion equals this mapping's value."""
        return (
            (standard is None or standard == self.standard_name)
            and (organization is None or organization == self.organization)
            and (identifier is None or identifier == self.type_name)
        )


@dataclass(frozen=True)
class TypeDef:
    """Definition of a generic entity, relationship or classification type.

    Attributes:
        guid: Unique id of the type definition
        name: Type name, e.g. "Asset"
        category: Entity, relationship or classification
        properties: Names of the properties declared by this type (not
            including inherited ones)
        super_type: Name of the parent type, if any
        end_types: For relationships, the entity type names at each end
        valid_entity_types: For classifications, the entity types it applies to
        external_standard_mappings: Equivalent types in external standards
    """

    guid: str
    name: str
    category: TypeDefCategory
    properties: Tuple[str, ...] = ()
    super_type: Optional[str] = None
    end_types: Tuple[str, ...] = ()
    valid_entity_types: Tuple[str, ...] = ()
    external_standard_mappings: Tuple[ExternalStandardMapping, ...] = ()


@dataclass(frozen=True)
class AttributeTypeDef:
    """Definition of a property value type (primitive, collection or enum)."""

    guid: str
    name: str
    category: AttributeTypeDefCategory
    values: Tuple[str, ...] = ()


@dataclass
class TypeDefGallery:
    """A set of type definitions, as exchanged with the calling framework."""

    type_defs: List[TypeDef] = field(default_factory=list)
    attribute_type_defs: List[AttributeTypeDef] = field(default_factory=list)


class MatchCriteria(Enum):
    """How multiple property match conditions combine."""

    ALL = "all"
    ANY = "any"
    NONE = "none"


class SequencingOrder(Enum):
    """Requested ordering of search results."""

    ANY = "any"
    GUID = "guid"
    CREATION_DATE_RECENT = "creation_date_recent"
    CREATION_DATE_OLDEST = "creation_date_oldest"
    LAST_UPDATE_RECENT = "last_update_recent"
    LAST_UPDATE_OLDEST = "last_update_oldest"
    PROPERTY_ASCENDING = "property_ascending"
    PROPERTY_DESCENDING = "property_descending"


class InstanceStatus(Enum):
    """Lifecycle status of an instance."""

    UNKNOWN = "unknown"
    PROPOSED = "proposed"
    DRAFT = "draft"
    PREPARED = "prepared"
    ACTIVE = "active"
    DELETED = "deleted"


class PrimitiveKind(Enum):
    """Primitive value kinds understood by the framework."""

    STRING = "string"
    CHAR = "char"
    BOOLEAN = "boolean"
    BYTE = "byte"
    SHORT = "short"
    INT = "int"
    LONG = "long"
    FLOAT = "float"
    DOUBLE = "double"
    BIGINTEGER = "biginteger"
    BIGDECIMAL = "bigdecimal"
    DATE = "date"


@dataclass(frozen=True)
class PrimitiveValue:
    """A single primitive property value.

    Dates are held as timezone-aware datetimes or epoch milliseconds.
    """

    value: Any
    kind: PrimitiveKind = PrimitiveKind.STRING


@dataclass(frozen=True)
class EnumValue:
    """An enumerated property value."""

    symbolic_name: str
    ordinal: int = 0
    description: Optional[str] = None


@dataclass(frozen=True)
class MapValue:
    """A map of named property values."""

    values: Dict[str, "PropertyValue"] = field(default_factory=dict)


@dataclass(frozen=True)
class ArrayValue:
    """An ordered list of property values."""

    values: Tuple["PropertyValue", ...] = ()


PropertyValue = Union[PrimitiveValue, EnumValue, MapValue, ArrayValue]
InstanceProperties = Dict[str, PropertyValue]


@dataclass
class Classification:
    """A classification attached to an entity."""

    name: str
    properties: InstanceProperties = field(default_factory=dict)
    status: InstanceStatus = InstanceStatus.ACTIVE
    created_by: Optional[str] = None
    create_time: Optional[datetime] = None
    updated_by: Optional[str] = None
    update_time: Optional[datetime] = None


@dataclass
class EntitySummary:
    """Header of an entity plus its classifications."""

    guid: str
    type_name: str
    metadata_collection_id: str
    status: InstanceStatus = InstanceStatus.ACTIVE
    created_by: Optional[str] = None
    create_time: Optional[datetime] = None
    updated_by: Optional[str] = None
    update_time: Optional[datetime] = None
    version: int = 0
    classifications: List[Classification] = field(default_factory=list)


@dataclass
class EntityDetail(EntitySummary):
    """An entity with all of its mapped properties."""

    properties: InstanceProperties = field(default_factory=dict)

    def property_value(self, name: str) -> Any:
        """Return the raw value of a primitive or enum property, or None."""
        value = self.properties.get(name)
        if isinstance(value, PrimitiveValue):
            return value.value
        if isinstance(value, EnumValue):
            return value.symbolic_name
        return value


@dataclass
class EntityProxy:
    """Reference to an entity at one end of a relationship."""

    guid: str
    type_name: str
    metadata_collection_id: str
    unique_properties: InstanceProperties = field(default_factory=dict)


@dataclass
class Relationship:
    """A relationship between two entities."""

    guid: str
    type_name: str
    metadata_collection_id: str
    entity_one: EntityProxy
    entity_two: EntityProxy
    properties: InstanceProperties = field(default_factory=dict)
    status: InstanceStatus = InstanceStatus.ACTIVE
    created_by: Optional[str] = None
    create_time: Optional[datetime] = None
    updated_by: Optional[str] = None
    update_time: Optional[datetime] = None
    version: int = 0


# Regex conventions used by callers for literal matching: \Q...\E quotes a
# literal, and .* on either side widens it.

_REGEX_METACHARACTERS = frozenset(".^$*+?()[]{}|")


def _quote(literal: str) -> str:
    return "\\Q" + literal + "\\E"


def exact_match_regex(literal: str) -> str:
    return _quote(literal)


def contains_regex(literal: str) -> str:
    return ".*" + _quote(literal) + ".*"


def starts_with_regex(literal: str) -> str:
    return _quote(literal) + ".*"


def ends_with_regex(literal: str) -> str:
    return ".*" + _quote(literal)


def unquote_literal(text: str) -> Optional[str]:
    """Return the literal a regex fragment matches, or None if it is a pattern.

    Accepts a \\Q...\\E quoted string, or plain text whose regex metacharacters
    are all backslash-escaped.
    """
    if text.startswith("\\Q") and text.endswith("\\E") and len(text) >= 4:
        inner = text[2:-2]
        if "\\E" not in inner:
            return inner
        return None
    chars: List[str] = []
    escaped = False
    for ch in text:
        if escaped:
            chars.append(ch)
            escaped = False
        elif ch == "\\":
            escaped = True
        elif ch in _REGEX_METACHARACTERS:
            return None
        else:
            chars.append(ch)
    if escaped:
        return None
    return "".join(chars)
