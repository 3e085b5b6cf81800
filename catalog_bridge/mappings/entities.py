"""Entity mappings.

Every entity carries a ``qualifiedName`` derived from its catalog identity,
``(data_file)=1-2-3``, with the prefix marker in front for synthesized
entities. Searching ``qualifiedName`` therefore resolves to an id match.
"""

from __future__ import annotations

import posixpath
from typing import Any, List, Optional, Sequence

from catalog_bridge.lib.errors import FunctionNotSupportedError
from catalog_bridge.lib.ids import Identity, decode_external_id, decode_prefix
from catalog_bridge.lib.mapping import CUSTOM, EntityMapping, PropertyMapping
from catalog_bridge.lib.query import QUALIFIED_NAME, LocalFilter, RegexShape, parse_regex
from catalog_bridge.lib.schema import SchemaCatalog
from catalog_bridge.lib.search import EQUALS, IS_NULL, LIKE_CONTAINS, LIKE_ENDS_WITH, CatalogObject, Condition
from catalog_bridge.lib.types import EnumValue, PrimitiveValue, PropertyValue, TypeDefCategory
from catalog_bridge.mappings.builders import register_builder

ASSET_TYPE_PREFIX = "AT"
CONTACT_DETAILS_PREFIX = "CD"


def _string_value(value: PropertyValue, mapping: EntityMapping, name: str) -> str:
    if not isinstance(value, PrimitiveValue) or value.value is None:
        raise FunctionNotSupportedError(
            f"{mapping.generic_type}.{name} can only be searched with a string",
            type_name=mapping.generic_type,
            property_name=name,
        )
    return str(value.value)


def derive_qualified_name(obj: CatalogObject, mapping: EntityMapping) -> PrimitiveValue:
    return PrimitiveValue(mapping.qualified_name(obj))


def search_qualified_name(mapping: EntityMapping, name: str, value: PropertyValue) -> Optional[List[Condition]]:
    """Turn a qualifiedName match into an id match on the catalog object.

    A qualified name belonging to another catalog type or prefix cannot match
    this mapping at all.
    """
    shape, literal = parse_regex(_string_value(value, mapping, name))
    identity = Identity.parse(decode_external_id(literal))
    if identity is None:
        if shape == RegexShape.EXACT:
            return None
        raise FunctionNotSupportedError(
            f"'{literal}' is not a qualified name issued by this repository",
            type_name=mapping.generic_type,
            property_name=name,
            suggestion="Search qualifiedName with an exact or starts-with match of a full qualified name",
        )
    if identity.external_type != mapping.external_type or decode_prefix(literal) != mapping.prefix:
        return None
    if shape not in (RegexShape.EXACT, RegexShape.STARTS_WITH):
        raise FunctionNotSupportedError(
            "qualifiedName only supports exact and starts-with matches",
            type_name=mapping.generic_type,
            property_name=name,
        )
    return [Condition("_id", EQUALS, identity.external_id)]


def _entity(
    generic_type: str,
    external_type: str,
    properties: Sequence[PropertyMapping],
    prefix: Optional[str] = None,
    **kwargs,
) -> EntityMapping:
    derivations = dict(kwargs.pop("derivations", {}))
    search_builders = dict(kwargs.pop("search_builders", {}))
    derivations[QUALIFIED_NAME] = derive_qualified_name
    search_builders[QUALIFIED_NAME] = search_qualified_name
    return EntityMapping(
        generic_type=generic_type,
        external_type=external_type,
        prefix=prefix,
        properties=(PropertyMapping(QUALIFIED_NAME, CUSTOM),) + tuple(properties),
        derivations=derivations,
        search_builders=search_builders,
        **kwargs,
    )


@register_builder(TypeDefCategory.ENTITY_DEF, "Referenceable")
def referenceable(schema: SchemaCatalog):
    # Abstract: only its subtypes are mapped.
    return ()


@register_builder(TypeDefCategory.ENTITY_DEF, "Asset")
def asset(schema: SchemaCatalog):
    return [
        _entity(
            "Asset",
            "data_file",
            [
                PropertyMapping("name", "name"),
                PropertyMapping("description", "short_description"),
                PropertyMapping("pathName", "path"),
                PropertyMapping("recordCount", "record_count"),
            ],
            relationships=("SemanticAssignment",),
            classifications=("Confidentiality",),
        )
    ]


# AssetType: the file format of a data file, synthesized from its path.

def _file_extension(path: Optional[str]) -> Optional[str]:
    if not path:
        return None
    extension = posixpath.splitext(path)[1]
    return extension[1:].lower() or None


def derive_asset_type_name(obj: CatalogObject, mapping: EntityMapping) -> Optional[PrimitiveValue]:
    extension = _file_extension(obj.get("path"))
    return PrimitiveValue(extension) if extension else None


def search_asset_type_name(mapping: EntityMapping, name: str, value: PropertyValue) -> List[Any]:
    """Narrow on the file path, then compare the extension of each candidate.

    The extension is not a stored field: only an exact or ends-with name
    lines up with the end of the path, so other shapes fall back to a
    contains test on the path.
    """
    shape, literal = parse_regex(_string_value(value, mapping, name))
    if shape == RegexShape.EXACT:
        prefilter = Condition("path", LIKE_ENDS_WITH, "." + literal)
    elif shape == RegexShape.ENDS_WITH:
        prefilter = Condition("path", LIKE_ENDS_WITH, literal)
    else:
        prefilter = Condition("path", LIKE_CONTAINS, literal)
    return [prefilter, LocalFilter(name, shape, literal)]


@register_builder(TypeDefCategory.ENTITY_DEF, "AssetType")
def asset_type(schema: SchemaCatalog):
    return [
        _entity(
            "AssetType",
            "data_file",
            [PropertyMapping("name", CUSTOM)],
            prefix=ASSET_TYPE_PREFIX,
            extra_fields=("path",),
            derivations={"name": derive_asset_type_name},
            search_builders={"name": search_asset_type_name},
        )
    ]


@register_builder(TypeDefCategory.ENTITY_DEF, "DataField")
def data_field(schema: SchemaCatalog):
    return [
        _entity(
            "DataField",
            "data_file_field",
            [
                PropertyMapping("name", "name"),
                PropertyMapping("description", "short_description"),
                PropertyMapping("dataType", "data_type"),
                PropertyMapping("position", "position"),
                PropertyMapping("length", "length"),
            ],
            relationships=("SemanticAssignment", "DataClassAssignment"),
            classifications=("Confidentiality", "PrimaryKey"),
        )
    ]


@register_builder(TypeDefCategory.ENTITY_DEF, "DataClass")
def data_class(schema: SchemaCatalog):
    return [
        _entity(
            "DataClass",
            "data_class",
            [
                PropertyMapping("name", "name"),
                PropertyMapping("description", "short_description"),
                PropertyMapping("classCode", "class_code"),
                PropertyMapping("dataType", "data_type_filter"),
            ],
            relationships=("DataClassAssignment",),
        )
    ]


@register_builder(TypeDefCategory.ENTITY_DEF, "GlossaryTerm")
def glossary_term(schema: SchemaCatalog):
    return [
        _entity(
            "GlossaryTerm",
            "term",
            [
                PropertyMapping("displayName", "name"),
                PropertyMapping("summary", "short_description"),
                PropertyMapping("description", "long_description"),
                PropertyMapping("abbreviation", "abbreviation"),
                PropertyMapping("examples", "example"),
                PropertyMapping("usage", "usage"),
                PropertyMapping("status", "status", enum_type="TermStatus"),
            ],
            relationships=("SemanticAssignment", "TermCategorization"),
        )
    ]


@register_builder(TypeDefCategory.ENTITY_DEF, "GlossaryCategory")
def glossary_category(schema: SchemaCatalog):
    return [
        _entity(
            "GlossaryCategory",
            "category",
            [
                PropertyMapping("displayName", "name"),
                PropertyMapping("description", "short_description"),
            ],
            relationships=("TermCategorization",),
        )
    ]


@register_builder(TypeDefCategory.ENTITY_DEF, "Person")
def person(schema: SchemaCatalog):
    return [
        _entity(
            "Person",
            "user",
            [
                PropertyMapping("name", "principal_id"),
                PropertyMapping("fullName", "full_name"),
                PropertyMapping("jobTitle", "job_title"),
            ],
            relationships=("ContactThrough",),
        )
    ]


# ContactDetails: the e-mail address of a user, synthesized under its own prefix.

EMAIL = EnumValue("Email", ordinal=0)


def derive_contact_method_type(obj: CatalogObject, mapping: EntityMapping) -> Optional[EnumValue]:
    return EMAIL if obj.get("email_address") else None


def search_contact_method_type(mapping: EntityMapping, name: str, value: PropertyValue) -> Optional[List[Condition]]:
    if isinstance(value, EnumValue):
        symbol = value.symbolic_name
    else:
        shape, symbol = parse_regex(_string_value(value, mapping, name))
        if shape != RegexShape.EXACT:
            raise FunctionNotSupportedError(
                "contactMethodType only supports exact matches",
                type_name=mapping.generic_type,
                property_name=name,
            )
    if symbol != EMAIL.symbolic_name:
        return None
    return [Condition("email_address", IS_NULL, negated=True)]


@register_builder(TypeDefCategory.ENTITY_DEF, "ContactDetails")
def contact_details(schema: SchemaCatalog):
    return [
        _entity(
            "ContactDetails",
            "user",
            [
                PropertyMapping("contactMethodType", CUSTOM, enum_type="ContactMethodType"),
                PropertyMapping("contactMethodValue", "email_address"),
            ],
            prefix=CONTACT_DETAILS_PREFIX,
            relationships=("ContactThrough",),
            derivations={"contactMethodType": derive_contact_method_type},
            search_builders={"contactMethodType": search_contact_method_type},
        )
    ]
