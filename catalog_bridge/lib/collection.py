"""Metadata collection facade.

:class:`MetadataCollection` implements the generic metadata collection
operations (type lookup and verification, entity and relationship retrieval
and search, adding relationships and classifications) on top of the mapping
registry, the query translator, the result materializer and a catalog
transport.

Every public operation converts internal failures into exactly one error of
the taxonomy in :mod:`catalog_bridge.lib.errors`, tagged with the operation
name.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from functools import wraps
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, TypeVar

from catalog_bridge.lib.errors import (
    BridgeError,
    CatalogTransportError,
    ClassificationError,
    EntityNotKnownError,
    FunctionNotSupportedError,
    InvalidEntityFromStoreError,
    InvalidParameterError,
    RelationshipNotKnownError,
    RepositoryError,
    TypeNotKnownError,
    TypeNotSupportedError,
)
from catalog_bridge.lib.ids import (
    decode_external_id,
    decode_prefix,
    decode_relationship_id,
)
from catalog_bridge.lib.mapping import SELF, EntityMapping, RelationshipMapping
from catalog_bridge.lib.materialize import ResultMaterializer
from catalog_bridge.lib.query import (
    IdentityLookup,
    QueryTranslator,
    TranslatedQuery,
    epoch_millis,
    identity_lookup,
    parse_regex,
    sort_for,
)
from catalog_bridge.lib.registry import MappingRegistry
from catalog_bridge.lib.search import CatalogObject, Sort
from catalog_bridge.lib.transport import CatalogTransport
from catalog_bridge.lib.types import (
    AttributeTypeDef,
    AttributeTypeDefCategory,
    EntityDetail,
    EntitySummary,
    EnumValue,
    InstanceProperties,
    InstanceStatus,
    MatchCriteria,
    PrimitiveValue,
    PropertyValue,
    Relationship,
    SequencingOrder,
    TypeDef,
    TypeDefCategory,
    TypeDefGallery,
)

logger = logging.getLogger(__name__)

__all__ = ["MetadataCollection", "DEFAULT_MAX_PAGE_SIZE"]

DEFAULT_MAX_PAGE_SIZE = 1000

# Generic root type; an untyped search covers its concrete subtypes instead.
_ROOT_TYPE = "Referenceable"

F = TypeVar("F", bound=Callable[..., Any])


def _operation(name: str) -> Callable[[F], F]:
    """Tag errors with the operation name and convert internal failures."""

    def decorator(fn: F) -> F:
        @wraps(fn)
        def wrapper(self: "MetadataCollection", *args: Any, **kwargs: Any) -> Any:
            logger.debug("%s called", name)
            try:
                return fn(self, *args, **kwargs)
            except InvalidEntityFromStoreError as exc:
                logger.warning("%s: %s", name, exc.message)
                raise EntityNotKnownError(
                    exc.message,
                    operation=name,
                    type_name=exc.type_name,
                    identifier=exc.identifier,
                ) from exc
            except CatalogTransportError as exc:
                logger.warning("%s: catalog request failed: %s", name, exc.message)
                raise RepositoryError(
                    "The catalog could not complete the request",
                    operation=name,
                    type_name=exc.type_name,
                    identifier=exc.identifier,
                    cause=exc,
                ) from exc
            except BridgeError as exc:
                raise exc.with_context(operation=name)
            except Exception as exc:
                logger.exception("%s failed unexpectedly", name)
                raise RepositoryError(
                    f"Unexpected failure: {type(exc).__name__}",
                    operation=name,
                    cause=exc,
                ) from exc

        return wrapper  # type: ignore

    return decorator


def _raw_value(value: PropertyValue) -> Any:
    """Plain value written back to a catalog field."""
    if isinstance(value, PrimitiveValue):
        if isinstance(value.value, datetime):
            return epoch_millis(value.value)
        return value.value
    if isinstance(value, EnumValue):
        return value.symbolic_name
    raise FunctionNotSupportedError(
        f"Cannot write a {type(value).__name__} to a catalog field"
    )


class MetadataCollection:
    """Generic metadata collection served by the external catalog.

    Args:
        registry: Mapping registry built for the catalog release
        transport: Catalog client
        metadata_collection_id: Id of this metadata collection
        max_page_size: Page size used when a caller asks for all results
        free_text_exclusions: Extra fields left out of free-text search

    Example:
        collection = MetadataCollection(registry, client, "cat-001")
        asset = collection.get_entity_detail("admin", "1-2-3")
    """

    def __init__(
        self,
        registry: MappingRegistry,
        transport: CatalogTransport,
        metadata_collection_id: str,
        *,
        max_page_size: int = DEFAULT_MAX_PAGE_SIZE,
        free_text_exclusions: Sequence[str] = (),
    ) -> None:
        self.registry = registry
        self.transport = transport
        self.metadata_collection_id = metadata_collection_id
        self.max_page_size = max_page_size
        self.translator = QueryTranslator(registry, free_text_exclusions)
        self.materializer = ResultMaterializer(registry, transport, metadata_collection_id)

    # ------------------------------------------------------------------
    # Parameter validation
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_user(user_id: str) -> None:
        if not user_id:
            raise InvalidParameterError("A user id is required")

    @staticmethod
    def _validate_guid(guid: Optional[str], parameter: str) -> None:
        if not guid:
            raise InvalidParameterError(f"Parameter '{parameter}' is required")

    @staticmethod
    def _validate_paging(from_element: int, page_size: int) -> None:
        if from_element is None or from_element < 0:
            raise InvalidParameterError(f"fromElement cannot be negative: {from_element}")
        if page_size is None or page_size < 0:
            raise InvalidParameterError(f"pageSize cannot be negative: {page_size}")

    @staticmethod
    def _validate_as_of(as_of_time: Optional[datetime]) -> None:
        if as_of_time is not None:
            raise FunctionNotSupportedError(
                "Historical queries are not supported by the catalog",
                suggestion="Repeat the request without asOfTime",
            )

    @staticmethod
    def _status_allows_search(statuses: Optional[Sequence[InstanceStatus]]) -> bool:
        if not statuses:
            return True
        return set(statuses) == {InstanceStatus.ACTIVE}

    def _type_def_for_guid(self, guid: str, category: TypeDefCategory) -> TypeDef:
        type_def = (
            self.registry.type_def_by_guid(guid)
            or self.registry.unimplemented_type_def_by_guid(guid)
        )
        if type_def is None:
            raise TypeNotKnownError("Type is not known", identifier=guid)
        if type_def.category != category:
            raise InvalidParameterError(
                f"Type {type_def.name} is not a {category.value} type",
                type_name=type_def.name,
                identifier=guid,
            )
        return type_def

    def _entity_type_name(self, entity_type_guid: Optional[str]) -> Optional[str]:
        if not entity_type_guid:
            return None
        return self._type_def_for_guid(entity_type_guid, TypeDefCategory.ENTITY_DEF).name

    def _mappings_to_search(self, type_name: Optional[str]) -> List[EntityMapping]:
        if type_name is None:
            return [
                m for m in self.registry.entity_mappings()
                if m.generic_type != _ROOT_TYPE
            ]
        return self.registry.mappings_for_entity_type(type_name)

    # ------------------------------------------------------------------
    # Type definitions
    # ------------------------------------------------------------------

    @_operation("getAllTypes")
    def get_all_types(self, user_id: str) -> TypeDefGallery:
        self._validate_user(user_id)
        return TypeDefGallery(
            type_defs=self.registry.type_defs(),
            attribute_type_defs=self.registry.attribute_type_defs(),
        )

    @_operation("findTypeDefsByCategory")
    def find_type_defs_by_category(self, user_id: str, category: TypeDefCategory) -> List[TypeDef]:
        self._validate_user(user_id)
        if not isinstance(category, TypeDefCategory):
            raise InvalidParameterError(f"Unknown type definition category: {category!r}")
        return self.registry.type_defs(category)

    @_operation("findAttributeTypeDefsByCategory")
    def find_attribute_type_defs_by_category(
        self, user_id: str, category: AttributeTypeDefCategory
    ) -> List[AttributeTypeDef]:
        self._validate_user(user_id)
        if not isinstance(category, AttributeTypeDefCategory):
            raise InvalidParameterError(f"Unknown attribute type definition category: {category!r}")
        return [a for a in self.registry.attribute_type_defs() if a.category == category]

    @_operation("findTypeDefsByProperty")
    def find_type_defs_by_property(self, user_id: str, match_criteria: Iterable[str]) -> List[TypeDef]:
        """Implemented types declaring at least one of the named properties.

        ``match_criteria`` holds property names; a mapping of property names
        to values is accepted and only its keys are used.
        """
        self._validate_user(user_id)
        if match_criteria is None:
            raise InvalidParameterError("Parameter 'matchCriteria' is required")
        wanted = set(match_criteria)
        if not wanted:
            raise InvalidParameterError("Parameter 'matchCriteria' names no properties")
        return [t for t in self.registry.type_defs() if wanted.intersection(t.properties)]

    @_operation("findTypesByExternalID")
    def find_types_by_external_id(
        self,
        user_id: str,
        standard: Optional[str] = None,
        organization: Optional[str] = None,
        identifier: Optional[str] = None,
    ) -> List[TypeDef]:
        """Implemented types mapped to an external standard's type.

        Criteria left as None match anything; with no criteria at all every
        implemented type is returned.
        """
        self._validate_user(user_id)
        type_defs = self.registry.type_defs()
        if standard is None and organization is None and identifier is None:
            return type_defs
        return [
            t for t in type_defs
            if any(m.matches(standard, organization, identifier) for m in t.external_standard_mappings)
        ]

    @_operation("searchForTypeDefs")
    def search_for_type_defs(self, user_id: str, search_criteria: str) -> List[TypeDef]:
        """Implemented types whose whole name matches a regular expression."""
        self._validate_user(user_id)
        self._validate_guid(search_criteria, "searchCriteria")
        try:
            pattern = re.compile(search_criteria)
        except re.error as exc:
            raise InvalidParameterError(
                f"searchCriteria is not a valid regular expression: {exc}",
                details={"searchCriteria": search_criteria},
            ) from exc
        results: List[TypeDef] = []
        for category in TypeDefCategory:
            results.extend(t for t in self.registry.type_defs(category) if pattern.fullmatch(t.name))
        return results

    @_operation("getTypeDefByGUID")
    def get_type_def_by_guid(self, user_id: str, guid: str) -> TypeDef:
        self._validate_user(user_id)
        self._validate_guid(guid, "guid")
        type_def = self.registry.type_def_by_guid(guid)
        if type_def is not None:
            return type_def
        unimplemented = self.registry.unimplemented_type_def_by_guid(guid)
        if unimplemented is not None:
            raise TypeNotSupportedError(
                "Type is not implemented by this catalog",
                type_name=unimplemented.name,
                identifier=guid,
            )
        raise TypeNotKnownError("Type is not known", identifier=guid)

    @_operation("getTypeDefByName")
    def get_type_def_by_name(self, user_id: str, name: str) -> TypeDef:
        self._validate_user(user_id)
        self._validate_guid(name, "name")
        type_def = self.registry.type_def(name)
        if type_def is not None:
            return type_def
        if self.registry.unimplemented_type_def(name) is not None:
            raise TypeNotSupportedError("Type is not implemented by this catalog", type_name=name)
        raise TypeNotKnownError("Type is not known", type_name=name)

    @_operation("addTypeDef")
    def add_type_def(self, user_id: str, type_def: TypeDef) -> None:
        self._validate_user(user_id)
        if type_def is None:
            raise InvalidParameterError("A type definition is required")
        self.registry.register(type_def)

    @_operation("addTypeDefGallery")
    def add_type_def_gallery(self, user_id: str, gallery: TypeDefGallery) -> List[str]:
        """Register a gallery, returning the names of unsupported types."""
        self._validate_user(user_id)
        if gallery is None:
            raise InvalidParameterError("A type definition gallery is required")
        for attribute_type_def in gallery.attribute_type_defs:
            self.registry.add_attribute_type_def(attribute_type_def)
        return self.registry.register_all(gallery.type_defs)

    @_operation("verifyTypeDef")
    def verify_type_def(self, user_id: str, type_def: TypeDef) -> bool:
        """True if the type is implemented with every declared property mapped.

        Raises TypeNotSupportedError for unimplemented or partially mapped
        types; returns False for types never registered.
        """
        self._validate_user(user_id)
        if type_def is None or not type_def.name:
            raise InvalidParameterError("A type definition with a name is required")
        if self.registry.unimplemented_type_def(type_def.name) is not None:
            raise TypeNotSupportedError(
                "Type is not implemented by this catalog",
                type_name=type_def.name,
                identifier=type_def.guid,
            )
        if self.registry.type_def(type_def.name) is None:
            return False

        unmapped = self._unmapped_properties(type_def)
        if unmapped:
            raise TypeNotSupportedError(
                "Type is only partially implemented by this catalog",
                type_name=type_def.name,
                identifier=type_def.guid,
                details={"unmapped_properties": ", ".join(unmapped)},
            )
        return True

    def _unmapped_properties(self, type_def: TypeDef) -> List[str]:
        if type_def.category == TypeDefCategory.ENTITY_DEF:
            mappings: List[Any] = [self.registry.entity_mapping(type_def.name)]
        elif type_def.category == TypeDefCategory.RELATIONSHIP_DEF:
            mappings = self.registry.relationship_mappings(type_def.name)
        else:
            mappings = [self.registry.classification_mapping(type_def.name)]
        unmapped = []
        for mapping in (m for m in mappings if m is not None):
            mapped = {p.generic for p in mapping.properties}
            unmapped.extend(p for p in type_def.properties if p not in mapped and p not in unmapped)
        return unmapped

    @_operation("addAttributeTypeDef")
    def add_attribute_type_def(self, user_id: str, attribute_type_def: AttributeTypeDef) -> None:
        self._validate_user(user_id)
        if attribute_type_def is None or not attribute_type_def.name:
            raise InvalidParameterError("An attribute type definition with a name is required")
        self.registry.add_attribute_type_def(attribute_type_def)

    @_operation("verifyAttributeTypeDef")
    def verify_attribute_type_def(self, user_id: str, attribute_type_def: AttributeTypeDef) -> bool:
        self._validate_user(user_id)
        if attribute_type_def is None or not attribute_type_def.name:
            raise InvalidParameterError("An attribute type definition with a name is required")
        if attribute_type_def.category in (
            AttributeTypeDefCategory.PRIMITIVE,
            AttributeTypeDefCategory.COLLECTION,
        ):
            return True
        if attribute_type_def.category == AttributeTypeDefCategory.ENUM_DEF:
            return self.registry.is_enum_mapped(attribute_type_def.name)
        return False

    # ------------------------------------------------------------------
    # Entities
    # ------------------------------------------------------------------

    def _fetch_entity(self, guid: str) -> Tuple[EntityMapping, CatalogObject]:
        """Resolve a generic entity id to its mapping and catalog object."""
        if decode_relationship_id(guid) is not None:
            raise EntityNotKnownError("Identifier is a relationship id", identifier=guid)
        prefix = decode_prefix(guid)
        obj = self.transport.get_object(decode_external_id(guid))
        if obj is None:
            raise EntityNotKnownError("No entity exists with this id", identifier=guid)
        if obj.is_placeholder:
            raise InvalidEntityFromStoreError(
                "Catalog returned an object of its placeholder type",
                identifier=guid,
            )
        mapping = self.registry.resolve_by_external_type(obj.type, prefix)
        if mapping is None or mapping.prefix != prefix:
            raise EntityNotKnownError(
                f"No generic entity type is mapped to catalog type '{obj.type}'"
                + (f" with prefix '{prefix}'" if prefix else ""),
                identifier=guid,
            )
        return mapping, obj

    @_operation("isEntityKnown")
    def is_entity_known(self, user_id: str, guid: str) -> Optional[EntityDetail]:
        """Return the entity if it exists, otherwise None."""
        self._validate_user(user_id)
        self._validate_guid(guid, "guid")
        try:
            mapping, obj = self._fetch_entity(guid)
            return self.materializer.materialize_entity(mapping, obj, guid, detail=True)
        except (EntityNotKnownError, InvalidEntityFromStoreError):
            logger.debug("Entity %s is not known", guid)
            return None

    @_operation("getEntitySummary")
    def get_entity_summary(self, user_id: str, guid: str) -> EntitySummary:
        self._validate_user(user_id)
        self._validate_guid(guid, "guid")
        mapping, obj = self._fetch_entity(guid)
        return self.materializer.materialize_entity(mapping, obj, guid, detail=False)

    @_operation("getEntityDetail")
    def get_entity_detail(self, user_id: str, guid: str) -> EntityDetail:
        self._validate_user(user_id)
        self._validate_guid(guid, "guid")
        mapping, obj = self._fetch_entity(guid)
        return self.materializer.materialize_entity(mapping, obj, guid, detail=True)

    def _materialize_result(self, translated: TranslatedQuery) -> Callable[[CatalogObject], Optional[EntityDetail]]:
        mapping = translated.mapping

        def materialize(obj: CatalogObject) -> Optional[EntityDetail]:
            if obj.type != mapping.external_type:
                logger.debug("Skipping %s object %s in %s search", obj.type, obj.id, mapping.generic_type)
                return None
            if not translated.accepts(obj):
                return None
            return self.materializer.materialize_entity(mapping, obj)

        return materialize

    def _search(
        self,
        translated_queries: Sequence[TranslatedQuery],
        from_element: int,
        page_size: int,
        sort: Optional[Sort],
    ) -> List[EntityDetail]:
        """Run each mapping's search independently and concatenate the results."""
        results: List[EntityDetail] = []
        for translated in translated_queries:
            if translated.excluded:
                continue
            budget = page_size - len(results) if page_size else 0
            # locally filtered results are only known after the catalog's
            # paging, so the offset is applied to them here
            skip = from_element if translated.local_filters else 0
            if budget and skip:
                budget += skip
            query = self.translator.build_query(
                translated,
                begin=from_element - skip,
                page_size=min(budget, self.max_page_size) if budget else self.max_page_size,
                sort=sort,
            )
            found = self.materializer.drain_pages(query, budget, self._materialize_result(translated))
            results.extend(found[skip:])
            if page_size and len(results) >= page_size:
                break
        return results[:page_size] if page_size else results

    def _find_by_identity(
        self,
        lookup: IdentityLookup,
        type_name: Optional[str],
        classifications: Optional[Sequence[str]],
    ) -> List[EntityDetail]:
        mapping = self.registry.resolve_by_external_type(lookup.external_type, lookup.prefix)
        if mapping is None or mapping.prefix != lookup.prefix:
            return []
        if type_name is not None and not self.registry.is_type_of(mapping.generic_type, type_name):
            return []
        obj = self.transport.get_object(lookup.external_id)
        if obj is None or obj.is_placeholder or obj.type != lookup.external_type:
            return []
        for name in classifications or ():
            classification = self.registry.classification_mapping(name)
            if (
                classification is None
                or name not in mapping.classifications
                or not classification.applies_to(obj.type)
                or not classification.is_present(obj)
            ):
                return []
        return [self.materializer.materialize_entity(mapping, obj)]

    @_operation("findEntitiesByProperty")
    def find_entities_by_property(
        self,
        user_id: str,
        entity_type_guid: Optional[str] = None,
        match_properties: Optional[InstanceProperties] = None,
        match_criteria: Optional[MatchCriteria] = MatchCriteria.ALL,
        from_element: int = 0,
        limit_results_by_status: Optional[Sequence[InstanceStatus]] = None,
        limit_results_by_classification: Optional[Sequence[str]] = None,
        as_of_time: Optional[datetime] = None,
        sequencing_property: Optional[str] = None,
        sequencing_order: Optional[SequencingOrder] = None,
        page_size: int = 0,
    ) -> List[EntityDetail]:
        """Entities whose properties match, optionally limited by type and classification."""
        self._validate_user(user_id)
        self._validate_paging(from_element, page_size)
        self._validate_as_of(as_of_time)
        sort = sort_for(sequencing_order, sequencing_property)
        type_name = self._entity_type_name(entity_type_guid)
        if not self._status_allows_search(limit_results_by_status):
            return []

        lookup = identity_lookup(match_properties)
        if lookup is not None:
            logger.debug("Resolving qualifiedName directly to %s %s", lookup.external_type, lookup.external_id)
            return self._find_by_identity(lookup, type_name, limit_results_by_classification)

        translated = [
            self.translator.with_classifications(
                self.translator.translate_match(mapping, match_properties, match_criteria),
                limit_results_by_classification,
            )
            for mapping in self._mappings_to_search(type_name)
        ]
        return self._search(translated, from_element, page_size, sort)

    @_operation("findEntitiesByClassification")
    def find_entities_by_classification(
        self,
        user_id: str,
        entity_type_guid: Optional[str],
        classification_name: str,
        match_classification_properties: Optional[InstanceProperties] = None,
        match_criteria: Optional[MatchCriteria] = MatchCriteria.ALL,
        from_element: int = 0,
        limit_results_by_status: Optional[Sequence[InstanceStatus]] = None,
        as_of_time: Optional[datetime] = None,
        sequencing_property: Optional[str] = None,
        sequencing_order: Optional[SequencingOrder] = None,
        page_size: int = 0,
    ) -> List[EntityDetail]:
        """Entities carrying a classification, optionally matching its properties."""
        self._validate_user(user_id)
        self._validate_guid(classification_name, "classificationName")
        self._validate_paging(from_element, page_size)
        self._validate_as_of(as_of_time)
        sort = sort_for(sequencing_order, sequencing_property)
        type_name = self._entity_type_name(entity_type_guid)

        classification = self.registry.classification_mapping(classification_name)
        if classification is None:
            raise ClassificationError(
                "Classification is not known to this catalog",
                type_name=classification_name,
            )
        mappings = [
            m for m in self._mappings_to_search(type_name)
            if classification_name in m.classifications and classification.applies_to(m.external_type)
        ]
        if type_name is not None and not mappings:
            raise ClassificationError(
                f"Classification {classification_name} does not apply to {type_name}",
                type_name=classification_name,
            )
        if not self._status_allows_search(limit_results_by_status):
            return []

        translated = [
            self.translator.translate_classification_match(
                mapping, classification_name, match_classification_properties, match_criteria
            )
            for mapping in mappings
        ]
        return self._search(translated, from_element, page_size, sort)

    @_operation("findEntitiesByPropertyValue")
    def find_entities_by_property_value(
        self,
        user_id: str,
        entity_type_guid: Optional[str],
        search_criteria: str,
        from_element: int = 0,
        limit_results_by_status: Optional[Sequence[InstanceStatus]] = None,
        limit_results_by_classification: Optional[Sequence[str]] = None,
        as_of_time: Optional[datetime] = None,
        sequencing_property: Optional[str] = None,
        sequencing_order: Optional[SequencingOrder] = None,
        page_size: int = 0,
    ) -> List[EntityDetail]:
        """Entities with any searchable text field matching the criteria."""
        self._validate_user(user_id)
        self._validate_guid(search_criteria, "searchCriteria")
        self._validate_paging(from_element, page_size)
        self._validate_as_of(as_of_time)
        sort = sort_for(sequencing_order, sequencing_property)
        type_name = self._entity_type_name(entity_type_guid)
        parse_regex(search_criteria)
        if not self._status_allows_search(limit_results_by_status):
            return []

        translated = [
            self.translator.with_classifications(
                self.translator.translate_free_text(mapping, search_criteria),
                limit_results_by_classification,
            )
            for mapping in self._mappings_to_search(type_name)
        ]
        return self._search(translated, from_element, page_size, sort)

    @_operation("classifyEntity")
    def classify_entity(
        self,
        user_id: str,
        entity_guid: str,
        classification_name: str,
        classification_properties: Optional[InstanceProperties] = None,
    ) -> EntityDetail:
        """Add a classification to an entity by writing its presence field."""
        self._validate_user(user_id)
        self._validate_guid(entity_guid, "entityGUID")
        self._validate_guid(classification_name, "classificationName")

        classification = self.registry.classification_mapping(classification_name)
        if classification is None:
            raise ClassificationError(
                "Classification is not known to this catalog",
                type_name=classification_name,
                identifier=entity_guid,
            )
        mapping, obj = self._fetch_entity(entity_guid)
        if classification_name not in mapping.classifications or not classification.applies_to(obj.type):
            raise ClassificationError(
                f"Classification {classification_name} does not apply to {mapping.generic_type}",
                type_name=classification_name,
                identifier=entity_guid,
            )
        if classification.is_present(obj):
            raise ClassificationError(
                f"Entity is already classified as {classification_name}",
                type_name=classification_name,
                identifier=entity_guid,
            )

        fields: Dict[str, Any] = {}
        for name, value in (classification_properties or {}).items():
            prop = classification.property_mapping(name)
            if prop is None:
                raise InvalidParameterError(
                    f"{classification_name} has no property {name}",
                    type_name=classification_name,
                    property_name=name,
                )
            if prop.is_custom:
                raise FunctionNotSupportedError(
                    f"{classification_name}.{name} cannot be written to the catalog",
                    type_name=classification_name,
                    property_name=name,
                )
            fields[prop.external] = _raw_value(value)
        if classification.presence_value is not None:
            fields[classification.presence_field] = classification.presence_value
        elif fields.get(classification.presence_field) in (None, ""):
            raise InvalidParameterError(
                f"{classification_name} needs a value for its catalog field "
                f"'{classification.presence_field}'",
                type_name=classification_name,
            )

        logger.info("Classifying %s as %s", entity_guid, classification_name)
        self.transport.update_object(obj.id, fields)
        refreshed = self.transport.get_object(obj.id)
        if refreshed is None:
            raise RepositoryError(
                "Entity vanished while being classified",
                type_name=mapping.generic_type,
                identifier=entity_guid,
            )
        return self.materializer.materialize_entity(mapping, refreshed, entity_guid)

    # ------------------------------------------------------------------
    # Relationships
    # ------------------------------------------------------------------

    @_operation("getRelationshipsForEntity")
    def get_relationships_for_entity(
        self,
        user_id: str,
        entity_guid: str,
        relationship_type_guid: Optional[str] = None,
        from_element: int = 0,
        limit_results_by_status: Optional[Sequence[InstanceStatus]] = None,
        as_of_time: Optional[datetime] = None,
        sequencing_property: Optional[str] = None,
        sequencing_order: Optional[SequencingOrder] = None,
        page_size: int = 0,
    ) -> List[Relationship]:
        self._validate_user(user_id)
        self._validate_guid(entity_guid, "entityGUID")
        self._validate_paging(from_element, page_size)
        self._validate_as_of(as_of_time)
        sort_for(sequencing_order, sequencing_property)

        relationship_type = None
        if relationship_type_guid:
            type_def = self._type_def_for_guid(relationship_type_guid, TypeDefCategory.RELATIONSHIP_DEF)
            if self.registry.type_def(type_def.name) is None:
                raise TypeNotSupportedError(
                    "Relationship type is not implemented by this catalog",
                    type_name=type_def.name,
                    identifier=relationship_type_guid,
                )
            relationship_type = type_def.name

        if not self._status_allows_search(limit_results_by_status):
            return []
        mapping, obj = self._fetch_entity(entity_guid)

        relationships = list(self.materializer.relationships_for_entity(mapping, obj, relationship_type))
        if sequencing_order == SequencingOrder.GUID:
            relationships.sort(key=lambda r: r.guid)
        end = from_element + page_size if page_size else None
        return relationships[from_element:end]

    @_operation("isRelationshipKnown")
    def is_relationship_known(self, user_id: str, guid: str) -> Optional[Relationship]:
        """Return the relationship if it exists, otherwise None."""
        self._validate_user(user_id)
        self._validate_guid(guid, "guid")
        try:
            return self._load_relationship(guid)
        except RelationshipNotKnownError:
            logger.debug("Relationship %s is not known", guid)
            return None

    @_operation("getRelationship")
    def get_relationship(self, user_id: str, guid: str) -> Relationship:
        self._validate_user(user_id)
        self._validate_guid(guid, "guid")
        return self._load_relationship(guid)

    def _load_relationship(self, guid: str) -> Relationship:
        decoded = decode_relationship_id(guid)
        if decoded is None:
            raise RelationshipNotKnownError("Not a relationship id", identifier=guid)
        one_id, two_id, name = decoded
        if not self.registry.relationship_mappings(name):
            raise RelationshipNotKnownError(
                "Relationship type is not mapped", type_name=name, identifier=guid
            )

        if one_id == two_id:
            backing = self.transport.get_object(decode_external_id(one_id))
            if backing is None or backing.is_placeholder:
                raise RelationshipNotKnownError("Relationship no longer exists", type_name=name, identifier=guid)
            mapping = self.registry.self_contained_mapping_for(name, backing.type)
            if mapping is None:
                raise RelationshipNotKnownError(
                    f"No {name} mapping for catalog type '{backing.type}'",
                    type_name=name,
                    identifier=guid,
                )
            one = backing.reference(mapping.end_one.link_field)
            two = backing.reference(mapping.end_two.link_field)
            if one is None or two is None:
                raise RelationshipNotKnownError("Relationship end is missing", type_name=name, identifier=guid)
            return self.materializer.materialize_relationship(mapping, one, two, backing=backing)

        one_obj = self.transport.get_object(decode_external_id(one_id))
        two_obj = self.transport.get_object(decode_external_id(two_id))
        if one_obj is None or two_obj is None or one_obj.is_placeholder or two_obj.is_placeholder:
            raise RelationshipNotKnownError("Relationship end no longer exists", type_name=name, identifier=guid)
        mapping = self.registry.relationship_mapping_for(
            name, one_obj.type, two_obj.type, decode_prefix(one_id), decode_prefix(two_id)
        )
        if mapping is None or not self._is_linked(mapping, one_obj, two_obj):
            raise RelationshipNotKnownError("Relationship does not exist", type_name=name, identifier=guid)
        return self.materializer.materialize_relationship(mapping, one_obj, two_obj)

    @staticmethod
    def _is_linked(mapping: RelationshipMapping, one: CatalogObject, two: CatalogObject) -> bool:
        if mapping.self_contained:
            return False
        if mapping.end_one.link_field == SELF:
            return one.id == two.id
        if mapping.end_one.link_field:
            return any(ref.id == two.id for ref in one.references(mapping.end_one.link_field))
        if mapping.end_two.link_field:
            return any(ref.id == one.id for ref in two.references(mapping.end_two.link_field))
        return False

    @_operation("addRelationship")
    def add_relationship(
        self,
        user_id: str,
        relationship_type_guid: str,
        initial_properties: Optional[InstanceProperties],
        entity_one_guid: str,
        entity_two_guid: str,
        initial_status: Optional[InstanceStatus] = None,
    ) -> Relationship:
        """Link two entities by appending to the catalog linkage field."""
        self._validate_user(user_id)
        self._validate_guid(relationship_type_guid, "relationshipTypeGUID")
        self._validate_guid(entity_one_guid, "entityOneGUID")
        self._validate_guid(entity_two_guid, "entityTwoGUID")

        type_def = self._type_def_for_guid(relationship_type_guid, TypeDefCategory.RELATIONSHIP_DEF)
        if self.registry.type_def(type_def.name) is None:
            raise TypeNotSupportedError(
                "Relationship type is not implemented by this catalog",
                type_name=type_def.name,
                identifier=relationship_type_guid,
            )
        if initial_status is not None and initial_status != InstanceStatus.ACTIVE:
            raise FunctionNotSupportedError(
                f"Relationships can only be created ACTIVE, not {initial_status.name}",
                type_name=type_def.name,
            )
        if initial_properties:
            raise FunctionNotSupportedError(
                "Relationship properties cannot be written to the catalog",
                type_name=type_def.name,
            )

        one_mapping, one = self._fetch_entity(entity_one_guid)
        two_mapping, two = self._fetch_entity(entity_two_guid)
        mapping, swapped = self.registry.orient_relationship(
            type_def.name, one.type, two.type, one_mapping.prefix, two_mapping.prefix
        )
        if swapped:
            one_mapping, one, two_mapping, two = two_mapping, two, one_mapping, one
        if mapping is None:
            raise TypeNotSupportedError(
                f"{type_def.name} cannot link {one_mapping.generic_type} to {two_mapping.generic_type}",
                type_name=type_def.name,
            )
        if mapping.self_contained:
            raise FunctionNotSupportedError(
                f"{type_def.name} relationships are derived by the catalog and cannot be added",
                type_name=type_def.name,
            )

        if mapping.end_one.link_field != SELF and not self._is_linked(mapping, one, two):
            holder, other, end = (one, two, mapping.end_one) if mapping.end_one.link_field else (two, one, mapping.end_two)
            if self.registry.schema.is_list(holder.type, end.link_field):
                value: Any = [ref.id for ref in holder.references(end.link_field)] + [other.id]
            else:
                value = other.id
            logger.info("Adding %s between %s and %s", type_def.name, entity_one_guid, entity_two_guid)
            self.transport.update_object(holder.id, {end.link_field: value})

        return self.materializer.materialize_relationship(mapping, one, two)
