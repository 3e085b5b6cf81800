"""Materialization of catalog objects into generic instances.

Turns catalog objects into entity details/summaries and relationships,
following the mapping definitions held by the registry, and drains search
pages until a caller's page budget is met.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Iterator, List, Optional, TypeVar, Union

from catalog_bridge.lib.errors import EntityNotKnownError, InvalidEntityFromStoreError
from catalog_bridge.lib.ids import Identity, encode_prefixed, encode_relationship_id
from catalog_bridge.lib.mapping import (
    SELF,
    ClassificationMapping,
    EntityMapping,
    RelationshipEndpoint,
    RelationshipMapping,
)
from catalog_bridge.lib.registry import MappingRegistry
from catalog_bridge.lib.schema import FieldKind
from catalog_bridge.lib.search import CatalogObject, CatalogQuery, Reference
from catalog_bridge.lib.transport import CatalogTransport
from catalog_bridge.lib.types import (
    ArrayValue,
    Classification,
    EntityDetail,
    EntityProxy,
    EntitySummary,
    EnumValue,
    InstanceProperties,
    PrimitiveKind,
    PrimitiveValue,
    PropertyValue,
    Relationship,
)

logger = logging.getLogger(__name__)

__all__ = ["to_datetime", "to_property_value", "ResultMaterializer"]

T = TypeVar("T")
Endpoint = Union[CatalogObject, Reference]


def to_datetime(raw: Any) -> Optional[datetime]:
    """Convert a catalog timestamp (epoch milliseconds or ISO text) to a datetime."""
    if raw is None or raw == "":
        return None
    if isinstance(raw, datetime):
        return raw
    if isinstance(raw, (int, float)):
        return datetime.fromtimestamp(raw / 1000, tz=timezone.utc)
    return datetime.fromisoformat(str(raw).replace("Z", "+00:00"))


def _reference_name(raw: Any) -> Optional[str]:
    if isinstance(raw, dict):
        return raw.get("_name") or raw.get("_id")
    return None if raw is None else str(raw)


def to_property_value(
    raw: Any, kind: Optional[FieldKind], enum_type: Optional[str] = None
) -> Optional[PropertyValue]:
    """Convert a raw catalog field value into a generic property value."""
    if raw is None or raw == "" or raw == []:
        return None
    if enum_type:
        return EnumValue(symbolic_name=str(raw))
    if kind == FieldKind.NUMBER:
        if isinstance(raw, float):
            return PrimitiveValue(raw, PrimitiveKind.DOUBLE)
        return PrimitiveValue(int(raw), PrimitiveKind.LONG)
    if kind == FieldKind.BOOLEAN:
        if isinstance(raw, str):
            raw = raw.lower() == "true"
        return PrimitiveValue(bool(raw), PrimitiveKind.BOOLEAN)
    if kind == FieldKind.DATE:
        return PrimitiveValue(to_datetime(raw), PrimitiveKind.DATE)
    if kind == FieldKind.REFERENCE:
        return PrimitiveValue(_reference_name(raw), PrimitiveKind.STRING)
    if kind == FieldKind.REFERENCE_LIST:
        items = raw.get("items", []) if isinstance(raw, dict) else raw
        return ArrayValue(tuple(
            PrimitiveValue(_reference_name(item), PrimitiveKind.STRING) for item in items
        ))
    return PrimitiveValue(str(raw), PrimitiveKind.STRING)


class ResultMaterializer:
    """Builds generic instances from catalog objects.

    Args:
        registry: Mapping registry for the catalog release
        transport: Catalog client, used for supplementary lookups and paging
        metadata_collection_id: Id stamped on every instance returned
    """

    def __init__(
        self,
        registry: MappingRegistry,
        transport: CatalogTransport,
        metadata_collection_id: str,
    ) -> None:
        self.registry = registry
        self.transport = transport
        self.metadata_collection_id = metadata_collection_id

    # ------------------------------------------------------------------
    # Entities
    # ------------------------------------------------------------------

    def materialize_entity(
        self,
        mapping: EntityMapping,
        obj: Optional[CatalogObject],
        requested_guid: Optional[str] = None,
        detail: bool = True,
    ) -> Union[EntityDetail, EntitySummary]:
        """Build an entity from a catalog object.

        Args:
            mapping: Mapping definition of the entity's generic type
            obj: Catalog object backing the entity
            requested_guid: Generic id the caller asked for, if any
            detail: Return an EntityDetail (True) or an EntitySummary

        Raises:
            EntityNotKnownError: If obj is None
            InvalidEntityFromStoreError: If obj is of the placeholder type
        """
        if obj is None:
            raise EntityNotKnownError(
                "No catalog object found",
                type_name=mapping.generic_type,
                identifier=requested_guid,
            )
        if obj.is_placeholder:
            raise InvalidEntityFromStoreError(
                "Catalog returned an object of its placeholder type",
                type_name=mapping.generic_type,
                identifier=requested_guid or obj.id,
            )

        modified = obj.get("modified_on")
        header = dict(
            guid=requested_guid or mapping.guid_for(obj.id),
            type_name=mapping.generic_type,
            metadata_collection_id=self.metadata_collection_id,
            created_by=obj.get("created_by"),
            create_time=to_datetime(obj.get("created_on")),
            updated_by=obj.get("modified_by"),
            update_time=to_datetime(modified),
            version=int(modified) if isinstance(modified, (int, float)) else 0,
            classifications=self.classifications_for(mapping, obj),
        )
        if not detail:
            return EntitySummary(**header)
        return EntityDetail(properties=self.entity_properties(mapping, obj), **header)

    def entity_properties(self, mapping: EntityMapping, obj: CatalogObject) -> InstanceProperties:
        return self._properties(mapping.properties, mapping.derivations, mapping, obj)

    def _properties(self, properties, derivations, mapping, obj: CatalogObject) -> InstanceProperties:
        schema = self.registry.schema.get(obj.type)
        values: InstanceProperties = {}
        for prop in properties:
            if prop.is_custom:
                value = derivations[prop.generic](obj, mapping)
            else:
                kind = schema.kind_of(prop.external) if schema else None
                value = to_property_value(obj.get(prop.external), kind, prop.enum_type)
            if value is not None:
                values[prop.generic] = value
        return values

    def classifications_for(self, mapping: EntityMapping, obj: CatalogObject) -> List[Classification]:
        """Classifications whose presence test holds for the object."""
        found = []
        for classification in self.registry.classification_mappings_for(mapping):
            if classification.is_present(obj):
                found.append(self.materialize_classification(classification, obj))
        return found

    def materialize_classification(
        self, classification: ClassificationMapping, obj: CatalogObject
    ) -> Classification:
        return Classification(
            name=classification.generic_type,
            properties=self._properties(
                classification.properties, classification.derivations, classification, obj
            ),
            created_by=obj.get("created_by"),
            create_time=to_datetime(obj.get("created_on")),
            updated_by=obj.get("modified_by"),
            update_time=to_datetime(obj.get("modified_on")),
        )

    # ------------------------------------------------------------------
    # Relationships
    # ------------------------------------------------------------------

    def entity_proxy(self, endpoint: RelationshipEndpoint, ref: Endpoint) -> EntityProxy:
        identity = Identity(ref.type, ref.id)
        return EntityProxy(
            guid=encode_prefixed(endpoint.prefix, ref.id),
            type_name=endpoint.entity_type,
            metadata_collection_id=self.metadata_collection_id,
            unique_properties={
                "qualifiedName": PrimitiveValue(identity.qualified_name(endpoint.prefix)),
            },
        )

    def _as_object(self, ref: Endpoint) -> Optional[CatalogObject]:
        if isinstance(ref, CatalogObject):
            return ref
        return self.transport.get_object(ref.id)

    def materialize_relationship(
        self,
        mapping: RelationshipMapping,
        one: Endpoint,
        two: Endpoint,
        backing: Optional[CatalogObject] = None,
    ) -> Relationship:
        """Build a relationship between two catalog objects.

        Args:
            mapping: Relationship mapping selected for the endpoint types
            one: Object (or reference) at end one
            two: Object (or reference) at end two
            backing: The object carrying both ends of a self-contained mapping
        """
        if mapping.self_contained:
            guid = encode_relationship_id(backing.id, backing.id, mapping.generic_type)
            holder: Optional[CatalogObject] = backing
        else:
            guid = encode_relationship_id(
                encode_prefixed(mapping.end_one.prefix, one.id),
                encode_prefixed(mapping.end_two.prefix, two.id),
                mapping.generic_type,
            )
            holder = None
            if mapping.properties:
                holder = self._as_object(one if mapping.properties_end == 1 else two)

        properties: InstanceProperties = {}
        if holder is not None and mapping.properties:
            properties = self._properties(mapping.properties, mapping.derivations, mapping, holder)

        return Relationship(
            guid=guid,
            type_name=mapping.generic_type,
            metadata_collection_id=self.metadata_collection_id,
            entity_one=self.entity_proxy(mapping.end_one, one),
            entity_two=self.entity_proxy(mapping.end_two, two),
            properties=properties,
            created_by=backing.get("created_by") if backing else None,
            create_time=to_datetime(backing.get("created_on")) if backing else None,
            updated_by=backing.get("modified_by") if backing else None,
            update_time=to_datetime(backing.get("modified_on")) if backing else None,
        )

    def relationships_for_entity(
        self,
        mapping: EntityMapping,
        obj: CatalogObject,
        relationship_type: Optional[str] = None,
    ) -> Iterator[Relationship]:
        """Every relationship reachable from the object's linkage fields."""
        for rel in self.registry.relationship_mappings_for_entity(mapping):
            if relationship_type and rel.generic_type != relationship_type:
                continue
            for end in rel.ends_accepting(mapping.external_type, mapping.prefix):
                yield from self._relationships_from_end(rel, end, obj)

    def _relationships_from_end(
        self, rel: RelationshipMapping, end: int, obj: CatalogObject
    ) -> Iterator[Relationship]:
        here = rel.endpoint(end)
        there = rel.endpoint(3 - end)

        def ordered(other: Endpoint):
            return (obj, other) if end == 1 else (other, obj)

        if rel.self_contained:
            for ref in obj.references(here.backlink):
                if ref.type != rel.backing_type:
                    continue
                backing = self.transport.get_object(ref.id)
                if backing is None or backing.is_placeholder:
                    logger.debug("Backing object %s of %s vanished", ref.id, rel.generic_type)
                    continue
                other = backing.reference(there.link_field)
                if other is None or not there.accepts(other.type, there.prefix):
                    continue
                yield self.materialize_relationship(rel, *ordered(other), backing=backing)
        elif here.link_field == SELF:
            yield self.materialize_relationship(rel, *ordered(obj))
        elif here.link_field:
            for ref in obj.references(here.link_field):
                if not there.accepts(ref.type, there.prefix):
                    continue
                yield self.materialize_relationship(rel, *ordered(ref))

    # ------------------------------------------------------------------
    # Paging
    # ------------------------------------------------------------------

    def drain_pages(
        self,
        query: CatalogQuery,
        page_budget: int,
        materialize: Callable[[CatalogObject], Optional[T]],
    ) -> List[T]:
        """Run a search and materialize results page by page.

        Placeholder items are skipped without using budget. Stops once
        ``page_budget`` instances are collected (0 means no limit), when the
        catalog reports no further pages, or on an empty page.
        """
        results: List[T] = []
        page = self.transport.search(query)
        while page.items:
            for item in page.items:
                if item.is_placeholder:
                    logger.debug("Skipping placeholder object %s", item.id)
                    continue
                instance = materialize(item)
                if instance is None:
                    continue
                results.append(instance)
                if page_budget and len(results) >= page_budget:
                    return results
            if not page.has_more:
                break
            page = self.transport.next_page(page)
        return results
