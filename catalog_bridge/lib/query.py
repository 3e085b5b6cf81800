"""Translation of generic match requests into catalog searches.

The translator turns typed property matches, a match mode and classification
filters into a catalog condition tree for one mapping definition at a time.
Requests spanning several mappings (an abstract supertype, or no type at
all) are translated per mapping; the caller runs each search separately and
concatenates the results.

String values are interpreted as regular expressions in one of four literal
shapes:

    \\Qfoo\\E          exact        ->  = foo
    .*\\Qfoo\\E.*      contains     ->  like %foo%
    \\Qfoo\\E.*        starts with  ->  like foo%
    .*\\Qfoo\\E        ends with    ->  like %foo

Unquoted literals with escaped metacharacters work the same way. Any other
regular expression raises FunctionNotSupportedError.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import FrozenSet, Iterable, List, Optional, Sequence, Tuple, Union

from catalog_bridge.lib.errors import FunctionNotSupportedError
from catalog_bridge.lib.ids import Identity, decode_external_id, decode_prefix
from catalog_bridge.lib.mapping import AUDIT_FIELDS, ClassificationMapping, EntityMapping
from catalog_bridge.lib.registry import MappingRegistry
from catalog_bridge.lib.search import (
    EQUALS,
    LIKE_CONTAINS,
    LIKE_ENDS_WITH,
    LIKE_STARTS_WITH,
    CatalogObject,
    CatalogQuery,
    Condition,
    ConditionSet,
    Sort,
)
from catalog_bridge.lib.types import (
    ArrayValue,
    EnumValue,
    InstanceProperties,
    MapValue,
    MatchCriteria,
    PrimitiveKind,
    PrimitiveValue,
    PropertyValue,
    SequencingOrder,
    unquote_literal,
)

logger = logging.getLogger(__name__)

__all__ = [
    "QUALIFIED_NAME",
    "RegexShape",
    "parse_regex",
    "conditions_for_value",
    "epoch_millis",
    "sort_for",
    "IdentityLookup",
    "identity_lookup",
    "LocalFilter",
    "TranslatedQuery",
    "QueryTranslator",
]

# Canonical identity property of every entity.
QUALIFIED_NAME = "qualifiedName"

ConditionNode = Union[Condition, ConditionSet]


class RegexShape(Enum):
    """Literal regular expression shapes the catalog can search for."""

    EXACT = EQUALS
    CONTAINS = LIKE_CONTAINS
    STARTS_WITH = LIKE_STARTS_WITH
    ENDS_WITH = LIKE_ENDS_WITH

    @property
    def operator(self) -> str:
        return self.value


def _literal_or_fail(fragment: str, regex: str) -> str:
    literal = unquote_literal(fragment)
    if literal is None:
        raise FunctionNotSupportedError(
            f"Regular expression '{regex}' is not a literal match the catalog can search",
            suggestion="Use an exact, contains, starts-with or ends-with literal",
        )
    return literal


def parse_regex(regex: str) -> Tuple[RegexShape, str]:
    """Classify a string match value into a shape and its literal.

    Raises:
        FunctionNotSupportedError: If the expression is not one of the shapes
    """
    if regex == ".*":
        return RegexShape.CONTAINS, ""
    if len(regex) >= 2 and regex.startswith("*") and regex.endswith("*"):
        # glob-style shorthand for contains
        return RegexShape.CONTAINS, _literal_or_fail(regex[1:-1], regex)

    leading = regex.startswith(".*")
    trailing = regex.endswith(".*") and not regex.endswith("\\.*") and len(regex) >= (4 if leading else 2)

    if leading and trailing:
        return RegexShape.CONTAINS, _literal_or_fail(regex[2:-2], regex)
    if leading:
        return RegexShape.ENDS_WITH, _literal_or_fail(regex[2:], regex)
    if trailing:
        return RegexShape.STARTS_WITH, _literal_or_fail(regex[:-2], regex)
    return RegexShape.EXACT, _literal_or_fail(regex, regex)


def epoch_millis(value: datetime) -> int:
    """Epoch milliseconds of a datetime; naive values are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp() * 1000)


def _date_literal(value) -> str:
    if isinstance(value, datetime):
        return str(epoch_millis(value))
    return str(int(value))


def conditions_for_value(property_name: str, value: PropertyValue) -> List[Condition]:
    """Leaf conditions matching one property value on one catalog field.

    Map values recurse using each key as the field; array values recurse
    with the same field.
    """
    if isinstance(value, PrimitiveValue):
        if value.value is None:
            return []
        if value.kind in (PrimitiveKind.STRING, PrimitiveKind.CHAR):
            shape, literal = parse_regex(str(value.value))
            return [Condition(property_name, shape.operator, literal)]
        if value.kind == PrimitiveKind.DATE:
            return [Condition(property_name, EQUALS, _date_literal(value.value))]
        if value.kind == PrimitiveKind.BOOLEAN:
            return [Condition(property_name, EQUALS, "true" if value.value else "false")]
        return [Condition(property_name, EQUALS, str(value.value))]
    if isinstance(value, EnumValue):
        return [Condition(property_name, EQUALS, value.symbolic_name)]
    if isinstance(value, MapValue):
        conditions: List[Condition] = []
        for key, item in value.values.items():
            conditions.extend(conditions_for_value(key, item))
        return conditions
    if isinstance(value, ArrayValue):
        conditions = []
        for item in value.values:
            conditions.extend(conditions_for_value(property_name, item))
        return conditions
    raise FunctionNotSupportedError(
        f"Unsupported property value type {type(value).__name__}",
        property_name=property_name,
    )


_SORTS = {
    SequencingOrder.GUID: Sort("_id", ascending=True),
    SequencingOrder.CREATION_DATE_RECENT: Sort("created_on", ascending=False),
    SequencingOrder.CREATION_DATE_OLDEST: Sort("created_on", ascending=True),
    SequencingOrder.LAST_UPDATE_RECENT: Sort("modified_on", ascending=False),
    SequencingOrder.LAST_UPDATE_OLDEST: Sort("modified_on", ascending=True),
}


def sort_for(
    sequencing_order: Optional[SequencingOrder],
    sequencing_property: Optional[str] = None,
) -> Optional[Sort]:
    """Catalog sort key for a sequencing order.

    Raises:
        FunctionNotSupportedError: For property-based sequencing
    """
    if sequencing_property or sequencing_order in (
        SequencingOrder.PROPERTY_ASCENDING,
        SequencingOrder.PROPERTY_DESCENDING,
    ):
        raise FunctionNotSupportedError(
            "Sequencing by property is not supported by the catalog",
            property_name=sequencing_property,
            suggestion="Use GUID, creation date or last update date ordering",
        )
    if sequencing_order is None:
        return None
    return _SORTS.get(sequencing_order)


@dataclass(frozen=True)
class IdentityLookup:
    """A qualified name decoded straight into a catalog object reference."""

    external_type: str
    external_id: str
    prefix: Optional[str] = None


def identity_lookup(match_properties: Optional[InstanceProperties]) -> Optional[IdentityLookup]:
    """Decode a lone exact or starts-with qualifiedName match, if that is the request."""
    if not match_properties or len(match_properties) != 1:
        return None
    value = match_properties.get(QUALIFIED_NAME)
    if not isinstance(value, PrimitiveValue) or value.kind != PrimitiveKind.STRING:
        return None
    try:
        shape, literal = parse_regex(str(value.value))
    except FunctionNotSupportedError:
        return None
    if shape not in (RegexShape.EXACT, RegexShape.STARTS_WITH):
        return None
    identity = Identity.parse(decode_external_id(literal))
    if identity is None:
        return None
    return IdentityLookup(identity.external_type, identity.external_id, decode_prefix(literal))


@dataclass(frozen=True)
class LocalFilter:
    """Test of a derived property the catalog cannot search.

    The catalog query narrows the candidates with a looser condition on the
    fields the derivation reads; each candidate's derived value is then
    compared here before it is returned.
    """

    property_name: str
    shape: RegexShape
    literal: str

    def matches(self, mapping: EntityMapping, obj: CatalogObject) -> bool:
        derivation = mapping.derivations.get(self.property_name)
        value = derivation(obj, mapping) if derivation else None
        if isinstance(value, EnumValue):
            text = value.symbolic_name
        elif isinstance(value, PrimitiveValue) and value.value is not None:
            text = str(value.value)
        else:
            return False
        condition = Condition(self.property_name, self.shape.operator, self.literal)
        return condition.matches({self.property_name: text})


@dataclass
class TranslatedQuery:
    """Conditions and projection for searching one mapping.

    ``excluded`` is set when no object of the mapping can satisfy the
    request, in which case the search is skipped altogether. Objects the
    catalog returns must also pass ``local_filters``; with ``negate_local``
    they must fail every one of them instead.
    """

    mapping: EntityMapping
    conditions: ConditionSet = field(default_factory=ConditionSet)
    properties: List[str] = field(default_factory=list)
    excluded: bool = False
    local_filters: List[LocalFilter] = field(default_factory=list)
    negate_local: bool = False

    def accepts(self, obj: CatalogObject) -> bool:
        if self.negate_local:
            return not any(f.matches(self.mapping, obj) for f in self.local_filters)
        return all(f.matches(self.mapping, obj) for f in self.local_filters)


class QueryTranslator:
    """Builds catalog queries for the mappings held by a registry."""

    def __init__(
        self,
        registry: MappingRegistry,
        free_text_exclusions: Iterable[str] = (),
    ) -> None:
        self.registry = registry
        self.free_text_exclusions: FrozenSet[str] = frozenset(free_text_exclusions)

    def projection(self, mapping: EntityMapping) -> List[str]:
        """Fields to request for a mapping: mapped, audit and classification fields."""
        fields = list(mapping.projection)
        schema = self.registry.schema
        for name in AUDIT_FIELDS:
            if schema.has_field(mapping.external_type, name) and name not in fields:
                fields.append(name)
        for classification in self.registry.classification_mappings_for(mapping):
            for name in classification.projection:
                if name not in fields:
                    fields.append(name)
        return fields

    def translate_match(
        self,
        mapping: EntityMapping,
        match_properties: Optional[InstanceProperties],
        match_criteria: Optional[MatchCriteria] = None,
    ) -> TranslatedQuery:
        """Translate typed property matches for one mapping.

        Args:
            mapping: Mapping definition being searched
            match_properties: Generic property name -> value to match
            match_criteria: ALL (AND), ANY (OR) or NONE (AND of negations)

        Raises:
            FunctionNotSupportedError: If a value cannot be searched
        """
        criteria = match_criteria or MatchCriteria.ALL
        conditions = ConditionSet(
            match_any=criteria == MatchCriteria.ANY,
            negate_all=criteria == MatchCriteria.NONE,
        )
        translated = TranslatedQuery(mapping, conditions, self.projection(mapping))
        if not match_properties:
            return translated

        satisfiable = 0
        locally_filtered = 0
        for name, value in match_properties.items():
            nodes = self._property_conditions(mapping, name, value)
            if nodes is None:
                logger.debug(
                    "%s.%s cannot match any %s object",
                    mapping.generic_type,
                    name,
                    mapping.external_type,
                )
                if criteria == MatchCriteria.ALL:
                    translated.excluded = True
                    return translated
                continue
            satisfiable += 1
            local = [n for n in nodes if isinstance(n, LocalFilter)]
            if not local:
                conditions.extend(nodes)
                continue
            locally_filtered += 1
            translated.local_filters.extend(local)
            if criteria == MatchCriteria.NONE:
                # the negated prefilter would also drop objects that fail the filter
                translated.negate_local = True
            else:
                conditions.extend([n for n in nodes if not isinstance(n, LocalFilter)])

        if criteria == MatchCriteria.ANY and satisfiable == 0:
            translated.excluded = True
        elif criteria == MatchCriteria.ANY and locally_filtered and satisfiable > 1:
            raise FunctionNotSupportedError(
                f"{mapping.generic_type} properties tested after the search cannot be "
                "combined with other properties in an ANY match",
                type_name=mapping.generic_type,
                suggestion="Match those properties on their own or use ALL",
            )
        return translated

    def _property_conditions(
        self, mapping: EntityMapping, name: str, value: PropertyValue
    ) -> Optional[List[Union[ConditionNode, LocalFilter]]]:
        prop = mapping.property_mapping(name)
        if prop is None:
            return None
        try:
            if prop.is_custom:
                builder = mapping.search_builders.get(name)
                if builder is None:
                    raise FunctionNotSupportedError(
                        f"Searching {mapping.generic_type}.{name} is not supported",
                    )
                return builder(mapping, name, value)
            return list(conditions_for_value(prop.external, value))
        except FunctionNotSupportedError as exc:
            raise exc.with_context(type_name=mapping.generic_type, property_name=name)

    @staticmethod
    def _applies(mapping: EntityMapping, classification: Optional[ClassificationMapping], name: str) -> bool:
        return (
            classification is not None
            and name in mapping.classifications
            and classification.applies_to(mapping.external_type)
        )

    def classification_conditions(
        self, mapping: EntityMapping, classification_names: Sequence[str]
    ) -> Optional[ConditionSet]:
        """AND-combined presence tests for classification filters.

        Returns None when some requested classification cannot apply to the
        mapping's catalog type.
        """
        conditions = ConditionSet()
        for name in classification_names:
            classification = self.registry.classification_mapping(name)
            if not self._applies(mapping, classification, name):
                return None
            conditions.add(classification.presence_conditions())
        return conditions

    def with_classifications(
        self, translated: TranslatedQuery, classification_names: Optional[Sequence[str]]
    ) -> TranslatedQuery:
        """Append classification filters as an AND-nested subtree."""
        if translated.excluded or not classification_names:
            return translated
        filters = self.classification_conditions(translated.mapping, classification_names)
        if filters is None:
            translated.excluded = True
            return translated
        if translated.conditions.is_empty:
            translated.conditions = filters
        else:
            translated.conditions = ConditionSet([translated.conditions, filters])
        return translated

    def translate_classification_match(
        self,
        mapping: EntityMapping,
        classification_name: str,
        match_properties: Optional[InstanceProperties],
        match_criteria: Optional[MatchCriteria] = None,
    ) -> TranslatedQuery:
        """Entities carrying a classification whose properties match."""
        translated = TranslatedQuery(mapping, properties=self.projection(mapping))
        classification = self.registry.classification_mapping(classification_name)
        if not self._applies(mapping, classification, classification_name):
            translated.excluded = True
            return translated

        criteria = match_criteria or MatchCriteria.ALL
        property_set = ConditionSet(
            match_any=criteria == MatchCriteria.ANY,
            negate_all=criteria == MatchCriteria.NONE,
        )
        for name, value in (match_properties or {}).items():
            prop = classification.property_mapping(name)
            if prop is None or prop.is_custom:
                if criteria == MatchCriteria.ALL:
                    translated.excluded = True
                    return translated
                continue
            try:
                property_set.extend(conditions_for_value(prop.external, value))
            except FunctionNotSupportedError as exc:
                raise exc.with_context(type_name=classification_name, property_name=name)

        if match_properties and criteria == MatchCriteria.ANY and property_set.is_empty:
            translated.excluded = True
            return translated

        translated.conditions = ConditionSet([classification.presence_conditions()])
        if not property_set.is_empty:
            translated.conditions.add(property_set)
        return translated

    def translate_free_text(self, mapping: EntityMapping, regex: str) -> TranslatedQuery:
        """OR across every free-text searchable string field of the catalog type."""
        shape, literal = parse_regex(regex)
        translated = TranslatedQuery(mapping, ConditionSet(match_any=True), self.projection(mapping))
        fields = self.registry.schema.free_text_fields(
            mapping.external_type, self.free_text_exclusions
        )
        if not fields:
            translated.excluded = True
            return translated
        for name in fields:
            translated.conditions.add(Condition(name, shape.operator, literal))
        return translated

    def build_query(
        self,
        translated: TranslatedQuery,
        begin: int = 0,
        page_size: int = 100,
        sort: Optional[Sort] = None,
    ) -> CatalogQuery:
        return CatalogQuery(
            types=(translated.mapping.external_type,),
            properties=list(translated.properties),
            conditions=translated.conditions,
            begin=begin,
            page_size=page_size,
            sort=sort,
        )
