"""Catalog search model.

Query-side types (conditions, condition sets, sorts, the query itself) and
result-side types (catalog objects, references, pages) exchanged with the
catalog transport. Queries serialize to the catalog's JSON search payload;
results parse from its JSON responses.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

from catalog_bridge.lib.schema import PLACEHOLDER_TYPE

__all__ = [
    "EQUALS",
    "LIKE_CONTAINS",
    "LIKE_STARTS_WITH",
    "LIKE_ENDS_WITH",
    "IS_NULL",
    "Condition",
    "ConditionSet",
    "Sort",
    "CatalogQuery",
    "Reference",
    "CatalogObject",
    "SearchPage",
]

# Catalog search operators; {0} stands for the condition value.
EQUALS = "="
LIKE_CONTAINS = "like %{0}%"
LIKE_STARTS_WITH = "like {0}%"
LIKE_ENDS_WITH = "like %{0}"
IS_NULL = "isNull"


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Reference):
        return value.id
    if isinstance(value, dict) and "_id" in value:
        return str(value["_id"])
    return str(value)


@dataclass(frozen=True)
class Condition:
    """A single leaf condition: ``property operator value``."""

    property: str
    operator: str
    value: Optional[str] = None
    negated: bool = False

    def to_dict(self, negate: bool = False) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"property": self.property, "operator": self.operator}
        if self.value is not None:
            payload["value"] = self.value
        if self.negated != negate:
            payload["negated"] = True
        return payload

    def matches(self, fields: Dict[str, Any]) -> bool:
        """Evaluate this condition against an object's field values."""
        return self._test(fields.get(self.property)) != self.negated

    def _test(self, raw: Any) -> bool:
        if self.operator == IS_NULL:
            return raw is None or raw == "" or raw == []
        if isinstance(raw, list):
            return any(self._test(item) for item in raw)
        text = _as_text(raw)
        if text is None or self.value is None:
            return False
        if self.operator == EQUALS:
            return text == self.value
        haystack, needle = text.lower(), self.value.lower()
        if self.operator == LIKE_CONTAINS:
            return needle in haystack
        if self.operator == LIKE_STARTS_WITH:
            return haystack.startswith(needle)
        if self.operator == LIKE_ENDS_WITH:
            return haystack.endswith(needle)
        raise ValueError(f"Unknown catalog operator: {self.operator}")


@dataclass
class ConditionSet:
    """Boolean combination of conditions and nested condition sets.

    ``match_any`` selects OR instead of AND; ``negate_all`` negates every
    member before combining them.
    """

    conditions: List[Union[Condition, "ConditionSet"]] = field(default_factory=list)
    match_any: bool = False
    negate_all: bool = False

    def add(self, condition: Union[Condition, "ConditionSet"]) -> None:
        self.conditions.append(condition)

    def extend(self, conditions: List[Union[Condition, "ConditionSet"]]) -> None:
        self.conditions.extend(conditions)

    @property
    def is_empty(self) -> bool:
        return not self.conditions

    @property
    def operator(self) -> str:
        return "or" if self.match_any else "and"

    def to_dict(self, negate: bool = False) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "operator": self.operator,
            "conditions": [c.to_dict(negate=self.negate_all) for c in self.conditions],
        }
        if negate:
            payload["negated"] = True
        return payload

    def matches(self, fields: Dict[str, Any]) -> bool:
        """Evaluate the whole set against an object's field values."""
        if not self.conditions:
            return True
        results = (c.matches(fields) != self.negate_all for c in self.conditions)
        return any(results) if self.match_any else all(results)


@dataclass(frozen=True)
class Sort:
    """Single sort key of a catalog query."""

    property: str
    ascending: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {"property": self.property, "ascending": self.ascending}


@dataclass
class CatalogQuery:
    """A search against one catalog object type."""

    types: Tuple[str, ...]
    properties: List[str] = field(default_factory=list)
    conditions: ConditionSet = field(default_factory=ConditionSet)
    begin: int = 0
    page_size: int = 100
    sort: Optional[Sort] = None

    def to_payload(self) -> Dict[str, Any]:
        """Render the JSON body of the catalog search request."""
        payload: Dict[str, Any] = {
            "types": list(self.types),
            "properties": list(self.properties),
            "begin": self.begin,
            "pageSize": self.page_size,
        }
        if not self.conditions.is_empty:
            payload["where"] = self.conditions.to_dict()
        if self.sort is not None:
            payload["sorts"] = [self.sort.to_dict()]
        return payload


@dataclass(frozen=True)
class Reference:
    """Pointer from one catalog object to another."""

    id: str
    type: str
    name: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Reference":
        return cls(id=str(data["_id"]), type=data.get("_type", PLACEHOLDER_TYPE), name=data.get("_name"))


@dataclass
class CatalogObject:
    """An object returned by the catalog: id, type and requested fields."""

    id: str
    type: str
    name: Optional[str] = None
    fields: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_placeholder(self) -> bool:
        return self.type == PLACEHOLDER_TYPE

    def get(self, field_name: str, default: Any = None) -> Any:
        return self.fields.get(field_name, default)

    def reference(self, field_name: str) -> Optional[Reference]:
        """Return a single-valued reference field, or None."""
        value = self.fields.get(field_name)
        if isinstance(value, dict) and "_id" in value:
            return Reference.from_dict(value)
        return None

    def references(self, field_name: str) -> List[Reference]:
        """Return a reference-list field (plain or paged) as references."""
        value = self.fields.get(field_name)
        if isinstance(value, dict):
            if "items" in value:
                value = value["items"]
            elif "_id" in value:
                value = [value]
        if not isinstance(value, list):
            return []
        return [Reference.from_dict(item) for item in value if isinstance(item, dict) and "_id" in item]

    def to_reference(self) -> Reference:
        return Reference(self.id, self.type, self.name)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CatalogObject":
        fields = {k: v for k, v in data.items() if not k.startswith("_")}
        return cls(
            id=str(data["_id"]),
            type=data.get("_type", PLACEHOLDER_TYPE),
            name=data.get("_name"),
            fields=fields,
        )


@dataclass
class SearchPage:
    """One page of catalog search results."""

    items: List[CatalogObject] = field(default_factory=list)
    total: int = 0
    begin: int = 0
    page_size: int = 0
    has_more: bool = False
    next_url: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SearchPage":
        paging = data.get("paging") or {}
        return cls(
            items=[CatalogObject.from_dict(item) for item in data.get("items") or []],
            total=int(paging.get("numTotal", 0)),
            begin=int(paging.get("begin", 0)),
            page_size=int(paging.get("pageSize", 0)),
            has_more=paging.get("next") is not None,
            next_url=paging.get("next"),
        )
