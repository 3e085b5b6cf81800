"""Identifier encoding for generic instances.

Three shapes of generic identifier exist:

- a bare catalog id, e.g. ``1-2-3``
- a prefixed id for a synthesized entity, e.g. ``__|AT|__1-2-3``
- a composite relationship id, e.g. ``1-2-3{(SemanticAssignment)}4-5-6``

The bracket markers never occur in ids issued by the catalog, so decoding an
unprefixed id is always a no-op.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Tuple

__all__ = [
    "PREFIX_OPEN",
    "PREFIX_CLOSE",
    "RELATIONSHIP_OPEN",
    "RELATIONSHIP_CLOSE",
    "Identity",
    "prefix_marker",
    "encode_prefixed",
    "decode_prefix",
    "decode_external_id",
    "is_generated",
    "encode_relationship_id",
    "decode_relationship_id",
]

PREFIX_OPEN = "__|"
PREFIX_CLOSE = "|__"
RELATIONSHIP_OPEN = "{("
RELATIONSHIP_CLOSE = ")}"

_RELATIONSHIP_ID = re.compile(
    r"^(?P<one>.+?)" + re.escape(RELATIONSHIP_OPEN)
    + r"(?P<name>[^(){}]+)" + re.escape(RELATIONSHIP_CLOSE) + r"(?P<two>.+)$"
)
_IDENTITY = re.compile(r"^\((?P<type>[A-Za-z0-9_]+)\)=(?P<id>.+)$")


def prefix_marker(prefix: str) -> str:
    """Return the full marker text for a prefix, e.g. ``__|AT|__``."""
    return f"{PREFIX_OPEN}{prefix}{PREFIX_CLOSE}"


def encode_prefixed(prefix: Optional[str], external_id: str) -> str:
    """Build the generic id for an external id, applying a prefix if any."""
    if not prefix:
        return external_id
    if PREFIX_CLOSE in prefix:
        raise ValueError(f"Prefix may not contain '{PREFIX_CLOSE}': {prefix!r}")
    return prefix_marker(prefix) + external_id


def is_generated(identifier: Optional[str]) -> bool:
    """True when the id carries a synthesized-entity prefix."""
    return bool(identifier) and identifier.startswith(PREFIX_OPEN)


def decode_prefix(identifier: Optional[str]) -> Optional[str]:
    """Return the prefix of a generated id, or None for a bare id."""
    if not is_generated(identifier):
        return None
    end = identifier.find(PREFIX_CLOSE, len(PREFIX_OPEN))
    if end < 0:
        return None
    return identifier[len(PREFIX_OPEN):end]


def decode_external_id(identifier: Optional[str]) -> Optional[str]:
    """Return the catalog id behind a generic id, stripping any prefix."""
    if not is_generated(identifier):
        return identifier
    end = identifier.find(PREFIX_CLOSE, len(PREFIX_OPEN))
    if end < 0:
        return identifier
    return identifier[end + len(PREFIX_CLOSE):]


def encode_relationship_id(
    endpoint_one_id: str, endpoint_two_id: str, relationship_name: str
) -> str:
    """Build the composite id of a relationship between two generic ids."""
    for part in (endpoint_one_id, endpoint_two_id, relationship_name):
        if RELATIONSHIP_OPEN in part or RELATIONSHIP_CLOSE in part:
            raise ValueError(f"Relationship id component contains a marker: {part!r}")
    return f"{endpoint_one_id}{RELATIONSHIP_OPEN}{relationship_name}{RELATIONSHIP_CLOSE}{endpoint_two_id}"


def decode_relationship_id(identifier: Optional[str]) -> Optional[Tuple[str, str, str]]:
    """Split a composite relationship id into (one, two, relationship name).

    Returns None if the id is not a composite relationship id.
    """
    if not identifier:
        return None
    match = _RELATIONSHIP_ID.match(identifier)
    if match is None:
        return None
    return match.group("one"), match.group("two"), match.group("name")


@dataclass(frozen=True)
class Identity:
    """Catalog-wide identity of an object: its type and its id.

    Rendered as ``(data_file)=1-2-3`` and used as the qualified name of
    every mapped entity. Synthesized entities prefix it with their marker.
    """

    external_type: str
    external_id: str

    def __str__(self) -> str:
        return f"({self.external_type})={self.external_id}"

    @classmethod
    def parse(cls, text: Optional[str]) -> Optional["Identity"]:
        """Parse an identity string, returning None if it is not one."""
        if not text:
            return None
        match = _IDENTITY.match(text)
        if match is None:
            return None
        return cls(match.group("type"), match.group("id"))

    def qualified_name(self, prefix: Optional[str] = None) -> str:
        """Qualified name for the entity mapped with the given prefix."""
        return encode_prefixed(prefix, str(self))
