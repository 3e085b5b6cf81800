"""Structured exception hierarchy for the metadata collection.

Every error raised to a caller of :class:`MetadataCollection` is one of the
taxonomy classes below. Internal-only errors (transport faults, objects the
catalog should never have returned, broken mapping definitions) are
converted at the facade boundary.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

__all__ = [
    "BridgeError",
    "InvalidParameterError",
    "TypeNotKnownError",
    "TypeNotSupportedError",
    "EntityNotKnownError",
    "RelationshipNotKnownError",
    "ClassificationError",
    "FunctionNotSupportedError",
    "RepositoryError",
    "InvalidEntityFromStoreError",
    "CatalogTransportError",
    "MappingDefinitionError",
]


class BridgeError(Exception):
    """Base exception for all catalog bridge errors.

    Carries the operation, generic type, identifier and property involved
    so that callers and logs can see where a request failed.
    """

    def __init__(
        self,
        message: str,
        *,
        operation: Optional[str] = None,
        type_name: Optional[str] = None,
        identifier: Optional[str] = None,
        property_name: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        self.message = message
        self.operation = operation
        self.type_name = type_name
        self.identifier = identifier
        self.property_name = property_name
        self.details = details or {}
        self.suggestion = suggestion
        super().__init__(self._format())

    def _format(self) -> str:
        parts = [self.message]

        if self.operation or self.type_name:
            context = f"{self.operation or '?'}:{self.type_name or '?'}"
            parts.insert(0, f"[{context}]")

        detail_lines = []
        if self.identifier:
            detail_lines.append(f"  identifier: {self.identifier}")
        if self.property_name:
            detail_lines.append(f"  property: {self.property_name}")
        detail_lines.extend(f"  {k}: {v}" for k, v in self.details.items())
        if detail_lines:
            parts.append("\nDetails:")
            parts.extend(detail_lines)

        if self.suggestion:
            parts.append(f"\nSuggestion: {self.suggestion}")

        return "\n".join(parts) if len(parts) > 1 else self.message

    def with_context(self, **context: Any) -> "BridgeError":
        """Fill in any context fields that are still unset and return self."""
        for key in ("operation", "type_name", "identifier", "property_name"):
            if getattr(self, key) is None and context.get(key) is not None:
                setattr(self, key, context[key])
        self.args = (self._format(),)
        return self

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for structured logging."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "operation": self.operation,
            "type_name": self.type_name,
            "identifier": self.identifier,
            "property_name": self.property_name,
            "details": self.details,
            "suggestion": self.suggestion,
        }


class InvalidParameterError(BridgeError):
    """A request parameter is missing or malformed. Never worth retrying."""


class TypeNotKnownError(BridgeError):
    """The generic type is not known to the registry at all."""


class TypeNotSupportedError(BridgeError):
    """The generic type is known but has no implementation in the catalog."""


class EntityNotKnownError(BridgeError):
    """No entity exists for the requested identifier."""


class RelationshipNotKnownError(BridgeError):
    """No relationship exists for the requested identifier."""


class ClassificationError(BridgeError):
    """The classification is unknown or does not apply to the entity's type."""


class FunctionNotSupportedError(BridgeError):
    """The request needs a feature the catalog mapping does not implement."""


class RepositoryError(BridgeError):
    """The catalog failed, or returned something the mapping cannot handle."""

    def __init__(
        self,
        message: str,
        *,
        cause: Optional[Exception] = None,
        **kwargs: Any,
    ) -> None:
        self.cause = cause
        details = kwargs.pop("details", None) or {}
        if cause:
            details["cause"] = str(cause)
            details["cause_type"] = type(cause).__name__
        super().__init__(message, details=details, **kwargs)


class InvalidEntityFromStoreError(RepositoryError):
    """The catalog returned an object of its unspecified placeholder type."""


class CatalogTransportError(RepositoryError):
    """HTTP or protocol level failure talking to the catalog."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        url: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        self.status_code = status_code
        self.url = url
        details = kwargs.pop("details", None) or {}
        if status_code is not None:
            details["status_code"] = status_code
        if url:
            details["url"] = url
        super().__init__(message, details=details, **kwargs)


class MappingDefinitionError(BridgeError):
    """A mapping definition is inconsistent with the schema or the registry."""
