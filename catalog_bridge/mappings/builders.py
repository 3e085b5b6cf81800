"""Builder table utilities."""

from __future__ import annotations

from typing import Callable, Dict, List, Tuple

from catalog_bridge.lib.registry import Builder
from catalog_bridge.lib.types import TypeDefCategory

STANDARD_BUILDERS: Dict[Tuple[TypeDefCategory, str], Builder] = {}


def register_builder(category: TypeDefCategory, generic_type: str) -> Callable[[Builder], Builder]:
    """Register the mapping builder for a generic type."""

    def decorator(fn: Builder) -> Builder:
        STANDARD_BUILDERS[(category, generic_type)] = fn
        return fn

    return decorator


def list_implemented_types() -> List[str]:
    """List the generic types with a registered builder."""

    return sorted(name for _, name in STANDARD_BUILDERS)
