"""Entity lookup ports and adapters."""

from tracelink.entities.resolver import EntityLookup, EntityRecord, EntityResolver, entity_kind_for
from tracelink.entities.stores import (
    DEFAULT_LAYOUTS,
    IndexLayout,
    InMemoryEntityLookup,
    JsonIndexEntityLookup,
    build_project_resolver,
)

__all__ = [
    "DEFAULT_LAYOUTS",
    "EntityLookup",
    "EntityRecord",
    "EntityResolver",
    "IndexLayout",
    "InMemoryEntityLookup",
    "JsonIndexEntityLookup",
    "build_project_resolver",
    "entity_kind_for",
]
