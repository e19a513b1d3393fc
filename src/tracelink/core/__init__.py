"""Core domain models for tracelink."""

from tracelink.core.models import (
    EntityKind,
    ImportStats,
    Link,
    LinkType,
    OrphanedItem,
    PathNode,
    TraceabilityEntity,
    TraceabilityMatrix,
    TraceabilityPath,
)

__all__ = [
    "EntityKind",
    "ImportStats",
    "Link",
    "LinkType",
    "OrphanedItem",
    "PathNode",
    "TraceabilityEntity",
    "TraceabilityMatrix",
    "TraceabilityPath",
]
