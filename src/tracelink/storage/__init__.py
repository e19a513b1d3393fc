"""Link persistence and write-path validation."""

from tracelink.storage.link_store import InMemoryLinkStore, JsonFileLinkStore, LinkStore
from tracelink.storage.repository import LinkRepository
from tracelink.storage.validation import GraphValidator, ValidationIssue, check_link_graph

__all__ = [
    "GraphValidator",
    "InMemoryLinkStore",
    "JsonFileLinkStore",
    "LinkRepository",
    "LinkStore",
    "ValidationIssue",
    "check_link_graph",
]
