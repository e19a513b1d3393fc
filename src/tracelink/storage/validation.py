"""Link graph invariants.

``GraphValidator`` guards the write path: every new link must pass the
existence, cycle, contradictory-relationship and duplicate checks before it
is persisted. ``check_link_graph`` audits an already persisted collection
for the same invariants (useful when a store was edited by hand).
"""

from dataclasses import dataclass
from typing import Literal

from tracelink.core.models import Link, LinkType
from tracelink.entities.resolver import EntityResolver
from tracelink.errors import ConflictError, NotFoundError, ValidationError

# Link types that must not coexist with a Conflicts link between the same pair
_AFFIRMING_TYPES = (LinkType.VERIFIES, LinkType.IMPLEMENTS)


def _dependency_adjacency(links: list[Link]) -> dict[str, list[str]]:
    adjacency: dict[str, list[str]] = {}
    for link in links:
        if link.link_type.is_dependency:
            adjacency.setdefault(link.source_id, []).append(link.target_id)
    return adjacency


def would_create_cycle(links: list[Link], source_id: str, target_id: str) -> bool:
    """Return True if adding ``source_id -> target_id`` closes a dependency cycle.

    Walks existing DependsOn/DerivedFrom edges depth-first from *target_id*
    looking for *source_id*. The visited set bounds the walk by the number
    of distinct entities, so corrupted cyclic data cannot make it loop.

    Args:
        links: Current link collection.
        source_id: Source of the proposed edge.
        target_id: Target of the proposed edge.

    Returns:
        True if *source_id* is reachable from *target_id* (or they are the
        same entity).
    """
    if source_id == target_id:
        return True

    adjacency = _dependency_adjacency(links)
    visited: set[str] = set()
    stack = [target_id]
    while stack:
        current = stack.pop()
        if current == source_id:
            return True
        if current in visited:
            continue
        visited.add(current)
        stack.extend(n for n in adjacency.get(current, []) if n not in visited)
    return False


class GraphValidator:
    """Check a proposed link against the current collection.

    Args:
        resolver: Entity resolver used for existence checks.
    """

    def __init__(self, resolver: EntityResolver) -> None:
        self.resolver = resolver

    def validate_entities_exist(self, source_id: str, target_id: str) -> None:
        """Ensure both endpoints resolve to existing entities.

        Raises:
            ValidationError: If an ID has an unknown prefix.
            NotFoundError: If either entity does not exist.
        """
        if not self.resolver.exists(source_id):
            raise NotFoundError(f"Source entity {source_id} not found")
        if not self.resolver.exists(target_id):
            raise NotFoundError(f"Target entity {target_id} not found")

    def prevent_circular_dependencies(
        self, links: list[Link], source_id: str, target_id: str, link_type: LinkType
    ) -> None:
        """Reject self-references and dependency cycles.

        A self-reference is rejected for every link type. For DependsOn and
        DerivedFrom the proposed edge is also rejected if it would let one
        walk back from *target_id* to *source_id*.

        Raises:
            ConflictError: If the link would create a cycle.
        """
        if source_id == target_id:
            raise ConflictError(f"Cannot link entity {source_id} to itself")
        if link_type.is_dependency and would_create_cycle(links, source_id, target_id):
            raise ConflictError(
                f"Creating link from {source_id} to {target_id} would create a circular dependency"
            )

    def check_conflicting_relationship(
        self, links: list[Link], source_id: str, target_id: str, link_type: LinkType
    ) -> None:
        """Reject a Conflicts link between entities that verify/implement each other.

        Raises:
            ConflictError: If a Verifies or Implements link already joins the
                pair in either direction.
        """
        if link_type != LinkType.CONFLICTS:
            return
        pair = {source_id, target_id}
        for link in links:
            if link.link_type in _AFFIRMING_TYPES and {link.source_id, link.target_id} == pair:
                raise ConflictError(
                    "Cannot create conflict link between entities with verification relationship"
                )

    def check_duplicate_links(
        self, links: list[Link], source_id: str, target_id: str, link_type: LinkType
    ) -> None:
        """Reject a link whose (source, target, type) already exists.

        Raises:
            ConflictError: If the same link is already stored.
        """
        key = (source_id, target_id, link_type)
        if any(link.key == key for link in links):
            raise ConflictError(
                f"Duplicate link already exists from {source_id} to {target_id} with type {link_type}"
            )

    def validate(self, links: list[Link], source_id: str, target_id: str, link_type: LinkType) -> None:
        """Run every check, in order, for a proposed link.

        Raises:
            ValidationError: Unknown entity prefix.
            NotFoundError: Missing endpoint.
            ConflictError: Cycle, contradictory relationship, or duplicate.
        """
        self.validate_entities_exist(source_id, target_id)
        self.prevent_circular_dependencies(links, source_id, target_id, link_type)
        self.check_conflicting_relationship(links, source_id, target_id, link_type)
        self.check_duplicate_links(links, source_id, target_id, link_type)


@dataclass
class ValidationIssue:
    """A single problem found in a persisted link collection.

    Attributes:
        level (str): Severity, ``"error"`` or ``"warning"``.
        link_id (str | None): ID of the offending link, if one applies.
        entity_id (str | None): Entity involved, if one applies.
        message (str): Human-readable description of the issue.
    """

    level: Literal["error", "warning"]
    link_id: str | None
    entity_id: str | None
    message: str

    def __str__(self) -> str:
        """Return a human-readable representation of the issue."""
        parts = [f"[{self.level.upper()}]"]
        if self.entity_id:
            parts.append(self.entity_id)
        if self.link_id:
            parts.append(f"(link {self.link_id})")
        parts.append(self.message)
        return " ".join(parts)


def check_link_graph(links: list[Link], resolver: EntityResolver | None = None) -> list[ValidationIssue]:
    """Audit a link collection for invariant violations.

    Reports self-links, duplicate (source, target, type) tuples, dependency
    cycles, unknown entity prefixes and, when *resolver* is given, endpoints
    that no longer exist.

    Args:
        links: The collection to audit.
        resolver: Optional entity resolver for dangling-endpoint checks.

    Returns:
        List of issues, empty when the collection is consistent.
    """
    issues: list[ValidationIssue] = []

    seen: dict[tuple[str, str, LinkType], str] = {}
    for link in links:
        if link.source_id == link.target_id:
            issues.append(ValidationIssue("error", link.id, link.source_id, "link points to itself"))
        if link.key in seen:
            issues.append(
                ValidationIssue(
                    "error",
                    link.id,
                    link.source_id,
                    f"duplicate of link {seen[link.key]} ({link.source_id} -> {link.target_id}, {link.link_type})",
                )
            )
        else:
            seen[link.key] = link.id

        if resolver is not None:
            for entity_id in (link.source_id, link.target_id):
                try:
                    if not resolver.exists(entity_id):
                        issues.append(ValidationIssue("warning", link.id, entity_id, "linked entity does not exist"))
                except ValidationError as e:
                    issues.append(ValidationIssue("error", link.id, entity_id, str(e)))

    issues.extend(_check_dependency_cycles(links))
    return issues


def _check_dependency_cycles(links: list[Link]) -> list[ValidationIssue]:
    """Detect cycles among DependsOn/DerivedFrom edges.

    Iterative DFS with three-color marking; each distinct cycle (by member
    set) is reported once. Self-loops are reported by the caller.
    """
    adjacency = {
        node: [n for n in targets if n != node] for node, targets in _dependency_adjacency(links).items()
    }
    nodes = set(adjacency)
    for targets in adjacency.values():
        nodes.update(targets)

    issues: list[ValidationIssue] = []
    reported: set[frozenset[str]] = set()
    WHITE, GRAY, BLACK = 0, 1, 2
    color = {node: WHITE for node in nodes}
    path: list[str] = []

    for start in sorted(nodes):
        if color[start] != WHITE:
            continue
        stack: list[tuple[str, int]] = [(start, 0)]
        color[start] = GRAY
        path.append(start)

        while stack:
            node, index = stack[-1]
            successors = adjacency.get(node, [])
            if index < len(successors):
                stack[-1] = (node, index + 1)
                nxt = successors[index]
                if color[nxt] == GRAY:
                    members = path[path.index(nxt) :]
                    key = frozenset(members)
                    if key not in reported:
                        reported.add(key)
                        issues.append(
                            ValidationIssue(
                                "error",
                                None,
                                nxt,
                                f"dependency cycle: {' -> '.join(members)} -> {nxt}",
                            )
                        )
                elif color[nxt] == WHITE:
                    color[nxt] = GRAY
                    path.append(nxt)
                    stack.append((nxt, 0))
            else:
                stack.pop()
                path.pop()
                color[node] = BLACK

    return issues
