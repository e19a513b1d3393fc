"""Forward and backward traceability trees."""

from tracelink.core.models import Link, PathNode, TraceabilityPath
from tracelink.entities.resolver import entity_kind_for
from tracelink.storage.repository import LinkRepository


def _index_links(links: list[Link], forward: bool) -> dict[str, list[Link]]:
    index: dict[str, list[Link]] = {}
    for link in links:
        key = link.source_id if forward else link.target_id
        index.setdefault(key, []).append(link)
    return index


def build_trace_tree(
    links: list[Link],
    root_id: str,
    forward: bool = True,
    max_depth: int | None = None,
) -> TraceabilityPath:
    """Build the traceability tree reachable from *root_id*.

    The walk uses an explicit stack so that arbitrarily deep (or corrupted,
    cyclic) link data cannot exhaust the interpreter's recursion limit.

    Each branch carries its own set of ancestors. An entity that is already
    an ancestor on the current branch is still emitted as a leaf (so the
    closing edge of a cycle is visible) but is not expanded again. The same
    entity may appear under several independent parents.

    Args:
        links: Link collection to traverse.
        root_id: Entity to start from.
        forward: Follow outgoing edges when True, incoming edges when False.
        max_depth: Optional cap on node depth; nodes at this depth are not
            expanded.

    Returns:
        A ``TraceabilityPath`` whose ``depth`` is the deepest node observed.
    """
    index = _index_links(links, forward)
    path = TraceabilityPath(root_id=root_id, root_type=str(entity_kind_for(root_id)))

    # (entity to expand, its depth, ancestors on this branch, list to fill)
    stack: list[tuple[str, int, frozenset[str], list[PathNode]]] = [
        (root_id, 0, frozenset({root_id}), path.nodes)
    ]
    while stack:
        entity_id, depth, ancestors, siblings = stack.pop()
        if max_depth is not None and depth >= max_depth:
            continue

        # Push in reverse so children are expanded in stored link order
        pending = []
        for link in index.get(entity_id, []):
            if forward:
                next_id, next_type = link.target_id, link.target_type
            else:
                next_id, next_type = link.source_id, link.source_type
            node = PathNode(
                entity_id=next_id,
                entity_type=next_type,
                link_type=link.link_type,
                depth=depth + 1,
            )
            siblings.append(node)
            path.depth = max(path.depth, node.depth)
            if next_id not in ancestors:
                pending.append((next_id, depth + 1, ancestors | {next_id}, node.children))
        stack.extend(reversed(pending))

    return path


class TraversalEngine:
    """Build traceability trees from the repository's current links.

    Args:
        repository: Source of the link collection.
        max_depth: Optional depth cap applied to every traversal.
    """

    def __init__(self, repository: LinkRepository, max_depth: int | None = None) -> None:
        self.repository = repository
        self.max_depth = max_depth

    def trace_forward(self, entity_id: str) -> TraceabilityPath:
        """Follow outgoing links from *entity_id*.

        Raises:
            ValidationError: If *entity_id* has an unknown prefix.
        """
        return build_trace_tree(self.repository.load(), entity_id, forward=True, max_depth=self.max_depth)

    def trace_backward(self, entity_id: str) -> TraceabilityPath:
        """Follow incoming links to *entity_id*.

        Raises:
            ValidationError: If *entity_id* has an unknown prefix.
        """
        return build_trace_tree(self.repository.load(), entity_id, forward=False, max_depth=self.max_depth)
