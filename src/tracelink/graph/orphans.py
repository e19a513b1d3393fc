"""Find entities that take part in no traceability link."""

from tracelink.core.models import EntityKind, Link, OrphanedItem
from tracelink.entities.resolver import EntityResolver
from tracelink.storage.repository import LinkRepository

ORPHAN_REASON = "No traceability links found"


def linked_entity_ids(links: list[Link]) -> set[str]:
    """Return every ID that is an endpoint of at least one link."""
    ids: set[str] = set()
    for link in links:
        ids.add(link.source_id)
        ids.add(link.target_id)
    return ids


class OrphanDetector:
    """Diff each entity store's index against the set of linked IDs."""

    def __init__(self, repository: LinkRepository, resolver: EntityResolver) -> None:
        self.repository = repository
        self.resolver = resolver

    def find_orphaned_items(self, kinds: list[EntityKind] | None = None) -> list[OrphanedItem]:
        """Return unlinked entities, grouped by kind.

        Kinds are reported in the order Requirement, TestCase, Risk,
        Document; within a kind, IDs keep their store order.

        Args:
            kinds: Restrict the scan to these kinds. Defaults to all.

        Returns:
            One ``OrphanedItem`` per entity with zero incident links.
        """
        linked = linked_entity_ids(self.repository.load())
        orphans: list[OrphanedItem] = []
        for kind in kinds or list(EntityKind):
            for entity_id in self.resolver.list_ids(kind):
                if entity_id not in linked:
                    orphans.append(OrphanedItem(entity_id=entity_id, entity_type=str(kind), reason=ORPHAN_REASON))
        return orphans
