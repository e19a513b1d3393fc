"""Repository owning the read-modify-write cycle of the link collection."""

import contextlib
import logging
from collections.abc import Iterator
from pathlib import Path

from tracelink.core.models import Link, LinkType
from tracelink.errors import NotFoundError, ParseError
from tracelink.storage.link_store import JsonFileLinkStore, LinkStore

logger = logging.getLogger("tracelink")

DEFAULT_LINKS_FILE = Path("trace") / "links.json"


def pop_link(links: list[Link], link_id: str) -> Link:
    """Remove the link with *link_id* from *links* and return it.

    Raises:
        NotFoundError: If no such link is in the list.
    """
    for index, existing in enumerate(links):
        if existing.id == link_id:
            return links.pop(index)
    raise NotFoundError(f"Link {link_id} not found")


class LinkRepository:
    """Load, query and persist the full set of trace links.

    Every mutation is one load-mutate-save cycle over the whole collection,
    run under the store's exclusive lock (see :meth:`transaction`).

    Args:
        store: Persistence backend. Use :meth:`for_project` to get the
            default JSON file store under a project root.
    """

    def __init__(self, store: LinkStore) -> None:
        self.store = store

    @classmethod
    def for_project(
        cls,
        project_root: Path,
        links_file: Path | str = DEFAULT_LINKS_FILE,
        lock_timeout: float = 10.0,
    ) -> "LinkRepository":
        """Build a repository over ``<project_root>/<links_file>``."""
        return cls(JsonFileLinkStore(Path(project_root) / links_file, lock_timeout=lock_timeout))

    def initialize(self, recover: bool = False) -> None:
        """Create an empty store if none exists, and check an existing one.

        Args:
            recover: When the existing store cannot be parsed, move it aside
                and start over with an empty store instead of failing.

        Raises:
            ParseError: If the existing store is corrupted and *recover* is
                False.
        """
        with self.store.lock():
            if not self.store.exists():
                self.store.write([])
                logger.debug("Initialized empty link store %r", self.store)
                return
            try:
                self.store.read()
            except ParseError:
                if not recover:
                    raise
                backup = self.store.quarantine()
                logger.warning("Link store was corrupted; moved it to %s and started empty", backup)
                self.store.write([])

    def load(self) -> list[Link]:
        """Return all links in stored order.

        A store that has never been initialized reads as empty.

        Raises:
            ParseError: If the store is corrupted.
            IoError: If the store cannot be read.
        """
        if not self.store.exists():
            return []
        return self.store.read()

    def save(self, links: list[Link]) -> None:
        """Atomically overwrite the store with *links*."""
        self.store.write(links)

    @contextlib.contextmanager
    def transaction(self) -> Iterator[list[Link]]:
        """Lock the store and yield its links for in-place mutation.

        The (possibly modified) list is saved when the block exits normally.
        If the block raises, nothing is written.

        Example::

            with repo.transaction() as links:
                links.append(new_link)
        """
        with self.store.lock():
            links = self.load()
            yield links
            self.save(links)

    def get(self, link_id: str) -> Link:
        """Return the link with *link_id*.

        Raises:
            NotFoundError: If no such link exists.
        """
        for link in self.load():
            if link.id == link_id:
                return link
        raise NotFoundError(f"Link {link_id} not found")

    def get_for_entity(self, entity_id: str) -> list[Link]:
        """Return links where *entity_id* is the source or the target."""
        return [link for link in self.load() if link.involves(entity_id)]

    def find(self, source_id: str, target_id: str, link_type: LinkType | None = None) -> list[Link]:
        """Return links from *source_id* to *target_id*, optionally of one type."""
        return [
            link
            for link in self.load()
            if link.source_id == source_id
            and link.target_id == target_id
            and (link_type is None or link.link_type == link_type)
        ]

    def add(self, link: Link) -> None:
        """Append *link* without validation.

        Callers are expected to have run :class:`GraphValidator` first;
        use :meth:`TraceabilityManager.create_trace_link` instead.
        """
        with self.transaction() as links:
            links.append(link)

    def update(self, link: Link) -> None:
        """Replace the stored link that has ``link.id``.

        Raises:
            NotFoundError: If no such link exists.
        """
        with self.transaction() as links:
            for index, existing in enumerate(links):
                if existing.id == link.id:
                    links[index] = link
                    return
            raise NotFoundError(f"Link {link.id} not found")

    def delete(self, link_id: str) -> Link:
        """Remove one link by id and return it.

        Raises:
            NotFoundError: If no such link exists; the store is untouched.
        """
        with self.transaction() as links:
            removed = pop_link(links, link_id)
        logger.info("Deleted link %s (%s -> %s)", link_id, removed.source_id, removed.target_id)
        return removed

    def count(self) -> int:
        """Return the number of stored links."""
        return len(self.load())
