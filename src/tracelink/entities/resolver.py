"""Entity resolution: map opaque IDs to kinds and look them up.

The link graph never owns entity content. It only needs to know, for an
ID such as ``REQ-001``, which kind of entity it names, whether that entity
exists, and what its display title and status are. Those answers come from
one :class:`EntityLookup` per kind, injected into :class:`EntityResolver`.
"""

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from tracelink.core.models import ENTITY_PREFIXES, EntityKind
from tracelink.errors import NotFoundError, ValidationError


@dataclass
class EntityRecord:
    """Read-only view of an external entity.

    Attributes:
        entity_id (str): The entity ID (e.g. ``"REQ-001"``).
        title (str): Display title. Empty when the store has none.
        status (str | None): Lifecycle status, if the store tracks one.
        attributes (dict): Any further store-specific fields, such as
            ``category``, ``priority``, ``description`` or
            ``verification_method`` for requirements.
    """

    entity_id: str
    title: str = ""
    status: str | None = None
    attributes: dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class EntityLookup(Protocol):
    """Read-only port onto one external entity store."""

    def exists(self, entity_id: str) -> bool: ...

    def get(self, entity_id: str) -> EntityRecord | None: ...

    def list_ids(self) -> list[str]: ...


def entity_kind_for(entity_id: str) -> EntityKind:
    """Resolve the kind of an entity from its ID prefix.

    Args:
        entity_id: An ID such as ``"REQ-001"`` or ``"TC-004"``.

    Returns:
        The ``EntityKind`` named by the prefix.

    Raises:
        ValidationError: If the prefix is not a known entity prefix.
    """
    for kind, prefix in ENTITY_PREFIXES.items():
        if entity_id.startswith(prefix):
            return kind
    raise ValidationError(f"Unknown entity type for ID: {entity_id}")


class EntityResolver:
    """Route entity lookups to the store responsible for each kind."""

    def __init__(self, lookups: dict[EntityKind, EntityLookup] | None = None) -> None:
        self._lookups: dict[EntityKind, EntityLookup] = dict(lookups or {})

    def register(self, kind: EntityKind, lookup: EntityLookup) -> None:
        """Attach (or replace) the lookup used for *kind*."""
        self._lookups[kind] = lookup

    def lookup_for(self, kind: EntityKind) -> EntityLookup | None:
        """Return the lookup registered for *kind*, if any."""
        return self._lookups.get(kind)

    def kind_of(self, entity_id: str) -> EntityKind:
        """Return the kind of *entity_id* (see :func:`entity_kind_for`)."""
        return entity_kind_for(entity_id)

    def exists(self, entity_id: str) -> bool:
        """Return True if the store for this ID's kind knows the entity.

        Raises:
            ValidationError: If the ID prefix is unknown.
        """
        lookup = self._lookups.get(self.kind_of(entity_id))
        return lookup is not None and lookup.exists(entity_id)

    def get(self, entity_id: str) -> EntityRecord | None:
        """Fetch the entity record, or ``None`` if the store has none."""
        lookup = self._lookups.get(self.kind_of(entity_id))
        if lookup is None:
            return None
        return lookup.get(entity_id)

    def require(self, entity_id: str) -> EntityRecord:
        """Fetch the entity record or raise ``NotFoundError``."""
        record = self.get(entity_id)
        if record is None:
            raise NotFoundError(f"Entity {entity_id} not found")
        return record

    def title_of(self, entity_id: str, default: str | None = None) -> str:
        """Return the display title, falling back to ``"Entity <id>"``."""
        try:
            record = self.get(entity_id)
        except ValidationError:
            record = None
        if record is not None and record.title:
            return record.title
        return default if default is not None else f"Entity {entity_id}"

    def status_of(self, entity_id: str, default: str = "Active") -> str:
        """Return the lifecycle status, or *default* when unknown."""
        try:
            record = self.get(entity_id)
        except ValidationError:
            record = None
        if record is not None and record.status:
            return record.status
        return default

    def list_ids(self, kind: EntityKind) -> list[str]:
        """Return every ID the store for *kind* knows, or an empty list."""
        lookup = self._lookups.get(kind)
        return list(lookup.list_ids()) if lookup is not None else []
