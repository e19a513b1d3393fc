"""Entity lookup adapters.

``InMemoryEntityLookup`` backs tests and embedding applications.
``JsonIndexEntityLookup`` reads the JSON index files that the requirement,
test case, risk and document managers keep inside a project directory.
"""

import json
import logging
import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from tracelink.core.models import EntityKind
from tracelink.entities.resolver import EntityRecord, EntityResolver
from tracelink.errors import IoError, ParseError

logger = logging.getLogger("tracelink")


class InMemoryEntityLookup:
    """Entity lookup holding records in a dict."""

    def __init__(self, records: list[EntityRecord] | None = None) -> None:
        self._records: dict[str, EntityRecord] = {}
        for record in records or []:
            self.add(record)

    def add(self, record: EntityRecord) -> None:
        """Insert or replace a record."""
        self._records[record.entity_id] = record

    def remove(self, entity_id: str) -> None:
        """Drop a record if present."""
        self._records.pop(entity_id, None)

    def exists(self, entity_id: str) -> bool:
        return entity_id in self._records

    def get(self, entity_id: str) -> EntityRecord | None:
        return self._records.get(entity_id)

    def list_ids(self) -> list[str]:
        return list(self._records)


@dataclass(frozen=True)
class IndexLayout:
    """Where one kind's index lives and how its records are shaped.

    Attributes:
        relative_path (str): Index file path relative to the project root.
        collection_key (str): Top-level key holding the record array.
        id_fields (tuple[str, ...]): Candidate keys for the entity ID, first
            non-empty wins.
        title_fields (tuple[str, ...]): Candidate keys for the display title.
    """

    relative_path: str
    collection_key: str
    id_fields: tuple[str, ...]
    title_fields: tuple[str, ...] = ("title",)


DEFAULT_LAYOUTS: dict[EntityKind, IndexLayout] = {
    EntityKind.REQUIREMENT: IndexLayout("trace/requirements.json", "data", ("req_id", "id")),
    EntityKind.TEST_CASE: IndexLayout("trace/testcases.json", "data", ("test_id", "id")),
    EntityKind.RISK: IndexLayout("risks/risks.json", "risks", ("id", "hazard_id"), ("title", "description")),
    EntityKind.DOCUMENT: IndexLayout("documents/documents.json", "documents", ("id", "doc_id")),
}


def _first_value(data: dict[str, Any], keys: tuple[str, ...]) -> str:
    for key in keys:
        value = data.get(key)
        if value:
            return str(value)
    return ""


class JsonIndexEntityLookup:
    """Entity lookup over a JSON index file.

    The index is read lazily on first access and cached; call
    :meth:`refresh` to pick up changes made by another process. A missing
    index file is treated as an empty store.
    """

    def __init__(self, path: Path, layout: IndexLayout) -> None:
        self.path = path
        self.layout = layout
        self._records: dict[str, EntityRecord] | None = None

    def refresh(self) -> None:
        """Discard the cached index."""
        self._records = None

    def _load(self) -> dict[str, EntityRecord]:
        if self._records is not None:
            return self._records

        records: dict[str, EntityRecord] = {}
        if not self.path.exists():
            logger.debug("Entity index %s does not exist; treating as empty", self.path)
            self._records = records
            return records

        try:
            content = self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise IoError(f"Cannot read entity index {self.path}: {e}") from e

        if not content.strip():
            self._records = records
            return records

        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise ParseError(f"Entity index {self.path} is not valid JSON: {e}") from e

        entries = data.get(self.layout.collection_key, []) if isinstance(data, dict) else data
        if not isinstance(entries, list):
            raise ParseError(f"Entity index {self.path}: '{self.layout.collection_key}' must be a list")

        for position, entry in enumerate(entries):
            if not isinstance(entry, dict):
                warnings.warn(f"{self.path}: skipping non-object record #{position}", stacklevel=2)
                continue
            entity_id = _first_value(entry, self.layout.id_fields)
            if not entity_id:
                warnings.warn(f"{self.path}: skipping record #{position} without an id", stacklevel=2)
                continue
            attributes = {
                k: v for k, v in entry.items() if k not in self.layout.id_fields and k not in ("title", "status")
            }
            records[entity_id] = EntityRecord(
                entity_id=entity_id,
                title=_first_value(entry, self.layout.title_fields),
                status=entry.get("status") or None,
                attributes=attributes,
            )

        self._records = records
        return records

    def exists(self, entity_id: str) -> bool:
        return entity_id in self._load()

    def get(self, entity_id: str) -> EntityRecord | None:
        return self._load().get(entity_id)

    def list_ids(self) -> list[str]:
        return list(self._load())


def build_project_resolver(
    project_root: Path,
    layouts: dict[EntityKind, IndexLayout] | None = None,
) -> EntityResolver:
    """Build an ``EntityResolver`` reading every kind's index under *project_root*.

    Args:
        project_root: Directory containing ``trace/``, ``risks/`` and
            ``documents/``.
        layouts: Optional per-kind overrides of :data:`DEFAULT_LAYOUTS`.

    Returns:
        A resolver with one ``JsonIndexEntityLookup`` per entity kind.
    """
    merged = dict(DEFAULT_LAYOUTS)
    if layouts:
        merged.update(layouts)
    resolver = EntityResolver()
    for kind, layout in merged.items():
        resolver.register(kind, JsonIndexEntityLookup(project_root / layout.relative_path, layout))
    return resolver
