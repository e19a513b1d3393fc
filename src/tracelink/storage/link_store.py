"""Persistence backends for the link collection.

The whole collection is one serialized document::

    {"version": "1.0", "links": [{...}, ...]}

``LinkStore`` is the seam the repository depends on; ``JsonFileLinkStore``
writes that document to disk and ``InMemoryLinkStore`` keeps it in memory
for tests and embedding applications.
"""

import contextlib
import json
import logging
import os
import tempfile
import warnings
from collections.abc import Iterator
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from tracelink.core.models import Link
from tracelink.errors import IoError, ParseError
from tracelink.storage.filelock import exclusive_lock

logger = logging.getLogger("tracelink")

STORE_VERSION = "1.0"


def encode_links(links: list[Link]) -> dict[str, Any]:
    """Build the persisted envelope for *links*."""
    return {"version": STORE_VERSION, "links": [link.to_dict() for link in links]}


def decode_links(data: Any, source: str = "link store") -> list[Link]:
    """Decode a persisted envelope.

    Args:
        data: Parsed JSON document.
        source: Description of where *data* came from, for messages.

    Returns:
        The links in stored order.

    Raises:
        ParseError: If the envelope or any record is malformed.
    """
    if not isinstance(data, dict):
        raise ParseError(f"{source}: expected a JSON object at top level")
    if "links" not in data or not isinstance(data["links"], list):
        raise ParseError(f"{source}: missing 'links' array")
    version = data.get("version")
    if version != STORE_VERSION:
        warnings.warn(
            f"{source}: unexpected store version {version!r} (expected {STORE_VERSION!r})",
            stacklevel=2,
        )

    links: list[Link] = []
    for position, record in enumerate(data["links"]):
        try:
            links.append(Link.from_dict(record))
        except ParseError as e:
            raise ParseError(f"{source}: link #{position}: {e}") from e
    return links


@runtime_checkable
class LinkStore(Protocol):
    """Storage port for the full link collection."""

    def exists(self) -> bool: ...

    def read(self) -> list[Link]: ...

    def write(self, links: list[Link]) -> None: ...

    def lock(self) -> contextlib.AbstractContextManager[None]: ...

    def quarantine(self) -> str | None: ...


class JsonFileLinkStore:
    """Link store backed by a single JSON file.

    Writes are atomic: the document is written to a temporary file in the
    same directory and moved over the target. Mutations are serialized
    across processes through ``<file>.lock``.
    """

    def __init__(self, path: Path, lock_timeout: float = 10.0) -> None:
        self.path = Path(path)
        self.lock_path = self.path.with_name(self.path.name + ".lock")
        self.lock_timeout = lock_timeout

    def __repr__(self) -> str:
        return f"JsonFileLinkStore({str(self.path)!r})"

    def exists(self) -> bool:
        return self.path.exists()

    def read(self) -> list[Link]:
        """Read and decode the store file.

        Raises:
            IoError: If the file cannot be read.
            ParseError: If the file is not a valid link document.
        """
        try:
            content = self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise IoError(f"Cannot read link store {self.path}: {e}") from e

        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise ParseError(f"Link store {self.path} is corrupted: {e}") from e

        links = decode_links(data, source=str(self.path))
        logger.debug("Loaded %d links from %s", len(links), self.path)
        return links

    def write(self, links: list[Link]) -> None:
        """Atomically replace the store file with *links*.

        Raises:
            IoError: If the file cannot be written.
        """
        payload = json.dumps(encode_links(links), indent=2, ensure_ascii=False) + "\n"
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(suffix=".json", prefix=".tmp_", dir=self.path.parent)
        except OSError as e:
            raise IoError(f"Cannot write link store {self.path}: {e}") from e

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            Path(tmp_path).replace(self.path)  # Atomic on POSIX
        except BaseException as e:
            Path(tmp_path).unlink(missing_ok=True)
            if isinstance(e, OSError):
                raise IoError(f"Cannot write link store {self.path}: {e}") from e
            raise
        logger.debug("Wrote %d links to %s", len(links), self.path)

    def lock(self) -> contextlib.AbstractContextManager[None]:
        return exclusive_lock(self.lock_path, timeout=self.lock_timeout)

    def quarantine(self) -> str | None:
        """Move the current file aside and return where it went."""
        if not self.path.exists():
            return None
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
        backup = self.path.with_name(f"{self.path.name}.corrupt-{stamp}")
        try:
            self.path.replace(backup)
        except OSError as e:
            raise IoError(f"Cannot move corrupted store {self.path} aside: {e}") from e
        return str(backup)


class InMemoryLinkStore:
    """Link store that keeps the serialized document in memory.

    Links are round-tripped through :func:`encode_links`/:func:`decode_links`
    so callers never share mutable ``Link`` objects with the store.
    """

    def __init__(self, document: dict[str, Any] | None = None) -> None:
        self.document = document
        self.writes = 0

    def exists(self) -> bool:
        return self.document is not None

    def read(self) -> list[Link]:
        if self.document is None:
            raise IoError("In-memory link store has not been initialized")
        return decode_links(self.document, source="in-memory link store")

    def write(self, links: list[Link]) -> None:
        self.document = encode_links(links)
        self.writes += 1

    @contextlib.contextmanager
    def lock(self) -> Iterator[None]:
        yield

    def quarantine(self) -> str | None:
        if self.document is None:
            return None
        self.document = None
        return "<memory>"
