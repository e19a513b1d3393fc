"""Domain models for the traceability link graph."""

import uuid
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from tracelink.errors import ParseError, ValidationError

DEFAULT_USER = "system"


def utc_now() -> str:
    """Return the current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


class LinkType(str, Enum):
    """Relationship between two traced entities."""

    DERIVED_FROM = "DerivedFrom"
    IMPLEMENTS = "Implements"
    VERIFIES = "Verifies"
    DEPENDS_ON = "DependsOn"
    CONFLICTS = "Conflicts"
    DUPLICATES = "Duplicates"
    RELATED = "Related"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, text: str) -> "LinkType":
        """Parse a link type from user input.

        Matching is case-insensitive and accepts the common aliases
        (``derives``, ``tests``, ``depends_on`` ...).

        Args:
            text: Raw link type string.

        Returns:
            The matching ``LinkType``.

        Raises:
            ValidationError: If *text* names no known link type.
        """
        key = text.strip().lower()
        link_type = _LINK_TYPE_ALIASES.get(key)
        if link_type is None:
            raise ValidationError(f"Invalid link type: {text}")
        return link_type

    @property
    def is_dependency(self) -> bool:
        """Return True for edge types that must stay acyclic."""
        return self in (LinkType.DEPENDS_ON, LinkType.DERIVED_FROM)


_LINK_TYPE_ALIASES: dict[str, LinkType] = {
    "derivedfrom": LinkType.DERIVED_FROM,
    "derived_from": LinkType.DERIVED_FROM,
    "derives": LinkType.DERIVED_FROM,
    "implements": LinkType.IMPLEMENTS,
    "implementation": LinkType.IMPLEMENTS,
    "verifies": LinkType.VERIFIES,
    "verification": LinkType.VERIFIES,
    "tests": LinkType.VERIFIES,
    "dependson": LinkType.DEPENDS_ON,
    "depends_on": LinkType.DEPENDS_ON,
    "depends": LinkType.DEPENDS_ON,
    "conflicts": LinkType.CONFLICTS,
    "conflict": LinkType.CONFLICTS,
    "duplicates": LinkType.DUPLICATES,
    "duplicate": LinkType.DUPLICATES,
    "related": LinkType.RELATED,
    "relation": LinkType.RELATED,
}


class EntityKind(str, Enum):
    """Kind of an entity, determined by its ID prefix."""

    REQUIREMENT = "Requirement"
    TEST_CASE = "TestCase"
    RISK = "Risk"
    DOCUMENT = "Document"

    def __str__(self) -> str:
        return self.value

    @property
    def prefix(self) -> str:
        """Return the ID prefix for this kind (e.g. ``"REQ-"``)."""
        return ENTITY_PREFIXES[self]

    @classmethod
    def parse(cls, text: str) -> "EntityKind":
        """Parse a kind name such as ``"requirement"`` or ``"TestCase"``."""
        normalized = text.strip().replace("_", "").replace(" ", "").lower()
        for kind in cls:
            if kind.value.lower() == normalized:
                return kind
        raise ValidationError(f"Unknown entity type: {text}")


ENTITY_PREFIXES: dict[EntityKind, str] = {
    EntityKind.REQUIREMENT: "REQ-",
    EntityKind.TEST_CASE: "TC-",
    EntityKind.RISK: "RISK-",
    EntityKind.DOCUMENT: "DOC-",
}


@dataclass
class Link:
    """A typed, directed relationship from one entity to another."""

    source_type: str
    source_id: str
    target_type: str
    target_id: str
    link_type: LinkType
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: str = field(default_factory=utc_now)
    created_by: str = DEFAULT_USER
    verified: bool = False
    verified_at: str | None = None
    verified_by: str | None = None

    @property
    def key(self) -> tuple[str, str, LinkType]:
        """Return the uniqueness key ``(source_id, target_id, link_type)``."""
        return (self.source_id, self.target_id, self.link_type)

    def involves(self, entity_id: str) -> bool:
        """Return True if *entity_id* is either endpoint of this link."""
        return self.source_id == entity_id or self.target_id == entity_id

    def other_end(self, entity_id: str) -> str:
        """Return the endpoint opposite to *entity_id*."""
        return self.target_id if self.source_id == entity_id else self.source_id

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the persisted record layout."""
        return {
            "id": self.id,
            "source_type": self.source_type,
            "source_id": self.source_id,
            "target_type": self.target_type,
            "target_id": self.target_id,
            "link_type": str(self.link_type),
            "created_at": self.created_at,
            "created_by": self.created_by,
            "verified": self.verified,
            "verified_at": self.verified_at,
            "verified_by": self.verified_by,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Link":
        """Build a link from a persisted record.

        Args:
            data: One entry of the ``links`` array.

        Returns:
            The decoded ``Link``.

        Raises:
            ParseError: If a required field is missing or malformed.
        """
        if not isinstance(data, dict):
            raise ParseError(f"link record must be an object, got {type(data).__name__}")
        required = ("id", "source_type", "source_id", "target_type", "target_id", "link_type")
        missing = [name for name in required if not data.get(name)]
        if missing:
            raise ParseError(f"link record is missing field(s): {', '.join(missing)}")
        try:
            link_type = LinkType.parse(str(data["link_type"]))
        except ValidationError as e:
            raise ParseError(str(e)) from e
        verified = data.get("verified", False)
        if not isinstance(verified, bool):
            raise ParseError(f"link record {data['id']}: 'verified' must be true or false, got {verified!r}")
        return cls(
            id=str(data["id"]),
            source_type=str(data["source_type"]),
            source_id=str(data["source_id"]),
            target_type=str(data["target_type"]),
            target_id=str(data["target_id"]),
            link_type=link_type,
            created_at=str(data.get("created_at") or ""),
            created_by=str(data.get("created_by") or DEFAULT_USER),
            verified=verified,
            verified_at=data.get("verified_at"),
            verified_by=data.get("verified_by"),
        )


@dataclass
class PathNode:
    """One node of a traceability tree."""

    entity_id: str
    entity_type: str
    link_type: LinkType
    depth: int
    children: list["PathNode"] = field(default_factory=list)

    def walk(self) -> Iterator["PathNode"]:
        """Yield this node and all of its descendants, depth first."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))


@dataclass
class TraceabilityPath:
    """Forward or backward traceability tree rooted at one entity."""

    root_id: str
    root_type: str
    nodes: list[PathNode] = field(default_factory=list)
    depth: int = 0

    def entity_ids(self) -> list[str]:
        """Return every entity id in the tree, depth-first, with repeats."""
        return [node.entity_id for top in self.nodes for node in top.walk()]


@dataclass
class OrphanedItem:
    """An entity that takes part in no traceability link."""

    entity_id: str
    entity_type: str
    reason: str


@dataclass
class TraceabilityEntity:
    """A row of the summary traceability matrix."""

    entity_id: str
    entity_type: str
    title: str
    status: str
    linked_entities: list[str] = field(default_factory=list)


@dataclass
class TraceabilityMatrix:
    """Summary traceability matrix over every linked entity."""

    entities: list[TraceabilityEntity] = field(default_factory=list)
    links: list[Link] = field(default_factory=list)
    generated_at: str = field(default_factory=utc_now)
    generated_by: str = DEFAULT_USER


@dataclass
class ImportStats:
    """Aggregate result of a bulk link import."""

    total_processed: int = 0
    successful_imports: int = 0
    failed_imports: int = 0
    duplicates_found: int = 0
    validation_errors: list[str] = field(default_factory=list)

    def record_error(self, message: str) -> None:
        """Count one failed row and keep its message."""
        self.failed_imports += 1
        self.validation_errors.append(message)


@dataclass
class RTMEntry:
    """One requirement row of the requirements traceability matrix."""

    requirement_id: str
    title: str
    description: str = ""
    category: str = ""
    priority: str = ""
    status: str = ""
    linked_test_cases: list[str] = field(default_factory=list)
    linked_design_elements: list[str] = field(default_factory=list)
    linked_risks: list[str] = field(default_factory=list)
    linked_documents: list[str] = field(default_factory=list)
    verification_status: str = "Not Verified"
    verification_method: str = ""
    coverage_percentage: float = 0.0
    last_verified_at: str | None = None
    verification_notes: str | None = None

    @property
    def is_verified(self) -> bool:
        """Return True if the requirement's status counts as verified."""
        return self.verification_status == "Verified"


@dataclass
class RTMStatistics:
    """Aggregate figures over the requirements traceability matrix."""

    total_requirements: int = 0
    total_test_cases: int = 0
    total_links: int = 0
    requirements_with_tests: int = 0
    requirements_without_tests: int = 0
    test_cases_with_requirements: int = 0
    orphaned_test_cases: int = 0
    verification_coverage: float = 0.0
    category_breakdown: dict[str, int] = field(default_factory=dict)
    priority_breakdown: dict[str, int] = field(default_factory=dict)
    status_breakdown: dict[str, int] = field(default_factory=dict)
    verification_status_breakdown: dict[str, int] = field(default_factory=dict)

    @property
    def quality_label(self) -> str:
        """Coverage quality: EXCELLENT (>=80%), MODERATE (>=60%) or POOR."""
        coverage = self.verification_coverage
        if coverage >= 80.0:
            return "EXCELLENT"
        if coverage >= 60.0:
            return "MODERATE"
        return "POOR"
