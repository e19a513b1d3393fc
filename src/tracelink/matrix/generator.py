"""Generate requirements traceability matrices in various formats."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from tracelink.core.models import (
    DEFAULT_USER,
    EntityKind,
    Link,
    LinkType,
    RTMEntry,
    RTMStatistics,
    TraceabilityEntity,
    TraceabilityMatrix,
    utc_now,
)
from tracelink.entities.resolver import EntityRecord, EntityResolver, entity_kind_for
from tracelink.errors import IoError, ValidationError
from tracelink.storage.repository import LinkRepository

logger = logging.getLogger("tracelink")

# Prefixes used to partition a requirement's linked IDs
TEST_CASE_PREFIX = "TC-"
DESIGN_PREFIX = "DESIGN-"
RISK_PREFIX = "RISK-"
DOCUMENT_PREFIX = "DOC-"

VERIFIED_STATUSES = frozenset({"verified", "validated"})
PRIORITY_ORDER = {"critical": 0, "high": 1, "medium": 2, "low": 3}


class RTMSortBy(str, Enum):
    """Sort key for RTM rows."""

    REQUIREMENT_ID = "id"
    REQUIREMENT_TITLE = "title"
    PRIORITY = "priority"
    STATUS = "status"
    VERIFICATION_STATUS = "verification_status"
    COVERAGE = "coverage"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, text: str) -> "RTMSortBy":
        """Parse a sort key, accepting the long aliases.

        Raises:
            ValidationError: If *text* is not a known sort key.
        """
        aliases = {
            "id": cls.REQUIREMENT_ID,
            "requirement_id": cls.REQUIREMENT_ID,
            "title": cls.REQUIREMENT_TITLE,
            "requirement_title": cls.REQUIREMENT_TITLE,
            "priority": cls.PRIORITY,
            "status": cls.STATUS,
            "verification_status": cls.VERIFICATION_STATUS,
            "coverage": cls.COVERAGE,
            "coverage_percentage": cls.COVERAGE,
        }
        key = text.strip().lower()
        if key not in aliases:
            raise ValidationError(f"Invalid sort field: {text}")
        return aliases[key]


class RTMFormat(str, Enum):
    """Output format of a full RTM export."""

    CSV = "csv"
    JSON = "json"
    HTML = "html"
    MARKDOWN = "markdown"
    PDF = "pdf"
    XLSX = "xlsx"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, text: str) -> "RTMFormat":
        """Parse a format name (``md`` is accepted for Markdown).

        Raises:
            ValidationError: If *text* is not a known format.
        """
        key = text.strip().lower()
        if key == "md":
            return cls.MARKDOWN
        for fmt in cls:
            if fmt.value == key:
                return fmt
        raise ValidationError(f"Invalid RTM format: {text}")


@dataclass
class RTMConfig:
    """Filtering, sorting and column options for an RTM.

    Attributes:
        include_categories (list[str] | None): Keep only requirements whose
            category is listed. ``None`` keeps all.
        include_priorities (list[str] | None): Allow-list of priorities.
        include_statuses (list[str] | None): Allow-list of lifecycle statuses.
        include_verification_statuses (list[str] | None): Allow-list of
            ``"Verified"`` / ``"Not Verified"``.
        show_descriptions (bool): Add a ``Description`` column.
        show_verification_details (bool): Add ``Last Verified`` and ``Notes``
            columns.
        show_coverage_metrics (bool): Add a ``Coverage %`` column.
        sort_by (RTMSortBy): Row ordering.

    Allow-list matching is case-insensitive.
    """

    include_categories: list[str] | None = None
    include_priorities: list[str] | None = None
    include_statuses: list[str] | None = None
    include_verification_statuses: list[str] | None = None
    show_descriptions: bool = False
    show_verification_details: bool = False
    show_coverage_metrics: bool = True
    sort_by: RTMSortBy = RTMSortBy.REQUIREMENT_ID


def verification_status_for(status: str | None) -> str:
    """Map a requirement lifecycle status to its RTM verification status."""
    if status and status.strip().lower() in VERIFIED_STATUSES:
        return "Verified"
    return "Not Verified"


def _allowed(value: str, allow_list: list[str] | None) -> bool:
    if allow_list is None:
        return True
    return value.lower() in {item.lower() for item in allow_list}


def _attr(record: EntityRecord | None, name: str) -> str:
    if record is None:
        return ""
    value = record.attributes.get(name)
    return str(value) if value is not None else ""


def sort_entries(entries: list[RTMEntry], sort_by: RTMSortBy) -> list[RTMEntry]:
    """Return *entries* sorted by *sort_by*.

    Priority sorts Critical, High, Medium, Low, then anything else;
    coverage sorts descending. The sort is stable.
    """
    if sort_by == RTMSortBy.REQUIREMENT_TITLE:
        return sorted(entries, key=lambda e: e.title)
    if sort_by == RTMSortBy.PRIORITY:
        return sorted(entries, key=lambda e: PRIORITY_ORDER.get(e.priority.lower(), 4))
    if sort_by == RTMSortBy.STATUS:
        return sorted(entries, key=lambda e: e.status)
    if sort_by == RTMSortBy.VERIFICATION_STATUS:
        return sorted(entries, key=lambda e: e.verification_status)
    if sort_by == RTMSortBy.COVERAGE:
        return sorted(entries, key=lambda e: e.coverage_percentage, reverse=True)
    return sorted(entries, key=lambda e: e.requirement_id)


# Type alias for RTM formatter functions
RTMFormatter = Callable[[list[RTMEntry], RTMConfig, str | None], str | bytes]


def _get_rtm_formatter(output_format: RTMFormat) -> RTMFormatter:
    """Get the RTM formatter function by format.

    Args:
        output_format: The target ``RTMFormat``.

    Returns:
        A callable that renders RTM entries to string or bytes.

    Raises:
        ValidationError: If the format has no renderer.
    """
    if output_format == RTMFormat.HTML:
        from tracelink.matrix.formats.html import render_rtm_html

        return render_rtm_html
    elif output_format == RTMFormat.MARKDOWN:
        from tracelink.matrix.formats.markdown import render_rtm_markdown

        return render_rtm_markdown
    elif output_format == RTMFormat.JSON:
        from tracelink.matrix.formats.json import render_rtm_json

        return render_rtm_json
    elif output_format == RTMFormat.CSV:
        from tracelink.matrix.formats.csv import render_rtm_csv

        return render_rtm_csv
    elif output_format == RTMFormat.PDF:
        from tracelink.matrix.formats.text import render_rtm_text

        return render_rtm_text
    elif output_format == RTMFormat.XLSX:
        from tracelink.matrix.formats.xlsx import render_rtm_xlsx

        return render_rtm_xlsx
    raise ValidationError(f"Invalid RTM format: {output_format}")


def write_output(content: str | bytes, output_path: Path) -> None:
    """Write rendered output to *output_path*, creating parent directories.

    Raises:
        IoError: If the file cannot be written.
    """
    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            output_path.write_bytes(content)
        else:
            output_path.write_text(content, encoding="utf-8")
    except OSError as e:
        raise IoError(f"Cannot write {output_path}: {e}") from e


class MatrixGenerator:
    """Project the link graph into traceability matrices.

    Args:
        repository: Source of the link collection.
        resolver: Entity resolver for titles, statuses and requirement
            metadata.
    """

    def __init__(self, repository: LinkRepository, resolver: EntityResolver) -> None:
        self.repository = repository
        self.resolver = resolver

    def generate_rtm(self, generated_by: str = DEFAULT_USER) -> TraceabilityMatrix:
        """Build the summary matrix over every linked entity.

        One row per distinct link endpoint, in order of first appearance,
        listing the opposite endpoint of each incident link. Titles fall
        back to ``"Entity <id>"`` and statuses to ``"Active"``.
        """
        links = self.repository.load()
        linked: dict[str, list[str]] = {}
        for link in links:
            linked.setdefault(link.source_id, []).append(link.target_id)
            linked.setdefault(link.target_id, []).append(link.source_id)

        entities: list[TraceabilityEntity] = []
        for entity_id, others in linked.items():
            try:
                entity_type = str(entity_kind_for(entity_id))
            except ValidationError:
                entity_type = "Unknown"
            entities.append(
                TraceabilityEntity(
                    entity_id=entity_id,
                    entity_type=entity_type,
                    title=self.resolver.title_of(entity_id),
                    status=self.resolver.status_of(entity_id),
                    linked_entities=others,
                )
            )
        return TraceabilityMatrix(entities=entities, links=links, generated_by=generated_by)

    def _build_entry(self, requirement_id: str, record: EntityRecord | None, links: list[Link]) -> RTMEntry:
        incident = [link for link in links if link.involves(requirement_id)]
        others = [link.other_end(requirement_id) for link in incident]
        status = (record.status if record is not None else None) or ""

        verified_at = [link.verified_at for link in incident if link.verified and link.verified_at]
        linked_tests = [o for o in others if o.startswith(TEST_CASE_PREFIX)]

        return RTMEntry(
            requirement_id=requirement_id,
            title=record.title if record is not None and record.title else f"Entity {requirement_id}",
            description=_attr(record, "description"),
            category=_attr(record, "category"),
            priority=_attr(record, "priority"),
            status=status,
            linked_test_cases=linked_tests,
            linked_design_elements=[o for o in others if o.startswith(DESIGN_PREFIX)],
            linked_risks=[o for o in others if o.startswith(RISK_PREFIX)],
            linked_documents=[o for o in others if o.startswith(DOCUMENT_PREFIX)],
            verification_status=verification_status_for(status),
            verification_method=_attr(record, "verification_method"),
            coverage_percentage=100.0 if linked_tests else 0.0,
            last_verified_at=max(verified_at) if verified_at else None,
        )

    def generate_entries(self, config: RTMConfig | None = None) -> list[RTMEntry]:
        """Build one RTM row per requirement passing *config*'s filters.

        Args:
            config: Filters, sort order and column flags. Defaults to
                ``RTMConfig()``.

        Returns:
            The filtered, sorted rows.
        """
        config = config or RTMConfig()
        links = self.repository.load()
        entries: list[RTMEntry] = []
        for requirement_id in self.resolver.list_ids(EntityKind.REQUIREMENT):
            entry = self._build_entry(requirement_id, self.resolver.get(requirement_id), links)
            if not _allowed(entry.category, config.include_categories):
                continue
            if not _allowed(entry.priority, config.include_priorities):
                continue
            if not _allowed(entry.status, config.include_statuses):
                continue
            if not _allowed(entry.verification_status, config.include_verification_statuses):
                continue
            entries.append(entry)
        logger.debug("Generated RTM with %d entries", len(entries))
        return sort_entries(entries, config.sort_by)

    def render(
        self,
        entries: list[RTMEntry],
        output_format: RTMFormat | str,
        config: RTMConfig | None = None,
    ) -> str | bytes:
        """Render RTM rows in *output_format*."""
        if isinstance(output_format, str) and not isinstance(output_format, RTMFormat):
            output_format = RTMFormat.parse(output_format)
        formatter = _get_rtm_formatter(output_format)
        return formatter(entries, config or RTMConfig(), utc_now())

    def export(
        self,
        output_path: Path,
        output_format: RTMFormat | str,
        config: RTMConfig | None = None,
    ) -> list[RTMEntry]:
        """Generate the RTM, render it and write it to *output_path*.

        Returns:
            The rows that were written.
        """
        config = config or RTMConfig()
        entries = self.generate_entries(config)
        write_output(self.render(entries, output_format, config), Path(output_path))
        return entries

    def compute_statistics(self) -> RTMStatistics:
        """Aggregate totals and breakdowns over all requirements.

        A requirement counts as tested when a Verifies link joins it to a
        test case in either direction.
        """
        links = self.repository.load()
        requirement_ids = self.resolver.list_ids(EntityKind.REQUIREMENT)
        test_ids = self.resolver.list_ids(EntityKind.TEST_CASE)
        stats = RTMStatistics(
            total_requirements=len(requirement_ids),
            total_test_cases=len(test_ids),
            total_links=len(links),
        )

        verified_pairs = [
            (link.source_id, link.target_id) for link in links if link.link_type == LinkType.VERIFIES
        ]

        def has_verifies_link(entity_id: str, other_prefix: str) -> bool:
            return any(
                (src == entity_id and dst.startswith(other_prefix))
                or (dst == entity_id and src.startswith(other_prefix))
                for src, dst in verified_pairs
            )

        for requirement_id in requirement_ids:
            record = self.resolver.get(requirement_id)
            if has_verifies_link(requirement_id, TEST_CASE_PREFIX):
                stats.requirements_with_tests += 1
            else:
                stats.requirements_without_tests += 1

            status = (record.status if record is not None else None) or ""
            for breakdown, value in (
                (stats.category_breakdown, _attr(record, "category")),
                (stats.priority_breakdown, _attr(record, "priority")),
                (stats.status_breakdown, status),
                (stats.verification_status_breakdown, verification_status_for(status)),
            ):
                breakdown[value] = breakdown.get(value, 0) + 1

        requirement_prefix = EntityKind.REQUIREMENT.prefix
        for test_id in test_ids:
            if has_verifies_link(test_id, requirement_prefix):
                stats.test_cases_with_requirements += 1
            else:
                stats.orphaned_test_cases += 1

        if stats.total_requirements:
            stats.verification_coverage = 100.0 * stats.requirements_with_tests / stats.total_requirements
        return stats
