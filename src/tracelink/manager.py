"""Façade over the traceability link graph.

:class:`TraceabilityManager` wires the repository, the entity resolver and
the read-side engines together. Every link creation goes through
:class:`GraphValidator` inside one locked load-mutate-save transaction, so
a rejected link never reaches the store.
"""

import logging
from pathlib import Path

from tracelink.analysis.coverage import CoverageAnalyzer, CoverageReport
from tracelink.analysis.impact import ImpactAnalyzer, ImpactReport
from tracelink.audit import AuditSink, LoggingAuditSink, emit
from tracelink.config.loader import TracelinkConfig
from tracelink.core.models import (
    DEFAULT_USER,
    EntityKind,
    ImportStats,
    Link,
    LinkType,
    OrphanedItem,
    RTMEntry,
    TraceabilityMatrix,
    TraceabilityPath,
)
from tracelink.entities.resolver import EntityResolver
from tracelink.entities.stores import build_project_resolver
from tracelink.errors import NotFoundError
from tracelink.graph.orphans import OrphanDetector
from tracelink.graph.traversal import TraversalEngine
from tracelink.link_io import ImportExportBridge
from tracelink.matrix.generator import MatrixGenerator, RTMConfig, RTMFormat
from tracelink.storage.repository import LinkRepository, pop_link
from tracelink.storage.validation import GraphValidator, ValidationIssue, check_link_graph
from tracelink.verification import VerificationLedger, VerificationWorkflow

logger = logging.getLogger("tracelink")


class TraceabilityManager:
    """Entry point for creating, querying and reporting on trace links.

    Args:
        repository: Link persistence.
        resolver: Entity lookups used for validation, titles and statuses.
        audit: Audit sink notified of mutations, imports and exports.
            ``None`` disables auditing.
        ledger: Verification evidence ledger. Defaults to an in-memory one.
        max_depth: Optional depth cap for traversals.

    Examples:
        Link a requirement to the test case that verifies it::

            >>> manager = TraceabilityManager.for_project(Path("."))
            >>> manager.create_trace_link("REQ-001", "TC-001", "verifies")
    """

    def __init__(
        self,
        repository: LinkRepository,
        resolver: EntityResolver,
        audit: AuditSink | None = None,
        ledger: VerificationLedger | None = None,
        max_depth: int | None = None,
    ) -> None:
        self.repository = repository
        self.resolver = resolver
        self.audit = audit
        self.validator = GraphValidator(resolver)
        self.traversal = TraversalEngine(repository, max_depth=max_depth)
        self.orphans = OrphanDetector(repository, resolver)
        self.matrix = MatrixGenerator(repository, resolver)
        self.verification = VerificationWorkflow(repository, ledger, audit)
        self.bridge = ImportExportBridge(self)

    @classmethod
    def for_project(cls, project_root: Path, config: TracelinkConfig | None = None) -> "TraceabilityManager":
        """Build a manager over the standard file layout under *project_root*.

        The link store is initialized (created if missing) and the
        verification ledger is kept beside it as ``verification.yml``.

        Raises:
            ParseError: If the link store is corrupted and the config does
                not ask for recovery.
        """
        config = config or TracelinkConfig()
        project_root = Path(project_root)
        repository = LinkRepository.for_project(project_root, config.links_file, config.lock_timeout)
        repository.initialize(recover=config.recover_corrupt_store)
        links_path = project_root / config.links_file
        return cls(
            repository,
            build_project_resolver(project_root),
            audit=LoggingAuditSink(),
            ledger=VerificationLedger(links_path.with_name("verification.yml")),
            max_depth=config.max_trace_depth,
        )

    def create_trace_link(
        self,
        source_id: str,
        target_id: str,
        link_type: LinkType | str,
        created_by: str = DEFAULT_USER,
        audit: bool = True,
    ) -> Link:
        """Validate and persist a new link.

        Args:
            source_id: Source entity ID.
            target_id: Target entity ID.
            link_type: A ``LinkType`` or any accepted alias.
            created_by: Recorded as the link's author.
            audit: Emit a ``create`` audit event. Bulk imports emit one
                summary event instead.

        Returns:
            The stored link.

        Raises:
            ValidationError: Unknown link type or entity prefix.
            NotFoundError: An endpoint does not exist.
            ConflictError: Self-link, dependency cycle, contradictory
                relationship, or duplicate.
        """
        if not isinstance(link_type, LinkType):
            link_type = LinkType.parse(link_type)

        with self.repository.transaction() as links:
            self.validator.validate(links, source_id, target_id, link_type)
            link = Link(
                source_type=str(self.resolver.kind_of(source_id)),
                source_id=source_id,
                target_type=str(self.resolver.kind_of(target_id)),
                target_id=target_id,
                link_type=link_type,
                created_by=created_by,
            )
            links.append(link)

        logger.info("Created %s link %s -> %s (%s)", link_type, source_id, target_id, link.id)
        if audit:
            emit(
                self.audit,
                "create",
                link.id,
                source_id=source_id,
                target_id=target_id,
                link_type=str(link_type),
                user=created_by,
            )
        return link

    def delete_trace_link(self, link_id: str, deleted_by: str = DEFAULT_USER) -> Link:
        """Delete one link by id, together with its verification record.

        Raises:
            NotFoundError: If no such link exists.
        """
        with self.repository.transaction() as links:
            removed = pop_link(links, link_id)
            self.verification.discard_record(link_id)
        logger.info("Deleted link %s (%s -> %s)", link_id, removed.source_id, removed.target_id)
        emit(
            self.audit,
            "delete",
            link_id,
            source_id=removed.source_id,
            target_id=removed.target_id,
            link_type=str(removed.link_type),
            user=deleted_by,
        )
        return removed

    def link_exists(self, source_id: str, target_id: str, link_type: LinkType) -> bool:
        """Return True if the exact (source, target, type) link is stored."""
        return bool(self.repository.find(source_id, target_id, link_type))

    def get_trace_links(self) -> list[Link]:
        return self.repository.load()

    def get_link(self, link_id: str) -> Link:
        return self.repository.get(link_id)

    def get_links_for_entity(self, entity_id: str) -> list[Link]:
        return self.repository.get_for_entity(entity_id)

    def check(self) -> list[ValidationIssue]:
        """Audit the stored links for invariant violations."""
        return check_link_graph(self.repository.load(), self.resolver)

    def trace_forward(self, entity_id: str) -> TraceabilityPath:
        return self.traversal.trace_forward(entity_id)

    def trace_backward(self, entity_id: str) -> TraceabilityPath:
        return self.traversal.trace_backward(entity_id)

    def find_orphaned_items(self, kinds: list[EntityKind] | None = None) -> list[OrphanedItem]:
        return self.orphans.find_orphaned_items(kinds)

    def generate_rtm(self, generated_by: str = DEFAULT_USER) -> TraceabilityMatrix:
        return self.matrix.generate_rtm(generated_by)

    def export_rtm(
        self,
        path: Path,
        output_format: RTMFormat | str,
        config: RTMConfig | None = None,
    ) -> list[RTMEntry]:
        """Write the full RTM to *path* and return the rows written."""
        entries = self.matrix.export(Path(path), output_format, config)
        emit(self.audit, "export", "rtm", path=str(path), format=str(output_format), entries=len(entries))
        return entries

    def analyze_coverage(self) -> CoverageReport:
        return CoverageAnalyzer(self.repository, self.resolver).analyze()

    def analyze_impact(self, entity_id: str, change_description: str = "") -> ImpactReport:
        """Estimate the impact of changing *entity_id*.

        Raises:
            NotFoundError: If the entity does not exist.
        """
        if not self.resolver.exists(entity_id):
            raise NotFoundError(f"Entity {entity_id} not found")
        return ImpactAnalyzer(self.repository, self.resolver, self.audit).analyze(entity_id, change_description)

    def import_from_csv(self, path: Path) -> ImportStats:
        return self.bridge.import_from_csv(Path(path))

    def import_from_json(self, path: Path) -> ImportStats:
        return self.bridge.import_from_json(Path(path))

    def import_file(self, path: Path) -> ImportStats:
        return self.bridge.import_file(Path(path))

    def export_rtm_csv(self, path: Path) -> int:
        return self.bridge.export_rtm_csv(Path(path))

    def export_rtm_json(self, path: Path) -> int:
        return self.bridge.export_rtm_json(Path(path))

    def export_dependency_graph(self, path: Path) -> int:
        return self.bridge.export_dependency_graph(Path(path))
