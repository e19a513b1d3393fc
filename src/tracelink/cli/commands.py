"""CLI commands for tracelink."""

from __future__ import annotations

import functools
import logging
import sys
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING, Any, TypeVar

import click
import yaml

from tracelink.errors import TraceError, ValidationError

if TYPE_CHECKING:
    from tracelink.analysis.coverage import GapAnalysis
    from tracelink.config.loader import TracelinkConfig
    from tracelink.core.models import PathNode
    from tracelink.manager import TraceabilityManager

F = TypeVar("F", bound=Callable[..., Any])


def _cli_error_handler(f: F) -> F:
    """Decorator that catches common CLI errors and exits cleanly."""

    @functools.wraps(f)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return f(*args, **kwargs)
        except click.Abort:
            # User aborted (e.g., answered "n" to confirmation)
            click.echo("Aborted.")
            sys.exit(1)
        except (TraceError, ValueError, LookupError, OSError, yaml.YAMLError) as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)
        except Exception as e:
            # Catch-all for unexpected errors with type info for debugging
            click.echo(f"Unexpected error: {type(e).__name__}: {e}", err=True)
            sys.exit(1)

    return wrapper  # type: ignore[return-value]


root_option = click.option(
    "--root",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Directory containing pyproject.toml (default: current directory)",
)
user_option = click.option("--user", "-u", default=None, help="User recorded on the change (default: config)")


def _load_config(root: Path | None) -> TracelinkConfig:
    from tracelink.config.loader import load_config

    return load_config((root or Path.cwd()) / "pyproject.toml")


def _load_manager(root: Path | None) -> tuple[TraceabilityManager, TracelinkConfig]:
    from tracelink.manager import TraceabilityManager

    config = _load_config(root)
    return TraceabilityManager.for_project(config.root_path, config), config


@click.group()
@click.version_option()
@click.option("--verbose", "-v", is_flag=True, default=False, help="Log link changes and audit events")
def cli(verbose: bool) -> None:
    """tracelink - traceability link graph for compliance documentation."""
    if verbose:
        logging.basicConfig(level=logging.INFO, format="%(name)s: %(message)s")


@cli.command()
@click.option(
    "--recover",
    is_flag=True,
    default=False,
    help="Move a corrupted link store aside and start with an empty one",
)
@root_option
@_cli_error_handler
def init(recover: bool, root: Path | None) -> None:
    """Create an empty link store if none exists.

    An existing store is checked. A corrupted store is an error unless
    --recover is given (or recover_corrupt_store is set in
    [tool.tracelink]), in which case it is renamed to
    ``<name>.corrupt-<timestamp>`` and replaced by an empty store.
    """
    from tracelink.storage.repository import LinkRepository

    config = _load_config(root)
    repository = LinkRepository.for_project(config.root_path, config.links_file, config.lock_timeout)
    repository.initialize(recover=recover or config.recover_corrupt_store)
    click.echo(f"Link store ready: {config.links_path} ({repository.count()} links)")


# =============================================================================
# Link Commands
# =============================================================================


@cli.group()
def link() -> None:
    """Create, inspect and verify trace links."""
    pass


@link.command("create")
@click.argument("source")
@click.argument("target")
@click.option(
    "--type",
    "-t",
    "link_type",
    default="related",
    show_default=True,
    help="Link type: DerivedFrom, Implements, Verifies, DependsOn, Conflicts, Duplicates, Related",
)
@user_option
@root_option
@_cli_error_handler
def link_create(source: str, target: str, link_type: str, user: str | None, root: Path | None) -> None:
    """Link SOURCE to TARGET.

    \b
    Examples:
        tracelink link create REQ-001 TC-001 --type verifies
        tracelink link create REQ-002 REQ-001 -t depends_on
    """
    manager, config = _load_manager(root)
    created = manager.create_trace_link(source, target, link_type, created_by=user or config.default_user)
    click.echo(f"Created link {created.id}: {source} -> {target} ({created.link_type})")


@link.command("delete")
@click.argument("link_id")
@click.option("--force", "-f", is_flag=True, help="Skip confirmation prompt")
@user_option
@root_option
@_cli_error_handler
def link_delete(link_id: str, force: bool, user: str | None, root: Path | None) -> None:
    """Delete the link LINK_ID."""
    manager, config = _load_manager(root)
    existing = manager.get_link(link_id)
    if not force:
        click.confirm(
            f"Delete link {existing.source_id} -> {existing.target_id} ({existing.link_type})?",
            abort=True,
        )
    manager.delete_trace_link(link_id, deleted_by=user or config.default_user)
    click.echo(f"Deleted link {link_id}")


@link.command("list")
@click.option("--entity", "-e", default=None, help="Only links touching this entity")
@root_option
@_cli_error_handler
def link_list(entity: str | None, root: Path | None) -> None:
    """List stored links."""
    manager, _ = _load_manager(root)
    links = manager.get_links_for_entity(entity) if entity else manager.get_trace_links()
    if not links:
        click.echo("No links found")
        return
    for item in links:
        mark = " [verified]" if item.verified else ""
        click.echo(f"{item.id}  {item.source_id} -> {item.target_id}  {item.link_type}{mark}")
    click.echo(f"\n{len(links)} link(s)")


@link.command("show")
@click.argument("link_id")
@root_option
@_cli_error_handler
def link_show(link_id: str, root: Path | None) -> None:
    """Show one link and its verification record."""
    manager, _ = _load_manager(root)
    item = manager.get_link(link_id)
    record = manager.verification.get_record(link_id)
    click.echo(f"Link: {item.id}")
    click.echo(f"Source: {item.source_id} ({item.source_type})")
    click.echo(f"Target: {item.target_id} ({item.target_type})")
    click.echo(f"Type: {item.link_type}")
    click.echo(f"Created: {item.created_at} by {item.created_by}")
    click.echo(f"Verification: {record.status}")
    if item.verified:
        click.echo(f"Verified: {item.verified_at} by {item.verified_by}")
    if record.notes:
        click.echo(f"Notes: {record.notes}")
    if record.evidence:
        click.echo("Evidence:")
        for evidence in record.evidence:
            click.echo(f"  - [{evidence.method}] {evidence.path}: {evidence.description}")


@link.command("evidence")
@click.argument("link_id")
@click.argument("path")
@click.option("--description", "-d", required=True, help="What the evidence shows")
@click.option(
    "--method",
    "-m",
    default="Test",
    show_default=True,
    help="Verification method: Test, Analysis, Inspection, Demonstration",
)
@click.option("--evidence-type", default="Test Result", show_default=True, help="Kind of evidence")
@click.option("--notes", default=None, help="Free-form notes")
@user_option
@root_option
@_cli_error_handler
def link_evidence(
    link_id: str,
    path: str,
    description: str,
    method: str,
    evidence_type: str,
    notes: str | None,
    user: str | None,
    root: Path | None,
) -> None:
    """Attach the evidence file PATH to link LINK_ID."""
    manager, config = _load_manager(root)
    evidence = manager.verification.add_evidence(
        link_id,
        path,
        description,
        method=method,
        created_by=user or config.default_user,
        evidence_type=evidence_type,
        notes=notes,
    )
    record = manager.verification.get_record(link_id)
    click.echo(f"Added evidence {evidence.evidence_id} to link {link_id} (status: {record.status})")


@link.command("verify")
@click.argument("link_id")
@click.argument("status")
@click.option("--notes", default=None, help="Notes recorded with the status change")
@user_option
@root_option
@_cli_error_handler
def link_verify(link_id: str, status: str, notes: str | None, user: str | None, root: Path | None) -> None:
    """Set the verification STATUS of LINK_ID.

    STATUS is one of not_verified, partial or complete. Status can only
    move forward.
    """
    manager, config = _load_manager(root)
    record = manager.verification.update_status(link_id, status, updated_by=user or config.default_user, notes=notes)
    click.echo(f"Link {link_id} is now {record.status}")


@link.command("stats")
@root_option
@_cli_error_handler
def link_stats(root: Path | None) -> None:
    """Count links per verification status."""
    manager, _ = _load_manager(root)
    counts = manager.verification.statistics()
    total = counts.pop("total")
    click.echo(f"Total links: {total}")
    for status, count in counts.items():
        click.echo(f"  {status}: {count}")


# =============================================================================
# Trace Commands
# =============================================================================


def _print_tree(nodes: list[PathNode]) -> None:
    stack = [(node, 1) for node in reversed(nodes)]
    while stack:
        node, indent = stack.pop()
        click.echo(f"{'  ' * indent}{node.link_type} -> {node.entity_id} ({node.entity_type})")
        stack.extend((child, indent + 1) for child in reversed(node.children))


@cli.group()
def trace() -> None:
    """Walk the link graph from one entity."""
    pass


@trace.command("forward")
@click.argument("entity_id")
@root_option
@_cli_error_handler
def trace_forward(entity_id: str, root: Path | None) -> None:
    """Show everything ENTITY_ID links to, transitively."""
    manager, _ = _load_manager(root)
    path = manager.trace_forward(entity_id)
    click.echo(f"{path.root_id} ({path.root_type})")
    _print_tree(path.nodes)
    click.echo(f"\nMax depth: {path.depth}")


@trace.command("backward")
@click.argument("entity_id")
@root_option
@_cli_error_handler
def trace_backward(entity_id: str, root: Path | None) -> None:
    """Show everything that links to ENTITY_ID, transitively."""
    manager, _ = _load_manager(root)
    path = manager.trace_backward(entity_id)
    click.echo(f"{path.root_id} ({path.root_type})")
    _print_tree(path.nodes)
    click.echo(f"\nMax depth: {path.depth}")


@cli.command()
@click.option(
    "--type",
    "-t",
    "kinds",
    multiple=True,
    help="Entity type to scan: Requirement, TestCase, Risk, Document (repeatable)",
)
@root_option
@_cli_error_handler
def orphans(kinds: tuple[str, ...], root: Path | None) -> None:
    """List entities that take part in no link.

    Exits with status 1 when orphans are found.
    """
    from tracelink.core.models import EntityKind

    manager, _ = _load_manager(root)
    selected = [EntityKind.parse(kind) for kind in kinds] or None
    items = manager.find_orphaned_items(selected)
    if not items:
        click.echo("No orphaned items found")
        return
    click.echo(f"Found {len(items)} orphaned items:", err=True)
    for item in items:
        click.echo(f"  - {item.entity_id} ({item.entity_type}): {item.reason}", err=True)
    sys.exit(1)


@cli.command()
@root_option
@_cli_error_handler
def check(root: Path | None) -> None:
    """Check the stored links for duplicates, cycles and dangling endpoints.

    Exits with status 1 if any errors are found.
    """
    manager, _ = _load_manager(root)
    issues = manager.check()
    if not issues:
        click.echo(f"No issues found in {len(manager.get_trace_links())} links")
        return
    for issue in issues:
        click.echo(str(issue), err=issue.level == "error")
    errors = sum(1 for issue in issues if issue.level == "error")
    click.echo(f"\n{errors} error(s), {len(issues) - errors} warning(s)")
    if errors:
        sys.exit(1)


# =============================================================================
# RTM Commands
# =============================================================================


@cli.group()
def rtm() -> None:
    """Requirements traceability matrix reports."""
    pass


@rtm.command("generate")
@click.argument("output", type=click.Path(path_type=Path))
@click.option(
    "--format",
    "-f",
    "output_format",
    default=None,
    help="csv, json, html, markdown, pdf or xlsx (default: from extension)",
)
@click.option("--sort-by", default=None, help="id, title, priority, status, verification_status or coverage")
@click.option("--category", multiple=True, help="Only requirements in this category (repeatable)")
@click.option("--priority", multiple=True, help="Only requirements with this priority (repeatable)")
@click.option("--status", multiple=True, help="Only requirements with this status (repeatable)")
@click.option(
    "--verification-status",
    multiple=True,
    help="Only 'Verified' or 'Not Verified' requirements (repeatable)",
)
@click.option("--descriptions/--no-descriptions", default=None, help="Include the Description column")
@click.option("--coverage/--no-coverage", default=None, help="Include the Coverage % column")
@click.option("--details/--no-details", default=None, help="Include Last Verified and Notes columns")
@root_option
@_cli_error_handler
def rtm_generate(
    output: Path,
    output_format: str | None,
    sort_by: str | None,
    category: tuple[str, ...],
    priority: tuple[str, ...],
    status: tuple[str, ...],
    verification_status: tuple[str, ...],
    descriptions: bool | None,
    coverage: bool | None,
    details: bool | None,
    root: Path | None,
) -> None:
    """Write the full requirements traceability matrix to OUTPUT.

    \b
    Examples:
        tracelink rtm generate rtm.html
        tracelink rtm generate rtm.csv --priority High --priority Critical
        tracelink rtm generate report.txt --sort-by coverage --descriptions
    """
    from tracelink.matrix.generator import RTMConfig, RTMFormat, RTMSortBy
    from tracelink.matrix.utils import infer_format

    manager, config = _load_manager(root)
    fmt = RTMFormat.parse(output_format or infer_format(str(output)))
    rtm_config = RTMConfig(
        include_categories=list(category) or None,
        include_priorities=list(priority) or None,
        include_statuses=list(status) or None,
        include_verification_statuses=list(verification_status) or None,
        show_descriptions=config.rtm_show_descriptions if descriptions is None else descriptions,
        show_coverage_metrics=config.rtm_show_coverage if coverage is None else coverage,
        show_verification_details=config.rtm_show_verification_details if details is None else details,
        sort_by=RTMSortBy.parse(sort_by or config.rtm_sort_by),
    )
    entries = manager.export_rtm(output, fmt, rtm_config)
    click.echo(f"Generated {fmt} RTM with {len(entries)} requirements: {output}")


@rtm.command("stats")
@root_option
@_cli_error_handler
def rtm_stats(root: Path | None) -> None:
    """Print RTM totals and breakdowns."""
    manager, _ = _load_manager(root)
    stats = manager.matrix.compute_statistics()
    click.echo("RTM STATISTICS")
    click.echo(f"Total Requirements: {stats.total_requirements}")
    click.echo(f"Total Test Cases: {stats.total_test_cases}")
    click.echo(f"Total Links: {stats.total_links}")
    click.echo(f"Requirements with Tests: {stats.requirements_with_tests}")
    click.echo(f"Requirements without Tests: {stats.requirements_without_tests}")
    click.echo(f"Test Cases with Requirements: {stats.test_cases_with_requirements}")
    click.echo(f"Orphaned Test Cases: {stats.orphaned_test_cases}")
    click.echo(f"Verification Coverage: {stats.verification_coverage:.1f}% ({stats.quality_label})")
    for title, breakdown in (
        ("By Category", stats.category_breakdown),
        ("By Priority", stats.priority_breakdown),
        ("By Status", stats.status_breakdown),
        ("By Verification Status", stats.verification_status_breakdown),
    ):
        if breakdown:
            click.echo(f"\n{title}:")
            for key, count in sorted(breakdown.items()):
                click.echo(f"  {key or '(none)'}: {count}")


@rtm.command("summary")
@click.argument("output", type=click.Path(path_type=Path))
@root_option
@_cli_error_handler
def rtm_summary(output: Path, root: Path | None) -> None:
    """Write the per-entity summary matrix to OUTPUT (.csv or .json)."""
    manager, _ = _load_manager(root)
    suffix = output.suffix.lower()
    if suffix == ".csv":
        count = manager.export_rtm_csv(output)
    elif suffix == ".json":
        count = manager.export_rtm_json(output)
    else:
        raise ValidationError(f"Summary RTM must be a .csv or .json file, got '{output}'")
    click.echo(f"Exported {count} linked entities to {output}")


# =============================================================================
# Import / Export Commands
# =============================================================================


@cli.command("import")
@click.argument("input_path", metavar="FILE", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@root_option
@_cli_error_handler
def import_links(input_path: Path, root: Path | None) -> None:
    """Import links from a CSV, JSON or YAML FILE.

    Every row goes through the same checks as ``link create``. Bad rows are
    reported and skipped; the rest are imported. Exits with status 1 if any
    row failed.

    \b
    CSV files need the header:
        SourceType,SourceID,TargetType,TargetID,LinkType,CreatedBy
    """
    manager, _ = _load_manager(root)
    stats = manager.import_file(input_path)
    click.echo(f"Processed: {stats.total_processed}")
    click.echo(f"Imported: {stats.successful_imports}")
    click.echo(f"Duplicates: {stats.duplicates_found}")
    click.echo(f"Failed: {stats.failed_imports}")
    if stats.validation_errors:
        click.echo("\nErrors:", err=True)
        for message in stats.validation_errors:
            click.echo(f"  - {message}", err=True)
        sys.exit(1)


@cli.command("export")
@click.argument("output", type=click.Path(path_type=Path))
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice(["csv", "json", "dot", "yaml"]),
    default=None,
    help="Export format (default: from extension)",
)
@root_option
@_cli_error_handler
def export_links(output: Path, output_format: str | None, root: Path | None) -> None:
    """Export the link graph to OUTPUT.

    \b
    csv, json   summary RTM (one row per linked entity)
    dot         Graphviz dependency graph
    yaml        raw link list, re-importable with 'tracelink import'
    """
    manager, _ = _load_manager(root)
    count = manager.bridge.export_file(output, output_format)
    click.echo(f"Exported {count} records to {output}")


# =============================================================================
# Analysis Commands
# =============================================================================


@cli.command()
@root_option
@_cli_error_handler
def coverage(root: Path | None) -> None:
    """Print the coverage dashboard."""
    manager, _ = _load_manager(root)
    report = manager.analyze_coverage()
    req, tests, risks = report.requirements, report.tests, report.risks

    click.echo("TRACEABILITY COVERAGE DASHBOARD")
    click.echo(f"Overall Coverage Score: {report.overall_score:.1f}%")
    click.echo(f"Status: {report.status_label}")
    click.echo("\nREQUIREMENTS COVERAGE")
    click.echo(f"Total Requirements: {req.total_requirements}")
    click.echo(f"Tested: {req.tested_requirements} ({req.coverage_percentage:.1f}%)")
    click.echo(f"Verified: {req.verified_requirements} ({req.verification_percentage:.1f}%)")
    click.echo(f"Untested: {len(req.untested_requirements)}")
    click.echo("\nTESTS COVERAGE")
    click.echo(f"Total Tests: {tests.total_tests}")
    click.echo(f"Linked: {tests.linked_tests} ({tests.coverage_percentage:.1f}%)")
    click.echo(f"Orphaned: {len(tests.orphaned_tests)}")
    click.echo("\nRISKS COVERAGE")
    click.echo(f"Total Risks: {risks.total_risks}")
    click.echo(f"Mitigated: {risks.mitigated_risks} ({risks.coverage_percentage:.1f}%)")
    click.echo(f"Unmitigated: {len(risks.unmitigated_risks)}")
    _print_gaps(report.gap_analysis)


def _print_gaps(analysis: GapAnalysis) -> None:
    click.echo("\nGAP ANALYSIS")
    if analysis.critical_gaps:
        click.echo("Critical Gaps:")
        for gap in analysis.critical_gaps:
            click.echo(f"  - {gap}")
    else:
        click.echo("No critical gaps identified")
    if analysis.recommendations:
        click.echo("\nRecommendations:")
        for recommendation in analysis.recommendations:
            click.echo(f"  - {recommendation}")
    if analysis.improvement_areas:
        click.echo("\nImprovement Areas:")
        for area in analysis.improvement_areas:
            click.echo(f"  - {area}")


@cli.command()
@root_option
@_cli_error_handler
def gaps(root: Path | None) -> None:
    """Print critical coverage gaps and recommendations.

    Exits with status 1 when a critical gap exists.
    """
    manager, _ = _load_manager(root)
    report = manager.analyze_coverage()
    _print_gaps(report.gap_analysis)
    if report.gap_analysis.critical_gaps:
        sys.exit(1)


@cli.command()
@click.argument("entity_id")
@click.option("--description", "-d", default="", help="Description of the planned change")
@root_option
@_cli_error_handler
def impact(entity_id: str, description: str, root: Path | None) -> None:
    """Estimate the impact of changing ENTITY_ID."""
    manager, _ = _load_manager(root)
    report = manager.analyze_impact(entity_id, description)

    click.echo("IMPACT ANALYSIS REPORT")
    click.echo(f"Source Entity: {report.source_entity_id}")
    if report.change_description:
        click.echo(f"Change Description: {report.change_description}")
    click.echo(f"Total Effort Estimate: {report.total_effort_hours} hours")
    click.echo(f"Risk Assessment: {report.risk_assessment}")

    for title, items in (("DIRECT IMPACTS", report.direct_impacts), ("INDIRECT IMPACTS", report.indirect_impacts)):
        if not items:
            continue
        click.echo(f"\n{title}")
        for index, item in enumerate(items, start=1):
            click.echo(f"{index}. {item.entity_title} ({item.entity_id})")
            click.echo(f"   Impact Level: {item.impact_level}")
            click.echo(f"   Description: {item.impact_description}")
            click.echo(f"   Effort Estimate: {item.estimated_effort_hours} hours")
            click.echo(f"   Stakeholders: {', '.join(item.stakeholders)}")

    if report.critical_path:
        click.echo("\nCRITICAL PATH ITEMS")
        for entity in report.critical_path:
            click.echo(f"  - {entity}")

    click.echo("\nRECOMMENDED ACTIONS")
    for index, action in enumerate(report.recommendations, start=1):
        click.echo(f"  {index}. {action}")

    if report.stakeholder_summary:
        click.echo("\nSTAKEHOLDER SUMMARY")
        for stakeholder, entities in report.stakeholder_summary.items():
            click.echo(f"  {stakeholder}: {len(entities)} affected items")


if __name__ == "__main__":
    cli()
