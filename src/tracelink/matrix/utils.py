"""Shared utilities for matrix generation."""

from pathlib import Path
from typing import TYPE_CHECKING

from tracelink.core.models import RTMEntry

if TYPE_CHECKING:
    from tracelink.matrix.generator import RTMConfig

# Supported matrix format extensions
EXTENSION_TO_FORMAT = {
    ".html": "html",
    ".htm": "html",
    ".json": "json",
    ".csv": "csv",
    ".md": "markdown",
    ".pdf": "pdf",
    ".txt": "pdf",
    ".xlsx": "xlsx",
}


def infer_format(path: str) -> str:
    """Infer output format from file extension.

    Args:
        path: File path with extension.

    Returns:
        Format string: "html", "json", "csv", "markdown", "pdf" or "xlsx".

    Raises:
        ValueError: If the file extension is not recognized.
    """
    ext = Path(path).suffix.lower()
    if ext not in EXTENSION_TO_FORMAT:
        supported = ", ".join(sorted(EXTENSION_TO_FORMAT.keys()))
        raise ValueError(f"Unrecognized file extension '{ext}' for '{path}'. Supported extensions: {supported}")
    return EXTENSION_TO_FORMAT[ext]


def rtm_columns(config: "RTMConfig") -> list[str]:
    """Return the RTM column headers for *config*, in fixed order.

    ``Description`` follows ``Title`` when descriptions are shown;
    ``Coverage %`` and then ``Last Verified``/``Notes`` close the row when
    coverage metrics and verification details are enabled.
    """
    columns = ["Requirement ID", "Title"]
    if config.show_descriptions:
        columns.append("Description")
    columns.extend(
        [
            "Category",
            "Priority",
            "Status",
            "Test Cases",
            "Design Elements",
            "Risks",
            "Documents",
            "Verification Status",
            "Verification Method",
        ]
    )
    if config.show_coverage_metrics:
        columns.append("Coverage %")
    if config.show_verification_details:
        columns.extend(["Last Verified", "Notes"])
    return columns


def rtm_row(
    entry: RTMEntry,
    config: "RTMConfig",
    list_sep: str = "; ",
    coverage_suffix: str = "",
) -> list[str]:
    """Return the cell values of *entry* matching :func:`rtm_columns`.

    Args:
        entry: The RTM row.
        config: Column selection flags.
        list_sep: Separator used to join linked-ID lists.
        coverage_suffix: Appended to the formatted coverage value
            (e.g. ``"%"`` for human-facing formats).
    """
    row = [entry.requirement_id, entry.title]
    if config.show_descriptions:
        row.append(entry.description)
    row.extend(
        [
            entry.category,
            entry.priority,
            entry.status,
            list_sep.join(entry.linked_test_cases),
            list_sep.join(entry.linked_design_elements),
            list_sep.join(entry.linked_risks),
            list_sep.join(entry.linked_documents),
            entry.verification_status,
            entry.verification_method,
        ]
    )
    if config.show_coverage_metrics:
        row.append(f"{entry.coverage_percentage:.1f}{coverage_suffix}")
    if config.show_verification_details:
        row.extend([entry.last_verified_at or "", entry.verification_notes or ""])
    return row
