"""Fixed-width plain-text ("PDF") traceability matrix output.

The layout is meant for printing or for conversion with pandoc or
wkhtmltopdf; it does not produce a binary PDF.
"""

from tracelink.core.models import RTMEntry, utc_now
from tracelink.matrix.generator import RTMConfig

LINE_WIDTH = 80


def _center(text: str, width: int = LINE_WIDTH) -> str:
    if len(text) >= width:
        return text
    return " " * ((width - len(text)) // 2) + text


def _percent(part: int, total: int) -> float:
    return 100.0 * part / total if total else 0.0


def render_rtm_text(entries: list[RTMEntry], config: RTMConfig, generated_at: str | None = None) -> str:
    """Render RTM rows as an 80-column text report.

    Each requirement becomes a block with its metadata, linked test cases
    and design elements, and verification method/status. A summary block
    closes the report.
    """
    lines = [
        "=" * LINE_WIDTH,
        _center("REQUIREMENTS TRACEABILITY MATRIX"),
        "=" * LINE_WIDTH,
        "",
        f"Generated: {generated_at or utc_now()}",
        f"Total Entries: {len(entries)}",
        "",
        "-" * LINE_WIDTH,
        "",
    ]

    for index, entry in enumerate(entries, start=1):
        lines.append(f"Entry {index}: {entry.requirement_id}")
        lines.append("-" * 40)
        lines.append(f"Requirement: {entry.title}")
        if config.show_descriptions and entry.description:
            lines.append(f"Description: {entry.description}")
        lines.append(f"Category: {entry.category}")
        lines.append(f"Priority: {entry.priority}")
        lines.append(f"Status: {entry.status}")

        for label, ids in (
            ("Linked Test Cases", entry.linked_test_cases),
            ("Linked Design Elements", entry.linked_design_elements),
            ("Linked Risks", entry.linked_risks),
            ("Linked Documents", entry.linked_documents),
        ):
            if ids:
                lines.append(f"{label}:")
                lines.extend(f"  - {entity_id}" for entity_id in ids)

        if entry.verification_method:
            lines.append(f"Verification Method: {entry.verification_method}")
        lines.append(f"Verification Status: {entry.verification_status}")
        if config.show_coverage_metrics:
            lines.append(f"Coverage: {entry.coverage_percentage:.1f}%")
        if config.show_verification_details:
            lines.append(f"Last Verified: {entry.last_verified_at or ''}")
            lines.append(f"Notes: {entry.verification_notes or ''}")
        lines.append("")

    total = len(entries)
    tested = sum(1 for e in entries if e.linked_test_cases)
    with_method = sum(1 for e in entries if e.verification_method)
    lines.extend(
        [
            "=" * LINE_WIDTH,
            _center("SUMMARY"),
            "=" * LINE_WIDTH,
            "",
            f"Total Requirements: {total}",
            f"Requirements with Tests: {tested} ({_percent(tested, total):.1f}%)",
            f"Requirements with Verification: {with_method} ({_percent(with_method, total):.1f}%)",
            "",
            "Note: This is a text-based PDF format. For graphical PDF output,",
            "convert this file using external tools like pandoc or wkhtmltopdf.",
        ]
    )
    return "\n".join(lines) + "\n"
