"""Markdown traceability matrix output."""

from tracelink.core.models import RTMEntry, utc_now
from tracelink.matrix.generator import RTMConfig
from tracelink.matrix.utils import rtm_columns, rtm_row


def _escape_cell(text: str) -> str:
    """Escape pipe characters and flatten newlines for a table cell."""
    return text.replace("|", "\\|").replace("\n", " ")


def render_rtm_markdown(entries: list[RTMEntry], config: RTMConfig, generated_at: str | None = None) -> str:
    """Render RTM rows as a Markdown document.

    Args:
        entries: RTM rows in output order.
        config: Column selection flags.
        generated_at: Generation timestamp shown in the header.

    Returns:
        A Markdown document with a title, generation metadata and a
        pipe-delimited table.
    """
    columns = rtm_columns(config)
    lines = [
        "# Requirements Traceability Matrix",
        "",
        f"**Generated:** {generated_at or utc_now()}",
        f"**Total Requirements:** {len(entries)}",
        "",
        "| " + " | ".join(columns) + " |",
        "|" + "---|" * len(columns),
    ]
    for entry in entries:
        cells = [_escape_cell(value) for value in rtm_row(entry, config, list_sep=", ", coverage_suffix="%")]
        lines.append("| " + " | ".join(cells) + " |")
    return "\n".join(lines) + "\n"
