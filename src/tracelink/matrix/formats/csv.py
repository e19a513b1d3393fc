"""CSV traceability matrix output."""

import csv
import io

from tracelink.core.models import RTMEntry, TraceabilityMatrix
from tracelink.matrix.generator import RTMConfig
from tracelink.matrix.utils import rtm_columns, rtm_row

SUMMARY_HEADER = ["Entity ID", "Entity Type", "Title", "Status", "Linked Entities"]


def render_rtm_csv(entries: list[RTMEntry], config: RTMConfig, generated_at: str | None = None) -> str:
    """Render RTM rows as CSV.

    Args:
        entries: RTM rows in output order.
        config: Column selection flags.
        generated_at: Unused; accepted for a uniform formatter signature.

    Returns:
        A string containing a header row and one row per requirement.
        Linked-ID lists are joined with ``"; "``.
    """
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(rtm_columns(config))
    for entry in entries:
        writer.writerow(rtm_row(entry, config, list_sep="; "))
    return output.getvalue()


def render_summary_csv(matrix: TraceabilityMatrix) -> str:
    """Render the summary matrix as CSV.

    Returns:
        A string with the ``Entity ID,Entity Type,Title,Status,Linked
        Entities`` header and one row per linked entity.
    """
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(SUMMARY_HEADER)
    for entity in matrix.entities:
        writer.writerow(
            [
                entity.entity_id,
                entity.entity_type,
                entity.title,
                entity.status,
                "; ".join(entity.linked_entities),
            ]
        )
    return output.getvalue()
