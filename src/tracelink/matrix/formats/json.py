"""JSON traceability matrix output."""

import json
from typing import Any

from tracelink.core.models import RTMEntry, TraceabilityMatrix, utc_now
from tracelink.matrix.generator import RTMConfig


def _entry_to_dict(entry: RTMEntry) -> dict[str, Any]:
    return {
        "requirement_id": entry.requirement_id,
        "requirement_title": entry.title,
        "requirement_description": entry.description,
        "requirement_category": entry.category,
        "requirement_priority": entry.priority,
        "requirement_status": entry.status,
        "linked_test_cases": entry.linked_test_cases,
        "linked_design_elements": entry.linked_design_elements,
        "linked_risks": entry.linked_risks,
        "linked_documents": entry.linked_documents,
        "verification_status": entry.verification_status,
        "verification_method": entry.verification_method,
        "coverage_percentage": round(entry.coverage_percentage, 1),
        "last_verified_at": entry.last_verified_at,
        "verification_notes": entry.verification_notes,
    }


def render_rtm_json(entries: list[RTMEntry], config: RTMConfig, generated_at: str | None = None) -> str:
    """Render RTM rows as JSON.

    Every field is always present regardless of *config*; JSON consumers
    select what they need.

    Returns:
        A JSON document with ``version``, ``generated_at``,
        ``total_entries`` and ``entries``.
    """
    data = {
        "version": "1.0",
        "generated_at": generated_at or utc_now(),
        "total_entries": len(entries),
        "entries": [_entry_to_dict(entry) for entry in entries],
    }
    return json.dumps(data, indent=2)


def render_summary_json(matrix: TraceabilityMatrix) -> str:
    """Render the summary matrix, including the raw link list, as JSON."""
    data = {
        "generated_at": matrix.generated_at,
        "generated_by": matrix.generated_by,
        "entities": [
            {
                "entity_id": entity.entity_id,
                "entity_type": entity.entity_type,
                "title": entity.title,
                "status": entity.status,
                "linked_entities": entity.linked_entities,
            }
            for entity in matrix.entities
        ],
        "links": [link.to_dict() for link in matrix.links],
    }
    return json.dumps(data, indent=2)
