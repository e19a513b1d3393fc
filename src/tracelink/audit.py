"""Audit trail port.

The link graph reports every create, delete, import, export and
verification to an :class:`AuditSink`. Recording is fire-and-forget: a
failing sink is logged and never aborts the graph operation.
"""

import logging
from typing import Any, Protocol, runtime_checkable

logger = logging.getLogger("tracelink")
audit_logger = logging.getLogger("tracelink.audit")


@runtime_checkable
class AuditSink(Protocol):
    """Append-only receiver of audit events."""

    def record(self, action: str, entity_id: str, details: dict[str, Any]) -> None: ...


class LoggingAuditSink:
    """Audit sink that writes one INFO record per event to ``tracelink.audit``."""

    def record(self, action: str, entity_id: str, details: dict[str, Any]) -> None:
        summary = ", ".join(f"{key}={value}" for key, value in details.items())
        audit_logger.info("%s %s %s", action, entity_id, summary)


class MemoryAuditSink:
    """Audit sink that keeps events in a list."""

    def __init__(self) -> None:
        self.events: list[tuple[str, str, dict[str, Any]]] = []

    def record(self, action: str, entity_id: str, details: dict[str, Any]) -> None:
        self.events.append((action, entity_id, dict(details)))


def emit(sink: AuditSink | None, action: str, entity_id: str, /, **details: Any) -> None:
    """Send one event to *sink*, logging (not raising) any failure.

    The leading parameters are positional-only, so any keyword (including
    ``action`` or ``entity_id``) is passed through as a detail.
    """
    if sink is None:
        return
    try:
        sink.record(action, entity_id, details)
    except Exception as e:
        logger.warning("Audit sink failed to record %s for %s: %s", action, entity_id, e)
