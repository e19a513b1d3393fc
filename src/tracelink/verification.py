"""Verification workflow layered on trace links.

Each link moves through ``Not Verified -> Partially Verified -> Fully
Verified``. Adding evidence moves a not-yet-verified link to partially
verified; any further step is an explicit status update by the caller.
Transitions never go backwards and never happen on their own.

Evidence and per-link status live in a YAML ledger beside the link
store. Reaching ``Fully Verified`` also stamps ``verified``,
``verified_at`` and ``verified_by`` on the link itself.
"""

import logging
import uuid
from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

from tracelink.audit import AuditSink, emit
from tracelink.core.models import DEFAULT_USER, utc_now
from tracelink.errors import IoError, NotFoundError, ParseError, ValidationError
from tracelink.storage.repository import LinkRepository
from tracelink.storage.yaml_utils import write_yaml_atomic

logger = logging.getLogger("tracelink")


class VerificationStatus(str, Enum):
    """Verification state of one link."""

    NOT_VERIFIED = "Not Verified"
    PARTIALLY_VERIFIED = "Partially Verified"
    FULLY_VERIFIED = "Fully Verified"

    def __str__(self) -> str:
        return self.value

    @property
    def rank(self) -> int:
        return _STATUS_ORDER.index(self)

    @classmethod
    def parse(cls, text: str) -> "VerificationStatus":
        """Parse a status, accepting aliases like ``partial`` or ``complete``.

        Raises:
            ValidationError: If *text* is not a known status.
        """
        aliases = {
            "not_verified": cls.NOT_VERIFIED,
            "not verified": cls.NOT_VERIFIED,
            "notverified": cls.NOT_VERIFIED,
            "none": cls.NOT_VERIFIED,
            "partially_verified": cls.PARTIALLY_VERIFIED,
            "partially verified": cls.PARTIALLY_VERIFIED,
            "partial": cls.PARTIALLY_VERIFIED,
            "fully_verified": cls.FULLY_VERIFIED,
            "fully verified": cls.FULLY_VERIFIED,
            "complete": cls.FULLY_VERIFIED,
            "verified": cls.FULLY_VERIFIED,
        }
        key = text.strip().lower()
        if key not in aliases:
            raise ValidationError(f"Invalid verification status: {text}")
        return aliases[key]


_STATUS_ORDER = [
    VerificationStatus.NOT_VERIFIED,
    VerificationStatus.PARTIALLY_VERIFIED,
    VerificationStatus.FULLY_VERIFIED,
]


class VerificationMethod(str, Enum):
    """How the evidence was obtained."""

    TEST = "Test"
    ANALYSIS = "Analysis"
    INSPECTION = "Inspection"
    DEMONSTRATION = "Demonstration"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, text: str) -> "VerificationMethod":
        """Parse a method name case-insensitively.

        Raises:
            ValidationError: If *text* is not a known method.
        """
        key = text.strip().lower()
        for method in cls:
            if method.value.lower() == key:
                return method
        raise ValidationError(f"Invalid verification method: {text}")


@dataclass
class VerificationEvidence:
    """One piece of evidence attached to a link."""

    link_id: str
    path: str
    description: str
    method: str = VerificationMethod.TEST.value
    evidence_type: str = "Test Result"
    evidence_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: str = field(default_factory=utc_now)
    created_by: str = DEFAULT_USER
    notes: str | None = None


@dataclass
class VerificationRecord:
    """Verification state and evidence of one link."""

    link_id: str
    status: VerificationStatus = VerificationStatus.NOT_VERIFIED
    evidence: list[VerificationEvidence] = field(default_factory=list)
    updated_at: str | None = None
    updated_by: str | None = None
    notes: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "updated_at": self.updated_at,
            "updated_by": self.updated_by,
            "notes": self.notes,
            "evidence": [{k: v for k, v in asdict(e).items() if k != "link_id"} for e in self.evidence],
        }

    @classmethod
    def from_dict(cls, link_id: str, data: dict[str, Any]) -> "VerificationRecord":
        try:
            return cls(
                link_id=link_id,
                status=VerificationStatus.parse(str(data.get("status", "not_verified"))),
                evidence=[VerificationEvidence(link_id=link_id, **e) for e in data.get("evidence") or []],
                updated_at=data.get("updated_at"),
                updated_by=data.get("updated_by"),
                notes=data.get("notes"),
            )
        except (TypeError, ValidationError) as e:
            raise ParseError(f"Invalid verification record for link {link_id}: {e}") from e


class VerificationLedger:
    """Persist verification records, in a YAML file or in memory.

    Args:
        path: Ledger file. ``None`` keeps records in memory only.
    """

    def __init__(self, path: Path | None = None) -> None:
        self.path = path
        self._memory: dict[str, VerificationRecord] = {}

    def load(self) -> dict[str, VerificationRecord]:
        """Return all records keyed by link id.

        Raises:
            ParseError: If the ledger file is malformed.
            IoError: If it cannot be read.
        """
        if self.path is None:
            return dict(self._memory)
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ParseError(f"Verification ledger {self.path} is corrupted: {e}") from e
        except OSError as e:
            raise IoError(f"Cannot read verification ledger {self.path}: {e}") from e
        records = data.get("records") or {}
        if not isinstance(records, dict):
            raise ParseError(f"Verification ledger {self.path}: 'records' must be a mapping")
        return {link_id: VerificationRecord.from_dict(link_id, rec or {}) for link_id, rec in records.items()}

    def save(self, records: dict[str, VerificationRecord]) -> None:
        """Persist *records*, replacing the previous contents."""
        if self.path is None:
            self._memory = dict(records)
            return
        data = {
            "version": "1.0",
            "records": {link_id: record.to_dict() for link_id, record in records.items()},
        }
        write_yaml_atomic(data, self.path)


class VerificationWorkflow:
    """Drive the per-link verification state machine.

    Args:
        repository: Link repository; links must exist to be verified.
        ledger: Where verification records are kept.
        audit: Optional audit sink.
    """

    def __init__(
        self,
        repository: LinkRepository,
        ledger: VerificationLedger | None = None,
        audit: AuditSink | None = None,
    ) -> None:
        self.repository = repository
        self.ledger = ledger or VerificationLedger()
        self.audit = audit

    def get_record(self, link_id: str) -> VerificationRecord:
        """Return the record for *link_id* (a fresh one if none is stored).

        Raises:
            NotFoundError: If the link does not exist.
        """
        self.repository.get(link_id)
        return self.ledger.load().get(link_id, VerificationRecord(link_id=link_id))

    def add_evidence(
        self,
        link_id: str,
        path: str,
        description: str,
        method: VerificationMethod | str = VerificationMethod.TEST,
        created_by: str = DEFAULT_USER,
        evidence_type: str = "Test Result",
        notes: str | None = None,
    ) -> VerificationEvidence:
        """Attach evidence to a link.

        A link that is ``Not Verified`` becomes ``Partially Verified``;
        links already further along keep their status.

        Raises:
            NotFoundError: If the link does not exist.
            ValidationError: If *method* is unknown.
        """
        if not isinstance(method, VerificationMethod):
            method = VerificationMethod.parse(method)

        # The ledger shares the link store's lock
        with self.repository.store.lock():
            self.repository.get(link_id)
            records = self.ledger.load()
            record = records.setdefault(link_id, VerificationRecord(link_id=link_id))
            evidence = VerificationEvidence(
                link_id=link_id,
                path=path,
                description=description,
                method=method.value,
                evidence_type=evidence_type,
                created_by=created_by,
                notes=notes,
            )
            record.evidence.append(evidence)
            if record.status == VerificationStatus.NOT_VERIFIED:
                record.status = VerificationStatus.PARTIALLY_VERIFIED
                record.updated_at = evidence.created_at
                record.updated_by = created_by
            self.ledger.save(records)

        logger.info("Added %s evidence to link %s", method.value, link_id)
        emit(self.audit, "verify", link_id, step="add_evidence", evidence_id=evidence.evidence_id)
        return evidence

    def update_status(
        self,
        link_id: str,
        status: VerificationStatus | str,
        updated_by: str = DEFAULT_USER,
        notes: str | None = None,
    ) -> VerificationRecord:
        """Set the verification status of a link explicitly.

        Moving to ``Fully Verified`` also marks the link itself verified.

        Raises:
            NotFoundError: If the link does not exist.
            ValidationError: If *status* is unknown or lower than the
                current status.
        """
        if not isinstance(status, VerificationStatus):
            status = VerificationStatus.parse(status)

        # Ledger and link stamp change in one locked cycle
        with self.repository.transaction() as links:
            link = next((item for item in links if item.id == link_id), None)
            if link is None:
                raise NotFoundError(f"Link {link_id} not found")
            records = self.ledger.load()
            record = records.setdefault(link_id, VerificationRecord(link_id=link_id))
            if status.rank < record.status.rank:
                raise ValidationError(
                    f"Cannot move verification of link {link_id} from {record.status} back to {status}"
                )

            now = utc_now()
            record.status = status
            record.updated_at = now
            record.updated_by = updated_by
            if notes is not None:
                record.notes = notes
            self.ledger.save(records)

            if status == VerificationStatus.FULLY_VERIFIED and not link.verified:
                link.verified = True
                link.verified_at = now
                link.verified_by = updated_by

        logger.info("Link %s verification status set to %s", link_id, status)
        emit(self.audit, "verify", link_id, step="update_status", status=status.value, user=updated_by)
        return record

    def discard_record(self, link_id: str) -> bool:
        """Drop the ledger record of *link_id*, if any.

        The caller must hold the link store's lock; this is part of a link
        delete.

        Returns:
            True if a record was removed.
        """
        records = self.ledger.load()
        if records.pop(link_id, None) is None:
            return False
        self.ledger.save(records)
        return True

    def statistics(self) -> dict[str, int]:
        """Count links per verification status.

        Links without a ledger record count as ``Not Verified``.
        """
        records = self.ledger.load()
        counts = {str(s): 0 for s in _STATUS_ORDER}
        links = self.repository.load()
        for link in links:
            record = records.get(link.id)
            status = record.status if record is not None else VerificationStatus.NOT_VERIFIED
            counts[str(status)] += 1
        counts["total"] = len(links)
        return counts
