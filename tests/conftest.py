"""Shared fixtures for tracelink tests."""

import contextlib
import json
import os
import warnings
from pathlib import Path

import pytest
from click.testing import CliRunner

from tracelink.audit import MemoryAuditSink
from tracelink.cli.commands import cli
from tracelink.core.models import EntityKind, Link, LinkType
from tracelink.entities.resolver import EntityRecord, EntityResolver
from tracelink.entities.stores import InMemoryEntityLookup
from tracelink.manager import TraceabilityManager
from tracelink.storage.link_store import InMemoryLinkStore
from tracelink.storage.repository import LinkRepository

# =============================================================================
# Warning Suppression Utilities
# =============================================================================


@contextlib.contextmanager
def expect_user_warning(match: str | None = None):
    """Context manager for code that is expected to emit UserWarning.

    Args:
        match: Optional regex pattern to match against warning message.
              If provided, asserts that at least one warning matches.
    """
    with warnings.catch_warnings(record=True) as recorded:
        warnings.simplefilter("always", UserWarning)
        yield recorded
        if match is not None:
            import re

            matched = any(re.search(match, str(w.message)) for w in recorded)
            if not matched:
                got = [str(w.message) for w in recorded]
                msg = f"Expected UserWarning matching '{match}', got: {got}"
                raise AssertionError(msg)


# =============================================================================
# Shared Test Helpers
# =============================================================================


def _invoke(runner: CliRunner, args: list[str], *, cwd: Path | None = None):
    """Invoke CLI, optionally inside *cwd*.  Returns the Click result."""
    if cwd is not None:
        old = os.getcwd()
        os.chdir(cwd)
        try:
            return runner.invoke(cli, args, catch_exceptions=False)
        finally:
            os.chdir(old)
    return runner.invoke(cli, args, catch_exceptions=False)


def make_link(source_id: str, target_id: str, link_type: LinkType = LinkType.DEPENDS_ON, **kwargs) -> Link:
    """Build a Link with entity types derived from the ID prefixes."""
    kinds = {"REQ-": "Requirement", "TC-": "TestCase", "RISK-": "Risk", "DOC-": "Document"}

    def kind(entity_id: str) -> str:
        return next((v for k, v in kinds.items() if entity_id.startswith(k)), "Unknown")

    return Link(
        source_type=kind(source_id),
        source_id=source_id,
        target_type=kind(target_id),
        target_id=target_id,
        link_type=link_type,
        **kwargs,
    )


# =============================================================================
# Entity Fixtures
# =============================================================================

REQUIREMENTS = [
    EntityRecord(
        "REQ-001",
        "User login",
        "Verified",
        {"category": "Functional", "priority": "High", "description": "Users can log in", "verification_method": "Test"},
    ),
    EntityRecord(
        "REQ-002",
        "Password reset",
        "Draft",
        {"category": "Functional", "priority": "Medium", "description": "Users can reset passwords"},
    ),
    EntityRecord(
        "REQ-003",
        "Audit logging",
        "Approved",
        {"category": "Safety", "priority": "Critical", "description": "All changes are logged"},
    ),
]

TEST_CASES = [
    EntityRecord("TC-001", "Login test", "Active", {"test_type": "System", "automation_level": "Manual"}),
    EntityRecord("TC-002", "Reset test", "Active", {"test_type": "Unit", "automation_level": "FullyAutomatic"}),
]

RISKS = [EntityRecord("RISK-001", "Unauthorized access", None, {"severity": 4})]

DOCUMENTS = [EntityRecord("DOC-001", "Software design description", "Approved")]


@pytest.fixture
def resolver() -> EntityResolver:
    """Resolver over in-memory stores with three requirements, two tests, a risk and a document."""
    return EntityResolver(
        {
            EntityKind.REQUIREMENT: InMemoryEntityLookup(list(REQUIREMENTS)),
            EntityKind.TEST_CASE: InMemoryEntityLookup(list(TEST_CASES)),
            EntityKind.RISK: InMemoryEntityLookup(list(RISKS)),
            EntityKind.DOCUMENT: InMemoryEntityLookup(list(DOCUMENTS)),
        }
    )


@pytest.fixture
def store() -> InMemoryLinkStore:
    """An initialized, empty in-memory link store."""
    return InMemoryLinkStore({"version": "1.0", "links": []})


@pytest.fixture
def repository(store) -> LinkRepository:
    return LinkRepository(store)


@pytest.fixture
def audit() -> MemoryAuditSink:
    return MemoryAuditSink()


@pytest.fixture
def manager(repository, resolver, audit) -> TraceabilityManager:
    """A manager over in-memory links and entities, recording audit events."""
    return TraceabilityManager(repository, resolver, audit=audit)


# =============================================================================
# On-disk Project Fixtures
# =============================================================================


def write_project_indexes(root: Path) -> None:
    """Write the JSON entity indexes of a small project under *root*."""
    (root / "trace").mkdir(parents=True, exist_ok=True)
    (root / "risks").mkdir(parents=True, exist_ok=True)
    (root / "documents").mkdir(parents=True, exist_ok=True)

    requirements = [
        {"req_id": r.entity_id, "title": r.title, "status": r.status, **r.attributes} for r in REQUIREMENTS
    ]
    (root / "trace" / "requirements.json").write_text(json.dumps({"version": "1.0", "data": requirements}))
    tests = [{"test_id": t.entity_id, "title": t.title, **t.attributes} for t in TEST_CASES]
    (root / "trace" / "testcases.json").write_text(json.dumps({"version": "1.0", "data": tests}))
    risks = [{"id": r.entity_id, "description": r.title, **r.attributes} for r in RISKS]
    (root / "risks" / "risks.json").write_text(json.dumps({"risks": risks}))
    documents = [{"id": d.entity_id, "title": d.title, "status": d.status} for d in DOCUMENTS]
    (root / "documents" / "documents.json").write_text(json.dumps({"documents": documents}))


@pytest.fixture
def project(tmp_path) -> Path:
    """A project directory with entity indexes and a [tool.tracelink] section."""
    write_project_indexes(tmp_path)
    (tmp_path / "pyproject.toml").write_text('[project]\nname = "demo"\n\n[tool.tracelink]\ndefault_user = "alice"\n')
    return tmp_path


@pytest.fixture
def runner() -> CliRunner:
    """Create a CLI runner."""
    return CliRunner()
