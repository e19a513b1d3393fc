"""Tests for tracelink.entities module."""

import json

import pytest
from conftest import expect_user_warning, write_project_indexes

from tracelink.core.models import EntityKind
from tracelink.entities.resolver import EntityRecord, EntityResolver, entity_kind_for
from tracelink.entities.stores import (
    DEFAULT_LAYOUTS,
    InMemoryEntityLookup,
    JsonIndexEntityLookup,
    build_project_resolver,
)
from tracelink.errors import NotFoundError, ParseError, ValidationError


class TestEntityKindFor:
    """Tests for entity_kind_for."""

    @pytest.mark.parametrize(
        "entity_id,kind",
        [
            ("REQ-001", EntityKind.REQUIREMENT),
            ("TC-12", EntityKind.TEST_CASE),
            ("RISK-7", EntityKind.RISK),
            ("DOC-3", EntityKind.DOCUMENT),
        ],
    )
    def test_known_prefixes(self, entity_id, kind):
        """Test that each prefix maps to its kind."""
        assert entity_kind_for(entity_id) is kind

    def test_unknown_prefix(self):
        """Test that an unknown prefix raises ValidationError."""
        with pytest.raises(ValidationError, match="Unknown entity type for ID: FOO-1"):
            entity_kind_for("FOO-1")

    def test_prefix_is_case_sensitive(self):
        """Test that lowercase prefixes are not recognized."""
        with pytest.raises(ValidationError):
            entity_kind_for("req-001")


class TestEntityResolver:
    """Tests for EntityResolver."""

    def test_exists(self, resolver):
        """Test existence checks are routed by prefix."""
        assert resolver.exists("REQ-001")
        assert resolver.exists("TC-002")
        assert not resolver.exists("REQ-999")

    def test_exists_unknown_prefix(self, resolver):
        """Test that exists propagates ValidationError for bad prefixes."""
        with pytest.raises(ValidationError):
            resolver.exists("FOO-1")

    def test_exists_without_lookup(self):
        """Test that a kind with no registered store has no entities."""
        assert not EntityResolver().exists("REQ-001")

    def test_require(self, resolver):
        """Test that require returns the record or raises NotFoundError."""
        assert resolver.require("REQ-001").title == "User login"
        with pytest.raises(NotFoundError, match="Entity REQ-999 not found"):
            resolver.require("REQ-999")

    def test_title_and_status_fallbacks(self, resolver):
        """Test the 'Entity <id>' and 'Active' fallbacks."""
        assert resolver.title_of("REQ-001") == "User login"
        assert resolver.title_of("REQ-999") == "Entity REQ-999"
        assert resolver.title_of("FOO-1") == "Entity FOO-1"
        assert resolver.title_of("REQ-999", default="none") == "none"
        assert resolver.status_of("REQ-002") == "Draft"
        assert resolver.status_of("RISK-001") == "Active"

    def test_list_ids_and_register(self, resolver):
        """Test listing IDs and replacing a lookup."""
        assert resolver.list_ids(EntityKind.REQUIREMENT) == ["REQ-001", "REQ-002", "REQ-003"]

        resolver.register(EntityKind.DOCUMENT, InMemoryEntityLookup())
        assert resolver.list_ids(EntityKind.DOCUMENT) == []
        assert EntityResolver().list_ids(EntityKind.RISK) == []


class TestInMemoryEntityLookup:
    """Tests for InMemoryEntityLookup."""

    def test_add_and_remove(self):
        """Test that records can be added and removed."""
        lookup = InMemoryEntityLookup()
        lookup.add(EntityRecord("REQ-001", "A"))

        assert lookup.exists("REQ-001")
        assert lookup.get("REQ-001").title == "A"

        lookup.remove("REQ-001")
        lookup.remove("REQ-001")
        assert lookup.list_ids() == []


class TestJsonIndexEntityLookup:
    """Tests for JsonIndexEntityLookup."""

    def test_reads_requirements_index(self, tmp_path):
        """Test that the requirement index is read with attributes."""
        write_project_indexes(tmp_path)
        lookup = JsonIndexEntityLookup(
            tmp_path / "trace" / "requirements.json", DEFAULT_LAYOUTS[EntityKind.REQUIREMENT]
        )

        record = lookup.get("REQ-001")
        assert record.title == "User login"
        assert record.status == "Verified"
        assert record.attributes["priority"] == "High"
        assert "req_id" not in record.attributes
        assert lookup.list_ids() == ["REQ-001", "REQ-002", "REQ-003"]

    def test_risk_title_from_description(self, tmp_path):
        """Test that risks without a title use their description."""
        write_project_indexes(tmp_path)
        lookup = JsonIndexEntityLookup(tmp_path / "risks" / "risks.json", DEFAULT_LAYOUTS[EntityKind.RISK])

        assert lookup.get("RISK-001").title == "Unauthorized access"

    def test_missing_file_is_empty(self, tmp_path):
        """Test that a missing index behaves as an empty store."""
        lookup = JsonIndexEntityLookup(tmp_path / "nope.json", DEFAULT_LAYOUTS[EntityKind.DOCUMENT])

        assert lookup.list_ids() == []
        assert not lookup.exists("DOC-001")

    def test_invalid_json(self, tmp_path):
        """Test that a malformed index raises ParseError."""
        path = tmp_path / "requirements.json"
        path.write_text("{not json")
        lookup = JsonIndexEntityLookup(path, DEFAULT_LAYOUTS[EntityKind.REQUIREMENT])

        with pytest.raises(ParseError, match="not valid JSON"):
            lookup.list_ids()

    def test_collection_must_be_list(self, tmp_path):
        """Test that a non-list collection raises ParseError."""
        path = tmp_path / "requirements.json"
        path.write_text(json.dumps({"data": {"REQ-001": {}}}))
        lookup = JsonIndexEntityLookup(path, DEFAULT_LAYOUTS[EntityKind.REQUIREMENT])

        with pytest.raises(ParseError, match="must be a list"):
            lookup.list_ids()

    def test_skips_records_without_id(self, tmp_path):
        """Test that records without an id are skipped with a warning."""
        path = tmp_path / "testcases.json"
        path.write_text(json.dumps({"data": [{"title": "no id"}, {"test_id": "TC-001", "title": "ok"}]}))
        lookup = JsonIndexEntityLookup(path, DEFAULT_LAYOUTS[EntityKind.TEST_CASE])

        with expect_user_warning(match="without an id"):
            ids = lookup.list_ids()
        assert ids == ["TC-001"]

    def test_refresh_rereads(self, tmp_path):
        """Test that refresh picks up changes on disk."""
        path = tmp_path / "documents.json"
        path.write_text(json.dumps({"documents": [{"id": "DOC-001"}]}))
        lookup = JsonIndexEntityLookup(path, DEFAULT_LAYOUTS[EntityKind.DOCUMENT])
        assert lookup.list_ids() == ["DOC-001"]

        path.write_text(json.dumps({"documents": [{"id": "DOC-001"}, {"doc_id": "DOC-002"}]}))
        assert lookup.list_ids() == ["DOC-001"]
        lookup.refresh()
        assert lookup.list_ids() == ["DOC-001", "DOC-002"]


class TestBuildProjectResolver:
    """Tests for build_project_resolver."""

    def test_resolves_all_kinds(self, tmp_path):
        """Test that every kind is read from its default index."""
        write_project_indexes(tmp_path)
        resolver = build_project_resolver(tmp_path)

        assert resolver.exists("REQ-003")
        assert resolver.exists("TC-001")
        assert resolver.exists("RISK-001")
        assert resolver.exists("DOC-001")
        assert resolver.title_of("DOC-001") == "Software design description"

    def test_empty_project(self, tmp_path):
        """Test that a project without indexes has no entities."""
        resolver = build_project_resolver(tmp_path)

        assert resolver.list_ids(EntityKind.REQUIREMENT) == []
