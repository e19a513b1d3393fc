"""Tests for tracelink.graph.traversal and tracelink.graph.orphans modules."""

import pytest
from conftest import make_link

from tracelink.core.models import EntityKind, LinkType
from tracelink.errors import ValidationError
from tracelink.graph.orphans import ORPHAN_REASON, OrphanDetector, linked_entity_ids
from tracelink.graph.traversal import TraversalEngine, build_trace_tree


class TestBuildTraceTree:
    """Tests for build_trace_tree."""

    def test_no_links(self):
        """Test that an unlinked root has an empty tree of depth zero."""
        path = build_trace_tree([], "REQ-001")

        assert path.root_id == "REQ-001"
        assert path.root_type == "Requirement"
        assert path.nodes == []
        assert path.depth == 0

    def test_forward_chain(self):
        """Test a two-level forward trace."""
        links = [
            make_link("REQ-001", "REQ-002"),
            make_link("REQ-002", "TC-001", LinkType.VERIFIES),
        ]

        path = build_trace_tree(links, "REQ-001", forward=True)

        assert path.depth == 2
        assert len(path.nodes) == 1
        top = path.nodes[0]
        assert (top.entity_id, top.entity_type, top.link_type, top.depth) == (
            "REQ-002",
            "Requirement",
            LinkType.DEPENDS_ON,
            1,
        )
        assert [child.entity_id for child in top.children] == ["TC-001"]

    def test_backward_chain(self):
        """Test that backward traces follow incoming edges."""
        links = [
            make_link("REQ-001", "REQ-002"),
            make_link("REQ-002", "TC-001", LinkType.VERIFIES),
        ]

        path = build_trace_tree(links, "TC-001", forward=False)

        assert path.entity_ids() == ["REQ-002", "REQ-001"]
        assert path.nodes[0].entity_type == "Requirement"
        assert path.depth == 2

    def test_children_keep_link_order(self):
        """Test that siblings appear in stored link order."""
        links = [
            make_link("REQ-001", "TC-002", LinkType.VERIFIES),
            make_link("REQ-001", "TC-001", LinkType.VERIFIES),
            make_link("REQ-001", "DOC-001", LinkType.RELATED),
        ]

        path = build_trace_tree(links, "REQ-001")

        assert [node.entity_id for node in path.nodes] == ["TC-002", "TC-001", "DOC-001"]

    def test_diamond_repeats_shared_descendant(self):
        """Test that an entity reachable via two parents appears under both."""
        links = [
            make_link("REQ-001", "REQ-002"),
            make_link("REQ-001", "REQ-003"),
            make_link("REQ-002", "TC-001", LinkType.VERIFIES),
            make_link("REQ-003", "TC-001", LinkType.VERIFIES),
        ]

        path = build_trace_tree(links, "REQ-001")

        assert path.entity_ids() == ["REQ-002", "TC-001", "REQ-003", "TC-001"]

    def test_cycle_terminates(self):
        """Test that cyclic data closes with a leaf and does not loop."""
        links = [
            make_link("REQ-001", "REQ-002"),
            make_link("REQ-002", "REQ-001"),
        ]

        path = build_trace_tree(links, "REQ-001")

        assert path.entity_ids() == ["REQ-002", "REQ-001"]
        closing = path.nodes[0].children[0]
        assert closing.children == []
        assert path.depth == 2

    def test_max_depth(self):
        """Test that max_depth stops expansion."""
        links = [
            make_link("REQ-001", "REQ-002"),
            make_link("REQ-002", "REQ-003"),
            make_link("REQ-003", "TC-001", LinkType.VERIFIES),
        ]

        path = build_trace_tree(links, "REQ-001", max_depth=2)

        assert path.entity_ids() == ["REQ-002", "REQ-003"]
        assert path.depth == 2

    def test_deep_chain_does_not_recurse(self):
        """Test that a very long chain is traced without hitting the recursion limit."""
        ids = [f"REQ-{n:05d}" for n in range(3000)]
        links = [make_link(a, b) for a, b in zip(ids, ids[1:])]

        path = build_trace_tree(links, ids[0])

        assert path.depth == len(ids) - 1

    def test_unknown_root_prefix(self):
        """Test that an unknown root prefix raises ValidationError."""
        with pytest.raises(ValidationError):
            build_trace_tree([], "FOO-1")


class TestTraversalEngine:
    """Tests for TraversalEngine."""

    def test_uses_repository_links(self, repository):
        """Test that traces read the current repository contents."""
        repository.save([make_link("REQ-001", "TC-001", LinkType.VERIFIES)])
        engine = TraversalEngine(repository)

        assert engine.trace_forward("REQ-001").entity_ids() == ["TC-001"]
        assert engine.trace_backward("TC-001").entity_ids() == ["REQ-001"]
        assert engine.trace_forward("TC-001").nodes == []

    def test_engine_max_depth(self, repository):
        """Test that the engine applies its configured depth cap."""
        repository.save([make_link("REQ-001", "REQ-002"), make_link("REQ-002", "REQ-003")])

        path = TraversalEngine(repository, max_depth=1).trace_forward("REQ-001")

        assert path.entity_ids() == ["REQ-002"]


class TestOrphanDetector:
    """Tests for OrphanDetector."""

    def test_linked_entity_ids(self):
        """Test that both endpoints are collected."""
        links = [make_link("REQ-001", "TC-001", LinkType.VERIFIES)]

        assert linked_entity_ids(links) == {"REQ-001", "TC-001"}

    def test_all_orphans_when_no_links(self, repository, resolver):
        """Test that every entity is an orphan in an empty graph."""
        items = OrphanDetector(repository, resolver).find_orphaned_items()

        assert [item.entity_id for item in items] == [
            "REQ-001",
            "REQ-002",
            "REQ-003",
            "TC-001",
            "TC-002",
            "RISK-001",
            "DOC-001",
        ]
        assert all(item.reason == ORPHAN_REASON for item in items)
        assert items[3].entity_type == "TestCase"

    def test_linked_entities_excluded(self, repository, resolver):
        """Test that an entity with any incident link is not an orphan."""
        repository.save(
            [
                make_link("REQ-001", "TC-001", LinkType.VERIFIES),
                make_link("RISK-001", "REQ-002", LinkType.RELATED),
            ]
        )

        items = OrphanDetector(repository, resolver).find_orphaned_items()

        assert [item.entity_id for item in items] == ["REQ-003", "TC-002", "DOC-001"]

    def test_restrict_kinds(self, repository, resolver):
        """Test scanning only selected kinds."""
        items = OrphanDetector(repository, resolver).find_orphaned_items([EntityKind.RISK, EntityKind.DOCUMENT])

        assert [(item.entity_id, item.entity_type) for item in items] == [
            ("RISK-001", "Risk"),
            ("DOC-001", "Document"),
        ]
