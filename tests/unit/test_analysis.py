"""Tests for tracelink.analysis (coverage and impact)."""

import pytest
from conftest import make_link

from tracelink.analysis.coverage import (
    CoverageAnalyzer,
    CoverageReport,
    GapAnalysis,
    RequirementsCoverage,
    RisksCoverage,
    TestsCoverage,
    gap_analysis,
    overall_score,
)
from tracelink.analysis.impact import (
    GENERAL_RECOMMENDATIONS,
    ImpactAnalyzer,
    ImpactItem,
    ImpactLevel,
    ImpactType,
    assess_change_risk,
    impact_type_for,
    recommend_actions,
)
from tracelink.core.models import LinkType


class TestCoverageAnalyzer:
    """Tests for CoverageAnalyzer."""

    @pytest.fixture
    def analyzer(self, repository, resolver):
        return CoverageAnalyzer(repository, resolver)

    def test_empty_graph(self, analyzer):
        """Test that nothing is covered without links."""
        report = analyzer.analyze()

        assert report.requirements.total_requirements == 3
        assert report.requirements.coverage_percentage == 0.0
        assert report.tests.orphaned_tests == ["TC-001: Login test", "TC-002: Reset test"]
        assert report.risks.unmitigated_risks == ["RISK-001"]
        assert report.overall_score == 0.0
        assert report.status_label == "CRITICAL"

    def test_partial_coverage(self, analyzer, repository):
        """Test percentages with some requirements tested and one verified."""
        repository.save(
            [
                make_link("REQ-001", "TC-001", LinkType.VERIFIES, verified=True),
                make_link("TC-002", "REQ-002", LinkType.VERIFIES),
                make_link("RISK-001", "REQ-003", LinkType.RELATED),
            ]
        )

        report = analyzer.analyze()

        req = report.requirements
        assert req.tested_requirements == 2
        assert req.untested_requirements == ["REQ-003"]
        assert req.verified_requirements == 1
        assert req.unverified_requirements == ["REQ-002", "REQ-003"]
        assert req.coverage_percentage == pytest.approx(200 / 3)
        assert req.verification_percentage == pytest.approx(100 / 3)
        assert report.tests.linked_tests == 2
        assert report.tests.coverage_percentage == 100.0
        assert report.risks.mitigated_risks == 1
        assert report.overall_score == pytest.approx(0.4 * 200 / 3 + 0.3 * 100 + 0.3 * 100)

    def test_risk_mitigated_only_by_requirement_or_test(self, analyzer, repository):
        """Test that a risk linked only to a document stays unmitigated."""
        repository.save([make_link("RISK-001", "DOC-001", LinkType.RELATED)])

        assert analyzer.risks_coverage().unmitigated_risks == ["RISK-001"]

    def test_no_entities(self, repository):
        """Test that empty stores give zero percentages, not errors."""
        from tracelink.entities.resolver import EntityResolver

        report = CoverageAnalyzer(repository, EntityResolver()).analyze()

        assert report.requirements.coverage_percentage == 0.0
        assert report.tests.coverage_percentage == 0.0
        assert report.risks.coverage_percentage == 0.0


class TestScoring:
    """Tests for overall_score, gap_analysis and status labels."""

    def test_overall_score_weights(self):
        """Test the 40/30/30 weighting."""
        score = overall_score(
            RequirementsCoverage(coverage_percentage=100.0),
            TestsCoverage(coverage_percentage=50.0),
            RisksCoverage(coverage_percentage=0.0),
        )

        assert score == pytest.approx(55.0)

    @pytest.mark.parametrize(
        "score,label",
        [(95.0, "EXCELLENT"), (90.0, "EXCELLENT"), (85.0, "GOOD"), (72.0, "NEEDS IMPROVEMENT"), (10.0, "CRITICAL")],
    )
    def test_status_label(self, score, label):
        """Test the dashboard status thresholds."""
        report = CoverageReport(RequirementsCoverage(), TestsCoverage(), RisksCoverage(), score, GapAnalysis())

        assert report.status_label == label

    def test_gap_messages(self):
        """Test critical gaps, recommendations and improvement areas."""
        requirements = RequirementsCoverage(
            coverage_percentage=50.0,
            verification_percentage=0.0,
            untested_requirements=["REQ-002"],
            unverified_requirements=["REQ-001", "REQ-002"],
        )
        tests = TestsCoverage(coverage_percentage=50.0, orphaned_tests=["TC-002: Reset test"])
        risks = RisksCoverage(coverage_percentage=0.0)

        gaps = gap_analysis(requirements, tests, risks)

        assert gaps.critical_gaps == [
            "Low requirements coverage: 50.0% (target: 80%)",
            "Low test linkage: 50.0% (target: 90%)",
            "Low risk mitigation: 0.0% (target: 85%)",
        ]
        assert gaps.recommendations == [
            "Create test cases for 1 untested requirements",
            "Link 1 orphaned test cases to requirements",
            "Add verification evidence for 2 requirements",
        ]
        assert gaps.improvement_areas == [
            "Requirements test coverage",
            "Requirements verification",
            "Test case linkage",
        ]

    def test_no_gaps_when_fully_covered(self):
        """Test that full coverage yields no gaps."""
        full = 100.0
        gaps = gap_analysis(
            RequirementsCoverage(coverage_percentage=full, verification_percentage=full),
            TestsCoverage(coverage_percentage=full),
            RisksCoverage(coverage_percentage=full),
        )

        assert gaps.critical_gaps == []
        assert gaps.recommendations == []
        assert gaps.improvement_areas == []


class TestImpactHelpers:
    """Tests for impact classification helpers."""

    @pytest.mark.parametrize(
        "entity_id,impact_type",
        [
            ("REQ-001", ImpactType.REQUIREMENT),
            ("TC-001", ImpactType.TEST_CASE),
            ("RISK-001", ImpactType.RISK),
            ("DOC-001", ImpactType.DOCUMENT),
            ("DESIGN-001", ImpactType.DESIGN),
            ("ARCH-1", ImpactType.DESIGN),
        ],
    )
    def test_impact_type_for(self, entity_id, impact_type):
        """Test prefix classification, with unknown prefixes as design."""
        assert impact_type_for(entity_id) is impact_type

    def test_lowered(self):
        """Test one-step severity reduction."""
        assert ImpactLevel.CRITICAL.lowered() is ImpactLevel.HIGH
        assert ImpactLevel.MEDIUM.lowered() is ImpactLevel.LOW
        assert ImpactLevel.LOW.lowered() is ImpactLevel.LOW

    def _item(self, level, hours, stakeholders=(), impact_type=ImpactType.DOCUMENT):
        return ImpactItem("DOC-1", impact_type, "t", level, "d", hours, stakeholders=list(stakeholders))

    def test_risk_assessment_levels(self):
        """Test the HIGH/MEDIUM/LOW/MINIMAL thresholds."""
        critical = [self._item(ImpactLevel.CRITICAL, 1) for _ in range(3)]
        assert assess_change_risk(critical).startswith("HIGH RISK")
        assert assess_change_risk([self._item(ImpactLevel.LOW, 61)]).startswith("HIGH RISK")
        assert assess_change_risk([self._item(ImpactLevel.CRITICAL, 1)]).startswith("MEDIUM RISK")
        assert assess_change_risk([self._item(ImpactLevel.LOW, 16)]).startswith("LOW RISK")
        assert assess_change_risk([self._item(ImpactLevel.LOW, 2)]).startswith("MINIMAL RISK")
        assert assess_change_risk([]).startswith("MINIMAL RISK")

    def test_recommendations(self):
        """Test the conditional recommendations before the general ones."""
        items = [
            self._item(ImpactLevel.CRITICAL, 30, ["A", "B"], ImpactType.RISK),
            self._item(ImpactLevel.HIGH, 20, ["C", "D"]),
        ]

        result = recommend_actions(items)

        assert result[:4] == [
            "URGENT: 1 critical impact items require immediate attention",
            "Consider phased implementation due to high effort estimate",
            "Establish stakeholder coordination meeting due to multiple affected parties",
            "Conduct risk assessment review due to affected risk items",
        ]
        assert result[4:] == GENERAL_RECOMMENDATIONS

    def test_recommendations_minimal(self):
        """Test that only general recommendations apply to a small change."""
        assert recommend_actions([]) == GENERAL_RECOMMENDATIONS


class TestImpactAnalyzer:
    """Tests for ImpactAnalyzer."""

    @pytest.fixture
    def analyzer(self, repository, resolver, audit):
        return ImpactAnalyzer(repository, resolver, audit)

    def test_no_links(self, analyzer, audit):
        """Test an isolated entity."""
        report = analyzer.analyze("REQ-001", "Reword")

        assert report.direct_impacts == []
        assert report.indirect_impacts == []
        assert report.total_effort_hours == 0
        assert report.risk_assessment.startswith("MINIMAL RISK")
        assert report.recommendations == GENERAL_RECOMMENDATIONS
        assert audit.events == [
            ("impact_analysis", "REQ-001", {"direct": 0, "indirect": 0, "effort_hours": 0, "change": "Reword"})
        ]

    def test_direct_and_indirect(self, analyzer, repository):
        """Test direct items, one-level-lower indirect items and roll-ups."""
        repository.save(
            [
                make_link("REQ-001", "TC-001", LinkType.VERIFIES),
                make_link("REQ-002", "REQ-001"),
                make_link("REQ-002", "TC-002", LinkType.VERIFIES),
                make_link("TC-001", "RISK-001", LinkType.RELATED),
                make_link("TC-002", "REQ-001", LinkType.RELATED),
            ]
        )

        report = analyzer.analyze("REQ-001")

        direct = {item.entity_id: item for item in report.direct_impacts}
        assert list(direct) == ["TC-001", "REQ-002", "TC-002"]
        assert direct["TC-001"].impact_level is ImpactLevel.CRITICAL
        assert direct["TC-001"].estimated_effort_hours == 8
        assert direct["REQ-002"].impact_level is ImpactLevel.MEDIUM
        assert direct["REQ-002"].estimated_effort_hours == 6
        assert direct["TC-002"].impact_level is ImpactLevel.MEDIUM
        assert direct["TC-002"].estimated_effort_hours == 2

        assert [item.entity_id for item in report.indirect_impacts] == ["RISK-001"]
        risk = report.indirect_impacts[0]
        assert risk.impact_level is ImpactLevel.HIGH
        assert risk.impact_description.startswith("Indirect impact via TC-001: ")

        assert report.total_effort_hours == 8 + 6 + 2 + 4
        assert report.critical_path == ["TC-001", "RISK-001"]
        assert report.stakeholder_summary["Test Engineer"] == ["TC-001", "TC-002"]
        assert report.stakeholder_summary["Risk Manager"] == ["RISK-001"]

    def test_design_and_document_items(self, analyzer, repository):
        """Test fixed estimates for design elements and documents."""
        repository.save(
            [
                make_link("REQ-001", "DESIGN-7", LinkType.IMPLEMENTS),
                make_link("REQ-001", "DOC-001", LinkType.RELATED),
            ]
        )

        report = analyzer.analyze("REQ-001")

        design, document = report.direct_impacts
        assert design.entity_type is ImpactType.DESIGN
        assert design.entity_title == "Design Element DESIGN-7"
        assert design.impact_level is ImpactLevel.HIGH
        assert design.estimated_effort_hours == 16
        assert document.entity_title == "Software design description"
        assert document.estimated_effort_hours == 2
        assert document.stakeholders == ["Technical Writer", "Document Approver"]

    def test_requirement_priority_levels(self, analyzer, repository):
        """Test that requirement impact follows priority."""
        repository.save([make_link("TC-001", "REQ-003", LinkType.VERIFIES)])

        item = analyzer.analyze("TC-001").direct_impacts[0]

        assert item.entity_id == "REQ-003"
        assert item.impact_level is ImpactLevel.CRITICAL
        assert item.entity_title == "Audit logging"
