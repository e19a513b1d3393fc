"""Coverage scoring and gap analysis over the link graph."""

import logging
from dataclasses import dataclass, field

from tracelink.core.models import EntityKind, Link
from tracelink.entities.resolver import EntityResolver
from tracelink.storage.repository import LinkRepository

logger = logging.getLogger("tracelink")

# Weights of the overall score: requirements, tests, risks
SCORE_WEIGHTS = (0.4, 0.3, 0.3)

REQUIREMENTS_TARGET = 80.0
TESTS_TARGET = 90.0
RISKS_TARGET = 85.0


def _percent(part: int, total: int) -> float:
    return 100.0 * part / total if total else 0.0


@dataclass
class RequirementsCoverage:
    """Test and verification coverage of requirements.

    A requirement is *tested* when any link joins it to a test case, and
    *verified* when at least one of its links has been marked verified.
    """

    total_requirements: int = 0
    tested_requirements: int = 0
    verified_requirements: int = 0
    untested_requirements: list[str] = field(default_factory=list)
    unverified_requirements: list[str] = field(default_factory=list)
    coverage_percentage: float = 0.0
    verification_percentage: float = 0.0


@dataclass
class TestsCoverage:
    """How many test cases trace back to a requirement."""

    __test__ = False

    total_tests: int = 0
    linked_tests: int = 0
    unlinked_tests: list[str] = field(default_factory=list)
    orphaned_tests: list[str] = field(default_factory=list)
    coverage_percentage: float = 0.0


@dataclass
class RisksCoverage:
    """How many risks are traced to a requirement or test case."""

    total_risks: int = 0
    mitigated_risks: int = 0
    unmitigated_risks: list[str] = field(default_factory=list)
    coverage_percentage: float = 0.0


@dataclass
class GapAnalysis:
    critical_gaps: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    improvement_areas: list[str] = field(default_factory=list)


@dataclass
class CoverageReport:
    """Full coverage analysis of a project."""

    requirements: RequirementsCoverage
    tests: TestsCoverage
    risks: RisksCoverage
    overall_score: float
    gap_analysis: GapAnalysis

    @property
    def status_label(self) -> str:
        """EXCELLENT (>=90), GOOD (>=80), NEEDS IMPROVEMENT (>=70) or CRITICAL."""
        if self.overall_score >= 90.0:
            return "EXCELLENT"
        if self.overall_score >= 80.0:
            return "GOOD"
        if self.overall_score >= 70.0:
            return "NEEDS IMPROVEMENT"
        return "CRITICAL"


def _neighbours(links: list[Link]) -> dict[str, list[Link]]:
    index: dict[str, list[Link]] = {}
    for link in links:
        index.setdefault(link.source_id, []).append(link)
        if link.target_id != link.source_id:
            index.setdefault(link.target_id, []).append(link)
    return index


def overall_score(requirements: RequirementsCoverage, tests: TestsCoverage, risks: RisksCoverage) -> float:
    """Weighted average of the three coverage percentages."""
    req_weight, test_weight, risk_weight = SCORE_WEIGHTS
    return (
        requirements.coverage_percentage * req_weight
        + tests.coverage_percentage * test_weight
        + risks.coverage_percentage * risk_weight
    )


def gap_analysis(requirements: RequirementsCoverage, tests: TestsCoverage, risks: RisksCoverage) -> GapAnalysis:
    """Derive critical gaps, recommendations and improvement areas.

    Critical gaps fire below the targets (requirements 80%, tests 90%,
    risks 85%). Improvement areas use the stricter 95%/90%/95% bars.
    """
    gaps = GapAnalysis()

    if requirements.coverage_percentage < REQUIREMENTS_TARGET:
        gaps.critical_gaps.append(
            f"Low requirements coverage: {requirements.coverage_percentage:.1f}% (target: 80%)"
        )
    if tests.coverage_percentage < TESTS_TARGET:
        gaps.critical_gaps.append(f"Low test linkage: {tests.coverage_percentage:.1f}% (target: 90%)")
    if risks.coverage_percentage < RISKS_TARGET:
        gaps.critical_gaps.append(f"Low risk mitigation: {risks.coverage_percentage:.1f}% (target: 85%)")

    if requirements.untested_requirements:
        gaps.recommendations.append(
            f"Create test cases for {len(requirements.untested_requirements)} untested requirements"
        )
    if tests.orphaned_tests:
        gaps.recommendations.append(f"Link {len(tests.orphaned_tests)} orphaned test cases to requirements")
    if requirements.unverified_requirements:
        gaps.recommendations.append(
            f"Add verification evidence for {len(requirements.unverified_requirements)} requirements"
        )

    if requirements.coverage_percentage < 95.0:
        gaps.improvement_areas.append("Requirements test coverage")
    if requirements.verification_percentage < 90.0:
        gaps.improvement_areas.append("Requirements verification")
    if tests.coverage_percentage < 95.0:
        gaps.improvement_areas.append("Test case linkage")

    return gaps


class CoverageAnalyzer:
    """Aggregate the link graph into coverage percentages.

    Args:
        repository: Source of the link collection.
        resolver: Entity resolver listing requirements, test cases and risks.
    """

    def __init__(self, repository: LinkRepository, resolver: EntityResolver) -> None:
        self.repository = repository
        self.resolver = resolver

    def requirements_coverage(self, links: list[Link] | None = None) -> RequirementsCoverage:
        index = _neighbours(self.repository.load() if links is None else links)
        test_prefix = EntityKind.TEST_CASE.prefix
        result = RequirementsCoverage()
        for requirement_id in self.resolver.list_ids(EntityKind.REQUIREMENT):
            incident = index.get(requirement_id, [])
            result.total_requirements += 1
            if any(link.other_end(requirement_id).startswith(test_prefix) for link in incident):
                result.tested_requirements += 1
            else:
                result.untested_requirements.append(requirement_id)
            if any(link.verified for link in incident):
                result.verified_requirements += 1
            else:
                result.unverified_requirements.append(requirement_id)
        result.coverage_percentage = _percent(result.tested_requirements, result.total_requirements)
        result.verification_percentage = _percent(result.verified_requirements, result.total_requirements)
        return result

    def tests_coverage(self, links: list[Link] | None = None) -> TestsCoverage:
        index = _neighbours(self.repository.load() if links is None else links)
        requirement_prefix = EntityKind.REQUIREMENT.prefix
        result = TestsCoverage()
        for test_id in self.resolver.list_ids(EntityKind.TEST_CASE):
            result.total_tests += 1
            incident = index.get(test_id, [])
            if any(link.other_end(test_id).startswith(requirement_prefix) for link in incident):
                result.linked_tests += 1
            else:
                result.unlinked_tests.append(test_id)
                result.orphaned_tests.append(f"{test_id}: {self.resolver.title_of(test_id)}")
        result.coverage_percentage = _percent(result.linked_tests, result.total_tests)
        return result

    def risks_coverage(self, links: list[Link] | None = None) -> RisksCoverage:
        index = _neighbours(self.repository.load() if links is None else links)
        controls = (EntityKind.REQUIREMENT.prefix, EntityKind.TEST_CASE.prefix)
        result = RisksCoverage()
        for risk_id in self.resolver.list_ids(EntityKind.RISK):
            result.total_risks += 1
            incident = index.get(risk_id, [])
            if any(link.other_end(risk_id).startswith(controls) for link in incident):
                result.mitigated_risks += 1
            else:
                result.unmitigated_risks.append(risk_id)
        result.coverage_percentage = _percent(result.mitigated_risks, result.total_risks)
        return result

    def analyze(self) -> CoverageReport:
        """Run all three coverage passes over one snapshot of the links."""
        links = self.repository.load()
        requirements = self.requirements_coverage(links)
        tests = self.tests_coverage(links)
        risks = self.risks_coverage(links)
        score = overall_score(requirements, tests, risks)
        logger.debug("Coverage analysis: overall score %.1f%%", score)
        return CoverageReport(
            requirements=requirements,
            tests=tests,
            risks=risks,
            overall_score=score,
            gap_analysis=gap_analysis(requirements, tests, risks),
        )
