"""Change-impact analysis.

Given an entity that is about to change, list everything linked to it
(direct impacts) and everything linked to those (indirect impacts, one
level less severe), then roll the items up into an effort estimate, a
critical path, recommendations and a risk assessment.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum

from tracelink.audit import AuditSink, emit
from tracelink.core.models import utc_now
from tracelink.entities.resolver import EntityRecord, EntityResolver
from tracelink.errors import ValidationError
from tracelink.storage.repository import LinkRepository

logger = logging.getLogger("tracelink")


class ImpactType(str, Enum):
    REQUIREMENT = "Requirement"
    TEST_CASE = "TestCase"
    DESIGN = "Design"
    RISK = "Risk"
    DOCUMENT = "Document"

    def __str__(self) -> str:
        return self.value


class ImpactLevel(str, Enum):
    """Severity of an impact, most severe first."""

    CRITICAL = "Critical"
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"

    def __str__(self) -> str:
        return self.value

    def lowered(self) -> "ImpactLevel":
        """Return the next lower level (``Low`` stays ``Low``)."""
        order = list(ImpactLevel)
        return order[min(order.index(self) + 1, len(order) - 1)]


_PREFIX_TO_IMPACT_TYPE = (
    ("REQ-", ImpactType.REQUIREMENT),
    ("TC-", ImpactType.TEST_CASE),
    ("RISK-", ImpactType.RISK),
    ("DOC-", ImpactType.DOCUMENT),
    ("DESIGN-", ImpactType.DESIGN),
)

# Effort in hours to update a test case, by automation level
_TEST_EFFORT = {"manual": 8, "semiautomatic": 4, "fullyautomatic": 2}
_TEST_LEVEL = {"system": ImpactLevel.CRITICAL, "integration": ImpactLevel.HIGH, "unit": ImpactLevel.MEDIUM}
_PRIORITY_LEVEL = {"critical": ImpactLevel.CRITICAL, "high": ImpactLevel.HIGH, "medium": ImpactLevel.MEDIUM}

GENERAL_RECOMMENDATIONS = [
    "Update project timeline to account for impact analysis",
    "Notify affected stakeholders of upcoming changes",
    "Consider regression testing for all affected test cases",
]


def impact_type_for(entity_id: str) -> ImpactType:
    """Classify an entity ID; unknown prefixes count as design elements."""
    for prefix, impact_type in _PREFIX_TO_IMPACT_TYPE:
        if entity_id.startswith(prefix):
            return impact_type
    return ImpactType.DESIGN


@dataclass
class ImpactItem:
    """One entity affected by a change."""

    entity_id: str
    entity_type: ImpactType
    entity_title: str
    impact_level: ImpactLevel
    impact_description: str
    estimated_effort_hours: int = 0
    affected_attributes: list[str] = field(default_factory=list)
    required_actions: list[str] = field(default_factory=list)
    stakeholders: list[str] = field(default_factory=list)
    risk_factors: list[str] = field(default_factory=list)


@dataclass
class ImpactReport:
    """Result of analysing a change to one entity."""

    source_entity_id: str
    change_description: str
    direct_impacts: list[ImpactItem] = field(default_factory=list)
    indirect_impacts: list[ImpactItem] = field(default_factory=list)
    total_effort_hours: int = 0
    critical_path: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    risk_assessment: str = ""
    stakeholder_summary: dict[str, list[str]] = field(default_factory=dict)
    analyzed_at: str = field(default_factory=utc_now)

    @property
    def all_impacts(self) -> list[ImpactItem]:
        return self.direct_impacts + self.indirect_impacts


def assess_change_risk(items: list[ImpactItem]) -> str:
    """Classify the overall risk of a change as HIGH, MEDIUM, LOW or MINIMAL."""
    critical = sum(1 for item in items if item.impact_level == ImpactLevel.CRITICAL)
    effort = sum(item.estimated_effort_hours for item in items)
    if critical > 2 or effort > 60:
        return (
            "HIGH RISK: Significant impact on multiple critical systems. "
            "Consider careful planning and phased rollout."
        )
    if critical > 0 or effort > 30 or len(items) > 10:
        return "MEDIUM RISK: Notable impact on system components. Requires coordination and thorough testing."
    if len(items) > 5 or effort > 15:
        return "LOW RISK: Limited impact on system. Standard change management processes apply."
    return "MINIMAL RISK: Minor impact with limited scope. Can proceed with normal development practices."


def recommend_actions(items: list[ImpactItem]) -> list[str]:
    """Build the recommended action list for a set of impacted items."""
    recommendations = []
    critical = sum(1 for item in items if item.impact_level == ImpactLevel.CRITICAL)
    if critical:
        recommendations.append(f"URGENT: {critical} critical impact items require immediate attention")
    if sum(item.estimated_effort_hours for item in items) > 40:
        recommendations.append("Consider phased implementation due to high effort estimate")
    if len({s for item in items for s in item.stakeholders}) > 3:
        recommendations.append("Establish stakeholder coordination meeting due to multiple affected parties")
    if any(item.entity_type == ImpactType.RISK for item in items):
        recommendations.append("Conduct risk assessment review due to affected risk items")
    recommendations.extend(GENERAL_RECOMMENDATIONS)
    return recommendations


def _attribute(record: EntityRecord | None, *names: str) -> str:
    if record is None:
        return ""
    for name in names:
        value = record.attributes.get(name)
        if value is not None and str(value).strip():
            return str(value).strip()
    return ""


class ImpactAnalyzer:
    """Estimate the ripple effect of changing one entity.

    Args:
        repository: Source of the link collection.
        resolver: Entity resolver; test case ``test_type`` and
            ``automation_level``, risk ``severity`` and requirement
            ``priority`` attributes refine the estimates when present.
        audit: Optional audit sink notified of every analysis.
    """

    def __init__(
        self,
        repository: LinkRepository,
        resolver: EntityResolver,
        audit: AuditSink | None = None,
    ) -> None:
        self.repository = repository
        self.resolver = resolver
        self.audit = audit

    def _record(self, entity_id: str) -> EntityRecord | None:
        try:
            return self.resolver.get(entity_id)
        except ValidationError:
            return None

    def _test_case_item(self, entity_id: str) -> ImpactItem:
        record = self._record(entity_id)
        title = self.resolver.title_of(entity_id, default=f"Test Case {entity_id}")
        test_type = _attribute(record, "test_type", "category").lower()
        automation = _attribute(record, "automation_level").lower().replace("_", "").replace(" ", "")
        return ImpactItem(
            entity_id=entity_id,
            entity_type=ImpactType.TEST_CASE,
            entity_title=title,
            impact_level=_TEST_LEVEL.get(test_type or "unit", ImpactLevel.LOW),
            impact_description=(
                f"Test case '{title}' requires updates to test steps, expected results, and verification methods"
            ),
            estimated_effort_hours=_TEST_EFFORT.get(automation or "manual", 4),
            affected_attributes=["Test Steps", "Expected Results", "Preconditions", "Test Data"],
            required_actions=[
                "Review test case design",
                "Update test steps",
                "Modify expected results",
                "Execute test validation",
            ],
            stakeholders=["Test Engineer", "Quality Assurance"],
            risk_factors=["Test coverage gaps", "Regression risk"],
        )

    def _design_item(self, entity_id: str) -> ImpactItem:
        return ImpactItem(
            entity_id=entity_id,
            entity_type=ImpactType.DESIGN,
            entity_title=f"Design Element {entity_id}",
            impact_level=ImpactLevel.HIGH,
            impact_description="Design element requires architectural review and potential redesign",
            estimated_effort_hours=16,
            affected_attributes=["Architecture", "Interfaces", "Implementation"],
            required_actions=[
                "Conduct architectural review",
                "Update design documentation",
                "Review interface specifications",
                "Validate design changes",
            ],
            stakeholders=["Software Architect", "Development Team", "System Engineer"],
            risk_factors=["Integration issues", "Performance impact", "Compatibility risks"],
        )

    def _risk_item(self, entity_id: str) -> ImpactItem:
        severity = _attribute(self._record(entity_id), "severity")
        if severity in ("4", "5"):
            level = ImpactLevel.CRITICAL
        elif severity == "3":
            level = ImpactLevel.HIGH
        else:
            level = ImpactLevel.MEDIUM
        return ImpactItem(
            entity_id=entity_id,
            entity_type=ImpactType.RISK,
            entity_title=self.resolver.title_of(entity_id, default=f"Risk {entity_id}"),
            impact_level=level,
            impact_description="Risk assessment requires re-evaluation due to requirement changes",
            estimated_effort_hours=4,
            affected_attributes=["Risk Probability", "Risk Impact", "Mitigation Measures", "Risk Priority Number"],
            required_actions=[
                "Re-assess risk probability",
                "Evaluate risk impact",
                "Review mitigation measures",
                "Update risk register",
            ],
            stakeholders=["Risk Manager", "Quality Engineer", "Product Owner"],
            risk_factors=["Increased system risk", "Regulatory compliance impact"],
        )

    def _document_item(self, entity_id: str) -> ImpactItem:
        return ImpactItem(
            entity_id=entity_id,
            entity_type=ImpactType.DOCUMENT,
            entity_title=self.resolver.title_of(entity_id, default=f"Document {entity_id}"),
            impact_level=ImpactLevel.MEDIUM,
            impact_description="Document requires updates to reflect requirement changes",
            estimated_effort_hours=2,
            affected_attributes=["Content", "Version", "Approval Status"],
            required_actions=[
                "Review document content",
                "Update relevant sections",
                "Increment version number",
                "Obtain re-approval",
            ],
            stakeholders=["Technical Writer", "Document Approver"],
            risk_factors=["Documentation inconsistency", "Approval delays"],
        )

    def _requirement_item(self, entity_id: str) -> ImpactItem:
        priority = _attribute(self._record(entity_id), "priority").lower()
        title = self.resolver.title_of(entity_id, default=f"Requirement {entity_id}")
        return ImpactItem(
            entity_id=entity_id,
            entity_type=ImpactType.REQUIREMENT,
            entity_title=title,
            impact_level=_PRIORITY_LEVEL.get(priority or "medium", ImpactLevel.LOW),
            impact_description=(
                f"Dependent requirement '{title}' may need updates due to changes in linked requirement"
            ),
            estimated_effort_hours=6,
            affected_attributes=["Requirement Text", "Acceptance Criteria", "Priority", "Status"],
            required_actions=[
                "Review requirement dependencies",
                "Update requirement text if needed",
                "Revise acceptance criteria",
                "Validate requirement consistency",
            ],
            stakeholders=["Business Analyst", "Product Owner", "Quality Engineer"],
            risk_factors=["Requirement conflicts", "Scope creep", "Delivery delays"],
        )

    def impact_item(self, entity_id: str) -> ImpactItem:
        """Build the impact item for one affected entity."""
        builders = {
            ImpactType.REQUIREMENT: self._requirement_item,
            ImpactType.TEST_CASE: self._test_case_item,
            ImpactType.DESIGN: self._design_item,
            ImpactType.RISK: self._risk_item,
            ImpactType.DOCUMENT: self._document_item,
        }
        return builders[impact_type_for(entity_id)](entity_id)

    def analyze(self, entity_id: str, change_description: str = "") -> ImpactReport:
        """Analyse the impact of changing *entity_id*.

        Direct impacts are the other endpoints of its links, once each.
        Indirect impacts are entities linked to a direct impact that are
        neither the changed entity nor a direct impact; each appears once,
        one level less severe, attributed to the first direct impact
        that reaches it.
        """
        links = self.repository.load()
        index: dict[str, list[str]] = {}
        for link in links:
            index.setdefault(link.source_id, []).append(link.target_id)
            index.setdefault(link.target_id, []).append(link.source_id)

        direct_ids = list(dict.fromkeys(other for other in index.get(entity_id, []) if other != entity_id))
        report = ImpactReport(source_entity_id=entity_id, change_description=change_description)
        report.direct_impacts = [self.impact_item(other) for other in direct_ids]

        seen = {entity_id, *direct_ids}
        for direct in report.direct_impacts:
            for other in index.get(direct.entity_id, []):
                if other in seen:
                    continue
                seen.add(other)
                item = self.impact_item(other)
                item.impact_level = item.impact_level.lowered()
                item.impact_description = f"Indirect impact via {direct.entity_id}: {item.impact_description}"
                report.indirect_impacts.append(item)

        items = report.all_impacts
        report.total_effort_hours = sum(item.estimated_effort_hours for item in items)
        report.critical_path = [
            item.entity_id for item in items if item.impact_level in (ImpactLevel.CRITICAL, ImpactLevel.HIGH)
        ]
        report.recommendations = recommend_actions(items)
        report.risk_assessment = assess_change_risk(items)
        for item in items:
            for stakeholder in item.stakeholders:
                report.stakeholder_summary.setdefault(stakeholder, []).append(item.entity_id)

        logger.info(
            "Impact analysis for %s: %d direct, %d indirect, %d hours",
            entity_id,
            len(report.direct_impacts),
            len(report.indirect_impacts),
            report.total_effort_hours,
        )
        emit(
            self.audit,
            "impact_analysis",
            entity_id,
            direct=len(report.direct_impacts),
            indirect=len(report.indirect_impacts),
            effort_hours=report.total_effort_hours,
            change=change_description,
        )
        return report
