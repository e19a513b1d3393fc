"""Coverage and change-impact reports derived from the link graph."""

from tracelink.analysis.coverage import CoverageAnalyzer, CoverageReport, GapAnalysis
from tracelink.analysis.impact import ImpactAnalyzer, ImpactItem, ImpactLevel, ImpactReport, ImpactType

__all__ = [
    "CoverageAnalyzer",
    "CoverageReport",
    "GapAnalysis",
    "ImpactAnalyzer",
    "ImpactItem",
    "ImpactLevel",
    "ImpactReport",
    "ImpactType",
]
