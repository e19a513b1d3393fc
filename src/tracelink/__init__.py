"""tracelink - traceability link graph for compliance documentation."""

try:
    from tracelink._version import __version__
except ImportError:
    __version__ = "0.0.0"

from tracelink.core.models import Link, LinkType, TraceabilityPath
from tracelink.manager import TraceabilityManager

__all__ = ["Link", "LinkType", "TraceabilityManager", "TraceabilityPath"]
