"""Read-side views over the link graph."""

from tracelink.graph.orphans import OrphanDetector
from tracelink.graph.traversal import TraversalEngine, build_trace_tree

__all__ = ["OrphanDetector", "TraversalEngine", "build_trace_tree"]
