"""Exception hierarchy for tracelink.

Every error raised by the link graph engine derives from :class:`TraceError`.
The concrete classes also inherit from the matching builtin exception so
callers that only know about ``ValueError``/``LookupError``/``OSError`` keep
working.
"""


class TraceError(Exception):
    """Base class for all tracelink errors."""


class ValidationError(TraceError, ValueError):
    """Bad input: unknown link type, unknown entity prefix, missing field."""


class NotFoundError(TraceError, LookupError):
    """An entity or link id does not exist."""


class ConflictError(TraceError):
    """Duplicate link, illegal cycle, or contradictory relationship."""


class ParseError(TraceError, ValueError):
    """Corrupted link store or malformed import payload."""


class IoError(TraceError, OSError):
    """Filesystem failure while reading or writing tracelink data."""
