"""Requirements traceability matrix generation."""

from tracelink.matrix.generator import MatrixGenerator, RTMConfig, RTMFormat, RTMSortBy

__all__ = ["MatrixGenerator", "RTMConfig", "RTMFormat", "RTMSortBy"]
