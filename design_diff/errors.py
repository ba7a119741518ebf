"""Error taxonomy for the comparison pipeline.

Only AssetNotFound, ImageDecodeError and AlignmentDegenerate abort a
comparison. ClusteringFailure and AnnotationFailure are raised by their stage
and degraded by the orchestrator.
"""

from __future__ import annotations


class DesignDiffError(Exception):
    """Base class for all comparison errors."""


class AssetNotFound(DesignDiffError, FileNotFoundError):
    """An input raster is missing or unreadable."""


class ImageDecodeError(DesignDiffError, ValueError):
    """An input raster is corrupt or in an unsupported format."""


class AlignmentDegenerate(DesignDiffError, ValueError):
    """The common canvas of the two rasters has zero area."""


class ClusteringFailure(DesignDiffError):
    """Region extraction, growth or merging failed."""


class AnnotationFailure(DesignDiffError):
    """Rendering the region overlay failed."""


class CaptureError(DesignDiffError):
    """The page screenshot could not be captured."""
