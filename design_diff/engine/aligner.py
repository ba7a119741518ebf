"""Pads two rasters to a common canvas and cancels 1px rendering jitter."""

from __future__ import annotations

import logging
from typing import NamedTuple

import numpy as np

from design_diff.errors import AlignmentDegenerate
from design_diff.models.comparison import AlignmentOffset

from .raster import RasterBuffer

logger = logging.getLogger(__name__)

# Zero offset first: candidates are visited in order and only a strictly
# smaller count replaces the current best, so (0, 0) wins every tie.
CANDIDATE_OFFSETS: tuple[tuple[int, int], ...] = (
    (0, 0),
    (1, 0), (-1, 0), (0, 1), (0, -1),
    (1, 1), (-1, -1), (1, -1), (-1, 1),
)


class AlignmentResult(NamedTuple):
    base: RasterBuffer
    actual: RasterBuffer
    offset: AlignmentOffset
    improvement: float


def _overlap(size: int, delta: int) -> tuple[slice, slice]:
    """Destination and source slices along one axis for a shift of ``delta``."""
    dst = slice(max(0, delta), size + min(0, delta))
    src = slice(max(0, -delta), size - max(0, delta))
    return dst, src


class Aligner:
    """Normalizes canvas sizes and searches a 3x3 offset neighbourhood.

    The search compares ``base(x, y)`` against ``actual(x - dx, y - dy)``, which
    is exactly the pixel that :meth:`shift` places at ``(x, y)``, so the applied
    image is the one that was scored.
    """

    channel_threshold = 30
    min_improvement = 0.10

    def __init__(self, search_enabled: bool = True):
        self.search_enabled = search_enabled

    def align(self, base: RasterBuffer, actual: RasterBuffer) -> AlignmentResult:
        base, actual = self.normalize(base, actual)
        if not self.search_enabled:
            return AlignmentResult(base, actual, AlignmentOffset(), 0.0)

        base_arr = base.to_array()
        actual_arr = actual.to_array()

        count_at_zero = 0
        best_count: int | None = None
        best_offset = (0, 0)
        for dx, dy in CANDIDATE_OFFSETS:
            count = self.count_mismatches(base_arr, actual_arr, dx, dy)
            if (dx, dy) == (0, 0):
                count_at_zero = count
            if best_count is None or count < best_count:
                best_count = count
                best_offset = (dx, dy)

        improvement = (count_at_zero - best_count) / count_at_zero if count_at_zero else 0.0
        logger.debug(
            "Alignment search: zero-offset mismatches=%d, best=%d at %s (improvement %.1f%%)",
            count_at_zero, best_count, best_offset, improvement * 100,
        )

        if best_offset == (0, 0) or improvement <= self.min_improvement:
            return AlignmentResult(base, actual, AlignmentOffset(), improvement)

        offset = AlignmentOffset(dx=best_offset[0], dy=best_offset[1])
        logger.info("Applying alignment offset (%d, %d), %.1f%% fewer mismatches",
                    offset.dx, offset.dy, improvement * 100)
        return AlignmentResult(base, self.shift(actual, offset), offset, improvement)

    @staticmethod
    def normalize(base: RasterBuffer, actual: RasterBuffer) -> tuple[RasterBuffer, RasterBuffer]:
        """Pad both rasters to the max width/height with transparent pixels."""
        width = max(base.width, actual.width)
        height = max(base.height, actual.height)
        if width == 0 or height == 0:
            raise AlignmentDegenerate(
                f"Zero-area canvas: base {base.width}x{base.height}, "
                f"actual {actual.width}x{actual.height}"
            )
        if base.size != actual.size:
            logger.info("Padding canvases to %dx%d (base %dx%d, actual %dx%d)",
                        width, height, base.width, base.height, actual.width, actual.height)
        return base.pad_to(width, height), actual.pad_to(width, height)

    def count_mismatches(self, base: np.ndarray, actual: np.ndarray, dx: int, dy: int) -> int:
        """Mismatching pixels when ``actual`` is shifted by (dx, dy).

        Pixels whose source lies outside the canvas count as mismatches.
        """
        height, width = base.shape[:2]
        dst_y, src_y = _overlap(height, dy)
        dst_x, src_x = _overlap(width, dx)
        overlap = (width - abs(dx)) * (height - abs(dy)) if width > abs(dx) and height > abs(dy) else 0
        out_of_bounds = width * height - overlap
        if overlap == 0:
            return out_of_bounds

        delta = np.abs(
            base[dst_y, dst_x].astype(np.int16) - actual[src_y, src_x].astype(np.int16)
        )
        mismatched = int((delta > self.channel_threshold).any(axis=2).sum())
        return mismatched + out_of_bounds

    @staticmethod
    def shift(raster: RasterBuffer, offset: AlignmentOffset) -> RasterBuffer:
        """Re-render so destination (x, y) holds source (x - dx, y - dy)."""
        if offset.is_zero:
            return raster
        src = np.frombuffer(raster.pixels, dtype=np.uint8).reshape(raster.height, raster.width, 4)
        out = np.zeros_like(src)
        dst_y, src_y = _overlap(raster.height, offset.dy)
        dst_x, src_x = _overlap(raster.width, offset.dx)
        out[dst_y, dst_x] = src[src_y, src_x]
        return RasterBuffer.from_array(out)
