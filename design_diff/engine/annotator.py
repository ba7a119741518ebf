"""Draws numbered region boxes onto a copy of the diff raster."""

from __future__ import annotations

import logging
from typing import Sequence

from PIL import Image, ImageDraw, ImageFont

from design_diff.errors import AnnotationFailure
from design_diff.models.comparison import DiffRegion

from .raster import RasterBuffer

logger = logging.getLogger(__name__)

REGION_COLORS = {
    "layout": "#FF6B6B",
    "major": "#FF8C42",
    "medium": "#FFD93D",
    "minor": "#6BCF7F",
}
FALLBACK_COLOR = "#6366F1"

STROKE_WIDTH = 3
MARKER_RADIUS = 12
MARKER_INSET = 15


def region_color(region_type: str) -> str:
    return REGION_COLORS.get(region_type, FALLBACK_COLOR)


class Annotator:
    """Renders one rectangle and one labelled marker circle per region."""

    def __init__(self, font: ImageFont.ImageFont | ImageFont.FreeTypeFont | None = None):
        self.font = font

    def annotate(self, diff_image: RasterBuffer, regions: Sequence[DiffRegion]) -> RasterBuffer:
        try:
            canvas = diff_image.to_image()
            overlay = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
            draw = ImageDraw.Draw(overlay)
            font = self.font or ImageFont.load_default()
            for region in regions:
                self._draw_region(draw, region, font)
            annotated = Image.alpha_composite(canvas, overlay)
        except Exception as e:
            raise AnnotationFailure(f"Failed to draw {len(regions)} region(s): {e}") from e
        logger.debug("Annotated %d region(s)", len(regions))
        return RasterBuffer.from_image(annotated)

    @staticmethod
    def _draw_region(draw: ImageDraw.ImageDraw, region: DiffRegion, font) -> None:
        color = region_color(region.type)
        if region.width > 0 and region.height > 0:
            draw.rectangle(
                (region.x, region.y, region.x + region.width - 1, region.y + region.height - 1),
                outline=color,
                width=STROKE_WIDTH,
            )

        cx, cy = region.x + MARKER_INSET, region.y + MARKER_INSET
        draw.ellipse(
            (cx - MARKER_RADIUS, cy - MARKER_RADIUS, cx + MARKER_RADIUS, cy + MARKER_RADIUS),
            fill=color,
        )
        label = str(region.id)
        left, top, right, bottom = draw.textbbox((0, 0), label, font=font)
        draw.text(
            (cx - (right - left) / 2 - left, cy - (bottom - top) / 2 - top),
            label,
            fill="white",
            font=font,
        )
