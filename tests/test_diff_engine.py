"""Tests for the pluggable diff engines."""

import numpy as np
import pytest
from PIL import Image, ImageDraw

from conftest import BLACK, RED, TEAL, WHITE, solid, with_block
from design_diff.engine.aligner import Aligner
from design_diff.engine.diff_engine import (
    AA_COLOR,
    DIFF_COLOR,
    FastDiffEngine,
    PixelmatchEngine,
    apply_ignore_regions,
    get_engine,
)
from design_diff.engine.raster import RasterBuffer
from design_diff.models.config import IgnoreRegion

ENGINES = [PixelmatchEngine, FastDiffEngine]


def is_marker(pixel) -> bool:
    r, g, b, _ = pixel
    return r > 240 and g < 40 and b < 40


@pytest.mark.parametrize("engine_cls", ENGINES)
class TestEngines:
    """Behaviour shared by every engine."""

    def test_identical_images(self, engine_cls, white_100):
        raster = RasterBuffer.from_array(with_block(white_100, 10, 10, 30, 5, TEAL))
        result = engine_cls().compare(raster, raster)
        assert result.similarity_pct == 100.0
        assert result.diff_pixel_count == 0
        assert result.total_pixel_count == 10000
        assert result.diff_regions == []

    def test_recolored_block(self, engine_cls, white_100, block_100):
        result = engine_cls().compare(
            RasterBuffer.from_array(white_100), RasterBuffer.from_array(block_100)
        )
        assert result.diff_pixel_count == 400
        assert result.similarity_pct == 96.0
        assert is_marker(result.diff_image.pixel(45, 45))
        assert not is_marker(result.diff_image.pixel(5, 5))

    def test_diff_image_matches_input_size(self, engine_cls, white_100, block_100):
        result = engine_cls().compare(
            RasterBuffer.from_array(white_100), RasterBuffer.from_array(block_100)
        )
        assert result.diff_image.size == (100, 100)
        assert (result.width, result.height) == (100, 100)

    def test_context_pixels_are_grey(self, engine_cls, white_100, block_100):
        result = engine_cls().compare(
            RasterBuffer.from_array(white_100), RasterBuffer.from_array(block_100)
        )
        r, g, b, a = result.diff_image.pixel(5, 5)
        assert r == g == b
        assert a == 255

    def test_high_threshold_ignores_small_shift(self, engine_cls):
        base = RasterBuffer.blank(10, 10, (120, 120, 120, 255))
        actual = RasterBuffer.blank(10, 10, (124, 120, 120, 255))
        assert engine_cls().compare(base, actual, threshold=0.5).diff_pixel_count == 0
        assert engine_cls().compare(base, actual, threshold=0.0).diff_pixel_count == 100

    def test_padded_canvas_counts_against_opaque_content(self, engine_cls):
        base = RasterBuffer.blank(100, 100, TEAL)
        actual = RasterBuffer.blank(100, 150, TEAL)
        aligned = Aligner().align(base, actual)

        result = engine_cls().compare(aligned.base, aligned.actual)

        assert aligned.offset.is_zero
        assert result.total_pixel_count == 15000
        assert result.diff_pixel_count == 5000
        assert result.similarity_pct == 66.67
        assert is_marker(result.diff_image.pixel(50, 120))
        assert not is_marker(result.diff_image.pixel(50, 50))

    def test_size_mismatch_raises(self, engine_cls):
        with pytest.raises(ValueError, match="aligned"):
            engine_cls().compare(RasterBuffer.blank(2, 2), RasterBuffer.blank(3, 2))

    def test_empty_raster_raises(self, engine_cls):
        with pytest.raises(ValueError):
            engine_cls().compare(RasterBuffer.blank(0, 0), RasterBuffer.blank(0, 0))


class TestPixelmatchEngine:
    """Engine-specific behaviour of the default engine."""

    def test_name(self):
        assert PixelmatchEngine().compare(
            RasterBuffer.blank(2, 2, WHITE), RasterBuffer.blank(2, 2, WHITE)
        ).engine == "default"

    @pytest.fixture
    def smooth_circle(self) -> RasterBuffer:
        """A black circle on white, downsampled so its edge is anti-aliased."""
        big = Image.new("RGBA", (400, 400), WHITE)
        ImageDraw.Draw(big).ellipse((60, 60, 340, 340), fill=BLACK)
        return RasterBuffer.from_image(big.resize((100, 100), Image.LANCZOS))

    @staticmethod
    def count_color(raster: RasterBuffer, color) -> int:
        return int(np.all(raster.to_array() == color, axis=-1).sum())

    def test_antialiased_pixels_are_excluded_by_default(self, smooth_circle):
        white = RasterBuffer.blank(100, 100, WHITE)
        engine = PixelmatchEngine()

        without_aa = engine.compare(white, smooth_circle, include_antialiasing=False)
        with_aa = engine.compare(white, smooth_circle, include_antialiasing=True)

        assert with_aa.diff_pixel_count > without_aa.diff_pixel_count
        assert with_aa.similarity_pct < without_aa.similarity_pct

    def test_antialiased_pixels_drawn_yellow(self, smooth_circle):
        white = RasterBuffer.blank(100, 100, WHITE)
        engine = PixelmatchEngine()

        without_aa = engine.compare(white, smooth_circle, include_antialiasing=False)
        with_aa = engine.compare(white, smooth_circle, include_antialiasing=True)

        yellow = self.count_color(without_aa.diff_image, AA_COLOR + (255,))
        assert yellow == with_aa.diff_pixel_count - without_aa.diff_pixel_count
        assert self.count_color(without_aa.diff_image, DIFF_COLOR + (255,)) == without_aa.diff_pixel_count
        # Counted anti-aliased pixels become ordinary red markers
        assert self.count_color(with_aa.diff_image, AA_COLOR + (255,)) == 0
        assert self.count_color(with_aa.diff_image, DIFF_COLOR + (255,)) == with_aa.diff_pixel_count


class TestFastDiffEngine:
    def test_name(self):
        assert FastDiffEngine().compare(
            RasterBuffer.blank(2, 2, WHITE), RasterBuffer.blank(2, 2, WHITE)
        ).engine == "alternate"

    def test_marker_is_pure_red(self, white_100, block_100):
        result = FastDiffEngine().compare(
            RasterBuffer.from_array(white_100), RasterBuffer.from_array(block_100)
        )
        assert result.diff_image.pixel(50, 50) == RED


class TestGetEngine:
    """Tests for engine selection by name."""

    def test_default(self):
        assert isinstance(get_engine("default"), PixelmatchEngine)

    def test_alternate(self):
        assert isinstance(get_engine("alternate"), FastDiffEngine)

    def test_unknown_engine(self):
        with pytest.raises(ValueError, match="Unknown diff engine"):
            get_engine("resemble")


class TestIgnoreRegions:
    """Tests for masking ignore rectangles."""

    def test_masked_area_copies_base(self, white_100, block_100):
        base = RasterBuffer.from_array(white_100)
        actual = RasterBuffer.from_array(block_100)
        masked = apply_ignore_regions(base, actual, [IgnoreRegion(x=40, y=40, width=20, height=20)])
        assert masked.pixel(45, 45) == WHITE
        assert actual.pixel(45, 45) == BLACK
        assert FastDiffEngine().compare(base, masked).diff_pixel_count == 0

    def test_region_is_clipped_to_canvas(self):
        base = RasterBuffer.blank(10, 10, WHITE)
        actual = RasterBuffer.from_array(solid(10, 10, BLACK))
        masked = apply_ignore_regions(base, actual, [IgnoreRegion(x=8, y=8, width=50, height=50)])
        assert masked.pixel(9, 9) == WHITE
        assert masked.pixel(7, 7) == BLACK

    def test_region_outside_canvas_is_skipped(self):
        base = RasterBuffer.blank(10, 10, WHITE)
        actual = RasterBuffer.from_array(solid(10, 10, BLACK))
        masked = apply_ignore_regions(base, actual, [IgnoreRegion(x=20, y=20, width=5, height=5)])
        assert masked.pixel(9, 9) == BLACK

    def test_no_regions_returns_actual(self):
        actual = RasterBuffer.blank(4, 4, WHITE)
        assert apply_ignore_regions(RasterBuffer.blank(4, 4), actual, []) is actual
