"""Tests for configuration and result models."""

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from design_diff.engine.raster import RasterBuffer
from design_diff.models.comparison import (
    AlignmentOffset,
    ComparisonResult,
    DiffRegion,
    similarity_from_counts,
)
from design_diff.models.config import (
    AIConfig,
    CaptureConfig,
    CompareOptions,
    DiffConfig,
    IgnoreRegion,
)


class TestCompareOptions:
    """Tests for CompareOptions model."""

    def test_default_values(self):
        """Test CompareOptions has correct default values."""
        options = CompareOptions()
        assert options.threshold == 0.1
        assert options.include_antialiasing is False
        assert options.engine == "default"
        assert options.alignment_enabled is True
        assert options.clustering_enabled is True
        assert options.granularity == "coarse"
        assert options.min_region_size is None
        assert options.max_regions == 15
        assert options.ignore_regions == []

    def test_threshold_range(self):
        """Test threshold must lie in [0, 1]."""
        with pytest.raises(ValidationError):
            CompareOptions(threshold=1.5)
        with pytest.raises(ValidationError):
            CompareOptions(threshold=-0.1)

    def test_unknown_engine_rejected(self):
        with pytest.raises(ValidationError):
            CompareOptions(engine="resemble")

    def test_positive_sizes(self):
        with pytest.raises(ValidationError):
            CompareOptions(min_region_size=0)
        with pytest.raises(ValidationError):
            CompareOptions(max_regions=0)

    def test_ignore_region_requires_area(self):
        with pytest.raises(ValidationError):
            IgnoreRegion(x=0, y=0, width=0, height=10)


class TestCaptureConfig:
    def test_default_values(self):
        """Test CaptureConfig defaults to a 1x mobile viewport."""
        config = CaptureConfig()
        assert (config.width, config.height) == (375, 667)
        assert config.device_scale_factor == 1.0
        assert config.wait_until == "networkidle"
        assert config.full_page is True


class TestAIConfig:
    def test_max_tokens_must_be_positive(self):
        with pytest.raises(ValidationError, match="max_tokens"):
            AIConfig(max_tokens=0)


class TestDiffConfig:
    """Tests for DiffConfig load/save."""

    def test_default_values(self):
        config = DiffConfig()
        assert config.max_concurrency == 3
        assert config.output_dir == "./diff-reports"
        assert config.reports_dir == ".design-diff/reports"
        assert config.ai.enabled is True

    def test_save_and_load(self, tmp_path: Path):
        """Test DiffConfig survives a save/load cycle."""
        config = DiffConfig(compare=CompareOptions(engine="alternate", granularity="fine"), max_concurrency=5)
        path = tmp_path / "nested" / "config.json"
        config.save(path)

        loaded = DiffConfig.load(path)
        assert loaded.compare.engine == "alternate"
        assert loaded.compare.granularity == "fine"
        assert loaded.max_concurrency == 5

    def test_load_partial_file_uses_defaults(self, tmp_path: Path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"compare": {"threshold": 0.2}}))
        loaded = DiffConfig.load(path)
        assert loaded.compare.threshold == 0.2
        assert loaded.capture.width == 375

    def test_load_missing_file(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            DiffConfig.load(tmp_path / "nope.json")


class TestComparisonModels:
    """Tests for result models."""

    def test_similarity_from_counts(self):
        assert similarity_from_counts(0, 10000) == 100.0
        assert similarity_from_counts(400, 10000) == 96.0
        assert similarity_from_counts(1, 3) == 66.67
        assert similarity_from_counts(10, 10) == 0.0

    def test_similarity_requires_pixels(self):
        with pytest.raises(ValueError):
            similarity_from_counts(0, 0)

    def test_region_area_and_density(self, diff_region: DiffRegion):
        assert diff_region.area == 900
        assert diff_region.density == pytest.approx(400 / 900)

    def test_alignment_offset_is_zero(self):
        assert AlignmentOffset().is_zero
        assert not AlignmentOffset(dx=-1).is_zero

    def test_result_dump_excludes_rasters(self):
        result = ComparisonResult(
            similarity_pct=96.0,
            diff_pixel_count=400,
            total_pixel_count=10000,
            width=100,
            height=100,
            diff_image=RasterBuffer.blank(1, 1),
        )
        data = result.model_dump()
        assert "diff_image" not in data
        assert "annotated_image" not in data
        assert result.diff_ratio == 0.04

    def test_similarity_bounds_validated(self):
        with pytest.raises(ValidationError):
            ComparisonResult(
                similarity_pct=101.0,
                diff_pixel_count=0,
                total_pixel_count=1,
                width=1,
                height=1,
                diff_image=RasterBuffer.blank(1, 1),
            )
