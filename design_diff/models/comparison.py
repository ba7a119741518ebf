"""Comparison result data structures produced by the diff pipeline."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from design_diff.engine.raster import RasterBuffer

Priority = Literal["critical", "high", "medium", "low"]
RegionType = Literal["layout", "major", "medium", "minor"]


class AlignmentOffset(BaseModel):
    model_config = ConfigDict(frozen=True)

    dx: int = 0
    dy: int = 0

    @property
    def is_zero(self) -> bool:
        return self.dx == 0 and self.dy == 0


class DiffRegion(BaseModel):
    id: int
    x: int = Field(ge=0)
    y: int = Field(ge=0)
    width: int = Field(ge=0)
    height: int = Field(ge=0)
    pixel_count: int = Field(ge=0)
    score: float
    priority: Priority
    type: RegionType
    description: str = ""

    @property
    def area(self) -> int:
        return self.width * self.height

    @property
    def density(self) -> float:
        return self.pixel_count / self.area if self.area else 0.0


class ComparisonResult(BaseModel):
    """Outcome of one base/actual comparison.

    ``diff_image`` holds the raw diff raster and is excluded from dumps; the
    ``*_path`` fields are filled only when artifacts were written to disk.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    similarity_pct: float = Field(ge=0, le=100)
    diff_pixel_count: int = Field(ge=0)
    total_pixel_count: int = Field(gt=0)
    width: int
    height: int
    engine: str = "default"
    diff_image: RasterBuffer = Field(exclude=True)
    annotated_image: Optional[RasterBuffer] = Field(default=None, exclude=True)
    diff_regions: list[DiffRegion] = Field(default_factory=list)
    alignment_offset: AlignmentOffset = Field(default_factory=AlignmentOffset)
    alignment_improvement: float = 0.0
    diff_image_path: Optional[str] = None
    annotated_image_path: Optional[str] = None
    thumbnail_path: Optional[str] = None

    @property
    def diff_ratio(self) -> float:
        return self.diff_pixel_count / self.total_pixel_count


def similarity_from_counts(diff_pixel_count: int, total_pixel_count: int) -> float:
    """Percentage of matching pixels, rounded to 2 decimals."""
    if total_pixel_count <= 0:
        raise ValueError("total_pixel_count must be positive")
    similarity = (total_pixel_count - diff_pixel_count) / total_pixel_count * 100
    return round(min(100.0, max(0.0, similarity)), 2)
