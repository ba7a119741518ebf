"""Configuration models for design-diff."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator


class IgnoreRegion(BaseModel):
    x: int = Field(ge=0)
    y: int = Field(ge=0)
    width: int = Field(gt=0)
    height: int = Field(gt=0)


class CompareOptions(BaseModel):
    # Diff engine
    threshold: float = Field(default=0.1, ge=0.0, le=1.0)
    include_antialiasing: bool = False
    engine: Literal["default", "alternate"] = "default"

    # Pipeline stages
    alignment_enabled: bool = True
    clustering_enabled: bool = True
    annotate: bool = True

    # Clustering; None falls back to the granularity preset
    granularity: Literal["fine", "coarse"] = "coarse"
    min_region_size: Optional[int] = Field(default=None, ge=1)
    neighborhood_radius: Optional[int] = Field(default=None, ge=1, le=32)
    max_merge_distance: Optional[float] = Field(default=None, ge=0)
    max_regions: int = Field(default=15, ge=1)
    padding: Optional[int] = Field(default=None, ge=0)

    ignore_regions: list[IgnoreRegion] = Field(default_factory=list)


class CaptureConfig(BaseModel):
    width: int = Field(default=375, gt=0)
    height: int = Field(default=667, gt=0)
    full_page: bool = True
    # Must stay 1: a retina capture doubles the raster and breaks pixel comparison
    device_scale_factor: float = 1.0
    wait_until: Literal["load", "domcontentloaded", "networkidle", "commit"] = "networkidle"
    timeout_ms: int = 30000
    settle_ms: int = 2000
    user_agent: Optional[str] = None


class AIConfig(BaseModel):
    enabled: bool = True
    model: str = "claude-sonnet-4-20250514"
    max_tokens: int = 4096

    @field_validator("max_tokens")
    @classmethod
    def check_max_tokens(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("max_tokens must be positive")
        return v


class DiffConfig(BaseModel):
    compare: CompareOptions = Field(default_factory=CompareOptions)
    capture: CaptureConfig = Field(default_factory=CaptureConfig)
    ai: AIConfig = Field(default_factory=AIConfig)

    # Batch
    max_concurrency: int = Field(default=3, ge=1)

    # Output
    output_dir: str = "./diff-reports"
    reports_dir: str = ".design-diff/reports"

    @classmethod
    def load(cls, path: str | Path) -> "DiffConfig":
        """Load config from a JSON file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path) as f:
            data = json.load(f)
        return cls(**data)

    def save(self, path: str | Path) -> None:
        """Save config to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.model_dump(), f, indent=2)
