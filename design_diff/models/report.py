"""Report records persisted by the report store, plus batch aggregates."""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

from .comparison import AlignmentOffset, DiffRegion

ReportStatus = Literal["pending", "processing", "completed", "failed"]


class FixSuggestion(BaseModel):
    priority: Literal["critical", "high", "medium", "low"] = "medium"
    type: str = "layout"  # layout, spacing, color, typography, content
    description: str = ""
    selector: str = ""
    current_css: str = ""
    suggested_css: str = ""
    impact: str = ""


class ReportImages(BaseModel):
    design: str = ""
    actual: str = ""
    diff: Optional[str] = None
    annotated: Optional[str] = None
    thumbnail: Optional[str] = None


class Report(BaseModel):
    id: str
    created_at: str
    updated_at: str = ""
    status: ReportStatus = "pending"
    design_source: str = ""
    actual_source: str = ""
    url: Optional[str] = None
    options: dict[str, Any] = Field(default_factory=dict)
    batch_id: Optional[str] = None

    similarity: Optional[float] = None
    diff_pixels: Optional[int] = None
    total_pixels: Optional[int] = None
    alignment: Optional[AlignmentOffset] = None
    images: ReportImages = Field(default_factory=ReportImages)
    diff_regions: list[DiffRegion] = Field(default_factory=list)
    fixes: list[FixSuggestion] = Field(default_factory=list)
    error: Optional[str] = None


class BatchItem(BaseModel):
    """One page of a batch run: a design plus a screenshot or a URL to capture."""

    name: str
    design_path: str
    actual_path: Optional[str] = None
    url: Optional[str] = None


class BatchItemResult(BaseModel):
    name: str
    success: bool
    report_id: Optional[str] = None
    similarity: Optional[float] = None
    region_count: int = 0
    error: Optional[str] = None


class BatchSummary(BaseModel):
    total: int = 0
    completed: int = 0
    success_count: int = 0
    failed_count: int = 0
    avg_similarity: float = 0.0
    total_diff_count: int = 0


class BatchResult(BaseModel):
    batch_id: str
    started_at: str
    completed_at: str = ""
    summary: BatchSummary = Field(default_factory=BatchSummary)
    results: list[BatchItemResult] = Field(default_factory=list)
