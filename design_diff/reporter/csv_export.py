"""CSV export of stored reports, readable by spreadsheet tools."""

from __future__ import annotations

import csv
import logging
from pathlib import Path
from typing import Any, Iterable

from design_diff.models.report import Report

logger = logging.getLogger(__name__)

# (dotted key into the report dump, column header)
DEFAULT_COLUMNS: list[tuple[str, str]] = [
    ("id", "Report ID"),
    ("created_at", "Created"),
    ("status", "Status"),
    ("design_source", "Design"),
    ("actual_source", "Actual"),
    ("url", "URL"),
    ("similarity", "Similarity (%)"),
    ("diff_pixels", "Diff Pixels"),
    ("total_pixels", "Total Pixels"),
    ("region_count", "Regions"),
    ("alignment.dx", "Offset X"),
    ("alignment.dy", "Offset Y"),
    ("images.diff", "Diff Image"),
    ("images.annotated", "Annotated Image"),
    ("batch_id", "Batch"),
    ("error", "Error"),
]


def _nested_value(data: dict[str, Any], key: str) -> Any:
    value: Any = data
    for part in key.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float):
        return f"{value:.2f}"
    return str(value)


def export_reports_csv(
    reports: Iterable[Report],
    output_path: Path,
    columns: list[tuple[str, str]] | None = None,
) -> int:
    """Write one row per report and return the number of rows written.

    The file starts with a UTF-8 BOM and every cell is quoted.
    """
    columns = columns or DEFAULT_COLUMNS
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    count = 0
    with open(output_path, "w", newline="", encoding="utf-8-sig") as f:
        writer = csv.writer(f, quoting=csv.QUOTE_ALL)
        writer.writerow([label for _, label in columns])
        for report in reports:
            data = report.model_dump()
            data["region_count"] = len(report.diff_regions)
            writer.writerow([_cell(_nested_value(data, key)) for key, _ in columns])
            count += 1

    logger.info("Exported %d report(s) to %s", count, output_path)
    return count
