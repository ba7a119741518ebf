"""JSON report output."""

from __future__ import annotations

import json
from pathlib import Path

from design_diff.models.report import Report


def generate_json_report(report: Report, output_path: Path) -> None:
    """Write a machine-readable JSON report."""
    data = report.model_dump()
    data["region_count"] = len(report.diff_regions)
    data["fix_count"] = len(report.fixes)

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w") as f:
        json.dump(data, f, indent=2, default=str)
