"""Persists comparison reports as one JSON file per report."""

from __future__ import annotations

import json
import logging
import time
import uuid
from pathlib import Path
from typing import Any

from design_diff.models.report import Report

logger = logging.getLogger(__name__)


def _now() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())


class ReportStore:
    """Key-value store of Report records under ``reports_dir``."""

    def __init__(self, reports_dir: Path):
        self.reports_dir = Path(reports_dir)

    def _path(self, report_id: str) -> Path:
        return self.reports_dir / f"{report_id}.json"

    def create(self, **fields: Any) -> Report:
        """Create and persist a new pending report."""
        report_id = fields.pop("id", None) or f"rpt_{uuid.uuid4().hex[:10]}"
        now = _now()
        report = Report(id=report_id, created_at=now, updated_at=now, **fields)
        self.save(report)
        return report

    def save(self, report: Report) -> None:
        self.reports_dir.mkdir(parents=True, exist_ok=True)
        report.updated_at = _now()
        with open(self._path(report.id), "w") as f:
            json.dump(report.model_dump(), f, indent=2)
        logger.debug("Saved report %s (%s)", report.id, report.status)

    def get(self, report_id: str) -> Report | None:
        path = self._path(report_id)
        if not path.exists():
            return None
        with open(path) as f:
            return Report.model_validate(json.load(f))

    def update(self, report_id: str, **fields: Any) -> Report:
        """Apply field updates to a stored report and persist it."""
        report = self.get(report_id)
        if report is None:
            raise KeyError(f"Report not found: {report_id}")
        updated = Report.model_validate({**report.model_dump(), **fields})
        self.save(updated)
        return updated

    def list(self, batch_id: str | None = None) -> list[Report]:
        """All readable reports, newest first."""
        if not self.reports_dir.exists():
            return []
        reports = []
        for path in self.reports_dir.glob("*.json"):
            try:
                with open(path) as f:
                    report = Report.model_validate(json.load(f))
            except Exception as e:
                logger.warning("Skipping unreadable report %s: %s", path, e)
                continue
            if batch_id is None or report.batch_id == batch_id:
                reports.append(report)
        reports.sort(key=lambda r: (r.created_at, r.id), reverse=True)
        return reports

    def delete(self, report_id: str) -> bool:
        path = self._path(report_id)
        if not path.exists():
            return False
        path.unlink()
        logger.info("Deleted report %s", report_id)
        return True
