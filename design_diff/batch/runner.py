"""Compares many pages under a bounded concurrency limit."""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from pathlib import Path
from typing import Callable, Optional

from design_diff.capture.capture import PageCapturer
from design_diff.models.config import CompareOptions
from design_diff.models.report import (
    BatchItem,
    BatchItemResult,
    BatchResult,
    BatchSummary,
)
from design_diff.orchestrator import ComparisonOrchestrator

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[BatchItemResult, BatchSummary], None]


def _now() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())


class BatchRunner:
    """Runs independent comparisons; one item's failure never affects another."""

    def __init__(
        self,
        orchestrator: ComparisonOrchestrator,
        capturer: PageCapturer | None = None,
        max_concurrency: int | None = None,
        options: CompareOptions | None = None,
    ):
        self.orchestrator = orchestrator
        self.capturer = capturer
        self.max_concurrency = max_concurrency or orchestrator.config.max_concurrency
        self.options = options or orchestrator.config.compare

    def run_sync(self, items: list[BatchItem], progress: Optional[ProgressCallback] = None) -> BatchResult:
        return asyncio.run(self.run(items, progress))

    async def run(self, items: list[BatchItem], progress: Optional[ProgressCallback] = None) -> BatchResult:
        batch_id = f"batch_{uuid.uuid4().hex[:8]}"
        result = BatchResult(batch_id=batch_id, started_at=_now(),
                             summary=BatchSummary(total=len(items)))
        logger.info("Starting batch %s: %d item(s), concurrency %d",
                    batch_id, len(items), self.max_concurrency)

        semaphore = asyncio.Semaphore(self.max_concurrency)
        results: list[BatchItemResult | None] = [None] * len(items)

        async def _run_one(index: int, item: BatchItem) -> None:
            async with semaphore:
                logger.info("[%d/%d] Comparing %s", index + 1, len(items), item.name)
                item_result = await self._run_item(batch_id, item)
            results[index] = item_result
            self._record(result.summary, item_result)
            if progress:
                try:
                    progress(item_result, result.summary.model_copy())
                except Exception as e:
                    logger.warning("Progress callback failed for %s: %s", item.name, e)

        await asyncio.gather(*(_run_one(i, item) for i, item in enumerate(items)))

        result.results = [r for r in results if r is not None]
        result.completed_at = _now()
        logger.info("Batch %s done: %d succeeded, %d failed, avg similarity %.2f%%",
                    batch_id, result.summary.success_count, result.summary.failed_count,
                    result.summary.avg_similarity)
        return result

    async def _run_item(self, batch_id: str, item: BatchItem) -> BatchItemResult:
        try:
            actual_path = await self._resolve_actual(batch_id, item)
            report = await asyncio.to_thread(
                self.orchestrator.run_report,
                item.design_path,
                actual_path,
                self.options,
                url=item.url,
                batch_id=batch_id,
            )
        except Exception as e:
            logger.error("Batch item %s failed: %s", item.name, e)
            return BatchItemResult(name=item.name, success=False, error=str(e))

        return BatchItemResult(
            name=item.name,
            success=True,
            report_id=report.id,
            similarity=report.similarity,
            region_count=len(report.diff_regions),
        )

    async def _resolve_actual(self, batch_id: str, item: BatchItem) -> Path:
        if item.actual_path:
            return Path(item.actual_path)
        if not item.url:
            raise ValueError(f"Item '{item.name}' has neither a screenshot nor a URL")
        if self.capturer is None:
            raise ValueError(f"Item '{item.name}' needs capture but no capturer is configured")
        target = Path(self.orchestrator.config.output_dir) / batch_id / "captures" / f"{_slug(item.name)}.png"
        return await self.capturer.capture(item.url, target)

    @staticmethod
    def _record(summary: BatchSummary, item: BatchItemResult) -> None:
        """Fold one finished item into the running aggregates."""
        summary.completed += 1
        if not item.success:
            summary.failed_count += 1
            return
        n = summary.success_count
        summary.avg_similarity = round(
            (summary.avg_similarity * n + (item.similarity or 0.0)) / (n + 1), 2
        )
        summary.success_count = n + 1
        summary.total_diff_count += item.region_count


def _slug(name: str) -> str:
    slug = "".join(ch if ch.isalnum() else "-" for ch in name.lower()).strip("-")
    return slug or "page"
