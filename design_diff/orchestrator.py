"""Sequences alignment, diffing, clustering and annotation for one comparison.

This is the only module that touches external collaborators: the filesystem
(input rasters and output artifacts), the AI advisor and the report store.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path

from design_diff.ai.advisor import FixAdvisor
from design_diff.ai.client import AIClient, set_debug_dir
from design_diff.engine.aligner import Aligner
from design_diff.engine.annotator import Annotator
from design_diff.engine.clustering import ClusteringSettings, RegionClusterer
from design_diff.engine.diff_engine import apply_ignore_regions, get_engine
from design_diff.engine.raster import load_raster
from design_diff.errors import AnnotationFailure, ClusteringFailure
from design_diff.models.comparison import ComparisonResult
from design_diff.models.config import CompareOptions, DiffConfig
from design_diff.models.report import Report, ReportImages
from design_diff.storage.artifacts import ArtifactStore
from design_diff.storage.report_store import ReportStore

logger = logging.getLogger(__name__)


class ComparisonOrchestrator:
    """Runs single comparisons and the report workflow built on top of them."""

    def __init__(
        self,
        config: DiffConfig | None = None,
        advisor: FixAdvisor | None = None,
        report_store: ReportStore | None = None,
    ):
        self.config = config or DiffConfig()
        self.artifacts = ArtifactStore(Path(self.config.output_dir))
        self.report_store = report_store or ReportStore(Path(self.config.reports_dir))
        self.advisor = advisor or FixAdvisor(self._init_ai_client())

    def _init_ai_client(self) -> AIClient | None:
        if not self.config.ai.enabled:
            return None
        try:
            client = AIClient(model=self.config.ai.model, max_tokens=self.config.ai.max_tokens)
        except EnvironmentError as e:
            logger.warning("AI client unavailable: %s. Using rule-based suggestions.", e)
            return None
        set_debug_dir(Path(self.config.reports_dir).parent / "debug")
        return client

    # ------------------------------------------------------------------
    # Core comparison
    # ------------------------------------------------------------------

    def compare_and_cluster(
        self,
        base_path: str | Path,
        actual_path: str | Path,
        options: CompareOptions | None = None,
        output_dir: str | Path | None = None,
    ) -> ComparisonResult:
        """Compare two raster files and cluster their differences.

        Artifacts (diff, annotated diff, thumbnail) are written only when
        ``output_dir`` is given.
        """
        options = options or self.config.compare
        start = time.time()
        logger.info("Comparing %s against %s (engine=%s)", actual_path, base_path, options.engine)

        base = load_raster(base_path)
        actual = load_raster(actual_path)

        aligned = Aligner(search_enabled=options.alignment_enabled).align(base, actual)
        actual_aligned = apply_ignore_regions(aligned.base, aligned.actual, options.ignore_regions)

        engine = get_engine(options.engine)
        result = engine.compare(
            aligned.base,
            actual_aligned,
            threshold=options.threshold,
            include_antialiasing=options.include_antialiasing,
        )
        result.alignment_offset = aligned.offset
        result.alignment_improvement = round(aligned.improvement, 4)
        logger.info("Similarity %.2f%% (%d/%d pixels differ)",
                    result.similarity_pct, result.diff_pixel_count, result.total_pixel_count)

        if options.clustering_enabled and result.diff_pixel_count > 0:
            result.diff_regions = self._cluster(result, options)

        if options.annotate and result.diff_regions:
            result.annotated_image = self._annotate(result)

        if output_dir is not None:
            self._write_artifacts(result, Path(output_dir))

        logger.info("Comparison finished in %.2fs with %d region(s)",
                    time.time() - start, len(result.diff_regions))
        return result

    @staticmethod
    def _cluster(result: ComparisonResult, options: CompareOptions):
        clusterer = RegionClusterer(ClusteringSettings.from_options(options))
        try:
            return clusterer.analyze(result.diff_image)
        except ClusteringFailure as e:
            logger.warning("%s; continuing without regions", e)
            return []

    @staticmethod
    def _annotate(result: ComparisonResult):
        try:
            return Annotator().annotate(result.diff_image, result.diff_regions)
        except AnnotationFailure as e:
            logger.warning("%s; keeping the plain diff image", e)
            return None

    def _write_artifacts(self, result: ComparisonResult, directory: Path) -> None:
        directory.mkdir(parents=True, exist_ok=True)
        diff_path = self.artifacts.write_diff(directory, result.diff_image)
        result.diff_image_path = str(diff_path)
        preview = diff_path
        if result.annotated_image is not None:
            annotated_path = self.artifacts.write_annotated(directory, result.annotated_image)
            result.annotated_image_path = str(annotated_path)
            preview = annotated_path
        thumb = self.artifacts.write_thumbnail(preview)
        result.thumbnail_path = str(thumb) if thumb else None

    # ------------------------------------------------------------------
    # Report workflow
    # ------------------------------------------------------------------

    def run_report(
        self,
        design_path: str | Path,
        actual_path: str | Path,
        options: CompareOptions | None = None,
        url: str | None = None,
        batch_id: str | None = None,
        with_fixes: bool = True,
        output_dir: str | Path | None = None,
    ) -> Report:
        """Compare, ask the advisor for fixes and persist the resulting report.

        Artifacts go to ``output_dir`` when given, else to a directory named
        after the report id. Fatal comparison errors mark the report failed
        and are re-raised.
        """
        options = options or self.config.compare
        report = self.report_store.create(
            status="processing",
            design_source=str(design_path),
            actual_source=str(actual_path),
            url=url,
            options=options.model_dump(),
            batch_id=batch_id,
        )
        try:
            result = self.compare_and_cluster(
                design_path, actual_path, options,
                output_dir=output_dir or self.artifacts.new_dir(report.id),
            )
        except Exception as e:
            self.report_store.update(report.id, status="failed", error=str(e))
            raise

        fixes = []
        if with_fixes and result.diff_pixel_count > 0:
            fixes = self.advisor.suggest(
                {
                    "design": str(design_path),
                    "actual": str(actual_path),
                    "diff": result.annotated_image_path or result.diff_image_path,
                },
                result,
            )

        return self.report_store.update(
            report.id,
            status="completed",
            similarity=result.similarity_pct,
            diff_pixels=result.diff_pixel_count,
            total_pixels=result.total_pixel_count,
            alignment=result.alignment_offset,
            images=ReportImages(
                design=str(design_path),
                actual=str(actual_path),
                diff=result.diff_image_path,
                annotated=result.annotated_image_path,
                thumbnail=result.thumbnail_path,
            ),
            diff_regions=result.diff_regions,
            fixes=fixes,
        )


def compare_and_cluster(
    base_path: str | Path,
    actual_path: str | Path,
    options: CompareOptions | None = None,
    output_dir: str | Path | None = None,
) -> ComparisonResult:
    """Single comparison without AI or report storage."""
    config = DiffConfig(compare=options or CompareOptions())
    config.ai.enabled = False
    return ComparisonOrchestrator(config).compare_and_cluster(
        base_path, actual_path, config.compare, output_dir=output_dir,
    )
