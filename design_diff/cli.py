"""CLI entry point for design-diff."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional

import click
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from design_diff.batch.runner import BatchRunner
from design_diff.capture.capture import PageCapturer
from design_diff.errors import DesignDiffError
from design_diff.models.comparison import ComparisonResult, DiffRegion
from design_diff.models.config import DiffConfig
from design_diff.models.report import BatchItem, BatchItemResult, BatchSummary
from design_diff.orchestrator import ComparisonOrchestrator
from design_diff.reporter.csv_export import export_reports_csv
from design_diff.reporter.json_report import generate_json_report
from design_diff.storage.report_store import ReportStore

console = Console()

DEFAULT_CONFIG = "design-diff.json"

PRIORITY_STYLES = {
    "critical": "bold red",
    "high": "red",
    "medium": "yellow",
    "low": "green",
}


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def _load_config(config: Optional[str]) -> DiffConfig:
    """Explicit config paths must exist; the default file is optional."""
    path = config or DEFAULT_CONFIG
    try:
        return DiffConfig.load(path)
    except FileNotFoundError:
        if config:
            console.print(f"[red]Config file not found: {config}[/red]")
            console.print("Run 'design-diff init' to create a default config.")
            sys.exit(1)
        return DiffConfig()
    except (ValidationError, json.JSONDecodeError) as e:
        console.print(f"[red]Invalid config {path}: {e}[/red]")
        sys.exit(1)


def _regions_table(regions: list[DiffRegion]) -> Table:
    table = Table(title="Difference Regions")
    table.add_column("#", justify="right")
    table.add_column("Priority")
    table.add_column("Type")
    table.add_column("Box")
    table.add_column("Pixels", justify="right")
    table.add_column("Score", justify="right")
    for r in regions:
        style = PRIORITY_STYLES.get(r.priority, "")
        table.add_row(
            str(r.id),
            f"[{style}]{r.priority}[/{style}]",
            r.type,
            f"{r.x},{r.y} {r.width}x{r.height}",
            str(r.pixel_count),
            f"{r.score:.2f}",
        )
    return table


def _print_result(result: ComparisonResult) -> None:
    table = Table(title="Comparison Summary")
    table.add_column("Metric", style="bold")
    table.add_column("Value")
    table.add_row("Similarity", f"{result.similarity_pct:.2f}%")
    table.add_row("Diff Pixels", f"{result.diff_pixel_count} / {result.total_pixel_count}")
    table.add_row("Size", f"{result.width}x{result.height}")
    table.add_row("Engine", result.engine)
    offset = result.alignment_offset
    table.add_row("Alignment", f"dx={offset.dx}, dy={offset.dy} ({result.alignment_improvement:.0%} improvement)")
    table.add_row("Regions", str(len(result.diff_regions)))
    console.print(table)
    if result.diff_regions:
        console.print(_regions_table(result.diff_regions))
    if result.diff_image_path:
        console.print(f"  Diff image: [blue]{result.diff_image_path}[/blue]")
    if result.annotated_image_path:
        console.print(f"  Annotated: [blue]{result.annotated_image_path}[/blue]")


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """Visual diff and region clustering for design mock-ups."""
    setup_logging(verbose)


@cli.command()
@click.option("--path", "-p", default=DEFAULT_CONFIG, help="Where to write the config")
def init(path: str) -> None:
    """Create a default configuration file."""
    config_path = Path(path)
    if config_path.exists():
        if not click.confirm(f"{config_path} already exists. Overwrite?"):
            return

    DiffConfig().save(config_path)
    console.print(f"[green]Created {config_path}[/green]")
    console.print("\nYou can now customize this file and run:")
    console.print("  [blue]design-diff compare design.png screenshot.png[/blue]")


@cli.command()
@click.argument("base", type=click.Path())
@click.argument("actual", type=click.Path())
@click.option("--config", "-c", default=None, help="Config file path")
@click.option("--engine", type=click.Choice(["default", "alternate"]), default=None, help="Diff engine")
@click.option("--threshold", "-t", type=click.FloatRange(0.0, 1.0), default=None, help="Colour threshold 0..1")
@click.option("--granularity", "-g", type=click.Choice(["coarse", "fine"]), default=None, help="Clustering preset")
@click.option("--no-align", is_flag=True, help="Skip the offset search")
@click.option("--no-cluster", is_flag=True, help="Skip region clustering")
@click.option("--output-dir", "-o", default=None, help="Directory for diff artifacts")
@click.option("--report/--no-report", default=False, help="Store a report with fix suggestions")
@click.option("--ai/--no-ai", default=True, help="Use the AI model for fix suggestions")
def compare(
    base: str,
    actual: str,
    config: Optional[str],
    engine: Optional[str],
    threshold: Optional[float],
    granularity: Optional[str],
    no_align: bool,
    no_cluster: bool,
    output_dir: Optional[str],
    report: bool,
    ai: bool,
) -> None:
    """Compare a BASE design image against an ACTUAL screenshot."""
    cfg = _load_config(config)
    cfg.ai.enabled = cfg.ai.enabled and ai and report
    overrides = {
        "engine": engine,
        "threshold": threshold,
        "granularity": granularity,
    }
    options = cfg.compare.model_copy(update={k: v for k, v in overrides.items() if v is not None})
    if no_align:
        options.alignment_enabled = False
    if no_cluster:
        options.clustering_enabled = False

    orchestrator = ComparisonOrchestrator(cfg)
    try:
        if report:
            stored = orchestrator.run_report(base, actual, options, output_dir=output_dir)
            _print_report(stored)
            return
        result = orchestrator.compare_and_cluster(
            base, actual, options,
            output_dir=output_dir or orchestrator.artifacts.new_dir(),
        )
    except (DesignDiffError, ValueError, FileNotFoundError) as e:
        console.print(f"[red]Comparison failed: {e}[/red]")
        sys.exit(1)

    _print_result(result)


@cli.command()
@click.argument("url")
@click.option("--output", "-o", default="capture.png", help="Screenshot path")
@click.option("--width", type=int, default=None, help="Viewport width")
@click.option("--height", type=int, default=None, help="Viewport height")
@click.option("--config", "-c", default=None, help="Config file path")
def capture(url: str, output: str, width: Optional[int], height: Optional[int], config: Optional[str]) -> None:
    """Capture a full-page screenshot of URL."""
    cfg = _load_config(config)
    if width:
        cfg.capture.width = width
    if height:
        cfg.capture.height = height
    try:
        path = asyncio.run(PageCapturer(cfg.capture).capture(url, output))
    except DesignDiffError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)
    console.print(f"[green]Captured[/green] {url} -> [blue]{path}[/blue]")


def _load_manifest(manifest: str) -> list[BatchItem]:
    with open(manifest) as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("items", [])
    return [BatchItem.model_validate(item) for item in data]


@cli.command()
@click.argument("manifest", type=click.Path(exists=True))
@click.option("--config", "-c", default=None, help="Config file path")
@click.option("--concurrency", "-j", type=click.IntRange(min=1), default=None, help="Parallel comparisons")
@click.option("--ai/--no-ai", default=True, help="Use the AI model for fix suggestions")
def batch(manifest: str, config: Optional[str], concurrency: Optional[int], ai: bool) -> None:
    """Run every comparison listed in a JSON MANIFEST."""
    cfg = _load_config(config)
    cfg.ai.enabled = cfg.ai.enabled and ai
    try:
        items = _load_manifest(manifest)
    except (json.JSONDecodeError, ValidationError) as e:
        console.print(f"[red]Invalid manifest {manifest}: {e}[/red]")
        sys.exit(1)
    if not items:
        console.print("[yellow]Manifest has no items[/yellow]")
        return

    def _progress(item: BatchItemResult, summary: BatchSummary) -> None:
        mark = "[green]✓[/green]" if item.success else "[red]✗[/red]"
        console.print(f"  {mark} [{summary.completed}/{summary.total}] {item.name}")

    runner = BatchRunner(
        ComparisonOrchestrator(cfg),
        capturer=PageCapturer(cfg.capture),
        max_concurrency=concurrency,
    )
    result = runner.run_sync(items, progress=_progress)

    console.print(f"\n[bold green]Batch {result.batch_id} Complete[/bold green]")
    table = Table(title="Batch Results")
    table.add_column("Page", style="bold")
    table.add_column("Status")
    table.add_column("Similarity", justify="right")
    table.add_column("Regions", justify="right")
    table.add_column("Report")
    for r in result.results:
        status = "[green]ok[/green]" if r.success else f"[red]failed[/red] {r.error or ''}"
        similarity = f"{r.similarity:.2f}%" if r.similarity is not None else "-"
        table.add_row(r.name, status, similarity, str(r.region_count), r.report_id or "-")
    console.print(table)
    s = result.summary
    console.print(
        f"  {s.success_count} succeeded, {s.failed_count} failed, "
        f"average similarity {s.avg_similarity:.2f}%, {s.total_diff_count} region(s)"
    )
    if s.failed_count:
        sys.exit(1)


def _print_report(report) -> None:
    table = Table(title=f"Report {report.id}")
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("Status", report.status)
    table.add_row("Created", report.created_at)
    table.add_row("Design", report.design_source)
    table.add_row("Actual", report.actual_source)
    if report.url:
        table.add_row("URL", report.url)
    if report.similarity is not None:
        table.add_row("Similarity", f"{report.similarity:.2f}%")
        table.add_row("Diff Pixels", f"{report.diff_pixels} / {report.total_pixels}")
    if report.images.annotated or report.images.diff:
        table.add_row("Diff Image", report.images.annotated or report.images.diff)
    if report.error:
        table.add_row("Error", f"[red]{report.error}[/red]")
    console.print(table)
    if report.diff_regions:
        console.print(_regions_table(report.diff_regions))
    for i, fix in enumerate(report.fixes, 1):
        style = PRIORITY_STYLES.get(fix.priority, "")
        console.print(f"  {i}. [{style}]{fix.priority}[/{style}] {fix.type}: {fix.description}")
        if fix.suggested_css:
            console.print(f"     [dim]{fix.selector}[/dim] {fix.suggested_css}")


@cli.group()
def reports() -> None:
    """Browse and export stored reports."""
    pass


@reports.command("list")
@click.option("--batch", "batch_id", default=None, help="Only reports from this batch")
@click.option("--config", "-c", default=None, help="Config file path")
def reports_list(batch_id: Optional[str], config: Optional[str]) -> None:
    """List stored reports, newest first."""
    cfg = _load_config(config)
    stored = ReportStore(Path(cfg.reports_dir)).list(batch_id=batch_id)
    if not stored:
        console.print("[yellow]No reports found[/yellow]")
        return
    table = Table(title="Reports")
    table.add_column("ID", style="bold")
    table.add_column("Created")
    table.add_column("Status")
    table.add_column("Similarity", justify="right")
    table.add_column("Regions", justify="right")
    for r in stored:
        similarity = f"{r.similarity:.2f}%" if r.similarity is not None else "-"
        table.add_row(r.id, r.created_at, r.status, similarity, str(len(r.diff_regions)))
    console.print(table)


@reports.command("show")
@click.argument("report_id")
@click.option("--json", "json_path", default=None, help="Also write the report as JSON")
@click.option("--config", "-c", default=None, help="Config file path")
def reports_show(report_id: str, json_path: Optional[str], config: Optional[str]) -> None:
    """Show one stored report."""
    cfg = _load_config(config)
    report = ReportStore(Path(cfg.reports_dir)).get(report_id)
    if report is None:
        console.print(f"[red]Report not found: {report_id}[/red]")
        sys.exit(1)
    _print_report(report)
    if json_path:
        generate_json_report(report, Path(json_path))
        console.print(f"  JSON report: [blue]{json_path}[/blue]")


@reports.command("export")
@click.option("--csv", "csv_path", default="reports.csv", help="CSV output path")
@click.option("--batch", "batch_id", default=None, help="Only reports from this batch")
@click.option("--config", "-c", default=None, help="Config file path")
def reports_export(csv_path: str, batch_id: Optional[str], config: Optional[str]) -> None:
    """Export stored reports to CSV."""
    cfg = _load_config(config)
    stored = ReportStore(Path(cfg.reports_dir)).list(batch_id=batch_id)
    count = export_reports_csv(stored, Path(csv_path))
    console.print(f"[green]Exported {count} report(s)[/green] to [blue]{csv_path}[/blue]")


if __name__ == "__main__":
    cli()
