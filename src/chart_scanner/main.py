"""CLI entry point for the chord chart scanner."""

import json
import logging
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.progress import BarColumn, Progress, TaskProgressColumn, TextColumn
from rich.table import Table

from chart_scanner.batch import BatchScheduler
from chart_scanner.config import BatchConfig
from chart_scanner.errors import ChartScanError
from chart_scanner.models.chart import ImageQualityMetrics
from chart_scanner.pipeline import ChartScanner
from chart_scanner.preprocessing import ImageEnhancer, load_image

app = typer.Typer(
    name="chartscan",
    help="Turn photos of chord charts into structured ChordPro charts.",
    add_completion=False,
)
console = Console()


@app.callback()
def main(
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Show debug logging",
        ),
    ] = False,
):
    """Configure logging for all commands."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def _create_scanner(lang: str) -> ChartScanner:
    """Create a scanner backed by PaddleOCR."""
    from chart_scanner.ocr.paddle_ocr import PaddleOCRBackend

    return ChartScanner(ocr=PaddleOCRBackend(lang=lang))


@app.command()
def scan(
    image_path: Annotated[
        Path,
        typer.Argument(
            help="Path to the chord chart image",
            exists=True,
            readable=True,
        ),
    ],
    output_json: Annotated[
        bool,
        typer.Option(
            "--json",
            "-j",
            help="Output the full JSON result instead of the chart",
        ),
    ] = False,
    ocr_only: Annotated[
        bool,
        typer.Option(
            "--ocr-only",
            help="Only run enhancement and OCR, skip layout analysis",
        ),
    ] = False,
    lang: Annotated[
        str,
        typer.Option(
            "--lang",
            "-l",
            help="OCR language (default: en)",
        ),
    ] = "en",
    page: Annotated[
        int,
        typer.Option(
            "--page",
            "-p",
            min=0,
            help="Page number recorded on detected sections",
        ),
    ] = 0,
):
    """Scan a chord chart image and print it as ChordPro."""
    try:
        scanner = _create_scanner(lang)

        if ocr_only:
            text = scanner.scan_ocr_only(image_path)
            if output_json:
                print(json.dumps({"raw_text": text}, indent=2))
            else:
                console.print(Panel(text, title="OCR Result", border_style="blue"))
            return

        result = scanner.scan(image_path, page_number=page)

        if output_json:
            print(result.model_dump_json(indent=2))
        else:
            console.print(Panel(result.chart, title="ChordPro", border_style="green"))
            console.print(
                f"[dim]Layout: {result.layout.layout_type.description}, "
                f"quality {result.quality.overall_score:.2f} ({result.quality.quality_level}), "
                f"{result.metadata.processing_time_ms:.0f}ms[/dim]"
            )

    except FileNotFoundError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    except (ValueError, ChartScanError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


@app.command()
def quality(
    image_path: Annotated[
        Path,
        typer.Argument(
            help="Path to the image",
            exists=True,
            readable=True,
        ),
    ],
    enhance: Annotated[
        bool,
        typer.Option(
            "--enhance",
            "-e",
            help="Also show metrics after enhancement",
        ),
    ] = False,
    output_json: Annotated[
        bool,
        typer.Option(
            "--json",
            "-j",
            help="Output raw JSON instead of a table",
        ),
    ] = False,
):
    """Show image quality metrics."""
    try:
        image, orientation = load_image(image_path)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    enhancer = ImageEnhancer()
    result = enhancer.enhance(image, orientation) if enhance else None
    before = result.initial_metrics if result else enhancer.calculate_quality_metrics(image)

    if output_json:
        output = {"metrics": before.model_dump()}
        if result:
            output["enhanced"] = result.metrics.model_dump()
            output["applied"] = result.applied
        print(json.dumps(output, indent=2))
        return

    table = Table(title=str(image_path))
    table.add_column("Metric", style="dim")
    table.add_column("Original")
    if result:
        table.add_column("Enhanced")

    for label, field in _METRIC_ROWS:
        row = [label, _format_metric(before, field)]
        if result:
            row.append(_format_metric(result.metrics, field))
        table.add_row(*row)
    console.print(table)

    if result:
        console.print(f"[dim]Applied: {', '.join(result.applied) or 'nothing'}[/dim]")


_METRIC_ROWS = [
    ("Brightness", "brightness"),
    ("Contrast", "contrast"),
    ("Sharpness", "sharpness"),
    ("Skew angle", "skew_angle"),
    ("Noise level", "noise_level"),
    ("Overall score", "overall_score"),
]


def _format_metric(metrics: ImageQualityMetrics, field: str) -> str:
    return f"{getattr(metrics, field):.3f}"


@app.command()
def batch(
    inputs: Annotated[
        list[Path],
        typer.Argument(
            help="Image files or directories to process",
        ),
    ],
    output: Annotated[
        Path,
        typer.Option(
            "--output",
            "-o",
            help="Output file path (JSON or CSV)",
        ),
    ],
    format: Annotated[
        str,
        typer.Option(
            "--format",
            "-f",
            help="Output format: json or csv",
        ),
    ] = "json",
    lang: Annotated[
        str,
        typer.Option(
            "--lang",
            "-l",
            help="OCR language (default: en)",
        ),
    ] = "en",
    max_concurrent: Annotated[
        int,
        typer.Option(
            "--max-concurrent",
            "-c",
            min=1,
            help="Images processed at the same time",
        ),
    ] = 3,
):
    """Scan multiple chord chart images."""
    # Validate format
    format = format.lower()
    if format not in ("json", "csv"):
        console.print(f"[red]Error:[/red] Invalid format '{format}'. Use 'json' or 'csv'.")
        raise typer.Exit(1)

    scheduler = BatchScheduler(BatchConfig(max_concurrent=max_concurrent))

    # Collect images
    images = scheduler.collect_images(inputs)

    if not images:
        console.print("[yellow]Warning:[/yellow] No images found to process.")
        raise typer.Exit(0)

    scanner = _create_scanner(lang)
    console.print(f"Processing {len(images)} image(s)...")

    with Progress(
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        console=console,
    ) as progress:
        task = progress.add_task("Scanning", total=1.0)
        try:
            job = scheduler.process_batch(
                images,
                scanner.scan,
                progress_handler=lambda value: progress.update(task, completed=value),
            )
        except ValueError as e:
            console.print(f"[red]Error:[/red] {e}")
            raise typer.Exit(1)

    # Format output
    if format == "csv":
        content = scheduler.to_csv(job)
    else:
        content = scheduler.to_json(job)

    # Write output
    output.write_text(content, encoding="utf-8")

    # Print summary
    console.print(
        f"[green]Done:[/green] {len(job.results)} succeeded, "
        f"{len(job.errors)} failed, {job.elapsed_ms:.1f}ms total"
    )
    for error in job.errors:
        console.print(f"  [red]{images[error.image_index].name}[/red]: {error.message}")
    console.print(f"Output: {output}")


@app.command()
def version():
    """Show version information."""
    from chart_scanner import __version__

    console.print(f"chartscan version {__version__}")


if __name__ == "__main__":
    app()
