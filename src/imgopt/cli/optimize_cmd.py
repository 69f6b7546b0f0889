"""Optimize image files and promote the winners into the final directory."""

from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from ..config import EngineConfig, ValidationConfig
from ..error_handling import ConfigurationError
from ..io import setup_logging, write_results_json
from ..models import ConversionMode
from ..service import ImageOptimizationService, summarize_results
from .utils import (
    expand_inputs,
    format_bytes,
    handle_configuration_error,
    handle_generic_error,
    handle_keyboard_interrupt,
)


@click.command()
@click.argument(
    "inputs",
    nargs=-1,
    required=True,
    type=click.Path(exists=True, path_type=Path),
)
@click.option(
    "--root",
    "-r",
    "root_dir",
    type=click.Path(exists=True, file_okay=False, dir_okay=True, path_type=Path),
    required=True,
    help="Working directory; results land in ROOT/final",
)
@click.option(
    "--tools-dir",
    "-t",
    type=click.Path(exists=True, file_okay=False, dir_okay=True, path_type=Path),
    required=True,
    help="Directory holding advpng, pngout, optipng, gifsicle, jpegtran, jfifremove, cwebp and gif2webp",
)
@click.option(
    "--mode",
    "-m",
    type=click.Choice([m.value for m in ConversionMode], case_sensitive=False),
    default=ConversionMode.NONE.value,
    help="GIF to PNG conversion mode (default: none)",
)
@click.option(
    "--webp",
    is_flag=True,
    help="Also produce WebP renditions of PNG and still GIF inputs",
)
@click.option(
    "--workers",
    "-j",
    type=click.IntRange(min=0),
    default=0,
    help="Concurrent jobs (default: 0 = CPU count - 1)",
)
@click.option(
    "--recursive",
    is_flag=True,
    help="Descend into subdirectories of directory inputs",
)
@click.option(
    "--timeout",
    type=click.IntRange(min=1),
    default=None,
    help="Seconds before a single tool process is killed",
)
@click.option(
    "--no-visual-check",
    is_flag=True,
    help="Skip the SSIM comparison between originals and outputs",
)
@click.option(
    "--report",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write the results as JSON to this file",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    help="Logging level (default: WARNING)",
)
def optimize(
    inputs: tuple[Path, ...],
    root_dir: Path,
    tools_dir: Path,
    mode: str,
    webp: bool,
    workers: int,
    recursive: bool,
    timeout: int | None,
    no_visual_check: bool,
    report: Path | None,
    log_level: str,
) -> None:
    """Losslessly optimize PNG, JPEG and GIF files.

    Every tool for a file's format runs on a private copy and the smallest
    output is copied into ROOT/final. Source files are never modified.

    INPUTS: Image files, or directories of .png/.jpg/.jpeg/.gif files
    """
    setup_logging(log_level=log_level)
    console = Console()

    try:
        files = expand_inputs(inputs, recursive=recursive)
        if not files:
            click.echo("⚠️  No image files found", err=True)
            return

        engine_config = EngineConfig(RUN_TIMEOUT=timeout) if timeout else EngineConfig()
        service: ImageOptimizationService = ImageOptimizationService(
            root_dir,
            tools_dir,
            engine_config=engine_config,
            validation_config=ValidationConfig(ENABLE_VISUAL_CHECK=not no_visual_check),
            max_workers=workers or None,
        )

        click.echo(f"🗜️  Optimizing {len(files)} file(s) (mode: {mode.lower()}, webp: {webp})")
        results = service.optimize_all(mode, webp, files)
        summary = summarize_results(results)

        table = Table(title="📦 Results", show_header=True, header_style="bold magenta")
        table.add_column("Original", style="cyan", no_wrap=True)
        table.add_column("Output", style="green")
        table.add_column("Before", justify="right")
        table.add_column("After", justify="right")
        table.add_column("Flags", style="dim")

        for result in sorted(results, key=lambda r: (str(r.original_file), r.browser_specific)):
            flags = []
            if result.file_type_changed and not result.browser_specific:
                flags.append("converted")
            if result.browser_specific:
                flags.append("browser-specific")
            if result.failed_automated_test:
                flags.append("[red]visual check failed[/red]")
            table.add_row(
                result.original_file.name,
                result.optimized_file.name,
                format_bytes(result.original_file_size),
                format_bytes(result.optimized_file_size),
                ", ".join(flags),
            )

        if results:
            console.print(table)
        click.echo(
            f"✅ {summary.primary_results} optimized, {summary.webp_results} WebP, "
            f"saved {format_bytes(summary.bytes_saved)} ({summary.percent_saved:.1f}%)"
        )
        click.echo(f"📁 Results: {service.get_final_results_directory()}")

        if report is not None:
            written = write_results_json(results, report)
            click.echo(f"📝 Wrote {written} records to {report}")

    except ConfigurationError as e:
        handle_configuration_error(e)
    except KeyboardInterrupt:
        handle_keyboard_interrupt("Optimization")
    except Exception as e:
        handle_generic_error("Optimization", e)
