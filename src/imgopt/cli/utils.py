"""Shared utilities for CLI commands."""

import sys
from collections.abc import Iterable
from pathlib import Path

import click

from ..error_handling import ConfigurationError

# Extensions picked up when a directory is given on the command line
IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg", ".gif")


def handle_generic_error(command_name: str, error: Exception) -> None:
    """Handle generic command errors with consistent formatting."""
    click.echo(f"❌ {command_name} failed: {error}", err=True)
    sys.exit(1)


def handle_keyboard_interrupt(command_name: str) -> None:
    """Handle keyboard interrupt with consistent formatting."""
    click.echo(f"\n⏹️  {command_name} interrupted by user", err=True)
    sys.exit(1)


def handle_configuration_error(error: ConfigurationError) -> None:
    click.echo(f"❌ Invalid configuration: {error}", err=True)
    sys.exit(2)


def expand_inputs(paths: Iterable[Path], recursive: bool = False) -> list[Path]:
    """Expand directories into the image files they contain.

    Files are returned as given; directory members are sorted by name.
    Content is not inspected here, unsupported files are skipped later.
    """
    files: list[Path] = []
    for path in paths:
        if path.is_dir():
            pattern = "**/*" if recursive else "*"
            files.extend(
                sorted(
                    p
                    for p in path.glob(pattern)
                    if p.is_file() and p.suffix.lower() in IMAGE_EXTENSIONS
                )
            )
        else:
            files.append(path)
    return files


def format_bytes(size: int) -> str:
    """Format a byte count for display (e.g. ``1.5 KB``)."""
    value = float(size)
    for unit in ("B", "KB", "MB"):
        if abs(value) < 1024:
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} GB"
