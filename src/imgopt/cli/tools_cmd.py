"""Report which external optimizers are available."""

import sys
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from ..system_tools import get_available_tools


@click.command()
@click.option(
    "--tools-dir",
    "-t",
    type=click.Path(exists=True, file_okay=False, dir_okay=True, path_type=Path),
    required=True,
    help="Directory holding the external executables",
)
@click.option(
    "--strict",
    is_flag=True,
    help="Exit with status 1 when any tool is missing",
)
def tools(tools_dir: Path, strict: bool) -> None:
    """List the external tools found in TOOLS_DIR."""
    console = Console()
    available = get_available_tools(tools_dir)

    table = Table(title="🔧 External Tools", show_header=True, header_style="bold magenta")
    table.add_column("Tool", style="cyan", no_wrap=True)
    table.add_column("Status", justify="center")
    table.add_column("Version", style="dim")
    table.add_column("Path", style="dim")

    for name, info in available.items():
        status = "[green]✅ Available[/green]" if info.available else "[red]❌ Missing[/red]"
        table.add_row(name, status, info.version or "", str(info.path))

    console.print(table)

    missing = [name for name, info in available.items() if not info.available]
    if missing:
        click.echo(f"⚠️  Missing: {', '.join(missing)}", err=True)
        if strict:
            sys.exit(1)
