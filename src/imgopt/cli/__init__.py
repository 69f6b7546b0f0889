"""CLI module for imgopt commands.

Commands live in their own modules and are registered on the ``main`` group.
"""

import click

from .. import __version__
from .optimize_cmd import optimize
from .tools_cmd import tools


@click.group()
@click.version_option(version=__version__, prog_name="imgopt")
def main() -> None:
    """🗜️ imgopt: lossless PNG, JPEG and GIF optimizer."""
    pass


main.add_command(optimize)
main.add_command(tools)

__all__ = ["main", "optimize", "tools"]
