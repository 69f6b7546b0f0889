"""Invocation of the external optimizer executables.

Each tool reads a working copy and writes its candidate into a directory of
its own, so any number of tools can run side by side on one job.

Tool command lines:

    advpng -z -4 -q FILE                      (recompresses FILE in place)
    pngout -y -q INPUT OUTPUT                 (exits non-zero on some inputs)
    optipng -quiet -o7 -force -clobber -out OUTPUT INPUT
    gifsicle -O3 INPUT --output OUTPUT
    jpegtran -copy all -optimize -outfile OUTPUT INPUT
    jfifremove < INPUT > OUTPUT
    cwebp -quiet -lossless INPUT -o OUTPUT.webp
    gif2webp -quiet INPUT -o OUTPUT.webp

A non-zero exit raises ``ToolExecutionError``, an overrun of
``EngineConfig.RUN_TIMEOUT`` raises ``ToolTimeoutError`` and a missing
executable raises ``ToolNotFoundError``. An output that is not smaller than
its input is still a valid output.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import tempfile
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from .config import EngineConfig
from .error_handling import (
    ToolExecutionError,
    ToolNotFoundError,
    ToolTimeoutError,
    stderr_excerpt,
)
from .models import WEBP_EXTENSION
from .system_tools import resolve_tool_path

logger = logging.getLogger(__name__)


class ToolIO(Enum):
    """How a tool receives its input and produces its output."""

    IN_PLACE = "in_place"  # rewrites the file it is given
    FILE_TO_FILE = "file_to_file"
    STREAM = "stream"  # stdin -> stdout


ArgvBuilder = Callable[[str, Path, Path], list[str]]


@dataclass(frozen=True)
class ToolSpec:
    """Command line shape of one external optimizer."""

    key: str
    io: ToolIO
    argv: ArgvBuilder
    output_extension: str | None = None

    def output_name(self, working_file: Path) -> str:
        if self.output_extension:
            return working_file.with_suffix(f".{self.output_extension}").name
        return working_file.name


TOOL_SPECS: dict[str, ToolSpec] = {
    spec.key: spec
    for spec in (
        ToolSpec(
            "advpng",
            ToolIO.IN_PLACE,
            lambda exe, _src, out: [exe, "-z", "-4", "-q", str(out)],
        ),
        ToolSpec(
            "pngout",
            ToolIO.FILE_TO_FILE,
            lambda exe, src, out: [exe, "-y", "-q", str(src), str(out)],
        ),
        ToolSpec(
            "optipng",
            ToolIO.FILE_TO_FILE,
            lambda exe, src, out: [
                exe, "-quiet", "-o7", "-force", "-clobber", "-out", str(out), str(src)
            ],
        ),
        ToolSpec(
            "gifsicle",
            ToolIO.FILE_TO_FILE,
            lambda exe, src, out: [exe, "-O3", str(src), "--output", str(out)],
        ),
        ToolSpec(
            "jpegtran",
            ToolIO.FILE_TO_FILE,
            lambda exe, src, out: [
                exe, "-copy", "all", "-optimize", "-outfile", str(out), str(src)
            ],
        ),
        ToolSpec(
            "jfifremove",
            ToolIO.STREAM,
            lambda exe, _src, _out: [exe],
        ),
        ToolSpec(
            "cwebp",
            ToolIO.FILE_TO_FILE,
            lambda exe, src, out: [exe, "-quiet", "-lossless", str(src), "-o", str(out)],
            output_extension=WEBP_EXTENSION,
        ),
        ToolSpec(
            "gif2webp",
            ToolIO.FILE_TO_FILE,
            lambda exe, src, out: [exe, "-quiet", str(src), "-o", str(out)],
            output_extension=WEBP_EXTENSION,
        ),
    )
}


def _remove_partial_output(output_path: Path) -> None:
    try:
        output_path.unlink(missing_ok=True)
    except OSError as e:
        logger.debug(f"Could not remove partial output {output_path}: {e}")


class ToolRunner:
    """Runs one external tool against one working file.

    Args:
        tools_dir: Directory holding the executables
        engine_config: Executable names and the per-process timeout
        scratch_dir: Parent of the output directories created when the
            caller does not supply one
    """

    def __init__(
        self,
        tools_dir: Path,
        engine_config: EngineConfig,
        scratch_dir: Path | None = None,
    ):
        self.tools_dir = Path(tools_dir)
        self.engine_config = engine_config
        self.scratch_dir = scratch_dir

    def executable(self, tool_key: str) -> Path:
        """Return the executable for *tool_key*.

        Raises:
            ToolNotFoundError: If it is missing or not executable
        """
        path = resolve_tool_path(tool_key, self.tools_dir, self.engine_config)
        if not (path.is_file() and os.access(path, os.X_OK)):
            raise ToolNotFoundError(tool_key, path)
        return path

    def invoke(
        self,
        tool_key: str,
        working_file: Path,
        canonical_path: Path | str | None = None,
        output_dir: Path | None = None,
    ) -> Path:
        """Run *tool_key* on *working_file* and return the file it produced.

        Args:
            tool_key: Key of a registered tool (see ``TOOL_SPECS``)
            working_file: File the tool reads; it is never modified
            canonical_path: Path reported in error messages (defaults to the
                resolved working file)
            output_dir: Directory receiving the output; a fresh directory is
                created when omitted

        Raises:
            ToolNotFoundError: If the executable is missing
            ToolExecutionError: If the tool exits with a non-zero status or
                produces no output
            ToolTimeoutError: If the tool exceeds the configured timeout
        """
        spec = TOOL_SPECS.get(tool_key)
        if spec is None:
            raise ValueError(f"Unknown tool: {tool_key}")

        working_file = Path(working_file)
        canonical = Path(canonical_path) if canonical_path else working_file.resolve()
        executable = self.executable(tool_key)

        if output_dir is None:
            output_dir = Path(
                tempfile.mkdtemp(prefix=f"{tool_key}_", dir=self.scratch_dir)
            )
        output_dir.mkdir(parents=True, exist_ok=True)
        output_path = output_dir / spec.output_name(working_file)
        if output_path.resolve() == working_file.resolve():
            raise ValueError(f"Output directory must differ from the input's: {output_dir}")

        if spec.io is ToolIO.IN_PLACE:
            shutil.copyfile(working_file, output_path)

        cmd = spec.argv(str(executable), working_file, output_path)
        timeout = self.engine_config.RUN_TIMEOUT
        logger.debug(f"Running {tool_key}: {' '.join(cmd)}")

        start_time = time.time()
        try:
            if spec.io is ToolIO.STREAM:
                with open(working_file, "rb") as src, open(output_path, "wb") as dst:
                    completed = subprocess.run(
                        cmd, stdin=src, stdout=dst, stderr=subprocess.PIPE, timeout=timeout
                    )
            else:
                completed = subprocess.run(cmd, capture_output=True, timeout=timeout)
        except subprocess.TimeoutExpired as e:
            # subprocess.run already killed the child process
            _remove_partial_output(output_path)
            raise ToolTimeoutError(tool_key, canonical, timeout) from e
        except PermissionError as e:
            _remove_partial_output(output_path)
            raise ToolNotFoundError(tool_key, executable) from e
        except OSError as e:
            _remove_partial_output(output_path)
            raise ToolExecutionError(tool_key, canonical, None, str(e)) from e

        render_ms = int((time.time() - start_time) * 1000)

        if completed.returncode != 0:
            _remove_partial_output(output_path)
            raise ToolExecutionError(
                tool_key, canonical, completed.returncode, stderr_excerpt(completed.stderr)
            )

        if not output_path.exists():
            raise ToolExecutionError(
                tool_key, canonical, completed.returncode, "tool produced no output file"
            )

        logger.debug(
            f"{tool_key} finished in {render_ms}ms: {working_file.stat().st_size} -> "
            f"{output_path.stat().st_size} bytes"
        )
        return output_path
