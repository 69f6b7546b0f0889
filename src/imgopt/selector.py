"""Candidate selection: race every tool for a format and keep the smallest output."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from .config import get_optimal_worker_count
from .error_handling import (
    ImageOptimizationError,
    ToolExecutionError,
    log_warning_with_context,
)
from .models import ImageFormat, ToolCandidate
from .tools import ToolRunner

logger = logging.getLogger(__name__)

# Canonical priority order; on equal sizes the earlier tool wins.
TOOLS_BY_FORMAT: dict[ImageFormat, tuple[str, ...]] = {
    ImageFormat.PNG: ("advpng", "pngout", "optipng"),
    ImageFormat.JPEG: ("jpegtran", "jfifremove"),
    ImageFormat.GIF: ("gifsicle",),
}

WEBP_TOOL_BY_FORMAT: dict[ImageFormat, str] = {
    ImageFormat.PNG: "cwebp",
    ImageFormat.GIF: "gif2webp",
}


def run_candidate(
    runner: ToolRunner,
    tool_key: str,
    working_file: Path,
    canonical_path: Path,
    output_dir: Path,
) -> ToolCandidate:
    """Invoke one tool and fold any failure into a failed candidate."""
    try:
        output = runner.invoke(tool_key, working_file, canonical_path, output_dir)
        return ToolCandidate.success(tool_key, output)
    except ImageOptimizationError as e:
        context = {"tool": tool_key, "file": canonical_path}
        if isinstance(e, ToolExecutionError):
            context.update(exit_code=e.exit_code, stderr=e.stderr)
        log_warning_with_context(f"{type(e).__name__}: {e}", context, logger)
        return ToolCandidate.failure(tool_key, e)
    except OSError as e:
        log_warning_with_context(
            f"I/O error while running {tool_key}: {e}", {"file": canonical_path}, logger
        )
        return ToolCandidate.failure(tool_key, e)


def race_tools(
    runner: ToolRunner,
    tool_keys: Sequence[str],
    working_file: Path,
    canonical_path: Path,
    output_root: Path,
    max_workers: int | None = None,
) -> list[ToolCandidate]:
    """Run every tool in *tool_keys* concurrently against *working_file*.

    Each tool writes into ``output_root/<tool>/``. The returned list follows
    the order of *tool_keys*, whatever order the tools finished in.
    """
    if not tool_keys:
        return []

    workers = max_workers or min(len(tool_keys), get_optimal_worker_count("tools"))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="tool") as executor:
        futures = [
            executor.submit(
                run_candidate,
                runner,
                tool_key,
                working_file,
                canonical_path,
                output_root / tool_key,
            )
            for tool_key in tool_keys
        ]
        return [future.result() for future in futures]


def select_best(
    candidates: Sequence[ToolCandidate], priority: Sequence[str] | None = None
) -> ToolCandidate | None:
    """Return the smallest successful candidate, or None if every tool failed.

    Ties go to the tool appearing first in *priority* (defaults to the order
    of *candidates*).
    """
    order = list(priority) if priority is not None else [c.tool for c in candidates]

    def rank(candidate: ToolCandidate) -> tuple[int, int]:
        position = order.index(candidate.tool) if candidate.tool in order else len(order)
        return (candidate.size, position)

    successful = [c for c in candidates if c.succeeded]
    if not successful:
        return None
    return min(successful, key=rank)


def optimize_with_tools(
    runner: ToolRunner,
    image_format: ImageFormat,
    working_file: Path,
    canonical_path: Path,
    output_root: Path,
) -> ToolCandidate | None:
    """Race the tools registered for *image_format* and return the winner."""
    tool_keys = TOOLS_BY_FORMAT[image_format]
    candidates = race_tools(runner, tool_keys, working_file, canonical_path, output_root)
    best = select_best(candidates, tool_keys)

    if best is None:
        logger.info(
            f"No {image_format.value} tool succeeded for {canonical_path} "
            f"({', '.join(c.tool for c in candidates)})"
        )
    else:
        logger.debug(f"{best.tool} won for {canonical_path} with {best.size} bytes")
    return best
