"""I/O utilities for logging setup, atomic writes and result export."""

import json
import logging
import shutil
import tempfile
from collections.abc import Iterable
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any

from .models import OptimizationResult
from .schema import OptimizationRecord


def setup_logging(log_dir: Path | None = None, log_level: str = "INFO") -> logging.Logger:
    """Set up logging configuration for the optimizer.

    Args:
        log_dir: Directory to store log files (stream only when None)
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)

    Returns:
        Configured logger instance
    """
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        handlers.append(logging.FileHandler(log_dir / f"imgopt_{timestamp}.log"))

    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
        force=True,
    )

    return logging.getLogger("imgopt")


@contextmanager
def atomic_write(target_path: Path, mode: str = "w"):
    """Context manager for atomic file writes using temporary files.

    Args:
        target_path: Final path where file should be written
        mode: File open mode

    Yields:
        File handle for writing

    Example:
        with atomic_write(Path("data.json")) as f:
            json.dump(data, f)
    """
    target_path.parent.mkdir(parents=True, exist_ok=True)

    with tempfile.NamedTemporaryFile(
        mode=mode,
        dir=target_path.parent,
        delete=False,
        suffix=f".tmp_{target_path.name}",
    ) as temp_file:
        try:
            yield temp_file
            temp_file.flush()
        except Exception:
            temp_file.close()
            Path(temp_file.name).unlink(missing_ok=True)
            raise

    # Rename on POSIX is atomic within one filesystem
    Path(temp_file.name).replace(target_path)


def atomic_copy(source: Path, target_path: Path) -> Path:
    """Copy *source* to *target_path* so readers never observe a partial file."""
    with atomic_write(target_path, mode="wb") as out, open(source, "rb") as src:
        shutil.copyfileobj(src, out)
    return target_path


def result_to_record(result: OptimizationResult) -> OptimizationRecord:
    """Convert a result into its exported form."""
    metadata: Any = result.metadata
    if metadata is not None:
        try:
            json.dumps(metadata)
        except (TypeError, ValueError):
            metadata = str(metadata)

    return OptimizationRecord(
        original_file=str(result.original_file),
        optimized_file=str(result.optimized_file),
        original_file_size=result.original_file_size,
        optimized_file_size=result.optimized_file_size,
        optimized=result.optimized,
        file_type_changed=result.file_type_changed,
        browser_specific=result.browser_specific,
        failed_automated_test=result.failed_automated_test,
        metadata=metadata,
    )


def write_results_json(results: Iterable[OptimizationResult], json_path: Path) -> int:
    """Atomically write *results* as a JSON array.

    Returns:
        Number of records written
    """
    records = [result_to_record(r).model_dump() for r in results]
    with atomic_write(json_path) as f:
        json.dump(records, f, indent=2)
    return len(records)
