"""Workspace management: root directory validation, job scratch space and promotion."""

from __future__ import annotations

import logging
import shutil
import tempfile
import threading
from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path

from .error_handling import ConfigurationError, error_context
from .io import atomic_copy

logger = logging.getLogger(__name__)

FINAL_SUBDIR = "final"


def validate_root_dir(root_dir: Path | str | None) -> Path:
    """Return the canonical form of *root_dir*.

    Raises:
        ConfigurationError: If it is None, missing, or not a directory
    """
    if root_dir is None:
        raise ConfigurationError("The root working directory must be provided")

    root = Path(root_dir)
    if not root.exists():
        raise ConfigurationError(f"The root working directory does not exist: {root}")
    if not root.is_dir():
        raise ConfigurationError(f"The root working directory is not a directory: {root}")
    return root.resolve()


class Workspace:
    """Owns the root working directory and the final results directory.

    Args:
        root_dir: Existing directory receiving every job's scratch space
        final_subdir: Name of the directory under *root_dir* holding results
    """

    def __init__(self, root_dir: Path | str | None, final_subdir: str = FINAL_SUBDIR):
        self.root_dir = validate_root_dir(root_dir)
        self._final_dir = self.root_dir / final_subdir
        self._reserved_names: set[str] = set()
        self._reserve_lock = threading.Lock()
        self._scratch_dirs: list[Path] = []
        self._scratch_lock = threading.Lock()

    @property
    def final_results_dir(self) -> Path:
        """Directory receiving promoted outputs, created on first use."""
        self._final_dir.mkdir(parents=True, exist_ok=True)
        return self._final_dir

    @contextmanager
    def job_directory(self, source: Path) -> Generator[tuple[Path, Path], None, None]:
        """Yield ``(job_dir, working_copy)`` for one job.

        The working copy keeps the source's basename. The job directory and
        everything in it is removed on exit, including on error.
        """
        job_dir = Path(tempfile.mkdtemp(prefix="job_", dir=self.root_dir))
        try:
            working_copy = job_dir / source.name
            with error_context(
                "copy source file into the job directory",
                context={"source": str(source)},
                logger=logger,
            ):
                shutil.copyfile(source, working_copy)
            yield job_dir, working_copy
        finally:
            try:
                shutil.rmtree(job_dir)
            except OSError as e:
                logger.warning(f"Could not remove job directory {job_dir}: {e}")

    def scratch_directory(self, prefix: str) -> Path:
        """Create a directory under the root that outlives the call.

        It stays until :meth:`remove_scratch_directories` is called.
        """
        scratch = Path(tempfile.mkdtemp(prefix=prefix, dir=self.root_dir))
        with self._scratch_lock:
            self._scratch_dirs.append(scratch)
        return scratch

    def remove_scratch_directories(self) -> int:
        """Delete every directory handed out by :meth:`scratch_directory`.

        Returns:
            Number of directories removed
        """
        with self._scratch_lock:
            pending, self._scratch_dirs = self._scratch_dirs, []

        removed = 0
        for scratch in pending:
            try:
                shutil.rmtree(scratch)
                removed += 1
            except FileNotFoundError:
                logger.debug(f"Scratch directory {scratch} was already removed")
            except OSError as e:
                logger.warning(f"Could not remove scratch directory {scratch}: {e}")
        return removed

    def reserve_final_name(self, name: str) -> str:
        """Claim *name* in the final results directory.

        Claims last as long as the workspace, so no two promotions ever share
        a file. A name that is already claimed gets a numeric suffix
        (``logo-1.png``).
        """
        path = Path(name)
        with self._reserve_lock:
            claimed = name
            counter = 1
            while claimed in self._reserved_names:
                claimed = f"{path.stem}-{counter}{path.suffix}"
                counter += 1
            self._reserved_names.add(claimed)

        if claimed != name:
            logger.warning(f"Final name {name} is already taken, using {claimed}")
        return claimed

    def promote(self, candidate: Path, final_name: str) -> Path:
        """Copy *candidate* into the final results directory.

        Returns:
            The promoted file, named *final_name* unless that name was
            already claimed
        """
        target = self.final_results_dir / self.reserve_final_name(final_name)
        atomic_copy(candidate, target)
        logger.debug(f"Promoted {candidate.name} to {target}")
        return target
