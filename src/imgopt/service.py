"""Batch orchestration of the per-file optimization pipeline.

For every input file one job runs, concurrently with its siblings:

1. classify the file and, for GIFs, detect animation and transparency
2. race the tools registered for its format and keep the smallest output
3. for still GIFs allowed by the conversion mode, convert to PNG, race the
   PNG tools and keep the PNG winner if it beats the best GIF encoding
4. promote the winner into the final directory when it is smaller than
   the source (primary channel)
5. when requested and allowed, encode the best known encoding to WebP
   and promote it as a browser-specific result (WebP channel)

A job yields zero, one or two results. Tool failures degrade the affected
channel to "no result"; they never abort sibling jobs.
"""

from __future__ import annotations

import logging
import time
from collections import Counter
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Generic, TypeVar

from PIL import Image

from .config import EngineConfig, OptimizerConfig, ValidationConfig
from .error_handling import (
    ConfigurationError,
    ErrorLevel,
    ImageOptimizationError,
    error_context,
)
from .meta import classify, is_animated, transparency_class
from .models import (
    PNG_EXTENSION,
    WEBP_EXTENSION,
    ConversionMode,
    ImageFormat,
    OptimizationJob,
    OptimizationResult,
    ToolCandidate,
)
from .policy import ConversionDecision, decide, should_retarget
from .schema import BatchSummary
from .selector import optimize_with_tools, run_candidate
from .tools import ToolRunner
from .validation import failed_visual_check
from .workspace import Workspace

logger = logging.getLogger(__name__)

T = TypeVar("T")


def convert_gif_to_png(gif_path: Path, png_path: Path) -> Path:
    """Decode the first frame of *gif_path* and save it losslessly as PNG.

    Palette images keep their palette and transparent index.
    """
    with Image.open(gif_path) as img:
        img.seek(0)
        frame = img if img.mode in ("P", "L", "RGB", "RGBA") else img.convert("RGBA")
        save_params = {}
        if "transparency" in img.info and frame.mode in ("P", "L"):
            save_params["transparency"] = img.info["transparency"]
        frame.save(png_path, format="PNG", optimize=True, **save_params)
    return png_path


def converted_name(canonical: Path, extension: str, qualify: bool = False) -> str:
    """Final basename for an output of a different file type.

    >>> converted_name(Path("logo.gif"), "png")
    'logo.png'
    >>> converted_name(Path("logo.gif"), "png", qualify=True)
    'logo.gif.png'
    """
    if qualify:
        return f"{canonical.name}.{extension}"
    return canonical.with_suffix(f".{extension}").name


class ImageOptimizationService(Generic[T]):
    """Optimizes batches of PNG, JPEG and GIF files with external tools.

    Args:
        root_dir: Existing directory for job scratch space and final results
        tools_dir: Directory holding the external executables
        engine_config: Executable names and per-process timeout
        validation_config: Visual-parity check settings
        max_workers: Concurrent jobs (defaults to the host CPU count)

    Raises:
        ConfigurationError: If either directory argument is missing or the
            root directory does not exist or is not a directory
    """

    def __init__(
        self,
        root_dir: Path | str | None,
        tools_dir: Path | str | None,
        engine_config: EngineConfig | None = None,
        validation_config: ValidationConfig | None = None,
        max_workers: int | None = None,
    ):
        if tools_dir is None:
            raise ConfigurationError("The external tools directory must be provided")

        self.workspace = Workspace(root_dir)
        self.config = OptimizerConfig(
            ROOT_DIR=self.workspace.root_dir,
            TOOLS_DIR=Path(tools_dir),
            ENGINE=engine_config or EngineConfig(),
            VALIDATION=validation_config or ValidationConfig(),
            MAX_WORKERS=max_workers,
        )
        self.runner = ToolRunner(
            self.config.TOOLS_DIR, self.config.ENGINE, scratch_dir=self.workspace.root_dir
        )

    @classmethod
    def from_config(cls, config: OptimizerConfig) -> ImageOptimizationService[T]:
        return cls(
            config.ROOT_DIR,
            config.TOOLS_DIR,
            engine_config=config.ENGINE,
            validation_config=config.VALIDATION,
            max_workers=config.MAX_WORKERS,
        )

    # ------------------------------------------------------------------
    # Final results directory
    # ------------------------------------------------------------------

    @property
    def final_results_directory(self) -> Path:
        return self.workspace.final_results_dir

    def get_final_results_directory(self) -> str:
        """Return ``<root>/final`` as a string."""
        return str(self.final_results_directory)

    # ------------------------------------------------------------------
    # Direct single-tool API; failures propagate to the caller
    # ------------------------------------------------------------------

    def execute_tool(
        self, tool_key: str, working_file: Path, canonical_path: Path | str | None = None
    ) -> Path:
        """Run one tool on *working_file* and return its output file.

        The output lands in a fresh directory under the root directory that
        stays until :meth:`cleanup_tool_outputs` is called.

        Raises:
            ToolNotFoundError, ToolExecutionError, ToolTimeoutError
        """
        output_dir = self.workspace.scratch_directory(f"{tool_key}_")
        return self.runner.invoke(tool_key, Path(working_file), canonical_path, output_dir)

    def cleanup_tool_outputs(self) -> int:
        """Remove every output directory created by the direct tool API.

        Returns:
            Number of directories removed
        """
        return self.workspace.remove_scratch_directories()

    def execute_advpng(self, working_file: Path, canonical_path: Path | str | None = None) -> Path:
        return self.execute_tool("advpng", working_file, canonical_path)

    def execute_pngout(self, working_file: Path, canonical_path: Path | str | None = None) -> Path:
        return self.execute_tool("pngout", working_file, canonical_path)

    def execute_optipng(self, working_file: Path, canonical_path: Path | str | None = None) -> Path:
        return self.execute_tool("optipng", working_file, canonical_path)

    def execute_gifsicle(self, working_file: Path, canonical_path: Path | str | None = None) -> Path:
        return self.execute_tool("gifsicle", working_file, canonical_path)

    def execute_jpegtran(self, working_file: Path, canonical_path: Path | str | None = None) -> Path:
        return self.execute_tool("jpegtran", working_file, canonical_path)

    def execute_jfifremove(self, working_file: Path, canonical_path: Path | str | None = None) -> Path:
        return self.execute_tool("jfifremove", working_file, canonical_path)

    def execute_cwebp(self, working_file: Path, canonical_path: Path | str | None = None) -> Path:
        return self.execute_tool("cwebp", working_file, canonical_path)

    def execute_gif2webp(self, working_file: Path, canonical_path: Path | str | None = None) -> Path:
        return self.execute_tool("gif2webp", working_file, canonical_path)

    # ------------------------------------------------------------------
    # Batch API; failures degrade to missing results
    # ------------------------------------------------------------------

    def optimize_all(
        self,
        mode: ConversionMode | str,
        produce_webp: bool,
        files: Iterable[Path | str] | None,
        metadata: T | None = None,
    ) -> list[OptimizationResult[T]]:
        """Optimize every file in *files* concurrently.

        Args:
            mode: GIF to PNG conversion mode
            produce_webp: Also emit a WebP rendition where allowed
            files: Input files; None or empty yields an empty list
            metadata: Opaque value attached to every result

        Returns:
            Results in completion order, at most one primary and one WebP
            result per input file
        """
        if not files:
            return []
        sources = [Path(f) for f in files]
        if not sources:
            return []

        # Sources sharing a stem (logo.png, logo.gif) would claim the same
        # converted name, so their converted outputs keep the full source name
        stem_counts = Counter(source.stem.lower() for source in sources)

        mode = ConversionMode.from_string(mode)
        workers = min(self.config.worker_count, len(sources))
        start_time = time.time()
        logger.info(
            f"Optimizing {len(sources)} files (mode={mode.value}, webp={produce_webp}) "
            f"with {workers} workers"
        )

        results: list[OptimizationResult[T]] = []
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="job") as executor:
            future_to_source = {
                executor.submit(
                    self.optimize_file,
                    source,
                    mode,
                    produce_webp,
                    metadata,
                    qualify_names=stem_counts[source.stem.lower()] > 1,
                ): source
                for source in sources
            }
            for future in as_completed(future_to_source):
                source = future_to_source[future]
                try:
                    results.extend(future.result())
                except (ImageOptimizationError, OSError) as e:
                    logger.warning(f"Skipping {source}: {e}")
                except Exception as e:  # noqa: BLE001
                    logger.exception(f"Unexpected error while optimizing {source}: {e}")

        elapsed = time.time() - start_time
        logger.info(
            f"Batch finished in {elapsed:.2f}s: {len(results)} results for {len(sources)} files"
        )
        return results

    def build_job(
        self, source: Path, mode: ConversionMode, produce_webp: bool
    ) -> OptimizationJob:
        """Analyse *source* once; the job is read-only afterwards.

        Raises:
            UnsupportedImageError: If the content is not PNG, JPEG or GIF
            OSError: If the file cannot be read
        """
        canonical = Path(source).resolve(strict=True)
        image_format = classify(canonical)
        animated = image_format is ImageFormat.GIF and is_animated(canonical)
        transparency = (
            transparency_class(canonical) if image_format is ImageFormat.GIF else None
        )
        return OptimizationJob(
            source=Path(source),
            canonical_path=canonical,
            image_format=image_format,
            animated=animated,
            transparency=transparency,
            mode=mode,
            webp_requested=produce_webp,
        )

    def optimize_file(
        self,
        source: Path,
        mode: ConversionMode,
        produce_webp: bool,
        metadata: T | None = None,
        qualify_names: bool = False,
    ) -> list[OptimizationResult[T]]:
        """Run the whole pipeline for one file and return its results.

        With *qualify_names*, outputs that change the file type keep the full
        source name (``logo.gif.png``) so they cannot clash with a sibling
        input sharing the stem.
        """
        job = self.build_job(source, mode, produce_webp)
        decision = decide(
            job.image_format, job.animated, job.transparency, job.mode, job.webp_requested
        )
        original_size = job.original_size
        canonical = job.canonical_path
        results: list[OptimizationResult[T]] = []

        with self.workspace.job_directory(canonical) as (job_dir, working_copy):
            native = optimize_with_tools(
                self.runner, job.image_format, working_copy, canonical, job_dir / "native"
            )
            native_improved = native is not None and native.size < original_size

            # Best encoding in the source's own format, the source itself if nothing beat it
            best_native_file = native.output_path if native_improved else working_copy
            best_native_size = native.size if native_improved else original_size

            primary_file = best_native_file if native_improved else None
            retargeted = False
            if decision.retarget_to_png:
                png = self._png_candidate(working_copy, canonical, job_dir)
                if should_retarget(decision, png.size if png else None, best_native_size):
                    primary_file = png.output_path
                    retargeted = True

            if primary_file is not None:
                final_name = canonical.name
                if retargeted:
                    final_name = converted_name(canonical, PNG_EXTENSION, qualify_names)
                results.append(
                    self._promote(
                        job, primary_file, final_name, original_size,
                        file_type_changed=retargeted, browser_specific=False,
                        metadata=metadata,
                    )
                )

            if decision.produce_webp:
                # gif2webp always reads a GIF, even when the primary was retargeted
                webp = self._webp_candidate(decision, best_native_file, canonical, job_dir)
                if webp is not None:
                    results.append(
                        self._promote(
                            job, webp.output_path,
                            converted_name(canonical, WEBP_EXTENSION, qualify_names),
                            original_size,
                            file_type_changed=True, browser_specific=True,
                            metadata=metadata,
                        )
                    )

        logger.info(
            f"{canonical.name}: {job.image_format.value}"
            f"{' animated' if job.animated else ''}, {len(results)} result(s)"
            f"{', converted to png' if retargeted else ''}"
        )
        return results

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _png_candidate(
        self, working_copy: Path, canonical: Path, job_dir: Path
    ) -> ToolCandidate | None:
        """Convert the GIF working copy to PNG and race the PNG tools on it."""
        png_dir = job_dir / "png"
        png_dir.mkdir()
        png_path = png_dir / working_copy.with_suffix(f".{PNG_EXTENSION}").name
        try:
            with error_context(
                "convert GIF to PNG",
                level=ErrorLevel.WARNING,
                context={"file": str(canonical)},
                logger=logger,
            ):
                convert_gif_to_png(working_copy, png_path)
        except ImageOptimizationError:
            # logged by error_context; the job keeps its GIF candidate
            return None

        return optimize_with_tools(
            self.runner, ImageFormat.PNG, png_path, canonical, job_dir / "png_tools"
        )

    def _webp_candidate(
        self,
        decision: ConversionDecision,
        webp_input: Path,
        canonical: Path,
        job_dir: Path,
    ) -> ToolCandidate | None:
        assert decision.webp_tool is not None
        candidate = run_candidate(
            self.runner, decision.webp_tool, webp_input, canonical, job_dir / "webp"
        )
        return candidate if candidate.succeeded else None

    def _promote(
        self,
        job: OptimizationJob,
        output: Path,
        final_name: str,
        original_size: int,
        *,
        file_type_changed: bool,
        browser_specific: bool,
        metadata: T | None,
    ) -> OptimizationResult[T]:
        target = self.workspace.promote(output, final_name)
        return OptimizationResult(
            original_file=job.canonical_path,
            optimized_file=target,
            original_file_size=original_size,
            optimized=True,
            file_type_changed=file_type_changed,
            browser_specific=browser_specific,
            failed_automated_test=failed_visual_check(
                job.canonical_path, target, self.config.VALIDATION
            ),
            metadata=metadata,
        )


def summarize_results(results: Iterable[OptimizationResult]) -> BatchSummary:
    """Aggregate counts and primary-channel byte totals for a batch."""
    results = list(results)
    primary = [r for r in results if not r.browser_specific]
    return BatchSummary(
        results=len(results),
        primary_results=len(primary),
        webp_results=len(results) - len(primary),
        file_type_changes=sum(1 for r in primary if r.file_type_changed),
        failed_automated_tests=sum(1 for r in results if r.failed_automated_test),
        original_bytes=sum(r.original_file_size for r in primary),
        optimized_bytes=sum(r.optimized_file_size for r in primary),
    )
