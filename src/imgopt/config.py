"""Configuration settings for the image optimizer."""

import multiprocessing as mp
import os
from dataclasses import dataclass, field
from pathlib import Path

@dataclass
class EngineConfig:
    """Executable names for the external optimizers with environment variable overrides.

    A bare name is looked up inside the tools directory handed to the
    service; an absolute path is used as-is.
    """

    # PNG in-place recompressor (AdvanceCOMP).
    # Override with: IMGOPT_ADVPNG_PATH
    ADVPNG_PATH: str = "advpng"

    # PNG re-encoder; refuses some inputs with a non-zero exit status.
    # Override with: IMGOPT_PNGOUT_PATH
    PNGOUT_PATH: str = "pngout"

    # PNG re-optimizer.
    # Override with: IMGOPT_OPTIPNG_PATH
    OPTIPNG_PATH: str = "optipng"

    # GIF recompressor.
    # Override with: IMGOPT_GIFSICLE_PATH
    GIFSICLE_PATH: str = "gifsicle"

    # Lossless JPEG transform tool (libjpeg).
    # Override with: IMGOPT_JPEGTRAN_PATH
    JPEGTRAN_PATH: str = "jpegtran"

    # JPEG metadata stripper, reads stdin and writes stdout.
    # Override with: IMGOPT_JFIFREMOVE_PATH
    JFIFREMOVE_PATH: str = "jfifremove"

    # General purpose WebP encoder (libwebp).
    # Override with: IMGOPT_CWEBP_PATH
    CWEBP_PATH: str = "cwebp"

    # GIF to WebP encoder (libwebp).
    # Override with: IMGOPT_GIF2WEBP_PATH
    GIF2WEBP_PATH: str = "gif2webp"

    # Seconds before a single tool process is killed.
    # Override with: IMGOPT_RUN_TIMEOUT
    RUN_TIMEOUT: int = 60

    def __post_init__(self) -> None:
        """Apply environment variable overrides after initialization."""
        env_overrides = {
            "ADVPNG_PATH": "IMGOPT_ADVPNG_PATH",
            "PNGOUT_PATH": "IMGOPT_PNGOUT_PATH",
            "OPTIPNG_PATH": "IMGOPT_OPTIPNG_PATH",
            "GIFSICLE_PATH": "IMGOPT_GIFSICLE_PATH",
            "JPEGTRAN_PATH": "IMGOPT_JPEGTRAN_PATH",
            "JFIFREMOVE_PATH": "IMGOPT_JFIFREMOVE_PATH",
            "CWEBP_PATH": "IMGOPT_CWEBP_PATH",
            "GIF2WEBP_PATH": "IMGOPT_GIF2WEBP_PATH",
        }

        for attr_name, env_var_name in env_overrides.items():
            env_value = os.getenv(env_var_name)
            if env_value:
                setattr(self, attr_name, env_value)

        env_timeout = os.getenv("IMGOPT_RUN_TIMEOUT")
        if env_timeout:
            try:
                self.RUN_TIMEOUT = int(env_timeout)
            except ValueError as e:
                raise ValueError(
                    f"IMGOPT_RUN_TIMEOUT must be an integer, got {env_timeout!r}"
                ) from e

        if self.RUN_TIMEOUT <= 0:
            raise ValueError(f"RUN_TIMEOUT must be positive, got {self.RUN_TIMEOUT}")

    def executable_for(self, tool_key: str) -> str:
        """Return the configured executable name for *tool_key* (e.g. ``"pngout"``)."""
        attr = f"{tool_key.upper()}_PATH"
        if not hasattr(self, attr):
            raise ValueError(f"Unknown tool: {tool_key}")
        return getattr(self, attr)


@dataclass
class ValidationConfig:
    """Configuration for the visual-parity check run on every promoted output."""

    # Enable/disable the check; when disabled every result passes.
    ENABLE_VISUAL_CHECK: bool = True

    # Minimum SSIM between the master and the optimized rendering.
    SSIM_THRESHOLD: float = 0.98

    # Mean absolute channel difference (0-255) allowed for images too small
    # for an SSIM window.
    MAX_MEAN_ABS_DIFF: float = 2.0

    # Background the two renderings are composited onto before comparing.
    BACKGROUND_COLOR: tuple[int, int, int] = (255, 255, 255)

    def __post_init__(self) -> None:
        if not 0.0 <= self.SSIM_THRESHOLD <= 1.0:
            raise ValueError(
                f"SSIM_THRESHOLD must be between 0.0 and 1.0, got {self.SSIM_THRESHOLD}"
            )
        if self.MAX_MEAN_ABS_DIFF < 0:
            raise ValueError("MAX_MEAN_ABS_DIFF must be non-negative")


def get_optimal_worker_count(task_type: str = "jobs") -> int:
    """Get optimal worker count for different task types.

    Args:
        task_type: ``"jobs"`` for the batch fan-out, ``"tools"`` for the
            per-job tool race

    Returns:
        Number of workers
    """
    cpu_count = mp.cpu_count()

    if task_type == "jobs":
        # Jobs mostly wait on child processes, leave one core for coordination
        return max(1, cpu_count - 1)
    elif task_type == "tools":
        return max(1, min(cpu_count, 4))
    else:
        return max(1, cpu_count // 2)


@dataclass
class OptimizerConfig:
    """Everything one service instance needs, threaded into every job."""

    ROOT_DIR: Path
    TOOLS_DIR: Path
    ENGINE: EngineConfig = field(default_factory=EngineConfig)
    VALIDATION: ValidationConfig = field(default_factory=ValidationConfig)
    MAX_WORKERS: int | None = None

    # Subdirectory of ROOT_DIR receiving promoted outputs.
    FINAL_SUBDIR: str = "final"

    def __post_init__(self) -> None:
        if self.MAX_WORKERS is not None and self.MAX_WORKERS <= 0:
            raise ValueError(f"MAX_WORKERS must be positive, got {self.MAX_WORKERS}")

    @property
    def worker_count(self) -> int:
        return self.MAX_WORKERS or get_optimal_worker_count("jobs")

