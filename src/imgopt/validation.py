"""Visual-parity check between a master image and its optimized rendition.

The check is advisory: it only sets ``failed_automated_test`` on a result.
Only the first frame is compared, so animated GIFs are not reliably judged.
"""

from __future__ import annotations

import logging
from pathlib import Path

import numpy as np
from PIL import Image
from skimage.metrics import structural_similarity as ssim

from .config import ValidationConfig

logger = logging.getLogger(__name__)

# Smallest side skimage accepts for its default 7x7 window
MIN_SSIM_SIDE = 7


def render_first_frame(
    image_path: Path, background: tuple[int, int, int] = (255, 255, 255)
) -> np.ndarray:
    """Decode the first frame of *image_path* composited onto *background*.

    Returns:
        RGB array of shape (height, width, 3)

    Raises:
        OSError: If the image cannot be decoded
    """
    with Image.open(image_path) as img:
        img.seek(0)
        rgba = img.convert("RGBA")
        canvas = Image.new("RGBA", rgba.size, (*background, 255))
        canvas.alpha_composite(rgba)
        return np.array(canvas.convert("RGB"))


def frame_similarity(frame1: np.ndarray, frame2: np.ndarray) -> float:
    """SSIM between two RGB frames of identical shape (1.0 = identical)."""
    if np.array_equal(frame1, frame2):
        return 1.0
    return float(ssim(frame1, frame2, channel_axis=2, data_range=255))


def mean_abs_difference(frame1: np.ndarray, frame2: np.ndarray) -> float:
    diff = np.abs(frame1.astype(np.int16) - frame2.astype(np.int16))
    return float(diff.mean())


def images_match(original: Path, optimized: Path, config: ValidationConfig) -> bool:
    """Return True if *optimized* renders like *original*.

    Images of different dimensions never match. Images too small for an
    SSIM window are compared by mean absolute difference instead.
    """
    frame1 = render_first_frame(original, config.BACKGROUND_COLOR)
    frame2 = render_first_frame(optimized, config.BACKGROUND_COLOR)

    if frame1.shape != frame2.shape:
        logger.debug(
            f"Dimension mismatch {frame1.shape[:2]} vs {frame2.shape[:2]} "
            f"for {optimized.name}"
        )
        return False

    if min(frame1.shape[:2]) < MIN_SSIM_SIDE:
        return mean_abs_difference(frame1, frame2) <= config.MAX_MEAN_ABS_DIFF

    score = frame_similarity(frame1, frame2)
    logger.debug(f"SSIM {score:.4f} for {optimized.name}")
    return score >= config.SSIM_THRESHOLD


def failed_visual_check(original: Path, optimized: Path, config: ValidationConfig) -> bool:
    """Return the ``failed_automated_test`` flag for a promoted output.

    A rendition that cannot be decoded counts as a failure.
    """
    if not config.ENABLE_VISUAL_CHECK:
        return False

    try:
        return not images_match(original, optimized, config)
    except (OSError, ValueError) as e:
        logger.warning(f"Visual check could not compare {original} and {optimized}: {e}")
        return True
