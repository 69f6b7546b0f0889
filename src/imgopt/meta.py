"""Format detection, animation detection and transparency analysis."""

import hashlib
import logging
from pathlib import Path

import numpy as np
from PIL import Image

from .error_handling import UnsupportedImageError
from .models import ImageFormat, TransparencyClass

logger = logging.getLogger(__name__)

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
JPEG_SIGNATURE = b"\xff\xd8\xff"
GIF_SIGNATURES = (b"GIF87a", b"GIF89a")


def compute_file_sha256(file_path: Path) -> str:
    """Compute SHA256 hash of a file.

    Args:
        file_path: Path to the file to hash

    Returns:
        Hexadecimal SHA256 hash string
    """
    sha256_hash = hashlib.sha256()
    with open(file_path, "rb") as f:
        for chunk in iter(lambda: f.read(4096), b""):
            sha256_hash.update(chunk)
    return sha256_hash.hexdigest()


def classify(file_path: Path) -> ImageFormat:
    """Detect the format of *file_path* from its leading bytes.

    The file extension is ignored.

    Raises:
        UnsupportedImageError: If the content is not PNG, JPEG or GIF
        OSError: If the file cannot be read
    """
    with open(file_path, "rb") as f:
        header = f.read(8)

    if header.startswith(PNG_SIGNATURE):
        return ImageFormat.PNG
    if header.startswith(JPEG_SIGNATURE):
        return ImageFormat.JPEG
    if header[:6] in GIF_SIGNATURES:
        return ImageFormat.GIF

    raise UnsupportedImageError(
        f"Unsupported image content: {file_path}", context={"header": header.hex()}
    )


def is_animated(file_path: Path) -> bool:
    """Return True if *file_path* is a GIF with more than one frame.

    Malformed or unreadable files are reported as not animated.
    """
    try:
        with Image.open(file_path) as img:
            if img.format != "GIF":
                return False
            return getattr(img, "n_frames", 1) > 1
    except (OSError, EOFError, IndexError, SyntaxError, ValueError) as e:
        logger.debug(f"Treating {file_path} as non-animated: {e}")
        return False


def classify_alpha(alpha: np.ndarray) -> TransparencyClass:
    """Classify an alpha channel array (0-255)."""
    if alpha.size == 0 or alpha.min() == 255:
        return TransparencyClass.OPAQUE
    partial = (alpha > 0) & (alpha < 255)
    if partial.any():
        return TransparencyClass.ALPHA
    return TransparencyClass.BINARY


def transparency_class(file_path: Path) -> TransparencyClass:
    """Classify how the first frame of a GIF uses transparency.

    A declared transparent index that no pixel references counts as
    opaque.

    Raises:
        UnsupportedImageError: If the file cannot be decoded
    """
    try:
        with Image.open(file_path) as img:
            img.seek(0)
            if "transparency" not in img.info and img.mode not in ("RGBA", "LA", "PA"):
                return TransparencyClass.OPAQUE
            alpha = np.array(img.convert("RGBA"))[:, :, 3]
    except (OSError, ValueError) as e:
        raise UnsupportedImageError(
            f"Cannot analyse transparency of {file_path}", cause=e
        ) from e

    return classify_alpha(alpha)
