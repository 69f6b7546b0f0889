"""Data model shared by the optimizer components."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Generic, TypeVar

T = TypeVar("T")

PNG_EXTENSION = "png"
WEBP_EXTENSION = "webp"


class ImageFormat(Enum):
    """Raster formats the optimizer accepts, detected from file content."""

    PNG = "png"
    JPEG = "jpeg"
    GIF = "gif"


class TransparencyClass(Enum):
    """How a GIF uses transparency."""

    OPAQUE = "opaque"  # no transparent pixels
    BINARY = "binary"  # one fully transparent palette index, no blending
    ALPHA = "alpha"  # any partially transparent pixel


class ConversionMode(Enum):
    """Whether a GIF may be retargeted to PNG."""

    ALL = "all"  # whenever it shrinks, ignoring legacy renderers
    NONE = "none"  # never change file type
    IE6SAFE = "ie6safe"  # only when the GIF has no transparency at all

    @classmethod
    def from_string(cls, value: str | ConversionMode) -> ConversionMode:
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            valid = ", ".join(m.value for m in cls)
            raise ValueError(f"Unknown conversion mode: {value} (expected one of {valid})") from None


@dataclass(frozen=True)
class OptimizationJob:
    """One input file's immutable description for the duration of a batch."""

    source: Path
    canonical_path: Path
    image_format: ImageFormat
    animated: bool
    transparency: TransparencyClass | None
    mode: ConversionMode
    webp_requested: bool

    @property
    def original_size(self) -> int:
        return self.canonical_path.stat().st_size


@dataclass
class ToolCandidate:
    """One external tool's attempted output for a job.

    Exactly one of ``output_path`` and ``error`` is set.
    """

    tool: str
    output_path: Path | None = None
    size: int | None = None
    error: Exception | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None and self.output_path is not None

    @classmethod
    def success(cls, tool: str, output_path: Path) -> ToolCandidate:
        return cls(tool=tool, output_path=output_path, size=output_path.stat().st_size)

    @classmethod
    def failure(cls, tool: str, error: Exception) -> ToolCandidate:
        return cls(tool=tool, error=error)


@dataclass
class OptimizationResult(Generic[T]):
    """An optimized (or browser-specific) rendition of one master file.

    ``metadata`` is an opaque slot owned by the caller (a defect id, a
    change-list number, ...). The optimizer stores and returns it untouched.
    """

    original_file: Path
    optimized_file: Path
    original_file_size: int
    optimized: bool = True
    file_type_changed: bool = False
    browser_specific: bool = False
    failed_automated_test: bool = False
    metadata: T | None = field(default=None, compare=False)

    @property
    def optimized_file_size(self) -> int:
        """Size read from disk on every access."""
        return self.optimized_file.stat().st_size

    @property
    def bytes_saved(self) -> int:
        return self.original_file_size - self.optimized_file_size

    @property
    def is_webp(self) -> bool:
        return self.optimized_file.suffix.lower() == f".{WEBP_EXTENSION}"
