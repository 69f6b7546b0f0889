"""Conversion policy: GIF to PNG retargeting and WebP eligibility.

Rules, in order:

1. JPEG is never converted and never gets a WebP sibling.
2. An animated GIF is never converted and never gets a WebP sibling.
3. A still GIF under ``NONE`` is never converted.
4. A still GIF under ``ALL`` is converted whenever the PNG candidate is
   smaller than the best GIF encoding.
5. A still GIF under ``IE6SAFE`` is converted only when it is fully opaque
   and the PNG candidate is smaller.
6. Everything else gets a WebP sibling when one was requested, encoded with
   ``gif2webp`` for GIF sources (even when converted) and ``cwebp`` otherwise.
"""

from __future__ import annotations

from dataclasses import dataclass

from .models import ConversionMode, ImageFormat, TransparencyClass
from .selector import WEBP_TOOL_BY_FORMAT


@dataclass(frozen=True)
class ConversionDecision:
    """What a job may do besides recompressing in its own format."""

    retarget_to_png: bool
    produce_webp: bool
    webp_tool: str | None = None


def decide(
    image_format: ImageFormat,
    animated: bool,
    transparency: TransparencyClass | None,
    mode: ConversionMode,
    webp_requested: bool,
) -> ConversionDecision:
    """Decide whether a PNG candidate should be tried and a WebP sibling produced.

    ``retarget_to_png`` only allows the conversion; ``should_retarget`` makes
    the final call once candidate sizes are known.
    """
    if image_format is ImageFormat.JPEG:
        return ConversionDecision(retarget_to_png=False, produce_webp=False)

    if image_format is ImageFormat.GIF and animated:
        return ConversionDecision(retarget_to_png=False, produce_webp=False)

    retarget = False
    if image_format is ImageFormat.GIF:
        if mode is ConversionMode.ALL:
            retarget = True
        elif mode is ConversionMode.IE6SAFE:
            retarget = transparency is TransparencyClass.OPAQUE

    if webp_requested:
        return ConversionDecision(
            retarget_to_png=retarget,
            produce_webp=True,
            webp_tool=WEBP_TOOL_BY_FORMAT[image_format],
        )
    return ConversionDecision(retarget_to_png=retarget, produce_webp=False)


def should_retarget(
    decision: ConversionDecision, png_size: int | None, gif_size: int
) -> bool:
    """Return True if the PNG candidate replaces the best GIF encoding.

    Args:
        decision: Result of :func:`decide` for the job
        png_size: Size of the best PNG candidate, None if none succeeded
        gif_size: Size of the best GIF encoding (the source when no GIF tool
            improved on it)
    """
    if not decision.retarget_to_png or png_size is None:
        return False
    return png_size < gif_size
