"""Tests for imgopt.policy (conversion decisions)."""

import pytest

from imgopt.models import ConversionMode, ImageFormat, TransparencyClass
from imgopt.policy import ConversionDecision, decide, should_retarget

OPAQUE = TransparencyClass.OPAQUE
BINARY = TransparencyClass.BINARY
ALPHA = TransparencyClass.ALPHA


@pytest.mark.fast
@pytest.mark.parametrize(
    "animated, transparency, mode, expected",
    [
        (False, OPAQUE, ConversionMode.ALL, True),
        (False, BINARY, ConversionMode.ALL, True),
        (False, ALPHA, ConversionMode.ALL, True),
        (False, OPAQUE, ConversionMode.IE6SAFE, True),
        (False, BINARY, ConversionMode.IE6SAFE, False),
        (False, ALPHA, ConversionMode.IE6SAFE, False),
        (False, OPAQUE, ConversionMode.NONE, False),
        (True, OPAQUE, ConversionMode.ALL, False),
        (True, OPAQUE, ConversionMode.IE6SAFE, False),
    ],
)
def test_gif_retarget_eligibility(animated, transparency, mode, expected):
    decision = decide(ImageFormat.GIF, animated, transparency, mode, webp_requested=False)
    assert decision.retarget_to_png is expected
    assert decision.produce_webp is False


@pytest.mark.fast
@pytest.mark.parametrize("mode", list(ConversionMode))
def test_jpeg_is_never_converted(mode):
    decision = decide(ImageFormat.JPEG, False, None, mode, webp_requested=True)
    assert decision == ConversionDecision(retarget_to_png=False, produce_webp=False)


@pytest.mark.fast
@pytest.mark.parametrize("mode", list(ConversionMode))
def test_png_gets_webp_only_when_requested(mode):
    assert decide(ImageFormat.PNG, False, None, mode, True).webp_tool == "cwebp"
    assert decide(ImageFormat.PNG, False, None, mode, False).produce_webp is False
    assert decide(ImageFormat.PNG, False, None, mode, True).retarget_to_png is False


@pytest.mark.fast
def test_still_gif_webp_uses_gif_encoder_even_when_converted():
    decision = decide(ImageFormat.GIF, False, OPAQUE, ConversionMode.ALL, True)
    assert decision.retarget_to_png
    assert decision.produce_webp
    assert decision.webp_tool == "gif2webp"


@pytest.mark.fast
def test_animated_gif_gets_no_webp():
    decision = decide(ImageFormat.GIF, True, OPAQUE, ConversionMode.NONE, True)
    assert decision.produce_webp is False


class TestShouldRetarget:
    """Tests for should_retarget."""

    allowed = ConversionDecision(retarget_to_png=True, produce_webp=False)

    @pytest.mark.fast
    def test_smaller_png_wins(self):
        assert should_retarget(self.allowed, 100, 200)

    @pytest.mark.fast
    def test_equal_size_keeps_gif(self):
        assert not should_retarget(self.allowed, 200, 200)

    @pytest.mark.fast
    def test_no_png_candidate(self):
        assert not should_retarget(self.allowed, None, 200)

    @pytest.mark.fast
    def test_not_allowed(self):
        denied = ConversionDecision(retarget_to_png=False, produce_webp=False)
        assert not should_retarget(denied, 1, 200)
