"""Tests for imgopt.validation (visual-parity check)."""

import pytest
from conftest import make_gif, make_png
from PIL import Image

from imgopt.config import ValidationConfig
from imgopt.validation import (
    failed_visual_check,
    frame_similarity,
    images_match,
    render_first_frame,
)

# Library defaults: SSIM 0.98 on white, mean difference 2.0 for tiny images
CONFIG = ValidationConfig()


class TestRenderFirstFrame:
    """Tests for render_first_frame."""

    @pytest.mark.fast
    def test_transparent_pixels_take_the_background(self, tmp_path):
        path = tmp_path / "t.png"
        Image.new("RGBA", (8, 8), (0, 0, 0, 0)).save(path)

        frame = render_first_frame(path, (10, 20, 30))

        assert frame.shape == (8, 8, 3)
        assert tuple(frame[0, 0]) == (10, 20, 30)


class TestImagesMatch:
    """Tests for images_match and failed_visual_check."""

    @pytest.mark.fast
    def test_same_pixels_different_encoding(self, tmp_path):
        png = make_png(tmp_path / "a.png")
        with Image.open(png) as img:
            img.save(tmp_path / "b.png", optimize=True)
        assert images_match(png, tmp_path / "b.png", CONFIG)
        assert not failed_visual_check(png, tmp_path / "b.png", CONFIG)

    @pytest.mark.fast
    def test_gif_and_its_png_conversion(self, tmp_path):
        gif = make_gif(tmp_path / "a.gif", transparent=True)
        with Image.open(gif) as img:
            img.save(tmp_path / "a.png")
        assert images_match(gif, tmp_path / "a.png", CONFIG)

    @pytest.mark.fast
    def test_different_dimensions_fail(self, tmp_path):
        Image.new("RGB", (16, 16), "red").save(tmp_path / "a.png")
        Image.new("RGB", (16, 17), "red").save(tmp_path / "b.png")
        assert failed_visual_check(tmp_path / "a.png", tmp_path / "b.png", CONFIG)

    @pytest.mark.fast
    def test_different_content_fails(self, tmp_path):
        png = make_png(tmp_path / "a.png")
        with Image.open(png) as img:
            Image.eval(img, lambda v: 255 - v).save(tmp_path / "inverted.png")
        assert failed_visual_check(png, tmp_path / "inverted.png", CONFIG)

    @pytest.mark.fast
    def test_tiny_images_use_mean_difference(self, tmp_path):
        Image.new("RGB", (3, 3), (100, 100, 100)).save(tmp_path / "a.png")
        Image.new("RGB", (3, 3), (101, 100, 100)).save(tmp_path / "b.png")
        Image.new("RGB", (3, 3), (200, 100, 100)).save(tmp_path / "c.png")

        assert images_match(tmp_path / "a.png", tmp_path / "b.png", CONFIG)
        assert not images_match(tmp_path / "a.png", tmp_path / "c.png", CONFIG)

    @pytest.mark.fast
    def test_undecodable_output_fails(self, tmp_path):
        png = make_png(tmp_path / "a.png")
        garbage = tmp_path / "garbage.png"
        garbage.write_bytes(b"not an image")
        assert failed_visual_check(png, garbage, CONFIG)

    @pytest.mark.fast
    def test_disabled_check_always_passes(self, tmp_path):
        png = make_png(tmp_path / "a.png")
        garbage = tmp_path / "garbage.png"
        garbage.write_bytes(b"not an image")
        config = ValidationConfig(ENABLE_VISUAL_CHECK=False)
        assert not failed_visual_check(png, garbage, config)

    @pytest.mark.fast
    def test_threshold_is_configurable(self, tmp_path):
        png = make_png(tmp_path / "a.png")
        with Image.open(png) as img:
            touched = img.copy()
        r, g, b = touched.getpixel((5, 5))
        touched.putpixel((5, 5), (r + 40, g + 40, b + 40))
        touched.save(tmp_path / "touched.png")

        assert images_match(png, tmp_path / "touched.png", CONFIG)
        assert not images_match(png, tmp_path / "touched.png", ValidationConfig(SSIM_THRESHOLD=1.0))


@pytest.mark.fast
def test_config_is_required(tmp_path):
    png = make_png(tmp_path / "a.png")
    with pytest.raises(TypeError):
        failed_visual_check(png, png)


@pytest.mark.fast
def test_frame_similarity_identical(tmp_path):
    frame = render_first_frame(make_png(tmp_path / "a.png"))
    assert frame_similarity(frame, frame.copy()) == 1.0
