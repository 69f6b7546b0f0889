"""Shared fixtures: synthetic images and a directory of fake optimizer tools.

The fake tools are small Python scripts that mimic the command lines of the
real executables. Their behaviour is chosen so that sizes are predictable:

* PNG tools re-save the image with maximum compression; a file whose name
  starts with ``broken`` makes them exit with status 2, one starting with
  ``optimal`` is copied unchanged.
* ``gifsicle`` and ``jpegtran`` drop any bytes after the format's end marker.
* ``jfifremove`` copies stdin to stdout.
* ``cwebp`` and ``gif2webp`` write a lossless WebP of the first frame.
"""

import os
import stat
import sys
from pathlib import Path

import pytest
from PIL import Image

from imgopt.service import ImageOptimizationService
from imgopt.system_tools import TOOL_KEYS

# Trailing bytes appended to GIF and JPEG fixtures; ignored by decoders
JUNK = b"\x00" * 2048

FAKE_TOOL_TEMPLATE = '''#!@PYTHON@
import sys
from pathlib import Path

from PIL import Image

TOOL = "@TOOL@"
args = sys.argv[1:]

if args and args[0] in ("--version", "-version"):
    print(f"{TOOL} 1.2.3")
    sys.exit(0)


def fail_if_broken(path):
    if Path(path).name.startswith("broken"):
        sys.stderr.write(f"{TOOL}: cannot process {path}\\n")
        sys.exit(2)


def repack_png(src, out):
    if Path(src).name.startswith("optimal"):
        Path(out).write_bytes(Path(src).read_bytes())
        return
    with Image.open(src) as img:
        img.load()
        frame = img.copy()
    frame.save(out, format="PNG", optimize=True)


def strip_after(src, out, marker):
    data = Path(src).read_bytes()
    end = data.rfind(marker)
    Path(out).write_bytes(data[: end + len(marker)] if end >= 0 else data)


def to_webp(src, out):
    with Image.open(src) as img:
        img.seek(0)
        frame = img.convert("RGBA")
    frame.save(out, format="WEBP", lossless=True)


if TOOL == "advpng":
    target = args[-1]
    fail_if_broken(target)
    repack_png(target, target)
elif TOOL == "pngout":
    fail_if_broken(args[-2])
    repack_png(args[-2], args[-1])
elif TOOL == "optipng":
    fail_if_broken(args[-1])
    repack_png(args[-1], args[args.index("-out") + 1])
elif TOOL == "gifsicle":
    strip_after(args[1], args[args.index("--output") + 1], b";")
elif TOOL == "jpegtran":
    strip_after(args[-1], args[args.index("-outfile") + 1], b"\\xff\\xd9")
elif TOOL == "jfifremove":
    sys.stdout.buffer.write(sys.stdin.buffer.read())
elif TOOL in ("cwebp", "gif2webp"):
    to_webp(args[-3], args[-1])
elif TOOL == "sleepy":
    import time

    time.sleep(30)
else:
    sys.exit(f"unknown fake tool {TOOL}")
'''


def write_fake_tool(directory: Path, tool: str, name: str | None = None) -> Path:
    """Write an executable fake for *tool* into *directory*."""
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / (name or tool)
    script = FAKE_TOOL_TEMPLATE.replace("@PYTHON@", sys.executable).replace("@TOOL@", tool)
    path.write_text(script)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


# ---------------------------------------------------------------------------
# Image builders
# ---------------------------------------------------------------------------


def gradient_palette_image(size: int = 256) -> Image.Image:
    """Palette image whose rows all run through indices 0..size-1."""
    img = Image.new("P", (size, size))
    img.putpalette([v for i in range(256) for v in (i, 255 - i, (i * 7) % 256)])
    img.putdata([x for _ in range(size) for x in range(size)])
    return img


def make_png(path: Path, size: int = 64) -> Path:
    """Uncompressed RGB PNG, so any re-save shrinks it."""
    img = Image.new("RGB", (size, size))
    img.putdata([(x * 4 % 256, y * 4 % 256, 128) for y in range(size) for x in range(size)])
    img.save(path, format="PNG", compress_level=0)
    return path


def make_jpeg(path: Path, size: int = 64) -> Path:
    img = Image.new("RGB", (size, size))
    img.putdata([(x * 4 % 256, y * 4 % 256, 90) for y in range(size) for x in range(size)])
    img.save(path, format="JPEG", quality=90)
    with open(path, "ab") as f:
        f.write(JUNK)
    return path


def make_gif(path: Path, transparent: bool = False) -> Path:
    """Still gradient GIF; PNG encodes it far smaller than GIF does."""
    img = gradient_palette_image()
    if transparent:
        img.save(path, format="GIF", transparency=0)
    else:
        img.save(path, format="GIF")
    return path


def make_animated_gif(path: Path, frames: int = 3) -> Path:
    images = [
        Image.new("RGB", (32, 32), ((i * 80) % 256, 0, 255 - (i * 80) % 256))
        for i in range(frames)
    ]
    images[0].save(path, format="GIF", save_all=True, append_images=images[1:], duration=100, loop=0)
    with open(path, "ab") as f:
        f.write(JUNK)
    return path


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def tools_dir(tmp_path):
    """Directory holding a fake for every supported tool."""
    directory = tmp_path / "tools"
    for tool in TOOL_KEYS:
        write_fake_tool(directory, tool)
    return directory


@pytest.fixture
def sleepy_tool(tmp_path):
    """A tool that never finishes within a short timeout."""
    return write_fake_tool(tmp_path / "slow_tools", "sleepy")


@pytest.fixture
def root_dir(tmp_path):
    directory = tmp_path / "work"
    directory.mkdir()
    return directory


@pytest.fixture
def images_dir(tmp_path):
    directory = tmp_path / "images"
    directory.mkdir()
    return directory


@pytest.fixture
def png_file(images_dir):
    return make_png(images_dir / "photo.png")


@pytest.fixture
def broken_png(images_dir):
    return make_png(images_dir / "broken_logo.png")


@pytest.fixture
def optimal_png(images_dir):
    return make_png(images_dir / "optimal_icon.png")


@pytest.fixture
def jpeg_file(images_dir):
    return make_jpeg(images_dir / "picture.jpg")


@pytest.fixture
def opaque_gif(images_dir):
    return make_gif(images_dir / "opaque.gif")


@pytest.fixture
def transparent_gif(images_dir):
    return make_gif(images_dir / "transparent.gif", transparent=True)


@pytest.fixture
def animated_gif(images_dir):
    return make_animated_gif(images_dir / "spinner.gif")


@pytest.fixture
def service(root_dir, tools_dir):
    return ImageOptimizationService(root_dir, tools_dir, max_workers=2)


def real_tools_dir() -> Path | None:
    """Directory of real binaries from IMGOPT_REAL_TOOLS_DIR, if configured."""
    value = os.getenv("IMGOPT_REAL_TOOLS_DIR")
    if value and Path(value).is_dir():
        return Path(value)
    return None


def without_trailer(path: Path) -> Path:
    """Drop the GIF trailer byte and anything appended after it."""
    data = path.read_bytes()
    path.write_bytes(data[: data.rfind(b";")])
    return path
