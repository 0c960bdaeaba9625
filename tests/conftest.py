"""Shared synthetic-frame fixtures for the SpriteFix test-suite."""

import io
from collections.abc import Sequence
from pathlib import Path

import numpy as np
import pytest
from PIL import Image

Box = tuple[int, int, int, int]
RGBA = tuple[int, int, int, int]

LIGHT = (240, 240, 240, 255)
GREEN = (40, 150, 40, 255)


def make_pixels(
    width: int,
    height: int,
    boxes: Sequence[tuple[Box, RGBA]] = (),
    background: RGBA = (0, 0, 0, 0),
) -> np.ndarray:
    """RGBA array with each (x, y, w, h) box filled with its color."""
    pixels = np.zeros((height, width, 4), dtype=np.uint8)
    pixels[:, :] = background
    for (x, y, w, h), color in boxes:
        pixels[y : y + h, x : x + w] = color
    return pixels


def encode_png(pixels: np.ndarray) -> bytes:
    out = io.BytesIO()
    Image.fromarray(pixels, "RGBA").save(out, format="PNG")
    return out.getvalue()


def make_frame(
    width: int,
    height: int,
    boxes: Sequence[tuple[Box, RGBA]] = (),
    background: RGBA = (0, 0, 0, 0),
) -> bytes:
    """PNG-encoded RGBA frame built from filled boxes."""
    return encode_png(make_pixels(width, height, boxes, background))


def decode(frame: bytes) -> np.ndarray:
    return np.array(Image.open(io.BytesIO(frame)).convert("RGBA"))


@pytest.fixture
def frame_factory():
    """Factory fixture producing PNG frames from boxes."""
    return make_frame


@pytest.fixture
def transparency_hole_frames() -> list[bytes]:
    """Eight 40x40 frames; frame 4 has lost half its opaque pixels.

    Every other frame is 20% opaque light-gray content, frame 4 is 10%
    opaque. Transparent pixels share the content color so only the alpha
    channel differs between frames.
    """
    clear = (240, 240, 240, 0)
    good = make_frame(40, 40, [((10, 10, 16, 20), LIGHT)], background=clear)
    holed = make_frame(40, 40, [((10, 10, 16, 10), LIGHT)], background=clear)
    return [good, good, good, good, holed, good, good, good]


@pytest.fixture
def frame_dir(tmp_path: Path, transparency_hole_frames) -> Path:
    """Directory holding the transparency-hole sequence as numbered PNGs."""
    directory = tmp_path / "frames"
    directory.mkdir()
    for i, frame in enumerate(transparency_hole_frames):
        (directory / f"walk_{i:02d}.png").write_bytes(frame)
    return directory
