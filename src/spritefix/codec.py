"""Image codec collaborator used by the detection and stabilization engine.

The engine never touches file formats directly. Everything it needs from an
image library goes through the small :class:`FrameCodec` contract below;
:class:`PillowCodec` implements it with Pillow and numpy, exchanging frames as
encoded PNG bytes.
"""

import io
from dataclasses import dataclass
from typing import Protocol, Union

import numpy as np
from PIL import Image, ImageOps

Frame = Union[bytes, Image.Image]

TRANSPARENT = (0, 0, 0, 0)

# pixelmatch's maximum YIQ delta between two colors
_MAX_YIQ_DELTA = 35215.0


@dataclass
class RawPixelBuffer:
    """Decoded RGBA pixels of one frame."""

    width: int
    height: int
    channels: int
    pixels: np.ndarray  # (height, width, channels) uint8

    @property
    def flat(self) -> np.ndarray:
        """Flat per-pixel sample array (r, g, b, a, r, g, b, a, ...)."""
        return self.pixels.reshape(-1)

    @property
    def alpha(self) -> np.ndarray:
        return self.pixels[:, :, 3]


@dataclass(frozen=True)
class Rect:
    """Axis-aligned pixel rectangle."""

    x: int
    y: int
    width: int
    height: int

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0


@dataclass(frozen=True)
class CanvasSpec:
    """Blank canvas to composite layers onto."""

    width: int
    height: int
    channels: int = 4
    background: tuple[int, int, int, int] = TRANSPARENT


@dataclass(frozen=True)
class Layer:
    """A frame placed on a canvas at (left, top)."""

    input: Frame
    left: int
    top: int


class FrameCodec(Protocol):
    """Image operations consumed by the engine."""

    def decode(self, image: Frame) -> RawPixelBuffer:
        ...

    def encode(self, buffer: RawPixelBuffer) -> bytes:
        ...

    def crop(self, image: Frame, rect: Rect) -> bytes:
        ...

    def resize(
        self,
        image: Frame,
        width: int,
        height: int,
        fit: str = "contain",
        background: tuple[int, int, int, int] = TRANSPARENT,
    ) -> bytes:
        ...

    def composite(self, canvas: CanvasSpec, layers: list[Layer]) -> bytes:
        ...

    def pixel_diff(
        self,
        buffer_a: np.ndarray,
        buffer_b: np.ndarray,
        width: int,
        height: int,
        tolerance: float = 0.1,
    ) -> int:
        ...


def _blend_over_white(pixels: np.ndarray) -> np.ndarray:
    rgb = pixels[..., :3].astype(np.float64)
    alpha = pixels[..., 3:4].astype(np.float64) / 255.0
    return 255.0 + (rgb - 255.0) * alpha


def _to_yiq(rgb: np.ndarray) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    r, g, b = rgb[..., 0], rgb[..., 1], rgb[..., 2]
    y = r * 0.29889531 + g * 0.58662247 + b * 0.11448223
    i = r * 0.59597799 - g * 0.27417610 - b * 0.32180189
    q = r * 0.21147017 - g * 0.52261711 + b * 0.31114694
    return y, i, q


def count_different_pixels(
    pixels_a: np.ndarray, pixels_b: np.ndarray, tolerance: float = 0.1
) -> int:
    """Count perceptually different pixels between two RGBA arrays.

    Colors are blended over white and compared in YIQ space, the same
    perceptual delta pixelmatch uses. ``tolerance`` (0-1) scales the maximum
    accepted delta; smaller is stricter. Anti-aliasing detection is not
    performed.
    """
    if pixels_a.shape != pixels_b.shape:
        raise ValueError(
            f"Pixel arrays must share a shape, got {pixels_a.shape} and {pixels_b.shape}"
        )

    max_delta = _MAX_YIQ_DELTA * tolerance * tolerance
    identical = np.all(pixels_a == pixels_b, axis=-1)

    y1, i1, q1 = _to_yiq(_blend_over_white(pixels_a))
    y2, i2, q2 = _to_yiq(_blend_over_white(pixels_b))
    delta = 0.5053 * (y1 - y2) ** 2 + 0.299 * (i1 - i2) ** 2 + 0.1957 * (q1 - q2) ** 2

    return int(np.count_nonzero((delta > max_delta) & ~identical))


class PillowCodec:
    """:class:`FrameCodec` backed by Pillow; frames are encoded PNG bytes."""

    def __init__(self, compress_level: int = 6):
        self.compress_level = compress_level

    def _open(self, image: Frame) -> Image.Image:
        if isinstance(image, Image.Image):
            img = image
        else:
            img = Image.open(io.BytesIO(image))
            img.load()
        if img.mode != "RGBA":
            img = img.convert("RGBA")
        return img

    def _to_png(self, img: Image.Image) -> bytes:
        out = io.BytesIO()
        img.save(out, format="PNG", compress_level=self.compress_level)
        return out.getvalue()

    def decode(self, image: Frame) -> RawPixelBuffer:
        img = self._open(image)
        pixels = np.array(img, dtype=np.uint8)
        return RawPixelBuffer(
            width=img.width, height=img.height, channels=4, pixels=pixels
        )

    def encode(self, buffer: RawPixelBuffer) -> bytes:
        img = Image.fromarray(np.ascontiguousarray(buffer.pixels, dtype=np.uint8), "RGBA")
        return self._to_png(img)

    def crop(self, image: Frame, rect: Rect) -> bytes:
        img = self._open(image)
        if rect.is_empty:
            raise ValueError(f"Cannot crop to an empty rectangle: {rect}")
        if rect.x < 0 or rect.y < 0 or rect.x + rect.width > img.width or rect.y + rect.height > img.height:
            raise ValueError(
                f"Crop rectangle {rect} exceeds image bounds {img.width}x{img.height}"
            )
        box = (rect.x, rect.y, rect.x + rect.width, rect.y + rect.height)
        return self._to_png(img.crop(box))

    def resize(
        self,
        image: Frame,
        width: int,
        height: int,
        fit: str = "contain",
        background: tuple[int, int, int, int] = TRANSPARENT,
    ) -> bytes:
        img = self._open(image)
        if img.size == (width, height):
            return self._to_png(img)

        if fit == "fill":
            return self._to_png(img.resize((width, height), Image.Resampling.LANCZOS))
        if fit != "contain":
            raise ValueError(f"Unsupported fit mode: {fit}")

        # Scale to fit, then pad to the requested size, centered
        scaled = ImageOps.contain(img, (width, height), Image.Resampling.LANCZOS)
        canvas = Image.new("RGBA", (width, height), background)
        left = (width - scaled.width) // 2
        top = (height - scaled.height) // 2
        canvas.paste(scaled, (left, top))
        return self._to_png(canvas)

    def composite(self, canvas: CanvasSpec, layers: list[Layer]) -> bytes:
        base = Image.new("RGBA", (canvas.width, canvas.height), canvas.background)
        for layer in layers:
            img = self._open(layer.input)
            box = (layer.left, layer.top, layer.left + img.width, layer.top + img.height)
            region = np.array(base.crop(box))
            if not region[:, :, 3].any():
                # Over a fully transparent region "over" reduces to a copy
                base.paste(img, (layer.left, layer.top))
            else:
                base.alpha_composite(img, dest=(layer.left, layer.top))
        return self._to_png(base)

    def pixel_diff(
        self,
        buffer_a: np.ndarray,
        buffer_b: np.ndarray,
        width: int,
        height: int,
        tolerance: float = 0.1,
    ) -> int:
        a = np.asarray(buffer_a, dtype=np.uint8).reshape(height, width, 4)
        b = np.asarray(buffer_b, dtype=np.uint8).reshape(height, width, 4)
        return count_different_pixels(a, b, tolerance)

