"""Bottom-center anchored stabilization of sprite frames.

Every frame is cropped to its visible content and placed on one shared
transparent canvas, centered horizontally with the content's bottom edge on
the canvas bottom. Sprites are assumed to stand on a floor, so the anchor is
fixed rather than configurable.
"""

import logging
from collections.abc import Sequence

import cv2
import numpy as np

from .codec import CanvasSpec, Frame, FrameCodec, Layer, PillowCodec, Rect
from .config import DEFAULT_STABILIZATION_CONFIG, StabilizationConfig
from .error_handling import CodecError, error_context
from .parallel import ParallelFrameProcessor

logger = logging.getLogger(__name__)

EMPTY_RECT = Rect(0, 0, 0, 0)


def find_content_bounds(alpha: np.ndarray, alpha_threshold: int = 20) -> Rect:
    """Tight bounding box of pixels with alpha above the threshold.

    Returns an empty Rect when no pixel qualifies.
    """
    mask = (alpha > alpha_threshold).astype(np.uint8)
    if not mask.any():
        return EMPTY_RECT
    x, y, w, h = cv2.boundingRect(mask)
    return Rect(int(x), int(y), int(w), int(h))


def anchor_position(canvas_width: int, canvas_height: int, content: Rect) -> tuple[int, int]:
    """(left, top) placing content bottom-center on the canvas."""
    left = (canvas_width - content.width) // 2
    top = canvas_height - content.height
    return left, top


def stabilize_frames(
    frames: Sequence[Frame],
    config: StabilizationConfig = DEFAULT_STABILIZATION_CONFIG,
    codec: FrameCodec | None = None,
    processor: ParallelFrameProcessor | None = None,
) -> list[bytes]:
    """Recenter every frame on a uniform, bottom-anchored canvas.

    The canvas is the largest content box plus MARGIN on each axis. Frames
    without content become blank canvases; if no frame has content the
    canvas is the largest frame size.

    Args:
        frames: Encoded frames
        config: Stabilization configuration
        codec: Image codec (defaults to PillowCodec)
        processor: Worker pool (defaults to a fresh ParallelFrameProcessor)

    Returns:
        New list of encoded frames, all the same size

    Raises:
        CodecError: If a frame cannot be decoded, cropped or composited
    """
    if not frames:
        return []

    codec = codec or PillowCodec()
    processor = processor or ParallelFrameProcessor()

    def measure(item: tuple[int, Frame]) -> tuple[Rect, int, int]:
        index, frame = item
        with error_context("decode frame", CodecError, context={"index": index}, logger=logger):
            buffer = codec.decode(frame)
        return (
            find_content_bounds(buffer.alpha, config.CONTENT_ALPHA_THRESHOLD),
            buffer.width,
            buffer.height,
        )

    measurements = processor.map(measure, list(enumerate(frames)), stage="measure")
    bounds = [m[0] for m in measurements]
    with_content = [b for b in bounds if not b.is_empty]

    if with_content:
        canvas_width = max(b.width for b in with_content) + config.MARGIN
        canvas_height = max(b.height for b in with_content) + config.MARGIN
    else:
        logger.warning("No frame has visible content; keeping frame size for the canvas")
        canvas_width = max(m[1] for m in measurements)
        canvas_height = max(m[2] for m in measurements)

    canvas = CanvasSpec(width=canvas_width, height=canvas_height)
    logger.info(
        f"Stabilizing {len(frames)} frames on a {canvas_width}x{canvas_height} canvas"
    )

    def place(item: tuple[int, Frame]) -> bytes:
        index, frame = item
        content = bounds[index]
        with error_context("stabilize frame", CodecError, context={"index": index}, logger=logger):
            if content.is_empty:
                return codec.composite(canvas, [])
            cropped = codec.crop(frame, content)
            left, top = anchor_position(canvas_width, canvas_height, content)
            return codec.composite(canvas, [Layer(input=cropped, left=left, top=top)])

    return processor.map(place, list(enumerate(frames)), stage="stabilize")
