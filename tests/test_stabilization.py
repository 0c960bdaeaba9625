"""Tests for bottom-center anchored stabilization."""

import numpy as np
import pytest
from conftest import GREEN, decode, make_frame

from spritefix.codec import Rect
from spritefix.config import StabilizationConfig
from spritefix.error_handling import CodecError
from spritefix.parallel import ParallelConfig, ParallelFrameProcessor
from spritefix.stabilization import EMPTY_RECT, anchor_position, find_content_bounds, stabilize_frames


@pytest.fixture
def uneven_frames():
    """Two frames of different sizes with content at different positions."""
    return [
        make_frame(30, 30, [((5, 5, 10, 10), GREEN)]),
        make_frame(50, 40, [((20, 10, 20, 16), (200, 120, 80, 255))]),
    ]


@pytest.mark.fast
class TestContentBounds:
    """Tests for alpha-thresholded bounding boxes."""

    def test_tight_bounds(self):
        alpha = np.zeros((20, 30), dtype=np.uint8)
        alpha[4:9, 7:19] = 255

        assert find_content_bounds(alpha) == Rect(7, 4, 12, 5)

    def test_threshold_is_exclusive(self):
        alpha = np.zeros((10, 10), dtype=np.uint8)
        alpha[2, 2] = 20
        alpha[5, 5] = 21

        assert find_content_bounds(alpha, alpha_threshold=20) == Rect(5, 5, 1, 1)

    def test_empty_alpha(self):
        bounds = find_content_bounds(np.zeros((8, 8), dtype=np.uint8))

        assert bounds == EMPTY_RECT
        assert bounds.is_empty


@pytest.mark.fast
class TestAnchorPosition:
    """Tests for bottom-center placement."""

    def test_bottom_center(self):
        assert anchor_position(40, 36, Rect(0, 0, 10, 10)) == (15, 26)

    def test_odd_remainder_floors(self):
        assert anchor_position(41, 30, Rect(0, 0, 10, 30)) == (15, 0)


class TestStabilizeFrames:
    """Tests for the stabilization pass."""

    def test_uniform_canvas_size(self, uneven_frames):
        stabilized = stabilize_frames(uneven_frames)

        shapes = {decode(frame).shape for frame in stabilized}
        # largest content 20x16 plus a 20px margin per axis
        assert shapes == {(36, 40, 4)}

    def test_content_bottom_anchored_and_centered(self, uneven_frames):
        stabilized = stabilize_frames(uneven_frames)

        small = find_content_bounds(decode(stabilized[0])[:, :, 3])
        large = find_content_bounds(decode(stabilized[1])[:, :, 3])
        assert small == Rect(15, 26, 10, 10)
        assert large == Rect(10, 20, 20, 16)
        assert small.y + small.height == 36
        assert large.y + large.height == 36

    def test_pixels_copied_exactly(self):
        semi = (10, 20, 30, 128)
        frames = [make_frame(12, 12, [((2, 2, 4, 4), semi)]) for _ in range(3)]

        stabilized = stabilize_frames(frames)

        pixels = decode(stabilized[0])
        bounds = find_content_bounds(pixels[:, :, 3])
        block = pixels[bounds.y : bounds.y + bounds.height, bounds.x : bounds.x + bounds.width]
        assert (block == semi).all()

    def test_idempotent(self, uneven_frames):
        once = stabilize_frames(uneven_frames)
        twice = stabilize_frames(once)

        for a, b in zip(once, twice):
            assert np.array_equal(decode(a), decode(b))

    def test_margin_configurable(self, uneven_frames):
        stabilized = stabilize_frames(uneven_frames, StabilizationConfig(MARGIN=0))

        assert decode(stabilized[0]).shape == (16, 20, 4)

    def test_empty_frame_becomes_blank_canvas(self, uneven_frames):
        frames = [*uneven_frames, make_frame(25, 25)]

        stabilized = stabilize_frames(frames)

        blank = decode(stabilized[2])
        assert blank.shape == (36, 40, 4)
        assert not blank[:, :, 3].any()

    def test_all_frames_empty(self):
        frames = [make_frame(10, 12), make_frame(16, 8)]

        stabilized = stabilize_frames(frames)

        assert all(decode(frame).shape == (12, 16, 4) for frame in stabilized)

    def test_empty_sequence(self):
        assert stabilize_frames([]) == []

    def test_serial_and_threaded_agree(self, uneven_frames):
        serial = stabilize_frames(
            uneven_frames, processor=ParallelFrameProcessor(ParallelConfig(max_workers=1))
        )
        threaded = stabilize_frames(
            uneven_frames, processor=ParallelFrameProcessor(ParallelConfig(max_workers=4))
        )

        assert serial == threaded

    def test_undecodable_frame(self):
        with pytest.raises(CodecError):
            stabilize_frames([b"\x89PNG broken"])
