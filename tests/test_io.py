"""Tests for spritefix.io helpers."""

import logging

import pytest
from conftest import decode, make_frame
from PIL import Image

from spritefix.error_handling import CodecError, ValidationError
from spritefix.io import (
    atomic_write,
    load_frames,
    load_json,
    save_debug_frames,
    save_json,
    setup_logging,
    write_frames,
)


@pytest.fixture
def animated_gif(tmp_path):
    path = tmp_path / "walk.gif"
    colors = [(255, 0, 0), (0, 255, 0), (0, 0, 255)]
    images = [Image.new("RGB", (8, 8), color) for color in colors]
    images[0].save(path, save_all=True, append_images=images[1:], duration=100, loop=0)
    return path


@pytest.mark.fast
class TestLoadFrames:
    """Tests for loading frame sequences."""

    def test_directory_sorted_by_name(self, tmp_path):
        frames = {name: make_frame(4 + i, 4) for i, name in enumerate(["b.png", "a.png", "c.png"])}
        for name, frame in frames.items():
            (tmp_path / name).write_bytes(frame)
        (tmp_path / "notes.txt").write_text("ignored")

        loaded = load_frames(tmp_path)

        assert loaded == [frames["a.png"], frames["b.png"], frames["c.png"]]

    def test_animated_image(self, animated_gif):
        loaded = load_frames(animated_gif)

        assert len(loaded) == 3
        first = decode(loaded[0])
        assert first.shape == (8, 8, 4)
        assert tuple(first[0, 0]) == (255, 0, 0, 255)

    def test_missing_path(self, tmp_path):
        with pytest.raises(ValidationError, match="does not exist"):
            load_frames(tmp_path / "missing")

    def test_empty_directory(self, tmp_path):
        with pytest.raises(ValidationError, match="No frame images"):
            load_frames(tmp_path)

    def test_unsupported_file(self, tmp_path):
        path = tmp_path / "frames.txt"
        path.write_text("hello")

        with pytest.raises(ValidationError, match="Unsupported"):
            load_frames(path)

    def test_corrupt_animation(self, tmp_path):
        path = tmp_path / "broken.gif"
        path.write_bytes(b"GIF89a broken")

        with pytest.raises(CodecError):
            load_frames(path)


@pytest.mark.fast
class TestWriteFrames:
    """Tests for writing frame sequences."""

    def test_numbered_output(self, tmp_path):
        frames = [make_frame(3, 3), make_frame(4, 4)]

        paths = write_frames(frames, tmp_path / "out")

        assert [p.name for p in paths] == ["frame_0000.png", "frame_0001.png"]
        assert paths[1].read_bytes() == frames[1]

    def test_debug_frames(self, tmp_path):
        frames = [make_frame(3, 3)] * 2

        save_debug_frames(frames, tmp_path, label="input")

        assert sorted(p.name for p in tmp_path.iterdir()) == ["input_frame_0.png", "input_frame_1.png"]


@pytest.mark.fast
class TestJsonHelpers:
    """Tests for atomic JSON persistence."""

    def test_save_and_load(self, tmp_path):
        path = tmp_path / "nested" / "report.json"

        save_json({"verified": True, "bad_frames": []}, path)

        assert load_json(path) == {"verified": True, "bad_frames": []}

    def test_atomic_write_cleans_up_on_error(self, tmp_path):
        target = tmp_path / "report.json"

        with pytest.raises(RuntimeError):
            with atomic_write(target) as f:
                f.write("partial")
                raise RuntimeError("interrupted")

        assert not target.exists()
        assert list(tmp_path.iterdir()) == []


def test_setup_logging_creates_log_file(tmp_path):
    logger = setup_logging(tmp_path / "logs", log_level="DEBUG")

    logger.debug("hello")

    log_files = list((tmp_path / "logs").glob("spritefix_*.log"))
    assert len(log_files) == 1
    assert logging.getLogger().level == logging.DEBUG
    for handler in logging.getLogger().handlers[:]:
        handler.close()
        logging.getLogger().removeHandler(handler)
