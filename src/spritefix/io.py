"""I/O utilities for logging setup, atomic writes, and frame files."""

import io
import json
import logging
import tempfile
from collections.abc import Sequence
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from shutil import move
from typing import Any

from PIL import Image, ImageSequence

from .error_handling import CodecError, ValidationError

logger = logging.getLogger(__name__)

FRAME_EXTENSIONS = {".png", ".webp", ".gif", ".bmp", ".tif", ".tiff"}
ANIMATED_EXTENSIONS = {".gif", ".png", ".apng", ".webp"}


def setup_logging(log_dir: Path | None = None, log_level: str = "INFO") -> logging.Logger:
    """Set up logging configuration for SpriteFix.

    Args:
        log_dir: Directory to store log files (None logs to the console only)
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)

    Returns:
        Configured logger instance
    """
    handlers: list[logging.Handler] = [logging.StreamHandler()]

    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        handlers.append(logging.FileHandler(log_dir / f"spritefix_{timestamp}.log"))

    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
        force=True,
    )

    return logging.getLogger("spritefix")


@contextmanager
def atomic_write(target_path: Path, mode: str = "w"):
    """Context manager for atomic file writes using temporary files.

    Example:
        with atomic_write(Path("report.json")) as f:
            json.dump(data, f)
    """
    target_path.parent.mkdir(parents=True, exist_ok=True)

    with tempfile.NamedTemporaryFile(
        mode=mode,
        dir=target_path.parent,
        delete=False,
        suffix=f".tmp_{target_path.name}",
    ) as temp_file:
        try:
            yield temp_file
            temp_file.flush()
            move(temp_file.name, target_path)
        except Exception:
            Path(temp_file.name).unlink(missing_ok=True)
            raise


def save_json(data: dict[str, Any], json_path: Path) -> None:
    """Atomically save data as JSON file."""
    with atomic_write(json_path) as f:
        json.dump(data, f, indent=2, ensure_ascii=False)


def load_json(json_path: Path) -> dict[str, Any]:
    """Load JSON data from file."""
    with open(json_path, encoding="utf-8") as f:
        return json.load(f)


def _encode_png(img: Image.Image) -> bytes:
    out = io.BytesIO()
    img.convert("RGBA").save(out, format="PNG")
    return out.getvalue()


def extract_frames(image_path: Path) -> list[bytes]:
    """Extract every frame of an (optionally animated) image as PNG bytes.

    Raises:
        CodecError: If the image cannot be read
    """
    try:
        with Image.open(image_path) as img:
            return [_encode_png(frame) for frame in ImageSequence.Iterator(img)]
    except Exception as e:
        raise CodecError(f"Failed to extract frames from {image_path}", cause=e) from e


def load_frames(path: Path) -> list[bytes]:
    """Load a frame sequence from a directory of images or one animated image.

    Directory entries are sorted by file name. Files are returned as their
    raw bytes; animated images are split into PNG-encoded frames.

    Raises:
        ValidationError: If the path does not exist or holds no frames
    """
    if not path.exists():
        raise ValidationError(f"Input does not exist: {path}")

    if path.is_dir():
        files = sorted(
            p for p in path.iterdir() if p.is_file() and p.suffix.lower() in FRAME_EXTENSIONS
        )
        if not files:
            raise ValidationError(f"No frame images found in {path}")
        logger.info(f"Loaded {len(files)} frames from {path}")
        return [p.read_bytes() for p in files]

    if path.suffix.lower() not in ANIMATED_EXTENSIONS:
        raise ValidationError(
            f"Unsupported input file type: {path.suffix} (expected: {sorted(ANIMATED_EXTENSIONS)})"
        )
    frames = extract_frames(path)
    logger.info(f"Extracted {len(frames)} frames from {path}")
    return frames


def write_frames(frames: Sequence[bytes], output_dir: Path, prefix: str = "frame") -> list[Path]:
    """Write encoded frames as ``{prefix}_{i:04d}.png`` files."""
    output_dir.mkdir(parents=True, exist_ok=True)
    paths = []
    for i, frame in enumerate(frames):
        frame_path = output_dir / f"{prefix}_{i:04d}.png"
        with atomic_write(frame_path, mode="wb") as f:
            f.write(frame)
        paths.append(frame_path)
    return paths


def save_debug_frames(frames: Sequence[bytes], output_dir: Path, label: str = "debug") -> Path:
    """Dump frames as ``{label}_frame_{i}.png`` for inspection."""
    output_dir.mkdir(parents=True, exist_ok=True)
    for i, frame in enumerate(frames):
        (output_dir / f"{label}_frame_{i}.png").write_bytes(frame)
    return output_dir
