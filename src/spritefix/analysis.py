"""Per-frame pixel analysis: color buckets and alpha categories."""

from dataclasses import dataclass, field

import numpy as np

from .buckets import OTHER_BUCKET, BucketRule
from .codec import RawPixelBuffer
from .config import DEFAULT_DETECTION_CONFIG, DetectionConfig


@dataclass(frozen=True)
class AlphaRatios:
    """Share of all pixels in each alpha category (sums to 1.0)."""

    opaque: float
    semi_transparent: float
    transparent: float


@dataclass
class FrameAnalysis:
    """Statistics derived from one decoded frame."""

    index: int
    width: int
    height: int
    alpha: AlphaRatios
    bucket_counts: dict[str, int] = field(default_factory=dict)


def classify_alpha(
    alpha: np.ndarray, config: DetectionConfig = DEFAULT_DETECTION_CONFIG
) -> AlphaRatios:
    """Compute alpha-category ratios over all pixels.

    Opaque is alpha > OPAQUE_ALPHA_MIN, semi-transparent is
    (TRANSPARENT_ALPHA_MAX, OPAQUE_ALPHA_MIN], transparent is the rest.
    """
    total = alpha.size
    if total == 0:
        return AlphaRatios(opaque=0.0, semi_transparent=0.0, transparent=0.0)

    opaque = int(np.count_nonzero(alpha > config.OPAQUE_ALPHA_MIN))
    transparent = int(np.count_nonzero(alpha <= config.TRANSPARENT_ALPHA_MAX))
    semi = total - opaque - transparent

    return AlphaRatios(
        opaque=opaque / total,
        semi_transparent=semi / total,
        transparent=transparent / total,
    )


def count_buckets(
    pixels: np.ndarray,
    rules: list[BucketRule],
    alpha_threshold: int = 128,
) -> dict[str, int]:
    """Classify visible pixels into buckets, first matching rule wins.

    Args:
        pixels: (height, width, 4) RGBA array
        rules: Ordered bucket rules
        alpha_threshold: Only pixels with alpha above this are classified

    Returns:
        Mapping of every rule label plus "other" to its pixel count
    """
    visible = pixels[pixels[:, :, 3] > alpha_threshold]
    r = visible[:, 0].astype(np.int16)
    g = visible[:, 1].astype(np.int16)
    b = visible[:, 2].astype(np.int16)

    counts: dict[str, int] = {}
    unassigned = np.ones(len(visible), dtype=bool)
    for rule in rules:
        hit = rule.matches(r, g, b) & unassigned
        counts[rule.label] = int(np.count_nonzero(hit))
        unassigned &= ~hit

    counts[OTHER_BUCKET] = int(np.count_nonzero(unassigned))
    return counts


def analyze_pixels(
    buffer: RawPixelBuffer,
    rules: list[BucketRule] | None = None,
    index: int = 0,
    config: DetectionConfig = DEFAULT_DETECTION_CONFIG,
) -> FrameAnalysis:
    """Analyze one decoded frame.

    Args:
        buffer: Decoded RGBA frame
        rules: Ordered bucket rules (defaults to ``config.BUCKET_RULES``)
        index: Position of the frame in its sequence
        config: Detection configuration supplying the alpha thresholds

    Returns:
        FrameAnalysis with bucket counts and alpha ratios
    """
    if rules is None:
        rules = config.BUCKET_RULES

    pixels = buffer.pixels
    if pixels.ndim != 3 or pixels.shape[2] != 4:
        raise ValueError(f"Expected an RGBA pixel array, got shape {pixels.shape}")

    return FrameAnalysis(
        index=index,
        width=buffer.width,
        height=buffer.height,
        alpha=classify_alpha(pixels[:, :, 3], config),
        bucket_counts=count_buckets(pixels, rules, config.BUCKET_ALPHA_THRESHOLD),
    )
