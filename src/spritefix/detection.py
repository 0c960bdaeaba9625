"""Multi-method anomaly detection for background-removed sprite frames.

Each detection method catches a different failure mode of AI background
removal:

1. Color histogram analysis - color washout (a bucket losing most pixels)
2. Alpha channel IQR analysis - transparency holes, extra opacity, halos
3. Adjacent-frame structural similarity - structural damage, missing parts
4. Pixel-difference outliers - major unexpected changes

Every method is a pure function returning an anomaly map
(``{frame_index: [Anomaly, ...]}``). The maps are folded together by
:func:`merge_anomaly_maps`, so the methods can run concurrently without
sharing mutable state.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Literal

import numpy as np

from .analysis import FrameAnalysis, analyze_pixels
from .codec import TRANSPARENT, Frame, FrameCodec, PillowCodec
from .config import DEFAULT_DETECTION_CONFIG, DetectionConfig
from .error_handling import CodecError, DetectionError, error_context, log_info_with_context
from .parallel import ParallelFrameProcessor
from .statistics import (
    ReferenceStats,
    aggregate_reference_stats,
    nearest_rank_median,
    nearest_rank_quartiles,
)

logger = logging.getLogger(__name__)

Severity = Literal["moderate", "severe"]

# Method names reported in detection_methods, in execution order
COLOR_HISTOGRAM = "color_histogram"
ALPHA_ANALYSIS = "alpha_analysis"
STRUCTURAL_SIMILARITY = "structural_similarity"
PIXEL_OUTLIER = "pixel_outlier"

# SSIM stabilizing constants: (0.01 * 255)^2 and (0.03 * 255)^2
_SSIM_C1 = 6.5025
_SSIM_C2 = 58.5225


@dataclass
class Anomaly:
    """One detected problem with a frame."""

    type: str
    severity: Severity
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "severity": self.severity, **self.details}


AnomalyMap = dict[int, list[Anomaly]]


@dataclass
class BadFrameRecord:
    """A flagged frame, its reasons and its substitute (None if unresolved)."""

    index: int
    reasons: list[Anomaly]
    replacement: int | None = None

    @property
    def severity(self) -> Severity:
        return "severe" if any(r.severity == "severe" for r in self.reasons) else "moderate"

    @property
    def resolved(self) -> bool:
        return self.replacement is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "reasons": [r.to_dict() for r in self.reasons],
            "replacement": self.replacement if self.resolved else "unresolved",
            "severity": self.severity,
        }


@dataclass
class DetectionResult:
    """Outcome of a detection run."""

    bad_frames: list[BadFrameRecord] = field(default_factory=list)
    methods_used: list[str] = field(default_factory=list)
    adjacent_ssim: list[float] = field(default_factory=list)
    adjacent_diffs: list[float] = field(default_factory=list)

    @property
    def bad_indices(self) -> set[int]:
        return {record.index for record in self.bad_frames}


def _severity(is_severe: bool) -> Severity:
    return "severe" if is_severe else "moderate"


# ---------------------------------------------------------------------------
# Method 1: color histogram
# ---------------------------------------------------------------------------


def detect_color_anomalies(
    analyses: Sequence[FrameAnalysis],
    stats: ReferenceStats,
    config: DetectionConfig = DEFAULT_DETECTION_CONFIG,
) -> AnomalyMap:
    """Flag frames whose bucket counts collapse relative to the median."""
    anomalies: AnomalyMap = {}
    checked = [rule.label for rule in config.BUCKET_RULES]

    for frame in analyses:
        found: list[Anomaly] = []

        for label in checked:
            median_count = stats.bucket_medians.get(label, 0)
            if median_count <= config.COLOR_PRESENCE_FLOOR:
                continue  # Color is not really part of this animation

            frame_count = frame.bucket_counts.get(label, 0)
            ratio = frame_count / median_count
            if ratio < config.COLOR_RATIO_THRESHOLD:
                found.append(
                    Anomaly(
                        type="color_loss",
                        severity=_severity(ratio < config.COLOR_SEVERE_RATIO),
                        details={
                            "bucket": label,
                            "frame_count": frame_count,
                            "median_count": median_count,
                            "ratio": ratio,
                        },
                    )
                )

        primary = config.PRIMARY_BUCKET
        if primary is not None:
            median_count = stats.bucket_medians.get(primary, 0)
            already_flagged = any(a.details.get("bucket") == primary for a in found)
            if median_count > config.PRIMARY_PRESENCE_FLOOR and not already_flagged:
                frame_count = frame.bucket_counts.get(primary, 0)
                ratio = frame_count / median_count
                if ratio < config.COLOR_RATIO_THRESHOLD:
                    found.append(
                        Anomaly(
                            type="primary_color_loss",
                            severity=_severity(ratio < config.COLOR_SEVERE_RATIO),
                            details={
                                "bucket": primary,
                                "frame_count": frame_count,
                                "median_count": median_count,
                                "ratio": ratio,
                            },
                        )
                    )

        if found:
            anomalies[frame.index] = found

    return anomalies


# ---------------------------------------------------------------------------
# Method 2: alpha channel IQR analysis
# ---------------------------------------------------------------------------


def detect_alpha_anomalies(
    analyses: Sequence[FrameAnalysis],
    stats: ReferenceStats,
    config: DetectionConfig = DEFAULT_DETECTION_CONFIG,
) -> AnomalyMap:
    """Flag opacity outliers (IQR bounds) and halo effects (semi-transparent excess)."""
    anomalies: AnomalyMap = {}

    quartiles = stats.opacity_quartiles
    iqr = quartiles.iqr
    lower = quartiles.q1 - config.OPACITY_IQR_MULTIPLIER * iqr
    upper = quartiles.q3 + config.OPACITY_IQR_MULTIPLIER * iqr
    semi_q3 = stats.semi_trans_quartiles.q3

    for frame in analyses:
        found: list[Anomaly] = []
        opacity = frame.alpha.opaque

        if opacity < lower or opacity > upper:
            if opacity < lower:
                kind = "transparency_hole"
                severe = opacity < lower - iqr
            else:
                kind = "extra_opacity"
                severe = opacity > upper + iqr
            found.append(
                Anomaly(
                    type=kind,
                    severity=_severity(severe),
                    details={
                        "frame_opacity": opacity,
                        "median_opacity": stats.opacity_median,
                        "bounds": {"lower": lower, "upper": upper},
                    },
                )
            )

        increase = frame.alpha.semi_transparent - semi_q3
        if increase > config.HALO_MARGIN:
            found.append(
                Anomaly(
                    type="halo_effect",
                    severity=_severity(increase > config.HALO_SEVERE_MARGIN),
                    details={
                        "frame_semi_trans": frame.alpha.semi_transparent,
                        "median_semi_trans": stats.semi_trans_median,
                        "q3_semi_trans": semi_q3,
                        "increase": increase,
                    },
                )
            )

        if found:
            anomalies[frame.index] = found

    return anomalies


# ---------------------------------------------------------------------------
# Method 3: adjacent-frame structural similarity
# ---------------------------------------------------------------------------


def _luminance(pixels: np.ndarray) -> np.ndarray:
    rgb = pixels[..., :3].astype(np.float64)
    return 0.299 * rgb[..., 0] + 0.587 * rgb[..., 1] + 0.114 * rgb[..., 2]


def simplified_ssim(
    pixels_a: np.ndarray, pixels_b: np.ndarray, alpha_threshold: int = 64
) -> float:
    """Global luminance SSIM over pixels where either frame is visible.

    Args:
        pixels_a: (height, width, 4) RGBA array
        pixels_b: RGBA array of the same shape
        alpha_threshold: A pixel takes part if either alpha exceeds this

    Returns:
        SSIM score; 1.0 when neither frame has any visible pixel
    """
    if pixels_a.shape != pixels_b.shape:
        raise ValueError(
            f"Frames must share a shape for SSIM, got {pixels_a.shape} and {pixels_b.shape}"
        )

    mask = (pixels_a[..., 3] > alpha_threshold) | (pixels_b[..., 3] > alpha_threshold)
    count = int(np.count_nonzero(mask))
    if count == 0:
        return 1.0

    l1 = _luminance(pixels_a)[mask]
    l2 = _luminance(pixels_b)[mask]

    mean1 = l1.mean()
    mean2 = l2.mean()
    var1 = (l1 * l1).mean() - mean1 * mean1
    var2 = (l2 * l2).mean() - mean2 * mean2
    covar = (l1 * l2).mean() - mean1 * mean2

    numerator = (2 * mean1 * mean2 + _SSIM_C1) * (2 * covar + _SSIM_C2)
    denominator = (mean1 * mean1 + mean2 * mean2 + _SSIM_C1) * (var1 + var2 + _SSIM_C2)
    return float(numerator / denominator)


def ssim_outlier_threshold(
    scores: Sequence[float], multiplier: float = 3.0
) -> float:
    """Strict lower outlier bound ``Q1 - multiplier * IQR`` over SSIM scores."""
    quartiles = nearest_rank_quartiles(scores)
    return quartiles.q1 - multiplier * quartiles.iqr


def detect_structural_anomalies(
    adjacent_ssim: Sequence[float],
    config: DetectionConfig = DEFAULT_DETECTION_CONFIG,
) -> AnomalyMap:
    """Flag interior frames whose similarity to both neighbours collapses.

    ``adjacent_ssim[i]`` is the score between frames i and i + 1. A frame
    is flagged only when both of its scores fall below the strict IQR
    outlier bound and the lower of the two is also below SSIM_THRESHOLD.
    A single low score is normal motion, not damage.
    """
    anomalies: AnomalyMap = {}
    if len(adjacent_ssim) < 2:
        return anomalies

    threshold = ssim_outlier_threshold(adjacent_ssim, config.SSIM_IQR_MULTIPLIER)
    num_frames = len(adjacent_ssim) + 1

    for i in range(1, num_frames - 1):
        to_prev = adjacent_ssim[i - 1]
        to_next = adjacent_ssim[i]
        lowest = min(to_prev, to_next)

        both_low = to_prev < threshold and to_next < threshold
        very_low = lowest < config.SSIM_THRESHOLD
        if both_low and very_low:
            anomalies[i] = [
                Anomaly(
                    type="structural_damage",
                    severity=_severity(lowest < config.SSIM_SEVERE_FLOOR),
                    details={
                        "ssim_to_prev": to_prev,
                        "ssim_to_next": to_next,
                        "threshold": threshold,
                    },
                )
            ]

    return anomalies


# ---------------------------------------------------------------------------
# Method 4: pixel-difference outliers
# ---------------------------------------------------------------------------


def detect_pixel_outliers(
    adjacent_diffs: Sequence[float],
    config: DetectionConfig = DEFAULT_DETECTION_CONFIG,
) -> AnomalyMap:
    """Flag interior frames that differ from both neighbours far more than usual.

    ``adjacent_diffs[i]`` is the changed-pixel ratio between frames i and
    i + 1.
    """
    anomalies: AnomalyMap = {}
    if len(adjacent_diffs) < 2:
        return anomalies

    median_diff = nearest_rank_median(adjacent_diffs)
    threshold = max(median_diff * config.PIXEL_DIFF_OUTLIER_MULTIPLIER, config.PIXEL_DIFF_THRESHOLD)
    num_frames = len(adjacent_diffs) + 1

    for i in range(1, num_frames - 1):
        avg_diff = (adjacent_diffs[i - 1] + adjacent_diffs[i]) / 2
        if avg_diff > threshold:
            anomalies[i] = [
                Anomaly(
                    type="pixel_outlier",
                    severity=_severity(avg_diff > median_diff * config.PIXEL_DIFF_SEVERE_MULTIPLIER),
                    details={
                        "avg_diff": avg_diff,
                        "median_diff": median_diff,
                        "threshold": threshold,
                    },
                )
            ]

    return anomalies


# ---------------------------------------------------------------------------
# Combination
# ---------------------------------------------------------------------------


def merge_anomaly_maps(*maps: AnomalyMap) -> AnomalyMap:
    """Fold anomaly maps by frame index, keeping every entry.

    A ``pixel_outlier`` is dropped for frames that already carry
    ``structural_damage``; both describe the same defect.
    """
    merged: AnomalyMap = {}
    for anomaly_map in maps:
        for index, found in anomaly_map.items():
            merged.setdefault(index, []).extend(found)

    for index, found in merged.items():
        if any(a.type == "structural_damage" for a in found):
            merged[index] = [a for a in found if a.type != "pixel_outlier"]

    return {index: found for index, found in sorted(merged.items()) if found}


# ---------------------------------------------------------------------------
# Full detection run
# ---------------------------------------------------------------------------


def analyze_frames(
    frames: Sequence[Frame],
    config: DetectionConfig,
    codec: FrameCodec,
    processor: ParallelFrameProcessor,
) -> list[FrameAnalysis]:
    """Decode and analyze every frame concurrently."""

    def analyze(item: tuple[int, Frame]) -> FrameAnalysis:
        index, frame = item
        with error_context("decode frame", CodecError, context={"index": index}, logger=logger):
            buffer = codec.decode(frame)
        analysis = analyze_pixels(buffer, config.BUCKET_RULES, index=index, config=config)
        logger.debug(
            f"Frame {index}: {buffer.width}x{buffer.height}, opaque={analysis.alpha.opaque:.3f}, "
            f"buckets={analysis.bucket_counts}"
        )
        return analysis

    return processor.map(analyze, list(enumerate(frames)), stage="analyze")


def normalize_frames(
    frames: Sequence[Frame],
    width: int,
    height: int,
    codec: FrameCodec,
    processor: ParallelFrameProcessor,
) -> list[np.ndarray]:
    """Pad/scale every frame to (width, height) and return RGBA arrays."""

    def normalize(item: tuple[int, Frame]) -> np.ndarray:
        index, frame = item
        with error_context("normalize frame", CodecError, context={"index": index}, logger=logger):
            resized = codec.resize(frame, width, height, fit="contain", background=TRANSPARENT)
            return codec.decode(resized).pixels

    return processor.map(normalize, list(enumerate(frames)), stage="normalize")


def compute_adjacent_metrics(
    normalized: Sequence[np.ndarray],
    config: DetectionConfig,
    codec: FrameCodec,
    processor: ParallelFrameProcessor,
) -> tuple[list[float], list[float]]:
    """SSIM score and changed-pixel ratio for every adjacent pair.

    Returns:
        Tuple of (ssim scores, pixel-diff ratios), each of length N - 1
    """
    if len(normalized) < 2:
        return [], []

    height, width = normalized[0].shape[:2]
    total_pixels = width * height

    def pair_metrics(i: int) -> tuple[float, float]:
        a, b = normalized[i], normalized[i + 1]
        score = simplified_ssim(a, b, config.SSIM_ALPHA_THRESHOLD)
        with error_context("compare frames", CodecError, context={"pair": (i, i + 1)}, logger=logger):
            diff = codec.pixel_diff(a, b, width, height, config.PIXEL_DIFF_TOLERANCE)
        return score, (diff / total_pixels if total_pixels else 0.0)

    results = processor.map(pair_metrics, list(range(len(normalized) - 1)), stage="pairs")
    return [r[0] for r in results], [r[1] for r in results]


def detect_bad_frames(
    frames: Sequence[Frame],
    config: DetectionConfig = DEFAULT_DETECTION_CONFIG,
    codec: FrameCodec | None = None,
    processor: ParallelFrameProcessor | None = None,
) -> DetectionResult:
    """Run all four detection methods and combine their findings.

    Args:
        frames: Encoded frames in sequence order
        config: Detection configuration
        codec: Image codec (defaults to PillowCodec)
        processor: Worker pool (defaults to a fresh ParallelFrameProcessor)

    Returns:
        DetectionResult with flagged frames (replacements not yet assigned)

    Raises:
        CodecError: If any frame cannot be decoded
        DetectionError: If a detection method fails on the decoded frames
    """
    codec = codec or PillowCodec()
    processor = processor or ParallelFrameProcessor()

    num_frames = len(frames)
    if num_frames < config.MIN_FRAMES:
        log_info_with_context(
            "Skipping anomaly detection, too few frames for statistics",
            context={"frames": num_frames, "min_frames": config.MIN_FRAMES},
            logger=logger,
        )
        return DetectionResult()

    analyses = analyze_frames(frames, config, codec, processor)
    stats = aggregate_reference_stats(analyses)

    max_width = max(a.width for a in analyses)
    max_height = max(a.height for a in analyses)
    normalized = normalize_frames(frames, max_width, max_height, codec, processor)
    adjacent_ssim, adjacent_diffs = compute_adjacent_metrics(normalized, config, codec, processor)

    with error_context("run detection methods", DetectionError, logger=logger):
        passes = processor.run_all(
            {
                COLOR_HISTOGRAM: lambda: detect_color_anomalies(analyses, stats, config),
                ALPHA_ANALYSIS: lambda: detect_alpha_anomalies(analyses, stats, config),
                STRUCTURAL_SIMILARITY: lambda: detect_structural_anomalies(adjacent_ssim, config),
                PIXEL_OUTLIER: lambda: detect_pixel_outliers(adjacent_diffs, config),
            }
        )
    merged = merge_anomaly_maps(*passes.values())

    bad_frames = [BadFrameRecord(index=index, reasons=reasons) for index, reasons in merged.items()]
    for record in bad_frames:
        logger.debug(
            f"Frame {record.index} flagged ({record.severity}): "
            f"{', '.join(r.type for r in record.reasons)}"
        )

    return DetectionResult(
        bad_frames=bad_frames,
        methods_used=list(passes),
        adjacent_ssim=adjacent_ssim,
        adjacent_diffs=adjacent_diffs,
    )
