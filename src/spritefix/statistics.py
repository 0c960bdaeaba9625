"""Cross-frame reference statistics.

All selections here are nearest-rank on the sorted values: the median is
``sorted[n // 2]`` and the quartiles are ``sorted[floor(n * 0.25)]`` and
``sorted[floor(n * 0.75)]``. Interpolating would shift every outlier bound
derived from these numbers, so do not swap in ``numpy.percentile`` or
``statistics.median``.
"""

import math
from collections.abc import Sequence
from dataclasses import dataclass, field

from .analysis import FrameAnalysis


@dataclass(frozen=True)
class Quartiles:
    """Nearest-rank first and third quartiles."""

    q1: float
    q3: float

    @property
    def iqr(self) -> float:
        return self.q3 - self.q1


@dataclass
class ReferenceStats:
    """Reference statistics for one run, derived from every frame analysis."""

    bucket_medians: dict[str, float] = field(default_factory=dict)
    opacity_quartiles: Quartiles = Quartiles(0.0, 0.0)
    semi_trans_quartiles: Quartiles = Quartiles(0.0, 0.0)
    opacity_median: float = 0.0
    semi_trans_median: float = 0.0


def nearest_rank_median(values: Sequence[float]) -> float:
    """Return ``sorted(values)[len // 2]`` (upper median for even lengths)."""
    if not values:
        raise ValueError("Cannot take the median of an empty sequence")
    ordered = sorted(values)
    return ordered[len(ordered) // 2]


def nearest_rank_quartiles(values: Sequence[float]) -> Quartiles:
    """Return Q1/Q3 by floor-index selection on the sorted values."""
    if not values:
        raise ValueError("Cannot take quartiles of an empty sequence")
    ordered = sorted(values)
    n = len(ordered)
    return Quartiles(
        q1=ordered[math.floor(n * 0.25)],
        q3=ordered[math.floor(n * 0.75)],
    )


def aggregate_reference_stats(analyses: Sequence[FrameAnalysis]) -> ReferenceStats:
    """Fold per-frame analyses into reference statistics.

    Args:
        analyses: Every frame's analysis for the current run

    Returns:
        ReferenceStats with bucket medians and alpha quartiles
    """
    if not analyses:
        raise ValueError("Cannot aggregate statistics without frame analyses")

    labels: list[str] = []
    for analysis in analyses:
        for label in analysis.bucket_counts:
            if label not in labels:
                labels.append(label)

    bucket_medians = {
        label: nearest_rank_median([a.bucket_counts.get(label, 0) for a in analyses])
        for label in labels
    }

    opacity = [a.alpha.opaque for a in analyses]
    semi = [a.alpha.semi_transparent for a in analyses]

    return ReferenceStats(
        bucket_medians=bucket_medians,
        opacity_quartiles=nearest_rank_quartiles(opacity),
        semi_trans_quartiles=nearest_rank_quartiles(semi),
        opacity_median=nearest_rank_median(opacity),
        semi_trans_median=nearest_rank_median(semi),
    )
