"""Tests for per-frame pixel analysis and reference statistics."""

import numpy as np
import pytest
from conftest import GREEN, make_pixels

from spritefix.analysis import AlphaRatios, FrameAnalysis, analyze_pixels, classify_alpha, count_buckets
from spritefix.buckets import OTHER_BUCKET, get_preset, range_rule
from spritefix.codec import RawPixelBuffer
from spritefix.statistics import (
    aggregate_reference_stats,
    nearest_rank_median,
    nearest_rank_quartiles,
)


def _buffer(pixels: np.ndarray) -> RawPixelBuffer:
    height, width = pixels.shape[:2]
    return RawPixelBuffer(width=width, height=height, channels=4, pixels=pixels)


@pytest.mark.fast
class TestClassifyAlpha:
    """Tests for alpha category ratios."""

    def test_category_boundaries(self):
        """Opaque is > 250, transparent is <= 5, everything between is semi."""
        alpha = np.array([0, 5, 6, 128, 250, 251, 255, 255], dtype=np.uint8)

        ratios = classify_alpha(alpha)

        assert ratios.opaque == pytest.approx(3 / 8)
        assert ratios.semi_transparent == pytest.approx(3 / 8)
        assert ratios.transparent == pytest.approx(2 / 8)

    def test_ratios_sum_to_one(self):
        alpha = np.random.default_rng(0).integers(0, 256, size=(32, 32), dtype=np.uint8)

        ratios = classify_alpha(alpha)

        assert ratios.opaque + ratios.semi_transparent + ratios.transparent == pytest.approx(1.0)


@pytest.mark.fast
class TestCountBuckets:
    """Tests for ordered first-match bucket classification."""

    def test_first_match_wins(self):
        rules = [range_rule("any_red", r=(100, None)), range_rule("bright_red", r=(200, None))]
        pixels = make_pixels(2, 1, [((0, 0, 1, 1), (220, 0, 0, 255)), ((1, 0, 1, 1), (150, 0, 0, 255))])

        counts = count_buckets(pixels, rules)

        assert counts == {"any_red": 2, "bright_red": 0, OTHER_BUCKET: 0}

    def test_unmatched_pixels_go_to_other(self):
        rules, _ = get_preset("green_subject")
        pixels = make_pixels(4, 1, [((0, 0, 1, 1), GREEN), ((1, 0, 3, 1), (250, 250, 250, 255))])

        counts = count_buckets(pixels, rules)

        assert counts["dark_green"] == 1
        assert counts[OTHER_BUCKET] == 3

    def test_only_visible_pixels_counted(self):
        """Pixels at or below the alpha threshold are not classified."""
        rules = [range_rule("green", dominant="g")]
        pixels = make_pixels(
            3,
            1,
            [
                ((0, 0, 1, 1), (0, 200, 0, 128)),
                ((1, 0, 1, 1), (0, 200, 0, 129)),
                ((2, 0, 1, 1), (0, 200, 0, 0)),
            ],
        )

        counts = count_buckets(pixels, rules, alpha_threshold=128)

        assert counts == {"green": 1, OTHER_BUCKET: 0}


@pytest.mark.fast
class TestAnalyzePixels:
    """Tests for the combined per-frame analysis."""

    def test_analysis_fields(self):
        rules, _ = get_preset("green_subject")
        pixels = make_pixels(10, 10, [((0, 0, 5, 4), GREEN)])

        analysis = analyze_pixels(_buffer(pixels), rules, index=3)

        assert analysis.index == 3
        assert (analysis.width, analysis.height) == (10, 10)
        assert analysis.alpha.opaque == pytest.approx(0.2)
        assert analysis.alpha.transparent == pytest.approx(0.8)
        assert analysis.bucket_counts["dark_green"] == 20

    def test_rejects_non_rgba(self):
        rgb = np.zeros((4, 4, 3), dtype=np.uint8)
        buffer = RawPixelBuffer(width=4, height=4, channels=3, pixels=rgb)

        with pytest.raises(ValueError, match="RGBA"):
            analyze_pixels(buffer)


@pytest.mark.fast
class TestNearestRank:
    """Tests for nearest-rank median and quartile selection."""

    def test_quartiles_are_floor_index(self):
        quartiles = nearest_rank_quartiles([0.1, 0.5, 0.5, 0.5, 0.9])

        assert quartiles.q1 == 0.5
        assert quartiles.q3 == 0.5
        assert quartiles.iqr == 0.0

    def test_quartiles_unsorted_input(self):
        quartiles = nearest_rank_quartiles([8, 1, 7, 2, 6, 3, 5, 4])

        # floor(8 * 0.25) = 2, floor(8 * 0.75) = 6
        assert quartiles.q1 == 3
        assert quartiles.q3 == 7

    def test_median_upper_for_even_length(self):
        assert nearest_rank_median([4, 1, 3, 2]) == 3
        assert nearest_rank_median([5, 1, 3]) == 3

    def test_empty_sequences(self):
        with pytest.raises(ValueError):
            nearest_rank_median([])
        with pytest.raises(ValueError):
            nearest_rank_quartiles([])


@pytest.mark.fast
class TestAggregateReferenceStats:
    """Tests for cross-frame reference statistics."""

    def test_medians_and_quartiles(self):
        analyses = [
            FrameAnalysis(
                index=i,
                width=10,
                height=10,
                alpha=AlphaRatios(opaque=op, semi_transparent=0.0, transparent=1.0 - op),
                bucket_counts={"green": count, OTHER_BUCKET: 0},
            )
            for i, (op, count) in enumerate([(0.2, 400), (0.2, 400), (0.1, 40), (0.2, 400), (0.3, 380)])
        ]

        stats = aggregate_reference_stats(analyses)

        assert stats.bucket_medians == {"green": 400, OTHER_BUCKET: 0}
        assert stats.opacity_median == 0.2
        assert stats.opacity_quartiles.q1 == 0.2
        assert stats.opacity_quartiles.q3 == 0.2
        assert stats.semi_trans_quartiles.iqr == 0.0

    def test_requires_analyses(self):
        with pytest.raises(ValueError):
            aggregate_reference_stats([])
