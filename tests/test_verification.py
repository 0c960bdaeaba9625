"""Tests for final verification and alignment assessment."""

import pytest
from conftest import GREEN, make_frame

from spritefix.verification import assess_alignment, verify_frames

BLACK = (0, 0, 0, 255)


@pytest.mark.fast
class TestVerifyFrames:
    """Tests for the size and variance sanity checks."""

    def test_identical_frames_pass(self):
        frame = make_frame(20, 20, [((5, 5, 10, 10), GREEN)])

        result = verify_frames([frame] * 5)

        assert result.passed
        assert result.issues == []
        assert result.to_dict() == {"passed": True, "issues": []}

    def test_inconsistent_sizes(self):
        frames = [make_frame(20, 20), make_frame(24, 20), make_frame(20, 20)]

        result = verify_frames(frames)

        assert not result.passed
        assert result.issues == ["Inconsistent frame sizes: 20x20, 24x20"]

    def test_large_variance(self):
        opaque = make_frame(10, 10, [((0, 0, 10, 10), BLACK)])
        empty = make_frame(10, 10)

        result = verify_frames([opaque, empty, empty, opaque])

        # samples are frames 0, 2 and 3
        assert not result.passed
        assert result.issues == [
            "Large variance between frames (100.0%)",
            "Large variance between frames (100.0%)",
        ]

    def test_two_frames_skip_variance(self):
        opaque = make_frame(10, 10, [((0, 0, 10, 10), BLACK)])

        result = verify_frames([opaque, make_frame(10, 10)])

        assert result.passed

    def test_empty_sequence(self):
        assert verify_frames([]).passed


@pytest.mark.fast
class TestAssessAlignment:
    """Tests for the alignment quality rating."""

    def test_centered_steady_content_is_good(self):
        frame = make_frame(60, 60, [((25, 25, 10, 10), GREEN)])

        assessment = assess_alignment([frame, frame])

        assert assessment.quality == "good"
        assert assessment.issues == []
        assert assessment.frame_size == (60, 60)

    def test_off_center_is_fair(self):
        frame = make_frame(60, 60, [((0, 0, 10, 10), GREEN)])

        assessment = assess_alignment([frame, frame])

        assert assessment.quality == "fair"
        assert [issue.type for issue in assessment.issues] == ["off_center"]
        assert assessment.issues[0].severity == "medium"

    def test_jitter_is_poor(self):
        frames = [
            make_frame(60, 60, [((25, 25, 10, 10), GREEN)]),
            make_frame(60, 60, [((40, 25, 10, 10), GREEN)]),
        ]

        assessment = assess_alignment(frames)

        assert assessment.quality == "poor"
        jitter = next(issue for issue in assessment.issues if issue.type == "frame_jitter")
        assert jitter.data == {"x_jitter": 15, "y_jitter": 0}

    def test_size_mismatch_is_poor(self):
        frames = [make_frame(20, 20, [((5, 5, 10, 10), GREEN)]), make_frame(22, 20, [((6, 5, 10, 10), GREEN)])]

        assessment = assess_alignment(frames)

        assert assessment.quality == "poor"
        assert assessment.issues[0].type == "size_mismatch"

    def test_single_frame_is_good(self):
        assert assess_alignment([make_frame(10, 10)]).quality == "good"

    def test_to_dict(self):
        frame = make_frame(60, 60, [((25, 25, 10, 10), GREEN)])

        data = assess_alignment([frame, frame]).to_dict()

        assert data["quality"] == "good"
        assert data["content_bounds"][0] == {"x": 25, "y": 25, "width": 10, "height": 10}
        assert data["frame_size"] == [60, 60]
