"""Tests for nearest-good-neighbour frame replacement."""

import logging

import pytest

from spritefix.detection import Anomaly, BadFrameRecord
from spritefix.replacement import assign_replacements, replace_bad_frames, resolve_replacement


def _records(*indices):
    return [BadFrameRecord(index=i, reasons=[Anomaly("transparency_hole", "severe")]) for i in indices]


@pytest.mark.fast
class TestResolveReplacement:
    """Tests for the outward neighbour search."""

    def test_prefers_predecessor(self):
        assert resolve_replacement(4, {4}, 8) == 3

    def test_successor_when_predecessor_bad(self):
        assert resolve_replacement(4, {3, 4}, 8) == 5

    def test_first_frame_uses_successor(self):
        assert resolve_replacement(0, {0}, 5) == 1

    def test_earlier_before_later_at_same_distance(self):
        assert resolve_replacement(4, {3, 4, 5}, 8) == 2

    def test_no_wraparound(self):
        """Frame 0 with frame 1 bad goes forward to 2, never back to the end."""
        assert resolve_replacement(0, {0, 1}, 6) == 2

    def test_last_frame_searches_backwards(self):
        assert resolve_replacement(5, {4, 5}, 6) == 3

    def test_all_frames_bad(self):
        assert resolve_replacement(1, {0, 1, 2}, 3) is None

    def test_index_out_of_range(self):
        with pytest.raises(ValueError):
            resolve_replacement(8, {8}, 8)

    def test_replacement_is_never_bad_or_self(self):
        bad = {0, 2, 3, 7, 8, 9}
        for index in bad:
            replacement = resolve_replacement(index, bad, 10)
            assert replacement is not None
            assert replacement != index
            assert replacement not in bad
            assert 0 <= replacement < 10


@pytest.mark.fast
class TestAssignReplacements:
    """Tests for filling replacements on detection records."""

    def test_assigns_nearest_good(self):
        records = assign_replacements(_records(1, 2), 6)

        assert [(r.index, r.replacement) for r in records] == [(1, 0), (2, 3)]

    def test_unresolved_logs_warning(self, caplog):
        with caplog.at_level(logging.WARNING):
            records = assign_replacements(_records(0, 1, 2), 3)

        assert all(r.replacement is None for r in records)
        assert all(not r.resolved for r in records)
        assert "No good frame available" in caplog.text


@pytest.mark.fast
class TestReplaceBadFrames:
    """Tests for building the corrected sequence."""

    def test_returns_new_list(self):
        frames = ["a", "b", "c", "d"]
        records = assign_replacements(_records(2), 4)

        replaced = replace_bad_frames(frames, records)

        assert replaced == ["a", "b", "b", "d"]
        assert frames == ["a", "b", "c", "d"]

    def test_substitutes_come_from_original_sequence(self):
        frames = ["f0", "f1", "f2", "f3", "f4"]
        records = assign_replacements(_records(2, 3), 5)

        replaced = replace_bad_frames(frames, records)

        # 2 -> 1 and 3 -> 4; neither copies a replaced frame
        assert replaced == ["f0", "f1", "f1", "f4", "f4"]

    def test_unresolved_frames_kept(self):
        frames = ["x", "y"]
        records = assign_replacements(_records(0, 1), 2)

        assert replace_bad_frames(frames, records) == ["x", "y"]
