"""Replacement of flagged frames with their nearest good neighbour."""

import logging
from collections.abc import Collection, Sequence
from typing import TypeVar

from .detection import BadFrameRecord
from .error_handling import log_warning_with_context

logger = logging.getLogger(__name__)

T = TypeVar("T")


def resolve_replacement(
    index: int, bad_indices: Collection[int], total_frames: int
) -> int | None:
    """Find the substitute for a bad frame.

    Prefers the previous frame, then the next one, then searches outward at
    increasing distance (earlier before later at each distance) without
    wrapping around the sequence.

    Args:
        index: Index of the bad frame
        bad_indices: Every flagged index
        total_frames: Length of the sequence

    Returns:
        Index of the nearest good frame, or None if every frame is bad
    """
    if not 0 <= index < total_frames:
        raise ValueError(f"index {index} is outside 0..{total_frames - 1}")

    for distance in range(1, total_frames):
        earlier = index - distance
        if earlier >= 0 and earlier not in bad_indices:
            return earlier
        later = index + distance
        if later < total_frames and later not in bad_indices:
            return later

    return None


def assign_replacements(
    bad_frames: Sequence[BadFrameRecord], total_frames: int
) -> list[BadFrameRecord]:
    """Fill in ``replacement`` on every record; unresolved ones stay None."""
    bad_indices = {record.index for record in bad_frames}

    for record in bad_frames:
        record.replacement = resolve_replacement(record.index, bad_indices, total_frames)
        if record.replacement is None:
            log_warning_with_context(
                f"No good frame available to replace frame {record.index}; keeping original",
                context={"total_frames": total_frames, "bad_frames": len(bad_indices)},
                logger=logger,
            )

    return list(bad_frames)


def replace_bad_frames(
    frames: Sequence[T], bad_frames: Sequence[BadFrameRecord]
) -> list[T]:
    """Return a new sequence with every resolved bad frame substituted.

    Substitutes are always taken from the input sequence, so a replacement
    never copies another replaced frame.
    """
    replaced = list(frames)
    for record in bad_frames:
        if record.replacement is not None:
            replaced[record.index] = frames[record.replacement]
            logger.info(f"Replaced frame {record.index} with frame {record.replacement}")
    return replaced
