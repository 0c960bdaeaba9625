"""Post-processing verification and alignment quality checks.

Both checks are advisory: they describe the sequence but never change it.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Literal

from .codec import Frame, FrameCodec, PillowCodec, RawPixelBuffer, Rect
from .config import DEFAULT_VERIFICATION_CONFIG, VerificationConfig
from .error_handling import CodecError, error_context
from .stabilization import find_content_bounds

logger = logging.getLogger(__name__)


@dataclass
class VerificationResult:
    """Outcome of the final sanity pass."""

    passed: bool
    issues: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"passed": self.passed, "issues": list(self.issues)}


@dataclass
class AlignmentIssue:
    """One alignment problem found by :func:`assess_alignment`."""

    type: str
    message: str
    severity: Literal["high", "medium"]
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "message": self.message, "severity": self.severity, **self.data}


@dataclass
class AlignmentAssessment:
    """Alignment quality of a frame sequence."""

    quality: Literal["good", "fair", "poor"]
    issues: list[AlignmentIssue] = field(default_factory=list)
    content_bounds: list[Rect] = field(default_factory=list)
    frame_size: tuple[int, int] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "quality": self.quality,
            "issues": [issue.to_dict() for issue in self.issues],
            "content_bounds": [
                {"x": b.x, "y": b.y, "width": b.width, "height": b.height}
                for b in self.content_bounds
            ],
            "frame_size": list(self.frame_size) if self.frame_size else None,
        }


def _decode_all(frames: Sequence[Frame], codec: FrameCodec) -> list[RawPixelBuffer]:
    buffers = []
    for index, frame in enumerate(frames):
        with error_context("decode frame", CodecError, context={"index": index}, logger=logger):
            buffers.append(codec.decode(frame))
    return buffers


def _size_issue(buffers: Sequence[RawPixelBuffer]) -> str | None:
    sizes = sorted({(b.width, b.height) for b in buffers})
    if len(sizes) > 1:
        return f"Inconsistent frame sizes: {', '.join(f'{w}x{h}' for w, h in sizes)}"
    return None


def verify_frames(
    frames: Sequence[Frame],
    config: VerificationConfig = DEFAULT_VERIFICATION_CONFIG,
    codec: FrameCodec | None = None,
) -> VerificationResult:
    """Check that frames share one size and that sampled frames stay similar.

    For more than two frames the first, middle and last frames are compared
    pairwise; a changed-pixel ratio above VARIANCE_THRESHOLD is reported.
    """
    codec = codec or PillowCodec()
    issues: list[str] = []

    if not frames:
        return VerificationResult(passed=True)

    num_frames = len(frames)
    if num_frames > 2:
        sample_indices = [0, num_frames // 2, num_frames - 1]
    else:
        sample_indices = []

    buffers = _decode_all(frames, codec)
    size_issue = _size_issue(buffers)
    if size_issue:
        issues.append(size_issue)
    elif sample_indices:
        width, height = buffers[0].width, buffers[0].height
        total_pixels = width * height
        samples = [buffers[i].pixels for i in sample_indices]

        for i in range(len(samples) - 1):
            diff = codec.pixel_diff(
                samples[i], samples[i + 1], width, height, config.PIXEL_DIFF_TOLERANCE
            )
            ratio = diff / total_pixels if total_pixels else 0.0
            if ratio > config.VARIANCE_THRESHOLD:
                issues.append(f"Large variance between frames ({ratio * 100:.1f}%)")

    result = VerificationResult(passed=not issues, issues=issues)
    if result.passed:
        logger.info("Final verification: PASSED")
    else:
        logger.warning(f"Final verification: WARNING - {', '.join(issues)}")
    return result


def assess_alignment(
    frames: Sequence[Frame],
    config: VerificationConfig = DEFAULT_VERIFICATION_CONFIG,
    codec: FrameCodec | None = None,
) -> AlignmentAssessment:
    """Rate how steady and centered the content is across frames.

    Checks size consistency, content jitter between frames and how centered
    the first frame's content sits in its frame.
    """
    codec = codec or PillowCodec()
    if len(frames) < 2:
        return AlignmentAssessment(quality="good")

    buffers = _decode_all(frames, codec)
    issues: list[AlignmentIssue] = []

    size_issue = _size_issue(buffers)
    if size_issue:
        issues.append(AlignmentIssue(type="size_mismatch", message=size_issue, severity="high"))

    bounds = [find_content_bounds(b.alpha, config.CONTENT_ALPHA_THRESHOLD) for b in buffers]
    visible = [b for b in bounds if not b.is_empty]

    if visible:
        x_jitter = max(b.x for b in visible) - min(b.x for b in visible)
        y_jitter = max(b.y for b in visible) - min(b.y for b in visible)
        if x_jitter > config.JITTER_TOLERANCE_PX or y_jitter > config.JITTER_TOLERANCE_PX:
            issues.append(
                AlignmentIssue(
                    type="frame_jitter",
                    message=f"Content position varies by {x_jitter}px horizontal, {y_jitter}px vertical",
                    severity="high",
                    data={"x_jitter": x_jitter, "y_jitter": y_jitter},
                )
            )

    first = bounds[0]
    frame_width, frame_height = buffers[0].width, buffers[0].height
    if not first.is_empty:
        left = first.x
        right = frame_width - (first.x + first.width)
        top = first.y
        bottom = frame_height - (first.y + first.height)
        tolerance = config.CENTERING_TOLERANCE_PX
        if abs(left - right) > tolerance or abs(top - bottom) > tolerance:
            issues.append(
                AlignmentIssue(
                    type="off_center",
                    message=f"Content is not centered (margins: L={left}, R={right}, T={top}, B={bottom})",
                    severity="medium",
                )
            )

    if any(issue.severity == "high" for issue in issues):
        quality = "poor"
    elif issues:
        quality = "fair"
    else:
        quality = "good"

    return AlignmentAssessment(
        quality=quality,
        issues=issues,
        content_bounds=bounds,
        frame_size=(frame_width, frame_height),
    )
