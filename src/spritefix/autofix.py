"""Sprite anomaly detection and auto-fix pipeline.

Runs one linear pass over a background-removed frame sequence:

    detect -> replace bad frames (if any) -> stabilize -> verify

Detection is skipped below three frames; stabilization and verification
always run. Codec failures abort the run with a :class:`CodecError`;
unresolvable replacements and verification findings only show up in the
report.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from .codec import Frame, FrameCodec, PillowCodec
from .config import DEFAULT_AUTOFIX_CONFIG, AutoFixConfig
from .detection import BadFrameRecord, detect_bad_frames
from .parallel import ParallelConfig, ParallelFrameProcessor
from .replacement import assign_replacements, replace_bad_frames
from .stabilization import stabilize_frames
from .verification import VerificationResult, verify_frames

logger = logging.getLogger(__name__)


@dataclass
class AutoFixReport:
    """Diagnostic report for one auto-fix run."""

    total_frames: int
    bad_frames: list[BadFrameRecord] = field(default_factory=list)
    stabilized: bool = False
    detection_methods: list[str] = field(default_factory=list)
    verification: VerificationResult | None = None

    @property
    def verified(self) -> bool:
        return self.verification is not None and self.verification.passed

    @property
    def replacements(self) -> list[dict[str, Any]]:
        return [
            {
                "bad_frame": record.index,
                "replaced_with": record.replacement if record.resolved else "unresolved",
                "reasons": [reason.to_dict() for reason in record.reasons],
            }
            for record in self.bad_frames
        ]

    def to_dict(self) -> dict[str, Any]:
        verification = self.verification or VerificationResult(passed=False)
        return {
            "total_frames": self.total_frames,
            "bad_frames": [record.to_dict() for record in self.bad_frames],
            "replacements": self.replacements,
            "stabilized": self.stabilized,
            "detection_methods": list(self.detection_methods),
            "verified": self.verified,
            "verification_details": verification.to_dict(),
        }


@dataclass
class AutoFixResult:
    """Corrected frames plus the report describing what was done."""

    frames: list[bytes]
    report: AutoFixReport


def auto_fix(
    frames: Sequence[Frame],
    config: AutoFixConfig = DEFAULT_AUTOFIX_CONFIG,
    codec: FrameCodec | None = None,
    parallel_config: ParallelConfig | None = None,
) -> AutoFixResult:
    """Detect, replace, stabilize and verify a sequence of sprite frames.

    Args:
        frames: Encoded frames after background removal, in order
        config: Detection, stabilization and verification settings
        codec: Image codec (defaults to PillowCodec)
        parallel_config: Worker pool settings

    Returns:
        AutoFixResult with a new list of frames and the run report

    Raises:
        CodecError: If any frame cannot be decoded or encoded
    """
    codec = codec or PillowCodec()
    processor = ParallelFrameProcessor(parallel_config)
    report = AutoFixReport(total_frames=len(frames))

    logger.info(f"Running multi-layer anomaly detection on {len(frames)} frames")
    detection = detect_bad_frames(frames, config.detection, codec, processor)
    report.detection_methods = detection.methods_used

    working = list(frames)
    if detection.bad_frames:
        logger.info(f"Found {len(detection.bad_frames)} bad frames")
        report.bad_frames = assign_replacements(detection.bad_frames, len(frames))
        working = replace_bad_frames(working, report.bad_frames)
    else:
        logger.info("All frames passed quality check")

    logger.info("Stabilizing animation")
    stabilized = stabilize_frames(working, config.stabilization, codec, processor)
    report.stabilized = True

    logger.info("Running final verification")
    report.verification = verify_frames(stabilized, config.verification, codec)

    return AutoFixResult(frames=stabilized, report=report)
