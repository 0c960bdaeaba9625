"""SpriteFix - sprite frame anomaly detection, replacement and stabilization."""

__version__: str = "0.1.0"

from .autofix import AutoFixReport, AutoFixResult, auto_fix
from .buckets import BucketRule, get_preset, load_bucket_rules, range_rule
from .codec import CanvasSpec, FrameCodec, Layer, PillowCodec, RawPixelBuffer, Rect
from .config import (
    AutoFixConfig,
    DetectionConfig,
    StabilizationConfig,
    VerificationConfig,
)
from .detection import Anomaly, BadFrameRecord, DetectionResult, detect_bad_frames
from .error_handling import (
    CodecError,
    ConfigurationError,
    DetectionError,
    SpriteFixError,
    ValidationError,
)
from .replacement import resolve_replacement
from .stabilization import stabilize_frames
from .verification import assess_alignment, verify_frames

__all__ = [
    "Anomaly",
    "AutoFixConfig",
    "AutoFixReport",
    "AutoFixResult",
    "BadFrameRecord",
    "BucketRule",
    "CanvasSpec",
    "CodecError",
    "ConfigurationError",
    "DetectionConfig",
    "DetectionError",
    "DetectionResult",
    "FrameCodec",
    "Layer",
    "PillowCodec",
    "RawPixelBuffer",
    "Rect",
    "SpriteFixError",
    "StabilizationConfig",
    "ValidationError",
    "VerificationConfig",
    "assess_alignment",
    "auto_fix",
    "detect_bad_frames",
    "get_preset",
    "load_bucket_rules",
    "range_rule",
    "resolve_replacement",
    "stabilize_frames",
    "verify_frames",
]
