"""Configuration settings for SpriteFix."""

from dataclasses import dataclass, field

from .buckets import BucketRule


@dataclass
class DetectionConfig:
    """Configuration for multi-method anomaly detection.

    The ratio, margin and strictness values were tuned against a single
    reference animation. Expect to recalibrate them per art style.
    """

    # Ordered (predicate, label) rules; pixels matching none land in "other"
    BUCKET_RULES: list[BucketRule] = field(default_factory=list)

    # Bucket that gets the more specific "primary_color_loss" diagnosis
    PRIMARY_BUCKET: str | None = None

    # Method 1: color histogram
    COLOR_RATIO_THRESHOLD: float = 0.35  # Flag if < 35% of median count
    COLOR_SEVERE_RATIO: float = 0.2
    COLOR_PRESENCE_FLOOR: int = 50  # Bucket median must exceed this to be checked
    PRIMARY_PRESENCE_FLOOR: int = 100

    # Method 2: alpha channel IQR analysis
    OPACITY_IQR_MULTIPLIER: float = 2.5
    HALO_MARGIN: float = 0.08  # Semi-transparent ratio above Q3
    HALO_SEVERE_MARGIN: float = 0.15

    # Method 3: adjacent-frame structural similarity
    SSIM_THRESHOLD: float = 0.55  # Absolute floor, very lenient
    SSIM_IQR_MULTIPLIER: float = 3.0  # Strict outlier floor: Q1 - 3.0 * IQR
    SSIM_SEVERE_FLOOR: float = 0.4

    # Method 4: pixel-difference outliers
    PIXEL_DIFF_THRESHOLD: float = 0.15  # Floor for the outlier bound
    PIXEL_DIFF_OUTLIER_MULTIPLIER: float = 2.5
    PIXEL_DIFF_SEVERE_MULTIPLIER: float = 4.0
    PIXEL_DIFF_TOLERANCE: float = 0.1

    # Alpha thresholds (0-255)
    TRANSPARENT_ALPHA_MAX: int = 5
    OPAQUE_ALPHA_MIN: int = 250  # Opaque means strictly above this
    BUCKET_ALPHA_THRESHOLD: int = 128  # Only pixels above this are bucketed
    SSIM_ALPHA_THRESHOLD: int = 64

    # Statistics are meaningless below this many frames
    MIN_FRAMES: int = 3

    def __post_init__(self) -> None:
        if not 0.0 < self.COLOR_RATIO_THRESHOLD <= 1.0:
            raise ValueError(
                f"COLOR_RATIO_THRESHOLD must be between 0 and 1, got {self.COLOR_RATIO_THRESHOLD}"
            )
        if not 0.0 <= self.COLOR_SEVERE_RATIO <= 1.0:
            raise ValueError(
                f"COLOR_SEVERE_RATIO must be between 0 and 1, got {self.COLOR_SEVERE_RATIO}"
            )
        if self.COLOR_PRESENCE_FLOOR < 0 or self.PRIMARY_PRESENCE_FLOOR < 0:
            raise ValueError("Presence floors must be non-negative")

        if self.OPACITY_IQR_MULTIPLIER <= 0:
            raise ValueError(
                f"OPACITY_IQR_MULTIPLIER must be positive, got {self.OPACITY_IQR_MULTIPLIER}"
            )
        if self.HALO_MARGIN < 0 or self.HALO_SEVERE_MARGIN < 0:
            raise ValueError(
                f"Halo margins must be non-negative, got {self.HALO_MARGIN} and {self.HALO_SEVERE_MARGIN}"
            )

        if not 0.0 <= self.SSIM_THRESHOLD <= 1.0:
            raise ValueError(
                f"SSIM_THRESHOLD must be between 0 and 1, got {self.SSIM_THRESHOLD}"
            )
        if self.SSIM_IQR_MULTIPLIER <= 0:
            raise ValueError(
                f"SSIM_IQR_MULTIPLIER must be positive, got {self.SSIM_IQR_MULTIPLIER}"
            )

        if not 0.0 <= self.PIXEL_DIFF_THRESHOLD <= 1.0:
            raise ValueError(
                f"PIXEL_DIFF_THRESHOLD must be between 0 and 1, got {self.PIXEL_DIFF_THRESHOLD}"
            )
        if self.PIXEL_DIFF_OUTLIER_MULTIPLIER <= 0 or self.PIXEL_DIFF_SEVERE_MULTIPLIER <= 0:
            raise ValueError("Pixel-diff multipliers must be positive")
        if not 0.0 <= self.PIXEL_DIFF_TOLERANCE <= 1.0:
            raise ValueError(
                f"PIXEL_DIFF_TOLERANCE must be between 0 and 1, got {self.PIXEL_DIFF_TOLERANCE}"
            )

        alpha_values = [
            self.TRANSPARENT_ALPHA_MAX,
            self.OPAQUE_ALPHA_MIN,
            self.BUCKET_ALPHA_THRESHOLD,
            self.SSIM_ALPHA_THRESHOLD,
        ]
        if any(a < 0 or a > 255 for a in alpha_values):
            raise ValueError(f"Alpha thresholds must be within 0-255, got {alpha_values}")
        if self.TRANSPARENT_ALPHA_MAX >= self.OPAQUE_ALPHA_MIN:
            raise ValueError("TRANSPARENT_ALPHA_MAX must be < OPAQUE_ALPHA_MIN")

        if self.MIN_FRAMES < 3:
            raise ValueError(f"MIN_FRAMES must be at least 3, got {self.MIN_FRAMES}")

        labels = [rule.label for rule in self.BUCKET_RULES]
        if len(labels) != len(set(labels)):
            raise ValueError(f"Bucket labels must be unique, got {labels}")
        if "other" in labels:
            raise ValueError("'other' is reserved for unmatched pixels")
        if self.PRIMARY_BUCKET is not None and self.PRIMARY_BUCKET not in labels:
            raise ValueError(
                f"PRIMARY_BUCKET '{self.PRIMARY_BUCKET}' is not one of the bucket labels {labels}"
            )


@dataclass
class StabilizationConfig:
    """Configuration for bottom-anchored canvas stabilization."""

    # Extra canvas pixels per axis beyond the largest content box
    MARGIN: int = 20

    # Pixels with alpha above this count as content
    CONTENT_ALPHA_THRESHOLD: int = 20

    def __post_init__(self) -> None:
        if self.MARGIN < 0:
            raise ValueError(f"MARGIN must be non-negative, got {self.MARGIN}")
        if not 0 <= self.CONTENT_ALPHA_THRESHOLD <= 255:
            raise ValueError(
                f"CONTENT_ALPHA_THRESHOLD must be within 0-255, got {self.CONTENT_ALPHA_THRESHOLD}"
            )


@dataclass
class VerificationConfig:
    """Configuration for the final verification and alignment checks."""

    VARIANCE_THRESHOLD: float = 0.30  # Max pixel-diff ratio between sampled frames
    PIXEL_DIFF_TOLERANCE: float = 0.1

    # Alignment assessment
    JITTER_TOLERANCE_PX: int = 10
    CENTERING_TOLERANCE_PX: int = 20
    CONTENT_ALPHA_THRESHOLD: int = 20

    def __post_init__(self) -> None:
        if not 0.0 < self.VARIANCE_THRESHOLD <= 1.0:
            raise ValueError(
                f"VARIANCE_THRESHOLD must be between 0 and 1, got {self.VARIANCE_THRESHOLD}"
            )
        if not 0.0 <= self.PIXEL_DIFF_TOLERANCE <= 1.0:
            raise ValueError(
                f"PIXEL_DIFF_TOLERANCE must be between 0 and 1, got {self.PIXEL_DIFF_TOLERANCE}"
            )
        if self.JITTER_TOLERANCE_PX < 0 or self.CENTERING_TOLERANCE_PX < 0:
            raise ValueError("Alignment tolerances must be non-negative")


@dataclass
class AutoFixConfig:
    """Complete configuration for one auto-fix run."""

    detection: DetectionConfig = field(default_factory=DetectionConfig)
    stabilization: StabilizationConfig = field(default_factory=StabilizationConfig)
    verification: VerificationConfig = field(default_factory=VerificationConfig)


# Default configuration instances
DEFAULT_DETECTION_CONFIG = DetectionConfig()
DEFAULT_STABILIZATION_CONFIG = StabilizationConfig()
DEFAULT_VERIFICATION_CONFIG = VerificationConfig()
DEFAULT_AUTOFIX_CONFIG = AutoFixConfig()
