from __future__ import annotations

"""Schemas for SpriteFix report exports."""

from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

Severity = Literal["moderate", "severe"]
ReplacementRef = Union[int, Literal["unresolved"]]


# --------------------------------------------------------------------------- #
# Report schema
# --------------------------------------------------------------------------- #

class AnomalyV1(BaseModel):
    """One anomaly; method-specific fields are accepted as extras."""

    type: str
    severity: Severity

    model_config = ConfigDict(extra="allow")


class BadFrameV1(BaseModel):
    index: int = Field(ge=0)
    reasons: list[AnomalyV1] = Field(min_length=1)
    replacement: ReplacementRef
    severity: Severity

    @model_validator(mode="after")
    def _check_replacement(self) -> BadFrameV1:
        if self.replacement == self.index:
            raise ValueError(f"Frame {self.index} cannot replace itself")
        expected = "severe" if any(r.severity == "severe" for r in self.reasons) else "moderate"
        if self.severity != expected:
            raise ValueError(f"Frame {self.index} severity should be '{expected}'")
        return self


class ReplacementV1(BaseModel):
    bad_frame: int = Field(ge=0)
    replaced_with: ReplacementRef
    reasons: list[AnomalyV1]


class VerificationV1(BaseModel):
    passed: bool
    issues: list[str]


class AutoFixReportV1(BaseModel):
    """Validated auto-fix report as written to JSON."""

    total_frames: int = Field(ge=0)
    bad_frames: list[BadFrameV1]
    replacements: list[ReplacementV1]
    stabilized: bool
    detection_methods: list[str]
    verified: bool
    verification_details: VerificationV1

    @model_validator(mode="after")
    def _check_indices(self) -> AutoFixReportV1:
        bad = {frame.index for frame in self.bad_frames}
        for frame in self.bad_frames:
            if frame.index >= self.total_frames:
                raise ValueError(f"Bad frame index {frame.index} out of range")
            if isinstance(frame.replacement, int) and frame.replacement in bad:
                raise ValueError(
                    f"Frame {frame.index} is replaced by frame {frame.replacement}, which is also bad"
                )
        return self


# --------------------------------------------------------------------------- #
# Convenience helpers
# --------------------------------------------------------------------------- #

def validate_report(data: dict) -> AutoFixReportV1:
    """Validate *data* against :class:`AutoFixReportV1`.

    Raises ``pydantic.ValidationError`` if the report is invalid.
    """
    return AutoFixReportV1.model_validate(data)


def is_valid_report(data: dict) -> bool:
    """Return *True* if *data* passes :class:`AutoFixReportV1` validation."""
    try:
        validate_report(data)
        return True
    except ValidationError:
        return False
