"""
core/loudness/calibration.py — Post-processing steps for integrated loudness.

BS.1770-4 integrated loudness is the standards value. Some deployments
prefer readings that line up with a set of commercial reference masters;
VolumeDependentCalibration adds a level-dependent offset for that purpose.

NON-NORMATIVE: the volume-dependent offsets are an empirical correction,
not part of ITU-R BS.1770-4 or EBU R128. Compliance measurements must use
IdentityCalibration (the default, config name "none").

Design:
    - A calibration is any object with `name` and `apply(lufs) -> lufs`.
    - Only the integrated value is calibrated; momentary and short-term
      maxima are always reported as measured.
    - -inf (silence) passes through unchanged.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Protocol


class LoudnessCalibration(Protocol):
    """Swappable post-processing step for integrated loudness."""

    name: str

    def apply(self, integrated_lufs: float) -> float:
        """Return the calibrated integrated loudness."""
        ...


@dataclass(frozen=True)
class IdentityCalibration:
    """Standards mode: reports BS.1770-4 integrated loudness unchanged."""

    name: str = "none"

    def apply(self, integrated_lufs: float) -> float:
        return integrated_lufs


@dataclass(frozen=True)
class VolumeDependentCalibration:
    """Level-dependent offset matched against reference masters.

    Offsets (LU), chosen by the uncalibrated integrated value:
        > loud_threshold                      → loud_offset   (+0.77)
        (quiet_threshold, loud_threshold]     → medium_offset (+0.29)
        <= quiet_threshold                    → quiet_offset  (+1.58)
    """

    name: str = "reference-masters"
    loud_threshold: float = -15.0
    quiet_threshold: float = -22.0
    loud_offset: float = 0.77
    medium_offset: float = 0.29
    quiet_offset: float = 1.58

    def __post_init__(self) -> None:
        if self.quiet_threshold >= self.loud_threshold:
            raise ValueError(
                f"quiet_threshold ({self.quiet_threshold}) must be below "
                f"loud_threshold ({self.loud_threshold})"
            )

    def offset_for(self, integrated_lufs: float) -> float:
        """Offset in LU that apply() would add."""
        if integrated_lufs > self.loud_threshold:
            return self.loud_offset
        if integrated_lufs > self.quiet_threshold:
            return self.medium_offset
        return self.quiet_offset

    def apply(self, integrated_lufs: float) -> float:
        if not math.isfinite(integrated_lufs):
            return integrated_lufs
        return integrated_lufs + self.offset_for(integrated_lufs)


_CALIBRATIONS: dict[str, LoudnessCalibration] = {
    "none": IdentityCalibration(),
    "reference-masters": VolumeDependentCalibration(),
}


def calibration_from_name(name: str) -> LoudnessCalibration:
    """Look up a calibration step by its config name.

    Raises:
        ValueError: If the name is unknown.
    """
    try:
        return _CALIBRATIONS[name]
    except KeyError:
        raise ValueError(
            f"Unknown calibration {name!r}. Available: {sorted(_CALIBRATIONS)}"
        ) from None
