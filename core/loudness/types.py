"""
core/loudness/types.py — Frozen data types for the loudness path.

All types are frozen dataclasses — immutable value objects that can be
safely passed between layers and merged into the final report.

Design:
    - Silence is represented by -inf LUFS, never by a clamped number.
      Consumers must special-case it when formatting.
    - Optional platform numbers use None when they cannot be computed
      (silent input).
"""

from __future__ import annotations

import math
from dataclasses import dataclass


@dataclass(frozen=True)
class GatingBlock:
    """Mean-square energy of one gating window.

    Invariants:
        energy >= 0.0
        start_sample >= 0
    """

    energy: float
    """Channel-weighted mean square of the K-weighted samples."""

    start_sample: int
    """Index of the first sample (per channel) covered by the block."""

    @property
    def loudness(self) -> float:
        """Block loudness in LUFS (-inf for zero energy)."""
        if self.energy <= 0.0:
            return -math.inf
        return -0.691 + 10.0 * math.log10(self.energy)


@dataclass(frozen=True)
class GatingResult:
    """Outcome of BS.1770-4 two-stage gating over one block set."""

    integrated: float
    """Gated loudness in LUFS, or -inf if no block survived."""

    provisional: float
    """Loudness after the absolute gate only (L0), or -inf."""

    total_blocks: int
    absolute_passed: int
    relative_passed: int


@dataclass(frozen=True)
class LoudnessReport:
    """Loudness metrics per ITU-R BS.1770-4 / EBU R128.

    `integrated <= short_term_max <= momentary_max` is NOT guaranteed:
    each value is derived independently from its own block set.

    Invariants:
        loudness_range >= 0.0
        0 <= gated_blocks <= total_blocks
    """

    momentary_max: float
    """Loudest 400 ms block (ungated), LUFS or -inf."""

    short_term_max: float
    """Loudest 3 s block (ungated), LUFS or -inf."""

    integrated: float
    """Gated programme loudness after the calibration step, LUFS or -inf."""

    integrated_uncalibrated: float
    """Gated programme loudness before calibration, LUFS or -inf."""

    loudness_range: float
    """EBU R128 LRA in LU (p95 − p10 of gated short-term loudness)."""

    rms_db: float
    """Unweighted RMS level in dBFS over all channels, or -inf."""

    gated_blocks: int
    """Momentary blocks that passed both gates."""

    total_blocks: int
    """Momentary blocks produced."""

    calibration: str = "none"
    """Name of the calibration step applied to `integrated`."""

    @property
    def is_silent(self) -> bool:
        """True when the integrated value is the -inf sentinel."""
        return math.isinf(self.integrated) and self.integrated < 0


@dataclass(frozen=True)
class PlatformTarget:
    """Delivery loudness target for one platform."""

    name: str
    target_lufs: float
    max_true_peak: float
    description: str = ""


@dataclass(frozen=True)
class PlatformCompliance:
    """How a measured track fits one platform's loudness target.

    Invariants:
        gain_change_db is None iff the track is silent
    """

    platform: str
    target_lufs: float

    gain_change_db: float | None
    """Gain the platform applies to reach its target (target − integrated)."""

    projected_true_peak: float | None
    """True peak after that gain change, dBTP."""

    peak_safe: bool
    """projected_true_peak stays at or under the platform ceiling."""

    on_target: bool
    """Integrated loudness within ±1 LU of the target."""
