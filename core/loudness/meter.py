"""
core/loudness/meter.py — Full loudness measurement from raw channels.

Wires the loudness stages together:

    channels (C, N)
        ├─ KWeightingFilter.apply_channels()   [k_weighting.py]
        ├─ compute_blocks() × {momentary, short-term}   [blocks.py]
        ├─ LoudnessGate.evaluate() / max_loudness()     [gating.py]
        └─ calibration.apply()                  [calibration.py]

Design:
    - Pure: numpy arrays + config in, LoudnessReport out.
    - loudness_report() starts from already-weighted audio so the engine
      can time K-weighting and block processing separately.
"""

from __future__ import annotations

import math

import numpy as np

from core.config import DEFAULT_CONFIG, EngineConfig
from core.loudness.blocks import block_energies, channel_gains
from core.loudness.calibration import LoudnessCalibration, calibration_from_name
from core.loudness.gating import LoudnessGate, max_loudness
from core.loudness.k_weighting import KWeightingFilter
from core.loudness.types import LoudnessReport


def rms_db(channels: np.ndarray) -> float:
    """Unweighted RMS level over every sample of every channel, in dBFS."""
    x = np.asarray(channels, dtype=np.float64)
    if x.size == 0:
        return -math.inf
    ms = float(np.mean(x * x))
    if ms <= 0.0:
        return -math.inf
    return 10.0 * math.log10(ms)


def loudness_report(
    weighted: np.ndarray,
    sample_rate: int,
    *,
    rms: float,
    config: EngineConfig = DEFAULT_CONFIG,
    calibration: LoudnessCalibration | None = None,
) -> LoudnessReport:
    """Gate K-weighted channels into a LoudnessReport.

    Args:
        weighted:    K-weighted audio, shape (C, N).
        sample_rate: Sample rate in Hz.
        rms:         Unweighted RMS in dBFS (from rms_db on the raw audio).
        config:      Window presets and gate thresholds.
        calibration: Post-processing step. None selects config.calibration.

    Returns:
        LoudnessReport. Audio shorter than one block yields -inf sentinels.
    """
    if calibration is None:
        calibration = calibration_from_name(config.calibration)
    gains = channel_gains(weighted.shape[0])

    momentary, _ = block_energies(
        weighted, sample_rate, config.momentary_window_sec, config.momentary_overlap, gains
    )
    short_term, _ = block_energies(
        weighted, sample_rate, config.short_term_window_sec, config.short_term_overlap, gains
    )

    gate = LoudnessGate(config.absolute_gate_lufs, config.relative_gate_lu)
    result = gate.evaluate(momentary)

    return LoudnessReport(
        momentary_max=max_loudness(momentary),
        short_term_max=max_loudness(short_term),
        integrated=calibration.apply(result.integrated),
        integrated_uncalibrated=result.integrated,
        loudness_range=gate.loudness_range(short_term, config.lra_relative_gate_lu),
        rms_db=rms,
        gated_blocks=result.relative_passed,
        total_blocks=result.total_blocks,
        calibration=calibration.name,
    )


def measure_loudness(
    channels: np.ndarray,
    sample_rate: int,
    *,
    config: EngineConfig = DEFAULT_CONFIG,
    calibration: LoudnessCalibration | None = None,
) -> LoudnessReport:
    """K-weight and gate raw audio in one call.

    Args:
        channels:    Raw audio, shape (C, N) or (N,) for mono.
        sample_rate: Sample rate in Hz.

    Returns:
        LoudnessReport.

    Raises:
        InvalidInputError: If sample_rate is not usable for K-weighting.
    """
    x = np.asarray(channels, dtype=np.float64)
    if x.ndim == 1:
        x = x[np.newaxis, :]
    weighted = KWeightingFilter(sample_rate).apply_channels(x)
    return loudness_report(
        weighted, sample_rate, rms=rms_db(x), config=config, calibration=calibration
    )
