"""
core/quality/stereo.py — Stereo image analysis.

Measures L/R phase correlation, stereo width, L/R level balance, mono
compatibility, and a windowed imaging-quality score, then maps them to a
qualitative label.

Design:
    - Pure: PcmBuffer (or (2, N) array) → StereoReport.
    - Only exactly two channels are measured. Mono and multichannel input
      take an explicit "not applicable" branch with None measurements; no
      ratio is ever evaluated on a missing channel.
    - Analysis is limited to the first `max_sec` seconds (60 s default),
      which is plenty for a stable estimate on full-length tracks.
"""

from __future__ import annotations

import math

import numpy as np

from core.config import DEFAULT_CONFIG, EngineConfig
from core.pcm import PcmBuffer
from core.quality.types import StereoReport

_EPS = 1e-10
_BALANCE_LIMIT_DB = 20.0
_NOT_APPLICABLE = "Not applicable"

# Overall score thresholds → label, checked in order.
_QUALITY_LABELS: tuple[tuple[float, str], ...] = (
    (0.85, "Professional"),
    (0.7, "High Quality"),
    (0.5, "Good"),
    (0.3, "Fair"),
)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _pearson_correlation(a: np.ndarray, b: np.ndarray) -> float:
    """Pearson correlation coefficient between two 1-D arrays.

    Returns 1.0 if both arrays have zero variance (silence or pure DC) and
    0.0 if only one does (one side carries no signal to correlate).
    """
    if a.size == 0 or b.size == 0:
        return 1.0
    std_a = float(np.std(a))
    std_b = float(np.std(b))
    if std_a < _EPS and std_b < _EPS:
        return 1.0
    if std_a < _EPS or std_b < _EPS:
        return 0.0
    cov = float(np.mean((a - np.mean(a)) * (b - np.mean(b))))
    return float(np.clip(cov / (std_a * std_b), -1.0, 1.0))


def _windowed_correlation_score(left: np.ndarray, right: np.ndarray, window: int) -> float:
    """Energy-weighted mean |correlation| over fixed windows."""
    n_win = left.size // window
    if n_win == 0:
        return abs(_pearson_correlation(left, right))
    lw = left[: n_win * window].reshape(n_win, window)
    rw = right[: n_win * window].reshape(n_win, window)
    lc = lw - lw.mean(axis=1, keepdims=True)
    rc = rw - rw.mean(axis=1, keepdims=True)
    denom = np.sqrt(np.sum(lc * lc, axis=1) * np.sum(rc * rc, axis=1))
    num = np.sum(lc * rc, axis=1)
    corr = np.where(denom > _EPS, num / np.maximum(denom, _EPS), 0.0)
    energy = np.sum(lw * lw + rw * rw, axis=1)
    total = float(energy.sum())
    if total <= _EPS:
        return 1.0
    return float(np.clip(np.sum(np.abs(corr) * energy) / total, 0.0, 1.0))


def _balance_db(left: np.ndarray, right: np.ndarray) -> float:
    rms_l = float(np.sqrt(np.mean(left * left))) if left.size else 0.0
    rms_r = float(np.sqrt(np.mean(right * right))) if right.size else 0.0
    if rms_l < _EPS and rms_r < _EPS:
        return 0.0
    if rms_l < _EPS:
        return _BALANCE_LIMIT_DB
    if rms_r < _EPS:
        return -_BALANCE_LIMIT_DB
    return float(np.clip(20.0 * math.log10(rms_r / rms_l), -_BALANCE_LIMIT_DB, _BALANCE_LIMIT_DB))


def quality_label(correlation: float, width: float, mono_compatibility: float) -> str:
    """Map the three headline measurements to a qualitative label."""
    overall = (abs(correlation) + width + mono_compatibility) / 3.0
    for threshold, label in _QUALITY_LABELS:
        if overall >= threshold:
            return label
    return "Poor"


def _not_applicable(channel_count: int) -> StereoReport:
    is_mono = channel_count == 1
    return StereoReport(
        is_mono=is_mono,
        channels=channel_count,
        phase_correlation=None,
        stereo_width=None,
        lr_balance_db=None,
        mono_compatibility=1.0 if is_mono else None,
        imaging_quality=_NOT_APPLICABLE,
        imaging_quality_score=None,
        analysed_sec=0.0,
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def analyze_stereo(
    channels: np.ndarray,
    sr: int,
    *,
    max_sec: float | None = 60.0,
    window: int = 512,
) -> StereoReport:
    """Measure the stereo image of a channel-major array.

    Args:
        channels: Shape (N,) or (C, N).
        sr:       Sample rate in Hz.
        max_sec:  Analyse at most this many seconds from the start.
        window:   Window length for the imaging-quality score.

    Returns:
        StereoReport. Anything but exactly two channels is "not applicable".

    Raises:
        ValueError: If sr <= 0.
    """
    if sr <= 0:
        raise ValueError(f"Sample rate must be positive, got {sr}")
    x = np.asarray(channels, dtype=np.float64)
    if x.ndim == 1:
        return _not_applicable(1)
    if x.shape[0] != 2:
        return _not_applicable(x.shape[0])

    limit = x.shape[1] if max_sec is None else min(x.shape[1], int(max_sec * sr))
    left = x[0, :limit]
    right = x[1, :limit]

    correlation = _pearson_correlation(left, right)

    mid = (left + right) / 2.0
    side = (left - right) / 2.0
    e_mid = float(np.sum(mid * mid))
    e_side = float(np.sum(side * side))
    width = min(1.0, 2.0 * e_side / (e_mid + e_side)) if e_mid + e_side > _EPS else 0.0

    e_stereo = float(np.sum(left * left + right * right))
    mono_compat = min(1.0, 2.0 * e_mid / e_stereo) if e_stereo > _EPS else 1.0

    return StereoReport(
        is_mono=False,
        channels=2,
        phase_correlation=correlation,
        stereo_width=width,
        lr_balance_db=_balance_db(left, right),
        mono_compatibility=mono_compat,
        imaging_quality=quality_label(correlation, width, mono_compat),
        imaging_quality_score=_windowed_correlation_score(left, right, window),
        analysed_sec=limit / sr,
    )


class StereoAnalyzer:
    """Config-bound wrapper around analyze_stereo()."""

    def __init__(self, config: EngineConfig = DEFAULT_CONFIG) -> None:
        self.config = config

    def analyze(self, pcm: PcmBuffer) -> StereoReport:
        if pcm.channel_count != 2:
            return _not_applicable(pcm.channel_count)
        return analyze_stereo(
            pcm.channels(),
            pcm.sample_rate,
            max_sec=self.config.stereo_max_sec,
            window=self.config.stereo_window,
        )
