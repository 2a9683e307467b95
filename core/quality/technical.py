"""
core/quality/technical.py — Technical quality analysis on raw (unweighted) PCM.

Implements:
    - True peak with compliance flags               (true_peak.py)
    - Clipping detection (|x| >= 0.99)
    - DC offset per channel
    - Spectral descriptors and 7-band balance       (spectral.py)
    - Silence detection (leading, trailing, interior gaps)
    - Mastering heuristics: PLR, dynamic range, punchiness, warmth,
      clarity, spaciousness, overall quality score

Design:
    - Pure: PcmBuffer + config → TechnicalQualityReport.
    - All metrics are descriptive comparisons against fixed constants;
      there is no statistical gating here.
    - The mastering block depends on integrated loudness. analyze() takes
      it when known; attach_loudness() fills it in afterwards when the
      loudness branch ran concurrently.
"""

from __future__ import annotations

import math
from dataclasses import replace

import numpy as np

from core.buffers import BufferPool
from core.config import DEFAULT_CONFIG, EngineConfig
from core.pcm import PcmBuffer
from core.quality.spectral import analyze_spectrum
from core.quality.true_peak import measure_true_peak
from core.quality.types import (
    ClippingReport,
    MasteringReport,
    SilenceReport,
    SpectralBalance,
    TechnicalQualityReport,
)

_EPS = 1e-10
_RMS_WINDOW_SEC = 0.1
_PUNCH_WINDOW_SEC = 0.01
_PUNCH_SCALE = 10.0
_SPACIOUS_RANGE_DB = 30.0
_LOUDNESS_SWEET_SPOT = (-16.0, -8.0)
_BALANCE_RANGE = (0.1, 2.0)


# ---------------------------------------------------------------------------
# Individual metrics
# ---------------------------------------------------------------------------


def detect_clipping(channels: np.ndarray, threshold: float = 0.99) -> ClippingReport:
    """Count samples at or above `threshold` in absolute value."""
    x = np.asarray(channels, dtype=np.float64)
    clipped = int(np.count_nonzero(np.abs(x) >= threshold))
    percentage = 100.0 * clipped / x.size if x.size else 0.0
    return ClippingReport(
        has_clipping=clipped > 0,
        clipped_samples=clipped,
        clipping_percentage=percentage,
    )


def dc_offset(channels: np.ndarray) -> tuple[float, ...]:
    """Mean sample value of each channel of a (C, N) array."""
    x = np.asarray(channels, dtype=np.float64)
    if x.ndim == 1:
        x = x[np.newaxis, :]
    if x.shape[1] == 0:
        return tuple(0.0 for _ in range(x.shape[0]))
    return tuple(float(v) for v in np.mean(x, axis=1))


def detect_silence(
    y: np.ndarray,
    sr: int,
    threshold_db: float = -60.0,
    min_gap_sec: float = 0.1,
) -> SilenceReport:
    """Find silence at the edges of a mono signal and count interior gaps.

    A sample is silent when |x| <= 10^(threshold_db / 20). Interior gaps
    are silent runs bounded by sound on both sides and at least
    `min_gap_sec` long.
    """
    n = len(y)
    if n == 0:
        return SilenceReport(leading_sec=0.0, trailing_sec=0.0, gap_count=0)

    loud = np.abs(y) > 10.0 ** (threshold_db / 20.0)
    loud_idx = np.flatnonzero(loud)
    if loud_idx.size == 0:
        # Entirely silent: both edges span the whole clip.
        return SilenceReport(leading_sec=n / sr, trailing_sec=n / sr, gap_count=0)

    leading = loud_idx[0] / sr
    trailing = (n - 1 - loud_idx[-1]) / sr

    # Silent runs between consecutive loud samples
    spacing = np.diff(loud_idx) - 1
    min_gap = int(math.ceil(min_gap_sec * sr))
    gaps = int(np.count_nonzero(spacing >= max(min_gap, 1)))
    return SilenceReport(leading_sec=float(leading), trailing_sec=float(trailing), gap_count=gaps)


def _window_views(x: np.ndarray, win: int) -> list[np.ndarray]:
    """Split x into (k, win) full windows plus a trailing partial window."""
    n_full = len(x) // win
    parts = [x[: n_full * win].reshape(n_full, win)]
    if len(x) > n_full * win:
        parts.append(x[n_full * win :][np.newaxis, :])
    return parts


def dynamic_range_db(y: np.ndarray, sr: int) -> float:
    """p90 − p10 of non-silent 100 ms RMS levels, in dB. 0.0 if none."""
    win = max(1, int(sr * _RMS_WINDOW_SEC))
    rms = np.concatenate(
        [np.sqrt(np.mean(part * part, axis=1)) for part in _window_views(y, win) if part.size]
        or [np.zeros(0)]
    )
    rms = rms[rms > _EPS]
    if rms.size == 0:
        return 0.0
    ordered = np.sort(20.0 * np.log10(rms))
    p90 = ordered[int(ordered.size * 0.9)]
    p10 = ordered[int(ordered.size * 0.1)]
    return float(p90 - p10)


def punchiness(y: np.ndarray, sr: int) -> float:
    """Mean peak-to-average ratio over 10 ms windows, scaled to [0, 1]."""
    win = max(1, int(sr * _PUNCH_WINDOW_SEC))
    n_full = len(y) // win
    if n_full == 0:
        return 0.0
    ratio_sum = 0.0
    for part in _window_views(np.abs(y), win):
        avg = np.mean(part, axis=1)
        peak = np.max(part, axis=1)
        active = avg > _EPS
        ratio_sum += float(np.sum(peak[active] / avg[active]))
    return float(min(ratio_sum / n_full / _PUNCH_SCALE, 1.0))


def assess_mastering(
    *,
    punch: float,
    dynamic_range: float,
    balance: SpectralBalance,
    sample_peak_db: float,
    integrated_lufs: float | None,
) -> MasteringReport:
    """Combine raw measurements into the mastering heuristics.

    Args:
        punch:           punchiness() result.
        dynamic_range:   dynamic_range_db() result.
        balance:         Spectral balance shares.
        sample_peak_db:  Sample peak in dBFS.
        integrated_lufs: Integrated loudness, or None/-inf if unknown or silent.
    """
    rel = balance.relative_levels()
    warmth = min((rel["sub_bass"] + rel["bass"]) / 2.0, 1.0)
    clarity = min((rel["presence"] + rel["brilliance"]) / 2.0, 1.0)
    spaciousness = min(dynamic_range / _SPACIOUS_RANGE_DB, 1.0)

    known = integrated_lufs is not None and math.isfinite(integrated_lufs)
    plr = sample_peak_db - integrated_lufs if known and math.isfinite(sample_peak_db) else None

    lo, hi = _LOUDNESS_SWEET_SPOT
    loudness_score = 1.0 if known and lo <= integrated_lufs <= hi else 0.5
    b_lo, b_hi = _BALANCE_RANGE
    balance_score = 1.0 if all(b_lo < v < b_hi for v in rel.values()) else 0.7

    score = (loudness_score + balance_score + punch + warmth + clarity) / 5.0 * 100.0
    return MasteringReport(
        plr=plr,
        dynamic_range=dynamic_range,
        punchiness=punch,
        warmth=warmth,
        clarity=clarity,
        spaciousness=max(spaciousness, 0.0),
        quality_score=float(np.clip(score, 0.0, 100.0)),
    )


def attach_loudness(report: TechnicalQualityReport, integrated_lufs: float) -> TechnicalQualityReport:
    """Recompute the loudness-dependent mastering fields of a report."""
    m = report.mastering
    mastering = assess_mastering(
        punch=m.punchiness,
        dynamic_range=m.dynamic_range,
        balance=report.spectral.balance,
        sample_peak_db=report.true_peak.sample_peak_db,
        integrated_lufs=integrated_lufs,
    )
    return replace(report, mastering=mastering)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


class TechnicalQualityAnalyzer:
    """Runs every raw-PCM technical metric with one configuration.

    Args:
        config: Engine configuration (ceilings, clipping threshold, framing).
        pool:   Optional BufferPool for FFT scratch space.
    """

    def __init__(self, config: EngineConfig = DEFAULT_CONFIG, pool: BufferPool | None = None) -> None:
        self.config = config
        self.pool = pool

    def analyze(self, pcm: PcmBuffer, integrated_lufs: float | None = None) -> TechnicalQualityReport:
        """Measure a PCM buffer.

        Args:
            pcm:             Validated PCM.
            integrated_lufs: Integrated loudness if already known; used for
                             PLR and the quality score.
        """
        cfg = self.config
        channels = pcm.channels()
        mono = pcm.mono()
        sr = pcm.sample_rate

        true_peak = measure_true_peak(
            channels,
            sr,
            oversample=cfg.true_peak_oversample,
            ceilings=cfg.true_peak_ceilings,
        )
        spectral = analyze_spectrum(
            mono, sr, n_fft=cfg.spectral_n_fft, hop=cfg.spectral_hop, pool=self.pool
        )
        mastering = assess_mastering(
            punch=punchiness(mono, sr),
            dynamic_range=dynamic_range_db(mono, sr),
            balance=spectral.balance,
            sample_peak_db=true_peak.sample_peak_db,
            integrated_lufs=integrated_lufs,
        )
        return TechnicalQualityReport(
            true_peak=true_peak,
            clipping=detect_clipping(channels, cfg.clipping_threshold),
            dc_offset=dc_offset(channels),
            spectral=spectral,
            silence=detect_silence(mono, sr, cfg.silence_threshold_db, cfg.min_gap_sec),
            mastering=mastering,
        )
