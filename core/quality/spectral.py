"""
core/quality/spectral.py — Short-time spectral descriptors and 7-band balance.

Measures, on the mono mix:
    - Spectral centroid (magnitude-weighted mean frequency)
    - Spectral rolloff (85% cumulative magnitude)
    - Spectral flatness (geometric / arithmetic mean)
    - 7-band balance: FFT magnitude binned into sub_bass … brilliance and
      expressed as each band's share of the total

Design:
    - Pure: (y, sr) → SpectralReport.
    - 4096-sample Hann windows, hop 2048. Windows with energy below 1e-10
      are skipped so leading/trailing silence does not drag the averages.
    - Frames are processed in batches (core/_frames.py) and optionally use
      a BufferPool for the windowed scratch array.
"""

from __future__ import annotations

import numpy as np

from core._frames import hann_window, iter_windowed_frames
from core.buffers import BufferPool
from core.quality.types import BAND_EDGES, BAND_NAMES, SpectralBalance, SpectralReport

_EPS = 1e-10
_ROLLOFF_FRACTION = 0.85


def _band_bins(n_fft: int, sr: int) -> list[tuple[int, int]]:
    """Bin index range [lo, hi) for each band, clipped to the spectrum."""
    n_bins = n_fft // 2
    ranges = []
    for name in BAND_NAMES:
        low_hz, high_hz = BAND_EDGES[name]
        lo = min(int(low_hz * n_fft / sr), n_bins)
        hi = min(int(high_hz * n_fft / sr), n_bins)
        ranges.append((lo, hi))
    return ranges


def analyze_spectrum(
    y: np.ndarray,
    sr: int,
    *,
    n_fft: int = 4096,
    hop: int = 2048,
    pool: BufferPool | None = None,
) -> SpectralReport:
    """Compute averaged spectral descriptors for a mono signal.

    Args:
        y:     1-D audio array (mono mix).
        sr:    Sample rate in Hz.
        n_fft: FFT window length.
        hop:   Hop between windows.
        pool:  Optional scratch-buffer pool.

    Returns:
        SpectralReport. Input shorter than one window, or entirely below
        the energy floor, yields zeros and windows == 0.

    Raises:
        ValueError: If sr <= 0.
    """
    if sr <= 0:
        raise ValueError(f"Sample rate must be positive, got {sr}")

    window = hann_window(n_fft)
    n_bins = n_fft // 2
    freqs = np.arange(n_bins) * sr / n_fft
    bands = _band_bins(n_fft, sr)

    centroid_sum = 0.0
    rolloff_sum = 0.0
    flatness_sum = 0.0
    band_sums = np.zeros(len(BAND_NAMES))
    count = 0

    for frames in iter_windowed_frames(np.asarray(y, dtype=np.float64), n_fft, hop, window, pool=pool):
        energy = np.sum(frames * frames, axis=1)
        keep = energy >= _EPS
        if not np.any(keep):
            continue
        mag = np.abs(np.fft.rfft(frames[keep], axis=1))[:, :n_bins]
        mag[:, 0] = 0.0  # ignore DC

        total = mag.sum(axis=1)
        active = total > 0.0
        if not np.any(active):
            continue
        mag = mag[active]
        total = total[active]

        centroid_sum += float(np.sum(mag @ freqs / total))

        cumulative = np.cumsum(mag, axis=1)
        rolloff_idx = np.argmax(cumulative >= (_ROLLOFF_FRACTION * total)[:, None], axis=1)
        rolloff_sum += float(np.sum(freqs[rolloff_idx]))

        body = np.maximum(mag[:, 1:], _EPS)
        geometric = np.exp(np.mean(np.log(body), axis=1))
        arithmetic = np.mean(body, axis=1)
        flatness_sum += float(np.sum(geometric / arithmetic))

        for b, (lo, hi) in enumerate(bands):
            if hi > lo:
                band_sums[b] += float(mag[:, lo:hi].sum())
        count += mag.shape[0]

    if count == 0:
        return SpectralReport(
            centroid_hz=0.0,
            rolloff_hz=0.0,
            flatness=0.0,
            balance=SpectralBalance.silent(),
            windows=0,
        )

    band_total = float(band_sums.sum())
    shares = band_sums / band_total if band_total > 0.0 else np.zeros(len(BAND_NAMES))
    return SpectralReport(
        centroid_hz=centroid_sum / count,
        rolloff_hz=rolloff_sum / count,
        flatness=float(np.clip(flatness_sum / count, 0.0, 1.0)),
        balance=SpectralBalance(*(float(s) for s in shares)),
        windows=count,
    )
