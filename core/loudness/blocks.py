"""
core/loudness/blocks.py — Overlapping gating blocks over K-weighted audio.

Windows K-weighted channels into overlapping blocks and computes each
block's channel-weighted mean-square energy (BS.1770-4 eq. 1–2).

Design:
    - Pure: (C, N) array in, list of GatingBlock out.
    - Window = round(window_sec * sr), hop = round((1 - overlap) * window).
      Momentary: 0.4 s / 0.75 overlap (100 ms hop).
      Short-term: 3.0 s / 0.9 overlap (300 ms hop).
    - Per-block means are computed over a strided view of x², so no
      per-block Python loop runs over samples.
    - Input shorter than one window yields an empty list; the gate turns
      that into the -inf sentinel.
"""

from __future__ import annotations

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from core.loudness.types import GatingBlock

_FRONT_GAIN = 1.0
_SURROUND_GAIN = 1.41  # ≈ +1.5 dB per BS.1770-4 Table 3
_LFE_GAIN = 0.0

# Channel layouts → per-channel gains. Anything not listed treats the
# first three channels as front and the rest as surround.
_LAYOUT_GAINS: dict[int, tuple[float, ...]] = {
    1: (_FRONT_GAIN,),
    2: (_FRONT_GAIN, _FRONT_GAIN),
    3: (_FRONT_GAIN, _FRONT_GAIN, _FRONT_GAIN),
    4: (_FRONT_GAIN, _FRONT_GAIN, _SURROUND_GAIN, _SURROUND_GAIN),  # L R Ls Rs
    5: (_FRONT_GAIN, _FRONT_GAIN, _FRONT_GAIN, _SURROUND_GAIN, _SURROUND_GAIN),
    6: (  # L R C LFE Ls Rs
        _FRONT_GAIN,
        _FRONT_GAIN,
        _FRONT_GAIN,
        _LFE_GAIN,
        _SURROUND_GAIN,
        _SURROUND_GAIN,
    ),
}


def channel_gains(channel_count: int) -> tuple[float, ...]:
    """Return BS.1770 channel weights for a standard layout.

    Raises:
        ValueError: If channel_count < 1.
    """
    if channel_count < 1:
        raise ValueError(f"channel_count must be >= 1, got {channel_count}")
    if channel_count in _LAYOUT_GAINS:
        return _LAYOUT_GAINS[channel_count]
    return tuple(_FRONT_GAIN if i < 3 else _SURROUND_GAIN for i in range(channel_count))


def block_geometry(sample_rate: int, window_sec: float, overlap: float) -> tuple[int, int]:
    """Return (window_samples, hop_samples) for a block preset.

    Raises:
        ValueError: On a non-positive sample rate or window, an overlap
            outside [0, 1), or a hop that rounds to zero samples.
    """
    if sample_rate <= 0:
        raise ValueError(f"Sample rate must be positive, got {sample_rate}")
    if window_sec <= 0:
        raise ValueError(f"window_sec must be positive, got {window_sec}")
    if not 0.0 <= overlap < 1.0:
        raise ValueError(f"overlap must be in [0, 1), got {overlap}")
    window = int(round(window_sec * sample_rate))
    hop = int(round((1.0 - overlap) * window))
    if window < 1 or hop < 1:
        raise ValueError(
            f"window {window_sec}s with overlap {overlap} at {sample_rate} Hz "
            "gives an empty window or hop"
        )
    return window, hop


def block_energies(
    filtered: np.ndarray,
    sample_rate: int,
    window_sec: float,
    overlap: float,
    gains: tuple[float, ...] | None = None,
) -> tuple[np.ndarray, np.ndarray]:
    """Vectorised core of compute_blocks().

    Returns:
        (energies, start_samples) — two 1-D arrays of equal length.
    """
    x = np.asarray(filtered, dtype=np.float64)
    if x.ndim == 1:
        x = x[np.newaxis, :]
    n_channels, n_samples = x.shape
    window, hop = block_geometry(sample_rate, window_sec, overlap)

    if gains is None:
        gains = channel_gains(n_channels)
    if len(gains) != n_channels:
        raise ValueError(f"Got {len(gains)} channel gains for {n_channels} channels")

    if n_samples < window:
        return np.zeros(0), np.zeros(0, dtype=np.int64)

    energies: np.ndarray | None = None
    for ch, gain in zip(x, gains):
        if gain == 0.0:
            continue
        ms = sliding_window_view(ch * ch, window)[::hop].mean(axis=1)
        energies = gain * ms if energies is None else energies + gain * ms

    n_blocks = 1 + (n_samples - window) // hop
    if energies is None:
        energies = np.zeros(n_blocks)
    starts = np.arange(n_blocks, dtype=np.int64) * hop
    return energies, starts


def compute_blocks(
    filtered: np.ndarray,
    sample_rate: int,
    window_sec: float,
    overlap: float,
    channel_gains: tuple[float, ...] | None = None,
) -> list[GatingBlock]:
    """Window K-weighted channels into overlapping gating blocks.

    Args:
        filtered:      K-weighted audio, shape (C, N) or (N,) for mono.
        sample_rate:   Sample rate in Hz.
        window_sec:    Block length in seconds (0.4 momentary, 3.0 short-term).
        overlap:       Fractional overlap between consecutive blocks.
        channel_gains: Per-channel weights. None selects the standard
                       layout for the channel count.

    Returns:
        Blocks in time order. Empty if the input is shorter than one window.
    """
    energies, starts = block_energies(filtered, sample_rate, window_sec, overlap, channel_gains)
    return [
        GatingBlock(energy=float(e), start_sample=int(s))
        for e, s in zip(energies, starts)
    ]
