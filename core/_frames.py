"""
core/_frames.py — Windowed framing shared by the FFT-based analysers.

Private module — used by core/quality/spectral.py and core/tonal/chroma.py.

Frames are produced in batches so a full-length track never materialises
as one (frames, n_fft) matrix. Each batch is multiplied by the analysis
window into a scratch array, optionally borrowed from a BufferPool.
"""

from __future__ import annotations

from collections.abc import Iterator

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from core.buffers import BufferPool

_DEFAULT_BATCH = 128


def hann_window(n: int) -> np.ndarray:
    """Symmetric Hann window: 0.5 * (1 - cos(2*pi*k / (n - 1)))."""
    return np.hanning(n)


def frame_count(n_samples: int, n_fft: int, hop: int) -> int:
    """Number of full windows that fit in n_samples (0 if too short)."""
    if n_fft <= 0 or hop <= 0:
        raise ValueError(f"n_fft and hop must be positive, got {n_fft}, {hop}")
    if n_samples < n_fft:
        return 0
    return 1 + (n_samples - n_fft) // hop


def iter_windowed_frames(
    y: np.ndarray,
    n_fft: int,
    hop: int,
    window: np.ndarray,
    *,
    pool: BufferPool | None = None,
    batch: int = _DEFAULT_BATCH,
) -> Iterator[np.ndarray]:
    """Yield batches of windowed frames with shape (k, n_fft).

    The yielded array is scratch space: it is only valid until the
    generator is advanced again.

    Args:
        y:      1-D signal.
        n_fft:  Window length in samples.
        hop:    Hop between window starts.
        window: Analysis window of length n_fft.
        pool:   Optional BufferPool to borrow scratch arrays from.
        batch:  Maximum frames per batch.
    """
    n_frames = frame_count(len(y), n_fft, hop)
    if n_frames == 0:
        return
    view = sliding_window_view(y, n_fft)[::hop]
    for start in range(0, n_frames, batch):
        chunk = view[start : start + batch]
        if pool is None:
            yield chunk * window
            continue
        with pool.borrowed(chunk.shape) as scratch:
            np.multiply(chunk, window, out=scratch)
            yield scratch
