"""
core/buffers.py — Reusable scratch buffers for back-to-back analyses.

FFT framing allocates a large (frames, n_fft) scratch array per batch.
When the host analyses many files in a row, BufferPool hands the same
arrays back out instead of allocating fresh ones each time.

Design:
    - Buffers are keyed by exact shape; float64 only.
    - Every acquire() zero-fills the buffer before returning it, so no
      samples from an unrelated file can leak into the next analysis.
    - Thread-safe: branches may run concurrently and share one pool.
    - The free list per shape is capped at max_buffers; extra releases are
      dropped for the garbage collector.

Usage::

    pool = BufferPool()
    with pool.borrowed((128, 4096)) as scratch:
        np.multiply(frames, window, out=scratch)
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

import numpy as np


@dataclass
class PoolStats:
    """Runtime counters for a BufferPool instance."""

    hits: int = 0
    misses: int = 0
    dropped: int = 0  # releases beyond max_buffers


class BufferPool:
    """Thread-safe pool of zeroed float64 scratch arrays.

    Args:
        max_buffers: Maximum idle buffers retained per shape (default 4).
    """

    def __init__(self, max_buffers: int = 4) -> None:
        if max_buffers < 0:
            raise ValueError(f"max_buffers must be non-negative, got {max_buffers}")
        self.max_buffers = max_buffers
        self.stats = PoolStats()
        self._free: dict[tuple[int, ...], list[np.ndarray]] = {}
        self._lock = threading.Lock()

    def acquire(self, shape: tuple[int, ...]) -> np.ndarray:
        """Return a zero-filled buffer of the given shape."""
        key = tuple(int(s) for s in shape)
        with self._lock:
            free = self._free.get(key)
            buf = free.pop() if free else None
            if buf is None:
                self.stats.misses += 1
            else:
                self.stats.hits += 1
        if buf is None:
            return np.zeros(key, dtype=np.float64)
        buf.fill(0.0)
        return buf

    def release(self, buf: np.ndarray) -> None:
        """Return a buffer to the pool for later reuse."""
        key = tuple(buf.shape)
        with self._lock:
            free = self._free.setdefault(key, [])
            if len(free) >= self.max_buffers:
                self.stats.dropped += 1
                return
            free.append(buf)

    @contextmanager
    def borrowed(self, shape: tuple[int, ...]) -> Iterator[np.ndarray]:
        """Context manager form of acquire()/release()."""
        buf = self.acquire(shape)
        try:
            yield buf
        finally:
            self.release(buf)

    def idle_count(self) -> int:
        """Total number of idle buffers held across all shapes."""
        with self._lock:
            return sum(len(v) for v in self._free.values())

    def clear(self) -> None:
        """Drop every idle buffer."""
        with self._lock:
            self._free.clear()
