"""
core/tonal/chroma.py — STFT chromagram for key detection.

Folds the short-time power spectrum into 12 pitch classes:

    pitch_class(f) = round(69 + 12 * log2(f / 440)) mod 12

Only bins inside [80 Hz, 8 kHz] contribute: below 80 Hz the FFT resolution
cannot separate semitones, above 8 kHz the content is mostly overtones and
noise.

Design:
    - Pure: (samples, sr) → (12,) float64 array.
    - 4096-sample symmetric Hann windows, hop 1024.
    - Each bin contributes its energy |X|², so the vector is a
      distribution of spectral energy over pitch classes.
    - The sum is divided by the number of windows, so chroma magnitude
      does not scale with duration.
    - Input shorter than one window returns zeros; callers treat an all-zero
      chroma as "indeterminate key".
"""

from __future__ import annotations

import numpy as np

from core._frames import frame_count, hann_window, iter_windowed_frames
from core.buffers import BufferPool
from core.config import EngineConfig


def pitch_class_of(freq_hz: np.ndarray) -> np.ndarray:
    """Map frequencies (Hz, > 0) to pitch classes 0–11 (C = 0)."""
    midi = 69.0 + 12.0 * np.log2(np.asarray(freq_hz, dtype=np.float64) / 440.0)
    return (np.floor(midi + 0.5).astype(np.int64)) % 12


class ChromagramExtractor:
    """Windowed-FFT chroma extractor.

    Args:
        n_fft:  Window length in samples (default 4096).
        hop:    Hop between windows (default 1024).
        min_hz: Lowest bin frequency folded into chroma (default 80 Hz).
        max_hz: Highest bin frequency folded into chroma (default 8 kHz).
        pool:   Optional BufferPool for the windowed-frame scratch array.
    """

    def __init__(
        self,
        n_fft: int = 4096,
        hop: int = 1024,
        min_hz: float = 80.0,
        max_hz: float = 8000.0,
        pool: BufferPool | None = None,
    ) -> None:
        if n_fft <= 0 or hop <= 0:
            raise ValueError(f"n_fft and hop must be positive, got {n_fft}, {hop}")
        if not 0.0 < min_hz < max_hz:
            raise ValueError(f"Need 0 < min_hz < max_hz, got ({min_hz}, {max_hz})")
        self.n_fft = n_fft
        self.hop = hop
        self.min_hz = min_hz
        self.max_hz = max_hz
        self.pool = pool
        self._window = hann_window(n_fft)

    @classmethod
    def from_config(cls, config: EngineConfig, pool: BufferPool | None = None) -> ChromagramExtractor:
        return cls(
            n_fft=config.chroma_n_fft,
            hop=config.chroma_hop,
            min_hz=config.chroma_min_hz,
            max_hz=config.chroma_max_hz,
            pool=pool,
        )

    def _bin_map(self, sample_rate: int) -> tuple[np.ndarray, np.ndarray]:
        """(bin indices, pitch classes) for bins inside the chroma band."""
        freqs = np.fft.rfftfreq(self.n_fft, d=1.0 / sample_rate)
        idx = np.flatnonzero((freqs >= self.min_hz) & (freqs <= self.max_hz))
        return idx, pitch_class_of(freqs[idx])

    def window_count(self, n_samples: int) -> int:
        return frame_count(n_samples, self.n_fft, self.hop)

    def extract(self, samples: np.ndarray, sample_rate: int) -> np.ndarray:
        """Compute the time-averaged chroma vector.

        Args:
            samples:     1-D mono signal.
            sample_rate: Sample rate in Hz.

        Returns:
            (12,) non-negative float64 array, index 0 = C.

        Raises:
            ValueError: If sample_rate <= 0.
        """
        if sample_rate <= 0:
            raise ValueError(f"Sample rate must be positive, got {sample_rate}")
        y = np.asarray(samples, dtype=np.float64)
        chroma = np.zeros(12)
        n_windows = self.window_count(y.size)
        if n_windows == 0:
            return chroma

        idx, classes = self._bin_map(sample_rate)
        if idx.size == 0:
            return chroma

        power_sum = np.zeros(idx.size)
        for frames in iter_windowed_frames(y, self.n_fft, self.hop, self._window, pool=self.pool):
            spectrum = np.fft.rfft(frames, axis=1)[:, idx]
            power_sum += np.sum(spectrum.real**2 + spectrum.imag**2, axis=0)

        chroma += np.bincount(classes, weights=power_sum, minlength=12)
        return chroma / n_windows
