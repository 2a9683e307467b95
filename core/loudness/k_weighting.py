"""
core/loudness/k_weighting.py — K-weighting filter per ITU-R BS.1770-4.

Implements the two-stage "K" frequency weighting that precedes every
loudness measurement:
    1. High-shelf pre-filter (~+4 dB above ~1.7 kHz, models the head)
    2. RLB high-pass (~38 Hz, revised low-frequency B-curve)

Design:
    - Coefficients are derived analytically from the analog prototype via
      the bilinear transform with frequency pre-warping, so any sample rate
      is supported. At 48 kHz they reproduce the published BS.1770 table
      to within 1e-8.
    - The cascade runs as second-order sections through scipy.signal.sosfilt.
      Each call starts from a fresh zero state (two delay elements per
      section per channel); no state is carried between channels or calls.
    - Pure: numpy arrays in, numpy arrays out. NaN/Inf propagate unchanged.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np
from scipy import signal as scipy_signal

from core.errors import InvalidInputError

# Analog prototype parameters (BS.1770-4, as used by libebur128)
_SHELF_F0 = 1681.974450955533
_SHELF_GAIN_DB = 3.999843853973347
_SHELF_Q = 0.7071752369554196
_SHELF_VB_EXP = 0.4996667741545416

_HIGHPASS_F0 = 38.13547087602444
_HIGHPASS_Q = 0.5003270373238773

# Frames per sosfilt call when writing into a caller-supplied buffer
_OUT_CHUNK = 65536


@dataclass(frozen=True)
class Biquad:
    """Normalised biquad coefficients (a0 == 1)."""

    b: tuple[float, float, float]
    a: tuple[float, float, float]

    def as_sos_row(self) -> list[float]:
        """Return the row layout scipy expects: [b0, b1, b2, a0, a1, a2]."""
        return [*self.b, *self.a]


# ---------------------------------------------------------------------------
# Coefficient design
# ---------------------------------------------------------------------------


def design_high_shelf(sample_rate: int) -> Biquad:
    """Stage 1: high-shelf pre-filter for the given sample rate."""
    k = math.tan(math.pi * _SHELF_F0 / sample_rate)
    vh = 10.0 ** (_SHELF_GAIN_DB / 20.0)
    vb = vh**_SHELF_VB_EXP
    a0 = 1.0 + k / _SHELF_Q + k * k
    b = (
        (vh + vb * k / _SHELF_Q + k * k) / a0,
        2.0 * (k * k - vh) / a0,
        (vh - vb * k / _SHELF_Q + k * k) / a0,
    )
    a = (1.0, 2.0 * (k * k - 1.0) / a0, (1.0 - k / _SHELF_Q + k * k) / a0)
    return Biquad(b=b, a=a)


def design_high_pass(sample_rate: int) -> Biquad:
    """Stage 2: RLB high-pass for the given sample rate."""
    k = math.tan(math.pi * _HIGHPASS_F0 / sample_rate)
    a0 = 1.0 + k / _HIGHPASS_Q + k * k
    a = (1.0, 2.0 * (k * k - 1.0) / a0, (1.0 - k / _HIGHPASS_Q + k * k) / a0)
    return Biquad(b=(1.0, -2.0, 1.0), a=a)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


class KWeightingFilter:
    """BS.1770-4 K-weighting cascade for one sample rate.

    Example:
        >>> kw = KWeightingFilter(48000)
        >>> weighted = kw.apply(samples)
    """

    def __init__(self, sample_rate: int) -> None:
        """Design both stages for `sample_rate`.

        Raises:
            InvalidInputError: If sample_rate <= 0 or the shelf frequency is
                not below Nyquist.
        """
        if sample_rate <= 0:
            raise InvalidInputError(f"Sample rate must be positive, got {sample_rate}")
        if sample_rate <= 2.0 * _SHELF_F0:
            raise InvalidInputError(
                f"Sample rate {sample_rate} Hz is too low for K-weighting "
                f"(needs > {2.0 * _SHELF_F0:.0f} Hz)"
            )
        self.sample_rate = sample_rate
        self.shelf = design_high_shelf(sample_rate)
        self.high_pass = design_high_pass(sample_rate)
        self._sos = np.array([self.shelf.as_sos_row(), self.high_pass.as_sos_row()])

    @property
    def sos(self) -> np.ndarray:
        """Second-order sections, shape (2, 6). Returns a copy."""
        return self._sos.copy()

    def initial_state(self, channel_count: int = 1) -> np.ndarray:
        """Zeroed filter state: (sections, channels, 2) delay elements."""
        return np.zeros((self._sos.shape[0], channel_count, 2))

    def apply(self, samples: np.ndarray) -> np.ndarray:
        """K-weight one channel.

        Args:
            samples: 1-D array of samples.

        Returns:
            Filtered float64 array, same length as samples.
        """
        x = np.asarray(samples, dtype=np.float64)
        if x.size == 0:
            return x.copy()
        zi = self.initial_state(1)[:, 0, :]
        y, _ = scipy_signal.sosfilt(self._sos, x, zi=zi)
        return y

    def apply_channels(self, channels: np.ndarray, out: np.ndarray | None = None) -> np.ndarray:
        """K-weight each channel of a (C, N) array independently.

        Args:
            channels: (C, N) raw audio.
            out:      Optional float64 (C, N) destination, e.g. a pooled
                      buffer. It is filled in chunks of _OUT_CHUNK frames
                      with the filter state carried across chunk edges, so
                      the result matches the single-pass output.

        Returns:
            The filtered (C, N) array (`out` itself when given).
        """
        x = np.asarray(channels, dtype=np.float64)
        if x.ndim != 2:
            raise ValueError(f"Expected (C, N) array, got shape {x.shape}")
        if out is None:
            if x.shape[1] == 0:
                return x.copy()
            y, _ = scipy_signal.sosfilt(self._sos, x, axis=-1, zi=self.initial_state(x.shape[0]))
            return y

        if out.shape != x.shape:
            raise ValueError(f"out has shape {out.shape}, expected {x.shape}")
        zi = self.initial_state(x.shape[0])
        for start in range(0, x.shape[1], _OUT_CHUNK):
            stop = min(start + _OUT_CHUNK, x.shape[1])
            y, zi = scipy_signal.sosfilt(self._sos, x[:, start:stop], axis=-1, zi=zi)
            out[:, start:stop] = y
        return out
