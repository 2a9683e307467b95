"""
core/pcm.py — Immutable PCM buffer shared by every analysis branch.

The decoding collaborator hands the engine interleaved float samples plus
a sample rate and channel count. PcmBuffer validates that input once, takes
a private read-only copy, and exposes channel-major views for the DSP code.

Design:
    - Validation happens here and only here. Downstream stages assume
      finite samples and a sane layout.
    - The stored array is float64 with the writeable flag cleared, so no
      branch can mutate the shared buffer even by accident.
    - channels() returns a (C, N) view, not a copy.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from core.errors import InvalidInputError


@dataclass(frozen=True, eq=False)
class PcmBuffer:
    """Interleaved PCM samples with their sample rate and channel count.

    Invariants:
        channel_count >= 1
        sample_rate > 0
        samples.ndim == 1 and samples.size % channel_count == 0
        all samples are finite
    """

    samples: np.ndarray
    """Interleaved samples (frame-major: L0 R0 L1 R1 ...). Read-only float64."""

    sample_rate: int
    """Sample rate in Hz."""

    channel_count: int
    """Number of interleaved channels."""

    def __post_init__(self) -> None:
        """Validate the layout and store a private read-only copy."""
        if int(self.channel_count) < 1:
            raise InvalidInputError(f"channel count must be >= 1, got {self.channel_count}")
        if int(self.sample_rate) <= 0:
            raise InvalidInputError(f"sample rate must be positive, got {self.sample_rate}")

        data = np.array(self.samples, dtype=np.float64, copy=True)
        if data.ndim != 1:
            raise InvalidInputError(
                f"samples must be a 1-D interleaved array, got shape {data.shape}"
            )
        if data.size % int(self.channel_count) != 0:
            raise InvalidInputError(
                f"{data.size} samples do not divide into {self.channel_count} channels"
            )
        non_finite = int(np.count_nonzero(~np.isfinite(data)))
        if non_finite:
            raise InvalidInputError(f"{non_finite} non-finite (NaN/Inf) samples")

        data.setflags(write=False)
        object.__setattr__(self, "samples", data)
        object.__setattr__(self, "sample_rate", int(self.sample_rate))
        object.__setattr__(self, "channel_count", int(self.channel_count))

    @classmethod
    def from_channels(cls, y: np.ndarray, sample_rate: int) -> PcmBuffer:
        """Build a buffer from a channel-major array.

        Args:
            y:           Shape (N,) for mono or (C, N) for C channels.
            sample_rate: Sample rate in Hz.

        Returns:
            PcmBuffer with the channels interleaved frame by frame.
        """
        arr = np.asarray(y, dtype=np.float64)
        if arr.ndim == 1:
            return cls(arr, sample_rate, 1)
        if arr.ndim != 2 or arr.shape[0] == 0:
            raise InvalidInputError(f"expected (N,) or (C, N) array, got shape {arr.shape}")
        return cls(arr.T.reshape(-1), sample_rate, arr.shape[0])

    @property
    def frames(self) -> int:
        """Number of samples per channel."""
        return self.samples.size // self.channel_count

    @property
    def duration_sec(self) -> float:
        """Duration in seconds."""
        return self.frames / self.sample_rate

    @property
    def is_stereo(self) -> bool:
        return self.channel_count == 2

    def channels(self) -> np.ndarray:
        """Return a read-only (C, N) view of the de-interleaved channels."""
        return self.samples.reshape(-1, self.channel_count).T

    def mono(self) -> np.ndarray:
        """Return the equal-weight mono mix as a new (N,) array."""
        if self.channel_count == 1:
            return self.samples.copy()
        return np.mean(self.channels(), axis=0)
