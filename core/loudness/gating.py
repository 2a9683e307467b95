"""
core/loudness/gating.py — BS.1770-4 two-stage gating and block statistics.

Implements:
    - Integrated loudness: absolute gate (−70 LUFS), provisional loudness
      L0, relative gate (L0 − 10 LU), final mean.
    - Ungated maxima for momentary / short-term block sets.
    - Loudness Range (LRA) per EBU Tech 3342 over short-term blocks.

Design:
    - Silence and fully gated input return -inf. The sentinel is never
      clamped to a floor like −70, so callers can tell "silent" apart from
      "very quiet".
    - Gates operate in the energy domain to avoid per-block log10 calls.
"""

from __future__ import annotations

import math
from collections.abc import Sequence

import numpy as np

from core.loudness.types import GatingBlock, GatingResult

LOUDNESS_OFFSET = -0.691
"""BS.1770 constant so that a 0 dBFS 1 kHz sine in one channel reads −3.01 LUFS."""

_LRA_LOW_PERCENTILE = 10.0
_LRA_HIGH_PERCENTILE = 95.0


def energy_to_lufs(energy: float) -> float:
    """Convert a mean-square energy to LUFS (-inf for zero energy)."""
    if energy <= 0.0:
        return -math.inf
    return LOUDNESS_OFFSET + 10.0 * math.log10(energy)


def lufs_to_energy(lufs: float) -> float:
    """Inverse of energy_to_lufs()."""
    return 10.0 ** ((lufs - LOUDNESS_OFFSET) / 10.0)


def _energies(blocks: Sequence[GatingBlock] | np.ndarray) -> np.ndarray:
    if isinstance(blocks, np.ndarray):
        return blocks.astype(np.float64, copy=False)
    return np.fromiter((b.energy for b in blocks), dtype=np.float64, count=len(blocks))


def max_loudness(blocks: Sequence[GatingBlock] | np.ndarray) -> float:
    """Loudest block in LUFS, ungated. -inf if there are no blocks or all are silent."""
    energies = _energies(blocks)
    if energies.size == 0:
        return -math.inf
    return energy_to_lufs(float(np.max(energies)))


class LoudnessGate:
    """Two-stage BS.1770-4 gate.

    Args:
        absolute_gate_lufs: Blocks at or below this loudness are discarded
            (default −70 LUFS).
        relative_gate_lu: Offset below the provisional loudness L0 under
            which blocks are discarded (default −10 LU).
    """

    def __init__(self, absolute_gate_lufs: float = -70.0, relative_gate_lu: float = -10.0) -> None:
        if relative_gate_lu >= 0:
            raise ValueError(f"relative_gate_lu must be negative, got {relative_gate_lu}")
        self.absolute_gate_lufs = absolute_gate_lufs
        self.relative_gate_lu = relative_gate_lu
        self._absolute_energy = lufs_to_energy(absolute_gate_lufs)

    def evaluate(self, blocks: Sequence[GatingBlock] | np.ndarray) -> GatingResult:
        """Run both gates and report the surviving block counts."""
        energies = _energies(blocks)
        total = int(energies.size)

        above_abs = energies[energies > self._absolute_energy]
        if above_abs.size == 0:
            return GatingResult(
                integrated=-math.inf,
                provisional=-math.inf,
                total_blocks=total,
                absolute_passed=0,
                relative_passed=0,
            )

        provisional_energy = float(np.mean(above_abs))
        provisional = energy_to_lufs(provisional_energy)
        relative_threshold = provisional_energy * 10.0 ** (self.relative_gate_lu / 10.0)
        gated = above_abs[above_abs >= relative_threshold]
        integrated = energy_to_lufs(float(np.mean(gated))) if gated.size else -math.inf

        return GatingResult(
            integrated=integrated,
            provisional=provisional,
            total_blocks=total,
            absolute_passed=int(above_abs.size),
            relative_passed=int(gated.size),
        )

    def integrate(self, blocks: Sequence[GatingBlock] | np.ndarray) -> float:
        """Integrated loudness in LUFS, or -inf when nothing passes the gates."""
        return self.evaluate(blocks).integrated

    def loudness_range(
        self,
        short_term_blocks: Sequence[GatingBlock] | np.ndarray,
        relative_gate_lu: float = -20.0,
    ) -> float:
        """Loudness Range (LRA) in LU per EBU Tech 3342.

        Short-term blocks above the absolute gate are gated again at
        `relative_gate_lu` below their mean energy; LRA is the spread
        between the 10th and 95th percentile of what remains.

        Returns:
            LRA in LU. 0.0 if fewer than 2 blocks survive.
        """
        energies = _energies(short_term_blocks)
        above_abs = energies[energies > self._absolute_energy]
        if above_abs.size < 2:
            return 0.0
        threshold = float(np.mean(above_abs)) * 10.0 ** (relative_gate_lu / 10.0)
        gated = above_abs[above_abs >= threshold]
        if gated.size < 2:
            return 0.0
        lufs = LOUDNESS_OFFSET + 10.0 * np.log10(gated)
        lo, hi = np.percentile(lufs, [_LRA_LOW_PERCENTILE, _LRA_HIGH_PERCENTILE])
        return float(max(hi - lo, 0.0))
