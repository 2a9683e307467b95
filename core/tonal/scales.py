"""
core/tonal/scales.py — Scale fitting against a chroma vector.

Every scale pattern (Major, the minor family, modes, pentatonics, Blues)
is tried at all 12 roots. The fit rewards energy on structurally important
degrees and penalises energy outside the scale:

    in  = Σ_{d in scale} w(d) · c[d] / Σ w(d)
    out = 2 · Σ_{d not in scale} c[d] / (12 − |scale|)
    fit = (in / (in + out) · 1 / (1 + 3 · out)) ** 0.8

with degree weights w: tonic 3.0, third 2.0, fifth 2.0, 2nd/6th 1.5,
4th/♭7th 1.3, anything else 1.0. Chroma is normalised to a unit maximum
first so the penalty does not depend on the recording level.
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np

from core.tonal.profiles import ScalePattern
from core.tonal.types import NOTE_NAMES, ScaleMatch

_DEGREE_WEIGHTS: dict[int, float] = {
    0: 3.0,
    3: 2.0,
    4: 2.0,
    7: 2.0,
    2: 1.5,
    9: 1.5,
    5: 1.3,
    10: 1.3,
}
_OUT_OF_SCALE_WEIGHT = 2.0
_OUT_PENALTY = 3.0
_FIT_EXPONENT = 0.8


def scale_fit(chroma: np.ndarray, pattern: ScalePattern, root: int) -> float:
    """Fit of `pattern` rooted at `root` to a unit-max chroma vector (0–1)."""
    in_energy = 0.0
    in_weights = 0.0
    out_energy = 0.0
    for pc in range(12):
        degree = (pc - root) % 12
        if degree in pattern.intervals:
            w = _DEGREE_WEIGHTS.get(degree, 1.0)
            in_energy += chroma[pc] * w
            in_weights += w
        else:
            out_energy += chroma[pc] * _OUT_OF_SCALE_WEIGHT

    if in_weights == 0.0:
        return 0.0
    n_out = 12 - len(pattern.intervals)
    norm_in = in_energy / in_weights
    norm_out = out_energy / n_out if n_out else 0.0
    total = norm_in + norm_out
    if total == 0.0:
        return 0.0
    fit = (norm_in / total) / (1.0 + norm_out * _OUT_PENALTY)
    return float(fit**_FIT_EXPONENT)


class ScaleAnalyzer:
    """Ranks scale candidates for a chroma vector.

    Args:
        patterns:     Scale patterns in tie-break order.
        min_strength: Matches at or below this strength are dropped.
        max_results:  Maximum matches returned.
    """

    def __init__(
        self,
        patterns: Sequence[ScalePattern],
        *,
        min_strength: float = 0.1,
        max_results: int = 8,
    ) -> None:
        self.patterns = tuple(patterns)
        self.min_strength = min_strength
        self.max_results = max_results

    def analyze(self, chroma: np.ndarray) -> tuple[ScaleMatch, ...]:
        """Return the strongest scale matches, strongest first.

        Ties keep pattern order, then root order, so the ranking is
        reproducible.
        """
        c = np.asarray(chroma, dtype=np.float64)
        peak = float(np.max(c)) if c.size else 0.0
        if peak <= 0.0 or self.max_results == 0:
            return ()
        c = c / peak

        candidates: list[tuple[float, int, int, ScalePattern]] = []
        for p_idx, pattern in enumerate(self.patterns):
            for root in range(12):
                strength = scale_fit(c, pattern, root)
                if strength > self.min_strength:
                    candidates.append((strength, p_idx, root, pattern))

        candidates.sort(key=lambda item: (-item[0], item[1], item[2]))
        return tuple(
            ScaleMatch(
                root=NOTE_NAMES[root],
                scale_type=pattern.name,
                strength=strength,
                category=pattern.category,
            )
            for strength, _, root, pattern in candidates[: self.max_results]
        )
