"""
core/tonal/key_matcher.py — Multi-profile consensus key estimation.

Each KeyProfile (EDM-A, Hybrid, Krumhansl-Schmuckler, Temperley, Shaath)
is correlated against the chroma at all 24 (root, mode) rotations. Every
profile then casts one weighted vote for its best key, and the key with
the most weight wins.

Algorithm:
    1. r[p, k]  = Pearson(chroma, template_p rotated to key k), k ∈ 0..23
                  (0–11 = C..B major, 12–23 = C..B minor)
    2. vote_p   = weight_p · (r[p, best_p] + 1) / 2 → consensus[best_p]
    3. winner   = argmax(consensus); ties prefer major, then lower root
    4. confidence = consensus[winner] / Σ consensus
    5. tonal_clarity from the weighted correlation surface
       S[k] = Σ_p weight_p · (r[p, k] + 1) / 2: clip(S[win] / mean(S) − 1, 0, 1)
    6. harmonic_complexity = 1 − var(chroma / Σchroma) / (11/144)

Design:
    - Pure numpy; profiles and scale patterns are injected.
    - The key ordering (majors before minors, ascending root) makes
      np.argmax's first-maximum rule implement the tie-break directly.
    - Zero or constant chroma has no defined correlation → indeterminate.
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np

from core.tonal.profiles import validate_profiles
from core.tonal.scales import ScaleAnalyzer
from core.tonal.types import NOTE_NAMES, KeyEstimate, KeyProfile, ProfileVote, key_name

_EPS = 1e-12

# Variance of a one-hot vector normalised to unit sum: the least complex chroma.
_MAX_CHROMA_VARIANCE = 11.0 / 144.0


def _rotations(template: Sequence[float]) -> np.ndarray:
    """(12, 12) matrix whose row k is the template transposed to root k."""
    t = np.asarray(template, dtype=np.float64)
    return np.stack([np.roll(t, k) for k in range(12)])


def harmonic_complexity(chroma: np.ndarray) -> float:
    """0 when one pitch class holds all energy, 1 when all twelve are equal."""
    total = float(np.sum(chroma))
    if total <= _EPS:
        return 0.0
    var = float(np.var(chroma / total))
    return float(np.clip(1.0 - var / _MAX_CHROMA_VARIANCE, 0.0, 1.0))


def key_from_index(index: int) -> tuple[int, bool]:
    """Split a 0–23 key index into (root, is_major)."""
    return index % 12, index < 12


def key_index(root: int, is_major: bool) -> int:
    """Inverse of key_from_index."""
    return root % 12 + (0 if is_major else 12)


class KeyProfileMatcher:
    """Weighted consensus over several key-finding profiles.

    Args:
        profiles:       Key profiles; weights must sum to 1.0.
        scale_analyzer: Optional ScaleAnalyzer for the scale list. None
                        leaves KeyEstimate.scales empty.
    """

    def __init__(
        self,
        profiles: Sequence[KeyProfile],
        scale_analyzer: ScaleAnalyzer | None = None,
    ) -> None:
        validate_profiles(profiles)
        self.profiles = tuple(profiles)
        self.scale_analyzer = scale_analyzer
        self._weights = np.array([p.weight for p in self.profiles])
        # (P, 24, 12) centred templates for every profile and key
        templates = np.stack(
            [
                np.concatenate([_rotations(p.major_template), _rotations(p.minor_template)])
                for p in self.profiles
            ]
        )
        self._centred = templates - templates.mean(axis=2, keepdims=True)
        self._norms = np.sqrt(np.sum(self._centred**2, axis=2))

    def correlations(self, chroma: np.ndarray) -> np.ndarray:
        """Pearson correlation of chroma with every profile/key, shape (P, 24).

        Returns zeros when the chroma has no variance.
        """
        c = np.asarray(chroma, dtype=np.float64)
        if c.shape != (12,):
            raise ValueError(f"chroma must have shape (12,), got {c.shape}")
        cc = c - c.mean()
        c_norm = float(np.sqrt(np.sum(cc**2)))
        if c_norm <= _EPS:
            return np.zeros((len(self.profiles), 24))
        with np.errstate(divide="ignore", invalid="ignore"):
            r = np.einsum("pki,i->pk", self._centred, cc) / (self._norms * c_norm)
        return np.clip(np.nan_to_num(r, nan=0.0), -1.0, 1.0)

    def _clarity(self, confidence_per_key: np.ndarray, index: int) -> float:
        surface = self._weights @ confidence_per_key / float(np.sum(self._weights))
        mean_surface = float(np.mean(surface))
        if mean_surface <= _EPS:
            return 0.0
        return float(np.clip(surface[index] / mean_surface - 1.0, 0.0, 1.0))

    def tonal_clarity(self, chroma: np.ndarray, index: int) -> float:
        """How far key `index` (0–23) stands out on the correlation surface.

        Used to score a key chosen by something other than the consensus
        vote, e.g. the learned classifier. 0.0 for featureless chroma.
        """
        c = np.asarray(chroma, dtype=np.float64)
        if c.shape != (12,):
            raise ValueError(f"chroma must have shape (12,), got {c.shape}")
        if float(np.max(c) - np.min(c)) <= _EPS:
            return 0.0
        return self._clarity((self.correlations(c) + 1.0) / 2.0, index)

    def match(self, chroma: np.ndarray) -> KeyEstimate:
        """Estimate the key of a 12-bin chroma vector.

        Returns:
            KeyEstimate with method "traditional", or an indeterminate
            estimate when the chroma is all zeros or perfectly flat.
        """
        c = np.asarray(chroma, dtype=np.float64)
        chroma_tuple = tuple(float(v) for v in c)
        if c.shape != (12,):
            raise ValueError(f"chroma must have shape (12,), got {c.shape}")
        if float(np.max(c) - np.min(c)) <= _EPS:
            return KeyEstimate.indeterminate(chroma_tuple)

        r = self.correlations(c)
        confidence_per_key = (r + 1.0) / 2.0

        consensus = np.zeros(24)
        votes: list[ProfileVote] = []
        for p_idx, profile in enumerate(self.profiles):
            best = int(np.argmax(r[p_idx]))
            vote = float(confidence_per_key[p_idx, best])
            consensus[best] += profile.weight * vote
            root, is_major = key_from_index(best)
            votes.append(ProfileVote(profile=profile.name, key=key_name(root, is_major), confidence=vote))

        winner = int(np.argmax(consensus))
        total = float(np.sum(consensus))
        confidence = float(np.clip(consensus[winner] / total, 0.0, 1.0)) if total > _EPS else 0.0

        clarity = self._clarity(confidence_per_key, winner)

        root, is_major = key_from_index(winner)
        scales = self.scale_analyzer.analyze(c) if self.scale_analyzer is not None else ()
        return KeyEstimate(
            key=key_name(root, is_major),
            root_note=NOTE_NAMES[root],
            is_major=is_major,
            confidence=confidence,
            tonal_clarity=clarity,
            harmonic_complexity=harmonic_complexity(c),
            chroma=chroma_tuple,
            scales=scales,
            method="traditional",
            profile_votes=tuple(votes),
        )
