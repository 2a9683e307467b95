"""
core/tonal/types.py — Frozen data types for key and scale estimation.

All types are frozen dataclasses — immutable value objects that can be
safely passed between layers and cached.

Design principles:
    - No I/O, no state, no side effects.
    - Invariants are documented but NOT enforced at construction time —
      validation happens at creation sites (profiles.py, key_matcher.py).
    - Chroma is stored as a tuple so KeyEstimate stays hashable.
    - An all-zero chroma yields an *indeterminate* estimate, never C major.
"""

from __future__ import annotations

from dataclasses import dataclass

# Chromatic note names (sharps notation), index = pitch class
NOTE_NAMES: tuple[str, ...] = (
    "C",
    "C#",
    "D",
    "D#",
    "E",
    "F",
    "F#",
    "G",
    "G#",
    "A",
    "A#",
    "B",
)

INDETERMINATE_KEY = "Unknown"


def key_name(root: int, is_major: bool) -> str:
    """Format a key label, e.g. key_name(9, False) → 'A Minor'."""
    return f"{NOTE_NAMES[root % 12]} {'Major' if is_major else 'Minor'}"


@dataclass(frozen=True)
class KeyProfile:
    """Weighted major/minor template pair used for consensus voting.

    Invariants:
        len(major_template) == len(minor_template) == 12
        weight > 0
        index 0 of each template is the tonic
    """

    name: str
    weight: float
    major_template: tuple[float, ...]
    minor_template: tuple[float, ...]


@dataclass(frozen=True)
class ScaleMatch:
    """One scale candidate and how well the chroma fits it.

    Invariants:
        0.0 < strength <= 1.0
    """

    root: str
    """Root note name, e.g. 'D'."""

    scale_type: str
    """Pattern name, e.g. 'Dorian'."""

    strength: float
    category: str
    """Family label, e.g. 'Minor Family', 'Pentatonic'."""

    @property
    def name(self) -> str:
        """Human-readable label, e.g. 'D Dorian'."""
        return f"{self.root} {self.scale_type}"


@dataclass(frozen=True)
class ProfileVote:
    """Best key chosen by one profile and its correlation-based confidence."""

    profile: str
    key: str
    confidence: float
    """(r + 1) / 2 for the winning Pearson correlation r."""


@dataclass(frozen=True)
class KeyEstimate:
    """Musical key estimated from a chromagram.

    Invariants:
        0.0 <= confidence, tonal_clarity, harmonic_complexity <= 1.0
        len(chroma) == 12
        scales sorted by descending strength, at most 8 entries
        method in {"traditional", "enhanced", "indeterminate"}
        traditional is set iff method == "enhanced"
    """

    key: str
    """Key label, e.g. 'C Major', 'A Minor', or 'Unknown'."""

    root_note: str
    """Root note name ('' when indeterminate)."""

    is_major: bool
    confidence: float
    tonal_clarity: float
    """How far the winning key stands out from the average key (0–1)."""

    harmonic_complexity: float
    """0 = one pitch class dominates, 1 = all twelve equally present."""

    chroma: tuple[float, ...]
    scales: tuple[ScaleMatch, ...] = ()
    method: str = "traditional"
    profile_votes: tuple[ProfileVote, ...] = ()
    traditional: KeyEstimate | None = None
    """Profile-matcher estimate the classifier was compared against."""

    @property
    def is_determinate(self) -> bool:
        return self.method != "indeterminate"

    @property
    def mode(self) -> str:
        """'major' or 'minor'."""
        return "major" if self.is_major else "minor"

    @classmethod
    def indeterminate(cls, chroma: tuple[float, ...]) -> KeyEstimate:
        """Estimate for silent / featureless chroma."""
        return cls(
            key=INDETERMINATE_KEY,
            root_note="",
            is_major=False,
            confidence=0.0,
            tonal_clarity=0.0,
            harmonic_complexity=0.0,
            chroma=chroma,
            scales=(),
            method="indeterminate",
        )
