"""
core/tonal/profiles.py — Key profiles and scale patterns as injected config.

Both tables are read once from core/data/*.yaml (cached by
core/_data_loader.py), validated here, and returned as frozen dataclasses.
Components receive them through their constructors; nothing reads the
tables from a global at analysis time.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from core._data_loader import load_table
from core.tonal.types import KeyProfile

_WEIGHT_TOLERANCE = 1e-6


@dataclass(frozen=True)
class ScalePattern:
    """Interval set defining one scale type.

    Invariants:
        0 in intervals, all intervals in [0, 11], no duplicates
    """

    name: str
    intervals: frozenset[int]
    category: str


def _template(values: Any, label: str) -> tuple[float, ...]:
    if not isinstance(values, list) or len(values) != 12:
        raise ValueError(f"{label} must be a list of 12 numbers")
    out = tuple(float(v) for v in values)
    if any(v < 0 or not math.isfinite(v) for v in out):
        raise ValueError(f"{label} must contain finite non-negative values")
    return out


def validate_profiles(profiles: Sequence[KeyProfile]) -> None:
    """Check a profile set is usable for consensus voting.

    Raises:
        ValueError: If empty, a weight is not positive, or weights do not
            sum to 1.0.
    """
    if not profiles:
        raise ValueError("At least one key profile is required")
    for p in profiles:
        if p.weight <= 0:
            raise ValueError(f"Profile {p.name!r} weight must be positive, got {p.weight}")
        if len(p.major_template) != 12 or len(p.minor_template) != 12:
            raise ValueError(f"Profile {p.name!r} templates must have 12 entries")
    total = sum(p.weight for p in profiles)
    if abs(total - 1.0) > _WEIGHT_TOLERANCE:
        raise ValueError(f"Profile weights must sum to 1.0, got {total:.6f}")


def load_key_profiles() -> tuple[KeyProfile, ...]:
    """Return the five bundled key profiles, validated."""
    data = load_table("key_profiles")
    profiles = tuple(
        KeyProfile(
            name=str(entry["name"]),
            weight=float(entry["weight"]),
            major_template=_template(entry["major"], f"{entry['name']} major"),
            minor_template=_template(entry["minor"], f"{entry['name']} minor"),
        )
        for entry in data["profiles"]
    )
    validate_profiles(profiles)
    return profiles


def load_scale_patterns() -> tuple[ScalePattern, ...]:
    """Return the bundled scale patterns in file (tie-break) order."""
    data = load_table("scales")
    patterns = []
    for entry in data["scales"]:
        intervals = [int(i) for i in entry["intervals"]]
        if 0 not in intervals or any(not 0 <= i < 12 for i in intervals):
            raise ValueError(f"Scale {entry['name']!r} has invalid intervals {intervals}")
        if len(set(intervals)) != len(intervals):
            raise ValueError(f"Scale {entry['name']!r} repeats an interval")
        patterns.append(
            ScalePattern(
                name=str(entry["name"]),
                intervals=frozenset(intervals),
                category=str(entry.get("category", "Other")),
            )
        )
    return tuple(patterns)
