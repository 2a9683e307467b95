"""
core/errors.py — Exception hierarchy for the analysis engine.

Only malformed input is surfaced to callers. Expected operating conditions
(silence, clips shorter than one analysis window, a missing classifier)
resolve to sentinel values inside the engine and never raise.

Hierarchy:
    AnalysisError
    ├── InvalidInputError      (also a ValueError) — caller passed bad PCM
    └── ModelUnavailableError  — learned key classifier cannot load/infer
"""

from __future__ import annotations


class AnalysisError(Exception):
    """Base class for all engine errors."""


class InvalidInputError(AnalysisError, ValueError):
    """Raised when PCM handed to the engine is malformed.

    Covers non-finite samples, a channel count below one, a non-positive
    sample rate, and sample counts that do not divide into whole frames.

    Args:
        reason: Human-readable description of what is wrong with the input.
    """

    def __init__(self, reason: str) -> None:
        """Initialize with the validation failure reason."""
        self.reason = reason
        super().__init__(f"Invalid PCM input: {reason}")


class ModelUnavailableError(AnalysisError):
    """Raised when the auxiliary key classifier cannot be used.

    The engine and HybridKeyEstimator catch this and fall back to the
    traditional profile matcher. It never reaches the caller of
    analyze_music().
    """
