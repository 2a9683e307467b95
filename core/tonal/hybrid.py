"""
core/tonal/hybrid.py — Arbitration between the profile matcher and the classifier.

State machine::

    TRADITIONAL_ONLY ◄──(confidence ≥ threshold, or no classifier)── start
                                       │
                              (confidence < threshold)
                                       ▼
                               ATTEMPT_ENHANCED
                          ┌────────────┴────────────┐
          (classifier confidence >         (inference failed, or
           traditional confidence)          not more confident)
                          ▼                         ▼
                 ENHANCED_ACCEPTED          ENHANCED_REJECTED

The profile matcher always runs first. The classifier only runs when the
matcher is unsure, and it only wins when it is strictly more confident.
Everything is local and synchronous: there are no retries.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

import numpy as np

from core.errors import ModelUnavailableError
from core.tonal.key_matcher import KeyProfileMatcher, key_index
from core.tonal.types import NOTE_NAMES, KeyEstimate, key_name

logger = logging.getLogger(__name__)


class EstimatorState(Enum):
    """HybridKeyEstimator states."""

    TRADITIONAL_ONLY = "traditional_only"
    ATTEMPT_ENHANCED = "attempt_enhanced"
    ENHANCED_ACCEPTED = "enhanced_accepted"
    ENHANCED_REJECTED = "enhanced_rejected"


class KeyModel(Protocol):
    """Anything that can classify a key from a signal and its chroma."""

    def classify(
        self, samples: np.ndarray, sample_rate: int, chroma: np.ndarray
    ) -> tuple[int, bool, float]: ...


@dataclass(frozen=True)
class KeyDecision:
    """Outcome of one hybrid key estimation.

    Invariants:
        state is a terminal state (never ATTEMPT_ENHANCED)
        estimate is enhanced iff state == ENHANCED_ACCEPTED
        transitions starts with the first state visited and ends with state
    """

    state: EstimatorState
    estimate: KeyEstimate
    """The estimate to report."""

    traditional: KeyEstimate
    """Profile-matcher estimate, always present."""

    enhanced: KeyEstimate | None = None
    """Classifier estimate when one was produced (accepted or not)."""

    transitions: tuple[EstimatorState, ...] = ()


class HybridKeyEstimator:
    """Profile matcher plus an optional learned classifier.

    Args:
        matcher:    KeyProfileMatcher producing the baseline estimate.
        classifier: Optional KeyModel. None means the enhanced path is
                    unavailable for the lifetime of this estimator.
        threshold:  Traditional confidence at or above which the classifier
                    is skipped (default 0.8).
        enabled:    False disables the enhanced path even with a classifier.
    """

    def __init__(
        self,
        matcher: KeyProfileMatcher,
        classifier: KeyModel | None = None,
        *,
        threshold: float = 0.8,
        enabled: bool = True,
    ) -> None:
        if not 0.0 <= threshold <= 1.0:
            raise ValueError(f"threshold must be in [0, 1], got {threshold}")
        self.matcher = matcher
        self.classifier = classifier
        self.threshold = threshold
        self.enabled = enabled

    @property
    def enhanced_available(self) -> bool:
        return self.enabled and self.classifier is not None

    def estimate(self, samples: np.ndarray, sample_rate: int, chroma: np.ndarray) -> KeyDecision:
        """Run the state machine for one signal.

        Args:
            samples:     1-D mono signal the chroma was computed from.
            sample_rate: Sample rate in Hz.
            chroma:      (12,) chroma vector.

        Returns:
            KeyDecision in a terminal state.
        """
        traditional = self.matcher.match(chroma)
        classifier = self.classifier if self.enabled else None

        if (
            classifier is None
            or not traditional.is_determinate
            or traditional.confidence >= self.threshold
        ):
            state = EstimatorState.TRADITIONAL_ONLY
            return KeyDecision(
                state=state,
                estimate=traditional,
                traditional=traditional,
                transitions=(state,),
            )

        visited = (EstimatorState.ATTEMPT_ENHANCED,)
        try:
            root, is_major, confidence = classifier.classify(samples, sample_rate, chroma)
        except ModelUnavailableError as exc:
            logger.debug("Key classifier inference failed, keeping traditional: %s", exc)
            return self._rejected(traditional, None, visited)

        enhanced = dataclasses.replace(
            traditional,
            key=key_name(root, is_major),
            root_note=NOTE_NAMES[root % 12],
            is_major=is_major,
            confidence=float(np.clip(confidence, 0.0, 1.0)),
            tonal_clarity=self.matcher.tonal_clarity(chroma, key_index(root, is_major)),
            method="enhanced",
            profile_votes=(),
            traditional=traditional,
        )
        if enhanced.confidence <= traditional.confidence:
            logger.debug(
                "Classifier %s (%.3f) not above traditional %s (%.3f)",
                enhanced.key,
                enhanced.confidence,
                traditional.key,
                traditional.confidence,
            )
            return self._rejected(traditional, enhanced, visited)

        logger.debug(
            "Classifier accepted: %s (%.3f) over %s (%.3f)",
            enhanced.key,
            enhanced.confidence,
            traditional.key,
            traditional.confidence,
        )
        state = EstimatorState.ENHANCED_ACCEPTED
        return KeyDecision(
            state=state,
            estimate=enhanced,
            traditional=traditional,
            enhanced=enhanced,
            transitions=visited + (state,),
        )

    @staticmethod
    def _rejected(
        traditional: KeyEstimate,
        enhanced: KeyEstimate | None,
        visited: tuple[EstimatorState, ...],
    ) -> KeyDecision:
        state = EstimatorState.ENHANCED_REJECTED
        return KeyDecision(
            state=state,
            estimate=traditional,
            traditional=traditional,
            enhanced=enhanced,
            transitions=visited + (state,),
        )
