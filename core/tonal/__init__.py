"""
core/tonal — Chroma extraction and key / scale estimation.

Public API:
    Types:      KeyEstimate, KeyProfile, ScaleMatch, ProfileVote,
                ScalePattern, NOTE_NAMES
    Chroma:     ChromagramExtractor
    Matching:   KeyProfileMatcher, ScaleAnalyzer
    Classifier: KeyClassifier, auxiliary_features
    Hybrid:     HybridKeyEstimator, EstimatorState, KeyDecision
    Data:       load_key_profiles, load_scale_patterns
"""

from core.tonal.chroma import ChromagramExtractor
from core.tonal.classifier import KeyClassifier, auxiliary_features
from core.tonal.hybrid import EstimatorState, HybridKeyEstimator, KeyDecision
from core.tonal.key_matcher import KeyProfileMatcher
from core.tonal.profiles import ScalePattern, load_key_profiles, load_scale_patterns
from core.tonal.scales import ScaleAnalyzer
from core.tonal.types import NOTE_NAMES, KeyEstimate, KeyProfile, ProfileVote, ScaleMatch

__all__ = [
    # Types
    "KeyEstimate",
    "KeyProfile",
    "ScaleMatch",
    "ProfileVote",
    "ScalePattern",
    "NOTE_NAMES",
    # Stages
    "ChromagramExtractor",
    "KeyProfileMatcher",
    "ScaleAnalyzer",
    "KeyClassifier",
    "auxiliary_features",
    "HybridKeyEstimator",
    "EstimatorState",
    "KeyDecision",
    # Data
    "load_key_profiles",
    "load_scale_patterns",
]
