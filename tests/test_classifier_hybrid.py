"""
Tests for core/tonal/classifier.py and core/tonal/hybrid.py.

The classifier is exercised with hand-built weights whose output bias
forces a known class; the state machine is driven by a fixed-output
matcher and fake key models so every transition is reachable.
"""

from __future__ import annotations

import numpy as np
import pytest

from core.errors import ModelUnavailableError
from core.tonal.classifier import (
    N_CLASSES,
    N_FEATURES,
    N_HIDDEN,
    AuxiliaryFeatures,
    KeyClassifier,
    auxiliary_features,
    build_features,
)
from core.tonal.hybrid import EstimatorState, HybridKeyEstimator
from core.tonal.types import KeyEstimate

SR = 44100


def _sine(freq_hz: float, amplitude: float = 0.5, sr: int = SR, seconds: float = 4.0) -> np.ndarray:
    """Generate a mono sine wave."""
    t = np.arange(int(sr * seconds)) / sr
    return amplitude * np.sin(2.0 * np.pi * freq_hz * t)


def _biased_classifier(winner: int, logit: float = 10.0) -> KeyClassifier:
    """Classifier whose output is fixed by the output bias alone."""
    b2 = np.zeros(N_CLASSES)
    b2[winner] = logit
    return KeyClassifier(
        w1=np.zeros((N_FEATURES, N_HIDDEN)),
        b1=np.zeros(N_HIDDEN),
        w2=np.zeros((N_HIDDEN, N_CLASSES)),
        b2=b2,
    )


def _estimate(key: str = "C Major", confidence: float = 0.5) -> KeyEstimate:
    root, mode = key.split()
    return KeyEstimate(
        key=key,
        root_note=root,
        is_major=mode == "Major",
        confidence=confidence,
        tonal_clarity=0.3,
        harmonic_complexity=0.6,
        chroma=(1.0,) + (0.5,) * 11,
    )


class _FixedMatcher:
    def __init__(self, estimate: KeyEstimate) -> None:
        self.estimate = estimate

    def match(self, chroma):
        return self.estimate

    def tonal_clarity(self, chroma, index):
        return 0.7


class _FixedModel:
    def __init__(self, result: tuple[int, bool, float]) -> None:
        self.result = result
        self.calls = 0

    def classify(self, samples, sample_rate, chroma):
        self.calls += 1
        return self.result


class _BrokenModel:
    def classify(self, samples, sample_rate, chroma):
        raise ModelUnavailableError("weights corrupted")


_CHROMA = np.array((1.0,) + (0.5,) * 11)


# ---------------------------------------------------------------------------
# Classifier
# ---------------------------------------------------------------------------


class TestAuxiliaryFeatures:
    def test_sine_features(self):
        aux = auxiliary_features(_sine(440.0), SR)
        assert 0.0 <= aux.centroid < 0.1
        assert aux.zcr == pytest.approx(2 * 880 / SR, abs=0.005)
        # 0.5 amplitude sine → −9.03 dBFS RMS
        assert aux.rms == pytest.approx((60.0 - 9.03) / 60.0, abs=0.01)

    def test_silence(self):
        aux = auxiliary_features(np.zeros(SR), SR)
        assert aux == AuxiliaryFeatures(centroid=0.5, zcr=0.0, rms=0.0)

    def test_too_short_raises(self):
        with pytest.raises(ModelUnavailableError, match="too short"):
            auxiliary_features(np.zeros(4000), SR)

    def test_noise_features_bounded(self):
        y = np.random.default_rng(0).standard_normal(SR * 2)
        aux = auxiliary_features(y, SR)
        for value in (aux.centroid, aux.zcr, aux.rms):
            assert 0.0 <= value <= 1.0

    def test_build_features(self):
        aux = AuxiliaryFeatures(centroid=0.2, zcr=0.1, rms=0.7)
        x = build_features(np.arange(12, dtype=float), aux)
        assert x.shape == (N_FEATURES,)
        assert x[11] == pytest.approx(1.0)
        np.testing.assert_allclose(x[12:], [0.2, 0.1, 0.7])

    def test_build_features_zero_chroma(self):
        x = build_features(np.zeros(12), AuxiliaryFeatures(0.5, 0.0, 0.0))
        np.testing.assert_array_equal(x[:12], np.zeros(12))


class TestKeyClassifier:
    def test_predict_follows_bias(self):
        root, is_major, conf = _biased_classifier(21).predict(np.zeros(N_FEATURES))
        assert (root, is_major) == (9, False)
        assert conf > 0.99

    def test_uniform_weights_give_uniform_probabilities(self):
        probs = _biased_classifier(0, logit=0.0).probabilities(np.ones(N_FEATURES))
        np.testing.assert_allclose(probs, np.full(N_CLASSES, 1.0 / N_CLASSES))

    def test_probabilities_sum_to_one(self):
        rng = np.random.default_rng(1)
        clf = KeyClassifier(
            w1=rng.standard_normal((N_FEATURES, N_HIDDEN)),
            b1=rng.standard_normal(N_HIDDEN),
            w2=rng.standard_normal((N_HIDDEN, N_CLASSES)),
            b2=rng.standard_normal(N_CLASSES),
        )
        probs = clf.probabilities(rng.random(N_FEATURES))
        assert probs.sum() == pytest.approx(1.0)
        assert np.all(probs >= 0.0)

    def test_wrong_feature_count(self):
        with pytest.raises(ModelUnavailableError, match="features"):
            _biased_classifier(0).probabilities(np.zeros(12))

    def test_wrong_weight_shape(self):
        with pytest.raises(ModelUnavailableError, match="w1"):
            KeyClassifier(
                w1=np.zeros((12, N_HIDDEN)),
                b1=np.zeros(N_HIDDEN),
                w2=np.zeros((N_HIDDEN, N_CLASSES)),
                b2=np.zeros(N_CLASSES),
            )

    def test_non_finite_weights(self):
        b2 = np.zeros(N_CLASSES)
        b2[0] = np.nan
        with pytest.raises(ModelUnavailableError, match="not finite"):
            KeyClassifier(
                w1=np.zeros((N_FEATURES, N_HIDDEN)),
                b1=np.zeros(N_HIDDEN),
                w2=np.zeros((N_HIDDEN, N_CLASSES)),
                b2=b2,
            )

    def test_classify_end_to_end(self):
        root, is_major, _ = _biased_classifier(7).classify(_sine(440.0), SR, _CHROMA)
        assert (root, is_major) == (7, True)


class TestClassifierPersistence:
    def test_save_load_roundtrip(self, tmp_path):
        path = tmp_path / "key_classifier.npz"
        _biased_classifier(14).save(path)
        loaded = KeyClassifier.load(path)
        np.testing.assert_array_equal(loaded.b2, _biased_classifier(14).b2)
        assert loaded.predict(np.zeros(N_FEATURES))[:2] == (2, False)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ModelUnavailableError, match="not found"):
            KeyClassifier.load(tmp_path / "absent.npz")

    def test_missing_arrays(self, tmp_path):
        path = tmp_path / "partial.npz"
        np.savez(path, w1=np.zeros((N_FEATURES, N_HIDDEN)))
        with pytest.raises(ModelUnavailableError, match="lacks arrays"):
            KeyClassifier.load(path)

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "corrupt.npz"
        path.write_bytes(b"definitely not a numpy archive")
        with pytest.raises(ModelUnavailableError):
            KeyClassifier.load(path)


# ---------------------------------------------------------------------------
# Hybrid state machine
# ---------------------------------------------------------------------------


class TestHybridTraditionalOnly:
    def test_no_classifier(self):
        hybrid = HybridKeyEstimator(_FixedMatcher(_estimate(confidence=0.3)))
        decision = hybrid.estimate(_sine(440.0), SR, _CHROMA)
        assert not hybrid.enhanced_available
        assert decision.state is EstimatorState.TRADITIONAL_ONLY
        assert decision.transitions == (EstimatorState.TRADITIONAL_ONLY,)
        assert decision.estimate is decision.traditional
        assert decision.enhanced is None

    def test_disabled(self):
        model = _FixedModel((9, False, 0.99))
        hybrid = HybridKeyEstimator(
            _FixedMatcher(_estimate(confidence=0.3)), model, enabled=False
        )
        decision = hybrid.estimate(_sine(440.0), SR, _CHROMA)
        assert decision.state is EstimatorState.TRADITIONAL_ONLY
        assert model.calls == 0

    @pytest.mark.parametrize("confidence", [0.8, 0.95])
    def test_confident_traditional_skips_classifier(self, confidence):
        model = _FixedModel((9, False, 0.99))
        hybrid = HybridKeyEstimator(_FixedMatcher(_estimate(confidence=confidence)), model)
        decision = hybrid.estimate(_sine(440.0), SR, _CHROMA)
        assert decision.state is EstimatorState.TRADITIONAL_ONLY
        assert model.calls == 0

    def test_indeterminate_skips_classifier(self):
        model = _FixedModel((9, False, 0.99))
        hybrid = HybridKeyEstimator(
            _FixedMatcher(KeyEstimate.indeterminate((0.0,) * 12)), model
        )
        decision = hybrid.estimate(np.zeros(SR), SR, np.zeros(12))
        assert decision.state is EstimatorState.TRADITIONAL_ONLY
        assert decision.estimate.method == "indeterminate"
        assert model.calls == 0


class TestHybridEnhanced:
    def test_accepted_when_more_confident(self):
        hybrid = HybridKeyEstimator(
            _FixedMatcher(_estimate(confidence=0.5)), _FixedModel((9, False, 0.9))
        )
        decision = hybrid.estimate(_sine(440.0), SR, _CHROMA)
        assert decision.state is EstimatorState.ENHANCED_ACCEPTED
        assert decision.transitions == (
            EstimatorState.ATTEMPT_ENHANCED,
            EstimatorState.ENHANCED_ACCEPTED,
        )
        assert decision.estimate.key == "A Minor"
        assert decision.estimate.root_note == "A"
        assert decision.estimate.method == "enhanced"
        assert decision.estimate.confidence == pytest.approx(0.9)
        assert decision.estimate.tonal_clarity == pytest.approx(0.7)
        assert decision.estimate.profile_votes == ()
        assert decision.traditional.key == "C Major"
        assert decision.enhanced is decision.estimate

    def test_accepted_estimate_keeps_traditional(self):
        traditional = _estimate(confidence=0.5)
        hybrid = HybridKeyEstimator(_FixedMatcher(traditional), _FixedModel((7, True, 0.99)))
        est = hybrid.estimate(_sine(440.0), SR, _CHROMA).estimate
        assert est.key == "G Major"
        assert est.traditional is traditional
        assert est.traditional.key == "C Major"
        assert est.traditional.confidence == pytest.approx(0.5)

    def test_rejected_when_not_more_confident(self):
        hybrid = HybridKeyEstimator(
            _FixedMatcher(_estimate(confidence=0.5)), _FixedModel((9, False, 0.5))
        )
        decision = hybrid.estimate(_sine(440.0), SR, _CHROMA)
        assert decision.state is EstimatorState.ENHANCED_REJECTED
        assert decision.estimate.key == "C Major"
        assert decision.estimate.method == "traditional"
        assert decision.estimate.traditional is None
        assert decision.enhanced is not None
        assert decision.enhanced.key == "A Minor"

    def test_rejected_when_model_fails(self):
        hybrid = HybridKeyEstimator(_FixedMatcher(_estimate(confidence=0.5)), _BrokenModel())
        decision = hybrid.estimate(_sine(440.0), SR, _CHROMA)
        assert decision.state is EstimatorState.ENHANCED_REJECTED
        assert decision.transitions[-1] is EstimatorState.ENHANCED_REJECTED
        assert decision.estimate is decision.traditional
        assert decision.enhanced is None

    def test_real_classifier_accepted(self):
        hybrid = HybridKeyEstimator(_FixedMatcher(_estimate(confidence=0.4)), _biased_classifier(2))
        decision = hybrid.estimate(_sine(440.0), SR, _CHROMA)
        assert decision.state is EstimatorState.ENHANCED_ACCEPTED
        assert decision.estimate.key == "D Major"

    def test_real_classifier_short_audio_rejected(self):
        hybrid = HybridKeyEstimator(_FixedMatcher(_estimate(confidence=0.4)), _biased_classifier(2))
        decision = hybrid.estimate(np.zeros(2000), SR, _CHROMA)
        assert decision.state is EstimatorState.ENHANCED_REJECTED

    def test_custom_threshold(self):
        model = _FixedModel((9, False, 0.99))
        hybrid = HybridKeyEstimator(
            _FixedMatcher(_estimate(confidence=0.6)), model, threshold=0.5
        )
        assert hybrid.estimate(_sine(440.0), SR, _CHROMA).state is EstimatorState.TRADITIONAL_ONLY

    def test_invalid_threshold(self):
        with pytest.raises(ValueError, match="threshold"):
            HybridKeyEstimator(_FixedMatcher(_estimate()), threshold=1.5)
