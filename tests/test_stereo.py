"""
tests/test_stereo.py — Test suite for core/quality/stereo.py.

Signal conventions:
    - Dual mono (L == R): correlation 1, width 0, mono compatibility 1
    - Polarity-inverted (R == −L): correlation −1, width 1, mono
      compatibility 0
    - Independent noise: correlation ≈ 0, width ≈ 1
"""

from __future__ import annotations

import numpy as np
import pytest

from core.config import EngineConfig
from core.pcm import PcmBuffer
from core.quality import StereoAnalyzer, analyze_stereo
from core.quality.stereo import quality_label

SR = 44100
N = SR * 2


def _sine(freq_hz: float, amplitude: float = 0.5, sr: int = SR, n: int = N) -> np.ndarray:
    """Generate a mono sine wave."""
    t = np.arange(n) / sr
    return amplitude * np.sin(2.0 * np.pi * freq_hz * t)


def _white_noise(amplitude: float = 0.3, n: int = N, seed: int = 42) -> np.ndarray:
    """Generate white noise with controlled amplitude."""
    rng = np.random.default_rng(seed)
    return amplitude * rng.standard_normal(n)


def _stereo(left: np.ndarray, right: np.ndarray) -> np.ndarray:
    """Stack two mono arrays into a stereo (2, N) array."""
    return np.stack([left, right], axis=0)


class TestStereoImage:
    def test_dual_mono(self):
        y = _sine(440.0)
        report = analyze_stereo(_stereo(y, y), SR)
        assert report.phase_correlation == pytest.approx(1.0)
        assert report.stereo_width == pytest.approx(0.0, abs=1e-9)
        assert report.mono_compatibility == pytest.approx(1.0)
        assert report.lr_balance_db == pytest.approx(0.0)
        assert report.is_applicable
        assert not report.is_mono

    def test_polarity_inverted(self):
        y = _sine(440.0)
        report = analyze_stereo(_stereo(y, -y), SR)
        assert report.phase_correlation == pytest.approx(-1.0)
        assert report.stereo_width == pytest.approx(1.0)
        assert report.mono_compatibility == pytest.approx(0.0, abs=1e-9)

    def test_independent_noise(self):
        report = analyze_stereo(_stereo(_white_noise(seed=1), _white_noise(seed=2)), SR)
        assert report.phase_correlation == pytest.approx(0.0, abs=0.05)
        assert report.stereo_width == pytest.approx(1.0, abs=0.05)
        assert report.mono_compatibility == pytest.approx(0.5, abs=0.05)

    def test_balance_right_heavy(self):
        y = _sine(440.0)
        report = analyze_stereo(_stereo(0.5 * y, y), SR)
        assert report.lr_balance_db == pytest.approx(6.02, abs=0.01)

    def test_balance_one_side_silent(self):
        y = _sine(440.0)
        report = analyze_stereo(_stereo(y, np.zeros(N)), SR)
        assert report.lr_balance_db == pytest.approx(-20.0)
        assert report.phase_correlation == 0.0

    def test_both_silent(self):
        report = analyze_stereo(np.zeros((2, N)), SR)
        assert report.phase_correlation == 1.0
        assert report.stereo_width == 0.0
        assert report.mono_compatibility == 1.0

    def test_analysis_window_capped(self):
        y = _sine(440.0, n=SR * 3)
        report = analyze_stereo(_stereo(y, y), SR, max_sec=1.0)
        assert report.analysed_sec == pytest.approx(1.0)

    def test_imaging_score_dual_mono(self):
        y = _white_noise()
        report = analyze_stereo(_stereo(y, y), SR)
        assert report.imaging_quality_score == pytest.approx(1.0)

    def test_invalid_sample_rate(self):
        with pytest.raises(ValueError, match="Sample rate"):
            analyze_stereo(np.zeros((2, 10)), 0)


class TestNotApplicable:
    def test_mono_array(self):
        report = analyze_stereo(_sine(440.0), SR)
        assert report.is_mono
        assert report.phase_correlation is None
        assert report.stereo_width is None
        assert report.mono_compatibility == 1.0
        assert report.imaging_quality == "Not applicable"
        assert not report.is_applicable

    def test_multichannel(self):
        report = analyze_stereo(np.zeros((6, N)), SR)
        assert not report.is_mono
        assert report.channels == 6
        assert report.mono_compatibility is None
        assert report.imaging_quality == "Not applicable"


class TestQualityLabel:
    @pytest.mark.parametrize(
        "corr, width, compat, label",
        [
            (1.0, 0.9, 1.0, "Professional"),
            (0.8, 0.5, 0.9, "High Quality"),
            (0.5, 0.3, 0.8, "Good"),
            (0.2, 0.3, 0.5, "Fair"),
            (0.0, 0.1, 0.2, "Poor"),
        ],
    )
    def test_thresholds(self, corr, width, compat, label):
        assert quality_label(corr, width, compat) == label


class TestStereoAnalyzer:
    def test_uses_config_limit(self):
        y = _sine(440.0, n=SR * 3)
        pcm = PcmBuffer.from_channels(_stereo(y, y), SR)
        report = StereoAnalyzer(EngineConfig(stereo_max_sec=2.0)).analyze(pcm)
        assert report.analysed_sec == pytest.approx(2.0)

    def test_mono_pcm(self):
        pcm = PcmBuffer.from_channels(_sine(440.0), SR)
        report = StereoAnalyzer().analyze(pcm)
        assert report.is_mono
        assert report.channels == 1

    def test_whole_signal_when_unlimited(self):
        y = _sine(440.0, n=SR * 3)
        pcm = PcmBuffer.from_channels(_stereo(y, y), SR)
        report = StereoAnalyzer(EngineConfig(stereo_max_sec=None)).analyze(pcm)
        assert report.analysed_sec == pytest.approx(3.0)
