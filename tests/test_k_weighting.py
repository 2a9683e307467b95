"""
Tests for core/loudness/k_weighting.py — BS.1770-4 K-weighting filter.

Reference coefficients are the 48 kHz values published in ITU-R BS.1770-4
Tables 1 and 2.
"""

from __future__ import annotations

import numpy as np
import pytest
from scipy import signal as scipy_signal

from core.errors import InvalidInputError
from core.loudness.k_weighting import KWeightingFilter, design_high_pass, design_high_shelf

SR = 48000

# BS.1770-4 Table 1 (stage 1 shelf) and Table 2 (stage 2 RLB high-pass)
_SHELF_B_48K = (1.53512485958697, -2.69169618940638, 1.19839281085285)
_SHELF_A_48K = (1.0, -1.69065929318241, 0.73248077421585)
_HP_B_48K = (1.0, -2.0, 1.0)
_HP_A_48K = (1.0, -1.99004745483398, 0.99007225036621)


def _sine(freq_hz: float, amplitude: float = 0.5, sr: int = SR, seconds: float = 1.0) -> np.ndarray:
    """Generate a mono sine wave."""
    t = np.arange(int(sr * seconds)) / sr
    return amplitude * np.sin(2.0 * np.pi * freq_hz * t)


def _gain_db(kw: KWeightingFilter, freq_hz: float) -> float:
    _, h = scipy_signal.sosfreqz(kw.sos, worN=[freq_hz], fs=kw.sample_rate)
    return float(20.0 * np.log10(np.abs(h[0])))


class TestCoefficients:
    def test_shelf_matches_reference_table(self):
        shelf = design_high_shelf(SR)
        assert shelf.b == pytest.approx(_SHELF_B_48K, abs=1e-6)
        assert shelf.a == pytest.approx(_SHELF_A_48K, abs=1e-6)

    def test_high_pass_matches_reference_table(self):
        hp = design_high_pass(SR)
        assert hp.b == pytest.approx(_HP_B_48K)
        assert hp.a == pytest.approx(_HP_A_48K, abs=1e-6)

    def test_sos_layout(self):
        sos = KWeightingFilter(SR).sos
        assert sos.shape == (2, 6)
        assert sos[0, 3] == 1.0
        assert sos[1, 3] == 1.0

    def test_sos_is_a_copy(self):
        kw = KWeightingFilter(SR)
        sos = kw.sos
        sos[:] = 0.0
        assert kw.sos[0, 0] != 0.0

    @pytest.mark.parametrize("sr", [44100, 48000, 88200, 96000, 192000])
    def test_other_rates_are_stable(self, sr):
        sos = KWeightingFilter(sr).sos
        for row in sos:
            poles = np.roots(row[3:])
            assert np.all(np.abs(poles) < 1.0)


class TestFrequencyResponse:
    def test_1khz_gain_offsets_loudness_constant(self):
        """+0.69 dB at 1 kHz cancels the −0.691 LUFS constant."""
        assert _gain_db(KWeightingFilter(SR), 1000.0) == pytest.approx(0.691, abs=0.02)

    def test_high_frequencies_boosted_about_4db(self):
        gain = _gain_db(KWeightingFilter(SR), 10000.0)
        assert 3.5 < gain < 4.5

    def test_low_frequencies_attenuated(self):
        assert _gain_db(KWeightingFilter(SR), 20.0) < -10.0

    def test_44k1_close_to_48k_in_passband(self):
        g44 = _gain_db(KWeightingFilter(44100), 1000.0)
        g48 = _gain_db(KWeightingFilter(48000), 1000.0)
        assert g44 == pytest.approx(g48, abs=0.02)


class TestApply:
    def test_length_preserved(self):
        y = _sine(1000.0)
        assert KWeightingFilter(SR).apply(y).shape == y.shape

    def test_silence_stays_silent(self):
        out = KWeightingFilter(SR).apply(np.zeros(4800))
        assert np.all(out == 0.0)

    def test_empty_input(self):
        assert KWeightingFilter(SR).apply(np.zeros(0)).size == 0

    def test_fresh_state_per_call(self):
        kw = KWeightingFilter(SR)
        y = _sine(440.0)
        np.testing.assert_array_equal(kw.apply(y), kw.apply(y))

    def test_channels_filtered_independently(self):
        kw = KWeightingFilter(SR)
        left = _sine(1000.0)
        right = _sine(50.0, amplitude=0.9)
        both = kw.apply_channels(np.stack([left, right]))
        np.testing.assert_allclose(both[0], kw.apply(left), atol=1e-12)
        np.testing.assert_allclose(both[1], kw.apply(right), atol=1e-12)

    def test_out_buffer_matches_single_pass(self):
        # 3 s at 48 kHz spans several 65536-frame chunks
        kw = KWeightingFilter(SR)
        x = np.stack([_sine(1000.0, seconds=3.0), _sine(60.0, amplitude=0.8, seconds=3.0)])
        out = np.empty_like(x)
        result = kw.apply_channels(x, out=out)
        assert result is out
        np.testing.assert_allclose(out, kw.apply_channels(x), rtol=0.0, atol=1e-12)

    def test_out_buffer_empty_signal(self):
        out = np.empty((2, 0))
        assert KWeightingFilter(SR).apply_channels(np.zeros((2, 0)), out=out) is out

    def test_out_buffer_shape_mismatch(self):
        with pytest.raises(ValueError, match="out has shape"):
            KWeightingFilter(SR).apply_channels(np.zeros((2, 100)), out=np.zeros((2, 99)))

    def test_initial_state_shape(self):
        assert KWeightingFilter(SR).initial_state(3).shape == (2, 3, 2)

    def test_apply_channels_rejects_1d(self):
        with pytest.raises(ValueError, match="Expected"):
            KWeightingFilter(SR).apply_channels(np.zeros(10))

    def test_nan_propagates(self):
        y = np.zeros(10)
        y[5] = np.nan
        out = KWeightingFilter(SR).apply(y)
        assert np.isnan(out[5])


class TestValidation:
    def test_zero_sample_rate(self):
        with pytest.raises(ValueError, match="positive"):
            KWeightingFilter(0)

    def test_sample_rate_below_shelf_nyquist(self):
        with pytest.raises(ValueError, match="too low"):
            KWeightingFilter(3000)

    @pytest.mark.parametrize("sample_rate", [0, 3000, 3363])
    def test_unusable_rate_is_invalid_input(self, sample_rate):
        with pytest.raises(InvalidInputError):
            KWeightingFilter(sample_rate)
