"""
Tests for core/pcm.py and core/errors.py — PCM validation and layout.
"""

from __future__ import annotations

import numpy as np
import pytest

from core.errors import AnalysisError, InvalidInputError
from core.pcm import PcmBuffer


class TestPcmLayout:
    def test_interleaved_channels(self):
        pcm = PcmBuffer(np.array([1.0, 2.0, 3.0, 4.0, 5.0, 6.0]), 44100, 2)
        np.testing.assert_array_equal(pcm.channels(), [[1.0, 3.0, 5.0], [2.0, 4.0, 6.0]])

    def test_frames_and_duration(self):
        pcm = PcmBuffer(np.zeros(88200), 44100, 2)
        assert pcm.frames == 44100
        assert pcm.duration_sec == pytest.approx(1.0)

    def test_from_channels_stereo(self):
        y = np.array([[0.1, 0.2, 0.3], [-0.1, -0.2, -0.3]])
        pcm = PcmBuffer.from_channels(y, 48000)
        assert pcm.channel_count == 2
        assert pcm.is_stereo
        np.testing.assert_array_equal(pcm.samples, [0.1, -0.1, 0.2, -0.2, 0.3, -0.3])
        np.testing.assert_array_equal(pcm.channels(), y)

    def test_from_channels_mono(self):
        pcm = PcmBuffer.from_channels(np.ones(10), 8000)
        assert pcm.channel_count == 1
        assert not pcm.is_stereo

    def test_mono_is_channel_mean(self):
        pcm = PcmBuffer.from_channels(np.array([[1.0, 0.0], [0.0, 1.0]]), 44100)
        np.testing.assert_allclose(pcm.mono(), [0.5, 0.5])

    def test_mono_of_mono_is_copy(self):
        pcm = PcmBuffer.from_channels(np.ones(4), 44100)
        out = pcm.mono()
        out[0] = 5.0
        assert pcm.samples[0] == 1.0

    def test_samples_are_read_only(self):
        pcm = PcmBuffer(np.zeros(4), 44100, 1)
        assert not pcm.samples.flags.writeable
        with pytest.raises(ValueError):
            pcm.samples[0] = 1.0

    def test_source_array_not_aliased(self):
        src = np.zeros(4)
        pcm = PcmBuffer(src, 44100, 1)
        src[0] = 1.0
        assert pcm.samples[0] == 0.0

    def test_float32_input_stored_as_float64(self):
        pcm = PcmBuffer(np.zeros(4, dtype=np.float32), 44100, 1)
        assert pcm.samples.dtype == np.float64


class TestPcmValidation:
    def test_nan_rejected(self):
        with pytest.raises(InvalidInputError, match="non-finite"):
            PcmBuffer(np.array([0.0, np.nan]), 44100, 1)

    def test_inf_rejected(self):
        with pytest.raises(InvalidInputError, match="non-finite"):
            PcmBuffer(np.array([0.0, np.inf, 0.0, 0.0]), 44100, 2)

    def test_zero_channels_rejected(self):
        with pytest.raises(InvalidInputError, match="channel count"):
            PcmBuffer(np.zeros(4), 44100, 0)

    def test_non_positive_sample_rate_rejected(self):
        with pytest.raises(InvalidInputError, match="sample rate"):
            PcmBuffer(np.zeros(4), 0, 1)

    def test_partial_frame_rejected(self):
        with pytest.raises(InvalidInputError, match="do not divide"):
            PcmBuffer(np.zeros(5), 44100, 2)

    def test_two_dimensional_samples_rejected(self):
        with pytest.raises(InvalidInputError, match="1-D"):
            PcmBuffer(np.zeros((2, 4)), 44100, 2)

    def test_from_channels_rejects_3d(self):
        with pytest.raises(InvalidInputError):
            PcmBuffer.from_channels(np.zeros((2, 2, 2)), 44100)

    def test_invalid_input_is_value_error(self):
        """Callers catching ValueError also catch malformed PCM."""
        with pytest.raises(ValueError):
            PcmBuffer(np.array([np.nan]), 44100, 1)

    def test_invalid_input_is_analysis_error(self):
        with pytest.raises(AnalysisError):
            PcmBuffer(np.zeros(4), 44100, -1)

    def test_error_carries_reason(self):
        with pytest.raises(InvalidInputError) as exc_info:
            PcmBuffer(np.zeros(4), -5, 1)
        assert "sample rate" in exc_info.value.reason
        assert str(exc_info.value).startswith("Invalid PCM input")

    def test_empty_buffer_is_valid(self):
        pcm = PcmBuffer(np.zeros(0), 44100, 2)
        assert pcm.frames == 0
