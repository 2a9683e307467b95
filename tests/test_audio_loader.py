"""
Tests for ingestion/audio_loader.py — file decoding and tempo estimation.

librosa is injected as a MagicMock, so no audio backend or real audio
files are needed. Files are created empty under tmp_path only so the
existence and extension checks have something to look at.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import numpy as np
import pytest

from core.errors import InvalidInputError
from core.pcm import PcmBuffer
from ingestion.audio_loader import AUDIO_EXTENSIONS, estimate_tempo, load_pcm

SR = 44100


def _make_mock_librosa(
    y: np.ndarray | None = None,
    sr: int = SR,
    bpm: float = 128.0,
) -> MagicMock:
    """Mock librosa with load() and beat.beat_track() configured."""
    mock = MagicMock()
    if y is None:
        y = np.zeros((2, SR), dtype=np.float32)
    mock.load.return_value = (y, sr)
    mock.beat.beat_track.return_value = (
        np.float64(bpm),
        np.array([0, 22, 44, 66]),
    )
    return mock


@pytest.fixture
def wav_file(tmp_path):
    path = tmp_path / "master.wav"
    path.write_bytes(b"")
    return path


class TestLoadPcm:
    def test_stereo_file(self, wav_file):
        left = np.full(SR, 0.1, dtype=np.float32)
        right = np.full(SR, -0.1, dtype=np.float32)
        mock = _make_mock_librosa(np.stack([left, right]))
        pcm = load_pcm(wav_file, librosa=mock)
        assert pcm.channel_count == 2
        assert pcm.sample_rate == SR
        assert pcm.frames == SR
        assert pcm.samples.dtype == np.float64
        np.testing.assert_allclose(pcm.channels()[1], right)

    def test_mono_file(self, wav_file):
        mock = _make_mock_librosa(np.zeros(22050, dtype=np.float32), sr=22050)
        pcm = load_pcm(wav_file, librosa=mock)
        assert pcm.channel_count == 1
        assert pcm.duration_sec == pytest.approx(1.0)

    def test_native_rate_and_channels_requested(self, wav_file):
        mock = _make_mock_librosa()
        load_pcm(wav_file, duration=30.0, librosa=mock)
        _, kwargs = mock.load.call_args
        assert kwargs["sr"] is None
        assert kwargs["mono"] is False
        assert kwargs["duration"] == 30.0

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError, match="not found"):
            load_pcm(tmp_path / "ghost.wav", librosa=_make_mock_librosa())

    def test_unsupported_extension(self, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_text("not audio", encoding="utf-8")
        with pytest.raises(ValueError, match="Unsupported audio format"):
            load_pcm(path, librosa=_make_mock_librosa())

    def test_extension_case_insensitive(self, tmp_path):
        path = tmp_path / "MASTER.FLAC"
        path.write_bytes(b"")
        assert load_pcm(path, librosa=_make_mock_librosa()).channel_count == 2

    def test_decode_failure(self, wav_file):
        mock = _make_mock_librosa()
        mock.load.side_effect = Exception("bad header")
        with pytest.raises(RuntimeError, match="Failed to decode"):
            load_pcm(wav_file, librosa=mock)

    def test_non_finite_samples(self, wav_file):
        y = np.zeros((2, 100), dtype=np.float32)
        y[0, 10] = np.nan
        with pytest.raises(InvalidInputError, match="non-finite"):
            load_pcm(wav_file, librosa=_make_mock_librosa(y))

    def test_known_extensions(self):
        assert {".wav", ".flac", ".mp3"} <= AUDIO_EXTENSIONS


class TestEstimateTempo:
    def _pcm(self) -> PcmBuffer:
        return PcmBuffer.from_channels(np.zeros((2, SR)), SR)

    def test_in_range(self):
        assert estimate_tempo(self._pcm(), librosa=_make_mock_librosa(bpm=127.96)) == 128.0

    def test_array_tempo(self):
        mock = _make_mock_librosa()
        mock.beat.beat_track.return_value = (np.array([94.5]), np.array([]))
        assert estimate_tempo(self._pcm(), librosa=mock) == 94.5

    def test_mono_mix_passed(self):
        mock = _make_mock_librosa()
        estimate_tempo(self._pcm(), librosa=mock)
        _, kwargs = mock.beat.beat_track.call_args
        assert kwargs["y"].ndim == 1
        assert kwargs["y"].dtype == np.float32
        assert kwargs["sr"] == SR

    @pytest.mark.parametrize("bpm", [0.0, 12.0, 480.0])
    def test_out_of_range_is_none(self, bpm):
        assert estimate_tempo(self._pcm(), librosa=_make_mock_librosa(bpm=bpm)) is None

    def test_tracker_error_is_none(self):
        mock = _make_mock_librosa()
        mock.beat.beat_track.side_effect = ValueError("too short")
        assert estimate_tempo(self._pcm(), librosa=mock) is None
