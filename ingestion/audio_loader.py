"""
ingestion/audio_loader.py — File I/O boundary for audio loading.

This is the ONLY module in the analysis pipeline that reads files from disk.
Everything downstream (core/loudness, core/quality, core/tonal) takes a
validated PcmBuffer — never file paths.

librosa is only needed here, for decoding and the optional tempo estimate
forwarded into the report. The core never computes tempo itself.

Usage:
    from ingestion.audio_loader import load_pcm
    pcm = load_pcm("/path/to/master.wav")
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import numpy as np

from core.pcm import PcmBuffer

logger = logging.getLogger(__name__)

# Supported audio file extensions (must be loadable by librosa / soundfile)
AUDIO_EXTENSIONS: frozenset[str] = frozenset(
    {".mp3", ".wav", ".flac", ".aiff", ".aif", ".ogg", ".m4a", ".opus"}
)

# Realistic tempo range; anything outside is treated as a tracking failure
_MIN_BPM = 20.0
_MAX_BPM = 300.0


def load_pcm(
    path: str | Path,
    *,
    duration: float | None = None,
    librosa: Any = None,
) -> PcmBuffer:
    """Decode an audio file into a PcmBuffer at its native rate.

    Channels are preserved: a stereo file yields a two-channel buffer so
    the stereo analysis sees the real image.

    Args:
        path:     Path to an audio file (mp3, wav, flac, aiff, ogg, m4a, opus).
        duration: Maximum seconds to load. None loads the whole file.
        librosa:  Injected librosa module (tests). None imports it lazily.

    Returns:
        PcmBuffer with float64 samples.

    Raises:
        FileNotFoundError: File does not exist at the given path.
        ValueError: File extension is not a supported audio format.
        RuntimeError: librosa/soundfile could not decode the file
                      (corrupted, truncated, DRM-protected, etc.).
        InvalidInputError: The decoded samples are not finite.
    """
    if librosa is None:
        import librosa  # deferred to allow testing without audio backend

    file_path = Path(path)

    if not file_path.exists():
        raise FileNotFoundError(f"Audio file not found: {file_path}")

    if file_path.suffix.lower() not in AUDIO_EXTENSIONS:
        raise ValueError(
            f"Unsupported audio format {file_path.suffix!r}. "
            f"Supported: {sorted(AUDIO_EXTENSIONS)}"
        )

    try:
        y, loaded_sr = librosa.load(
            file_path,
            sr=None,
            mono=False,
            duration=duration,
            offset=0.0,
        )
    except Exception as exc:
        raise RuntimeError(
            f"Failed to decode audio file {file_path.name!r}: {exc}"
        ) from exc

    pcm = PcmBuffer.from_channels(np.asarray(y), int(loaded_sr))
    logger.info(
        "Loaded %s: %d ch, %d Hz, %.2f s",
        file_path.name,
        pcm.channel_count,
        pcm.sample_rate,
        pcm.duration_sec,
    )
    return pcm


def estimate_tempo(pcm: PcmBuffer, *, librosa: Any = None) -> float | None:
    """Estimate tempo in BPM with librosa's beat tracker.

    Returns:
        Tempo in BPM, or None when it cannot be determined (tracker error,
        or a result outside the realistic 20–300 BPM range).
    """
    if librosa is None:
        import librosa  # deferred to allow testing without audio backend

    y = pcm.mono().astype(np.float32)
    try:
        tempo, _ = librosa.beat.beat_track(y=y, sr=pcm.sample_rate)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Tempo estimation failed: %s", exc)
        return None

    bpm = float(np.atleast_1d(tempo)[0])
    if not _MIN_BPM <= bpm <= _MAX_BPM:
        return None
    return round(bpm, 1)
