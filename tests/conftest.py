"""
Shared fixtures for the test suite.

Centralizes reusable test infrastructure so individual test files
don't need to repeat engine construction or signal boilerplate.
Signal helpers (_sine, _white_noise, _stereo) stay local to each test
module, matching what that module needs.
"""

from __future__ import annotations

import numpy as np
import pytest

from core.buffers import BufferPool
from core.pcm import PcmBuffer
from ingestion.audio_engine import AudioAnalysisEngine

SR = 44100


@pytest.fixture(scope="session")
def engine() -> AudioAnalysisEngine:
    """Default engine (no classifier). Stateless between calls, so shared."""
    return AudioAnalysisEngine()


@pytest.fixture
def pool() -> BufferPool:
    """Fresh scratch-buffer pool per test."""
    return BufferPool(max_buffers=2)


@pytest.fixture
def stereo_sine_pcm() -> PcmBuffer:
    """3 s stereo 1 kHz sine, identical channels, 0.25 peak."""
    t = np.arange(3 * SR) / SR
    tone = 0.25 * np.sin(2.0 * np.pi * 1000.0 * t)
    return PcmBuffer.from_channels(np.stack([tone, tone]), SR)
