"""
Tests for ingestion/worker.py — background analysis worker.

Each test starts its own worker and always stops it, so no thread outlives
the test that created it.
"""

from __future__ import annotations

import numpy as np
import pytest

from core.pcm import PcmBuffer
from core.report import LoudnessAnalysis
from core.tonal.types import KeyEstimate
from ingestion.worker import (
    AnalysisFailed,
    AnalysisResult,
    AnalysisWorker,
    AnalyzeLoudnessRequest,
    AnalyzeMusicRequest,
    ProgressUpdate,
)

SR = 44100
_TIMEOUT = 60.0


def _pcm(seconds: float = 1.0, sr: int = SR) -> PcmBuffer:
    t = np.arange(int(sr * seconds)) / sr
    tone = 0.3 * np.sin(2.0 * np.pi * 440.0 * t)
    return PcmBuffer.from_channels(np.stack([tone, tone]), sr)


def _drain(worker: AnalysisWorker, count: int) -> list:
    return [worker.outbox.get(timeout=_TIMEOUT) for _ in range(count)]


@pytest.fixture
def worker(engine):
    w = AnalysisWorker(engine)
    w.start()
    yield w
    w.stop()


class TestMessages:
    def test_loudness_request(self, worker):
        worker.submit(AnalyzeLoudnessRequest("track-1", _pcm()))
        started, finished, result = _drain(worker, 3)
        assert started == ProgressUpdate("track-1", "started", 0.0)
        assert finished == ProgressUpdate("track-1", "finished", 1.0)
        assert isinstance(result, AnalysisResult)
        assert result.request_id == "track-1"
        assert isinstance(result.payload, LoudnessAnalysis)

    def test_music_request(self, worker):
        worker.submit(AnalyzeMusicRequest("track-2", _pcm()))
        *_, result = _drain(worker, 3)
        assert isinstance(result.payload, KeyEstimate)

    def test_failure_becomes_message(self, worker):
        # 3 kHz is below the K-weighting shelf frequency
        worker.submit(AnalyzeLoudnessRequest("bad", _pcm(sr=3000)))
        started, failed = _drain(worker, 2)
        assert started.stage == "started"
        assert isinstance(failed, AnalysisFailed)
        assert failed.request_id == "bad"
        assert failed.error_type == "ValueError"
        assert "too low" in failed.message

    def test_worker_survives_failure(self, worker):
        worker.submit(AnalyzeLoudnessRequest("bad", _pcm(sr=3000)))
        worker.submit(AnalyzeMusicRequest("good", _pcm()))
        messages = _drain(worker, 5)
        assert isinstance(messages[1], AnalysisFailed)
        assert isinstance(messages[-1], AnalysisResult)
        assert messages[-1].request_id == "good"

    def test_requests_processed_in_order(self, worker):
        for i in range(3):
            worker.submit(AnalyzeMusicRequest(f"r{i}", _pcm(0.5)))
        results = [m for m in _drain(worker, 9) if isinstance(m, AnalysisResult)]
        assert [r.request_id for r in results] == ["r0", "r1", "r2"]

    def test_rejects_unknown_request(self, worker):
        with pytest.raises(TypeError, match="Unsupported request"):
            worker.submit("analyze please")


class TestLifecycle:
    def test_start_is_idempotent(self, engine):
        worker = AnalysisWorker(engine)
        worker.start()
        thread = worker._thread
        worker.start()
        assert worker._thread is thread
        worker.stop()
        assert not worker.is_running

    def test_stop_drains_pending(self, engine):
        worker = AnalysisWorker(engine)
        worker.start()
        worker.submit(AnalyzeMusicRequest("a", _pcm(0.5)))
        worker.submit(AnalyzeMusicRequest("b", _pcm(0.5)))
        worker.stop(timeout=_TIMEOUT)
        assert not worker.is_running
        messages = [worker.outbox.get_nowait() for _ in range(worker.outbox.qsize())]
        results = [m for m in messages if isinstance(m, AnalysisResult)]
        assert [r.request_id for r in results] == ["a", "b"]

    def test_stop_without_start(self, engine):
        worker = AnalysisWorker(engine)
        worker.stop()
        assert not worker.is_running
