"""
ingestion/worker.py — Background analysis worker with message queues.

The host keeps its interactive thread free by handing PCM to a single
worker thread and reading typed messages back:

    host ──AnalyzeLoudnessRequest / AnalyzeMusicRequest──▶ inbox
                                                          │
                                                  AnalysisWorker thread
                                                          │
    host ◀──ProgressUpdate / AnalysisResult / AnalysisFailed── outbox

Design:
    - Messages are a closed set of frozen dataclasses.
    - One request is processed at a time, in submission order.
    - stop() enqueues a sentinel behind pending requests, so everything
      already submitted is drained before the thread exits.
    - Cancellation is coarse: the host may stop reading the outbox or
      abandon the worker. The engine has no internal cancellation points.
    - An unexpected exception becomes AnalysisFailed; the thread survives.
"""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass
from typing import Union

from core.pcm import PcmBuffer
from core.report import LoudnessAnalysis
from core.tonal.types import KeyEstimate
from ingestion.audio_engine import AudioAnalysisEngine

logger = logging.getLogger(__name__)

_POLL_INTERVAL_SEC = 0.5

# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AnalyzeLoudnessRequest:
    """Ask for loudness, technical quality, and stereo analysis."""

    request_id: str
    pcm: PcmBuffer


@dataclass(frozen=True)
class AnalyzeMusicRequest:
    """Ask for key and scale estimation."""

    request_id: str
    pcm: PcmBuffer


@dataclass(frozen=True)
class ProgressUpdate:
    """Coarse progress for one request."""

    request_id: str
    stage: str
    """'started' or 'finished'."""

    fraction: float


@dataclass(frozen=True)
class AnalysisResult:
    """Successful outcome of one request."""

    request_id: str
    payload: LoudnessAnalysis | KeyEstimate


@dataclass(frozen=True)
class AnalysisFailed:
    """A request that raised instead of producing a result."""

    request_id: str
    error_type: str
    message: str


Request = Union[AnalyzeLoudnessRequest, AnalyzeMusicRequest]
OutboundMessage = Union[ProgressUpdate, AnalysisResult, AnalysisFailed]


# ---------------------------------------------------------------------------
# Worker
# ---------------------------------------------------------------------------


class AnalysisWorker:
    """Runs an AudioAnalysisEngine on one background thread.

    Args:
        engine: Engine used for every request.
        name:   Thread name, useful in logs.

    Example::

        worker = AnalysisWorker(AudioAnalysisEngine())
        worker.start()
        worker.submit(AnalyzeLoudnessRequest("track-1", pcm))
        msg = worker.outbox.get(timeout=120)
        worker.stop()
    """

    def __init__(self, engine: AudioAnalysisEngine, *, name: str = "analysis-worker") -> None:
        self.engine = engine
        self.name = name
        self.inbox: queue.Queue[Request | None] = queue.Queue()
        self.outbox: queue.Queue[OutboundMessage] = queue.Queue()
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the worker thread. Calling start() twice is a no-op."""
        with self._lock:
            if self.is_running:
                return
            self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
            self._thread.start()
        logger.info("Analysis worker %r started", self.name)

    def submit(self, request: Request) -> None:
        """Queue a request for the worker thread.

        Raises:
            TypeError: If request is not one of the request message types.
        """
        if not isinstance(request, (AnalyzeLoudnessRequest, AnalyzeMusicRequest)):
            raise TypeError(f"Unsupported request type: {type(request).__name__}")
        self.inbox.put(request)

    def stop(self, timeout: float | None = 5.0) -> None:
        """Finish pending requests, then stop the thread."""
        with self._lock:
            thread = self._thread
            if thread is None:
                return
            self.inbox.put(None)
            thread.join(timeout=timeout)
            if thread.is_alive():
                logger.warning("Analysis worker %r did not stop within %.1fs", self.name, timeout)
            else:
                self._thread = None
                logger.info("Analysis worker %r stopped", self.name)

    def _handle(self, request: Request) -> OutboundMessage:
        self.outbox.put(ProgressUpdate(request.request_id, "started", 0.0))
        try:
            if isinstance(request, AnalyzeLoudnessRequest):
                payload: LoudnessAnalysis | KeyEstimate = self.engine.analyze_loudness(request.pcm)
            else:
                payload = self.engine.analyze_music(request.pcm)
        except Exception as exc:
            logger.warning("Request %s failed: %s", request.request_id, exc)
            return AnalysisFailed(request.request_id, type(exc).__name__, str(exc))
        self.outbox.put(ProgressUpdate(request.request_id, "finished", 1.0))
        return AnalysisResult(request.request_id, payload)

    def _run(self) -> None:
        while True:
            try:
                request = self.inbox.get(timeout=_POLL_INTERVAL_SEC)
            except queue.Empty:
                continue
            try:
                if request is None:
                    return
                self.outbox.put(self._handle(request))
            finally:
                self.inbox.task_done()
