"""
core/report.py — Merged analysis report and per-stage timings.

The engine returns these aggregates. They own nothing but frozen result
objects, so a caller can keep, cache, or serialise them freely.

Design:
    - as_dict() builds on dataclasses.asdict and maps the -inf silence
      sentinel (and any other non-finite float) to None, so the result is
      directly JSON-serialisable.
    - Timings are wall-clock milliseconds; they are the only fields that
      differ between two analyses of the same PCM.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from typing import Any

from core.loudness.types import LoudnessReport, PlatformCompliance
from core.quality.types import StereoReport, TechnicalQualityReport
from core.tonal.types import KeyEstimate


def _json_ready(value: Any) -> Any:
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, dict):
        return {k: _json_ready(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_ready(v) for v in value]
    return value


@dataclass(frozen=True)
class PerformanceTimings:
    """Wall-clock time per stage, in milliseconds. 0.0 for stages not run."""

    total_ms: float = 0.0
    k_weighting_ms: float = 0.0
    block_processing_ms: float = 0.0
    technical_ms: float = 0.0
    stereo_ms: float = 0.0
    chroma_ms: float = 0.0
    key_ms: float = 0.0

    def merged(self, other: PerformanceTimings, total_ms: float) -> PerformanceTimings:
        """Combine the stage timings of two partial runs under a new total."""
        return PerformanceTimings(
            total_ms=total_ms,
            k_weighting_ms=self.k_weighting_ms + other.k_weighting_ms,
            block_processing_ms=self.block_processing_ms + other.block_processing_ms,
            technical_ms=self.technical_ms + other.technical_ms,
            stereo_ms=self.stereo_ms + other.stereo_ms,
            chroma_ms=self.chroma_ms + other.chroma_ms,
            key_ms=self.key_ms + other.key_ms,
        )


@dataclass(frozen=True)
class LoudnessAnalysis:
    """Result of AudioAnalysisEngine.analyze_loudness()."""

    loudness: LoudnessReport
    technical: TechnicalQualityReport
    stereo: StereoReport
    platforms: tuple[PlatformCompliance, ...]
    timings: PerformanceTimings

    def as_dict(self) -> dict[str, Any]:
        return _json_ready(asdict(self))


@dataclass(frozen=True)
class AnalysisReport:
    """Everything measured for one PCM buffer.

    Attributes:
        loudness:      BS.1770-4 loudness metrics.
        technical:     True peak, clipping, DC, spectrum, silence, mastering.
        stereo:        Stereo image ("Not applicable" unless two channels).
        platforms:     Per-platform loudness compliance.
        key:           Key estimate, or None when only loudness was requested.
        tempo_bpm:     Tempo supplied by the caller, forwarded untouched.
        duration_sec:  Signal duration.
        sample_rate:   Sample rate in Hz.
        channel_count: Number of channels.
        timings:       Per-stage wall-clock timings.
    """

    loudness: LoudnessReport
    technical: TechnicalQualityReport
    stereo: StereoReport
    platforms: tuple[PlatformCompliance, ...]
    key: KeyEstimate | None
    tempo_bpm: float | None
    duration_sec: float
    sample_rate: int
    channel_count: int
    timings: PerformanceTimings

    @classmethod
    def merge(
        cls,
        loudness: LoudnessAnalysis,
        key: KeyEstimate | None,
        *,
        tempo_bpm: float | None,
        duration_sec: float,
        sample_rate: int,
        channel_count: int,
        timings: PerformanceTimings,
    ) -> AnalysisReport:
        """Assemble a report from the loudness branch and the key branch."""
        return cls(
            loudness=loudness.loudness,
            technical=loudness.technical,
            stereo=loudness.stereo,
            platforms=loudness.platforms,
            key=key,
            tempo_bpm=tempo_bpm,
            duration_sec=duration_sec,
            sample_rate=sample_rate,
            channel_count=channel_count,
            timings=timings,
        )

    def as_dict(self) -> dict[str, Any]:
        """JSON-ready mapping; -inf (silence) becomes None."""
        return _json_ready(asdict(self))
