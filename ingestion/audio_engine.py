"""
ingestion/audio_engine.py — High-level orchestrator for audio analysis.

AudioAnalysisEngine wires the pure analysis stages in `core/` into the two
public operations and the merged report:

    PcmBuffer
        │
        ├─ KWeightingFilter → block energies → LoudnessGate   [core/loudness]
        ├─ TechnicalQualityAnalyzer                          [core/quality/technical.py]
        ├─ StereoAnalyzer                                    [core/quality/stereo.py]
        └─ ChromagramExtractor → HybridKeyEstimator          [core/tonal]
                                   └─ KeyProfileMatcher (+ optional KeyClassifier)

    analyze_loudness(pcm) → LoudnessAnalysis
    analyze_music(pcm)    → KeyEstimate
    analyze(pcm)          → AnalysisReport (both, merged)

This module is in `ingestion/` because it owns the long-lived resources
(the loaded classifier, the scratch-buffer pool, the bundled tables) and
optionally fans work out to threads. Every stage it calls is pure and
lives in `core/`.

Usage:
    engine = AudioAnalysisEngine()
    pcm = PcmBuffer.from_channels(stereo_array, 48000)
    report = engine.analyze(pcm, tempo_bpm=124.0)
    print(report.loudness.integrated, report.key.key)
"""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor

from core.buffers import BufferPool
from core.config import DEFAULT_CONFIG, EngineConfig
from core.errors import ModelUnavailableError
from core.loudness.calibration import calibration_from_name
from core.loudness.k_weighting import KWeightingFilter
from core.loudness.meter import loudness_report, rms_db
from core.loudness.platforms import check_platforms, load_platform_targets
from core.loudness.types import LoudnessReport, PlatformTarget
from core.pcm import PcmBuffer
from core.quality.stereo import StereoAnalyzer
from core.quality.technical import TechnicalQualityAnalyzer, attach_loudness
from core.quality.types import StereoReport, TechnicalQualityReport
from core.report import AnalysisReport, LoudnessAnalysis, PerformanceTimings
from core.tonal.chroma import ChromagramExtractor
from core.tonal.classifier import KeyClassifier
from core.tonal.hybrid import HybridKeyEstimator, KeyDecision, KeyModel
from core.tonal.key_matcher import KeyProfileMatcher
from core.tonal.profiles import load_key_profiles, load_scale_patterns
from core.tonal.scales import ScaleAnalyzer
from core.tonal.types import KeyEstimate, KeyProfile

logger = logging.getLogger(__name__)

_BRANCH_WORKERS = 4


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000.0


class AudioAnalysisEngine:
    """Runs loudness, quality, stereo, and key analysis over one PCM buffer.

    The engine keeps no per-analysis state: two calls with the same PCM
    return equal reports apart from the timing fields.

    Args:
        config:     Engine configuration. Defaults to DEFAULT_CONFIG.
        classifier: Injected key classifier. None loads one from
                    config.classifier_path when that is set.
        profiles:   Key profiles overriding the bundled five.
        platforms:  Platform targets overriding the bundled list.
        pool:       Scratch-buffer pool; a private one is created if None.

    Example:
        engine = AudioAnalysisEngine(REFERENCE_MASTERS_CONFIG)
        loudness = engine.analyze_loudness(pcm)
        key = engine.analyze_music(pcm)
    """

    def __init__(
        self,
        config: EngineConfig = DEFAULT_CONFIG,
        *,
        classifier: KeyModel | None = None,
        profiles: Sequence[KeyProfile] | None = None,
        platforms: Sequence[PlatformTarget] | None = None,
        pool: BufferPool | None = None,
    ) -> None:
        self.config = config
        self.pool = pool if pool is not None else BufferPool()
        self.calibration = calibration_from_name(config.calibration)
        self.platform_targets = tuple(platforms) if platforms is not None else load_platform_targets()

        scale_analyzer = ScaleAnalyzer(
            load_scale_patterns(),
            min_strength=config.scale_min_strength,
            max_results=config.max_scales,
        )
        self.matcher = KeyProfileMatcher(
            tuple(profiles) if profiles is not None else load_key_profiles(),
            scale_analyzer,
        )
        self.chroma_extractor = ChromagramExtractor.from_config(config, self.pool)
        self.technical_analyzer = TechnicalQualityAnalyzer(config, self.pool)
        self.stereo_analyzer = StereoAnalyzer(config)

        if classifier is None and config.classifier_path and config.enhanced_enabled:
            classifier = self._load_classifier(config.classifier_path)
        self.hybrid = HybridKeyEstimator(
            self.matcher,
            classifier,
            threshold=config.hybrid_threshold,
            enabled=config.enhanced_enabled,
        )
        logger.info(
            "AudioAnalysisEngine ready (calibration=%s, profiles=%d, enhanced=%s, parallel=%s)",
            self.calibration.name,
            len(self.matcher.profiles),
            self.enhanced_available,
            config.parallel,
        )

    @staticmethod
    def _load_classifier(path: str) -> KeyClassifier | None:
        try:
            return KeyClassifier.load(path)
        except ModelUnavailableError as exc:
            logger.debug("Key classifier unavailable, using profile matching only: %s", exc)
            return None

    @property
    def enhanced_available(self) -> bool:
        """True when the learned classifier loaded and is enabled."""
        return self.hybrid.enhanced_available

    # ------------------------------------------------------------------
    # Branches
    # ------------------------------------------------------------------

    def _loudness_branch(self, pcm: PcmBuffer) -> tuple[LoudnessReport, float, float]:
        """(report, k_weighting_ms, block_processing_ms)."""
        channels = pcm.channels()
        kw = KWeightingFilter(pcm.sample_rate)
        with self.pool.borrowed(channels.shape) as weighted:
            t0 = time.perf_counter()
            kw.apply_channels(channels, out=weighted)
            k_ms = _elapsed_ms(t0)

            t1 = time.perf_counter()
            report = loudness_report(
                weighted,
                pcm.sample_rate,
                rms=rms_db(channels),
                config=self.config,
                calibration=self.calibration,
            )
            block_ms = _elapsed_ms(t1)
        return report, k_ms, block_ms

    def _technical_branch(
        self, pcm: PcmBuffer, integrated_lufs: float | None = None
    ) -> tuple[TechnicalQualityReport, float]:
        t0 = time.perf_counter()
        report = self.technical_analyzer.analyze(pcm, integrated_lufs=integrated_lufs)
        return report, _elapsed_ms(t0)

    def _stereo_branch(self, pcm: PcmBuffer) -> tuple[StereoReport, float]:
        t0 = time.perf_counter()
        report = self.stereo_analyzer.analyze(pcm)
        return report, _elapsed_ms(t0)

    def _key_branch(self, pcm: PcmBuffer) -> tuple[KeyDecision, float, float]:
        """(decision, chroma_ms, key_ms)."""
        mono = pcm.mono()
        t0 = time.perf_counter()
        chroma = self.chroma_extractor.extract(mono, pcm.sample_rate)
        chroma_ms = _elapsed_ms(t0)

        t1 = time.perf_counter()
        decision = self.hybrid.estimate(mono, pcm.sample_rate, chroma)
        key_ms = _elapsed_ms(t1)
        logger.debug(
            "Key %s via %s (chroma %.1f ms, key %.1f ms)",
            decision.estimate.key,
            decision.state.value,
            chroma_ms,
            key_ms,
        )
        return decision, chroma_ms, key_ms

    def _assemble_loudness(
        self,
        loudness: LoudnessReport,
        technical: TechnicalQualityReport,
        stereo: StereoReport,
        timings: PerformanceTimings,
    ) -> LoudnessAnalysis:
        platforms = check_platforms(
            loudness.integrated, technical.true_peak.level_db, self.platform_targets
        )
        return LoudnessAnalysis(
            loudness=loudness,
            technical=technical,
            stereo=stereo,
            platforms=platforms,
            timings=timings,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def analyze_loudness(self, pcm: PcmBuffer) -> LoudnessAnalysis:
        """Measure loudness, technical quality, and the stereo image.

        Clips shorter than one 400 ms block are not an error: loudness
        fields come back as -inf.

        Raises:
            InvalidInputError: If the sample rate is too low for K-weighting.
        """
        t0 = time.perf_counter()
        loudness, k_ms, block_ms = self._loudness_branch(pcm)
        technical, tech_ms = self._technical_branch(pcm, loudness.integrated)
        stereo, stereo_ms = self._stereo_branch(pcm)
        timings = PerformanceTimings(
            total_ms=_elapsed_ms(t0),
            k_weighting_ms=k_ms,
            block_processing_ms=block_ms,
            technical_ms=tech_ms,
            stereo_ms=stereo_ms,
        )
        logger.debug(
            "Loudness %.2f LUFS in %.1f ms (k-weighting %.1f, blocks %.1f)",
            loudness.integrated,
            timings.total_ms,
            k_ms,
            block_ms,
        )
        return self._assemble_loudness(loudness, technical, stereo, timings)

    def decide_key(self, pcm: PcmBuffer) -> KeyDecision:
        """Run the hybrid key state machine and return the full decision."""
        decision, _, _ = self._key_branch(pcm)
        return decision

    def analyze_music(self, pcm: PcmBuffer) -> KeyEstimate:
        """Estimate the musical key and scales.

        Returns an indeterminate estimate (key "Unknown") for silence or
        clips shorter than one chroma window.
        """
        return self.decide_key(pcm).estimate

    def analyze(self, pcm: PcmBuffer, tempo_bpm: float | None = None) -> AnalysisReport:
        """Run every branch and merge the results into one report.

        With config.parallel the four branches run on a thread pool; the
        mastering fields that need integrated loudness are filled in once
        the loudness branch has finished.

        Args:
            pcm:       Validated PCM.
            tempo_bpm: Tempo from an external beat tracker, or None.
        """
        t0 = time.perf_counter()
        if self.config.parallel:
            with ThreadPoolExecutor(max_workers=_BRANCH_WORKERS) as executor:
                loud_f = executor.submit(self._loudness_branch, pcm)
                tech_f = executor.submit(self._technical_branch, pcm)
                stereo_f = executor.submit(self._stereo_branch, pcm)
                key_f = executor.submit(self._key_branch, pcm)
                loudness, k_ms, block_ms = loud_f.result()
                technical, tech_ms = tech_f.result()
                stereo, stereo_ms = stereo_f.result()
                decision, chroma_ms, key_ms = key_f.result()
            technical = attach_loudness(technical, loudness.integrated)
            timings = PerformanceTimings(
                total_ms=_elapsed_ms(t0),
                k_weighting_ms=k_ms,
                block_processing_ms=block_ms,
                technical_ms=tech_ms,
                stereo_ms=stereo_ms,
                chroma_ms=chroma_ms,
                key_ms=key_ms,
            )
            loudness_analysis = self._assemble_loudness(loudness, technical, stereo, timings)
        else:
            loudness_analysis = self.analyze_loudness(pcm)
            decision, chroma_ms, key_ms = self._key_branch(pcm)
            timings = loudness_analysis.timings.merged(
                PerformanceTimings(chroma_ms=chroma_ms, key_ms=key_ms),
                total_ms=_elapsed_ms(t0),
            )

        return AnalysisReport.merge(
            loudness_analysis,
            decision.estimate,
            tempo_bpm=tempo_bpm,
            duration_sec=pcm.duration_sec,
            sample_rate=pcm.sample_rate,
            channel_count=pcm.channel_count,
            timings=timings,
        )
