"""
Configuration dataclasses for the analysis engine.

These immutable config objects carry every tunable constant (window sizes,
gate thresholds, platform ceilings, key-estimation thresholds) so that the
DSP functions stay parameterised and the engine can be reconfigured without
touching algorithm code.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any

import yaml  # PyYAML

# Allowlist of calibration step names understood by core/loudness/calibration.py.
VALID_CALIBRATIONS: frozenset[str] = frozenset({"none", "reference-masters"})


@dataclass(frozen=True)
class TruePeakCeilings:
    """Pass/fail ceilings for the true-peak compliance flags (dBTP).

    Attributes:
        broadcast: Broadcast delivery ceiling. Defaults to -1.0 dBTP.
        streaming: Music-streaming ceiling (Spotify-style). Defaults to -2.0 dBTP.
        video: Video-platform ceiling (YouTube-style). Defaults to -1.0 dBTP.
    """

    broadcast: float = -1.0
    streaming: float = -2.0
    video: float = -1.0

    def __post_init__(self) -> None:
        """Ceilings above 0 dBTP are meaningless for float PCM."""
        for name in ("broadcast", "streaming", "video"):
            value = getattr(self, name)
            if value > 0.0:
                raise ValueError(f"{name} ceiling must be <= 0 dBTP, got {value}")


@dataclass(frozen=True)
class EngineConfig:
    """
    Configuration for AudioAnalysisEngine and the stages it drives.

    Immutable configuration object shared by every analysis call. Defaults
    follow ITU-R BS.1770-4 / EBU R128 for the loudness path.

    Attributes:
        momentary_window_sec: Momentary block length (0.4 s).
        momentary_overlap: Momentary block overlap (0.75 → 100 ms hop).
        short_term_window_sec: Short-term block length (3.0 s).
        short_term_overlap: Short-term block overlap (0.9 → 300 ms hop).
        absolute_gate_lufs: Absolute gate for integrated loudness.
        relative_gate_lu: Relative gate offset for integrated loudness.
        lra_relative_gate_lu: Relative gate offset for loudness range.
        calibration: Post-processing step applied to integrated loudness.
            "none" is standards-compliant; "reference-masters" enables the
            non-normative volume-dependent offsets.
        true_peak_oversample: Oversampling factor for true-peak estimation.
        true_peak_ceilings: Ceilings for the compliance flags.
        clipping_threshold: |x| at or above this counts as clipped.
        silence_threshold_db: Level below which a sample counts as silent.
        min_gap_sec: Shortest interior silence reported as a gap.
        spectral_n_fft / spectral_hop: Framing for spectral balance.
        stereo_max_sec: Stereo analysis looks at this many seconds at most.
            None analyses the whole signal.
        stereo_window: Window length for the imaging-quality score.
        chroma_n_fft / chroma_hop: Framing for the chromagram.
        chroma_min_hz / chroma_max_hz: Frequency band folded into chroma.
        hybrid_threshold: Traditional confidence at or above which the
            learned classifier is skipped.
        enhanced_enabled: Master switch for the learned classifier.
        scale_min_strength: Scale matches at or below this are dropped.
        max_scales: Maximum scale matches reported.
        classifier_path: Optional .npz weights for the learned classifier.
        parallel: Run independent branches on a thread pool in analyze().

    Example:
        >>> config = EngineConfig(calibration="reference-masters")
        >>> engine = AudioAnalysisEngine(config)
    """

    momentary_window_sec: float = 0.4
    momentary_overlap: float = 0.75
    short_term_window_sec: float = 3.0
    short_term_overlap: float = 0.9
    absolute_gate_lufs: float = -70.0
    relative_gate_lu: float = -10.0
    lra_relative_gate_lu: float = -20.0
    calibration: str = "none"
    true_peak_oversample: int = 4
    true_peak_ceilings: TruePeakCeilings = field(default_factory=TruePeakCeilings)
    clipping_threshold: float = 0.99
    silence_threshold_db: float = -60.0
    min_gap_sec: float = 0.1
    spectral_n_fft: int = 4096
    spectral_hop: int = 2048
    stereo_max_sec: float | None = 60.0
    stereo_window: int = 512
    chroma_n_fft: int = 4096
    chroma_hop: int = 1024
    chroma_min_hz: float = 80.0
    chroma_max_hz: float = 8000.0
    hybrid_threshold: float = 0.8
    enhanced_enabled: bool = True
    scale_min_strength: float = 0.1
    max_scales: int = 8
    classifier_path: str | None = None
    parallel: bool = False

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        for name in ("momentary_window_sec", "short_term_window_sec"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")
        for name in ("momentary_overlap", "short_term_overlap"):
            value = getattr(self, name)
            if not 0.0 <= value < 1.0:
                raise ValueError(f"{name} must be in [0, 1), got {value}")
        if self.relative_gate_lu >= 0 or self.lra_relative_gate_lu >= 0:
            raise ValueError("relative gate offsets must be negative")
        if self.calibration not in VALID_CALIBRATIONS:
            raise ValueError(
                f"Unknown calibration {self.calibration!r}, "
                f"valid options: {sorted(VALID_CALIBRATIONS)}"
            )
        if self.true_peak_oversample < 1:
            raise ValueError(
                f"true_peak_oversample must be >= 1, got {self.true_peak_oversample}"
            )
        if not 0.0 < self.clipping_threshold <= 1.0:
            raise ValueError(f"clipping_threshold must be in (0, 1], got {self.clipping_threshold}")
        for n_name, hop_name in (("spectral_n_fft", "spectral_hop"), ("chroma_n_fft", "chroma_hop")):
            n_fft, hop = getattr(self, n_name), getattr(self, hop_name)
            if n_fft < 16 or hop <= 0 or hop > n_fft:
                raise ValueError(f"{n_name}/{hop_name} must satisfy 16 <= n_fft, 0 < hop <= n_fft")
        if not 0.0 < self.chroma_min_hz < self.chroma_max_hz:
            raise ValueError(
                f"chroma band must satisfy 0 < min < max, got "
                f"({self.chroma_min_hz}, {self.chroma_max_hz})"
            )
        if self.stereo_max_sec is not None and self.stereo_max_sec <= 0:
            raise ValueError(f"stereo_max_sec must be positive or None, got {self.stereo_max_sec}")
        if self.stereo_window < 2:
            raise ValueError(f"stereo_window must be >= 2, got {self.stereo_window}")
        if not 0.0 <= self.hybrid_threshold <= 1.0:
            raise ValueError(f"hybrid_threshold must be in [0, 1], got {self.hybrid_threshold}")
        if self.max_scales < 0:
            raise ValueError(f"max_scales must be non-negative, got {self.max_scales}")

    def with_overrides(self, **overrides: Any) -> EngineConfig:
        """Return a copy with the given fields replaced (validated again)."""
        return replace(self, **overrides)


def load_engine_config(path: str | Path) -> EngineConfig:
    """Build an EngineConfig from a YAML file of overrides.

    Keys mirror EngineConfig field names; `true_peak_ceilings` may be a
    nested mapping. Missing keys keep their defaults.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the YAML is not a mapping or names an unknown field.
    """
    text = Path(path).read_text(encoding="utf-8")
    data = yaml.safe_load(text) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Engine config must be a mapping, got {type(data).__name__}")

    known = {f.name for f in fields(EngineConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown engine config keys: {unknown}")

    ceilings = data.pop("true_peak_ceilings", None)
    if ceilings is not None:
        if not isinstance(ceilings, dict):
            raise ValueError("true_peak_ceilings must be a mapping")
        data["true_peak_ceilings"] = TruePeakCeilings(**ceilings)
    return EngineConfig(**data)


# Pre-defined configurations

DEFAULT_CONFIG = EngineConfig()
"""Standards-compliant defaults: BS.1770-4 gating, no calibration offsets."""

STANDARDS_CONFIG = DEFAULT_CONFIG
"""Alias used by compliance tests to make the intent explicit."""

REFERENCE_MASTERS_CONFIG = EngineConfig(calibration="reference-masters")
"""Defaults plus the non-normative volume-dependent calibration step."""
