"""
core/quality/types.py — Frozen data types for technical-quality results.

All types are frozen dataclasses — immutable value objects that are safe
to pass between layers and include in the final AnalysisReport.

Design:
    - No I/O, no side effects, no state.
    - Per-band data is stored as a dedicated frozen SpectralBalance
      dataclass to avoid mutable dict fields and maintain hashability.
    - Measurements that do not apply (stereo metrics on mono input, PLR on
      silence) are None rather than a fake number.
"""

from __future__ import annotations

from dataclasses import dataclass

# ---------------------------------------------------------------------------
# Band names constant: canonical ordering used across all modules
# ---------------------------------------------------------------------------

BAND_NAMES: tuple[str, ...] = (
    "sub_bass",  # 20–60 Hz
    "bass",  # 60–250 Hz
    "low_mids",  # 250–500 Hz
    "mids",  # 500–2 000 Hz
    "upper_mids",  # 2 000–5 000 Hz
    "presence",  # 5 000–8 000 Hz
    "brilliance",  # 8 000–20 000 Hz
)

# Hz boundaries for each band (inclusive lower, exclusive upper)
BAND_EDGES: dict[str, tuple[float, float]] = {
    "sub_bass": (20.0, 60.0),
    "bass": (60.0, 250.0),
    "low_mids": (250.0, 500.0),
    "mids": (500.0, 2000.0),
    "upper_mids": (2000.0, 5000.0),
    "presence": (5000.0, 8000.0),
    "brilliance": (8000.0, 20000.0),
}


# ---------------------------------------------------------------------------
# Per-band data container
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SpectralBalance:
    """Share of total band magnitude held by each of the 7 bands.

    Invariants:
        every value in [0.0, 1.0]
        values sum to 1.0, or are all 0.0 for silent input
    """

    sub_bass: float
    bass: float
    low_mids: float
    mids: float
    upper_mids: float
    presence: float
    brilliance: float

    def as_dict(self) -> dict[str, float]:
        """Return band values as an ordered dict keyed by band name."""
        return {name: getattr(self, name) for name in BAND_NAMES}

    def get(self, band: str) -> float:
        """Return value for a named band.

        Raises:
            ValueError: If band name is not one of the 7 canonical bands.
        """
        if band not in BAND_EDGES:
            raise ValueError(f"Unknown band: {band!r}. Valid: {list(BAND_NAMES)}")
        return float(getattr(self, band))

    def relative_levels(self) -> dict[str, float]:
        """Each band relative to the mean band (share × 7); 1.0 = perfectly even."""
        n = len(BAND_NAMES)
        return {name: value * n for name, value in self.as_dict().items()}

    @classmethod
    def silent(cls) -> SpectralBalance:
        return cls(*(0.0 for _ in BAND_NAMES))


# ---------------------------------------------------------------------------
# Technical quality
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TruePeakReport:
    """Oversampled peak level and delivery-ceiling compliance.

    Invariants:
        level_db >= sample_peak_db (up to filter ripple) or both -inf
    """

    level_db: float
    """True peak in dBTP, or -inf for digital silence."""

    sample_peak_db: float
    """Largest |sample| in dBFS, or -inf."""

    peak_position_sec: float
    """Time of the true peak in seconds."""

    intersample_overs: int
    """Oversampled points above 0 dBFS."""

    broadcast_compliant: bool
    streaming_compliant: bool
    video_compliant: bool


@dataclass(frozen=True)
class ClippingReport:
    """Samples at or near digital full scale."""

    has_clipping: bool
    clipped_samples: int
    clipping_percentage: float
    """Clipped samples as a percentage (0–100) of all samples."""


@dataclass(frozen=True)
class SpectralReport:
    """Averaged short-time spectral descriptors of the mono mix.

    Invariants:
        centroid_hz >= 0.0
        0.0 <= flatness <= 1.0
    """

    centroid_hz: float
    rolloff_hz: float
    """Frequency below which 85% of the magnitude lies."""

    flatness: float
    """Geometric / arithmetic mean of the magnitude spectrum."""

    balance: SpectralBalance
    windows: int
    """Windows that passed the energy floor and were averaged."""


@dataclass(frozen=True)
class SilenceReport:
    """Silence at the edges and inside the programme."""

    leading_sec: float
    trailing_sec: float
    gap_count: int
    """Interior silent stretches at least min_gap_sec long."""


@dataclass(frozen=True)
class MasteringReport:
    """Heuristic mastering descriptors.

    Invariants:
        punchiness, warmth, clarity, spaciousness in [0.0, 1.0]
        0.0 <= quality_score <= 100.0
    """

    plr: float | None
    """Peak-to-loudness ratio (sample peak dBFS − integrated LUFS)."""

    dynamic_range: float
    """p90 − p10 of 100 ms RMS levels, dB."""

    punchiness: float
    warmth: float
    clarity: float
    spaciousness: float
    quality_score: float


@dataclass(frozen=True)
class TechnicalQualityReport:
    """All raw-PCM technical metrics for one analysis."""

    true_peak: TruePeakReport
    clipping: ClippingReport
    dc_offset: tuple[float, ...]
    """Mean sample value per channel."""

    spectral: SpectralReport
    silence: SilenceReport
    mastering: MasteringReport

    @property
    def dc_offset_max(self) -> float:
        """Largest absolute per-channel DC offset."""
        return max((abs(v) for v in self.dc_offset), default=0.0)


# ---------------------------------------------------------------------------
# Stereo
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StereoReport:
    """Stereo image measurements.

    For anything other than exactly two channels the measurement fields
    are None and imaging_quality is "Not applicable".

    Invariants:
        -1.0 <= phase_correlation <= 1.0
        0.0 <= stereo_width <= 1.0
        0.0 <= mono_compatibility <= 1.0
    """

    is_mono: bool
    channels: int
    phase_correlation: float | None
    stereo_width: float | None
    """0.0 = mono, 1.0 = fully decorrelated or wider."""

    lr_balance_db: float | None
    """20·log10(rms_R / rms_L); positive leans right."""

    mono_compatibility: float | None
    imaging_quality: str
    imaging_quality_score: float | None
    analysed_sec: float

    @property
    def is_applicable(self) -> bool:
        return self.phase_correlation is not None
