"""
core/quality — Technical quality and stereo analysis on raw PCM.

All functions are pure: numpy arrays / PcmBuffer in → frozen dataclasses
out. Nothing here applies K-weighting; that belongs to core/loudness.

Public API:
    Types:     TechnicalQualityReport, TruePeakReport, ClippingReport,
               SpectralReport, SpectralBalance, SilenceReport,
               MasteringReport, StereoReport, BAND_NAMES, BAND_EDGES
    Analysers: TechnicalQualityAnalyzer, StereoAnalyzer
    Functions: measure_true_peak, analyze_spectrum, analyze_stereo,
               detect_clipping, detect_silence, dc_offset, attach_loudness
"""

from core.quality.spectral import analyze_spectrum
from core.quality.stereo import StereoAnalyzer, analyze_stereo
from core.quality.technical import (
    TechnicalQualityAnalyzer,
    attach_loudness,
    dc_offset,
    detect_clipping,
    detect_silence,
)
from core.quality.true_peak import measure_true_peak
from core.quality.types import (
    BAND_EDGES,
    BAND_NAMES,
    ClippingReport,
    MasteringReport,
    SilenceReport,
    SpectralBalance,
    SpectralReport,
    StereoReport,
    TechnicalQualityReport,
    TruePeakReport,
)

__all__ = [
    # Types
    "TechnicalQualityReport",
    "TruePeakReport",
    "ClippingReport",
    "SpectralReport",
    "SpectralBalance",
    "SilenceReport",
    "MasteringReport",
    "StereoReport",
    "BAND_NAMES",
    "BAND_EDGES",
    # Analysers
    "TechnicalQualityAnalyzer",
    "StereoAnalyzer",
    # Functions
    "measure_true_peak",
    "analyze_spectrum",
    "analyze_stereo",
    "detect_clipping",
    "detect_silence",
    "dc_offset",
    "attach_loudness",
]
