"""
core/loudness — ITU-R BS.1770-4 / EBU R128 loudness measurement.

All functions are pure: numpy arrays (channels, sr) in → frozen dataclasses
out. No file I/O in this package.

Public API:
    Types:       GatingBlock, GatingResult, LoudnessReport,
                 PlatformTarget, PlatformCompliance
    Filter:      KWeightingFilter
    Blocks:      compute_blocks, channel_gains
    Gating:      LoudnessGate, max_loudness
    Calibration: IdentityCalibration, VolumeDependentCalibration,
                 calibration_from_name
    Meter:       measure_loudness
    Platforms:   load_platform_targets, check_platforms
"""

from core.loudness.blocks import channel_gains, compute_blocks
from core.loudness.calibration import (
    IdentityCalibration,
    LoudnessCalibration,
    VolumeDependentCalibration,
    calibration_from_name,
)
from core.loudness.gating import LoudnessGate, max_loudness
from core.loudness.k_weighting import KWeightingFilter
from core.loudness.meter import measure_loudness
from core.loudness.platforms import check_platforms, load_platform_targets
from core.loudness.types import (
    GatingBlock,
    GatingResult,
    LoudnessReport,
    PlatformCompliance,
    PlatformTarget,
)

__all__ = [
    # Types
    "GatingBlock",
    "GatingResult",
    "LoudnessReport",
    "PlatformTarget",
    "PlatformCompliance",
    # Stages
    "KWeightingFilter",
    "compute_blocks",
    "channel_gains",
    "LoudnessGate",
    "max_loudness",
    # Calibration
    "LoudnessCalibration",
    "IdentityCalibration",
    "VolumeDependentCalibration",
    "calibration_from_name",
    # Meter + platforms
    "measure_loudness",
    "load_platform_targets",
    "check_platforms",
]
