"""
core/loudness/platforms.py — Platform loudness targets and compliance checks.

Targets are static configuration loaded from core/data/platforms.yaml and
injected into check_platforms(); nothing here reaches for a global table
at call time.
"""

from __future__ import annotations

import math
from collections.abc import Sequence

from core._data_loader import load_table
from core.loudness.types import PlatformCompliance, PlatformTarget

_ON_TARGET_TOLERANCE_LU = 1.0


def load_platform_targets() -> tuple[PlatformTarget, ...]:
    """Return the bundled platform targets in file order."""
    data = load_table("platforms")
    return tuple(
        PlatformTarget(
            name=str(entry["name"]),
            target_lufs=float(entry["target_lufs"]),
            max_true_peak=float(entry["max_true_peak"]),
            description=str(entry.get("description", "")),
        )
        for entry in data["platforms"]
    )


def check_platforms(
    integrated_lufs: float,
    true_peak_db: float,
    targets: Sequence[PlatformTarget],
) -> tuple[PlatformCompliance, ...]:
    """Compare a measurement against each platform's delivery target.

    Args:
        integrated_lufs: Integrated loudness (may be -inf for silence).
        true_peak_db:    True peak in dBTP.
        targets:         Platform targets, usually load_platform_targets().

    Returns:
        One PlatformCompliance per target, in input order.
    """
    results: list[PlatformCompliance] = []
    silent = not math.isfinite(integrated_lufs)
    for target in targets:
        if silent:
            results.append(
                PlatformCompliance(
                    platform=target.name,
                    target_lufs=target.target_lufs,
                    gain_change_db=None,
                    projected_true_peak=None,
                    peak_safe=True,
                    on_target=False,
                )
            )
            continue
        gain = target.target_lufs - integrated_lufs
        projected = true_peak_db + gain
        results.append(
            PlatformCompliance(
                platform=target.name,
                target_lufs=target.target_lufs,
                gain_change_db=gain,
                projected_true_peak=projected,
                peak_safe=projected <= target.max_true_peak,
                on_target=abs(gain) <= _ON_TARGET_TOLERANCE_LU,
            )
        )
    return tuple(results)
