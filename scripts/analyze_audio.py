#!/usr/bin/env python
"""Audio analysis — one-command runner.

Decodes a file, runs loudness, technical quality, stereo and key analysis,
and prints the merged report as JSON.

Usage
-----
    # Full report for a master
    python scripts/analyze_audio.py mix.wav

    # Loudness branch only, with the reference-masters calibration
    python scripts/analyze_audio.py mix.wav --loudness-only --calibration reference-masters

    # Engine overrides from YAML, plus a learned key classifier
    python scripts/analyze_audio.py mix.wav --config engine.yaml --classifier skey.npz

    # Save the report instead of printing it
    python scripts/analyze_audio.py mix.wav --output report.json

Exit codes
----------
    0  — success
    2  — the file could not be loaded or analysed
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

# Add project root to sys.path
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.config import DEFAULT_CONFIG, VALID_CALIBRATIONS, load_engine_config  # noqa: E402
from core.errors import AnalysisError  # noqa: E402
from ingestion.audio_engine import AudioAnalysisEngine  # noqa: E402
from ingestion.audio_loader import estimate_tempo, load_pcm  # noqa: E402

logger = logging.getLogger("analyze_audio")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Loudness, quality and key analysis for an audio file")
    p.add_argument("path", help="Audio file to analyse")
    p.add_argument(
        "--config",
        metavar="YAML",
        default=None,
        help="YAML file of EngineConfig overrides",
    )
    p.add_argument(
        "--calibration",
        choices=sorted(VALID_CALIBRATIONS),
        default=None,
        help="Calibration step for integrated loudness (default: none)",
    )
    p.add_argument(
        "--classifier",
        metavar="NPZ",
        default=None,
        help="Weights for the learned key classifier",
    )
    p.add_argument(
        "--duration",
        type=float,
        default=None,
        metavar="SECONDS",
        help="Analyse at most this many seconds (default: whole file)",
    )
    p.add_argument(
        "--loudness-only",
        action="store_true",
        help="Skip key estimation and tempo",
    )
    p.add_argument(
        "--no-tempo",
        action="store_true",
        help="Do not run the beat tracker",
    )
    p.add_argument(
        "--parallel",
        action="store_true",
        help="Run analysis branches on a thread pool",
    )
    p.add_argument(
        "--output",
        metavar="OUTPUT_JSON",
        default=None,
        help="Write the JSON report here instead of stdout",
    )
    p.add_argument(
        "--verbose",
        action="store_true",
        help="Debug logging",
    )
    return p.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
    )

    config = load_engine_config(args.config) if args.config else DEFAULT_CONFIG
    overrides: dict[str, object] = {}
    if args.calibration is not None:
        overrides["calibration"] = args.calibration
    if args.classifier is not None:
        overrides["classifier_path"] = args.classifier
    if args.parallel:
        overrides["parallel"] = True
    if overrides:
        config = config.with_overrides(**overrides)

    try:
        pcm = load_pcm(args.path, duration=args.duration)
        engine = AudioAnalysisEngine(config)
        if args.loudness_only:
            result = engine.analyze_loudness(pcm).as_dict()
        else:
            tempo = None if args.no_tempo else estimate_tempo(pcm)
            result = engine.analyze(pcm, tempo_bpm=tempo).as_dict()
    except (FileNotFoundError, RuntimeError, ValueError, AnalysisError) as exc:
        logger.error("Analysis failed: %s", exc)
        return 2

    text = json.dumps(result, indent=2)
    if args.output:
        Path(args.output).write_text(text + "\n", encoding="utf-8")
        logger.info("Report written to %s", args.output)
    else:
        print(text)
    return 0


if __name__ == "__main__":
    sys.exit(main())
