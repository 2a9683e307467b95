"""
core/tonal/classifier.py — Small learned key classifier.

A two-layer dense network refines the profile matcher on ambiguous
material:

    x (15) = 12 unit-max chroma values + [centroid, zcr, rms]
    h (64) = relu(x @ w1 + b1)
    p (24) = softmax(h @ w2 + b2)     classes 0–11 major C..B, 12–23 minor

Weights live in a plain .npz file (w1, b1, w2, b2); nothing is pickled.

Auxiliary features are computed on at most the first 2 seconds of the
mono mix (and never more than a quarter of it):

    centroid = clip((mean spectral centroid − 200) / 7800, 0, 1)
    zcr      = min(1, 2 · sign changes / sample pairs)
    rms      = clip((rms_db + 60) / 60, 0, 1)

Any failure here raises ModelUnavailableError so the caller can fall back
to the traditional estimate.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import numpy as np

from core._frames import hann_window, iter_windowed_frames
from core.errors import ModelUnavailableError

N_CHROMA = 12
N_AUXILIARY = 3
N_FEATURES = N_CHROMA + N_AUXILIARY
N_HIDDEN = 64
N_CLASSES = 24

_MAX_FEATURE_SEC = 2.0
_MIN_FEATURE_SAMPLES = 1024
_CENTROID_FFT = 2048
_CENTROID_HOP = 1024
_EPS = 1e-10

_WEIGHT_SHAPES: dict[str, tuple[int, ...]] = {
    "w1": (N_FEATURES, N_HIDDEN),
    "b1": (N_HIDDEN,),
    "w2": (N_HIDDEN, N_CLASSES),
    "b2": (N_CLASSES,),
}


@dataclass(frozen=True)
class AuxiliaryFeatures:
    """Timbre/dynamics descriptors appended to the chroma input.

    Invariants:
        0.0 <= centroid, zcr, rms <= 1.0
    """

    centroid: float
    zcr: float
    rms: float

    def as_array(self) -> np.ndarray:
        return np.array([self.centroid, self.zcr, self.rms], dtype=np.float64)


def _normalised_centroid(y: np.ndarray, sample_rate: int) -> float:
    window = hann_window(_CENTROID_FFT)
    freqs = np.arange(_CENTROID_FFT // 2) * sample_rate / _CENTROID_FFT
    centroids: list[np.ndarray] = []
    for frames in iter_windowed_frames(y, _CENTROID_FFT, _CENTROID_HOP, window):
        mags = np.abs(np.fft.rfft(frames, axis=1))[:, : _CENTROID_FFT // 2]
        totals = mags.sum(axis=1)
        voiced = totals > 0.0
        if np.any(voiced):
            centroids.append((mags[voiced] @ freqs) / totals[voiced])
    if not centroids:
        return 0.5
    mean_centroid = float(np.mean(np.concatenate(centroids)))
    return float(np.clip((mean_centroid - 200.0) / 7800.0, 0.0, 1.0))


def _normalised_zcr(y: np.ndarray) -> float:
    if y.size < 2:
        return 0.5
    positive = y >= 0.0
    crossings = int(np.count_nonzero(positive[1:] != positive[:-1]))
    return min(1.0, 2.0 * crossings / (y.size - 1))


def _normalised_rms(y: np.ndarray) -> float:
    rms = float(np.sqrt(np.mean(y**2)))
    if rms <= 0.0:
        return 0.0
    db = 20.0 * np.log10(rms)
    return float(np.clip((db + 60.0) / 60.0, 0.0, 1.0))


def auxiliary_features(samples: np.ndarray, sample_rate: int) -> AuxiliaryFeatures:
    """Compute centroid, zero-crossing rate, and RMS features.

    Args:
        samples:     1-D mono signal.
        sample_rate: Sample rate in Hz.

    Raises:
        ModelUnavailableError: If fewer than 1024 samples are usable.
    """
    y = np.asarray(samples, dtype=np.float64)
    n = min(y.size // 4, int(_MAX_FEATURE_SEC * sample_rate))
    if n < _MIN_FEATURE_SAMPLES:
        raise ModelUnavailableError(
            f"Audio too short for classifier features ({n} usable samples)"
        )
    head = y[:n]
    return AuxiliaryFeatures(
        centroid=_normalised_centroid(head, sample_rate),
        zcr=_normalised_zcr(head),
        rms=_normalised_rms(head),
    )


def build_features(chroma: np.ndarray, aux: AuxiliaryFeatures) -> np.ndarray:
    """Assemble the 15-value network input from chroma and auxiliary features."""
    c = np.asarray(chroma, dtype=np.float64)
    peak = float(np.max(c)) if c.size else 0.0
    c = c / peak if peak > _EPS else np.zeros(N_CHROMA)
    return np.concatenate([c, aux.as_array()])


def _softmax(z: np.ndarray) -> np.ndarray:
    e = np.exp(z - np.max(z))
    return e / np.sum(e)


class KeyClassifier:
    """Dense 15 → 64 → 24 key classifier.

    Args:
        w1, b1: Hidden layer weights (15, 64) and bias (64,).
        w2, b2: Output layer weights (64, 24) and bias (24,).

    Raises:
        ModelUnavailableError: If any array has the wrong shape or is not finite.
    """

    def __init__(self, w1: np.ndarray, b1: np.ndarray, w2: np.ndarray, b2: np.ndarray) -> None:
        arrays = {"w1": w1, "b1": b1, "w2": w2, "b2": b2}
        checked = {}
        for name, arr in arrays.items():
            a = np.asarray(arr, dtype=np.float64)
            if a.shape != _WEIGHT_SHAPES[name]:
                raise ModelUnavailableError(
                    f"Classifier array {name!r} has shape {a.shape}, "
                    f"expected {_WEIGHT_SHAPES[name]}"
                )
            if not np.all(np.isfinite(a)):
                raise ModelUnavailableError(f"Classifier array {name!r} is not finite")
            checked[name] = a
        self.w1 = checked["w1"]
        self.b1 = checked["b1"]
        self.w2 = checked["w2"]
        self.b2 = checked["b2"]

    @classmethod
    def load(cls, path: str | Path) -> KeyClassifier:
        """Load weights from an .npz file.

        Raises:
            ModelUnavailableError: Missing file, unreadable archive, missing
                arrays, or wrong shapes.
        """
        file_path = Path(path)
        if not file_path.is_file():
            raise ModelUnavailableError(f"Classifier weights not found: {file_path}")
        try:
            with np.load(file_path, allow_pickle=False) as data:
                missing = sorted(set(_WEIGHT_SHAPES) - set(data.files))
                if missing:
                    raise ModelUnavailableError(
                        f"Classifier file {file_path.name!r} lacks arrays {missing}"
                    )
                arrays = {name: data[name] for name in _WEIGHT_SHAPES}
        except ModelUnavailableError:
            raise
        except (OSError, ValueError) as exc:
            raise ModelUnavailableError(
                f"Failed to read classifier file {file_path.name!r}: {exc}"
            ) from exc
        return cls(**arrays)

    def save(self, path: str | Path) -> None:
        """Write weights in the format load() reads."""
        np.savez(Path(path), w1=self.w1, b1=self.b1, w2=self.w2, b2=self.b2)

    def probabilities(self, features: np.ndarray) -> np.ndarray:
        """Class probabilities (24,) for a 15-value feature vector."""
        x = np.asarray(features, dtype=np.float64)
        if x.shape != (N_FEATURES,):
            raise ModelUnavailableError(
                f"Classifier expects {N_FEATURES} features, got shape {x.shape}"
            )
        hidden = np.maximum(x @ self.w1 + self.b1, 0.0)
        return _softmax(hidden @ self.w2 + self.b2)

    def predict(self, features: np.ndarray) -> tuple[int, bool, float]:
        """Return (root, is_major, confidence) for the most probable key."""
        probs = self.probabilities(features)
        best = int(np.argmax(probs))
        return best % 12, best < 12, float(probs[best])

    def classify(
        self, samples: np.ndarray, sample_rate: int, chroma: np.ndarray
    ) -> tuple[int, bool, float]:
        """Extract features from the signal and chroma, then predict."""
        aux = auxiliary_features(samples, sample_rate)
        return self.predict(build_features(chroma, aux))
