from __future__ import annotations

from dataclasses import astuple, dataclass
from math import sqrt

import numpy as np

# Column order of feature matrices built by ``feature_row``.
FEATURE_COLUMNS = (
    "hour",
    "day_of_month",
    "month",
    "weekday",
    "is_holiday",
    "temperature",
    "precipitation",
    "wind_speed",
)

# Approximate dynamic range of each feature, same order as FEATURE_COLUMNS.
NORMALIZERS = np.array([24.0, 7.0, 12.0, 7.0, 1.0, 40.0, 100.0, 100.0])


@dataclass(frozen=True)
class DistanceWeights:
    hour: float = 1.0
    day: float = 1.0
    month: float = 1.0
    weekday: float = 1.0
    holiday: float = 1.0
    temperature: float = 1.0
    precipitation: float = 1.0
    wind_speed: float = 1.0

    def as_array(self) -> np.ndarray:
        return np.array(astuple(self), dtype=float)


def feature_row(vector) -> tuple[float, ...]:
    """Return the distance features of a FeatureVector in FEATURE_COLUMNS order."""
    return (
        float(vector.hour),
        float(vector.day_of_month),
        float(vector.month),
        float(vector.weekday),
        1.0 if vector.is_holiday else 0.0,
        float(vector.temperature),
        float(vector.precipitation),
        float(vector.wind_speed),
    )


def distance(a, b, weights: DistanceWeights | None = None) -> float:
    """
    Weighted, range-normalised Euclidean distance between two feature vectors.

    Availability fields are targets, not features, and are ignored. The day
    term is a raw difference: day 31 and day 1 are far apart even across a
    month boundary.
    """
    w = astuple(weights or DistanceWeights())
    total = 0.0
    for weight, x, y, norm in zip(w, feature_row(a), feature_row(b), NORMALIZERS):
        total += weight * ((x - y) / norm) ** 2
    return sqrt(total)


def distances(query, matrix: np.ndarray, weights: DistanceWeights | None = None) -> np.ndarray:
    """Vectorised ``distance`` from ``query`` to every row of ``matrix``."""
    w = (weights or DistanceWeights()).as_array()
    if len(matrix) == 0:
        return np.empty(0)
    diff = (matrix - np.asarray(feature_row(query))) / NORMALIZERS
    return np.sqrt((diff ** 2) @ w)
