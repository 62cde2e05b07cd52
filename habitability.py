# habitability.py
# Rule-based habitability scoring for a 4-feature vector:
#   [orbital period (days), radius (Earth radii), distance (AU), temperature (K)]
# Each satisfied range check adds a fixed weight; weights sum to 1.0.

from numbers import Real
from typing import NamedTuple

import numpy as np

FEATURE_NAMES = ["period", "radius", "distance", "temperature"]

CONFIRMED = "CONFIRMED"
FALSE_POSITIVE = "FALSE POSITIVE"
THRESHOLD = 0.5

# (feature index, low, high, weight, reasoning text), in reporting order
RULES = [
    (0, 200.0, 500.0, 0.30, "Favorable orbital period"),
    (1, 0.5, 2.0, 0.30, "Earth-like size"),
    (2, 0.8, 1.5, 0.25, "In habitable zone"),
    (3, 273.0, 373.0, 0.15, "Temperature allows liquid water"),
]


class FeatureError(ValueError):
    """Feature vector failed the type/shape check."""


class Score(NamedTuple):
    confidence: float
    verdict: str
    reasoning: str


def validate_features(value) -> list[float]:
    """
    Check a request's feature vector before scoring.
    Returns the four values as floats; raises FeatureError otherwise.
    """
    if not isinstance(value, (list, tuple)):
        raise FeatureError("'features' must be a list of 4 numbers.")
    if len(value) != len(FEATURE_NAMES):
        raise FeatureError(f"'features' must have exactly {len(FEATURE_NAMES)} values, got {len(value)}.")
    for name, v in zip(FEATURE_NAMES, value):
        # bool is a Real subclass; reject it explicitly
        if isinstance(v, bool) or not isinstance(v, Real):
            raise FeatureError(f"Feature '{name}' must be a number.")
    arr = np.asarray(value, dtype=np.float64)
    if not np.all(np.isfinite(arr)):
        raise FeatureError("Features must be finite numbers.")
    return [float(v) for v in arr]


def score_features(features) -> Score:
    """Score an already-validated [period, radius, distance, temperature] vector."""
    total = 0.0
    reasons = []
    for idx, lo, hi, weight, text in RULES:
        if lo <= features[idx] <= hi:
            total += weight
            reasons.append(text)
    confidence = round(min(total, 1.0), 10)
    verdict = CONFIRMED if confidence >= THRESHOLD else FALSE_POSITIVE
    return Score(confidence, verdict, ", ".join(reasons))
