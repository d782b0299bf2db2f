"""Probability helpers: every score crossing a boundary lands in [0, 1]."""

from __future__ import annotations

import math
from typing import Any


def clamp_unit(value: float) -> float:
    """Clamp a number into [0, 1]. NaN maps to 0.0."""
    if math.isnan(value):
        return 0.0
    return max(0.0, min(1.0, value))


def coerce_unit(value: Any) -> float | None:
    """Clamp a judge-provided number, or None when it is not a real number.

    Booleans and numeric strings are rejected rather than coerced.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if math.isnan(value):
        return None
    return clamp_unit(float(value))


def coerce_scores(raw: Any) -> dict[str, float]:
    """Keep only the numeric entries of a judge's score mapping, clamped."""
    if not isinstance(raw, dict):
        return {}
    scores: dict[str, float] = {}
    for key, value in raw.items():
        score = coerce_unit(value)
        if score is not None:
            scores[str(key)] = score
    return scores
