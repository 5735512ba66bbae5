"""
stats.py — Statistics Utility
==============================

Small numeric helpers shared by the batch pipeline and the streaming
validator.  Empty inputs return NaN rather than raising; callers guard
on length before relying on the result.

Two variance conventions live here on purpose:
    sample_variance      — denominator n − 1, used by the batch z-score
    population_variance  — denominator n,     used by the streaming check
"""

import math

import numpy as np


def _as_array(values) -> np.ndarray:
    return np.asarray(list(values), dtype=np.float64)


def median(values) -> float:
    """
    Median of a sequence of numbers.

    Odd length returns the middle element; even length the mean of the
    two middle elements.  Empty input returns NaN.
    """
    arr = _as_array(values)
    if arr.size == 0:
        return math.nan
    return float(np.median(arr))


def mean(values) -> float:
    """Arithmetic mean; NaN for empty input."""
    arr = _as_array(values)
    if arr.size == 0:
        return math.nan
    return float(arr.mean())


def sample_variance(values) -> float:
    """Σ(x − mean)² / (n − 1).  NaN for fewer than two values."""
    arr = _as_array(values)
    if arr.size < 2:
        return math.nan
    return float(arr.var(ddof=1))


def population_variance(values) -> float:
    """Σ(x − mean)² / n.  NaN for empty input."""
    arr = _as_array(values)
    if arr.size == 0:
        return math.nan
    return float(arr.var(ddof=0))


def z_score(x: float, mu: float, std: float) -> float:
    """
    Absolute standardized distance of ``x`` from ``mu``.

    With zero spread the score is 0 for a value equal to the mean and
    +inf for anything else, so a flat history never yields NaN.
    """
    if std == 0:
        return 0.0 if x == mu else math.inf
    return abs(x - mu) / std
