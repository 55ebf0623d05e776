"""
stats.py
---------
Statistics primitives shared by every detector, the insight generator and
the forecaster. Pure functions, no state.

Every function is total: degenerate input (empty, single value, zero
variance, zero mean) short-circuits to a neutral result instead of
producing NaN or inf.
"""

import numpy as np
from scipy import stats
from typing import Optional, Sequence


def mean(values: Sequence[float]) -> float:
    """Arithmetic mean. 0.0 for empty input."""
    if len(values) == 0:
        return 0.0
    return float(np.mean(np.asarray(values, dtype=float)))


def variance(values: Sequence[float]) -> float:
    """Population variance (mean of squared deviations). 0.0 for n <= 1."""
    if len(values) <= 1:
        return 0.0
    return float(np.var(np.asarray(values, dtype=float), ddof=0))


def std_dev(values: Sequence[float]) -> float:
    """Population standard deviation."""
    return float(np.sqrt(variance(values)))


def correlation(x: Sequence[float], y: Sequence[float]) -> float:
    """
    Pearson correlation coefficient of two equal-length series.

    Returns 0.0 for mismatched or empty series, and when either series has
    zero variance.
    """
    n = len(x)
    if n == 0 or n != len(y):
        return 0.0

    xs = np.asarray(x, dtype=float)
    ys = np.asarray(y, dtype=float)
    dx = xs - xs.mean()
    dy = ys - ys.mean()

    denom_x = np.sqrt(np.sum(dx * dx))
    denom_y = np.sqrt(np.sum(dy * dy))
    if denom_x == 0 or denom_y == 0:
        return 0.0

    r = float(np.sum(dx * dy) / (denom_x * denom_y))
    # Floating error can push a perfect fit a hair past ±1.
    return max(-1.0, min(1.0, r))


def index_correlation(values: Sequence[float]) -> float:
    """Correlation of a series against its own index 0..n-1."""
    return correlation(list(range(len(values))), values)


def slope(values: Sequence[float]) -> float:
    """
    Least-squares slope of `values` regressed on index 0..n-1.

    Returns 0.0 for fewer than two points.
    """
    if len(values) < 2:
        return 0.0
    result = stats.linregress(np.arange(len(values), dtype=float), np.asarray(values, dtype=float))
    return float(result.slope)


def z_score(value: float, mu: float, sigma: float) -> Optional[float]:
    """
    Number of standard deviations `value` lies from `mu`.

    Returns None when sigma is zero; callers treat that as "not anomalous".
    """
    if sigma == 0:
        return None
    return (value - mu) / sigma


def coefficient_of_variation(values: Sequence[float]) -> float:
    """std / mean. 0.0 when the mean is zero."""
    mu = mean(values)
    if mu == 0:
        return 0.0
    return std_dev(values) / mu


def percent_change(current: float, previous: float) -> Optional[float]:
    """(current - previous) / previous * 100, or None when previous is zero."""
    if previous == 0:
        return None
    return (current - previous) / previous * 100


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))
