"""
common.py
----------
Shared helpers for pattern detectors: stable ids, tier mapping and the
amount-trend label. Lives here so no detector duplicates it.
"""

import re
from datetime import date, datetime
from typing import Dict, Optional, Sequence

from core.models import AmountProfile, AmountTrend, PatternMetadata, Significance, TimeRange
from core import stats


def slugify(key: str) -> str:
    """'Netflix UK' -> 'netflix-uk'. Used to derive stable pattern ids."""
    return re.sub(r"\s+", "-", key.strip()).lower()


def pattern_id(prefix: str, key: str) -> str:
    return f"{prefix}-{slugify(key)}"


def tier_from_thresholds(value: float, thresholds: Dict[str, float], default: Significance = Significance.LOW) -> Significance:
    """
    Map a value onto a tier using strict "greater than" bounds.

    `thresholds` is a config block like {"high": 100, "medium": 50}; the
    first tier whose bound the value exceeds wins, checked highest first.
    """
    for tier in (Significance.CRITICAL, Significance.HIGH, Significance.MEDIUM):
        bound = thresholds.get(tier.value)
        if bound is not None and value > bound:
            return tier
    return default


def amount_trend(values: Sequence[float], threshold: float) -> AmountTrend:
    """Direction of a series by its correlation with time."""
    if len(values) < 2:
        return AmountTrend.STABLE
    r = stats.index_correlation(values)
    if r > threshold:
        return AmountTrend.INCREASING
    if r < -threshold:
        return AmountTrend.DECREASING
    return AmountTrend.STABLE


def amount_profile(values: Sequence[float], trend_threshold: float, average: Optional[float] = None) -> AmountProfile:
    return AmountProfile(
        average=stats.mean(values) if average is None else average,
        variance=stats.variance(values),
        trend=amount_trend(values, trend_threshold),
    )


def time_range(start: date, end: date) -> TimeRange:
    return TimeRange(start=start, end=end)


def metadata(detected_at: datetime, sample_size: int, accuracy: Optional[float] = None) -> PatternMetadata:
    return PatternMetadata(detected_at=detected_at, sample_size=sample_size, accuracy=accuracy)


def frame_range(df) -> TimeRange:
    """First and last transaction dates of a (non-empty) normalised frame."""
    return TimeRange(start=df["date"].min().date(), end=df["date"].max().date())


def month_range(month_keys: Sequence[str]) -> TimeRange:
    """TimeRange spanning the first day of the first month to the last day of the last."""
    first = datetime.strptime(month_keys[0], "%Y-%m").date()
    last = datetime.strptime(month_keys[-1], "%Y-%m").date()
    next_month = date(last.year + (last.month // 12), last.month % 12 + 1, 1)
    return TimeRange(start=first, end=date.fromordinal(next_month.toordinal() - 1))
