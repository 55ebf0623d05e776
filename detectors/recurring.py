"""
recurring.py
-------------
Recurring charge detection. Answers one question per group:

    "Is this merchant (or category) charged on a predictable schedule?"

Two heuristics:
    - Merchant: inter-transaction gap analysis. Regular gaps (low variance
      relative to the mean gap) of at least a week mark a recurring charge.
    - Category: month-over-month stability of category totals.

All thresholds are read from the recurring_merchant / recurring_category
blocks of config.yaml.
"""

import logging
from datetime import datetime, timedelta
from typing import List

from core import stats
from core.aggregation import Aggregates, GroupStats
from core.models import Frequency, Pattern, PatternImpact, PatternType
from detectors import common

logger = logging.getLogger(__name__)


def detect_recurring(aggregates: Aggregates, config: dict, detected_at: datetime) -> List[Pattern]:
    """Merchant-level then category-level recurring patterns."""
    trend_threshold = config["amount_trend_correlation"]
    merchant_cfg = config["recurring_merchant"]
    category_cfg = config["recurring_category"]
    patterns: List[Pattern] = []

    for merchant, group in aggregates.by_merchant.items():
        # Filter: minimum occurrences gate
        if group.count < merchant_cfg["min_transactions"]:
            continue
        pattern = _analyze_merchant(merchant, group, merchant_cfg, trend_threshold, detected_at)
        if pattern is not None:
            patterns.append(pattern)

    for category, monthly in aggregates.category_monthly_totals.items():
        if len(monthly) < category_cfg["min_months"]:
            continue
        pattern = _analyze_category(
            category, list(monthly.values()), aggregates.by_category[category],
            category_cfg, trend_threshold, detected_at,
        )
        if pattern is not None:
            patterns.append(pattern)

    logger.debug(f"Recurring detection: {len(patterns)} pattern(s).")
    return patterns


# -----------------------------------------------------------------------------
# MERCHANT
# -----------------------------------------------------------------------------

def _analyze_merchant(
    merchant: str, group: GroupStats, cfg: dict, trend_threshold: float, detected_at: datetime
) -> Pattern | None:
    """
    Returns None if the payments exist but are not regular enough to be
    "recurring".
    """
    intervals = [(b - a).days for a, b in zip(group.dates, group.dates[1:])]
    mean_interval = stats.mean(intervals)
    interval_variance = stats.variance(intervals)

    if mean_interval < cfg["min_mean_interval_days"]:
        return None
    if not interval_variance < cfg["max_variance_ratio"] * mean_interval:
        return None

    frequency = _frequency_for_interval(mean_interval, cfg["frequency_bounds"])
    confidence = stats.clamp(
        1 - interval_variance / mean_interval, cfg["confidence_floor"], cfg["confidence_cap"]
    )
    average = group.average
    days = round(mean_interval)
    category = group.categories[0]

    if frequency == Frequency.MONTHLY:
        recommendation = f"Consider setting up a budget category for this {average:.2f} monthly expense"
    else:
        recommendation = f"Monitor this recurring expense of {average:.2f} every {days} days"

    return Pattern(
        id=common.pattern_id("recurring-merchant", merchant),
        name=f"Recurring {merchant} payments",
        description=f"Regular payments to {merchant} occurring approximately every {days} days",
        type=PatternType.RECURRING,
        confidence=confidence,
        significance=common.tier_from_thresholds(average, cfg["significance_amounts"]),
        merchant=merchant,
        category=category,
        frequency=frequency,
        amount=common.amount_profile(group.amounts, trend_threshold, average=average),
        time_range=common.time_range(group.first_date, group.last_date),
        next_occurrence=group.last_date + timedelta(days=days),
        impact=PatternImpact(
            financial=average * (365 / mean_interval),
            category=category,
            recommendation=recommendation,
        ),
        metadata=common.metadata(detected_at, group.count, accuracy=confidence),
    )


def _frequency_for_interval(mean_interval: float, bounds: dict) -> Frequency:
    if mean_interval <= bounds["weekly"]:
        return Frequency.WEEKLY
    if mean_interval <= bounds["monthly"]:
        return Frequency.MONTHLY
    if mean_interval <= bounds["quarterly"]:
        return Frequency.QUARTERLY
    return Frequency.YEARLY


# -----------------------------------------------------------------------------
# CATEGORY
# -----------------------------------------------------------------------------

def _analyze_category(
    category: str,
    monthly_totals: List[float],
    group: GroupStats,
    cfg: dict,
    trend_threshold: float,
    detected_at: datetime,
) -> Pattern | None:
    average = stats.mean(monthly_totals)
    if average <= 0:
        return None

    total_variance = stats.variance(monthly_totals)
    coefficient = total_variance / average
    if coefficient > cfg["max_coefficient"]:
        return None

    confidence = stats.clamp(1 - coefficient, cfg["confidence_floor"], cfg["confidence_cap"])

    return Pattern(
        id=common.pattern_id("recurring-category", category),
        name=f"Regular {category} spending",
        description=f"Consistent monthly spending in {category} category",
        type=PatternType.RECURRING,
        confidence=confidence,
        significance=common.tier_from_thresholds(average, cfg["significance_amounts"]),
        category=category,
        frequency=Frequency.MONTHLY,
        amount=common.amount_profile(monthly_totals, trend_threshold, average=average),
        time_range=common.time_range(group.first_date, group.last_date),
        impact=PatternImpact(
            financial=average * 12,
            category=category,
            recommendation=f"Budget approximately {average:.2f} monthly for {category}",
        ),
        metadata=common.metadata(detected_at, group.count, accuracy=confidence),
    )
