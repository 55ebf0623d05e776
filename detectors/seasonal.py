"""
seasonal.py
------------
Seasonal variation in spend: month-to-month and quarter-to-quarter swings,
plus a fixed holiday-month comparison.
"""

import logging
from datetime import datetime
from typing import Dict, List

from core import stats
from core.aggregation import Aggregates
from core.models import Frequency, Pattern, PatternImpact, PatternType, AmountProfile, AmountTrend, Significance
from detectors import common

logger = logging.getLogger(__name__)


def detect_seasonal(aggregates: Aggregates, config: dict, detected_at: datetime) -> List[Pattern]:
    patterns: List[Pattern] = []
    trend_threshold = config["amount_trend_correlation"]

    for period, totals in (
        (Frequency.MONTHLY, aggregates.monthly_totals),
        (Frequency.QUARTERLY, aggregates.quarterly_totals),
    ):
        pattern = _analyze_period_variation(aggregates, period, totals, config["seasonal"], trend_threshold, detected_at)
        if pattern is not None:
            patterns.append(pattern)

    holiday = _detect_holiday_spending(aggregates, config["holiday"], detected_at)
    if holiday is not None:
        patterns.append(holiday)

    logger.debug(f"Seasonal detection: {len(patterns)} pattern(s).")
    return patterns


def _analyze_period_variation(
    aggregates: Aggregates,
    period: Frequency,
    totals: Dict[str, float],
    cfg: dict,
    trend_threshold: float,
    detected_at: datetime,
) -> Pattern | None:
    amounts = list(totals.values())
    if len(amounts) < cfg["min_periods"]:
        return None

    average = stats.mean(amounts)
    if average <= 0:
        return None

    peak, low = max(amounts), min(amounts)
    variation = (peak - low) / average
    if variation < cfg["min_variation"]:
        return None

    confidence = min(cfg["confidence_cap"], variation)

    return Pattern(
        id=f"seasonal-{period.value}",
        name="Seasonal spending pattern",
        description=f"Spending varies significantly by {period.value} period with {variation * 100:.1f}% variation",
        type=PatternType.SEASONAL,
        confidence=confidence,
        significance=common.tier_from_thresholds(variation, cfg["significance_variation"]),
        frequency=period,
        amount=common.amount_profile(amounts, trend_threshold, average=average),
        time_range=common.frame_range(aggregates.expenses),
        impact=PatternImpact(
            financial=peak - low,
            recommendation=f"Plan for seasonal spending variations. Peak spending: {peak:.2f}, Low: {low:.2f}",
        ),
        metadata=common.metadata(detected_at, len(amounts), accuracy=confidence),
    )


def _detect_holiday_spending(aggregates: Aggregates, cfg: dict, detected_at: datetime) -> Pattern | None:
    """
    Compares average monthly spend in holiday months against the rest.

    Averages are taken over the distinct year-months actually observed in
    each group, so partial histories are not diluted.
    """
    expenses = aggregates.expenses
    if expenses.empty:
        return None

    is_holiday = expenses["date"].dt.month.isin(cfg["months"])
    holiday = expenses[is_holiday]
    regular = expenses[~is_holiday]

    if len(holiday) < cfg["min_transactions"] or regular.empty:
        return None

    # Divide by months actually observed, not a fixed 4 holiday / 8 regular months:
    # a six-month history would otherwise understate both averages.
    holiday_avg = holiday["abs_amount"].sum() / holiday["month_key"].nunique()
    regular_avg = regular["abs_amount"].sum() / regular["month_key"].nunique()
    if regular_avg <= 0 or holiday_avg <= regular_avg * cfg["min_increase_ratio"]:
        return None

    increase = (holiday_avg - regular_avg) / regular_avg * 100
    extra = holiday_avg - regular_avg

    return Pattern(
        id="holiday-spending",
        name="Holiday spending pattern",
        description=f"Spending increases by {increase:.1f}% during holiday months",
        type=PatternType.SEASONAL,
        confidence=cfg["confidence"],
        significance=Significance.HIGH if increase > cfg["high_increase_pct"] else Significance.MEDIUM,
        frequency=Frequency.YEARLY,
        amount=AmountProfile(average=float(holiday_avg), variance=0.0, trend=AmountTrend.STABLE),
        time_range=common.frame_range(expenses),
        impact=PatternImpact(
            financial=float(extra),
            recommendation=(
                f"Plan for increased holiday spending. Consider saving an extra {extra:.2f} "
                f"per month for holiday expenses."
            ),
        ),
        metadata=common.metadata(detected_at, len(holiday)),
    )
