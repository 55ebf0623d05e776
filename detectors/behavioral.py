"""
behavioral.py
--------------
Behavioral regularities: when and where money is spent.

    - Weekend: share of spend falling on Saturday/Sunday.
    - Payday: average ticket in the pay period (last 2 days of a month and
      days 1–3) against the rest of the month.
    - Location: places with a meaningful number of visits and total spend.
"""

import logging
from datetime import datetime
from typing import List

from core import stats
from core.aggregation import Aggregates
from core.models import AmountProfile, AmountTrend, Frequency, Pattern, PatternImpact, PatternType, Significance
from detectors import common

logger = logging.getLogger(__name__)

WEEKENDS_PER_YEAR_DAYS = 104
PAY_PERIOD_DAYS_PER_MONTH = 5


def detect_behavioral(aggregates: Aggregates, config: dict, detected_at: datetime) -> List[Pattern]:
    patterns: List[Pattern] = []

    for pattern in (
        _detect_weekend_spending(aggregates, config["weekend"], detected_at),
        _detect_payday_spending(aggregates, config["payday"], detected_at),
    ):
        if pattern is not None:
            patterns.append(pattern)

    patterns.extend(_detect_location_spending(aggregates, config["location"], detected_at))

    logger.debug(f"Behavioral detection: {len(patterns)} pattern(s).")
    return patterns


def _detect_weekend_spending(aggregates: Aggregates, cfg: dict, detected_at: datetime) -> Pattern | None:
    weekend, weekday = aggregates.weekend, aggregates.weekday
    if weekend.count < cfg["min_weekend_transactions"] or weekday.count < cfg["min_weekday_transactions"]:
        return None

    total = weekend.total + weekday.total
    if total <= 0:
        return None
    weekend_share = weekend.total / total
    if weekend_share <= cfg["min_weekend_share"]:
        return None

    lower_avg = min(weekend.average, weekday.average)
    percent_diff = abs(weekend.average - weekday.average) / lower_avg * 100 if lower_avg > 0 else 0.0
    higher = weekend.average > weekday.average

    if higher:
        recommendation = f"Consider budgeting extra for weekend activities. Average weekend transaction: {weekend.average:.2f}"
    else:
        recommendation = f"Your weekend spending is lower than weekdays. Weekend average: {weekend.average:.2f}"

    return Pattern(
        id="weekend-spending",
        name=f"{'Higher' if higher else 'Lower'} weekend spending",
        description=(
            f"{weekend_share * 100:.1f}% of spending happens at weekends; the average weekend "
            f"transaction is {percent_diff:.1f}% {'higher' if higher else 'lower'} than on weekdays"
        ),
        type=PatternType.BEHAVIORAL,
        confidence=cfg["confidence"],
        significance=Significance.HIGH if percent_diff > cfg["high_percent_diff"] else Significance.MEDIUM,
        frequency=Frequency.WEEKLY,
        amount=AmountProfile(average=weekend.average, variance=stats.variance(weekend.amounts), trend=AmountTrend.STABLE),
        time_range=common.frame_range(aggregates.expenses),
        impact=PatternImpact(
            financial=abs(weekend.average - weekday.average) * WEEKENDS_PER_YEAR_DAYS,
            recommendation=recommendation,
        ),
        metadata=common.metadata(detected_at, weekend.count + weekday.count),
    )


def _detect_payday_spending(aggregates: Aggregates, cfg: dict, detected_at: datetime) -> Pattern | None:
    pay, other = aggregates.pay_period, aggregates.other_days
    if pay.count < cfg["min_transactions"] or other.count < cfg["min_transactions"]:
        return None

    increase = stats.percent_change(pay.average, other.average)
    if increase is None or increase <= cfg["min_increase_pct"]:
        return None

    return Pattern(
        id="payday-spending",
        name="Payday spending pattern",
        description=f"Spending increases by {increase:.1f}% around payday",
        type=PatternType.BEHAVIORAL,
        confidence=cfg["confidence"],
        significance=Significance.HIGH if increase > cfg["high_increase_pct"] else Significance.MEDIUM,
        frequency=Frequency.MONTHLY,
        amount=AmountProfile(average=pay.average, variance=stats.variance(pay.amounts), trend=AmountTrend.STABLE),
        time_range=common.frame_range(aggregates.expenses),
        impact=PatternImpact(
            financial=(pay.average - other.average) * PAY_PERIOD_DAYS_PER_MONTH * 12,
            recommendation="Monitor payday spending. Consider automatic savings to reduce temptation to overspend after payday.",
        ),
        metadata=common.metadata(detected_at, pay.count),
    )


def _detect_location_spending(aggregates: Aggregates, cfg: dict, detected_at: datetime) -> List[Pattern]:
    patterns = []
    for location, group in aggregates.by_location.items():
        if group.count < cfg["min_transactions"] or group.total < cfg["min_total"]:
            continue

        patterns.append(Pattern(
            id=common.pattern_id("location", location),
            name=f"{location} spending pattern",
            description=f"Regular spending at {location} with {group.count} transactions",
            type=PatternType.BEHAVIORAL,
            confidence=cfg["confidence"],
            significance=Significance.HIGH if group.total > cfg["high_total"] else Significance.MEDIUM,
            amount=AmountProfile(average=group.average, variance=stats.variance(group.amounts), trend=AmountTrend.STABLE),
            time_range=common.time_range(group.first_date, group.last_date),
            impact=PatternImpact(
                financial=group.total,
                recommendation=f"You've spent {group.total:.2f} at {location}. Consider if this aligns with your budget.",
            ),
            metadata=common.metadata(detected_at, group.count),
        ))
    return patterns
