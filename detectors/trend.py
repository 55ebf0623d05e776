"""
trend.py
---------
Directional trends in monthly spend, overall and per category. A series
trends when its Pearson correlation with time clears the configured bar;
the sign gives the direction and |r| is the confidence.
"""

import logging
from datetime import datetime
from typing import List

from core import stats
from core.aggregation import Aggregates
from core.models import AmountProfile, AmountTrend, Pattern, PatternImpact, PatternType, Significance
from detectors import common

logger = logging.getLogger(__name__)


def detect_trends(aggregates: Aggregates, config: dict, detected_at: datetime) -> List[Pattern]:
    patterns: List[Pattern] = []

    overall = _detect_overall_trend(aggregates, config["overall_trend"], detected_at)
    if overall is not None:
        patterns.append(overall)

    patterns.extend(_detect_category_trends(aggregates, config["category_trend"], detected_at))

    logger.debug(f"Trend detection: {len(patterns)} pattern(s).")
    return patterns


def _direction(r: float) -> AmountTrend:
    return AmountTrend.INCREASING if r > 0 else AmountTrend.DECREASING


def _detect_overall_trend(aggregates: Aggregates, cfg: dict, detected_at: datetime) -> Pattern | None:
    monthly = aggregates.monthly_totals
    amounts = list(monthly.values())
    if len(amounts) < cfg["min_points"]:
        return None

    r = stats.index_correlation(amounts)
    if abs(r) <= cfg["min_correlation"]:
        return None

    direction = _direction(r)
    magnitude = abs(r)

    return Pattern(
        id="spending-trend",
        name=f"{direction.value.capitalize()} spending trend",
        description=f"Overall spending is {direction.value} with {magnitude * 100:.1f}% correlation",
        type=PatternType.TREND,
        confidence=magnitude,
        significance=common.tier_from_thresholds(magnitude, cfg["significance_correlation"]),
        amount=AmountProfile(average=stats.mean(amounts), variance=stats.variance(amounts), trend=direction),
        time_range=common.month_range(list(monthly.keys())),
        impact=PatternImpact(
            financial=abs(amounts[-1] - amounts[0]),
            recommendation=(
                "Consider reviewing your budget as spending is trending upward"
                if direction == AmountTrend.INCREASING
                else "Good news! Your spending is trending downward"
            ),
        ),
        metadata=common.metadata(detected_at, len(amounts), accuracy=magnitude),
    )


def _detect_category_trends(aggregates: Aggregates, cfg: dict, detected_at: datetime) -> List[Pattern]:
    patterns = []
    for category, monthly in aggregates.category_monthly_totals.items():
        amounts = list(monthly.values())
        if len(amounts) < cfg["min_points"]:
            continue

        r = stats.index_correlation(amounts)
        if abs(r) <= cfg["min_correlation"]:
            continue

        direction = _direction(r)
        magnitude = abs(r)

        patterns.append(Pattern(
            id=common.pattern_id("category-trend", category),
            name=f"{direction.value.capitalize()} {category} spending",
            description=f"{category} spending is {direction.value} with {magnitude * 100:.1f}% correlation",
            type=PatternType.TREND,
            confidence=magnitude,
            significance=Significance.HIGH if magnitude > cfg["high_correlation"] else Significance.MEDIUM,
            category=category,
            amount=AmountProfile(average=stats.mean(amounts), variance=stats.variance(amounts), trend=direction),
            time_range=common.month_range(list(monthly.keys())),
            impact=PatternImpact(
                financial=abs(amounts[-1] - amounts[0]),
                category=category,
                recommendation=(
                    f"Consider reviewing your {category} budget as spending is increasing"
                    if direction == AmountTrend.INCREASING
                    else f"Your {category} spending is decreasing - good progress!"
                ),
            ),
            metadata=common.metadata(detected_at, len(amounts), accuracy=magnitude),
        ))
    return patterns
