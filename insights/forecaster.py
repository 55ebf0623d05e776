"""
forecaster.py
--------------
Short-horizon projections of spending and income.

Least-squares slope over the most recent buckets, extrapolated linearly
from the last observed value. Confidence decays with distance from the
last observation. This is the only source of forward-looking numbers.
"""

import logging
from typing import List

from core import stats
from core.models import BucketSize, PeriodSummary, Projection, TrendDirection
from insights.periods import next_period_labels

logger = logging.getLogger(__name__)


def project(periods: List[PeriodSummary], bucket: BucketSize, config: dict) -> List[Projection]:
    """
    Args:
        periods: Output of build_period_summaries(), oldest first.
        bucket: Bucket size, used to label the projected periods.
        config: The `forecast` block of config.yaml.

    Returns:
        `horizon` projections, or an empty list with too little history.
    """
    if len(periods) < config["min_periods"]:
        logger.debug(f"Forecast skipped: {len(periods)} period(s) < {config['min_periods']}.")
        return []

    recent = periods[-config["lookback_periods"]:]
    spending = [p.total_spending for p in recent]
    income = [p.total_income for p in recent]

    spending_slope = stats.slope(spending)
    income_slope = stats.slope(income)
    trend = _trend_for_slope(spending_slope, config["trend_slope_threshold"])

    horizon = config["horizon"]
    labels = next_period_labels(recent[-1].period, bucket, horizon)

    projections = []
    for i, label in enumerate(labels, start=1):
        projections.append(Projection(
            period=label,
            predicted_spending=max(0.0, spending[-1] + spending_slope * i),
            predicted_income=max(0.0, income[-1] + income_slope * i),
            confidence=max(config["min_confidence"], config["base_confidence"] - config["confidence_decay"] * i),
            trend=trend,
        ))
    return projections


def _trend_for_slope(slope: float, threshold: float) -> TrendDirection:
    if slope > threshold:
        return TrendDirection.UP
    if slope < -threshold:
        return TrendDirection.DOWN
    return TrendDirection.STABLE
