"""
anomaly.py
-----------
Statistical anomalies: values far from their own historical distribution.

    - Amount: single expense transactions with |z| above threshold. Each
      amount is scored against the distribution of the *other* expense
      amounts (leave-one-out), so one large outlier cannot inflate the
      standard deviation it is measured against.
    - Frequency: merchants visited unusually often relative to other merchants.
    - Category irregularity: months whose category total sits far from that
      category's monthly distribution.

A zero standard deviation always means "not anomalous".
"""

import logging
from datetime import datetime
from typing import List

import numpy as np

from core import stats
from core.aggregation import Aggregates
from core.models import AmountProfile, AmountTrend, Pattern, PatternImpact, PatternType, Significance
from detectors import common

logger = logging.getLogger(__name__)


def detect_anomalies(aggregates: Aggregates, config: dict, detected_at: datetime) -> List[Pattern]:
    patterns: List[Pattern] = []

    amount_pattern = _detect_amount_anomalies(aggregates, config["amount_anomaly"], detected_at)
    if amount_pattern is not None:
        patterns.append(amount_pattern)

    patterns.extend(_detect_frequency_anomalies(aggregates, config["frequency_anomaly"], detected_at))
    patterns.extend(_detect_category_anomalies(aggregates, config["category_anomaly"], detected_at))

    logger.debug(f"Anomaly detection: {len(patterns)} pattern(s).")
    return patterns


def leave_one_out_z_scores(values: List[float]) -> List[float | None]:
    """
    z-score of each value against all the other values; None where undefined.

    Closed form over centred values: O(n) rather than re-scanning the rest of
    the series for every element.
    """
    n = len(values)
    if n < 3:
        return [None] * n

    centered = np.asarray(values, dtype=float)
    centered = centered - centered.mean()
    total, squares = centered.sum(), np.sum(centered ** 2)

    rest_mean = (total - centered) / (n - 1)
    rest_var = (squares - centered ** 2) / (n - 1) - rest_mean ** 2
    # Rounding noise on a constant remainder must stay "zero variance".
    noise_floor = 1e-12 * max(float(np.max(centered ** 2)), 1.0)
    rest_std = np.sqrt(np.where(rest_var <= noise_floor, 0.0, rest_var))

    return [
        stats.z_score(float(centered[i]), float(rest_mean[i]), float(rest_std[i]))
        for i in range(n)
    ]


def _detect_amount_anomalies(aggregates: Aggregates, cfg: dict, detected_at: datetime) -> Pattern | None:
    expenses = aggregates.expenses
    amounts = aggregates.expense_amounts
    if len(amounts) < cfg["min_transactions"]:
        return None

    threshold = cfg["z_threshold"]
    flagged = [
        i for i, z in enumerate(leave_one_out_z_scores(amounts))
        if z is not None and abs(z) > threshold
    ]
    if not flagged:
        return None

    anomalous = [amounts[i] for i in flagged]
    anomalous_dates = expenses["date"].iloc[flagged]
    total_anomalous = sum(anomalous)
    overall_mean = stats.mean(amounts)

    return Pattern(
        id="amount-anomalies",
        name="Unusual spending amounts",
        description=f"{len(anomalous)} transactions with unusual amounts detected",
        type=PatternType.ANOMALY,
        confidence=cfg["confidence"],
        significance=(
            Significance.CRITICAL
            if total_anomalous > overall_mean * cfg["critical_mean_multiple"]
            else Significance.HIGH
        ),
        amount=AmountProfile(
            average=total_anomalous / len(anomalous),
            variance=stats.variance(anomalous),
            trend=AmountTrend.STABLE,
        ),
        time_range=common.time_range(anomalous_dates.min().date(), anomalous_dates.max().date()),
        impact=PatternImpact(
            financial=total_anomalous,
            recommendation=f"Review these {len(anomalous)} unusual transactions totaling {total_anomalous:.2f}.",
        ),
        metadata=common.metadata(detected_at, len(anomalous)),
    )


def _detect_frequency_anomalies(aggregates: Aggregates, cfg: dict, detected_at: datetime) -> List[Pattern]:
    merchants = aggregates.by_merchant
    if not merchants:
        return []

    counts = [group.count for group in merchants.values()]
    mu, sigma = stats.mean(counts), stats.std_dev(counts)

    patterns = []
    for merchant, group in merchants.items():
        z = stats.z_score(group.count, mu, sigma)
        if z is None or z <= cfg["z_threshold"] or group.count <= cfg["min_count"]:
            continue

        patterns.append(Pattern(
            id=common.pattern_id("frequency-anomaly", merchant),
            name=f"High frequency spending at {merchant}",
            description=f"{group.count} transactions at {merchant} - unusually high frequency",
            type=PatternType.ANOMALY,
            confidence=cfg["confidence"],
            significance=Significance.HIGH if group.count > cfg["high_count"] else Significance.MEDIUM,
            merchant=merchant,
            time_range=common.time_range(group.first_date, group.last_date),
            impact=PatternImpact(
                financial=group.total,
                recommendation=f"Review your {group.count} transactions at {merchant}. This is unusually frequent.",
            ),
            metadata=common.metadata(detected_at, group.count),
        ))
    return patterns


def _detect_category_anomalies(aggregates: Aggregates, cfg: dict, detected_at: datetime) -> List[Pattern]:
    patterns = []
    for category, monthly in aggregates.category_monthly_totals.items():
        amounts = list(monthly.values())
        if len(amounts) < cfg["min_months"]:
            continue

        mu, sigma = stats.mean(amounts), stats.std_dev(amounts)
        anomalous_months = [
            month for month, amount in monthly.items()
            if (z := stats.z_score(amount, mu, sigma)) is not None and abs(z) > cfg["z_threshold"]
        ]
        if not anomalous_months:
            continue

        excess = sum(abs(monthly[m] - mu) for m in anomalous_months)

        patterns.append(Pattern(
            id=common.pattern_id("category-anomaly", category),
            name=f"Irregular {category} spending",
            description=(
                f"{len(anomalous_months)} months with unusual {category} spending patterns "
                f"({', '.join(anomalous_months)})"
            ),
            type=PatternType.ANOMALY,
            confidence=cfg["confidence"],
            significance=Significance.HIGH if len(anomalous_months) > cfg["high_months"] else Significance.MEDIUM,
            category=category,
            amount=AmountProfile(average=mu, variance=stats.variance(amounts), trend=AmountTrend.STABLE),
            time_range=common.month_range(list(monthly.keys())),
            impact=PatternImpact(
                financial=excess,
                category=category,
                recommendation=f"Monitor {category} spending for irregularities. Consider setting a monthly budget.",
            ),
            metadata=common.metadata(detected_at, len(amounts)),
        ))
    return patterns
