"""
insight_generator.py
---------------------
Turns period summaries into narrative insights with recommendations.

Runs independently of the pattern detectors: it only sees the per-bucket
rollups from periods.build_period_summaries(). Each rule is a free function

    (periods, bucket, cfg, generated_at) -> list[Insight]

and the generator concatenates them in rule order before ranking.
Insight confidence is on a 0–100 scale.
"""

import logging
from datetime import datetime
from typing import Callable, Dict, List

from core import stats
from core.models import (
    AmountTrend,
    BucketSize,
    Insight,
    InsightImpact,
    InsightMetadata,
    InsightSummary,
    InsightTrend,
    InsightType,
    PeriodSummary,
    Severity,
    TrendDirection,
)
from core.ranking import rank

logger = logging.getLogger(__name__)

PERIOD_NOUNS = {
    BucketSize.WEEKLY: "week",
    BucketSize.MONTHLY: "month",
    BucketSize.QUARTERLY: "quarter",
    BucketSize.YEARLY: "year",
}

Rule = Callable[[List[PeriodSummary], BucketSize, dict, datetime], List[Insight]]


# =============================================================================
# RULES
# =============================================================================

def spending_shift(periods: List[PeriodSummary], bucket: BucketSize, cfg: dict, generated_at: datetime) -> List[Insight]:
    """Mean of the most recent window of buckets against the window before it."""
    window = cfg["window"]
    recent = [p.total_spending for p in periods[-window:]]
    earlier = [p.total_spending for p in periods[-2 * window:-window]]
    if len(recent) < cfg["min_points_per_window"] or len(earlier) < cfg["min_points_per_window"]:
        return []

    recent_avg, earlier_avg = stats.mean(recent), stats.mean(earlier)
    change = stats.percent_change(recent_avg, earlier_avg)
    if change is None or abs(change) <= cfg["min_change_pct"]:
        return []

    noun = PERIOD_NOUNS[bucket]
    up = change > 0
    return [Insight(
        id="spending-trend",
        type=InsightType.TREND,
        severity=Severity.HIGH if abs(change) > cfg["high_change_pct"] else Severity.MEDIUM,
        title=f"Spending {'increased' if up else 'decreased'} significantly",
        description=f"Your spending has {'increased' if up else 'decreased'} by {abs(change):.1f}% in recent {noun}s",
        recommendation=(
            "Review your recent expenses and consider creating a stricter budget"
            if up
            else "Great progress! Continue monitoring to maintain this downward trend"
        ),
        impact=InsightImpact(financial=abs(recent_avg - earlier_avg), timeframe=f"per {noun}"),
        confidence=cfg["confidence"],
        trend=InsightTrend(
            direction=TrendDirection.UP if up else TrendDirection.DOWN,
            magnitude=abs(change),
            period=bucket.value,
        ),
        metadata=InsightMetadata(
            generated_at=generated_at,
            data_points=len(recent) + len(earlier),
            accuracy=cfg["confidence"],
        ),
    )]


def category_changes(periods: List[PeriodSummary], bucket: BucketSize, cfg: dict, generated_at: datetime) -> List[Insight]:
    """Per-category spike or drop between the last two buckets."""
    if len(periods) < 2:
        return []

    latest, previous = periods[-1], periods[-2]
    insights = []
    for category, amount in latest.categories.items():
        change = stats.percent_change(amount, previous.categories.get(category, 0.0))
        if change is None:
            continue
        if abs(change) <= cfg["min_change_pct"] or amount <= cfg["min_amount"]:
            continue

        up = change > 0
        insights.append(Insight(
            id=f"category-change-{category}",
            type=InsightType.WARNING if up else InsightType.ACHIEVEMENT,
            severity=Severity.HIGH if abs(change) > cfg["high_change_pct"] else Severity.MEDIUM,
            title=f"{category} spending {'spike' if up else 'reduction'}",
            description=f"Your {category} spending {'increased' if up else 'decreased'} by {abs(change):.1f}%",
            recommendation=(
                f"Review your {category} expenses and consider setting a budget limit"
                if up
                else f"Excellent reduction in {category} spending! Keep up the good work"
            ),
            impact=InsightImpact(
                financial=abs(amount - previous.categories[category]),
                timeframe=bucket.value,
                category=category,
            ),
            confidence=cfg["confidence"],
            trend=InsightTrend(
                direction=TrendDirection.UP if up else TrendDirection.DOWN,
                magnitude=abs(change),
                period=bucket.value,
            ),
            metadata=InsightMetadata(generated_at=generated_at, data_points=2),
        ))
    return insights


def weekend_share(periods: List[PeriodSummary], bucket: BucketSize, cfg: dict, generated_at: datetime) -> List[Insight]:
    if not periods:
        return []
    latest = periods[-1]
    total = latest.weekend_spending + latest.weekday_spending
    if total <= 0:
        return []

    ratio = latest.weekend_spending / total
    if ratio <= cfg["min_share"]:
        return []

    return [Insight(
        id="weekend-spending",
        type=InsightType.OPPORTUNITY,
        severity=Severity.MEDIUM,
        title="High weekend spending detected",
        description=f"{ratio * 100:.1f}% of your spending occurs on weekends",
        recommendation="Consider planning weekend activities with a set budget to control impulse purchases",
        impact=InsightImpact(financial=latest.weekend_spending, timeframe=bucket.value),
        confidence=cfg["confidence"],
        metadata=InsightMetadata(generated_at=generated_at, data_points=1),
    )]


def irregular_spending(periods: List[PeriodSummary], bucket: BucketSize, cfg: dict, generated_at: datetime) -> List[Insight]:
    """Warns when little of the latest bucket's spend is recurring."""
    if not periods:
        return []
    latest = periods[-1]
    if latest.total_spending <= 0:
        return []

    ratio = latest.recurring_amount / latest.total_spending
    if ratio >= cfg["max_recurring_share"]:
        return []

    return [Insight(
        id="irregular-spending",
        type=InsightType.WARNING,
        severity=Severity.MEDIUM,
        title="High variable spending detected",
        description=f"Only {ratio * 100:.1f}% of your spending is from regular, predictable expenses",
        recommendation="Consider setting up more regular budgets and reducing discretionary spending",
        impact=InsightImpact(financial=latest.one_time_amount, timeframe=bucket.value),
        confidence=cfg["confidence"],
        metadata=InsightMetadata(generated_at=generated_at, data_points=1),
    )]


def income_volatility(periods: List[PeriodSummary], bucket: BucketSize, cfg: dict, generated_at: datetime) -> List[Insight]:
    incomes = [p.total_income for p in periods[-cfg["lookback_periods"]:] if p.total_income > 0]
    if len(incomes) < cfg["min_points"]:
        return []

    cv = stats.coefficient_of_variation(incomes)
    if cv <= cfg["max_cv"]:
        return []

    return [Insight(
        id="income-volatility",
        type=InsightType.WARNING,
        severity=Severity.HIGH,
        title="Income volatility detected",
        description=f"Your income varies significantly between {PERIOD_NOUNS[bucket]}s (variation {cv * 100:.1f}%)",
        recommendation="Consider building a larger emergency fund to handle income fluctuations",
        impact=InsightImpact(financial=stats.std_dev(incomes), timeframe=bucket.value),
        confidence=cfg["confidence"],
        metadata=InsightMetadata(generated_at=generated_at, data_points=len(incomes)),
    )]


def savings_rate(periods: List[PeriodSummary], bucket: BucketSize, cfg: dict, generated_at: datetime) -> List[Insight]:
    """Savings rate of the latest bucket, when it has any income."""
    if not periods:
        return []
    latest = periods[-1]
    if latest.total_income <= 0:
        return []

    rate = (latest.total_income - latest.total_spending) / latest.total_income * 100
    metadata = InsightMetadata(generated_at=generated_at, data_points=1)
    impact_timeframe = bucket.value

    if rate < cfg["low_rate_pct"]:
        negative = rate < 0
        return [Insight(
            id="low-savings-rate",
            type=InsightType.WARNING,
            severity=Severity.CRITICAL if negative else Severity.HIGH,
            title="Spending exceeds income" if negative else "Low savings rate",
            description=(
                f"Your savings rate is {rate:.1f}%, "
                + (
                    "meaning you're spending more than you earn"
                    if negative
                    else f"which is below the recommended {cfg['recommended_rate_pct']}%"
                )
            ),
            recommendation=(
                "Immediate action needed: reduce expenses or increase income to avoid debt"
                if negative
                else f"Try to reduce expenses or increase income to save at least {cfg['recommended_rate_pct']}% of your income"
            ),
            impact=InsightImpact(financial=abs(latest.net_amount), timeframe=impact_timeframe),
            confidence=cfg["confidence"],
            metadata=metadata,
        )]

    if rate > cfg["high_rate_pct"]:
        return [Insight(
            id="high-savings-rate",
            type=InsightType.ACHIEVEMENT,
            severity=Severity.LOW,
            title="Excellent savings rate",
            description=f"Your savings rate of {rate:.1f}% is outstanding!",
            recommendation="Consider investing your surplus savings for long-term wealth building",
            impact=InsightImpact(financial=latest.net_amount, timeframe=impact_timeframe),
            confidence=cfg["confidence"],
            metadata=metadata,
        )]

    return []


RULES: Dict[str, Rule] = {
    "spending_shift": spending_shift,
    "category_change": category_changes,
    "weekend_share": weekend_share,
    "irregular_spending": irregular_spending,
    "income_volatility": income_volatility,
    "savings_rate": savings_rate,
}


# =============================================================================
# PUBLIC INTERFACE
# =============================================================================

def generate_insights(
    periods: List[PeriodSummary], bucket: BucketSize, config: dict, generated_at: datetime
) -> List[Insight]:
    """
    Run every rule against the period summaries and rank the result.

    Args:
        periods: Output of build_period_summaries(), oldest first.
        bucket: Bucket size the periods were built with.
        config: The `insights` block of config.yaml. Keys match RULES.
        generated_at: Timestamp stamped on every insight.
    """
    insights: List[Insight] = []
    for name, rule in RULES.items():
        produced = rule(periods, bucket, config[name], generated_at)
        logger.debug(f"Insight rule '{name}': {len(produced)} insight(s).")
        insights.extend(produced)
    return rank(insights)


def summarize(periods: List[PeriodSummary], insights: List[Insight]) -> InsightSummary:
    """Headline numbers shown alongside the insight list."""
    overall = AmountTrend.STABLE
    if len(periods) > 1:
        first, last = periods[0].total_spending, periods[-1].total_spending
        if last > first:
            overall = AmountTrend.INCREASING
        elif last < first:
            overall = AmountTrend.DECREASING

    return InsightSummary(
        total_periods=len(periods),
        average_spending=stats.mean([p.total_spending for p in periods]),
        average_income=stats.mean([p.total_income for p in periods]),
        overall_trend=overall,
        total_insights=len(insights),
        critical_insights=sum(1 for i in insights if i.severity == Severity.CRITICAL),
        high_insights=sum(1 for i in insights if i.severity == Severity.HIGH),
    )
