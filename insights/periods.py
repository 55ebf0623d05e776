"""
periods.py
-----------
Period bucketing for the insight generator and forecaster.

Bucket keys sort chronologically as plain strings:
    weekly     "YYYY-MM-DD"  (Sunday the week starts on)
    monthly    "YYYY-MM"
    quarterly  "YYYY-Qn"
    yearly     "YYYY"
"""

from datetime import date, timedelta
from typing import List

import pandas as pd

from core.models import BucketSize, PeriodSummary, TransactionType
from config.config_loader import get_engine_config


def parse_bucket_size(value: str | BucketSize) -> BucketSize:
    """
    Raises:
        ValueError: If value is not a configured bucket size.
    """
    valid = get_engine_config()["valid_bucket_sizes"]
    raw = value.value if isinstance(value, BucketSize) else str(value).strip().lower()
    if raw not in valid:
        raise ValueError(f"Invalid bucket_size '{value}'. Expected one of {valid}")
    return BucketSize(raw)


def bucket_keys(dates: pd.Series, bucket: BucketSize) -> pd.Series:
    """Vectorised period key for each date."""
    dt = dates.dt
    if bucket == BucketSize.WEEKLY:
        days_since_sunday = (dt.dayofweek + 1) % 7
        return (dates - pd.to_timedelta(days_since_sunday, unit="D")).dt.strftime("%Y-%m-%d")
    if bucket == BucketSize.MONTHLY:
        return dt.strftime("%Y-%m")
    if bucket == BucketSize.QUARTERLY:
        return dt.year.astype(str) + "-Q" + dt.quarter.astype(str)
    return dt.year.astype(str)


def build_period_summaries(frame: pd.DataFrame, bucket: BucketSize) -> List[PeriodSummary]:
    """One PeriodSummary per bucket that has any transaction, oldest first."""
    if frame.empty:
        return []

    df = frame.assign(period=bucket_keys(frame["date"], bucket))
    summaries = []

    for period, group in df.groupby("period", sort=True):
        expenses = group[group["type"] == TransactionType.EXPENSE.value]
        income = group[group["type"] == TransactionType.INCOME.value]

        total_spending = float(expenses["abs_amount"].sum())
        total_income = float(income["abs_amount"].sum())
        recurring = float(expenses.loc[expenses["is_recurring"], "abs_amount"].sum())
        weekend = float(expenses.loc[expenses["is_weekend"], "abs_amount"].sum())
        categories = {
            str(k): float(v)
            for k, v in expenses.groupby("category", sort=True)["abs_amount"].sum().items()
        }

        summaries.append(PeriodSummary(
            period=str(period),
            total_spending=total_spending,
            total_income=total_income,
            net_amount=total_income - total_spending,
            transaction_count=len(group),
            average_transaction=total_spending / max(1, len(expenses)),
            weekday_spending=total_spending - weekend,
            weekend_spending=weekend,
            recurring_amount=recurring,
            one_time_amount=total_spending - recurring,
            categories=categories,
        ))

    return summaries


def next_period_labels(last_period: str, bucket: BucketSize, count: int) -> List[str]:
    """Keys of the `count` buckets following `last_period`."""
    if bucket == BucketSize.WEEKLY:
        start = date.fromisoformat(last_period)
        return [(start + timedelta(weeks=i)).isoformat() for i in range(1, count + 1)]

    if bucket == BucketSize.MONTHLY:
        year, month = (int(part) for part in last_period.split("-"))
        labels = []
        for i in range(1, count + 1):
            y, m = divmod(month - 1 + i, 12)
            labels.append(f"{year + y}-{m + 1:02d}")
        return labels

    if bucket == BucketSize.QUARTERLY:
        year, quarter = last_period.split("-Q")
        labels = []
        for i in range(1, count + 1):
            y, q = divmod(int(quarter) - 1 + i, 4)
            labels.append(f"{int(year) + y}-Q{q + 1}")
        return labels

    return [str(int(last_period) + i) for i in range(1, count + 1)]
