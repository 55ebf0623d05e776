"""
aggregation.py
---------------
Input validation and the aggregation layer.

Two steps, both pure:

    1. to_frame(): Validates the caller's transaction batch (a DataFrame or a
       list of Transaction / mapping records), drops non-finite amounts and
       returns a normalised defensive copy with derived calendar columns.

    2. build_aggregates(): Groups the expense view by merchant, category,
       location, month, quarter, weekday/weekend and pay period. Every grouping
       is an explicit dict from group key to a GroupStats accumulator.

Detectors only ever see the Aggregates object, never the caller's list.
"""

import dataclasses
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd

from core.models import TransactionType
from config.config_loader import get_engine_config

logger = logging.getLogger(__name__)

FIELD_ALIASES = {"isRecurring": "is_recurring"}

OPTIONAL_DEFAULTS = {
    "description": "",
    "merchant": None,
    "currency": "GBP",
    "account": "",
    "location": None,
    "is_recurring": False,
    "status": "completed",
}


@dataclass
class GroupStats:
    """Accumulator for one group key (merchant, category, period, ...)."""

    key: str
    total: float = 0.0
    count: int = 0
    average: float = 0.0
    amounts: List[float] = field(default_factory=list)   # abs amounts, date order
    dates: List[date] = field(default_factory=list)
    categories: List[str] = field(default_factory=list)

    @property
    def first_date(self) -> Optional[date]:
        return self.dates[0] if self.dates else None

    @property
    def last_date(self) -> Optional[date]:
        return self.dates[-1] if self.dates else None


@dataclass
class Aggregates:
    """Everything the detectors consume, computed once per run."""

    frame: pd.DataFrame                                   # all valid transactions
    expenses: pd.DataFrame                                # expense-only view
    by_merchant: Dict[str, GroupStats]
    by_category: Dict[str, GroupStats]
    by_location: Dict[str, GroupStats]
    monthly_totals: Dict[str, float]                      # "YYYY-MM" -> spend, chronological
    quarterly_totals: Dict[str, float]                    # "YYYY-Qn" -> spend, chronological
    category_monthly_totals: Dict[str, Dict[str, float]]  # category -> month -> spend
    weekend: GroupStats
    weekday: GroupStats
    pay_period: GroupStats
    other_days: GroupStats

    @property
    def expense_amounts(self) -> List[float]:
        return self.expenses["abs_amount"].tolist()


# =============================================================================
# VALIDATION / NORMALISATION
# =============================================================================

def to_frame(transactions: Any) -> pd.DataFrame:
    """
    Validate and normalise a transaction batch.

    Args:
        transactions: pandas DataFrame, or a list/tuple of Transaction
            dataclasses or mappings with at least the required fields
            (id, date, amount, type, category).

    Returns:
        A new DataFrame sorted by date with extra columns: abs_amount,
        month_key, quarter_key, is_weekend, is_pay_period.

    Raises:
        TypeError: If the batch is not a DataFrame or a list of records.
        ValueError: If a required field is missing, or `type` / `date`
            holds a value that cannot be interpreted.
    """
    engine_cfg = get_engine_config()
    df = _records_to_frame(transactions)
    df = _apply_aliases(df)

    required = engine_cfg["required_fields"]
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise ValueError(f"Missing required fields: {missing}")

    for col, default in OPTIONAL_DEFAULTS.items():
        if col not in df.columns:
            df[col] = default

    if df.empty:
        return _add_derived_columns(df.assign(date=pd.to_datetime(df["date"]), abs_amount=0.0))

    # --- type ---
    df["type"] = df["type"].astype(str).str.strip().str.lower()
    valid_types = set(engine_cfg["transaction_types"])
    bad_types = sorted(set(df.loc[~df["type"].isin(valid_types), "type"]))
    if bad_types:
        raise ValueError(f"Invalid value(s) in field 'type': {bad_types}. Expected one of {sorted(valid_types)}")

    # --- date ---
    # Offsets may differ row to row; compare everything in UTC, then drop the zone.
    dates = pd.to_datetime(df["date"], errors="coerce", utc=True, format="mixed")
    if dates.isna().any():
        bad_dates = df.loc[dates.isna(), "date"].astype(str).tolist()[:5]
        raise ValueError(f"Unparseable value(s) in field 'date': {bad_dates}")
    df["date"] = dates.dt.tz_convert(None).dt.normalize()

    # --- amount: drop missing / non-finite rather than fail ---
    amounts = pd.to_numeric(df["amount"], errors="coerce").astype(float)
    finite = np.isfinite(amounts.to_numpy())
    dropped = int((~finite).sum())
    if dropped:
        logger.warning(f"Dropping {dropped:,} transaction(s) with missing or non-finite amount.")
    df["amount"] = amounts
    df = df[finite].copy()

    # --- optional text fields ---
    df["merchant"] = _clean_optional_text(df["merchant"])
    df["location"] = _clean_optional_text(df["location"])
    df["category"] = df["category"].fillna("Uncategorized").astype(str)
    df["is_recurring"] = df["is_recurring"].fillna(False).astype(bool)

    df["abs_amount"] = df["amount"].abs()
    df = df.sort_values("date", kind="mergesort").reset_index(drop=True)

    return _add_derived_columns(df)


def _apply_aliases(df: pd.DataFrame) -> pd.DataFrame:
    """Rename alias columns, merging into the canonical column when both are present."""
    for alias, canonical in FIELD_ALIASES.items():
        if alias not in df.columns:
            continue
        if canonical in df.columns:
            df[canonical] = df[canonical].combine_first(df.pop(alias))
        else:
            df = df.rename(columns={alias: canonical})
    return df


def _records_to_frame(transactions: Any) -> pd.DataFrame:
    if isinstance(transactions, pd.DataFrame):
        return transactions.copy()

    if isinstance(transactions, (str, bytes, Mapping)) or not isinstance(transactions, (list, tuple)):
        raise TypeError(
            f"Expected a DataFrame or a list of transaction records, got {type(transactions).__name__}"
        )

    rows = []
    for i, record in enumerate(transactions):
        if dataclasses.is_dataclass(record) and not isinstance(record, type):
            rows.append(dataclasses.asdict(record))
        elif isinstance(record, Mapping):
            rows.append(dict(record))
        else:
            raise TypeError(
                f"Transaction at index {i} is a {type(record).__name__}, "
                f"expected a Transaction or a mapping"
            )

    if not rows:
        return pd.DataFrame(columns=get_engine_config()["required_fields"])
    return pd.DataFrame(rows)


def _clean_optional_text(series: pd.Series) -> pd.Series:
    """Blank strings and NaN both mean 'not present'."""
    present = series.notna() & (series.astype(str).str.strip() != "")
    return series.astype(object).where(present, None)


def _add_derived_columns(df: pd.DataFrame) -> pd.DataFrame:
    dt = df["date"].dt
    df["month_key"] = dt.strftime("%Y-%m")
    df["quarter_key"] = dt.year.astype(str) + "-Q" + dt.quarter.astype(str)
    df["is_weekend"] = dt.dayofweek >= 5
    # Pay period: last 2 calendar days of a month, and days 1–3.
    df["is_pay_period"] = (dt.day <= 3) | (dt.day > dt.days_in_month - 2)
    return df


# =============================================================================
# AGGREGATION
# =============================================================================

def build_aggregates(frame: pd.DataFrame) -> Aggregates:
    """Build every grouping the detectors need from a normalised frame."""
    expenses = frame[frame["type"] == TransactionType.EXPENSE.value].copy()

    return Aggregates(
        frame=frame,
        expenses=expenses,
        by_merchant=group_by_key(expenses[expenses["merchant"].notna()], "merchant"),
        by_category=group_by_key(expenses, "category"),
        by_location=group_by_key(expenses[expenses["location"].notna()], "location"),
        monthly_totals=period_totals(expenses, "month_key"),
        quarterly_totals=period_totals(expenses, "quarter_key"),
        category_monthly_totals={
            category: period_totals(group, "month_key")
            for category, group in expenses.groupby("category", sort=True)
        },
        weekend=group_stats("weekend", expenses[expenses["is_weekend"]]),
        weekday=group_stats("weekday", expenses[~expenses["is_weekend"]]),
        pay_period=group_stats("pay_period", expenses[expenses["is_pay_period"]]),
        other_days=group_stats("other_days", expenses[~expenses["is_pay_period"]]),
    )


def group_by_key(df: pd.DataFrame, column: str) -> Dict[str, GroupStats]:
    """Key -> GroupStats, keys in sorted order."""
    return {
        str(key): group_stats(str(key), group)
        for key, group in df.groupby(column, sort=True)
    }


def group_stats(key: str, df: pd.DataFrame) -> GroupStats:
    amounts = [float(a) for a in df["abs_amount"]]
    total = float(sum(amounts))
    count = len(amounts)
    return GroupStats(
        key=key,
        total=total,
        count=count,
        average=total / count if count else 0.0,
        amounts=amounts,
        dates=[ts.date() for ts in df["date"]],
        categories=df["category"].tolist(),
    )


def period_totals(df: pd.DataFrame, key_column: str) -> Dict[str, float]:
    """Sum of abs amounts per period key. Keys sort chronologically as strings."""
    if df.empty:
        return {}
    sums = df.groupby(key_column, sort=True)["abs_amount"].sum()
    return {str(k): float(v) for k, v in sums.items()}
