"""
models.py
----------
Core domain models. These are the typed contracts between engine layers.

- Transaction: Input record. Owned by the caller, never mutated by the engine.

- Pattern: Output of the detection layer. One per discovered recurring,
  seasonal, behavioral, anomaly or trend regularity.

- Insight: Output of the insight generator. Narrative finding with a
  recommendation, on a 0–100 confidence scale.

- Projection: Output of the forecaster. One per future period.

- PeriodSummary / InsightSummary: Per-bucket rollups consumed by the insight
  generator and forecaster, and the headline numbers shown next to them.

All output models are frozen: they are created fresh on every run and are
display data for consumers.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Optional


# =============================================================================
# ENUMS
# =============================================================================

class TransactionType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"
    TRANSFER = "transfer"


class PatternType(str, Enum):
    RECURRING = "recurring"
    SEASONAL = "seasonal"
    BEHAVIORAL = "behavioral"
    ANOMALY = "anomaly"
    TREND = "trend"


class Significance(str, Enum):
    """Ordinal tier shared by patterns (significance) and insights (severity)."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _TIER_RANK[self]


_TIER_RANK = {
    Significance.CRITICAL: 4,
    Significance.HIGH: 3,
    Significance.MEDIUM: 2,
    Significance.LOW: 1,
}

# Insights use the same four tiers under a different name.
Severity = Significance


class Frequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


class AmountTrend(str, Enum):
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


class InsightType(str, Enum):
    TREND = "trend"
    ANOMALY = "anomaly"
    PREDICTION = "prediction"
    OPPORTUNITY = "opportunity"
    WARNING = "warning"
    ACHIEVEMENT = "achievement"


class TrendDirection(str, Enum):
    UP = "up"
    DOWN = "down"
    STABLE = "stable"


class BucketSize(str, Enum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


# =============================================================================
# INPUT
# =============================================================================

@dataclass(frozen=True)
class Transaction:
    """
    A single financial transaction as loaded by the host application.

    The engine always uses abs(amount) for spending math; `is_recurring` is a
    hint from the import pipeline, not an authoritative classification.
    """

    id: str
    date: date
    amount: float
    type: str                        # "income" | "expense" | "transfer"
    category: str
    description: str = ""
    merchant: Optional[str] = None
    currency: str = "GBP"
    account: str = ""
    location: Optional[str] = None
    is_recurring: Optional[bool] = None
    status: str = "completed"


# =============================================================================
# PATTERNS
# =============================================================================

@dataclass(frozen=True)
class AmountProfile:
    average: float
    variance: float
    trend: AmountTrend


@dataclass(frozen=True)
class TimeRange:
    start: date
    end: date


@dataclass(frozen=True)
class PatternImpact:
    financial: float                 # Estimated money at stake (annualised where noted)
    category: Optional[str] = None
    recommendation: Optional[str] = None


@dataclass(frozen=True)
class PatternMetadata:
    detected_at: datetime
    sample_size: int
    accuracy: Optional[float] = None


@dataclass(frozen=True)
class Pattern:
    """
    A detected spending regularity.

    `id` is stable across runs: derived from the heuristic and its group key
    (e.g. "recurring-merchant-netflix").
    """

    # Identity
    id: str
    name: str
    description: str
    type: PatternType

    # Scoring
    confidence: float                # 0.0 – 1.0
    significance: Significance

    time_range: TimeRange
    impact: PatternImpact
    metadata: PatternMetadata

    # Optional detail
    category: Optional[str] = None
    merchant: Optional[str] = None
    frequency: Optional[Frequency] = None
    amount: Optional[AmountProfile] = None
    next_occurrence: Optional[date] = None


# =============================================================================
# INSIGHTS
# =============================================================================

@dataclass(frozen=True)
class InsightImpact:
    financial: float
    timeframe: str                   # e.g. "monthly" or "per month"
    category: Optional[str] = None


@dataclass(frozen=True)
class InsightTrend:
    direction: TrendDirection
    magnitude: float                 # Percentage change, always >= 0
    period: str


@dataclass(frozen=True)
class InsightMetadata:
    generated_at: datetime
    data_points: int
    accuracy: Optional[float] = None


@dataclass(frozen=True)
class Insight:
    """A narrative finding about recent spending, with a recommendation."""

    id: str
    type: InsightType
    severity: Severity
    title: str
    description: str
    impact: InsightImpact
    confidence: float                # 0 – 100
    metadata: InsightMetadata
    recommendation: Optional[str] = None
    trend: Optional[InsightTrend] = None


# =============================================================================
# PROJECTIONS & PERIOD ROLLUPS
# =============================================================================

@dataclass(frozen=True)
class Projection:
    period: str                      # Label of the projected bucket, e.g. "2024-07"
    predicted_spending: float
    predicted_income: float
    confidence: float                # 0 – 100, decays with horizon
    trend: TrendDirection


@dataclass(frozen=True)
class PeriodSummary:
    """Totals for one period bucket (week, month, quarter or year)."""

    period: str
    total_spending: float
    total_income: float
    net_amount: float
    transaction_count: int
    average_transaction: float
    weekday_spending: float
    weekend_spending: float
    recurring_amount: float
    one_time_amount: float
    categories: dict = field(default_factory=dict)  # category -> spend


@dataclass(frozen=True)
class InsightSummary:
    total_periods: int
    average_spending: float
    average_income: float
    overall_trend: AmountTrend
    total_insights: int
    critical_insights: int
    high_insights: int
