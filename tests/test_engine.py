"""
test_engine.py
---------------
Test suite for the pattern detection side of the engine.

Run from the project root:
    python -m pytest tests/ -v

Tests are organized by layer:
    - Config
    - Statistics primitives
    - Validation & aggregation
    - Pattern detectors (recurring, seasonal, behavioral, anomaly, trend)
    - Ranking & filters
    - Full pipeline (integration)
"""

import sys
import os
import math
import pytest
import pandas as pd
from datetime import date, datetime, timedelta

# Ensure the project root is on the path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from config.config_loader import (
    load_config, get_pattern_detection_config, get_section, reset_config,
)
from core import stats
from core.aggregation import build_aggregates, to_frame
from core.models import (
    AmountTrend, Frequency, Pattern, PatternImpact, PatternMetadata, PatternType,
    Significance, TimeRange, Transaction,
)
from core.ranking import filter_patterns, high_confidence_patterns, rank
from detectors.anomaly import detect_anomalies, leave_one_out_z_scores
from detectors.behavioral import detect_behavioral
from detectors.recurring import detect_recurring
from detectors.registry import get_all_detectors
from detectors.seasonal import detect_seasonal
from detectors.trend import detect_trends
from pipeline import SpendingInsightsPipeline, detect_patterns, generate_insights_and_projections, patterns_to_frame


FIXED_NOW = datetime(2024, 12, 31, 12, 0, 0)


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture(autouse=True)
def reset_config_cache():
    """Clears config cache before each test for isolation."""
    reset_config()
    yield
    reset_config()


def _txn(
    txn_id,
    on: date,
    amount: float,
    type: str = "expense",
    category: str = "General",
    merchant: str | None = None,
    location: str | None = None,
    is_recurring: bool = False,
) -> Transaction:
    return Transaction(
        id=str(txn_id),
        date=on,
        amount=amount,
        type=type,
        category=category,
        description=merchant or category,
        merchant=merchant,
        location=location,
        is_recurring=is_recurring,
    )


def _monthly_txns(amounts, category="General", start_year=2024, start_month=1, day=10, start_id=1):
    """Helper: one expense per month with the given amounts."""
    txns = []
    for i, amount in enumerate(amounts):
        y, m = divmod(start_month - 1 + i, 12)
        txns.append(_txn(start_id + i, date(start_year + y, m + 1, day), amount, category=category))
    return txns


def _aggregates(txns):
    return build_aggregates(to_frame(txns))


def _run(detector, txns):
    return detector(_aggregates(txns), get_pattern_detection_config(), FIXED_NOW)


def _by_id(patterns, pattern_id):
    matches = [p for p in patterns if p.id == pattern_id]
    return matches[0] if matches else None


def _make_pattern(pattern_id, significance, confidence) -> Pattern:
    return Pattern(
        id=pattern_id,
        name=pattern_id,
        description="",
        type=PatternType.TREND,
        confidence=confidence,
        significance=significance,
        time_range=TimeRange(start=date(2024, 1, 1), end=date(2024, 6, 1)),
        impact=PatternImpact(financial=0.0),
        metadata=PatternMetadata(detected_at=FIXED_NOW, sample_size=1),
    )


# =============================================================================
# CONFIG TESTS
# =============================================================================

class TestConfig:
    def test_config_loads_successfully(self):
        config = load_config()
        assert "engine" in config
        assert "pattern_detection" in config
        assert "insights" in config
        assert "forecast" in config

    def test_detector_block_lookup(self):
        cfg = get_pattern_detection_config()["recurring_merchant"]
        assert cfg["min_transactions"] == 3
        assert cfg["max_variance_ratio"] == 0.3

    def test_missing_section_raises(self):
        with pytest.raises(KeyError, match="Available"):
            get_section("nonexistent_section")


# =============================================================================
# STATISTICS PRIMITIVES
# =============================================================================

class TestStats:
    def test_variance_is_population_variance(self):
        assert stats.variance([1, 2, 3, 4]) == pytest.approx(1.25)

    def test_variance_degenerate_inputs(self):
        assert stats.variance([]) == 0.0
        assert stats.variance([42.0]) == 0.0

    def test_correlation_is_symmetric(self):
        x = [1, 3, 2, 5, 4, 9]
        y = [2, 1, 4, 3, 5, 7]
        assert stats.correlation(x, y) == pytest.approx(stats.correlation(y, x))

    def test_correlation_perfect_line(self):
        assert stats.correlation(range(6), [100, 200, 300, 400, 500, 600]) == pytest.approx(1.0)
        assert stats.correlation(range(6), [600, 500, 400, 300, 200, 100]) == pytest.approx(-1.0)

    def test_correlation_guards(self):
        assert stats.correlation([1, 2, 3], [5, 5, 5]) == 0.0
        assert stats.correlation([1, 2, 3], [1, 2]) == 0.0
        assert stats.correlation([], []) == 0.0

    def test_slope(self):
        assert stats.slope([2, 4, 6, 8]) == pytest.approx(2.0)
        assert stats.slope([10, 10, 10]) == pytest.approx(0.0)
        assert stats.slope([5]) == 0.0
        assert stats.slope([]) == 0.0

    def test_z_score(self):
        assert stats.z_score(8, 5, 1.5) == pytest.approx(2.0)
        assert stats.z_score(8, 5, 0) is None

    def test_coefficient_of_variation_zero_mean(self):
        assert stats.coefficient_of_variation([0, 0, 0]) == 0.0
        assert stats.coefficient_of_variation([1000, 3000]) == pytest.approx(0.5)


# =============================================================================
# VALIDATION & AGGREGATION
# =============================================================================

class TestValidation:
    def test_list_of_transactions_accepted_and_sorted(self):
        txns = [
            _txn(2, date(2024, 3, 1), -20.0),
            _txn(1, date(2024, 1, 1), -10.0),
        ]
        frame = to_frame(txns)
        assert list(frame["id"]) == ["1", "2"]
        assert list(frame["abs_amount"]) == [10.0, 20.0]

    def test_mappings_and_camel_case_alias(self):
        frame = to_frame([
            {"id": "a", "date": "2024-01-05", "amount": 12.5, "type": "Expense",
             "category": "Food", "isRecurring": True},
        ])
        assert frame.loc[0, "type"] == "expense"
        assert bool(frame.loc[0, "is_recurring"]) is True

    def test_alias_merged_with_canonical_column(self):
        frame = to_frame([
            _txn(1, date(2024, 1, 1), 10.0),
            {"id": "2", "date": "2024-01-02", "amount": 5.0, "type": "expense",
             "category": "A", "isRecurring": True},
        ])
        assert "isRecurring" not in frame.columns
        assert list(frame["is_recurring"]) == [False, True]

    def test_mixed_alias_batch_runs_end_to_end(self):
        txns = [_txn(i, date(2024, 1, i + 1), 10.0) for i in range(3)]
        txns.append({"id": "m", "date": "2024-02-01", "amount": 5.0, "type": "expense",
                     "category": "A", "isRecurring": True})
        assert isinstance(detect_patterns(txns, clock=lambda: FIXED_NOW), list)
        insights, _ = generate_insights_and_projections(txns, clock=lambda: FIXED_NOW)
        assert isinstance(insights, list)

    def test_mixed_utc_offsets_normalised(self):
        rows = [
            {"id": str(i), "date": f"2024-0{i + 1}-05T10:00:00+0{i % 2}:00", "amount": 10.0,
             "type": "expense", "category": "A"}
            for i in range(6)
        ]
        frame = to_frame(rows)
        assert frame["date"].dt.tz is None
        assert list(frame["month_key"]) == ["2024-01", "2024-02", "2024-03", "2024-04", "2024-05", "2024-06"]
        assert all(frame["date"].dt.day == 5)
        assert isinstance(detect_patterns(rows, clock=lambda: FIXED_NOW), list)

    def test_non_finite_amounts_dropped(self):
        frame = to_frame([
            _txn(1, date(2024, 1, 1), 10.0),
            _txn(2, date(2024, 1, 2), float("nan")),
            _txn(3, date(2024, 1, 3), float("inf")),
            {"id": "4", "date": "2024-01-04", "amount": None, "type": "expense", "category": "X"},
        ])
        assert list(frame["id"]) == ["1"]

    def test_input_dataframe_not_mutated(self):
        df = pd.DataFrame({
            "id": ["1", "2"],
            "date": ["2024-01-02", "2024-01-01"],
            "amount": [-5.0, float("nan")],
            "type": ["expense", "expense"],
            "category": ["A", "B"],
        })
        original = df.copy()
        to_frame(df)
        pd.testing.assert_frame_equal(df, original)

    def test_missing_field_raises(self):
        with pytest.raises(ValueError, match="Missing required fields"):
            to_frame([{"id": "1", "amount": 10.0, "type": "expense", "category": "A"}])

    def test_invalid_type_value_raises(self):
        with pytest.raises(ValueError, match="'type'"):
            to_frame([{"id": "1", "date": "2024-01-01", "amount": 1, "type": "refund", "category": "A"}])

    def test_unparseable_date_raises(self):
        with pytest.raises(ValueError, match="'date'"):
            to_frame([{"id": "1", "date": "not-a-date", "amount": 1, "type": "expense", "category": "A"}])

    def test_wrong_shape_raises(self):
        with pytest.raises(TypeError):
            to_frame("transactions.csv")
        with pytest.raises(TypeError):
            to_frame({"id": "1"})
        with pytest.raises(TypeError, match="index 1"):
            to_frame([_txn(1, date(2024, 1, 1), 1.0), 42])

    def test_empty_batch(self):
        frame = to_frame([])
        assert frame.empty
        aggregates = build_aggregates(frame)
        assert aggregates.monthly_totals == {}
        assert aggregates.by_merchant == {}


class TestAggregation:
    def test_calendar_partitions(self):
        frame = to_frame([
            _txn(1, date(2024, 1, 6), 1.0),    # Saturday
            _txn(2, date(2024, 1, 7), 1.0),    # Sunday
            _txn(3, date(2024, 1, 8), 1.0),    # Monday
            _txn(4, date(2024, 1, 29), 1.0),   # not in last 2 days of Jan
            _txn(5, date(2024, 1, 30), 1.0),
            _txn(6, date(2024, 2, 3), 1.0),
            _txn(7, date(2024, 2, 4), 1.0),
            _txn(8, date(2024, 2, 28), 1.0),   # leap February: 28, 29 are the last 2 days
        ])
        assert list(frame["is_weekend"]) == [True, True, False, False, False, True, True, False]
        assert list(frame["is_pay_period"]) == [False, False, False, False, True, True, False, True]
        assert frame.loc[0, "quarter_key"] == "2024-Q1"

    def test_expense_groupings(self):
        aggregates = _aggregates([
            _txn(1, date(2024, 2, 1), -30.0, category="Food", merchant="Tesco"),
            _txn(2, date(2024, 1, 1), -20.0, category="Food", merchant="Tesco"),
            _txn(3, date(2024, 1, 15), 2000.0, type="income", category="Salary", merchant="Employer"),
            _txn(4, date(2024, 4, 2), -50.0, category="Fuel"),
        ])
        assert list(aggregates.monthly_totals) == ["2024-01", "2024-02", "2024-04"]
        assert aggregates.monthly_totals["2024-01"] == pytest.approx(20.0)
        assert aggregates.quarterly_totals == {"2024-Q1": pytest.approx(50.0), "2024-Q2": pytest.approx(50.0)}
        assert set(aggregates.by_merchant) == {"Tesco"}
        tesco = aggregates.by_merchant["Tesco"]
        assert tesco.count == 2
        assert tesco.dates == [date(2024, 1, 1), date(2024, 2, 1)]
        assert tesco.average == pytest.approx(25.0)
        assert set(aggregates.by_category) == {"Food", "Fuel"}


# =============================================================================
# RECURRING DETECTOR
# =============================================================================

class TestRecurringDetector:
    def _subscription(self, n, interval_days=30, amount=9.99, merchant="Netflix"):
        start = date(2024, 1, 1)
        return [
            _txn(i, start + timedelta(days=interval_days * i), amount, category="Entertainment", merchant=merchant)
            for i in range(n)
        ]

    def test_detects_monthly_subscription(self):
        txns = self._subscription(6)
        pattern = _by_id(_run(detect_recurring, txns), "recurring-merchant-netflix")

        assert pattern is not None
        assert pattern.type == PatternType.RECURRING
        assert pattern.frequency == Frequency.MONTHLY
        assert pattern.amount.average == pytest.approx(9.99)
        assert pattern.confidence > 0.3
        assert pattern.confidence == pytest.approx(0.9)
        assert pattern.significance == Significance.LOW
        assert pattern.next_occurrence == date(2024, 1, 1) + timedelta(days=180)
        assert pattern.impact.financial == pytest.approx(9.99 * 365 / 30)
        assert pattern.category == "Entertainment"
        assert pattern.metadata.sample_size == 6

    def test_weekly_cadence(self):
        txns = self._subscription(5, interval_days=7, amount=60.0, merchant="Gym Class")
        pattern = _by_id(_run(detect_recurring, txns), "recurring-merchant-gym-class")
        assert pattern.frequency == Frequency.WEEKLY
        assert pattern.significance == Significance.MEDIUM

    def test_below_minimum_occurrences(self):
        txns = self._subscription(2)
        assert _by_id(_run(detect_recurring, txns), "recurring-merchant-netflix") is None

    def test_irregular_intervals_rejected(self):
        start = date(2024, 1, 1)
        txns = [
            _txn(i, start + timedelta(days=offset), 20.0, merchant="Amazon")
            for i, offset in enumerate([0, 3, 40, 45, 100])
        ]
        assert _by_id(_run(detect_recurring, txns), "recurring-merchant-amazon") is None

    def test_sub_weekly_cadence_rejected(self):
        txns = self._subscription(6, interval_days=3, merchant="Coffee")
        assert _by_id(_run(detect_recurring, txns), "recurring-merchant-coffee") is None

    def test_stable_category_is_recurring(self):
        txns = _monthly_txns([100, 100, 100], category="Utilities")
        pattern = _by_id(_run(detect_recurring, txns), "recurring-category-utilities")
        assert pattern is not None
        assert pattern.confidence == pytest.approx(0.9)
        assert pattern.impact.financial == pytest.approx(1200.0)

    def test_variable_category_not_recurring(self):
        # variance/mean = 66.7 / 100 > 0.5
        txns = _monthly_txns([100, 110, 90], category="Utilities")
        assert _by_id(_run(detect_recurring, txns), "recurring-category-utilities") is None


# =============================================================================
# SEASONAL DETECTOR
# =============================================================================

class TestSeasonalDetector:
    def test_monthly_variation(self):
        patterns = _run(detect_seasonal, _monthly_txns([100, 100, 100, 200]))
        pattern = _by_id(patterns, "seasonal-monthly")
        assert pattern is not None
        assert pattern.confidence == pytest.approx(0.8)
        assert pattern.significance == Significance.MEDIUM
        # Only two quarters observed
        assert _by_id(patterns, "seasonal-quarterly") is None

    def test_small_variation_ignored(self):
        assert _by_id(_run(detect_seasonal, _monthly_txns([100, 100, 100, 110])), "seasonal-monthly") is None

    def test_too_few_periods(self):
        assert _by_id(_run(detect_seasonal, _monthly_txns([100, 500, 100])), "seasonal-monthly") is None

    def test_holiday_spending(self):
        txns = [_txn(i, date(2023, 12, i + 1), 100.0) for i in range(12)]
        txns += [_txn(100 + i, date(2024, 3, i + 1), 100.0) for i in range(3)]
        pattern = _by_id(_run(detect_seasonal, txns), "holiday-spending")
        assert pattern is not None
        assert pattern.confidence == pytest.approx(0.8)
        assert pattern.significance == Significance.HIGH
        assert pattern.impact.financial == pytest.approx(900.0)

    def test_holiday_needs_enough_transactions(self):
        txns = [_txn(i, date(2023, 12, i + 1), 100.0) for i in range(9)]
        txns += [_txn(100 + i, date(2024, 3, i + 1), 10.0) for i in range(3)]
        assert _by_id(_run(detect_seasonal, txns), "holiday-spending") is None


# =============================================================================
# BEHAVIORAL DETECTOR
# =============================================================================

SATURDAYS = [date(2024, 1, 6), date(2024, 1, 13), date(2024, 1, 20), date(2024, 1, 27), date(2024, 2, 10)]
MONDAYS = [date(2024, 1, 8), date(2024, 1, 15), date(2024, 1, 22), date(2024, 2, 5), date(2024, 2, 12)]


class TestBehavioralDetector:
    def test_weekend_heavy_spending(self):
        txns = [_txn(i, d, 100.0) for i, d in enumerate(SATURDAYS)]
        txns += [_txn(10 + i, d, 20.0) for i, d in enumerate(MONDAYS)]
        pattern = _by_id(_run(detect_behavioral, txns), "weekend-spending")
        assert pattern is not None
        assert pattern.name == "Higher weekend spending"
        assert pattern.confidence == pytest.approx(0.7)
        assert pattern.significance == Significance.HIGH

    def test_weekend_share_below_threshold(self):
        txns = [_txn(i, d, 10.0) for i, d in enumerate(SATURDAYS)]
        txns += [_txn(10 + i, d, 100.0) for i, d in enumerate(MONDAYS)]
        assert _by_id(_run(detect_behavioral, txns), "weekend-spending") is None

    def test_weekend_needs_minimum_samples(self):
        txns = [_txn(i, d, 100.0) for i, d in enumerate(SATURDAYS[:4])]
        txns += [_txn(10 + i, d, 20.0) for i, d in enumerate(MONDAYS)]
        assert _by_id(_run(detect_behavioral, txns), "weekend-spending") is None

    def test_payday_spending(self):
        pay_days = [date(2024, 3, 1), date(2024, 3, 2), date(2024, 3, 3), date(2024, 3, 30), date(2024, 3, 31)]
        other_days = [date(2024, 3, d) for d in range(10, 15)]
        txns = [_txn(i, d, 100.0) for i, d in enumerate(pay_days)]
        txns += [_txn(10 + i, d, 50.0) for i, d in enumerate(other_days)]
        pattern = _by_id(_run(detect_behavioral, txns), "payday-spending")
        assert pattern is not None
        assert pattern.confidence == pytest.approx(0.6)
        assert pattern.significance == Significance.HIGH

    def test_payday_small_difference_ignored(self):
        pay_days = [date(2024, 3, 1), date(2024, 3, 2), date(2024, 3, 3), date(2024, 3, 30), date(2024, 3, 31)]
        other_days = [date(2024, 3, d) for d in range(10, 15)]
        txns = [_txn(i, d, 105.0) for i, d in enumerate(pay_days)]
        txns += [_txn(10 + i, d, 100.0) for i, d in enumerate(other_days)]
        assert _by_id(_run(detect_behavioral, txns), "payday-spending") is None

    def test_location_spending(self):
        txns = [_txn(i, date(2024, 4, i + 5), 50.0, location="Camden Market") for i in range(5)]
        pattern = _by_id(_run(detect_behavioral, txns), "location-camden-market")
        assert pattern is not None
        assert pattern.impact.financial == pytest.approx(250.0)
        assert pattern.significance == Significance.MEDIUM

    def test_location_thresholds(self):
        few = [_txn(i, date(2024, 4, i + 5), 80.0, location="Camden Market") for i in range(4)]
        small = [_txn(i, date(2024, 4, i + 5), 30.0, location="Camden Market") for i in range(5)]
        assert _by_id(_run(detect_behavioral, few), "location-camden-market") is None
        assert _by_id(_run(detect_behavioral, small), "location-camden-market") is None


# =============================================================================
# ANOMALY DETECTOR
# =============================================================================

class TestAnomalyDetector:
    def _expenses(self, amounts):
        return [_txn(i, date(2024, 5, i + 1), a) for i, a in enumerate(amounts)]

    def test_large_amount_flagged(self):
        pattern = _by_id(_run(detect_anomalies, self._expenses([50, 60, 45, 55, 500])), "amount-anomalies")
        assert pattern is not None
        assert pattern.metadata.sample_size == 1
        assert pattern.impact.financial == pytest.approx(500.0)
        assert pattern.significance == Significance.HIGH
        assert pattern.time_range.start == date(2024, 5, 5)

    def test_normal_amounts_not_flagged(self):
        assert _by_id(_run(detect_anomalies, self._expenses([50, 60, 45, 55, 52])), "amount-anomalies") is None

    def test_critical_when_anomalies_dwarf_mean(self):
        amounts = [10, 12, 11, 9, 10, 12, 11, 9, 10, 1000]
        pattern = _by_id(_run(detect_anomalies, self._expenses(amounts)), "amount-anomalies")
        assert pattern.significance == Significance.CRITICAL

    def test_too_few_amounts(self):
        assert _by_id(_run(detect_anomalies, self._expenses([50, 60, 500])), "amount-anomalies") is None

    def test_leave_one_out_scores(self):
        scores = leave_one_out_z_scores([50, 60, 45, 55, 500])
        assert scores[4] > 3
        assert all(abs(s) < 3 for s in scores[:4])
        # Constant remainder has no spread: never anomalous
        assert leave_one_out_z_scores([5, 5, 5, 9])[3] is None

    def test_frequency_anomaly(self):
        txns = [_txn(i, date(2024, 1, 1) + timedelta(days=i), 3.5, merchant="Coffee Shop") for i in range(20)]
        for j, name in enumerate(["A", "B", "C", "D", "E"]):
            txns.append(_txn(100 + j, date(2024, 2, j + 1), 40.0, merchant=name))
        pattern = _by_id(_run(detect_anomalies, txns), "frequency-anomaly-coffee-shop")
        assert pattern is not None
        assert pattern.merchant == "Coffee Shop"
        assert pattern.significance == Significance.MEDIUM
        assert pattern.impact.financial == pytest.approx(70.0)

    def test_frequency_needs_more_than_min_count(self):
        txns = [_txn(i, date(2024, 1, 1) + timedelta(days=i), 3.5, merchant="Coffee Shop") for i in range(10)]
        for j, name in enumerate(["A", "B", "C", "D", "E"]):
            txns.append(_txn(100 + j, date(2024, 2, j + 1), 40.0, merchant=name))
        assert _by_id(_run(detect_anomalies, txns), "frequency-anomaly-coffee-shop") is None

    def test_category_irregular_month(self):
        txns = _monthly_txns([100, 100, 100, 100, 100, 100, 1000], category="Travel")
        pattern = _by_id(_run(detect_anomalies, txns), "category-anomaly-travel")
        assert pattern is not None
        assert pattern.significance == Significance.MEDIUM
        assert "2024-07" in pattern.description

    def test_category_needs_three_months(self):
        txns = _monthly_txns([100, 1000], category="Travel")
        assert _by_id(_run(detect_anomalies, txns), "category-anomaly-travel") is None


# =============================================================================
# TREND DETECTOR
# =============================================================================

class TestTrendDetector:
    def test_increasing_trend(self):
        pattern = _by_id(_run(detect_trends, _monthly_txns([100, 200, 300, 400, 500, 600])), "spending-trend")
        assert pattern is not None
        assert pattern.confidence == pytest.approx(1.0)
        assert pattern.amount.trend == AmountTrend.INCREASING
        assert pattern.significance == Significance.HIGH
        assert pattern.time_range == TimeRange(start=date(2024, 1, 1), end=date(2024, 6, 30))

    def test_decreasing_trend(self):
        pattern = _by_id(_run(detect_trends, _monthly_txns([600, 500, 400, 300, 200, 100])), "spending-trend")
        assert pattern.amount.trend == AmountTrend.DECREASING
        assert pattern.confidence == pytest.approx(1.0)
        assert pattern.name == "Decreasing spending trend"

    def test_needs_six_months(self):
        assert _by_id(_run(detect_trends, _monthly_txns([100, 200, 300, 400, 500])), "spending-trend") is None

    def test_noisy_series_has_no_trend(self):
        assert _by_id(_run(detect_trends, _monthly_txns([100, 300, 100, 300, 100, 300])), "spending-trend") is None

    def test_category_trend(self):
        pattern = _by_id(
            _run(detect_trends, _monthly_txns([100, 200, 300, 400], category="Groceries")),
            "category-trend-groceries",
        )
        assert pattern is not None
        assert pattern.category == "Groceries"
        assert pattern.significance == Significance.HIGH

    def test_category_trend_needs_four_points(self):
        txns = _monthly_txns([100, 200, 300], category="Groceries")
        assert _by_id(_run(detect_trends, txns), "category-trend-groceries") is None


# =============================================================================
# RANKING
# =============================================================================

class TestRanking:
    def test_rank_by_significance(self):
        patterns = [
            _make_pattern("a", Significance.LOW, 0.9),
            _make_pattern("b", Significance.CRITICAL, 0.1),
            _make_pattern("c", Significance.MEDIUM, 0.5),
            _make_pattern("d", Significance.HIGH, 0.3),
        ]
        ranked = rank(patterns)
        assert [p.significance for p in ranked] == [
            Significance.CRITICAL, Significance.HIGH, Significance.MEDIUM, Significance.LOW,
        ]

    def test_confidence_breaks_ties_and_sort_is_stable(self):
        patterns = [
            _make_pattern("a", Significance.HIGH, 0.5),
            _make_pattern("b", Significance.HIGH, 0.8),
            _make_pattern("c", Significance.HIGH, 0.5),
        ]
        assert [p.id for p in rank(patterns)] == ["b", "a", "c"]

    def test_filters(self):
        patterns = [
            _make_pattern("a", Significance.LOW, 0.9),
            _make_pattern("b", Significance.HIGH, 0.4),
        ]
        assert [p.id for p in high_confidence_patterns(patterns)] == ["a"]
        assert [p.id for p in filter_patterns(patterns, significance=Significance.HIGH)] == ["b"]
        assert filter_patterns(patterns, pattern_type=PatternType.ANOMALY) == []


# =============================================================================
# FULL PIPELINE INTEGRATION TESTS
# =============================================================================

def _household_batch():
    """A year of mixed activity: subscription, rising groceries, salary, a one-off."""
    txns = []
    start = date(2024, 1, 1)
    for i in range(12):
        txns.append(_txn(f"sub{i}", start + timedelta(days=30 * i), -9.99, category="Entertainment", merchant="Netflix"))
        txns.append(_txn(f"gro{i}", date(2024, i + 1, 12), -(200 + 25 * i), category="Groceries", merchant="Tesco"))
        txns.append(_txn(f"sal{i}", date(2024, i + 1, 25), 2500.0, type="income", category="Salary", merchant="Employer"))
    txns.append(_txn("tv", date(2024, 11, 29), -1800.0, category="Electronics", merchant="Currys"))
    return txns


class TestPipeline:
    def test_detectors_registered(self):
        assert len(get_all_detectors()) == 5

    def test_end_to_end(self):
        patterns = detect_patterns(_household_batch(), clock=lambda: FIXED_NOW)
        ids = {p.id for p in patterns}
        assert "recurring-merchant-netflix" in ids
        assert "category-trend-groceries" in ids
        assert "amount-anomalies" in ids
        # Income never counts as spend
        assert "recurring-merchant-employer" not in ids
        tiers = [p.significance.rank for p in patterns]
        assert tiers == sorted(tiers, reverse=True)

    def test_idempotent_with_fixed_clock(self):
        pipeline = SpendingInsightsPipeline(clock=lambda: FIXED_NOW)
        first = pipeline.detect_patterns(_household_batch())
        second = pipeline.detect_patterns(_household_batch())
        assert first == second
        assert all(p.metadata.detected_at == FIXED_NOW for p in first)

    def test_runs_differ_only_in_timestamps(self):
        first = detect_patterns(_household_batch(), clock=lambda: datetime(2024, 1, 1))
        second = detect_patterns(_household_batch(), clock=lambda: datetime(2025, 1, 1))
        def strip(patterns):
            return [(p.id, p.confidence, p.significance, p.impact) for p in patterns]

        assert strip(first) == strip(second)

    def test_input_not_mutated(self):
        txns = _household_batch()
        snapshot = list(txns)
        detect_patterns(txns, clock=lambda: FIXED_NOW)
        assert txns == snapshot

    def test_empty_input(self):
        assert detect_patterns([], clock=lambda: FIXED_NOW) == []

    def test_no_nan_in_output(self):
        patterns = detect_patterns(_household_batch(), clock=lambda: FIXED_NOW)
        for p in patterns:
            assert math.isfinite(p.confidence)
            assert math.isfinite(p.impact.financial)
            if p.amount:
                assert math.isfinite(p.amount.average)
                assert math.isfinite(p.amount.variance)

    def test_patterns_to_frame(self):
        patterns = detect_patterns(_household_batch(), clock=lambda: FIXED_NOW)
        df = patterns_to_frame(patterns)
        assert len(df) == len(patterns)
        assert {"id", "type", "significance", "confidence", "next_occurrence"}.issubset(df.columns)
        assert patterns_to_frame([]).empty


# =============================================================================
# ENTRY POINT
# =============================================================================

if __name__ == "__main__":
    pytest.main([__file__, "-v"])
