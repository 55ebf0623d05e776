"""
pipeline.py
------------
Main orchestration layer. Wires together:
    1. Validation & aggregation  →  normalised frame + Aggregates
    2. Pattern detectors         →  ranked Patterns
    3. Period summaries          →  ranked Insights + Projections
    4. Output serialization      →  flat DataFrames for display consumers

This is the single entry point for running the engine. Everything else
is internal machinery.

Usage:
    from pipeline import SpendingInsightsPipeline

    pipeline = SpendingInsightsPipeline()
    patterns = pipeline.detect_patterns(transactions)
    insights, projections = pipeline.generate_insights_and_projections(transactions, "monthly")
"""

import logging
from datetime import datetime
from typing import Any, Callable, List, Optional, Tuple

import pandas as pd

from config.config_loader import (
    get_engine_config,
    get_forecast_config,
    get_insight_config,
    get_pattern_detection_config,
)
from core.aggregation import build_aggregates, to_frame
from core.models import BucketSize, Insight, InsightSummary, Pattern, Projection
from core.ranking import rank
from detectors.registry import get_all_detectors
from insights.forecaster import project
from insights.insight_generator import generate_insights, summarize
from insights.periods import build_period_summaries, parse_bucket_size

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class SpendingInsightsPipeline:
    """
    End-to-end pattern, insight and projection engine.

    Stateless between calls: every run re-reads the batch it is given and
    never mutates it. Timestamps come from the injected clock.
    """

    def __init__(self, clock: Optional[Clock] = None):
        """
        Args:
            clock: Zero-argument callable returning the run timestamp.
                Defaults to datetime.now.
        """
        self.clock: Clock = clock or datetime.now
        self.detection_config = get_pattern_detection_config()
        self.insight_config = get_insight_config()
        self.forecast_config = get_forecast_config()
        self.default_bucket = get_engine_config()["default_bucket_size"]
        self.detectors = get_all_detectors()

        logger.info(
            f"Pipeline initialized. "
            f"Detectors: {[d.__name__ for d in self.detectors]}. "
            f"Default bucket: {self.default_bucket}."
        )

    # -------------------------------------------------------------------------
    # PUBLIC INTERFACE
    # -------------------------------------------------------------------------

    def detect_patterns(self, transactions: Any) -> List[Pattern]:
        """
        Run every pattern detector and rank the combined output.

        Args:
            transactions: DataFrame or list of Transaction / mapping records.

        Returns:
            Patterns ranked by significance then confidence.
        """
        frame = to_frame(transactions)
        logger.info(f"Pattern detection starting. Input: {len(frame):,} valid transactions.")

        aggregates = build_aggregates(frame)
        detected_at = self.clock()

        patterns: List[Pattern] = []
        for detector in self.detectors:
            found = detector(aggregates, self.detection_config, detected_at)
            logger.info(f"{detector.__name__}: {len(found):,} pattern(s).")
            patterns.extend(found)

        ranked = rank(patterns)
        logger.info(f"Pattern detection complete. Patterns: {len(ranked):,}.")
        return ranked

    def generate_insights_and_projections(
        self, transactions: Any, bucket_size: str | BucketSize | None = None
    ) -> Tuple[List[Insight], List[Projection]]:
        """
        Build period summaries, then insights and projections from them.

        Args:
            transactions: DataFrame or list of Transaction / mapping records.
            bucket_size: "weekly" | "monthly" | "quarterly" | "yearly".
                Defaults to config value.

        Raises:
            ValueError: On an unknown bucket size or invalid input shape.
        """
        insights, projections, _ = self.run(transactions, bucket_size)
        return insights, projections

    def run(
        self, transactions: Any, bucket_size: str | BucketSize | None = None
    ) -> Tuple[List[Insight], List[Projection], InsightSummary]:
        """Insights, projections and the headline summary in one pass."""
        bucket = parse_bucket_size(bucket_size or self.default_bucket)
        frame = to_frame(transactions)
        logger.info(f"Insight generation starting. Input: {len(frame):,} valid transactions, bucket={bucket.value}.")

        periods = build_period_summaries(frame, bucket)
        insights = generate_insights(periods, bucket, self.insight_config, self.clock())
        projections = project(periods, bucket, self.forecast_config)
        summary = summarize(periods, insights)

        logger.info(
            f"Insight generation complete. Periods: {len(periods):,}, "
            f"insights: {len(insights):,}, projections: {len(projections):,}."
        )
        return insights, projections, summary


# =============================================================================
# MODULE-LEVEL ENTRY POINTS
# =============================================================================

def detect_patterns(transactions: Any, clock: Optional[Clock] = None) -> List[Pattern]:
    return SpendingInsightsPipeline(clock=clock).detect_patterns(transactions)


def generate_insights_and_projections(
    transactions: Any, bucket_size: str | BucketSize = "monthly", clock: Optional[Clock] = None
) -> Tuple[List[Insight], List[Projection]]:
    return SpendingInsightsPipeline(clock=clock).generate_insights_and_projections(transactions, bucket_size)


# =============================================================================
# OUTPUT SERIALIZATION
# =============================================================================

PATTERN_COLUMNS = [
    "id", "name", "type", "significance", "confidence", "category", "merchant",
    "frequency", "average_amount", "amount_trend", "start", "end",
    "next_occurrence", "financial_impact", "recommendation", "sample_size", "detected_at",
]

INSIGHT_COLUMNS = [
    "id", "type", "severity", "title", "description", "recommendation",
    "financial_impact", "timeframe", "category", "confidence",
    "trend_direction", "trend_magnitude", "data_points", "generated_at",
]

PROJECTION_COLUMNS = ["period", "predicted_spending", "predicted_income", "confidence", "trend"]


def _value(member):
    return member.value if member is not None else None


def patterns_to_frame(patterns: List[Pattern]) -> pd.DataFrame:
    """Flattens Patterns to one row each, preserving rank order."""
    rows = []
    for p in patterns:
        rows.append({
            "id": p.id,
            "name": p.name,
            "type": p.type.value,
            "significance": p.significance.value,
            "confidence": round(p.confidence, 4),
            "category": p.category,
            "merchant": p.merchant,
            "frequency": _value(p.frequency),
            "average_amount": round(p.amount.average, 2) if p.amount else None,
            "amount_trend": p.amount.trend.value if p.amount else None,
            "start": p.time_range.start.isoformat(),
            "end": p.time_range.end.isoformat(),
            "next_occurrence": p.next_occurrence.isoformat() if p.next_occurrence else None,
            "financial_impact": round(p.impact.financial, 2),
            "recommendation": p.impact.recommendation,
            "sample_size": p.metadata.sample_size,
            "detected_at": p.metadata.detected_at.isoformat(),
        })
    return pd.DataFrame(rows, columns=PATTERN_COLUMNS)


def insights_to_frame(insights: List[Insight]) -> pd.DataFrame:
    rows = []
    for i in insights:
        rows.append({
            "id": i.id,
            "type": i.type.value,
            "severity": i.severity.value,
            "title": i.title,
            "description": i.description,
            "recommendation": i.recommendation,
            "financial_impact": round(i.impact.financial, 2),
            "timeframe": i.impact.timeframe,
            "category": i.impact.category,
            "confidence": i.confidence,
            "trend_direction": i.trend.direction.value if i.trend else None,
            "trend_magnitude": round(i.trend.magnitude, 2) if i.trend else None,
            "data_points": i.metadata.data_points,
            "generated_at": i.metadata.generated_at.isoformat(),
        })
    return pd.DataFrame(rows, columns=INSIGHT_COLUMNS)


def projections_to_frame(projections: List[Projection]) -> pd.DataFrame:
    rows = [
        {
            "period": p.period,
            "predicted_spending": round(p.predicted_spending, 2),
            "predicted_income": round(p.predicted_income, 2),
            "confidence": p.confidence,
            "trend": p.trend.value,
        }
        for p in projections
    ]
    return pd.DataFrame(rows, columns=PROJECTION_COLUMNS)
