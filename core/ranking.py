"""
ranking.py
-----------
Ordering and filtering of engine output.

rank() is the single ordering used for both patterns and insights:
tier (critical > high > medium > low) descending, then confidence
descending. Python's sort is stable, so ties keep detection order.
"""

from typing import Iterable, List, Optional, TypeVar

from core.models import Insight, InsightType, Pattern, PatternType, Significance

T = TypeVar("T", Pattern, Insight)


def tier_of(item: Pattern | Insight) -> Significance:
    if isinstance(item, Pattern):
        return item.significance
    return item.severity


def rank(items: Iterable[T]) -> List[T]:
    """Stable sort by tier then confidence, both descending."""
    return sorted(items, key=lambda item: (-tier_of(item).rank, -item.confidence))


def filter_patterns(
    patterns: Iterable[Pattern],
    pattern_type: Optional[PatternType] = None,
    significance: Optional[Significance] = None,
    category: Optional[str] = None,
    merchant: Optional[str] = None,
    min_confidence: Optional[float] = None,
) -> List[Pattern]:
    """Keep patterns matching every filter given. Order is preserved."""
    result = []
    for p in patterns:
        if pattern_type is not None and p.type != pattern_type:
            continue
        if significance is not None and p.significance != significance:
            continue
        if category is not None and p.category != category:
            continue
        if merchant is not None and p.merchant != merchant:
            continue
        if min_confidence is not None and p.confidence < min_confidence:
            continue
        result.append(p)
    return result


def high_confidence_patterns(patterns: Iterable[Pattern], min_confidence: float = 0.7) -> List[Pattern]:
    return filter_patterns(patterns, min_confidence=min_confidence)


def filter_insights(insights: Iterable[Insight], insight_type: Optional[InsightType] = None) -> List[Insight]:
    if insight_type is None:
        return list(insights)
    return [i for i in insights if i.type == insight_type]
