"""
registry.py
------------
Single source of truth for all active pattern detectors.

Every detector is a free function with the signature

    (aggregates: Aggregates, config: dict, detected_at: datetime) -> list[Pattern]

and none reads another's output. To add a detector family: write the
function, add it here.
"""

from datetime import datetime
from typing import Callable, Dict, List

from core.aggregation import Aggregates
from core.models import Pattern
from detectors.anomaly import detect_anomalies
from detectors.behavioral import detect_behavioral
from detectors.recurring import detect_recurring
from detectors.seasonal import detect_seasonal
from detectors.trend import detect_trends

Detector = Callable[[Aggregates, dict, datetime], List[Pattern]]

DETECTOR_REGISTRY: Dict[str, Detector] = {
    "recurring": detect_recurring,
    "seasonal": detect_seasonal,
    "behavioral": detect_behavioral,
    "anomaly": detect_anomalies,
    "trend": detect_trends,
}


def get_all_detectors() -> List[Detector]:
    """Returns all registered detectors in run order."""
    return list(DETECTOR_REGISTRY.values())
