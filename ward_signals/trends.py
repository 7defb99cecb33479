"""Rate-of-change and fall heuristics over a short, newest-first reading history."""

from typing import Dict, Optional, Sequence

from .models import AnomalyFinding, FindingType, Severity, VitalMetric, VitalReading

TREND_METRICS = (
    VitalMetric.HEART_RATE,
    VitalMetric.BLOOD_PRESSURE_SYSTOLIC,
    VitalMetric.TEMPERATURE,
)
TREND_THRESHOLDS: Dict[VitalMetric, float] = {
    VitalMetric.HEART_RATE: 15.0,
    VitalMetric.BLOOD_PRESSURE_SYSTOLIC: 15.0,
    VitalMetric.TEMPERATURE: 0.5,
}
DEFAULT_TREND_THRESHOLD = 20.0
TREND_WINDOW = 3
FALL_HEART_RATE_RATIO = 1.3


def average_change(values: Sequence[float]) -> float:
    """Mean absolute difference between consecutive values."""
    changes = [abs(current - following) for current, following in zip(values, values[1:])]
    return sum(changes) / len(changes)


def detect_trend(
    readings: Sequence[VitalReading],
    metric: VitalMetric,
    threshold: Optional[float] = None,
) -> Optional[AnomalyFinding]:
    """Detect a rapid change of one metric across the most recent readings.

    Args:
        readings: Readings ordered most-recent-first, current reading included.
        metric: Metric to evaluate.
        threshold: Average change that counts as rapid (defaults per metric).

    Returns:
        A rapid_change finding, or None when the window is too short or stable.
    """
    metric = VitalMetric(metric)
    if threshold is None:
        threshold = TREND_THRESHOLDS.get(metric, DEFAULT_TREND_THRESHOLD)

    if len(readings) < TREND_WINDOW:
        return None

    recent = [reading.metric_value(metric) for reading in readings[:TREND_WINDOW]]
    recent = [value for value in recent if value is not None]
    if len(recent) < 2:
        return None

    if average_change(recent) <= threshold:
        return None

    return AnomalyFinding(
        type=FindingType.RAPID_CHANGE,
        metric=metric,
        severity=Severity.MEDIUM,
        message=f"Rapid change in {metric.label} detected",
    )


def detect_fall(
    current: VitalReading, previous: Optional[VitalReading]
) -> Optional[AnomalyFinding]:
    """Two-point fall heuristic: motion stopped while heart rate spiked."""
    if previous is None:
        return None
    if current.motion_detected is not False or previous.motion_detected is not True:
        return None
    if current.heart_rate is None or previous.heart_rate is None:
        return None
    if current.heart_rate <= previous.heart_rate * FALL_HEART_RATE_RATIO:
        return None

    return AnomalyFinding(
        type=FindingType.FALL_SUSPECTED,
        severity=Severity.HIGH,
        message="Possible fall detected - sudden movement stop with heart rate spike",
    )
