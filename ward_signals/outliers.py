"""Z-score scoring of a vital reading against the patient's recent history."""

from typing import List, Sequence

import numpy as np
import pandas as pd

from .logging_utils import setup_logger
from .models import AnomalyFinding, FindingType, Severity, VitalMetric, VitalReading

logger = setup_logger(__name__)

# Fixed evaluation order keeps the accumulated score reproducible
STATISTICAL_METRICS = (
    VitalMetric.HEART_RATE,
    VitalMetric.BLOOD_PRESSURE_SYSTOLIC,
    VitalMetric.TEMPERATURE,
    VitalMetric.SPO2,
)
MIN_HISTORY_READINGS = 5
MIN_METRIC_VALUES = 2
Z_SCORE_THRESHOLD = 2.0
OUTLIER_SCORE_THRESHOLD = 3.0
HIGH_SEVERITY_SCORE = 5.0


def calculate_z_score(value: float, mean: float, std_dev: float) -> float:
    """Absolute standardized deviation; 0 when the history has no spread."""
    if std_dev == 0:
        return 0.0
    return abs((value - mean) / std_dev)


def _history_frame(history: Sequence[VitalReading]) -> pd.DataFrame:
    columns = [metric.value for metric in STATISTICAL_METRICS]
    rows = [[reading.metric_value(metric) for metric in STATISTICAL_METRICS] for reading in history]
    return pd.DataFrame(rows, columns=columns, dtype=float)


def calculate_isolation_score(
    history: Sequence[VitalReading], reading: VitalReading
) -> float:
    """Sum of z-score excesses over the threshold across the statistical metrics.

    Args:
        history: Previous readings; order does not matter.
        reading: Reading being scored.

    Returns:
        Accumulated anomaly score (0.0 when nothing stands out).
    """
    frame = _history_frame(history)
    score = 0.0

    for metric in STATISTICAL_METRICS:
        current = reading.metric_value(metric)
        if current is None:
            continue

        values = frame[metric.value].dropna().to_numpy()
        if len(values) < MIN_METRIC_VALUES:
            continue

        # Population standard deviation
        mean = float(np.mean(values))
        std_dev = float(np.std(values))
        z_score = calculate_z_score(current, mean, std_dev)
        logger.debug(f"{metric.value}: mean={mean:.3f} std={std_dev:.3f} z={z_score:.3f}")

        if z_score > Z_SCORE_THRESHOLD:
            score += z_score - Z_SCORE_THRESHOLD

    return score


def detect_statistical_outliers(
    reading: VitalReading, history: Sequence[VitalReading]
) -> List[AnomalyFinding]:
    """Flag a reading whose combination of vitals is unusual for this patient.

    Requires at least MIN_HISTORY_READINGS previous readings; with fewer the
    detector is silently skipped.
    """
    if len(history) < MIN_HISTORY_READINGS:
        logger.debug(
            f"Skipping statistical detection: {len(history)} historical readings"
        )
        return []

    score = calculate_isolation_score(history, reading)
    if score <= OUTLIER_SCORE_THRESHOLD:
        return []

    return [
        AnomalyFinding(
            type=FindingType.STATISTICAL_OUTLIER,
            severity=Severity.HIGH if score > HIGH_SEVERITY_SCORE else Severity.MEDIUM,
            message="Unusual combination of vital signs detected",
        )
    ]
