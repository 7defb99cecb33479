"""Fixed clinical-range evaluation of a single vital-sign snapshot."""

from typing import Dict, List, NamedTuple

from .models import AnomalyFinding, FindingType, Severity, VitalMetric, VitalReading

# Deviation beyond the warning band that escalates a warning to high severity
WARNING_ESCALATION_MARGIN = 5.0


class VitalBand(NamedTuple):
    low: float
    high: float
    critical_low: float
    critical_high: float


# Iteration order here is the order threshold findings are reported in
THRESHOLD_RULES: Dict[VitalMetric, VitalBand] = {
    VitalMetric.HEART_RATE: VitalBand(50, 120, 40, 150),  # bpm
    VitalMetric.BLOOD_PRESSURE_SYSTOLIC: VitalBand(90, 140, 70, 180),  # mmHg
    VitalMetric.BLOOD_PRESSURE_DIASTOLIC: VitalBand(60, 90, 50, 120),  # mmHg
    VitalMetric.TEMPERATURE: VitalBand(36, 37.5, 35, 39.5),  # Celsius
    VitalMetric.SPO2: VitalBand(95, 100, 90, 101),  # %
    VitalMetric.RESPIRATORY_RATE: VitalBand(12, 20, 8, 30),  # breaths/min
}


def evaluate_thresholds(reading: VitalReading) -> List[AnomalyFinding]:
    """Check every monitored metric of a reading against its fixed band.

    Args:
        reading: Vital-sign snapshot. Absent metrics are skipped.

    Returns:
        One finding per metric outside its band, in THRESHOLD_RULES order.
    """
    findings = []

    for metric, band in THRESHOLD_RULES.items():
        value = reading.metric_value(metric)
        if value is None:
            continue

        if value <= band.critical_low or value >= band.critical_high:
            findings.append(
                AnomalyFinding(
                    type=FindingType.THRESHOLD_CRITICAL,
                    metric=metric,
                    value=value,
                    severity=Severity.CRITICAL,
                    message=f"Critical {metric.label}: {value:g}",
                )
            )
        elif value < band.low or value > band.high:
            far_out = (
                value < band.low - WARNING_ESCALATION_MARGIN
                or value > band.high + WARNING_ESCALATION_MARGIN
            )
            findings.append(
                AnomalyFinding(
                    type=FindingType.THRESHOLD_WARNING,
                    metric=metric,
                    value=value,
                    severity=Severity.HIGH if far_out else Severity.MEDIUM,
                    message=f"Abnormal {metric.label}: {value:g}",
                )
            )

    return findings
