import pytest

from ward_signals.models import FindingType, Severity, VitalMetric, VitalReading
from ward_signals.thresholds import THRESHOLD_RULES, evaluate_thresholds

NORMAL_VITALS = {
    "heart_rate": 72,
    "blood_pressure_systolic": 118,
    "blood_pressure_diastolic": 76,
    "temperature": 36.8,
    "spo2": 98,
    "respiratory_rate": 16,
}


def test_all_metrics_inside_band_yield_nothing():
    assert evaluate_thresholds(VitalReading(**NORMAL_VITALS)) == []


def test_empty_reading_yields_nothing():
    assert evaluate_thresholds(VitalReading()) == []


@pytest.mark.parametrize(
    "heart_rate, finding_type, severity",
    [
        (30, FindingType.THRESHOLD_CRITICAL, Severity.CRITICAL),
        (40, FindingType.THRESHOLD_CRITICAL, Severity.CRITICAL),
        (42, FindingType.THRESHOLD_WARNING, Severity.HIGH),
        (45, FindingType.THRESHOLD_WARNING, Severity.MEDIUM),
        (123, FindingType.THRESHOLD_WARNING, Severity.MEDIUM),
        (126, FindingType.THRESHOLD_WARNING, Severity.HIGH),
        (150, FindingType.THRESHOLD_CRITICAL, Severity.CRITICAL),
    ],
)
def test_heart_rate_bands(heart_rate, finding_type, severity):
    findings = evaluate_thresholds(VitalReading(heart_rate=heart_rate))

    assert len(findings) == 1
    assert findings[0].type == finding_type
    assert findings[0].severity == severity
    assert findings[0].metric == VitalMetric.HEART_RATE
    assert findings[0].value == heart_rate


def test_band_edges_are_normal():
    reading = VitalReading(heart_rate=50, spo2=100, temperature=37.5, respiratory_rate=12)
    assert evaluate_thresholds(reading) == []


def test_spo2_at_critical_high_is_critical():
    findings = evaluate_thresholds(VitalReading(spo2=101))
    assert findings[0].type == FindingType.THRESHOLD_CRITICAL


def test_messages_name_the_metric():
    critical = evaluate_thresholds(VitalReading(heart_rate=30))[0]
    warning = evaluate_thresholds(VitalReading(blood_pressure_systolic=150))[0]

    assert critical.message == "Critical heart rate: 30"
    assert warning.message == "Abnormal blood pressure systolic: 150"


def test_findings_follow_band_table_order():
    reading = VitalReading(
        respiratory_rate=35,
        spo2=92,
        heart_rate=130,
        temperature=36.8,
    )

    findings = evaluate_thresholds(reading)

    assert [f.metric for f in findings] == [
        VitalMetric.HEART_RATE,
        VitalMetric.SPO2,
        VitalMetric.RESPIRATORY_RATE,
    ]
    assert [f.severity for f in findings] == [Severity.HIGH, Severity.MEDIUM, Severity.CRITICAL]
    assert list(THRESHOLD_RULES)[0] == VitalMetric.HEART_RATE


def test_non_finite_values_are_treated_as_absent():
    reading = VitalReading(heart_rate=float("nan"), temperature=float("inf"))

    assert reading.heart_rate is None
    assert reading.temperature is None
    assert evaluate_thresholds(reading) == []
