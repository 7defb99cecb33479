from ward_signals.models import FindingType, Severity, VitalMetric, VitalReading
from ward_signals.trends import average_change, detect_fall, detect_trend


def _readings(metric, values):
    return [VitalReading(**{metric: value}) for value in values]


def test_average_change():
    assert average_change([100, 80, 70]) == 15


def test_needs_three_readings():
    assert detect_trend(_readings("heart_rate", [140, 60]), VitalMetric.HEART_RATE) is None


def test_rapid_heart_rate_change():
    finding = detect_trend(_readings("heart_rate", [100, 80, 60]), VitalMetric.HEART_RATE)

    assert finding is not None
    assert finding.type == FindingType.RAPID_CHANGE
    assert finding.metric == VitalMetric.HEART_RATE
    assert finding.severity == Severity.MEDIUM
    assert finding.message == "Rapid change in heart rate detected"


def test_change_at_threshold_is_not_rapid():
    assert detect_trend(_readings("heart_rate", [100, 85, 70]), VitalMetric.HEART_RATE) is None


def test_gradual_change_is_ignored():
    readings = _readings("blood_pressure_systolic", [140, 130, 120])
    assert detect_trend(readings, VitalMetric.BLOOD_PRESSURE_SYSTOLIC) is None


def test_temperature_uses_half_degree_threshold():
    finding = detect_trend(_readings("temperature", [38.0, 37.2, 36.6]), VitalMetric.TEMPERATURE)
    assert finding is not None
    assert finding.metric == VitalMetric.TEMPERATURE

    assert detect_trend(_readings("temperature", [37.0, 36.8, 36.6]), "temperature") is None


def test_absent_values_are_dropped_from_window():
    readings = _readings("heart_rate", [100, None, 70])
    assert detect_trend(readings, VitalMetric.HEART_RATE) is not None

    readings = _readings("heart_rate", [100, None, None])
    assert detect_trend(readings, VitalMetric.HEART_RATE) is None


def test_only_three_most_recent_readings_count():
    readings = _readings("heart_rate", [80, 80, 80, 10])
    assert detect_trend(readings, VitalMetric.HEART_RATE) is None


def test_custom_threshold():
    readings = _readings("heart_rate", [80, 70, 60])
    assert detect_trend(readings, VitalMetric.HEART_RATE, threshold=5) is not None


def test_fall_suspected_when_motion_stops_and_heart_rate_spikes():
    current = VitalReading(heart_rate=120, motion_detected=False)
    previous = VitalReading(heart_rate=80, motion_detected=True)

    finding = detect_fall(current, previous)

    assert finding is not None
    assert finding.type == FindingType.FALL_SUSPECTED
    assert finding.severity == Severity.HIGH
    assert finding.metric is None


def test_no_fall_without_heart_rate_spike():
    current = VitalReading(heart_rate=104, motion_detected=False)
    previous = VitalReading(heart_rate=80, motion_detected=True)
    assert detect_fall(current, previous) is None


def test_no_fall_without_motion_transition():
    previous = VitalReading(heart_rate=80, motion_detected=False)
    assert detect_fall(VitalReading(heart_rate=130, motion_detected=False), previous) is None

    previous = VitalReading(heart_rate=80, motion_detected=True)
    assert detect_fall(VitalReading(heart_rate=130), previous) is None
    assert detect_fall(VitalReading(heart_rate=130, motion_detected=True), previous) is None


def test_no_fall_with_missing_data():
    current = VitalReading(heart_rate=130, motion_detected=False)
    assert detect_fall(current, None) is None
    assert detect_fall(current, VitalReading(motion_detected=True)) is None
    assert detect_fall(VitalReading(motion_detected=False), VitalReading(heart_rate=80, motion_detected=True)) is None
