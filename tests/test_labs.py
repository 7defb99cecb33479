import pytest

from ward_signals.labs import (
    FALLBACK_SUMMARY,
    REFERENCE_RANGES,
    analyze_lab_report,
    interpret_lab_value,
    normalize_parameter,
    parse_lab_value,
    select_range,
)
from ward_signals.models import LabReport, LabStatus, LabUrgency, Patient, Sex
from ward_signals.narrative import NarrativeError


@pytest.mark.parametrize(
    "value, status",
    [
        ("250", LabStatus.CRITICAL),
        ("150", LabStatus.HIGH),
        ("120", LabStatus.HIGH),
        ("85", LabStatus.NORMAL),
        ("70", LabStatus.NORMAL),
        ("60", LabStatus.LOW),
        ("40", LabStatus.CRITICAL),
    ],
)
def test_glucose_statuses(value, status):
    assert interpret_lab_value("Glucose", value).status == status


def test_parameter_matching_ignores_case_and_whitespace():
    assert normalize_parameter(" Total  Cholesterol ") == "totalcholesterol"
    assert interpret_lab_value("  GLUCOSE ", "250").status == LabStatus.CRITICAL
    assert interpret_lab_value("C O2", "26").status == LabStatus.NORMAL


def test_messages_include_reference_interval():
    assert interpret_lab_value("glucose", "60").message == "Below normal (70-100 mg/dL)"
    assert interpret_lab_value("glucose", "250").message == "Above normal (70-100 mg/dL)"
    assert interpret_lab_value("glucose", "90").message == "Within normal range"


def test_unknown_parameter():
    interpretation = interpret_lab_value("xyz123", "5")

    assert interpretation.status == LabStatus.UNKNOWN
    assert interpretation.message == "Reference not available"


@pytest.mark.parametrize("value", ["abc", "", None, "nan", "<0.5"])
def test_non_numeric_value_is_unknown(value):
    interpretation = interpret_lab_value("glucose", value)

    assert interpretation.status == LabStatus.UNKNOWN
    assert interpretation.message == "Invalid value"


def test_leading_number_is_parsed():
    assert parse_lab_value("250 mg/dL") == 250.0
    assert parse_lab_value(" 4.5") == 4.5
    assert parse_lab_value(3) == 3.0
    assert parse_lab_value(float("inf")) is None
    assert interpret_lab_value("glucose", "250 mg/dL").status == LabStatus.CRITICAL


@pytest.mark.parametrize(
    "sex, value, status",
    [
        ("male", "13.0", LabStatus.LOW),
        ("female", "13.0", LabStatus.NORMAL),
        (None, "13.0", LabStatus.NORMAL),
        ("female", "16", LabStatus.HIGH),
        ("male", "16", LabStatus.NORMAL),
        (None, "16", LabStatus.NORMAL),
        (None, "11.5", LabStatus.LOW),
        ("F", "8", LabStatus.CRITICAL),
    ],
)
def test_sex_specific_hemoglobin(sex, value, status):
    assert interpret_lab_value("Hemoglobin", value, sex).status == status


def test_unspecified_sex_uses_envelope_of_both_ranges():
    hemoglobin = REFERENCE_RANGES["hemoglobin"]

    assert select_range(hemoglobin, Sex.UNKNOWN) == (12.0, 17.5)
    assert select_range(hemoglobin, Sex.MALE) == (13.5, 17.5)
    assert select_range(REFERENCE_RANGES["sodium"], Sex.FEMALE) == (136, 145)


def test_sex_parsing():
    assert Sex.parse("M") == Sex.MALE
    assert Sex.parse(" Female ") == Sex.FEMALE
    assert Sex.parse("other") == Sex.UNKNOWN
    assert Sex.parse(None) == Sex.UNKNOWN


def test_interpretation_is_idempotent():
    assert interpret_lab_value("creatinine", "2.5", "male") == interpret_lab_value(
        "creatinine", "2.5", "male"
    )


@pytest.fixture
def report():
    return LabReport(
        test_name="Basic Metabolic Panel",
        test_type="blood_test",
        results=[
            {"parameter": "Glucose", "value": "250", "unit": "mg/dL"},
            {"parameter": "Sodium", "value": "140", "unit": "mEq/L"},
            {"parameter": "Hemoglobin", "value": "13.0", "unit": "g/dL"},
            {"parameter": "xyz123", "value": "1"},
        ],
    )


def test_report_analysis_without_generator(report):
    analysis = analyze_lab_report(report, Patient(gender="male"))

    assert [r.interpretation.status for r in analysis.interpreted_results] == [
        LabStatus.CRITICAL,
        LabStatus.NORMAL,
        LabStatus.LOW,
        LabStatus.UNKNOWN,
    ]
    assert [r.parameter for r in analysis.critical_findings] == ["Glucose"]
    assert analysis.critical_findings[0].unit == "mg/dL"
    assert analysis.summary == FALLBACK_SUMMARY
    assert analysis.urgency_level is None


def test_report_analysis_with_generator(report, make_generator):
    generator = make_generator(
        result={
            "summary": "Marked hyperglycaemia.",
            "key_findings": ["Glucose 250 mg/dL"],
            "recommendations": ["Repeat glucose", "Review insulin"],
            "urgency_level": "urgent",
        }
    )

    analysis = analyze_lab_report(report, Patient(full_name="Ann Lee", sex="female"), generator)

    assert analysis.summary == "Marked hyperglycaemia."
    assert analysis.key_findings == ["Glucose 250 mg/dL"]
    assert analysis.urgency_level == LabUrgency.URGENT
    assert "Critical Findings: Glucose" in generator.prompts[0]
    assert "Test Type: blood test" in generator.prompts[0]


@pytest.mark.parametrize(
    "generator_kwargs",
    [
        {"error": NarrativeError("Non-200 status code: 500")},
        {"result": {"summary": "ok", "urgency_level": "panic"}},
        {"result": ["not", "an", "object"]},
    ],
)
def test_report_analysis_falls_back(report, make_generator, generator_kwargs):
    analysis = analyze_lab_report(report, None, make_generator(**generator_kwargs))

    assert analysis.summary == FALLBACK_SUMMARY
    assert analysis.key_findings == []
    assert analysis.urgency_level is None
    assert len(analysis.critical_findings) == 1
