"""Reference-range interpretation of lab results."""

import math
import re
from typing import Dict, Optional, Tuple, Union

from pydantic import ValidationError

from .logging_utils import setup_logger
from .models import (
    InterpretedLabResult,
    LabInterpretation,
    LabReport,
    LabReportAnalysis,
    LabResult,
    LabStatus,
    Patient,
    ReferenceRange,
    Sex,
)
from .narrative import (
    LAB_SUMMARY_SCHEMA,
    NarrativeError,
    NarrativeGenerator,
    build_lab_report_prompt,
)

logger = setup_logger(__name__)

CRITICAL_LOW_FACTOR = 0.7
CRITICAL_HIGH_FACTOR = 1.5
FALLBACK_SUMMARY = "Unable to generate AI summary. Please review results manually."

_LEADING_NUMBER = re.compile(r"^\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")

REFERENCE_RANGES: Dict[str, ReferenceRange] = {
    # Blood count
    "hemoglobin": ReferenceRange(unit="g/dL", male=(13.5, 17.5), female=(12.0, 15.5)),
    "wbc": ReferenceRange(unit="cells/mcL", range=(4500, 11000)),
    "rbc": ReferenceRange(unit="million/mcL", male=(4.5, 5.5), female=(4.0, 5.0)),
    "platelets": ReferenceRange(unit="cells/mcL", range=(150000, 400000)),
    "hematocrit": ReferenceRange(unit="%", male=(38.8, 50), female=(34.9, 44.5)),
    # Metabolic panel
    "glucose": ReferenceRange(unit="mg/dL", range=(70, 100)),
    "creatinine": ReferenceRange(unit="mg/dL", male=(0.7, 1.3), female=(0.6, 1.1)),
    "bun": ReferenceRange(unit="mg/dL", range=(7, 20)),
    "sodium": ReferenceRange(unit="mEq/L", range=(136, 145)),
    "potassium": ReferenceRange(unit="mEq/L", range=(3.5, 5.0)),
    "chloride": ReferenceRange(unit="mEq/L", range=(98, 106)),
    "co2": ReferenceRange(unit="mEq/L", range=(23, 29)),
    # Liver function
    "alt": ReferenceRange(unit="U/L", range=(7, 56)),
    "ast": ReferenceRange(unit="U/L", range=(10, 40)),
    "alp": ReferenceRange(unit="U/L", range=(44, 147)),
    "bilirubin": ReferenceRange(unit="mg/dL", range=(0.1, 1.2)),
    "albumin": ReferenceRange(unit="g/dL", range=(3.5, 5.0)),
    # Lipid panel
    "cholesterol": ReferenceRange(unit="mg/dL", range=(0, 200)),
    "ldl": ReferenceRange(unit="mg/dL", range=(0, 100)),
    "hdl": ReferenceRange(unit="mg/dL", range=(40, 1000)),
    "triglycerides": ReferenceRange(unit="mg/dL", range=(0, 150)),
    # Thyroid
    "tsh": ReferenceRange(unit="mIU/L", range=(0.4, 4.0)),
    "t4": ReferenceRange(unit="mcg/dL", range=(4.5, 12.0)),
    "t3": ReferenceRange(unit="ng/dL", range=(80, 200)),
}


def normalize_parameter(parameter: Optional[str]) -> str:
    """Lowercase a test name and drop all whitespace ("Total Bilirubin" -> "totalbilirubin")."""
    return re.sub(r"\s+", "", (parameter or "").lower())


def select_range(reference: ReferenceRange, sex: Sex = Sex.UNKNOWN) -> Tuple[float, float]:
    """Pick the interval to compare against.

    Sex-specific parameters use the matching sub-range. When the sex is
    unknown the envelope of both sub-ranges is used, so only values abnormal
    for either sex are flagged.
    """
    if reference.is_sex_specific:
        if sex == Sex.MALE:
            return reference.male
        if sex == Sex.FEMALE:
            return reference.female
        return (
            min(reference.male[0], reference.female[0]),
            max(reference.male[1], reference.female[1]),
        )
    if reference.range is not None:
        return reference.range
    # Only one sex-specific bound defined
    return reference.male or reference.female


def parse_lab_value(value: Union[str, float, int, None]) -> Optional[float]:
    """Read the leading number of a lab value; None if there is no finite number."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        match = _LEADING_NUMBER.match(str(value))
        if match is None:
            return None
        number = float(match.group(0))
    return number if math.isfinite(number) else None


def interpret_lab_value(
    parameter: Optional[str],
    value: Union[str, float, int, None],
    sex: Union[Sex, str, None] = None,
) -> LabInterpretation:
    """Classify one lab value against its reference range.

    Unknown parameters and non-numeric values resolve to status "unknown";
    this function never raises for clinical input.
    """
    reference = REFERENCE_RANGES.get(normalize_parameter(parameter))
    if reference is None:
        return LabInterpretation(status=LabStatus.UNKNOWN, message="Reference not available")

    low, high = select_range(reference, Sex.parse(sex))

    number = parse_lab_value(value)
    if number is None:
        return LabInterpretation(status=LabStatus.UNKNOWN, message="Invalid value")

    bounds = f"{low:g}-{high:g} {reference.unit}"
    if number < low:
        status = LabStatus.CRITICAL if number < low * CRITICAL_LOW_FACTOR else LabStatus.LOW
        return LabInterpretation(status=status, message=f"Below normal ({bounds})")
    if number > high:
        status = LabStatus.CRITICAL if number > high * CRITICAL_HIGH_FACTOR else LabStatus.HIGH
        return LabInterpretation(status=status, message=f"Above normal ({bounds})")

    return LabInterpretation(status=LabStatus.NORMAL, message="Within normal range")


def interpret_lab_result(
    result: LabResult, sex: Union[Sex, str, None] = None
) -> InterpretedLabResult:
    interpretation = interpret_lab_value(result.parameter, result.value, sex)
    return InterpretedLabResult(**result.model_dump(), interpretation=interpretation)


def analyze_lab_report(
    report: LabReport,
    patient: Optional[Patient] = None,
    generator: Optional[NarrativeGenerator] = None,
) -> LabReportAnalysis:
    """Interpret every result of a report and collect the critical ones.

    When a narrative generator is configured, one attempt is made to add a
    summary, key findings, recommendations and an urgency level; otherwise
    the summary asks for manual review.
    """
    patient = patient or Patient()
    interpreted = [interpret_lab_result(result, patient.sex) for result in report.results]
    critical = [
        result for result in interpreted if result.interpretation.status == LabStatus.CRITICAL
    ]
    analysis = LabReportAnalysis(
        interpreted_results=interpreted,
        critical_findings=critical,
        summary=FALLBACK_SUMMARY,
    )

    logger.info(
        f"Interpreted {len(interpreted)} lab results for {report.test_name or 'report'}, "
        f"{len(critical)} critical"
    )

    if generator is None:
        return analysis

    prompt = build_lab_report_prompt(report, [result.parameter for result in critical], patient)
    try:
        narrative = generator.generate(prompt, LAB_SUMMARY_SCHEMA)
        if not isinstance(narrative, dict):
            raise NarrativeError(f"Expected a JSON object, got {type(narrative).__name__}")
        update = LabReportAnalysis.model_validate(
            {
                "summary": narrative.get("summary") or FALLBACK_SUMMARY,
                "key_findings": narrative.get("key_findings") or [],
                "recommendations": narrative.get("recommendations") or [],
                "urgency_level": narrative.get("urgency_level"),
            }
        )
    except (NarrativeError, ValidationError) as exc:
        logger.warning(f"Lab summary fallback triggered: {exc}")
        return analysis

    analysis.summary = update.summary
    analysis.key_findings = update.key_findings
    analysis.recommendations = update.recommendations
    analysis.urgency_level = update.urgency_level
    return analysis
