"""Combine the vital-sign detectors into one ordered finding list."""

from typing import List, Optional, Sequence

from pydantic import ValidationError

from .logging_utils import setup_logger
from .models import AnomalyFinding, Patient, Recommendation, Severity, Urgency, VitalReading
from .narrative import (
    RECOMMENDATION_SCHEMA,
    NarrativeError,
    NarrativeGenerator,
    build_recommendation_prompt,
)
from .outliers import detect_statistical_outliers
from .thresholds import evaluate_thresholds
from .trends import TREND_METRICS, detect_fall, detect_trend

logger = setup_logger(__name__)

FALLBACK_RECOMMENDATION = "Please review the detected anomalies and assess the patient."


def aggregate_anomalies(
    reading: VitalReading, history: Sequence[VitalReading]
) -> List[AnomalyFinding]:
    """Run every detector on a new reading.

    Findings are concatenated in a fixed order: threshold findings, the
    statistical outlier, rapid-change findings per trend metric, then the
    fall finding. Nothing is deduplicated or re-ranked.

    Args:
        reading: The new reading.
        history: Previous readings for the same patient, most-recent-first.

    Returns:
        Possibly empty list of findings.
    """
    findings = evaluate_thresholds(reading)
    findings.extend(detect_statistical_outliers(reading, history))

    window = [reading, *history]
    for metric in TREND_METRICS:
        trend = detect_trend(window, metric)
        if trend is not None:
            findings.append(trend)

    fall = detect_fall(reading, history[0] if history else None)
    if fall is not None:
        findings.append(fall)

    logger.info(
        f"Detected {len(findings)} anomalies for patient {reading.patient_id} "
        f"against {len(history)} historical readings"
    )
    return findings


def fallback_recommendation(findings: Sequence[AnomalyFinding]) -> Recommendation:
    """Deterministic recommendation used whenever narrative generation fails."""
    severities = {finding.severity for finding in findings}
    return Recommendation(
        recommendation=FALLBACK_RECOMMENDATION,
        urgency=Urgency.IMMEDIATE if Severity.CRITICAL in severities else Urgency.URGENT,
        notify_doctor=bool(severities & {Severity.CRITICAL, Severity.HIGH}),
    )


def generate_recommendation(
    findings: Sequence[AnomalyFinding],
    patient: Optional[Patient] = None,
    generator: Optional[NarrativeGenerator] = None,
) -> Optional[Recommendation]:
    """Turn findings into a staff recommendation.

    Makes one attempt with the narrative generator when one is configured and
    falls back to fallback_recommendation on any failure.

    Returns:
        None when there are no findings.
    """
    if not findings:
        return None

    if generator is None:
        return fallback_recommendation(findings)

    prompt = build_recommendation_prompt(findings, patient)
    try:
        result = generator.generate(prompt, RECOMMENDATION_SCHEMA)
        return Recommendation.model_validate(result)
    except (NarrativeError, ValidationError) as exc:
        logger.warning(f"Recommendation fallback triggered: {exc}")
        return fallback_recommendation(findings)
