"""Lambda handler for detecting anomalies in a new vital-sign reading."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ward_signals.anomalies import aggregate_anomalies, generate_recommendation
from ward_signals.config import settings
from ward_signals.data_access import ClinicalDataSource, get_data_source
from ward_signals.handler_utils import error_response, json_response, parse_event
from ward_signals.logging_utils import setup_logger
from ward_signals.models import Patient, VitalReading
from ward_signals.narrative import NarrativeGenerator, get_narrative_generator

logger = setup_logger(__name__)


def _sort_key(reading: VitalReading) -> datetime:
    # Naive timestamps are taken as UTC so they compare with aware ones
    if reading.timestamp.tzinfo is None:
        return reading.timestamp.replace(tzinfo=timezone.utc)
    return reading.timestamp


def _newest_first(readings: List[VitalReading]) -> List[VitalReading]:
    """Sort by timestamp descending when every reading carries one."""
    if readings and all(reading.timestamp is not None for reading in readings):
        return sorted(readings, key=_sort_key, reverse=True)
    return readings


def detect(
    event: Dict[str, Any],
    data_source: Optional[ClinicalDataSource],
    generator: Optional[NarrativeGenerator],
) -> Dict[str, Any]:
    """Evaluate one reading and build the response body.

    History and patient context come from the event when present, otherwise
    from the data source.
    """
    reading_data = event.get("reading")
    if not isinstance(reading_data, dict):
        raise ValueError("reading must be provided in event")

    patient_id = event.get("patient_id") or reading_data.get("patient_id")
    if not patient_id:
        raise ValueError("patient_id must be provided in event or reading")

    reading = VitalReading.model_validate({**reading_data, "patient_id": patient_id})

    if "history" in event:
        history = _newest_first(
            [VitalReading.model_validate(item) for item in event["history"] or []]
        )
    elif data_source is not None:
        history = data_source.get_recent_vitals(patient_id, settings.VITALS_HISTORY_LIMIT)
    else:
        history = []

    if "patient" in event:
        patient = Patient.model_validate(event["patient"] or {})
    elif data_source is not None:
        patient = data_source.get_patient(patient_id)
    else:
        patient = None

    findings = aggregate_anomalies(reading, history)
    recommendation = generate_recommendation(findings, patient, generator)

    return {
        "status": "success",
        "patient_id": patient_id,
        "history_count": len(history),
        "anomalies": [finding.model_dump(mode="json") for finding in findings],
        "recommendation": (
            recommendation.model_dump(mode="json") if recommendation is not None else None
        ),
    }


def handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """Lambda handler for anomaly detection.

    Expected event structure:
    {
        "patient_id": "patient123",
        "reading": {"heart_rate": 130, "spo2": 93, ...},
        "history": [...],   # Optional, most-recent-first; loaded from S3 if absent
        "patient": {...}    # Optional; loaded from S3 if absent
    }

    Args:
        event: Lambda event dictionary (API Gateway string bodies supported).
        context: Lambda context object.

    Returns:
        Dictionary with status code and JSON body.
    """
    try:
        event = parse_event(event)
        logger.info(f"Detecting anomalies for patient {event.get('patient_id')}")

        body = detect(event, get_data_source(), get_narrative_generator())
        return json_response(200, body)

    except ValueError as e:
        logger.error(f"Validation error: {e}")
        return error_response(400, e)
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        return error_response(500, e)
