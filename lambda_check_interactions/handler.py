"""Lambda handler for checking a new prescription against interactions and allergies."""

from typing import Any, Dict, Optional

from ward_signals.data_access import ClinicalDataSource, get_data_source
from ward_signals.handler_utils import error_response, json_response, parse_event
from ward_signals.interactions import check_drug_interactions
from ward_signals.logging_utils import setup_logger
from ward_signals.models import InteractionSeverity, Medication, Patient
from ward_signals.narrative import NarrativeGenerator, get_narrative_generator

logger = setup_logger(__name__)


def check(
    event: Dict[str, Any],
    data_source: Optional[ClinicalDataSource],
    generator: Optional[NarrativeGenerator],
) -> Dict[str, Any]:
    medication_data = event.get("medication")
    if not isinstance(medication_data, dict):
        raise ValueError("medication must be provided in event")

    new_medication = Medication.model_validate(medication_data)

    patient_id = event.get("patient_id")

    if "current_medications" in event:
        current = [Medication.model_validate(item) for item in event["current_medications"] or []]
    elif data_source is not None and patient_id:
        current = data_source.get_active_medications(patient_id)
    else:
        current = []

    if "patient" in event:
        patient = Patient.model_validate(event["patient"] or {})
    elif data_source is not None and patient_id:
        patient = data_source.get_patient(patient_id)
    else:
        patient = None

    result = check_drug_interactions(new_medication, current, patient, generator)
    body = result.model_dump(mode="json")
    body.update(
        {
            "status": "success",
            "patient_id": patient_id,
            "medication": new_medication.name,
            "has_critical": any(
                finding.severity == InteractionSeverity.CRITICAL
                for finding in result.interactions
            ),
        }
    )
    return body


def handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """Lambda handler for drug interaction checks.

    Expected event structure:
    {
        "patient_id": "patient123",
        "medication": {"name": "Aspirin", "dosage": "75mg", "allergy_triggers": []},
        "current_medications": [...],  # Optional; loaded from S3 if absent
        "patient": {...}               # Optional; loaded from S3 if absent
    }

    Args:
        event: Lambda event dictionary (API Gateway string bodies supported).
        context: Lambda context object.

    Returns:
        Dictionary with status code and JSON body.
    """
    try:
        event = parse_event(event)
        logger.info(f"Checking interactions for patient {event.get('patient_id')}")

        body = check(event, get_data_source(), get_narrative_generator())
        return json_response(200, body)

    except ValueError as e:
        logger.error(f"Validation error: {e}")
        return error_response(400, e)
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        return error_response(500, e)
