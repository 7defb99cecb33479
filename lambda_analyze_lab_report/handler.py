"""Lambda handler for interpreting the results of a lab report."""

from typing import Any, Dict, Optional

from ward_signals.data_access import ClinicalDataSource, get_data_source
from ward_signals.handler_utils import error_response, json_response, parse_event
from ward_signals.labs import analyze_lab_report
from ward_signals.logging_utils import setup_logger
from ward_signals.models import LabReport, Patient
from ward_signals.narrative import NarrativeGenerator, get_narrative_generator

logger = setup_logger(__name__)


def analyze(
    event: Dict[str, Any],
    data_source: Optional[ClinicalDataSource],
    generator: Optional[NarrativeGenerator],
) -> Dict[str, Any]:
    report_data = event.get("report")
    if not isinstance(report_data, dict):
        raise ValueError("report must be provided in event")
    report = LabReport.model_validate(report_data)

    patient_id = event.get("patient_id")
    if "patient" in event:
        patient = Patient.model_validate(event["patient"] or {})
    elif data_source is not None and patient_id:
        patient = data_source.get_patient(patient_id)
    else:
        patient = None

    analysis = analyze_lab_report(report, patient, generator)
    body = analysis.model_dump(mode="json")
    body.update({"status": "success", "patient_id": patient_id})
    return body


def handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """Lambda handler for lab report analysis.

    Expected event structure:
    {
        "patient_id": "patient123",
        "report": {
            "test_name": "Basic Metabolic Panel",
            "test_type": "blood_test",
            "results": [{"parameter": "Glucose", "value": "250", "unit": "mg/dL"}]
        },
        "patient": {...}  # Optional; loaded from S3 if absent
    }

    Args:
        event: Lambda event dictionary (API Gateway string bodies supported).
        context: Lambda context object.

    Returns:
        Dictionary with status code and JSON body.
    """
    try:
        event = parse_event(event)
        logger.info(f"Analyzing lab report for patient {event.get('patient_id')}")

        body = analyze(event, get_data_source(), get_narrative_generator())
        return json_response(200, body)

    except ValueError as e:
        logger.error(f"Validation error: {e}")
        return error_response(400, e)
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        return error_response(500, e)
