"""Adapters for the optional narrative-generation service.

The engines produce structured findings on their own; narrative text is a
best-effort extra. Every adapter makes a single attempt and raises
NarrativeError on any failure so the caller can fall back to its
deterministic default.
"""

import json
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, Optional, Sequence

import boto3
import requests
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from .config import settings
from .logging_utils import setup_logger
from .models import (
    AnomalyFinding,
    InteractionFinding,
    InteractionType,
    LabReport,
    Medication,
    Patient,
)

logger = setup_logger(__name__)

THROTTLE_KEYWORDS = [
    "throttlingexception",
    "too many requests",
    "timeout",
    "timed out",
    "rate exceeded",
]

SYSTEM_PROMPT = """
You are a clinical decision support assistant for hospital ward staff.
You receive findings that were already produced by deterministic rules.
Do not contradict or drop any finding, do not invent measurements, and keep
answers short and actionable. Respond only with JSON matching the schema.
"""

RECOMMENDATION_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "recommendation": {"type": "string"},
        "urgency": {"type": "string", "enum": ["routine", "urgent", "immediate"]},
        "notify_doctor": {"type": "boolean"},
    },
}

INTERACTION_GUIDANCE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "clinical_significance": {"type": "string"},
        "recommendation": {"type": "string"},
        "alternative_suggestion": {"type": "string"},
        "monitoring_required": {"type": "boolean"},
        "proceed_with_caution": {"type": "boolean"},
    },
}

LAB_SUMMARY_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "summary": {"type": "string"},
        "key_findings": {"type": "array", "items": {"type": "string"}},
        "recommendations": {"type": "array", "items": {"type": "string"}},
        "urgency_level": {
            "type": "string",
            "enum": ["routine", "monitor", "urgent", "critical"],
        },
    },
}


class NarrativeError(Exception):
    """Raised when the narrative service gives no usable answer."""


def _matches_throttling_error(message: str) -> bool:
    lowered = message.lower()
    return any(keyword in lowered for keyword in THROTTLE_KEYWORDS)


def _unwrap_body(body: Any) -> Dict[str, Any]:
    """Validate the common {"success", "error", "result"} response envelope."""
    if isinstance(body, str):
        try:
            body = json.loads(body)
        except json.JSONDecodeError as exc:
            raise NarrativeError(f"Invalid JSON body from narrative service: {exc}") from exc

    if not isinstance(body, dict):
        raise NarrativeError("Narrative service response body must be a JSON object.")

    error_text = body.get("error") or ""
    if body.get("success", True) is False or (
        isinstance(error_text, str) and _matches_throttling_error(error_text)
    ):
        raise NarrativeError(error_text or "Narrative service reported failure.")

    result = body.get("result")
    if isinstance(result, str):
        try:
            result = json.loads(result)
        except json.JSONDecodeError as exc:
            raise NarrativeError(f"Narrative result is not JSON: {exc}") from exc

    if not isinstance(result, dict):
        raise NarrativeError("Narrative service response did not include a result object.")

    return result


class NarrativeGenerator(ABC):
    """Interface of the external text-generation collaborator."""

    @abstractmethod
    def generate(self, prompt: str, response_schema: Dict[str, Any]) -> Dict[str, Any]:
        """Return a JSON object shaped by response_schema, or raise NarrativeError."""


class LambdaNarrativeGenerator(NarrativeGenerator):
    """Invokes a text-generation proxy Lambda synchronously."""

    def __init__(
        self,
        function_name: Optional[str] = None,
        lambda_client: Any = None,
        timeout_seconds: Optional[float] = None,
    ):
        self.function_name = function_name or settings.NARRATIVE_LAMBDA_NAME
        if not self.function_name:
            raise ValueError("NARRATIVE_LAMBDA_NAME must be set for the lambda backend.")

        if lambda_client is None:
            timeout = timeout_seconds or settings.NARRATIVE_TIMEOUT_SECONDS
            lambda_client = boto3.client(
                "lambda",
                region_name=settings.AWS_REGION,
                config=Config(
                    connect_timeout=timeout,
                    read_timeout=timeout,
                    retries={"total_max_attempts": 1},
                ),
            )
        self.lambda_client = lambda_client

    def generate(self, prompt: str, response_schema: Dict[str, Any]) -> Dict[str, Any]:
        payload = {
            "text": f"{SYSTEM_PROMPT}\n\n{prompt}",
            "response_json_schema": response_schema,
        }

        try:
            response = self.lambda_client.invoke(
                FunctionName=self.function_name,
                InvocationType="RequestResponse",
                Payload=json.dumps(payload).encode("utf-8"),
            )
            raw_payload = response["Payload"].read()
        except (BotoCoreError, ClientError, KeyError) as exc:
            raise NarrativeError(f"Narrative Lambda invocation failed: {exc}") from exc

        try:
            lambda_result = json.loads(raw_payload)
        except (TypeError, ValueError) as exc:
            raise NarrativeError(f"Invalid response from narrative Lambda: {exc}") from exc

        if not isinstance(lambda_result, dict):
            raise NarrativeError("Narrative Lambda returned a non-object payload.")

        status_code = lambda_result.get("statusCode", 500)
        if status_code != 200:
            raise NarrativeError(f"Non-200 status code: {status_code}")

        return _unwrap_body(lambda_result.get("body"))


class HttpNarrativeGenerator(NarrativeGenerator):
    """Posts prompts to an HTTP text-generation endpoint."""

    def __init__(
        self,
        api_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        self.api_url = api_url or settings.NARRATIVE_API_URL
        self.api_key = api_key or settings.NARRATIVE_API_KEY
        self.timeout_seconds = timeout_seconds or settings.NARRATIVE_TIMEOUT_SECONDS

        if not self.api_url:
            raise ValueError("NARRATIVE_API_URL must be set for the http backend.")

        self.session = session or requests.Session()
        self.headers = {"Content-Type": "application/json"}
        if self.api_key:
            self.headers["Authorization"] = f"Bearer {self.api_key}"

    def generate(self, prompt: str, response_schema: Dict[str, Any]) -> Dict[str, Any]:
        payload = {
            "system": SYSTEM_PROMPT.strip(),
            "prompt": prompt,
            "response_json_schema": response_schema,
        }

        try:
            response = self.session.post(
                self.api_url,
                headers=self.headers,
                json=payload,
                timeout=self.timeout_seconds,
            )
            response.raise_for_status()
            body = response.json()
        except requests.exceptions.RequestException as exc:
            raise NarrativeError(f"Narrative request failed: {exc}") from exc
        except ValueError as exc:
            raise NarrativeError(f"Narrative response is not JSON: {exc}") from exc

        return _unwrap_body(body)


def get_narrative_generator() -> Optional[NarrativeGenerator]:
    """Build the generator selected by settings.NARRATIVE_BACKEND (None when disabled)."""
    backend = settings.NARRATIVE_BACKEND
    if backend == "lambda":
        return LambdaNarrativeGenerator()
    if backend == "http":
        return HttpNarrativeGenerator()
    return None


def _join(values: Iterable[str], empty: str) -> str:
    joined = ", ".join(value for value in values if value)
    return joined or empty


def build_recommendation_prompt(
    findings: Sequence[AnomalyFinding], patient: Optional[Patient]
) -> str:
    patient = patient or Patient()
    lines = [
        "A patient has the following anomalies detected:",
        "",
        f"Patient: {patient.full_name or 'Unknown'}",
        f"Primary Diagnosis: {patient.primary_diagnosis or 'Unknown'}",
        f"Allergies: {_join(patient.allergies, 'None listed')}",
        "",
        "Detected Anomalies:",
    ]
    lines.extend(f"- {finding.severity.value.upper()}: {finding.message}" for finding in findings)
    lines.extend(
        [
            "",
            "Provide a brief, actionable recommendation (max 2 sentences) for the "
            "medical staff. Focus on immediate actions if critical.",
        ]
    )
    return "\n".join(lines)


def build_interaction_prompt(
    new_medication: Medication,
    findings: Sequence[InteractionFinding],
    patient: Optional[Patient],
) -> str:
    patient = patient or Patient()
    dosage = f" ({new_medication.dosage})" if new_medication.dosage else ""
    lines = [
        "Analyze these potential drug interactions for clinical significance:",
        "",
        f"Patient: {patient.full_name or 'Unknown'}",
        f"Primary Diagnosis: {patient.primary_diagnosis or 'Unknown'}",
        f"Known Allergies: {_join(patient.allergies, 'None')}",
        "",
        f"New Medication: {new_medication.name}{dosage}",
        "",
        "Potential Interactions Found:",
    ]
    for finding in findings:
        label = "allergy" if finding.type == InteractionType.ALLERGY else "known interaction"
        lines.append(f"- {finding.drug1} + {finding.drug2}: {finding.severity.value} ({label})")
    lines.extend(["", "Provide clinical guidance."])
    return "\n".join(lines)


def build_lab_report_prompt(
    report: LabReport,
    critical_parameters: Sequence[str],
    patient: Optional[Patient],
) -> str:
    patient = patient or Patient()
    test_type = (report.test_type or "Unknown").replace("_", " ")
    lines = [
        "Analyze these lab results and provide a clinical summary:",
        "",
        f"Patient: {patient.full_name or 'Unknown'}",
        f"Sex: {patient.sex.value}",
        f"Primary Diagnosis: {patient.primary_diagnosis or 'Unknown'}",
        f"Test Type: {test_type}",
        f"Test Name: {report.test_name or 'Unknown'}",
        "",
        "Results:",
    ]
    if report.results:
        lines.extend(
            f"{result.parameter}: {result.value} {result.unit or ''}".rstrip()
            for result in report.results
        )
    else:
        lines.append("No results available")
    lines.extend(
        [
            "",
            f"Critical Findings: {_join(critical_parameters, 'None')}",
            "",
            "Provide:",
            "1. A brief clinical summary (2-3 sentences)",
            "2. Key findings to highlight",
            "3. Recommendations for the care team",
        ]
    )
    return "\n".join(lines)
