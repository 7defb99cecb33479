"""Helpers shared by the Lambda handlers."""

import json
from typing import Any, Dict


def parse_event(event: Dict[str, Any]) -> Dict[str, Any]:
    """Unwrap API Gateway events, whose body is a JSON string."""
    if isinstance(event.get("body"), str):
        try:
            event = json.loads(event["body"])
        except json.JSONDecodeError as e:
            raise ValueError(f"Request body is not valid JSON: {e}") from e

    if not isinstance(event, dict):
        raise ValueError("Event must be a JSON object")
    return event


def json_response(status_code: int, body: Dict[str, Any]) -> Dict[str, Any]:
    return {"statusCode": status_code, "body": json.dumps(body, default=str)}


def error_response(status_code: int, error: Exception) -> Dict[str, Any]:
    return json_response(status_code, {"status": "error", "error": str(error)})
