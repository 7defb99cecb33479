from typing import Any, Dict, List, Optional

import pytest

from ward_signals.config import settings
from ward_signals.narrative import NarrativeGenerator


class StubNarrativeGenerator(NarrativeGenerator):
    """Records prompts and returns a canned result or raises a canned error."""

    def __init__(self, result: Optional[Dict[str, Any]] = None, error: Optional[Exception] = None):
        self.result = result
        self.error = error
        self.prompts: List[str] = []

    def generate(self, prompt: str, response_schema: Dict[str, Any]) -> Dict[str, Any]:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture(autouse=True)
def offline_settings(monkeypatch):
    """Keep tests away from S3 and the narrative service."""
    monkeypatch.setattr(settings, "CLINICAL_DATA_BUCKET_NAME", "")
    monkeypatch.setattr(settings, "NARRATIVE_BACKEND", "none")


@pytest.fixture
def make_generator():
    return StubNarrativeGenerator
