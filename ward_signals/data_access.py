"""Data access for the Lambda entry points.

The engines only ever receive plain records; handlers load those records
through a ClinicalDataSource passed in by the caller.
"""

import json
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import boto3
from botocore.exceptions import ClientError
from pydantic import ValidationError

from .config import settings
from .logging_utils import setup_logger
from .models import Medication, Patient, VitalReading

logger = setup_logger(__name__)


class ClinicalDataSource(ABC):
    """Read-only view of the patient, vitals and medication store."""

    @abstractmethod
    def get_patient(self, patient_id: str) -> Optional[Patient]:
        """Return the patient record, or None when it is not stored."""

    @abstractmethod
    def get_recent_vitals(self, patient_id: str, limit: int) -> List[VitalReading]:
        """Return up to `limit` readings, most-recent-first."""

    @abstractmethod
    def get_active_medications(self, patient_id: str) -> List[Medication]:
        """Return medications whose status is active."""


def get_patient_key(patient_id: str) -> str:
    return f"patients/{patient_id}.json"


def get_vitals_prefix(patient_id: str) -> str:
    """Readings are stored as vitals/{patient_id}/{ISO timestamp}.json."""
    return f"vitals/{patient_id}/"


def get_medications_key(patient_id: str) -> str:
    return f"medications/{patient_id}.json"


class S3ClinicalDataSource(ClinicalDataSource):
    """Loads JSON documents from the clinical data bucket."""

    def __init__(self, bucket_name: Optional[str] = None, s3_client: Any = None):
        self.bucket_name = bucket_name or settings.CLINICAL_DATA_BUCKET_NAME
        if not self.bucket_name:
            raise ValueError("CLINICAL_DATA_BUCKET_NAME must be set in environment variables")
        self.s3_client = s3_client or boto3.client("s3", region_name=settings.AWS_REGION)

    def download_json(self, key: str) -> Optional[Any]:
        """Download and parse a JSON object, or None if the key does not exist."""
        try:
            response = self.s3_client.get_object(Bucket=self.bucket_name, Key=key)
        except ClientError as e:
            if e.response["Error"]["Code"] == "NoSuchKey":
                logger.debug(f"Key not found in S3: s3://{self.bucket_name}/{key}")
                return None
            logger.error(f"Failed to download from S3: {e}")
            raise

        body = response["Body"].read().decode("utf-8")
        return json.loads(body)

    def list_keys(self, prefix: str) -> List[str]:
        """List every object key under a prefix."""
        keys = []
        paginator = self.s3_client.get_paginator("list_objects_v2")
        for page in paginator.paginate(Bucket=self.bucket_name, Prefix=prefix):
            keys.extend(obj["Key"] for obj in page.get("Contents", []))
        return keys

    def get_patient(self, patient_id: str) -> Optional[Patient]:
        document = self.download_json(get_patient_key(patient_id))
        if document is None:
            return None
        document.setdefault("patient_id", patient_id)
        return Patient.model_validate(document)

    def get_recent_vitals(self, patient_id: str, limit: int) -> List[VitalReading]:
        # ISO timestamps sort lexically, newest last
        keys = sorted(self.list_keys(get_vitals_prefix(patient_id)), reverse=True)[:limit]

        readings = []
        for key in keys:
            document = self.download_json(key)
            if document is None:
                continue
            try:
                readings.append(VitalReading.model_validate(document))
            except ValidationError as e:
                logger.warning(f"Skipping malformed reading s3://{self.bucket_name}/{key}: {e}")

        logger.info(f"Loaded {len(readings)} historical readings for {patient_id}")
        return readings

    def get_active_medications(self, patient_id: str) -> List[Medication]:
        document = self.download_json(get_medications_key(patient_id))
        if not document:
            return []

        entries: List[Dict[str, Any]] = (
            document.get("medications", []) if isinstance(document, dict) else document
        )
        return [
            Medication.model_validate(entry)
            for entry in entries
            if entry.get("status", "active") == "active"
        ]


def get_data_source() -> Optional[ClinicalDataSource]:
    """Default data source for the Lambdas; None when no bucket is configured."""
    if not settings.CLINICAL_DATA_BUCKET_NAME:
        return None
    return S3ClinicalDataSource()
