"""Data models for clinical signal analysis."""

import math
from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class VitalMetric(str, Enum):
    """Vital-sign fields monitored on a reading."""

    HEART_RATE = "heart_rate"
    BLOOD_PRESSURE_SYSTOLIC = "blood_pressure_systolic"
    BLOOD_PRESSURE_DIASTOLIC = "blood_pressure_diastolic"
    TEMPERATURE = "temperature"
    SPO2 = "spo2"
    RESPIRATORY_RATE = "respiratory_rate"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ")


class FindingType(str, Enum):
    THRESHOLD_CRITICAL = "threshold_critical"
    THRESHOLD_WARNING = "threshold_warning"
    STATISTICAL_OUTLIER = "statistical_outlier"
    RAPID_CHANGE = "rapid_change"
    FALL_SUSPECTED = "fall_suspected"


class Severity(str, Enum):
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class InteractionSeverity(str, Enum):
    MODERATE = "moderate"
    HIGH = "high"
    CRITICAL = "critical"


class InteractionType(str, Enum):
    KNOWN_INTERACTION = "known_interaction"
    ALLERGY = "allergy"


class LabStatus(str, Enum):
    NORMAL = "normal"
    LOW = "low"
    HIGH = "high"
    CRITICAL = "critical"
    UNKNOWN = "unknown"


class Urgency(str, Enum):
    ROUTINE = "routine"
    URGENT = "urgent"
    IMMEDIATE = "immediate"


class LabUrgency(str, Enum):
    ROUTINE = "routine"
    MONITOR = "monitor"
    URGENT = "urgent"
    CRITICAL = "critical"


class Sex(str, Enum):
    MALE = "male"
    FEMALE = "female"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Union["Sex", str, None]) -> "Sex":
        """Map free-text sex/gender values onto the closed set, defaulting to UNKNOWN."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return cls.UNKNOWN
        normalized = value.strip().lower()
        if normalized in ("m", "male"):
            return cls.MALE
        if normalized in ("f", "female"):
            return cls.FEMALE
        return cls.UNKNOWN


class VitalReading(BaseModel):
    """A single vital-sign snapshot. Absent metrics are None, never zero or NaN."""

    model_config = ConfigDict(frozen=True)

    patient_id: Optional[str] = None
    timestamp: Optional[datetime] = None
    heart_rate: Optional[float] = None
    blood_pressure_systolic: Optional[float] = None
    blood_pressure_diastolic: Optional[float] = None
    temperature: Optional[float] = None  # Celsius
    spo2: Optional[float] = None  # Percent
    respiratory_rate: Optional[float] = None
    motion_detected: Optional[bool] = None

    @field_validator(
        "heart_rate",
        "blood_pressure_systolic",
        "blood_pressure_diastolic",
        "temperature",
        "spo2",
        "respiratory_rate",
    )
    @classmethod
    def _non_finite_as_absent(cls, value: Optional[float]) -> Optional[float]:
        if value is not None and not math.isfinite(value):
            return None
        return value

    def metric_value(self, metric: VitalMetric) -> Optional[float]:
        return getattr(self, VitalMetric(metric).value)


class AnomalyFinding(BaseModel):
    """One anomaly detected on a vital reading. Transient, never persisted."""

    model_config = ConfigDict(frozen=True)

    type: FindingType
    metric: Optional[VitalMetric] = None  # None for whole-reading findings
    value: Optional[float] = None
    severity: Severity
    message: str


class Patient(BaseModel):
    """Patient context used for allergy, risk and narrative checks."""

    patient_id: Optional[str] = None
    full_name: Optional[str] = None
    primary_diagnosis: Optional[str] = None
    secondary_diagnoses: List[str] = Field(default_factory=list)
    allergies: List[str] = Field(default_factory=list)
    sex: Sex = Sex.UNKNOWN

    @model_validator(mode="before")
    @classmethod
    def _accept_gender(cls, data):
        if isinstance(data, dict) and "sex" not in data and "gender" in data:
            return {**data, "sex": data["gender"]}
        return data

    @field_validator("secondary_diagnoses", "allergies", mode="before")
    @classmethod
    def _null_list_is_empty(cls, value):
        return [] if value is None else value

    @field_validator("sex", mode="before")
    @classmethod
    def _parse_sex(cls, value):
        return Sex.parse(value)


class Medication(BaseModel):
    """Medication reference; names compare case-insensitively."""

    name: str
    dosage: Optional[str] = None
    allergy_triggers: List[str] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _accept_medicine_name(cls, data):
        # Ward store records use medicine_name
        if isinstance(data, dict) and "name" not in data and "medicine_name" in data:
            return {**data, "name": data["medicine_name"]}
        return data

    @field_validator("allergy_triggers", mode="before")
    @classmethod
    def _null_triggers_are_empty(cls, value):
        return [] if value is None else value


class InteractionFinding(BaseModel):
    model_config = ConfigDict(frozen=True)

    drug1: str
    drug2: str  # Drug name, or the allergy label for allergy findings
    severity: InteractionSeverity
    type: InteractionType


class InteractionGuidance(BaseModel):
    """Supplementary narrative guidance for a set of interaction findings."""

    clinical_significance: Optional[str] = None
    recommendation: Optional[str] = None
    alternative_suggestion: Optional[str] = None
    monitoring_required: Optional[bool] = None
    proceed_with_caution: Optional[bool] = None


class InteractionCheckResult(BaseModel):
    interactions: List[InteractionFinding] = Field(default_factory=list)
    guidance: Optional[InteractionGuidance] = None


class Recommendation(BaseModel):
    """Action recommendation for staff following an anomaly evaluation."""

    recommendation: str
    urgency: Urgency
    notify_doctor: bool


class ReferenceRange(BaseModel):
    """Normal interval for a lab parameter, either shared or split by sex."""

    model_config = ConfigDict(frozen=True)

    unit: str
    range: Optional[Tuple[float, float]] = None
    male: Optional[Tuple[float, float]] = None
    female: Optional[Tuple[float, float]] = None

    @property
    def is_sex_specific(self) -> bool:
        return self.male is not None and self.female is not None


class LabResult(BaseModel):
    parameter: str
    value: Union[str, float, None] = None
    unit: Optional[str] = None


class LabInterpretation(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: LabStatus
    message: str


class InterpretedLabResult(LabResult):
    interpretation: LabInterpretation


class LabReport(BaseModel):
    test_name: Optional[str] = None
    test_type: Optional[str] = None
    results: List[LabResult] = Field(default_factory=list)


class LabReportAnalysis(BaseModel):
    """Per-result interpretation of a lab report plus optional narrative summary."""

    interpreted_results: List[InterpretedLabResult] = Field(default_factory=list)
    critical_findings: List[InterpretedLabResult] = Field(default_factory=list)
    summary: str = ""
    key_findings: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    urgency_level: Optional[LabUrgency] = None
