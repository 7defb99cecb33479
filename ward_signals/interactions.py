"""Rule-based drug interaction and allergy checks for a new prescription."""

import re
from typing import Dict, List, Optional, Sequence, Tuple

from pydantic import ValidationError

from .logging_utils import setup_logger
from .models import (
    InteractionCheckResult,
    InteractionFinding,
    InteractionGuidance,
    InteractionSeverity,
    InteractionType,
    Medication,
    Patient,
)
from .narrative import (
    INTERACTION_GUIDANCE_SCHEMA,
    NarrativeError,
    NarrativeGenerator,
    build_interaction_prompt,
)

logger = setup_logger(__name__)

KNOWN_INTERACTIONS: Dict[str, List[str]] = {
    "warfarin": ["aspirin", "ibuprofen", "naproxen", "vitamin_k", "st_johns_wort"],
    "aspirin": ["warfarin", "ibuprofen", "blood_thinners", "methotrexate"],
    "metformin": ["contrast_dye", "alcohol", "cimetidine"],
    "lisinopril": ["potassium", "spironolactone", "nsaids"],
    "simvastatin": ["grapefruit", "erythromycin", "gemfibrozil"],
    "amlodipine": ["simvastatin", "cyclosporine"],
    "omeprazole": ["clopidogrel", "methotrexate"],
    "metoprolol": ["verapamil", "clonidine", "digoxin"],
    "prednisone": ["nsaids", "warfarin", "diabetes_medications"],
    "furosemide": ["digoxin", "lithium", "aminoglycosides"],
}

HIGH_RISK_PAIRS: Tuple[Tuple[str, str], ...] = (
    ("warfarin", "aspirin"),
    ("metformin", "contrast_dye"),
    ("clopidogrel", "omeprazole"),
    ("lithium", "furosemide"),
)

RISK_CONDITIONS = ("kidney_disease", "liver_disease", "elderly", "heart_failure")


def normalize_drug_name(name: Optional[str]) -> str:
    """Lowercase and join words with underscores, matching the table keys."""
    return re.sub(r"[\s\-]+", "_", (name or "").strip().lower())


def interacting_drugs(normalized_name: str) -> List[str]:
    """Table entries for every key contained in the drug name, in table order."""
    if not normalized_name:
        return []
    partners = []
    for drug, interactions in KNOWN_INTERACTIONS.items():
        if drug in normalized_name:
            partners.extend(interactions)
    return partners


def _names_interact(first: str, second: str) -> bool:
    if not first or not second:
        return False
    return any(partner in second for partner in interacting_drugs(first)) or any(
        partner in first for partner in interacting_drugs(second)
    )


def classify_interaction_severity(
    drug1: str, drug2: str, patient_conditions: Sequence[str] = ()
) -> InteractionSeverity:
    """Critical for a listed high-risk pair, high with a risk condition, else moderate."""
    first = normalize_drug_name(drug1)
    second = normalize_drug_name(drug2)

    for one, other in HIGH_RISK_PAIRS:
        if (one in first and other in second) or (other in first and one in second):
            return InteractionSeverity.CRITICAL

    conditions = [normalize_drug_name(condition) for condition in patient_conditions]
    if any(risk in condition for condition in conditions for risk in RISK_CONDITIONS):
        return InteractionSeverity.HIGH

    return InteractionSeverity.MODERATE


def find_interactions(
    new_medication: Medication,
    current_medications: Sequence[Medication],
    patient: Optional[Patient] = None,
) -> List[InteractionFinding]:
    """Check a new medication against active medications and allergies.

    Args:
        new_medication: Medication being prescribed.
        current_medications: The patient's active medications.
        patient: Supplies allergies and secondary diagnoses.

    Returns:
        Known-interaction findings in medication-list order, followed by
        allergy findings in allergy-list order.
    """
    patient = patient or Patient()
    new_name = normalize_drug_name(new_medication.name)
    findings = []

    for medication in current_medications:
        current_name = normalize_drug_name(medication.name)
        if not _names_interact(new_name, current_name):
            continue

        findings.append(
            InteractionFinding(
                drug1=new_medication.name,
                drug2=medication.name,
                severity=classify_interaction_severity(
                    new_medication.name, medication.name, patient.secondary_diagnoses
                ),
                type=InteractionType.KNOWN_INTERACTION,
            )
        )

    raw_name = (new_medication.name or "").lower()
    triggers = [trigger.lower() for trigger in new_medication.allergy_triggers]
    for allergy in patient.allergies:
        allergen = allergy.strip().lower()
        if not allergen:
            continue
        if allergen in raw_name or any(allergen in trigger for trigger in triggers):
            findings.append(
                InteractionFinding(
                    drug1=new_medication.name,
                    drug2=allergy,
                    severity=InteractionSeverity.CRITICAL,
                    type=InteractionType.ALLERGY,
                )
            )

    logger.info(
        f"Found {len(findings)} interaction findings for {new_medication.name} "
        f"against {len(current_medications)} active medications"
    )
    return findings


def check_drug_interactions(
    new_medication: Medication,
    current_medications: Sequence[Medication],
    patient: Optional[Patient] = None,
    generator: Optional[NarrativeGenerator] = None,
) -> InteractionCheckResult:
    """Run find_interactions and, when something was found, ask for guidance.

    Guidance is omitted when no generator is configured or the single
    attempt fails; the findings are authoritative either way.
    """
    interactions = find_interactions(new_medication, current_medications, patient)
    result = InteractionCheckResult(interactions=interactions)

    if not interactions or generator is None:
        return result

    prompt = build_interaction_prompt(new_medication, interactions, patient)
    try:
        guidance = generator.generate(prompt, INTERACTION_GUIDANCE_SCHEMA)
        result.guidance = InteractionGuidance.model_validate(guidance)
    except (NarrativeError, ValidationError) as exc:
        logger.warning(f"Interaction guidance omitted: {exc}")

    return result
