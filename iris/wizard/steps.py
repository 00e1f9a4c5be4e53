"""
IRB submission wizard — step definitions and completion predicates.

Each predicate is a pure function of (form_data, uploaded_documents) and is
re-evaluated on every call. Nothing here is cached.

    basic       title, description and study_design filled in
    risk        risk_level chosen and at least one data collection method
    regulatory  protocol_type chosen
    documents   at least REQUIRED_DOCUMENT_COUNT uploaded documents
    review      never self-satisfied; only an explicit submit leaves it
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from iris.models.irb import MONITORING_FREQUENCIES, PROTOCOL_TYPES, RISK_LEVELS, STUDY_DESIGNS

REQUIRED_DOCUMENT_COUNT = 3


# ── Form vocabulary ──────────────────────────────────────────────────────────

FIELD_DEFAULTS = {
    # Basic information
    "title": "",
    "short_title": "",
    "description": "",
    "study_design": "",
    "expected_participants": "",
    "study_duration": "",
    "funding_source": "",
    "irb_net_number": "",
    "old_number": "",
    "additional_notification_email": "",
    "subject_enrollment_reasons": [],
    # Risk assessment
    "risk_level": "",
    "vulnerable_populations": [],
    "data_collection_methods": [],
    "conflict_of_interest": False,
    "multi_site": False,
    "international_sites": False,
    # Regulatory
    "protocol_type": "",
    "is_interventional": False,
    "requires_monitoring": False,
    "monitoring_frequency": "",
    "reporting_requirements": [],
}

MULTI_CHOICE_FIELDS = frozenset(
    name for name, default in FIELD_DEFAULTS.items() if isinstance(default, list)
)

VULNERABLE_POPULATIONS = (
    "children", "pregnant_women", "prisoners", "mentally_disabled",
    "economically_disadvantaged", "elderly", "students", "employees",
)
DATA_COLLECTION_METHODS = (
    "surveys", "interviews", "medical_records", "biological_samples",
    "imaging", "observations", "existing_datasets", "device_data",
)
SUBJECT_ENROLLMENT_REASONS = (
    "sample_collection", "data_collection", "intervention_testing",
    "survey_completion", "interview_participation", "follow_up_monitoring",
)

# Closed option lists; values outside them are rejected by update_field/toggle_choice
CHOICE_VOCABULARIES = {
    "study_design": STUDY_DESIGNS,
    "risk_level": RISK_LEVELS,
    "protocol_type": PROTOCOL_TYPES,
    "monitoring_frequency": MONITORING_FREQUENCIES,
    "vulnerable_populations": VULNERABLE_POPULATIONS,
    "data_collection_methods": DATA_COLLECTION_METHODS,
    "subject_enrollment_reasons": SUBJECT_ENROLLMENT_REASONS,
}

# (document_type, label, required)
DOCUMENT_TYPES = (
    ("protocol", "Research Protocol (IRB-413)", True),
    ("consent_form", "Informed Consent Form (IRB-400)", True),
    ("investigator_cv", "Principal Investigator CV", True),
    ("study_team_cv", "Study Team CVs", True),
    ("data_safety_plan", "Data Safety & Security Plan", True),
    ("recruitment_materials", "Recruitment Materials", False),
    ("survey_instruments", "Survey/Data Collection Instruments", False),
    ("site_approval", "Site Approval Letters", False),
    ("regulatory_approvals", "Regulatory Approvals", False),
    ("insurance_coverage", "Insurance Coverage Letter", False),
)


# ── Predicates ───────────────────────────────────────────────────────────────


def _filled(value) -> bool:
    if isinstance(value, str):
        return bool(value.strip())
    return bool(value)


def basic_complete(form: dict, documents: list) -> bool:
    return _filled(form.get("title")) and _filled(form.get("description")) and _filled(form.get("study_design"))


def risk_complete(form: dict, documents: list) -> bool:
    return _filled(form.get("risk_level")) and len(form.get("data_collection_methods") or []) > 0


def regulatory_complete(form: dict, documents: list) -> bool:
    return _filled(form.get("protocol_type"))


def documents_complete(form: dict, documents: list) -> bool:
    return len(documents) >= REQUIRED_DOCUMENT_COUNT


def review_complete(form: dict, documents: list) -> bool:
    return False


@dataclass(frozen=True)
class WizardStep:
    id: str
    title: str
    description: str
    is_complete: Callable[[dict, list], bool]

    def to_dict(self, form: dict, documents: list) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "completed": self.is_complete(form, documents),
        }


STEPS = (
    WizardStep("basic", "Basic Information",
               "Study title, description, and basic details", basic_complete),
    WizardStep("risk", "Risk Assessment",
               "Risk level, populations, and data collection methods", risk_complete),
    WizardStep("regulatory", "Regulatory Details",
               "Protocol type, intervention status, and monitoring", regulatory_complete),
    WizardStep("documents", "Documents",
               "Upload required protocol documents", documents_complete),
    WizardStep("review", "Review & Submit",
               "Review your submission before submitting to IRB", review_complete),
)

STEP_IDS = tuple(step.id for step in STEPS)
