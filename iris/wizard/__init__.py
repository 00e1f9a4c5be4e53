"""iris.wizard — client-side IRB submission wizard (state + pure predicates)."""

from iris.wizard.steps import REQUIRED_DOCUMENT_COUNT, STEP_IDS, STEPS
from iris.wizard.submission_wizard import (
    SubmissionError,
    SubmissionInProgressError,
    SubmissionWizard,
    WizardError,
)

__all__ = [
    "REQUIRED_DOCUMENT_COUNT",
    "STEP_IDS",
    "STEPS",
    "SubmissionError",
    "SubmissionInProgressError",
    "SubmissionWizard",
    "WizardError",
]
