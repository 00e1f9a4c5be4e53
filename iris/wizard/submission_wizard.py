"""
IRB submission wizard — explicit state plus pure transitions.

The wizard walks a draft IRB application through five steps
(basic → risk → regulatory → documents → review) and, from the review step,
submits everything as one PATCH to the IRB application resource.

Forward navigation is gated: ``next()`` is a no-op while the current step's
completion predicate is false. ``prev()`` never loses entered data.

The application client is injected. Anything exposing

    patch_irb_application(application_id: int, payload: dict) -> dict

works; ``iris.integrations.iris_client.IrisApiClient`` is the HTTP one.

Usage:
    wizard = SubmissionWizard(application_id=7, client=IrisApiClient(base_url))
    wizard.update_field("title", "Gut microbiome in preterm infants")
    ...
    wizard.next()
    ...
    wizard.submit()
"""

from __future__ import annotations

import copy
import logging
from datetime import datetime, timezone
from typing import Any, Callable

from iris.wizard.steps import (
    CHOICE_VOCABULARIES,
    DOCUMENT_TYPES,
    FIELD_DEFAULTS,
    MULTI_CHOICE_FIELDS,
    STEPS,
    WizardStep,
)

logger = logging.getLogger(__name__)

_DOCUMENT_TYPE_IDS = frozenset(doc_type for doc_type, _label, _required in DOCUMENT_TYPES)


class WizardError(Exception):
    """Base class for wizard misuse (wrong step, closed wizard, ...)."""


class SubmissionInProgressError(WizardError):
    """Raised when submit() is called while a submit request is outstanding."""


class SubmissionError(WizardError):
    """Raised when the backend rejects or fails the submit request.

    The wizard state is left untouched so the user can retry.
    """

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.cause = cause


def _coerce_participants(value) -> int | None:
    if value in (None, "") or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class SubmissionWizard:
    """Client-local state for one IRB submission.

    Attributes:
        application_id:      IRB application being submitted.
        current_step_index:  Index into STEPS.
        form_data:           Field values for all steps (see FIELD_DEFAULTS).
        uploaded_documents:  Document descriptors ({document_type, file_name, ...}).
        submitted:           True once the backend accepted the submission.
        last_error:          Message of the most recent failed submit, if any.
    """

    def __init__(
        self,
        application_id: int,
        client,
        notify: Callable[[str, str, str], None] | None = None,
        on_submitted: Callable[[dict], None] | None = None,
    ) -> None:
        self.application_id = application_id
        self.client = client
        self.notify = notify
        self.on_submitted = on_submitted

        self.current_step_index = 0
        self.form_data: dict[str, Any] = copy.deepcopy(FIELD_DEFAULTS)
        self.uploaded_documents: list[dict] = []

        self.submitted = False
        self.last_error: str | None = None
        self.result: dict | None = None
        self._in_flight = False

    @classmethod
    def from_application(cls, application: dict, client, **kwargs) -> "SubmissionWizard":
        """Start a wizard prefilled from an existing application payload."""
        wizard = cls(application["id"], client, **kwargs)
        for field in FIELD_DEFAULTS:
            value = application.get(field)
            if value is None:
                continue
            if field == "expected_participants":
                value = str(value)
            wizard.form_data[field] = copy.deepcopy(value)
        wizard.uploaded_documents = [dict(doc) for doc in application.get("documents") or []]
        return wizard

    # ── Step state ───────────────────────────────────────────────────────────

    @property
    def current_step(self) -> WizardStep:
        return STEPS[self.current_step_index]

    @property
    def is_last_step(self) -> bool:
        return self.current_step_index == len(STEPS) - 1

    def is_step_complete(self, index: int) -> bool:
        return STEPS[index].is_complete(self.form_data, self.uploaded_documents)

    def steps(self) -> list[dict]:
        """Step descriptors with freshly evaluated completion flags."""
        return [step.to_dict(self.form_data, self.uploaded_documents) for step in STEPS]

    @property
    def can_go_next(self) -> bool:
        return not self.is_last_step and self.is_step_complete(self.current_step_index)

    @property
    def can_go_back(self) -> bool:
        return self.current_step_index > 0

    @property
    def can_submit(self) -> bool:
        return (
            self.is_last_step
            and not self.submitted
            and not self._in_flight
            and all(self.is_step_complete(i) for i in range(len(STEPS) - 1))
        )

    # ── Navigation ───────────────────────────────────────────────────────────

    def next(self) -> bool:
        """Advance one step if the current step is complete. Returns True if moved."""
        if not self.can_go_next:
            logger.debug("Wizard %s: next blocked on step '%s'",
                          self.application_id, self.current_step.id)
            return False
        self.current_step_index += 1
        return True

    def prev(self) -> bool:
        """Go back one step, keeping every entered value. Returns True if moved."""
        if not self.can_go_back:
            return False
        self.current_step_index -= 1
        return True

    # ── Editing ──────────────────────────────────────────────────────────────

    def _check_open(self) -> None:
        if self.submitted:
            raise WizardError("Submission already completed")

    def update_field(self, name: str, value) -> None:
        self._check_open()
        if name not in FIELD_DEFAULTS:
            raise ValueError(f"Unknown wizard field: {name}")
        if name in MULTI_CHOICE_FIELDS and not isinstance(value, list):
            raise ValueError(f"{name} expects a list of values")
        if isinstance(FIELD_DEFAULTS[name], bool) and not isinstance(value, bool):
            raise ValueError(f"{name} expects true or false")
        vocabulary = CHOICE_VOCABULARIES.get(name)
        if vocabulary:
            values = value if name in MULTI_CHOICE_FIELDS else ([value] if value else [])
            unknown = [v for v in values if v not in vocabulary]
            if unknown:
                raise ValueError(f"Unknown {name} value: {unknown[0]}")
        self.form_data[name] = value

    def toggle_choice(self, name: str, value: str, checked: bool) -> None:
        """Add or remove ``value`` from a multi-select field."""
        self._check_open()
        if name not in MULTI_CHOICE_FIELDS:
            raise ValueError(f"{name} is not a multi-select field")
        vocabulary = CHOICE_VOCABULARIES.get(name)
        if checked and vocabulary and value not in vocabulary:
            raise ValueError(f"Unknown {name} value: {value}")
        current = self.form_data[name]
        if checked and value not in current:
            self.form_data[name] = current + [value]
        elif not checked:
            self.form_data[name] = [item for item in current if item != value]

    def add_document(self, document: dict) -> None:
        self._check_open()
        if not document.get("file_name"):
            raise ValueError("document requires a file_name")
        doc_type = document.get("document_type")
        if doc_type not in _DOCUMENT_TYPE_IDS:
            raise ValueError(f"Unknown document_type: {doc_type}")
        self.uploaded_documents.append(dict(document))

    def remove_document(self, index: int) -> dict:
        self._check_open()
        return self.uploaded_documents.pop(index)

    def missing_required_documents(self) -> list[str]:
        """Required document types not yet uploaded (informational)."""
        present = {doc.get("document_type") for doc in self.uploaded_documents}
        return [t for t, _label, required in DOCUMENT_TYPES if required and t not in present]

    # ── Submit ───────────────────────────────────────────────────────────────

    def build_payload(self, now: datetime | None = None) -> dict:
        """PATCH body merging all step data and moving the application to submitted."""
        now = now or datetime.now(timezone.utc)
        fields = copy.deepcopy(self.form_data)
        documents = copy.deepcopy(self.uploaded_documents)

        snapshot = copy.deepcopy(fields)
        snapshot["uploaded_documents"] = copy.deepcopy(documents)

        payload = dict(fields)
        payload["expected_participants"] = _coerce_participants(fields.get("expected_participants"))
        payload["documents"] = documents
        payload["form_data"] = snapshot
        payload["workflow_status"] = "submitted"
        payload["submission_date"] = now.isoformat()
        return payload

    def _notify(self, title: str, message: str, variant: str = "default") -> None:
        if self.notify is not None:
            self.notify(title, message, variant)

    def submit(self, now: datetime | None = None) -> dict:
        """Send the submission. Only valid from the review step.

        Raises:
            SubmissionInProgressError: a submit request is already outstanding.
            WizardError: not on the review step, an earlier step is incomplete,
                or the wizard was already submitted.
            SubmissionError: the client call failed; state is unchanged.
        """
        if self._in_flight:
            raise SubmissionInProgressError("A submission is already in progress")
        self._check_open()
        if not self.is_last_step:
            raise WizardError(f"Cannot submit from step '{self.current_step.id}'")
        incomplete = [STEPS[i].id for i in range(len(STEPS) - 1) if not self.is_step_complete(i)]
        if incomplete:
            raise WizardError(f"Incomplete steps: {', '.join(incomplete)}")

        payload = self.build_payload(now)
        self._in_flight = True
        try:
            response = self.client.patch_irb_application(self.application_id, payload)
        except Exception as exc:
            self.last_error = str(exc) or exc.__class__.__name__
            logger.warning("IRB submission failed for application %s: %s",
                           self.application_id, self.last_error)
            self._notify("Error", "Failed to submit application", "destructive")
            raise SubmissionError("Failed to submit application", cause=exc) from exc
        finally:
            self._in_flight = False

        self.submitted = True
        self.last_error = None
        self.result = response
        logger.info("IRB application %s submitted", self.application_id)
        self._notify("Success", "IRB application submitted successfully")
        if self.on_submitted is not None:
            self.on_submitted(response)
        return response
