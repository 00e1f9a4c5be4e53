"""
IRB Application Workflow Service.

Manages IRB application records and their workflow_status lifecycle:
  - Transition validation (IRB_TRANSITIONS)
  - Side effects (submit → submission_date/version, approve → approval date)
  - Reviewer comment log (review_comments) and PI response log (pi_responses)
  - Partial updates over a whitelist of editable fields (PATCH semantics)
  - IRB number generation: IRB-{YYYY}-{NNN}

Usage:
    from iris.services.irb_workflow import transition_application

    result = transition_application(
        application_id=7,
        action="approve",
        user_id=3,
        comment="Approved at the March full-board meeting",
    )

Raises NotFoundError, ValidationError, TransitionError (iris.core.exceptions).
"""

from __future__ import annotations

import logging
import re
from datetime import date, datetime, timezone

from sqlalchemy import select

from iris.core.exceptions import NotFoundError, TransitionError, ValidationError
from iris.models import db
from iris.models.irb import (
    COMMENT_REQUIRED_ACTIONS,
    IRB_TRANSITIONS,
    MONITORING_FREQUENCIES,
    PROTOCOL_TYPES,
    RISK_LEVELS,
    STUDY_DESIGNS,
    SUBMISSION_TYPES,
    WORKFLOW_STATUSES,
    IrbApplication,
)
from iris.models.scientist import Scientist
from iris.services.scientist_service import normalize_email
from iris.utils.helpers import parse_date_input, parse_datetime

logger = logging.getLogger(__name__)


# Field groups for partial updates
_TEXT_FIELDS = (
    "irb_net_number", "old_number", "title", "short_title", "description",
    "additional_notification_email", "study_duration", "funding_source",
)
_CHOICE_FIELDS = {
    "study_design": STUDY_DESIGNS,
    "risk_level": RISK_LEVELS,
    "protocol_type": PROTOCOL_TYPES,
    "monitoring_frequency": MONITORING_FREQUENCIES,
    "submission_type": SUBMISSION_TYPES,
}
_BOOL_FIELDS = (
    "is_interventional", "requires_monitoring", "conflict_of_interest",
    "multi_site", "international_sites",
)
_LIST_FIELDS = (
    "vulnerable_populations", "data_collection_methods",
    "subject_enrollment_reasons", "reporting_requirements", "documents",
)
_DATE_FIELDS = ("initial_approval_date", "expiration_date")

_IRB_NUMBER_RE = re.compile(r"^IRB-(\d{4})-(\d{3,})$")


# ── Private helpers ────────────────────────────────────────────────────────────


def _get_application(application_id: int) -> IrbApplication:
    application = db.session.get(IrbApplication, application_id)
    if not application:
        raise NotFoundError("IrbApplication", application_id)
    return application


def _require_scientist(scientist_id) -> Scientist:
    scientist_id = _coerce_int("principal_investigator_id", scientist_id)
    scientist = db.session.get(Scientist, scientist_id)
    if not scientist:
        raise NotFoundError("Scientist", scientist_id)
    return scientist


def generate_irb_number(year: int | None = None) -> str:
    """Next free IRB number for ``year``: one above the highest sequence in use."""
    year = year or datetime.now(timezone.utc).year
    numbers = db.session.execute(
        select(IrbApplication.irb_number).where(IrbApplication.irb_number.like(f"IRB-{year}-%"))
    ).scalars()

    highest = 0
    for number in numbers:
        match = _IRB_NUMBER_RE.match(number or "")
        if match:
            highest = max(highest, int(match.group(2)))
    return f"IRB-{year}-{highest + 1:03d}"


def _coerce_int(field: str, value):
    if value in (None, ""):
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer", details={field: value})
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{field} must be an integer", details={field: value}) from exc


def _apply_fields(application: IrbApplication, data: dict) -> list[str]:
    """Copy whitelisted fields from ``data`` onto ``application``.

    Returns the names of the fields that were present in ``data``.
    Unknown keys are ignored.
    """
    touched = []

    for field in _TEXT_FIELDS:
        if field in data:
            value = data[field]
            if value is not None and not isinstance(value, str):
                raise ValidationError(f"{field} must be a string", details={field: "must be a string"})
            setattr(application, field, value.strip() if value is not None else None)
            touched.append(field)

    if "additional_notification_email" in data:
        application.additional_notification_email = (
            normalize_email(application.additional_notification_email, "additional_notification_email")
            if application.additional_notification_email else None
        )

    if "title" in data and not (application.title or "").strip():
        raise ValidationError("title cannot be empty", details={"title": "required"})

    for field, choices in _CHOICE_FIELDS.items():
        if field in data:
            value = data[field] or None
            if value is not None and value not in choices:
                raise ValidationError(
                    f"Invalid {field} '{value}'",
                    details={field: value, "valid": list(choices)},
                )
            setattr(application, field, value)
            touched.append(field)

    for field in _BOOL_FIELDS:
        if field in data:
            if not isinstance(data[field], bool):
                raise ValidationError(f"{field} must be true or false", details={field: data[field]})
            setattr(application, field, data[field])
            touched.append(field)

    for field in _LIST_FIELDS:
        if field in data:
            value = data[field] or []
            if not isinstance(value, list):
                raise ValidationError(f"{field} must be a list", details={field: value})
            setattr(application, field, list(value))
            touched.append(field)

    for field in _DATE_FIELDS:
        if field in data:
            try:
                setattr(application, field, parse_date_input(data[field]))
            except ValueError as exc:
                raise ValidationError(str(exc), details={field: data[field]}) from exc
            touched.append(field)

    if "submission_date" in data:
        try:
            application.submission_date = parse_datetime(data["submission_date"])
        except ValueError as exc:
            raise ValidationError(str(exc), details={"submission_date": data["submission_date"]}) from exc
        touched.append("submission_date")

    if "expected_participants" in data:
        application.expected_participants = _coerce_int(
            "expected_participants", data["expected_participants"],
        )
        touched.append("expected_participants")

    if "research_activity_id" in data:
        application.research_activity_id = _coerce_int(
            "research_activity_id", data["research_activity_id"],
        )
        touched.append("research_activity_id")

    if data.get("principal_investigator_id"):
        application.principal_investigator_id = _require_scientist(
            data["principal_investigator_id"],
        ).id
        touched.append("principal_investigator_id")

    if "form_data" in data:
        application.form_data = data["form_data"]
        touched.append("form_data")

    return touched


def _comment_text(field: str, value) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string", details={field: "must be a string"})
    return value.strip() or None


def _append_log(application: IrbApplication, column: str, entry: dict) -> None:
    # JSON columns are not mutation-tracked; assign a fresh dict
    log = dict(getattr(application, column) or {})
    log[datetime.now(timezone.utc).isoformat()] = entry
    setattr(application, column, log)


def _action_for_target(current: str, target: str) -> str | None:
    for action, rule in IRB_TRANSITIONS.items():
        if current in rule["from"] and rule["to"] == target:
            return action
    return None


def _apply_transition(
    application: IrbApplication,
    action: str,
    *,
    user_id=None,
    comment: str | None = None,
    submission_date_set: bool = False,
) -> dict:
    rule = IRB_TRANSITIONS.get(action)
    if not rule:
        raise TransitionError(application.irb_number, action, application.workflow_status,
                              f"Unknown action: {action}")

    current = application.workflow_status
    if current not in rule["from"]:
        raise TransitionError(application.irb_number, action, current,
                              f"Allowed from: {', '.join(rule['from'])}")

    comment = _comment_text("comment", comment)
    if action in COMMENT_REQUIRED_ACTIONS and not comment:
        raise TransitionError(application.irb_number, action, current, "comment is required")

    now = datetime.now(timezone.utc)
    application.workflow_status = rule["to"]

    if action == "submit":
        if not submission_date_set:
            application.submission_date = now
        if current == "revisions_requested":
            application.version = (application.version or 1) + 1
    elif action == "approve":
        if application.initial_approval_date is None:
            application.initial_approval_date = date.today()

    if comment:
        _append_log(application, "review_comments", {
            "action": action,
            "comment": comment,
            "user_id": user_id,
        })

    logger.info(
        "IRB workflow: %s %s → %s (action=%s user=%s)",
        application.irb_number, current, application.workflow_status, action, user_id,
    )
    return {
        "application_id": application.id,
        "irb_number": application.irb_number,
        "action": action,
        "previous_status": current,
        "new_status": application.workflow_status,
    }


# ── Public API ─────────────────────────────────────────────────────────────────


def available_actions(application: IrbApplication) -> list[str]:
    """Actions whose from-states include the application's current status."""
    return [
        action for action, rule in IRB_TRANSITIONS.items()
        if application.workflow_status in rule["from"]
    ]


def list_applications(
    research_activity_id: int | None = None,
    workflow_status: str | None = None,
) -> list[dict]:
    stmt = select(IrbApplication).order_by(IrbApplication.id.desc())
    if research_activity_id is not None:
        stmt = stmt.where(IrbApplication.research_activity_id == research_activity_id)
    if workflow_status:
        if workflow_status not in WORKFLOW_STATUSES:
            raise ValidationError(
                f"Invalid workflow_status '{workflow_status}'",
                details={"valid": list(WORKFLOW_STATUSES)},
            )
        stmt = stmt.where(IrbApplication.workflow_status == workflow_status)
    return [a.to_dict() for a in db.session.execute(stmt).scalars()]


def get_application(application_id: int) -> dict:
    application = _get_application(application_id)
    result = application.to_dict()
    result["available_actions"] = available_actions(application)
    return result


def create_application(data: dict) -> dict:
    """Create a draft IRB application with a generated IRB number.

    Raises:
        ValidationError: title or principal_investigator_id missing / invalid field.
        NotFoundError: principal investigator does not exist.
    """
    title = data.get("title")
    title = title.strip() if isinstance(title, str) else ""
    if not title:
        raise ValidationError("title is required", details={"title": "required"})
    if not data.get("principal_investigator_id"):
        raise ValidationError(
            "principal_investigator_id is required",
            details={"principal_investigator_id": "required"},
        )
    pi = _require_scientist(data["principal_investigator_id"])

    application = IrbApplication(
        irb_number=generate_irb_number(),
        title=title,
        principal_investigator_id=pi.id,
        workflow_status="draft",
        status="Active",
    )
    _apply_fields(application, data)
    db.session.add(application)
    db.session.commit()
    logger.info("IRB application created: %s '%s'", application.irb_number, title)
    return application.to_dict()


def update_application(application_id: int, data: dict, *, user_id=None) -> dict:
    """Partially update an application (PATCH semantics).

    ``workflow_status`` in the body is honoured only when reachable from the
    current status through IRB_TRANSITIONS; the matching action's side
    effects are applied. ``submission_comment`` is appended to pi_responses.

    Raises:
        NotFoundError, ValidationError, TransitionError
    """
    application = _get_application(application_id)
    current = application.workflow_status

    if application.is_terminal:
        raise TransitionError(application.irb_number, "update", current,
                              "application is closed")

    target = data.get("workflow_status")
    action = None
    if target and target != current:
        if target not in WORKFLOW_STATUSES:
            raise ValidationError(
                f"Invalid workflow_status '{target}'",
                details={"valid": list(WORKFLOW_STATUSES)},
            )
        action = _action_for_target(current, target)
        if action is None:
            raise TransitionError(application.irb_number, f"move to {target}", current,
                                  f"Allowed actions: {', '.join(available_actions(application)) or 'none'}")

    try:
        touched = _apply_fields(application, data)
        if action:
            _apply_transition(
                application,
                action,
                user_id=user_id,
                comment=data.get("review_comment"),
                submission_date_set="submission_date" in touched and application.submission_date is not None,
            )

        pi_comment = _comment_text("submission_comment", data.get("submission_comment"))
        if pi_comment:
            _append_log(application, "pi_responses", {
                "comment": pi_comment,
                "workflow_status": application.workflow_status,
            })
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info("IRB application updated: %s fields=%s", application.irb_number, touched)
    return get_application(application_id)


def transition_application(
    application_id: int,
    action: str,
    user_id=None,
    comment: str | None = None,
) -> dict:
    """Execute a workflow transition.

    Returns:
        {"application_id", "irb_number", "action", "previous_status", "new_status"}
    """
    application = _get_application(application_id)
    result = _apply_transition(application, action, user_id=user_id, comment=comment)
    db.session.commit()
    result["available_actions"] = available_actions(application)
    return result


def delete_application(application_id: int) -> None:
    """Delete a draft application. Submitted/reviewed applications are kept."""
    application = _get_application(application_id)
    if application.workflow_status != "draft":
        raise TransitionError(application.irb_number, "delete", application.workflow_status,
                              "only draft applications can be deleted")
    db.session.delete(application)
    db.session.commit()
    logger.info("IRB application deleted: %s", application.irb_number)
