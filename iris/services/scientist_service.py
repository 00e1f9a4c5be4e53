"""
Scientist directory service.

Validation and normalisation for Scientist rows. E-mail addresses are checked
with email-validator (syntax only, no DNS lookups) and stored in normalised form.
"""

import logging

from email_validator import EmailNotValidError, validate_email
from sqlalchemy import select

from iris.core.exceptions import ConflictError, ValidationError
from iris.models import db
from iris.models.scientist import Scientist

logger = logging.getLogger(__name__)


def normalize_email(value, field: str = "email") -> str:
    """Return the normalised address or raise ValidationError."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required", details={field: "required"})
    try:
        return validate_email(value.strip().lower(), check_deliverability=False).normalized
    except EmailNotValidError as e:
        raise ValidationError(f"Invalid {field}: {e}", details={field: str(e)}) from e


def create_scientist(data: dict) -> Scientist:
    """Validate and stage a new Scientist. The caller commits.

    Raises:
        ValidationError: name missing or e-mail invalid.
        ConflictError: e-mail already registered.
    """
    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("name is required", details={"name": "required"})
    email = normalize_email(data.get("email"))

    taken = db.session.execute(
        select(Scientist.id).where(Scientist.email == email)
    ).first()
    if taken:
        raise ConflictError("Scientist", "email", email)

    scientist = Scientist(
        name=name.strip(),
        email=email,
        job_title=data.get("job_title"),
        department=data.get("department"),
        is_active=data.get("is_active", True) is not False,
    )
    db.session.add(scientist)
    logger.info("Scientist staged: %s <%s>", scientist.name, email)
    return scientist
