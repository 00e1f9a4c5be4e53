"""
Certification status evaluation.

Maps a certification end date to one of four display states:

    never     — no end date on file ("Never completed")
    expired   — end date is before today
    expiring  — end date is today or within the next EXPIRING_WINDOW_DAYS days
    valid     — end date is further out than the expiring window

Status is never stored; every read recomputes it from end_date and "now".

Usage:
    from iris.services.certification_status import evaluate_status

    result = evaluate_status(record.end_date)
    result.status          # CertificationStatus.EXPIRING
    result.to_dict()       # {"status": "expiring", "label": "Expiring", ...}
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum

EXPIRING_WINDOW_DAYS = 30


class CertificationStatus(str, Enum):
    VALID = "valid"
    EXPIRING = "expiring"
    EXPIRED = "expired"
    NEVER = "never"


STATUS_LABELS = {
    CertificationStatus.VALID: "Valid",
    CertificationStatus.EXPIRING: "Expiring",
    CertificationStatus.EXPIRED: "Expired",
    CertificationStatus.NEVER: "Never completed",
}


@dataclass(frozen=True)
class StatusResult:
    """Evaluated display state for one certification."""

    status: CertificationStatus
    label: str
    days_until_expiry: int | None = None

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "label": self.label,
            "days_until_expiry": self.days_until_expiry,
        }


def _as_date(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def days_until(end_date: date | datetime, now: date | datetime | None = None) -> int:
    """Whole calendar days from ``now`` to ``end_date`` (negative once past)."""
    today = _as_date(now) if now is not None else date.today()
    return (_as_date(end_date) - today).days


def evaluate_status(
    end_date: date | datetime | None,
    now: date | datetime | None = None,
) -> StatusResult:
    """Evaluate the display status of a certification.

    Args:
        end_date: Certification end date, or None when never completed.
            Callers parse/validate raw input first; invalid dates arrive as None.
        now: Reference point, defaults to today. Datetimes are reduced to
            their calendar date.

    Returns:
        StatusResult. Both window boundaries (0 and 30 days) are ``expiring``.
    """
    if end_date is None:
        return StatusResult(CertificationStatus.NEVER, STATUS_LABELS[CertificationStatus.NEVER])

    remaining = days_until(end_date, now)
    if remaining < 0:
        status = CertificationStatus.EXPIRED
    elif remaining <= EXPIRING_WINDOW_DAYS:
        status = CertificationStatus.EXPIRING
    else:
        status = CertificationStatus.VALID
    return StatusResult(status, STATUS_LABELS[status], remaining)
