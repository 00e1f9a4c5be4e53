"""
Certification registry service.

Owns all reads/writes of CertificationModule and CertificationRecord and the
derived views built on top of them:

    - certification matrix (active scientists × active modules)
    - grouped matrix for the scientist-by-module grid
    - per-status summary counts
    - expiring-soon reminder feed
    - per-scientist certification history

Records are append-only; the current record per (scientist, module) is the
one with the latest end_date (ties broken by highest id). Status fields in
every payload are computed at read time by ``evaluate_status``.

Layer contract:
    - Raises iris.core.exceptions.* on business-rule failures.
    - Commits its own writes.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta

from sqlalchemy import select

from iris.core.exceptions import ConflictError, NotFoundError, ValidationError
from iris.models import db
from iris.models.certification import (
    DEFAULT_MODULES,
    CertificationModule,
    CertificationRecord,
)
from iris.models.scientist import Scientist
from iris.services.certification_status import (
    EXPIRING_WINDOW_DAYS,
    CertificationStatus,
    evaluate_status,
)
from iris.utils.helpers import add_months, parse_date_input

logger = logging.getLogger(__name__)


# ── Private helpers ────────────────────────────────────────────────────────────


def _recency_key(record: CertificationRecord):
    return (record.end_date or date.min, record.id)


def _current_records(scientist_ids=None, module_ids=None) -> dict[tuple[int, int], CertificationRecord]:
    """Return {(scientist_id, module_id): current record}."""
    stmt = select(CertificationRecord)
    if scientist_ids is not None:
        stmt = stmt.where(CertificationRecord.scientist_id.in_(scientist_ids))
    if module_ids is not None:
        stmt = stmt.where(CertificationRecord.module_id.in_(module_ids))

    current: dict[tuple[int, int], CertificationRecord] = {}
    for record in db.session.execute(stmt).scalars():
        key = (record.scientist_id, record.module_id)
        held = current.get(key)
        if held is None or _recency_key(record) > _recency_key(held):
            current[key] = record
    return current


def _parse_date_field(data: dict, field: str) -> date | None:
    try:
        return parse_date_input(data.get(field))
    except ValueError as exc:
        raise ValidationError(str(exc), details={field: "invalid date"}) from exc


def _id_field(data: dict, field: str) -> int:
    value = data[field]
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer", details={field: "must be an integer"})
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{field} must be an integer", details={field: "must be an integer"}) from exc


def _matrix_row(scientist: Scientist, module: CertificationModule,
                record: CertificationRecord | None, now) -> dict:
    evaluated = evaluate_status(record.end_date if record else None, now)
    return {
        "scientist_id": scientist.id,
        "scientist_name": scientist.name,
        "module_id": module.id,
        "module_name": module.name,
        "certification_id": record.id if record else None,
        "start_date": record.start_date.isoformat() if record and record.start_date else None,
        "end_date": record.end_date.isoformat() if record and record.end_date else None,
        "certificate_file_path": record.certificate_file_path if record else None,
        "report_file_path": record.report_file_path if record else None,
        "status": evaluated.status.value,
        "status_label": evaluated.label,
    }


# ── Modules ────────────────────────────────────────────────────────────────────


def list_modules(active_only: bool = True) -> list[dict]:
    """Return certification modules, core modules first then by name."""
    stmt = select(CertificationModule)
    if active_only:
        stmt = stmt.where(CertificationModule.is_active.is_(True))
    stmt = stmt.order_by(CertificationModule.is_core.desc(), CertificationModule.name)
    return [m.to_dict() for m in db.session.execute(stmt).scalars()]


def create_module(data: dict) -> dict:
    """Create a certification module.

    Raises:
        ValidationError: name missing or expiration_months not a positive integer.
        ConflictError: a module with the same name exists.
    """
    name = data.get("name")
    name = name.strip() if isinstance(name, str) else ""
    if not name:
        raise ValidationError("name is required", details={"name": "required"})

    raw_months = data.get("expiration_months", 36)
    try:
        months = int(raw_months)
    except (TypeError, ValueError):
        months = 0
    if isinstance(raw_months, bool) or months <= 0:
        raise ValidationError(
            "expiration_months must be a positive integer",
            details={"expiration_months": raw_months},
        )

    exists = db.session.execute(
        select(CertificationModule.id).where(CertificationModule.name == name)
    ).first()
    if exists:
        raise ConflictError("CertificationModule", "name", name)

    module = CertificationModule(
        name=name,
        description=data.get("description") or "",
        is_core=bool(data.get("is_core", False)),
        expiration_months=months,
        is_active=bool(data.get("is_active", True)),
    )
    db.session.add(module)
    db.session.commit()
    logger.info("Certification module created: %s (%d months)", name, months)
    return module.to_dict()


def seed_default_modules() -> int:
    """Insert DEFAULT_MODULES that are not yet present. Returns count added."""
    existing = set(db.session.execute(select(CertificationModule.name)).scalars())
    added = 0
    for entry in DEFAULT_MODULES:
        if entry["name"] in existing:
            continue
        db.session.add(CertificationModule(**entry))
        added += 1
    return added


# ── Records ────────────────────────────────────────────────────────────────────


def record_certification(data: dict) -> dict:
    """Append a certification record for a scientist/module pair.

    When only start_date is supplied, end_date is derived from the module's
    expiration_months.

    Raises:
        ValidationError: missing ids, bad dates, end_date before start_date.
        NotFoundError: scientist or module does not exist.
    """
    missing = {f: "required" for f in ("scientist_id", "module_id") if not data.get(f)}
    if missing:
        raise ValidationError("scientist_id and module_id are required", details=missing)

    scientist_id = _id_field(data, "scientist_id")
    module_id = _id_field(data, "module_id")
    for field in ("certificate_file_path", "report_file_path", "notes"):
        if data.get(field) is not None and not isinstance(data[field], str):
            raise ValidationError(f"{field} must be a string", details={field: "must be a string"})

    scientist = db.session.get(Scientist, scientist_id)
    if not scientist:
        raise NotFoundError("Scientist", scientist_id)
    module = db.session.get(CertificationModule, module_id)
    if not module:
        raise NotFoundError("CertificationModule", module_id)

    start = _parse_date_field(data, "start_date")
    end = _parse_date_field(data, "end_date")
    if end is None and start is not None:
        end = add_months(start, module.expiration_months)
    if start and end and end < start:
        raise ValidationError(
            "end_date cannot be earlier than start_date",
            details={"start_date": start.isoformat(), "end_date": end.isoformat()},
        )

    record = CertificationRecord(
        scientist_id=scientist.id,
        module_id=module.id,
        start_date=start,
        end_date=end,
        certificate_file_path=data.get("certificate_file_path"),
        report_file_path=data.get("report_file_path"),
        notes=data.get("notes"),
    )
    db.session.add(record)
    db.session.commit()
    logger.info(
        "Certification recorded: scientist=%s module=%s end=%s",
        scientist.id, module.name, end,
    )

    result = record.to_dict()
    result.update(evaluate_status(end).to_dict())
    return result


def scientist_certifications(scientist_id: int, now=None) -> list[dict]:
    """Full certification history for one scientist, newest first, with status."""
    scientist = db.session.get(Scientist, scientist_id)
    if not scientist:
        raise NotFoundError("Scientist", scientist_id)

    records = sorted(scientist.certifications.all(), key=_recency_key, reverse=True)
    current_ids = {r.id for r in _current_records(scientist_ids=[scientist_id]).values()}
    history = []
    for record in records:
        item = record.to_dict()
        item["module_name"] = record.module.name
        item["is_current"] = record.id in current_ids
        item.update(evaluate_status(record.end_date, now).to_dict())
        history.append(item)
    return history


# ── Matrix views ───────────────────────────────────────────────────────────────


def get_certification_matrix(now=None) -> list[dict]:
    """One row per active scientist × active module with computed status."""
    scientists = db.session.execute(
        select(Scientist).where(Scientist.is_active.is_(True)).order_by(Scientist.name)
    ).scalars().all()
    modules = db.session.execute(
        select(CertificationModule)
        .where(CertificationModule.is_active.is_(True))
        .order_by(CertificationModule.is_core.desc(), CertificationModule.name)
    ).scalars().all()
    if not scientists or not modules:
        return []

    current = _current_records(
        scientist_ids=[s.id for s in scientists],
        module_ids=[m.id for m in modules],
    )
    return [
        _matrix_row(s, m, current.get((s.id, m.id)), now)
        for s in scientists
        for m in modules
    ]


def group_matrix(rows: list[dict], search: str | None = None) -> dict:
    """Pivot flat matrix rows into module headers + one entry per scientist.

    ``search`` filters scientists case-insensitively on name or job title.
    """
    job_titles = {}
    scientist_ids = {row["scientist_id"] for row in rows}
    if scientist_ids:
        job_titles = dict(db.session.execute(
            select(Scientist.id, Scientist.job_title).where(Scientist.id.in_(scientist_ids))
        ).all())

    modules: dict[int, dict] = {}
    scientists: dict[int, dict] = {}
    for row in rows:
        modules.setdefault(row["module_id"], {"id": row["module_id"], "name": row["module_name"]})
        entry = scientists.setdefault(row["scientist_id"], {
            "id": row["scientist_id"],
            "name": row["scientist_name"],
            "job_title": job_titles.get(row["scientist_id"]),
            "certifications": {},
        })
        entry["certifications"][str(row["module_id"])] = row

    people = list(scientists.values())
    if search:
        term = search.lower()
        people = [
            p for p in people
            if term in p["name"].lower() or (p["job_title"] and term in p["job_title"].lower())
        ]
    return {"modules": list(modules.values()), "scientists": people}


def summarize_matrix(rows: list[dict]) -> dict:
    """Count matrix cells per status."""
    counts = {s.value: 0 for s in CertificationStatus}
    for row in rows:
        counts[row["status"]] += 1
    counts["total"] = len(rows)
    return counts


def list_expiring(within_days: int = EXPIRING_WINDOW_DAYS, now=None) -> list[dict]:
    """Current certifications ending between today and today + within_days.

    Only the current record per (scientist, module) is considered, so a
    renewed certification does not resurface its superseded predecessor.
    """
    if within_days < 0:
        raise ValidationError("within_days must be >= 0", details={"within_days": within_days})

    today = _reference_date(now)
    horizon = today + timedelta(days=within_days)

    active_scientists = select(Scientist.id).where(Scientist.is_active.is_(True))
    active_modules = select(CertificationModule.id).where(CertificationModule.is_active.is_(True))
    current = _current_records(
        scientist_ids=list(db.session.execute(active_scientists).scalars()),
        module_ids=list(db.session.execute(active_modules).scalars()),
    )

    due = [
        r for r in current.values()
        if r.end_date is not None and today <= r.end_date <= horizon
    ]
    due.sort(key=lambda r: (r.end_date, r.id))

    items = []
    for record in due:
        item = record.to_dict()
        item["scientist_name"] = record.scientist.name
        item["scientist_email"] = record.scientist.email
        item["module_name"] = record.module.name
        item.update(evaluate_status(record.end_date, today).to_dict())
        items.append(item)
    return items


def _reference_date(now=None) -> date:
    """Normalise an optional date/datetime reference point to a date."""
    if now is None:
        return date.today()
    if isinstance(now, datetime):
        return now.date()
    return now
