"""
Certification Blueprint.

Endpoints:
    GET    /api/certifications/matrix
           Query params: grouped (bool), search (str, grouped only)
           Returns: flat list of scientist × module rows with computed status,
                    or {"modules": [...], "scientists": [...]} when grouped.

    GET    /api/certifications/summary
           Returns: {"valid": n, "expiring": n, "expired": n, "never": n, "total": n}

    GET    /api/certifications/expiring
           Query params: within_days (int, default EXPIRING_REMINDER_DAYS)
           Returns: current certifications ending inside the window.

    POST   /api/certifications
           Body: { "scientist_id", "module_id", "start_date"?, "end_date"?,
                   "certificate_file_path"?, "report_file_path"?, "notes"? }
           Returns: 201 with the new record and its status.

    GET    /api/certification-modules        ?include_inactive=1
    POST   /api/certification-modules

Layer contract:
    - Blueprint: parse query/body, call certification_service, return JSON.
    - Service raises NotFoundError / ValidationError / ConflictError; the
      app-level handlers turn them into api_error responses.
"""

import logging

from flask import Blueprint, current_app, jsonify, request

from iris.services import certification_service
from iris.utils.errors import E, api_error

logger = logging.getLogger(__name__)

certification_bp = Blueprint("certification", __name__, url_prefix="/api")


def _truthy(value: str | None) -> bool:
    return (value or "").lower() in ("1", "true", "yes")


@certification_bp.route("/certifications/matrix", methods=["GET"])
def get_matrix():
    """Certification matrix. Status is recomputed on every request."""
    rows = certification_service.get_certification_matrix()
    if _truthy(request.args.get("grouped")):
        return jsonify(certification_service.group_matrix(rows, request.args.get("search"))), 200
    return jsonify(rows), 200


@certification_bp.route("/certifications/summary", methods=["GET"])
def get_summary():
    rows = certification_service.get_certification_matrix()
    return jsonify(certification_service.summarize_matrix(rows)), 200


@certification_bp.route("/certifications/expiring", methods=["GET"])
def get_expiring():
    """Reminder feed: current certifications ending within N days."""
    default_days = current_app.config.get("EXPIRING_REMINDER_DAYS", 30)
    raw = request.args.get("within_days", default_days)
    try:
        within_days = int(raw)
    except (TypeError, ValueError):
        return api_error(E.VALIDATION_INVALID, "within_days must be an integer")

    items = certification_service.list_expiring(within_days=within_days)
    return jsonify({"items": items, "total": len(items), "within_days": within_days}), 200


@certification_bp.route("/certifications", methods=["POST"])
def create_certification():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return api_error(E.VALIDATION_INVALID, "JSON object body required")
    record = certification_service.record_certification(data)
    return jsonify(record), 201


@certification_bp.route("/certification-modules", methods=["GET"])
def list_modules():
    active_only = not _truthy(request.args.get("include_inactive"))
    return jsonify(certification_service.list_modules(active_only=active_only)), 200


@certification_bp.route("/certification-modules", methods=["POST"])
def create_module():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return api_error(E.VALIDATION_INVALID, "JSON object body required")
    if not isinstance(data.get("name"), str) or not data["name"].strip():
        return api_error(E.VALIDATION_REQUIRED, "Field 'name' is required.")
    module = certification_service.create_module(data)
    return jsonify(module), 201
