"""
Scientist directory Blueprint.

Endpoints:
    GET    /api/scientists                          ?search=&limit=&offset=
    POST   /api/scientists                          { name, email, job_title?, department? }
    GET    /api/scientists/<id>
    GET    /api/scientists/<id>/certifications      history with computed status
"""

import logging

from flask import Blueprint, jsonify, request
from sqlalchemy import or_, select

from iris.blueprints import paginate_query
from iris.models.scientist import Scientist
from iris.services import certification_service, scientist_service
from iris.utils.errors import E, api_error
from iris.utils.helpers import db_commit_or_error, get_or_404

logger = logging.getLogger(__name__)

scientist_bp = Blueprint("scientist", __name__, url_prefix="/api")


@scientist_bp.route("/scientists", methods=["GET"])
def list_scientists():
    stmt = select(Scientist).order_by(Scientist.name)
    search = (request.args.get("search") or "").strip()
    if search:
        like = f"%{search}%"
        stmt = stmt.where(or_(Scientist.name.ilike(like), Scientist.job_title.ilike(like)))
    items, total = paginate_query(stmt)
    return jsonify({"items": [s.to_dict() for s in items], "total": total}), 200


@scientist_bp.route("/scientists", methods=["POST"])
def create_scientist():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return api_error(E.VALIDATION_INVALID, "JSON object body required")
    if not isinstance(data.get("name"), str) or not data["name"].strip():
        return api_error(E.VALIDATION_REQUIRED, "Field 'name' is required.")

    scientist = scientist_service.create_scientist(data)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(scientist.to_dict()), 201


@scientist_bp.route("/scientists/<int:scientist_id>", methods=["GET"])
def get_scientist(scientist_id: int):
    scientist, err = get_or_404(Scientist, scientist_id)
    if err:
        return err
    return jsonify(scientist.to_dict()), 200


@scientist_bp.route("/scientists/<int:scientist_id>/certifications", methods=["GET"])
def get_scientist_certifications(scientist_id: int):
    history = certification_service.scientist_certifications(scientist_id)
    return jsonify({"items": history, "total": len(history)}), 200
