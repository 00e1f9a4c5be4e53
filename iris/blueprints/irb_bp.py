"""
IRB Application Blueprint.

Endpoints:
    GET    /api/irb-applications
           Query params: research_activity_id (int), workflow_status (str)

    POST   /api/irb-applications
           Body: { "title", "principal_investigator_id", ...editable fields }
           Returns: 201 with the new draft application (irb_number generated).

    GET    /api/irb-applications/<id>
           Returns: application + available_actions.

    PATCH  /api/irb-applications/<id>
           Body: any subset of editable fields, optionally
                 "workflow_status" (must be a legal next status),
                 "submission_comment" (appended to pi_responses),
                 "review_comment" (stored with the status change).

    DELETE /api/irb-applications/<id>
           Draft applications only.

    POST   /api/irb-applications/<id>/transition
           Body: { "action": "submit|start_review|request_revisions|approve|reject|withdraw",
                   "user_id"?: <int>, "comment"?: "..." }

Layer contract:
    - NO db.session calls here — all writes owned by irb_workflow.
    - TransitionError → 409, ValidationError → 422, NotFoundError → 404
      (app-level handlers).
"""

import logging

from flask import Blueprint, jsonify, request

from iris.models.irb import IRB_TRANSITIONS
from iris.services import irb_workflow
from iris.utils.errors import E, api_error

logger = logging.getLogger(__name__)

irb_bp = Blueprint("irb", __name__, url_prefix="/api/irb-applications")


@irb_bp.route("", methods=["GET"])
def list_applications():
    research_activity_id = request.args.get("research_activity_id", type=int)
    workflow_status = request.args.get("workflow_status") or None
    items = irb_workflow.list_applications(
        research_activity_id=research_activity_id,
        workflow_status=workflow_status,
    )
    return jsonify(items), 200


@irb_bp.route("", methods=["POST"])
def create_application():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return api_error(E.VALIDATION_INVALID, "JSON object body required")
    return jsonify(irb_workflow.create_application(data)), 201


@irb_bp.route("/<int:application_id>", methods=["GET"])
def get_application(application_id: int):
    return jsonify(irb_workflow.get_application(application_id)), 200


@irb_bp.route("/<int:application_id>", methods=["PATCH"])
def update_application(application_id: int):
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return api_error(E.VALIDATION_INVALID, "JSON object body required")
    result = irb_workflow.update_application(
        application_id, data, user_id=data.get("user_id"),
    )
    return jsonify(result), 200


@irb_bp.route("/<int:application_id>", methods=["DELETE"])
def delete_application(application_id: int):
    irb_workflow.delete_application(application_id)
    return "", 204


@irb_bp.route("/<int:application_id>/transition", methods=["POST"])
def transition_application(application_id: int):
    data = request.get_json(silent=True) or {}
    action = (data.get("action") or "").strip()
    if not action:
        return api_error(E.VALIDATION_REQUIRED, "Field 'action' is required.")
    if action not in IRB_TRANSITIONS:
        return api_error(
            E.VALIDATION_INVALID,
            f"Invalid action '{action}'.",
            details={"valid_actions": sorted(IRB_TRANSITIONS)},
        )

    result = irb_workflow.transition_application(
        application_id,
        action,
        user_id=data.get("user_id"),
        comment=data.get("comment"),
    )
    return jsonify(result), 200
