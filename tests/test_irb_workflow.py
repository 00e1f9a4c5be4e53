"""
Tests: IRB application workflow.

Covers creation and IRB number generation, the transition table (valid and
invalid moves, comment-required actions, side effects), PATCH semantics
including a workflow_status change, terminal-state locking and deletion.
"""

from datetime import datetime, timezone

import pytest

from iris.core.exceptions import TransitionError, ValidationError
from iris.models import db as _db
from iris.models.irb import IrbApplication
from iris.services import irb_workflow


# ── Helpers ──────────────────────────────────────────────────────────────────


def _create(client, pi_id: int, **overrides):
    payload = {"title": "Gut microbiome in preterm infants", "principal_investigator_id": pi_id}
    payload.update(overrides)
    res = client.post("/api/irb-applications", json=payload)
    assert res.status_code == 201, res.get_json()
    return res.get_json()


def _transition(client, app_id: int, action: str, **kwargs):
    payload = {"action": action}
    payload.update(kwargs)
    return client.post(f"/api/irb-applications/{app_id}/transition", json=payload)


def _walk(client, app_id: int, *actions):
    for action in actions:
        kwargs = {"comment": "noted"} if action in ("reject", "request_revisions") else {}
        res = _transition(client, app_id, action, **kwargs)
        assert res.status_code == 200, res.get_json()


# ── Create / read ────────────────────────────────────────────────────────────


class TestCreate:
    def test_create_draft_with_generated_number(self, client, scientist):
        body = _create(client, scientist.id)
        year = datetime.now(timezone.utc).year
        assert body["irb_number"] == f"IRB-{year}-001"
        assert body["workflow_status"] == "draft"
        assert body["status"] == "Active"
        assert body["version"] == 1
        assert body["principal_investigator"] == {"id": scientist.id, "name": "Ada Byron"}

    def test_numbers_increment(self, client, scientist):
        _create(client, scientist.id)
        second = _create(client, scientist.id, title="Second study")
        assert second["irb_number"].endswith("-002")

    def test_generate_skips_to_highest_in_use(self, scientist):
        _db.session.add(IrbApplication(
            irb_number="IRB-2031-041", title="Legacy", principal_investigator_id=scientist.id,
        ))
        _db.session.commit()
        assert irb_workflow.generate_irb_number(2031) == "IRB-2031-042"
        assert irb_workflow.generate_irb_number(2032) == "IRB-2032-001"

    def test_title_required(self, client, scientist):
        res = client.post("/api/irb-applications", json={"principal_investigator_id": scientist.id})
        assert res.status_code == 422
        assert res.get_json()["details"] == {"title": "required"}

    def test_unknown_pi_404(self, client):
        res = client.post("/api/irb-applications", json={"title": "T", "principal_investigator_id": 77})
        assert res.status_code == 404

    def test_non_string_title_422(self, client, scientist):
        res = client.post("/api/irb-applications", json={"title": 5, "principal_investigator_id": scientist.id})
        assert res.status_code == 422

    def test_non_integer_pi_422(self, client):
        res = client.post("/api/irb-applications", json={"title": "T", "principal_investigator_id": {"id": 1}})
        assert res.status_code == 422

    def test_invalid_choice_rejected(self, client, scientist):
        res = client.post("/api/irb-applications", json={
            "title": "T", "principal_investigator_id": scientist.id, "risk_level": "extreme",
        })
        assert res.status_code == 422

    def test_get_includes_available_actions(self, client, scientist):
        created = _create(client, scientist.id)
        body = client.get(f"/api/irb-applications/{created['id']}").get_json()
        assert body["available_actions"] == ["submit"]

    def test_get_missing_404(self, client):
        res = client.get("/api/irb-applications/999")
        assert res.status_code == 404
        assert res.get_json()["code"] == "ERR_NOT_FOUND"

    def test_list_filters(self, client, scientist):
        first = _create(client, scientist.id, research_activity_id=5)
        _create(client, scientist.id, title="Other", research_activity_id=6)
        _walk(client, first["id"], "submit")

        by_activity = client.get("/api/irb-applications?research_activity_id=5").get_json()
        assert [a["id"] for a in by_activity] == [first["id"]]
        submitted = client.get("/api/irb-applications?workflow_status=submitted").get_json()
        assert [a["id"] for a in submitted] == [first["id"]]

    def test_list_bad_status_422(self, client):
        assert client.get("/api/irb-applications?workflow_status=pending").status_code == 422


# ── Transitions ──────────────────────────────────────────────────────────────


class TestTransitions:
    def test_happy_path_to_approved(self, client, scientist):
        app_id = _create(client, scientist.id)["id"]
        _walk(client, app_id, "submit", "start_review")
        res = _transition(client, app_id, "approve", user_id=3)
        assert res.status_code == 200
        body = res.get_json()
        assert body["previous_status"] == "under_review"
        assert body["new_status"] == "approved"
        assert body["available_actions"] == []

        app = client.get(f"/api/irb-applications/{app_id}").get_json()
        assert app["initial_approval_date"] is not None
        assert app["submission_date"] is not None

    def test_cannot_approve_draft(self, client, scientist):
        app_id = _create(client, scientist.id)["id"]
        res = _transition(client, app_id, "approve")
        assert res.status_code == 409
        body = res.get_json()
        assert body["code"] == "ERR_CONFLICT_STATE"
        assert body["details"] == {"action": "approve", "current_status": "draft"}

    def test_unknown_action_400(self, client, scientist):
        app_id = _create(client, scientist.id)["id"]
        res = _transition(client, app_id, "escalate")
        assert res.status_code == 400
        assert "submit" in res.get_json()["details"]["valid_actions"]

    def test_action_required(self, client, scientist):
        app_id = _create(client, scientist.id)["id"]
        res = client.post(f"/api/irb-applications/{app_id}/transition", json={})
        assert res.status_code == 400

    def test_reject_requires_comment(self, client, scientist):
        app_id = _create(client, scientist.id)["id"]
        _walk(client, app_id, "submit", "start_review")
        assert _transition(client, app_id, "reject").status_code == 409
        assert _transition(client, app_id, "reject", comment="   ").status_code == 409

        res = _transition(client, app_id, "reject", comment="Consent form inadequate", user_id=9)
        assert res.status_code == 200
        comments = client.get(f"/api/irb-applications/{app_id}").get_json()["review_comments"]
        assert list(comments.values()) == [
            {"action": "reject", "comment": "Consent form inadequate", "user_id": 9}
        ]

    def test_resubmit_after_revisions_bumps_version(self, client, scientist):
        app_id = _create(client, scientist.id)["id"]
        _walk(client, app_id, "submit", "start_review", "request_revisions", "submit")
        app = client.get(f"/api/irb-applications/{app_id}").get_json()
        assert app["workflow_status"] == "submitted"
        assert app["version"] == 2

    def test_withdraw_returns_to_draft(self, client, scientist):
        app_id = _create(client, scientist.id)["id"]
        _walk(client, app_id, "submit", "withdraw")
        app = client.get(f"/api/irb-applications/{app_id}").get_json()
        assert app["workflow_status"] == "draft"
        assert app["version"] == 1

    def test_terminal_states_have_no_exits(self, client, scientist):
        app_id = _create(client, scientist.id)["id"]
        _walk(client, app_id, "submit", "start_review", "reject")
        for action in ("submit", "withdraw", "approve", "start_review"):
            assert _transition(client, app_id, action).status_code == 409

    def test_service_raises_transition_error(self, scientist):
        created = irb_workflow.create_application({
            "title": "Direct", "principal_investigator_id": scientist.id,
        })
        with pytest.raises(TransitionError) as exc_info:
            irb_workflow.transition_application(created["id"], "start_review")
        assert exc_info.value.current_status == "draft"
        assert exc_info.value.irb_number == created["irb_number"]


# ── PATCH ────────────────────────────────────────────────────────────────────


class TestUpdate:
    def test_partial_update_leaves_other_fields(self, client, scientist):
        created = _create(client, scientist.id, description="Original", risk_level="minimal")
        res = client.patch(f"/api/irb-applications/{created['id']}", json={
            "short_title": "Microbiome", "vulnerable_populations": ["children"], "unknown_key": 1,
        })
        assert res.status_code == 200
        body = res.get_json()
        assert body["short_title"] == "Microbiome"
        assert body["vulnerable_populations"] == ["children"]
        assert body["description"] == "Original"
        assert body["risk_level"] == "minimal"
        assert body["workflow_status"] == "draft"

    def test_wizard_style_submit(self, client, scientist):
        created = _create(client, scientist.id)
        res = client.patch(f"/api/irb-applications/{created['id']}", json={
            "title": "Final title",
            "study_design": "observational",
            "expected_participants": 120,
            "documents": [{"document_type": "protocol", "file_name": "protocol.pdf"}],
            "form_data": {"title": "Final title"},
            "workflow_status": "submitted",
            "submission_date": "2025-03-15T10:30:00Z",
            "submission_comment": "Ready for review",
        })
        assert res.status_code == 200
        body = res.get_json()
        assert body["workflow_status"] == "submitted"
        assert body["expected_participants"] == 120
        assert body["submission_date"].startswith("2025-03-15T10:30:00")
        assert body["documents"][0]["file_name"] == "protocol.pdf"
        assert list(body["pi_responses"].values()) == [
            {"comment": "Ready for review", "workflow_status": "submitted"}
        ]
        assert body["available_actions"] == ["start_review", "withdraw"]

    def test_illegal_status_jump_409(self, client, scientist):
        created = _create(client, scientist.id)
        res = client.patch(f"/api/irb-applications/{created['id']}", json={"workflow_status": "approved"})
        assert res.status_code == 409
        assert client.get(f"/api/irb-applications/{created['id']}").get_json()["workflow_status"] == "draft"

    def test_invalid_status_value_422(self, client, scientist):
        created = _create(client, scientist.id)
        res = client.patch(f"/api/irb-applications/{created['id']}", json={"workflow_status": "done"})
        assert res.status_code == 422

    def test_failed_update_rolls_back(self, client, scientist):
        created = _create(client, scientist.id, short_title="Keep")
        res = client.patch(f"/api/irb-applications/{created['id']}", json={
            "short_title": "Changed", "expected_participants": "many",
        })
        assert res.status_code == 422
        assert client.get(f"/api/irb-applications/{created['id']}").get_json()["short_title"] == "Keep"

    def test_terminal_application_locked(self, client, scientist):
        app_id = _create(client, scientist.id)["id"]
        _walk(client, app_id, "submit", "start_review", "approve")
        res = client.patch(f"/api/irb-applications/{app_id}", json={"short_title": "late edit"})
        assert res.status_code == 409

    def test_non_object_body_400(self, client, scientist):
        created = _create(client, scientist.id)
        res = client.patch(f"/api/irb-applications/{created['id']}", json=["title"])
        assert res.status_code == 400

    def test_notification_email_validated(self, client, scientist):
        created = _create(client, scientist.id)
        url = f"/api/irb-applications/{created['id']}"
        for bad in ("@", "a b@@c"):
            res = client.patch(url, json={"additional_notification_email": bad})
            assert res.status_code == 422, bad
            assert "additional_notification_email" in res.get_json()["details"]

        res = client.patch(url, json={"additional_notification_email": " IRB-Office@University.EDU "})
        assert res.status_code == 200
        assert res.get_json()["additional_notification_email"] == "irb-office@university.edu"

        res = client.patch(url, json={"additional_notification_email": ""})
        assert res.get_json()["additional_notification_email"] is None

    def test_non_string_text_field_422(self, client, scientist):
        created = _create(client, scientist.id, short_title="Keep")
        url = f"/api/irb-applications/{created['id']}"
        res = client.patch(url, json={"short_title": {"a": 1}})
        assert res.status_code == 422
        assert res.get_json()["details"] == {"short_title": "must be a string"}
        assert client.patch(url, json={"title": 5}).status_code == 422
        assert client.get(url).get_json()["short_title"] == "Keep"

    def test_boolean_fields_require_booleans(self, client, scientist):
        created = _create(client, scientist.id)
        url = f"/api/irb-applications/{created['id']}"
        assert client.patch(url, json={"multi_site": "false"}).status_code == 422
        assert client.get(url).get_json()["multi_site"] is False
        res = client.patch(url, json={"multi_site": True})
        assert res.get_json()["multi_site"] is True

    def test_non_string_comment_422(self, client, scientist):
        created = _create(client, scientist.id)
        res = client.patch(f"/api/irb-applications/{created['id']}", json={"submission_comment": ["x"]})
        assert res.status_code == 422

    def test_empty_title_rejected(self, scientist):
        created = irb_workflow.create_application({
            "title": "Has title", "principal_investigator_id": scientist.id,
        })
        with pytest.raises(ValidationError):
            irb_workflow.update_application(created["id"], {"title": "  "})


# ── Delete ───────────────────────────────────────────────────────────────────


class TestDelete:
    def test_delete_draft(self, client, scientist):
        app_id = _create(client, scientist.id)["id"]
        assert client.delete(f"/api/irb-applications/{app_id}").status_code == 204
        assert client.get(f"/api/irb-applications/{app_id}").status_code == 404

    def test_submitted_cannot_be_deleted(self, client, scientist):
        app_id = _create(client, scientist.id)["id"]
        _walk(client, app_id, "submit")
        assert client.delete(f"/api/irb-applications/{app_id}").status_code == 409
