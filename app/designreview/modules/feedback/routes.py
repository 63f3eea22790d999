from __future__ import annotations

from flask import Blueprint, jsonify

from app.designreview.db import db_session
from app.designreview.modules.feedback.service import (
    create_feedback,
    feedback_to_dict,
    get_feedback_or_404,
    list_file_feedback,
    toggle_resolved,
    update_feedback,
)
from app.designreview.modules.files.service import get_file_or_404
from app.designreview.modules.projects.service import append_activity, get_project_or_404
from app.designreview.rbac import (
    current_user,
    ensure_feedback_author_or_admin,
    ensure_project_access,
    require_permission,
)
from app.designreview.utils import request_payload

bp = Blueprint("feedback", __name__)


def _accessible_file(s, file_id: int):
    pf = get_file_or_404(s, file_id)
    ensure_project_access(current_user(), pf.project, "Not authorized to access this file")
    return pf


def _accessible_feedback(s, feedback_id: int):
    fb = get_feedback_or_404(s, feedback_id)
    ensure_project_access(current_user(), get_project_or_404(s, fb.project_id))
    return fb


@bp.get("/file/<int:file_id>")
@require_permission("feedback.view")
def feedback_for_file(file_id: int):
    s = db_session()
    pf = _accessible_file(s, file_id)
    return jsonify([feedback_to_dict(fb) for fb in list_file_feedback(s, pf)])


@bp.post("/file/<int:file_id>")
@require_permission("feedback.create")
def feedback_create(file_id: int):
    s = db_session()
    user = current_user()
    pf = _accessible_file(s, file_id)
    fb = create_feedback(s, pf, request_payload(), user)
    s.commit()
    append_activity(s, fb.project_id, user, f"New feedback added by {user.name}")
    return jsonify({"message": "Feedback added successfully", "feedback": feedback_to_dict(fb)}), 201


@bp.put("/<int:feedback_id>")
@require_permission("feedback.edit")
def feedback_update(feedback_id: int):
    s = db_session()
    user = current_user()
    fb = _accessible_feedback(s, feedback_id)
    ensure_feedback_author_or_admin(user, fb, "update")
    update_feedback(s, fb, request_payload())
    s.commit()
    append_activity(s, fb.project_id, user, f"Feedback updated by {user.name}")
    return jsonify({"message": "Feedback updated successfully", "feedback": feedback_to_dict(fb)})


@bp.delete("/<int:feedback_id>")
@require_permission("feedback.edit")
def feedback_delete(feedback_id: int):
    s = db_session()
    user = current_user()
    fb = _accessible_feedback(s, feedback_id)
    ensure_feedback_author_or_admin(user, fb, "delete")
    project_id = fb.project_id
    s.delete(fb)
    s.commit()
    append_activity(s, project_id, user, f"Feedback deleted by {user.name}")
    return jsonify({"message": "Feedback deleted successfully"})


@bp.patch("/<int:feedback_id>/resolve")
@require_permission("feedback.resolve")
def feedback_resolve(feedback_id: int):
    s = db_session()
    user = current_user()
    fb = get_feedback_or_404(s, feedback_id)
    outcome = toggle_resolved(fb)
    s.commit()
    append_activity(s, fb.project_id, user, f"Feedback {outcome} by {user.name}")
    return jsonify({"message": f"Feedback {outcome}", "feedback": feedback_to_dict(fb)})
