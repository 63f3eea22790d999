from __future__ import annotations

from flask import Blueprint, jsonify, request

from app.designreview.db import db_session
from app.designreview.modules.messages.service import (
    create_message,
    get_message_or_404,
    list_project_messages,
    mark_read,
    message_to_dict,
)
from app.designreview.modules.projects.service import append_activity, get_accessible_project, get_project_or_404
from app.designreview.rbac import current_user, ensure_project_access, require_permission
from app.designreview.utils import parse_id, request_payload

bp = Blueprint("messages", __name__)


@bp.get("/project/<int:project_id>")
@require_permission("messages.view")
def messages_for_project(project_id: int):
    s = db_session()
    project = get_accessible_project(s, current_user(), project_id)
    return jsonify([message_to_dict(m, request.host_url) for m in list_project_messages(s, project)])


@bp.post("")
@require_permission("messages.send")
def messages_create():
    s = db_session()
    user = current_user()
    payload = request_payload()
    project_id = parse_id(payload.get("projectId"), "projectId is required")
    project = get_accessible_project(s, user, project_id)

    m = create_message(s, project, payload.get("text"), request.files.getlist("attachments"), user)
    suffix = " with attachments" if m.attachments else ""
    append_activity(s, project.id, user, f"{user.name} sent a message{suffix}")
    return jsonify({"message": "Message sent successfully", "data": message_to_dict(m, request.host_url)}), 201


@bp.patch("/<int:message_id>/read")
@require_permission("messages.view")
def messages_mark_read(message_id: int):
    s = db_session()
    m = get_message_or_404(s, message_id)
    ensure_project_access(current_user(), get_project_or_404(s, m.project_id))
    if mark_read(m):
        s.commit()
    return jsonify({"message": "Message marked as read", "data": message_to_dict(m, request.host_url)})
