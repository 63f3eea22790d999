from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from app.designreview.db import db_session
from app.designreview.modules.files.service import purge_blobs
from app.designreview.modules.projects.service import (
    append_activity,
    create_project,
    delete_project,
    get_accessible_project,
    get_project_or_404,
    list_projects,
    project_to_dict,
    update_project,
)
from app.designreview.rbac import current_user, require_permission
from app.designreview.utils import request_payload

bp = Blueprint("projects", __name__)


# ---------- List ----------
@bp.get("")
@require_permission("projects.view")
def projects_list():
    s = db_session()
    projects = list_projects(
        s,
        current_user(),
        client_id=request.args.get("clientId"),
        status=request.args.get("status"),
        search=request.args.get("search"),
    )
    return jsonify([project_to_dict(p) for p in projects])


# ---------- Create ----------
@bp.post("")
@require_permission("projects.manage")
def projects_create():
    s = db_session()
    user = current_user()
    project, invitation = create_project(s, request_payload(), user)
    s.commit()
    current_app.logger.info("Project created project_id=%s client_user_id=%s", project.id, project.client_user_id)

    body = {"message": "Project created successfully", "project": project_to_dict(project, include_activity=True)}
    if invitation:
        body["invitation"] = invitation
    return jsonify(body), 201


# ---------- Detail ----------
@bp.get("/<int:project_id>")
@require_permission("projects.view")
def projects_detail(project_id: int):
    s = db_session()
    project = get_accessible_project(s, current_user(), project_id)
    return jsonify(project_to_dict(project, include_activity=True))


@bp.put("/<int:project_id>")
@require_permission("projects.manage")
def projects_update(project_id: int):
    s = db_session()
    user = current_user()
    project = get_project_or_404(s, project_id)
    action = update_project(s, project, request_payload())
    s.commit()
    append_activity(s, project.id, user, action)
    s.expire(project)
    return jsonify({"message": "Project updated successfully", "project": project_to_dict(project, include_activity=True)})


@bp.delete("/<int:project_id>")
@require_permission("projects.manage")
def projects_delete(project_id: int):
    s = db_session()
    project = get_project_or_404(s, project_id)
    keys = delete_project(s, project)
    s.commit()
    purge_blobs(keys)
    current_app.logger.info("Project deleted project_id=%s blobs=%s", project_id, len(keys))
    return jsonify({"message": "Project deleted successfully"})
