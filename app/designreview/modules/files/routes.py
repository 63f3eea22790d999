from __future__ import annotations

from flask import Blueprint, jsonify, request

from app.designreview.db import db_session
from app.designreview.modules.files.service import (
    file_to_dict,
    get_file_or_404,
    list_project_files,
    purge_blobs,
    store_project_file,
)
from app.designreview.modules.projects.service import append_activity, get_accessible_project, get_project_or_404
from app.designreview.rbac import current_user, ensure_project_access, require_permission

bp = Blueprint("files", __name__)


@bp.get("/project/<int:project_id>")
@require_permission("files.view")
def files_for_project(project_id: int):
    s = db_session()
    project = get_accessible_project(s, current_user(), project_id)
    return jsonify([file_to_dict(f) for f in list_project_files(s, project)])


@bp.post("/project/<int:project_id>")
@require_permission("files.manage")
def files_upload(project_id: int):
    s = db_session()
    user = current_user()
    # Resolve the project before any bytes reach storage.
    project = get_project_or_404(s, project_id)
    pf = store_project_file(s, project, request.files.get("file"), display_name=request.form.get("name"), actor=user)
    append_activity(s, project.id, user, f"New file uploaded: {pf.name}")
    return jsonify({"message": "File uploaded successfully", "file": file_to_dict(pf)}), 201


@bp.get("/<int:file_id>")
@require_permission("files.view")
def files_detail(file_id: int):
    s = db_session()
    pf = get_file_or_404(s, file_id)
    ensure_project_access(current_user(), pf.project, "Not authorized to access this file")
    return jsonify(file_to_dict(pf))


@bp.delete("/<int:file_id>")
@require_permission("files.manage")
def files_delete(file_id: int):
    s = db_session()
    user = current_user()
    pf = get_file_or_404(s, file_id)
    project_id, name, key = pf.project_id, pf.name, pf.storage_key
    s.delete(pf)
    s.commit()
    purge_blobs([key])
    append_activity(s, project_id, user, f"File deleted: {name}")
    return jsonify({"message": "File deleted successfully"})
