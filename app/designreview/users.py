from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from app.designreview.accounts import (
    delete_user,
    get_user_or_404,
    invitation_payload,
    issue_invitation,
    list_users,
    toggle_active,
    update_profile,
    user_to_dict,
)
from app.designreview.db import db_session
from app.designreview.models import ROLE_CLIENT
from app.designreview.modules.projects.service import client_projects_summary
from app.designreview.rbac import current_user, ensure_self_or_admin, require_permission
from app.designreview.utils import parse_bool_arg, request_payload

bp = Blueprint("users", __name__)


@bp.get("")
@require_permission("users.manage")
def users_list():
    s = db_session()
    out = []
    for u in list_users(s, clients_only=parse_bool_arg(request.args.get("clients"))):
        row = user_to_dict(u)
        if u.role == ROLE_CLIENT:
            row["projects"] = client_projects_summary(s, u.id)
        out.append(row)
    return jsonify(out)


# ---------- Profile (caller) ----------
# Registered ahead of /<int:user_id> so "profile" is never read as an id.
@bp.get("/profile")
@require_permission("profile.view")
def profile_get():
    return jsonify(user_to_dict(current_user()))


@bp.put("/profile")
@require_permission("profile.edit")
def profile_update():
    s = db_session()
    u = update_profile(s, current_user(), request_payload())
    s.commit()
    return jsonify({"message": "Profile updated successfully", "user": user_to_dict(u)})


# ---------- By id ----------
@bp.get("/<int:user_id>")
@require_permission("profile.view")
def users_detail(user_id: int):
    ensure_self_or_admin(current_user(), user_id)
    return jsonify(user_to_dict(get_user_or_404(db_session(), user_id)))


@bp.put("/<int:user_id>")
@require_permission("profile.edit")
def users_update(user_id: int):
    ensure_self_or_admin(current_user(), user_id)
    s = db_session()
    u = update_profile(s, get_user_or_404(s, user_id), request_payload())
    s.commit()
    return jsonify({"message": "User updated successfully", "user": user_to_dict(u)})


@bp.delete("/<int:user_id>")
@require_permission("users.manage")
def users_delete(user_id: int):
    s = db_session()
    actor = current_user()
    delete_user(s, get_user_or_404(s, user_id), actor=actor)
    s.commit()
    current_app.logger.info("User deleted user_id=%s by actor_user_id=%s", user_id, actor.id)
    return jsonify({"message": "User deleted successfully"})


@bp.patch("/<int:user_id>/status")
@require_permission("users.manage")
def users_toggle_status(user_id: int):
    s = db_session()
    u = toggle_active(s, get_user_or_404(s, user_id), actor=current_user())
    s.commit()
    state = "activated" if u.is_active else "deactivated"
    return jsonify({"message": f"User {state} successfully", "user": user_to_dict(u)})


@bp.post("/<int:user_id>/invitation")
@require_permission("users.manage")
def users_invite(user_id: int):
    s = db_session()
    u = get_user_or_404(s, user_id)
    token = issue_invitation(s, u, actor=current_user())
    s.commit()
    return jsonify({"message": "Invitation issued", "invitation": invitation_payload(u, token), "user": user_to_dict(u)})
