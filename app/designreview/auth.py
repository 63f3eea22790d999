from __future__ import annotations

import uuid

from flask import Blueprint, current_app, g, jsonify, request

from app.designreview.accounts import (
    authenticate,
    redeem_invitation,
    register_user,
    user_to_dict,
)
from app.designreview.audit import record_event
from app.designreview.constants import EMAIL_MAX_LENGTH
from app.designreview.db import db_session
from app.designreview.errors import Unauthenticated
from app.designreview.models import User
from app.designreview.rbac import current_user, require_login
from app.designreview.security import TokenError, create_access_token, decode_access_token
from app.designreview.utils import normalize_email, request_payload

bp = Blueprint("auth", __name__)

INVALID_CREDENTIALS = "Invalid email or password"


def _bearer_token() -> str | None:
    header = request.headers.get("Authorization") or ""
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def load_current_user() -> None:
    """
    Resolves g.current_user from the bearer token (None when absent or invalid;
    g.auth_error keeps the reason for the 401).
    Also assigns a simple per-request request_id (for audit/log correlation).
    """
    if not getattr(g, "request_id", None):
        g.request_id = uuid.uuid4().hex
    g.current_user = None
    g.auth_error = None
    if request.path.startswith(("/health", "/healthz")):
        return

    token = _bearer_token()
    if not token:
        return

    try:
        user_id = decode_access_token(token)
    except TokenError as e:
        g.auth_error = str(e)
        return

    user = db_session().get(User, user_id)
    if not user or not user.is_active:
        g.auth_error = "User not found or inactive"
        return
    g.current_user = user


def _session_response(user: User, message: str, status: int = 200):
    return jsonify({"message": message, "token": create_access_token(user.id), "user": user_to_dict(user)}), status


@bp.post("/register")
def register():
    s = db_session()
    user = register_user(s, request_payload())
    s.commit()
    current_app.logger.info("Registered user_id=%s role=%s", user.id, user.role)
    return _session_response(user, "User registered successfully", 201)


@bp.post("/login")
def login():
    payload = request_payload()
    email = normalize_email(payload.get("email"))
    password = payload.get("password") or ""

    s = db_session()
    user = authenticate(s, email, password)
    if not user:
        record_event(
            s,
            actor=None,
            action="auth.login_failed",
            entity_type="User",
            metadata={"email": email[:EMAIL_MAX_LENGTH]} if email else None,
        )
        s.commit()
        raise Unauthenticated(INVALID_CREDENTIALS)

    record_event(s, actor=user, action="auth.login", entity_type="User", entity_id=str(user.id))
    s.commit()
    return _session_response(user, "Login successful")


@bp.get("/me")
@require_login
def me():
    return jsonify({"user": user_to_dict(current_user())})


@bp.post("/invitations/redeem")
def redeem():
    payload = request_payload()
    s = db_session()
    user = redeem_invitation(s, payload.get("token") or "", payload.get("password") or "")
    s.commit()
    return _session_response(user, "Invitation accepted")
