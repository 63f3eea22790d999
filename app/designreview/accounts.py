"""
Identity & credential store: user records, password checks, invitations.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

from flask import current_app
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from app.designreview.audit import record_event
from app.designreview.constants import AVATAR_MAX_LENGTH, EMAIL_MAX_LENGTH, MIN_PASSWORD_LENGTH, NAME_MAX_LENGTH
from app.designreview.errors import Conflict, NotFound, ValidationError
from app.designreview.models import ROLE_ADMIN, ROLE_CLIENT, ROLES, AuditEvent, User
from app.designreview.security import (
    hash_password,
    invitation_digest_matches,
    hash_invitation_token,
    new_invitation_token,
    unusable_password_hash,
    verify_password,
)
from app.designreview.utils import check_length, clean_str, is_valid_email, isoformat, normalize_email


def user_to_dict(u: User) -> dict[str, Any]:
    return {
        "id": u.id,
        "name": u.name,
        "email": u.email,
        "role": u.role,
        "company": u.company,
        "position": u.position,
        "avatar": u.avatar or "",
        "isActive": u.is_active,
        "hasPendingInvitation": u.invitation_token_hash is not None,
        "createdAt": isoformat(u.created_at),
        "updatedAt": isoformat(u.updated_at),
    }


def user_summary(u: User | None) -> dict[str, Any] | None:
    if u is None:
        return None
    return {"id": u.id, "name": u.name, "email": u.email, "role": u.role}


def get_user_by_email(s: Session, email: str) -> User | None:
    return s.execute(select(User).where(User.email == normalize_email(email))).scalar_one_or_none()


def get_user_or_404(s: Session, user_id: int) -> User:
    u = s.get(User, user_id)
    if not u:
        raise NotFound("User not found")
    return u


def validate_password(password: str) -> None:
    if len(password or "") < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")


def register_user(s: Session, payload: dict) -> User:
    """Self-service registration. The caller commits."""
    name = clean_str(payload.get("name"))
    email = normalize_email(payload.get("email"))
    password = payload.get("password") or ""
    role = clean_str(payload.get("role")) or ROLE_CLIENT

    errors = []
    if not name:
        errors.append("Name is required")
    if not is_valid_email(email):
        errors.append("A valid email is required")
    if len(password) < MIN_PASSWORD_LENGTH:
        errors.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    if role not in ROLES:
        errors.append(f"Role must be one of: {', '.join(ROLES)}")
    elif role == ROLE_ADMIN and not current_app.config.get("ALLOW_ADMIN_REGISTRATION"):
        errors.append("Admin accounts cannot be self-registered")
    if errors:
        raise ValidationError(", ".join(errors))
    check_length(name, "Name", NAME_MAX_LENGTH)
    check_length(email, "Email", EMAIL_MAX_LENGTH)
    company = check_length(clean_str(payload.get("company")) or None, "Company", NAME_MAX_LENGTH)
    position = check_length(clean_str(payload.get("position")) or None, "Position", NAME_MAX_LENGTH)

    if get_user_by_email(s, email):
        raise Conflict("User already exists with this email")

    u = User(
        name=name,
        email=email,
        password_hash=hash_password(password),
        role=role,
        company=company,
        position=position,
        avatar="",
        is_active=True,
    )
    s.add(u)
    s.flush()
    record_event(s, actor=u, action="auth.register", entity_type="User", entity_id=str(u.id), metadata={"role": role})
    return u


def authenticate(s: Session, email: str, password: str) -> User | None:
    """
    Returns the user on success, None otherwise. Callers must not reveal which
    check failed.
    """
    u = get_user_by_email(s, email)
    if not u:
        verify_password(password, None)
        return None
    if not verify_password(password, u.password_hash):
        return None
    if not u.is_active:
        return None
    return u


def provision_client(s: Session, *, name: str, email: str, actor: User) -> tuple[User, str]:
    """
    Create a client account on an admin's behalf. The client gets no usable
    password; the returned invitation token lets them set one.
    """
    name = clean_str(name)
    email = normalize_email(email)
    if not name or not is_valid_email(email):
        raise ValidationError("Client name and a valid client email are required")
    check_length(name, "Client name", NAME_MAX_LENGTH)
    check_length(email, "Client email", EMAIL_MAX_LENGTH)
    if get_user_by_email(s, email):
        raise Conflict("User already exists with this email")

    u = User(
        name=name,
        email=email,
        password_hash=unusable_password_hash(),
        role=ROLE_CLIENT,
        avatar="",
        is_active=True,
    )
    s.add(u)
    s.flush()
    token = issue_invitation(s, u, actor=actor)
    return u, token


def issue_invitation(s: Session, u: User, *, actor: User) -> str:
    """Replace any pending invitation for `u` and return the new raw token."""
    if u.role != ROLE_CLIENT:
        raise ValidationError("Invitations can only be issued to client accounts")
    token, digest = new_invitation_token()
    hours = int(current_app.config.get("INVITATION_EXPIRES_HOURS") or 72)
    u.invitation_token_hash = digest
    u.invitation_expires_at = datetime.utcnow() + timedelta(hours=hours)
    record_event(s, actor=actor, action="user.invite", entity_type="User", entity_id=str(u.id), metadata={"email": u.email})
    current_app.logger.info("Invitation issued for user_id=%s (expires %s)", u.id, u.invitation_expires_at.isoformat())
    return token


def invitation_payload(u: User, token: str) -> dict[str, Any]:
    return {"token": token, "expiresAt": isoformat(u.invitation_expires_at)}


def redeem_invitation(s: Session, token: str, password: str) -> User:
    token = clean_str(token)
    if not token:
        raise ValidationError("Invitation token is required")
    validate_password(password)

    digest = hash_invitation_token(token)
    u = s.execute(select(User).where(User.invitation_token_hash == digest)).scalar_one_or_none()
    if (
        not u
        or not invitation_digest_matches(token, u.invitation_token_hash)
        or not u.invitation_expires_at
        or u.invitation_expires_at < datetime.utcnow()
        or not u.is_active
    ):
        raise ValidationError("Invitation is invalid or has expired")

    u.password_hash = hash_password(password)
    u.invitation_token_hash = None
    u.invitation_expires_at = None
    record_event(s, actor=u, action="user.invitation_redeemed", entity_type="User", entity_id=str(u.id))
    return u


def update_profile(s: Session, u: User, payload: dict) -> User:
    """Partial update of name/company/position/avatar. Email and role are immutable here."""
    if "name" in payload:
        name = clean_str(payload.get("name"))
        if not name:
            raise ValidationError("Name cannot be empty")
        u.name = check_length(name, "Name", NAME_MAX_LENGTH)
    if "company" in payload:
        u.company = check_length(clean_str(payload.get("company")) or None, "Company", NAME_MAX_LENGTH)
    if "position" in payload:
        u.position = check_length(clean_str(payload.get("position")) or None, "Position", NAME_MAX_LENGTH)
    if "avatar" in payload:
        u.avatar = check_length(clean_str(payload.get("avatar")), "Avatar", AVATAR_MAX_LENGTH)
    return u


def list_users(s: Session, *, clients_only: bool = False) -> list[User]:
    q = select(User).order_by(User.name.asc(), User.id.asc())
    if clients_only:
        q = q.where(User.role == ROLE_CLIENT)
    return list(s.execute(q).scalars().all())


def toggle_active(s: Session, u: User, *, actor: User) -> User:
    if u.id == actor.id:
        raise ValidationError("You cannot deactivate your own account")
    u.is_active = not u.is_active
    record_event(
        s,
        actor=actor,
        action="user.status",
        entity_type="User",
        entity_id=str(u.id),
        metadata={"is_active": u.is_active},
    )
    return u


def delete_user(s: Session, u: User, *, actor: User) -> None:
    """
    Hard delete. Owned projects are never cascaded: a client who still owns
    projects is refused. Authorship links elsewhere are detached.
    """
    from app.designreview.modules.feedback.models import Feedback
    from app.designreview.modules.files.models import ProjectFile
    from app.designreview.modules.messages.models import Message
    from app.designreview.modules.projects.models import Project, ProjectActivity

    if u.id == actor.id:
        raise ValidationError("You cannot delete your own account")
    owned = s.execute(select(Project.id).where(Project.client_user_id == u.id).limit(1)).first()
    if owned:
        raise Conflict("User still owns projects; delete or reassign them first")

    s.execute(update(ProjectFile).where(ProjectFile.uploaded_by_user_id == u.id).values(uploaded_by_user_id=None))
    s.execute(update(Feedback).where(Feedback.created_by_user_id == u.id).values(created_by_user_id=None))
    s.execute(update(Message).where(Message.sender_user_id == u.id).values(sender_user_id=None))
    s.execute(update(ProjectActivity).where(ProjectActivity.actor_user_id == u.id).values(actor_user_id=None))
    s.execute(update(AuditEvent).where(AuditEvent.actor_user_id == u.id).values(actor_user_id=None))

    record_event(
        s,
        actor=actor,
        action="user.delete",
        entity_type="User",
        entity_id=str(u.id),
        metadata={"email": u.email, "role": u.role},
    )
    s.delete(u)
