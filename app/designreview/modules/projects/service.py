from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from flask import current_app
from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError

from app.designreview.accounts import invitation_payload, provision_client
from app.designreview.constants import NAME_MAX_LENGTH
from app.designreview.errors import NotFound, ValidationError
from app.designreview.models import ROLE_CLIENT, User
from app.designreview.modules.projects.models import PROJECT_STATUSES, Project, ProjectActivity
from app.designreview.rbac import ensure_project_access, is_admin
from app.designreview.utils import check_length, clean_str, isoformat, parse_id

if TYPE_CHECKING:
    from sqlalchemy.orm import Session


def activity_to_dict(a: ProjectActivity) -> dict[str, Any]:
    return {
        "id": a.id,
        "action": a.action,
        "timestamp": isoformat(a.created_at),
        "userId": a.actor_user_id,
        "userName": a.actor_name,
    }


def project_to_dict(p: Project, *, include_activity: bool = False) -> dict[str, Any]:
    from app.designreview.modules.files.service import file_to_dict

    out: dict[str, Any] = {
        "id": p.id,
        "name": p.name,
        "description": p.description,
        "status": p.status,
        "clientId": p.client_user_id,
        "clientName": p.client_name,
        "clientEmail": p.client_email,
        "files": [file_to_dict(f) for f in p.files],
        "createdAt": isoformat(p.created_at),
        "updatedAt": isoformat(p.updated_at),
    }
    if include_activity:
        out["activity"] = [activity_to_dict(a) for a in p.activity]
    return out


def get_project_or_404(s: "Session", project_id: int) -> Project:
    p = s.get(Project, project_id)
    if not p:
        raise NotFound("Project not found")
    return p


def get_accessible_project(s: "Session", user: "User", project_id: int) -> Project:
    p = get_project_or_404(s, project_id)
    ensure_project_access(user, p)
    return p


def list_projects(
    s: "Session",
    user: "User",
    *,
    client_id: str | None = None,
    status: str | None = None,
    search: str | None = None,
) -> list[Project]:
    """Clients only ever see their own projects; admins may filter by client."""
    q = select(Project)
    if not is_admin(user):
        q = q.where(Project.client_user_id == user.id)
    elif clean_str(client_id):
        q = q.where(Project.client_user_id == parse_id(client_id, "Invalid client ID"))

    status = clean_str(status)
    if status:
        if status not in PROJECT_STATUSES:
            raise ValidationError(f"Invalid status. Must be one of: {', '.join(PROJECT_STATUSES)}")
        q = q.where(Project.status == status)

    search = clean_str(search)
    if search:
        q = q.where(func.lower(Project.name).contains(search.lower(), autoescape=True))

    q = q.order_by(Project.updated_at.desc(), Project.id.desc())
    return list(s.execute(q).scalars().all())


def _resolve_client(s: "Session", payload: dict, actor: "User") -> tuple["User", dict | None]:
    """Existing client by id, or a new client from clientName + clientEmail."""
    raw_client_id = clean_str(payload.get("clientId"))
    if raw_client_id:
        client = s.get(User, parse_id(raw_client_id, "Invalid client ID"))
        if not client:
            raise NotFound("Client not found")
        if client.role != ROLE_CLIENT:
            raise ValidationError("Invalid client ID: user is not a client")
        return client, None

    client_name = clean_str(payload.get("clientName"))
    client_email = clean_str(payload.get("clientEmail"))
    if client_name and client_email:
        client, token = provision_client(s, name=client_name, email=client_email, actor=actor)
        return client, invitation_payload(client, token)

    raise ValidationError("Either clientId or clientName and clientEmail must be provided")


def create_project(s: "Session", payload: dict, actor: "User") -> tuple[Project, dict | None]:
    """
    Create a project (and, inline, its client). Returns the project and the
    invitation for a newly provisioned client, if any. The caller commits.
    """
    name = clean_str(payload.get("name"))
    if not name:
        raise ValidationError("Project name is required")
    check_length(name, "Project name", NAME_MAX_LENGTH)

    client, invitation = _resolve_client(s, payload, actor)

    now = datetime.utcnow()
    p = Project(
        name=name,
        description=clean_str(payload.get("description")),
        status="awaiting_feedback",
        client_user_id=client.id,
        client_name=client.name,
        client_email=client.email,
        created_at=now,
        updated_at=now,
    )
    s.add(p)
    s.flush()
    s.add(ProjectActivity(project_id=p.id, action="Project created", actor_user_id=actor.id, actor_name=actor.name, created_at=now))
    return p, invitation


def update_project(s: "Session", p: Project, payload: dict) -> str:
    """
    Partial update of name/description/status. Any status may be set from any
    other. Returns the activity text describing the change.
    """
    if "name" in payload:
        name = clean_str(payload.get("name"))
        if not name:
            raise ValidationError("Project name cannot be empty")
        check_length(name, "Project name", NAME_MAX_LENGTH)
        p.name = name
    if "description" in payload:
        p.description = clean_str(payload.get("description"))

    status = clean_str(payload.get("status"))
    if status:
        if status not in PROJECT_STATUSES:
            raise ValidationError(f"Invalid status. Must be one of: {', '.join(PROJECT_STATUSES)}")
        p.status = status
        return f"Project status updated to {status}"
    return "Project details updated"


def delete_project(s: "Session", p: Project) -> list[str]:
    """
    Delete a project with its files, feedback, messages and activity.
    Returns the storage keys to purge once the delete is committed.
    """
    from app.designreview.modules.messages.models import Message, MessageAttachment

    keys = [f.storage_key for f in p.files]
    keys.extend(
        s.execute(
            select(MessageAttachment.storage_key)
            .join(Message, MessageAttachment.message_id == Message.id)
            .where(Message.project_id == p.id)
        ).scalars()
    )
    s.delete(p)
    return keys


def append_activity(s: "Session", project_id: int, actor: "User | None", action: str) -> ProjectActivity | None:
    """
    Insert one activity entry and bump the project's updated_at, in its own
    commit. Runs after the primary write is committed; a failure here is
    logged and the primary write stands.
    """
    now = datetime.utcnow()
    entry = ProjectActivity(
        project_id=project_id,
        action=action,
        actor_user_id=actor.id if actor else None,
        actor_name=actor.name if actor else None,
        created_at=now,
    )
    try:
        s.add(entry)
        s.execute(update(Project).where(Project.id == project_id).values(updated_at=now))
        s.commit()
    except SQLAlchemyError:
        s.rollback()
        current_app.logger.exception("Activity append failed (project_id=%s action=%r)", project_id, action)
        return None
    return entry


def client_projects_summary(s: "Session", client_id: int) -> list[dict[str, Any]]:
    rows = s.execute(
        select(Project.id, Project.name, Project.status)
        .where(Project.client_user_id == client_id)
        .order_by(Project.updated_at.desc(), Project.id.desc())
    ).all()
    return [{"id": r.id, "name": r.name, "status": r.status} for r in rows]

