from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import select

from app.designreview.accounts import user_summary
from app.designreview.errors import NotFound, ValidationError
from app.designreview.modules.feedback.models import (
    FEEDBACK_OPEN,
    FEEDBACK_RESOLVED,
    FEEDBACK_STATUS_ALIASES,
    FEEDBACK_STATUSES,
    Feedback,
)
from app.designreview.utils import clean_str, isoformat, parse_number

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.designreview.models import User
    from app.designreview.modules.files.models import ProjectFile

COORDINATE_FIELDS = ("x", "y", "width", "height")


def feedback_to_dict(fb: Feedback) -> dict[str, Any]:
    return {
        "id": fb.id,
        "content": fb.content,
        "fileId": fb.file_id,
        "projectId": fb.project_id,
        "status": fb.status,
        "coordinates": {"x": fb.x, "y": fb.y, "width": fb.width, "height": fb.height},
        "createdBy": user_summary(fb.created_by),
        "createdAt": isoformat(fb.created_at),
        "updatedAt": isoformat(fb.updated_at),
    }


def normalize_status(raw: Any) -> str:
    status = clean_str(raw).lower()
    status = FEEDBACK_STATUS_ALIASES.get(status, status)
    if status not in FEEDBACK_STATUSES:
        raise ValidationError(f"Invalid status. Must be one of: {', '.join(FEEDBACK_STATUSES)}")
    return status


def _coordinates(payload: dict) -> dict[str, float | None]:
    """Coordinates may arrive flat (x=..) or nested under "coordinates"."""
    nested = payload.get("coordinates")
    source = nested if isinstance(nested, dict) else payload
    return {k: parse_number(source.get(k), k) for k in COORDINATE_FIELDS}


def get_feedback_or_404(s: "Session", feedback_id: int) -> Feedback:
    fb = s.get(Feedback, feedback_id)
    if not fb:
        raise NotFound("Feedback not found")
    return fb


def list_file_feedback(s: "Session", f: "ProjectFile") -> list[Feedback]:
    q = (
        select(Feedback)
        .where(Feedback.file_id == f.id)
        .order_by(Feedback.created_at.desc(), Feedback.id.desc())
    )
    return list(s.execute(q).scalars().all())


def create_feedback(s: "Session", f: "ProjectFile", payload: dict, actor: "User") -> Feedback:
    """The caller has already checked project access and commits."""
    content = clean_str(payload.get("content") or payload.get("comment"))
    if not content:
        raise ValidationError("Feedback content is required")

    coords = _coordinates(payload)
    fb = Feedback(
        file_id=f.id,
        project_id=f.project_id,
        created_by_user_id=actor.id,
        content=content,
        status=FEEDBACK_OPEN,
        **{k: (v if v is not None else 0.0) for k, v in coords.items()},
    )
    s.add(fb)
    return fb


def update_feedback(s: "Session", fb: Feedback, payload: dict) -> Feedback:
    """Partial update: content, status, any subset of coordinates."""
    if "content" in payload:
        content = clean_str(payload.get("content"))
        if not content:
            raise ValidationError("Feedback content cannot be empty")
        fb.content = content
    if clean_str(payload.get("status")):
        fb.status = normalize_status(payload.get("status"))
    for k, v in _coordinates(payload).items():
        if v is not None:
            setattr(fb, k, v)
    return fb


def toggle_resolved(fb: Feedback) -> str:
    """
    resolved -> open, anything else -> resolved. Returns "resolved" or "reopened".

    The prior status is not remembered: a rejected item toggled twice ends up open.
    """
    if fb.status == FEEDBACK_RESOLVED:
        fb.status = FEEDBACK_OPEN
        return "reopened"
    fb.status = FEEDBACK_RESOLVED
    return "resolved"
