from __future__ import annotations

from typing import TYPE_CHECKING, Any

from flask import current_app
from sqlalchemy import select
from werkzeug.datastructures import FileStorage

from app.designreview.accounts import user_summary
from app.designreview.constants import NAME_MAX_LENGTH
from app.designreview.errors import NotFound, ValidationError
from app.designreview.modules.files.service import current_storage, purge_blobs, read_validated_upload, upload_url
from app.designreview.modules.messages.models import Message, MessageAttachment
from app.designreview.storage import build_storage_key
from app.designreview.utils import check_length, clean_str, isoformat

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.designreview.models import User
    from app.designreview.modules.projects.models import Project


def attachment_to_dict(a: MessageAttachment, base_url: str) -> dict[str, Any]:
    return {
        "id": a.id,
        "filename": a.filename,
        "name": a.filename,
        "path": a.storage_key,
        "size": a.size_bytes,
        "type": a.content_type,
        "url": f"{base_url.rstrip('/')}{upload_url(a.storage_key)}",
    }


def message_to_dict(m: Message, base_url: str) -> dict[str, Any]:
    return {
        "id": m.id,
        "projectId": m.project_id,
        "text": m.text,
        "sender": user_summary(m.sender),
        "isRead": m.is_read,
        "createdAt": isoformat(m.created_at),
        "attachments": [attachment_to_dict(a, base_url) for a in m.attachments],
    }


def get_message_or_404(s: "Session", message_id: int) -> Message:
    m = s.get(Message, message_id)
    if not m:
        raise NotFound("Message not found")
    return m


def list_project_messages(s: "Session", project: "Project") -> list[Message]:
    """Chat order: oldest first."""
    q = (
        select(Message)
        .where(Message.project_id == project.id)
        .order_by(Message.created_at.asc(), Message.id.asc())
    )
    return list(s.execute(q).scalars().all())


def create_message(
    s: "Session",
    project: "Project",
    text: str | None,
    uploads: list[FileStorage],
    actor: "User",
) -> Message:
    """
    Validate every attachment before storing any of them, then write the
    message. Stored blobs are removed again if the write fails.
    """
    text = clean_str(text)
    uploads = [u for u in uploads if u is not None and u.filename]
    limit = int(current_app.config["MESSAGE_MAX_ATTACHMENTS"])
    if len(uploads) > limit:
        raise ValidationError(f"Too many attachments (maximum {limit})")
    if not text and not uploads:
        raise ValidationError("Message text or at least one attachment is required")

    for u in uploads:
        check_length(clean_str(u.filename), "Attachment name", NAME_MAX_LENGTH)
    validated = [(u, *read_validated_upload(u, label="Attachment")) for u in uploads]

    storage = current_storage()
    stored_keys: list[str] = []
    try:
        m = Message(project_id=project.id, sender_user_id=actor.id, text=text, is_read=False)
        for upload, data, content_type in validated:
            filename = clean_str(upload.filename) or "attachment.bin"
            key = build_storage_key(f"messages/{project.id}", filename)
            storage.put_bytes(key, data, content_type=content_type)
            stored_keys.append(key)
            m.attachments.append(
                MessageAttachment(filename=filename, storage_key=key, size_bytes=len(data), content_type=content_type)
            )
        s.add(m)
        s.commit()
    except Exception:
        s.rollback()
        purge_blobs(stored_keys, storage=storage)
        raise
    return m


def mark_read(m: Message) -> bool:
    """Flip unread -> read. Returns False (no change) when already read."""
    if m.is_read:
        return False
    m.is_read = True
    return True
