from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from flask import current_app
from sqlalchemy import select
from werkzeug.datastructures import FileStorage

from app.designreview.constants import ALLOWED_UPLOAD_MIME_TYPES, NAME_MAX_LENGTH, UPLOADS_URL_PREFIX
from app.designreview.errors import NotFound, ValidationError
from app.designreview.modules.files.models import ProjectFile
from app.designreview.storage import Storage, build_storage_key, storage_from_config
from app.designreview.utils import check_length, clean_str, isoformat

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.designreview.models import User
    from app.designreview.modules.projects.models import Project


def file_to_dict(f: ProjectFile) -> dict[str, Any]:
    return {
        "id": f.id,
        "name": f.name,
        "originalName": f.original_name,
        "url": f.url,
        "type": f.content_type,
        "size": f.size_bytes,
        "projectId": f.project_id,
        "uploadedBy": f.uploaded_by_user_id,
        "uploadDate": isoformat(f.uploaded_at),
        "feedbackCount": len(f.feedback),
    }


def upload_url(storage_key: str) -> str:
    return f"{UPLOADS_URL_PREFIX}/{storage_key}"


def current_storage() -> Storage:
    return storage_from_config(current_app.config)


def read_validated_upload(f: FileStorage | None, *, label: str = "File") -> tuple[bytes, str]:
    """
    Enforce the MIME allow-list and the per-file size cap on one uploaded part.
    Returns (bytes, content_type).
    """
    if f is None or not f.filename:
        raise ValidationError("No file uploaded")
    content_type = (f.mimetype or "").strip().lower()
    if content_type not in ALLOWED_UPLOAD_MIME_TYPES:
        raise ValidationError(f"{label} type not supported: {content_type or 'unknown'}")

    cap = int(current_app.config["UPLOAD_MAX_BYTES"])
    # Read one byte past the cap so oversize parts are detected without buffering them fully.
    data = f.stream.read(cap + 1)
    if len(data) > cap:
        raise ValidationError(f"{label} too large. Maximum size is {cap // (1024 * 1024)}MB.")
    return data, content_type


def get_file_or_404(s: "Session", file_id: int) -> ProjectFile:
    f = s.get(ProjectFile, file_id)
    if not f:
        raise NotFound("File not found")
    return f


def list_project_files(s: "Session", project: "Project") -> list[ProjectFile]:
    """Newest upload first."""
    q = (
        select(ProjectFile)
        .where(ProjectFile.project_id == project.id)
        .order_by(ProjectFile.uploaded_at.desc(), ProjectFile.id.desc())
    )
    return list(s.execute(q).scalars().all())


def store_project_file(
    s: "Session",
    project: "Project",
    upload: FileStorage | None,
    *,
    display_name: str | None,
    actor: "User",
) -> ProjectFile:
    """
    Validate, store the bytes, then write the record. If the record cannot be
    committed the blob is removed again before the error propagates.
    """
    data, content_type = read_validated_upload(upload)
    original_name = check_length(clean_str(upload.filename) or "upload.bin", "File name", NAME_MAX_LENGTH)
    display_name = check_length(clean_str(display_name), "File name", NAME_MAX_LENGTH)
    storage_key = build_storage_key(f"files/{project.id}", original_name)

    storage = current_storage()
    storage.put_bytes(storage_key, data, content_type=content_type)

    try:
        pf = ProjectFile(
            project_id=project.id,
            name=display_name or original_name,
            original_name=original_name,
            url=upload_url(storage_key),
            storage_key=storage_key,
            content_type=content_type,
            size_bytes=len(data),
            uploaded_by_user_id=actor.id,
        )
        s.add(pf)
        s.commit()
    except Exception:
        s.rollback()
        purge_blobs([storage_key], storage=storage)
        raise
    return pf


def purge_blobs(keys: Iterable[str], *, storage: Storage | None = None) -> int:
    """
    Best-effort blob removal after the owning records are gone. Missing blobs
    are fine; other failures are logged. Returns how many blobs were removed.
    """
    storage = storage or current_storage()
    removed = 0
    for key in keys:
        try:
            if storage.delete(key):
                removed += 1
        except Exception as e:
            current_app.logger.warning("Blob delete failed (key=%s): %s", key, e)
    return removed
