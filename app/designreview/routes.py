from __future__ import annotations

import mimetypes

from flask import Blueprint, current_app, send_file
from sqlalchemy import select

from app.designreview.db import db_session
from app.designreview.errors import NotFound
from app.designreview.modules.files.models import ProjectFile
from app.designreview.modules.files.service import current_storage
from app.designreview.modules.messages.models import MessageAttachment
from app.designreview.storage import BlobNotFound, StorageError

bp = Blueprint("routes", __name__)


@bp.get("/health")
def health():
    """Health check endpoint. Returns JSON."""
    return {"ok": True}


@bp.get("/healthz")
def healthz():
    """
    Fast health check for container probes. No DB access, minimal overhead.
    """
    return "ok", 200


def _stored_content_type(storage_key: str) -> str | None:
    s = db_session()
    ct = s.execute(select(ProjectFile.content_type).where(ProjectFile.storage_key == storage_key)).scalar_one_or_none()
    if ct:
        return ct
    return s.execute(
        select(MessageAttachment.content_type).where(MessageAttachment.storage_key == storage_key)
    ).scalar_one_or_none()


@bp.get("/uploads/<path:storage_key>")
def uploads(storage_key: str):
    try:
        fobj = current_storage().open(storage_key)
    except (BlobNotFound, StorageError):
        raise NotFound("File not found")
    mimetype = _stored_content_type(storage_key) or mimetypes.guess_type(storage_key)[0] or "application/octet-stream"
    current_app.logger.debug("Serving blob key=%s mimetype=%s", storage_key, mimetype)
    return send_file(fobj, mimetype=mimetype, download_name=storage_key.rsplit("/", 1)[-1])
