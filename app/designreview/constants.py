"""
Central constants for the design-review application.
"""
from __future__ import annotations

# Declared MIME types accepted for project files and message attachments.
ALLOWED_UPLOAD_MIME_TYPES = frozenset({
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-powerpoint",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    "application/postscript",  # .ai / .eps
    "image/vnd.adobe.photoshop",  # .psd
})

# Prefix under which stored blobs are served back to clients.
UPLOADS_URL_PREFIX = "/uploads"

MIN_PASSWORD_LENGTH = 8

# Column widths for free-text user input.
NAME_MAX_LENGTH = 255
EMAIL_MAX_LENGTH = 320
AVATAR_MAX_LENGTH = 1024
