"""
Error taxonomy shared by every blueprint.

Service functions raise these; `register_error_handlers` turns them into
`{"message": ...}` JSON responses. Outside production a `stack` field is added.
"""

from __future__ import annotations

import re
import traceback

from flask import Flask, current_app, g, jsonify
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import HTTPException


class ApiError(Exception):
    status_code = 500
    default_message = "Internal Server Error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class ValidationError(ApiError):
    status_code = 400
    default_message = "Invalid request"


class Unauthenticated(ApiError):
    status_code = 401
    default_message = "Not authenticated"


class Forbidden(ApiError):
    status_code = 403
    default_message = "Not authorized"


class NotFound(ApiError):
    status_code = 404
    default_message = "Not found"


class Conflict(ApiError):
    # Duplicate unique fields are reported as 400, like other input problems.
    status_code = 400
    default_message = "Already exists"


_UNIQUE_COLUMN_RE = re.compile(r"(?:UNIQUE constraint failed: \w+\.(\w+))|(?:Key \((\w+)\)=)")


def duplicate_field_message(exc: IntegrityError) -> str | None:
    """Name the offending column of a unique-constraint violation, if we can tell."""
    m = _UNIQUE_COLUMN_RE.search(str(exc.orig))
    if not m:
        return None
    field = m.group(1) or m.group(2)
    return f"{field[:1].upper()}{field[1:]} already exists"


def _is_production() -> bool:
    return (current_app.config.get("ENV") or "").strip().lower() in ("prod", "production")


def _error_response(message: str, status: int, exc: BaseException | None = None):
    body: dict[str, object] = {"message": message}
    if exc is not None and not _is_production():
        body["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return jsonify(body), status


def _rollback_request_session() -> None:
    s = getattr(g, "db_session", None)
    if s is not None:
        s.rollback()


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(ApiError)
    def _api_error(e: ApiError):  # type: ignore[no-redef]
        _rollback_request_session()
        if isinstance(e, Forbidden):
            app.logger.warning(
                "Forbidden: %s missing_permission=%s request_id=%s",
                e.message,
                getattr(g, "missing_permission", None),
                getattr(g, "request_id", None),
            )
        return _error_response(e.message, e.status_code, e)

    @app.errorhandler(IntegrityError)
    def _integrity_error(e: IntegrityError):  # type: ignore[no-redef]
        _rollback_request_session()
        message = duplicate_field_message(e)
        if message:
            return _error_response(message, Conflict.status_code, e)
        app.logger.exception("Integrity error (request_id=%s)", getattr(g, "request_id", None))
        return _error_response("Invalid request", ValidationError.status_code, e)

    @app.errorhandler(HTTPException)
    def _http_error(e: HTTPException):  # type: ignore[no-redef]
        if e.code == 413:
            limit = app.config.get("MAX_CONTENT_LENGTH")
            return _error_response(f"Request too large (limit {limit} bytes)", 413)
        return _error_response(e.description or e.name, e.code or 500)

    @app.errorhandler(Exception)
    def _err_500(e: Exception):  # type: ignore[no-redef]
        _rollback_request_session()
        app.logger.exception("Unhandled 500 (request_id=%s)", getattr(g, "request_id", None))
        return _error_response("Internal Server Error", 500, e)
