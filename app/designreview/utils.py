from __future__ import annotations

import math
import re
from datetime import datetime
from typing import Any

from flask import request

from app.designreview.errors import ValidationError

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def request_payload() -> dict[str, Any]:
    """JSON body, or form fields for multipart/urlencoded requests."""
    if request.is_json:
        data = request.get_json(silent=True)
        if data is None:
            raise ValidationError("Malformed JSON body")
        if not isinstance(data, dict):
            raise ValidationError("JSON body must be an object")
        return data
    return request.form.to_dict()


def clean_str(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def normalize_email(value: Any) -> str:
    return clean_str(value).lower()


def is_valid_email(email: str) -> bool:
    return bool(_EMAIL_RE.fullmatch(email or ""))


def parse_number(value: Any, field: str) -> float | None:
    """Parse an optional numeric field; empty/None means "not supplied"."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a number")
    # JSON has no nan or inf
    if not math.isfinite(number):
        raise ValidationError(f"{field} must be a number")
    return number


def parse_id(value: Any, message: str) -> int:
    try:
        number = int(str(value).strip())
    except (TypeError, ValueError):
        raise ValidationError(message)
    # primary keys are 32-bit integer columns
    if not 0 < number < 2**31:
        raise ValidationError(message)
    return number


def check_length(value: str | None, field: str, max_length: int) -> str | None:
    """Reject values longer than their column; returns the value unchanged."""
    if value is not None and len(value) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters")
    return value


def parse_bool_arg(value: str | None) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes")


def isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value else None
