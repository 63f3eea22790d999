from __future__ import annotations

import hashlib
import hmac
import secrets
from datetime import datetime, timedelta, timezone

import jwt
from flask import current_app
from werkzeug.security import check_password_hash, generate_password_hash

JWT_ALG = "HS256"

# Hash checked when the email is unknown, so both failure paths cost the same.
_DUMMY_HASH = generate_password_hash("not-a-real-password")


class TokenError(Exception):
    """Bearer token missing, malformed, badly signed or expired."""


def hash_password(password: str) -> str:
    return generate_password_hash(password)


def verify_password(password: str, password_hash: str | None) -> bool:
    if not password_hash:
        check_password_hash(_DUMMY_HASH, password or "")
        return False
    return check_password_hash(password_hash, password or "")


def unusable_password_hash() -> str:
    """Hash of a random secret nobody knows; used until an invitation is redeemed."""
    return generate_password_hash(secrets.token_urlsafe(32))


def create_access_token(user_id: int, *, expires_delta: timedelta | None = None) -> str:
    cfg = current_app.config
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(days=int(cfg["JWT_EXPIRES_DAYS"])))
    payload = {"sub": str(user_id), "exp": expire, "typ": "access"}
    return jwt.encode(payload, cfg["JWT_SECRET"], algorithm=JWT_ALG)


def decode_access_token(token: str) -> int:
    """Return the user id carried by a session token."""
    try:
        payload = jwt.decode(token, current_app.config["JWT_SECRET"], algorithms=[JWT_ALG])
    except jwt.ExpiredSignatureError as e:
        raise TokenError("Token expired") from e
    except jwt.InvalidTokenError as e:
        raise TokenError("Invalid token") from e
    if payload.get("typ") != "access":
        raise TokenError("Invalid token")
    try:
        return int(payload["sub"])
    except (KeyError, TypeError, ValueError) as e:
        raise TokenError("Invalid token") from e


def new_invitation_token() -> tuple[str, str]:
    """Return (raw token for the admin to hand over, digest to store)."""
    token = secrets.token_urlsafe(32)
    return token, hash_invitation_token(token)


def hash_invitation_token(token: str) -> str:
    return hashlib.sha256((token or "").encode("utf-8")).hexdigest()


def invitation_digest_matches(token: str, digest: str | None) -> bool:
    return bool(digest) and hmac.compare_digest(hash_invitation_token(token), digest or "")
