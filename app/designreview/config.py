import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database_url: str
    log_level: str

    jwt_secret: str
    jwt_expires_days: int
    invitation_expires_hours: int
    allow_admin_registration: bool

    upload_max_bytes: int
    message_max_attachments: int

    storage_backend: str
    storage_root: str
    s3_endpoint: str
    s3_region: str
    s3_bucket: str
    s3_access_key_id: str
    s3_secret_access_key: str


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getenv_int(name: str, default: int) -> int:
    raw = _getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer (got {raw!r}).")


def _getenv_bool(name: str) -> bool:
    return _getenv(name).lower() in ("1", "true", "yes", "on")


def load_settings() -> Settings:
    secret_key = _getenv("SECRET_KEY", "change-me")
    return Settings(
        secret_key=secret_key,
        env=_getenv("ENV", "development"),
        database_url=_getenv("DATABASE_URL", "sqlite:///designreview.db"),
        log_level=_getenv("LOG_LEVEL", "INFO").upper(),
        jwt_secret=_getenv("JWT_SECRET", secret_key),
        jwt_expires_days=_getenv_int("JWT_EXPIRES_DAYS", 30),
        invitation_expires_hours=_getenv_int("INVITATION_EXPIRES_HOURS", 72),
        allow_admin_registration=_getenv_bool("ALLOW_ADMIN_REGISTRATION"),
        upload_max_bytes=_getenv_int("UPLOAD_MAX_BYTES", 10 * 1024 * 1024),
        message_max_attachments=_getenv_int("MESSAGE_MAX_ATTACHMENTS", 5),
        storage_backend=_getenv("STORAGE_BACKEND", "local"),
        storage_root=_getenv("STORAGE_ROOT", os.path.join(os.getcwd(), "uploads")),
        # S3 credentials come from the environment only.
        s3_endpoint=_getenv("S3_ENDPOINT", ""),
        s3_region=_getenv("S3_REGION", ""),
        s3_bucket=_getenv("S3_BUCKET", ""),
        s3_access_key_id=_getenv("S3_ACCESS_KEY_ID", ""),
        s3_secret_access_key=_getenv("S3_SECRET_ACCESS_KEY", ""),
    )


def load_config() -> dict:
    s = load_settings()
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        "LOG_LEVEL": s.log_level,
        "JWT_SECRET": s.jwt_secret,
        "JWT_EXPIRES_DAYS": s.jwt_expires_days,
        "INVITATION_EXPIRES_HOURS": s.invitation_expires_hours,
        "ALLOW_ADMIN_REGISTRATION": s.allow_admin_registration,
        "UPLOAD_MAX_BYTES": s.upload_max_bytes,
        "MESSAGE_MAX_ATTACHMENTS": s.message_max_attachments,
        "STORAGE_BACKEND": s.storage_backend,
        "STORAGE_ROOT": s.storage_root,
        "S3_ENDPOINT": s.s3_endpoint,
        "S3_REGION": s.s3_region,
        "S3_BUCKET": s.s3_bucket,
        "S3_ACCESS_KEY_ID": s.s3_access_key_id,
        "S3_SECRET_ACCESS_KEY": s.s3_secret_access_key,
        # request bodies: a full message (every attachment at the cap) plus form overhead
        "MAX_CONTENT_LENGTH": s.upload_max_bytes * (s.message_max_attachments + 1) + 1024 * 1024,
    }
