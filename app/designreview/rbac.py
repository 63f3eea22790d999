"""
Single authorization gate.

Role capabilities are declared once in ROLE_PERMISSIONS; handlers declare the
capability they need with @require_permission and resource ownership goes
through the ensure_* helpers below.
"""

from __future__ import annotations

from collections.abc import Callable
from functools import wraps
from typing import TYPE_CHECKING, Any

from flask import g

from app.designreview.errors import Forbidden, Unauthenticated
from app.designreview.models import ROLE_ADMIN, ROLE_CLIENT, User

if TYPE_CHECKING:
    from app.designreview.modules.feedback.models import Feedback
    from app.designreview.modules.projects.models import Project


_SHARED_PERMISSIONS = frozenset({
    "profile.view",
    "profile.edit",
    "projects.view",
    "files.view",
    "feedback.view",
    "feedback.create",
    "feedback.edit",
    "messages.view",
    "messages.send",
})

_ADMIN_ONLY_PERMISSIONS = frozenset({
    "projects.manage",
    "files.manage",
    "feedback.resolve",
    "users.manage",
})

ROLE_PERMISSIONS: dict[str, frozenset[str]] = {
    ROLE_CLIENT: _SHARED_PERMISSIONS,
    ROLE_ADMIN: _SHARED_PERMISSIONS | _ADMIN_ONLY_PERMISSIONS,
}


def is_admin(user: User | None) -> bool:
    return bool(user and user.role == ROLE_ADMIN)


def user_has_permission(user: User | None, permission_key: str) -> bool:
    if not user or not user.is_active:
        return False
    return permission_key in ROLE_PERMISSIONS.get(user.role, frozenset())


def can_access_project(user: User | None, project: "Project") -> bool:
    if not user:
        return False
    return user.role == ROLE_ADMIN or user.id == project.client_user_id


def ensure_project_access(user: User | None, project: "Project", message: str = "Not authorized to access this project") -> None:
    if not can_access_project(user, project):
        raise Forbidden(message)


def ensure_feedback_author_or_admin(user: User, feedback: "Feedback", verb: str) -> None:
    if is_admin(user):
        return
    if feedback.created_by_user_id is None or feedback.created_by_user_id != user.id:
        raise Forbidden(f"Not authorized to {verb} this feedback")


def ensure_self_or_admin(user: User, target_user_id: int) -> None:
    if not is_admin(user) and user.id != target_user_id:
        raise Forbidden("Not authorized to access this user")


def current_user() -> User:
    user: User | None = getattr(g, "current_user", None)
    if not user or not user.is_active:
        raise Unauthenticated(getattr(g, "auth_error", None) or "Not authenticated")
    return user


def require_login(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        current_user()
        return fn(*args, **kwargs)

    return wrapped


def require_permission(permission_key: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            # Unauthenticated -> 401, authenticated but lacking the capability -> 403
            user = current_user()
            if not user_has_permission(user, permission_key):
                g.missing_permission = permission_key
                raise Forbidden("Admin access required" if permission_key in _ADMIN_ONLY_PERMISSIONS else "Not authorized")
            return fn(*args, **kwargs)

        return wrapped

    return decorator
