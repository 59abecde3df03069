from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import abort, g, redirect, request, url_for

from app.robostaan.constants import ROLE_ADMIN, ROLE_INSTRUCTOR, ROLE_PERMISSIONS, ROLE_USER
from app.robostaan.models import User


def user_role(user: User | None) -> str | None:
    """Role string from the user's profile; None for anonymous/inactive users."""
    if not user or not user.is_active:
        return None
    profile = user.profile
    return profile.role if profile and profile.role else ROLE_USER


def is_admin(user: User | None) -> bool:
    return user_role(user) == ROLE_ADMIN


def is_instructor(user: User | None) -> bool:
    return user_role(user) == ROLE_INSTRUCTOR


def user_has_permission(user: User | None, permission_key: str) -> bool:
    role = user_role(user)
    if role is None:
        return False
    return permission_key in ROLE_PERMISSIONS.get(role, frozenset())


def login_required(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        user: User | None = getattr(g, "current_user", None)
        if not user or not user.is_active:
            return _redirect_to_login()
        return fn(*args, **kwargs)

    return wrapped


def require_permission(permission_key: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            user: User | None = getattr(g, "current_user", None)
            # Unauthenticated → redirect to login.
            if not user or not user.is_active:
                return _redirect_to_login()
            # Authenticated but unauthorized → 403
            if not user_has_permission(user, permission_key):
                g.missing_permission = permission_key
                abort(403)
            return fn(*args, **kwargs)

        return wrapped

    return decorator


def _redirect_to_login():
    nxt = request.full_path or request.path
    # Avoid trailing '?' from full_path when there is no query string.
    if nxt.endswith("?"):
        nxt = nxt[:-1]
    return redirect(url_for("auth.login_get", next=nxt))
