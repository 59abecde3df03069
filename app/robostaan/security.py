import secrets
from urllib.parse import urlsplit

from flask import Request, session


def ensure_csrf_token() -> str:
    """Ensure a CSRF token exists in the session and return it."""
    token = session.get("csrf_token")
    if not token:
        token = secrets.token_urlsafe(32)
        session["csrf_token"] = token
    return token


def validate_csrf(req: Request) -> bool:
    """Validate CSRF token from form or header."""
    token = req.headers.get("X-CSRF-Token") or req.form.get("csrf_token")
    expected = session.get("csrf_token")
    return bool(token and expected and secrets.compare_digest(token, expected))


def is_safe_next(nxt: str) -> bool:
    """Only local paths are allowed as redirect targets."""
    # browsers read "\" as "/" and drop tabs and newlines, so either could turn "/x" into "//host"
    if any(ch == "\\" or ord(ch) < 32 for ch in nxt):
        return False
    if not nxt.startswith("/") or nxt.startswith("//"):
        return False
    parts = urlsplit(nxt)
    return not parts.scheme and not parts.netloc
