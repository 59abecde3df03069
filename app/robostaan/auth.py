from __future__ import annotations

import hmac
import uuid
from datetime import timedelta

from flask import Blueprint, current_app, flash, g, redirect, render_template, request, session, url_for
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.security import check_password_hash, generate_password_hash

from app.robostaan.audit import record_event
from app.robostaan.constants import MIN_PASSWORD_LENGTH, ROLE_USER, ROLES
from app.robostaan.db import db_session
from app.robostaan.models import User
from app.robostaan.modules.profiles.service import ensure_profile
from app.robostaan.security import is_safe_next
from app.robostaan.utils import is_valid_email, normalize_email, utcnow

bp = Blueprint("auth", __name__)
_LOGIN_RATE_LIMIT = 5
_LOGIN_RATE_WINDOW = 300  # seconds


def _attempts() -> dict[str, list]:
    return current_app.extensions.setdefault("login_attempts", {})


def _check_rate_limit(ip: str) -> bool:
    cutoff = utcnow() - timedelta(seconds=_LOGIN_RATE_WINDOW)
    attempts = _attempts()
    for key in list(attempts):
        recent = [t for t in attempts[key] if t > cutoff]
        if recent:
            attempts[key] = recent
        else:
            del attempts[key]
    return len(attempts.get(ip, [])) >= _LOGIN_RATE_LIMIT


def _record_attempt(ip: str) -> None:
    _attempts().setdefault(ip, []).append(utcnow())


def load_current_user() -> None:
    """
    Loads g.current_user from the signed session cookie.
    Also assigns a simple per-request request_id (for audit/log correlation).
    """
    if not getattr(g, "request_id", None):
        g.request_id = uuid.uuid4().hex
    if request.path.startswith(("/static/", "/health", "/healthz")):
        g.current_user = None
        return

    user_id = session.get("user_id")
    if not user_id:
        g.current_user = None
        return

    try:
        s = db_session()
        user = s.get(User, int(user_id))
        if not user or not user.is_active:
            session.pop("user_id", None)
            g.current_user = None
            return
        g.current_user = user
    except SQLAlchemyError as e:
        current_app.logger.error("load_current_user DB error (clearing session): %s", e)
        session.pop("user_id", None)
        g.current_user = None


def validate_signup(payload: dict, admin_secret: str) -> list[str]:
    """Validate a signup form. Returns list of errors."""
    errors = []
    email = normalize_email(payload.get("email"))
    password = payload.get("password") or ""
    confirm = payload.get("confirm_password") or ""
    role = (payload.get("role") or ROLE_USER).strip().lower()

    if not email:
        errors.append("Email is required.")
    elif not is_valid_email(email):
        errors.append("Invalid email format.")

    if password != confirm:
        errors.append("Passwords do not match")
    elif len(password) < MIN_PASSWORD_LENGTH:
        errors.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")

    if role not in ROLES:
        errors.append(f"Invalid role. Must be one of: {', '.join(ROLES)}")
    elif role != ROLE_USER:
        # admin and instructor signups both require the signup secret
        supplied = (payload.get("admin_secret") or "").encode()
        if not admin_secret or not hmac.compare_digest(supplied, admin_secret.encode()):
            errors.append("Invalid admin secret key")
    return errors


@bp.get("/signup")
def signup_get():
    return render_template("auth/signup.html", roles=ROLES)


@bp.post("/signup")
def signup_post():
    payload = {
        "email": request.form.get("email"),
        "password": request.form.get("password"),
        "confirm_password": request.form.get("confirm_password"),
        "full_name": request.form.get("full_name"),
        "role": request.form.get("role"),
        "admin_secret": request.form.get("admin_secret"),
    }
    errors = validate_signup(payload, current_app.config.get("ADMIN_SIGNUP_SECRET") or "")

    s = db_session()
    email = normalize_email(payload["email"])
    if not errors and s.query(User).filter(User.email == email).one_or_none():
        errors.append("An account with this email already exists.")
    if errors:
        for e in errors:
            flash(e, "danger")
        return redirect(url_for("auth.signup_get"))

    role = (payload["role"] or ROLE_USER).strip().lower()
    try:
        user = User(email=email, password_hash=generate_password_hash(payload["password"]), is_active=True)
        s.add(user)
        s.flush()
        ensure_profile(s, user, full_name=payload["full_name"], role=role)
        record_event(s, actor=user, action="auth.signup", entity_type="User", entity_id=str(user.id), metadata={"role": role})
        s.commit()
    except SQLAlchemyError:
        s.rollback()
        current_app.logger.exception("Signup failed (email=%s request_id=%s)", email, getattr(g, "request_id", None))
        flash("An error occurred during signup. Please try again.", "danger")
        return redirect(url_for("auth.signup_get"))

    session["user_id"] = user.id
    flash("Account created successfully!", "success")
    return redirect(url_for("routes.index"))


@bp.get("/login")
def login_get():
    nxt = (request.args.get("next") or "").strip()
    return render_template("auth/login.html", next=nxt)


@bp.post("/login")
def login_post():
    email = normalize_email(request.form.get("email"))
    password = request.form.get("password") or ""
    nxt = (request.form.get("next") or "").strip()
    ip = request.remote_addr or "unknown"

    if _check_rate_limit(ip):
        flash("Too many login attempts. Please wait 5 minutes.", "danger")
        return redirect(url_for("auth.login_get"))

    _record_attempt(ip)

    try:
        s = db_session()
        user = s.query(User).filter(User.email == email).one_or_none()
        if not user or not user.is_active or not check_password_hash(user.password_hash, password):
            record_event(
                s,
                actor=None,
                action="auth.login_failed",
                entity_type="User",
                entity_id=email,
                reason="Invalid credentials",
                metadata={"email": email},
            )
            s.commit()
            flash("Invalid credentials.", "danger")
            return redirect(url_for("auth.login_get"))

        session["user_id"] = user.id
        _attempts().pop(ip, None)
        # Accounts created outside signup (seed scripts, imports) get a profile on first login.
        ensure_profile(s, user)
        record_event(s, actor=user, action="auth.login", entity_type="User", entity_id=str(user.id))
        s.commit()
        if is_safe_next(nxt):
            return redirect(nxt)
        return redirect(url_for("routes.index"))
    except Exception:
        current_app.logger.exception("Login POST crashed (email=%s request_id=%s)", email, getattr(g, "request_id", None))
        raise


@bp.get("/logout")
def logout():
    user = getattr(g, "current_user", None)
    if user:
        s = db_session()
        record_event(s, actor=user, action="auth.logout", entity_type="User", entity_id=str(user.id))
        s.commit()
    session.pop("user_id", None)
    return redirect(url_for("routes.index"))
