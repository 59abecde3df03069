from __future__ import annotations

from flask import Blueprint, flash, g, redirect, render_template, request, session, url_for
from sqlalchemy.exc import SQLAlchemyError

from app.robostaan.db import db_session
from app.robostaan.errors import report_backend_error
from app.robostaan.modules.profiles.service import (
    PREFERENCE_FIELDS,
    ensure_profile,
    get_preferences,
    toggle_dark_mode,
    update_preferences,
    update_profile,
)
from app.robostaan.rbac import login_required
from app.robostaan.security import is_safe_next

bp = Blueprint("profiles", __name__)


@bp.get("/profile")
@login_required
def profile_get():
    s = db_session()
    user = g.current_user
    profile = ensure_profile(s, user)
    prefs = get_preferences(s, user)
    # ensure_profile/get_preferences may have created rows for legacy accounts.
    s.commit()
    return render_template("profile/detail.html", profile=profile, prefs=prefs)


@bp.post("/profile")
@login_required
def profile_post():
    s = db_session()
    user = g.current_user
    profile = ensure_profile(s, user)
    avatar_url = (request.form.get("avatar_url") or "").strip()
    if avatar_url and not avatar_url.startswith(("http://", "https://")):
        flash("Avatar URL must start with http:// or https://", "danger")
        return redirect(url_for("profiles.profile_get"))

    try:
        update_profile(
            s,
            profile,
            {
                "full_name": request.form.get("full_name"),
                "bio": request.form.get("bio"),
                "avatar_url": avatar_url,
            },
            user,
        )
        s.commit()
    except SQLAlchemyError:
        report_backend_error(s, "saving profile")
        return redirect(url_for("profiles.profile_get"))

    flash("Profile updated.", "success")
    return redirect(url_for("profiles.profile_get"))


@bp.post("/profile/preferences")
@login_required
def preferences_post():
    s = db_session()
    user = g.current_user
    prefs = get_preferences(s, user)
    # Unchecked checkboxes are absent from the form; treat them as off.
    payload = {f: request.form.get(f) for f in PREFERENCE_FIELDS}
    try:
        update_preferences(s, prefs, payload, user)
        s.commit()
    except SQLAlchemyError:
        report_backend_error(s, "saving preferences")
        return redirect(url_for("profiles.profile_get"))

    session["dark_mode"] = bool(prefs.dark_mode)
    flash("Preferences saved.", "success")
    return redirect(url_for("profiles.profile_get"))


@bp.post("/preferences/dark-mode")
def dark_mode_toggle():
    """Anonymous visitors keep the theme in the session; signed-in users persist it."""
    user = getattr(g, "current_user", None)
    if user is None:
        session["dark_mode"] = not bool(session.get("dark_mode"))
    else:
        s = db_session()
        try:
            session["dark_mode"] = toggle_dark_mode(s, user)
            s.commit()
        except SQLAlchemyError:
            report_backend_error(s, "saving preferences")

    nxt = (request.form.get("next") or "").strip()
    if is_safe_next(nxt):
        return redirect(nxt)
    return redirect(url_for("routes.index"))
