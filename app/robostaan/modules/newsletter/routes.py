from __future__ import annotations

from flask import Blueprint, flash, g, redirect, render_template, request, url_for
from sqlalchemy.exc import SQLAlchemyError

from app.robostaan.db import db_session
from app.robostaan.errors import report_backend_error
from app.robostaan.modules.newsletter.service import active_subscriptions, subscribe, unsubscribe
from app.robostaan.rbac import require_permission
from app.robostaan.security import is_safe_next


def _back() -> str:
    nxt = (request.form.get("next") or "").strip()
    return nxt if is_safe_next(nxt) else url_for("routes.index")


bp = Blueprint("newsletter", __name__)


@bp.post("/newsletter/subscribe")
def newsletter_subscribe():
    s = db_session()
    try:
        _, changed = subscribe(s, request.form.get("email"), getattr(g, "current_user", None))
        s.commit()
    except ValueError as e:
        s.rollback()
        flash(str(e), "danger")
        return redirect(_back())
    except SQLAlchemyError:
        report_backend_error(s, "subscribing")
        return redirect(_back())

    if changed:
        flash("Thanks for subscribing to the newsletter!", "success")
    else:
        flash("You're already subscribed.", "info")
    return redirect(_back())


@bp.post("/newsletter/unsubscribe")
def newsletter_unsubscribe():
    s = db_session()
    try:
        removed = unsubscribe(s, request.form.get("email"), getattr(g, "current_user", None))
        s.commit()
    except SQLAlchemyError:
        report_backend_error(s, "unsubscribing")
        return redirect(_back())

    if removed:
        flash("You have been unsubscribed.", "success")
    else:
        flash("That address is not subscribed.", "info")
    return redirect(_back())


@bp.get("/admin/newsletter")
@require_permission("newsletter.view")
def newsletter_list():
    s = db_session()
    return render_template("newsletter/list.html", subscriptions=active_subscriptions(s, g.current_user))
