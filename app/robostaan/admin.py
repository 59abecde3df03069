from datetime import date, datetime, time, timedelta

from flask import Blueprint, abort, flash, g, redirect, render_template, request, url_for
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.robostaan.audit import record_event
from app.robostaan.constants import ROLES
from app.robostaan.db import db_session
from app.robostaan.errors import report_backend_error
from app.robostaan.models import AuditEvent, User
from app.robostaan.modules.blogs.models import Blog
from app.robostaan.modules.comments.models import Comment
from app.robostaan.modules.courses.models import Course, CourseEnrollment
from app.robostaan.modules.newsletter.models import NewsletterSubscription
from app.robostaan.modules.profiles.service import ensure_profile, set_role
from app.robostaan.rbac import require_permission, user_role

bp = Blueprint("admin", __name__)


def _parse_date(s: str) -> date | None:
    s = (s or "").strip()
    if not s:
        return None
    try:
        return date.fromisoformat(s)
    except ValueError:
        return None


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


@bp.get("/")
@require_permission("admin.view")
def index():
    s = db_session()
    status = {"db_connected": False, "db_error": None}
    counts: dict[str, int] = {}

    try:
        s.execute(text("SELECT 1"))
        status["db_connected"] = True
        counts = {
            "users": s.query(User).count(),
            "blogs": s.query(Blog).count(),
            "courses": s.query(Course).count(),
            "enrollments": s.query(CourseEnrollment).count(),
            "comments": s.query(Comment).count(),
            "subscribers": s.query(NewsletterSubscription).filter(NewsletterSubscription.active.is_(True)).count(),
        }
    except SQLAlchemyError as e:
        s.rollback()
        status["db_error"] = str(e)

    return render_template("admin/index.html", system_status=status, counts=counts)


@bp.get("/accounts")
@require_permission("admin.edit")
def accounts_list():
    s = db_session()
    users = s.query(User).order_by(User.email.asc()).all()
    return render_template("admin/accounts.html", users=users, roles=ROLES, role_of=user_role)


@bp.post("/accounts/<int:user_id>/update")
@require_permission("admin.edit")
def accounts_update(user_id: int):
    s = db_session()
    u = _current_user()
    user = s.get(User, user_id)
    if not user:
        abort(404)

    if user.id == u.id:
        flash("You cannot modify your own account from this page.", "danger")
        return redirect(url_for("admin.accounts_list"))

    role = (request.form.get("role") or "").strip().lower()
    is_active = request.form.get("is_active") == "1"
    reason = (request.form.get("reason") or "").strip() or None

    try:
        profile = ensure_profile(s, user)
        if role and role != profile.role:
            set_role(s, profile, role, u, reason=reason)
        if user.is_active != is_active:
            user.is_active = is_active
            record_event(
                s,
                actor=u,
                action="user.set_active",
                entity_type="User",
                entity_id=str(user.id),
                reason=reason,
                metadata={"email": user.email, "is_active": is_active},
            )
        s.commit()
    except ValueError as e:
        s.rollback()
        flash(str(e), "danger")
        return redirect(url_for("admin.accounts_list"))
    except SQLAlchemyError:
        report_backend_error(s, "updating account")
        return redirect(url_for("admin.accounts_list"))

    flash(f"Account updated for {user.email}.", "success")
    return redirect(url_for("admin.accounts_list"))


@bp.get("/audit")
@require_permission("admin.view")
def audit_list():
    """
    Audit trail UI (last 200 events) with simple filters:
    - action (contains)
    - actor_email (contains)
    - date range (YYYY-MM-DD)
    """
    s = db_session()
    action = (request.args.get("action") or "").strip()
    actor_email = (request.args.get("actor_email") or "").strip()
    date_from = _parse_date(request.args.get("date_from") or "")
    date_to = _parse_date(request.args.get("date_to") or "")

    if (request.args.get("date_from") or "").strip() and not date_from:
        flash("date_from must be YYYY-MM-DD", "danger")
    if (request.args.get("date_to") or "").strip() and not date_to:
        flash("date_to must be YYYY-MM-DD", "danger")

    q = s.query(AuditEvent)
    if action:
        q = q.filter(AuditEvent.action.like(f"%{action}%"))
    if actor_email:
        q = q.filter(AuditEvent.actor_user_email.like(f"%{actor_email.lower()}%"))
    if date_from:
        q = q.filter(AuditEvent.created_at >= datetime.combine(date_from, time.min))
    if date_to:
        # inclusive end-date (treat as whole day)
        q = q.filter(AuditEvent.created_at < datetime.combine(date_to + timedelta(days=1), time.min))

    events = q.order_by(AuditEvent.created_at.desc(), AuditEvent.id.desc()).limit(200).all()
    return render_template(
        "admin/audit.html",
        events=events,
        action=action,
        actor_email=actor_email,
        date_from=(request.args.get("date_from") or "").strip(),
        date_to=(request.args.get("date_to") or "").strip(),
    )
