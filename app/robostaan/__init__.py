import logging
from datetime import timedelta

from flask import Flask, g, render_template, request, session
from dotenv import load_dotenv

from app.robostaan.config import load_config
from app.robostaan.db import init_db, teardown_db_session
from app.robostaan.auth import bp as auth_bp, load_current_user
from app.robostaan.policies import PolicyViolation
from app.robostaan.routes import bp as routes_bp
from app.robostaan.admin import bp as admin_bp
from app.robostaan.modules.blogs.routes import bp as blogs_bp
from app.robostaan.modules.courses.routes import bp as courses_bp
from app.robostaan.modules.comments.routes import bp as comments_bp
from app.robostaan.modules.profiles.routes import bp as profiles_bp
from app.robostaan.modules.newsletter.routes import bp as newsletter_bp


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__, template_folder="templates", static_folder="static")
    app.config.from_mapping(load_config())
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(days=7)
    app.config["SESSION_REFRESH_EACH_REQUEST"] = True

    logging.basicConfig(
        level=app.config.get("LOG_LEVEL") or "INFO",
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app.logger.setLevel(app.config.get("LOG_LEVEL") or "INFO")

    # CSRF protection (minimal)
    from app.robostaan.security import ensure_csrf_token, validate_csrf

    @app.context_processor
    def _inject_csrf() -> dict:
        return {"csrf_token": ensure_csrf_token()}

    @app.context_processor
    def _inject_permissions() -> dict:
        from app.robostaan.policies import is_allowed
        from app.robostaan.rbac import is_admin, user_has_permission, user_role

        user = getattr(g, "current_user", None)

        def has_perm(key: str) -> bool:
            return user_has_permission(user, key)

        def can(table: str, action: str, row=None) -> bool:
            return is_allowed(user, table, action, row)

        if user is not None and user.preferences is not None:
            dark_mode = bool(user.preferences.dark_mode)
        else:
            dark_mode = bool(session.get("dark_mode"))

        return {
            "has_perm": has_perm,
            "can": can,
            "current_user": user,
            "current_role": user_role(user),
            "is_admin": is_admin(user),
            "dark_mode": dark_mode,
        }

    @app.template_filter("dateformat")
    def _dateformat_filter(value, format: str = "%Y-%m-%d") -> str:
        if value is None:
            return "-"
        if hasattr(value, "strftime"):
            return value.strftime(format)
        return str(value)

    @app.before_request
    def _csrf_guard():
        if request.path.startswith(("/static/", "/health", "/healthz")):
            return None
        ensure_csrf_token()
        session.permanent = True
        if request.method in ("POST", "PUT", "PATCH", "DELETE"):
            # Allow auth endpoints to pass through (signup/login/logout)
            if (request.endpoint or "").startswith("auth."):
                return None
            if not validate_csrf(request):
                return render_template("errors/400.html", message="CSRF token missing or invalid."), 400

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    if env in ("prod", "production"):
        if not app.config.get("DATABASE_URL") or str(app.config["DATABASE_URL"]).strip() == "":
            raise RuntimeError("DATABASE_URL is required in production.")
        if str(app.config["DATABASE_URL"]).startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
        if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
            raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")
        if str(app.config.get("ADMIN_SIGNUP_SECRET") or "") in ("", "change-me"):
            raise RuntimeError("ADMIN_SIGNUP_SECRET must be set to a strong value in production (not default).")

    init_db(app)

    def _dispose_engine_on_fork() -> None:
        import os
        if hasattr(os, "register_at_fork"):
            def _after_fork_child():
                engine = app.extensions.get("sqlalchemy_engine")
                if engine:
                    engine.dispose()
                    app.logger.info("Disposed DB engine after fork (pid=%s)", os.getpid())

            os.register_at_fork(after_in_child=_after_fork_child)

    _dispose_engine_on_fork()

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(admin_bp, url_prefix="/admin")
    app.register_blueprint(blogs_bp)
    app.register_blueprint(courses_bp)
    app.register_blueprint(comments_bp)
    app.register_blueprint(profiles_bp)
    app.register_blueprint(newsletter_bp)

    def _load_user_wrapper():
        if request.path.startswith(("/static/", "/health", "/healthz")):
            g.current_user = None
            return None
        return load_current_user()

    # Registered ahead of the CSRF guard so every handler sees g.current_user.
    app.before_request_funcs.setdefault(None, []).insert(0, _load_user_wrapper)
    app.teardown_appcontext(teardown_db_session)

    @app.errorhandler(PolicyViolation)
    def _err_policy(e: PolicyViolation):
        app.logger.warning(
            "Policy denied: table=%s action=%s actor_id=%s request_id=%s",
            e.table,
            e.action,
            e.actor_id,
            getattr(g, "request_id", None),
        )
        s = getattr(g, "db_session", None)
        if s is not None:
            s.rollback()
        return render_template("errors/403.html", missing_permission=None), 403

    @app.errorhandler(400)
    def _err_400(e):  # type: ignore[no-redef]
        return render_template("errors/400.html", message=getattr(e, "description", None)), 400

    @app.errorhandler(404)
    def _err_404(e):  # type: ignore[no-redef]
        return render_template("errors/404.html"), 404

    @app.errorhandler(500)
    def _err_500(e):  # type: ignore[no-redef]
        app.logger.exception("Unhandled 500 (request_id=%s)", getattr(g, "request_id", None))
        return render_template("errors/500.html"), 500

    @app.errorhandler(403)
    def _err_403(e):  # type: ignore[no-redef]
        missing = getattr(g, "missing_permission", None)
        if missing:
            app.logger.warning("Forbidden: missing_permission=%s request_id=%s", missing, getattr(g, "request_id", None))
        return render_template("errors/403.html", missing_permission=missing), 403

    logging.getLogger(__name__).info("create_app() complete; app ready to serve")

    return app
