from flask import Blueprint, render_template

from app.robostaan.catalog import catalog

bp = Blueprint("routes", __name__)


@bp.get("/")
def index():
    cat = catalog()
    return render_template(
        "public/index.html",
        featured_blogs=cat.featured_blogs(),
        featured_courses=cat.featured_courses(),
    )


@bp.get("/health")
def health():
    """Health check endpoint. Returns JSON."""
    return {"ok": True}


@bp.get("/healthz")
def healthz():
    """
    Fast health check for probes. No DB access, minimal overhead.
    """
    return "ok", 200
