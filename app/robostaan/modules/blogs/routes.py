from __future__ import annotations

from flask import Blueprint, abort, flash, g, redirect, render_template, request, url_for
from sqlalchemy.exc import SQLAlchemyError

from app.robostaan.catalog import catalog
from app.robostaan.db import db_session
from app.robostaan.errors import report_backend_error
from app.robostaan.modules.blogs.service import (
    like_count,
    liked_by,
    parse_blog_form,
    toggle_like,
    validate_blog_payload,
)
from app.robostaan.modules.comments.service import build_thread, list_comments
from app.robostaan.rbac import login_required, require_permission

bp = Blueprint("blogs", __name__)


def _get_blog_or_404(blog_id: int):
    blog = catalog().get_blog(blog_id)
    if blog is None:
        abort(404)
    return blog


# ---------- List ----------
@bp.get("/blogs")
def blogs_list():
    cat = catalog()
    search = (request.args.get("q") or "").strip()
    tag = (request.args.get("tag") or "").strip()
    return render_template(
        "blogs/list.html",
        blogs=cat.search_blogs(search, tag),
        tags=cat.all_tags(),
        search=search,
        tag_filter=tag,
    )


# ---------- Detail ----------
@bp.get("/blogs/<int:blog_id>")
def blog_detail(blog_id: int):
    s = db_session()
    blog = _get_blog_or_404(blog_id)
    user = getattr(g, "current_user", None)
    return render_template(
        "blogs/detail.html",
        blog=blog,
        likes=like_count(s, blog.id),
        liked=liked_by(s, blog.id, user),
        thread=build_thread(list_comments(s, blog_id=blog.id)),
    )


# ---------- New ----------
@bp.get("/blogs/new")
@require_permission("blogs.create")
def blogs_new_get():
    return render_template("blogs/form.html", blog=None, form={})


@bp.post("/blogs/new")
@require_permission("blogs.create")
def blogs_new_post():
    s = db_session()
    payload = parse_blog_form(request.form)

    errors = validate_blog_payload(payload)
    if errors:
        for e in errors:
            flash(e, "danger")
        return render_template("blogs/form.html", blog=None, form=request.form), 400

    try:
        blog = catalog().add_blog(payload)
        s.commit()
    except SQLAlchemyError:
        report_backend_error(s, "saving blog")
        return render_template("blogs/form.html", blog=None, form=request.form), 500

    flash("Blog created.", "success")
    return redirect(url_for("blogs.blog_detail", blog_id=blog.id))


# ---------- Edit ----------
@bp.get("/blogs/<int:blog_id>/edit")
@require_permission("blogs.edit")
def blog_edit_get(blog_id: int):
    blog = _get_blog_or_404(blog_id)
    form = {
        "title": blog.title,
        "content": blog.content,
        "snippet": blog.snippet,
        "image": blog.image,
        "author": blog.author,
        "tags": ", ".join(blog.tags or []),
        "featured": "1" if blog.featured else "",
    }
    return render_template("blogs/form.html", blog=blog, form=form)


@bp.post("/blogs/<int:blog_id>/edit")
@require_permission("blogs.edit")
def blog_edit_post(blog_id: int):
    s = db_session()
    _get_blog_or_404(blog_id)
    payload = parse_blog_form(request.form)

    errors = validate_blog_payload(payload)
    if errors:
        for e in errors:
            flash(e, "danger")
        return redirect(url_for("blogs.blog_edit_get", blog_id=blog_id))

    try:
        catalog().update_blog(blog_id, payload)
        s.commit()
    except SQLAlchemyError:
        report_backend_error(s, "saving blog")
        return redirect(url_for("blogs.blog_edit_get", blog_id=blog_id))

    flash("Blog updated.", "success")
    return redirect(url_for("blogs.blog_detail", blog_id=blog_id))


# ---------- Delete ----------
@bp.post("/blogs/<int:blog_id>/delete")
@require_permission("blogs.delete")
def blog_delete(blog_id: int):
    s = db_session()
    _get_blog_or_404(blog_id)
    try:
        catalog().delete_blog(blog_id)
        s.commit()
    except SQLAlchemyError:
        report_backend_error(s, "deleting blog")
        return redirect(url_for("blogs.blog_detail", blog_id=blog_id))

    flash("Blog deleted.", "success")
    return redirect(url_for("blogs.blogs_list"))


# ---------- Like ----------
@bp.post("/blogs/<int:blog_id>/like")
@login_required
def blog_like(blog_id: int):
    s = db_session()
    blog = _get_blog_or_404(blog_id)
    try:
        toggle_like(s, blog, g.current_user)
        s.commit()
    except SQLAlchemyError:
        report_backend_error(s, "updating like")
    return redirect(url_for("blogs.blog_detail", blog_id=blog_id))
