from __future__ import annotations

from flask import Blueprint, abort, flash, g, redirect, request, url_for
from sqlalchemy.exc import SQLAlchemyError

from app.robostaan.catalog import catalog
from app.robostaan.db import db_session
from app.robostaan.errors import report_backend_error
from app.robostaan.modules.comments.models import Comment
from app.robostaan.modules.comments.service import create_comment, delete_comment, update_comment
from app.robostaan.rbac import login_required

bp = Blueprint("comments", __name__)


def _int_or_none(raw: str | None) -> int | None:
    raw = (raw or "").strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        abort(400)


def _target_url(blog_id: int | None, course_id: int | None) -> str:
    if blog_id is not None:
        return url_for("blogs.blog_detail", blog_id=blog_id) + "#comments"
    if course_id is not None:
        return url_for("courses.course_detail", course_id=course_id) + "#comments"
    return url_for("routes.index")


def _get_comment_or_404(comment_id: int) -> Comment:
    comment = db_session().get(Comment, comment_id)
    if comment is None:
        abort(404)
    return comment


@bp.post("/comments")
@login_required
def comment_create():
    s = db_session()
    blog_id = _int_or_none(request.form.get("blog_id"))
    course_id = _int_or_none(request.form.get("course_id"))
    parent_id = _int_or_none(request.form.get("parent_id"))

    parent = _get_comment_or_404(parent_id) if parent_id is not None else None
    if parent is not None and blog_id is None and course_id is None:
        blog_id, course_id = parent.blog_id, parent.course_id

    cat = catalog()
    if blog_id is not None and cat.get_blog(blog_id) is None:
        abort(404)
    if course_id is not None and cat.get_course(course_id) is None:
        abort(404)

    try:
        create_comment(
            s,
            g.current_user,
            request.form.get("content"),
            blog_id=blog_id,
            course_id=course_id,
            parent=parent,
        )
        s.commit()
    except ValueError as e:
        s.rollback()
        flash(str(e), "danger")
        return redirect(_target_url(blog_id, course_id))
    except SQLAlchemyError:
        report_backend_error(s, "posting comment")
        return redirect(_target_url(blog_id, course_id))

    flash("Reply posted." if parent is not None else "Comment posted.", "success")
    return redirect(_target_url(blog_id, course_id))


@bp.post("/comments/<int:comment_id>/edit")
@login_required
def comment_edit(comment_id: int):
    s = db_session()
    comment = _get_comment_or_404(comment_id)
    target = _target_url(comment.blog_id, comment.course_id)

    try:
        update_comment(s, comment, request.form.get("content"), g.current_user)
        s.commit()
    except ValueError as e:
        s.rollback()
        flash(str(e), "danger")
        return redirect(target)
    except SQLAlchemyError:
        report_backend_error(s, "saving comment")
        return redirect(target)

    flash("Comment updated.", "success")
    return redirect(target)


@bp.post("/comments/<int:comment_id>/delete")
@login_required
def comment_delete(comment_id: int):
    s = db_session()
    comment = _get_comment_or_404(comment_id)
    target = _target_url(comment.blog_id, comment.course_id)

    try:
        delete_comment(s, comment, g.current_user)
        s.commit()
    except SQLAlchemyError:
        report_backend_error(s, "deleting comment")
        return redirect(target)

    flash("Comment deleted.", "success")
    return redirect(target)
