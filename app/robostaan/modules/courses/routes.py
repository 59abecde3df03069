from __future__ import annotations

from flask import Blueprint, abort, flash, g, redirect, render_template, request, url_for
from sqlalchemy.exc import SQLAlchemyError

from app.robostaan.catalog import catalog
from app.robostaan.constants import COURSE_CATEGORIES
from app.robostaan.db import db_session
from app.robostaan.errors import report_backend_error
from app.robostaan.modules.comments.service import build_thread, list_comments
from app.robostaan.modules.courses.service import (
    enroll,
    enrollment_for,
    enrollments_for_user,
    parse_course_form,
    unenroll,
    update_progress,
    validate_course_payload,
)
from app.robostaan.rbac import login_required, require_permission

bp = Blueprint("courses", __name__)


def _get_course_or_404(course_id: int):
    course = catalog().get_course(course_id)
    if course is None:
        abort(404)
    return course


def _course_form_values(course) -> dict:
    return {
        "title": course.title,
        "description": course.description,
        "content": course.content,
        "image": course.image,
        "duration": course.duration,
        "category": course.category,
        "video_url": course.video_url or "",
        "materials": "\n".join(course.materials or []),
        "featured": "1" if course.featured else "",
    }


# ---------- List ----------
@bp.get("/courses")
def courses_list():
    cat = catalog()
    search = (request.args.get("q") or "").strip()
    category = (request.args.get("category") or "").strip()
    return render_template(
        "courses/list.html",
        courses=cat.search_courses(search, category),
        categories=cat.all_categories(),
        search=search,
        category_filter=category,
    )


# ---------- Detail ----------
@bp.get("/courses/<int:course_id>")
def course_detail(course_id: int):
    s = db_session()
    course = _get_course_or_404(course_id)
    return render_template(
        "courses/detail.html",
        course=course,
        enrollment=enrollment_for(s, course.id, getattr(g, "current_user", None)),
        thread=build_thread(list_comments(s, course_id=course.id)),
    )


# ---------- New ----------
@bp.get("/courses/new")
@require_permission("courses.create")
def courses_new_get():
    return render_template("courses/form.html", course=None, form={}, categories=COURSE_CATEGORIES)


@bp.post("/courses/new")
@require_permission("courses.create")
def courses_new_post():
    s = db_session()
    payload = parse_course_form(request.form)

    errors = validate_course_payload(payload)
    if errors:
        for e in errors:
            flash(e, "danger")
        return render_template("courses/form.html", course=None, form=request.form, categories=COURSE_CATEGORIES), 400

    try:
        course = catalog().add_course(payload)
        s.commit()
    except SQLAlchemyError:
        report_backend_error(s, "saving course")
        return render_template("courses/form.html", course=None, form=request.form, categories=COURSE_CATEGORIES), 500

    flash("Course created.", "success")
    return redirect(url_for("courses.course_detail", course_id=course.id))


# ---------- Edit ----------
@bp.get("/courses/<int:course_id>/edit")
@require_permission("courses.edit")
def course_edit_get(course_id: int):
    course = _get_course_or_404(course_id)
    return render_template(
        "courses/form.html",
        course=course,
        form=_course_form_values(course),
        categories=COURSE_CATEGORIES,
    )


@bp.post("/courses/<int:course_id>/edit")
@require_permission("courses.edit")
def course_edit_post(course_id: int):
    s = db_session()
    _get_course_or_404(course_id)
    payload = parse_course_form(request.form)

    errors = validate_course_payload(payload)
    if errors:
        for e in errors:
            flash(e, "danger")
        return redirect(url_for("courses.course_edit_get", course_id=course_id))

    try:
        catalog().update_course(course_id, payload)
        s.commit()
    except SQLAlchemyError:
        report_backend_error(s, "saving course")
        return redirect(url_for("courses.course_edit_get", course_id=course_id))

    flash("Course updated.", "success")
    return redirect(url_for("courses.course_detail", course_id=course_id))


# ---------- Delete ----------
@bp.post("/courses/<int:course_id>/delete")
@require_permission("courses.delete")
def course_delete(course_id: int):
    s = db_session()
    _get_course_or_404(course_id)
    try:
        catalog().delete_course(course_id)
        s.commit()
    except SQLAlchemyError:
        report_backend_error(s, "deleting course")
        return redirect(url_for("courses.course_detail", course_id=course_id))

    flash("Course deleted.", "success")
    return redirect(url_for("courses.courses_list"))


# ---------- Enrollment ----------
@bp.post("/courses/<int:course_id>/enroll")
@login_required
def course_enroll(course_id: int):
    s = db_session()
    course = _get_course_or_404(course_id)
    try:
        _, created = enroll(s, course, g.current_user)
        s.commit()
    except SQLAlchemyError:
        report_backend_error(s, "enrolling in course")
        return redirect(url_for("courses.course_detail", course_id=course_id))

    flash("Enrolled successfully!" if created else "You are already enrolled in this course.", "success" if created else "info")
    return redirect(url_for("courses.course_detail", course_id=course_id))


@bp.post("/courses/<int:course_id>/progress")
@login_required
def course_progress(course_id: int):
    s = db_session()
    course = _get_course_or_404(course_id)
    enrollment = enrollment_for(s, course.id, g.current_user)
    if enrollment is None:
        flash("Enroll in this course to track progress.", "danger")
        return redirect(url_for("courses.course_detail", course_id=course_id))

    try:
        update_progress(s, enrollment, request.form.get("progress"), g.current_user)
        s.commit()
    except ValueError as e:
        s.rollback()
        flash(str(e), "danger")
        return redirect(url_for("courses.course_detail", course_id=course_id))
    except SQLAlchemyError:
        report_backend_error(s, "updating progress")
        return redirect(url_for("courses.course_detail", course_id=course_id))

    flash("Progress updated.", "success")
    nxt = (request.form.get("next") or "").strip()
    if nxt == "my-courses":
        return redirect(url_for("courses.my_courses"))
    return redirect(url_for("courses.course_detail", course_id=course_id))


@bp.post("/courses/<int:course_id>/unenroll")
@login_required
def course_unenroll(course_id: int):
    s = db_session()
    course = _get_course_or_404(course_id)
    enrollment = enrollment_for(s, course.id, g.current_user)
    if enrollment is None:
        flash("You are not enrolled in this course.", "info")
        return redirect(url_for("courses.course_detail", course_id=course_id))

    try:
        unenroll(s, enrollment, g.current_user)
        s.commit()
    except SQLAlchemyError:
        report_backend_error(s, "leaving course")
        return redirect(url_for("courses.course_detail", course_id=course_id))

    flash("You have left the course.", "success")
    return redirect(url_for("courses.course_detail", course_id=course_id))


@bp.get("/my-courses")
@login_required
def my_courses():
    s = db_session()
    return render_template("courses/my_courses.html", rows=enrollments_for_user(s, g.current_user))
