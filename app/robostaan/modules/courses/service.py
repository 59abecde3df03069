from __future__ import annotations

from typing import TYPE_CHECKING

from app.robostaan.audit import record_event
from app.robostaan.constants import COURSE_CATEGORIES, PROGRESS_MAX, PROGRESS_MIN
from app.robostaan.policies import DELETE, INSERT, UPDATE, enforce
from app.robostaan.utils import apply_changes, clean_html, form_flag, split_list, utcnow

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.robostaan.models import User
    from app.robostaan.modules.courses.models import Course, CourseEnrollment


REQUIRED_FIELDS = ("title", "description", "image", "duration", "category")
OPTIONAL_TEXT_FIELDS = ("content", "video_url")
EDITABLE_FIELDS = REQUIRED_FIELDS + OPTIONAL_TEXT_FIELDS + ("materials", "featured")

_LABELS = {
    "title": "Title",
    "description": "Description",
    "image": "Image URL",
    "duration": "Duration",
    "category": "Category",
}


def parse_course_form(form) -> dict:
    payload = {field: form.get(field) for field in REQUIRED_FIELDS + OPTIONAL_TEXT_FIELDS}
    payload["materials"] = form.get("materials")
    payload["featured"] = form.get("featured")
    return payload


def normalize_course_payload(payload: dict) -> dict:
    out: dict = {}
    for field in REQUIRED_FIELDS:
        if field in payload:
            out[field] = (payload.get(field) or "").strip()
    if "content" in payload:
        out["content"] = clean_html(payload.get("content"))
    if "video_url" in payload:
        out["video_url"] = (payload.get("video_url") or "").strip() or None
    if "materials" in payload:
        out["materials"] = split_list(payload.get("materials"))
    if "featured" in payload:
        out["featured"] = form_flag(payload.get("featured"))
    return out


def validate_course_payload(payload: dict, *, partial: bool = False) -> list[str]:
    """Validate course creation/update payload. Returns list of errors."""
    errors = []
    values = normalize_course_payload(payload)
    for field in REQUIRED_FIELDS:
        if partial and field not in values:
            continue
        if not values.get(field):
            errors.append(f"{_LABELS[field]} is required.")
    category = values.get("category")
    if category and category not in COURSE_CATEGORIES:
        errors.append(f"Invalid category. Must be one of: {', '.join(COURSE_CATEGORIES)}")
    video_url = values.get("video_url")
    if video_url and not video_url.startswith(("http://", "https://")):
        errors.append("Video URL must start with http:// or https://")
    return errors


def create_course(s: "Session", payload: dict, user: "User | None") -> "Course":
    from app.robostaan.modules.courses.models import Course

    enforce(user, "courses", INSERT)
    errors = validate_course_payload(payload)
    if errors:
        raise ValueError(" ".join(errors))

    values = normalize_course_payload(payload)
    now = utcnow()
    course = Course(
        title=values["title"],
        description=values["description"],
        content=values.get("content", ""),
        image=values["image"],
        duration=values["duration"],
        category=values["category"],
        video_url=values.get("video_url"),
        materials=values.get("materials", []),
        featured=values.get("featured", False),
        created_at=now,
        updated_at=now,
    )
    s.add(course)
    s.flush()

    record_event(
        s,
        actor=user,
        action="course.create",
        entity_type="Course",
        entity_id=str(course.id),
        metadata={"title": course.title, "category": course.category},
    )
    return course


def update_course(s: "Session", course: "Course", payload: dict, user: "User | None") -> "Course":
    enforce(user, "courses", UPDATE, course)
    errors = validate_course_payload(payload, partial=True)
    if errors:
        raise ValueError(" ".join(errors))

    changes = apply_changes(course, normalize_course_payload(payload), EDITABLE_FIELDS)
    course.updated_at = utcnow()

    record_event(
        s,
        actor=user,
        action="course.edit",
        entity_type="Course",
        entity_id=str(course.id),
        metadata={"title": course.title, "changed_fields": sorted(changes)},
    )
    return course


def delete_course(s: "Session", course: "Course", user: "User | None") -> None:
    """Hard delete; enrollments and comments cascade."""
    enforce(user, "courses", DELETE, course)
    record_event(
        s,
        actor=user,
        action="course.delete",
        entity_type="Course",
        entity_id=str(course.id),
        metadata={"title": course.title},
    )
    s.delete(course)
    s.flush()


# ---------- Enrollments ----------
def clamp_progress(value: object) -> int:
    """Coerce a progress value to an int in [0, 100]. Raises ValueError if it is not numeric."""
    try:
        n = int(round(float(value)))  # type: ignore[arg-type]
    except (TypeError, ValueError, OverflowError) as e:
        raise ValueError("Progress must be a number between 0 and 100.") from e
    return max(PROGRESS_MIN, min(PROGRESS_MAX, n))


def enrollment_for(s: "Session", course_id: int, user: "User | None") -> "CourseEnrollment | None":
    from app.robostaan.modules.courses.models import CourseEnrollment

    if not user:
        return None
    return (
        s.query(CourseEnrollment)
        .filter(CourseEnrollment.course_id == course_id)
        .filter(CourseEnrollment.user_id == user.id)
        .one_or_none()
    )


def enroll(s: "Session", course: "Course", user: "User | None") -> tuple["CourseEnrollment", bool]:
    """Enroll `user` in `course`. Idempotent: returns (enrollment, created)."""
    from app.robostaan.modules.courses.models import CourseEnrollment

    existing = enrollment_for(s, course.id, user)
    if existing:
        return existing, False

    enrollment = CourseEnrollment(
        user_id=user.id if user else None,
        course_id=course.id,
        enrolled_at=utcnow(),
        progress=0,
    )
    enforce(user, "course_enrollments", INSERT, enrollment)
    s.add(enrollment)
    s.flush()

    record_event(
        s,
        actor=user,
        action="course.enroll",
        entity_type="CourseEnrollment",
        entity_id=str(enrollment.id),
        metadata={"course_id": course.id},
    )
    return enrollment, True


def update_progress(s: "Session", enrollment: "CourseEnrollment", value: object, user: "User | None") -> "CourseEnrollment":
    """
    Store clamped progress. Reaching 100 stamps completed_at (once);
    dropping below 100 clears it.
    """
    enforce(user, "course_enrollments", UPDATE, enrollment)
    progress = clamp_progress(value)
    enrollment.progress = progress
    if progress >= PROGRESS_MAX:
        if enrollment.completed_at is None:
            enrollment.completed_at = utcnow()
    else:
        enrollment.completed_at = None
    return enrollment


def unenroll(s: "Session", enrollment: "CourseEnrollment", user: "User | None") -> None:
    enforce(user, "course_enrollments", DELETE, enrollment)
    record_event(
        s,
        actor=user,
        action="course.unenroll",
        entity_type="CourseEnrollment",
        entity_id=str(enrollment.id),
        metadata={"course_id": enrollment.course_id},
    )
    s.delete(enrollment)
    s.flush()


def enrollments_for_user(s: "Session", user: "User") -> list[tuple["CourseEnrollment", "Course"]]:
    from app.robostaan.modules.courses.models import Course, CourseEnrollment

    rows = (
        s.query(CourseEnrollment, Course)
        .join(Course, Course.id == CourseEnrollment.course_id)
        .filter(CourseEnrollment.user_id == user.id)
        .order_by(CourseEnrollment.enrolled_at.desc(), CourseEnrollment.id.desc())
        .all()
    )
    return [(e, c) for e, c in rows]
