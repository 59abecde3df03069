from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import func

from app.robostaan.audit import record_event
from app.robostaan.policies import DELETE, INSERT, UPDATE, enforce
from app.robostaan.utils import apply_changes, clean_html, form_flag, split_list, utcnow

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.robostaan.models import User
    from app.robostaan.modules.blogs.models import Blog


REQUIRED_FIELDS = ("title", "content", "snippet", "image", "author")
EDITABLE_FIELDS = REQUIRED_FIELDS + ("tags", "featured")

_LABELS = {
    "title": "Title",
    "content": "Content",
    "snippet": "Snippet",
    "image": "Image URL",
    "author": "Author",
}


def parse_blog_form(form) -> dict:
    """Pull blog fields out of a submitted form (tags are comma- or newline-separated)."""
    payload = {field: form.get(field) for field in REQUIRED_FIELDS}
    payload["tags"] = form.get("tags")
    payload["featured"] = form.get("featured")
    return payload


def normalize_blog_payload(payload: dict) -> dict:
    out: dict = {}
    for field in REQUIRED_FIELDS:
        if field in payload:
            out[field] = (payload.get(field) or "").strip()
    if "content" in out:
        out["content"] = clean_html(out["content"])
    if "tags" in payload:
        out["tags"] = split_list(payload.get("tags"))
    if "featured" in payload:
        out["featured"] = form_flag(payload.get("featured"))
    return out


def validate_blog_payload(payload: dict, *, partial: bool = False) -> list[str]:
    """Validate blog creation/update payload. Returns list of errors."""
    errors = []
    values = normalize_blog_payload(payload)
    for field in REQUIRED_FIELDS:
        if partial and field not in values:
            continue
        if not values.get(field):
            errors.append(f"{_LABELS[field]} is required.")
    return errors


def create_blog(s: "Session", payload: dict, user: "User | None") -> "Blog":
    """Create a new blog post."""
    from app.robostaan.modules.blogs.models import Blog

    enforce(user, "blogs", INSERT)
    errors = validate_blog_payload(payload)
    if errors:
        raise ValueError(" ".join(errors))

    values = normalize_blog_payload(payload)
    now = utcnow()
    blog = Blog(
        title=values["title"],
        content=values["content"],
        snippet=values["snippet"],
        image=values["image"],
        author=values["author"],
        tags=values.get("tags", []),
        featured=values.get("featured", False),
        created_at=now,
        updated_at=now,
    )
    s.add(blog)
    s.flush()

    record_event(
        s,
        actor=user,
        action="blog.create",
        entity_type="Blog",
        entity_id=str(blog.id),
        metadata={"title": blog.title, "featured": blog.featured},
    )
    return blog


def update_blog(s: "Session", blog: "Blog", payload: dict, user: "User | None") -> "Blog":
    """Partial update: only fields present in `payload` are touched."""
    enforce(user, "blogs", UPDATE, blog)
    errors = validate_blog_payload(payload, partial=True)
    if errors:
        raise ValueError(" ".join(errors))

    changes = apply_changes(blog, normalize_blog_payload(payload), EDITABLE_FIELDS)
    blog.updated_at = utcnow()

    record_event(
        s,
        actor=user,
        action="blog.edit",
        entity_type="Blog",
        entity_id=str(blog.id),
        metadata={"title": blog.title, "changed_fields": sorted(changes)},
    )
    return blog


def delete_blog(s: "Session", blog: "Blog", user: "User | None") -> None:
    """Hard delete; likes and comments go with it (ON DELETE CASCADE)."""
    enforce(user, "blogs", DELETE, blog)
    record_event(
        s,
        actor=user,
        action="blog.delete",
        entity_type="Blog",
        entity_id=str(blog.id),
        metadata={"title": blog.title},
    )
    s.delete(blog)
    s.flush()


def like_count(s: "Session", blog_id: int) -> int:
    from app.robostaan.modules.blogs.models import BlogLike

    return s.query(func.count(BlogLike.id)).filter(BlogLike.blog_id == blog_id).scalar() or 0


def liked_by(s: "Session", blog_id: int, user: "User | None") -> bool:
    from app.robostaan.modules.blogs.models import BlogLike

    if not user:
        return False
    return (
        s.query(BlogLike.id)
        .filter(BlogLike.blog_id == blog_id)
        .filter(BlogLike.user_id == user.id)
        .first()
        is not None
    )


def toggle_like(s: "Session", blog: "Blog", user: "User | None") -> bool:
    """Like the blog, or remove an existing like. Returns True if the blog is now liked."""
    from app.robostaan.modules.blogs.models import BlogLike

    existing = None
    if user:
        existing = (
            s.query(BlogLike)
            .filter(BlogLike.blog_id == blog.id)
            .filter(BlogLike.user_id == user.id)
            .one_or_none()
        )
    if existing:
        enforce(user, "blog_likes", DELETE, existing)
        s.delete(existing)
        s.flush()
        return False

    like = BlogLike(user_id=user.id if user else None, blog_id=blog.id, created_at=utcnow())
    enforce(user, "blog_likes", INSERT, like)
    s.add(like)
    s.flush()
    return True
