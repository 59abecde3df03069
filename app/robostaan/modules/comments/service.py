from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from app.robostaan.audit import record_event
from app.robostaan.policies import DELETE, INSERT, UPDATE, enforce
from app.robostaan.utils import utcnow

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.robostaan.models import User
    from app.robostaan.modules.comments.models import Comment


MAX_COMMENT_LENGTH = 5000


@dataclass
class CommentNode:
    comment: "Comment"
    replies: list["CommentNode"] = field(default_factory=list)


def validate_comment_target(blog_id: int | None, course_id: int | None) -> None:
    if (blog_id is None) == (course_id is None):
        raise ValueError("A comment must reference exactly one blog or one course.")


def _clean_content(content: str | None) -> str:
    text = (content or "").strip()
    if not text:
        raise ValueError("Comment cannot be empty.")
    if len(text) > MAX_COMMENT_LENGTH:
        raise ValueError(f"Comment is too long (max {MAX_COMMENT_LENGTH} characters).")
    return text


def create_comment(
    s: "Session",
    user: "User | None",
    content: str | None,
    *,
    blog_id: int | None = None,
    course_id: int | None = None,
    parent: "Comment | None" = None,
) -> "Comment":
    """Create a comment or a reply. A reply inherits (and must match) its parent's target."""
    from app.robostaan.modules.comments.models import Comment

    if parent is not None:
        if blog_id is None and course_id is None:
            blog_id, course_id = parent.blog_id, parent.course_id
        elif (blog_id, course_id) != (parent.blog_id, parent.course_id):
            raise ValueError("A reply must belong to the same blog or course as its parent.")
    validate_comment_target(blog_id, course_id)
    text = _clean_content(content)

    now = utcnow()
    comment = Comment(
        user_id=user.id if user else None,
        blog_id=blog_id,
        course_id=course_id,
        parent_id=parent.id if parent is not None else None,
        content=text,
        created_at=now,
        updated_at=now,
    )
    enforce(user, "comments", INSERT, comment)
    s.add(comment)
    s.flush()

    record_event(
        s,
        actor=user,
        action="comment.create",
        entity_type="Comment",
        entity_id=str(comment.id),
        metadata={"blog_id": blog_id, "course_id": course_id, "parent_id": comment.parent_id},
    )
    return comment


def update_comment(s: "Session", comment: "Comment", content: str | None, user: "User | None") -> "Comment":
    enforce(user, "comments", UPDATE, comment)
    comment.content = _clean_content(content)
    comment.updated_at = utcnow()
    return comment


def delete_comment(s: "Session", comment: "Comment", user: "User | None") -> None:
    """Replies are removed with their parent (ON DELETE CASCADE)."""
    enforce(user, "comments", DELETE, comment)
    record_event(
        s,
        actor=user,
        action="comment.delete",
        entity_type="Comment",
        entity_id=str(comment.id),
        metadata={"blog_id": comment.blog_id, "course_id": comment.course_id, "author_user_id": comment.user_id},
    )
    s.delete(comment)
    s.flush()


def list_comments(s: "Session", *, blog_id: int | None = None, course_id: int | None = None) -> list["Comment"]:
    from app.robostaan.modules.comments.models import Comment

    validate_comment_target(blog_id, course_id)
    q = s.query(Comment)
    if blog_id is not None:
        q = q.filter(Comment.blog_id == blog_id)
    else:
        q = q.filter(Comment.course_id == course_id)
    return q.order_by(Comment.created_at.asc(), Comment.id.asc()).all()


def build_thread(comments: list["Comment"]) -> list[CommentNode]:
    """
    Nest a flat, oldest-first list into reply trees. Comments whose parent is
    not in the list are treated as roots.
    """
    nodes = {c.id: CommentNode(c) for c in comments}
    roots: list[CommentNode] = []
    for c in comments:
        node = nodes[c.id]
        parent = nodes.get(c.parent_id) if c.parent_id is not None else None
        if parent is None:
            roots.append(node)
        else:
            parent.replies.append(node)
    return roots
