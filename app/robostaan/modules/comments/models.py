from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.robostaan.models import Base
from app.robostaan.utils import utcnow


class Comment(Base):
    """
    Threaded comment on exactly one blog or one course.
    Replies point at their parent via parent_id and share the parent's target.
    """

    __tablename__ = "comments"
    __table_args__ = (
        CheckConstraint(
            "(blog_id IS NOT NULL AND course_id IS NULL) OR (blog_id IS NULL AND course_id IS NOT NULL)",
            name="ck_comments_single_target",
        ),
        Index("idx_comments_blog", "blog_id"),
        Index("idx_comments_course", "course_id"),
        Index("idx_comments_parent", "parent_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    blog_id: Mapped[int | None] = mapped_column(ForeignKey("blogs.id", ondelete="CASCADE"), nullable=True)
    course_id: Mapped[int | None] = mapped_column(ForeignKey("courses.id", ondelete="CASCADE"), nullable=True)
    parent_id: Mapped[int | None] = mapped_column(ForeignKey("comments.id", ondelete="CASCADE"), nullable=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
