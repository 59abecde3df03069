"""
Request-scoped content catalog.

Holds the blog and course lists for the current request (newest first) and
keeps them in sync with every mutation made through it, so a page that creates,
edits or deletes content can re-render without re-querying.
"""
from __future__ import annotations

from typing import TYPE_CHECKING

from flask import g

from app.robostaan.constants import FEATURED_LIMIT
from app.robostaan.db import db_session
from app.robostaan.modules.blogs import service as blog_service
from app.robostaan.modules.blogs.models import Blog
from app.robostaan.modules.courses import service as course_service
from app.robostaan.modules.courses.models import Course

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.robostaan.models import User


class ContentCatalog:
    def __init__(self, s: "Session", actor: "User | None" = None):
        self._s = s
        self.actor = actor
        self._blogs: list[Blog] = []
        self._courses: list[Course] = []
        self.loaded = False

    # ---------- loading ----------
    def refresh(self) -> None:
        self._blogs = self._s.query(Blog).order_by(Blog.created_at.desc(), Blog.id.desc()).all()
        self._courses = self._s.query(Course).order_by(Course.created_at.desc(), Course.id.desc()).all()
        self.loaded = True

    def _ensure_loaded(self) -> None:
        if not self.loaded:
            self.refresh()

    @property
    def blogs(self) -> list[Blog]:
        self._ensure_loaded()
        return list(self._blogs)

    @property
    def courses(self) -> list[Course]:
        self._ensure_loaded()
        return list(self._courses)

    def get_blog(self, blog_id: int) -> Blog | None:
        self._ensure_loaded()
        return next((b for b in self._blogs if b.id == blog_id), None)

    def get_course(self, course_id: int) -> Course | None:
        self._ensure_loaded()
        return next((c for c in self._courses if c.id == course_id), None)

    # ---------- blogs ----------
    def add_blog(self, payload: dict) -> Blog:
        self._ensure_loaded()
        blog = blog_service.create_blog(self._s, payload, self.actor)
        self._blogs.insert(0, blog)
        return blog

    def update_blog(self, blog_id: int, payload: dict) -> Blog:
        blog = self._require(self.get_blog(blog_id), "Blog", blog_id)
        updated = blog_service.update_blog(self._s, blog, payload, self.actor)
        self._blogs = [updated if b.id == blog_id else b for b in self._blogs]
        return updated

    def delete_blog(self, blog_id: int) -> None:
        blog = self._require(self.get_blog(blog_id), "Blog", blog_id)
        blog_service.delete_blog(self._s, blog, self.actor)
        self._blogs = [b for b in self._blogs if b.id != blog_id]

    # ---------- courses ----------
    def add_course(self, payload: dict) -> Course:
        self._ensure_loaded()
        course = course_service.create_course(self._s, payload, self.actor)
        self._courses.insert(0, course)
        return course

    def update_course(self, course_id: int, payload: dict) -> Course:
        course = self._require(self.get_course(course_id), "Course", course_id)
        updated = course_service.update_course(self._s, course, payload, self.actor)
        self._courses = [updated if c.id == course_id else c for c in self._courses]
        return updated

    def delete_course(self, course_id: int) -> None:
        course = self._require(self.get_course(course_id), "Course", course_id)
        course_service.delete_course(self._s, course, self.actor)
        self._courses = [c for c in self._courses if c.id != course_id]

    # ---------- derived views ----------
    def featured_blogs(self, limit: int = FEATURED_LIMIT) -> list[Blog]:
        return [b for b in self.blogs if b.featured][:limit]

    def featured_courses(self, limit: int = FEATURED_LIMIT) -> list[Course]:
        return [c for c in self.courses if c.featured][:limit]

    def all_tags(self) -> list[str]:
        """Unique tags in first-seen order."""
        seen: dict[str, None] = {}
        for b in self.blogs:
            for tag in b.tags or []:
                seen.setdefault(tag, None)
        return list(seen)

    def all_categories(self) -> list[str]:
        seen: dict[str, None] = {}
        for c in self.courses:
            seen.setdefault(c.category, None)
        return list(seen)

    def search_blogs(self, term: str = "", tag: str = "") -> list[Blog]:
        needle = (term or "").strip().lower()
        tag = (tag or "").strip()
        out = []
        for b in self.blogs:
            if needle and needle not in b.title.lower() and needle not in b.snippet.lower():
                continue
            if tag and tag not in (b.tags or []):
                continue
            out.append(b)
        return out

    def search_courses(self, term: str = "", category: str = "") -> list[Course]:
        needle = (term or "").strip().lower()
        category = (category or "").strip()
        out = []
        for c in self.courses:
            if needle and needle not in c.title.lower() and needle not in c.description.lower():
                continue
            if category and c.category != category:
                continue
            out.append(c)
        return out

    @staticmethod
    def _require(obj, kind: str, obj_id: int):
        if obj is None:
            raise LookupError(f"{kind} {obj_id} not found")
        return obj


def catalog() -> ContentCatalog:
    """Per-request catalog bound to the request session and current user."""
    cat = getattr(g, "content_catalog", None)
    if cat is None:
        cat = ContentCatalog(db_session(), getattr(g, "current_user", None))
        g.content_catalog = cat
    return cat
