"""
Central constants for the ROBOSTAAN application.
"""
from __future__ import annotations

ROLE_USER = "user"
ROLE_ADMIN = "admin"
ROLE_INSTRUCTOR = "instructor"
ROLES = (ROLE_USER, ROLE_ADMIN, ROLE_INSTRUCTOR)

COURSE_CATEGORIES = ("Beginner", "Intermediate", "Advanced")

PROGRESS_MIN = 0
PROGRESS_MAX = 100

# How many featured items the home page shows per section.
FEATURED_LIMIT = 3

MIN_PASSWORD_LENGTH = 6

PERMISSIONS = {
    "admin.view": "Admin: view dashboard",
    "admin.edit": "Admin: manage accounts",
    "blogs.create": "Blogs: create",
    "blogs.edit": "Blogs: edit",
    "blogs.delete": "Blogs: delete",
    "courses.create": "Courses: create",
    "courses.edit": "Courses: edit",
    "courses.delete": "Courses: delete",
    "comments.moderate": "Comments: delete any",
    "newsletter.view": "Newsletter: view subscribers",
}

ROLE_PERMISSIONS: dict[str, frozenset[str]] = {
    ROLE_ADMIN: frozenset(PERMISSIONS),
    ROLE_INSTRUCTOR: frozenset({"courses.create", "courses.edit"}),
    ROLE_USER: frozenset(),
}
