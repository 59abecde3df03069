"""
Row-level access policies.

Each table lists which actors may select/insert/update/delete a row. An action
is allowed when any policy registered for (table, action) passes, the same
semantics as permissive Postgres RLS policies. Services call `enforce()`
before every write; routes use `is_allowed()` to decide what to render.
"""
from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from app.robostaan.models import User
from app.robostaan.rbac import user_has_permission

SELECT = "select"
INSERT = "insert"
UPDATE = "update"
DELETE = "delete"
ACTIONS = (SELECT, INSERT, UPDATE, DELETE)


class PolicyViolation(PermissionError):
    def __init__(self, table: str, action: str, actor: User | None):
        self.table = table
        self.action = action
        self.actor_id = actor.id if actor else None
        super().__init__(f"{action} on {table} denied for user_id={self.actor_id}")


@dataclass(frozen=True)
class Policy:
    table: str
    action: str
    name: str
    check: Callable[[User | None, Any], bool]


def _everyone(actor: User | None, row: Any) -> bool:
    return True


def _authenticated(actor: User | None, row: Any) -> bool:
    return bool(actor and actor.is_active)


def _owner(actor: User | None, row: Any) -> bool:
    return _authenticated(actor, row) and row is not None and getattr(row, "user_id", None) == actor.id


def _has(permission_key: str) -> Callable[[User | None, Any], bool]:
    def check(actor: User | None, row: Any) -> bool:
        return user_has_permission(actor, permission_key)

    return check


def _policies() -> list[Policy]:
    p: list[Policy] = []

    for table in ("blogs", "courses"):
        p += [
            Policy(table, SELECT, f"{table.title()} are viewable by everyone", _everyone),
            Policy(table, INSERT, f"Editors can insert {table}", _has(f"{table}.create")),
            Policy(table, UPDATE, f"Editors can update {table}", _has(f"{table}.edit")),
            Policy(table, DELETE, f"Editors can delete {table}", _has(f"{table}.delete")),
        ]

    p += [
        Policy("user_profiles", SELECT, "Users can view all profiles", _everyone),
        Policy("user_profiles", INSERT, "Users can insert own profile", _owner),
        Policy("user_profiles", UPDATE, "Users can update own profile", _owner),
        Policy("user_profiles", UPDATE, "Admins can update any profile", _has("admin.edit")),
    ]

    for action in ACTIONS:
        p.append(Policy("user_preferences", action, "Users can manage own preferences", _owner))
        p.append(Policy("course_enrollments", action, "Users can manage own enrollments", _owner))

    p += [
        Policy("blog_likes", SELECT, "Users can view all likes", _everyone),
        Policy("blog_likes", INSERT, "Users can manage own likes", _owner),
        Policy("blog_likes", DELETE, "Users can manage own likes", _owner),
    ]

    p += [
        Policy("comments", SELECT, "Comments are viewable by everyone", _everyone),
        Policy("comments", INSERT, "Authenticated users can create comments", _owner),
        Policy("comments", UPDATE, "Users can update own comments", _owner),
        Policy("comments", DELETE, "Users can delete own comments", _owner),
        Policy("comments", DELETE, "Moderators can delete any comment", _has("comments.moderate")),
    ]

    p += [
        Policy("newsletter_subscriptions", INSERT, "Anyone can subscribe to newsletter", _everyone),
        Policy("newsletter_subscriptions", UPDATE, "Anyone can unsubscribe", _everyone),
        Policy("newsletter_subscriptions", SELECT, "Admins can view subscriptions", _has("newsletter.view")),
    ]
    return p


POLICIES: tuple[Policy, ...] = tuple(_policies())


def policies_for(table: str, action: str) -> list[Policy]:
    return [pol for pol in POLICIES if pol.table == table and pol.action == action]


def is_allowed(actor: User | None, table: str, action: str, row: Any = None) -> bool:
    """True if any policy for (table, action) admits `actor` on `row`. No policy means denied."""
    return any(pol.check(actor, row) for pol in policies_for(table, action))


def enforce(actor: User | None, table: str, action: str, row: Any = None) -> None:
    if not is_allowed(actor, table, action, row):
        raise PolicyViolation(table, action, actor)


def visible_rows(actor: User | None, table: str, rows: Iterable[Any]) -> list[Any]:
    return [r for r in rows if is_allowed(actor, table, SELECT, r)]
