from __future__ import annotations

from typing import TYPE_CHECKING

from app.robostaan.audit import record_event
from app.robostaan.constants import ROLE_USER, ROLES
from app.robostaan.policies import INSERT, UPDATE, PolicyViolation, enforce
from app.robostaan.rbac import user_has_permission
from app.robostaan.utils import apply_changes, form_flag, utcnow

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.robostaan.models import User
    from app.robostaan.modules.profiles.models import UserPreference, UserProfile


PROFILE_FIELDS = ("full_name", "bio", "avatar_url")
PREFERENCE_FIELDS = ("dark_mode", "email_notifications", "course_notifications")


def ensure_profile(s: "Session", user: "User", *, full_name: str | None = None, role: str = ROLE_USER) -> "UserProfile":
    """Return the user's profile, creating it (and default preferences) when missing."""
    from app.robostaan.modules.profiles.models import UserProfile

    if user.profile is not None:
        return user.profile
    if role not in ROLES:
        raise ValueError(f"Invalid role. Must be one of: {', '.join(ROLES)}")

    now = utcnow()
    profile = UserProfile(
        user_id=user.id,
        email=user.email,
        full_name=(full_name or "").strip() or None,
        role=role,
        created_at=now,
        updated_at=now,
    )
    enforce(user, "user_profiles", INSERT, profile)
    s.add(profile)
    user.profile = profile
    get_preferences(s, user)
    s.flush()

    record_event(
        s,
        actor=user,
        action="profile.create",
        entity_type="UserProfile",
        entity_id=str(profile.id),
        metadata={"email": profile.email, "role": profile.role},
    )
    return profile


def update_profile(s: "Session", profile: "UserProfile", payload: dict, actor: "User | None") -> "UserProfile":
    """Update display fields. The role is never taken from this payload."""
    enforce(actor, "user_profiles", UPDATE, profile)
    values = {f: ((payload.get(f) or "").strip() or None) for f in PROFILE_FIELDS if f in payload}
    changes = apply_changes(profile, values, PROFILE_FIELDS)
    profile.updated_at = utcnow()

    record_event(
        s,
        actor=actor,
        action="profile.update",
        entity_type="UserProfile",
        entity_id=str(profile.id),
        metadata={"changed_fields": sorted(changes)},
    )
    return profile


def set_role(s: "Session", profile: "UserProfile", role: str, actor: "User | None", reason: str | None = None) -> "UserProfile":
    if not user_has_permission(actor, "admin.edit"):
        raise PolicyViolation("user_profiles", UPDATE, actor)
    role = (role or "").strip().lower()
    if role not in ROLES:
        raise ValueError(f"Invalid role. Must be one of: {', '.join(ROLES)}")

    old_role = profile.role
    profile.role = role
    profile.updated_at = utcnow()

    record_event(
        s,
        actor=actor,
        action="profile.set_role",
        entity_type="UserProfile",
        entity_id=str(profile.id),
        reason=reason,
        metadata={"email": profile.email, "old": old_role, "new": role},
    )
    return profile


def get_preferences(s: "Session", user: "User") -> "UserPreference":
    from app.robostaan.modules.profiles.models import UserPreference

    if user.preferences is not None:
        return user.preferences
    now = utcnow()
    prefs = UserPreference(user_id=user.id, created_at=now, updated_at=now)
    enforce(user, "user_preferences", INSERT, prefs)
    s.add(prefs)
    user.preferences = prefs
    return prefs


def update_preferences(s: "Session", prefs: "UserPreference", payload: dict, actor: "User | None") -> "UserPreference":
    enforce(actor, "user_preferences", UPDATE, prefs)
    values = {f: form_flag(payload.get(f)) for f in PREFERENCE_FIELDS if f in payload}
    apply_changes(prefs, values, PREFERENCE_FIELDS)
    prefs.updated_at = utcnow()
    return prefs


def toggle_dark_mode(s: "Session", user: "User") -> bool:
    prefs = get_preferences(s, user)
    update_preferences(s, prefs, {"dark_mode": not prefs.dark_mode}, user)
    return prefs.dark_mode
