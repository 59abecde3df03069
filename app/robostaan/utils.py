from __future__ import annotations

import re
from datetime import datetime, timezone

import nh3

_EMAIL_RE = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
_LIST_SPLIT_RE = re.compile(r"[,\n]")


def utcnow() -> datetime:
    """Naive UTC timestamp (columns are stored without tz)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def is_valid_email(email: str) -> bool:
    return bool(_EMAIL_RE.match(email or ""))


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def split_list(raw: str | list | None) -> list[str]:
    """Comma- or newline-separated form input -> trimmed, non-empty items (lists pass through trimmed)."""
    if raw is None:
        return []
    items = raw if isinstance(raw, list) else _LIST_SPLIT_RE.split(str(raw))
    return [str(i).strip() for i in items if str(i).strip()]


def form_flag(value: str | bool | None) -> bool:
    if isinstance(value, bool):
        return value
    return (value or "").strip().lower() in ("1", "on", "true", "yes")


def apply_changes(obj: object, values: dict, fields: tuple[str, ...]) -> dict:
    """
    Copy `values[field]` onto `obj` for every field present in `values`.
    Returns {field: {"old": ..., "new": ...}} for the fields that actually changed.
    """
    changes: dict = {}
    for field in fields:
        if field not in values:
            continue
        new = values[field]
        old = getattr(obj, field)
        if new != old:
            changes[field] = {"old": old, "new": new}
            setattr(obj, field, new)
    return changes


def clean_html(raw: str | None) -> str:
    """Reduce rich-text HTML to nh3's default allow-list; the result is rendered with |safe."""
    return nh3.clean((raw or "").strip()).strip()
