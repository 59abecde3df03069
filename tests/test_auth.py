"""Signup, login and logout."""
from datetime import timedelta

import pytest

from app.robostaan.auth import validate_signup
from app.robostaan.db import session_scope
from app.robostaan.models import AuditEvent, User
from app.robostaan.security import is_safe_next
from app.robostaan.utils import utcnow


def _signup(client, **overrides):
    data = {
        "email": "new@example.com",
        "password": "secret1",
        "confirm_password": "secret1",
        "full_name": "New Person",
        "role": "user",
        "admin_secret": "",
    }
    data.update(overrides)
    return client.post("/auth/signup", data=data, follow_redirects=True)


def _user(app, email):
    with session_scope(app) as s:
        u = s.query(User).filter(User.email == email).one_or_none()
        if u is None:
            return None
        return {"id": u.id, "role": u.profile.role if u.profile else None, "full_name": u.profile.full_name if u.profile else None}


def test_validate_signup_collects_errors():
    errors = validate_signup(
        {"email": "bad", "password": "abc", "confirm_password": "abc", "role": "user"},
        admin_secret="s3",
    )
    assert "Invalid email format." in errors
    assert "Password must be at least 6 characters long" in errors


def test_validate_signup_unknown_role():
    errors = validate_signup(
        {"email": "a@example.com", "password": "secret1", "confirm_password": "secret1", "role": "superuser"},
        admin_secret="s3",
    )
    assert any(e.startswith("Invalid role") for e in errors)


def test_signup_creates_user_profile_and_session(app, client):
    r = _signup(client)
    assert r.status_code == 200
    assert b"Account created successfully!" in r.data

    u = _user(app, "new@example.com")
    assert u is not None
    assert u["role"] == "user"
    assert u["full_name"] == "New Person"

    # Signed in: profile page is reachable
    r = client.get("/profile")
    assert r.status_code == 200

    with session_scope(app) as s:
        actions = {e.action for e in s.query(AuditEvent).all()}
    assert {"auth.signup", "profile.create"} <= actions


def test_signup_password_mismatch(app, client):
    r = _signup(client, confirm_password="other1")
    assert b"Passwords do not match" in r.data
    assert _user(app, "new@example.com") is None


def test_signup_short_password(app, client):
    r = _signup(client, password="abc", confirm_password="abc")
    assert b"Password must be at least 6 characters long" in r.data
    assert _user(app, "new@example.com") is None


def test_signup_admin_requires_secret(app, client):
    r = _signup(client, role="admin", admin_secret="wrong")
    assert b"Invalid admin secret key" in r.data
    assert _user(app, "new@example.com") is None


def test_signup_admin_with_secret(app, client):
    _signup(client, role="admin", admin_secret="robo-secret")
    assert _user(app, "new@example.com")["role"] == "admin"
    r = client.get("/admin/")
    assert r.status_code == 200


def test_signup_instructor_requires_secret(app, client):
    r = _signup(client, role="instructor")
    assert b"Invalid admin secret key" in r.data
    assert _user(app, "new@example.com") is None


def test_signup_instructor_with_secret(app, client):
    _signup(client, role="instructor", admin_secret="robo-secret")
    assert _user(app, "new@example.com")["role"] == "instructor"


def test_signup_duplicate_email(app, client, make_user):
    make_user("new@example.com")
    r = _signup(client)
    assert b"An account with this email already exists." in r.data


def test_login_invalid_credentials(client, make_user, login):
    make_user("reader@example.com")
    r = client.post("/auth/login", data={"email": "reader@example.com", "password": "nope"}, follow_redirects=True)
    assert b"Invalid credentials." in r.data
    r = client.get("/profile")
    assert r.status_code == 302


def test_login_creates_missing_profile(app, client, make_user, login):
    make_user("legacy@example.com", with_profile=False)
    r = login("legacy@example.com")
    assert r.status_code == 302
    assert _user(app, "legacy@example.com")["role"] == "user"


def test_login_honours_safe_next_only(client, make_user):
    make_user("reader@example.com")
    r = client.post("/auth/login", data={"email": "reader@example.com", "password": "pw", "next": "/courses"})
    assert r.headers["Location"].endswith("/courses")

    client.get("/auth/logout")
    r = client.post("/auth/login", data={"email": "reader@example.com", "password": "pw", "next": "//evil.example.com"})
    assert "evil.example.com" not in r.headers["Location"]


def test_logout_clears_session(client, make_user, login):
    make_user("reader@example.com")
    login("reader@example.com")
    assert client.get("/profile").status_code == 200
    client.get("/auth/logout")
    assert client.get("/profile").status_code == 302


def test_login_rate_limited(client, make_user):
    make_user("reader@example.com")
    for _ in range(5):
        client.post("/auth/login", data={"email": "reader@example.com", "password": "nope"})
    r = client.post("/auth/login", data={"email": "reader@example.com", "password": "pw"}, follow_redirects=True)
    assert b"Too many login attempts" in r.data


@pytest.mark.parametrize(
    "nxt,expected",
    [
        ("/courses", True),
        ("/blogs/3?tag=ROS#comments", True),
        ("", False),
        ("courses", False),
        ("//evil.example.com", False),
        ("/\\evil.example.com", False),
        ("/\t/evil.example.com", False),
        ("https://evil.example.com/", False),
        ("javascript:alert(1)", False),
    ],
)
def test_is_safe_next(nxt, expected):
    assert is_safe_next(nxt) is expected


def test_login_rejects_backslash_next(client, make_user):
    make_user("reader@example.com")
    r = client.post("/auth/login", data={"email": "reader@example.com", "password": "pw", "next": "/\\evil.example.com"})
    assert "evil.example.com" not in r.headers["Location"]


def test_dark_mode_toggle_ignores_offsite_next(client, csrf):
    r = client.post("/preferences/dark-mode", data={"next": "/\\evil.example.com"}, headers=csrf())
    assert r.status_code == 302
    assert "evil.example.com" not in r.headers["Location"]


def test_stale_login_attempts_are_pruned(app, client, make_user):
    make_user("reader@example.com")
    stale = utcnow() - timedelta(minutes=10)
    attempts = app.extensions.setdefault("login_attempts", {})
    attempts["198.51.100.7"] = [stale, stale]
    attempts["198.51.100.8"] = [stale]

    client.post("/auth/login", data={"email": "reader@example.com", "password": "nope"})
    assert "198.51.100.7" not in attempts
    assert "198.51.100.8" not in attempts
    assert len(attempts["127.0.0.1"]) == 1
