import pytest
from werkzeug.security import generate_password_hash

from app.robostaan import create_app
from app.robostaan.db import session_scope
from app.robostaan.models import Base, User
from app.robostaan.modules.profiles.service import ensure_profile

CSRF_TOKEN = "test-token"


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("ADMIN_SIGNUP_SECRET", "robo-secret")

    app = create_app()
    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)
    return app


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def make_user(app):
    """Create an active account with a profile; returns the user id."""

    def _make(email: str, role: str = "user", password: str = "pw", with_profile: bool = True) -> int:
        with session_scope(app) as s:
            u = User(email=email, password_hash=generate_password_hash(password), is_active=True)
            s.add(u)
            s.flush()
            if with_profile:
                ensure_profile(s, u, role=role)
            return u.id

    return _make


@pytest.fixture()
def admin_id(make_user):
    return make_user("admin@example.com", role="admin")


@pytest.fixture()
def login(client):
    def _login(email: str, password: str = "pw"):
        return client.post("/auth/login", data={"email": email, "password": password}, follow_redirects=False)

    return _login


@pytest.fixture()
def csrf(client):
    """Pin the session CSRF token and return the header that satisfies the guard."""

    def _csrf() -> dict:
        with client.session_transaction() as sess:
            sess["csrf_token"] = CSRF_TOKEN
        return {"X-CSRF-Token": CSRF_TOKEN}

    return _csrf


@pytest.fixture()
def blog_form():
    def _form(**overrides) -> dict:
        data = {
            "title": "Intro to Servo Motors",
            "content": "<p>PWM basics</p>",
            "snippet": "How hobby servos work",
            "image": "https://example.com/servo.png",
            "author": "Team",
            "tags": "Hardware, Beginner",
        }
        data.update(overrides)
        return data

    return _form


@pytest.fixture()
def course_form():
    def _form(**overrides) -> dict:
        data = {
            "title": "ROS Basics",
            "description": "Nodes and topics",
            "content": "<p>Week 1</p>",
            "image": "https://example.com/ros.png",
            "duration": "4 weeks",
            "category": "Beginner",
            "video_url": "",
            "materials": "Laptop, Raspberry Pi",
        }
        data.update(overrides)
        return data

    return _form
