"""Blogs: listing, admin-only writes, likes."""
import pytest

from app.robostaan.db import session_scope
from app.robostaan.models import User
from app.robostaan.modules.blogs.models import Blog, BlogLike
from app.robostaan.modules.blogs.service import create_blog, toggle_like, validate_blog_payload
from app.robostaan.modules.comments.models import Comment
from app.robostaan.policies import PolicyViolation


def _blog_id(app, title):
    with session_scope(app) as s:
        b = s.query(Blog).filter(Blog.title == title).one_or_none()
        return b.id if b else None


def _seed_blog(app, admin_id, **payload):
    data = {
        "title": "Seeded Post",
        "content": "<p>body</p>",
        "snippet": "seed",
        "image": "https://example.com/x.png",
        "author": "Team",
        "tags": ["ROS"],
    }
    data.update(payload)
    with session_scope(app) as s:
        admin = s.get(User, admin_id)
        return create_blog(s, data, admin).id


def test_validate_blog_payload_required_fields():
    errors = validate_blog_payload({"title": "  ", "content": "x"})
    assert "Title is required." in errors
    assert "Snippet is required." in errors
    assert "Content is required." not in errors


def test_validate_blog_payload_partial():
    assert validate_blog_payload({"title": "New title"}, partial=True) == []


def test_admin_creates_blog_and_list_shows_it(app, client, admin_id, login, csrf, blog_form):
    login("admin@example.com")
    r = client.post("/blogs/new", data=blog_form(), headers=csrf())
    assert r.status_code == 302

    blog_id = _blog_id(app, "Intro to Servo Motors")
    assert blog_id is not None
    with session_scope(app) as s:
        assert s.get(Blog, blog_id).tags == ["Hardware", "Beginner"]

    r = client.get("/blogs")
    assert b"Intro to Servo Motors" in r.data


def test_create_blog_missing_fields_rerenders_form(app, client, admin_id, login, csrf, blog_form):
    login("admin@example.com")
    r = client.post("/blogs/new", data=blog_form(title="", author=""), headers=csrf())
    assert r.status_code == 400
    assert b"Title is required." in r.data
    assert b"Author is required." in r.data
    assert _blog_id(app, "") is None


def test_admin_sees_controls(app, client, admin_id, login):
    blog_id = _seed_blog(app, admin_id)
    login("admin@example.com")
    assert b"New Blog" in client.get("/blogs").data
    r = client.get(f"/blogs/{blog_id}")
    assert b"Edit Blog" in r.data
    assert b"Delete Blog" in r.data


def test_non_admin_sees_no_controls_and_is_forbidden(app, client, admin_id, make_user, login, csrf, blog_form):
    blog_id = _seed_blog(app, admin_id)
    make_user("reader@example.com")
    login("reader@example.com")

    assert b"New Blog" not in client.get("/blogs").data
    r = client.get(f"/blogs/{blog_id}")
    assert b"Edit Blog" not in r.data
    assert b"Delete Blog" not in r.data

    headers = csrf()
    assert client.post("/blogs/new", data=blog_form(), headers=headers).status_code == 403
    assert client.post(f"/blogs/{blog_id}/edit", data=blog_form(), headers=headers).status_code == 403
    assert client.post(f"/blogs/{blog_id}/delete", headers=headers).status_code == 403
    assert _blog_id(app, "Seeded Post") == blog_id


def test_instructor_cannot_write_blogs(client, make_user, login, csrf, blog_form):
    make_user("instructor@example.com", role="instructor")
    login("instructor@example.com")
    assert client.post("/blogs/new", data=blog_form(), headers=csrf()).status_code == 403


def test_anonymous_write_redirects_to_login(client, csrf, blog_form):
    r = client.post("/blogs/new", data=blog_form(), headers=csrf())
    assert r.status_code == 302
    assert "/auth/login" in r.headers["Location"]


def test_service_rejects_non_admin(app, make_user):
    uid = make_user("reader@example.com")
    with session_scope(app) as s:
        reader = s.get(User, uid)
        with pytest.raises(PolicyViolation):
            create_blog(s, {"title": "t", "content": "c", "snippet": "s", "image": "i", "author": "a"}, reader)


def test_admin_edits_blog(app, client, admin_id, login, csrf, blog_form):
    blog_id = _seed_blog(app, admin_id)
    login("admin@example.com")
    r = client.post(f"/blogs/{blog_id}/edit", data=blog_form(title="Renamed Post", featured="1"), headers=csrf())
    assert r.status_code == 302
    with session_scope(app) as s:
        b = s.get(Blog, blog_id)
        assert b.title == "Renamed Post"
        assert b.featured is True
    assert b"Renamed Post" in client.get("/blogs").data


def test_admin_deletes_blog_with_cascade(app, client, admin_id, login, csrf):
    blog_id = _seed_blog(app, admin_id)
    with session_scope(app) as s:
        s.add(BlogLike(user_id=admin_id, blog_id=blog_id))
        s.add(Comment(user_id=admin_id, blog_id=blog_id, content="hi"))

    login("admin@example.com")
    r = client.post(f"/blogs/{blog_id}/delete", headers=csrf())
    assert r.status_code == 302

    assert b"Seeded Post" not in client.get("/blogs").data
    with session_scope(app) as s:
        assert s.get(Blog, blog_id) is None
        assert s.query(BlogLike).count() == 0
        assert s.query(Comment).count() == 0


def test_search_and_tag_filter(app, client, admin_id):
    _seed_blog(app, admin_id, title="Lidar Deep Dive", snippet="range sensing", tags=["Sensors"])
    _seed_blog(app, admin_id, title="Gripper Design", snippet="end effectors", tags=["Hardware"])

    r = client.get("/blogs?q=lidar")
    assert b"Lidar Deep Dive" in r.data
    assert b"Gripper Design" not in r.data

    r = client.get("/blogs?tag=Hardware")
    assert b"Gripper Design" in r.data
    assert b"Lidar Deep Dive" not in r.data


def test_like_toggle(app, client, admin_id, make_user, login, csrf):
    blog_id = _seed_blog(app, admin_id)
    make_user("reader@example.com")
    login("reader@example.com")
    headers = csrf()

    client.post(f"/blogs/{blog_id}/like", headers=headers)
    r = client.get(f"/blogs/{blog_id}")
    assert b"1 like" in r.data
    assert b"Unlike" in r.data

    client.post(f"/blogs/{blog_id}/like", headers=headers)
    r = client.get(f"/blogs/{blog_id}")
    assert b"0 likes" in r.data


def test_toggle_like_requires_user(app, admin_id):
    blog_id = _seed_blog(app, admin_id)
    with session_scope(app) as s:
        with pytest.raises(PolicyViolation):
            toggle_like(s, s.get(Blog, blog_id), None)


def test_anonymous_like_redirects(app, client, admin_id, csrf):
    blog_id = _seed_blog(app, admin_id)
    r = client.post(f"/blogs/{blog_id}/like", headers=csrf())
    assert r.status_code == 302
    assert "/auth/login" in r.headers["Location"]


def test_blog_content_is_sanitized(app, admin_id):
    blog_id = _seed_blog(app, admin_id, content='<h2>Servos</h2><img src="x.png" onerror="steal()"><script>steal()</script>')
    with session_scope(app) as s:
        content = s.get(Blog, blog_id).content
    assert "<h2>Servos</h2>" in content
    assert "<script" not in content
    assert "onerror" not in content


def test_script_only_blog_content_is_rejected(app, admin_id):
    with session_scope(app) as s:
        with pytest.raises(ValueError, match="Content is required."):
            create_blog(
                s,
                {"title": "t", "content": "<script>steal()</script>", "snippet": "s", "image": "i", "author": "a"},
                s.get(User, admin_id),
            )
