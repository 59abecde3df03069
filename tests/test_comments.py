"""Threaded comments on blogs and courses."""
import pytest
from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError

from app.robostaan.db import session_scope
from app.robostaan.models import User
from app.robostaan.modules.blogs.models import Blog
from app.robostaan.modules.blogs.service import create_blog
from app.robostaan.modules.comments.models import Comment
from app.robostaan.modules.comments.service import (
    build_thread,
    create_comment,
    delete_comment,
    list_comments,
    validate_comment_target,
)
from app.robostaan.modules.courses.service import create_course
from app.robostaan.policies import PolicyViolation


@pytest.fixture()
def content_ids(app, admin_id):
    with session_scope(app) as s:
        admin = s.get(User, admin_id)
        blog = create_blog(
            s,
            {"title": "Post", "content": "c", "snippet": "s", "image": "https://example.com/i.png", "author": "a"},
            admin,
        )
        course = create_course(
            s,
            {"title": "Course", "description": "d", "image": "https://example.com/i.png", "duration": "1w", "category": "Beginner"},
            admin,
        )
        return blog.id, course.id


def _comments(app):
    with session_scope(app) as s:
        return [(c.id, c.parent_id, c.content) for c in s.query(Comment).order_by(Comment.id).all()]


@pytest.mark.parametrize("blog_id,course_id", [(None, None), (1, 1)])
def test_target_must_be_exactly_one(blog_id, course_id):
    with pytest.raises(ValueError):
        validate_comment_target(blog_id, course_id)


def test_db_check_rejects_two_targets(app, admin_id, content_ids):
    blog_id, course_id = content_ids
    with pytest.raises(IntegrityError):
        with session_scope(app) as s:
            s.add(Comment(user_id=admin_id, blog_id=blog_id, course_id=course_id, content="both"))
            s.flush()


def test_db_check_rejects_no_target(app, admin_id):
    with pytest.raises(IntegrityError):
        with session_scope(app) as s:
            s.add(Comment(user_id=admin_id, content="orphan"))
            s.flush()


def test_post_comment_and_reply(app, client, content_ids, make_user, login, csrf):
    blog_id, _ = content_ids
    make_user("reader@example.com")
    login("reader@example.com")
    headers = csrf()

    r = client.post("/comments", data={"blog_id": blog_id, "content": "Great post"}, headers=headers)
    assert r.status_code == 302
    assert f"/blogs/{blog_id}" in r.headers["Location"]
    parent_id = _comments(app)[0][0]

    r = client.post("/comments", data={"parent_id": parent_id, "content": "Thanks!"}, headers=headers)
    assert r.status_code == 302

    rows = _comments(app)
    assert rows == [(parent_id, None, "Great post"), (rows[1][0], parent_id, "Thanks!")]

    page = client.get(f"/blogs/{blog_id}")
    assert b"Great post" in page.data
    assert b"Thanks!" in page.data


def test_course_comments(app, client, content_ids, make_user, login, csrf):
    _, course_id = content_ids
    make_user("reader@example.com")
    login("reader@example.com")
    client.post("/comments", data={"course_id": course_id, "content": "When does it start?"}, headers=csrf())
    assert b"When does it start?" in client.get(f"/courses/{course_id}").data


def test_empty_comment_rejected(app, client, content_ids, make_user, login, csrf):
    blog_id, _ = content_ids
    make_user("reader@example.com")
    login("reader@example.com")
    r = client.post("/comments", data={"blog_id": blog_id, "content": "   "}, headers=csrf(), follow_redirects=True)
    assert b"Comment cannot be empty." in r.data
    assert _comments(app) == []


def test_anonymous_cannot_comment(app, client, content_ids, csrf):
    blog_id, _ = content_ids
    r = client.post("/comments", data={"blog_id": blog_id, "content": "hi"}, headers=csrf())
    assert r.status_code == 302
    assert "/auth/login" in r.headers["Location"]
    assert _comments(app) == []


def test_reply_must_match_parent_target(app, content_ids, make_user):
    blog_id, course_id = content_ids
    uid = make_user("reader@example.com")
    with session_scope(app) as s:
        user = s.get(User, uid)
        parent = create_comment(s, user, "root", blog_id=blog_id)
        with pytest.raises(ValueError):
            create_comment(s, user, "wrong place", course_id=course_id, parent=parent)


def test_build_thread_nests_replies(app, content_ids, make_user):
    blog_id, _ = content_ids
    uid = make_user("reader@example.com")
    with session_scope(app) as s:
        user = s.get(User, uid)
        root = create_comment(s, user, "root", blog_id=blog_id)
        reply = create_comment(s, user, "reply", parent=root)
        create_comment(s, user, "nested", parent=reply)
        create_comment(s, user, "second root", blog_id=blog_id)

        thread = build_thread(list_comments(s, blog_id=blog_id))
        assert [n.comment.content for n in thread] == ["root", "second root"]
        assert [n.comment.content for n in thread[0].replies] == ["reply"]
        assert [n.comment.content for n in thread[0].replies[0].replies] == ["nested"]


def test_build_thread_treats_missing_parent_as_root():
    orphan = Comment(id=7, parent_id=3, content="orphan")
    root = Comment(id=8, parent_id=None, content="root")
    thread = build_thread([orphan, root])
    assert [n.comment.id for n in thread] == [7, 8]


def test_only_owner_or_moderator_deletes(app, client, content_ids, make_user, login, csrf):
    blog_id, _ = content_ids
    author_id = make_user("author@example.com")
    make_user("other@example.com")
    with session_scope(app) as s:
        c = create_comment(s, s.get(User, author_id), "mine", blog_id=blog_id)
        create_comment(s, s.get(User, author_id), "reply", parent=c)
        comment_id = c.id

    login("other@example.com")
    page = client.get(f"/blogs/{blog_id}")
    assert b"Delete comment" not in page.data
    assert client.post(f"/comments/{comment_id}/delete", headers=csrf()).status_code == 403
    assert len(_comments(app)) == 2

    client.get("/auth/logout")
    login("author@example.com")
    assert b"Delete comment" in client.get(f"/blogs/{blog_id}").data
    assert client.post(f"/comments/{comment_id}/delete", headers=csrf()).status_code == 302
    # replies go with their parent
    assert _comments(app) == []


def test_admin_moderates_any_comment(app, content_ids, admin_id, make_user):
    blog_id, _ = content_ids
    author_id = make_user("author@example.com")
    with session_scope(app) as s:
        c = create_comment(s, s.get(User, author_id), "spam", blog_id=blog_id)
        delete_comment(s, c, s.get(User, admin_id))
    assert _comments(app) == []


def test_owner_edits_comment(app, client, content_ids, make_user, login, csrf):
    blog_id, _ = content_ids
    author_id = make_user("author@example.com")
    with session_scope(app) as s:
        comment_id = create_comment(s, s.get(User, author_id), "typo", blog_id=blog_id).id

    login("author@example.com")
    client.post(f"/comments/{comment_id}/edit", data={"content": "fixed"}, headers=csrf())
    assert _comments(app) == [(comment_id, None, "fixed")]


def test_service_delete_by_stranger_raises(app, content_ids, make_user):
    blog_id, _ = content_ids
    author_id = make_user("author@example.com")
    stranger_id = make_user("stranger@example.com")
    with session_scope(app) as s:
        c = create_comment(s, s.get(User, author_id), "mine", blog_id=blog_id)
        with pytest.raises(PolicyViolation):
            delete_comment(s, c, s.get(User, stranger_id))


def test_target_deleted_mid_request_is_reported(app, client, content_ids, make_user, login, csrf, monkeypatch):
    blog_id, _ = content_ids
    make_user("reader@example.com")
    login("reader@example.com")

    def create_after_blog_deleted(s, *args, **kwargs):
        s.execute(delete(Blog).where(Blog.id == blog_id))
        return create_comment(s, *args, **kwargs)

    monkeypatch.setattr("app.robostaan.modules.comments.routes.create_comment", create_after_blog_deleted)
    r = client.post("/comments", data={"blog_id": blog_id, "content": "hi"}, headers=csrf(), follow_redirects=True)
    assert r.status_code == 200
    assert b"Error posting comment. Please try again." in r.data
    assert _comments(app) == []
    with session_scope(app) as s:
        assert s.get(Blog, blog_id) is not None


def test_edit_form_shown_to_owner_only(app, client, content_ids, make_user, login):
    blog_id, _ = content_ids
    author_id = make_user("author@example.com")
    make_user("other@example.com")
    with session_scope(app) as s:
        comment_id = create_comment(s, s.get(User, author_id), "mine", blog_id=blog_id).id

    edit_action = f'action="/comments/{comment_id}/edit"'.encode()
    login("other@example.com")
    assert edit_action not in client.get(f"/blogs/{blog_id}").data

    client.get("/auth/logout")
    login("author@example.com")
    assert edit_action in client.get(f"/blogs/{blog_id}").data
