import pytest

from app.robostaan.db import session_scope
from app.robostaan.models import User
from app.robostaan.modules.newsletter.models import NewsletterSubscription
from app.robostaan.modules.newsletter.service import active_subscriptions, subscribe, unsubscribe
from app.robostaan.policies import PolicyViolation


def _subs(app):
    with session_scope(app) as s:
        return {n.email: n.active for n in s.query(NewsletterSubscription).all()}


def test_anonymous_subscribe(app, client, csrf):
    r = client.post("/newsletter/subscribe", data={"email": " Fan@Example.com "}, headers=csrf(), follow_redirects=True)
    assert b"Thanks for subscribing" in r.data
    assert _subs(app) == {"fan@example.com": True}


def test_duplicate_subscribe_is_noop(app, client, csrf):
    headers = csrf()
    client.post("/newsletter/subscribe", data={"email": "fan@example.com"}, headers=headers)
    r = client.post("/newsletter/subscribe", data={"email": "fan@example.com"}, headers=headers, follow_redirects=True)
    assert b"already subscribed" in r.data
    assert len(_subs(app)) == 1


def test_invalid_email(app, client, csrf):
    r = client.post("/newsletter/subscribe", data={"email": "not-an-email"}, headers=csrf(), follow_redirects=True)
    assert b"Please enter a valid email address." in r.data
    assert _subs(app) == {}


def test_unsubscribe_then_resubscribe(app):
    with session_scope(app) as s:
        subscribe(s, "fan@example.com")
    with session_scope(app) as s:
        assert unsubscribe(s, "fan@example.com") is True
        assert unsubscribe(s, "fan@example.com") is False
    assert _subs(app) == {"fan@example.com": False}

    with session_scope(app) as s:
        _, changed = subscribe(s, "fan@example.com")
        assert changed is True
    assert _subs(app) == {"fan@example.com": True}


def test_unsubscribe_route(app, client, csrf):
    headers = csrf()
    client.post("/newsletter/subscribe", data={"email": "fan@example.com"}, headers=headers)
    r = client.post("/newsletter/unsubscribe", data={"email": "fan@example.com"}, headers=headers, follow_redirects=True)
    assert b"You have been unsubscribed." in r.data
    assert _subs(app) == {"fan@example.com": False}


def test_listing_is_admin_only(app, admin_id, make_user):
    uid = make_user("reader@example.com")
    with session_scope(app) as s:
        subscribe(s, "a@example.com")
        subscribe(s, "b@example.com")
        unsubscribe(s, "b@example.com")

    with session_scope(app) as s:
        with pytest.raises(PolicyViolation):
            active_subscriptions(s, s.get(User, uid))
        with pytest.raises(PolicyViolation):
            active_subscriptions(s, None)
        assert [n.email for n in active_subscriptions(s, s.get(User, admin_id))] == ["a@example.com"]


def test_admin_list_page(app, client, admin_id, make_user, login):
    with session_scope(app) as s:
        subscribe(s, "fan@example.com")

    make_user("reader@example.com")
    login("reader@example.com")
    assert client.get("/admin/newsletter").status_code == 403

    client.get("/auth/logout")
    login("admin@example.com")
    r = client.get("/admin/newsletter")
    assert r.status_code == 200
    assert b"fan@example.com" in r.data


def test_concurrent_duplicate_subscribe_is_reported(app, client, csrf, monkeypatch):
    with session_scope(app) as s:
        subscribe(s, "fan@example.com")
    # another request inserted the address after this one looked it up
    monkeypatch.setattr("app.robostaan.modules.newsletter.service._find", lambda s, email: None)

    r = client.post("/newsletter/subscribe", data={"email": "fan@example.com"}, headers=csrf(), follow_redirects=True)
    assert r.status_code == 200
    assert b"Error subscribing. Please try again." in r.data
    assert _subs(app) == {"fan@example.com": True}


def test_unsubscribe_form_in_footer(client):
    page = client.get("/")
    assert b'action="/newsletter/unsubscribe"' in page.data
