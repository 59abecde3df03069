def test_health_ok(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json["ok"] is True


def test_healthz_ok(client):
    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.data == b"ok"


def test_home_renders(client):
    r = client.get("/")
    assert r.status_code == 200
    assert b"Featured Courses" in r.data
    assert b"Featured Blogs" in r.data


def test_unknown_page_is_404(client):
    r = client.get("/blogs/999")
    assert r.status_code == 404


def test_login_and_admin_access(client, admin_id, login):
    # Anonymous is sent to login
    r = client.get("/admin/")
    assert r.status_code in (302, 403)

    r = login("admin@example.com")
    assert r.status_code == 302

    r = client.get("/admin/")
    assert r.status_code == 200
    assert b"Admin Dashboard" in r.data


def test_regular_user_cannot_open_admin(client, make_user, login):
    make_user("reader@example.com")
    login("reader@example.com")
    r = client.get("/admin/")
    assert r.status_code == 403


def test_post_without_csrf_token_rejected(client, make_user, login):
    make_user("reader@example.com")
    login("reader@example.com")
    r = client.post("/newsletter/subscribe", data={"email": "x@example.com"})
    assert r.status_code == 400
    assert b"CSRF" in r.data
