from models import db
from models.notification import Notification


def _notify(app, user_id, count):
    with app.app_context():
        for n in range(count):
            db.session.add(Notification(user_id=user_id, type="waitlist_joined", title=f"t{n}", message="m"))
        db.session.commit()


def test_notifications_and_mark_read(app, client, make_user, auth_headers):
    make_user("a")
    make_user("b")
    _notify(app, "a", 3)
    _notify(app, "b", 1)

    body = client.get("/users/me/notifications", headers=auth_headers("a")).get_json()
    assert body["unread_count"] == 3
    assert len(body["notifications"]) == 3

    first_id = body["notifications"][0]["id"]
    r = client.post("/users/me/notifications/read", headers=auth_headers("a"), json={"ids": [first_id]})
    assert r.get_json()["updated"] == 1

    r = client.post("/users/me/notifications/read", headers=auth_headers("a"))
    assert r.get_json()["updated"] == 2

    assert client.get("/users/me/notifications", headers=auth_headers("b")).get_json()["unread_count"] == 1


def test_mark_read_rejects_bad_ids(client, make_user, auth_headers):
    make_user("a")
    r = client.post("/users/me/notifications/read", headers=auth_headers("a"), json={"ids": "all"})
    assert r.status_code == 400


def test_banned_user_is_locked_out(client, make_user, auth_headers):
    make_user("a")
    make_user("boss", roles=("ADMIN",))

    r = client.post("/admin/users/a/ban", headers=auth_headers("boss"), json={"reason": "abuse"})
    assert r.status_code == 200
    assert client.get("/users/me", headers=auth_headers("a")).status_code == 401

    client.post("/admin/users/a/unban", headers=auth_headers("boss"))
    assert client.get("/users/me", headers=auth_headers("a")).status_code == 200


def test_audit_log_listing(client, make_user, make_session, auth_headers):
    make_user("boss", roles=("ADMIN",))
    make_user("a")
    session_id = make_session("boss")
    client.post(f"/sessions/{session_id}/participants", headers=auth_headers("a"))

    rows = client.get("/admin/audit-logs?action=SESSION_JOIN", headers=auth_headers("boss")).get_json()
    assert len(rows) == 1
    assert rows[0]["user_id"] == "a"
    assert rows[0]["entity_id"] == str(session_id)


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.get_json()["status"] == "ok"
    assert r.headers["X-Content-Type-Options"] == "nosniff"
