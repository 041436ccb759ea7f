from datetime import timedelta

import pytest

from models import db
from models.attendance import Attendance, NO_SHOW
from models.favorite import Favorite
from models.report import Report


def _past_session(make_user, make_session, add_attendee, *names):
    host = make_user("host")
    session_id = make_session(host, starts_in=-timedelta(days=1))
    for name in names:
        make_user(name)
        add_attendee(session_id, name)
    return session_id


class TestFavorites:
    def test_add_check_list_remove(self, client, make_user, make_session, auth_headers):
        host = make_user("host")
        session_id = make_session(host)
        make_user("a")
        headers = auth_headers("a")

        assert client.get(f"/sessions/{session_id}/favorite").get_json() == {"isFavorited": False}

        r = client.post(f"/sessions/{session_id}/favorite", headers=headers)
        assert r.status_code == 201
        assert client.get(f"/sessions/{session_id}/favorite", headers=headers).get_json()["isFavorited"] is True

        r = client.post(f"/sessions/{session_id}/favorite", headers=headers)
        assert r.status_code == 400
        assert r.get_json()["error"] == "Already favorited"

        r = client.get("/users/me/favorites", headers=headers)
        assert [s["id"] for s in r.get_json()] == [session_id]

        assert client.delete(f"/sessions/{session_id}/favorite", headers=headers).status_code == 200
        assert client.delete(f"/sessions/{session_id}/favorite", headers=headers).status_code == 404

    def test_unknown_session(self, client, make_user, auth_headers):
        make_user("a")
        assert client.post("/sessions/999/favorite", headers=auth_headers("a")).status_code == 404

    def test_deleting_session_drops_favorites(self, app, client, make_user, make_session, auth_headers):
        host = make_user("host")
        session_id = make_session(host)
        make_user("a")
        client.post(f"/sessions/{session_id}/favorite", headers=auth_headers("a"))

        assert client.delete(f"/sessions/{session_id}", headers=auth_headers("host")).status_code == 200
        with app.app_context():
            assert Favorite.query.count() == 0


class TestReviews:
    def test_attendee_reviews_once(self, client, make_user, make_session, add_attendee, auth_headers):
        session_id = _past_session(make_user, make_session, add_attendee, "a", "b")

        r = client.post(f"/sessions/{session_id}/reviews", headers=auth_headers("a"),
                        json={"rating": 5, "comment": "great run"})
        assert r.status_code == 201
        assert r.get_json()["rating"] == 5

        r = client.post(f"/sessions/{session_id}/reviews", headers=auth_headers("b"), json={"rating": 2})
        assert r.status_code == 201

        r = client.post(f"/sessions/{session_id}/reviews", headers=auth_headers("a"), json={"rating": 4})
        assert r.status_code == 400
        assert r.get_json()["error"] == "You have already reviewed this session"

        body = client.get(f"/sessions/{session_id}/reviews").get_json()
        assert body["totalReviews"] == 2
        assert body["averageRating"] == 3.5

    @pytest.mark.parametrize("rating", [0, 6, "5", None, True])
    def test_rating_range(self, client, make_user, make_session, add_attendee, auth_headers, rating):
        session_id = _past_session(make_user, make_session, add_attendee, "a")
        r = client.post(f"/sessions/{session_id}/reviews", headers=auth_headers("a"), json={"rating": rating})
        assert r.status_code == 400
        assert r.get_json()["error"] == "Rating must be between 1 and 5"

    def test_host_cannot_review_own_session(self, client, make_user, make_session, add_attendee, auth_headers):
        session_id = _past_session(make_user, make_session, add_attendee)
        r = client.post(f"/sessions/{session_id}/reviews", headers=auth_headers("host"), json={"rating": 5})
        assert r.status_code == 400
        assert r.get_json()["error"] == "You cannot review your own session"

    def test_future_session(self, client, make_user, make_session, add_attendee, auth_headers):
        host = make_user("host")
        session_id = make_session(host)
        make_user("a")
        add_attendee(session_id, "a")
        r = client.post(f"/sessions/{session_id}/reviews", headers=auth_headers("a"), json={"rating": 5})
        assert r.status_code == 400
        assert r.get_json()["error"] == "Cannot review a session that has not happened yet"

    def test_only_attendees(self, app, client, make_user, make_session, add_attendee, auth_headers):
        session_id = _past_session(make_user, make_session, add_attendee, "a")
        make_user("outsider")
        r = client.post(f"/sessions/{session_id}/reviews", headers=auth_headers("outsider"), json={"rating": 3})
        assert r.status_code == 400
        assert r.get_json()["error"] == "You can only review sessions you attended"

        with app.app_context():
            Attendance.query.filter_by(session_id=session_id, user_id="a").update({"status": NO_SHOW})
            db.session.commit()
        r = client.post(f"/sessions/{session_id}/reviews", headers=auth_headers("a"), json={"rating": 3})
        assert r.status_code == 400


class TestReports:
    def test_report_user_then_duplicate(self, client, make_user, auth_headers):
        make_user("a")
        make_user("b")
        payload = {"entity_type": "USER", "reported_user_id": "b", "reason": "HARASSMENT"}

        r = client.post("/reports", headers=auth_headers("a"), json=payload)
        assert r.status_code == 201
        assert r.get_json()["report"]["status"] == "PENDING"

        r = client.post("/reports", headers=auth_headers("a"), json=payload)
        assert r.status_code == 409

        r = client.get("/reports", headers=auth_headers("a"))
        assert len(r.get_json()) == 1

    def test_report_session(self, client, make_user, make_session, auth_headers):
        host = make_user("host")
        session_id = make_session(host)
        make_user("a")
        r = client.post("/reports", headers=auth_headers("a"), json={
            "entity_type": "SESSION", "session_id": session_id, "reason": "SPAM", "description": "ads",
        })
        assert r.status_code == 201
        assert r.get_json()["report"]["session_id"] == session_id

    @pytest.mark.parametrize("payload, status", [
        ({"entity_type": "TEAM", "reason": "SPAM"}, 400),
        ({"entity_type": "USER", "reason": "RUDE", "reported_user_id": "b"}, 400),
        ({"entity_type": "USER", "reason": "SPAM"}, 400),
        ({"entity_type": "SESSION", "reason": "SPAM"}, 400),
        ({"entity_type": "USER", "reason": "SPAM", "reported_user_id": "b", "description": "x" * 2001}, 400),
        ({"entity_type": "USER", "reason": "SPAM", "reported_user_id": "a"}, 400),
        ({"entity_type": "USER", "reason": "SPAM", "reported_user_id": "ghost"}, 404),
        ({"entity_type": "SESSION", "reason": "SPAM", "session_id": 999}, 404),
    ])
    def test_validation(self, client, make_user, auth_headers, payload, status):
        make_user("a")
        make_user("b")
        assert client.post("/reports", headers=auth_headers("a"), json=payload).status_code == status

    def test_admin_reviews_report(self, app, client, make_user, auth_headers):
        make_user("a")
        make_user("b")
        make_user("root", roles=("PLAYER", "ADMIN"))
        client.post("/reports", headers=auth_headers("a"),
                    json={"entity_type": "USER", "reported_user_id": "b", "reason": "NO_SHOW"})

        assert client.get("/admin/reports", headers=auth_headers("a")).status_code == 403

        body = client.get("/admin/reports", headers=auth_headers("root")).get_json()
        assert body["pending_count"] == 1
        report_id = body["reports"][0]["id"]

        r = client.patch(f"/admin/reports/{report_id}", headers=auth_headers("root"), json={"status": "CLOSED"})
        assert r.status_code == 400
        r = client.patch(f"/admin/reports/{report_id}", headers=auth_headers("root"), json={"status": "RESOLVED"})
        assert r.status_code == 200
        assert r.get_json()["reviewed_by"] == "root"

        with app.app_context():
            assert db.session.get(Report, report_id).status == "RESOLVED"
        assert client.get("/admin/reports?status=PENDING", headers=auth_headers("root")).get_json()["reports"] == []

        # a fresh report is allowed once the earlier one is closed
        r = client.post("/reports", headers=auth_headers("a"),
                        json={"entity_type": "USER", "reported_user_id": "b", "reason": "NO_SHOW"})
        assert r.status_code == 201
