from datetime import timedelta

import pytest

from security.rate_limit import SlidingWindowRateLimiter


class FakeClock:
    def __init__(self, start=1_000_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def limiter(clock):
    return SlidingWindowRateLimiter(clock=clock)


def test_allows_up_to_limit_then_rejects(limiter):
    decisions = [limiter.check_and_record("join:1.2.3.4", 3, 10) for _ in range(4)]
    assert [d.allowed for d in decisions] == [True, True, True, False]
    assert [d.remaining for d in decisions] == [2, 1, 0, 0]


def test_rejected_requests_are_not_recorded(limiter, clock):
    for _ in range(5):
        limiter.check_and_record("k", 2, 10)
    clock.advance(10.5)
    assert limiter.check_and_record("k", 2, 10).allowed


def test_window_slides(limiter, clock):
    limiter.check_and_record("k", 2, 10)
    clock.advance(6)
    limiter.check_and_record("k", 2, 10)
    assert not limiter.check_and_record("k", 2, 10).allowed

    # first hit leaves the window, second is still inside it
    clock.advance(4.5)
    decision = limiter.check_and_record("k", 2, 10)
    assert decision.allowed
    assert decision.remaining == 0


def test_keys_are_independent(limiter):
    assert limiter.check_and_record("a", 1, 60).allowed
    assert not limiter.check_and_record("a", 1, 60).allowed
    assert limiter.check_and_record("b", 1, 60).allowed


def test_reset_and_retry_after(limiter, clock):
    first = limiter.check_and_record("k", 1, 10)
    assert first.reset == int(clock.now + 10)

    clock.advance(3)
    denied = limiter.check_and_record("k", 1, 10)
    assert not denied.allowed
    assert denied.retry_after == 7
    headers = denied.headers()
    assert headers["X-RateLimit-Limit"] == "1"
    assert headers["X-RateLimit-Remaining"] == "0"
    assert headers["Retry-After"] == "7"


def test_retry_after_is_at_least_one_second(limiter, clock):
    limiter.check_and_record("k", 1, 10)
    clock.advance(9.9)
    assert limiter.check_and_record("k", 1, 10).retry_after == 1


def test_cleanup_drops_idle_keys_per_their_own_window(limiter, clock):
    limiter.check_and_record("short", 5, 10)
    limiter.check_and_record("long", 5, 600)
    clock.advance(timedelta(minutes=2).total_seconds())
    limiter.check_and_record("other", 5, 10)

    assert "short" not in limiter._hits
    assert "long" in limiter._hits


def test_reset_clears_everything(limiter):
    limiter.check_and_record("k", 1, 60)
    limiter.reset()
    assert limiter.check_and_record("k", 1, 60).allowed


class TestRateLimitedEndpoints:
    @pytest.fixture
    def app(self, app):
        app.config["RATE_LIMITS"] = dict(app.config["RATE_LIMITS"], join=(2, 10))
        return app

    def test_join_is_limited_per_ip(self, client, make_user, make_session, auth_headers):
        host = make_user("host")
        session_id = make_session(host)
        for name in ("p1", "p2", "p3"):
            make_user(name)

        r1 = client.post(f"/sessions/{session_id}/participants", headers=auth_headers("p1"))
        r2 = client.post(f"/sessions/{session_id}/participants", headers=auth_headers("p2"))
        r3 = client.post(f"/sessions/{session_id}/participants", headers=auth_headers("p3"))

        assert r1.status_code == 201
        assert r1.headers["X-RateLimit-Limit"] == "2"
        assert r1.headers["X-RateLimit-Remaining"] == "1"
        assert r2.status_code == 201
        assert r3.status_code == 429
        body = r3.get_json()
        assert body["error"] == "Too Many Requests"
        assert body["retryAfter"] >= 1
        assert int(r3.headers["Retry-After"]) >= 1

    def test_forwarded_client_gets_its_own_window(self, client, make_user, make_session, auth_headers):
        host = make_user("host")
        session_id = make_session(host)
        for name in ("p1", "p2", "p3"):
            make_user(name)

        client.post(f"/sessions/{session_id}/participants", headers=auth_headers("p1"))
        client.post(f"/sessions/{session_id}/participants", headers=auth_headers("p2"))
        headers = dict(auth_headers("p3"), **{"X-Forwarded-For": "203.0.113.9, 10.0.0.1"})
        r = client.post(f"/sessions/{session_id}/participants", headers=headers)
        assert r.status_code == 201
