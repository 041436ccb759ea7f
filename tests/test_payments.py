import hashlib
import hmac
import json
import time
from datetime import datetime, timedelta

import pytest

from models import db
from models.audit_log import AuditLog
from models.booking import Booking, CANCELLED, CONFIRMED, PAYMENT_PAID, PAYMENT_PENDING, PAYMENT_REFUNDED
from models.commission import CommissionTransaction, PAYOUT_REFUNDED


def _signed(payload: str, secret: str) -> dict:
    timestamp = int(time.time())
    signature = hmac.new(secret.encode(), f"{timestamp}.{payload}".encode(), hashlib.sha256).hexdigest()
    return {"Stripe-Signature": f"t={timestamp},v1={signature}", "Content-Type": "application/json"}


def _event(event_type, booking_id, session_id="cs_test_123"):
    metadata = {"user_id": "a"}
    if booking_id is not None:
        metadata["booking_id"] = str(booking_id)
    return json.dumps({
        "id": "evt_test",
        "object": "event",
        "type": event_type,
        "data": {"object": {
            "id": session_id,
            "object": "checkout.session",
            "metadata": metadata,
        }},
    })


@pytest.fixture
def pending_booking(make_user, make_court, make_booking):
    make_user("a")
    _, court_id = make_court()
    start = (datetime.utcnow() + timedelta(hours=30)).replace(second=0, microsecond=0)
    return make_booking(court_id, "a", start)


def test_completed_checkout_marks_booking_paid(app, client, pending_booking):
    payload = _event("checkout.session.completed", pending_booking)
    headers = _signed(payload, app.config["STRIPE_WEBHOOK_SECRET"])

    r = client.post("/webhooks/stripe", data=payload, headers=headers)
    assert r.status_code == 200

    with app.app_context():
        booking = db.session.get(Booking, pending_booking)
        assert booking.payment_status == PAYMENT_PAID
        assert booking.status == CONFIRMED
        paid_at = booking.paid_at

    # redelivery is a no-op
    r = client.post("/webhooks/stripe", data=payload, headers=headers)
    assert r.status_code == 200
    with app.app_context():
        assert db.session.get(Booking, pending_booking).paid_at == paid_at


def test_checkout_found_by_session_id_without_metadata(app, client, pending_booking):
    with app.app_context():
        db.session.get(Booking, pending_booking).stripe_session_id = "cs_test_lookup"
        db.session.commit()

    payload = _event("checkout.session.completed", None, session_id="cs_test_lookup")
    r = client.post("/webhooks/stripe", data=payload, headers=_signed(payload, app.config["STRIPE_WEBHOOK_SECRET"]))
    assert r.status_code == 200
    with app.app_context():
        assert db.session.get(Booking, pending_booking).payment_status == PAYMENT_PAID


def test_payment_after_cancel_is_recorded_as_refunded(app, client, auth_headers, pending_booking):
    r = client.delete(f"/bookings/{pending_booking}", headers=auth_headers("a"), json={"reason": "plans changed"})
    assert r.status_code == 200
    assert r.get_json()["refund_amount"] == 4000

    payload = _event("checkout.session.completed", pending_booking)
    r = client.post("/webhooks/stripe", data=payload, headers=_signed(payload, app.config["STRIPE_WEBHOOK_SECRET"]))
    assert r.status_code == 200

    with app.app_context():
        booking = db.session.get(Booking, pending_booking)
        assert booking.status == CANCELLED
        assert booking.payment_status == PAYMENT_REFUNDED
        assert booking.paid_at is not None
        commission = CommissionTransaction.query.filter_by(booking_id=pending_booking).one()
        assert commission.payout_status == PAYOUT_REFUNDED
        assert AuditLog.query.filter_by(action="PAYMENT_AFTER_CANCEL").count() == 1

    # redelivery changes nothing
    r = client.post("/webhooks/stripe", data=payload, headers=_signed(payload, app.config["STRIPE_WEBHOOK_SECRET"]))
    assert r.status_code == 200
    with app.app_context():
        assert AuditLog.query.filter_by(action="PAYMENT_AFTER_CANCEL").count() == 1


def test_expired_checkout_leaves_booking_pending(app, client, pending_booking):
    payload = _event("checkout.session.expired", pending_booking)
    r = client.post("/webhooks/stripe", data=payload, headers=_signed(payload, app.config["STRIPE_WEBHOOK_SECRET"]))
    assert r.status_code == 200
    with app.app_context():
        assert db.session.get(Booking, pending_booking).payment_status == PAYMENT_PENDING


def test_bad_signature(app, client, pending_booking):
    payload = _event("checkout.session.completed", pending_booking)
    r = client.post("/webhooks/stripe", data=payload, headers=_signed(payload, "whsec_wrong"))
    assert r.status_code == 400
    with app.app_context():
        assert db.session.get(Booking, pending_booking).payment_status == PAYMENT_PENDING


def test_start_payment_needs_stripe_key(client, auth_headers, pending_booking):
    r = client.post("/payments/start", headers=auth_headers("a"), json={"booking_id": pending_booking})
    assert r.status_code == 500


def test_start_payment_creates_checkout(app, client, auth_headers, pending_booking, monkeypatch):
    import stripe

    captured = {}

    def fake_create(**kwargs):
        captured.update(kwargs)
        return {"id": "cs_test_new", "url": "https://checkout.stripe.test/cs_test_new"}

    monkeypatch.setattr(stripe.checkout.Session, "create", fake_create)
    app.config.update(
        STRIPE_SECRET_KEY="sk_test_dummy",
        STRIPE_SUCCESS_URL="https://example.test/paid",
        STRIPE_CANCEL_URL="https://example.test/cancelled",
    )

    r = client.post("/payments/start", headers=auth_headers("a"), json={"booking_id": pending_booking})
    assert r.status_code == 200
    assert r.get_json()["checkout_url"].endswith("cs_test_new")
    line = captured["line_items"][0]["price_data"]
    assert line["unit_amount"] == 4000
    assert line["currency"] == "jpy"
    assert captured["metadata"]["booking_id"] == str(pending_booking)

    with app.app_context():
        assert db.session.get(Booking, pending_booking).stripe_session_id == "cs_test_new"
