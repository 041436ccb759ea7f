import stripe
from flask import Blueprint, request, jsonify, current_app, g

from services import bookings as booking_service
from utils.audit import log_event
from utils.auth_context import RequestContext

webhook_bp = Blueprint("webhook", __name__, url_prefix="/webhooks")


def _field(obj, key):
    try:
        return obj[key]
    except KeyError:
        return None


@webhook_bp.post("/stripe")
def stripe_webhook():
    endpoint_secret = current_app.config.get("STRIPE_WEBHOOK_SECRET")
    sig_header = request.headers.get("Stripe-Signature")
    payload = request.data

    if not endpoint_secret:
        return jsonify(error="Webhook secret not configured"), 500

    try:
        event = stripe.Webhook.construct_event(payload, sig_header, endpoint_secret)
    except (ValueError, stripe.SignatureVerificationError):
        return jsonify(error="Invalid webhook signature"), 400

    # StripeObject supports item access only
    event_type = event["type"]
    if event_type in ("checkout.session.completed", "checkout.session.expired"):
        session = event["data"]["object"]
        session_id = _field(session, "id")
        meta = _field(session, "metadata")
        booking_id = _field(meta, "booking_id") if meta else None
        booking_id = int(booking_id) if booking_id else None

        if event_type == "checkout.session.completed":
            user_id = (_field(meta, "user_id") if meta else None) or ""
            ctx = RequestContext(user_id=user_id, correlation_id=g.correlation_id)
            booking_service.record_payment(ctx, booking_id=booking_id, stripe_session_id=session_id)
        else:
            # the booking stays PENDING and can start a fresh checkout
            current_app.logger.info("checkout expired for booking %s (cid=%s)", booking_id, g.correlation_id)
            log_event("PAYMENT_EXPIRED", user_id=None, entity="booking", entity_id=booking_id,
                      metadata={"stripe_session_id": session_id}, correlation_id=g.correlation_id)

    return jsonify(received=True), 200
