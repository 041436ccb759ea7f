from urllib.parse import urlencode, urlparse, parse_qsl, urlunparse

import stripe
from flask import Blueprint, request, jsonify, current_app, g

from models.booking import ACTIVE_STATUSES, PAYMENT_PAID
from services import bookings as booking_service
from utils.auth_context import current_context, login_required
from utils.audit import log_event

payments_bp = Blueprint("payments", __name__, url_prefix="/payments")


def _append_query(url: str, params: dict) -> str:
    if not url:
        return url
    parts = urlparse(url)
    query = dict(parse_qsl(parts.query))
    query.update({k: v for k, v in params.items() if v is not None})
    new_query = urlencode(query)
    return urlunparse(parts._replace(query=new_query))


@payments_bp.post("/start")
@login_required
def start_payment():
    stripe.api_key = current_app.config.get("STRIPE_SECRET_KEY")
    if not stripe.api_key:
        return jsonify(error="Stripe secret key missing (STRIPE_SECRET_KEY)"), 500

    data = request.get_json(silent=True) or {}
    booking_id = data.get("booking_id")
    if not booking_id:
        return jsonify(error="booking_id required"), 400
    try:
        booking_id = int(booking_id)
    except (TypeError, ValueError):
        return jsonify(error="booking_id must be an integer"), 400

    booking = booking_service.get_owned_booking(current_context(), booking_id)
    if booking.payment_status == PAYMENT_PAID:
        return jsonify(error="Booking already paid"), 400
    if booking.status not in ACTIVE_STATUSES:
        return jsonify(error=f"Booking is {booking.status}"), 400

    success_url = current_app.config.get("STRIPE_SUCCESS_URL")
    cancel_url = current_app.config.get("STRIPE_CANCEL_URL")
    if not success_url or not cancel_url:
        return jsonify(error="Stripe success/cancel URLs not configured"), 500

    success_url = _append_query(success_url, {"booking_id": str(booking.id)})
    cancel_url = _append_query(cancel_url, {"booking_id": str(booking.id)})

    court = booking.court
    session = stripe.checkout.Session.create(
        mode="payment",
        line_items=[{
            "price_data": {
                "currency": current_app.config.get("BOOKING_CURRENCY", "jpy"),
                "product_data": {
                    "name": f"{court.venue.name} / {court.name}",
                    "description": f"{booking.booking_date.isoformat()} {booking.start_time}-{booking.end_time}",
                },
                # zero-decimal currency: the stored total is already the smallest unit
                "unit_amount": booking.total_amount,
            },
            "quantity": 1,
        }],
        success_url=success_url,
        cancel_url=cancel_url,
        metadata={
            "booking_id": str(booking.id),
            "user_id": str(g.user.id),
        },
    )

    booking_service.attach_checkout_session(booking, session["id"])

    log_event("PAYMENT_SESSION_CREATED", user_id=g.user.id, entity="booking", entity_id=booking.id,
              metadata={"stripe_session_id": session["id"]}, correlation_id=g.correlation_id)
    return jsonify(checkout_url=session["url"]), 200
