from datetime import date

from flask import Blueprint, request, jsonify, current_app, g

from models.booking import Booking
from rules.capacity import validate_booking_window
from rules.clock import is_valid_hhmm
from rules.pricing import booking_start, calculate_duration
from security.rate_limit import rate_limited
from services import bookings as booking_service
from services.bookings import BookingRequest
from utils.auth_context import current_context, login_required

bookings_bp = Blueprint("bookings", __name__, url_prefix="/bookings")

BOOKING_POLICY_KEYS = (
    "MIN_BOOKING_HOURS_AHEAD",
    "MAX_BOOKING_DAYS_AHEAD",
    "MIN_BOOKING_MINUTES",
    "MAX_BOOKING_MINUTES",
)


def _parse_date(date_str):
    # Expect YYYY-MM-DD
    try:
        return date.fromisoformat(date_str)
    except (TypeError, ValueError):
        return None


# ---------- PLAYERS: book a court (DOUBLE-BOOKING SAFE) ----------
@bookings_bp.post("")
@rate_limited("booking")
@login_required
def create_booking():
    data = request.get_json(silent=True) or {}
    court_id = data.get("court_id")
    date_str = data.get("booking_date")
    start_time = data.get("start_time")
    end_time = data.get("end_time")

    if not court_id or not date_str or not start_time or not end_time:
        return jsonify(error="court_id, booking_date, start_time, end_time are required"), 400
    if isinstance(court_id, bool) or not isinstance(court_id, int):
        return jsonify(error="court_id must be an integer"), 400

    day = _parse_date(date_str)
    if day is None:
        return jsonify(error="Invalid date. Use YYYY-MM-DD"), 400
    if not is_valid_hhmm(start_time) or not is_valid_hhmm(end_time):
        return jsonify(error="Invalid time. Use HH:MM"), 400

    try:
        duration = calculate_duration(start_time, end_time)
    except ValueError:
        return jsonify(error="end_time must be after start_time"), 400

    policy = {k: current_app.config[k] for k in BOOKING_POLICY_KEYS}
    problem = validate_booking_window(booking_start(day, start_time), duration, policy)
    if problem:
        return jsonify(error=problem), 400

    session_id = data.get("session_id")
    if session_id is not None and (isinstance(session_id, bool) or not isinstance(session_id, int)):
        return jsonify(error="session_id must be an integer"), 400

    user_notes = (data.get("user_notes") or "").strip() or None
    if user_notes and len(user_notes) > 500:
        return jsonify(error="user_notes must be at most 500 characters"), 400

    booking = booking_service.create_booking(current_context(), BookingRequest(
        court_id=court_id,
        booking_date=day,
        start_time=start_time,
        end_time=end_time,
        session_id=session_id,
        user_notes=user_notes,
    ))
    return jsonify(
        booking=booking,
        pricing={
            "subtotal": booking["subtotal"],
            "commission": booking["commission"],
            "total_amount": booking["total_amount"],
            "venue_payout": booking["venue_payout"],
            "duration_minutes": booking["duration_minutes"],
        },
    ), 201


# ---------- PLAYERS: view my bookings ----------
@bookings_bp.get("")
@login_required
def my_bookings():
    status = request.args.get("status")  # PENDING/CONFIRMED/CANCELLED/COMPLETED
    limit = request.args.get("limit", type=int) or 20
    limit = max(1, min(limit, 100))
    offset = max(0, request.args.get("offset", type=int) or 0)

    q = Booking.query.filter_by(user_id=g.user.id)
    if status:
        q = q.filter_by(status=status.upper())

    total = q.count()
    rows = (
        q.order_by(Booking.booking_date.desc(), Booking.start_time.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return jsonify(
        bookings=[booking_service.booking_to_dict(b) for b in rows],
        total=total,
        limit=limit,
        offset=offset,
        has_more=offset + len(rows) < total,
    ), 200


@bookings_bp.get("/<int:booking_id>")
@login_required
def get_booking(booking_id: int):
    booking = booking_service.get_owned_booking(current_context(), booking_id)
    out = booking_service.booking_to_dict(booking)
    out["cancellation_policy"] = booking_service.cancellation_preview(booking)
    return jsonify(out), 200


# ---------- PLAYERS: cancel booking (refund tiers) ----------
@bookings_bp.delete("/<int:booking_id>")
@login_required
def cancel_booking(booking_id: int):
    data = request.get_json(silent=True) or {}
    reason = (data.get("reason") or "").strip() or None
    result = booking_service.cancel_booking(current_context(), booking_id, reason)
    return jsonify(result), 200
