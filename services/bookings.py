"""
Court booking lifecycle: create, cancel, venue-side transitions and payment.

Booking rows and their CommissionTransaction are always written or updated in
the same serializable transaction.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from flask import current_app
from sqlalchemy import func

from models import db
from models.booking import (
    Booking,
    ACTIVE_STATUSES,
    PENDING,
    CONFIRMED,
    CANCELLED,
    COMPLETED,
    PAYMENT_PAID,
    PAYMENT_REFUNDED,
)
from models.commission import (
    CommissionTransaction,
    PAYOUT_PAID,
    PAYOUT_PENDING,
    PAYOUT_REFUNDED,
)
from models.court import Court
from models.session import SportSession
from rules.capacity import is_slot_available
from rules.clock import time_to_minutes
from rules.pricing import Refund, booking_start, calculate_booking_price, calculate_duration, calculate_refund
from services.availability import closure_for, operating_window
from utils.audit import log_event
from utils.errors import ConflictError, ForbiddenError, NotFoundError
from utils.transactions import run_serializable


@dataclass(frozen=True)
class BookingRequest:
    court_id: int
    booking_date: object  # datetime.date
    start_time: str
    end_time: str
    session_id: Optional[int] = None
    user_notes: Optional[str] = None


def booking_to_dict(b: Booking) -> dict:
    court = b.court
    venue = court.venue if court else None
    return {
        "id": b.id,
        "court_id": b.court_id,
        "user_id": b.user_id,
        "session_id": b.session_id,
        "booking_date": b.booking_date.isoformat(),
        "start_time": b.start_time,
        "end_time": b.end_time,
        "duration_minutes": b.duration_minutes,
        "subtotal": b.subtotal,
        "commission": b.commission,
        "total_amount": b.total_amount,
        "venue_payout": b.venue_payout,
        "status": b.status,
        "payment_status": b.payment_status,
        "paid_at": b.paid_at.isoformat() if b.paid_at else None,
        "cancelled_at": b.cancelled_at.isoformat() if b.cancelled_at else None,
        "cancellation_reason": b.cancellation_reason,
        "refund_amount": b.refund_amount,
        "user_notes": b.user_notes,
        "created_at": b.created_at.isoformat(),
        "court": {
            "id": court.id,
            "name": court.name,
            "sport_type": court.sport_type,
        } if court else None,
        "venue": {
            "id": venue.id,
            "name": venue.name,
            "address": venue.address,
        } if venue else None,
    }


def _get_booking(booking_id: int) -> Booking:
    booking = db.session.get(Booking, booking_id)
    if not booking:
        raise NotFoundError("Booking not found")
    return booking


def get_owned_booking(ctx, booking_id: int) -> Booking:
    booking = _get_booking(booking_id)
    if booking.user_id != ctx.user_id and not ctx.is_admin:
        raise ForbiddenError("Access denied")
    return booking


def _refund_tiers():
    return current_app.config.get("REFUND_TIERS", ((24, 100), (12, 50)))


def cancellation_preview(booking: Booking) -> dict:
    refund = calculate_refund(booking.total_amount, booking.booking_date, booking.start_time, _refund_tiers())
    return {
        "can_cancel": booking.is_cancellable,
        "refund_amount": refund.refund_amount,
        "refund_percentage": refund.refund_percentage,
    }


# ---------- create ----------

def _create(ctx, req: BookingRequest) -> Booking:
    court = db.session.get(Court, req.court_id)
    if not court:
        raise NotFoundError("Court not found")
    if not court.is_active:
        raise ConflictError("This court is not available for booking")

    venue = court.venue
    if not venue.is_bookable:
        raise ConflictError("This venue does not support online booking")

    if closure_for(venue.id, req.booking_date):
        raise ConflictError("The venue is closed on this date")
    window = operating_window(venue, req.booking_date)
    if venue.operating_hours:
        if not window:
            raise ConflictError("The venue is closed on this day")
        opens, closes = (time_to_minutes(t) for t in window)
        if time_to_minutes(req.start_time) < opens or time_to_minutes(req.end_time) > closes:
            raise ConflictError(f"Bookings must fall within opening hours {window[0]}-{window[1]}")

    if req.session_id is not None and not db.session.get(SportSession, req.session_id):
        raise NotFoundError("Session not found")

    existing = (
        Booking.query
        .filter(
            Booking.court_id == court.id,
            Booking.booking_date == req.booking_date,
            Booking.status.in_(ACTIVE_STATUSES),
        )
        .all()
    )
    if not is_slot_available(req.start_time, req.end_time, [(b.start_time, b.end_time) for b in existing]):
        raise ConflictError("This time slot is no longer available", status_code=409)

    duration = calculate_duration(req.start_time, req.end_time)
    rate = venue.commission_rate
    if rate is None:
        rate = current_app.config.get("DEFAULT_COMMISSION_RATE", 0.10)
    price = calculate_booking_price(court.price_per_hour, court.price_per_30min, duration, rate)

    booking = Booking(
        court_id=court.id,
        user_id=ctx.user_id,
        session_id=req.session_id,
        booking_date=req.booking_date,
        start_time=req.start_time,
        end_time=req.end_time,
        duration_minutes=duration,
        subtotal=price.subtotal,
        commission=price.commission,
        total_amount=price.total_amount,
        venue_payout=price.venue_payout,
        status=PENDING,
        user_notes=req.user_notes,
    )
    db.session.add(booking)
    db.session.flush()

    db.session.add(CommissionTransaction(
        booking_id=booking.id,
        venue_id=venue.id,
        booking_amount=price.total_amount,
        commission_rate=rate,
        commission_amount=price.commission,
        venue_amount=price.venue_payout,
        payout_status=PAYOUT_PENDING,
    ))
    db.session.flush()
    return booking


def create_booking(ctx, req: BookingRequest) -> dict:
    booking = run_serializable(
        ctx, _create, ctx, req, conflict_message="This time slot is no longer available"
    )
    out = booking_to_dict(booking)
    log_event("BOOKING_CREATE", user_id=ctx.user_id, entity="booking", entity_id=booking.id,
              metadata={"court_id": req.court_id, "date": req.booking_date.isoformat(),
                        "start_time": req.start_time, "end_time": req.end_time},
              correlation_id=ctx.correlation_id)
    return out


# ---------- cancel ----------

def _cancel(ctx, booking_id: int, reason):
    booking = get_owned_booking(ctx, booking_id)
    if not booking.is_cancellable:
        raise ConflictError("This booking cannot be cancelled")

    now = datetime.utcnow()
    if booking_start(booking.booking_date, booking.start_time) <= now:
        raise ConflictError("This booking has already started")

    if booking.user_id != ctx.user_id:
        # cancelled by the venue side: the customer gets everything back
        refund = Refund(refund_amount=booking.total_amount, refund_percentage=100)
    else:
        refund = calculate_refund(
            booking.total_amount, booking.booking_date, booking.start_time, _refund_tiers(), now=now
        )

    booking.status = CANCELLED
    booking.cancelled_at = now
    booking.cancellation_reason = reason
    booking.refund_amount = refund.refund_amount

    if booking.payment_status == PAYMENT_PAID and refund.refund_amount > 0:
        booking.payment_status = PAYMENT_REFUNDED
        commission = booking.commission_transaction
        if commission:
            commission.payout_status = PAYOUT_REFUNDED

    return booking, refund


def cancel_booking(ctx, booking_id: int, reason=None) -> dict:
    booking, refund = run_serializable(ctx, _cancel, ctx, booking_id, reason)
    if refund.refund_amount > 0:
        message = (f"Booking cancelled. Refund of {refund.refund_amount} "
                   f"({refund.refund_percentage}%) will be processed.")
    else:
        message = "Booking cancelled. No refund available due to late cancellation."
    log_event("BOOKING_CANCEL", user_id=ctx.user_id, entity="booking", entity_id=booking.id,
              metadata={"reason": reason, "refund_amount": refund.refund_amount},
              correlation_id=ctx.correlation_id)
    return {
        "id": booking.id,
        "status": booking.status,
        "payment_status": booking.payment_status,
        "cancelled_at": booking.cancelled_at.isoformat(),
        "cancellation_reason": booking.cancellation_reason,
        "refund_amount": refund.refund_amount,
        "refund_percentage": refund.refund_percentage,
        "message": message,
    }


# ---------- venue-side transitions ----------

def _ensure_venue_access(ctx, booking: Booking):
    if ctx.is_admin:
        return
    if booking.court.venue.owner_user_id != ctx.user_id:
        raise ForbiddenError("Not a manager of this venue")


def _transition(ctx, booking_id: int, from_status: str, to_status: str) -> Booking:
    booking = _get_booking(booking_id)
    _ensure_venue_access(ctx, booking)
    if booking.status != from_status:
        raise ConflictError(f"Booking is {booking.status}; only {from_status} bookings can become {to_status}")
    booking.status = to_status
    return booking


def confirm_booking(ctx, booking_id: int) -> dict:
    booking = run_serializable(ctx, _transition, ctx, booking_id, PENDING, CONFIRMED)
    log_event("BOOKING_CONFIRM", user_id=ctx.user_id, entity="booking", entity_id=booking_id,
              correlation_id=ctx.correlation_id)
    return booking_to_dict(booking)


def complete_booking(ctx, booking_id: int) -> dict:
    booking = run_serializable(ctx, _transition, ctx, booking_id, CONFIRMED, COMPLETED)
    log_event("BOOKING_COMPLETE", user_id=ctx.user_id, entity="booking", entity_id=booking_id,
              correlation_id=ctx.correlation_id)
    return booking_to_dict(booking)


# ---------- payment ----------

def attach_checkout_session(booking: Booking, stripe_session_id: str):
    booking.stripe_session_id = stripe_session_id
    db.session.commit()


def _record_payment(booking_id, stripe_session_id):
    booking = None
    if booking_id:
        booking = db.session.get(Booking, booking_id)
    if not booking and stripe_session_id:
        booking = Booking.query.filter_by(stripe_session_id=stripe_session_id).first()
    if not booking:
        raise NotFoundError("Booking not found")

    if booking.paid_at is not None or booking.payment_status == PAYMENT_PAID:
        return booking, False

    booking.payment_status = PAYMENT_PAID
    booking.paid_at = datetime.utcnow()

    if booking.status == CANCELLED:
        # checkout finished after the cancel; the refund owed was fixed at cancel time
        if booking.refund_amount:
            booking.payment_status = PAYMENT_REFUNDED
            commission = booking.commission_transaction
            if commission:
                commission.payout_status = PAYOUT_REFUNDED
        return booking, True

    if booking.status in ACTIVE_STATUSES:
        booking.status = CONFIRMED
    return booking, False


def record_payment(ctx, booking_id=None, stripe_session_id=None) -> Booking:
    """
    Checkout completed: booking becomes PAID and CONFIRMED. Repeats are no-ops.
    A payment for a booking cancelled in the meantime is still recorded, and is
    marked REFUNDED when the cancellation granted a refund.
    """
    booking, after_cancel = run_serializable(ctx, _record_payment, booking_id, stripe_session_id)
    if after_cancel:
        current_app.logger.warning(
            "payment for cancelled booking %s, refund due %s (cid=%s)",
            booking.id, booking.refund_amount, ctx.correlation_id,
        )
    log_event("PAYMENT_AFTER_CANCEL" if after_cancel else "PAYMENT_PAID", user_id=None,
              entity="booking", entity_id=booking.id,
              metadata={"stripe_session_id": stripe_session_id, "payment_status": booking.payment_status},
              correlation_id=ctx.correlation_id)
    return booking


def _mark_payout(commission_id: int) -> CommissionTransaction:
    commission = db.session.get(CommissionTransaction, commission_id)
    if not commission:
        raise NotFoundError("Commission transaction not found")
    booking = commission.booking
    if commission.payout_status != PAYOUT_PENDING:
        raise ConflictError(f"Payout is already {commission.payout_status}")
    if booking.payment_status != PAYMENT_PAID or booking.status != COMPLETED:
        raise ConflictError("Only paid, completed bookings can be paid out")
    commission.payout_status = PAYOUT_PAID
    commission.paid_out_at = datetime.utcnow()
    return commission


def mark_payout_paid(ctx, commission_id: int) -> CommissionTransaction:
    commission = run_serializable(ctx, _mark_payout, commission_id)
    log_event("PAYOUT_PAID", user_id=ctx.user_id, entity="commission", entity_id=commission_id,
              correlation_id=ctx.correlation_id)
    return commission


# ---------- reporting ----------

def commission_summary(start=None, end=None) -> dict:
    filters = [Booking.status != CANCELLED]
    if start:
        filters.append(Booking.booking_date >= start)
    if end:
        filters.append(Booking.booking_date <= end)

    def _select(*columns):
        return (
            db.select(*columns)
            .select_from(CommissionTransaction)
            .join(Booking, CommissionTransaction.booking_id == Booking.id)
            .where(*filters)
        )

    count, revenue, commission, payout = db.session.execute(_select(
        func.count(CommissionTransaction.id),
        func.coalesce(func.sum(CommissionTransaction.booking_amount), 0),
        func.coalesce(func.sum(CommissionTransaction.commission_amount), 0),
        func.coalesce(func.sum(CommissionTransaction.venue_amount), 0),
    )).one()
    pending = db.session.scalar(
        _select(func.coalesce(func.sum(CommissionTransaction.venue_amount), 0))
        .where(CommissionTransaction.payout_status == PAYOUT_PENDING)
    )
    return {
        "total_bookings": count,
        "total_revenue": revenue,
        "total_commission": commission,
        "total_venue_payout": payout,
        "pending_payout": pending,
        "period_start": start.isoformat() if start else None,
        "period_end": end.isoformat() if end else None,
    }
