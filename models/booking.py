from datetime import datetime
from sqlalchemy import text

from models.db import db

PENDING = "PENDING"
CONFIRMED = "CONFIRMED"
CANCELLED = "CANCELLED"
COMPLETED = "COMPLETED"

# bookings that hold their time range on the court
ACTIVE_STATUSES = (PENDING, CONFIRMED)

PAYMENT_PENDING = "PENDING"
PAYMENT_PAID = "PAID"
PAYMENT_REFUNDED = "REFUNDED"

class Booking(db.Model):
    __tablename__ = "bookings"

    id = db.Column(db.Integer, primary_key=True)

    court_id = db.Column(db.Integer, db.ForeignKey("courts.id"), nullable=False, index=True)
    user_id = db.Column(db.String(64), db.ForeignKey("users.id"), nullable=False, index=True)
    session_id = db.Column(db.Integer, db.ForeignKey("sessions.id", ondelete="SET NULL"), nullable=True)

    booking_date = db.Column(db.Date, nullable=False, index=True)
    start_time = db.Column(db.String(5), nullable=False)  # "HH:MM"
    end_time = db.Column(db.String(5), nullable=False)
    duration_minutes = db.Column(db.Integer, nullable=False)

    # whole currency units
    subtotal = db.Column(db.Integer, nullable=False)
    commission = db.Column(db.Integer, nullable=False)
    total_amount = db.Column(db.Integer, nullable=False)
    venue_payout = db.Column(db.Integer, nullable=False)

    status = db.Column(db.String(20), nullable=False, default=PENDING)
    # status values: PENDING, CONFIRMED, CANCELLED, COMPLETED
    payment_status = db.Column(db.String(20), nullable=False, default=PAYMENT_PENDING)
    # payment status values: PENDING, PAID, REFUNDED

    stripe_session_id = db.Column(db.String(255), nullable=True, unique=True, index=True)
    paid_at = db.Column(db.DateTime, nullable=True)

    cancelled_at = db.Column(db.DateTime, nullable=True)
    cancellation_reason = db.Column(db.String(255), nullable=True)
    refund_amount = db.Column(db.Integer, nullable=True)

    user_notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    court = db.relationship("Court")
    commission_transaction = db.relationship(
        "CommissionTransaction", back_populates="booking", uselist=False
    )

    __table_args__ = (
        # Two live bookings may never start at the same minute on the same court.
        # Partial overlaps are caught by the serializable check-then-write.
        db.Index(
            "uq_booking_active_start",
            "court_id",
            "booking_date",
            "start_time",
            unique=True,
            postgresql_where=text("status IN ('PENDING', 'CONFIRMED')"),
            sqlite_where=text("status IN ('PENDING', 'CONFIRMED')"),
        ),
    )

    @property
    def is_cancellable(self):
        return self.status in ACTIVE_STATUSES
