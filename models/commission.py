from datetime import datetime
from models.db import db

PAYOUT_PENDING = "PENDING"
PAYOUT_PAID = "PAID"
PAYOUT_REFUNDED = "REFUNDED"

class CommissionTransaction(db.Model):
    __tablename__ = "commission_transactions"

    id = db.Column(db.Integer, primary_key=True)

    # 1:1 with its booking, written in the same transaction
    booking_id = db.Column(db.Integer, db.ForeignKey("bookings.id"), nullable=False, unique=True)
    venue_id = db.Column(db.Integer, db.ForeignKey("venues.id"), nullable=False, index=True)

    booking_amount = db.Column(db.Integer, nullable=False)
    commission_rate = db.Column(db.Float, nullable=False)
    commission_amount = db.Column(db.Integer, nullable=False)
    venue_amount = db.Column(db.Integer, nullable=False)

    payout_status = db.Column(db.String(20), nullable=False, default=PAYOUT_PENDING)
    # payout status values: PENDING, PAID, REFUNDED
    paid_out_at = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    booking = db.relationship("Booking", back_populates="commission_transaction")
