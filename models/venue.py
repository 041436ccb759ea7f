from datetime import datetime
from models.db import db

class Venue(db.Model):
    __tablename__ = "venues"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(160), nullable=False)
    address = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(30), nullable=True)
    latitude = db.Column(db.Float, nullable=True)
    longitude = db.Column(db.Float, nullable=True)

    is_bookable = db.Column(db.Boolean, default=False, nullable=False)
    owner_user_id = db.Column(db.String(64), db.ForeignKey("users.id"), nullable=True, index=True)

    # venue partner agreement; falls back to DEFAULT_COMMISSION_RATE when unset
    commission_rate = db.Column(db.Float, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    courts = db.relationship("Court", back_populates="venue", lazy=True)
    operating_hours = db.relationship(
        "OperatingHours", back_populates="venue", lazy=True, cascade="all, delete-orphan"
    )
    closures = db.relationship(
        "VenueClosure", back_populates="venue", lazy=True, cascade="all, delete-orphan"
    )

class OperatingHours(db.Model):
    __tablename__ = "operating_hours"

    id = db.Column(db.Integer, primary_key=True)
    venue_id = db.Column(db.Integer, db.ForeignKey("venues.id"), nullable=False, index=True)

    day_of_week = db.Column(db.Integer, nullable=False)  # 0 = Sunday .. 6 = Saturday
    open_time = db.Column(db.String(5), nullable=False)  # "HH:MM"
    close_time = db.Column(db.String(5), nullable=False)
    is_closed = db.Column(db.Boolean, default=False, nullable=False)

    venue = db.relationship("Venue", back_populates="operating_hours")

    __table_args__ = (
        db.UniqueConstraint("venue_id", "day_of_week", name="uq_operating_hours_day"),
    )

class VenueClosure(db.Model):
    __tablename__ = "venue_closures"

    id = db.Column(db.Integer, primary_key=True)
    venue_id = db.Column(db.Integer, db.ForeignKey("venues.id"), nullable=False, index=True)
    date = db.Column(db.Date, nullable=False)
    reason = db.Column(db.String(255), nullable=True)

    venue = db.relationship("Venue", back_populates="closures")

    __table_args__ = (
        db.UniqueConstraint("venue_id", "date", name="uq_venue_closure_date"),
    )
