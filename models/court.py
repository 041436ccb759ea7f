from datetime import datetime
from models.db import db

class Court(db.Model):
    __tablename__ = "courts"

    id = db.Column(db.Integer, primary_key=True)
    venue_id = db.Column(db.Integer, db.ForeignKey("venues.id"), nullable=False, index=True)

    name = db.Column(db.String(120), nullable=False)
    sport_type = db.Column(db.String(50), nullable=False)
    description = db.Column(db.Text, nullable=True)

    # whole currency units
    price_per_hour = db.Column(db.Integer, nullable=False)
    price_per_30min = db.Column(db.Integer, nullable=True)

    max_players = db.Column(db.Integer, nullable=True)
    indoor = db.Column(db.Boolean, default=False, nullable=False)

    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    venue = db.relationship("Venue", back_populates="courts")

    __table_args__ = (
        db.UniqueConstraint("venue_id", "name", name="uq_courts_venue_name"),
    )
