from datetime import datetime
from models.db import db

VIBES = ("CASUAL", "COMPETITIVE", "TRAINING", "SOCIAL")

class SportSession(db.Model):
    __tablename__ = "sessions"

    id = db.Column(db.Integer, primary_key=True)
    venue_id = db.Column(db.Integer, db.ForeignKey("venues.id"), nullable=True, index=True)
    created_by = db.Column(db.String(64), db.ForeignKey("users.id"), nullable=False, index=True)

    sport_type = db.Column(db.String(50), nullable=False, index=True)
    skill_level = db.Column(db.String(30), nullable=False)
    start_time = db.Column(db.DateTime, nullable=False, index=True)
    duration_minutes = db.Column(db.Integer, nullable=False)
    max_participants = db.Column(db.Integer, nullable=True)  # None = unlimited
    vibe = db.Column(db.String(20), nullable=False, default="CASUAL")
    description = db.Column(db.Text, nullable=True)

    # set once by the host's post-session marking pass
    attendance_marked = db.Column(db.Boolean, default=False, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    attendees = db.relationship(
        "Attendance", back_populates="session", lazy=True, cascade="all, delete-orphan"
    )
    waitlist = db.relationship(
        "WaitlistEntry",
        back_populates="session",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="WaitlistEntry.position",
    )
    favorites = db.relationship(
        "Favorite", back_populates="session", lazy=True, cascade="all, delete-orphan"
    )
    reviews = db.relationship(
        "Review", back_populates="session", lazy=True, cascade="all, delete-orphan",
        order_by="Review.created_at.desc()",
    )
    reports = db.relationship("Report", back_populates="session", lazy=True)
