from datetime import datetime
from models.db import db

class WaitlistEntry(db.Model):
    __tablename__ = "waitlist_entries"

    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(db.Integer, db.ForeignKey("sessions.id"), nullable=False, index=True)
    user_id = db.Column(db.String(64), db.ForeignKey("users.id"), nullable=False, index=True)

    # 1-based, dense per session
    position = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

    session = db.relationship("SportSession", back_populates="waitlist")
    user = db.relationship("User")

    __table_args__ = (
        db.UniqueConstraint("session_id", "user_id", name="uq_waitlist_session_user"),
        db.UniqueConstraint("session_id", "position", name="uq_waitlist_session_position"),
    )
