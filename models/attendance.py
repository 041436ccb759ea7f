from datetime import datetime
from models.db import db

ATTENDING = "ATTENDING"
ATTENDED = "ATTENDED"
NO_SHOW = "NO_SHOW"

class Attendance(db.Model):
    __tablename__ = "attendances"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), db.ForeignKey("users.id"), nullable=False, index=True)
    session_id = db.Column(db.Integer, db.ForeignKey("sessions.id"), nullable=False, index=True)

    status = db.Column(db.String(20), nullable=False, default=ATTENDING)
    # status values: ATTENDING -> ATTENDED | NO_SHOW (one way)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    marked_at = db.Column(db.DateTime, nullable=True)
    attended_at = db.Column(db.DateTime, nullable=True)

    session = db.relationship("SportSession", back_populates="attendees")
    user = db.relationship("User")

    __table_args__ = (
        # One seat per user per session; a lost join race surfaces here
        db.UniqueConstraint("user_id", "session_id", name="uq_attendance_user_session"),
    )
