from datetime import datetime
from models.db import db

REPORT_REASONS = ("HARASSMENT", "NO_SHOW", "SPAM", "CREEPY_BEHAVIOR", "FAKE_PROFILE", "OTHER")
REPORT_ENTITY_TYPES = ("USER", "SESSION")
REPORT_STATUSES = ("PENDING", "REVIEWED", "RESOLVED", "DISMISSED")

class Report(db.Model):
    __tablename__ = "reports"

    id = db.Column(db.Integer, primary_key=True)
    reporter_id = db.Column(db.String(64), db.ForeignKey("users.id"), nullable=False, index=True)

    entity_type = db.Column(db.String(10), nullable=False)  # USER | SESSION
    reported_user_id = db.Column(db.String(64), db.ForeignKey("users.id"), nullable=True, index=True)
    # nulled when the session is deleted; the report itself is kept
    session_id = db.Column(db.Integer, db.ForeignKey("sessions.id"), nullable=True, index=True)

    reason = db.Column(db.String(30), nullable=False)
    description = db.Column(db.String(2000), nullable=True)

    status = db.Column(db.String(20), nullable=False, default="PENDING", index=True)
    # status values: PENDING, REVIEWED, RESOLVED, DISMISSED
    reviewed_by = db.Column(db.String(64), db.ForeignKey("users.id"), nullable=True)
    reviewed_at = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

    session = db.relationship("SportSession", back_populates="reports")
