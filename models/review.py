from datetime import datetime
from models.db import db

MIN_RATING = 1
MAX_RATING = 5

class Review(db.Model):
    __tablename__ = "reviews"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), db.ForeignKey("users.id"), nullable=False, index=True)
    session_id = db.Column(db.Integer, db.ForeignKey("sessions.id"), nullable=False, index=True)

    rating = db.Column(db.Integer, nullable=False)  # 1..5
    comment = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

    session = db.relationship("SportSession", back_populates="reviews")
    user = db.relationship("User")

    __table_args__ = (
        # one review per attendee per session
        db.UniqueConstraint("user_id", "session_id", name="uq_review_user_session"),
        db.CheckConstraint("rating BETWEEN 1 AND 5", name="ck_review_rating_range"),
    )
