from datetime import datetime
from models.db import db

class Favorite(db.Model):
    __tablename__ = "favorites"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), db.ForeignKey("users.id"), nullable=False, index=True)
    session_id = db.Column(db.Integer, db.ForeignKey("sessions.id"), nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    session = db.relationship("SportSession", back_populates="favorites")

    __table_args__ = (
        db.UniqueConstraint("user_id", "session_id", name="uq_favorite_user_session"),
    )
