from datetime import datetime
from models.db import db

# association table for many-to-many User <-> Role
user_roles = db.Table(
    "user_roles",
    db.Column("user_id", db.String(64), db.ForeignKey("users.id"), primary_key=True),
    db.Column("role_id", db.Integer, db.ForeignKey("roles.id"), primary_key=True),
)

class User(db.Model):
    __tablename__ = "users"

    # subject claim issued by the identity provider
    id = db.Column(db.String(64), primary_key=True)

    email = db.Column(db.String(255), unique=True, nullable=True, index=True)
    display_name = db.Column(db.String(120), nullable=True)

    # reliability: only the attendance-marking pass writes these
    no_show_count = db.Column(db.Integer, default=0, nullable=False)
    reliability_score = db.Column(db.Integer, default=100, nullable=False, index=True)

    is_banned = db.Column(db.Boolean, default=False, nullable=False)
    banned_at = db.Column(db.DateTime, nullable=True)
    banned_reason = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    roles = db.relationship("Role", secondary=user_roles, back_populates="users")

    @property
    def role_names(self):
        return {r.name for r in self.roles}

class Role(db.Model):
    __tablename__ = "roles"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(50), unique=True, nullable=False)  # e.g. PLAYER, VENUE_MANAGER, ADMIN

    users = db.relationship("User", secondary=user_roles, back_populates="roles")
