import uuid
from dataclasses import dataclass
from functools import wraps

from flask import g, jsonify, request, current_app
from sqlalchemy.exc import IntegrityError

from models import db
from models.user import User, Role
from security.tokens import InvalidTokenError, bearer_token_from_request, decode_access_token
from utils.roles import ADMIN, PLAYER


@dataclass(frozen=True)
class RequestContext:
    """Caller identity handed explicitly to every mutating service call."""

    user_id: str
    correlation_id: str
    roles: frozenset = frozenset()

    @property
    def is_admin(self) -> bool:
        return ADMIN in self.roles


def load_current_user():
    g.correlation_id = (request.headers.get("X-Request-ID") or "").strip()[:64] or uuid.uuid4().hex
    g.user = None

    token = bearer_token_from_request()
    if not token:
        return
    try:
        claims = decode_access_token(token)
    except InvalidTokenError as exc:
        current_app.logger.info("rejected access token: %s", exc)
        return

    user = ensure_user(claims)
    if user.is_banned:
        return
    g.user = user


def ensure_user(claims: dict) -> User:
    """First request from a new identity creates its local user row."""
    user = db.session.get(User, claims["sub"])
    if user:
        return user

    user = User(
        id=claims["sub"],
        email=(claims.get("email") or "").strip().lower() or None,
        display_name=claims.get("name"),
    )
    player = Role.query.filter_by(name=PLAYER).first()
    if player:
        user.roles.append(player)
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        # a parallel first request created it
        db.session.rollback()
        user = db.session.get(User, claims["sub"])
    return user


def current_context() -> RequestContext:
    return RequestContext(
        user_id=g.user.id,
        correlation_id=g.correlation_id,
        roles=frozenset(g.user.role_names),
    )


def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if getattr(g, "user", None) is None:
            return jsonify(error="Authentication required"), 401
        return fn(*args, **kwargs)
    return wrapper
