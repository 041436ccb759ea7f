from functools import wraps
from flask import g, jsonify

from utils.roles import ADMIN

def require_roles(*role_names: str):
    """
    Usage: @require_roles("ADMIN", "VENUE_MANAGER")
    ADMIN passes every role check.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            user = getattr(g, "user", None)
            if user is None:
                return jsonify(error="Authentication required"), 401

            if ADMIN not in user.role_names and not user.role_names.intersection(set(role_names)):
                return jsonify(error="Forbidden"), 403

            return fn(*args, **kwargs)
        return wrapper
    return decorator
