from models import db
from models.user import Role

PLAYER = "PLAYER"
VENUE_MANAGER = "VENUE_MANAGER"
ADMIN = "ADMIN"

DEFAULT_ROLES = (PLAYER, VENUE_MANAGER, ADMIN)


def seed_roles() -> list:
    """Creates any missing default role and returns the names it added."""
    existing = set(db.session.scalars(db.select(Role.name)))
    added = [name for name in DEFAULT_ROLES if name not in existing]
    db.session.add_all([Role(name=name) for name in added])
    db.session.commit()
    return added


def filter_role_names(roles) -> list:
    """Known role names, sorted, from Role rows or plain strings."""
    names = {r if isinstance(r, str) else getattr(r, "name", None) for r in roles or []}
    return sorted(n for n in names if n in DEFAULT_ROLES)
