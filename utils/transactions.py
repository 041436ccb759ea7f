"""
Serializable check-then-write.

Every capacity-sensitive mutation runs as one database transaction at the
SERIALIZABLE isolation level. A serialization failure reruns the whole unit
of work, so the retry re-reads occupancy and gets a fresh decision. A unique
constraint violation means the race was lost at commit and becomes a 409.
"""
import re

from flask import current_app
from sqlalchemy.exc import DBAPIError, IntegrityError

from models import db
from utils.errors import AppError, ConflictError

SERIALIZATION_FAILURE = "40001"
DEADLOCK_DETECTED = "40P01"

DEFAULT_CONFLICT_MESSAGE = "Request conflicts with a concurrent change"

# sqlite: "UNIQUE constraint failed: waitlist_entries.session_id, waitlist_entries.position"
#     or: "UNIQUE constraint failed: index 'uq_booking_active_start'"
_SQLITE_UNIQUE = re.compile(r"UNIQUE constraint failed: (.+)$")
_SQLITE_INDEX = re.compile(r"index '([^']+)'")


def is_serialization_failure(exc: DBAPIError) -> bool:
    orig = getattr(exc, "orig", None)
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if code in (SERIALIZATION_FAILURE, DEADLOCK_DETECTED):
        return True
    # sqlite reports lock contention as an OperationalError
    return "database is locked" in str(orig or exc).lower()


def _unique_names(table):
    for constraint in table.constraints:
        if constraint.name and getattr(constraint, "columns", None) is not None:
            yield constraint.name, {c.name for c in constraint.columns}
    for index in table.indexes:
        if index.unique and index.name:
            yield index.name, {c.name for c in index.columns}


def violated_constraint(exc: IntegrityError):
    """Name of the unique constraint or index behind exc, or None."""
    orig = getattr(exc, "orig", None)

    diag = getattr(orig, "diag", None)
    name = getattr(diag, "constraint_name", None)
    if name:
        return name

    match = _SQLITE_UNIQUE.search(str(orig or exc))
    if not match:
        return None
    detail = match.group(1).strip()

    index = _SQLITE_INDEX.match(detail)
    if index:
        return index.group(1)

    qualified = [part.strip() for part in detail.split(",")]
    table_name = qualified[0].split(".", 1)[0]
    columns = {part.split(".", 1)[-1] for part in qualified}
    table = db.metadata.tables.get(table_name)
    if table is None:
        return None
    for name, constraint_columns in _unique_names(table):
        if constraint_columns == columns:
            return name
    return None


def _begin_serializable():
    # Whatever the request read before (e.g. the current user) is finished;
    # the isolation level only applies to a fresh transaction.
    session = db.session()
    if session.in_transaction():
        session.rollback()
    session.connection(execution_options={"isolation_level": "SERIALIZABLE"})


def run_serializable(ctx, work, *args, conflict_message=DEFAULT_CONFLICT_MESSAGE,
                     constraint_messages=None, **kwargs):
    """
    Runs work(*args, **kwargs) and commits. Nothing is committed unless work
    returns normally.

    constraint_messages maps a unique constraint name to the 409 message for
    a commit that trips it; any other conflict gets conflict_message.
    """
    max_retries = current_app.config.get("TX_MAX_RETRIES", 3)
    constraint_messages = constraint_messages or {}
    attempt = 0

    while True:
        attempt += 1
        _begin_serializable()
        try:
            result = work(*args, **kwargs)
            db.session.commit()
            return result
        except AppError:
            db.session.rollback()
            raise
        except IntegrityError as exc:
            db.session.rollback()
            constraint = violated_constraint(exc)
            current_app.logger.info(
                "constraint conflict in %s on %s cid=%s: %s",
                work.__name__, constraint, ctx.correlation_id, exc.orig,
            )
            message = constraint_messages.get(constraint, conflict_message)
            raise ConflictError(message, status_code=409) from exc
        except DBAPIError as exc:
            db.session.rollback()
            if not is_serialization_failure(exc):
                raise
            if attempt > max_retries:
                current_app.logger.warning(
                    "giving up on %s after %d attempts cid=%s",
                    work.__name__, attempt, ctx.correlation_id,
                )
                raise ConflictError(conflict_message, status_code=409) from exc
            current_app.logger.info(
                "serialization failure in %s, retry %d cid=%s",
                work.__name__, attempt, ctx.correlation_id,
            )
        except Exception:
            db.session.rollback()
            raise
