"""
Session attendance and waitlist mutations.

Each public function is a complete unit of work run through run_serializable:
occupancy is read, a rules/capacity decision is taken and only an ALLOWED
decision writes.
"""
from datetime import datetime

from sqlalchemy import func

from models import db
from models.attendance import Attendance, ATTENDING, ATTENDED, NO_SHOW
from models.notification import Notification
from models.session import SportSession
from models.user import User
from models.venue import Venue
from models.waitlist import WaitlistEntry
from rules.capacity import (
    JoinDecision,
    MarkDecision,
    WaitlistDecision,
    can_join_session,
    can_join_waitlist,
    can_mark_attendance,
)
from rules.reliability import apply_attendance_outcome
from utils.audit import log_event
from utils.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from utils.transactions import run_serializable


def _get_session(session_id: int) -> SportSession:
    session = db.session.get(SportSession, session_id)
    if not session:
        raise NotFoundError("Session not found")
    return session


def attendee_count(session_id: int) -> int:
    return db.session.scalar(
        db.select(func.count(Attendance.id)).where(Attendance.session_id == session_id)
    )


def waitlist_count(session_id: int) -> int:
    return db.session.scalar(
        db.select(func.count(WaitlistEntry.id)).where(WaitlistEntry.session_id == session_id)
    )


def _find_attendance(session_id: int, user_id: str):
    return Attendance.query.filter_by(session_id=session_id, user_id=user_id).first()


def _find_waitlist_entry(session_id: int, user_id: str):
    return WaitlistEntry.query.filter_by(session_id=session_id, user_id=user_id).first()


# ---------- join / leave ----------

def _join(ctx, session_id: int) -> Attendance:
    session = _get_session(session_id)

    if _find_attendance(session_id, ctx.user_id):
        raise ConflictError("Already joined this session")

    decision = can_join_session(session, attendee_count(session_id))
    if decision is JoinDecision.PAST_DATE:
        raise ConflictError("Session has already started")
    if decision is JoinDecision.FULL:
        raise ConflictError("Session is full")

    # a seat supersedes any place in the queue
    entry = _find_waitlist_entry(session_id, ctx.user_id)
    if entry:
        _remove_from_waitlist(entry)

    attendance = Attendance(user_id=ctx.user_id, session_id=session_id, status=ATTENDING)
    db.session.add(attendance)
    db.session.flush()
    return attendance


def join_session(ctx, session_id: int) -> dict:
    attendance = run_serializable(
        ctx, _join, ctx, session_id,
        constraint_messages={"uq_attendance_user_session": "Already joined this session"},
    )
    out = {
        "id": attendance.id,
        "session_id": attendance.session_id,
        "user_id": attendance.user_id,
        "status": attendance.status,
        "created_at": attendance.created_at.isoformat(),
    }
    log_event("SESSION_JOIN", user_id=ctx.user_id, entity="session", entity_id=session_id,
              correlation_id=ctx.correlation_id)
    return out


def _cancel(ctx, session_id: int):
    attendance = _find_attendance(session_id, ctx.user_id)
    if not attendance:
        raise NotFoundError("You are not attending this session")
    if attendance.status != ATTENDING:
        raise ConflictError("Attendance has already been recorded for this session")
    db.session.delete(attendance)


def cancel_attendance(ctx, session_id: int):
    run_serializable(ctx, _cancel, ctx, session_id)
    log_event("ATTENDANCE_CANCEL", user_id=ctx.user_id, entity="session", entity_id=session_id,
              correlation_id=ctx.correlation_id)


# ---------- waitlist ----------

def _join_waitlist(ctx, session_id: int) -> WaitlistEntry:
    session = _get_session(session_id)

    decision = can_join_waitlist(
        session,
        attendee_count(session_id),
        has_attendance=_find_attendance(session_id, ctx.user_id) is not None,
        has_waitlist_entry=_find_waitlist_entry(session_id, ctx.user_id) is not None,
    )
    if decision is WaitlistDecision.PAST_DATE:
        raise ConflictError("Cannot join waitlist for past sessions")
    if decision is WaitlistDecision.ALREADY_ATTENDING:
        raise ConflictError("You are already attending this session")
    if decision is WaitlistDecision.ALREADY_WAITLISTED:
        raise ConflictError("You are already on the waitlist")
    if decision is WaitlistDecision.NOT_FULL:
        raise ConflictError("Session is not full. Please join directly instead of waitlist.")

    position = waitlist_count(session_id) + 1
    entry = WaitlistEntry(session_id=session_id, user_id=ctx.user_id, position=position)
    db.session.add(entry)
    db.session.add(Notification(
        user_id=ctx.user_id,
        type="waitlist_joined",
        title="Added to Waitlist",
        message=f"You're #{position} on the waitlist for {session.sport_type}. "
                f"We'll notify you if a spot opens up!",
        link=f"/sessions/{session_id}",
    ))
    db.session.flush()
    return entry


def join_waitlist(ctx, session_id: int) -> dict:
    entry = run_serializable(
        ctx, _join_waitlist, ctx, session_id,
        conflict_message="The waitlist changed while you were joining, please try again",
        constraint_messages={"uq_waitlist_session_user": "You are already on the waitlist"},
    )
    out = {
        "id": entry.id,
        "position": entry.position,
        "created_at": entry.created_at.isoformat(),
    }
    log_event("WAITLIST_JOIN", user_id=ctx.user_id, entity="session", entity_id=session_id,
              metadata={"position": entry.position}, correlation_id=ctx.correlation_id)
    return out


def _remove_from_waitlist(entry: WaitlistEntry):
    session_id, vacated = entry.session_id, entry.position
    db.session.delete(entry)
    db.session.flush()

    # keep positions dense; one row at a time so (session, position) stays unique
    behind = (
        WaitlistEntry.query
        .filter(WaitlistEntry.session_id == session_id, WaitlistEntry.position > vacated)
        .order_by(WaitlistEntry.position.asc())
        .all()
    )
    for row in behind:
        row.position -= 1
        db.session.flush()


def _leave_waitlist(ctx, session_id: int):
    entry = _find_waitlist_entry(session_id, ctx.user_id)
    if not entry:
        raise NotFoundError("You are not on the waitlist")
    _remove_from_waitlist(entry)


def leave_waitlist(ctx, session_id: int):
    run_serializable(ctx, _leave_waitlist, ctx, session_id)
    log_event("WAITLIST_LEAVE", user_id=ctx.user_id, entity="session", entity_id=session_id,
              correlation_id=ctx.correlation_id)


# ---------- host attendance marking ----------

def _mark(ctx, session_id: int, outcomes) -> list:
    session = _get_session(session_id)

    decision = can_mark_attendance(
        session,
        is_host=session.created_by == ctx.user_id,
        already_marked=session.attendance_marked,
    )
    if decision is MarkDecision.FORBIDDEN:
        raise ForbiddenError("Only the session host can mark attendance")
    if decision is MarkDecision.NOT_YET_PAST:
        raise ConflictError("Cannot mark attendance for future sessions")
    if decision is MarkDecision.ALREADY_MARKED:
        raise ConflictError("Attendance has already been marked for this session")

    participants = {a.user_id: a for a in session.attendees}
    unknown = [user_id for user_id, _ in outcomes if user_id not in participants]
    if unknown:
        raise ValidationError(f"Some users are not participants: {', '.join(unknown)}")

    now = datetime.utcnow()
    updates = []
    for user_id, attended in outcomes:
        attendance = participants[user_id]
        attendance.status = ATTENDED if attended else NO_SHOW
        attendance.marked_at = now
        if attended:
            attendance.attended_at = now

        user = db.session.get(User, user_id)
        apply_attendance_outcome(user, attended)

        if not attended:
            db.session.add(Notification(
                user_id=user_id,
                type="no_show_warning",
                title="Missed Session",
                message="You were marked as a no-show for a session. "
                        "Your reliability score has been updated.",
                link=f"/sessions/{session_id}",
            ))

        updates.append({
            "user_id": user_id,
            "status": attendance.status,
            "reliability_score": user.reliability_score,
            "no_show_count": user.no_show_count,
        })

    session.attendance_marked = True
    return updates


def mark_attendance(ctx, session_id: int, outcomes) -> list:
    """
    outcomes: list of (user_id, attended) pairs with unique user ids. The
    whole batch commits or nothing does.
    """
    updates = run_serializable(
        ctx, _mark, ctx, session_id, outcomes,
        conflict_message="Attendance has already been marked for this session",
    )
    log_event("ATTENDANCE_MARK", user_id=ctx.user_id, entity="session", entity_id=session_id,
              metadata={"no_shows": sum(1 for u in updates if u["status"] == NO_SHOW)},
              correlation_id=ctx.correlation_id)
    return updates


# ---------- session lifecycle ----------

def create_session(ctx, fields: dict) -> SportSession:
    session = SportSession(created_by=ctx.user_id, **fields)
    db.session.add(session)
    db.session.commit()
    log_event("SESSION_CREATE", user_id=ctx.user_id, entity="session", entity_id=session.id,
              correlation_id=ctx.correlation_id)
    return session


def list_sessions(sport_type=None, skill_level=None, search=None):
    """Upcoming sessions, soonest first."""
    q = SportSession.query.filter(SportSession.start_time >= datetime.utcnow())
    if sport_type:
        q = q.filter(SportSession.sport_type == sport_type)
    if skill_level:
        q = q.filter(SportSession.skill_level == skill_level)
    if search:
        pattern = f"%{search}%"
        q = q.outerjoin(Venue, SportSession.venue_id == Venue.id).filter(
            db.or_(SportSession.sport_type.ilike(pattern), Venue.name.ilike(pattern))
        )
    return q.order_by(SportSession.start_time.asc(), SportSession.id.asc()).all()


def _update(ctx, session_id: int, fields: dict) -> SportSession:
    session = _get_session(session_id)
    if session.created_by != ctx.user_id:
        raise ForbiddenError("Only the session host can edit this session")
    if session.attendance_marked:
        raise ConflictError("Attendance has already been marked for this session")

    if fields.get("max_participants") is not None:
        current = attendee_count(session_id)
        if fields["max_participants"] < current:
            raise ValidationError(
                f"max_participants cannot be below the {current} players already attending"
            )

    for name, value in fields.items():
        setattr(session, name, value)
    db.session.flush()
    return session


def update_session(ctx, session_id: int, fields: dict) -> SportSession:
    """fields holds only the columns the host is changing; max_participants None means unlimited."""
    session = run_serializable(ctx, _update, ctx, session_id, fields)
    log_event("SESSION_UPDATE", user_id=ctx.user_id, entity="session", entity_id=session_id,
              metadata={"fields": sorted(fields)}, correlation_id=ctx.correlation_id)
    return session


def _delete(ctx, session_id: int):
    session = _get_session(session_id)
    if session.created_by != ctx.user_id and not ctx.is_admin:
        raise ForbiddenError("Only the session host can delete this session")
    db.session.delete(session)


def delete_session(ctx, session_id: int):
    run_serializable(ctx, _delete, ctx, session_id)
    log_event("SESSION_DELETE", user_id=ctx.user_id, entity="session", entity_id=session_id,
              correlation_id=ctx.correlation_id)
