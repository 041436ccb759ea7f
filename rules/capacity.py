"""
Capacity decisions for sessions, waitlists and court time ranges.

Everything here is pure: callers load occupancy, ask for a decision and only
then write. A non-ALLOWED decision must never reach persistence.
"""
import enum
from datetime import datetime, timedelta

from rules.clock import intervals_overlap, time_to_minutes


class JoinDecision(enum.Enum):
    ALLOWED = "allowed"
    FULL = "full"
    PAST_DATE = "past_date"


class WaitlistDecision(enum.Enum):
    ALLOWED = "allowed"
    PAST_DATE = "past_date"
    ALREADY_ATTENDING = "already_attending"
    ALREADY_WAITLISTED = "already_waitlisted"
    NOT_FULL = "not_full"


class MarkDecision(enum.Enum):
    ALLOWED = "allowed"
    FORBIDDEN = "forbidden"
    NOT_YET_PAST = "not_yet_past"
    ALREADY_MARKED = "already_marked"


def is_full(session, current_count: int) -> bool:
    return session.max_participants is not None and current_count >= session.max_participants


def has_started(session, now=None) -> bool:
    now = now or datetime.utcnow()
    return session.start_time <= now


def can_join_session(session, current_count: int, now=None) -> JoinDecision:
    if has_started(session, now):
        return JoinDecision.PAST_DATE
    if is_full(session, current_count):
        return JoinDecision.FULL
    return JoinDecision.ALLOWED


def can_join_waitlist(
    session,
    current_count: int,
    has_attendance: bool,
    has_waitlist_entry: bool,
    now=None,
) -> WaitlistDecision:
    """
    The waitlist is only open while the session is at capacity, which is the
    inverse of can_join_session's FULL condition.
    """
    if has_started(session, now):
        return WaitlistDecision.PAST_DATE
    if has_attendance:
        return WaitlistDecision.ALREADY_ATTENDING
    if has_waitlist_entry:
        return WaitlistDecision.ALREADY_WAITLISTED
    if not is_full(session, current_count):
        return WaitlistDecision.NOT_FULL
    return WaitlistDecision.ALLOWED


def can_mark_attendance(session, is_host: bool, already_marked: bool, now=None) -> MarkDecision:
    if not is_host:
        return MarkDecision.FORBIDDEN
    if not has_started(session, now):
        return MarkDecision.NOT_YET_PAST
    if already_marked:
        return MarkDecision.ALREADY_MARKED
    return MarkDecision.ALLOWED


def is_slot_available(start_time: str, end_time: str, existing_bookings) -> bool:
    """
    existing_bookings: iterable of ("HH:MM", "HH:MM") pairs already holding
    the court on the same date.
    """
    start = time_to_minutes(start_time)
    end = time_to_minutes(end_time)
    for booked_start, booked_end in existing_bookings:
        if intervals_overlap(start, end, time_to_minutes(booked_start), time_to_minutes(booked_end)):
            return False
    return True


def validate_booking_window(booking_start: datetime, duration_minutes: int, policy: dict, now=None):
    """
    Returns an error message, or None when the request fits the booking
    window. policy carries MIN_BOOKING_HOURS_AHEAD, MAX_BOOKING_DAYS_AHEAD,
    MIN_BOOKING_MINUTES and MAX_BOOKING_MINUTES.
    """
    now = now or datetime.utcnow()

    if booking_start < now:
        return "Cannot book for past dates"

    min_hours = policy["MIN_BOOKING_HOURS_AHEAD"]
    if booking_start - now < timedelta(hours=min_hours):
        return f"Bookings must be made at least {min_hours} hours in advance"

    max_days = policy["MAX_BOOKING_DAYS_AHEAD"]
    if booking_start - now > timedelta(days=max_days):
        return f"Bookings can only be made up to {max_days} days in advance"

    min_minutes = policy["MIN_BOOKING_MINUTES"]
    if duration_minutes < min_minutes:
        return f"Minimum booking duration is {min_minutes} minutes"

    max_minutes = policy["MAX_BOOKING_MINUTES"]
    if duration_minutes > max_minutes:
        return f"Maximum booking duration is {max_minutes // 60} hours"

    return None
