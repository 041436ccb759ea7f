from dataclasses import asdict

from flask import current_app

from models import db
from models.booking import Booking, ACTIVE_STATUSES
from models.court import Court
from models.venue import Venue, VenueClosure
from rules.pricing import generate_time_slots
from utils.errors import ConflictError, NotFoundError


def day_of_week(day) -> int:
    """0 = Sunday .. 6 = Saturday."""
    return (day.weekday() + 1) % 7


def closure_for(venue_id: int, day):
    return VenueClosure.query.filter_by(venue_id=venue_id, date=day).first()


def operating_window(venue: Venue, day):
    """(open_time, close_time) for that date, or None when closed."""
    weekday = day_of_week(day)
    hours = next((h for h in venue.operating_hours if h.day_of_week == weekday), None)
    if not hours or hours.is_closed:
        return None
    return hours.open_time, hours.close_time


def active_ranges_by_court(court_ids, day) -> dict:
    rows = (
        Booking.query
        .filter(
            Booking.court_id.in_(court_ids),
            Booking.booking_date == day,
            Booking.status.in_(ACTIVE_STATUSES),
        )
        .all()
    )
    out = {court_id: [] for court_id in court_ids}
    for b in rows:
        out[b.court_id].append((b.start_time, b.end_time))
    return out


def venue_availability(venue_id: int, day, sport_type=None) -> dict:
    venue = db.session.get(Venue, venue_id)
    if not venue:
        raise NotFoundError("Venue not found")
    if not venue.is_bookable:
        raise ConflictError("This venue does not support online booking")

    closed = {
        "venue_id": venue.id,
        "date": day.isoformat(),
        "day_of_week": day_of_week(day),
        "is_open": False,
        "courts": [],
    }

    closure = closure_for(venue.id, day)
    if closure:
        return dict(closed, closure_reason=closure.reason or "Venue closed")

    window = operating_window(venue, day)
    if not window:
        return dict(closed, closure_reason="Venue closed on this day")
    open_time, close_time = window

    q = Court.query.filter_by(venue_id=venue.id, is_active=True)
    if sport_type:
        q = q.filter_by(sport_type=sport_type)
    courts = q.order_by(Court.name.asc()).all()

    slot_minutes = current_app.config.get("AVAILABILITY_SLOT_MINUTES", 60)
    ranges = active_ranges_by_court([c.id for c in courts], day)

    out = []
    for court in courts:
        slots = generate_time_slots(
            court.id, court.price_per_hour, open_time, close_time, ranges[court.id], slot_minutes
        )
        out.append({
            "court": {
                "id": court.id,
                "name": court.name,
                "sport_type": court.sport_type,
                "price_per_hour": court.price_per_hour,
                "price_per_30min": court.price_per_30min,
                "max_players": court.max_players,
                "indoor": court.indoor,
            },
            "slots": [asdict(s) for s in slots],
            "available_slots_count": sum(1 for s in slots if s.is_available),
        })

    return {
        "venue_id": venue.id,
        "date": day.isoformat(),
        "day_of_week": day_of_week(day),
        "is_open": True,
        "operating_hours": {"open": open_time, "close": close_time},
        "courts": out,
    }
