from datetime import datetime, timedelta

from models import db
from models.venue import VenueClosure, OperatingHours
from services.availability import day_of_week


def test_day_of_week_starts_on_sunday():
    assert day_of_week(datetime(2026, 3, 8).date()) == 0  # Sunday
    assert day_of_week(datetime(2026, 3, 14).date()) == 6  # Saturday


def test_list_only_bookable_venues(client, make_court):
    make_court(name="Open Arena")
    make_court(name="Members Only", is_bookable=False)
    r = client.get("/venues")
    assert r.status_code == 200
    assert [v["name"] for v in r.get_json()] == ["Open Arena"]


def test_availability_grid_marks_booked_hours(client, make_user, make_court, auth_headers, future_day):
    make_user("a")
    venue_id, court_id = make_court(hours=("09:00", "12:00"))
    r = client.post("/bookings", headers=auth_headers("a"), json={
        "court_id": court_id,
        "booking_date": future_day.isoformat(),
        "start_time": "10:00",
        "end_time": "11:00",
    })
    assert r.status_code == 201

    r = client.get(f"/venues/{venue_id}/availability?date={future_day.isoformat()}")
    assert r.status_code == 200
    body = r.get_json()
    assert body["is_open"] is True
    assert body["operating_hours"] == {"open": "09:00", "close": "12:00"}
    court = body["courts"][0]
    assert [(s["start_time"], s["is_available"]) for s in court["slots"]] == [
        ("09:00", True), ("10:00", False), ("11:00", True),
    ]
    assert court["available_slots_count"] == 2


def test_cancelled_booking_reopens_slot(client, make_user, make_court, auth_headers, future_day):
    make_user("a")
    venue_id, court_id = make_court(hours=("09:00", "12:00"))
    r = client.post("/bookings", headers=auth_headers("a"), json={
        "court_id": court_id,
        "booking_date": future_day.isoformat(),
        "start_time": "10:00",
        "end_time": "11:00",
    })
    client.delete(f"/bookings/{r.get_json()['booking']['id']}", headers=auth_headers("a"))

    body = client.get(f"/venues/{venue_id}/availability?date={future_day.isoformat()}").get_json()
    assert body["courts"][0]["available_slots_count"] == 3


def test_closure_day(app, client, make_court, future_day):
    venue_id, _ = make_court(hours=("09:00", "12:00"))
    with app.app_context():
        db.session.add(VenueClosure(venue_id=venue_id, date=future_day, reason="Maintenance"))
        db.session.commit()

    body = client.get(f"/venues/{venue_id}/availability?date={future_day.isoformat()}").get_json()
    assert body["is_open"] is False
    assert body["closure_reason"] == "Maintenance"
    assert body["courts"] == []


def test_closed_weekday(app, client, make_court, future_day):
    venue_id, _ = make_court(hours=("09:00", "12:00"))
    with app.app_context():
        hours = OperatingHours.query.filter_by(venue_id=venue_id, day_of_week=day_of_week(future_day)).one()
        hours.is_closed = True
        db.session.commit()

    body = client.get(f"/venues/{venue_id}/availability?date={future_day.isoformat()}").get_json()
    assert body["is_open"] is False


def test_sport_type_filter(client, make_court, future_day):
    venue_id, _ = make_court(hours=("09:00", "12:00"))
    body = client.get(f"/venues/{venue_id}/availability?date={future_day.isoformat()}&sport_type=tennis").get_json()
    assert body["courts"] == []


def test_date_is_required_and_not_past(client, make_court):
    venue_id, _ = make_court(hours=("09:00", "12:00"))
    assert client.get(f"/venues/{venue_id}/availability").status_code == 400
    assert client.get(f"/venues/{venue_id}/availability?date=tomorrow").status_code == 400
    yesterday = (datetime.utcnow() - timedelta(days=1)).date().isoformat()
    assert client.get(f"/venues/{venue_id}/availability?date={yesterday}").status_code == 400


def test_unknown_venue(client, future_day):
    assert client.get(f"/venues/999/availability?date={future_day.isoformat()}").status_code == 404
