"""
Shared fixtures: a fresh app per test on a file-backed SQLite database, so
threads in the concurrency tests see the same data through separate
connections.
"""
from datetime import datetime, timedelta, timezone

import jwt
import pytest

from app import create_app
from config import TestConfig
from models import db
from models.attendance import Attendance
from models.booking import Booking
from models.commission import CommissionTransaction
from models.court import Court
from models.session import SportSession
from models.user import User, Role
from models.venue import Venue, OperatingHours
from rules.clock import minutes_to_time
from rules.pricing import calculate_booking_price
from utils.roles import seed_roles


@pytest.fixture
def app(tmp_path):
    app = create_app(TestConfig, overrides={
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'test.db'}",
    })
    with app.app_context():
        db.create_all()
        seed_roles()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_headers(app):
    def _headers(user_id, email=None):
        token = jwt.encode(
            {
                "sub": user_id,
                "email": email or f"{user_id}@example.com",
                "aud": app.config["IDP_JWT_AUDIENCE"],
                "exp": datetime.now(timezone.utc) + timedelta(hours=1),
            },
            app.config["IDP_JWT_SECRET"],
            algorithm="HS256",
        )
        return {"Authorization": f"Bearer {token}"}
    return _headers


@pytest.fixture
def make_user(app):
    def _make(user_id, roles=("PLAYER",), **fields):
        with app.app_context():
            user = User(id=user_id, email=f"{user_id}@example.com", display_name=user_id, **fields)
            user.roles = Role.query.filter(Role.name.in_(roles)).all()
            db.session.add(user)
            db.session.commit()
        return user_id
    return _make


@pytest.fixture
def make_session(app):
    def _make(host_id, starts_in=timedelta(days=1), max_participants=None, **fields):
        with app.app_context():
            session = SportSession(
                created_by=host_id,
                sport_type=fields.pop("sport_type", "futsal"),
                skill_level=fields.pop("skill_level", "intermediate"),
                start_time=datetime.utcnow() + starts_in,
                duration_minutes=fields.pop("duration_minutes", 90),
                max_participants=max_participants,
                **fields,
            )
            db.session.add(session)
            db.session.commit()
            return session.id
    return _make


@pytest.fixture
def add_attendee(app):
    def _add(session_id, user_id):
        with app.app_context():
            db.session.add(Attendance(session_id=session_id, user_id=user_id))
            db.session.commit()
    return _add


@pytest.fixture
def make_court(app):
    def _make(price_per_hour=4000, price_per_30min=None, owner_user_id=None, hours=None, **venue_fields):
        """hours: ("HH:MM", "HH:MM") applied to every day of the week, or None for no schedule."""
        with app.app_context():
            venue = Venue(
                name=venue_fields.pop("name", "Shibuya Futsal Park"),
                address=venue_fields.pop("address", "1-2-3 Shibuya"),
                is_bookable=venue_fields.pop("is_bookable", True),
                owner_user_id=owner_user_id,
                **venue_fields,
            )
            if hours:
                for day in range(7):
                    venue.operating_hours.append(
                        OperatingHours(day_of_week=day, open_time=hours[0], close_time=hours[1])
                    )
            db.session.add(venue)
            db.session.flush()
            court = Court(
                venue_id=venue.id,
                name="Court A",
                sport_type="futsal",
                price_per_hour=price_per_hour,
                price_per_30min=price_per_30min,
            )
            db.session.add(court)
            db.session.commit()
            return venue.id, court.id
    return _make


@pytest.fixture
def make_booking(app):
    """Writes a booking straight to the database, bypassing the booking window."""
    def _make(court_id, user_id, starts_at, minutes=60, **fields):
        with app.app_context():
            court = db.session.get(Court, court_id)
            price = calculate_booking_price(court.price_per_hour, court.price_per_30min, minutes, 0.10)
            start_minutes = starts_at.hour * 60 + starts_at.minute
            booking = Booking(
                court_id=court_id,
                user_id=user_id,
                booking_date=starts_at.date(),
                start_time=minutes_to_time(start_minutes),
                end_time=minutes_to_time(min(start_minutes + minutes, 24 * 60 - 1)),
                duration_minutes=minutes,
                subtotal=price.subtotal,
                commission=price.commission,
                total_amount=price.total_amount,
                venue_payout=price.venue_payout,
                **fields,
            )
            db.session.add(booking)
            db.session.flush()
            db.session.add(CommissionTransaction(
                booking_id=booking.id,
                venue_id=court.venue_id,
                booking_amount=price.total_amount,
                commission_rate=0.10,
                commission_amount=price.commission,
                venue_amount=price.venue_payout,
            ))
            db.session.commit()
            return booking.id
    return _make


@pytest.fixture
def future_day():
    """A date safely inside the booking window."""
    return datetime.utcnow().date() + timedelta(days=3)
