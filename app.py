from flask import Flask, jsonify, g
from werkzeug.exceptions import HTTPException

from config import Config
from routes import health_bp, sessions_bp, bookings_bp, venues_bp, payments_bp, webhook_bp, admin_bp, users_bp, reports_bp

from models import db
from models.db import init_db
from flask_migrate import Migrate
from utils.roles import ADMIN, seed_roles
from utils.auth_context import load_current_user
from utils.errors import AppError, RateLimitedError
from security.rate_limit import init_rate_limiter


def create_app(config_object=Config, overrides=None):
    app = Flask(__name__)
    app.config.from_object(config_object)
    if overrides:
        app.config.update(overrides)

    # Register routes
    app.register_blueprint(health_bp)
    app.register_blueprint(sessions_bp)
    app.register_blueprint(bookings_bp)
    app.register_blueprint(venues_bp)
    app.register_blueprint(payments_bp)
    app.register_blueprint(webhook_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(reports_bp)

    # Database init
    init_db(app)

    # Migrations
    Migrate(app, db)

    # Admission control for mutating endpoints
    init_rate_limiter(app)

    # Seed default roles at startup (safe & idempotent)
    if app.config.get("SEED_ROLES_ON_STARTUP"):
        with app.app_context():
            seed_roles()

    @app.before_request
    def _load_user():
        load_current_user()

    register_error_handlers(app)

    @app.after_request
    def add_headers(resp):
        decision = getattr(g, "rate_limit", None)
        if decision is not None:
            for name, value in decision.headers().items():
                resp.headers[name] = value
        correlation_id = getattr(g, "correlation_id", None)
        if correlation_id:
            resp.headers["X-Request-ID"] = correlation_id

        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        resp.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        return resp

    register_cli(app)

    return app


def register_error_handlers(app):
    @app.errorhandler(AppError)
    def _app_error(exc):
        resp = jsonify(error=exc.message)
        if isinstance(exc, RateLimitedError):
            resp = jsonify(
                error=exc.message,
                message="You have exceeded the rate limit. Please try again later.",
                retryAfter=exc.retry_after,
            )
        return resp, exc.status_code

    @app.errorhandler(HTTPException)
    def _http_error(exc):
        return jsonify(error=exc.description), exc.code

    @app.errorhandler(Exception)
    def _unexpected(exc):
        db.session.rollback()
        app.logger.exception("unhandled error cid=%s", getattr(g, "correlation_id", None))
        return jsonify(error="Internal server error"), 500

#-------------------------
import click
from models.user import User, Role
from models.venue import Venue, OperatingHours
from models.court import Court

def register_cli(app):
    @app.cli.command("make-admin")
    @click.argument("email")
    def make_admin(email):
        """Promote a user to ADMIN by email (bootstrap)."""
        user = User.query.filter_by(email=email.strip().lower()).first()
        if not user:
            print("User not found")
            return

        admin_role = Role.query.filter_by(name=ADMIN).first()
        if not admin_role:
            admin_role = Role(name=ADMIN)
            db.session.add(admin_role)
            db.session.commit()

        if admin_role not in user.roles:
            user.roles.append(admin_role)
            db.session.commit()

        print(f"{user.email} promoted to ADMIN")

    @app.cli.command("seed-venue")
    @click.argument("name")
    @click.option("--courts", default=2, help="Number of courts to create")
    @click.option("--price", default=4000, help="Hourly price per court")
    def seed_venue(name, courts, price):
        """Create a bookable venue open 09:00-22:00 every day."""
        venue = Venue(name=name, address=name, is_bookable=True)
        for day in range(7):
            venue.operating_hours.append(OperatingHours(day_of_week=day, open_time="09:00", close_time="22:00"))
        db.session.add(venue)
        db.session.flush()
        for n in range(1, courts + 1):
            db.session.add(Court(venue_id=venue.id, name=f"Court {n}", sport_type="futsal",
                                 price_per_hour=price, price_per_30min=price // 2))
        db.session.commit()
        print(f"Venue {venue.id} created with {courts} courts")

#-------------------------




if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5002)
