from .health import health_bp
from .sessions import sessions_bp
from .bookings import bookings_bp
from .venues import venues_bp
from .payments import payments_bp
from .stripe_webhook import webhook_bp
from .admin import admin_bp
from .users import users_bp
from .reports import reports_bp
