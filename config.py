import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))

class Config:
    # SQLite file for local runs; production points DATABASE_URL at Postgres
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "sportsmeet.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Access tokens are issued by the identity provider (HS256 shared secret)
    IDP_JWT_SECRET = os.getenv("IDP_JWT_SECRET")
    IDP_JWT_ALGORITHM = os.getenv("IDP_JWT_ALGORITHM", "HS256")
    IDP_JWT_AUDIENCE = os.getenv("IDP_JWT_AUDIENCE", "authenticated")

    # Seed default roles at startup (needs migrated tables)
    SEED_ROLES_ON_STARTUP = True

    # Serializable transactions: reruns after a serialization failure
    TX_MAX_RETRIES = int(os.getenv("TX_MAX_RETRIES", "3"))

    # Per-endpoint sliding windows: name -> (max requests, window seconds) per client IP
    RATE_LIMITS = {
        "join": (10, 10),
        "attendance": (20, 60),
        "waitlist": (10, 60),
        "booking": (10, 60),
        "favorite": (30, 60),
        "report": (5, 60),
    }

    # Commission is deducted from the venue payout, never added to the customer price
    DEFAULT_COMMISSION_RATE = float(os.getenv("DEFAULT_COMMISSION_RATE", "0.10"))

    # Cancellation policy: (min hours before start, refund %), anything shorter refunds 0%
    REFUND_TIERS = ((24, 100), (12, 50))

    # Booking window
    MIN_BOOKING_HOURS_AHEAD = 2
    MAX_BOOKING_DAYS_AHEAD = 30
    MIN_BOOKING_MINUTES = 30
    MAX_BOOKING_MINUTES = 240

    # Availability grid
    AVAILABILITY_SLOT_MINUTES = 60

    # Payments
    STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")
    STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET")
    STRIPE_SUCCESS_URL = os.getenv("STRIPE_SUCCESS_URL")
    STRIPE_CANCEL_URL = os.getenv("STRIPE_CANCEL_URL")
    BOOKING_CURRENCY = os.getenv("BOOKING_CURRENCY", "jpy")  # zero-decimal currency

    # Basic app settings
    DEBUG = False


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SQLALCHEMY_ENGINE_OPTIONS = {"connect_args": {"timeout": 30}}
    IDP_JWT_SECRET = "test-secret-for-signing-access-tokens-hs256"
    IDP_JWT_AUDIENCE = "authenticated"
    SEED_ROLES_ON_STARTUP = False
    STRIPE_SECRET_KEY = None
    STRIPE_SUCCESS_URL = None
    STRIPE_CANCEL_URL = None
    STRIPE_WEBHOOK_SECRET = "whsec_test"
