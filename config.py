import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))

class Config:
    # Secrets
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-change-me")

    # SQLite database file stored next to the app as courtbook.db
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "courtbook.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Session cookie name for our auth token
    AUTH_COOKIE_NAME = "courtbook_session"

    # 8 hours session lifetime
    SESSION_LIFETIME_SECONDS = 8 * 60 * 60

    # Idle timeout: 20 minutes
    IDLE_TIMEOUT_SECONDS = 20 * 60

    # Session/cookie security defaults
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    SESSION_COOKIE_SECURE = os.getenv("SESSION_COOKIE_SECURE", "false").lower() == "true"

    BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))
    MIN_PASSWORD_LENGTH = 8

    # Venue clock: IANA zone name, resolved through pytz
    VENUE_TIMEZONE = os.getenv("VENUE_TIMEZONE", "America/Mexico_City")

    # Slot rules used when a court type has no settings row
    MIN_LEAD_HOURS = int(os.getenv("MIN_LEAD_HOURS", "2"))
    DEFAULT_OPERATING_START = 8     # 08:00 inclusive
    DEFAULT_OPERATING_END = 22      # 22:00 exclusive

    # Booking rules used when a court type has no rule row
    DEFAULT_MAX_ACTIVE_BOOKINGS = 2
    DEFAULT_MAX_DAYS_AHEAD = 7

    # Unpaid holds
    PENDING_HOLD_MINUTES = int(os.getenv("PENDING_HOLD_MINUTES", "10"))
    HOLD_DISCARD_WORKERS = 2

    # Stripe
    STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")
    STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET")
    STRIPE_SUCCESS_URL = os.getenv("STRIPE_SUCCESS_URL")
    STRIPE_CANCEL_URL = os.getenv("STRIPE_CANCEL_URL")
    PAYMENT_CURRENCY = os.getenv("PAYMENT_CURRENCY", "MXN")

    # Logging
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Basic app settings
    DEBUG = False
