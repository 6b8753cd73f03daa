import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


class Config:
    # Secrets
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-change-me")

    # SQLite database file stored next to the app as cricketcoach.db
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "cricketcoach.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Create tables on startup instead of running migrations (tests, local demos)
    AUTO_CREATE_TABLES = _env_bool("AUTO_CREATE_TABLES", "false")

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Session cookie name for our auth token
    AUTH_COOKIE_NAME = "cricketcoach_session"

    # 8 hours session lifetime
    SESSION_LIFETIME_SECONDS = 8 * 60 * 60

    # Idle timeout: 20 minutes
    IDLE_TIMEOUT_SECONDS = 20 * 60

    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    SESSION_COOKIE_SECURE = False  # set True when using HTTPS

    BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))

    # Stripe
    STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")
    STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET")
    PAYMENT_CURRENCY = os.getenv("PAYMENT_CURRENCY", "cad")
    GATEWAY_MAX_RETRIES = int(os.getenv("GATEWAY_MAX_RETRIES", "3"))

    # Booking policy
    DEFAULT_BOOKING_CUTOFF_HOURS = int(os.getenv("DEFAULT_BOOKING_CUTOFF_HOURS", "12"))
    REFUND_ON_CANCEL = _env_bool("REFUND_ON_CANCEL", "true")

    # Recurring schedule materialisation horizon
    SLOT_GENERATION_WEEKS = int(os.getenv("SLOT_GENERATION_WEEKS", "4"))

    # Longest window a single availability query may ask for
    MAX_AVAILABILITY_DAYS = int(os.getenv("MAX_AVAILABILITY_DAYS", "31"))

    DEBUG = False
