import os


def _env_flag(name, default=""):
    return os.environ.get(name, default).lower() in ("1", "true", "yes")


class Config:
    """Base configuration. Shared across all environments."""

    # --- Required ---
    SECRET_KEY = os.environ.get("SECRET_KEY")

    # Handle DATABASE_URL: some PaaS providers (Railway, Heroku) use
    # "postgres://" which SQLAlchemy 1.4+ doesn't accept.
    _db_url = os.environ.get("DATABASE_URL", "")
    if _db_url.startswith("postgres://"):
        _db_url = _db_url.replace("postgres://", "postgresql://", 1)
    SQLALCHEMY_DATABASE_URI = _db_url or None

    STRIPE_SECRET_KEY = os.environ.get("STRIPE_SECRET_KEY")
    STRIPE_WEBHOOK_SECRET = os.environ.get("STRIPE_WEBHOOK_SECRET")
    APP_BASE_URL = os.environ.get("APP_BASE_URL", "http://localhost:5000")

    # --- Reconciliation ---
    PLATFORM_FEE_PERCENT = float(os.environ.get("PLATFORM_FEE_PERCENT", 25))
    DEFAULT_CURRENCY = os.environ.get("DEFAULT_CURRENCY", "usd")
    BOOKING_NUMBER_PREFIX = os.environ.get("BOOKING_NUMBER_PREFIX", "TH")
    CHECKOUT_SNAPSHOT_TTL_SECONDS = int(
        os.environ.get("CHECKOUT_SNAPSHOT_TTL_SECONDS", 2 * 60 * 60)
    )
    NOTIFICATION_MARKER_TTL_HOURS = int(
        os.environ.get("NOTIFICATION_MARKER_TTL_HOURS", 24)
    )
    # Trailing windows for the "most recent booking" heuristics.
    PROVIDER_RECENT_WINDOW_MINUTES = int(
        os.environ.get("PROVIDER_RECENT_WINDOW_MINUTES", 10)
    )
    GUARDIAN_RECENT_WINDOW_MINUTES = int(
        os.environ.get("GUARDIAN_RECENT_WINDOW_MINUTES", 5)
    )
    PACKAGE_CREDIT_EXPIRY_DAYS = int(
        os.environ.get("PACKAGE_CREDIT_EXPIRY_DAYS", 365)
    )
    # Look the transaction up with Stripe before recovering a booking.
    VERIFY_PAYMENT_WITH_GATEWAY = _env_flag("VERIFY_PAYMENT_WITH_GATEWAY", "true")

    # --- Email (SMTP) ---
    MAIL_SMTP_HOST = os.environ.get("MAIL_SMTP_HOST", "smtp.gmail.com")
    MAIL_SMTP_PORT = int(os.environ.get("MAIL_SMTP_PORT", 587))
    MAIL_USERNAME = os.environ.get("MAIL_USERNAME")          # e.g. bookings@trainhub.app
    MAIL_PASSWORD = os.environ.get("MAIL_PASSWORD")
    MAIL_FROM_NAME = os.environ.get("MAIL_FROM_NAME", "TrainHub Bookings")
    MAIL_FROM_ADDRESS = os.environ.get("MAIL_FROM_ADDRESS")  # defaults to MAIL_USERNAME
    MAIL_REPLY_TO = os.environ.get("MAIL_REPLY_TO")

    # --- SQLAlchemy ---
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_recycle": 300,
    }

    # --- Session / cookies ---
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    REMEMBER_COOKIE_HTTPONLY = True
    REMEMBER_COOKIE_SAMESITE = "Lax"
    LAST_BOOKING_COOKIE_MAX_AGE = 60 * 60  # seconds

    # --- WTF / CSRF ---
    WTF_CSRF_ENABLED = True

    @staticmethod
    def validate():
        """Fail fast if required env vars are missing or out of range."""
        required = [
            "SECRET_KEY",
            "DATABASE_URL",
            "STRIPE_SECRET_KEY",
            "STRIPE_WEBHOOK_SECRET",
            "APP_BASE_URL",
        ]
        missing = [v for v in required if not os.environ.get(v)]
        if missing:
            raise RuntimeError(
                f"Missing required environment variables: {', '.join(missing)}"
            )
        if int(os.environ.get("NOTIFICATION_MARKER_TTL_HOURS", 24)) < 24:
            raise RuntimeError("NOTIFICATION_MARKER_TTL_HOURS must be at least 24")


class DevConfig(Config):
    """Local development."""

    DEBUG = True
    SESSION_COOKIE_SECURE = False
    REMEMBER_COOKIE_SECURE = False


class TestConfig(Config):
    """Testing: in-memory SQLite, CSRF disabled, no live Stripe calls."""

    TESTING = True
    DEBUG = True
    SECRET_KEY = "test-secret-key-not-for-production"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    STRIPE_SECRET_KEY = "sk_test_fake"
    STRIPE_WEBHOOK_SECRET = "whsec_test_fake"
    APP_BASE_URL = "http://localhost:5000"
    PLATFORM_FEE_PERCENT = 25.0
    VERIFY_PAYMENT_WITH_GATEWAY = True
    MAIL_USERNAME = "bookings@trainhub.test"
    MAIL_PASSWORD = "not-a-real-password"
    WTF_CSRF_ENABLED = False  # disable CSRF for test forms
    RATELIMIT_ENABLED = False  # disable rate limiting in tests
    SESSION_COOKIE_SECURE = False
    REMEMBER_COOKIE_SECURE = False
    SERVER_NAME = "localhost"

    @staticmethod
    def validate():
        """Skip validation in test mode: everything is hardcoded."""
        pass


class ProdConfig(Config):
    """Production."""

    DEBUG = False
    SESSION_COOKIE_SECURE = True
    REMEMBER_COOKIE_SECURE = True


config_by_name = {
    "development": DevConfig,
    "production": ProdConfig,
    "testing": TestConfig,
}
