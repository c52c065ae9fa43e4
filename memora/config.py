import os


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
    APP_BASE_URL = os.environ.get("APP_BASE_URL", "http://localhost:3000")

    # --- Payouts ---
    # Percentage of each fulfillment's gross kept by the platform.
    PLATFORM_FEE_PERCENTAGE = float(os.environ.get("PLATFORM_FEE_PERCENTAGE", 5.0))
    AMAZON_AFFILIATE_TAG = os.environ.get("AMAZON_AFFILIATE_TAG")

    # --- Email (Resend) ---
    RESEND_API_KEY = os.environ.get("RESEND_API_KEY")
    RESEND_FROM_EMAIL = os.environ.get("RESEND_FROM_EMAIL", "Memora <noreply@mymemoraapp.com>")

    # --- SMS (Twilio) ---
    TWILIO_ACCOUNT_SID = os.environ.get("TWILIO_ACCOUNT_SID")
    TWILIO_AUTH_TOKEN = os.environ.get("TWILIO_AUTH_TOKEN")
    TWILIO_PHONE_NUMBER = os.environ.get("TWILIO_PHONE_NUMBER")

    # --- Google Places ---
    GOOGLE_PLACES_API_KEY = os.environ.get("GOOGLE_PLACES_API_KEY")

    # --- Supabase ---
    SUPABASE_URL = os.environ.get("SUPABASE_URL")                # e.g. https://xyz.supabase.co
    SUPABASE_SERVICE_KEY = os.environ.get("SUPABASE_SERVICE_KEY") # service_role key for auth admin + storage
    SUPABASE_PHOTO_BUCKET = os.environ.get("SUPABASE_PHOTO_BUCKET", "profile-photos")

    # --- SQLAlchemy ---
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_recycle": 300,
    }

    # --- Uploads ---
    MAX_CONTENT_LENGTH = 5 * 1024 * 1024

    @staticmethod
    def validate():
        """Fail fast if required env vars are missing."""
        required = [
            "SECRET_KEY",
            "DATABASE_URL",
            "SUPABASE_URL",
            "SUPABASE_SERVICE_KEY",
            "STRIPE_SECRET_KEY",
            "STRIPE_WEBHOOK_SECRET",
            "APP_BASE_URL",
        ]
        missing = [v for v in required if not os.environ.get(v)]
        if missing:
            raise RuntimeError(
                f"Missing required environment variables: {', '.join(missing)}"
            )


class DevConfig(Config):
    """Local development."""

    DEBUG = True


class TestConfig(Config):
    """Testing - in-memory SQLite, every external key faked."""

    TESTING = True
    DEBUG = True
    SECRET_KEY = "test-secret-key-not-for-production"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    STRIPE_SECRET_KEY = "sk_test_fake"
    STRIPE_WEBHOOK_SECRET = "whsec_test_fake"
    APP_BASE_URL = "http://localhost:3000"
    SUPABASE_URL = "https://test.supabase.co"
    SUPABASE_SERVICE_KEY = "service_test_fake"
    RESEND_API_KEY = "re_test_fake"
    TWILIO_ACCOUNT_SID = "AC_test_fake"
    TWILIO_AUTH_TOKEN = "twilio_test_fake"
    TWILIO_PHONE_NUMBER = "+15555550100"
    GOOGLE_PLACES_API_KEY = "places_test_fake"
    AMAZON_AFFILIATE_TAG = "memora-20"
    PLATFORM_FEE_PERCENTAGE = 5.0
    RATELIMIT_ENABLED = False  # disable rate limiting in tests

    @staticmethod
    def validate():
        """Skip validation in test mode - everything is hardcoded."""
        pass


class ProdConfig(Config):
    """Production."""

    DEBUG = False


config_by_name = {
    "development": DevConfig,
    "production": ProdConfig,
    "testing": TestConfig,
}
