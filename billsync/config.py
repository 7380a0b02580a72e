import os


def _db_url():
    # Some PaaS providers (Railway, Heroku) use "postgres://" which
    # SQLAlchemy 1.4+ doesn't accept.
    url = os.environ.get("DATABASE_URL", "")
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    return url or None


def _engine_options(db_url):
    """Bounded waits on every database call.

    pool_timeout caps how long a request waits for a connection;
    on PostgreSQL a statement_timeout caps each query.
    """
    options = {
        "pool_pre_ping": True,
        "pool_recycle": 300,
    }
    if db_url and db_url.startswith("postgresql"):
        statement_timeout = int(os.environ.get("DB_STATEMENT_TIMEOUT_MS", 5000))
        options["pool_timeout"] = 10
        options["connect_args"] = {
            "connect_timeout": 10,
            "options": f"-c statement_timeout={statement_timeout}",
        }
    return options


class Config:
    """Base configuration. Shared across all environments.

    Values are read once at process start; nothing is hot-reloaded.
    """

    # --- Required ---
    SECRET_KEY = os.environ.get("SECRET_KEY")
    SQLALCHEMY_DATABASE_URI = _db_url()

    # --- Stripe ---
    STRIPE_SECRET_KEY = os.environ.get("STRIPE_SECRET_KEY")
    STRIPE_WEBHOOK_SECRET = os.environ.get("STRIPE_WEBHOOK_SECRET")
    # Replay window for webhook signatures, in seconds.
    STRIPE_WEBHOOK_TOLERANCE = int(os.environ.get("STRIPE_WEBHOOK_TOLERANCE", 300))
    # Per-request timeout for Stripe API calls, in seconds.
    STRIPE_API_TIMEOUT = float(os.environ.get("STRIPE_API_TIMEOUT", 10))

    # --- Account creation trigger ---
    ACCOUNT_HOOK_TOKEN = os.environ.get("ACCOUNT_HOOK_TOKEN")

    # --- Caller identity (bearer tokens issued by the identity system) ---
    IDENTITY_TOKEN_MAX_AGE = int(os.environ.get("IDENTITY_TOKEN_MAX_AGE", 3600))

    BILLING_PORTAL_RETURN_URL = os.environ.get(
        "BILLING_PORTAL_RETURN_URL", "http://localhost:5000/account"
    )

    # --- SQLAlchemy ---
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = _engine_options(SQLALCHEMY_DATABASE_URI)

    @staticmethod
    def validate():
        """Fail fast if required env vars are missing."""
        required = [
            "SECRET_KEY",
            "DATABASE_URL",
            "STRIPE_SECRET_KEY",
            "STRIPE_WEBHOOK_SECRET",
            "ACCOUNT_HOOK_TOKEN",
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
    """Testing: in-memory SQLite, rate limits off."""

    TESTING = True
    DEBUG = True
    SECRET_KEY = "test-secret-key-not-for-production"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    STRIPE_SECRET_KEY = "sk_test_fake"
    STRIPE_WEBHOOK_SECRET = "whsec_test_fake"
    STRIPE_WEBHOOK_TOLERANCE = 300
    STRIPE_API_TIMEOUT = 5
    ACCOUNT_HOOK_TOKEN = "hook-token-test"
    IDENTITY_TOKEN_MAX_AGE = 3600
    BILLING_PORTAL_RETURN_URL = "http://localhost:5000/account"
    RATELIMIT_ENABLED = False  # disable rate limiting in tests
    SERVER_NAME = "localhost"

    @staticmethod
    def validate():
        """Skip validation in test mode; everything is hardcoded."""
        pass


class ProdConfig(Config):
    """Production."""

    DEBUG = False


config_by_name = {
    "development": DevConfig,
    "production": ProdConfig,
    "testing": TestConfig,
}
