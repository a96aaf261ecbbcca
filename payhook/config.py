import os

class BaseConfig:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-not-secure")

    # Database (env in prod; dev/test may use default)
    try:
        from dotenv import dotenv_values
        _ENV_FALLBACK = dotenv_values(".env")
    except Exception:
        _ENV_FALLBACK = {}
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL") or _ENV_FALLBACK.get("DATABASE_URL") or "sqlite:///:memory:"
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Logging / misc
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Flask-Limiter: soft default for every route; POST /webhook overrides it with its own limit
    RATELIMIT_DEFAULT = os.getenv("RATELIMIT_GLOBAL_DEFAULT", "1000 per hour")
    RATELIMIT_HEADERS_ENABLED = True
    RATELIMIT_STRATEGY = "fixed-window"

    # --- Paystack (webhooks) ---
    PAYSTACK_SECRET_KEY = os.getenv("PAYSTACK_SECRET_KEY")
    WEBHOOK_SIGNATURE_HEADER = os.getenv("WEBHOOK_SIGNATURE_HEADER", "X-Paystack-Signature")
    DEFAULT_CURRENCY = os.getenv("DEFAULT_CURRENCY", "ZAR")

    # Per-source fixed window for POST /webhook (first request opens the window)
    WEBHOOK_RATE_LIMIT_MAX = int(os.getenv("WEBHOOK_RATE_LIMIT_MAX", "100"))
    WEBHOOK_RATE_LIMIT_WINDOW = int(os.getenv("WEBHOOK_RATE_LIMIT_WINDOW", "60"))

    # --- Payment policy (state machine thresholds) ---
    GRACE_PERIOD_DAYS = int(os.getenv("GRACE_PERIOD_DAYS", "7"))
    RENEWAL_DAYS = int(os.getenv("RENEWAL_DAYS", "30"))
    MAX_FAILED_PAYMENTS = int(os.getenv("MAX_FAILED_PAYMENTS", "3"))

class DevelopmentConfig(BaseConfig):
    DEBUG = True
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "DEBUG")

class ProductionConfig(BaseConfig):
    DEBUG = False
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "WARNING")
    # REQUIRE env vars in production (fail fast if missing)
    SECRET_KEY = os.environ["SECRET_KEY"]
    SQLALCHEMY_DATABASE_URI = os.environ["DATABASE_URL"]

class TestingConfig(BaseConfig):
    TESTING = True
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = os.environ.get("TEST_DATABASE_URL", "sqlite:///:memory:")

_ENV_MAP = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
}

def get_config():
    env = os.environ.get("APP_ENV", "development").lower()
    return _ENV_MAP.get(env, DevelopmentConfig)
