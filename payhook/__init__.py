import os
import time
from flask import Flask

# Load .env only for local/dev. In prod, env vars come from the platform.
if os.getenv("APP_ENV", "development") != "production":
    from dotenv import load_dotenv
    load_dotenv(".env", override=False)


from .config import get_config
from .extensions import db, migrate, limiter
from .security import init_security
from .observability import init_logging, init_sentry
from .billing.policy import PaymentPolicy

def create_app():
    app = Flask(__name__)

    # ---- Rate Limiting storage configuration (Flask-Limiter global fallback) ----
    app_env = (os.getenv("APP_ENV", "development") or "development").lower()
    use_redis = app_env in ("staging", "production")
    storage_uri = os.environ.get("REDIS_URL") if use_redis else "memory://"
    if use_redis and not storage_uri:
        # Hard fail in stage/prod so we never silently run without RL storage
        raise RuntimeError("REDIS_URL is required in staging/production for rate limiting")
    app.config["RATELIMIT_STORAGE_URI"] = storage_uri

    # Config: clean, explicit, class-based
    app.config.from_object(get_config())

    # --- Required env validation for prod-like envs (staging/production) ---
    def _require(name: str):
        val = os.getenv(name) or app.config.get(name)
        if not val:
            raise RuntimeError(f"Missing required environment variable: {name}")
        return val

    if app_env in ("staging", "production"):
        _require("SECRET_KEY")
        _require("DATABASE_URL")
        _require("PAYSTACK_SECRET_KEY")

    # --- Observability & Security ---
    init_logging(app)
    init_sentry(app)
    if app_env in ("staging", "production"):
        init_security(app)

    # Init extensions
    db.init_app(app)
    migrate.init_app(app, db, directory="migrations")
    limiter.init_app(app)

    # State machine thresholds, one per process
    app.extensions["payment_policy"] = PaymentPolicy.from_config(app.config)

    # Webhooks: POST /webhook, GET /health
    from .blueprints.webhooks import bp as webhooks_bp
    app.register_blueprint(webhooks_bp)

    # Error handlers (JSON only; callers are machines)
    @app.errorhandler(404)
    def not_found(e):
        return {"error": "not_found", "code": 404}, 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "method_not_allowed", "code": 405}, 405

    @app.errorhandler(500)
    def server_error(e):
        return {"error": "internal_error", "code": 500}, 500

    # 429 Too Many Requests: Retry-After counts down to the end of the breached window
    @app.errorhandler(429)
    def too_many_requests(e):
        retry_after = getattr(e, "retry_after", None)
        current = limiter.current_limit
        if retry_after is None and current is not None:
            retry_after = max(1, int(current.reset_at - time.time()))
        headers = {}
        payload = {"error": "rate_limited", "code": 429}
        if isinstance(retry_after, (int, float)):
            headers["Retry-After"] = str(int(retry_after))
            payload["retry_after"] = int(retry_after)
        return (payload, 429, headers)

    # CLI commands (ops-grade utilities)
    from .cli import register_cli
    register_cli(app)

    if not app.config.get("PAYSTACK_SECRET_KEY"):
        app.logger.warning(
            "PAYSTACK_SECRET_KEY missing; webhook requests will be refused with 500"
        )

    return app
