import os
import logging
from logging.config import dictConfig

import sentry_sdk
from pythonjsonlogger import jsonlogger
from sentry_sdk.integrations.flask import FlaskIntegration

SERVICE_NAME = "payhook"

# Request headers that must not reach Sentry
_SCRUBBED_HEADERS = {"x-paystack-signature", "authorization", "cookie"}


class _ServiceFilter(logging.Filter):
    def __init__(self, app_env: str):
        super().__init__()
        self.app_env = app_env

    def filter(self, record):
        record.service = SERVICE_NAME
        record.app_env = self.app_env
        return True


def _app_env() -> str:
    return (os.getenv("APP_ENV", "development") or "development").lower()


def init_logging(app):
    """JSON lines to stdout in staging/prod; Flask's console handler elsewhere."""
    app_env = _app_env()
    level = app.config.get("LOG_LEVEL", "INFO")
    if app_env not in ("staging", "production"):
        app.logger.setLevel(level)
        return

    dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {"service": {"()": _ServiceFilter, "app_env": app_env}},
        "formatters": {
            "json": {
                "()": jsonlogger.JsonFormatter,
                "fmt": "%(asctime)s %(levelname)s %(name)s %(service)s %(app_env)s %(message)s",
                "rename_fields": {"levelname": "level", "asctime": "ts"},
            },
        },
        "handlers": {
            "stdout": {"class": "logging.StreamHandler", "formatter": "json", "filters": ["service"]},
        },
        "root": {"level": level, "handlers": ["stdout"]},
    })


def _scrub_event(event, hint):
    headers = (event.get("request") or {}).get("headers")
    if isinstance(headers, dict):
        for name in list(headers):
            if name.lower() in _SCRUBBED_HEADERS:
                headers[name] = "[scrubbed]"
    return event


def init_sentry(app):
    """Report errors to Sentry when SENTRY_DSN is set; no-op otherwise."""
    dsn = os.getenv("SENTRY_DSN")
    if not dsn:
        return
    sentry_sdk.init(
        dsn=dsn,
        integrations=[FlaskIntegration()],
        traces_sample_rate=float(os.getenv("SENTRY_TRACES", "0.0")),
        environment=_app_env(),
        send_default_pii=False,
        before_send=_scrub_event,
    )
    app.logger.info("sentry enabled for %s", _app_env())
