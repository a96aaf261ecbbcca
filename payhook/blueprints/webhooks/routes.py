import json
from flask import request, jsonify, current_app
from flask_limiter.util import get_remote_address
from sqlalchemy.exc import SQLAlchemyError

from . import bp
from payhook.extensions import db, limiter
from payhook.billing.errors import MalformedEventError
from payhook.billing.events import parse_event
from payhook.security.signatures import verify_signature
from payhook.services.processor import process_event
from payhook.utils.helpers import utcnow


def _log(level: str, payload: dict) -> None:
    getattr(current_app.logger, level)(json.dumps(payload, default=str))


def _webhook_rate_limit() -> str:
    cfg = current_app.config
    return f"{cfg['WEBHOOK_RATE_LIMIT_MAX']} per {cfg['WEBHOOK_RATE_LIMIT_WINDOW']} second"


def _log_rate_limited(request_limit):
    _log("warning", {
        "event": "webhook_rate_limited",
        "source": get_remote_address(),
        "limit": str(request_limit.limit),
        "reset_at": request_limit.reset_at,
    })
    return None


# ----- Paystack Webhook (payments + subscription lifecycle) -----
@bp.post("/webhook")
@limiter.limit(_webhook_rate_limit, key_func=get_remote_address, on_breach=_log_rate_limited)  # per-IP; overrides RATELIMIT_DEFAULT
def paystack_webhook():
    """
    Paystack → /webhook
    Rate-limited by source before anything else runs, then the HMAC over the raw
    body is verified and the event applied. 2xx tells Paystack to stop retrying;
    only 500 asks for redelivery.
    """
    # 1) Verify signature on the exact bytes received
    secret = current_app.config.get("PAYSTACK_SECRET_KEY")
    if not secret:
        _log("error", {"event": "webhook_not_configured", "missing": "PAYSTACK_SECRET_KEY"})
        return jsonify({"error": "webhook_not_configured"}), 500

    raw_bytes = request.get_data(cache=True, as_text=False) or b""
    header = current_app.config.get("WEBHOOK_SIGNATURE_HEADER", "X-Paystack-Signature")
    if not verify_signature(raw_bytes, request.headers.get(header), secret):
        _log("warning", {"event": "webhook_invalid_signature", "source": get_remote_address(), "bytes": len(raw_bytes)})
        return jsonify({"error": "invalid_signature"}), 401

    # 2) Parse + dispatch; one commit for ledger row and plan update
    event = None
    try:
        event = parse_event(raw_bytes)
        result = process_event(
            event,
            policy=current_app.extensions["payment_policy"],
            now=utcnow(),
        )
        db.session.commit()
    except MalformedEventError as exc:
        db.session.rollback()
        _log("warning", {
            "event": "webhook_malformed",
            "event_type": getattr(event, "event_type", None),
            "reference": getattr(event, "reference", None),
            "reason": str(exc),
        })
        return jsonify({"error": exc.code}), exc.status_code
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception(json.dumps({
            "event": "webhook_store_error",
            "event_type": getattr(event, "event_type", None),
            "reference": getattr(event, "reference", None),
        }))
        return jsonify({"error": "processing_failed"}), 500
    except Exception:
        db.session.rollback()
        current_app.logger.exception(json.dumps({
            "event": "webhook_handler_error",
            "event_type": getattr(event, "event_type", None),
            "reference": getattr(event, "reference", None),
        }))
        return jsonify({"error": "processing_failed"}), 500

    transition = result.transition
    _log("info", {
        "event": "webhook_processed",
        "event_type": event.event_type,
        "reference": result.reference,
        "user_id": result.user_id,
        "result": result.status,
        "from_status": transition.from_status if transition else None,
        "to_status": transition.to_status if transition else None,
    })
    return jsonify({"ok": True, "status": result.status}), 200


# Health check for webhook monitoring
@limiter.exempt
@bp.get("/health")
def health():
    return jsonify({
        "status": "healthy",
        "timestamp": utcnow().isoformat(),
        "webhook_endpoint": "/webhook",
    }), 200
