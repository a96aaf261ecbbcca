import json
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict

from flask import current_app
from sqlalchemy.exc import IntegrityError

from payhook.extensions import db
from payhook.models import PaymentTransaction
from payhook.models.payment_transaction import TXN_FAILED, TXN_SUCCESS
from payhook.models.user_plan import STATUS_SUSPENDED
from payhook.utils.helpers import minor_to_major


def is_recorded(reference: str) -> bool:
    return db.session.query(
        db.session.query(PaymentTransaction.id).filter_by(transaction_reference=reference).exists()
    ).scalar()


def _transaction_from_payload(user_id: int, reference: str, data: Dict[str, Any], status: str) -> PaymentTransaction:
    authorization = data.get("authorization") if isinstance(data.get("authorization"), dict) else {}
    subscription = data.get("subscription") if isinstance(data.get("subscription"), dict) else {}
    failure_reason = data.get("gateway_response") if status == TXN_FAILED else None
    if status == TXN_FAILED and not failure_reason:
        failure_reason = "payment failed"

    return PaymentTransaction(
        user_id=user_id,
        transaction_reference=reference,
        amount=minor_to_major(data.get("amount", 0)),
        currency=(data.get("currency") or current_app.config.get("DEFAULT_CURRENCY", "ZAR"))[:3],
        status=status,
        payment_method="paystack",
        gateway_reference=str(data.get("id")) if data.get("id") is not None else reference,
        authorization_token=authorization.get("authorization_code"),
        subscription_reference=data.get("subscription_code") or subscription.get("subscription_code"),
        failure_reason=(str(failure_reason)[:255] if failure_reason else None),
        meta={
            "channel": data.get("channel"),
            "ip_address": data.get("ip_address"),
            "fees": data.get("fees"),
            "gateway_response": data.get("gateway_response"),
            "invoice_code": data.get("invoice_code"),
        },
    )


def record_restoration(user_id: int, now: datetime) -> PaymentTransaction:
    """Zero-amount audit row for a manual restore. Staged only; caller commits."""
    txn = PaymentTransaction(
        user_id=user_id,
        transaction_reference=f"restore_{int(now.timestamp())}_{user_id}",
        amount=Decimal("0.00"),
        currency=current_app.config.get("DEFAULT_CURRENCY", "ZAR"),
        status=TXN_SUCCESS,
        payment_method="manual",
        meta={
            "type": "account_restoration",
            "restored_from": STATUS_SUSPENDED,
            "restoration_date": now.isoformat(),
        },
    )
    db.session.add(txn)
    db.session.flush()
    return txn


def record_transaction(user_id: int, reference: str, data: Dict[str, Any], status: str) -> bool:
    """
    Insert-if-absent keyed by the gateway reference.

    Returns True when this call wrote the row, False when the reference was
    already recorded (including losing a race to a concurrent duplicate).
    Other store errors propagate; nothing is committed here.
    """
    if is_recorded(reference):
        return False

    txn = _transaction_from_payload(user_id, reference, data, status)
    try:
        db.session.add(txn)
        db.session.flush()
    except IntegrityError:
        # Handlers write nothing before the ledger row.
        db.session.rollback()
        if not is_recorded(reference):
            raise
        current_app.logger.info(json.dumps({
            "event": "ledger_duplicate_race",
            "reference": reference,
            "user_id": user_id,
        }))
        return False
    return True
