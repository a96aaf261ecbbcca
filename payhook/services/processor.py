"""
Event dispatch: one handler per EventType, each following the same shape:

    validate payload -> resolve user -> ledger write -> state transition

Handlers only stage changes on db.session; the webhook route commits once so
the ledger row and the plan update land together or not at all.
"""
import json
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict

from flask import current_app

from payhook.billing.errors import MalformedEventError
from payhook.billing.events import EventType, WebhookEvent
from payhook.billing.policy import PaymentPolicy
from payhook.billing import state_machine
from payhook.models.payment_transaction import TXN_SUCCESS, TXN_FAILED
from payhook.utils.helpers import parse_iso_datetime
from .ledger import record_transaction
from .user_resolver import resolve_user, get_or_create_plan

RESULT_PROCESSED = "processed"
RESULT_DUPLICATE = "duplicate"
RESULT_IGNORED = "ignored"
RESULT_USER_NOT_FOUND = "user_not_found"


@dataclass(frozen=True)
class ProcessResult:
    status: str
    user_id: int | None = None
    reference: str | None = None
    transition: state_machine.Transition | None = None


@dataclass(frozen=True)
class ProcessContext:
    policy: PaymentPolicy
    now: datetime


Handler = Callable[[WebhookEvent, ProcessContext], ProcessResult]


def _log(level: str, payload: dict) -> None:
    getattr(current_app.logger, level)(json.dumps(payload, default=str))


def _require_reference(event: WebhookEvent) -> str:
    ref = event.reference
    if not ref:
        raise MalformedEventError(f"{event.event_type}: missing transaction reference")
    return ref


def _user_not_found(event: WebhookEvent, reference: str | None) -> ProcessResult:
    _log("warning", {
        "event": "webhook_user_not_found",
        "event_type": event.event_type,
        "reference": reference,
        "customer_email": event.customer_email,
        "customer_code": event.customer_code,
    })
    return ProcessResult(RESULT_USER_NOT_FOUND, reference=reference)


def _duplicate(event: WebhookEvent, user_id: int, reference: str) -> ProcessResult:
    _log("info", {
        "event": "webhook_duplicate",
        "event_type": event.event_type,
        "reference": reference,
        "user_id": user_id,
    })
    return ProcessResult(RESULT_DUPLICATE, user_id=user_id, reference=reference)


def _apply_payment(event: WebhookEvent, ctx: ProcessContext, reference: str, txn_status: str) -> ProcessResult:
    user_id = resolve_user(event)
    if user_id is None:
        return _user_not_found(event, reference)

    if not record_transaction(user_id, reference, event.data, txn_status):
        return _duplicate(event, user_id, reference)

    plan = get_or_create_plan(user_id)
    if txn_status == TXN_SUCCESS:
        transition = state_machine.apply_payment_success(plan, ctx.policy, ctx.now)
    else:
        transition = state_machine.apply_payment_failure(plan, ctx.policy, ctx.now)
    return ProcessResult(RESULT_PROCESSED, user_id=user_id, reference=reference, transition=transition)


def handle_charge_success(event: WebhookEvent, ctx: ProcessContext) -> ProcessResult:
    reference = _require_reference(event)
    return _apply_payment(event, ctx, reference, TXN_SUCCESS)


def handle_invoice(event: WebhookEvent, ctx: ProcessContext) -> ProcessResult:
    invoice_status = (event.data.get("status") or "").lower()
    if invoice_status not in (TXN_SUCCESS, TXN_FAILED):
        # e.g. 'pending' on invoice.create: nothing has been charged yet
        _log("info", {
            "event": "webhook_invoice_ignored",
            "event_type": event.event_type,
            "invoice_status": invoice_status or None,
            "invoice_code": event.data.get("invoice_code"),
        })
        return ProcessResult(RESULT_IGNORED, reference=event.reference)
    invoice_code = event.data.get("invoice_code")
    if not event.reference and isinstance(invoice_code, str) and invoice_code:
        # Failed invoices can arrive without a transaction; key on the invoice outcome
        reference = f"{invoice_code}:{invoice_status}"
    else:
        reference = _require_reference(event)
    return _apply_payment(event, ctx, reference, invoice_status)


def handle_subscription_create(event: WebhookEvent, ctx: ProcessContext) -> ProcessResult:
    try:
        next_payment_date = parse_iso_datetime(event.data.get("next_payment_date"))
    except ValueError as exc:
        raise MalformedEventError(f"subscription.create: bad next_payment_date: {exc}") from exc

    user_id = resolve_user(event)
    if user_id is None:
        return _user_not_found(event, event.subscription_code)

    plan = get_or_create_plan(user_id)
    transition = state_machine.apply_subscription_created(
        plan,
        subscription_reference=event.subscription_code,
        customer_reference=event.customer_code,
        next_payment_date=next_payment_date,
    )
    return ProcessResult(RESULT_PROCESSED, user_id=user_id, reference=event.subscription_code, transition=transition)


def handle_subscription_disable(event: WebhookEvent, ctx: ProcessContext) -> ProcessResult:
    user_id = resolve_user(event)
    if user_id is None:
        return _user_not_found(event, event.subscription_code)

    plan = get_or_create_plan(user_id)
    transition = state_machine.apply_subscription_disabled(plan, ctx.now)
    return ProcessResult(RESULT_PROCESSED, user_id=user_id, reference=event.subscription_code, transition=transition)


HANDLERS: Dict[EventType, Handler] = {
    EventType.CHARGE_SUCCESS: handle_charge_success,
    EventType.SUBSCRIPTION_CREATE: handle_subscription_create,
    EventType.INVOICE_CREATE: handle_invoice,
    EventType.INVOICE_UPDATE: handle_invoice,
    EventType.SUBSCRIPTION_DISABLE: handle_subscription_disable,
    EventType.SUBSCRIPTION_NOT_RENEW: handle_subscription_disable,
}

_missing = set(EventType) - set(HANDLERS)
if _missing:
    raise RuntimeError(f"No webhook handler for: {sorted(m.value for m in _missing)}")


def process_event(event: WebhookEvent, *, policy: PaymentPolicy, now: datetime) -> ProcessResult:
    kind = event.kind
    if kind is None:
        _log("info", {"event": "webhook_unhandled_type", "event_type": event.event_type})
        return ProcessResult(RESULT_IGNORED)
    return HANDLERS[kind](event, ProcessContext(policy=policy, now=now))
