import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .errors import MalformedEventError


class EventType(str, Enum):
    """Paystack events this processor acts on. Anything else is acknowledged and ignored."""

    CHARGE_SUCCESS = "charge.success"
    SUBSCRIPTION_CREATE = "subscription.create"
    INVOICE_CREATE = "invoice.create"
    INVOICE_UPDATE = "invoice.update"
    SUBSCRIPTION_DISABLE = "subscription.disable"
    SUBSCRIPTION_NOT_RENEW = "subscription.not_renew"


_BY_VALUE = {member.value: member for member in EventType}


def _obj(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


@dataclass
class WebhookEvent:
    event_type: str
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def kind(self) -> EventType | None:
        return _BY_VALUE.get(self.event_type)

    @property
    def reference(self) -> str | None:
        """Gateway transaction reference; invoices nest it under 'transaction'."""
        ref = self.data.get("reference")
        if not ref:
            ref = _obj(self.data.get("transaction")).get("reference")
        return str(ref) if ref else None

    @property
    def customer_email(self) -> str | None:
        email = _obj(self.data.get("customer")).get("email")
        return email.strip().lower() if isinstance(email, str) and email.strip() else None

    @property
    def customer_code(self) -> str | None:
        code = self.data.get("customer_code") or _obj(self.data.get("customer")).get("customer_code")
        return str(code) if code else None

    @property
    def subscription_code(self) -> str | None:
        code = self.data.get("subscription_code") or _obj(self.data.get("subscription")).get("subscription_code")
        return str(code) if code else None


def parse_event(raw_body: bytes) -> WebhookEvent:
    """Decode the {event, data} envelope from the verified request body."""
    try:
        payload = json.loads(raw_body.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as exc:
        raise MalformedEventError(f"body is not JSON: {exc}") from exc

    if not isinstance(payload, dict):
        raise MalformedEventError("envelope must be a JSON object")

    event_type = payload.get("event")
    if not isinstance(event_type, str) or not event_type.strip():
        raise MalformedEventError("missing 'event'")

    data = payload.get("data")
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise MalformedEventError("'data' must be an object")

    return WebhookEvent(event_type=event_type.strip(), data=data)
