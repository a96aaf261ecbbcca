from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

def as_utc(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; everything we store is UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)

def parse_iso_datetime(value: Any) -> datetime | None:
    """
    Parse a gateway timestamp like '2026-11-16T00:00:00.000Z'.
    Returns None for None/empty; raises ValueError when present but unparsable.
    """
    if value in (None, ""):
        return None
    if not isinstance(value, str):
        raise ValueError(f"not a timestamp: {value!r}")
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return as_utc(datetime.fromisoformat(text))

def minor_to_major(value: Any) -> Decimal:
    """Paystack amounts are in the minor unit (kobo/cents)."""
    try:
        return (Decimal(str(value)) / 100).quantize(Decimal("0.01"))
    except (InvalidOperation, TypeError, ValueError):
        return Decimal("0.00")
