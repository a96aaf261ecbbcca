from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Mapping


@dataclass(frozen=True)
class PaymentPolicy:
    """Thresholds for the payment state machine."""

    grace_period_days: int = 7
    renewal_days: int = 30
    max_failed_payments: int = 3

    def __post_init__(self):
        if self.grace_period_days < 0 or self.renewal_days < 0:
            raise ValueError("grace_period_days and renewal_days must be >= 0")
        if self.max_failed_payments < 1:
            raise ValueError("max_failed_payments must be >= 1")

    @property
    def grace_period(self) -> timedelta:
        return timedelta(days=self.grace_period_days)

    @property
    def renewal_period(self) -> timedelta:
        return timedelta(days=self.renewal_days)

    @classmethod
    def from_config(cls, cfg: Mapping[str, Any]) -> "PaymentPolicy":
        return cls(
            grace_period_days=int(cfg.get("GRACE_PERIOD_DAYS", cls.grace_period_days)),
            renewal_days=int(cfg.get("RENEWAL_DAYS", cls.renewal_days)),
            max_failed_payments=int(cfg.get("MAX_FAILED_PAYMENTS", cls.max_failed_payments)),
        )
