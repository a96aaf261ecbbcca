"""
Payment status transitions for a UserPlan.

Functions mutate the plan in place and return the Transition taken; they never
touch the session. Callers persist (and commit) only after the ledger write for
the triggering transaction has succeeded.

Invariant kept by every function: grace_period_end is set iff the plan is in
grace_period.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta

from payhook.models.user_plan import (
    UserPlan,
    PLAN_PREMIUM,
    STATUS_ACTIVE,
    STATUS_GRACE_PERIOD,
    STATUS_SUSPENDED,
    STATUS_CANCELLED,
)
from payhook.utils.helpers import as_utc
from .policy import PaymentPolicy


@dataclass(frozen=True)
class Transition:
    from_status: str
    to_status: str

    @property
    def changed(self) -> bool:
        return self.from_status != self.to_status


class InvalidTransition(Exception):
    pass


def _status(plan: UserPlan) -> str:
    return plan.payment_status or STATUS_ACTIVE


def apply_payment_success(plan: UserPlan, policy: PaymentPolicy, now: datetime) -> Transition:
    before = _status(plan)
    plan.payment_status = STATUS_ACTIVE
    plan.failed_payment_count = 0
    plan.grace_period_end = None
    plan.cancelled_at = None
    plan.last_payment_date = now
    plan.next_payment_date = now + policy.renewal_period
    return Transition(before, STATUS_ACTIVE)


def apply_payment_failure(plan: UserPlan, policy: PaymentPolicy, now: datetime) -> Transition:
    before = _status(plan)
    if before == STATUS_CANCELLED:
        # Cancelled subscriptions only record the attempt.
        return Transition(before, before)

    if before == STATUS_ACTIVE:
        # Strikes restart here; resubscribing keeps the old count.
        count = 1
    else:
        count = (plan.failed_payment_count or 0) + 1
    plan.failed_payment_count = count

    if before == STATUS_SUSPENDED or count >= policy.max_failed_payments:
        plan.payment_status = STATUS_SUSPENDED
        plan.grace_period_end = None
    elif before == STATUS_ACTIVE:
        plan.payment_status = STATUS_GRACE_PERIOD
        plan.grace_period_end = now + policy.grace_period
    # already in grace: keep the original deadline

    return Transition(before, plan.payment_status)


def apply_subscription_created(
    plan: UserPlan,
    *,
    subscription_reference: str | None,
    customer_reference: str | None,
    next_payment_date: datetime | None,
) -> Transition:
    before = _status(plan)
    if subscription_reference:
        plan.subscription_reference = subscription_reference
    if customer_reference:
        plan.customer_reference = customer_reference
    plan.plan_type = PLAN_PREMIUM
    plan.payment_status = STATUS_ACTIVE
    plan.grace_period_end = None
    plan.cancelled_at = None
    if next_payment_date is not None:
        plan.next_payment_date = next_payment_date
    return Transition(before, STATUS_ACTIVE)


def apply_subscription_disabled(plan: UserPlan, now: datetime) -> Transition:
    before = _status(plan)
    plan.payment_status = STATUS_CANCELLED
    plan.grace_period_end = None
    if before != STATUS_CANCELLED or plan.cancelled_at is None:
        plan.cancelled_at = now
    return Transition(before, STATUS_CANCELLED)


def expire_grace_period(plan: UserPlan, now: datetime) -> Transition | None:
    """Suspend a plan whose grace window has run out. None if not due."""
    if _status(plan) != STATUS_GRACE_PERIOD:
        return None
    end = as_utc(plan.grace_period_end)
    if end is not None and end > as_utc(now):
        return None
    plan.payment_status = STATUS_SUSPENDED
    plan.grace_period_end = None
    return Transition(STATUS_GRACE_PERIOD, STATUS_SUSPENDED)


def extend_grace_period(plan: UserPlan, days: int) -> datetime:
    if days <= 0:
        raise ValueError("days must be positive")
    if _status(plan) != STATUS_GRACE_PERIOD:
        raise InvalidTransition(f"plan is {_status(plan)!r}, not in grace period")
    if plan.grace_period_end is None:
        raise InvalidTransition("plan is in grace period without a deadline; run the expiry sweep first")
    plan.grace_period_end = as_utc(plan.grace_period_end) + timedelta(days=days)
    return plan.grace_period_end


def restore_from_suspension(plan: UserPlan, policy: PaymentPolicy, now: datetime) -> Transition:
    """Manual reinstatement: behaves like a successful payment, but only from suspended."""
    if _status(plan) != STATUS_SUSPENDED:
        raise InvalidTransition(f"plan is {_status(plan)!r}, not suspended")
    return apply_payment_success(plan, policy, now)


def grace_status(plan: UserPlan | None, now: datetime) -> dict:
    if plan is None:
        return {"in_grace_period": False, "grace_period_end": None, "days_remaining": 0, "failed_payment_count": 0}
    end = as_utc(plan.grace_period_end)
    now = as_utc(now)
    in_grace = _status(plan) == STATUS_GRACE_PERIOD and end is not None and end > now
    days_remaining = 0
    if end is not None and end > now:
        remaining = end - now
        days_remaining = remaining.days + (1 if remaining.seconds or remaining.microseconds else 0)
    return {
        "in_grace_period": in_grace,
        "grace_period_end": end.isoformat() if end else None,
        "days_remaining": days_remaining,
        "failed_payment_count": plan.failed_payment_count or 0,
    }
