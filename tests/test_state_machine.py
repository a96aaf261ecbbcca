from datetime import datetime, timedelta, timezone

import pytest

from payhook.billing.policy import PaymentPolicy
from payhook.billing import state_machine as sm
from payhook.models import UserPlan

NOW = datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)
POLICY = PaymentPolicy()


def _plan(**kw):
    kw.setdefault("payment_status", "active")
    kw.setdefault("failed_payment_count", 0)
    kw.setdefault("plan_type", "premium")
    return UserPlan(user_id=1, **kw)


def test_three_failures_walk_active_grace_grace_suspended():
    plan = _plan()

    t1 = sm.apply_payment_failure(plan, POLICY, NOW)
    assert (t1.from_status, t1.to_status) == ("active", "grace_period")
    assert plan.failed_payment_count == 1
    assert plan.grace_period_end == NOW + timedelta(days=7)

    later = NOW + timedelta(days=2)
    t2 = sm.apply_payment_failure(plan, POLICY, later)
    assert t2.to_status == "grace_period" and not t2.changed
    assert plan.failed_payment_count == 2
    assert plan.grace_period_end == NOW + timedelta(days=7)  # deadline not pushed out

    t3 = sm.apply_payment_failure(plan, POLICY, later)
    assert t3.to_status == "suspended"
    assert plan.failed_payment_count == 3
    assert plan.grace_period_end is None


@pytest.mark.parametrize("status,count,grace_end", [
    ("active", 0, None),
    ("grace_period", 1, NOW + timedelta(days=7)),
    ("grace_period", 2, NOW + timedelta(days=3)),
    ("suspended", 3, None),
    ("cancelled", 0, None),
])
def test_success_from_any_state_resets_to_active(status, count, grace_end):
    plan = _plan(payment_status=status, failed_payment_count=count, grace_period_end=grace_end)
    t = sm.apply_payment_success(plan, POLICY, NOW)
    assert t.to_status == "active"
    assert plan.failed_payment_count == 0
    assert plan.grace_period_end is None
    assert plan.last_payment_date == NOW
    assert plan.next_payment_date == NOW + timedelta(days=30)


def test_failure_while_suspended_counts_and_stays_suspended():
    plan = _plan(payment_status="suspended", failed_payment_count=3)
    t = sm.apply_payment_failure(plan, POLICY, NOW)
    assert t.to_status == "suspended"
    assert plan.failed_payment_count == 4
    assert plan.grace_period_end is None


def test_failure_after_cancellation_changes_nothing():
    plan = _plan(payment_status="cancelled", failed_payment_count=0)
    t = sm.apply_payment_failure(plan, POLICY, NOW)
    assert not t.changed
    assert plan.failed_payment_count == 0


def test_policy_thresholds_are_injectable():
    policy = PaymentPolicy(grace_period_days=3, renewal_days=14, max_failed_payments=2)
    plan = _plan()
    sm.apply_payment_failure(plan, policy, NOW)
    assert plan.grace_period_end == NOW + timedelta(days=3)
    sm.apply_payment_failure(plan, policy, NOW)
    assert plan.payment_status == "suspended"

    sm.apply_payment_success(plan, policy, NOW)
    assert plan.next_payment_date == NOW + timedelta(days=14)


def test_single_strike_policy_suspends_immediately():
    plan = _plan()
    sm.apply_payment_failure(plan, PaymentPolicy(max_failed_payments=1), NOW)
    assert plan.payment_status == "suspended"
    assert plan.grace_period_end is None


def test_subscription_created_activates_premium_and_stores_codes():
    plan = _plan(plan_type="free", payment_status="grace_period", failed_payment_count=1,
                 grace_period_end=NOW + timedelta(days=7))
    npd = NOW + timedelta(days=30)
    t = sm.apply_subscription_created(
        plan, subscription_reference="SUB_1", customer_reference="CUS_1", next_payment_date=npd,
    )
    assert t.to_status == "active"
    assert plan.plan_type == "premium"
    assert plan.subscription_reference == "SUB_1"
    assert plan.customer_reference == "CUS_1"
    assert plan.next_payment_date == npd
    assert plan.grace_period_end is None


def test_subscription_disabled_keeps_first_cancellation_time():
    plan = _plan(payment_status="grace_period", failed_payment_count=1, grace_period_end=NOW)
    sm.apply_subscription_disabled(plan, NOW)
    assert plan.payment_status == "cancelled"
    assert plan.cancelled_at == NOW
    assert plan.grace_period_end is None

    sm.apply_subscription_disabled(plan, NOW + timedelta(hours=1))
    assert plan.cancelled_at == NOW


def test_expire_grace_period_only_when_due():
    plan = _plan(payment_status="grace_period", failed_payment_count=1,
                 grace_period_end=NOW + timedelta(days=1))
    assert sm.expire_grace_period(plan, NOW) is None
    t = sm.expire_grace_period(plan, NOW + timedelta(days=1))
    assert t.to_status == "suspended"
    assert plan.grace_period_end is None


def test_expire_grace_period_handles_naive_stored_datetime():
    plan = _plan(payment_status="grace_period", failed_payment_count=1,
                 grace_period_end=datetime(2026, 9, 30, 12, 0))
    assert sm.expire_grace_period(plan, NOW).to_status == "suspended"


def test_extend_grace_period():
    plan = _plan(payment_status="grace_period", failed_payment_count=1,
                 grace_period_end=NOW + timedelta(days=7))
    new_end = sm.extend_grace_period(plan, 3)
    assert new_end == NOW + timedelta(days=10)

    with pytest.raises(ValueError):
        sm.extend_grace_period(plan, 0)
    with pytest.raises(sm.InvalidTransition):
        sm.extend_grace_period(_plan(), 3)


def test_grace_status():
    plan = _plan(payment_status="grace_period", failed_payment_count=1,
                 grace_period_end=NOW + timedelta(days=6, hours=1))
    info = sm.grace_status(plan, NOW)
    assert info["in_grace_period"] is True
    assert info["days_remaining"] == 7
    assert info["failed_payment_count"] == 1

    assert sm.grace_status(None, NOW)["in_grace_period"] is False
    assert sm.grace_status(_plan(), NOW)["days_remaining"] == 0


def test_policy_from_config_and_validation():
    policy = PaymentPolicy.from_config({"GRACE_PERIOD_DAYS": "5", "RENEWAL_DAYS": 31, "MAX_FAILED_PAYMENTS": 4})
    assert policy == PaymentPolicy(grace_period_days=5, renewal_days=31, max_failed_payments=4)
    assert PaymentPolicy.from_config({}) == PaymentPolicy()
    with pytest.raises(ValueError):
        PaymentPolicy(max_failed_payments=0)


def test_resubscribed_plan_with_stale_count_gets_a_grace_period():
    plan = _plan(payment_status="suspended", failed_payment_count=3)
    sm.apply_subscription_created(plan, subscription_reference="SUB_2", customer_reference=None, next_payment_date=None)
    assert (plan.payment_status, plan.failed_payment_count) == ("active", 3)

    t = sm.apply_payment_failure(plan, POLICY, NOW)
    assert (t.from_status, t.to_status) == ("active", "grace_period")
    assert plan.failed_payment_count == 1
    assert plan.grace_period_end == NOW + timedelta(days=7)


def test_success_after_cancellation_clears_cancelled_at():
    plan = _plan(payment_status="cancelled", cancelled_at=NOW - timedelta(days=3))
    sm.apply_payment_success(plan, POLICY, NOW)
    assert plan.payment_status == "active"
    assert plan.cancelled_at is None


def test_extend_grace_period_without_deadline_is_refused():
    plan = _plan(payment_status="grace_period", failed_payment_count=1, grace_period_end=None)
    with pytest.raises(sm.InvalidTransition):
        sm.extend_grace_period(plan, 3)
    assert plan.grace_period_end is None


def test_restore_from_suspension():
    plan = _plan(payment_status="suspended", failed_payment_count=3)
    t = sm.restore_from_suspension(plan, POLICY, NOW)
    assert (t.from_status, t.to_status) == ("suspended", "active")
    assert plan.failed_payment_count == 0
    assert plan.grace_period_end is None
    assert plan.last_payment_date == NOW
    assert plan.next_payment_date == NOW + timedelta(days=30)


@pytest.mark.parametrize("status", ["active", "grace_period", "cancelled"])
def test_restore_only_from_suspended(status):
    end = NOW + timedelta(days=1) if status == "grace_period" else None
    plan = _plan(payment_status=status, failed_payment_count=1, grace_period_end=end)
    with pytest.raises(sm.InvalidTransition):
        sm.restore_from_suspension(plan, POLICY, NOW)
    assert plan.payment_status == status
