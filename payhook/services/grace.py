import json
from dataclasses import dataclass, field
from datetime import datetime

from flask import current_app

from payhook.extensions import db
from payhook.models import UserPlan
from payhook.models.user_plan import STATUS_GRACE_PERIOD
from payhook.billing import state_machine
from payhook.billing.policy import PaymentPolicy
from payhook.billing.state_machine import expire_grace_period, InvalidTransition, Transition
from .ledger import record_restoration


@dataclass
class GraceSweepResult:
    processed: int = 0
    suspended: int = 0
    user_ids: list[int] = field(default_factory=list)


def process_expired_grace_periods(now: datetime) -> GraceSweepResult:
    """Suspend every plan whose grace period ended at or before `now`. Commits."""
    result = GraceSweepResult()
    plans = (
        db.session.query(UserPlan)
        .filter(UserPlan.payment_status == STATUS_GRACE_PERIOD)
        .filter(UserPlan.grace_period_end <= now)
        .order_by(UserPlan.grace_period_end)
        .all()
    )
    for plan in plans:
        result.processed += 1
        if expire_grace_period(plan, now) is not None:
            result.suspended += 1
            result.user_ids.append(plan.user_id)
            current_app.logger.info(json.dumps({
                "event": "grace_period_expired",
                "user_id": plan.user_id,
                "status": plan.payment_status,
            }))
    db.session.commit()
    return result


def restore_from_suspension(user_id: int, *, policy: PaymentPolicy, now: datetime) -> Transition:
    """
    Reactivate a suspended plan and write a zero-amount audit row to the ledger.
    Plan update and audit row commit together. Raises InvalidTransition when the
    user has no plan or the plan is not suspended.
    """
    plan = db.session.query(UserPlan).filter_by(user_id=user_id).one_or_none()
    if plan is None:
        raise InvalidTransition(f"no plan for user id {user_id}")
    transition = state_machine.restore_from_suspension(plan, policy, now)
    txn = record_restoration(user_id, now)
    db.session.commit()
    current_app.logger.info(json.dumps({
        "event": "plan_restored",
        "user_id": user_id,
        "reference": txn.transaction_reference,
        "from_status": transition.from_status,
        "to_status": transition.to_status,
    }))
    return transition
