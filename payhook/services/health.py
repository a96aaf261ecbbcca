from dataclasses import dataclass, field, asdict
from datetime import datetime

from payhook.extensions import db
from payhook.models import UserPlan
from payhook.models.user_plan import (
    PLAN_PREMIUM,
    STATUS_ACTIVE,
    STATUS_GRACE_PERIOD,
    STATUS_SUSPENDED,
    STATUS_CANCELLED,
)
from payhook.utils.helpers import as_utc


@dataclass(frozen=True)
class HealthIssue:
    user_id: int
    status: str
    issue: str
    action_needed: str


@dataclass
class SubscriptionHealth:
    healthy: int = 0
    overdue: int = 0
    grace_period: int = 0
    suspended: int = 0
    cancelled: int = 0
    details: list[HealthIssue] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


def check_subscription_health(now: datetime) -> SubscriptionHealth:
    """Read-only tally of premium plans, with the follow-up each problem plan needs."""
    now = as_utc(now)
    report = SubscriptionHealth()
    plans = (
        db.session.query(UserPlan)
        .filter(UserPlan.plan_type == PLAN_PREMIUM)
        .order_by(UserPlan.user_id)
        .all()
    )
    for plan in plans:
        status = plan.payment_status
        issue = action = None

        if status == STATUS_ACTIVE:
            next_due = as_utc(plan.next_payment_date)
            if next_due is not None and next_due < now:
                issue, action = "Payment overdue", "Trigger manual payment check"
                report.overdue += 1
            else:
                report.healthy += 1
        elif status == STATUS_GRACE_PERIOD:
            end = as_utc(plan.grace_period_end)
            if end is None or end <= now:
                issue, action = "Grace period expired", "Run billing process-expired-grace"
            else:
                issue, action = "In grace period", "Monitor and retry payment"
            report.grace_period += 1
        elif status == STATUS_SUSPENDED:
            issue, action = "Account suspended", "User needs to update payment method"
            report.suspended += 1
        elif status == STATUS_CANCELLED:
            report.cancelled += 1

        if issue:
            report.details.append(HealthIssue(plan.user_id, status, issue, action))
    return report
