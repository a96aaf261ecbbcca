from sqlalchemy import func

from payhook.extensions import db
from payhook.models import User, UserPlan
from payhook.billing.events import WebhookEvent


def resolve_user(event: WebhookEvent) -> int | None:
    """
    Map the gateway's customer to an internal user id.
    Email first, then a customer code stored on an earlier subscription.
    """
    email = event.customer_email
    if email:
        user_id = (
            db.session.query(User.id)
            .filter(func.lower(User.email) == email)
            .scalar()
        )
        if user_id is not None:
            return user_id

    code = event.customer_code
    if code:
        user_id = (
            db.session.query(UserPlan.user_id)
            .filter(UserPlan.customer_reference == code)
            .limit(1)
            .scalar()
        )
        if user_id is not None:
            return user_id

    return None


def get_or_create_plan(user_id: int) -> UserPlan:
    plan = db.session.query(UserPlan).filter_by(user_id=user_id).one_or_none()
    if plan is None:
        plan = UserPlan(user_id=user_id)
        db.session.add(plan)
    return plan
