import json
import click
from flask import current_app
from flask.cli import with_appcontext
from payhook.extensions import db
from payhook.models import User, UserPlan, PaymentTransaction
from payhook.billing.state_machine import extend_grace_period, grace_status, InvalidTransition
from payhook.services.grace import process_expired_grace_periods, restore_from_suspension
from payhook.services.health import check_subscription_health
from payhook.utils.helpers import utcnow

@click.group()
def users():
    """User directory management."""

@users.command("create")
@click.option("--email", required=True)
@click.option("--name", "full_name", default=None)
@with_appcontext
def users_create(email, full_name):
    email = email.strip().lower()
    # fail fast if user exists
    if db.session.query(User).filter_by(email=email).count():
        raise click.ClickException("User already exists")

    user = User(email=email, full_name=full_name)
    db.session.add(user)
    db.session.commit()
    click.echo(f"User created id={user.id} email={user.email}")

@click.group()
def billing():
    """Subscription payment status ops."""

@billing.command("process-expired-grace")
@with_appcontext
def billing_process_expired_grace():
    """Suspend plans whose grace period has ended."""
    result = process_expired_grace_periods(utcnow())
    click.echo(f"Processed {result.processed} expired grace periods; suspended {result.suspended}")

@billing.command("extend-grace")
@click.option("--user-id", type=int, required=True)
@click.option("--days", type=click.IntRange(min=1), required=True)
@with_appcontext
def billing_extend_grace(user_id, days):
    plan = db.session.query(UserPlan).filter_by(user_id=user_id).one_or_none()
    if not plan:
        raise click.ClickException(f"No plan for user id {user_id}")
    try:
        new_end = extend_grace_period(plan, days)
    except InvalidTransition as exc:
        raise click.ClickException(str(exc))
    db.session.commit()
    click.echo(f"Grace period for user {user_id} extended to {new_end.isoformat()}")

@billing.command("status")
@click.option("--user-id", type=int, default=None)
@click.option("--email", default=None)
@with_appcontext
def billing_status(user_id, email):
    if user_id is None and not email:
        raise click.ClickException("Pass --user-id or --email")
    if user_id is None:
        user = db.session.query(User).filter_by(email=email.strip().lower()).one_or_none()
        if not user:
            raise click.ClickException("User not found")
        user_id = user.id

    plan = db.session.query(UserPlan).filter_by(user_id=user_id).one_or_none()
    info = grace_status(plan, utcnow())
    info.update({
        "user_id": user_id,
        "plan_type": plan.plan_type if plan else None,
        "payment_status": plan.payment_status if plan else None,
    })
    click.echo(json.dumps(info, indent=2))

@billing.command("history")
@click.option("--user-id", type=int, required=True)
@click.option("--limit", type=int, default=20, show_default=True)
@with_appcontext
def billing_history(user_id, limit):
    rows = (
        db.session.query(PaymentTransaction)
        .filter_by(user_id=user_id)
        .order_by(PaymentTransaction.created_at.desc(), PaymentTransaction.id.desc())
        .limit(limit)
        .all()
    )
    if not rows:
        click.echo("No transactions")
        return
    for t in rows:
        reason = f" reason={t.failure_reason!r}" if t.failure_reason else ""
        click.echo(f"{t.transaction_reference} {t.status} {t.amount} {t.currency}{reason}")

@billing.command("restore")
@click.option("--user-id", type=int, required=True)
@with_appcontext
def billing_restore(user_id):
    """Reactivate a suspended plan (e.g. after an out-of-band payment)."""
    try:
        restore_from_suspension(user_id, policy=current_app.extensions["payment_policy"], now=utcnow())
    except InvalidTransition as exc:
        raise click.ClickException(str(exc))
    click.echo(f"User {user_id} restored to active")

@billing.command("health")
@with_appcontext
def billing_health():
    """Counts of premium plans by payment health, plus plans needing action."""
    report = check_subscription_health(utcnow())
    click.echo(json.dumps(report.to_dict(), indent=2))

def register_cli(app):
    app.cli.add_command(users)
    app.cli.add_command(billing)
