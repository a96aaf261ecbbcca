from sqlalchemy import func, CheckConstraint
from payhook.extensions import db

# Keep simple text+CHECK for evolvable states (no DB enum migration pain)
PLAN_FREE = "free"
PLAN_PREMIUM = "premium"
PLAN_CHOICES = (PLAN_FREE, PLAN_PREMIUM)

STATUS_ACTIVE = "active"
STATUS_GRACE_PERIOD = "grace_period"
STATUS_SUSPENDED = "suspended"
STATUS_CANCELLED = "cancelled"
STATUS_CHOICES = (STATUS_ACTIVE, STATUS_GRACE_PERIOD, STATUS_SUSPENDED, STATUS_CANCELLED)

class UserPlan(db.Model):
    """
    One row per user. Mutated only through payhook.billing.state_machine;
    never deleted, only transitioned to 'cancelled'.
    """
    __tablename__ = "user_plans"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        unique=True,
        index=True,
    )

    plan_type = db.Column(db.String(20), nullable=False, default=PLAN_FREE, server_default=PLAN_FREE)
    payment_status = db.Column(
        db.String(20), nullable=False, index=True, default=STATUS_ACTIVE, server_default=STATUS_ACTIVE
    )
    failed_payment_count = db.Column(db.Integer, nullable=False, default=0, server_default=db.text("0"))

    grace_period_end = db.Column(db.DateTime(timezone=True), nullable=True)
    next_payment_date = db.Column(db.DateTime(timezone=True), nullable=True, index=True)
    last_payment_date = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Gateway codes (Paystack SUB_xxx / CUS_xxx)
    subscription_reference = db.Column(db.String(64), nullable=True)
    customer_reference = db.Column(db.String(64), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    user = db.relationship("User", back_populates="plan")

    __table_args__ = (
        CheckConstraint(
            "plan_type IN ('free','premium')",
            name="ck_user_plans_plan_type_valid",
        ),
        CheckConstraint(
            "payment_status IN ('active','grace_period','suspended','cancelled')",
            name="ck_user_plans_payment_status_valid",
        ),
        CheckConstraint("failed_payment_count >= 0", name="ck_user_plans_failed_count_nonneg"),
    )

    def __repr__(self) -> str:
        return (
            f"<UserPlan user_id={self.user_id} plan={self.plan_type!r} "
            f"status={self.payment_status!r} failed={self.failed_payment_count}>"
        )
