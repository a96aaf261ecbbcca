from sqlalchemy import func, CheckConstraint
from sqlalchemy.dialects.postgresql import JSONB
from payhook.extensions import db

TXN_PENDING = "pending"
TXN_SUCCESS = "success"
TXN_FAILED = "failed"
TXN_CANCELLED = "cancelled"
TXN_STATUS_CHOICES = (TXN_PENDING, TXN_SUCCESS, TXN_FAILED, TXN_CANCELLED)

class PaymentTransaction(db.Model):
    """Append-only ledger; the unique transaction_reference is the idempotency key."""
    __tablename__ = "payment_transactions"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)

    transaction_reference = db.Column(db.String(128), nullable=False, unique=True, index=True)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    currency = db.Column(db.String(3), nullable=False, server_default="ZAR")
    status = db.Column(db.String(20), nullable=False, index=True, server_default=TXN_PENDING)
    payment_method = db.Column(db.String(32), nullable=False, server_default="paystack")

    gateway_reference = db.Column(db.String(128), nullable=True)
    authorization_token = db.Column(db.String(128), nullable=True)
    subscription_reference = db.Column(db.String(64), nullable=True)
    failure_reason = db.Column(db.String(255), nullable=True)

    meta = db.Column("metadata", db.JSON().with_variant(JSONB(), "postgresql"), nullable=False, default=dict)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now(), index=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending','success','failed','cancelled')",
            name="ck_payment_transactions_status_valid",
        ),
    )

    def __repr__(self) -> str:
        return f"<PaymentTransaction ref={self.transaction_reference!r} user_id={self.user_id} status={self.status!r}>"
