from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "4f1c2a9d7e10"
down_revision = None
branch_labels = None
depends_on = None

def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=True),
        sa.Column("created_at", postgresql.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "user_plans",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("plan_type", sa.String(length=20), nullable=False, server_default="free"),
        sa.Column("payment_status", sa.String(length=20), nullable=False, server_default="active"),
        sa.Column("failed_payment_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("grace_period_end", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("next_payment_date", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("last_payment_date", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("cancelled_at", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("subscription_reference", sa.String(length=64), nullable=True),
        sa.Column("customer_reference", sa.String(length=64), nullable=True),
        sa.Column("created_at", postgresql.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", postgresql.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("plan_type IN ('free','premium')", name="ck_user_plans_plan_type_valid"),
        sa.CheckConstraint(
            "payment_status IN ('active','grace_period','suspended','cancelled')",
            name="ck_user_plans_payment_status_valid",
        ),
        sa.CheckConstraint("failed_payment_count >= 0", name="ck_user_plans_failed_count_nonneg"),
    )
    op.create_index("ix_user_plans_user_id", "user_plans", ["user_id"], unique=True)
    op.create_index("ix_user_plans_payment_status", "user_plans", ["payment_status"], unique=False)
    op.create_index("ix_user_plans_next_payment_date", "user_plans", ["next_payment_date"], unique=False)
    op.create_index("ix_user_plans_customer_reference", "user_plans", ["customer_reference"], unique=False)

    op.create_table(
        "payment_transactions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("transaction_reference", sa.String(length=128), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default="ZAR"),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("payment_method", sa.String(length=32), nullable=False, server_default="paystack"),
        sa.Column("gateway_reference", sa.String(length=128), nullable=True),
        sa.Column("authorization_token", sa.String(length=128), nullable=True),
        sa.Column("subscription_reference", sa.String(length=64), nullable=True),
        sa.Column("failure_reason", sa.String(length=255), nullable=True),
        sa.Column("metadata", postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("created_at", postgresql.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "status IN ('pending','success','failed','cancelled')",
            name="ck_payment_transactions_status_valid",
        ),
    )
    op.create_index("ix_payment_transactions_transaction_reference", "payment_transactions", ["transaction_reference"], unique=True)
    op.create_index("ix_payment_transactions_user_id", "payment_transactions", ["user_id"], unique=False)
    op.create_index("ix_payment_transactions_status", "payment_transactions", ["status"], unique=False)
    op.create_index("ix_payment_transactions_created_at", "payment_transactions", ["created_at"], unique=False)

def downgrade():
    op.drop_index("ix_payment_transactions_created_at", table_name="payment_transactions")
    op.drop_index("ix_payment_transactions_status", table_name="payment_transactions")
    op.drop_index("ix_payment_transactions_user_id", table_name="payment_transactions")
    op.drop_index("ix_payment_transactions_transaction_reference", table_name="payment_transactions")
    op.drop_table("payment_transactions")
    op.drop_index("ix_user_plans_customer_reference", table_name="user_plans")
    op.drop_index("ix_user_plans_next_payment_date", table_name="user_plans")
    op.drop_index("ix_user_plans_payment_status", table_name="user_plans")
    op.drop_index("ix_user_plans_user_id", table_name="user_plans")
    op.drop_table("user_plans")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
