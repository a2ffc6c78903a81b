"""create settlement ledger tables

Revision ID: 5d1f0c2a9b7e
Revises: 
Create Date: 2026-03-01 10:20:00.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "5d1f0c2a9b7e"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "workers",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("role", sa.String(length=20), nullable=False, server_default="worker"),
        sa.Column("tier_rate", sa.Numeric(6, 4)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "orders",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("serial", sa.String(length=32), unique=True),
        sa.Column("status", sa.String(length=30), nullable=False, server_default="PENDING"),
        sa.Column("billing_policy", sa.String(length=20), nullable=False),
        sa.Column("paid_amount_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("receivable_amount_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_gifted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("ordered_hours", sa.Numeric(8, 1)),
        sa.Column("guaranteed_quota", sa.Numeric(12, 2)),
        sa.Column("commission_rate", sa.Numeric(6, 4)),
        sa.Column("product_category", sa.String(length=30), nullable=False, server_default="REGULAR"),
        sa.Column("product_price_cents", sa.Integer()),
        sa.Column("product_commission_rate", sa.Numeric(6, 4)),
        sa.Column("dispatcher_id", sa.String(length=36), sa.ForeignKey("workers.id")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
    )

    op.create_table(
        "dispatch_rounds",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("order_id", sa.String(length=36), sa.ForeignKey("orders.id"), nullable=False),
        sa.Column("round_no", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="WAIT_ASSIGN"),
        sa.Column("accepted_all_at", sa.DateTime(timezone=True)),
        sa.Column("archived_at", sa.DateTime(timezone=True)),
        sa.Column("completed_at", sa.DateTime(timezone=True)),
        sa.Column("deduct_minutes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("billable_minutes", sa.Integer()),
        sa.Column("billable_hours", sa.Numeric(8, 1)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
    )
    op.create_index("ix_dispatch_rounds_order_id", "dispatch_rounds", ["order_id"])

    op.create_table(
        "dispatch_participants",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("round_id", sa.String(length=36), sa.ForeignKey("dispatch_rounds.id"), nullable=False),
        sa.Column("worker_id", sa.String(length=36), sa.ForeignKey("workers.id"), nullable=False),
        sa.Column("accepted_at", sa.DateTime(timezone=True)),
        sa.Column("rejected_at", sa.DateTime(timezone=True)),
        sa.Column("contribution", sa.Numeric(12, 2)),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    op.create_index("ix_dispatch_participants_round_id", "dispatch_participants", ["round_id"])
    op.create_index("ix_dispatch_participants_worker_id", "dispatch_participants", ["worker_id"])

    op.create_table(
        "order_settlements",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("order_id", sa.String(length=36), sa.ForeignKey("orders.id"), nullable=False),
        sa.Column("round_id", sa.String(length=36), sa.ForeignKey("dispatch_rounds.id"), nullable=False),
        sa.Column("worker_id", sa.String(length=36), sa.ForeignKey("workers.id"), nullable=False),
        sa.Column("settlement_type", sa.String(length=30), nullable=False),
        sa.Column("batch_id", sa.String(length=64), nullable=False),
        sa.Column("calculated_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("adjustment_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("final_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("payment_status", sa.String(length=20), nullable=False, server_default="UNPAID"),
        sa.Column("settled_at", sa.DateTime(timezone=True)),
        sa.Column("paid_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
        sa.UniqueConstraint("round_id", "worker_id", "settlement_type", name="uniq_settlement_round_worker_type"),
    )
    op.create_index("ix_order_settlements_order_id", "order_settlements", ["order_id"])
    op.create_index("ix_order_settlements_worker_id", "order_settlements", ["worker_id"])
    op.create_index("ix_order_settlements_batch_id", "order_settlements", ["batch_id"])

    op.create_table(
        "wallet_accounts",
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("workers.id"), primary_key=True),
        sa.Column("available_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("frozen_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
    )

    op.create_table(
        "wallet_transactions",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("wallet_accounts.user_id"), nullable=False),
        sa.Column("direction", sa.String(length=5), nullable=False),
        sa.Column("biz_type", sa.String(length=30), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="FROZEN"),
        sa.Column("source_type", sa.String(length=40), nullable=False),
        sa.Column("source_id", sa.String(length=64), nullable=False),
        sa.Column("order_id", sa.String(length=36)),
        sa.Column("round_id", sa.String(length=36)),
        sa.Column("settlement_id", sa.String(length=36)),
        sa.Column("reversal_of_tx_id", sa.String(length=36)),
        sa.Column("available_after_cents", sa.Integer()),
        sa.Column("frozen_after_cents", sa.Integer()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
        sa.UniqueConstraint("source_type", "source_id", name="uniq_wallet_tx_source"),
    )
    op.create_index("ix_wallet_transactions_order_id", "wallet_transactions", ["order_id"])
    op.create_index("ix_wallet_transactions_settlement_id", "wallet_transactions", ["settlement_id"])
    op.create_index("ix_wallet_transactions_user_created", "wallet_transactions", ["user_id", "created_at"])

    op.create_table(
        "wallet_holds",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("wallet_accounts.user_id"), nullable=False),
        sa.Column(
            "earning_tx_id",
            sa.String(length=36),
            sa.ForeignKey("wallet_transactions.id"),
            nullable=False,
            unique=True,
        ),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="FROZEN"),
        sa.Column("unlock_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("released_at", sa.DateTime(timezone=True)),
    )
    op.create_index("ix_wallet_holds_user_id", "wallet_holds", ["user_id"])
    op.create_index("ix_wallet_holds_status_unlock_at", "wallet_holds", ["status", "unlock_at"])

    op.create_table(
        "settlement_previews",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("order_id", sa.String(length=36), sa.ForeignKey("orders.id"), nullable=False),
        sa.Column("fingerprint", sa.String(length=64), nullable=False),
        sa.Column("payload", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_settlement_previews_order_id", "settlement_previews", ["order_id"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("operator_id", sa.String(length=36)),
        sa.Column("action", sa.String(length=50), nullable=False),
        sa.Column("target_type", sa.String(length=30), nullable=False),
        sa.Column("target_id", sa.String(length=36)),
        sa.Column("old_data", sa.Text()),
        sa.Column("new_data", sa.Text()),
        sa.Column("remark", sa.String(length=255)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_audit_logs_target_id", "audit_logs", ["target_id"])


def downgrade() -> None:
    op.drop_index("ix_audit_logs_target_id", table_name="audit_logs")
    op.drop_table("audit_logs")

    op.drop_index("ix_settlement_previews_order_id", table_name="settlement_previews")
    op.drop_table("settlement_previews")

    op.drop_index("ix_wallet_holds_status_unlock_at", table_name="wallet_holds")
    op.drop_index("ix_wallet_holds_user_id", table_name="wallet_holds")
    op.drop_table("wallet_holds")

    op.drop_index("ix_wallet_transactions_user_created", table_name="wallet_transactions")
    op.drop_index("ix_wallet_transactions_settlement_id", table_name="wallet_transactions")
    op.drop_index("ix_wallet_transactions_order_id", table_name="wallet_transactions")
    op.drop_table("wallet_transactions")

    op.drop_table("wallet_accounts")

    op.drop_index("ix_order_settlements_batch_id", table_name="order_settlements")
    op.drop_index("ix_order_settlements_worker_id", table_name="order_settlements")
    op.drop_index("ix_order_settlements_order_id", table_name="order_settlements")
    op.drop_table("order_settlements")

    op.drop_index("ix_dispatch_participants_worker_id", table_name="dispatch_participants")
    op.drop_index("ix_dispatch_participants_round_id", table_name="dispatch_participants")
    op.drop_table("dispatch_participants")

    op.drop_index("ix_dispatch_rounds_order_id", table_name="dispatch_rounds")
    op.drop_table("dispatch_rounds")

    op.drop_table("orders")
    op.drop_table("workers")
