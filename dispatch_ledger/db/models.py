"""SQLAlchemy ORM models."""
import uuid

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from dispatch_ledger.infrastructure.database.base import Base


def generate_uuid() -> str:
    return str(uuid.uuid4())


class Worker(Base):
    __tablename__ = "workers"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(100), nullable=False)
    role = Column(String(20), nullable=False, default="worker")  # worker, coordinator
    tier_rate = Column(Numeric(6, 4), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Order(Base):
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    serial = Column(String(32), unique=True, nullable=True)
    status = Column(String(30), nullable=False, default="PENDING")
    billing_policy = Column(String(20), nullable=False)  # DURATION, QUOTA, ALLOCATED
    paid_amount_cents = Column(Integer, nullable=False, default=0)
    receivable_amount_cents = Column(Integer, nullable=False, default=0)
    is_gifted = Column(Boolean, nullable=False, default=False)
    ordered_hours = Column(Numeric(8, 1), nullable=True)
    guaranteed_quota = Column(Numeric(12, 2), nullable=True)
    commission_rate = Column(Numeric(6, 4), nullable=True)
    product_category = Column(String(30), nullable=False, default="REGULAR")
    product_price_cents = Column(Integer, nullable=True)
    product_commission_rate = Column(Numeric(6, 4), nullable=True)
    dispatcher_id = Column(String(36), ForeignKey("workers.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    dispatcher = relationship("Worker")
    rounds = relationship(
        "DispatchRound",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="DispatchRound.round_no",
    )


class DispatchRound(Base):
    __tablename__ = "dispatch_rounds"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    round_no = Column(Integer, nullable=False, default=1)
    status = Column(String(20), nullable=False, default="WAIT_ASSIGN")
    accepted_all_at = Column(DateTime(timezone=True))
    archived_at = Column(DateTime(timezone=True))
    completed_at = Column(DateTime(timezone=True))
    deduct_minutes = Column(Integer, nullable=False, default=0)
    billable_minutes = Column(Integer, nullable=True)
    billable_hours = Column(Numeric(8, 1), nullable=True)
    allocated_income_cents = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    order = relationship("Order", back_populates="rounds")
    participants = relationship(
        "DispatchParticipant",
        back_populates="round",
        cascade="all, delete-orphan",
    )


class DispatchParticipant(Base):
    __tablename__ = "dispatch_participants"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    round_id = Column(String(36), ForeignKey("dispatch_rounds.id"), nullable=False, index=True)
    worker_id = Column(String(36), ForeignKey("workers.id"), nullable=False, index=True)
    accepted_at = Column(DateTime(timezone=True))
    rejected_at = Column(DateTime(timezone=True))
    contribution = Column(Numeric(12, 2), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    round = relationship("DispatchRound", back_populates="participants")
    worker = relationship("Worker")


class OrderSettlement(Base):
    __tablename__ = "order_settlements"
    __table_args__ = (
        UniqueConstraint("round_id", "worker_id", "settlement_type", name="uniq_settlement_round_worker_type"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    round_id = Column(String(36), ForeignKey("dispatch_rounds.id"), nullable=False)
    worker_id = Column(String(36), ForeignKey("workers.id"), nullable=False, index=True)
    settlement_type = Column(String(30), nullable=False)
    batch_id = Column(String(64), nullable=False, index=True)
    calculated_cents = Column(Integer, nullable=False, default=0)
    adjustment_cents = Column(Integer, nullable=False, default=0)
    final_cents = Column(Integer, nullable=False, default=0)
    payment_status = Column(String(20), nullable=False, default="UNPAID")
    settled_at = Column(DateTime(timezone=True))
    paid_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class WalletAccount(Base):
    __tablename__ = "wallet_accounts"

    user_id = Column(String(36), ForeignKey("workers.id"), primary_key=True)
    available_cents = Column(Integer, nullable=False, default=0)
    frozen_cents = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class WalletTransaction(Base):
    __tablename__ = "wallet_transactions"
    __table_args__ = (
        UniqueConstraint("source_type", "source_id", name="uniq_wallet_tx_source"),
        Index("ix_wallet_transactions_user_created", "user_id", "created_at"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("wallet_accounts.user_id"), nullable=False)
    direction = Column(String(5), nullable=False)  # IN, OUT
    biz_type = Column(String(30), nullable=False)
    amount_cents = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default="FROZEN")  # FROZEN, AVAILABLE, REVERSED
    source_type = Column(String(40), nullable=False)
    source_id = Column(String(64), nullable=False)
    order_id = Column(String(36), nullable=True, index=True)
    round_id = Column(String(36), nullable=True)
    settlement_id = Column(String(36), nullable=True, index=True)
    reversal_of_tx_id = Column(String(36), nullable=True)
    available_after_cents = Column(Integer, nullable=True)
    frozen_after_cents = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class WalletHold(Base):
    __tablename__ = "wallet_holds"
    __table_args__ = (Index("ix_wallet_holds_status_unlock_at", "status", "unlock_at"),)

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("wallet_accounts.user_id"), nullable=False, index=True)
    earning_tx_id = Column(String(36), ForeignKey("wallet_transactions.id"), nullable=False, unique=True)
    amount_cents = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default="FROZEN")  # FROZEN, RELEASED, CANCELLED
    unlock_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    released_at = Column(DateTime(timezone=True))


class SettlementPreview(Base):
    __tablename__ = "settlement_previews"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    fingerprint = Column(String(64), nullable=False)
    payload = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    expires_at = Column(DateTime(timezone=True), nullable=False)


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    operator_id = Column(String(36), nullable=True)
    action = Column(String(50), nullable=False)
    target_type = Column(String(30), nullable=False)
    target_id = Column(String(36), nullable=True, index=True)
    old_data = Column(Text)
    new_data = Column(Text)
    remark = Column(String(255))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
