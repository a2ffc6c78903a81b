"""Pydantic schemas used across the project."""
from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class ErrorResponse(BaseModel):
    code: str
    detail: str
    details: dict[str, Any] = Field(default_factory=dict)


class CandidateRowResponse(BaseModel):
    order_id: str
    round_id: str
    round_no: int
    worker_id: str
    settlement_type: str
    calculated_cents: int

    model_config = ConfigDict(from_attributes=True)


class SettlementRecordResponse(BaseModel):
    id: str
    order_id: str
    round_id: str
    worker_id: str
    settlement_type: str
    batch_id: str
    calculated_cents: int
    adjustment_cents: int
    final_cents: int
    payment_status: str
    settled_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class PlanItemResponse(BaseModel):
    round_id: str
    round_no: Optional[int] = None
    worker_id: str
    settlement_type: str
    settlement_id: Optional[str] = None
    old_calculated_cents: int
    old_adjustment_cents: int
    old_final_cents: int
    expected_calculated_cents: int
    expected_final_cents: int
    delta_cents: int
    note: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class RoundPlanResponse(BaseModel):
    round_id: str
    round_no: Optional[int] = None
    status: Optional[str] = None
    payout_cents: int
    penalty_income_cents: int
    net_cents: int
    items: list[PlanItemResponse] = Field(default_factory=list)


class PlanSummaryResponse(BaseModel):
    income_cents: int
    payout_cents: int
    penalty_income_cents: int
    platform_net_cents: int

    model_config = ConfigDict(from_attributes=True)


class SettlementPreviewResponse(BaseModel):
    preview_id: str
    order_id: str
    fingerprint: str
    expires_at: datetime
    candidates: list[CandidateRowResponse] = Field(default_factory=list)
    summary: PlanSummaryResponse
    rounds: list[RoundPlanResponse] = Field(default_factory=list)


class RepairRequest(BaseModel):
    preview_id: Optional[str] = None
    allocations: Optional[dict[str, int]] = None
    operator_id: Optional[str] = None
    reason: Optional[str] = Field(default=None, max_length=255)


class BalanceDeltaResponse(BaseModel):
    available_cents: int
    frozen_cents: int

    model_config = ConfigDict(from_attributes=True)


class RepairResponse(BaseModel):
    order_id: str
    batch_id: str
    rollback_deltas: dict[str, BalanceDeltaResponse] = Field(default_factory=dict)
    created_count: int
    updated_count: int
    deleted_settlement_ids: list[str] = Field(default_factory=list)
    records: list[SettlementRecordResponse] = Field(default_factory=list)


class SettleRoundRequest(BaseModel):
    outcome: Literal["ARCHIVE", "COMPLETE"]
    at: Optional[datetime] = None
    allocations: Optional[dict[str, int]] = None
    operator_id: Optional[str] = None


class SettleRoundResponse(BaseModel):
    order_id: str
    round_id: str
    outcome: str
    batch_id: str
    unlock_at: Optional[datetime] = None
    records: list[SettlementRecordResponse] = Field(default_factory=list)


class WalletAccountResponse(BaseModel):
    user_id: str
    available_cents: int
    frozen_cents: int
    total_cents: int
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class WalletTransactionResponse(BaseModel):
    id: str
    direction: str
    biz_type: str
    amount_cents: int
    status: str
    source_type: str
    source_id: str
    order_id: Optional[str] = None
    round_id: Optional[str] = None
    settlement_id: Optional[str] = None
    reversal_of_tx_id: Optional[str] = None
    available_after_cents: Optional[int] = None
    frozen_after_cents: Optional[int] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class WalletTransactionListResponse(BaseModel):
    transactions: list[WalletTransactionResponse] = Field(default_factory=list)


class WalletHoldResponse(BaseModel):
    id: str
    earning_tx_id: str
    amount_cents: int
    status: str
    unlock_at: datetime
    released_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class WalletHoldListResponse(BaseModel):
    holds: list[WalletHoldResponse] = Field(default_factory=list)


class ReconciliationResponse(BaseModel):
    user_id: str
    expected_available_cents: int
    expected_frozen_cents: int
    actual_available_cents: int
    actual_frozen_cents: int
    holds_consistent: bool
    is_balanced: bool

    model_config = ConfigDict(from_attributes=True)


class ReleaseHoldsRequest(BaseModel):
    batch_size: Optional[int] = Field(default=None, gt=0, le=1000)
    max_batches: Optional[int] = Field(default=None, gt=0)


class ReleaseHoldsResponse(BaseModel):
    released: int
    failed: int
    batches: int
