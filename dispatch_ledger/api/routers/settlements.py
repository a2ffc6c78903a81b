"""Settlement endpoints: per-round settlement and order-level repair."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Body, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from dispatch_ledger.api.deps import get_db_session, get_db_session_factory, get_settlement_settings
from dispatch_ledger.core.config import SettlementSettings
from dispatch_ledger.domain.repairs import RepairPreview, RepairService, RoundPlan
from dispatch_ledger.domain.settlements import SettlementService
from dispatch_ledger.schemas import (
    BalanceDeltaResponse,
    CandidateRowResponse,
    PlanItemResponse,
    PlanSummaryResponse,
    RepairRequest,
    RepairResponse,
    RoundPlanResponse,
    SettlementPreviewResponse,
    SettlementRecordResponse,
    SettleRoundRequest,
    SettleRoundResponse,
)

router = APIRouter()


def _round_response(plan: RoundPlan) -> RoundPlanResponse:
    return RoundPlanResponse(
        round_id=plan.round_id,
        round_no=plan.round_no,
        status=plan.status,
        payout_cents=plan.subtotal.payout_cents,
        penalty_income_cents=plan.subtotal.penalty_income_cents,
        net_cents=plan.subtotal.net_cents,
        items=[PlanItemResponse.model_validate(item) for item in plan.items],
    )


def _preview_response(preview: RepairPreview) -> SettlementPreviewResponse:
    return SettlementPreviewResponse(
        preview_id=preview.preview_id,
        order_id=preview.order_id,
        fingerprint=preview.fingerprint,
        expires_at=preview.expires_at,
        candidates=[CandidateRowResponse.model_validate(row) for row in preview.candidates],
        summary=PlanSummaryResponse.model_validate(preview.plan.summary),
        rounds=[_round_response(plan) for plan in preview.plan.rounds],
    )


@router.get(
    "/orders/{order_id}/preview",
    response_model=SettlementPreviewResponse,
    summary="预览订单结算重算结果",
)
async def preview_order_repair(
    order_id: str = Path(..., description="订单ID"),
    db: AsyncSession = Depends(get_db_session),
    settings: SettlementSettings = Depends(get_settlement_settings),
) -> SettlementPreviewResponse:
    preview = await RepairService.with_session(db, settings).preview(order_id)
    return _preview_response(preview)


@router.post(
    "/orders/{order_id}/repair",
    response_model=RepairResponse,
    summary="按当前订单数据重算并修复结算与钱包",
)
async def repair_order(
    order_id: str = Path(..., description="订单ID"),
    payload: Optional[RepairRequest] = Body(default=None),
    db: AsyncSession = Depends(get_db_session),
    settings: SettlementSettings = Depends(get_settlement_settings),
) -> RepairResponse:
    payload = payload or RepairRequest()
    result = await RepairService.with_session(db, settings).apply(
        order_id,
        preview_id=payload.preview_id,
        allocations=payload.allocations,
        operator_id=payload.operator_id,
        reason=payload.reason,
    )
    return RepairResponse(
        order_id=result.order_id,
        batch_id=result.batch_id,
        rollback_deltas={
            user_id: BalanceDeltaResponse.model_validate(delta) for user_id, delta in result.rollback_deltas.items()
        },
        created_count=result.created_count,
        updated_count=result.updated_count,
        deleted_settlement_ids=result.deleted_settlement_ids,
        records=[SettlementRecordResponse.model_validate(record) for record in result.records],
    )


@router.post(
    "/rounds/{round_id}/settle",
    response_model=SettleRoundResponse,
    summary="结算单个派单轮次（存单或结单）",
)
async def settle_round(
    payload: SettleRoundRequest,
    round_id: str = Path(..., description="派单轮次ID"),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_db_session_factory),
    settings: SettlementSettings = Depends(get_settlement_settings),
) -> SettleRoundResponse:
    service = SettlementService(session_factory=session_factory, settings=settings)
    result = await service.settle_round(
        round_id,
        payload.outcome,
        at=payload.at,
        allocations=payload.allocations,
        operator_id=payload.operator_id,
    )
    return SettleRoundResponse(
        order_id=result.order_id,
        round_id=result.round_id,
        outcome=result.outcome.value,
        batch_id=result.batch_id,
        unlock_at=result.unlock_at,
        records=[SettlementRecordResponse.model_validate(record) for record in result.records],
    )
