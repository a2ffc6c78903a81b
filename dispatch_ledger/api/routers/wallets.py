"""Wallet ledger endpoints."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from dispatch_ledger.api.deps import get_db_session, get_db_session_factory, get_sweeper_settings
from dispatch_ledger.core.config import SweeperSettings
from dispatch_ledger.domain.unlocks import UnlockSweeper
from dispatch_ledger.domain.wallets import WalletService
from dispatch_ledger.schemas import (
    ReconciliationResponse,
    ReleaseHoldsRequest,
    ReleaseHoldsResponse,
    WalletAccountResponse,
    WalletHoldListResponse,
    WalletHoldResponse,
    WalletTransactionListResponse,
    WalletTransactionResponse,
)

router = APIRouter()


@router.post("/holds/release", response_model=ReleaseHoldsResponse, summary="释放已到期的冻结收益")
async def release_due_holds(
    payload: Optional[ReleaseHoldsRequest] = Body(default=None),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_db_session_factory),
    settings: SweeperSettings = Depends(get_sweeper_settings),
) -> ReleaseHoldsResponse:
    payload = payload or ReleaseHoldsRequest()
    sweeper = UnlockSweeper(session_factory=session_factory, settings=settings)
    result = await sweeper.release_due_holds(payload.batch_size, payload.max_batches)
    return ReleaseHoldsResponse(released=result.released, failed=result.failed, batches=result.batches)


@router.get("/{user_id}", response_model=WalletAccountResponse, summary="查询钱包余额")
async def get_wallet(
    user_id: str = Path(..., description="用户ID"),
    db: AsyncSession = Depends(get_db_session),
) -> WalletAccountResponse:
    account = await WalletService.with_session(db).get_account(user_id)
    if account is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="钱包账户不存在")
    return WalletAccountResponse.model_validate(account)


@router.get("/{user_id}/transactions", response_model=WalletTransactionListResponse, summary="钱包流水")
async def list_wallet_transactions(
    user_id: str = Path(..., description="用户ID"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db_session),
) -> WalletTransactionListResponse:
    records = await WalletService.with_session(db).list_transactions(user_id, limit, offset)
    return WalletTransactionListResponse(
        transactions=[WalletTransactionResponse.model_validate(record) for record in records]
    )


@router.get("/{user_id}/holds", response_model=WalletHoldListResponse, summary="冻结单列表")
async def list_wallet_holds(
    user_id: str = Path(..., description="用户ID"),
    hold_status: Optional[str] = Query(None, alias="status"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db_session),
) -> WalletHoldListResponse:
    records = await WalletService.with_session(db).list_holds(user_id, hold_status, limit, offset)
    return WalletHoldListResponse(holds=[WalletHoldResponse.model_validate(record) for record in records])


@router.get("/{user_id}/reconcile", response_model=ReconciliationResponse, summary="钱包对账")
async def reconcile_wallet(
    user_id: str = Path(..., description="用户ID"),
    db: AsyncSession = Depends(get_db_session),
) -> ReconciliationResponse:
    result = await WalletService.with_session(db).reconcile(user_id)
    return ReconciliationResponse.model_validate(result)
