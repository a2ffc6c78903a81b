"""Unlock sweeper: releases frozen earnings whose hold has come due.

Each hold is released in its own short transaction so a single bad record
never blocks the rest of the backlog.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from dispatch_ledger.core.clock import utcnow
from dispatch_ledger.core.config import SweeperSettings, get_settings
from dispatch_ledger.domain.wallets import WalletService
from dispatch_ledger.infrastructure.database.repositories.wallet_repository import SqlWalletRepository
from dispatch_ledger.infrastructure.database.session import get_session_factory, session_scope

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SweepResult:
    released: int = 0
    failed: int = 0
    batches: int = 0
    failed_hold_ids: list[str] = field(default_factory=list)


@dataclass(slots=True)
class UnlockSweeper:
    session_factory: async_sessionmaker[AsyncSession] = field(default_factory=get_session_factory)
    settings: SweeperSettings = field(default_factory=lambda: get_settings().sweeper)

    async def release_due_holds(
        self,
        batch_size: int | None = None,
        max_batches: int | None = None,
        now: datetime | None = None,
    ) -> SweepResult:
        batch_size = batch_size or self.settings.batch_size
        max_batches = max_batches or self.settings.max_batches
        now = now or utcnow()
        result = SweepResult()

        while result.batches < max_batches:
            async with session_scope(self.session_factory) as session:
                hold_ids = await SqlWalletRepository(session).list_due_hold_ids(
                    now, batch_size, result.failed_hold_ids
                )
            result.batches += 1

            for hold_id in hold_ids:
                try:
                    released = await self._release_one(hold_id, now)
                except Exception:
                    logger.error("Failed to release wallet hold %s", hold_id, exc_info=True)
                    result.failed += 1
                    result.failed_hold_ids.append(hold_id)
                    continue
                if released:
                    result.released += 1

            if len(hold_ids) < batch_size:
                break

        logger.info(
            "Unlock sweep finished: %s released, %s failed, %s batches",
            result.released,
            result.failed,
            result.batches,
        )
        return result

    async def _release_one(self, hold_id: str, now: datetime) -> bool:
        async with session_scope(self.session_factory) as session:
            released = await WalletService.with_session(session).release_hold(hold_id, now)
        if not released:
            logger.warning("Wallet hold %s was no longer due, skipped", hold_id)
        return released
