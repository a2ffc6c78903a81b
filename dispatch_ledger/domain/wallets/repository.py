"""Repository interface for the wallet ledger."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol, Sequence

from dispatch_ledger.db.models import WalletAccount, WalletHold, WalletTransaction


class WalletRepository(Protocol):
    async def ensure_account(self, user_id: str) -> None:
        ...

    async def get_account(self, user_id: str) -> WalletAccount | None:
        ...

    async def update_balances(self, user_id: str, delta_available: int, delta_frozen: int) -> WalletAccount:
        ...

    async def get_transaction_by_source(self, source_type: str, source_id: str) -> WalletTransaction | None:
        ...

    async def get_transaction(self, tx_id: str) -> WalletTransaction | None:
        ...

    async def add_transaction(self, **fields: Any) -> WalletTransaction:
        ...

    async def update_transaction(self, tx_id: str, **fields: Any) -> WalletTransaction:
        ...

    async def get_hold_for_transaction(self, earning_tx_id: str) -> WalletHold | None:
        ...

    async def get_hold(self, hold_id: str) -> WalletHold | None:
        ...

    async def add_hold(
        self,
        *,
        user_id: str,
        earning_tx_id: str,
        amount_cents: int,
        unlock_at: datetime,
    ) -> WalletHold:
        ...

    async def update_hold(self, hold_id: str, **fields: Any) -> WalletHold:
        ...

    async def list_order_transactions(self, order_id: str) -> Sequence[WalletTransaction]:
        ...

    async def list_settlement_transactions(self, settlement_ids: Sequence[str]) -> Sequence[WalletTransaction]:
        ...

    async def list_transactions(self, user_id: str, limit: int, offset: int) -> Sequence[WalletTransaction]:
        ...

    async def list_all_transactions(self, user_id: str) -> Sequence[WalletTransaction]:
        ...

    async def list_holds(self, user_id: str, status: str | None, limit: int, offset: int) -> Sequence[WalletHold]:
        ...

    async def list_user_holds(self, user_id: str) -> Sequence[WalletHold]:
        ...

    async def list_due_hold_ids(self, now: datetime, limit: int, exclude: Sequence[str]) -> list[str]:
        ...

    async def delete_transactions(self, tx_ids: Sequence[str]) -> int:
        ...

    async def delete_holds_for_transactions(self, tx_ids: Sequence[str]) -> int:
        ...
