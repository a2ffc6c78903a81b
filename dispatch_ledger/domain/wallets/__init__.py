"""Wallet ledger exports"""

from .models import (
    BalanceDelta,
    BizType,
    HoldStatus,
    Reconciliation,
    SourceType,
    SyncAction,
    SyncResult,
    TxDirection,
    TxStatus,
    WalletAccountSnapshot,
    WalletHoldRecord,
    WalletTransactionRecord,
    signed_effect,
)
from .service import WalletService

__all__ = [
    "BalanceDelta",
    "BizType",
    "HoldStatus",
    "Reconciliation",
    "SourceType",
    "SyncAction",
    "SyncResult",
    "TxDirection",
    "TxStatus",
    "WalletAccountSnapshot",
    "WalletHoldRecord",
    "WalletService",
    "WalletTransactionRecord",
    "signed_effect",
]
