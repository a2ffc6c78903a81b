"""Settlement ledger exports"""

from .models import PaymentStatus, SettlementOutcome, SettlementRecord, SettleResult, new_batch_id
from .service import SettlementLedgerService, SettlementService, sync_order_wallet

__all__ = [
    "PaymentStatus",
    "SettleResult",
    "SettlementLedgerService",
    "SettlementOutcome",
    "SettlementRecord",
    "SettlementService",
    "new_batch_id",
    "sync_order_wallet",
]
