"""SQLAlchemy-backed repository implementations."""

from .audit_repository import SqlAuditRepository
from .order_repository import SqlOrderRepository
from .preview_repository import SqlPreviewRepository
from .settlement_repository import SqlSettlementRepository
from .wallet_repository import SqlWalletRepository

__all__ = [
    "SqlAuditRepository",
    "SqlOrderRepository",
    "SqlPreviewRepository",
    "SqlSettlementRepository",
    "SqlWalletRepository",
]
