from fastapi import APIRouter

from dispatch_ledger.api.routers import settlements, wallets


def create_api_router(prefix: str = "") -> APIRouter:
    router = APIRouter(prefix=prefix)
    router.include_router(settlements.router, prefix="/settlements", tags=["结算"])
    router.include_router(wallets.router, prefix="/wallets", tags=["钱包"])
    return router


__all__ = [
    "create_api_router",
]
