"""Shared FastAPI dependencies."""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from dispatch_ledger.core.config import SettlementSettings, SweeperSettings, get_settings
from dispatch_ledger.infrastructure.database.session import get_session, get_session_factory


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session; committed when the handler returns, rolled back on error."""
    async for session in get_session():
        yield session


def get_db_session_factory() -> async_sessionmaker[AsyncSession]:
    """For workflows that run several short transactions of their own."""
    return get_session_factory()


def get_settlement_settings() -> SettlementSettings:
    return get_settings().settlement


def get_sweeper_settings() -> SweeperSettings:
    return get_settings().sweeper
