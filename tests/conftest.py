from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient

from dispatch_ledger.api.deps import get_db_session, get_db_session_factory
from dispatch_ledger.core.config import SettlementSettings, SweeperSettings
from dispatch_ledger.infrastructure.database.session import (
    build_engine,
    build_session_factory,
    init_db,
    session_scope,
)

from .factories import Seeder


@pytest.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def seeder(session_factory):
    return Seeder(session_factory)


@pytest.fixture
def settlement_settings():
    return SettlementSettings()


@pytest.fixture
def sweeper_settings():
    return SweeperSettings(batch_size=2, max_batches=10)


@pytest.fixture
def app(session_factory):
    from dispatch_ledger.main import create_app

    app = create_app()

    async def override_session():
        async with session_scope(session_factory) as session:
            yield session

    app.dependency_overrides[get_db_session] = override_session
    app.dependency_overrides[get_db_session_factory] = lambda: session_factory
    return app


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
