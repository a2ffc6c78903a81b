"""Database infrastructure helpers (engine, sessions, migrations)."""

from .base import Base
from .session import (
    AsyncSessionFactory,
    build_engine,
    build_session_factory,
    get_session,
    get_session_factory,
    init_db,
    session_scope,
)

__all__ = [
    "Base",
    "AsyncSessionFactory",
    "build_engine",
    "build_session_factory",
    "get_session",
    "get_session_factory",
    "init_db",
    "session_scope",
]
