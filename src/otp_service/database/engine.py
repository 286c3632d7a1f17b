"""Database engine and async session factory."""

from __future__ import annotations

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from otp_service.models.otp import Base


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine for *database_url*.

    In-memory SQLite lives inside a single connection, so every session has
    to share it.
    """
    if database_url.startswith("sqlite") and _is_memory_url(database_url):
        return create_async_engine(
            database_url,
            echo=echo,
            poolclass=StaticPool,
        )
    return create_async_engine(database_url, echo=echo)


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


async def init_db(engine: AsyncEngine) -> None:
    """Create all tables that don't yet exist."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def _is_memory_url(database_url: str) -> bool:
    _, _, path = database_url.partition("://")
    return path in ("", "/", "/:memory:") or ":memory:" in path
