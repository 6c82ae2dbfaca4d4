"""Database engine and async session factory."""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from merchant_auth.config import Settings
from merchant_auth.models.account import Base


def build_engine(
    settings: Settings,
) -> tuple[AsyncEngine, async_sessionmaker]:
    """Create an engine and session factory for *settings.database_url*.

    In-memory SQLite URLs get a ``StaticPool`` so every session sees the
    same database.
    """
    kwargs: dict = {"echo": False}
    if settings.database_url.startswith("sqlite") and (
        ":memory:" in settings.database_url
        or settings.database_url.rstrip("/").endswith("sqlite+aiosqlite:")
    ):
        kwargs["poolclass"] = StaticPool
    engine = create_async_engine(settings.database_url, **kwargs)
    return engine, async_sessionmaker(engine, expire_on_commit=False)


async def init_db(engine: AsyncEngine) -> None:
    """Create all tables that don't yet exist."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
