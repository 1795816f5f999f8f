"""
Async SQLAlchemy engine + session factory.

The engine and factory are built by the process entry point (FastAPI startup
or the CLI) and kept on ``app.state``; nothing here is created at import time.
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import Request
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from storefront.config import Settings


def build_engine(settings: Settings) -> AsyncEngine:
    kwargs = {"pool_pre_ping": True, "echo": False}
    if not settings.database_url.startswith("sqlite"):
        kwargs.update(pool_size=10, max_overflow=20)
    return create_async_engine(settings.database_url, **kwargs)


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@asynccontextmanager
async def get_db_ctx(
    factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """
    Session scope used by the CLI and by ``get_db``: commits when the block
    exits cleanly, rolls back and re-raises otherwise.
    """
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency over the factory published on ``app.state``."""
    async with get_db_ctx(request.app.state.session_factory) as session:
        yield session
