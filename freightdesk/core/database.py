# ============================================================================
# core/database.py - Async Engine, Sessions and Declarative Base
# ============================================================================

from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

from freightdesk.core.config import settings


class Base(DeclarativeBase):
    # Fetch server-side timestamps on INSERT/UPDATE; async sessions cannot lazy load them
    __mapper_args__ = {"eager_defaults": True}


engine = create_async_engine(settings.DATABASE_URL, echo=settings.DATABASE_ECHO)
async_session_maker = async_sessionmaker(engine, expire_on_commit=False)


async def get_db() -> AsyncIterator[AsyncSession]:
    async with async_session_maker() as session:
        yield session


async def init_db():
    # Import models so every table is registered on Base.metadata
    from freightdesk.models import claim_request, invoice, truck, user, vehicle_condition  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@asynccontextmanager
async def worker_session() -> AsyncIterator[AsyncSession]:
    """Session for Celery workers.

    Each task runs in its own event loop (asyncio.run), so pooled asyncpg
    connections cannot be reused between tasks.
    """
    worker_engine = create_async_engine(settings.DATABASE_URL, poolclass=NullPool)
    session_maker = async_sessionmaker(worker_engine, expire_on_commit=False)
    try:
        async with session_maker() as session:
            yield session
    finally:
        await worker_engine.dispose()
