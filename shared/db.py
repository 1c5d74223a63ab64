"""
Async database engine and transaction management.

One process-wide SQLAlchemy `AsyncEngine` (psycopg driver) backs every
worker task. Each unit of work runs inside `get_db_session()`, which commits
on success and rolls back on error, so row locks taken by a claim are always
released when the transaction ends.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from shared.config import AppConfig, get_config

# Global engine and session factory (initialized on first use).
_engine: Optional[AsyncEngine] = None
_SessionLocal: Optional[async_sessionmaker[AsyncSession]] = None


def create_engine_from_config(config: AppConfig) -> AsyncEngine:
    """Build an async engine with the pool limits from config."""
    if not config.database_url:
        raise ValueError(
            "DATABASE_URL environment variable is required. "
            "Set it to a PostgreSQL connection string."
        )
    return create_async_engine(
        config.database_url,
        pool_pre_ping=True,
        pool_size=config.db_pool_size,
        pool_timeout=config.db_pool_acquire_timeout_seconds,
        echo=False,
    )


def get_engine() -> AsyncEngine:
    """Get or create the process-wide engine."""
    global _engine
    if _engine is None:
        _engine = create_engine_from_config(get_config())
    return _engine


def make_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        autoflush=False,
        expire_on_commit=False,
    )


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get or create the session factory bound to the global engine."""
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = make_session_factory(get_engine())
    return _SessionLocal


@asynccontextmanager
async def get_db_session(
    factory: Optional[async_sessionmaker[AsyncSession]] = None,
) -> AsyncIterator[AsyncSession]:
    """
    Async context manager for one transaction.

    Usage:
        async with get_db_session(factory) as session:
            repository = CrawlRepository(session)
            ...
    """
    session = (factory or get_session_factory())()
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()

