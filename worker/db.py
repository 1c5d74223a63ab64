"""
Transaction helper for the worker commands.

Wraps shared.db.get_db_session so that database failures surface as
StoreError, which the CLI reports as a startup/abort error.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shared.db import get_db_session
from shared.repository import CrawlRepository
from worker.errors import StoreError


@asynccontextmanager
async def store_transaction(
    factory: Optional[async_sessionmaker[AsyncSession]] = None,
) -> AsyncIterator[CrawlRepository]:
    """
    Yield a repository bound to one transaction; SQLAlchemy errors become StoreError.

    Usage:
        async with store_transaction(factory) as repository:
            await repository.create_session()
    """
    try:
        async with get_db_session(factory) as db_session:
            yield CrawlRepository(db_session)
    except SQLAlchemyError as e:
        raise StoreError(f"Database error: {type(e).__name__}: {e}") from e


__all__ = ["store_transaction"]
