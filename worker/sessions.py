"""
Session lifecycle: start or resume a crawl, mark it crawled, list sessions.

A session is created together with its seed list job in one transaction,
drained by the crawl pool, and then marked crawled, which opens it for
extraction. A crawled session is never resumed.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shared.config import AppConfig
from shared.logging import bind_request_context, get_logger
from worker.constants import PageType
from worker.crawl_pool import CrawlStats, process_jobs
from worker.db import store_transaction
from worker.errors import (
    InvalidSessionIdError,
    SessionAlreadyCrawledError,
    SessionConsistencyError,
    SessionNotFoundError,
)
from worker.fetcher import Fetcher

logger = get_logger(__name__)


def parse_session_id(value: str) -> UUID:
    """Parse a session id; only UUID version 4 strings are accepted."""
    try:
        parsed = UUID(value.strip())
    except (ValueError, AttributeError):
        raise InvalidSessionIdError(f"Session id is not a UUID: {value!r}") from None
    if parsed.version != 4:
        raise InvalidSessionIdError(f"Session id is not a UUID v4: {value!r}")
    return parsed


async def start_or_resume(
    existing_id: Optional[UUID],
    *,
    session_factory: async_sessionmaker[AsyncSession],
    config: AppConfig,
) -> dict:
    """
    Load an unfinished session, or create a new one seeded with the list page.

    Raises:
        SessionNotFoundError: existing_id does not exist.
        SessionAlreadyCrawledError: existing_id finished crawling already.
    """
    async with store_transaction(session_factory) as repository:
        if existing_id is not None:
            session = await repository.get_session_by_id(existing_id)
            if session is None:
                raise SessionNotFoundError(f"Session {existing_id} not found")
            if session["crawled_at"] is not None:
                raise SessionAlreadyCrawledError(
                    f"Session {existing_id} was already crawled at {session['crawled_at'].isoformat()}"
                )
            bind_request_context(session_id=str(existing_id))
            logger.info("session.resumed")
            return session

        session = await repository.create_session()
        await repository.enqueue_job(session["id"], config.list_page_url, PageType.LIST.value)

    bind_request_context(session_id=str(session["id"]))
    logger.info("session.created", list_page_url=config.list_page_url)
    return session


async def mark_crawled(
    session_id: UUID,
    *,
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    """Set crawled_at once; a session that is missing or already marked is an error."""
    async with store_transaction(session_factory) as repository:
        updated = await repository.mark_session_crawled(session_id)
        if updated == 0:
            raise SessionConsistencyError(
                f"Session {session_id} could not be marked crawled (missing or already marked)"
            )
    logger.info("session.crawled")


async def crawl(
    existing_id: Optional[UUID],
    *,
    session_factory: async_sessionmaker[AsyncSession],
    fetcher: Fetcher,
    config: AppConfig,
) -> tuple[dict, CrawlStats]:
    """
    Start or resume a session, drain its queue, and mark it crawled.

    A StoreError from the pool propagates and leaves crawled_at unset, so the
    session can be resumed later.
    """
    session = await start_or_resume(existing_id, session_factory=session_factory, config=config)
    stats = await process_jobs(
        session["id"],
        session_factory=session_factory,
        fetcher=fetcher,
        config=config,
    )
    await mark_crawled(session["id"], session_factory=session_factory)
    return session, stats


async def list_sessions(
    *,
    session_factory: async_sessionmaker[AsyncSession],
) -> list[dict]:
    async with store_transaction(session_factory) as repository:
        return await repository.list_sessions()


def format_session_row(row: Mapping[str, Any]) -> str:
    """One line per session: id | created_at | crawled_at or - | queue | pages | classifieds | failures."""
    crawled_at = row["crawled_at"].isoformat() if row["crawled_at"] is not None else "-"
    queue = (
        f"new={row['jobs_new']} retrying={row['jobs_retrying']} "
        f"completed={row['jobs_completed']} failed={row['jobs_failed']}"
    )
    return " | ".join(
        [
            str(row["id"]),
            row["created_at"].isoformat(),
            crawled_at,
            queue,
            f"pages={row['pages']}",
            f"classifieds={row['classifieds']}",
            f"failures={row['extraction_failures']}",
        ]
    )
