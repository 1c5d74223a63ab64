"""
Crawl worker loop over the Postgres job queue.

Each iteration is one transaction: claim a due job with SKIP LOCKED, process
it, commit. Several loops may drain the same session concurrently; the row
lock keeps each job with exactly one worker.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shared.config import AppConfig
from shared.db import get_db_session
from shared.logging import bind_request_context, get_logger, unbind_request_context
from shared.repository import CrawlRepository
from worker.constants import JobStatus
from worker.errors import StoreError
from worker.fetcher import Fetcher
from worker.jobs import process_job

logger = get_logger(__name__)


@dataclass
class CrawlStats:
    completed: int = 0
    retrying: int = 0
    failed: int = 0
    pool_timeouts: int = 0

    def record(self, status: JobStatus) -> None:
        if status is JobStatus.COMPLETED:
            self.completed += 1
        elif status is JobStatus.RETRYING:
            self.retrying += 1
        elif status is JobStatus.FAILED:
            self.failed += 1

    @property
    def processed(self) -> int:
        return self.completed + self.retrying + self.failed


def _idle_delay_seconds(next_not_before: datetime, poll_seconds: float) -> float:
    """Seconds to wait before the earliest deferred job is due, at least one poll interval."""
    remaining = (next_not_before - datetime.now(timezone.utc)).total_seconds()
    return max(remaining, poll_seconds)


async def process_jobs(
    session_id: UUID,
    *,
    session_factory: async_sessionmaker[AsyncSession],
    fetcher: Fetcher,
    config: AppConfig,
    worker: str = "crawl-0",
) -> CrawlStats:
    """
    Drain the session's queue and return what was done.

    Returns once no job is in new/retrying state. While jobs remain but none
    is due (deferred by backoff, or held by a sibling worker) the loop sleeps
    and polls again.

    Raises:
        StoreError: on any database failure other than a pool-acquire timeout.
    """
    stats = CrawlStats()
    bind_request_context(session_id=str(session_id), worker=worker)
    logger.info("crawl.worker.started")

    while True:
        status: Optional[JobStatus] = None
        next_not_before: Optional[datetime] = None
        try:
            async with get_db_session(session_factory) as db_session:
                repository = CrawlRepository(db_session)
                job = await repository.claim_next_job(session_id)
                if job is None:
                    next_not_before = await repository.next_pending_not_before(session_id)
                else:
                    bind_request_context(url=job["url"], page_type=job["page_type"])
                    try:
                        status = await process_job(repository, job, fetcher, config)
                    finally:
                        unbind_request_context("url", "page_type")
        except PoolTimeoutError:
            stats.pool_timeouts += 1
            logger.warning(
                "crawl.pool.acquire_timeout",
                retry_in_seconds=config.crawl_idle_poll_seconds,
            )
            await asyncio.sleep(config.crawl_idle_poll_seconds)
            continue
        except SQLAlchemyError as e:
            logger.error("crawl.worker.store_error", error=str(e), error_type=type(e).__name__)
            raise StoreError(f"Crawl aborted by database error: {e}") from e

        if status is not None:
            stats.record(status)
            continue

        if next_not_before is None:
            break

        delay = _idle_delay_seconds(next_not_before, config.crawl_idle_poll_seconds)
        logger.debug("crawl.worker.waiting", wait_seconds=round(delay, 3))
        await asyncio.sleep(delay)

    logger.info(
        "crawl.worker.drained",
        completed=stats.completed,
        retrying=stats.retrying,
        failed=stats.failed,
    )
    return stats
