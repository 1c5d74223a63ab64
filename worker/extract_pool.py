"""
Extract worker pool.

Runs once a session is crawled. Each worker claims one unextracted item page
per transaction (SKIP LOCKED), extracts it, and writes either a classified row
or an extraction failure row before committing.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shared.config import AppConfig
from shared.db import get_db_session
from shared.logging import bind_request_context, get_logger, unbind_request_context
from shared.repository import CrawlRepository
from worker.db import store_transaction
from worker.errors import ExtractionError, SessionNotCrawledError, SessionNotFoundError, StoreError
from worker.extract import extract_classified

logger = get_logger(__name__)


@dataclass
class WorkerOutcome:
    extracted: int = 0
    error: Optional[str] = None


@dataclass
class ExtractStats:
    workers: int = 0
    extracted: int = 0
    failed_workers: int = 0

    def add(self, outcome: WorkerOutcome) -> None:
        self.extracted += outcome.extracted
        if outcome.error is not None:
            self.failed_workers += 1


async def _extract_next(repository: CrawlRepository, session_id: UUID) -> tuple[bool, Optional[str]]:
    """
    Claim and extract one page in the repository's transaction.

    Returns (claimed, error). error is set when extraction failed and a
    failure row was recorded instead of a classified row.
    """
    page = await repository.claim_next_unextracted_page(session_id)
    if page is None:
        return False, None

    bind_request_context(url=page["url"], page_type=page["page_type"])
    try:
        record = extract_classified(page["page_type"], page["content"], page["url"])
    except ExtractionError as e:
        # Postgres text cannot hold NUL.
        error = str(e).replace("\x00", "\\x00")
        logger.error("extract.page.failed", error=error)
        await repository.record_extraction_failure(session_id, page["url"], error)
        return True, error
    finally:
        unbind_request_context("url", "page_type")

    await repository.create_classified(session_id, page["url"], record.to_row())
    logger.debug("extract.page.completed", url=page["url"])
    return True, None


async def extract_worker(
    session_id: UUID,
    *,
    name: str,
    session_factory: async_sessionmaker[AsyncSession],
    semaphore: asyncio.Semaphore,
    config: AppConfig,
) -> WorkerOutcome:
    """
    Extract pages until none is left or one extraction fails.

    A failed extraction is committed (failure row) and ends this worker only.
    Raises StoreError on database failures other than pool-acquire timeouts.
    """
    bind_request_context(session_id=str(session_id), worker=name)
    outcome = WorkerOutcome()

    while True:
        try:
            async with semaphore:
                async with get_db_session(session_factory) as db_session:
                    claimed, error = await _extract_next(CrawlRepository(db_session), session_id)
        except PoolTimeoutError:
            logger.warning(
                "extract.pool.acquire_timeout",
                retry_in_seconds=config.crawl_idle_poll_seconds,
            )
            await asyncio.sleep(config.crawl_idle_poll_seconds)
            continue
        except SQLAlchemyError as e:
            logger.error("extract.worker.store_error", error=str(e), error_type=type(e).__name__)
            raise StoreError(f"Extraction aborted by database error: {e}") from e

        if not claimed:
            logger.info("extract.worker.drained", extracted=outcome.extracted)
            return outcome
        if error is not None:
            outcome.error = error
            logger.warning("extract.worker.exited", extracted=outcome.extracted, error=error)
            return outcome
        outcome.extracted += 1


async def extract(
    session_id: UUID,
    *,
    session_factory: async_sessionmaker[AsyncSession],
    config: AppConfig,
) -> ExtractStats:
    """
    Extract every crawled item page of a session.

    Raises:
        SessionNotFoundError: the session does not exist.
        SessionNotCrawledError: the session has not finished crawling.
        StoreError: a worker hit a database failure; siblings are cancelled.
    """
    bind_request_context(session_id=str(session_id))

    async with store_transaction(session_factory) as repository:
        session = await repository.get_session_by_id(session_id)
    if session is None:
        raise SessionNotFoundError(f"Session {session_id} not found")
    if session["crawled_at"] is None:
        raise SessionNotCrawledError(f"Session {session_id} has not finished crawling")

    semaphore = asyncio.Semaphore(config.extract_max_in_flight)
    tasks = [
        asyncio.create_task(
            extract_worker(
                session_id,
                name=f"extract-{i}",
                session_factory=session_factory,
                semaphore=semaphore,
                config=config,
            )
        )
        for i in range(config.extract_worker_count)
    ]
    logger.info(
        "extract.pool.started",
        workers=len(tasks),
        max_in_flight=config.extract_max_in_flight,
    )

    done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
    for task in done:
        if task.exception() is not None:
            for other in pending:
                other.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            raise task.exception()

    stats = ExtractStats(workers=len(tasks))
    for task in done:
        stats.add(task.result())

    logger.info(
        "extract.pool.completed",
        extracted=stats.extracted,
        failed_workers=stats.failed_workers,
    )
    return stats
