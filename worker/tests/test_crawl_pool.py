"""
Unit tests for the crawl worker loop: draining, waiting on deferred jobs,
pool-acquire timeouts, and store errors. The database is mocked.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from shared.repository import CrawlRepository
from worker.constants import JobStatus
from worker.crawl_pool import CrawlStats, process_jobs
from worker.errors import StoreError


@asynccontextmanager
async def _fake_db_session(factory=None):
    yield MagicMock()


def _job() -> dict:
    return {
        "session_id": uuid4(),
        "url": "https://www.olx.ro/d/oferta/a-ID1.html",
        "page_type": "olx_item",
        "retries": [],
    }


async def _run(repository, make_config, process_job=None):
    process_job = process_job or AsyncMock(return_value=JobStatus.COMPLETED)
    with patch("worker.crawl_pool.get_db_session", _fake_db_session), \
         patch("worker.crawl_pool.CrawlRepository", return_value=repository), \
         patch("worker.crawl_pool.process_job", process_job):
        return await process_jobs(
            uuid4(),
            session_factory=MagicMock(),
            fetcher=AsyncMock(),
            config=make_config(crawl_idle_poll_seconds=0.0),
        )


@pytest.mark.asyncio
async def test_drains_claimable_jobs_and_returns_stats(make_config):
    repository = AsyncMock(spec=CrawlRepository)
    repository.claim_next_job.side_effect = [_job(), _job(), _job(), None]
    repository.next_pending_not_before.return_value = None
    outcomes = AsyncMock(side_effect=[JobStatus.COMPLETED, JobStatus.RETRYING, JobStatus.FAILED])

    stats = await _run(repository, make_config, process_job=outcomes)

    assert stats == CrawlStats(completed=1, retrying=1, failed=1)
    assert stats.processed == 3
    repository.next_pending_not_before.assert_awaited_once()


@pytest.mark.asyncio
async def test_waits_for_deferred_jobs_before_draining(make_config):
    repository = AsyncMock(spec=CrawlRepository)
    repository.claim_next_job.side_effect = [None, _job(), None]
    repository.next_pending_not_before.side_effect = [
        datetime.now(timezone.utc) - timedelta(seconds=1),
        None,
    ]

    stats = await _run(repository, make_config)

    assert stats.completed == 1
    assert repository.next_pending_not_before.await_count == 2


@pytest.mark.asyncio
async def test_pool_acquire_timeout_is_retried(make_config):
    repository = AsyncMock(spec=CrawlRepository)
    repository.claim_next_job.side_effect = [PoolTimeoutError("QueuePool limit reached"), _job(), None]
    repository.next_pending_not_before.return_value = None

    stats = await _run(repository, make_config)

    assert stats.pool_timeouts == 1
    assert stats.completed == 1


@pytest.mark.asyncio
async def test_database_error_aborts_with_store_error(make_config):
    repository = AsyncMock(spec=CrawlRepository)
    repository.claim_next_job.side_effect = OperationalError("SELECT", {}, Exception("server closed"))

    with pytest.raises(StoreError, match="server closed"):
        await _run(repository, make_config)


@pytest.mark.asyncio
async def test_empty_queue_returns_immediately(make_config):
    repository = AsyncMock(spec=CrawlRepository)
    repository.claim_next_job.return_value = None
    repository.next_pending_not_before.return_value = None
    process_job = AsyncMock()

    stats = await _run(repository, make_config, process_job=process_job)

    assert stats.processed == 0
    process_job.assert_not_awaited()
