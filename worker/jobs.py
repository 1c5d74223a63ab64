"""
Crawl job handlers.

`run_job` does the work for one claimed queue row (fetch, discover, persist);
`process_job` wraps it and resolves the row's status in the caller's
transaction. Retryable and fatal job errors end here as queue state. Database
errors propagate so the pool can abort.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Mapping

from shared.config import AppConfig
from shared.logging import get_logger
from shared.repository import CrawlRepository
from worker.constants import JobStatus, PageType
from worker.errors import FatalJobError, RetryableJobError
from worker.fetcher import Fetcher
from worker.listing import discover_follow_ups
from worker.urls import validate_job_url

logger = get_logger(__name__)


def retry_delay_seconds(attempt: int, base_seconds: float) -> float:
    """Exponential backoff: base, 2*base, 4*base, ... for attempts 1, 2, 3, ..."""
    return base_seconds * 2 ** (attempt - 1)


def _page_type_of(job: Mapping[str, Any]) -> PageType:
    try:
        return PageType(job["page_type"])
    except ValueError:
        raise FatalJobError(f"Unknown page type {job['page_type']!r}") from None


async def run_job(
    repository: CrawlRepository,
    job: Mapping[str, Any],
    fetcher: Fetcher,
    config: AppConfig,
) -> int:
    """
    Fetch one queued page and persist what it yields.

    List pages enqueue their follow-ups (next list page, item pages) and are
    stored according to config.list_page_persistence. Item pages are stored.

    Returns the number of newly enqueued follow-up jobs.
    """
    session_id = job["session_id"]
    url = validate_job_url(job["url"])
    page_type = _page_type_of(job)

    content = await fetcher.fetch(url)
    # Postgres text columns cannot store NUL.
    if "\x00" in content:
        raise FatalJobError(f"Response body for {url} contains NUL characters")

    if page_type is PageType.LIST:
        follow_ups = discover_follow_ups(content)
        enqueued = 0
        for follow_up_url, follow_up_type in follow_ups:
            if await repository.enqueue_job(session_id, follow_up_url, follow_up_type.value):
                enqueued += 1
        if config.list_page_persistence == "always" or follow_ups:
            await repository.save_page(session_id, url, page_type.value, content)
        logger.info(
            "crawl.list.discovered",
            discovered=len(follow_ups),
            enqueued=enqueued,
        )
        return enqueued

    await repository.save_page(session_id, url, page_type.value, content)
    return 0


async def process_job(
    repository: CrawlRepository,
    job: Mapping[str, Any],
    fetcher: Fetcher,
    config: AppConfig,
) -> JobStatus:
    """
    Run one claimed job and record its outcome on the queue row.

    - success: completed
    - FatalJobError: failed, no retry
    - RetryableJobError: retrying with backoff, or failed once the attempt
      count reaches config.crawl_max_retries

    The caller commits; the status update lands in the claim's transaction.
    """
    session_id = job["session_id"]
    url = job["url"]
    attempt = len(job.get("retries") or []) + 1

    try:
        await run_job(repository, job, fetcher, config)
    except FatalJobError as e:
        logger.error("crawl.job.failed", attempt=attempt, error=str(e), retryable=False)
        await repository.mark_job_failed(session_id, url, error=str(e))
        return JobStatus.FAILED
    except RetryableJobError as e:
        if attempt >= config.crawl_max_retries:
            logger.error("crawl.job.failed", attempt=attempt, error=str(e), retryable=True)
            await repository.mark_job_failed(session_id, url, error=str(e))
            return JobStatus.FAILED

        delay = retry_delay_seconds(attempt, config.crawl_retry_backoff_seconds)
        not_before = datetime.now(timezone.utc) + timedelta(seconds=delay)
        logger.warning(
            "crawl.job.retrying",
            attempt=attempt,
            error=str(e),
            retry_in_seconds=delay,
        )
        await repository.mark_job_retrying(session_id, url, error=str(e), not_before=not_before)
        return JobStatus.RETRYING

    await repository.mark_job_completed(session_id, url)
    logger.info("crawl.job.completed", attempt=attempt)
    return JobStatus.COMPLETED
