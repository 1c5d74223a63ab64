"""
Integration tests for CrawlRepository against PostgreSQL.

Covers idempotent enqueue and page persistence, lock-skipping claims with
concurrent claimers, deferred jobs, and the extraction claim. Skipped when
TEST_DATABASE_URL is unreachable.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from shared.db import get_db_session
from shared.repository import CrawlRepository

OLX_ITEM = "https://www.olx.ro/d/oferta/a-ID1.html"


async def _new_session(session_factory) -> dict:
    async with get_db_session(session_factory) as db_session:
        return await CrawlRepository(db_session).create_session()


@pytest.mark.asyncio
async def test_create_session_generates_uuid4(session_factory):
    session = await _new_session(session_factory)

    assert session["id"].version == 4
    assert session["crawled_at"] is None
    assert session["created_at"] is not None


@pytest.mark.asyncio
async def test_enqueue_is_idempotent(session_factory):
    session = await _new_session(session_factory)

    async with get_db_session(session_factory) as db_session:
        repository = CrawlRepository(db_session)
        assert await repository.enqueue_job(session["id"], OLX_ITEM, "olx_item") is True
        assert await repository.enqueue_job(session["id"], OLX_ITEM, "olx_item") is False

    async with get_db_session(session_factory) as db_session:
        jobs = await CrawlRepository(db_session).get_jobs_by_session_id(session["id"])

    assert len(jobs) == 1
    assert jobs[0]["status"] == "new"
    assert jobs[0]["retries"] == []


@pytest.mark.asyncio
async def test_save_page_keeps_first_content(session_factory):
    session = await _new_session(session_factory)

    async with get_db_session(session_factory) as db_session:
        repository = CrawlRepository(db_session)
        assert await repository.save_page(session["id"], OLX_ITEM, "olx_item", "<html>first</html>") is True
        assert await repository.save_page(session["id"], OLX_ITEM, "olx_item", "<html>second</html>") is False

    async with get_db_session(session_factory) as db_session:
        stored = await CrawlRepository(db_session).get_pages_by_session_id(session["id"])

    assert [page["content"] for page in stored] == ["<html>first</html>"]


@pytest.mark.asyncio
async def test_concurrent_claimers_get_one_row_at_most_once(session_factory):
    session = await _new_session(session_factory)
    async with get_db_session(session_factory) as db_session:
        await CrawlRepository(db_session).enqueue_job(session["id"], OLX_ITEM, "olx_item")

    all_claimed = asyncio.Event()
    claimers = 5
    arrived = 0

    async def claimer():
        nonlocal arrived
        async with get_db_session(session_factory) as db_session:
            job = await CrawlRepository(db_session).claim_next_job(session["id"])
            arrived += 1
            if arrived == claimers:
                all_claimed.set()
            # Hold the row lock until every claimer has tried.
            await asyncio.wait_for(all_claimed.wait(), timeout=10)
            return job

    results = await asyncio.gather(*(claimer() for _ in range(claimers)))

    claimed = [job for job in results if job is not None]
    assert len(claimed) == 1
    assert claimed[0]["url"] == OLX_ITEM


@pytest.mark.asyncio
async def test_locked_row_is_skipped_not_waited_on(session_factory):
    session = await _new_session(session_factory)
    async with get_db_session(session_factory) as db_session:
        repository = CrawlRepository(db_session)
        await repository.enqueue_job(session["id"], OLX_ITEM, "olx_item")
        await repository.enqueue_job(session["id"], OLX_ITEM + "?b", "olx_item")

    async with get_db_session(session_factory) as first, get_db_session(session_factory) as second:
        job_a = await CrawlRepository(first).claim_next_job(session["id"])
        job_b = await CrawlRepository(second).claim_next_job(session["id"])

    assert {job_a["url"], job_b["url"]} == {OLX_ITEM, OLX_ITEM + "?b"}


@pytest.mark.asyncio
async def test_deferred_job_is_not_claimable_but_keeps_queue_pending(session_factory):
    session = await _new_session(session_factory)
    later = datetime.now(timezone.utc) + timedelta(hours=1)

    async with get_db_session(session_factory) as db_session:
        repository = CrawlRepository(db_session)
        await repository.enqueue_job(session["id"], OLX_ITEM, "olx_item")
        await repository.mark_job_retrying(session["id"], OLX_ITEM, error="503", not_before=later)

    async with get_db_session(session_factory) as db_session:
        repository = CrawlRepository(db_session)
        assert await repository.claim_next_job(session["id"]) is None
        next_not_before = await repository.next_pending_not_before(session["id"])

    assert abs((next_not_before - later).total_seconds()) < 1


@pytest.mark.asyncio
async def test_retry_history_appends_and_failure_resolves(session_factory):
    session = await _new_session(session_factory)
    now = datetime.now(timezone.utc)

    async with get_db_session(session_factory) as db_session:
        repository = CrawlRepository(db_session)
        await repository.enqueue_job(session["id"], OLX_ITEM, "olx_item")
        await repository.mark_job_retrying(session["id"], OLX_ITEM, error="first", not_before=now)
        await repository.mark_job_retrying(session["id"], OLX_ITEM, error="second", not_before=now)
        await repository.mark_job_failed(session["id"], OLX_ITEM, error="third")

    async with get_db_session(session_factory) as db_session:
        repository = CrawlRepository(db_session)
        [job] = await repository.get_jobs_by_session_id(session["id"])
        assert await repository.next_pending_not_before(session["id"]) is None

    assert job["status"] == "failed"
    assert job["retries"] == ["first", "second"]
    assert job["failure_error"] == "third"


@pytest.mark.asyncio
async def test_mark_session_crawled_only_once(session_factory):
    session = await _new_session(session_factory)

    async with get_db_session(session_factory) as db_session:
        repository = CrawlRepository(db_session)
        assert await repository.mark_session_crawled(session["id"]) == 1
        assert await repository.mark_session_crawled(session["id"]) == 0


@pytest.mark.asyncio
async def test_unextracted_page_claim_skips_done_and_failed_pages(session_factory):
    session = await _new_session(session_factory)
    urls = [f"https://www.olx.ro/d/oferta/item-ID{i}.html" for i in range(3)]

    async with get_db_session(session_factory) as db_session:
        repository = CrawlRepository(db_session)
        await repository.save_page(session["id"], "https://www.olx.ro/d/imobiliare/", "list", "<html/>")
        for url in urls:
            await repository.save_page(session["id"], url, "olx_item", "<html/>")
        await repository.create_classified(
            session["id"],
            urls[0],
            {
                "title": "Apartament",
                "price": 300.0,
                "seller_name": "Ion",
                "seller_type": "private",
                "published_at": datetime(2023, 5, 1, tzinfo=timezone.utc),
                "property_type": "apartment",
            },
        )
        await repository.record_extraction_failure(session["id"], urls[1], "bad json")

    async with get_db_session(session_factory) as db_session:
        page = await CrawlRepository(db_session).claim_next_unextracted_page(session["id"])

    assert page is not None
    assert page["url"] == urls[2]


@pytest.mark.asyncio
async def test_list_sessions_reports_counts(session_factory):
    session = await _new_session(session_factory)
    async with get_db_session(session_factory) as db_session:
        repository = CrawlRepository(db_session)
        await repository.enqueue_job(session["id"], OLX_ITEM, "olx_item")
        await repository.enqueue_job(session["id"], OLX_ITEM + "?b", "olx_item")
        await repository.mark_job_completed(session["id"], OLX_ITEM)
        await repository.save_page(session["id"], OLX_ITEM, "olx_item", "<html/>")

    async with get_db_session(session_factory) as db_session:
        [row] = await CrawlRepository(db_session).list_sessions()

    assert row["id"] == session["id"]
    assert row["jobs_new"] == 1
    assert row["jobs_completed"] == 1
    assert row["jobs_failed"] == 0
    assert row["pages"] == 1
    assert row["classifieds"] == 0
