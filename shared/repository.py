"""
Repository for session, crawl queue, page, and classified data access.

This module provides low-level database access using SQLAlchemy Core tables,
keeping the worker pools clean and testable. Every method runs inside the
caller's transaction; nothing here commits. Rows are returned as plain dicts
keyed by column name.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping, Optional
from uuid import UUID, uuid4

from sqlalchemy import and_, exists, func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from shared.schema import classifieds, crawler_queue, extraction_failures, pages, sessions

CLAIMABLE_STATUSES = ("new", "retrying")
ITEM_PAGE_TYPES = ("olx_item", "storia_item")


class CrawlRepository:
    """Repository for crawl pipeline database operations."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.sessions_table = sessions
        self.queue_table = crawler_queue
        self.pages_table = pages
        self.classifieds_table = classifieds
        self.failures_table = extraction_failures

    # --- sessions ---

    async def create_session(self) -> dict:
        """
        Insert a new session with a random uuid4 id.

        Returns the created session as a dict.
        """
        session_id = uuid4()
        stmt = (
            self.sessions_table.insert()
            .values(id=session_id)
            .returning(*self.sessions_table.c)
        )
        row = (await self.session.execute(stmt)).one()
        return dict(row._mapping)

    async def get_session_by_id(self, session_id: UUID) -> Optional[dict]:
        """
        Get a session by ID.

        Returns the session as a dict, or None if not found.
        """
        stmt = select(self.sessions_table).where(self.sessions_table.c.id == session_id)
        result = (await self.session.execute(stmt)).first()
        if result is None:
            return None
        return dict(result._mapping)

    async def mark_session_crawled(self, session_id: UUID) -> int:
        """
        Set crawled_at on a session that has not been marked yet.

        Returns the number of affected rows (0 if the session is gone or was
        already marked).
        """
        t = self.sessions_table
        stmt = (
            t.update()
            .where(t.c.id == session_id, t.c.crawled_at.is_(None))
            .values(crawled_at=func.now())
        )
        result = await self.session.execute(stmt)
        return result.rowcount

    async def list_sessions(self) -> list[dict]:
        """
        List every session with queue, page, and extraction counts.

        Ordered by created_at. Each dict has the session columns plus
        jobs_new, jobs_retrying, jobs_completed, jobs_failed, pages,
        classifieds, extraction_failures.
        """
        s = self.sessions_table
        q = self.queue_table

        def _job_count(status: str):
            return (
                select(func.count())
                .select_from(q)
                .where(q.c.session_id == s.c.id, q.c.status == status)
                .scalar_subquery()
            )

        def _row_count(table):
            return (
                select(func.count())
                .select_from(table)
                .where(table.c.session_id == s.c.id)
                .scalar_subquery()
            )

        stmt = select(
            s,
            _job_count("new").label("jobs_new"),
            _job_count("retrying").label("jobs_retrying"),
            _job_count("completed").label("jobs_completed"),
            _job_count("failed").label("jobs_failed"),
            _row_count(self.pages_table).label("pages"),
            _row_count(self.classifieds_table).label("classifieds"),
            _row_count(self.failures_table).label("extraction_failures"),
        ).order_by(s.c.created_at.asc())
        results = (await self.session.execute(stmt)).all()
        return [dict(row._mapping) for row in results]

    # --- crawl queue ---

    async def enqueue_job(self, session_id: UUID, url: str, page_type: str) -> bool:
        """
        Add a job to the crawl queue unless (session_id, url) already exists.

        Returns True if a row was inserted, False on conflict.
        """
        stmt = (
            pg_insert(self.queue_table)
            .values(session_id=session_id, url=url, page_type=page_type)
            .on_conflict_do_nothing(index_elements=["session_id", "url"])
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def claim_next_job(self, session_id: UUID) -> Optional[dict]:
        """
        Lock one due job of the session for the rest of the transaction.

        Selects a row in status new/retrying whose not_before has passed,
        skipping rows locked by other transactions. Returns None when no row
        is eligible.
        """
        q = self.queue_table
        stmt = (
            select(q)
            .where(
                q.c.session_id == session_id,
                q.c.status.in_(CLAIMABLE_STATUSES),
                q.c.not_before <= func.now(),
            )
            .order_by(q.c.added_at.asc())
            .limit(1)
            .with_for_update(skip_locked=True)
        )
        result = (await self.session.execute(stmt)).first()
        if result is None:
            return None
        return dict(result._mapping)

    async def next_pending_not_before(self, session_id: UUID) -> Optional[datetime]:
        """
        Earliest not_before among the session's unresolved jobs.

        Includes rows currently locked by other workers. None means the
        queue is drained.
        """
        q = self.queue_table
        stmt = select(func.min(q.c.not_before)).where(
            q.c.session_id == session_id,
            q.c.status.in_(CLAIMABLE_STATUSES),
        )
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def mark_job_completed(self, session_id: UUID, url: str) -> None:
        await self._update_job(session_id, url, status="completed")

    async def mark_job_retrying(
        self,
        session_id: UUID,
        url: str,
        *,
        error: str,
        not_before: datetime,
    ) -> None:
        """Append error to the retry history and defer the job until not_before."""
        await self._update_job(
            session_id,
            url,
            status="retrying",
            retries=func.array_append(self.queue_table.c.retries, error),
            not_before=not_before,
        )

    async def mark_job_failed(self, session_id: UUID, url: str, *, error: str) -> None:
        await self._update_job(session_id, url, status="failed", failure_error=error)

    async def _update_job(self, session_id: UUID, url: str, **values: Any) -> None:
        q = self.queue_table
        stmt = q.update().where(q.c.session_id == session_id, q.c.url == url).values(**values)
        await self.session.execute(stmt)

    async def get_jobs_by_session_id(self, session_id: UUID) -> list[dict]:
        """Get all queue rows for a session, oldest first."""
        q = self.queue_table
        stmt = select(q).where(q.c.session_id == session_id).order_by(q.c.added_at, q.c.url)
        results = (await self.session.execute(stmt)).all()
        return [dict(row._mapping) for row in results]

    # --- pages ---

    async def save_page(
        self,
        session_id: UUID,
        url: str,
        page_type: str,
        content: str,
    ) -> bool:
        """
        Store raw page content once per (session_id, url).

        A conflicting insert is a no-op and keeps the first content.
        Returns True if a row was inserted.
        """
        stmt = (
            pg_insert(self.pages_table)
            .values(session_id=session_id, url=url, page_type=page_type, content=content)
            .on_conflict_do_nothing(index_elements=["session_id", "url"])
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def get_pages_by_session_id(self, session_id: UUID) -> list[dict]:
        p = self.pages_table
        stmt = select(p).where(p.c.session_id == session_id).order_by(p.c.crawled_at, p.c.url)
        results = (await self.session.execute(stmt)).all()
        return [dict(row._mapping) for row in results]

    async def claim_next_unextracted_page(self, session_id: UUID) -> Optional[dict]:
        """
        Lock one item page of the session that still needs extraction.

        Skips pages that already have a classified row or a recorded
        extraction failure, and pages locked by other workers.
        """
        p = self.pages_table
        c = self.classifieds_table
        f = self.failures_table
        stmt = (
            select(p)
            .where(
                p.c.session_id == session_id,
                p.c.page_type.in_(ITEM_PAGE_TYPES),
                ~exists().where(and_(c.c.session_id == p.c.session_id, c.c.url == p.c.url)),
                ~exists().where(and_(f.c.session_id == p.c.session_id, f.c.url == p.c.url)),
            )
            .limit(1)
            .with_for_update(of=p, skip_locked=True)
        )
        result = (await self.session.execute(stmt)).first()
        if result is None:
            return None
        return dict(result._mapping)

    # --- classifieds ---

    async def create_classified(
        self,
        session_id: UUID,
        url: str,
        attributes: Mapping[str, Any],
        *,
        revision: int = 1,
    ) -> None:
        """Insert a classified row with extracted_at = now()."""
        stmt = self.classifieds_table.insert().values(
            session_id=session_id,
            url=url,
            revision=revision,
            extracted_at=func.now(),
            **attributes,
        )
        await self.session.execute(stmt)

    async def get_classifieds_by_session_id(self, session_id: UUID) -> list[dict]:
        c = self.classifieds_table
        stmt = select(c).where(c.c.session_id == session_id).order_by(c.c.url)
        results = (await self.session.execute(stmt)).all()
        return [dict(row._mapping) for row in results]

    async def record_extraction_failure(self, session_id: UUID, url: str, error: str) -> None:
        """Record a failed extraction so the page is not claimed again."""
        stmt = (
            pg_insert(self.failures_table)
            .values(session_id=session_id, url=url, error=error)
            .on_conflict_do_nothing(index_elements=["session_id", "url"])
        )
        await self.session.execute(stmt)

    async def get_extraction_failures_by_session_id(self, session_id: UUID) -> list[dict]:
        f = self.failures_table
        stmt = select(f).where(f.c.session_id == session_id).order_by(f.c.url)
        results = (await self.session.execute(stmt)).all()
        return [dict(row._mapping) for row in results]
