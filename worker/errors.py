"""
Exception taxonomy for the crawl and extract pipelines.

- Fatal: bad input; the unit of work is failed without retry.
- Retryable: transient; the job is re-queued until CRAWL_MAX_RETRIES attempts.
- Store: the coordination store itself failed; the pool aborts.
- Lifecycle: the session is in the wrong state for the requested command.
"""

from __future__ import annotations


class CrawlerError(Exception):
    """Base class for errors raised by this project."""


class FatalJobError(CrawlerError):
    """A crawl job can never succeed (malformed URL, unknown page type)."""


class UnrecognizedUrlError(FatalJobError):
    """An href matches none of the known item URL patterns."""


class InvalidSessionIdError(CrawlerError):
    """A session identifier is not a UUID v4."""


class RetryableJobError(CrawlerError):
    """A crawl job failed for a transient reason and may be retried."""


class FetchError(RetryableJobError):
    """Network failure, timeout, or non-2xx response while fetching a page."""


class StoreError(CrawlerError):
    """The database failed; no further work can be coordinated."""


class SessionNotFoundError(CrawlerError):
    """No session with the given id exists."""


class SessionAlreadyCrawledError(CrawlerError):
    """The session finished crawling and cannot be resumed."""


class SessionNotCrawledError(CrawlerError):
    """Extraction was requested before the session finished crawling."""


class SessionConsistencyError(CrawlerError):
    """The session row changed underneath the pipeline."""


class ExtractionError(CrawlerError):
    """A stored page could not be turned into a classified record."""
