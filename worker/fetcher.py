"""
Async HTTP fetcher for list and item pages.

One `httpx.AsyncClient` is shared by every job of a crawl. Any transport
error, timeout, or non-2xx status is surfaced as FetchError, which the crawl
pool treats as retryable. A URL httpx refuses to build a request for is a
FatalJobError.
"""

from __future__ import annotations

from typing import Optional, Protocol

import httpx

from shared.config import AppConfig
from shared.logging import get_logger
from worker.errors import FatalJobError, FetchError

logger = get_logger(__name__)


class Fetcher(Protocol):
    async def fetch(self, url: str) -> str: ...


class PageFetcher:
    """GET pages with an accept-anything header and a plain client string."""

    def __init__(
        self,
        *,
        timeout_seconds: float = 30.0,
        user_agent: str = "curl/7.85.0",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            headers={"accept": "*/*", "user-agent": user_agent},
            timeout=timeout_seconds,
            follow_redirects=True,
            transport=transport,
        )

    @classmethod
    def from_config(cls, config: AppConfig) -> "PageFetcher":
        return cls(
            timeout_seconds=config.fetch_timeout_seconds,
            user_agent=config.fetch_user_agent,
        )

    async def fetch(self, url: str) -> str:
        try:
            response = await self._client.get(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.warning("fetch.bad_status", url=url, status_code=e.response.status_code)
            raise FetchError(f"Response was not 2xx ({e.response.status_code}) for {url}") from e
        except httpx.HTTPError as e:
            logger.warning("fetch.request_failed", url=url, error=str(e), error_type=type(e).__name__)
            raise FetchError(f"Failed to request {url}: {type(e).__name__}: {e}") from e
        except httpx.InvalidURL as e:
            logger.warning("fetch.invalid_url", url=url, error=str(e))
            raise FatalJobError(f"Invalid URL {url!r}: {e}") from e

        logger.debug("fetch.ok", url=url, status_code=response.status_code, size=len(response.content))
        return response.text

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "PageFetcher":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
