"""
URL normalization and classification (pure functions).

Item hrefs found on list pages come as absolute OLX/Storia URLs or as
site-relative OLX paths. They are normalized to absolute URLs against the
OLX origin and mapped to an item page type; anything else is rejected.
"""

from __future__ import annotations

from urllib.parse import urldefrag, urljoin, urlparse

from worker.constants import (
    OLX_BASE_URL,
    OLX_HOSTS,
    OLX_ITEM_PATH_PREFIX,
    STORIA_HOSTS,
    PageType,
)
from worker.errors import FatalJobError, UnrecognizedUrlError


def normalize_url(href: str, base_url: str = OLX_BASE_URL) -> str:
    """
    Resolve href against base_url and drop the fragment.

    Examples:
        /d/oferta/x-ID1.html -> https://www.olx.ro/d/oferta/x-ID1.html
        https://www.olx.ro/d/oferta/x-ID1.html#abc -> https://www.olx.ro/d/oferta/x-ID1.html

    Raises UnrecognizedUrlError when href cannot be parsed as a URL.
    """
    try:
        absolute = urljoin(base_url, href.strip())
        url, _fragment = urldefrag(absolute)
    except ValueError as e:
        raise UnrecognizedUrlError(f"Malformed href {href!r}: {e}") from e
    return url


def classify_item_url(href: str) -> tuple[str, PageType]:
    """
    Normalize an item href and classify it into an item page type.

    Raises UnrecognizedUrlError for hrefs that are neither OLX offers nor
    Storia pages.
    """
    if not href or not href.strip():
        raise UnrecognizedUrlError("Empty href")

    url = normalize_url(href)
    parsed = urlparse(url)
    host = parsed.netloc.lower()

    if parsed.scheme == "https" and host in STORIA_HOSTS:
        return url, PageType.STORIA_ITEM
    if parsed.scheme == "https" and host in OLX_HOSTS and parsed.path.startswith(OLX_ITEM_PATH_PREFIX):
        return url, PageType.OLX_ITEM

    raise UnrecognizedUrlError(f"Don't know how to handle {href}")


def validate_job_url(url: str) -> str:
    """
    Check that a queued URL can be fetched at all.

    Raises FatalJobError for unparsable URLs (including a bad port), non-http(s)
    schemes, or a missing host. Returns the URL unchanged.
    """
    try:
        parsed = urlparse(url)
    except ValueError as e:
        raise FatalJobError(f"Malformed URL {url!r}: {e}") from e
    if parsed.scheme not in ("http", "https"):
        raise FatalJobError(f"Unsupported URL scheme in {url!r}")
    if not parsed.netloc:
        raise FatalJobError(f"URL has no host: {url!r}")
    try:
        parsed.port
    except ValueError as e:
        raise FatalJobError(f"Malformed URL {url!r}: {e}") from e
    return url
