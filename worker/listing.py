"""
List page discovery: next-page link and item links (pure functions).

Discovery runs inside the crawl job's transaction, so the follow-ups it
returns are enqueued atomically with the list job's status update.
"""

from __future__ import annotations

from typing import Optional

from bs4 import BeautifulSoup

from shared.logging import get_logger
from worker.constants import ITEM_LINK_SELECTORS, NEXT_PAGE_SELECTORS, PageType
from worker.errors import UnrecognizedUrlError
from worker.urls import classify_item_url, normalize_url

logger = get_logger(__name__)


def parse_html(content: str) -> BeautifulSoup:
    return BeautifulSoup(content, "html.parser")


def find_next_page_url(soup: BeautifulSoup) -> Optional[str]:
    """
    Return the absolute URL of the next list page, or None on the last page.

    Next links whose href does not parse are skipped.
    """
    for selector in NEXT_PAGE_SELECTORS:
        for anchor in soup.select(selector):
            href = anchor.get("href")
            if not href or not href.strip():
                continue
            try:
                return normalize_url(href)
            except UnrecognizedUrlError:
                logger.debug("listing.next_href_skipped", href=href)
    return None


def find_item_urls(soup: BeautifulSoup) -> list[tuple[str, PageType]]:
    """
    Return classified item URLs in page order, deduplicated.

    Hrefs the classifier rejects (ads, external promos, malformed URLs) are
    skipped.
    """
    seen: set[str] = set()
    items: list[tuple[str, PageType]] = []
    for selector in ITEM_LINK_SELECTORS:
        for anchor in soup.select(selector):
            href = anchor.get("href")
            if not href:
                continue
            try:
                url, page_type = classify_item_url(href)
            except UnrecognizedUrlError:
                logger.debug("listing.href_skipped", href=href)
                continue
            if url in seen:
                continue
            seen.add(url)
            items.append((url, page_type))
    return items


def discover_follow_ups(content: str) -> list[tuple[str, PageType]]:
    """
    Map list page content to the jobs it implies.

    The next list page (if any) comes first, followed by the item pages.
    A page without a next link yields no list job, which ends the chain.
    """
    soup = parse_html(content)
    follow_ups: list[tuple[str, PageType]] = []
    next_url = find_next_page_url(soup)
    if next_url is not None:
        follow_ups.append((next_url, PageType.LIST))
    follow_ups.extend(find_item_urls(soup))
    return follow_ups
