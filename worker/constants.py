"""
Pipeline constants: page types, job statuses, source domains, list page selectors.
"""

from __future__ import annotations

from enum import Enum


class PageType(str, Enum):
    """Closed set of page kinds; item variants are one per source site."""

    LIST = "list"
    OLX_ITEM = "olx_item"
    STORIA_ITEM = "storia_item"


class JobStatus(str, Enum):
    NEW = "new"
    RETRYING = "retrying"
    COMPLETED = "completed"
    FAILED = "failed"


OLX_BASE_URL = "https://www.olx.ro"
OLX_HOSTS = frozenset({"www.olx.ro", "olx.ro"})
OLX_ITEM_PATH_PREFIX = "/d/oferta/"
STORIA_HOSTS = frozenset({"www.storia.ro", "storia.ro"})

# List page selectors (table layout and the newer card grid).
NEXT_PAGE_SELECTORS = (
    'div.pager a[data-cy="page-link-next"]',
    'a[data-testid="pagination-forward"]',
)
ITEM_LINK_SELECTORS = (
    'table#offers_table td.offer a[data-cy="listing-ad-title"]',
    'div[data-cy="l-card"] a',
)
