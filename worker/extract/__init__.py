"""
Page extractors: turn a stored item page into a ClassifiedRecord.

Dispatch is by page type, one extractor per source site. Extraction is pure
(no I/O) and raises ExtractionError for anything it cannot map.
"""

from __future__ import annotations

from typing import Callable

from worker.constants import PageType
from worker.errors import ExtractionError
from worker.extract import olx, storia
from worker.extract.classified import ClassifiedRecord

Extractor = Callable[[str, str], ClassifiedRecord]

EXTRACTORS: dict[PageType, Extractor] = {
    PageType.OLX_ITEM: olx.parse_classified,
    PageType.STORIA_ITEM: storia.parse_classified,
}


def extract_classified(page_type: str, content: str, url: str) -> ClassifiedRecord:
    try:
        kind = PageType(page_type)
    except ValueError:
        raise ExtractionError(f"Unknown page type {page_type!r}") from None

    extractor = EXTRACTORS.get(kind)
    if extractor is None:
        raise ExtractionError(f"No extractor for {kind.value} pages")
    return extractor(content, url)


__all__ = ["ClassifiedRecord", "EXTRACTORS", "extract_classified"]
