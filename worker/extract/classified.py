"""
Classified record and the keyword parsers shared by the site extractors.

Listings are in Romanian; enum values are matched against the Romanian
keywords sites use (privat/firma, decomandat, nord/sud, ...), and stored with
the English database enum values.
"""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from bs4 import BeautifulSoup

from worker.errors import ExtractionError


class SellerType(str, Enum):
    PRIVATE = "private"
    COMPANY = "company"

    @classmethod
    def parse(cls, value: str) -> "SellerType":
        """Map a seller label (privat/firma, or the English labels some sites use)."""
        key = value.strip().lower()
        if key in ("privat", "private", "persoana fizica"):
            return cls.PRIVATE
        if key in ("firma", "company", "agency", "business", "developer"):
            return cls.COMPANY
        raise ExtractionError(f"Failed to parse seller type {value!r}")


class Layout(str, Enum):
    WAGON = "wagon"
    SEMI_DETACHED = "semi_detached"
    DETACHED = "detached"

    @classmethod
    def find_in_str(cls, text: str) -> Optional["Layout"]:
        lowered = text.lower()
        # semidecomandat must win over the decomandat it contains.
        if re.search(r"\bsemi-?decomandat", lowered):
            return cls.SEMI_DETACHED
        if re.search(r"\bdecomandat", lowered):
            return cls.DETACHED
        if re.search(r"\bvagon\b", lowered):
            return cls.WAGON
        return None


_DIRECTION_PATTERN = re.compile(r"\b(nord|sud|est|vest)(ic[aă]?)?\b")


class CardinalDirection(str, Enum):
    NORTH = "north"
    SOUTH = "south"
    EAST = "east"
    WEST = "west"

    @classmethod
    def find_in_str(cls, text: str) -> Optional["CardinalDirection"]:
        """First direction keyword (nord/nordic/nordica, sud/sudic, ...) in text, if any."""
        match = _DIRECTION_PATTERN.search(text.lower())
        if match is None:
            return None
        return {
            "nord": cls.NORTH,
            "sud": cls.SOUTH,
            "est": cls.EAST,
            "vest": cls.WEST,
        }[match.group(1)]


APARTMENT_KEYWORDS = ("apartament", "garsoniera", "studio")
HOUSE_KEYWORDS = ("casa", "vila")


class PropertyType(str, Enum):
    APARTMENT = "apartment"
    HOUSE = "house"

    @classmethod
    def find_in_str(cls, text: str) -> Optional["PropertyType"]:
        lowered = text.lower()
        if any(keyword in lowered for keyword in APARTMENT_KEYWORDS):
            return cls.APARTMENT
        if any(keyword in lowered for keyword in HOUSE_KEYWORDS):
            return cls.HOUSE
        return None


class Currency(str, Enum):
    EUR = "EUR"
    RON = "RON"
    USD = "USD"

    @classmethod
    def parse(cls, value: str) -> "Currency":
        key = value.strip().lower()
        if key == "eur":
            return cls.EUR
        if key == "usd":
            return cls.USD
        if key == "ron":
            return cls.RON
        raise ExtractionError(f"Cannot parse unknown currency {value!r}")


def find_room_count(text: str) -> Optional[int]:
    """
    Room count from a title or rooms label.

    "1 camera" or garsoniera -> 1, "2 camere" -> 2, "3 camere" -> 3, and any
    other mention of camere -> 4 (the sites' "4 or more" bucket).
    """
    lowered = text.lower()
    if "1 camera" in lowered or "garsoniera" in lowered:
        return 1
    if "2 camere" in lowered:
        return 2
    if "3 camere" in lowered:
        return 3
    if "camere" in lowered:
        return 4
    return None


_INT_PATTERN = re.compile(r"-?\d+")
_YEAR_PATTERN = re.compile(r"\b(1[89]\d\d|20\d\d)\b")


def first_int(text: str) -> Optional[int]:
    match = _INT_PATTERN.search(text)
    return int(match.group(0)) if match else None


def find_year(text: str) -> Optional[int]:
    match = _YEAR_PATTERN.search(text)
    return int(match.group(1)) if match else None


def find_script_text(content: str, selector: str) -> str:
    """Text of the first <script> matching selector; ExtractionError if missing or empty."""
    soup = BeautifulSoup(content, "html.parser")
    element = soup.select_one(selector)
    if element is None:
        raise ExtractionError(f"Failed to find script element {selector!r} in page")
    text = element.string if element.string is not None else element.get_text()
    if not text or not text.strip():
        raise ExtractionError(f"Script element {selector!r} is empty")
    return text


_SMALLINT_RANGE = (-(2**15), 2**15 - 1)
_INTEGER_RANGE = (-(2**31), 2**31 - 1)

# Bounds of the classifieds table columns.
_COLUMN_RANGES = {
    "floor": _SMALLINT_RANGE,
    "surface": _INTEGER_RANGE,
    "room_count": _SMALLINT_RANGE,
    "year": _INTEGER_RANGE,
}


@dataclass(frozen=True)
class ClassifiedRecord:
    """
    Structured attributes extracted from one item page.

    Raises ExtractionError for values the classifieds table cannot store.
    """

    title: str
    price: float
    seller_name: str
    seller_type: SellerType
    published_at: datetime
    property_type: PropertyType = PropertyType.APARTMENT
    negotiable: bool = False
    currency: Optional[Currency] = None
    layout: Optional[Layout] = None
    orientation: Optional[CardinalDirection] = None
    floor: Optional[int] = None
    surface: Optional[int] = None
    room_count: Optional[int] = None
    year: Optional[int] = None

    def __post_init__(self) -> None:
        for name, (low, high) in _COLUMN_RANGES.items():
            value = getattr(self, name)
            if value is not None and not low <= value <= high:
                raise ExtractionError(f"{name} out of range: {value}")
        for name in ("title", "seller_name"):
            if "\x00" in getattr(self, name):
                raise ExtractionError(f"{name} contains a NUL character")

    def to_row(self) -> dict[str, Any]:
        """Column values for the classifieds table, enums as their database strings."""
        row = asdict(self)
        for key, value in row.items():
            if isinstance(value, Enum):
                row[key] = value.value
        return row
