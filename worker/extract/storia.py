"""
Storia item page extractor.

Storia is a Next.js site; the ad lives in the `__NEXT_DATA__` script at
props.pageProps.ad. Numeric attributes come from the `characteristics` list,
keyed by price, m, rooms_num, floor_no, and build_year.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from worker.errors import ExtractionError
from worker.extract.classified import (
    CardinalDirection,
    ClassifiedRecord,
    Currency,
    Layout,
    PropertyType,
    SellerType,
    find_room_count,
    find_script_text,
    find_year,
    first_int,
)

SCRIPT_SELECTOR = "script#__NEXT_DATA__"


class StoriaCharacteristic(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    key: str
    value: str
    localized_value: Optional[str] = Field(None, alias="localizedValue")


class StoriaParty(BaseModel):
    name: Optional[str] = None


class StoriaAd(BaseModel):
    title: str
    description: str = ""
    created_at: datetime = Field(..., alias="createdAt")
    advertiser_type: Optional[str] = Field(None, alias="advertiserType")
    characteristics: list[StoriaCharacteristic] = Field(default_factory=list)
    owner: Optional[StoriaParty] = None
    agency: Optional[StoriaParty] = None

    @field_validator("created_at")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        return v if v.tzinfo is not None else v.replace(tzinfo=timezone.utc)

    def characteristic(self, key: str) -> Optional[StoriaCharacteristic]:
        for c in self.characteristics:
            if c.key == key:
                return c
        return None


class StoriaPageProps(BaseModel):
    ad: StoriaAd


class StoriaProps(BaseModel):
    page_props: StoriaPageProps = Field(..., alias="pageProps")


class StoriaNextData(BaseModel):
    props: StoriaProps


def find_currency(text: str) -> Optional[Currency]:
    """Currency from a localized price such as "350 €" or "1 500 lei"."""
    lowered = text.lower()
    if "€" in lowered or "eur" in lowered:
        return Currency.EUR
    if "$" in lowered or "usd" in lowered:
        return Currency.USD
    if "lei" in lowered or "ron" in lowered:
        return Currency.RON
    return None


def parse_price(value: str) -> float:
    try:
        return float(value.replace(" ", "").replace(",", "."))
    except ValueError:
        raise ExtractionError(f"Failed parsing Storia price {value!r}") from None


def parse_floor(value: str) -> Optional[int]:
    # floor_no values look like "floor_3" or "ground_floor".
    if "ground" in value.lower() or value.strip().lower() == "parter":
        return 0
    return first_int(value)


def parse_classified(content: str, url: str) -> ClassifiedRecord:
    try:
        data = StoriaNextData.model_validate(json.loads(find_script_text(content, SCRIPT_SELECTOR)))
    except json.JSONDecodeError as e:
        raise ExtractionError(f"Failed parsing Storia JSON for {url}: {e}") from e
    except ValidationError as e:
        raise ExtractionError(f"Unexpected Storia JSON shape for {url}: {e}") from e

    ad = data.props.page_props.ad

    price = ad.characteristic("price")
    if price is None:
        raise ExtractionError(f"Storia ad has no price: {url}")

    seller_type = (
        SellerType.parse(ad.advertiser_type) if ad.advertiser_type else SellerType.PRIVATE
    )
    if seller_type is SellerType.COMPANY and ad.agency and ad.agency.name:
        seller_name = ad.agency.name
    elif ad.owner and ad.owner.name:
        seller_name = ad.owner.name
    elif ad.agency and ad.agency.name:
        seller_name = ad.agency.name
    else:
        raise ExtractionError(f"Storia ad has no seller name: {url}")

    surface = ad.characteristic("m")
    rooms = ad.characteristic("rooms_num")
    floor = ad.characteristic("floor_no")
    year = ad.characteristic("build_year")

    return ClassifiedRecord(
        title=ad.title,
        price=parse_price(price.value),
        currency=find_currency(price.localized_value or ""),
        published_at=ad.created_at,
        seller_name=seller_name,
        seller_type=seller_type,
        surface=first_int(surface.value) if surface else None,
        room_count=(first_int(rooms.value) if rooms else None) or find_room_count(ad.title),
        floor=parse_floor(floor.value) if floor else None,
        year=find_year(year.value) if year else None,
        layout=Layout.find_in_str(ad.description),
        orientation=CardinalDirection.find_in_str(ad.description),
        property_type=(
            PropertyType.find_in_str(ad.title)
            or PropertyType.find_in_str(ad.description)
            or PropertyType.APARTMENT
        ),
    )
