"""
OLX item page extractor.

OLX embeds the ad as a JSON document inside a JavaScript string literal:

    <script id="olx-init-config">
        window.__PRERENDERED_STATE__= "{\\"ad\\":{\\"ad\\":{...}}}";
    </script>

The literal is decoded, parsed, and the `ad.ad` object is validated with the
models below.
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

SCRIPT_SELECTOR = "script#olx-init-config"
STATE_PREFIX = "window.__PRERENDERED_STATE__="


class OlxParam(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    key: str
    value: str


class OlxRegularPrice(BaseModel):
    value: float
    currency_code: Optional[str] = Field(None, alias="currencyCode")
    negotiable: bool = False


class OlxPrice(BaseModel):
    regular_price: Optional[OlxRegularPrice] = Field(None, alias="regularPrice")


class OlxUser(BaseModel):
    name: str
    company_name: Optional[str] = ""


class OlxAd(BaseModel):
    title: str
    description: str = ""
    created_time: datetime = Field(..., alias="createdTime")
    params: list[OlxParam] = Field(default_factory=list)
    price: Optional[OlxPrice] = None
    user: OlxUser

    @field_validator("created_time")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        return v if v.tzinfo is not None else v.replace(tzinfo=timezone.utc)

    def param(self, key: str) -> Optional[str]:
        for p in self.params:
            if p.key == key:
                return p.value
        return None


class OlxAdWrapper(BaseModel):
    ad: OlxAd


class OlxState(BaseModel):
    ad: OlxAdWrapper


def extract_state_json(content: str) -> str:
    """Return the decoded JSON text of window.__PRERENDERED_STATE__."""
    script = find_script_text(content, SCRIPT_SELECTOR)

    for line in script.splitlines():
        stripped = line.strip()
        if not stripped.startswith(STATE_PREFIX):
            continue
        literal = stripped[len(STATE_PREFIX):].strip().rstrip(";").strip()
        if len(literal) < 2:
            raise ExtractionError("JavaScript JSON string is too short")
        if literal.startswith("{"):
            return literal
        try:
            decoded = json.loads(literal)
        except json.JSONDecodeError as e:
            raise ExtractionError(f"Failed to unescape JavaScript JSON string: {e}") from e
        if not isinstance(decoded, str):
            raise ExtractionError("Prerendered state is not a string literal")
        return decoded

    raise ExtractionError("Failed to find beginning of prerendered state")


def parse_floor(value: str) -> Optional[int]:
    if value.strip().lower() == "parter":
        return 0
    return first_int(value)


def parse_classified(content: str, url: str) -> ClassifiedRecord:
    try:
        state = OlxState.model_validate(json.loads(extract_state_json(content)))
    except json.JSONDecodeError as e:
        raise ExtractionError(f"Failed parsing OLX JSON for {url}: {e}") from e
    except ValidationError as e:
        raise ExtractionError(f"Unexpected OLX JSON shape for {url}: {e}") from e

    ad = state.ad.ad
    if ad.price is None or ad.price.regular_price is None:
        raise ExtractionError(f"OLX ad has no price: {url}")
    price = ad.price.regular_price

    floor = ad.param("floor")
    surface = ad.param("m")
    layout = ad.param("compartimentare")
    rooms = ad.param("rooms")
    year = ad.param("constructie")

    return ClassifiedRecord(
        title=ad.title,
        price=price.value,
        currency=Currency.parse(price.currency_code) if price.currency_code else None,
        negotiable=price.negotiable,
        published_at=ad.created_time,
        seller_name=ad.user.name,
        seller_type=SellerType.COMPANY if ad.user.company_name else SellerType.PRIVATE,
        floor=parse_floor(floor) if floor is not None else None,
        surface=first_int(surface) if surface is not None else None,
        layout=Layout.find_in_str(layout) if layout is not None else None,
        room_count=find_room_count(rooms or "") or find_room_count(ad.title),
        year=find_year(year) if year is not None else None,
        orientation=CardinalDirection.find_in_str(ad.description),
        property_type=PropertyType.find_in_str(ad.description) or PropertyType.APARTMENT,
    )
