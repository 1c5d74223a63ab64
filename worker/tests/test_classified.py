"""
Unit tests for classified keyword parsers and ClassifiedRecord.to_row.
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from worker.errors import ExtractionError
from worker.extract.classified import (
    CardinalDirection,
    ClassifiedRecord,
    Currency,
    Layout,
    PropertyType,
    SellerType,
    find_room_count,
    find_year,
    first_int,
)


@pytest.mark.parametrize(
    "value,expected",
    [("privat", SellerType.PRIVATE), ("Firma", SellerType.COMPANY), (" agency ", SellerType.COMPANY)],
)
def test_seller_type_parse(value, expected):
    assert SellerType.parse(value) is expected


def test_seller_type_parse_unknown():
    with pytest.raises(ExtractionError):
        SellerType.parse("altul")


@pytest.mark.parametrize(
    "text,expected",
    [
        ("Compartimentare: vagon", Layout.WAGON),
        ("apartament semidecomandat", Layout.SEMI_DETACHED),
        ("semi-decomandat", Layout.SEMI_DETACHED),
        ("Decomandat", Layout.DETACHED),
        ("circular", None),
    ],
)
def test_layout_find_in_str(text, expected):
    assert Layout.find_in_str(text) is expected


@pytest.mark.parametrize(
    "text,expected",
    [
        ("orientare nord", CardinalDirection.NORTH),
        ("expunere sudica", CardinalDirection.SOUTH),
        ("balcon estic", CardinalDirection.EAST),
        ("Vest", CardinalDirection.WEST),
        ("apartamentul este luminos", None),
        ("", None),
    ],
)
def test_cardinal_direction_find_in_str(text, expected):
    assert CardinalDirection.find_in_str(text) is expected


@pytest.mark.parametrize(
    "text,expected",
    [
        ("Apartament 2 camere", PropertyType.APARTMENT),
        ("Studio modern", PropertyType.APARTMENT),
        ("Vila cu piscina", PropertyType.HOUSE),
        ("teren agricol", None),
    ],
)
def test_property_type_find_in_str(text, expected):
    assert PropertyType.find_in_str(text) is expected


def test_apartment_keywords_win_over_house_keywords():
    assert PropertyType.find_in_str("Apartament in casa noua") is PropertyType.APARTMENT


@pytest.mark.parametrize(
    "value,expected",
    [("EUR", Currency.EUR), (" usd ", Currency.USD), ("ron", Currency.RON)],
)
def test_currency_parse(value, expected):
    assert Currency.parse(value) is expected


def test_currency_parse_unknown():
    with pytest.raises(ExtractionError):
        Currency.parse("GBP")


@pytest.mark.parametrize(
    "text,expected",
    [
        ("1 camera", 1),
        ("Garsoniera Tractorul", 1),
        ("Apartament 2 Camere", 2),
        ("3 camere decomandat", 3),
        ("4 camere sau mai multe", 4),
        ("Apartament spatios", None),
    ],
)
def test_find_room_count(text, expected):
    assert find_room_count(text) == expected


def test_number_helpers():
    assert first_int("Etaj 10") == 10
    assert first_int("fara numar") is None
    assert find_year("Dupa 2000") == 2000
    assert find_year("cu 12 ani") is None


def test_to_row_uses_database_enum_values():
    record = ClassifiedRecord(
        title="Apartament 2 camere",
        price=350.0,
        seller_name="Ion",
        seller_type=SellerType.COMPANY,
        published_at=datetime(2023, 5, 1, tzinfo=timezone.utc),
        currency=Currency.EUR,
        layout=Layout.SEMI_DETACHED,
        orientation=CardinalDirection.WEST,
        room_count=2,
    )

    row = record.to_row()

    assert row["seller_type"] == "company"
    assert row["property_type"] == "apartment"
    assert row["currency"] == "EUR"
    assert row["layout"] == "semi_detached"
    assert row["orientation"] == "west"
    assert row["floor"] is None
    assert row["negotiable"] is False
    assert type(row["seller_type"]) is str


@pytest.mark.parametrize(
    "field,value",
    [
        ("floor", 40000),
        ("room_count", -40000),
        ("surface", 2**31),
        ("year", -(2**31) - 1),
    ],
)
def test_record_rejects_values_outside_column_range(field, value):
    with pytest.raises(ExtractionError, match=field):
        ClassifiedRecord(
            title="Apartament",
            price=350.0,
            seller_name="Ion",
            seller_type=SellerType.PRIVATE,
            published_at=datetime(2023, 5, 1, tzinfo=timezone.utc),
            **{field: value},
        )


def test_record_accepts_column_bounds():
    record = ClassifiedRecord(
        title="Apartament",
        price=350.0,
        seller_name="Ion",
        seller_type=SellerType.PRIVATE,
        published_at=datetime(2023, 5, 1, tzinfo=timezone.utc),
        floor=32767,
        surface=2**31 - 1,
    )
    assert record.floor == 32767
