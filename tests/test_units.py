"""Tests for quantity parsing and unit conversion."""

from decimal import Decimal

import pytest

from storechat.ordering.errors import InvalidQuantityError, UnitMismatchError
from storechat.ordering.units import canonical_unit, normalize_quantity, parse_quantity, parse_quantity_text


def test_canonical_unit_aliases():
    assert canonical_unit("Kgs") == "kg"
    assert canonical_unit("liters") == "litre"
    assert canonical_unit("pcs") == "piece"
    assert canonical_unit("bunch") is None


@pytest.mark.parametrize(
    "qty, hint, catalog_unit, expected",
    [
        (500, "g", "kg", Decimal("0.5")),
        (2, "kg", "g", Decimal("2000")),
        (1, "dozen", "piece", Decimal("12")),
        (750, "ml", "litre", Decimal("0.75")),
        (2, None, "kg", Decimal("2")),
    ],
)
def test_normalize_quantity_converts(qty, hint, catalog_unit, expected):
    assert normalize_quantity(qty, hint, catalog_unit) == expected


def test_normalize_quantity_has_no_exponent_form():
    assert str(normalize_quantity(2, "kg", "g")) == "2000"
    assert str(normalize_quantity(500, "g", "kg")) == "0.5"


def test_cross_dimension_is_a_mismatch():
    with pytest.raises(UnitMismatchError):
        normalize_quantity(1, "litre", "kg")
    with pytest.raises(UnitMismatchError):
        normalize_quantity(2, "bunch", "kg")


def test_quantity_too_small_after_conversion():
    with pytest.raises(InvalidQuantityError):
        normalize_quantity("0.0001", "g", "kg")


def test_quantity_too_large_to_normalize():
    with pytest.raises(InvalidQuantityError):
        normalize_quantity("99999999999999999999999999999", "kg", "kg")


@pytest.mark.parametrize("raw", [0, -1, "abc", True, "nan", "1e30", 10**30, 1e30])
def test_parse_quantity_rejects(raw):
    with pytest.raises(InvalidQuantityError):
        parse_quantity(raw)


def test_parse_quantity_text():
    assert parse_quantity_text("2kg rice") == (Decimal("2"), "kg", "rice")
    assert parse_quantity_text("a dozen eggs") == (Decimal("1"), "dozen", "eggs")
    assert parse_quantity_text("half kg dal") == (Decimal("0.5"), "kg", "dal")
    assert parse_quantity_text("3 onions") == (Decimal("3"), None, "onions")
    assert parse_quantity_text("2.5 kg of rice") == (Decimal("2.5"), "kg", "rice")
    assert parse_quantity_text("rice") == (None, None, "rice")


def test_hindi_numbers_need_a_unit():
    assert parse_quantity_text("do kilo chawal") == (Decimal("2"), "kg", "chawal")
    assert parse_quantity_text("do you have rice") == (None, None, "do you have rice")
