"""Tests for catalog item resolution and line pricing."""

from decimal import Decimal

import pytest

from storechat.ordering.catalog import CatalogItem, build_snapshot
from storechat.ordering.errors import InvalidQuantityError, UnresolvedItem
from storechat.ordering.resolver import (
    FailedLine,
    RequestedLine,
    ResolvedLine,
    price_line,
    resolve_item,
    resolve_line,
    resolve_lines,
)


def test_exact_and_plural_matches(snapshot):
    assert resolve_item("rice", snapshot).selected.canonical_name == "Rice"
    assert resolve_item("RICE", snapshot).selected.canonical_name == "Rice"
    assert resolve_item("Onions", snapshot).selected.canonical_name == "Onion"


def test_typo_resolves_above_threshold(snapshot):
    res = resolve_item("tomatoe", snapshot)
    assert res.selected is not None
    assert res.selected.canonical_name == "Tomato"


def test_unknown_item_selects_nothing(snapshot):
    assert resolve_item("caviar", snapshot).selected is None


def test_weak_matches_become_candidates(snapshot):
    with pytest.raises(UnresolvedItem) as exc:
        resolve_line(RequestedLine("dal", 1, "kg"), snapshot)
    assert exc.value.reason == "no matching item"
    assert exc.value.candidates == ["Toor Dal", "Moong Dal"]


def test_tie_is_never_selected():
    snap = build_snapshot(
        "r2",
        [
            {"name": "Soap A", "unit": "piece", "stock_qty": 5, "unit_price": 20},
            {"name": "Soap B", "unit": "piece", "stock_qty": 5, "unit_price": 25},
        ],
    )
    res = resolve_item("soap", snap)
    assert res.selected is None
    with pytest.raises(UnresolvedItem) as exc:
        resolve_line(RequestedLine("soap", 1), snap)
    assert exc.value.reason == "ambiguous item"


def test_resolve_line_converts_and_prices(snapshot):
    line = resolve_line(RequestedLine("onions", 500, "g"), snapshot)
    assert line == ResolvedLine(
        canonical_name="Onion",
        unit="kg",
        quantity=Decimal("0.5"),
        unit_price=Decimal("35"),
        line_total=Decimal("17.50"),
        requested_name="onions",
    )

    turmeric = resolve_line(RequestedLine("turmeric powder", 250, "g"), snapshot)
    assert turmeric.line_total == Decimal("75.00")


def test_price_rounds_half_up():
    item = CatalogItem(canonical_name="Ghee", unit="kg", stock_qty=Decimal("3"), unit_price=Decimal("10.005"))
    assert price_line(item, Decimal("1")).line_total == Decimal("10.01")


def test_one_bad_line_does_not_stop_the_others(snapshot):
    out = resolve_lines(
        [
            RequestedLine("rice", 2, "kg"),
            RequestedLine("caviar", 1),
            RequestedLine("milk", 1, "kg"),
        ],
        snapshot,
    )
    assert isinstance(out[0], ResolvedLine)
    assert out[0].line_total == Decimal("240.00")

    assert isinstance(out[1], FailedLine)
    assert out[1].reason == "no matching item"

    assert isinstance(out[2], FailedLine)
    assert "litre" in out[2].reason


def test_line_too_large_to_price_does_not_stop_the_others():
    snap = build_snapshot(
        "r1",
        [
            {"name": "Saffron", "unit": "g", "stock_qty": 50, "unit_price": "1e30"},
            {"name": "Rice", "unit": "kg", "stock_qty": 10, "unit_price": 120},
        ],
    )
    with pytest.raises(InvalidQuantityError):
        price_line(snap.get("Saffron"), Decimal("1000"))

    out = resolve_lines([RequestedLine("saffron", 1000, "g"), RequestedLine("rice", 1, "kg")], snap)

    assert isinstance(out[0], FailedLine)
    assert "too large" in out[0].reason
    assert isinstance(out[1], ResolvedLine)
    assert out[1].line_total == Decimal("120.00")


def test_local_names_resolve_to_english_items(snapshot):
    assert resolve_item("tamatar", snapshot).selected.canonical_name == "Tomato"
    assert resolve_item("दूध", snapshot).selected.canonical_name == "Milk"
    assert resolve_item("vengayam", snapshot).selected.canonical_name == "Onion"


def test_unresolved_line_offers_in_stock_candidates(snapshot):
    out = resolve_lines([RequestedLine("dal", 1, "kg")], snapshot)
    assert out[0].alternatives == ("Toor Dal", "Moong Dal")


def test_requested_line_validates():
    with pytest.raises(UnresolvedItem):
        RequestedLine("   ", 1)
    with pytest.raises(ValueError):
        RequestedLine("rice", 0)
