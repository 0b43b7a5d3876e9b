"""Tests for all-or-nothing order commits."""

import logging
import threading
from decimal import Decimal

import pytest

from storechat.ordering.availability import Classification
from storechat.ordering.committer import CommitLine, CommitRequest, OrderCommitter
from storechat.ordering.errors import CommitConflict, EmptyCartCommit
from storechat.ordering.inventory_store import MemoryInventory

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")


def _req(*lines, retailer="r1", customer="cust-1"):
    return CommitRequest(
        retailer_id=retailer,
        customer_id=customer,
        lines=tuple(CommitLine(name, Decimal(qty)) for name, qty in lines),
    )


def _stock(inv, name, retailer="r1"):
    return inv.get_snapshot(retailer).get(name).stock_qty


class RacyInventory(MemoryInventory):
    """Another writer touches the first row right before each of the next `races` commits."""

    def __init__(self, races: int):
        super().__init__()
        self.races = races

    def decrement_atomic(self, retailer_id, decrements, order=None):
        if self.races > 0:
            self.races -= 1
            name = decrements[0].canonical_name
            self.set_stock(retailer_id, name, _stock(self, name, retailer_id))
        return super().decrement_atomic(retailer_id, decrements, order)


def test_successful_commit_decrements_stock(inventory):
    order = OrderCommitter(inventory).commit(_req(("Rice", 2), ("Onion", 3)))

    assert order.total == Decimal("345.00")
    assert order.items_count == 2
    assert _stock(inventory, "Rice") == Decimal("8")
    assert _stock(inventory, "Onion") == Decimal("4")
    assert inventory.orders == [order]


def test_empty_commit_is_rejected_before_storage(inventory):
    with pytest.raises(EmptyCartCommit):
        OrderCommitter(inventory).commit(_req())
    assert inventory.orders == []


def test_failed_commit_leaves_stock_unchanged(inventory):
    inventory.set_stock("r1", "Onion", 1)

    with pytest.raises(CommitConflict) as exc:
        OrderCommitter(inventory).commit(_req(("Rice", 2), ("Onion", 3)))

    (changed,) = exc.value.changed_lines
    assert changed.canonical_name == "Onion"
    assert changed.available_qty == Decimal("1")
    assert changed.classification is Classification.UNAVAILABLE
    assert exc.value.as_dict()["conflict"] is True

    assert _stock(inventory, "Rice") == Decimal("10")
    assert inventory.orders == []


def test_vanished_item_is_a_conflict(inventory):
    with pytest.raises(CommitConflict) as exc:
        OrderCommitter(inventory).commit(_req(("Saffron", 1)))
    assert exc.value.changed_lines[0].reason == "no longer stocked"


def test_commit_reprices_from_current_price(inventory):
    inventory.set_price("r1", "Rice", 130)
    order = OrderCommitter(inventory).commit(_req(("Rice", 2)))

    assert order.lines[0].unit_price == Decimal("130")
    assert order.total == Decimal("260.00")


def test_one_version_conflict_is_retried():
    inv = RacyInventory(races=1)
    inv.add_item("r1", "Rice", "kg", 10, 120, min_stock_level=2)

    order = OrderCommitter(inv, max_attempts=2).commit(_req(("Rice", 2)))

    assert order.items_count == 1
    assert _stock(inv, "Rice") == Decimal("8")


def test_second_version_conflict_gives_up():
    inv = RacyInventory(races=2)
    inv.add_item("r1", "Rice", "kg", 10, 120, min_stock_level=2)

    with pytest.raises(CommitConflict) as exc:
        OrderCommitter(inv, max_attempts=2).commit(_req(("Rice", 2)))

    (changed,) = exc.value.changed_lines
    assert changed.reason == "stock changed"
    assert changed.available_qty == Decimal("10")
    assert _stock(inv, "Rice") == Decimal("10")
    assert inv.orders == []


def test_single_attempt_gives_up_on_first_version_conflict():
    inv = RacyInventory(races=1)
    inv.add_item("r1", "Rice", "kg", 10, 120, min_stock_level=2)

    with pytest.raises(CommitConflict) as exc:
        OrderCommitter(inv, max_attempts=1).commit(_req(("Rice", 2)))

    assert [c.canonical_name for c in exc.value.changed_lines] == ["Rice"]
    assert inv.races == 0
    assert _stock(inv, "Rice") == Decimal("10")


def test_two_customers_race_for_the_last_two_kilos():
    inv = MemoryInventory()
    inv.add_item("r1", "Rice", "kg", 2, 120, min_stock_level=0)
    committer = OrderCommitter(inv)
    start = threading.Barrier(2)
    orders, conflicts = [], []

    def buy(customer):
        start.wait()
        try:
            orders.append(committer.commit(_req(("Rice", 2), customer=customer)))
        except CommitConflict as e:
            conflicts.append(e)

    threads = [threading.Thread(target=buy, args=(c,)) for c in ("a", "b")]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(orders) == 1
    assert len(conflicts) == 1
    assert _stock(inv, "Rice") == Decimal("0")
    assert inv.orders == orders
