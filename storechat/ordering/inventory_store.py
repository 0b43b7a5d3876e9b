# storechat/ordering/inventory_store.py
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple

from .catalog import DEFAULT_CATEGORY, DEFAULT_MIN_STOCK, CatalogItem, Snapshot, to_decimal
from .nlp import fold
from .resolver import ResolvedLine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Decrement:
    canonical_name: str
    quantity: Decimal
    expected_version: int


@dataclass(frozen=True)
class VersionConflict:
    """Returned (not raised) by decrement_atomic: one or more rows moved on."""

    names: Tuple[str, ...]


@dataclass(frozen=True)
class Order:
    order_id: str
    retailer_id: str
    customer_id: str
    lines: Tuple[ResolvedLine, ...]
    total: Decimal
    created_at: datetime
    notes: str = ""

    @property
    def items_count(self) -> int:
        return len(self.lines)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "order_id": self.order_id,
            "retailer_id": self.retailer_id,
            "customer_id": self.customer_id,
            "items": [ln.as_dict() for ln in self.lines],
            "total": str(self.total),
            "items_count": self.items_count,
            "created_at": self.created_at.isoformat(),
            "notes": self.notes,
        }


class InventoryProvider(Protocol):
    def get_snapshot(self, retailer_id: str) -> Snapshot: ...

    def decrement_atomic(
        self, retailer_id: str, decrements: Sequence[Decrement], order: Optional[Order] = None
    ) -> Optional[VersionConflict]: ...


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MemoryInventory:
    """
    In-process inventory + order book.

    Reads copy the current rows; decrement_atomic checks every row's version
    and stock under one lock and applies all decrements plus the order, or none.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._items: Dict[str, Dict[str, CatalogItem]] = {}
        self.orders: List[Order] = []

    # Seed helper (tests/demo)
    def add_item(
        self,
        retailer_id: str,
        name: str,
        unit: str,
        stock_qty: Any,
        unit_price: Any,
        min_stock_level: Any = DEFAULT_MIN_STOCK,
        category: str = DEFAULT_CATEGORY,
    ) -> CatalogItem:
        item = CatalogItem(
            canonical_name=name,
            unit=unit,
            stock_qty=to_decimal(stock_qty),
            unit_price=to_decimal(unit_price),
            min_stock_level=to_decimal(min_stock_level),
            category=category,
        )
        with self._lock:
            rows = self._items.setdefault(retailer_id, {})
            prev = rows.get(item.key)
            if prev is not None:
                item = replace(item, version=prev.version + 1)
            rows[item.key] = item
        return item

    def set_stock(self, retailer_id: str, name: str, stock_qty: Any) -> CatalogItem:
        """Manual stock edit; bumps the row version like any other write."""
        with self._lock:
            rows = self._items[retailer_id]
            cur = rows[fold(name)]
            rows[cur.key] = replace(cur, stock_qty=to_decimal(stock_qty), version=cur.version + 1)
            return rows[cur.key]

    def set_price(self, retailer_id: str, name: str, unit_price: Any) -> CatalogItem:
        with self._lock:
            rows = self._items[retailer_id]
            cur = rows[fold(name)]
            rows[cur.key] = replace(cur, unit_price=to_decimal(unit_price), version=cur.version + 1)
            return rows[cur.key]

    def get_snapshot(self, retailer_id: str) -> Snapshot:
        with self._lock:
            items = tuple(self._items.get(retailer_id, {}).values())
        return Snapshot(retailer_id=retailer_id, items=items)

    def decrement_atomic(
        self, retailer_id: str, decrements: Sequence[Decrement], order: Optional[Order] = None
    ) -> Optional[VersionConflict]:
        with self._lock:
            rows = self._items.get(retailer_id, {})
            stale: List[str] = []
            for d in decrements:
                cur = rows.get(fold(d.canonical_name))
                if cur is None or cur.version != d.expected_version or cur.stock_qty < d.quantity:
                    stale.append(d.canonical_name)
            if stale:
                logger.info("version conflict retailer=%s items=%s", retailer_id, stale)
                return VersionConflict(names=tuple(stale))

            for d in decrements:
                cur = rows[fold(d.canonical_name)]
                rows[cur.key] = replace(cur, stock_qty=cur.stock_qty - d.quantity, version=cur.version + 1)
            if order is not None:
                self.orders.append(order)
        return None
