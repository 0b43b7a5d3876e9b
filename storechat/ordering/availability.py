# storechat/ordering/availability.py
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .catalog import CatalogItem, Snapshot
from .nlp import match_key, similarity
from .resolver import FailedLine, LineInput, ResolvedLine, price_line


class Classification(str, Enum):
    AVAILABLE = "available"
    LOW_STOCK = "low_stock"
    UNAVAILABLE = "unavailable"


def classify(quantity: Decimal, item: CatalogItem) -> Classification:
    if quantity > item.stock_qty:
        return Classification.UNAVAILABLE
    if item.stock_qty - quantity < item.min_stock_level:
        return Classification.LOW_STOCK
    return Classification.AVAILABLE


@dataclass(frozen=True)
class LowStockLine:
    line: ResolvedLine
    available_qty: Decimal

    def as_dict(self) -> Dict[str, Any]:
        return {
            "name": self.line.canonical_name,
            "requested_qty": str(self.line.quantity),
            "available_qty": str(self.available_qty),
            "unit": self.line.unit,
            "unit_price": str(self.line.unit_price),
            "line_total": str(self.line.line_total),
        }


@dataclass(frozen=True)
class UnavailableLine:
    requested_name: str
    quantity: Optional[Decimal]
    unit: Optional[str]
    reason: str
    available_qty: Decimal = Decimal("0")
    alternatives: Tuple[str, ...] = ()
    canonical_name: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "requested_name": self.requested_name,
            "name": self.canonical_name,
            "quantity": None if self.quantity is None else str(self.quantity),
            "unit": self.unit,
            "available_qty": str(self.available_qty),
            "reason": self.reason,
            "alternatives": list(self.alternatives),
        }


@dataclass(frozen=True)
class AvailabilityReport:
    available: Tuple[ResolvedLine, ...] = ()
    low_stock: Tuple[LowStockLine, ...] = ()
    unavailable: Tuple[UnavailableLine, ...] = ()

    @property
    def orderable(self) -> List[ResolvedLine]:
        return list(self.available) + [x.line for x in self.low_stock]

    @property
    def total(self) -> Decimal:
        return sum((ln.line_total for ln in self.orderable), Decimal("0"))

    def __len__(self) -> int:
        return len(self.available) + len(self.low_stock) + len(self.unavailable)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "available": [ln.as_dict() for ln in self.available],
            "low_stock": [ln.as_dict() for ln in self.low_stock],
            "unavailable": [ln.as_dict() for ln in self.unavailable],
            "total": str(self.total),
        }


def find_alternatives(item: CatalogItem, snapshot: Snapshot, limit: int = 3) -> Tuple[str, ...]:
    """In-stock items of the same category, closest names first."""
    if limit <= 0:
        return ()
    key = match_key(item.canonical_name)
    pool = [it for it in snapshot.in_category(item.category) if it.key != item.key and it.stock_qty > 0]
    pool.sort(key=lambda it: (-similarity(key, match_key(it.canonical_name)), -it.stock_qty, it.key))
    return tuple(it.canonical_name for it in pool[:limit])


def partition(
    lines: Iterable[LineInput],
    snapshot: Snapshot,
    max_alternatives: int = 3,
    precision: int = 2,
) -> AvailabilityReport:
    """
    Classify each line against one snapshot into exactly one of
    available / low_stock / unavailable. Prices come from the snapshot, never
    from the line. Pure: stock is not touched.
    """
    available: List[ResolvedLine] = []
    low: List[LowStockLine] = []
    unavailable: List[UnavailableLine] = []

    for ln in lines:
        if isinstance(ln, FailedLine):
            unavailable.append(
                UnavailableLine(
                    requested_name=ln.requested_name,
                    quantity=ln.quantity,
                    unit=ln.unit,
                    reason=ln.reason,
                    alternatives=ln.alternatives,
                )
            )
            continue

        item = snapshot.get(ln.canonical_name)
        if item is None:
            unavailable.append(
                UnavailableLine(
                    requested_name=ln.requested_name or ln.canonical_name,
                    quantity=ln.quantity,
                    unit=ln.unit,
                    reason="no longer stocked",
                    canonical_name=ln.canonical_name,
                )
            )
            continue

        verdict = classify(ln.quantity, item)
        if verdict is Classification.UNAVAILABLE:
            unavailable.append(
                UnavailableLine(
                    requested_name=ln.requested_name or item.canonical_name,
                    quantity=ln.quantity,
                    unit=item.unit,
                    reason="insufficient stock",
                    available_qty=item.stock_qty,
                    alternatives=find_alternatives(item, snapshot, max_alternatives),
                    canonical_name=item.canonical_name,
                )
            )
            continue

        priced = price_line(item, ln.quantity, requested_name=ln.requested_name, precision=precision)
        if verdict is Classification.LOW_STOCK:
            low.append(LowStockLine(line=priced, available_qty=item.stock_qty))
        else:
            available.append(priced)

    return AvailabilityReport(available=tuple(available), low_stock=tuple(low), unavailable=tuple(unavailable))
