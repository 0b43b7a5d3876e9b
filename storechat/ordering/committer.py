# storechat/ordering/committer.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Sequence, Tuple
from uuid import uuid4

from .availability import Classification, classify
from .catalog import Snapshot
from .errors import CommitConflict, EmptyCartCommit
from .inventory_store import Decrement, InventoryProvider, Order, VersionConflict, utcnow
from .resolver import ResolvedLine, price_line

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommitLine:
    canonical_name: str
    quantity: Decimal


@dataclass(frozen=True)
class CommitRequest:
    retailer_id: str
    customer_id: str
    lines: Tuple[CommitLine, ...]
    notes: str = ""

    @classmethod
    def from_lines(cls, retailer_id: str, customer_id: str, lines: Sequence[ResolvedLine], notes: str = "") -> "CommitRequest":
        return cls(
            retailer_id=retailer_id,
            customer_id=customer_id,
            lines=tuple(CommitLine(ln.canonical_name, ln.quantity) for ln in lines),
            notes=notes,
        )


@dataclass(frozen=True)
class ChangedLine:
    canonical_name: str
    requested_qty: Decimal
    available_qty: Decimal
    classification: Classification
    reason: str

    def as_dict(self) -> Dict[str, Any]:
        return {
            "name": self.canonical_name,
            "requested_qty": str(self.requested_qty),
            "available_qty": str(self.available_qty),
            "classification": self.classification.value,
            "reason": self.reason,
        }


class OrderCommitter:
    """
    Turns a confirmed cart into an Order without ever overselling.

    Each attempt reads one fresh snapshot, re-classifies and re-prices every
    line, then asks the store for a compare-and-decrement on the row versions
    it saw. A version conflict re-runs the attempt once; after that the caller
    gets a CommitConflict and must re-confirm.
    """

    def __init__(self, inventory: InventoryProvider, max_attempts: int = 2, precision: int = 2):
        self.inventory = inventory
        self.max_attempts = max(1, max_attempts)
        self.precision = precision

    def _check(self, req: CommitRequest, snapshot: Snapshot) -> Tuple[List[ResolvedLine], List[Decrement], List[ChangedLine]]:
        priced: List[ResolvedLine] = []
        decrements: List[Decrement] = []
        changed: List[ChangedLine] = []
        for ln in req.lines:
            item = snapshot.get(ln.canonical_name)
            if item is None:
                changed.append(
                    ChangedLine(ln.canonical_name, ln.quantity, Decimal("0"), Classification.UNAVAILABLE, "no longer stocked")
                )
                continue
            if classify(ln.quantity, item) is Classification.UNAVAILABLE:
                changed.append(
                    ChangedLine(item.canonical_name, ln.quantity, item.stock_qty, Classification.UNAVAILABLE, "insufficient stock")
                )
                continue
            priced.append(price_line(item, ln.quantity, precision=self.precision))
            decrements.append(Decrement(item.canonical_name, ln.quantity, item.version))
        return priced, decrements, changed

    def _contended(self, req: CommitRequest, conflict: VersionConflict) -> List[ChangedLine]:
        snapshot = self.inventory.get_snapshot(req.retailer_id)
        out: List[ChangedLine] = []
        wanted = {ln.canonical_name: ln.quantity for ln in req.lines}
        for name in conflict.names:
            item = snapshot.get(name)
            qty = wanted.get(name, Decimal("0"))
            if item is None:
                out.append(ChangedLine(name, qty, Decimal("0"), Classification.UNAVAILABLE, "no longer stocked"))
            else:
                out.append(ChangedLine(item.canonical_name, qty, item.stock_qty, classify(qty, item), "stock changed"))
        return out

    def commit(self, req: CommitRequest) -> Order:
        if not req.lines:
            raise EmptyCartCommit()

        attempt = 0
        while True:
            attempt += 1
            snapshot = self.inventory.get_snapshot(req.retailer_id)
            priced, decrements, changed = self._check(req, snapshot)
            if changed:
                logger.info(
                    "commit rejected retailer=%s customer=%s changed=%s",
                    req.retailer_id, req.customer_id, [c.canonical_name for c in changed],
                )
                raise CommitConflict(changed)

            total = sum((ln.line_total for ln in priced), Decimal("0"))
            order = Order(
                order_id=uuid4().hex,
                retailer_id=req.retailer_id,
                customer_id=req.customer_id,
                lines=tuple(priced),
                total=total,
                created_at=utcnow(),
                notes=req.notes,
            )
            conflict = self.inventory.decrement_atomic(req.retailer_id, decrements, order)
            if conflict is None:
                logger.info(
                    "order committed id=%s retailer=%s customer=%s total=%s items=%d",
                    order.order_id, order.retailer_id, order.customer_id, order.total, order.items_count,
                )
                return order
            logger.info("commit attempt %d hit a version conflict on %s", attempt, list(conflict.names))
            if attempt >= self.max_attempts:
                raise CommitConflict(self._contended(req, conflict))
