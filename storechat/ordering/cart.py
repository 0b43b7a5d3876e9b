# storechat/ordering/cart.py
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from .availability import AvailabilityReport
from .errors import InvalidTransition
from .nlp import english_item_name, fold, fuzzy_best_key, match_key
from .resolver import ResolvedLine

logger = logging.getLogger(__name__)


class CartState(str, Enum):
    EMPTY = "empty"
    BUILDING = "building"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    COMMITTED = "committed"
    CANCELLED = "cancelled"


TERMINAL_STATES = {CartState.COMMITTED, CartState.CANCELLED}


@dataclass
class Cart:
    """
    Proposed order for one (customer, retailer) pair.

    Lines are keyed by folded canonical name: re-adding an item replaces its
    quantity, it never sums. `offered` holds the names shown as orderable by
    the last summary; that is what a confirm commits.
    """

    customer_id: str
    retailer_id: str
    state: CartState = CartState.EMPTY
    lines: Dict[str, ResolvedLine] = field(default_factory=dict)
    offered: List[str] = field(default_factory=list)
    version: int = 0

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def line_list(self) -> List[ResolvedLine]:
        return list(self.lines.values())

    def offered_lines(self) -> List[ResolvedLine]:
        return [self.lines[k] for k in self.offered if k in self.lines]

    def _require(self, *states: CartState) -> None:
        if self.state not in states:
            wanted = ", ".join(s.value for s in states)
            raise InvalidTransition(f"cart is {self.state.value}, expected one of: {wanted}")

    def _move(self, new_state: CartState) -> None:
        if new_state is not self.state:
            logger.info(
                "cart %s/%s: %s -> %s", self.customer_id, self.retailer_id, self.state.value, new_state.value
            )
        self.state = new_state
        self.version += 1

    def find_key(self, name: str) -> Optional[str]:
        """Cart key for a spoken name: exact, then singular/plural or a local word, then a close typo."""
        key = fold(name)
        if key in self.lines:
            return key
        by_match = {match_key(k): k for k in self.lines}
        mk = match_key(english_item_name(name) or name)
        if mk in by_match:
            return by_match[mk]
        best = fuzzy_best_key(list(by_match), mk)
        return by_match[best] if best else None

    # --- transitions ---

    def upsert(self, lines: Iterable[ResolvedLine]) -> List[str]:
        """Add or replace lines by canonical name. Returns the names touched."""
        self._require(CartState.EMPTY, CartState.BUILDING, CartState.AWAITING_CONFIRMATION)
        touched: List[str] = []
        for ln in lines:
            self.lines[fold(ln.canonical_name)] = ln
            touched.append(ln.canonical_name)
        if touched:
            self.offered = []
            self._move(CartState.BUILDING)
        return touched

    def remove(self, names: Iterable[str]) -> List[str]:
        self._require(CartState.EMPTY, CartState.BUILDING, CartState.AWAITING_CONFIRMATION)
        removed: List[str] = []
        for name in names:
            key = self.find_key(name)
            if key is not None:
                removed.append(self.lines.pop(key).canonical_name)
        if removed or self.state is CartState.AWAITING_CONFIRMATION:
            self.offered = []
            self._move(CartState.BUILDING if self.lines else CartState.EMPTY)
        return removed

    def summarize(self, report: AvailabilityReport) -> AvailabilityReport:
        """
        Record the availability shown to the customer. With at least one
        orderable line the cart waits for confirmation, otherwise it keeps building.
        """
        self._require(CartState.BUILDING, CartState.AWAITING_CONFIRMATION)
        orderable = report.orderable
        # reprice cart lines to what was shown
        for ln in orderable:
            self.lines[fold(ln.canonical_name)] = ln
        self.offered = [fold(ln.canonical_name) for ln in orderable]
        self._move(CartState.AWAITING_CONFIRMATION if orderable else CartState.BUILDING)
        return report

    def mark_committed(self) -> None:
        self._require(CartState.AWAITING_CONFIRMATION)
        self.lines = {}
        self.offered = []
        self._move(CartState.COMMITTED)

    def cancel(self) -> bool:
        """Idempotent: cancelling a cancelled cart is a no-op. Returns True if the state changed."""
        if self.state is CartState.CANCELLED:
            return False
        if self.state is CartState.COMMITTED:
            raise InvalidTransition("cart is already committed")
        self.lines = {}
        self.offered = []
        self._move(CartState.CANCELLED)
        return True

    # --- session store ---

    def to_json(self) -> Tuple[str, str]:
        lines = [ln.as_dict() for ln in self.lines.values()]
        return json.dumps(lines, ensure_ascii=False), json.dumps(self.offered, ensure_ascii=False)

    @classmethod
    def from_json(
        cls,
        customer_id: str,
        retailer_id: str,
        state: str,
        lines_json: Optional[str],
        offered_json: Optional[str] = None,
        version: int = 0,
    ) -> "Cart":
        cart = cls(customer_id=customer_id, retailer_id=retailer_id, version=version)
        try:
            cart.state = CartState(state or CartState.EMPTY.value)
            raw_lines = json.loads(lines_json or "[]")
            raw_offered = json.loads(offered_json or "[]")
            for x in raw_lines if isinstance(raw_lines, list) else []:
                ln = ResolvedLine(
                    canonical_name=str(x["name"]),
                    unit=str(x.get("unit") or "piece"),
                    quantity=Decimal(str(x["quantity"])),
                    unit_price=Decimal(str(x.get("unit_price", "0"))),
                    line_total=Decimal(str(x.get("line_total", "0"))),
                    requested_name=str(x.get("requested_name") or ""),
                )
                cart.lines[fold(ln.canonical_name)] = ln
        except (ValueError, TypeError, KeyError, ArithmeticError):
            logger.warning("cart %s/%s: unreadable session, starting fresh", customer_id, retailer_id)
            return cls(customer_id=customer_id, retailer_id=retailer_id, version=version)

        cart.offered = [str(k) for k in raw_offered if str(k) in cart.lines] if isinstance(raw_offered, list) else []
        return cart
