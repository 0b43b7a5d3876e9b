# storechat/ordering/resolver.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import List, Optional, Sequence, Tuple, Union

from .catalog import CatalogItem, Snapshot, quantize_money
from .errors import FulfillmentError, InvalidQuantityError, UnitMismatchError, UnresolvedItem
from .nlp import english_item_name, fold, match_key, similarity
from .units import canonical_unit, normalize_quantity, parse_quantity

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.80
SUGGESTION_FLOOR = 0.5
_TIE_EPSILON = 1e-9


@dataclass(frozen=True)
class RequestedLine:
    raw_text: str
    quantity: Decimal
    unit_hint: Optional[str] = None

    def __post_init__(self) -> None:
        if not fold(self.raw_text):
            raise UnresolvedItem(self.raw_text or "", reason="empty item name")
        object.__setattr__(self, "quantity", parse_quantity(self.quantity))


@dataclass(frozen=True)
class Candidate:
    name: str
    score: float


@dataclass(frozen=True)
class Resolution:
    phrase: str
    candidates: Tuple[Candidate, ...]
    selected: Optional[CatalogItem] = None


@dataclass(frozen=True)
class ResolvedLine:
    canonical_name: str
    unit: str
    quantity: Decimal
    unit_price: Decimal
    line_total: Decimal
    requested_name: str = ""

    def as_dict(self) -> dict:
        return {
            "name": self.canonical_name,
            "requested_name": self.requested_name or self.canonical_name,
            "quantity": str(self.quantity),
            "unit": self.unit,
            "unit_price": str(self.unit_price),
            "line_total": str(self.line_total),
        }


@dataclass(frozen=True)
class FailedLine:
    """A requested line that never reached the catalog: unresolved, bad unit or malformed."""

    requested_name: str
    reason: str
    quantity: Optional[Decimal] = None
    unit: Optional[str] = None
    alternatives: Tuple[str, ...] = ()


LineInput = Union[ResolvedLine, FailedLine]


def price_line(item: CatalogItem, quantity: Decimal, requested_name: str = "", precision: int = 2) -> ResolvedLine:
    try:
        total = quantize_money(item.unit_price * quantity, precision)
    except InvalidOperation:
        raise InvalidQuantityError(f"{quantity} {item.unit} of {item.canonical_name} is too large to price") from None
    return ResolvedLine(
        canonical_name=item.canonical_name,
        unit=item.unit,
        quantity=quantity,
        unit_price=item.unit_price,
        line_total=total,
        requested_name=requested_name,
    )


def rank_candidates(phrase: str, items: Sequence[CatalogItem]) -> List[Candidate]:
    q = match_key(phrase)
    scored = [Candidate(it.canonical_name, similarity(q, match_key(it.canonical_name))) for it in items]
    scored.sort(key=lambda c: (-c.score, fold(c.name)))
    return scored


def resolve_item(phrase: str, snapshot: Snapshot, threshold: float = DEFAULT_THRESHOLD) -> Resolution:
    """
    Map one phrase to a catalog item.

    1) exact match on the folded name (or on the singularised key, or on the
       English name of a local word like "tamatar")
    2) fuzzy match; only a single best candidate at/above threshold is selected
    Ties and sub-threshold scores leave `selected` empty.
    """
    exact = snapshot.get(phrase) or snapshot.get_by_match_key(match_key(phrase))
    local = english_item_name(phrase)
    if exact is None and local is not None:
        exact = snapshot.get(local) or snapshot.get_by_match_key(match_key(local))
    if exact is not None:
        return Resolution(phrase=phrase, candidates=(Candidate(exact.canonical_name, 1.0),), selected=exact)

    ranked = [c for c in rank_candidates(local or phrase, list(snapshot.items)) if c.score > 0]
    if not ranked:
        return Resolution(phrase=phrase, candidates=())

    best = ranked[0]
    tied = len(ranked) > 1 and abs(ranked[1].score - best.score) < _TIE_EPSILON
    if best.score >= threshold and not tied:
        return Resolution(phrase=phrase, candidates=tuple(ranked), selected=snapshot.get(best.name))
    return Resolution(phrase=phrase, candidates=tuple(ranked))


def _in_stock(names: Sequence[str], snapshot: Snapshot, limit: int) -> Tuple[str, ...]:
    out: List[str] = []
    for name in names:
        if len(out) >= limit:
            break
        item = snapshot.get(name)
        if item is not None and item.stock_qty > 0:
            out.append(item.canonical_name)
    return tuple(out)


def resolve_line(
    line: RequestedLine,
    snapshot: Snapshot,
    threshold: float = DEFAULT_THRESHOLD,
    precision: int = 2,
) -> ResolvedLine:
    """Resolve + normalise + price one line. Raises UnresolvedItem / UnitMismatchError."""
    res = resolve_item(line.raw_text, snapshot, threshold)
    if res.selected is None:
        names = [c.name for c in res.candidates if c.score >= SUGGESTION_FLOOR]
        reason = "ambiguous item" if names and res.candidates[0].score >= threshold else "no matching item"
        raise UnresolvedItem(line.raw_text, names, reason=reason)

    qty = normalize_quantity(line.quantity, line.unit_hint, res.selected.unit)
    return price_line(res.selected, qty, requested_name=line.raw_text, precision=precision)


def resolve_lines(
    lines: Sequence[RequestedLine],
    snapshot: Snapshot,
    threshold: float = DEFAULT_THRESHOLD,
    max_alternatives: int = 3,
    precision: int = 2,
) -> List[LineInput]:
    """
    Resolve every requested line independently. A failure on one line becomes a
    FailedLine and never stops the others.
    """
    out: List[LineInput] = []
    for line in lines:
        try:
            out.append(resolve_line(line, snapshot, threshold, precision))
        except UnresolvedItem as e:
            logger.info("unresolved item retailer=%s phrase=%r reason=%s", snapshot.retailer_id, line.raw_text, e.reason)
            out.append(
                FailedLine(
                    requested_name=line.raw_text,
                    reason=e.reason,
                    quantity=line.quantity,
                    unit=canonical_unit(line.unit_hint) or line.unit_hint,
                    alternatives=_in_stock(e.candidates, snapshot, max_alternatives),
                )
            )
        except UnitMismatchError as e:
            logger.info("unit mismatch retailer=%s phrase=%r %s", snapshot.retailer_id, line.raw_text, e)
            out.append(
                FailedLine(
                    requested_name=line.raw_text,
                    reason=f"cannot sell in '{e.unit_hint}', this item is sold per {e.catalog_unit}",
                    quantity=line.quantity,
                    unit=line.unit_hint,
                )
            )
        except InvalidQuantityError as e:
            out.append(FailedLine(requested_name=line.raw_text, reason=str(e), quantity=line.quantity, unit=line.unit_hint))
    return out


def reject_line(raw: object, error: FulfillmentError) -> FailedLine:
    """FailedLine for NLP output that could not even become a RequestedLine."""
    name = ""
    if isinstance(raw, dict):
        name = str(raw.get("name") or raw.get("item_name") or "").strip()
    return FailedLine(requested_name=name or "?", reason=str(error))
