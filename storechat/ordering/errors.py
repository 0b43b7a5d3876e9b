# storechat/ordering/errors.py
from __future__ import annotations

from typing import Any, Dict, List, Sequence


class FulfillmentError(Exception):
    pass


class InvalidQuantityError(FulfillmentError, ValueError):
    pass


class UnitMismatchError(FulfillmentError, ValueError):
    def __init__(self, unit_hint: str | None, catalog_unit: str):
        self.unit_hint = unit_hint
        self.catalog_unit = catalog_unit
        super().__init__(f"cannot convert '{unit_hint}' to '{catalog_unit}'")


class UnresolvedItem(FulfillmentError):
    """No single confident catalog match for a phrase.

    `candidates` keeps the best-scoring names (possibly tied or below
    threshold) so callers can offer them as alternatives.
    """

    def __init__(self, phrase: str, candidates: Sequence[str] = (), reason: str = "no matching item"):
        self.phrase = phrase
        self.candidates = list(candidates)
        self.reason = reason
        super().__init__(f"{reason}: '{phrase}'")


class InvalidTransition(FulfillmentError):
    pass


class EmptyCartCommit(FulfillmentError):
    def __init__(self) -> None:
        super().__init__("nothing available to order")


class CommitConflict(FulfillmentError):
    """Stock changed between display and confirmation. Nothing was applied."""

    def __init__(self, changed_lines: Sequence[Any]):
        self.changed_lines = list(changed_lines)
        names = ", ".join(c.canonical_name for c in self.changed_lines)
        super().__init__(f"stock changed for: {names}")

    def as_dict(self) -> Dict[str, Any]:
        lines: List[Dict[str, Any]] = [c.as_dict() for c in self.changed_lines]
        return {"conflict": True, "changed_lines": lines}
