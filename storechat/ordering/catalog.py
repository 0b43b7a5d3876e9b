# storechat/ordering/catalog.py
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .nlp import fold, match_key

DEFAULT_MIN_STOCK = Decimal("5")
DEFAULT_CATEGORY = "Other"


def to_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def quantize_money(value: Decimal, precision: int = 2) -> Decimal:
    return value.quantize(Decimal(1).scaleb(-precision), rounding=ROUND_HALF_UP)


def currency_symbol(currency: str) -> str:
    cur = (currency or "INR").upper()
    return {"INR": "₹", "GBP": "£", "USD": "$", "EUR": "€"}.get(cur, "")


@dataclass(frozen=True)
class CatalogItem:
    canonical_name: str
    unit: str
    stock_qty: Decimal
    unit_price: Decimal
    min_stock_level: Decimal = DEFAULT_MIN_STOCK
    category: str = DEFAULT_CATEGORY
    version: int = 0

    def __post_init__(self) -> None:
        for attr in ("stock_qty", "unit_price", "min_stock_level"):
            object.__setattr__(self, attr, to_decimal(getattr(self, attr)))
        if not fold(self.canonical_name):
            raise ValueError("canonical_name must not be empty")
        if self.stock_qty < 0:
            raise ValueError(f"{self.canonical_name}: stock_qty must be >= 0")
        if self.unit_price <= 0:
            raise ValueError(f"{self.canonical_name}: unit_price must be > 0")
        if self.min_stock_level < 0:
            raise ValueError(f"{self.canonical_name}: min_stock_level must be >= 0")

    @property
    def key(self) -> str:
        return fold(self.canonical_name)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "name": self.canonical_name,
            "unit": self.unit,
            "stock_qty": str(self.stock_qty),
            "unit_price": str(self.unit_price),
            "min_stock_level": str(self.min_stock_level),
            "category": self.category,
        }


@dataclass(frozen=True)
class Snapshot:
    """Point-in-time read of one retailer's catalog. Never assumed current."""

    retailer_id: str
    items: Tuple[CatalogItem, ...] = ()
    _by_key: Dict[str, CatalogItem] = field(default_factory=dict, init=False, repr=False, compare=False)
    _by_match_key: Dict[str, CatalogItem] = field(default_factory=dict, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "items", tuple(self.items))
        for it in self.items:
            if it.key in self._by_key:
                raise ValueError(f"duplicate canonical name for retailer {self.retailer_id}: {it.canonical_name}")
            self._by_key[it.key] = it
            self._by_match_key.setdefault(match_key(it.canonical_name), it)

    def get(self, name: str) -> Optional[CatalogItem]:
        return self._by_key.get(fold(name))

    def get_by_match_key(self, key: str) -> Optional[CatalogItem]:
        return self._by_match_key.get(key)

    def in_category(self, category: str) -> List[CatalogItem]:
        return [it for it in self.items if it.category == category]

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self):
        return iter(self.items)


def build_snapshot(retailer_id: str, rows: Iterable[Dict[str, Any]]) -> Snapshot:
    """Snapshot from plain dicts (catalog.json rows, API payloads)."""
    items: List[CatalogItem] = []
    for row in rows:
        items.append(
            CatalogItem(
                canonical_name=str(row.get("name") or row.get("canonical_name") or "").strip(),
                unit=str(row.get("unit") or "piece").strip().lower(),
                stock_qty=to_decimal(row.get("stock_qty", 0)),
                unit_price=to_decimal(row.get("unit_price", 0)),
                min_stock_level=to_decimal(row.get("min_stock_level", DEFAULT_MIN_STOCK)),
                category=str(row.get("category") or DEFAULT_CATEGORY),
                version=int(row.get("version", 0) or 0),
            )
        )
    return Snapshot(retailer_id=retailer_id, items=tuple(items))
