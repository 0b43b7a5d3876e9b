# storechat/ordering/units.py
from __future__ import annotations

import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Dict, Optional, Tuple

from .errors import InvalidQuantityError, UnitMismatchError
from .nlp import fold

QTY_PLACES = Decimal("0.001")
# upper bound for one line
MAX_QUANTITY = Decimal("1000000")

# alias -> canonical unit
_UNIT_ALIASES: Dict[str, str] = {
    "g": "g", "gm": "g", "gms": "g", "gr": "g", "gram": "g", "grams": "g", "gramme": "g", "grammes": "g",
    "kg": "kg", "kgs": "kg", "kilo": "kg", "kilos": "kg", "kilogram": "kg", "kilograms": "kg",
    "ml": "ml", "millilitre": "ml", "millilitres": "ml", "milliliter": "ml", "milliliters": "ml",
    "l": "litre", "lt": "litre", "ltr": "litre", "ltrs": "litre", "litre": "litre", "litres": "litre",
    "liter": "litre", "liters": "litre",
    "piece": "piece", "pieces": "piece", "pc": "piece", "pcs": "piece", "nos": "piece", "no": "piece",
    "unit": "piece", "units": "piece", "packet": "piece", "packets": "piece", "pack": "piece",
    "dozen": "dozen", "dozens": "dozen", "dz": "dozen",
}

# canonical unit -> (dimension, factor to the dimension's base unit)
_DIMENSIONS: Dict[str, Tuple[str, Decimal]] = {
    "g": ("mass", Decimal("0.001")),
    "kg": ("mass", Decimal("1")),
    "ml": ("volume", Decimal("0.001")),
    "litre": ("volume", Decimal("1")),
    "piece": ("count", Decimal("1")),
    "dozen": ("count", Decimal("12")),
}

_WORD_NUMBERS: Dict[str, Decimal] = {
    "a": Decimal(1), "an": Decimal(1), "one": Decimal(1), "two": Decimal(2), "three": Decimal(3),
    "four": Decimal(4), "five": Decimal(5), "six": Decimal(6), "seven": Decimal(7), "eight": Decimal(8),
    "nine": Decimal(9), "ten": Decimal(10), "half": Decimal("0.5"), "quarter": Decimal("0.25"),
    "ek": Decimal(1), "do": Decimal(2), "teen": Decimal(3), "char": Decimal(4), "paanch": Decimal(5),
    "aadha": Decimal("0.5"),
}

# Hindi numerals double as ordinary words ("do you have..."), so they only count before a unit
_UNIT_ONLY_WORDS = {"ek", "do", "teen", "char", "paanch", "aadha"}

# "2kg rice", "2.5 kg of rice", "500 g onions", "a dozen eggs", "half kg dal", "3 x soap"
_QTY_TEXT_RE = re.compile(
    r"^\s*(?P<num>\d+(?:\.\d+)?|[a-z]+)\s*(?:x\s+)?(?P<unit>[a-z]+)?\s*(?:of\s+)?(?P<rest>.*)$",
    re.IGNORECASE,
)


def canonical_unit(unit: Optional[str]) -> Optional[str]:
    if unit is None:
        return None
    return _UNIT_ALIASES.get(fold(unit).replace(" ", ""))


def parse_quantity(value: Any) -> Decimal:
    """Validate a raw quantity: a finite number strictly above zero."""
    if isinstance(value, bool):
        raise InvalidQuantityError(f"invalid quantity: {value!r}")
    try:
        q = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise InvalidQuantityError(f"invalid quantity: {value!r}") from None
    if not q.is_finite() or q <= 0:
        raise InvalidQuantityError(f"quantity must be > 0, got {value!r}")
    if q > MAX_QUANTITY:
        raise InvalidQuantityError(f"quantity too large: {value!r}")
    return q


def normalize_quantity(quantity: Any, unit_hint: Optional[str], catalog_unit: str) -> Decimal:
    """
    Convert (quantity, unit_hint) into the catalog unit.

    Only g<->kg, ml<->litre and piece/dozen conversions exist; anything else
    is a UnitMismatchError rather than a guess. No hint means the catalog unit.
    """
    q = parse_quantity(quantity)

    target = canonical_unit(catalog_unit)
    if target is None:
        raise UnitMismatchError(unit_hint, catalog_unit)

    if unit_hint is None or not str(unit_hint).strip():
        source = target
    else:
        source = canonical_unit(str(unit_hint))
        if source is None:
            raise UnitMismatchError(unit_hint, catalog_unit)

    src_dim, src_factor = _DIMENSIONS[source]
    dst_dim, dst_factor = _DIMENSIONS[target]
    if src_dim != dst_dim:
        raise UnitMismatchError(unit_hint, catalog_unit)

    try:
        converted = (q * src_factor / dst_factor).quantize(QTY_PLACES, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise InvalidQuantityError(f"quantity too large: {quantity!r}") from None
    if converted <= 0:
        raise InvalidQuantityError(f"{quantity} {unit_hint} is too small to order in {catalog_unit}")
    if converted == converted.to_integral_value():
        return converted.quantize(Decimal(1))
    return converted.normalize()


def parse_quantity_text(text: str) -> Tuple[Optional[Decimal], Optional[str], str]:
    """
    Split a leading quantity + unit off an item phrase.

    Returns (quantity, unit, name). quantity is None when the phrase has no
    leading amount ("rice" -> (None, None, "rice")).
    """
    s = (text or "").strip()
    # "2kg" glued together
    s = re.sub(r"^(\d+(?:\.\d+)?)([a-zA-Z])", r"\1 \2", s)
    m = _QTY_TEXT_RE.match(s)
    if not m:
        return None, None, s

    raw_num = m.group("num").lower()
    if raw_num[0].isdigit():
        qty: Optional[Decimal] = Decimal(raw_num)
    else:
        qty = _WORD_NUMBERS.get(raw_num)
    if qty is None:
        return None, None, s

    unit = m.group("unit")
    if raw_num in _UNIT_ONLY_WORDS and canonical_unit(unit or "") is None:
        return None, None, s
    rest = (m.group("rest") or "").strip()
    if unit and canonical_unit(unit) is None:
        # not a unit, it is the first word of the item name
        rest = f"{unit} {rest}".strip()
        unit = None
    if not rest:
        return None, None, s
    return qty, (canonical_unit(unit) if unit else None), rest
