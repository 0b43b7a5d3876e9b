# storechat/command_router.py
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from .ordering.commands import AddCommand, Command, UnknownCommand, parse_command, parse_staples
from .ordering.errors import FulfillmentError, InvalidQuantityError, UnresolvedItem
from .ordering.resolver import FailedLine, RequestedLine, reject_line

logger = logging.getLogger(__name__)


def detected_to_add(detected_items: Sequence[Any]) -> AddCommand:
    """
    Validate NLP output item by item. Anything malformed becomes a rejected
    line (shown as unavailable) instead of failing the turn.
    """
    lines: List[RequestedLine] = []
    rejected: List[FailedLine] = []
    for raw in detected_items:
        try:
            if not isinstance(raw, dict):
                raise UnresolvedItem(str(raw), reason="unreadable item")
            name = str(raw.get("name") or raw.get("item_name") or "").strip()
            qty = raw.get("quantity")
            if qty is None:
                qty = 1
            elif isinstance(qty, (list, dict)):
                raise InvalidQuantityError(f"invalid quantity: {qty!r}")
            unit = raw.get("unit")
            lines.append(RequestedLine(raw_text=name, quantity=qty, unit_hint=str(unit) if unit else None))
        except FulfillmentError as e:
            logger.info("dropping malformed detected item %r: %s", raw, e)
            rejected.append(reject_line(raw, e))
    return AddCommand(lines=tuple(lines), rejected=tuple(rejected))


def turn_to_command(
    raw_text: str,
    language: str = "en",
    detected_items: Optional[Sequence[Dict[str, Any]]] = None,
) -> Command:
    """
    Items from the NLP layer win; without them the text is parsed locally
    (control words, removals, simple "2kg rice" lists).
    """
    if detected_items:
        return detected_to_add(detected_items)
    return parse_command(raw_text, language)


def with_staple_fallback(command: Command, raw_text: str, catalog_names: Sequence[str]) -> Command:
    """Give an UnknownCommand one more chance through the staple keyword scan."""
    if not isinstance(command, UnknownCommand):
        return command
    staples = parse_staples(raw_text, catalog_names)
    if staples is None:
        return command
    logger.info("staple fallback for %r: %s", raw_text, [ln.raw_text for ln in staples.lines])
    return staples
