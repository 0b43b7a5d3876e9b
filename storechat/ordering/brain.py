# storechat/ordering/brain.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .availability import AvailabilityReport, partition
from .cart import Cart, CartState
from .catalog import currency_symbol
from .commands import (
    AddCommand,
    CancelCommand,
    Command,
    ConfirmCommand,
    RemoveCommand,
    SummaryCommand,
)
from .committer import CommitRequest, OrderCommitter
from .errors import CommitConflict, EmptyCartCommit, InvalidTransition
from .inventory_store import InventoryProvider, Order
from .nlp import fold
from .resolver import DEFAULT_THRESHOLD, FailedLine, ResolvedLine, resolve_lines
from .units import parse_quantity

logger = logging.getLogger(__name__)


# ----------------------------
# Phrasebooks (English fallback)
# ----------------------------
_PHRASES: Dict[str, Dict[str, str]] = {
    "en": {
        "found": "Found in stock:",
        "limited": "Limited stock:",
        "missing": "Not available:",
        "only_left": "only {qty} {unit} left",
        "try": "Try: {names}",
        "total": "Total: {amount}",
        "review": "Say 'cart' to review your order.",
        "ask_confirm": "Reply 'yes' to place the order or 'cancel' to stop.",
        "nothing_orderable": "None of these can be ordered right now.",
        "empty": "Your cart is empty. Tell me what you need, e.g. '2kg rice, 1 litre milk'.",
        "removed": "Removed: {names}.",
        "not_in_cart": "That is not in your cart: {names}.",
        "remove_what": "Which item should I remove?",
        "placed": "Order placed ✅ #{order_id}\n{count} item(s), total {amount}.",
        "conflict": "Stock changed before I could place the order: {names}. Here is the updated cart.",
        "cancelled": "Order cancelled. Start again any time.",
        "already_cancelled": "Your order is already cancelled.",
        "unknown": "I didn't catch that. Tell me items like '2kg rice', or say 'cart', 'yes' or 'cancel'.",
    },
    "hi": {
        "found": "स्टॉक में है:",
        "limited": "सीमित स्टॉक:",
        "missing": "उपलब्ध नहीं:",
        "only_left": "सिर्फ़ {qty} {unit} बचा है",
        "try": "इनमें से लें: {names}",
        "total": "कुल: {amount}",
        "review": "ऑर्डर देखने के लिए 'cart' लिखें।",
        "ask_confirm": "ऑर्डर करने के लिए 'haan' लिखें, रद्द करने के लिए 'cancel'।",
        "nothing_orderable": "इनमें से कुछ भी अभी ऑर्डर नहीं हो सकता।",
        "empty": "आपका कार्ट खाली है। जैसे लिखें: '2kg chawal, 1 litre doodh'.",
        "removed": "हटा दिया: {names}.",
        "not_in_cart": "यह आपके कार्ट में नहीं है: {names}.",
        "remove_what": "कौन सा सामान हटाना है?",
        "placed": "ऑर्डर हो गया ✅ #{order_id}\n{count} सामान, कुल {amount}.",
        "conflict": "ऑर्डर से पहले स्टॉक बदल गया: {names}. नया कार्ट देखिए।",
        "cancelled": "ऑर्डर रद्द कर दिया गया।",
        "already_cancelled": "आपका ऑर्डर पहले से रद्द है।",
        "unknown": "समझ नहीं आया। जैसे '2kg chawal' लिखें, या 'cart', 'haan', 'cancel'.",
    },
}


def phrase(language: str, key: str, **kw: Any) -> str:
    lang = (language or "en").lower()[:2]
    book = _PHRASES.get(lang, _PHRASES["en"])
    return book.get(key, _PHRASES["en"][key]).format(**kw)


def fmt_qty(q: Optional[Decimal]) -> str:
    if q is None:
        return "?"
    return format(q.normalize(), "f")


def fmt_money(amount: Decimal, currency: str = "INR") -> str:
    return f"{currency_symbol(currency)}{amount:.2f}"


def render_report(report: AvailabilityReport, language: str = "en", currency: str = "INR") -> str:
    out: List[str] = []
    if report.available:
        out.append(phrase(language, "found"))
        for ln in report.available:
            out.append(f"- {ln.canonical_name} {fmt_qty(ln.quantity)} {ln.unit} = {fmt_money(ln.line_total, currency)}")
    if report.low_stock:
        out.append(phrase(language, "limited"))
        for x in report.low_stock:
            left = phrase(language, "only_left", qty=fmt_qty(x.available_qty), unit=x.line.unit)
            out.append(
                f"- {x.line.canonical_name} {fmt_qty(x.line.quantity)} {x.line.unit} = "
                f"{fmt_money(x.line.line_total, currency)} ({left})"
            )
    if report.unavailable:
        out.append(phrase(language, "missing"))
        for u in report.unavailable:
            amount = f" {fmt_qty(u.quantity)} {u.unit or ''}".rstrip() if u.quantity is not None else ""
            row = f"- {u.canonical_name or u.requested_name}{amount}: {u.reason}"
            if u.alternatives:
                row += ". " + phrase(language, "try", names=", ".join(u.alternatives))
            out.append(row)
    if report.orderable:
        out.append("")
        out.append(phrase(language, "total", amount=fmt_money(report.total, currency)))
    elif len(report):
        out.append(phrase(language, "nothing_orderable"))
    return "\n".join(out).strip()


# ----------------------------
# Turn handling
# ----------------------------
@dataclass
class TurnResult:
    reply: str
    cart: Cart
    report: Optional[AvailabilityReport] = None
    order: Optional[Order] = None
    conflict: Optional[CommitConflict] = None
    removed: List[str] = field(default_factory=list)


def _select_lines(cart: Cart, confirmed_items: Optional[Sequence[Dict[str, Any]]]) -> List[ResolvedLine]:
    offered = cart.offered_lines()
    if confirmed_items is None:
        return offered

    by_key = {fold(ln.canonical_name): ln for ln in offered}
    picked: Dict[str, ResolvedLine] = {}
    for raw in confirmed_items:
        key = fold(str(raw.get("name") or ""))
        ln = by_key.get(key)
        if ln is None:
            logger.info("confirmed item not offered in cart: %r", raw.get("name"))
            continue
        if raw.get("quantity") is not None:
            ln = ResolvedLine(
                canonical_name=ln.canonical_name,
                unit=ln.unit,
                quantity=parse_quantity(raw["quantity"]),
                unit_price=ln.unit_price,
                line_total=ln.line_total,
                requested_name=ln.requested_name,
            )
        picked[key] = ln
    return list(picked.values())


def commit_cart(
    cart: Cart,
    committer: OrderCommitter,
    confirmed_items: Optional[Sequence[Dict[str, Any]]] = None,
    notes: str = "",
) -> Order:
    """
    Commit the lines the last summary offered (optionally a subset of them).
    The cart only moves to COMMITTED once the order exists.
    """
    lines = _select_lines(cart, confirmed_items)
    if not lines:
        raise EmptyCartCommit()
    if cart.state is not CartState.AWAITING_CONFIRMATION:
        raise InvalidTransition(f"cart is {cart.state.value}; review it before confirming")

    order = committer.commit(CommitRequest.from_lines(cart.retailer_id, cart.customer_id, lines, notes=notes))
    cart.mark_committed()
    return order


def _summarize(cart: Cart, inventory: InventoryProvider, extra: Iterable[FailedLine], max_alternatives: int, precision: int) -> AvailabilityReport:
    snapshot = inventory.get_snapshot(cart.retailer_id)
    report = partition(list(cart.line_list()) + list(extra), snapshot, max_alternatives, precision)
    if cart.state in (CartState.BUILDING, CartState.AWAITING_CONFIRMATION):
        cart.summarize(report)
    return report


def handle_turn(
    command: Command,
    cart: Cart,
    inventory: InventoryProvider,
    language: str = "en",
    committer: Optional[OrderCommitter] = None,
    threshold: float = DEFAULT_THRESHOLD,
    max_alternatives: int = 3,
    currency: str = "INR",
    precision: int = 2,
) -> TurnResult:
    """
    Apply one parsed command to the cart and build the reply.

    Line-level problems (unknown items, bad units, short stock) are part of the
    reply, never errors. A terminal cart is replaced by a fresh one first.
    """
    if cart.is_terminal and not (isinstance(command, CancelCommand) and cart.state is CartState.CANCELLED):
        cart = Cart(customer_id=cart.customer_id, retailer_id=cart.retailer_id)

    lang = language

    # --- add / modify ---
    if isinstance(command, AddCommand):
        snapshot = inventory.get_snapshot(cart.retailer_id)
        resolved = resolve_lines(command.lines, snapshot, threshold, max_alternatives, precision)
        good = [x for x in resolved if isinstance(x, ResolvedLine)]
        failed = [x for x in resolved if isinstance(x, FailedLine)] + list(command.rejected)
        touched = {fold(name) for name in cart.upsert(good)}
        shown = [ln for ln in cart.line_list() if fold(ln.canonical_name) in touched]
        report = partition(shown + failed, snapshot, max_alternatives, precision)
        reply = render_report(report, lang, currency)
        if cart.state is CartState.BUILDING:
            reply += "\n" + phrase(lang, "review")
        return TurnResult(reply=reply, cart=cart, report=report)

    # --- remove ---
    if isinstance(command, RemoveCommand):
        if not command.names:
            return TurnResult(reply=phrase(lang, "remove_what"), cart=cart)
        missing = [n for n in command.names if cart.find_key(n) is None]
        removed = cart.remove(command.names)
        out: List[str] = []
        if removed:
            out.append(phrase(lang, "removed", names=", ".join(removed)))
        if missing:
            out.append(phrase(lang, "not_in_cart", names=", ".join(missing)))
        report = None
        if cart.state is CartState.EMPTY:
            out.append(phrase(lang, "empty"))
        else:
            snapshot = inventory.get_snapshot(cart.retailer_id)
            report = partition(cart.line_list(), snapshot, max_alternatives, precision)
            out.append(render_report(report, lang, currency))
            out.append(phrase(lang, "review"))
        return TurnResult(reply="\n".join(out), cart=cart, report=report, removed=removed)

    # --- summary ---
    if isinstance(command, SummaryCommand):
        if cart.state is CartState.EMPTY:
            return TurnResult(reply=phrase(lang, "empty"), cart=cart)
        report = _summarize(cart, inventory, (), max_alternatives, precision)
        reply = render_report(report, lang, currency)
        if cart.state is CartState.AWAITING_CONFIRMATION:
            reply += "\n" + phrase(lang, "ask_confirm")
        return TurnResult(reply=reply, cart=cart, report=report)

    # --- confirm ---
    if isinstance(command, ConfirmCommand):
        if cart.state is CartState.EMPTY:
            return TurnResult(reply=phrase(lang, "empty"), cart=cart)

        if cart.state is CartState.BUILDING:
            report = _summarize(cart, inventory, (), max_alternatives, precision)
            reply = render_report(report, lang, currency)
            if cart.state is CartState.AWAITING_CONFIRMATION:
                reply += "\n" + phrase(lang, "ask_confirm")
            return TurnResult(reply=reply, cart=cart, report=report)

        committer = committer or OrderCommitter(inventory)
        try:
            order = commit_cart(cart, committer)
        except EmptyCartCommit:
            return TurnResult(reply=phrase(lang, "empty"), cart=cart)
        except CommitConflict as e:
            report = _summarize(cart, inventory, (), max_alternatives, precision)
            names = ", ".join(c.canonical_name for c in e.changed_lines)
            reply = phrase(lang, "conflict", names=names) + "\n" + render_report(report, lang, currency)
            if cart.state is CartState.AWAITING_CONFIRMATION:
                reply += "\n" + phrase(lang, "ask_confirm")
            return TurnResult(reply=reply, cart=cart, report=report, conflict=e)

        reply = phrase(
            lang, "placed", order_id=order.order_id[:8], count=order.items_count,
            amount=fmt_money(order.total, currency),
        )
        return TurnResult(reply=reply, cart=cart, order=order)

    # --- cancel ---
    if isinstance(command, CancelCommand):
        changed = cart.cancel()
        return TurnResult(reply=phrase(lang, "cancelled" if changed else "already_cancelled"), cart=cart)

    return TurnResult(reply=phrase(lang, "unknown"), cart=cart)
