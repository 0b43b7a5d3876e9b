# storechat/main.py
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

from fastapi import Depends, FastAPI, Header, HTTPException
from openai import OpenAIError
from pydantic import BaseModel
from sqlalchemy.orm import Session

from .ai_intent import extract_items_llm, extraction_items
from .command_router import turn_to_command, with_staple_fallback
from .config import settings
from .db import Base, engine, get_db
from .auth import decode_token
from .inventory import SqlInventory
from .models import CartSession
from .ordering.availability import partition
from .ordering.brain import commit_cart, handle_turn
from .ordering.cart import Cart, CartState
from .ordering.catalog import Snapshot
from .ordering.commands import AddCommand, CancelCommand, Command, UnknownCommand
from .ordering.committer import OrderCommitter
from .ordering.errors import CommitConflict, EmptyCartCommit, InvalidQuantityError, InvalidTransition
from .ordering.inventory_store import utcnow

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Storechat Ordering API")

Base.metadata.create_all(bind=engine)


# -------------------
# Schemas
# -------------------
class ChatIn(BaseModel):
    message: str
    language: str = "en"
    # loose on purpose: bad items degrade to unavailable lines, not a 422
    detected_items: Optional[List[Any]] = None


class OrderIn(BaseModel):
    confirmed_items: Optional[List[Dict[str, Any]]] = None
    notes: str = ""


# -------------------
# Helpers
# -------------------
def _normalize_id(raw: str) -> str:
    return (raw or "").strip().lower()


def require_customer_id(authorization: str | None = Header(default=None)) -> str:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=401, detail="Missing Bearer token")

    token = authorization.split(" ", 1)[1].strip()
    cid = decode_token(token)
    if not cid:
        raise HTTPException(status_code=401, detail="Invalid token")
    return cid


def get_inventory(db: Session = Depends(get_db)) -> SqlInventory:
    return SqlInventory(db)


def _committer(inventory: SqlInventory) -> OrderCommitter:
    return OrderCommitter(inventory, max_attempts=settings.commit_attempts)


def _require_catalog(inventory: SqlInventory, retailer_id: str) -> Snapshot:
    snapshot = inventory.get_snapshot(retailer_id)
    if not len(snapshot):
        raise HTTPException(status_code=404, detail="Retailer not found")
    return snapshot


def get_or_create_cart(db: Session, customer_id: str, retailer_id: str) -> Tuple[CartSession, Cart]:
    row = (
        db.query(CartSession)
        .filter(CartSession.customer_id == customer_id, CartSession.retailer_id == retailer_id)
        .first()
    )
    if row is None:
        row = CartSession(
            customer_id=customer_id,
            retailer_id=retailer_id,
            state=CartState.EMPTY.value,
            lines_json="[]",
            offered_json="[]",
            version=0,
        )
        db.add(row)
        db.commit()
        db.refresh(row)

    cart = Cart.from_json(
        customer_id=customer_id,
        retailer_id=retailer_id,
        state=row.state,
        lines_json=row.lines_json,
        offered_json=row.offered_json,
        version=int(row.version or 0),
    )
    return row, cart


def save_cart(db: Session, row: CartSession, cart: Cart) -> None:
    row.state = cart.state.value
    row.lines_json, row.offered_json = cart.to_json()
    row.version = cart.version
    row.updated_at = utcnow()
    db.add(row)
    db.commit()


async def _command_for_turn(payload: ChatIn, snapshot: Snapshot) -> Command:
    """
    Local parse first: control words and removals never go to the model.
    Anything else may be sent for extraction. Without the model, or when it
    fails, unknown text still gets the staple keyword scan.
    """
    if payload.detected_items is not None:
        return turn_to_command(payload.message, payload.language, payload.detected_items)

    names = [it.canonical_name for it in snapshot]
    local = turn_to_command(payload.message, payload.language)
    if not isinstance(local, (AddCommand, UnknownCommand)):
        return local
    if not settings.llm_ready:
        return with_staple_fallback(local, payload.message, names)

    try:
        result = await extract_items_llm(payload.message, names, language=payload.language)
    except (OpenAIError, ValueError):
        logger.warning("llm extraction failed, using local parser", exc_info=True)
        return with_staple_fallback(local, payload.message, names)

    items = extraction_items(result)
    if not items:
        return local
    return turn_to_command(payload.message, payload.language, items)


def _cart_payload(cart: Cart) -> Dict[str, Any]:
    return {
        "state": cart.state.value,
        "items": [ln.as_dict() for ln in cart.line_list()],
    }


# -------------------
# Health
# -------------------
@app.get("/")
def root():
    return {"ok": True, "service": "storechat-api"}


# -------------------
# Catalog
# -------------------
@app.get("/retailers/{retailer_id}/catalog")
def retailer_catalog(retailer_id: str, inventory: SqlInventory = Depends(get_inventory)):
    retailer_id = _normalize_id(retailer_id)
    snapshot = _require_catalog(inventory, retailer_id)
    return {
        "retailer_id": retailer_id,
        "currency": settings.currency,
        "items": [it.as_dict() for it in snapshot],
    }


# -------------------
# Chat ordering
# -------------------
@app.post("/retailers/{retailer_id}/chat")
async def chat(
    retailer_id: str,
    payload: ChatIn,
    customer_id: str = Depends(require_customer_id),
    db: Session = Depends(get_db),
):
    retailer_id = _normalize_id(retailer_id)
    inventory = SqlInventory(db)
    snapshot = _require_catalog(inventory, retailer_id)

    row, cart = get_or_create_cart(db, customer_id, retailer_id)
    command = await _command_for_turn(payload, snapshot)

    result = handle_turn(
        command,
        cart,
        inventory,
        language=payload.language,
        committer=_committer(inventory),
        threshold=settings.match_threshold,
        max_alternatives=settings.max_alternatives,
        currency=settings.currency,
    )
    save_cart(db, row, result.cart)

    return {
        "reply": result.reply,
        "retailer_id": retailer_id,
        "cart": _cart_payload(result.cart),
        "summary": result.report.as_dict() if result.report is not None else None,
        "order": result.order.as_dict() if result.order is not None else None,
        "conflict": result.conflict.as_dict() if result.conflict is not None else None,
    }


@app.get("/retailers/{retailer_id}/cart")
def get_cart(
    retailer_id: str,
    customer_id: str = Depends(require_customer_id),
    db: Session = Depends(get_db),
):
    """Fresh availability for the cart lines. Read-only: the cart state does not move."""
    retailer_id = _normalize_id(retailer_id)
    inventory = SqlInventory(db)
    snapshot = _require_catalog(inventory, retailer_id)
    _row, cart = get_or_create_cart(db, customer_id, retailer_id)

    report = partition(cart.line_list(), snapshot, settings.max_alternatives)
    return {"cart": _cart_payload(cart), "summary": report.as_dict()}


@app.post("/retailers/{retailer_id}/cart/cancel")
def cancel_cart(
    retailer_id: str,
    customer_id: str = Depends(require_customer_id),
    db: Session = Depends(get_db),
):
    retailer_id = _normalize_id(retailer_id)
    inventory = SqlInventory(db)
    row, cart = get_or_create_cart(db, customer_id, retailer_id)

    result = handle_turn(CancelCommand(), cart, inventory)
    save_cart(db, row, result.cart)
    return {"ok": True, "message": result.reply, "cart": _cart_payload(result.cart)}


# -------------------
# Commit
# -------------------
@app.post("/retailers/{retailer_id}/order")
def place_order(
    retailer_id: str,
    payload: OrderIn,
    customer_id: str = Depends(require_customer_id),
    db: Session = Depends(get_db),
):
    retailer_id = _normalize_id(retailer_id)
    inventory = SqlInventory(db)
    row, cart = get_or_create_cart(db, customer_id, retailer_id)

    try:
        order = commit_cart(cart, _committer(inventory), payload.confirmed_items, notes=payload.notes)
    except CommitConflict as e:
        # offer only what can be ordered now; the customer has to confirm again
        report = partition(cart.line_list(), inventory.get_snapshot(retailer_id), settings.max_alternatives)
        cart.summarize(report)
        save_cart(db, row, cart)
        raise HTTPException(status_code=409, detail=e.as_dict())
    except (EmptyCartCommit, InvalidTransition, InvalidQuantityError) as e:
        raise HTTPException(status_code=400, detail=str(e))

    save_cart(db, row, cart)
    return {"order_id": order.order_id, "total": str(order.total), "items_count": order.items_count}


@app.get("/retailers/{retailer_id}/orders")
def my_orders(
    retailer_id: str,
    customer_id: str = Depends(require_customer_id),
    db: Session = Depends(get_db),
):
    retailer_id = _normalize_id(retailer_id)
    orders = SqlInventory(db).list_orders(retailer_id, customer_id=customer_id)
    return {
        "orders": [
            {
                "order_id": o.id,
                "status": o.status,
                "total": str(o.total),
                "items_count": len(o.lines),
                "notes": o.notes or "",
                "created_at": o.created_at.isoformat() if o.created_at else None,
            }
            for o in orders
        ]
    }
