# storechat/inventory.py
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .models import CatalogItemRow, OrderLineRow, OrderRow
from .ordering.catalog import CatalogItem, Snapshot, build_snapshot, to_decimal
from .ordering.inventory_store import Decrement, Order, VersionConflict, utcnow
from .ordering.nlp import fold

logger = logging.getLogger(__name__)


def _row_to_item(row: CatalogItemRow) -> CatalogItem:
    return CatalogItem(
        canonical_name=row.name,
        unit=row.unit,
        stock_qty=to_decimal(row.stock_qty),
        unit_price=to_decimal(row.unit_price),
        min_stock_level=to_decimal(row.min_stock_level),
        category=row.category or "Other",
        version=int(row.version or 0),
    )


class SqlInventory:
    """
    Inventory collaborator over the catalog_items table.

    Stock is only ever decremented through a versioned UPDATE:
        ... WHERE version = :expected AND stock_qty >= :qty
    A row count of 0 means someone else wrote first.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_snapshot(self, retailer_id: str) -> Snapshot:
        rows = (
            self.db.query(CatalogItemRow)
            .filter(CatalogItemRow.retailer_id == retailer_id)
            .order_by(CatalogItemRow.id)
            .populate_existing()
            .all()
        )
        return Snapshot(retailer_id=retailer_id, items=tuple(_row_to_item(r) for r in rows))

    def decrement_atomic(
        self, retailer_id: str, decrements: Sequence[Decrement], order: Optional[Order] = None
    ) -> Optional[VersionConflict]:
        stale: List[str] = []
        try:
            for d in decrements:
                stmt = (
                    update(CatalogItemRow)
                    .where(
                        CatalogItemRow.retailer_id == retailer_id,
                        CatalogItemRow.name_key == fold(d.canonical_name),
                        CatalogItemRow.version == d.expected_version,
                        CatalogItemRow.stock_qty >= d.quantity,
                    )
                    .values(
                        stock_qty=CatalogItemRow.stock_qty - d.quantity,
                        version=CatalogItemRow.version + 1,
                        updated_at=utcnow(),
                    )
                    .execution_options(synchronize_session=False)
                )
                if self.db.execute(stmt).rowcount != 1:
                    stale.append(d.canonical_name)

            if stale:
                self.db.rollback()
                logger.info("version conflict retailer=%s items=%s", retailer_id, stale)
                return VersionConflict(names=tuple(stale))

            if order is not None:
                self.db.add(_order_row(order))
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        return None

    def upsert_items(self, retailer_id: str, rows: Iterable[Dict[str, Any]]) -> int:
        """Insert or update catalog rows by (retailer, folded name). Returns rows written."""
        snapshot = build_snapshot(retailer_id, rows)  # validates every row first
        written = 0
        for item in snapshot:
            row = (
                self.db.query(CatalogItemRow)
                .filter(CatalogItemRow.retailer_id == retailer_id, CatalogItemRow.name_key == item.key)
                .first()
            )
            if row is None:
                row = CatalogItemRow(retailer_id=retailer_id, name_key=item.key, version=0)
                self.db.add(row)
            else:
                row.version = int(row.version or 0) + 1
            row.name = item.canonical_name
            row.unit = item.unit
            row.category = item.category
            row.stock_qty = item.stock_qty
            row.unit_price = item.unit_price
            row.min_stock_level = item.min_stock_level
            row.updated_at = utcnow()
            written += 1
        self.db.commit()
        logger.info("catalog upsert retailer=%s rows=%d", retailer_id, written)
        return written

    def list_orders(self, retailer_id: str, customer_id: Optional[str] = None) -> List[OrderRow]:
        q = self.db.query(OrderRow).filter(OrderRow.retailer_id == retailer_id)
        if customer_id is not None:
            q = q.filter(OrderRow.customer_id == customer_id)
        return q.order_by(OrderRow.created_at.desc()).all()


def _order_row(order: Order) -> OrderRow:
    row = OrderRow(
        id=order.order_id,
        retailer_id=order.retailer_id,
        customer_id=order.customer_id,
        status="placed",
        total=order.total,
        notes=order.notes or "",
        created_at=order.created_at.replace(tzinfo=None),
    )
    for ln in order.lines:
        row.lines.append(
            OrderLineRow(
                name=ln.canonical_name,
                unit=ln.unit,
                quantity=ln.quantity,
                unit_price=ln.unit_price,
                line_total=ln.line_total,
            )
        )
    return row
