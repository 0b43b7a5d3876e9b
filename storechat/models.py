# storechat/models.py
from __future__ import annotations

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from .db import Base
from .ordering.inventory_store import utcnow


class CatalogItemRow(Base):
    __tablename__ = "catalog_items"
    __table_args__ = (UniqueConstraint("retailer_id", "name_key", name="uq_catalog_retailer_name"),)

    id = Column(Integer, primary_key=True)
    retailer_id = Column(String, index=True, nullable=False)
    name = Column(String, nullable=False)
    name_key = Column(String, nullable=False)  # fold(name)
    unit = Column(String, nullable=False, default="piece")
    category = Column(String, nullable=False, default="Other")
    stock_qty = Column(Numeric(14, 3), nullable=False, default=0)
    unit_price = Column(Numeric(12, 2), nullable=False)
    min_stock_level = Column(Numeric(14, 3), nullable=False, default=5)
    version = Column(Integer, nullable=False, default=0)  # bumped on every stock/price write
    updated_at = Column(DateTime, default=utcnow)


class OrderRow(Base):
    __tablename__ = "orders"
    id = Column(String(32), primary_key=True)  # uuid4 hex
    retailer_id = Column(String, index=True, nullable=False)
    customer_id = Column(String, index=True, nullable=False)
    status = Column(String, default="placed")
    total = Column(Numeric(12, 2), nullable=False)
    notes = Column(Text, default="")
    created_at = Column(DateTime, default=utcnow)

    lines = relationship("OrderLineRow", back_populates="order", cascade="all, delete-orphan")


class OrderLineRow(Base):
    __tablename__ = "order_lines"
    id = Column(Integer, primary_key=True)
    order_id = Column(String(32), ForeignKey("orders.id"), index=True, nullable=False)
    name = Column(String, nullable=False)
    unit = Column(String, nullable=False)
    quantity = Column(Numeric(14, 3), nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)
    line_total = Column(Numeric(12, 2), nullable=False)

    order = relationship("OrderRow", back_populates="lines")


class CartSession(Base):
    __tablename__ = "cart_sessions"
    __table_args__ = (UniqueConstraint("customer_id", "retailer_id", name="uq_cart_customer_retailer"),)

    id = Column(Integer, primary_key=True)
    customer_id = Column(String, index=True, nullable=False)
    retailer_id = Column(String, index=True, nullable=False)
    state = Column(String, default="empty")  # empty | building | awaiting_confirmation | committed | cancelled
    lines_json = Column(Text, default="[]")
    offered_json = Column(Text, default="[]")
    version = Column(Integer, default=0)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow)
