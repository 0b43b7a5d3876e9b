"""Pytest fixtures: seeded in-memory inventory, in-memory SQLite, API client."""

import os

# before anything imports storechat.config
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["LLM_ENABLED"] = "0"
os.environ["OPENAI_API_KEY"] = ""
os.environ["JWT_SECRET"] = "test-secret"
os.environ["CURRENCY"] = "INR"

import pytest

from storechat.ordering.cart import Cart
from storechat.ordering.catalog import Snapshot
from storechat.ordering.inventory_store import MemoryInventory

RETAILER = "r1"
CUSTOMER = "cust-1"

CATALOG = [
    {"name": "Rice", "unit": "kg", "stock_qty": 10, "unit_price": 120, "min_stock_level": 2, "category": "Grains"},
    {"name": "Brown Rice", "unit": "kg", "stock_qty": 5, "unit_price": 150, "min_stock_level": 1, "category": "Grains"},
    {"name": "Toor Dal", "unit": "kg", "stock_qty": 12, "unit_price": 160, "min_stock_level": 5, "category": "Pulses"},
    {"name": "Moong Dal", "unit": "kg", "stock_qty": 8, "unit_price": 140, "min_stock_level": 5, "category": "Pulses"},
    {"name": "Milk", "unit": "litre", "stock_qty": 0, "unit_price": 56, "min_stock_level": 5, "category": "Dairy"},
    {"name": "Curd", "unit": "kg", "stock_qty": 6, "unit_price": 90, "min_stock_level": 2, "category": "Dairy"},
    {"name": "Eggs", "unit": "piece", "stock_qty": 30, "unit_price": 7, "min_stock_level": 6, "category": "Dairy"},
    {"name": "Onion", "unit": "kg", "stock_qty": 7, "unit_price": 35, "min_stock_level": 5, "category": "Vegetables"},
    {"name": "Tomato", "unit": "kg", "stock_qty": 18, "unit_price": 30, "min_stock_level": 5, "category": "Vegetables"},
    {"name": "Turmeric Powder", "unit": "g", "stock_qty": 1000, "unit_price": "0.3", "min_stock_level": 100, "category": "Spices"},
]


@pytest.fixture
def inventory() -> MemoryInventory:
    inv = MemoryInventory()
    for row in CATALOG:
        inv.add_item(RETAILER, **row)
    return inv


@pytest.fixture
def snapshot(inventory) -> Snapshot:
    return inventory.get_snapshot(RETAILER)


@pytest.fixture
def cart() -> Cart:
    return Cart(customer_id=CUSTOMER, retailer_id=RETAILER)


@pytest.fixture
def db():
    from storechat.db import Base, SessionLocal, engine

    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def sql_inventory(db):
    from storechat.inventory import SqlInventory

    inv = SqlInventory(db)
    inv.upsert_items(RETAILER, CATALOG)
    return inv


@pytest.fixture
def client(sql_inventory):
    from fastapi.testclient import TestClient

    from storechat.main import app

    sql_inventory.db.close()
    with TestClient(app) as c:
        yield c


@pytest.fixture
def auth_headers():
    from storechat.auth import create_token

    return {"Authorization": f"Bearer {create_token(CUSTOMER)}"}
