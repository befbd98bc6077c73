import copy
import os
import threading
from typing import Any, Dict, Generator, List, Optional

import pytest
from fastapi.testclient import TestClient
from unittest.mock import MagicMock

# Pas de connexion Redis pendant les tests
os.environ.setdefault("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS", "1")

from storefront import config
from storefront.app import app as fastapi_app
from storefront.utils.security import require_user

# Marquage automatique selon le dossier
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "tests/unit/" in nodeid:
            item.add_marker(pytest.mark.unit)
        elif "tests/integration/" in nodeid:
            item.add_marker(pytest.mark.integration)
        elif "tests/functional/" in nodeid:
            item.add_marker(pytest.mark.functional)

TEST_USER: Dict[str, Any] = {
    "id": "test-user",
    "email": "test@example.com",
    "metadata": {"full_name": "Test User"},
    "token": "fake-token",
}

def make_settings(**changes) -> config.Settings:
    values = dict(
        supabase_url="https://example.supabase.co",
        supabase_anon_key="anon",
        supabase_service_key="service",
        stripe_secret_key="sk_test_123",
        packeta_api_key="packeta-key",
        packeta_api_password="packeta-password",
        packeta_api_url="https://packeta.test/api/rest",
    )
    values.update(changes)
    return config.Settings(**values)

@pytest.fixture(autouse=True)
def settings(monkeypatch):
    """Settings de test injectés derrière get_settings() (cache vidé avant/après)."""
    monkeypatch.setattr(config, "load_settings", lambda: make_settings())
    config.get_settings.cache_clear()
    yield config.get_settings()
    config.get_settings.cache_clear()

@pytest.fixture
def override_settings(monkeypatch):
    def _apply(**changes) -> config.Settings:
        monkeypatch.setattr(config, "load_settings", lambda: make_settings(**changes))
        config.get_settings.cache_clear()
        return config.get_settings()
    return _apply

@pytest.fixture(scope="session")
def app():
    return fastapi_app

@pytest.fixture()
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as c:
        yield c

# Simuler un utilisateur authentifié pour les endpoints protégés
@pytest.fixture(autouse=True)
def _override_require_user(app):
    app.dependency_overrides[require_user] = lambda: dict(TEST_USER)
    try:
        yield
    finally:
        app.dependency_overrides.pop(require_user, None)

@pytest.fixture(autouse=True)
def mock_supabase_clients(monkeypatch):
    monkeypatch.setattr("storefront.infra.supabase_client.get_supabase", lambda: MagicMock())
    monkeypatch.setattr("storefront.infra.supabase_client.get_service_supabase", lambda: MagicMock())


class FakeShop:
    """
    Stockage en mémoire équivalent aux tables products, cart_items, orders,
    order_items et reconciliation_queue. Le décrément de stock est
    conditionnel et atomique (verrou), comme la fonction SQL.
    """

    def __init__(self):
        self.lock = threading.Lock()
        self.products: Dict[int, Dict[str, Any]] = {}
        self.cart: Dict[int, Dict[str, Any]] = {}
        self.orders: Dict[int, Dict[str, Any]] = {}
        self.order_items: List[Dict[str, Any]] = []
        self.reconciliation: List[Dict[str, Any]] = []
        self._ids = {"cart": 0, "orders": 0, "order_items": 0}
        self.fail_on: Optional[str] = None

    def _next(self, table: str) -> int:
        self._ids[table] += 1
        return self._ids[table]

    # --- setup helpers ---
    def add_product(self, product_id: int, name: str, price, stock: int, **extra) -> Dict[str, Any]:
        row = {"id": product_id, "name": name, "price": str(price), "stock": stock, "category": "", "description": "", **extra}
        self.products[product_id] = row
        return row

    def add_cart_line(self, user_id: str, product_id: int, quantity: int) -> Dict[str, Any]:
        return self.insert_cart_item(user_id, product_id, quantity)

    def add_order(self, **fields) -> Dict[str, Any]:
        order_id = self._next("orders")
        row = {
            "id": order_id, "user_id": "test-user", "status": "paid", "total": "111.98",
            "shipping_method": "packeta", "shipping_address": None, "payment_intent_id": None,
            "tracking_number": None, "carrier_data": None, "notes": None,
        }
        row.update(fields)
        row["id"] = order_id
        self.orders[order_id] = row
        return row

    # --- catalog ---
    def get_product(self, product_id):
        p = self.products.get(int(product_id))
        return dict(p) if p else None

    def fetch_products_by_ids(self, ids):
        return [dict(self.products[int(i)]) for i in ids if int(i) in self.products]

    def get_products_map(self, ids):
        return {int(p["id"]): p for p in self.fetch_products_by_ids(list(ids))}

    def find_product_by_name(self, name):
        wanted = (name or "").strip().lower()
        for p in self.products.values():
            if p["name"].lower() == wanted:
                return dict(p)
        return None

    def decrement_stock(self, product_id, quantity):
        if self.fail_on == "decrement_stock":
            raise RuntimeError("database unavailable")
        with self.lock:
            p = self.products.get(int(product_id))
            if not p or p["stock"] < int(quantity):
                return False
            p["stock"] -= int(quantity)
            return True

    def restock(self, product_id, quantity):
        with self.lock:
            self.products[int(product_id)]["stock"] += int(quantity)

    # --- cart ---
    def list_cart_rows(self, user_id):
        rows = []
        for row in sorted(self.cart.values(), key=lambda r: r["id"]):
            if row["user_id"] == user_id:
                rows.append({**row, "product": self.get_product(row["product_id"])})
        return rows

    def get_cart_item(self, user_id, item_id):
        row = self.cart.get(int(item_id))
        return dict(row) if row and row["user_id"] == user_id else None

    def find_cart_item_by_product(self, user_id, product_id):
        for row in self.cart.values():
            if row["user_id"] == user_id and row["product_id"] == int(product_id):
                return dict(row)
        return None

    def insert_cart_item(self, user_id, product_id, quantity):
        item_id = self._next("cart")
        self.cart[item_id] = {"id": item_id, "user_id": user_id, "product_id": int(product_id), "quantity": int(quantity)}
        return dict(self.cart[item_id])

    def update_cart_item_quantity(self, user_id, item_id, quantity):
        self.cart[int(item_id)]["quantity"] = int(quantity)
        return dict(self.cart[int(item_id)])

    def delete_cart_item(self, user_id, item_id):
        return self.cart.pop(int(item_id), None) is not None

    def delete_cart(self, user_id):
        ids = [i for i, r in self.cart.items() if r["user_id"] == user_id]
        for i in ids:
            del self.cart[i]
        return len(ids)

    # --- orders ---
    def insert_order(self, row):
        with self.lock:
            ref = row.get("payment_intent_id")
            if ref and any(o["payment_intent_id"] == ref for o in self.orders.values()):
                raise RuntimeError("duplicate key value violates unique constraint")
            return dict(self.add_order(**{**row, "tracking_number": None, "carrier_data": None, "notes": None}))

    def insert_order_items(self, order_id, items):
        if self.fail_on == "insert_order_items":
            raise RuntimeError("order_items insert failed")
        rows = []
        with self.lock:
            for i in items:
                row = {"id": self._next("order_items"), "order_id": int(order_id), **i}
                self.order_items.append(row)
                rows.append(row)
        return rows

    def delete_order_items(self, order_id):
        self.order_items = [i for i in self.order_items if i["order_id"] != int(order_id)]

    def get_order(self, order_id, user_id=None):
        o = self.orders.get(int(order_id))
        if not o or (user_id and o["user_id"] != str(user_id)):
            return None
        return dict(o)

    def get_order_items(self, order_id):
        return [dict(i) for i in self.order_items if i["order_id"] == int(order_id)]

    def find_order_by_payment_reference(self, ref):
        for o in self.orders.values():
            if ref and o["payment_intent_id"] == ref:
                return dict(o)
        return None

    def update_order(self, order_id, fields):
        self.orders[int(order_id)].update(fields)
        return dict(self.orders[int(order_id)])

    def set_tracking_number(self, order_id, tracking_number, fields=None):
        with self.lock:
            o = self.orders[int(order_id)]
            if o["tracking_number"] is not None:
                return False
            o.update(fields or {})
            o["tracking_number"] = tracking_number
            return True

    def append_note(self, order_id, note):
        o = self.orders[int(order_id)]
        o["notes"] = f"{o['notes']}\n{note}" if o["notes"] else note

    def insert_reconciliation_entry(self, entry):
        self.reconciliation.append(dict(entry))
        return entry


@pytest.fixture
def shop(monkeypatch) -> FakeShop:
    """Remplace les repositories catalog/cart/orders par le stockage en mémoire."""
    fake = FakeShop()
    for name in ("get_product", "fetch_products_by_ids", "get_products_map", "find_product_by_name", "decrement_stock", "restock"):
        monkeypatch.setattr(f"storefront.catalog.repository.{name}", getattr(fake, name))
    for name in (
        "list_cart_rows", "get_cart_item", "find_cart_item_by_product", "insert_cart_item",
        "update_cart_item_quantity", "delete_cart_item", "delete_cart",
    ):
        monkeypatch.setattr(f"storefront.cart.repository.{name}", getattr(fake, name))
    for name in (
        "insert_order", "insert_order_items", "delete_order_items", "get_order", "get_order_items",
        "find_order_by_payment_reference", "update_order", "set_tracking_number", "append_note",
        "insert_reconciliation_entry",
    ):
        monkeypatch.setattr(f"storefront.orders.repository.{name}", getattr(fake, name))
    return fake

_PACKETA_ADDRESS = {
    "type": "packeta",
    "fullName": "Jan Novak",
    "phone": "+420777123456",
    "pickupPoint": {"id": "4321", "name": "Z-BOX Praha 1", "address": "Vodickova 1", "zip": "11000", "city": "Praha"},
}

_STANDARD_ADDRESS = {
    "type": "standard",
    "fullName": "Ada Lovelace",
    "phone": "+15551234567",
    "addressLine1": "1 Main St",
    "city": "Springfield",
    "state": "IL",
    "zipCode": "62701",
    "country": "US",
}

@pytest.fixture
def packeta_address() -> Dict[str, Any]:
    return copy.deepcopy(_PACKETA_ADDRESS)

@pytest.fixture
def standard_address() -> Dict[str, Any]:
    return copy.deepcopy(_STANDARD_ADDRESS)
