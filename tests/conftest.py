# Ensure tests can import the application package regardless of CWD
import os
import sys
import time

import pytest

# Repo root is one directory up from the tests folder
REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if REPO_ROOT not in sys.path:
    sys.path.insert(0, REPO_ROOT)

from catalog_sync.clients.shopify import RemoteError  # noqa: E402


@pytest.fixture
def sleeps(monkeypatch):
    """Record every time.sleep call (pacing, settle, retry backoff) instead of sleeping."""
    calls = []
    monkeypatch.setattr(time, "sleep", lambda s: calls.append(s))
    return calls


class FakeAdmin:
    """Stands in for ShopifyAdmin; records every remote call by name."""

    def __init__(self, products=None, locations=None, levels=None):
        self.products = products or []
        self.locations = locations or []
        # (item, location) -> level dict; missing key means not stocked
        self.levels = dict(levels or {})
        self.calls = []
        self.activate_error = None
        self.activate_makes_level = True
        self.set_error = None
        self.set_response = None
        self.products_error = None
        self.locations_error = None

    def iter_products(self, limit=250):
        self.calls.append("iter_products")
        if self.products_error:
            raise self.products_error
        yield from self.products

    def list_locations(self):
        self.calls.append("list_locations")
        if self.locations_error:
            raise self.locations_error
        return list(self.locations)

    def get_inventory_level(self, item, location):
        self.calls.append("get_inventory_level")
        return self.levels.get((item, location))

    def activate_inventory(self, item, location):
        self.calls.append("activate_inventory")
        if self.activate_error:
            raise self.activate_error
        if (item, location) in self.levels:
            raise RemoteError("application", "inventoryItemId: Inventory item is already active at this location")
        if self.activate_makes_level:
            self.levels[(item, location)] = {"id": "gid://shopify/InventoryLevel/1", "available": 0}
        return {"inventoryLevel": {"id": "gid://shopify/InventoryLevel/1"}}

    def set_on_hand(self, item, location, quantity, reason="correction", reference=None):
        self.calls.append("set_on_hand")
        self.last_set = {"item": item, "location": location, "quantity": quantity,
                         "reason": reason, "reference": reference}
        if self.set_error:
            raise self.set_error
        if self.set_response is not None:
            return self.set_response
        before = (self.levels.get((item, location)) or {}).get("available", 0)
        self.levels[(item, location)] = {"id": "gid://shopify/InventoryLevel/1", "available": quantity}
        return {"inventoryAdjustmentGroup": {"reason": reason, "changes": [
            {"name": "available", "delta": quantity - before, "quantityAfterChange": quantity},
        ]}, "userErrors": []}


ITEM = "gid://shopify/InventoryItem/111"
MAIN = "gid://shopify/Location/1"
OLD = "gid://shopify/Location/2"


@pytest.fixture
def admin():
    return FakeAdmin(
        products=[
            {"id": 10, "variants": [{"id": 100, "sku": "AAA-1", "inventory_item_id": 111},
                                    {"id": 101, "sku": "NOINV", "inventory_item_id": None}]},
            {"id": 20, "variants": [{"id": 200, "sku": "AAA-1", "inventory_item_id": 222}]},
        ],
        locations=[
            {"id": MAIN, "name": "Bodega Central", "isActive": True},
            {"id": OLD, "name": "Tienda Vieja ", "isActive": False},
        ],
    )
