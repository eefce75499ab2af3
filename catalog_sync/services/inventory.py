# catalog_sync/services/inventory.py
import time
from dataclasses import dataclass
from typing import Optional, Tuple

from ..clients.shopify import ShopifyAdmin, RemoteError, APPLICATION, TRANSPORT, to_gid, legacy_id
from ..utils.logger import debug, info, warn
from .errors import (
    NotFound, LinkCreateFailed, ValidationRejected, Transient,
    RESOLVE_SKU, RESOLVE_LOCATION, ENSURE_LINK, SET_QUANTITY,
)

ADJUST_REASON = "correction"
ADJUST_REFERENCE = "logistics://catalog-sync/inventory-update"

# inventoryActivate userErrors that mean the link is already there
_ALREADY_LINKED = ("already active", "already stocked", "already exists", "already been taken", "already connected")


@dataclass(frozen=True)
class Variant:
    sku: str
    variant_id: str
    product_id: Optional[str]
    inventory_item_id: Optional[str]


@dataclass(frozen=True)
class Location:
    id: str
    name: str
    is_active: bool


def normalize_name(name) -> str:
    return str(name or "").strip().lower()


# =========================================================
# SKU -> variant
# =========================================================

def find_variant_by_sku(client: ShopifyAdmin, sku: str) -> Variant:
    """Scan the product listing page by page; the first variant with this exact SKU wins.

    Duplicate SKUs are not disambiguated: listing order decides.
    """
    try:
        for prod in client.iter_products():
            for v in (prod.get("variants") or []):
                if v.get("sku") != sku:
                    continue
                variant = Variant(
                    sku=sku,
                    variant_id=str(v.get("id")),
                    product_id=str(prod.get("id")) if prod.get("id") else None,
                    inventory_item_id=to_gid("InventoryItem", v.get("inventory_item_id")),
                )
                debug(f"[sku] {sku} -> variant {variant.variant_id} item {variant.inventory_item_id}")
                if not variant.inventory_item_id:
                    raise NotFound(RESOLVE_SKU, f"SKU {sku} has no inventory item (not inventory-tracked)")
                return variant
    except RemoteError as e:
        raise Transient(RESOLVE_SKU, f"Product lookup failed for SKU {sku}: {e}") from e
    raise NotFound(RESOLVE_SKU, "Product not found by SKU")


# =========================================================
# location name -> location
# =========================================================

def find_location_by_name(client: ShopifyAdmin, name: str) -> Location:
    wanted = normalize_name(name)
    try:
        nodes = client.list_locations()
    except RemoteError as e:
        raise Transient(RESOLVE_LOCATION, f"Location lookup failed for \"{name}\": {e}") from e
    for node in nodes:
        if normalize_name(node.get("name")) == wanted:
            return Location(id=node["id"], name=node.get("name") or "", is_active=bool(node.get("isActive", True)))
    raise NotFound(RESOLVE_LOCATION, f"Location \"{name}\" not found or inactive")


# =========================================================
# inventory level linkage
# =========================================================

def _already_linked(err: RemoteError) -> bool:
    msg = (err.message or "").lower()
    return any(s in msg for s in _ALREADY_LINKED)

def ensure_inventory_link(client: ShopifyAdmin, inventory_item_id: str, location_id: str,
                          settle: float = 0.4) -> Optional[dict]:
    """Make sure the item is stocked at the location.

    Returns the level as last read ({'id', 'available'}), or None when it
    couldn't be read. A level that still can't be read after activation is
    tolerated: some locations (inactive ones in particular) never expose one,
    yet accept the quantity write that follows.
    """
    try:
        level = client.get_inventory_level(inventory_item_id, location_id)
    except RemoteError as e:
        raise Transient(ENSURE_LINK, f"Inventory level lookup failed: {e}") from e
    if level:
        return level

    info(f"[link] connecting item {legacy_id(inventory_item_id)} to location {legacy_id(location_id)}")
    try:
        client.activate_inventory(inventory_item_id, location_id)
    except RemoteError as e:
        if e.kind == APPLICATION and _already_linked(e):
            debug(f"[link] already linked: {e}")
            return None
        if e.kind == TRANSPORT:
            raise Transient(ENSURE_LINK, f"Inventory link request failed: {e}") from e
        raise LinkCreateFailed(ENSURE_LINK, f"Could not connect inventory to location: {e}") from e

    time.sleep(settle)
    try:
        level = client.get_inventory_level(inventory_item_id, location_id)
    except RemoteError as e:
        level = None
        warn(f"[link] re-read after connect failed: {e}")
    if not level:
        warn(f"[link] level for item {legacy_id(inventory_item_id)} at location "
             f"{legacy_id(location_id)} not readable yet; continuing")
    return level or None


# =========================================================
# absolute quantity
# =========================================================

def set_absolute_quantity(client: ShopifyAdmin, inventory_item_id: str, location_id: str,
                          quantity: int, previous: Optional[int] = None) -> Tuple[int, int]:
    """Replace the available quantity outright. Returns (previous, new).

    ``previous`` is the last known available value, used when the mutation
    records no change; 0 if it was never read.
    """
    try:
        block = client.set_on_hand(inventory_item_id, location_id, quantity,
                                   reason=ADJUST_REASON, reference=ADJUST_REFERENCE)
    except RemoteError as e:
        if e.kind == APPLICATION:
            raise ValidationRejected(SET_QUANTITY, f"Quantity rejected: {e}") from e
        raise Transient(SET_QUANTITY, f"Quantity update failed: {e}") from e

    changes = ((block.get("inventoryAdjustmentGroup") or {}).get("changes") or [])
    for ch in changes:
        if ch.get("name") != "available":
            continue
        after = ch.get("quantityAfterChange")
        delta = int(ch.get("delta") or 0)
        new = int(after) if after is not None else int(quantity)
        return new - delta, new
    # no change recorded: the value already matched (or the API didn't say)
    return (previous if previous is not None else 0), int(quantity)
