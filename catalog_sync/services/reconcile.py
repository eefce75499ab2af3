# catalog_sync/services/reconcile.py
import time
from dataclasses import dataclass
from typing import Iterable, List, Optional

from ..clients.shopify import ShopifyAdmin
from ..utils.logger import debug, error, row_result
from .errors import RowError, InvalidRow, VALIDATE
from .inventory import (
    find_variant_by_sku,
    find_location_by_name,
    ensure_inventory_link,
    set_absolute_quantity,
)

SUCCESS = "success"
ERROR = "error"

INVENTORY_COLUMNS = ("sku", "location_name", "available")


@dataclass(frozen=True)
class InventoryRow:
    sku: str
    location_name: str
    available: int


@dataclass(frozen=True)
class RowOutcome:
    sku: str
    location_name: str
    result: str
    message: str

    def as_report_row(self) -> dict:
        return {"sku": self.sku, "location_name": self.location_name,
                "result": self.result, "message": self.message}


def _parse_quantity(raw) -> Optional[int]:
    s = str(raw if raw is not None else "").strip()
    if not (s.isascii() and s.isdigit()):
        return None
    return int(s)

def validate_row(raw: dict) -> InventoryRow:
    sku = str(raw.get("sku") or "").strip()
    location_name = str(raw.get("location_name") or "").strip()
    missing = [c for c, v in (("sku", sku), ("location_name", location_name)) if not v]
    if missing:
        raise InvalidRow(VALIDATE, f"Missing data: {', '.join(missing)}")
    available = _parse_quantity(raw.get("available"))
    if available is None:
        raise InvalidRow(VALIDATE, f"Invalid available quantity {raw.get('available')!r}: expected a non-negative integer")
    return InventoryRow(sku=sku, location_name=location_name, available=available)


def apply_row(client: ShopifyAdmin, row: InventoryRow, link_settle: float = 0.4) -> str:
    """ResolveSku -> ResolveLocation -> EnsureLink -> SetQuantity. Returns the success message."""
    variant = find_variant_by_sku(client, row.sku)
    location = find_location_by_name(client, row.location_name)
    level = ensure_inventory_link(client, variant.inventory_item_id, location.id, settle=link_settle)
    known = level.get("available") if level else None
    old, new = set_absolute_quantity(client, variant.inventory_item_id, location.id, row.available, previous=known)
    msg = f"Stock set from {old} to {new}"
    if not location.is_active:
        msg += " (location inactive)"
    return msg


def reconcile_row(client: ShopifyAdmin, raw: dict, row_delay: float = 0.3, link_settle: float = 0.4) -> RowOutcome:
    sku = str(raw.get("sku") or "").strip()
    location_name = str(raw.get("location_name") or "").strip()
    try:
        row = validate_row(raw)
        return RowOutcome(row.sku, row.location_name, SUCCESS, apply_row(client, row, link_settle))
    except RowError as e:
        debug(f"[inventory] {sku or '?'} @ {location_name or '?'} stopped at {e.stage} ({e.kind})")
        return RowOutcome(sku, location_name, ERROR, str(e))
    except Exception as e:
        # anything the stages didn't classify is treated as transient
        error(f"[inventory] {sku or '?'} @ {location_name or '?'}: {e!r}")
        return RowOutcome(sku, location_name, ERROR, f"Unexpected error: {e}")
    finally:
        time.sleep(row_delay)


def run_inventory_batch(client: ShopifyAdmin, rows: Iterable[dict], outcomes: Optional[List[RowOutcome]] = None,
                        row_delay: float = 0.3, link_settle: float = 0.4) -> List[RowOutcome]:
    """Reconcile rows in order, one at a time, appending one outcome per row to ``outcomes``.

    The list is filled in place so a caller that gets interrupted can still
    write out whatever was processed.
    """
    outcomes = [] if outcomes is None else outcomes
    for i, raw in enumerate(rows, start=1):
        out = reconcile_row(client, raw, row_delay=row_delay, link_settle=link_settle)
        row_result("inventory", i, f"{out.sku or '?'} @ {out.location_name or '?'}", out.result, out.message)
        outcomes.append(out)
    return outcomes
