# catalog_sync/services/products.py
import json
import time
from dataclasses import dataclass
from typing import Iterable, List, Optional

from ..clients.shopify import ShopifyAdmin, RemoteError
from ..utils.logger import error, row_result

CREATED_PRODUCT = "created_product"
CREATED_VARIANT = "created_variant"
UPDATED_VARIANT = "updated_variant"
ERROR = "error"


@dataclass(frozen=True)
class ProductRow:
    handle: str
    title: str
    body_html: str
    price: str
    sku: str
    barcode: str
    option1_name: str
    option1_value: str
    images: tuple


@dataclass(frozen=True)
class ProductOutcome:
    handle: str
    sku: str
    result: str
    message: str

    def as_report_row(self) -> dict:
        return {"handle": self.handle, "sku": self.sku, "result": self.result, "message": self.message}


def _norm(v) -> str:
    return str(v).strip() if v is not None else ""

def parse_product_row(raw: dict) -> ProductRow:
    handle = _norm(raw.get("handle")).lower()
    images_raw = _norm(raw.get("images"))
    return ProductRow(
        handle=handle,
        title=_norm(raw.get("title")) or handle,
        body_html=_norm(raw.get("body_html")),
        price=_norm(raw.get("price")) or "0",
        sku=_norm(raw.get("sku")),
        barcode=_norm(raw.get("barcode")),
        option1_name=_norm(raw.get("option1_name")) or "Title",
        option1_value=_norm(raw.get("option1_value")) or "Default",
        images=tuple(s.strip() for s in images_raw.split(";") if s.strip()) if images_raw else (),
    )


def ensure_images(client: ShopifyAdmin, product: dict, image_urls, image_delay: float = 0.3) -> int:
    """Attach any URL the product doesn't already carry. Returns how many were added."""
    existing = {img.get("src") for img in (product.get("images") or [])}
    added = 0
    for src in image_urls:
        if src in existing:
            continue
        client.add_image(product["id"], {"src": src})
        existing.add(src)
        added += 1
        time.sleep(image_delay)
    return added


def upsert_product(client: ShopifyAdmin, row: ProductRow, image_delay: float = 0.3) -> ProductOutcome:
    existing = client.find_product_by_handle(row.handle)
    if existing:
        matched = next((v for v in (existing.get("variants") or []) if v.get("sku") and v.get("sku") == row.sku), None)
        if matched:
            client.update_variant(matched["id"], {"id": matched["id"], "price": row.price, "sku": row.sku,
                                                  "barcode": row.barcode})
            result, message = UPDATED_VARIANT, f"variant {matched['id']} updated"
        else:
            created = client.create_variant(existing["id"], {"option1": row.option1_value, "price": row.price,
                                                             "sku": row.sku, "barcode": row.barcode})
            result, message = CREATED_VARIANT, f"variant {created.get('id')} created"
        if row.images:
            ensure_images(client, existing, row.images, image_delay)
        return ProductOutcome(row.handle, row.sku, result, message)

    payload = {
        "title": row.title,
        "body_html": row.body_html,
        "handle": row.handle,
        "options": [{"name": row.option1_name}],
        "variants": [{"option1": row.option1_value, "price": row.price, "sku": row.sku, "barcode": row.barcode}],
        "images": [{"src": src} for src in row.images],
    }
    created = client.create_product(payload)
    return ProductOutcome(row.handle, row.sku, CREATED_PRODUCT, f"product {created.get('id')} created")


def _error_message(e: Exception) -> str:
    if isinstance(e, RemoteError) and e.detail is not None:
        return json.dumps(e.detail)
    return json.dumps(str(e))

def process_product_row(client: ShopifyAdmin, raw: dict, row_delay: float = 0.5,
                        image_delay: float = 0.3) -> ProductOutcome:
    handle = _norm(raw.get("handle")).lower()
    sku = _norm(raw.get("sku"))
    try:
        row = parse_product_row(raw)
        if not row.handle:
            return ProductOutcome(handle, sku, ERROR, "Missing data: handle")
        return upsert_product(client, row, image_delay)
    except RemoteError as e:
        return ProductOutcome(handle, sku, ERROR, _error_message(e))
    except Exception as e:
        error(f"[products] {handle or '?'} / {sku or '?'}: {e!r}")
        return ProductOutcome(handle, sku, ERROR, _error_message(e))
    finally:
        time.sleep(row_delay)


def run_product_batch(client: ShopifyAdmin, rows: Iterable[dict], outcomes: Optional[List[ProductOutcome]] = None,
                      row_delay: float = 0.5, image_delay: float = 0.3) -> List[ProductOutcome]:
    outcomes = [] if outcomes is None else outcomes
    for i, raw in enumerate(rows, start=1):
        out = process_product_row(client, raw, row_delay=row_delay, image_delay=image_delay)
        row_result("products", i, f"{out.handle or '?'} / {out.sku or '?'}", out.result, out.message)
        outcomes.append(out)
    return outcomes
