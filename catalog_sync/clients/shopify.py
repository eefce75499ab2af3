# catalog_sync/clients/shopify.py
from typing import Iterator, List, Optional, Tuple

import requests
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from ..config import StoreConfig
from ..utils.logger import debug, warn

# RemoteError.kind
TRANSPORT = "transport"      # timeout / connection failure, nothing usable came back
PROTOCOL = "protocol"        # HTTP error status or GraphQL top-level errors
APPLICATION = "application"  # mutation answered with userErrors

READ_RETRY_STATUSES = (429, 502, 503, 504)
WRITE_RETRY_STATUSES = (409, 429, 502, 503)


class RemoteError(Exception):
    def __init__(self, kind: str, message: str, status: Optional[int] = None, detail=None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.status = status
        self.detail = detail

    def __str__(self):
        return self.message


class _Throttled(Exception):
    def __init__(self, response: requests.Response):
        super().__init__(f"throttled ({response.status_code})")
        self.response = response


_retry_throttled = retry(
    reraise=True,
    stop=stop_after_attempt(4),
    wait=wait_exponential(multiplier=0.5, min=0.5, max=6),
    retry=retry_if_exception_type(_Throttled),
)


def admin_base(config: StoreConfig) -> str:
    return f"https://{config.domain}/admin/api/{config.api_version}"

def rest_headers(token: str) -> dict:
    return {"Content-Type": "application/json", "X-Shopify-Access-Token": token}

def to_gid(kind: str, value) -> Optional[str]:
    if value in (None, ""):
        return None
    value = str(value)
    if value.startswith("gid://"):
        return value
    return f"gid://shopify/{kind}/{value}"

def legacy_id(gid) -> Optional[str]:
    if gid in (None, ""):
        return None
    return str(gid).split("/")[-1]

def _json_or_none(r: requests.Response):
    try:
        return r.json()
    except ValueError:
        return None


# =========================================================
# GraphQL documents
# =========================================================

LOCATIONS = """
query($after: String) {
  locations(first: 100, after: $after, includeInactive: true) {
    edges { node { id name isActive } }
    pageInfo { hasNextPage endCursor }
  }
}
"""

INVENTORY_LEVEL = """
query($item: ID!, $location: ID!) {
  inventoryItem(id: $item) {
    id
    inventoryLevel(locationId: $location) {
      id
      quantities(names: ["available"]) { name quantity }
    }
  }
}
"""

INVENTORY_ACTIVATE = """
mutation inventoryActivate($item: ID!, $location: ID!) {
  inventoryActivate(inventoryItemId: $item, locationId: $location) {
    inventoryLevel { id }
    userErrors { field message }
  }
}
"""

INVENTORY_SET_QUANTITIES = """
mutation inventorySetQuantities($input: InventorySetQuantitiesInput!) {
  inventorySetQuantities(input: $input) {
    inventoryAdjustmentGroup {
      createdAt
      reason
      referenceDocumentUri
      changes { name delta quantityAfterChange }
    }
    userErrors { code field message }
  }
}
"""


class ShopifyAdmin:
    """Admin API transport for one store: REST under admin_base() plus the GraphQL endpoint.

    Every call is bounded by config.timeout and either returns parsed data or
    raises RemoteError. Throttling (429/5xx, GraphQL THROTTLED) is retried a
    few times in-line; nothing else is retried and no state is kept between calls.
    """

    def __init__(self, config: StoreConfig, session: Optional[requests.Session] = None):
        self.config = config
        self.base = admin_base(config)
        self.graphql_url = f"{self.base}/graphql.json"
        self.session = session or requests.Session()
        self.session.headers.update(rest_headers(config.token))

    # ---------------------------------------------------------
    # transport
    # ---------------------------------------------------------

    @_retry_throttled
    def _send(self, method: str, url: str, retry_statuses=READ_RETRY_STATUSES, **kwargs) -> requests.Response:
        try:
            r = self.session.request(method, url, timeout=self.config.timeout, **kwargs)
        except requests.Timeout as e:
            raise RemoteError(TRANSPORT, f"{method} {url} timed out after {self.config.timeout}s") from e
        except requests.RequestException as e:
            raise RemoteError(TRANSPORT, f"{method} {url} failed: {e}") from e
        if r.status_code in retry_statuses:
            warn(f"[shopify] {method} {url} -> {r.status_code}, backing off")
            raise _Throttled(r)
        return r

    def request(self, method: str, path: str, retry_statuses=READ_RETRY_STATUSES, **kwargs) -> requests.Response:
        url = path if path.startswith("http") else f"{self.base}/{path.lstrip('/')}"
        debug(f"[shopify] {method} {url}")
        try:
            r = self._send(method, url, retry_statuses=retry_statuses, **kwargs)
        except _Throttled as t:
            r = t.response
        if r.status_code >= 400:
            raise RemoteError(PROTOCOL, f"{method} {path} failed {r.status_code}: {r.text}",
                              status=r.status_code, detail=_json_or_none(r))
        return r

    def _json(self, r: requests.Response) -> dict:
        body = _json_or_none(r)
        if not isinstance(body, dict):
            raise RemoteError(PROTOCOL, f"Unexpected non-JSON response ({r.status_code}): {r.text[:200]}",
                              status=r.status_code)
        return body

    @_retry_throttled
    def _graphql_once(self, query: str, variables: dict) -> dict:
        r = self.request("POST", self.graphql_url, json={"query": query, "variables": variables})
        body = self._json(r)
        codes = [((e or {}).get("extensions") or {}).get("code") for e in (body.get("errors") or [])]
        if "THROTTLED" in codes:
            warn("[shopify] GraphQL THROTTLED, backing off")
            raise _Throttled(r)
        return body

    def graphql(self, query: str, variables: Optional[dict] = None) -> dict:
        try:
            body = self._graphql_once(query, variables or {})
        except _Throttled as t:
            body = self._json(t.response)
        top_errors = body.get("errors")
        if top_errors:
            msg = "; ".join(str((e or {}).get("message", e)) for e in top_errors)
            raise RemoteError(PROTOCOL, f"GraphQL error: {msg}", detail=top_errors)
        return body.get("data") or {}

    def _mutate(self, query: str, variables: dict, root: str) -> dict:
        data = self.graphql(query, variables)
        block = data.get(root) or {}
        errs = block.get("userErrors") or []
        if errs:
            msg = "; ".join(
                f"{'.'.join(str(f) for f in (e.get('field') or []))}: {e.get('message', '')}".lstrip(": ")
                for e in errs
            )
            raise RemoteError(APPLICATION, msg, detail=errs)
        return block

    # ---------------------------------------------------------
    # catalog reads
    # ---------------------------------------------------------

    def list_products(self, page_url: Optional[str] = None, limit: int = 250) -> Tuple[List[dict], Optional[str]]:
        """One page of products (id, handle, variants). Returns (products, next_page_url)."""
        if page_url:
            r = self.request("GET", page_url)
        else:
            r = self.request("GET", "products.json", params={"limit": limit, "fields": "id,handle,variants"})
        products = self._json(r).get("products") or []
        nxt = (r.links.get("next") or {}).get("url")
        return products, nxt

    def iter_products(self, limit: int = 250) -> Iterator[dict]:
        page_url = None
        while True:
            products, page_url = self.list_products(page_url, limit=limit)
            yield from products
            if not page_url:
                return

    def list_locations(self) -> List[dict]:
        out, after = [], None
        while True:
            data = self.graphql(LOCATIONS, {"after": after})
            conn = data.get("locations") or {}
            out.extend(e["node"] for e in (conn.get("edges") or []) if e.get("node"))
            page = conn.get("pageInfo") or {}
            if not page.get("hasNextPage"):
                return out
            after = page.get("endCursor")

    def get_inventory_level(self, inventory_item_id: str, location_id: str) -> Optional[dict]:
        """{'id', 'available'} for the (item, location) level, or None if it isn't stocked there."""
        data = self.graphql(INVENTORY_LEVEL, {"item": inventory_item_id, "location": location_id})
        level = (data.get("inventoryItem") or {}).get("inventoryLevel")
        if not level:
            return None
        available = 0
        for q in (level.get("quantities") or []):
            if q.get("name") == "available":
                available = int(q.get("quantity") or 0)
        return {"id": level.get("id"), "available": available}

    # ---------------------------------------------------------
    # inventory writes
    # ---------------------------------------------------------

    def activate_inventory(self, inventory_item_id: str, location_id: str) -> dict:
        return self._mutate(INVENTORY_ACTIVATE, {"item": inventory_item_id, "location": location_id},
                            "inventoryActivate")

    def set_on_hand(self, inventory_item_id: str, location_id: str, quantity: int,
                    reason: str = "correction", reference: Optional[str] = None) -> dict:
        variables = {
            "input": {
                "name": "available",
                "reason": reason,
                "ignoreCompareQuantity": True,
                "quantities": [{
                    "inventoryItemId": inventory_item_id,
                    "locationId": location_id,
                    "quantity": int(quantity),
                }],
            }
        }
        if reference:
            variables["input"]["referenceDocumentUri"] = reference
        return self._mutate(INVENTORY_SET_QUANTITIES, variables, "inventorySetQuantities")

    # ---------------------------------------------------------
    # product writes (REST)
    # ---------------------------------------------------------

    def find_product_by_handle(self, handle: str) -> Optional[dict]:
        r = self.request("GET", "products.json", params={"handle": handle})
        products = self._json(r).get("products") or []
        return products[0] if products else None

    def create_product(self, payload: dict) -> dict:
        r = self.request("POST", "products.json", retry_statuses=WRITE_RETRY_STATUSES, json={"product": payload})
        return self._json(r).get("product") or {}

    def create_variant(self, product_id, payload: dict) -> dict:
        r = self.request("POST", f"products/{product_id}/variants.json", retry_statuses=WRITE_RETRY_STATUSES,
                         json={"variant": payload})
        return self._json(r).get("variant") or {}

    def update_variant(self, variant_id, payload: dict) -> dict:
        r = self.request("PUT", f"variants/{variant_id}.json", retry_statuses=WRITE_RETRY_STATUSES,
                         json={"variant": payload})
        return self._json(r).get("variant") or {}

    def add_image(self, product_id, payload: dict) -> dict:
        r = self.request("POST", f"products/{product_id}/images.json", retry_statuses=WRITE_RETRY_STATUSES,
                         json={"image": payload})
        return self._json(r).get("image") or {}
