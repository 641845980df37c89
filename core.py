import json
from typing import Callable, Dict, Iterator, List, Optional

import requests

from constants import PRODUCTS_PAGE_MAX, REQUEST_TIMEOUT

# ---------------------------
# Utilities
# ---------------------------

Progress = Optional[Callable[[str], None]]


def log(msg: str, cb: Progress = None):
    if cb:
        cb(msg)
        return
    print(msg)


def gql(endpoint: str, headers: Dict[str, str], query: str, variables: Dict = None) -> Dict:
    """
    Single GraphQL round-trip. No retries: a throttled or failed call raises and the
    caller decides whether that is fatal (export) or per-record (import).
    """
    r = requests.post(endpoint, headers=headers, json={"query": query, "variables": variables or {}},
                      timeout=REQUEST_TIMEOUT)
    if r.status_code >= 400:
        raise RuntimeError(f"HTTP {r.status_code}: {r.text[:300]}")
    try:
        data = r.json()
    except ValueError:
        raise RuntimeError(f"Non-JSON response ({r.status_code}): {r.text[:300]}")
    if data.get("errors"):
        raise RuntimeError(f"GraphQL Errors: {json.dumps(data['errors'])}")
    return data


def preflight(endpoint: str, headers: Dict[str, str]) -> Dict:
    data = gql(endpoint, headers, "{ shop { name myshopifyDomain } }")
    shop = (data.get("data") or {}).get("shop")
    if not shop:
        raise RuntimeError("Preflight failed: no shop object returned")
    return shop


def connect(endpoint: str, headers: Dict[str, str], progress: Progress = None) -> Dict:
    try:
        shop_info = preflight(endpoint, headers)
    except RuntimeError as e:
        msg = str(e)
        if "Invalid API key or access token" in msg or "HTTP 401" in msg or "HTTP 403" in msg:
            raise RuntimeError(
                "Shopify rejected the credentials.\n"
                "• Check Admin API token (Develop apps → Your app → Admin API access token)\n"
                "• Ensure scopes include read_products and write_products\n"
                "• Confirm the shop name is correct"
            ) from e
        raise
    log(f"✅ Connected to {shop_info.get('name')} ({shop_info.get('myshopifyDomain')})", progress)
    return shop_info


def edges_to_nodes(connection: Optional[Dict]) -> List[Dict]:
    return [e["node"] for e in (connection or {}).get("edges", [])]


def paginate_products(endpoint: str, headers: Dict[str, str], node_fields: str,
                      search: Optional[str], limit: int,
                      progress: Progress = None) -> Iterator[Dict]:
    """
    Yield up to `limit` product nodes, following endCursor page by page.
    `node_fields` is the selection set placed inside `node { ... }`.
    """
    query_str = f"""
    query getProducts($first: Int!, $query: String, $after: String) {{
      products(first: $first, query: $query, after: $after) {{
        pageInfo {{ hasNextPage endCursor }}
        edges {{ node {{ {node_fields} }} }}
      }}
    }}
    """
    after_cursor = None
    fetched = 0
    page_count = 0
    while fetched < limit:
        first = min(limit - fetched, PRODUCTS_PAGE_MAX)
        data = gql(endpoint, headers, query_str, {"first": first, "query": search or None, "after": after_cursor})
        products = data["data"]["products"]
        page_count += 1
        for node in edges_to_nodes(products):
            fetched += 1
            yield node
            if fetched >= limit:
                return
        if not products["pageInfo"]["hasNextPage"]:
            return
        after_cursor = products["pageInfo"]["endCursor"]
        log(f"… fetched {fetched} products so far (page {page_count})", progress)
