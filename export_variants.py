"""
Export product variants with their metafields to CSV for offline editing.

Every row carries the same columns: the fixed variant fields followed by one
attribute_<namespace>_<key> column per known variant metafield. A variant without
a value for some metafield gets an empty cell, never a missing column.
"""
import os
import time
from typing import Dict, List, Optional, Tuple

import pandas as pd

from constants import (
    ATTRIBUTE_PREFIX, EXCLUDED_NAMESPACES, EXPORT_FILENAME_DEFAULT, EXPORT_LIMIT_DEFAULT,
    METAFIELD_DEFINITIONS_MAX, METAFIELDS_PER_VARIANT, VARIANT_COLUMNS, VARIANTS_PER_PRODUCT,
)
from core import Progress, connect, edges_to_nodes, gql, log, paginate_products
from store_profiles import ShopConfig
from utils.utils_io import write_csv_file

PRODUCT_FIELDS = f"""
id
title
handle
variants(first: {VARIANTS_PER_PRODUCT}) {{
  edges {{
    node {{
      id
      title
      sku
      barcode
      price
      compareAtPrice
      inventoryQuantity
      inventoryPolicy
      taxable
      createdAt
      updatedAt
      selectedOptions {{ name value }}
      metafields(first: {METAFIELDS_PER_VARIANT}) {{
        edges {{ node {{ namespace key value type }} }}
      }}
    }}
  }}
}}
"""

METAFIELD_DEFINITIONS_QUERY = """
query getMetafieldDefinitions($first: Int!) {
  metafieldDefinitions(first: $first, ownerType: PRODUCTVARIANT) {
    edges { node { id namespace key name type { name } } }
  }
}
"""


def attribute_column(namespace: str, key: str) -> str:
    return f"{ATTRIBUTE_PREFIX}{namespace}_{key}"


def namespace_allowed(namespace: str, include_all: bool) -> bool:
    return include_all or namespace == "custom" or namespace not in EXCLUDED_NAMESPACES


def get_variant_metafield_definitions(endpoint: str, headers: Dict[str, str], include_all: bool = False,
                                      progress: Progress = None) -> List[Dict]:
    log("Fetching variant metafield definitions...", progress)
    data = gql(endpoint, headers, METAFIELD_DEFINITIONS_QUERY, {"first": METAFIELD_DEFINITIONS_MAX})
    definitions = [
        {"namespace": n["namespace"], "key": n["key"], "name": n.get("name"),
         "type": ((n.get("type") or {}).get("name"))}
        for n in edges_to_nodes(data["data"]["metafieldDefinitions"])
    ]
    kept = [d for d in definitions if namespace_allowed(d["namespace"], include_all)]
    log(f"Found {len(definitions)} total metafield definitions, {len(kept)} kept", progress)
    return kept


def product_gid(product_id: str) -> str:
    product_id = str(product_id).strip()
    if product_id.startswith("gid://"):
        return product_id
    return f"gid://shopify/Product/{product_id}"


def fetch_products(endpoint: str, headers: Dict[str, str], product_id: Optional[str] = None,
                   search: Optional[str] = None, limit: int = EXPORT_LIMIT_DEFAULT,
                   progress: Progress = None) -> List[Dict]:
    if product_id:
        log(f"Fetching product {product_id}...", progress)
        query = f"""
        query getProduct($id: ID!) {{
          product(id: $id) {{ {PRODUCT_FIELDS} }}
        }}
        """
        data = gql(endpoint, headers, query, {"id": product_gid(product_id)})
        product = data["data"].get("product")
        if not product:
            log(f"[WARN] Product {product_id} not found", progress)
            return []
        return [product]

    search_query = None
    if search:
        search_query = f"title:*{search}*"
        log(f'Searching for products matching: "{search}" (limit: {limit})', progress)
    else:
        log(f"Fetching products (limit: {limit})...", progress)
    return list(paginate_products(endpoint, headers, PRODUCT_FIELDS, search_query, limit, progress))


def _text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, dict):
        # MoneyV2 on older API versions
        return _text(value.get("amount"))
    return str(value)


def variant_metafields(variant: Dict) -> Dict[Tuple[str, str], str]:
    return {(m["namespace"], m["key"]): m.get("value") or ""
            for m in edges_to_nodes(variant.get("metafields"))}


def flatten_variant(product: Dict, variant: Dict, attribute_columns: Dict[Tuple[str, str], str]) -> Dict[str, str]:
    options = [o.get("value") or "" for o in (variant.get("selectedOptions") or [])]
    options += [""] * (3 - len(options))

    row = {
        "product_id": _text(product.get("id")),
        "product_title": _text(product.get("title")),
        "product_handle": _text(product.get("handle")),
        "variant_id": _text(variant.get("id")),
        "variant_title": _text(variant.get("title")),
        "variant_sku": _text(variant.get("sku")),
        "variant_barcode": _text(variant.get("barcode")),
        "variant_price": _text(variant.get("price")),
        "variant_compare_at_price": _text(variant.get("compareAtPrice")),
        "variant_inventory_quantity": _text(variant.get("inventoryQuantity")),
        "variant_inventory_policy": _text(variant.get("inventoryPolicy")),
        "variant_taxable": _text(variant.get("taxable")),
        "variant_option1": options[0],
        "variant_option2": options[1],
        "variant_option3": options[2],
        "variant_created_at": _text(variant.get("createdAt")),
        "variant_updated_at": _text(variant.get("updatedAt")),
    }
    values = variant_metafields(variant)
    for ns_key, column in attribute_columns.items():
        row[column] = values.get(ns_key, "")
    return row


def build_rows(products: List[Dict], definitions: List[Dict],
               include_all: bool = False) -> Tuple[List[str], List[Dict[str, str]]]:
    """
    Column superset: defined metafields first, then metafields seen on the fetched
    variants that have no definition (same namespace filter), in first-seen order.
    """
    attribute_columns: Dict[Tuple[str, str], str] = {}
    for d in definitions:
        attribute_columns.setdefault((d["namespace"], d["key"]), attribute_column(d["namespace"], d["key"]))
    for product in products:
        for variant in edges_to_nodes(product.get("variants")):
            for ns, key in variant_metafields(variant):
                if namespace_allowed(ns, include_all):
                    attribute_columns.setdefault((ns, key), attribute_column(ns, key))

    rows = []
    for product in products:
        for variant in edges_to_nodes(product.get("variants")):
            rows.append(flatten_variant(product, variant, attribute_columns))
    columns = VARIANT_COLUMNS + list(attribute_columns.values())
    return columns, rows


def run_export(*, config: ShopConfig, output: str = EXPORT_FILENAME_DEFAULT, output_dir: Optional[str] = None,
               product_id: Optional[str] = None, search: Optional[str] = None,
               limit: int = EXPORT_LIMIT_DEFAULT, include_all: bool = False,
               progress: Progress = None) -> Tuple[pd.DataFrame, Dict]:
    start_ts = time.time()
    endpoint, headers = config.endpoint, config.headers
    log("Starting variant export...", progress)
    connect(endpoint, headers, progress)

    # definitions first so every row can be padded to the same columns
    definitions = get_variant_metafield_definitions(endpoint, headers, include_all, progress)
    products = fetch_products(endpoint, headers, product_id=product_id, search=search, limit=limit,
                              progress=progress)
    log(f"Found {len(products)} products", progress)
    for product in products:
        log(f"Processing product: {product.get('title')} (ID: {product.get('id')})", progress)

    columns, rows = build_rows(products, definitions, include_all)
    attribute_count = len(columns) - len(VARIANT_COLUMNS)
    log(f"Total variants processed: {len(rows)} ({attribute_count} metafield columns)", progress)

    output_path = os.path.abspath(os.path.join(output_dir, output) if output_dir else output)
    write_csv_file(output_path, columns, rows)
    log(f"✅ Export completed. CSV file saved to: {output_path}", progress)

    elapsed = round(time.time() - start_ts, 2)
    return pd.DataFrame(rows, columns=columns), {
        "products": len(products),
        "variants": len(rows),
        "metafield_columns": attribute_count,
        "output_path": output_path,
        "elapsed_secs": elapsed,
    }
