"""
Bulk-assign a theme template to products selected by tag, vendor, type,
collection, free-text search or an explicit list of product IDs.
"""
from typing import Callable, Dict, List, Optional

import requests

from constants import AVAILABLE_TEMPLATES, TEMPLATE_LIMIT_DEFAULT
from core import Progress, connect, gql, log, paginate_products
from export_variants import product_gid
from store_profiles import ShopConfig

PRODUCT_FIELDS = """
id
title
handle
vendor
productType
tags
templateSuffix
status
"""

PRODUCT_UPDATE = """
mutation productUpdate($input: ProductInput!) {
  productUpdate(input: $input) {
    product { id title templateSuffix }
    userErrors { field message }
  }
}
"""


def validate_template(template: str) -> str:
    if template not in AVAILABLE_TEMPLATES:
        raise ValueError(f'Invalid template "{template}". Available templates: {", ".join(AVAILABLE_TEMPLATES)}')
    return template


def template_suffix(template: str) -> Optional[str]:
    """product -> None (default template), product.framed-artwork -> framed-artwork"""
    if template == "product":
        return None
    return template[len("product."):] if template.startswith("product.") else template


def current_template(product: Dict) -> str:
    suffix = product.get("templateSuffix")
    return f"product.{suffix}" if suffix else "product"


def build_search_query(tag: Optional[str] = None, vendor: Optional[str] = None,
                       product_type: Optional[str] = None, collection: Optional[str] = None,
                       search: Optional[str] = None) -> str:
    conditions = []
    if tag:
        conditions.append(f"tag:{tag}")
    if vendor:
        conditions.append(f"vendor:{vendor}")
    if product_type:
        conditions.append(f"product_type:{product_type}")
    if collection:
        conditions.append(f"collection_id:{collection}")
    if search:
        conditions.append(f"(title:*{search}* OR handle:*{search}*)")
    return " AND ".join(conditions)


def fetch_products_by_ids(endpoint: str, headers: Dict[str, str], product_ids: List[str],
                          progress: Progress = None) -> List[Dict]:
    query = f"""
    query getProduct($id: ID!) {{
      product(id: $id) {{ {PRODUCT_FIELDS} }}
    }}
    """
    products = []
    for product_id in product_ids:
        try:
            data = gql(endpoint, headers, query, {"id": product_gid(product_id)})
        except (RuntimeError, requests.RequestException) as e:
            log(f"[WARN] Could not fetch product {product_id}: {e}", progress)
            continue
        product = data["data"].get("product")
        if product:
            products.append(product)
        else:
            log(f"[WARN] Product {product_id} not found", progress)
    return products


def fetch_products(endpoint: str, headers: Dict[str, str], filters: Dict, limit: int,
                   progress: Progress = None) -> List[Dict]:
    product_ids = filters.get("product_ids")
    if product_ids:
        log(f"Fetching specific products: {', '.join(product_ids)}", progress)
        return fetch_products_by_ids(endpoint, headers, product_ids, progress)

    search_query = build_search_query(
        tag=filters.get("tag"), vendor=filters.get("vendor"), product_type=filters.get("product_type"),
        collection=filters.get("collection"), search=filters.get("search"),
    )
    if search_query:
        log(f'Searching products with query: "{search_query}"', progress)
    else:
        log(f"Fetching products (limit: {limit})...", progress)
    return list(paginate_products(endpoint, headers, PRODUCT_FIELDS, search_query, limit, progress))


def update_product_template(endpoint: str, headers: Dict[str, str], product_id: str, template: str) -> Dict:
    variables = {"input": {"id": product_id, "templateSuffix": template_suffix(template)}}
    data = gql(endpoint, headers, PRODUCT_UPDATE, variables)
    payload = (data.get("data") or {}).get("productUpdate") or {}
    user_errors = payload.get("userErrors") or []
    if user_errors:
        raise RuntimeError(f"Update failed: {', '.join(e.get('message', '') for e in user_errors)}")
    return payload.get("product") or {"id": product_id}


def ask_confirmation(message: str) -> bool:
    return input(message).strip().lower().startswith("y")


def run_template_update(*, config: ShopConfig, template: str, tag: Optional[str] = None,
                        vendor: Optional[str] = None, product_type: Optional[str] = None,
                        collection: Optional[str] = None, search: Optional[str] = None,
                        product_ids: Optional[List[str]] = None, limit: int = TEMPLATE_LIMIT_DEFAULT,
                        dry_run: bool = False, force: bool = False,
                        confirm: Callable[[str], bool] = ask_confirmation,
                        progress: Progress = None) -> Dict:
    validate_template(template)
    endpoint, headers = config.endpoint, config.headers
    summary = {"found": 0, "to_update": 0, "success": 0, "failed": 0, "errors": [], "cancelled": False}

    log("Starting product template update...", progress)
    log(f"Template to apply: {template}", progress)
    if dry_run:
        log("🔍 DRY RUN MODE - No changes will be made", progress)

    connect(endpoint, headers, progress)
    filters = {"tag": tag, "vendor": vendor, "product_type": product_type, "collection": collection,
               "search": search, "product_ids": product_ids}
    products = fetch_products(endpoint, headers, filters, limit, progress)
    summary["found"] = len(products)
    log(f"\nFound {len(products)} products to process", progress)
    if not products:
        log("No products found matching the criteria.", progress)
        return summary

    to_update = [p for p in products if current_template(p) != template]
    summary["to_update"] = len(to_update)
    log(f"\nProducts that need template updates: {len(to_update)}", progress)
    if not to_update:
        log("All products already have the correct template.", progress)
        return summary

    log("\nProducts to be updated:", progress)
    for index, product in enumerate(to_update, start=1):
        log(f"{index}. {product.get('title')} ({product.get('handle')})", progress)
        log(f"   Current: {current_template(product)} → New: {template}", progress)

    if not force and not dry_run:
        if not confirm(f"\nDo you want to update {len(to_update)} products? (y/N): "):
            log("Update cancelled.", progress)
            summary["cancelled"] = True
            return summary

    log(f"\n{'Simulating' if dry_run else 'Updating'} products...", progress)
    for index, product in enumerate(to_update, start=1):
        prefix = f"[{index}/{len(to_update)}]"
        if dry_run:
            log(f"{prefix} ✅ Would update: {product.get('title')}", progress)
            summary["success"] += 1
            continue
        try:
            updated = update_product_template(endpoint, headers, product["id"], template)
        except (RuntimeError, requests.RequestException) as e:
            log(f"{prefix} ❌ Failed: {product.get('title')} - {e}", progress)
            summary["failed"] += 1
            summary["errors"].append({"product": product.get("title"), "id": product.get("id"), "error": str(e)})
            continue
        log(f"{prefix} ✅ Updated: {updated.get('title', product.get('title'))}", progress)
        summary["success"] += 1

    log("\n📊 Update Results:", progress)
    log(f"✅ Successful: {summary['success']}", progress)
    log(f"❌ Failed: {summary['failed']}", progress)
    for err in summary["errors"]:
        log(f"  • {err['product']}: {err['error']}", progress)
    if dry_run:
        log("\n🔍 This was a dry run. To apply changes, run the command without --dry-run", progress)
    else:
        log("\n✨ Template update completed!", progress)
    return summary
