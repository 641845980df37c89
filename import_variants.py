"""
Apply metafield edits from an exported variants CSV back to Shopify.

Rows are processed in fixed-size batches, one request in flight at a time, with a
fixed pause between batches. A failing variant is recorded and the run moves on.
"""
import time
from typing import Dict, Iterator, List, Optional, Tuple

import pandas as pd
import requests

from constants import ATTRIBUTE_PREFIX, BATCH_SIZE_DEFAULT, DEFAULT_METAFIELD_TYPE, SLEEP_BETWEEN_BATCHES
from core import Progress, connect, gql, log
from export_variants import get_variant_metafield_definitions
from store_profiles import ShopConfig
from utils.utils_io import read_csv_file, results_path_for, write_json

VARIANT_PRODUCT_QUERY = """
query getVariant($id: ID!) {
  productVariant(id: $id) {
    id
    product { id }
  }
}
"""

VARIANTS_BULK_UPDATE = """
mutation productVariantsBulkUpdate($productId: ID!, $variants: [ProductVariantsBulkInput!]!) {
  productVariantsBulkUpdate(productId: $productId, variants: $variants) {
    product { id }
    productVariants { id }
    userErrors { field message }
  }
}
"""

SUCCESS, FAILED, SKIPPED = "success", "failed", "skipped"


def parse_attribute_column(column: str) -> Optional[Tuple[str, str]]:
    """
    attribute_custom_nielsen_sku -> ("custom", "nielsen_sku")
    The namespace is the first segment, so namespaces containing "_" cannot be addressed.
    """
    if not column.startswith(ATTRIBUTE_PREFIX):
        return None
    parts = column[len(ATTRIBUTE_PREFIX):].split("_")
    if len(parts) < 2 or not parts[0] or not "_".join(parts[1:]):
        return None
    return parts[0], "_".join(parts[1:])


def extract_metafields(row: Dict[str, str], metafield_types: Optional[Dict[Tuple[str, str], str]] = None) -> List[Dict]:
    metafield_types = metafield_types or {}
    metafields = []
    for column, value in row.items():
        if not value:
            continue
        ns_key = parse_attribute_column(column)
        if ns_key is None:
            continue
        namespace, key = ns_key
        metafields.append({
            "namespace": namespace,
            "key": key,
            "value": value,
            "type": metafield_types.get(ns_key) or DEFAULT_METAFIELD_TYPE,
        })
    return metafields


def get_metafield_types(endpoint: str, headers: Dict[str, str], progress: Progress = None) -> Dict[Tuple[str, str], str]:
    """Declared types by (namespace, key). Empty when the definitions can't be read."""
    try:
        definitions = get_variant_metafield_definitions(endpoint, headers, include_all=True, progress=progress)
    except (RuntimeError, requests.RequestException) as e:
        log(f"[WARN] Could not fetch metafield definitions ({e}); using {DEFAULT_METAFIELD_TYPE} for every value",
            progress)
        return {}
    return {(d["namespace"], d["key"]): d["type"] for d in definitions if d.get("type")}


def get_product_id_for_variant(endpoint: str, headers: Dict[str, str], variant_id: str) -> str:
    data = gql(endpoint, headers, VARIANT_PRODUCT_QUERY, {"id": variant_id})
    variant = (data.get("data") or {}).get("productVariant") or {}
    product_id = (variant.get("product") or {}).get("id")
    if not product_id:
        raise RuntimeError(f"Could not find product for variant {variant_id}")
    return product_id


def update_variant_metafields(endpoint: str, headers: Dict[str, str], product_id: str, variant_id: str,
                              metafields: List[Dict]) -> Dict:
    variables = {
        "productId": product_id,
        "variants": [{
            "id": variant_id,
            "metafields": [
                {"namespace": m["namespace"], "key": m["key"], "value": m["value"], "type": m["type"]}
                for m in metafields
            ],
        }],
    }
    data = gql(endpoint, headers, VARIANTS_BULK_UPDATE, variables)
    payload = (data.get("data") or {}).get("productVariantsBulkUpdate")
    if payload is None:
        raise RuntimeError("productVariantsBulkUpdate returned no payload")
    user_errors = payload.get("userErrors") or []
    if user_errors:
        msg = "; ".join(e.get("message", "") for e in user_errors)
        raise RuntimeError(f"Update rejected: {msg}")
    return payload


def chunked(items: List, size: int) -> Iterator[List]:
    if size < 1:
        raise ValueError(f"Batch size must be at least 1 (got {size})")
    for i in range(0, len(items), size):
        yield items[i:i + size]


def process_row(endpoint: str, headers: Dict[str, str], row: Dict[str, str], dry_run: bool,
                metafield_types: Optional[Dict[Tuple[str, str], str]] = None,
                progress: Progress = None) -> Dict:
    variant_id = row.get("variant_id", "")
    variant_title = row.get("variant_title", "")
    metafields = extract_metafields(row, metafield_types)
    result = {
        "variant_id": variant_id,
        "variant_title": variant_title,
        "status": SKIPPED,
        "action": "skipped",
        "metafields": metafields,
        "error": "",
    }

    if not metafields:
        log(f"  ⏩ Skipping variant {variant_id} - no metafields to update", progress)
        return result
    if not variant_id:
        result.update(status=FAILED, action="error", error="Row has no variant_id")
        log(f"  ❌ Row '{variant_title}' has {len(metafields)} metafields but no variant_id", progress)
        return result

    log(f"  Processing variant {variant_id} ({variant_title}) - {len(metafields)} metafields", progress)

    if dry_run:
        log(f"  [DRY RUN] Would update {len(metafields)} metafields:", progress)
        for m in metafields:
            log(f"    {m['namespace']}.{m['key']} = {m['value']}", progress)
        result.update(status=SUCCESS, action="dry-run")
        return result

    try:
        product_id = get_product_id_for_variant(endpoint, headers, variant_id)
        update_variant_metafields(endpoint, headers, product_id, variant_id, metafields)
    except (RuntimeError, requests.RequestException) as e:
        result.update(status=FAILED, action="error", error=str(e))
        log(f"    ✗ Failed to update metafields for variant {variant_id}: {e}", progress)
        return result

    result.update(status=SUCCESS, action="updated")
    log(f"    ✓ Successfully updated {len(metafields)} metafields", progress)
    return result


def process_batch(endpoint: str, headers: Dict[str, str], batch: List[Dict[str, str]], dry_run: bool,
                  metafield_types: Optional[Dict[Tuple[str, str], str]] = None,
                  progress: Progress = None) -> Dict:
    results = {SUCCESS: 0, FAILED: 0, SKIPPED: 0, "details": []}
    for row in batch:
        outcome = process_row(endpoint, headers, row, dry_run, metafield_types, progress)
        results[outcome["status"]] += 1
        results["details"].append(outcome)
    return results


def _report_frame(details: List[Dict]) -> pd.DataFrame:
    return pd.DataFrame(
        [{
            "variant_id": d["variant_id"],
            "variant_title": d["variant_title"],
            "status": d["status"],
            "action": d["action"],
            "metafields": ", ".join(f"{m['namespace']}.{m['key']}={m['value']}" for m in d["metafields"]),
            "error": d["error"],
        } for d in details],
        columns=["variant_id", "variant_title", "status", "action", "metafields", "error"],
    )


def run_import(*, config: ShopConfig, input_path: str, dry_run: bool = False,
               batch_size: int = BATCH_SIZE_DEFAULT, results_path: Optional[str] = None,
               progress: Progress = None) -> Tuple[pd.DataFrame, Dict]:
    start_ts = time.time()
    endpoint, headers = config.endpoint, config.headers
    if batch_size < 1:
        raise ValueError(f"Batch size must be at least 1 (got {batch_size})")

    log("Starting variant import...", progress)
    if dry_run:
        log("🔍 DRY RUN MODE - No changes will be applied", progress)

    log(f"Reading CSV file: {input_path}", progress)
    columns, rows = read_csv_file(input_path, progress)
    if "variant_id" not in columns:
        raise ValueError(f"CSV header has no 'variant_id' column. Found: {columns}")
    log(f"Found {len(rows)} variants to process", progress)

    metafield_types: Dict[Tuple[str, str], str] = {}
    if dry_run:
        log(f"Metafield types are not looked up in a dry run; values show as {DEFAULT_METAFIELD_TYPE} "
            "and declared types are applied on the live run", progress)
    else:
        connect(endpoint, headers, progress)
        metafield_types = get_metafield_types(endpoint, headers, progress)

    totals = {SUCCESS: 0, FAILED: 0, SKIPPED: 0, "details": []}
    batches = list(chunked(rows, batch_size))
    for index, batch in enumerate(batches, start=1):
        log(f"\nProcessing batch {index}/{len(batches)} ({len(batch)} variants)...", progress)
        batch_results = process_batch(endpoint, headers, batch, dry_run, metafield_types, progress)
        for status in (SUCCESS, FAILED, SKIPPED):
            totals[status] += batch_results[status]
        totals["details"].extend(batch_results["details"])

        if index < len(batches) and not dry_run:
            log(f"  Waiting {SLEEP_BETWEEN_BATCHES:g} second(s) before next batch...", progress)
            time.sleep(SLEEP_BETWEEN_BATCHES)

    log("\n" + "=" * 50, progress)
    log("IMPORT SUMMARY", progress)
    log("=" * 50, progress)
    log(f"Total variants processed: {len(rows)}", progress)
    log(f"Successfully updated: {totals[SUCCESS]}", progress)
    log(f"Failed: {totals[FAILED]}", progress)
    log(f"Skipped: {totals[SKIPPED]}", progress)
    if dry_run:
        log("\n🔍 This was a dry run. No actual changes were made.", progress)
        log("Run without --dry-run to apply the changes.", progress)

    results_path = results_path or results_path_for(input_path)
    write_json(results_path, {
        "dry_run": dry_run,
        "total": len(rows),
        SUCCESS: totals[SUCCESS],
        FAILED: totals[FAILED],
        SKIPPED: totals[SKIPPED],
        "details": totals["details"],
    })
    log(f"\nDetailed results saved to: {results_path}", progress)

    elapsed = round(time.time() - start_ts, 2)
    return _report_frame(totals["details"]), {
        "total": len(rows),
        SUCCESS: totals[SUCCESS],
        FAILED: totals[FAILED],
        SKIPPED: totals[SKIPPED],
        "batches": len(batches),
        "dry_run": dry_run,
        "results_path": results_path,
        "elapsed_secs": elapsed,
    }
