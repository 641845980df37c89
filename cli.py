# cli.py
import argparse
import sys
from typing import List, Optional

import requests

from constants import (
    AVAILABLE_TEMPLATES, BATCH_SIZE_DEFAULT, EXPORT_FILENAME_DEFAULT, EXPORT_LIMIT_DEFAULT,
    TEMPLATE_LIMIT_DEFAULT, TITLES_INPUT_DEFAULT, TITLES_OUTPUT_DEFAULT,
)
from export_variants import run_export
from import_variants import run_import
from process_variant_titles import run_title_processing
from store_profiles import resolve_shop_config
from update_product_templates import run_template_update


def _add_credentials(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--shop", default=None, help="Shop name (or set SHOPIFY_SHOP)")
    parser.add_argument("--token", default=None, help="Admin API access token (or set SHOPIFY_ACCESS_TOKEN)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Shopify variant metafield CSV tools")
    subparsers = parser.add_subparsers(dest="command", required=True)

    export_p = subparsers.add_parser("export", help="Export variants and metafields to CSV")
    _add_credentials(export_p)
    export_p.add_argument("--output", default=EXPORT_FILENAME_DEFAULT, help="Output CSV filename")
    export_p.add_argument("--output-dir", default=None, help="Directory for the output file")
    export_p.add_argument("--product-id", default=None, help="Export a single product by ID")
    export_p.add_argument("--search", default=None, help="Only products whose title matches")
    export_p.add_argument("--limit", type=int, default=EXPORT_LIMIT_DEFAULT)
    export_p.add_argument("--include-all-metafields", action="store_true",
                          help="Keep app namespaces (default: custom and non-app namespaces only)")

    import_p = subparsers.add_parser("import", help="Apply metafield edits from an exported CSV")
    _add_credentials(import_p)
    import_p.add_argument("--input", required=True, help="Edited CSV file")
    import_p.add_argument("--dry-run", action="store_true")
    import_p.add_argument("--batch-size", type=int, default=BATCH_SIZE_DEFAULT)
    import_p.add_argument("--results", default=None, help="Results JSON path (default: <input>-import-results.json)")

    tmpl_p = subparsers.add_parser("templates", help="Bulk-assign a product theme template")
    _add_credentials(tmpl_p)
    tmpl_p.add_argument("--template", required=True, choices=AVAILABLE_TEMPLATES)
    tmpl_p.add_argument("--filter-tag", default=None)
    tmpl_p.add_argument("--filter-vendor", default=None)
    tmpl_p.add_argument("--filter-type", default=None)
    tmpl_p.add_argument("--filter-collection", default=None, help="Collection ID")
    tmpl_p.add_argument("--search", default=None, help="Match title or handle")
    tmpl_p.add_argument("--product-ids", default=None, help="Comma-separated product IDs")
    tmpl_p.add_argument("--limit", type=int, default=TEMPLATE_LIMIT_DEFAULT)
    tmpl_p.add_argument("--dry-run", action="store_true")
    tmpl_p.add_argument("--force", action="store_true", help="Skip the confirmation prompt")

    titles_p = subparsers.add_parser("titles", help="Split '{label} {sku}' variant titles into metafield columns")
    titles_p.add_argument("--input", default=TITLES_INPUT_DEFAULT)
    titles_p.add_argument("--output", default=TITLES_OUTPUT_DEFAULT)
    titles_p.add_argument("--dry-run", action="store_true")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        if args.command == "titles":
            run_title_processing(input_path=args.input, output_path=args.output, dry_run=args.dry_run)
            return 0

        config = resolve_shop_config(args.shop, args.token)

        if args.command == "export":
            run_export(
                config=config,
                output=args.output,
                output_dir=args.output_dir,
                product_id=args.product_id,
                search=args.search,
                limit=args.limit,
                include_all=args.include_all_metafields,
            )
            print("\nNext steps:")
            print("1. Edit the CSV file to update metafields")
            print(f"2. Run the import: python cli.py import --input {args.output}")
        elif args.command == "import":
            run_import(
                config=config,
                input_path=args.input,
                dry_run=args.dry_run,
                batch_size=args.batch_size,
                results_path=args.results,
            )
        elif args.command == "templates":
            product_ids = [p.strip() for p in args.product_ids.split(",") if p.strip()] if args.product_ids else None
            run_template_update(
                config=config,
                template=args.template,
                tag=args.filter_tag,
                vendor=args.filter_vendor,
                product_type=args.filter_type,
                collection=args.filter_collection,
                search=args.search,
                product_ids=product_ids,
                limit=args.limit,
                dry_run=args.dry_run,
                force=args.force,
            )
    except (ValueError, FileNotFoundError, RuntimeError, requests.RequestException) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
