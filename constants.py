# constants.py
API_VERSION = "2024-10"
BATCH_SIZE_DEFAULT = 10
SLEEP_BETWEEN_BATCHES = 1.0
REQUEST_TIMEOUT = 60

EXPORT_LIMIT_DEFAULT = 50
TEMPLATE_LIMIT_DEFAULT = 250
PRODUCTS_PAGE_MAX = 250
VARIANTS_PER_PRODUCT = 100
METAFIELDS_PER_VARIANT = 50
METAFIELD_DEFINITIONS_MAX = 250

EXPORT_FILENAME_DEFAULT = "variants-export.csv"
TITLES_INPUT_DEFAULT = "variants-export.copy.csv"
TITLES_OUTPUT_DEFAULT = "variants-export.processed.csv"

# CSV column naming: attribute_<namespace>_<key>
ATTRIBUTE_PREFIX = "attribute_"
DEFAULT_METAFIELD_TYPE = "single_line_text_field"

SHOP_ENV = "SHOPIFY_SHOP"
TOKEN_ENV = "SHOPIFY_ACCESS_TOKEN"

VARIANT_COLUMNS = [
    "product_id", "product_title", "product_handle",
    "variant_id", "variant_title", "variant_sku", "variant_barcode",
    "variant_price", "variant_compare_at_price",
    "variant_inventory_quantity", "variant_inventory_policy", "variant_taxable",
    "variant_option1", "variant_option2", "variant_option3",
    "variant_created_at", "variant_updated_at",
]

# App namespaces left out of exports unless --include-all-metafields
EXCLUDED_NAMESPACES = {
    "shopify", "global", "reviews", "judge_me", "yotpo", "stamped", "loox",
    "okendo", "gorgias", "klaviyo", "mailchimp", "privy", "bold", "recharge",
    "subscription", "upsell", "cross_sell", "product_bundles",
    "inventory_quantity", "inventory_management",
}

# Theme templates shipped with the storefront
AVAILABLE_TEMPLATES = [
    "product",
    "product.collect-in-store",
    "product.custom-mount",
    "product.framed-artwork",
    "product.nielsen-ready-made-frames",
]

# Variant title processing
NIELSEN_SKU_COLUMN = f"{ATTRIBUTE_PREFIX}custom_nielsen_sku"
VARIANT_LABEL_COLUMN = f"{ATTRIBUTE_PREFIX}custom_variant_label"
