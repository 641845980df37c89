import json
import re

import pytest
import requests

import core
from store_profiles import ShopConfig

_OPERATION_RE = re.compile(r"\b(?:query|mutation)\s+(\w+)")


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self._payload = payload
        self.status_code = status_code

    @property
    def text(self):
        return json.dumps(self._payload)

    def json(self):
        return self._payload


class FakeShopify:
    """Answers the GraphQL operations the tools send and records every request."""

    def __init__(self):
        self.calls = []
        self.products = []
        self.definitions = []
        self.page_size = None
        self.rejected = {}
        self.unreachable = set()
        self.failing_operations = set()

    def add_product(self, product):
        self.products.append(product)
        return product

    def operations(self, name=None):
        return [c for c in self.calls if name is None or c[0] == name]

    @property
    def mutations(self):
        return [c for c in self.calls if c[0] in ("productVariantsBulkUpdate", "productUpdate")]

    def __call__(self, url, headers=None, json=None, timeout=None):
        query = json["query"]
        variables = json.get("variables") or {}
        m = _OPERATION_RE.search(query)
        operation = m.group(1) if m else "shop"
        self.calls.append((operation, variables))

        if operation in self.failing_operations:
            return FakeResponse({"errors": [{"message": f"{operation} exploded"}]})
        handler = getattr(self, f"_handle_{operation}")
        return FakeResponse({"data": handler(variables)})

    def _find_product(self, product_id):
        return next((p for p in self.products if p["id"] == product_id), None)

    def _find_variant(self, variant_id):
        for product in self.products:
            for edge in product["variants"]["edges"]:
                if edge["node"]["id"] == variant_id:
                    return product, edge["node"]
        return None, None

    def _handle_shop(self, variables):
        return {"shop": {"name": "Test Shop", "myshopifyDomain": "test-shop.myshopify.com"}}

    def _handle_getMetafieldDefinitions(self, variables):
        return {"metafieldDefinitions": {"edges": [
            {"node": {"id": f"gid://shopify/MetafieldDefinition/{i}", "namespace": ns, "key": key,
                      "name": key, "type": {"name": type_name}}}
            for i, (ns, key, type_name) in enumerate(self.definitions, start=1)
        ]}}

    def _handle_getProduct(self, variables):
        return {"product": self._find_product(variables["id"])}

    def _handle_getProducts(self, variables):
        start = int(variables.get("after") or 0)
        size = variables["first"] if self.page_size is None else min(variables["first"], self.page_size)
        page = self.products[start:start + size]
        end = start + len(page)
        return {"products": {
            "pageInfo": {"hasNextPage": end < len(self.products), "endCursor": str(end)},
            "edges": [{"node": p} for p in page],
        }}

    def _handle_getVariant(self, variables):
        product, variant = self._find_variant(variables["id"])
        if variant is None:
            return {"productVariant": None}
        return {"productVariant": {"id": variant["id"], "product": {"id": product["id"]}}}

    def _handle_productVariantsBulkUpdate(self, variables):
        variant_id = variables["variants"][0]["id"]
        if variant_id in self.unreachable:
            raise requests.ConnectionError(f"connection reset while updating {variant_id}")
        if variant_id in self.rejected:
            return {"productVariantsBulkUpdate": {
                "product": None, "productVariants": None,
                "userErrors": [{"field": ["metafields"], "message": self.rejected[variant_id]}],
            }}
        return {"productVariantsBulkUpdate": {
            "product": {"id": variables["productId"]},
            "productVariants": [{"id": variant_id}],
            "userErrors": [],
        }}

    def _handle_productUpdate(self, variables):
        product_id = variables["input"]["id"]
        if product_id in self.rejected:
            return {"productUpdate": {"product": None,
                                      "userErrors": [{"field": ["templateSuffix"], "message": self.rejected[product_id]}]}}
        product = self._find_product(product_id)
        product["templateSuffix"] = variables["input"]["templateSuffix"]
        return {"productUpdate": {"product": {"id": product_id, "title": product["title"],
                                              "templateSuffix": product["templateSuffix"]},
                                  "userErrors": []}}


@pytest.fixture
def shopify(monkeypatch):
    fake = FakeShopify()
    monkeypatch.setattr(core.requests, "post", fake)
    return fake


@pytest.fixture
def config():
    return ShopConfig(shop="test-shop.myshopify.com", token="shpat_test")


@pytest.fixture
def messages():
    class _Collector(list):
        def __call__(self, msg):
            self.append(msg)

        # progress callbacks are checked with `if cb:`; stay truthy while empty
        def __bool__(self):
            return True

    return _Collector()


@pytest.fixture
def sleeps(monkeypatch):
    recorded = []
    import import_variants

    monkeypatch.setattr(import_variants.time, "sleep", lambda seconds: recorded.append(seconds))
    return recorded
