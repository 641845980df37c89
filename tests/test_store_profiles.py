import pytest

from store_profiles import ShopConfig, normalize_shop_domain, resolve_shop_config


def test_normalize_shop_domain():
    assert normalize_shop_domain("my-shop") == "my-shop.myshopify.com"
    assert normalize_shop_domain("https://my-shop.myshopify.com/") == "my-shop.myshopify.com"
    assert normalize_shop_domain("  ") == ""
    assert normalize_shop_domain(None) == ""


def test_flags_take_precedence_over_environment(monkeypatch):
    monkeypatch.setenv("SHOPIFY_SHOP", "env-shop")
    monkeypatch.setenv("SHOPIFY_ACCESS_TOKEN", "env-token")

    assert resolve_shop_config() == ShopConfig(shop="env-shop.myshopify.com", token="env-token")
    assert resolve_shop_config("flag-shop", "flag-token").shop == "flag-shop.myshopify.com"


@pytest.mark.parametrize("shop,token", [(None, "t"), ("s", None)])
def test_missing_credentials_raise(monkeypatch, shop, token):
    monkeypatch.delenv("SHOPIFY_SHOP", raising=False)
    monkeypatch.delenv("SHOPIFY_ACCESS_TOKEN", raising=False)

    with pytest.raises(ValueError):
        resolve_shop_config(shop, token)


def test_endpoint_and_headers():
    config = ShopConfig(shop="a.myshopify.com", token="shpat_x", api_version="2024-10")

    assert config.endpoint == "https://a.myshopify.com/admin/api/2024-10/graphql.json"
    assert config.headers["X-Shopify-Access-Token"] == "shpat_x"
