import os
from dataclasses import dataclass
from typing import Dict, Optional

from dotenv import load_dotenv

from constants import API_VERSION, SHOP_ENV, TOKEN_ENV


def normalize_shop_domain(val: Optional[str]) -> str:
    """
    "https://my-shop.myshopify.com/" -> "my-shop.myshopify.com"
    "my-shop" -> "my-shop.myshopify.com"
    """
    v = (val or "").strip()
    if v.lower().startswith("https://"):
        v = v[8:]
    elif v.lower().startswith("http://"):
        v = v[7:]
    v = v.strip().strip("/\t\n\r ")
    if v and "." not in v:
        v = f"{v}.myshopify.com"
    return v


@dataclass(frozen=True)
class ShopConfig:
    shop: str
    token: str
    api_version: str = API_VERSION

    @property
    def endpoint(self) -> str:
        return f"https://{self.shop}/admin/api/{self.api_version}/graphql.json"

    @property
    def headers(self) -> Dict[str, str]:
        return {"Content-Type": "application/json", "X-Shopify-Access-Token": self.token}


def resolve_shop_config(shop: Optional[str] = None, token: Optional[str] = None,
                        api_version: str = API_VERSION) -> ShopConfig:
    """
    Flags win over SHOPIFY_SHOP / SHOPIFY_ACCESS_TOKEN (a local .env is loaded first).
    Raises ValueError before anything touches the network.
    """
    load_dotenv(override=False)
    shop = normalize_shop_domain(shop or os.getenv(SHOP_ENV, ""))
    token = (token or os.getenv(TOKEN_ENV, "")).strip()
    if not shop:
        raise ValueError(f"Shop name is required. Use --shop or set the {SHOP_ENV} environment variable.")
    if not token:
        raise ValueError(f"Access token is required. Use --token or set the {TOKEN_ENV} environment variable.")
    return ShopConfig(shop=shop, token=token, api_version=api_version)


def load_store_profiles() -> Dict[str, ShopConfig]:
    """Store profiles for the Streamlit app, read from .streamlit/secrets.toml."""
    import streamlit as st

    profiles: Dict[str, ShopConfig] = {}
    for store, creds in st.secrets["store_profiles"].items():
        profiles[store] = ShopConfig(
            shop=normalize_shop_domain(creds["SHOP_URL"]),
            token=creds["ACCESS_TOKEN"],
            api_version=creds.get("API_VERSION", API_VERSION),
        )
    return profiles
