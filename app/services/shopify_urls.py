from __future__ import annotations

from urllib.parse import urlencode

from app.core.config import Settings

# URL builders for the install handshake. All of them address the merchant's
# own shop domain; the shop value is not validated here; the platform
# rejects hosts that are not real shops.

CALLBACK_PATH = "/shopify/callback"


def build_redirect_uri(settings: Settings) -> str:
    # Must match the redirect URL registered for the app byte for byte.
    return f"{settings.app_url}{CALLBACK_PATH}"


def build_install_url(
    shop: str, state: str, redirect_uri: str, settings: Settings
) -> str:
    query = urlencode(
        {
            "client_id": settings.shopify_api_public_key,
            "scope": settings.shopify_scopes,
            "state": state,
            "redirect_uri": redirect_uri,
        }
    )
    return f"https://{shop}/admin/oauth/authorize?{query}"


def build_access_token_request_url(shop: str) -> str:
    return f"https://{shop}/admin/oauth/access_token"


# Any Admin API resource would do; shop.json is the smallest one that
# proves the token works.
def build_shop_data_request_url(shop: str) -> str:
    return f"https://{shop}/admin/shop.json"
