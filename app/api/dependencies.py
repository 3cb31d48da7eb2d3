from __future__ import annotations

from typing import Annotated

import httpx
from fastapi import Depends, Request

from app.core.config import Settings, get_settings
from app.services.shopify_client import ShopifyClient


def get_http_client(request: Request) -> httpx.AsyncClient:
    """The pooled client opened by the app lifespan."""
    return request.app.state.http_client


def get_shopify_client(
    http: Annotated[httpx.AsyncClient, Depends(get_http_client)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> ShopifyClient:
    return ShopifyClient(http, settings)
