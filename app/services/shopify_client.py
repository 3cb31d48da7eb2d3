"""Outbound calls to the platform: code exchange, then one Admin API read.

Both calls go to the merchant's shop domain through one shared
httpx.AsyncClient (created in the app lifespan, so connections are pooled
across callbacks).

Failure policy
--------------
  - every attempt is bounded by UPSTREAM_TIMEOUT_SEC
  - transport errors (connect failures, timeouts) and 502/503/504 are
    retried up to UPSTREAM_MAX_RETRIES times with exponential backoff
  - a body httpx cannot decode (DecodingError) is terminal, not retried
  - anything else that is not 2xx, a body that is not JSON, or a token
    response without access_token is terminal

Every terminal failure surfaces as ShopifyAPIError. The caller turns it
into a generic 500; the details only go to the log.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import httpx
from pydantic import BaseModel, Field, ValidationError

from app.core.config import Settings
from app.core.metrics import UPSTREAM_REQUESTS
from app.services.shopify_urls import (
    build_access_token_request_url,
    build_shop_data_request_url,
)

logger = logging.getLogger(__name__)

ACCESS_TOKEN_HEADER = "X-Shopify-Access-Token"
RETRYABLE_STATUS_CODES = frozenset({502, 503, 504})


class AccessTokenResponse(BaseModel):
    """Body of a successful code exchange. Extra fields are ignored."""

    access_token: str = Field(min_length=1)
    scope: str | None = None


class ShopifyAPIError(Exception):
    """A platform call failed terminally."""

    def __init__(self, call: str, message: str, status_code: int | None = None):
        super().__init__(f"{call}: {message}")
        self.call = call
        self.status_code = status_code


class ShopifyClient:
    def __init__(
        self,
        http: httpx.AsyncClient,
        settings: Settings,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._http = http
        self._settings = settings
        self._sleep = sleep

    async def fetch_access_token(self, shop: str, code: str) -> str:
        """Exchange a one-time authorization code for an access token."""
        payload = {
            "client_id": self._settings.shopify_api_public_key,
            "client_secret": self._settings.shopify_api_secret_key,
            "code": code,
        }
        body = await self._request_json(
            "access_token", "POST", build_access_token_request_url(shop), json=payload
        )
        try:
            token = AccessTokenResponse.model_validate(body)
        except ValidationError:
            UPSTREAM_REQUESTS.labels(call="access_token", outcome="error").inc()
            raise ShopifyAPIError("access_token", "response has no access_token") from None
        return token.access_token

    async def fetch_shop_data(self, shop: str, access_token: str) -> Any:
        """GET /admin/shop.json as the merchant; returns the decoded body."""
        return await self._request_json(
            "shop_data",
            "GET",
            build_shop_data_request_url(shop),
            headers={ACCESS_TOKEN_HEADER: access_token},
        )

    async def _request_json(self, call: str, method: str, url: str, **kwargs) -> Any:
        response = await self._send(call, method, url, **kwargs)
        try:
            return response.json()
        except ValueError:
            UPSTREAM_REQUESTS.labels(call=call, outcome="error").inc()
            raise ShopifyAPIError(
                call, "response body is not JSON", response.status_code
            ) from None

    async def _send(self, call: str, method: str, url: str, **kwargs) -> httpx.Response:
        max_retries = self._settings.upstream_max_retries

        for attempt in range(max_retries + 1):
            retries_left = attempt < max_retries
            try:
                response = await self._http.request(
                    method, url, timeout=self._settings.upstream_timeout_sec, **kwargs
                )
            except httpx.TransportError as e:
                if retries_left:
                    await self._backoff(call, attempt, type(e).__name__)
                    continue
                UPSTREAM_REQUESTS.labels(call=call, outcome="error").inc()
                raise ShopifyAPIError(call, f"transport error: {type(e).__name__}") from e
            except httpx.RequestError as e:
                # Body arrived but could not be decoded (bad Content-Encoding).
                # Resending gets the same bytes, so this is terminal.
                UPSTREAM_REQUESTS.labels(call=call, outcome="error").inc()
                raise ShopifyAPIError(call, f"request error: {type(e).__name__}") from e

            if response.status_code in RETRYABLE_STATUS_CODES and retries_left:
                await self._backoff(call, attempt, f"status {response.status_code}")
                continue

            if not response.is_success:
                UPSTREAM_REQUESTS.labels(call=call, outcome="error").inc()
                raise ShopifyAPIError(
                    call, f"unexpected status {response.status_code}", response.status_code
                )

            UPSTREAM_REQUESTS.labels(call=call, outcome="ok").inc()
            return response

        # The final attempt always returns or raises above.
        raise AssertionError("unreachable")

    async def _backoff(self, call: str, attempt: int, reason: str) -> None:
        delay = self._settings.upstream_retry_backoff_sec * (2**attempt)
        UPSTREAM_REQUESTS.labels(call=call, outcome="retry").inc()
        logger.warning(
            "Upstream %s failed (%s), retrying in %.2fs  attempt=%d",
            call,
            reason,
            delay,
            attempt + 1,
        )
        await self._sleep(delay)
