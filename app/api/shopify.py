from __future__ import annotations

import hmac
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse, PlainTextResponse, RedirectResponse

from app.api.dependencies import get_shopify_client
from app.core.config import Settings, get_settings
from app.core.metrics import CALLBACKS, INSTALLS_STARTED
from app.services.hmac_service import verify_hmac
from app.services.shopify_client import ShopifyAPIError, ShopifyClient
from app.services.shopify_urls import build_install_url, build_redirect_uri
from app.services.state_store import StateStore, get_state_store

# ---------------------------------------------------------------------------
# App install handshake (authorization code grant, platform side is Shopify)
#
#   GET /shopify?shop=...          mint nonce, set state cookie, 302 to the
#                                  shop's authorization page
#   GET /shopify/callback?...      the platform redirects back here; verify,
#                                  exchange the code, fetch shop.json
#
# Callback gates, first failure wins:
#   1. state cookie == state param           else 403
#   2. hmac over the other params is valid   else 400
#   3. nonce is live and bound to this shop  else 403 (single use)
#   4. code -> token, token -> shop.json     else 500
# ---------------------------------------------------------------------------

logger = logging.getLogger(__name__)

router = APIRouter(tags=["shopify"])

STATE_COOKIE = "state"


def _states_match(cookie_value: str | None, param_value: str | None) -> bool:
    if not cookie_value or not param_value:
        return False
    return hmac.compare_digest(cookie_value.encode("utf-8"), param_value.encode("utf-8"))


@router.get("/shopify")
async def install(
    settings: Annotated[Settings, Depends(get_settings)],
    store: Annotated[StateStore, Depends(get_state_store)],
    shop: str | None = Query(None),
) -> RedirectResponse:
    if not shop:
        raise HTTPException(
            status.HTTP_400_BAD_REQUEST,
            "no shop: add ?shop=<your-shop>.myshopify.com to the request",
        )

    state = await store.issue(shop)
    install_url = build_install_url(
        shop, state.nonce, build_redirect_uri(settings), settings
    )

    response = RedirectResponse(url=install_url, status_code=status.HTTP_302_FOUND)
    response.set_cookie(
        key=STATE_COOKIE,
        value=state.nonce,
        max_age=settings.state_ttl_sec,
        httponly=True,
        # Lax still sends the cookie on the platform's top-level redirect back.
        samesite="lax",
        secure=settings.state_cookie_secure,
    )
    INSTALLS_STARTED.inc()
    logger.info("Install started, redirecting to authorization page", extra={"shop": shop})
    return response


@router.get("/shopify/callback")
async def callback(
    request: Request,
    settings: Annotated[Settings, Depends(get_settings)],
    store: Annotated[StateStore, Depends(get_state_store)],
    shopify: Annotated[ShopifyClient, Depends(get_shopify_client)],
):
    params = request.query_params
    shop = params.get("shop")
    state = params.get("state")
    code = params.get("code")

    # --- Gate 1: the browser holds the cookie we set for this attempt -------
    if not _states_match(request.cookies.get(STATE_COOKIE), state):
        CALLBACKS.labels(result="state_mismatch").inc()
        logger.warning("Callback rejected: state cookie mismatch", extra={"shop": shop})
        raise HTTPException(status.HTTP_403_FORBIDDEN, "Cannot be verified")

    # --- Gate 2: the parameters were signed by the platform -----------------
    if not verify_hmac(params.multi_items(), settings.shopify_api_secret_key):
        CALLBACKS.labels(result="hmac_invalid").inc()
        logger.warning("Callback rejected: HMAC validation failed", extra={"shop": shop})
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "HMAC validation failed")

    # A correctly signed callback always carries both; guard anyway so a
    # signed-but-odd request never reaches the upstream URLs with None.
    if not shop or not code:
        CALLBACKS.labels(result="missing_params").inc()
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "missing shop or code")

    # --- Gate 3: single use ---------------------------------------------------
    if not await store.consume(shop, state):
        CALLBACKS.labels(result="state_replayed").inc()
        logger.warning(
            "Callback rejected: nonce unknown, expired or already used",
            extra={"shop": shop},
        )
        raise HTTPException(status.HTTP_403_FORBIDDEN, "Cannot be verified")

    # --- Gate 4: code -> token -> resource -----------------------------------
    try:
        access_token = await shopify.fetch_access_token(shop, code)
        shop_data = await shopify.fetch_shop_data(shop, access_token)
    except ShopifyAPIError as e:
        CALLBACKS.labels(result="upstream_error").inc()
        logger.exception(
            "Install failed talking to the platform: %s", e, extra={"shop": shop}
        )
        response = PlainTextResponse(
            "something went wrong", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR
        )
        response.delete_cookie(STATE_COOKIE)
        return response

    CALLBACKS.labels(result="success").inc()
    logger.info("Install completed", extra={"shop": shop})
    response = JSONResponse(shop_data)
    response.delete_cookie(STATE_COOKIE)
    return response
