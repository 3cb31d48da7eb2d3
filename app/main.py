from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI

from app.api.health import router as health_router
from app.api.home import router as home_router
from app.api.metrics_endpoint import router as metrics_router
from app.api.shopify import router as shopify_router
from app.core.config import SETTINGS
from app.core.logging import setup_logging
from app.db.redis import lifespan_redis
from app.middleware.metrics import MetricsMiddleware
from app.middleware.request_context import RequestContextMiddleware

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # One pooled client for every outbound platform call; per-request
    # timeouts are applied by ShopifyClient.
    async with lifespan_redis():
        async with httpx.AsyncClient(
            timeout=SETTINGS.upstream_timeout_sec,
            headers={"Accept": "application/json"},
        ) as http_client:
            app.state.http_client = http_client
            yield


app = FastAPI(
    title="shop-install-service",
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
)

# Last-added runs first: RequestContext → Metrics → route handler
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)

app.include_router(metrics_router)
app.include_router(health_router)
app.include_router(home_router)
app.include_router(shopify_router)

logger.info(
    "shop-install-service started  env=%s log_level=%s port=%d app_url=%s",
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    SETTINGS.app_url,
)


def run() -> None:
    """Console entry point: serve on the configured port."""
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=SETTINGS.port, log_config=None)


if __name__ == "__main__":
    run()
