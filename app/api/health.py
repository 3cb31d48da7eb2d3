"""Health and readiness endpoints.

  /health  liveness plus dependency status. Always 200; the "status" field
           says "degraded" when Redis is configured but not answering.
  /ready   readiness. The install flow can only run if the nonce store is
           reachable, so a configured-but-down Redis makes this 503 and the
           load balancer stops routing installs here.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Response

from app.db.redis import redis_pool

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


async def _redis_status() -> str:
    if redis_pool is None:
        return "not_configured"
    try:
        await redis_pool.ping()  # type: ignore[misc]
    except Exception:
        logger.warning("Redis ping failed", exc_info=True)
        return "degraded"
    return "ok"


@router.get("/health")
async def health() -> dict:
    checks = {"redis": await _redis_status()}
    overall = "degraded" if "degraded" in checks.values() else "ok"
    return {"status": overall, "checks": checks}


@router.get("/ready")
async def ready() -> Response:
    if await _redis_status() == "degraded":
        return Response(status_code=503)
    return Response(status_code=200)
