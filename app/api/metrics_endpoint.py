"""Prometheus scrape target.

Returns the text exposition format, not JSON. The install counters here
show how many merchants start versus finish the handshake, and why the
rest were turned away. Restrict /metrics to the scraper in production.
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter(tags=["observability"])


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
