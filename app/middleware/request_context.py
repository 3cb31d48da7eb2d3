"""Request context middleware.

An install is two browser round-trips (start, then callback) and the
callback fans out to two platform calls. Tagging every log line with a
request id keeps the lines of one callback together when many merchants
install at once.

The id lives in a ContextVar (app.core.logging.request_id_var), so it
follows the request through every await without being passed around, and
the log handler's filter stamps it onto each record.
"""

from __future__ import annotations

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from app.core.logging import request_id_var

logger = logging.getLogger(__name__)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Assign a request id, time the request, log one summary line.

    An incoming X-Request-ID header is honoured so a proxy's id carries
    through; otherwise a UUID4 is generated. The id is echoed back on the
    response.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        req_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        token = request_id_var.set(req_id)

        try:
            start = time.monotonic()
            response = await call_next(request)
            duration_ms = round((time.monotonic() - start) * 1000, 1)

            # Path only: the callback query string carries the code and hmac.
            logger.info(
                "%s %s → %d (%.1fms)",
                request.method,
                request.url.path,
                response.status_code,
                duration_ms,
                extra={
                    "request_id": req_id,
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                    "duration_ms": duration_ms,
                },
            )
        finally:
            request_id_var.reset(token)

        response.headers["X-Request-ID"] = req_id
        return response
