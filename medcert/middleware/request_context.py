"""Request context middleware.

Every request gets an id: the caller's X-Request-ID when present,
otherwise a fresh UUID.  The id is stored in request_id_var, so every
log line emitted while serving the request carries it, and is echoed on
the response for client-side correlation.  One summary line is logged
per request.
"""

from __future__ import annotations

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from medcert.core.logging import request_id_var

logger = logging.getLogger(__name__)

# Upper bound on a caller-supplied id; longer values are replaced.
_MAX_REQUEST_ID_LEN = 128


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        req_id = request.headers.get("x-request-id", "")
        if not req_id or len(req_id) > _MAX_REQUEST_ID_LEN:
            req_id = str(uuid.uuid4())
        token = request_id_var.set(req_id)

        try:
            start = time.monotonic()
            response = await call_next(request)
            duration_ms = round((time.monotonic() - start) * 1000, 1)

            logger.info(
                "%s %s -> %d (%.1fms)",
                request.method,
                request.url.path,
                response.status_code,
                duration_ms,
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                    "duration_ms": duration_ms,
                },
            )
            response.headers["X-Request-ID"] = req_id
            return response
        finally:
            request_id_var.reset(token)
