"""Request context middleware: request IDs, caller identity, access log.

Every request gets an ID (the client's X-Request-ID if it sent one, else a
fresh UUID4) stored in ``request_id_var``; ``require_user`` later fills in
``user_id_var``.  The handler filter installed by ``setup_logging`` copies
both onto every record, so a single learner's quiz submit can be traced
from the access line through the service logs without threading
identifiers through function arguments.
"""

from __future__ import annotations

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from app.core.logging import request_id_var, user_id_var

logger = logging.getLogger(__name__)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Assign a request ID, time the request, log one summary line.

    The ID is echoed back in the X-Request-ID response header so a client
    report ("my submit failed") can be matched to server logs.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        req_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request_id_var.set(req_id)
        user_id_var.set(None)

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
                "request_id": req_id,
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
                # the handler ran in a child context, so read it off state
                "user_id": getattr(request.state, "user_id", None),
            },
        )

        response.headers["X-Request-ID"] = req_id
        # set by require_rate_limit on routes that declare it
        for name, value in getattr(request.state, "rate_limit_headers", {}).items():
            response.headers.setdefault(name, value)
        return response
