"""
Correlation ID middleware
=========================
Gives every request an X-Correlation-ID so that all log lines and the audit
row for one HTTP call share the same identifier. A value sent by the caller
is reused; otherwise a fresh UUID is generated.
"""
from __future__ import annotations

import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from caseintake.core.logger import logger

CORRELATION_HEADER = "X-Correlation-ID"


class CorrelationMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())

        # Available to endpoint handlers via request.state
        request.state.correlation_id = correlation_id

        logger.info("request %s %s correlation_id=%s", request.method, request.url.path, correlation_id)

        response = await call_next(request)

        # Echo for client-side log correlation
        response.headers[CORRELATION_HEADER] = correlation_id
        return response
