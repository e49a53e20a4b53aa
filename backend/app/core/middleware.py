"""
Request middleware — correlation ids, caller tagging and timing.

Every response carries ``X-Request-ID`` (echoed from the request when the
client sent one) and ``X-Process-Time``. One log line is written per request;
4xx/5xx responses are logged at WARNING so rejected alerts stand out.
"""

from __future__ import annotations

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from backend.app.core.logging_config import set_request_context

logger = logging.getLogger(__name__)

# Probes and docs are polled constantly; keep them out of the request log
_QUIET_PREFIXES = ("/docs", "/redoc", "/openapi", "/favicon", "/health/live")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log each request with its caller (``X-User-Id``) and duration."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:16]
        caller = request.headers.get("X-User-Id") or "anonymous"
        path = request.url.path
        request.state.request_id = request_id

        set_request_context(
            request_id=request_id,
            user_id=caller,
            endpoint=path,
            method=request.method,
        )
        start = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "%s %s failed after %.1fms",
                request.method, path, (time.perf_counter() - start) * 1000,
                extra={"status_code": 500, "endpoint": path},
            )
            set_request_context()
            raise

        duration_ms = (time.perf_counter() - start) * 1000
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = f"{duration_ms:.1f}ms"

        if not path.startswith(_QUIET_PREFIXES):
            logger.log(
                logging.WARNING if response.status_code >= 400 else logging.INFO,
                "%s %s → %d (%.1fms)",
                request.method, path, response.status_code, duration_ms,
                extra={
                    "duration_ms": duration_ms,
                    "status_code": response.status_code,
                    "endpoint": path,
                },
            )

        set_request_context()
        return response
