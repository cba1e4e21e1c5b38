"""
Middleware for request logging and response headers.
"""

import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from library_api.core.logging import get_logger, request_id_var

logger = get_logger(__name__)

# Polled by load balancers; only failures are logged
QUIET_PATHS = ("/health", "/health/ready")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Tag each request with an id and log its outcome and duration.

    A caller-supplied ``X-Request-ID`` is reused so that logs from the
    desktop client and the API can be correlated.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        token = request_id_var.set(request_id)
        fields = {"method": request.method, "path": request.url.path}
        quiet = request.url.path in QUIET_PATHS
        started = time.perf_counter()

        if not quiet:
            logger.info(
                f"{request.method} {request.url.path} started",
                extra={
                    "extra_fields": {
                        **fields,
                        "query": str(request.query_params),
                        "client_ip": request.client.host if request.client else None,
                    }
                },
            )

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                f"{request.method} {request.url.path} failed",
                extra={"extra_fields": {**fields, "duration_ms": _elapsed_ms(started), "error": str(e)}},
                exc_info=True,
            )
            raise
        finally:
            request_id_var.reset(token)

        duration_ms = _elapsed_ms(started)
        if not quiet or response.status_code >= 500:
            log = logger.warning if response.status_code >= 400 else logger.info
            log(
                f"{request.method} {request.url.path} -> {response.status_code}",
                extra={
                    "extra_fields": {
                        **fields,
                        "status_code": response.status_code,
                        "duration_ms": duration_ms,
                    }
                },
            )

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"
        return response


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    HEADERS = {
        "X-Content-Type-Options": "nosniff",
        "X-Frame-Options": "DENY",
        "Referrer-Policy": "strict-origin-when-cross-origin",
    }

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        response.headers.update(self.HEADERS)
        if request.url.scheme == "https":
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        return response
