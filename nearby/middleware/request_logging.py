"""Request logging middleware: one line per request, response time header, request metrics."""
import logging
import time
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from nearby.monitoring.metrics import record_request

logger = logging.getLogger(__name__)

# Polled by load balancers; counted but not logged
QUIET_PATHS = frozenset({"/health", "/favicon.ico"})


def _client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else ""


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log method, path, status and duration; expose duration as X-Response-Time-Ms."""

    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000
        response.headers["X-Response-Time-Ms"] = f"{duration_ms:.1f}"
        record_request(response.status_code)
        if request.url.path not in QUIET_PATHS:
            logger.info(
                "request method=%s path=%s status=%s duration_ms=%.1f client=%s",
                request.method,
                request.url.path,
                response.status_code,
                duration_ms,
                _client_ip(request),
            )
        return response
