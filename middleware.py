"""
GiveHope - HTTP Middleware
Request/response logging, timing and request-id propagation
"""

import time
from typing import Callable, Set

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from logging_config import (
    logger,
    set_request_id,
    set_user_id,
    generate_request_id,
)


SKIP_LOGGING_PATHS: Set[str] = {
    "/",
    "/health",
    "/favicon.ico",
    "/docs",
    "/redoc",
    "/openapi.json",
}


def should_skip_logging(path: str) -> bool:
    return path in SKIP_LOGGING_PATHS or path.endswith("/health")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs method, path, status and duration of every request and tags the
    request with an id (taken from X-Request-ID or generated) that is put
    in the logging context and echoed back on the response.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or generate_request_id()
        set_request_id(request_id)
        set_user_id("")

        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000

        response.headers["X-Request-ID"] = request_id
        if not should_skip_logging(request.url.path):
            logger.log_request(request.method, request.url.path, response.status_code, duration_ms)
        return response
