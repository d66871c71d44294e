"""
HTTP middleware: CORS preflight and request logging.

Preflight requests are answered here, before routing, so they never reach
the proxy router or storage. Every other response leaving the app gets
the CORS header set if a handler has not already set it (health checks,
unknown paths).
"""

import logging
import time
from urllib.parse import quote

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from ..core.mapping import CorsPolicy, preflight_response

logger = logging.getLogger(__name__)


def relative_raw_path(request: Request, stage_prefix: str) -> str:
    """
    Raw (percent-encoded) request path with the stage prefix removed.

    The raw path keeps `%2F` inside a variable distinguishable from a real
    separator; the decoded path does not.
    """
    raw = request.scope.get("raw_path")
    path = raw.decode("latin-1") if raw else quote(request.url.path)
    path = path.split("?", 1)[0]
    if stage_prefix and path.startswith(stage_prefix):
        path = path[len(stage_prefix):]
    return path


class PreflightMiddleware(BaseHTTPMiddleware):
    """Answers OPTIONS directly and stamps CORS headers on all responses."""

    def __init__(self, app: ASGIApp, cors: CorsPolicy, stage_prefix: str = "") -> None:
        super().__init__(app)
        self._cors = cors
        self._stage_prefix = stage_prefix

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.method == "OPTIONS":
            result = preflight_response(
                self._cors, relative_raw_path(request, self._stage_prefix)
            )
            return Response(status_code=result.status_code, headers=dict(result.headers))

        response = await call_next(request)
        for name, value in self._cors.headers().items():
            response.headers.setdefault(name, value)
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """One INFO line per request: method, path, status and duration."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000

        logger.info(
            "Request completed",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": round(duration_ms, 2),
            }
        )

        return response
