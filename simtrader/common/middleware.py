"""HTTP middleware for SimTrader.

Provides request ID tracing, request logging, and Prometheus HTTP
metrics collection. All three classes are registered in simtrader/main.py.

Usage:
    from simtrader.common.middleware import request_id_var
    rid = request_id_var.get("")  # Access current request ID from anywhere
"""

from __future__ import annotations

import time
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import Scope

from simtrader.common.logging import get_logger
from simtrader.common.metrics import (
    HTTP_REQUEST_DURATION_SECONDS,
    HTTP_REQUESTS_IN_PROGRESS,
    HTTP_REQUESTS_TOTAL,
)

request_id_var: ContextVar[str] = ContextVar("request_id", default="")

logger = get_logger("API")

# Health and scrape endpoints are neither logged nor measured
_SKIP_PATHS = frozenset({"/health", "/metrics"})

# Label for requests that matched no route (404s, scanners)
UNMATCHED_PATH = "unmatched"


def _is_skipped(path: str) -> bool:
    return path.rstrip("/") in _SKIP_PATHS


def _path_template(scope: Scope) -> str:
    """Route template the router matched, e.g. ``/api/backtest``.

    Falls back to UNMATCHED_PATH so arbitrary URLs cannot grow label
    cardinality.
    """
    route = scope.get("route")
    return getattr(route, "path", None) or UNMATCHED_PATH


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Attach a request ID to every request/response cycle.

    Honors an incoming ``X-Request-ID`` header, otherwise generates one,
    and echoes it back on the response.
    """

    async def dispatch(self, request: Request, call_next) -> Response:  # noqa: ANN001
        rid = request.headers.get("x-request-id") or uuid.uuid4().hex
        request_id_var.set(rid)

        response = await call_next(request)
        response.headers["X-Request-ID"] = rid
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log each API call with its route, status and duration."""

    async def dispatch(self, request: Request, call_next) -> Response:  # noqa: ANN001
        if _is_skipped(request.url.path):
            return await call_next(request)

        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000

        log = logger.warning if response.status_code >= 400 else logger.info
        log(
            f"{request.method} {request.url.path} {response.status_code}",
            extra={
                "data": {
                    "route": _path_template(request.scope),
                    "status": response.status_code,
                    "duration_ms": round(duration_ms, 1),
                }
            },
        )
        return response


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Record request count, duration histogram, and in-progress gauge.

    Labels use the matched route template, resolved after the router ran.
    """

    async def dispatch(self, request: Request, call_next) -> Response:  # noqa: ANN001
        if _is_skipped(request.url.path):
            return await call_next(request)

        method = request.method
        HTTP_REQUESTS_IN_PROGRESS.labels(method=method).inc()
        start = time.perf_counter()
        status_code = "500"

        try:
            response = await call_next(request)
            status_code = str(response.status_code)
        finally:
            HTTP_REQUESTS_IN_PROGRESS.labels(method=method).dec()
            path_template = _path_template(request.scope)
            HTTP_REQUESTS_TOTAL.labels(
                method=method,
                path_template=path_template,
                status_code=status_code,
            ).inc()
            HTTP_REQUEST_DURATION_SECONDS.labels(
                method=method,
                path_template=path_template,
            ).observe(time.perf_counter() - start)

        return response
