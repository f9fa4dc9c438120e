"""Prometheus metrics middleware.

Every request except the /metrics scrape is counted and timed.  The
endpoint label is the matched route's path, falling back to the raw URL
path for requests no route matched (browsers probing /favicon.ico and
the like all collapse into "unmatched").
"""

from __future__ import annotations

import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from relying_party.core.metrics import REQUEST_COUNT, REQUEST_DURATION

_SKIP_PATHS = frozenset({"/metrics"})


def _endpoint_label(request: Request) -> str:
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


def _observe(request: Request, status_code: int, started: float) -> None:
    endpoint = _endpoint_label(request)
    REQUEST_COUNT.labels(request.method, endpoint, str(status_code)).inc()
    REQUEST_DURATION.labels(request.method, endpoint).observe(
        time.monotonic() - started
    )


class MetricsMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in _SKIP_PATHS:
            return await call_next(request)

        started = time.monotonic()
        try:
            response = await call_next(request)
        except Exception:
            _observe(request, 500, started)
            raise
        _observe(request, response.status_code, started)
        return response
