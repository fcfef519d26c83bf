"""Prometheus HTTP metrics."""

import re
import time
from collections.abc import Callable, Mapping

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from carenotes.observability.metrics import record_http_request

_ID_SEGMENT = re.compile(
    r"/(?:[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}|\d+)(?=/|$)",
    re.IGNORECASE,
)

UNMETERED_PATHS = frozenset({"/health", "/health/db", "/health/ready", "/metrics"})


def normalize_path(path: str) -> str:
    """Collapse uuid and numeric path segments to ``{id}`` so labels stay bounded."""
    return _ID_SEGMENT.sub("/{id}", path)


def _size(headers: Mapping[str, str]) -> int | None:
    value = headers.get("Content-Length", "")
    return int(value) if value.isdigit() else None


class ObservabilityMiddleware(BaseHTTPMiddleware):
    """Count and time every request except probes and the scrape endpoint.

    An exception escaping the inner layers is recorded as a 500 and re-raised.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        if path in UNMETERED_PATHS or not request.app.state.settings.METRICS_ENABLED:
            return await call_next(request)

        labels = {"method": request.method, "endpoint": normalize_path(path)}
        request_size = _size(request.headers)
        started = time.perf_counter()
        status_code, response_size = 500, None
        try:
            response = await call_next(request)
            status_code, response_size = response.status_code, _size(response.headers)
            return response
        finally:
            record_http_request(
                **labels,
                status_code=status_code,
                duration_seconds=time.perf_counter() - started,
                request_size=request_size,
                response_size=response_size,
            )
