"""One structured log line per HTTP request."""

import logging
import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from carenotes.api.middleware.context import ensure_request_id
from carenotes.core.logging import LogContext, get_logger

logger = get_logger("carenotes.api.requests")

_PROXY_HEADERS = ("X-Forwarded-For", "X-Real-IP")


def get_client_ip(request: Request) -> str | None:
    """Originating client address, trusting the first proxy header present."""
    for header in _PROXY_HEADERS:
        value = request.headers.get(header)
        if value:
            # X-Forwarded-For lists the client first
            return value.split(",", 1)[0].strip()
    return request.client.host if request.client else None


def level_for_status(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    return logging.WARNING if status_code >= 400 else logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Assign the request id and log the finished request.

    The id is bound to the structlog context while inner layers run, so
    every line they log carries it, and is echoed as ``X-Request-ID``.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = str(ensure_request_id(request))
        started = time.perf_counter()

        with LogContext(request_id=request_id):
            response = await call_next(request)
            tenant_id = getattr(request.state, "tenant_id", None)
            logger.log(
                level_for_status(response.status_code),
                "http_request",
                method=request.method,
                path=request.url.path,
                query=request.url.query or None,
                status_code=response.status_code,
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
                tenant_id=str(tenant_id) if tenant_id else None,
                client_ip=get_client_ip(request),
                user_agent=request.headers.get("User-Agent"),
            )

        response.headers["X-Request-ID"] = request_id
        return response
