"""Error handling middleware for mapping exceptions to HTTP responses."""

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Callable
from uuid import UUID

import pydantic
from fastapi import Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from carenotes.api.schemas.errors import APIError, ErrorCode
from carenotes.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    PersistenceTimeoutError,
    TenantInactiveError,
    TenantNotFoundError,
    UnexpectedError,
    ValidationError,
)
from carenotes.core.logging import get_logger, log_exception
from carenotes.core.tenant import field_errors_from_pydantic

logger = get_logger(__name__)

# Exception -> (status_code, error_code); first isinstance match wins
EXCEPTION_MAP: list[tuple[type[Exception], int, ErrorCode]] = [
    (ValidationError, 400, ErrorCode.VALIDATION_ERROR),
    (pydantic.ValidationError, 400, ErrorCode.VALIDATION_ERROR),
    (AuthenticationError, 401, ErrorCode.UNAUTHORIZED),
    (TenantNotFoundError, 401, ErrorCode.UNAUTHORIZED),
    (AuthorizationError, 403, ErrorCode.FORBIDDEN),
    (TenantInactiveError, 403, ErrorCode.TENANT_INACTIVE),
    (NotFoundError, 404, ErrorCode.NOT_FOUND),
    (InvalidTransitionError, 409, ErrorCode.INVALID_TRANSITION),
    (ConflictError, 409, ErrorCode.CONFLICT),
    (PersistenceTimeoutError, 504, ErrorCode.TIMEOUT),
    (UnexpectedError, 500, ErrorCode.INTERNAL_ERROR),
]

STATUS_ERROR_CODES: dict[int, ErrorCode] = {
    400: ErrorCode.INVALID_REQUEST,
    401: ErrorCode.UNAUTHORIZED,
    403: ErrorCode.FORBIDDEN,
    404: ErrorCode.NOT_FOUND,
    409: ErrorCode.CONFLICT,
    504: ErrorCode.TIMEOUT,
}

REQUEST_LOCATIONS = ("body", "query", "path", "header")


@dataclass
class ErrorMapping:
    status_code: int
    error_code: ErrorCode
    message: str
    details: dict[str, Any] | None = None
    field_errors: dict[str, list[str]] | None = None


def map_exception(exc: Exception) -> ErrorMapping:
    """Map an exception to its HTTP status, error code and client-safe message.

    Anything unmapped is an internal error with a generic message.
    """
    for exc_type, status_code, error_code in EXCEPTION_MAP:
        if isinstance(exc, exc_type):
            break
    else:
        return ErrorMapping(500, ErrorCode.INTERNAL_ERROR, "Internal server error")

    if isinstance(exc, ValidationError):
        return ErrorMapping(
            status_code, error_code, exc.args[0], field_errors=exc.field_errors or None
        )
    if isinstance(exc, pydantic.ValidationError):
        return ErrorMapping(
            status_code,
            error_code,
            "Validation failed",
            field_errors=field_errors_from_pydantic(exc),
        )
    if isinstance(exc, AuthenticationError):
        return ErrorMapping(status_code, error_code, exc.reason)
    if isinstance(exc, TenantNotFoundError):
        return ErrorMapping(status_code, error_code, "Credential tenant is not recognised")
    if isinstance(exc, AuthorizationError):
        return ErrorMapping(
            status_code, error_code, exc.args[0], details={"capability": exc.capability}
        )
    if isinstance(exc, TenantInactiveError):
        return ErrorMapping(status_code, error_code, "Tenant is inactive")
    if isinstance(exc, NotFoundError):
        return ErrorMapping(
            status_code,
            error_code,
            exc.args[0],
            details={"resource_type": exc.resource_type, "resource_id": str(exc.resource_id)},
        )
    if isinstance(exc, InvalidTransitionError):
        return ErrorMapping(
            status_code,
            error_code,
            exc.args[0],
            details={"current": exc.current, "requested": exc.requested},
        )
    if isinstance(exc, ConflictError):
        return ErrorMapping(
            status_code,
            error_code,
            exc.args[0],
            details={
                "expected_version": exc.expected_version,
                "current_version": exc.current_version,
            },
        )
    if isinstance(exc, PersistenceTimeoutError):
        return ErrorMapping(status_code, error_code, "The operation timed out")
    return ErrorMapping(status_code, error_code, "Internal server error")


def get_request_id(request: Request) -> str:
    """Extract request ID from state or return a placeholder."""
    rid = getattr(request.state, "request_id", None)
    if rid is None:
        return "unknown"
    return str(rid) if isinstance(rid, UUID) else rid


def error_response(
    request: Request,
    status_code: int,
    error_code: ErrorCode,
    message: str,
    details: dict[str, Any] | None = None,
    field_errors: dict[str, list[str]] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Build the standard error envelope.

    The error code is also left on ``request.state.error_code`` for the
    audit record.
    """
    request_id = get_request_id(request)
    request.state.error_code = error_code.value
    error = APIError(
        error_code=error_code.value,
        message=message,
        details=details,
        field_errors=field_errors,
        request_id=request_id,
        timestamp=datetime.now(UTC),
    )
    return JSONResponse(
        status_code=status_code,
        content=error.model_dump(mode="json"),
        headers={"X-Request-ID": request_id, **(headers or {})},
    )


def field_errors_from_request(exc: RequestValidationError) -> dict[str, list[str]]:
    """Field breakdown for a FastAPI request validation failure.

    The leading location (``body``, ``query``...) is dropped so names match
    the payload.
    """
    errors: dict[str, list[str]] = {}
    for err in exc.errors():
        loc = list(err.get("loc", ()))
        if len(loc) > 1 and loc[0] in REQUEST_LOCATIONS:
            loc = loc[1:]
        name = ".".join(str(p) for p in loc) or "body"
        errors.setdefault(name, []).append(err.get("msg", "Invalid value"))
    return errors


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return error_response(
        request,
        400,
        ErrorCode.VALIDATION_ERROR,
        "Request validation failed",
        field_errors=field_errors_from_request(exc),
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Wrap routing errors (unknown path, wrong method) in the envelope."""
    error_code = STATUS_ERROR_CODES.get(exc.status_code, ErrorCode.INVALID_REQUEST)
    if exc.status_code >= 500:
        error_code = ErrorCode.INTERNAL_ERROR
    return error_response(
        request,
        exc.status_code,
        error_code,
        str(exc.detail),
        headers=getattr(exc, "headers", None),
    )


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Middleware that catches exceptions and returns standardized error responses.

    Maps domain exceptions to HTTP status codes and formats every error
    with the APIError schema. Internal failures are logged with the full
    exception and answered with a generic message.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except Exception as exc:
            return self._handle_exception(request, exc)

    def _handle_exception(self, request: Request, exc: Exception) -> JSONResponse:
        mapping = map_exception(exc)

        if mapping.status_code >= 500:
            detail = exc.detail if isinstance(exc, UnexpectedError) else None
            log_exception(
                logger,
                exc,
                path=request.url.path,
                method=request.method,
                request_id=get_request_id(request),
                detail=detail,
            )
        else:
            logger.info(
                "request_rejected",
                error_code=mapping.error_code.value,
                status_code=mapping.status_code,
                path=request.url.path,
            )

        headers = {"WWW-Authenticate": "Bearer"} if mapping.status_code == 401 else None
        return error_response(
            request,
            mapping.status_code,
            mapping.error_code,
            mapping.message,
            details=mapping.details,
            field_errors=mapping.field_errors,
            headers=headers,
        )
