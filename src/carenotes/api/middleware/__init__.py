"""API middleware components."""

from .audit import AuditMiddleware
from .auth import AuthenticationMiddleware
from .context import RequestContextMiddleware
from .errors import ErrorHandlingMiddleware
from .logging import RequestLoggingMiddleware
from .observability import ObservabilityMiddleware
from .tenant import TenantValidationMiddleware

__all__ = [
    "AuditMiddleware",
    "AuthenticationMiddleware",
    "ErrorHandlingMiddleware",
    "ObservabilityMiddleware",
    "RequestContextMiddleware",
    "RequestLoggingMiddleware",
    "TenantValidationMiddleware",
]
