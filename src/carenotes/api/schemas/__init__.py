"""API schemas for request/response validation.

Resource payload schemas live in ``carenotes.db.schemas``; these are the
API envelope types.
"""

from .audit import AuditEventResponse
from .errors import APIError, ErrorCode
from .health import ComponentHealth, HealthDetailResponse, HealthResponse, HealthStatus
from .pagination import PageResponse
from .suggestion import SuggestionResponse

__all__ = [
    "APIError",
    "AuditEventResponse",
    "ComponentHealth",
    "ErrorCode",
    "HealthDetailResponse",
    "HealthResponse",
    "HealthStatus",
    "PageResponse",
    "SuggestionResponse",
]
