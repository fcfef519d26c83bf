"""The error envelope every non-2xx API response uses."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict


class ErrorCode(str, Enum):
    """Stable, machine-readable error codes. Clients branch on these, not on messages."""

    VALIDATION_ERROR = "validation_error"  # 400
    INVALID_REQUEST = "invalid_request"  # other 4xx from routing
    UNAUTHORIZED = "unauthorized"  # 401
    FORBIDDEN = "forbidden"  # 403
    TENANT_INACTIVE = "tenant_inactive"  # 403
    NOT_FOUND = "not_found"  # 404
    INVALID_TRANSITION = "invalid_transition"  # 409
    CONFLICT = "conflict"  # 409
    INTERNAL_ERROR = "internal_error"  # 500
    TIMEOUT = "timeout"  # 504


class APIError(BaseModel):
    """Error body.

    ``details`` carries code-specific context (the missing capability, the
    current version); ``field_errors`` maps field names to messages for
    validation failures. 500 responses carry neither.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "error_code": "validation_error",
                "message": "Invalid resident",
                "details": None,
                "field_errors": {"nhs_number": ["NHS number check digit is invalid"]},
                "request_id": "019478f2-1234-7000-8000-abcdef123456",
                "timestamp": "2026-01-30T12:00:00Z",
            }
        }
    )

    error_code: str
    message: str
    details: dict[str, Any] | None = None
    field_errors: dict[str, list[str]] | None = None
    request_id: str
    timestamp: datetime
