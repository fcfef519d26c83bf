"""Core exceptions for resource operations and request handling.

Every exception here is recovered at the request boundary and translated to
a stable error code by the error handling middleware.
"""

from typing import Any
from uuid import UUID

from carenotes.utils.exceptions import CareNotesError


class ValidationError(CareNotesError):
    """Raised when input is malformed or violates a business rule.

    Attributes:
        field_errors: Mapping of field name to list of messages
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field_errors: dict[str, list[str]] | None = None,
    ):
        super().__init__(message)
        self.field_errors = field_errors or {}

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        """Build an error carrying a single field message."""
        return cls(message, field_errors={field: [message]})

    def __str__(self) -> str:
        if not self.field_errors:
            return f"ValidationError: {self.args[0]}"
        fields = ", ".join(sorted(self.field_errors))
        return f"ValidationError: {self.args[0]} ({fields})"


class NotFoundError(CareNotesError):
    """Raised when a resource is absent or not visible to the caller's tenant.

    The two causes are deliberately indistinguishable.

    Attributes:
        resource_type: Type of the resource that was requested
        resource_id: Identifier that was requested
    """

    def __init__(self, resource_type: str, resource_id: UUID | str):
        super().__init__(f"{resource_type} not found: {resource_id}")
        self.resource_type = resource_type
        self.resource_id = resource_id

    def __str__(self) -> str:
        return f"NotFoundError: {self.args[0]}"


class InvalidTransitionError(CareNotesError):
    """Raised when a requested status change is not in the lifecycle graph.

    Attributes:
        current: Current status value
        requested: Requested status value
    """

    def __init__(self, current: str, requested: str, message: str | None = None):
        super().__init__(message or f"Cannot transition from '{current}' to '{requested}'")
        self.current = current
        self.requested = requested

    def __str__(self) -> str:
        return f"InvalidTransitionError: {self.args[0]}"


class ConflictError(CareNotesError):
    """Raised when a concurrent modification is detected.

    Attributes:
        expected_version: Version the caller read the resource at
        current_version: Version currently stored (None if unknown)
    """

    def __init__(
        self,
        message: str = "Resource was modified by another request",
        expected_version: int | None = None,
        current_version: int | None = None,
    ):
        super().__init__(message)
        self.expected_version = expected_version
        self.current_version = current_version

    def __str__(self) -> str:
        return (
            f"ConflictError: {self.args[0]} "
            f"(expected={self.expected_version}, current={self.current_version})"
        )


class AuthenticationError(CareNotesError):
    """Raised when a bearer credential is missing or invalid.

    Attributes:
        reason: The specific reason authentication failed
    """

    def __init__(self, reason: str = "Authentication failed"):
        super().__init__(reason)
        self.reason = reason

    def __str__(self) -> str:
        return f"AuthenticationError: {self.args[0]}"


class AuthorizationError(CareNotesError):
    """Raised when an authenticated actor lacks the required capability.

    Attributes:
        capability: The capability that was required
    """

    def __init__(self, capability: str):
        super().__init__(f"Missing capability: {capability}")
        self.capability = capability

    def __str__(self) -> str:
        return f"AuthorizationError: {self.args[0]}"


class TenantNotFoundError(CareNotesError):
    """Raised when a tenant does not exist.

    Attributes:
        tenant_id: The identifier of the tenant that was not found
    """

    def __init__(self, tenant_id: UUID | str):
        super().__init__(f"Tenant not found: {tenant_id}")
        self.tenant_id = tenant_id

    def __str__(self) -> str:
        return f"TenantNotFoundError: {self.args[0]}"


class TenantInactiveError(CareNotesError):
    """Raised when attempting to use a deactivated tenant.

    Attributes:
        tenant_id: The identifier of the inactive tenant
    """

    def __init__(self, tenant_id: UUID | str):
        super().__init__(f"Tenant is inactive: {tenant_id}")
        self.tenant_id = tenant_id

    def __str__(self) -> str:
        return f"TenantInactiveError: {self.args[0]}"


class PersistenceTimeoutError(CareNotesError):
    """Raised when a persistence call exceeds its time limit.

    Attributes:
        operation: Name of the operation that timed out
        timeout_seconds: The limit that was exceeded
    """

    def __init__(self, operation: str, timeout_seconds: float):
        super().__init__(f"Operation '{operation}' timed out after {timeout_seconds}s")
        self.operation = operation
        self.timeout_seconds = timeout_seconds

    def __str__(self) -> str:
        return f"PersistenceTimeoutError: {self.args[0]}"


class ContextNotSetError(CareNotesError):
    """Raised when request context is accessed outside of a request.

    This indicates a programming error.
    """

    def __init__(self, message: str = "Request context is not set"):
        super().__init__(message)


class UnexpectedError(CareNotesError):
    """Wraps a failure that has no specific mapping.

    The wrapped detail is logged server-side and never returned to callers.
    """

    def __init__(self, message: str = "Unexpected error", detail: dict[str, Any] | None = None):
        super().__init__(message)
        self.detail = detail or {}
