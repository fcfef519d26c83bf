"""Unit tests for API middleware helpers."""

import logging

import pydantic
import pytest
from fastapi.exceptions import RequestValidationError
from uuid_utils.compat import uuid7

from carenotes.api.middleware.audit import describe_from_path
from carenotes.api.middleware.auth import is_public_path
from carenotes.api.middleware.errors import field_errors_from_request, map_exception
from carenotes.api.middleware.logging import level_for_status
from carenotes.api.middleware.observability import normalize_path
from carenotes.api.schemas.errors import ErrorCode
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


class TestMapException:
    """Tests for exception to error-envelope mapping."""

    @pytest.mark.parametrize(
        "exc,status_code,error_code",
        [
            (ValidationError("bad"), 400, ErrorCode.VALIDATION_ERROR),
            (AuthenticationError("no"), 401, ErrorCode.UNAUTHORIZED),
            (TenantNotFoundError("t"), 401, ErrorCode.UNAUTHORIZED),
            (AuthorizationError("residents:purge"), 403, ErrorCode.FORBIDDEN),
            (TenantInactiveError("t"), 403, ErrorCode.TENANT_INACTIVE),
            (NotFoundError("residents", "x"), 404, ErrorCode.NOT_FOUND),
            (InvalidTransitionError("archived", "active"), 409, ErrorCode.INVALID_TRANSITION),
            (ConflictError(), 409, ErrorCode.CONFLICT),
            (PersistenceTimeoutError("residents.get", 5.0), 504, ErrorCode.TIMEOUT),
            (UnexpectedError(), 500, ErrorCode.INTERNAL_ERROR),
            (RuntimeError("secret detail"), 500, ErrorCode.INTERNAL_ERROR),
        ],
    )
    def test_mapping(self, exc, status_code, error_code):
        """Test each exception maps to its status and code."""
        mapping = map_exception(exc)

        assert mapping.status_code == status_code
        assert mapping.error_code == error_code

    def test_internal_errors_are_generic(self):
        """Test that unexpected failures never leak their message."""
        mapping = map_exception(RuntimeError("password=hunter2"))

        assert mapping.message == "Internal server error"
        assert mapping.details is None

    def test_validation_field_errors(self):
        """Test that field errors are carried through."""
        mapping = map_exception(ValidationError.for_field("email", "Invalid email format"))

        assert mapping.field_errors == {"email": ["Invalid email format"]}

    def test_pydantic_errors(self):
        """Test that pydantic errors become field errors."""

        class Model(pydantic.BaseModel):
            count: int

        with pytest.raises(pydantic.ValidationError) as exc_info:
            Model(count="many")

        mapping = map_exception(exc_info.value)

        assert mapping.status_code == 400
        assert "count" in mapping.field_errors

    def test_conflict_details(self):
        """Test that version details are exposed on conflicts."""
        mapping = map_exception(ConflictError(expected_version=1, current_version=3))

        assert mapping.details == {"expected_version": 1, "current_version": 3}

    def test_timeout_message_hides_operation(self):
        """Test that timeouts get a generic message."""
        mapping = map_exception(PersistenceTimeoutError("residents.list", 5.0))

        assert mapping.message == "The operation timed out"


class TestFieldErrorsFromRequest:
    def test_location_prefix_dropped(self):
        """Test that body and query prefixes are removed from field names."""
        exc = RequestValidationError(
            [
                {"loc": ("body", "first_name"), "msg": "Field required", "type": "missing"},
                {"loc": ("query", "page"), "msg": "Input should be >= 1", "type": "x"},
                {"loc": ("body",), "msg": "Invalid JSON", "type": "json_invalid"},
            ]
        )

        errors = field_errors_from_request(exc)

        assert errors == {
            "first_name": ["Field required"],
            "page": ["Input should be >= 1"],
            "body": ["Invalid JSON"],
        }


class TestDescribeFromPath:
    """Tests for the fallback audit description."""

    def test_collection_post(self):
        """Test a create on a collection."""
        intent = describe_from_path("POST", "/api/v1/residents")

        assert intent.operation == "residents.create"
        assert intent.resource_type == "residents"
        assert intent.resource_id is None

    def test_item_patch(self):
        """Test an update on an item keeps its id."""
        resource_id = str(uuid7())

        intent = describe_from_path("PATCH", f"/api/v1/beds/{resource_id}")

        assert intent.operation == "beds.update"
        assert intent.resource_id == resource_id

    def test_purge(self):
        """Test that the purge sub-path is recognised."""
        intent = describe_from_path("DELETE", "/api/v1/residents/abc/purge")

        assert intent.operation == "residents.purge"

    def test_delete_is_archive(self):
        """Test that DELETE on an item is an archive."""
        assert describe_from_path("DELETE", "/api/v1/residents/abc").operation == "residents.archive"

    def test_unknown_path(self):
        """Test that non-resource paths get a method-based operation."""
        intent = describe_from_path("POST", "/somewhere")

        assert intent.operation == "http.post"
        assert intent.resource_type is None


class TestHelpers:
    """Tests for small middleware helpers."""

    @pytest.mark.parametrize(
        "path,expected",
        [
            ("/health", True),
            ("/metrics", True),
            ("/docs/oauth2-redirect", True),
            ("/api/v1/residents", False),
            ("/healthz", False),
        ],
    )
    def test_is_public_path(self, path, expected):
        """Test which paths skip authentication."""
        assert is_public_path(path) is expected

    def test_normalize_path(self):
        """Test that ids are collapsed for metric labels."""
        resource_id = uuid7()

        assert normalize_path(f"/api/v1/residents/{resource_id}") == "/api/v1/residents/{id}"
        assert normalize_path(f"/api/v1/beds/{resource_id}/purge") == "/api/v1/beds/{id}/purge"
        assert normalize_path("/api/v1/items/42") == "/api/v1/items/{id}"
        assert normalize_path("/api/v1/residents") == "/api/v1/residents"

    @pytest.mark.parametrize(
        "status_code,level",
        [(200, logging.INFO), (302, logging.INFO), (404, logging.WARNING), (503, logging.ERROR)],
    )
    def test_level_for_status(self, status_code, level):
        """Test request log levels by status class."""
        assert level_for_status(status_code) == level
