"""Integration tests for authentication, tenant validation and error envelopes."""

from datetime import UTC, datetime, timedelta

import pytest
from httpx import ASGITransport, AsyncClient
from uuid_utils.compat import uuid7

from carenotes.api.app import create_app
from carenotes.core.credentials import issue_credential
from carenotes.core.tenant import TenantService

ENVELOPE_KEYS = {"error_code", "message", "details", "field_errors", "request_id", "timestamp"}


@pytest.mark.asyncio
class TestAuthentication:
    """Tests for bearer credential handling."""

    async def test_missing_credential(self, test_client):
        """Test that API paths require a credential."""
        response = await test_client.get("/api/v1/residents")

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"
        data = response.json()
        assert set(data) == ENVELOPE_KEYS
        assert data["error_code"] == "unauthorized"
        assert data["request_id"] == response.headers["X-Request-ID"]

    async def test_wrong_scheme(self, test_client):
        """Test that non-bearer schemes are rejected."""
        response = await test_client.get(
            "/api/v1/residents", headers={"Authorization": "Basic dXNlcjpwdw=="}
        )

        assert response.status_code == 401
        assert "format" in response.json()["message"]

    async def test_malformed_token(self, test_client):
        """Test that a garbage token is rejected."""
        response = await test_client.get(
            "/api/v1/residents", headers={"Authorization": "Bearer not.a.token"}
        )

        assert response.status_code == 401
        assert response.json()["message"] == "Invalid credential"

    async def test_expired_token(self, test_client, test_settings, tenant_a):
        """Test that an expired credential is rejected as expired."""
        token = issue_credential(
            test_settings,
            actor_id=uuid7(),
            tenant_id=tenant_a,
            roles=["administrator"],
            now=datetime.now(UTC) - timedelta(hours=3),
            ttl_seconds=60,
        )

        response = await test_client.get(
            "/api/v1/residents", headers={"Authorization": f"Bearer {token}"}
        )

        assert response.status_code == 401
        assert response.json()["message"] == "Credential has expired"

    async def test_valid_token(self, test_client, tenant_a, auth_headers):
        """Test that a valid credential is accepted."""
        response = await test_client.get("/api/v1/residents", headers=auth_headers(tenant_a))

        assert response.status_code == 200

    async def test_public_paths_need_no_credential(self, test_client):
        """Test that health endpoints skip authentication."""
        assert (await test_client.get("/health")).status_code == 200
        assert (await test_client.get("/metrics")).status_code == 200


@pytest.mark.asyncio
class TestTenantValidation:
    """Tests for checks on the credential's tenant."""

    async def test_unknown_tenant(self, test_client, tenants, auth_headers):
        """Test that a credential naming an unknown tenant is unauthenticated."""
        response = await test_client.get("/api/v1/residents", headers=auth_headers(uuid7()))

        assert response.status_code == 401
        assert response.json()["error_code"] == "unauthorized"

    async def test_inactive_tenant(self, test_client, database, tenant_b, auth_headers):
        """Test that a deactivated tenant is refused."""
        async with database.session() as session:
            await TenantService(session).deactivate_tenant(tenant_b)
            await session.commit()

        response = await test_client.get("/api/v1/residents", headers=auth_headers(tenant_b))

        assert response.status_code == 403
        assert response.json()["error_code"] == "tenant_inactive"

    async def test_isolation_flag_off_skips_registry(
        self, test_settings, database, tenants, auth_headers
    ):
        """Test that the registry check can be disabled for local development."""
        settings = test_settings.model_copy(update={"TENANT_ISOLATION_ENFORCED": False})
        app = create_app(settings=settings, database=database, configure_logging=False)

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.get("/api/v1/residents", headers=auth_headers(uuid7()))

        assert response.status_code == 200
        assert response.json()["total"] == 0


@pytest.mark.asyncio
class TestErrorEnvelope:
    """Tests for the uniform error format."""

    async def test_body_validation_is_400(self, test_client, tenant_a, auth_headers):
        """Test that request validation failures are 400 with field errors, never 422."""
        response = await test_client.post(
            "/api/v1/residents", json={"first_name": "Edith"}, headers=auth_headers(tenant_a)
        )

        assert response.status_code == 400
        data = response.json()
        assert data["error_code"] == "validation_error"
        assert "last_name" in data["field_errors"]
        assert "date_of_birth" in data["field_errors"]

    async def test_invalid_json_is_400(self, test_client, tenant_a, auth_headers):
        """Test that an unparseable body is a 400."""
        response = await test_client.post(
            "/api/v1/residents",
            content=b"{not json",
            headers={**auth_headers(tenant_a), "Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["error_code"] == "validation_error"

    async def test_bad_path_id_is_400(self, test_client, tenant_a, auth_headers):
        """Test that a malformed id is a validation error."""
        response = await test_client.get(
            "/api/v1/residents/not-a-uuid", headers=auth_headers(tenant_a)
        )

        assert response.status_code == 400
        assert "resource_id" in response.json()["field_errors"]

    async def test_unknown_route(self, test_client, tenant_a, auth_headers):
        """Test that routing errors use the envelope."""
        response = await test_client.get("/api/v1/nothing", headers=auth_headers(tenant_a))

        assert response.status_code == 404
        assert set(response.json()) == ENVELOPE_KEYS

    async def test_method_not_allowed(self, test_client, tenant_a, auth_headers):
        """Test that a wrong method uses the envelope."""
        response = await test_client.put("/api/v1/residents", headers=auth_headers(tenant_a))

        assert response.status_code == 405
        assert response.json()["error_code"] == "invalid_request"

    async def test_unexpected_error_is_generic(self, test_client, test_app, tenant_a, auth_headers):
        """Test that unexpected failures return a generic 500."""

        @test_app.get("/api/v1/explode")
        async def explode():
            raise RuntimeError("connection string postgres://secret")

        response = await test_client.get("/api/v1/explode", headers=auth_headers(tenant_a))

        assert response.status_code == 500
        data = response.json()
        assert data["error_code"] == "internal_error"
        assert "secret" not in response.text
        assert data["message"] == "Internal server error"

    async def test_request_id_echoed(self, test_client, tenant_a, auth_headers):
        """Test that every response carries its request id."""
        response = await test_client.get("/api/v1/residents", headers=auth_headers(tenant_a))

        assert len(response.headers["X-Request-ID"]) == 36
