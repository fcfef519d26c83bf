"""Integration tests for health and metrics endpoints."""

import pytest
from httpx import ASGITransport, AsyncClient

from carenotes.api.app import create_app


@pytest.mark.asyncio
class TestHealthEndpoints:
    """Tests for the public health endpoints."""

    async def test_health(self, test_client):
        """Test liveness needs no credential."""
        response = await test_client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["version"]
        assert "X-Request-ID" in response.headers

    async def test_health_db(self, test_client):
        """Test the database check."""
        response = await test_client.get("/health/db")

        assert response.status_code == 200
        assert response.json()["database"]["status"] == "healthy"

    async def test_ready(self, test_client):
        """Test readiness with a valid configuration."""
        response = await test_client.get("/health/ready")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["configuration"]["status"] == "healthy"
        assert data["suggestions"]["message"].startswith("Not configured")

    async def test_ready_with_invalid_configuration(self, test_settings, database):
        """Test that readiness fails with a configuration error."""
        settings = test_settings.model_copy(update={"DEFAULT_PAGE_SIZE": 500})
        app = create_app(settings=settings, database=database, configure_logging=False)

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.get("/health/ready")

        assert response.status_code == 503
        assert response.json()["status"] == "unhealthy"

    async def test_ready_degraded_on_warnings(self, test_settings, database):
        """Test that configuration warnings degrade but do not fail readiness."""
        settings = test_settings.model_copy(update={"TENANT_ISOLATION_ENFORCED": False})
        app = create_app(settings=settings, database=database, configure_logging=False)

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.get("/health/ready")

        assert response.status_code == 200
        assert response.json()["status"] == "degraded"


@pytest.mark.asyncio
class TestMetricsEndpoint:
    async def test_metrics_exposition(self, test_client, tenant_a, auth_headers):
        """Test that request metrics are exposed after API traffic."""
        await test_client.get("/api/v1/residents", headers=auth_headers(tenant_a))

        response = await test_client.get("/metrics")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert 'endpoint="/api/v1/residents"' in response.text

    async def test_health_not_counted(self, test_client):
        """Test that health probes are excluded from request metrics."""
        await test_client.get("/health")

        response = await test_client.get("/metrics")

        assert 'endpoint="/health"' not in response.text


@pytest.mark.asyncio
class TestDocs:
    async def test_docs_enabled_in_debug(self, test_client):
        """Test that the OpenAPI document is served in debug mode without a credential."""
        response = await test_client.get("/openapi.json")

        assert response.status_code == 200
        assert "/api/v1/residents" in response.json()["paths"]

    async def test_docs_disabled_without_debug(self, test_settings, database):
        """Test that docs are not served outside debug mode."""
        settings = test_settings.model_copy(update={"DEBUG": False})
        app = create_app(settings=settings, database=database, configure_logging=False)

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.get("/openapi.json")

        assert response.status_code == 404
        assert response.json()["error_code"] == "not_found"
