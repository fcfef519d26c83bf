"""Unauthenticated probes and the Prometheus scrape endpoint.

- GET /health        - liveness, no dependencies touched
- GET /health/db     - database round trip
- GET /health/ready  - database and configuration; 503 when unhealthy
- GET /metrics       - Prometheus exposition
"""

import time
from typing import Annotated

from fastapi import APIRouter, Depends, Response, status
from prometheus_client import CONTENT_TYPE_LATEST
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from carenotes.api.dependencies import get_settings
from carenotes.api.schemas.health import ComponentHealth, HealthDetailResponse, HealthResponse, HealthStatus
from carenotes.config.settings import Settings
from carenotes.config.validation import ValidationSeverity, validate_configuration
from carenotes.db.dependencies import get_db
from carenotes.observability.metrics import get_metrics

router = APIRouter(tags=["health"])

Session = Annotated[AsyncSession, Depends(get_db)]


@router.get("/health", response_model=HealthResponse, summary="Liveness")
async def health_check() -> HealthResponse:
    return HealthResponse(status=HealthStatus.HEALTHY)


@router.get("/health/db", response_model=HealthDetailResponse, summary="Database connectivity")
async def health_db(db: Session) -> HealthDetailResponse:
    database = await _probe_database(db)
    return HealthDetailResponse(status=database.status, database=database)


@router.get(
    "/health/ready",
    response_model=HealthDetailResponse,
    summary="Readiness",
    responses={503: {"model": HealthDetailResponse, "description": "Not ready"}},
)
async def health_ready(
    response: Response,
    db: Session,
    settings: Annotated[Settings, Depends(get_settings)],
) -> HealthDetailResponse:
    """Configuration warnings give ``degraded`` with a 200; errors give 503."""
    database = await _probe_database(db)
    configuration = _probe_configuration(settings)
    overall = HealthStatus.worst([database.status, configuration.status])
    if overall is HealthStatus.UNHEALTHY:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return HealthDetailResponse(
        status=overall,
        database=database,
        configuration=configuration,
        suggestions=ComponentHealth(
            status=HealthStatus.HEALTHY,
            message="Configured" if settings.suggestions_enabled else "Not configured (optional)",
        ),
    )


@router.get("/metrics", response_class=Response, include_in_schema=False)
async def metrics() -> Response:
    return Response(content=get_metrics(), media_type=CONTENT_TYPE_LATEST)


async def _probe_database(db: AsyncSession) -> ComponentHealth:
    started = time.perf_counter()
    try:
        await db.execute(text("SELECT 1"))
    except Exception as e:
        health, message = HealthStatus.UNHEALTHY, f"Database connection failed: {type(e).__name__}"
    else:
        health, message = HealthStatus.HEALTHY, "Database connection successful"
    latency_ms = round((time.perf_counter() - started) * 1000, 2)
    return ComponentHealth(status=health, message=message, latency_ms=latency_ms)


def _probe_configuration(settings: Settings) -> ComponentHealth:
    results = validate_configuration(settings)
    errors = sum(r.severity == ValidationSeverity.ERROR for r in results)
    warnings = sum(r.severity == ValidationSeverity.WARNING for r in results)
    if errors:
        return ComponentHealth(
            status=HealthStatus.UNHEALTHY, message=f"{errors} configuration error(s)"
        )
    if warnings:
        return ComponentHealth(
            status=HealthStatus.DEGRADED, message=f"{warnings} configuration warning(s)"
        )
    return ComponentHealth(status=HealthStatus.HEALTHY, message="Configuration valid")
