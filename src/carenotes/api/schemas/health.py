"""Health and readiness payloads."""

from collections.abc import Iterable
from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from carenotes import __version__


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"

    @classmethod
    def worst(cls, statuses: Iterable["HealthStatus"]) -> "HealthStatus":
        """The most severe of ``statuses``; healthy when empty."""
        order = [cls.HEALTHY, cls.DEGRADED, cls.UNHEALTHY]
        return max(statuses, key=order.index, default=cls.HEALTHY)


class ComponentHealth(BaseModel):
    """Result of probing one dependency."""

    status: HealthStatus
    message: str | None = None
    latency_ms: float | None = None


class HealthResponse(BaseModel):
    """Liveness payload."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {"status": "healthy", "version": "0.1.0", "timestamp": "2026-01-30T12:00:00Z"}
        }
    )

    status: HealthStatus
    version: str = __version__
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


class HealthDetailResponse(HealthResponse):
    """Database and readiness payload; ``status`` is the worst component's.

    The suggestion collaborator is reported but never counted.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "status": "degraded",
                "version": "0.1.0",
                "timestamp": "2026-01-30T12:00:00Z",
                "database": {"status": "healthy", "latency_ms": 1.2},
                "configuration": {"status": "degraded", "message": "1 configuration warning(s)"},
                "suggestions": {"status": "healthy", "message": "Not configured (optional)"},
            }
        }
    )

    database: ComponentHealth
    configuration: ComponentHealth | None = None
    suggestions: ComponentHealth | None = None
