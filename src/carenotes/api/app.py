"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from carenotes import __version__
from carenotes.api.middleware import (
    AuditMiddleware,
    AuthenticationMiddleware,
    ErrorHandlingMiddleware,
    ObservabilityMiddleware,
    RequestContextMiddleware,
    RequestLoggingMiddleware,
    TenantValidationMiddleware,
)
from carenotes.api.middleware.errors import http_exception_handler, request_validation_handler
from carenotes.api.routers import health_router, v1_router
from carenotes.config.settings import Settings, get_settings
from carenotes.config.validation import validate_or_raise
from carenotes.core.logging import get_logger, setup_logging
from carenotes.core.suggestions import SuggestionProvider, build_suggestion_provider
from carenotes.db.config import Database
from carenotes.observability import get_metrics_manager

logger = get_logger("carenotes.api")


def create_app(
    settings: Settings | None = None,
    *,
    database: Database | None = None,
    suggestions: SuggestionProvider | None = None,
    configure_logging: bool = True,
) -> FastAPI:
    """Build the application.

    Nothing here touches the database; the lifespan validates settings and
    checks connectivity, so a misconfigured process fails at startup.

    Tests pass their own ``settings`` and ``database`` and skip logging
    setup. In production run ``uvicorn carenotes.api.app:create_app --factory``.
    """
    if settings is None:
        settings = get_settings()

    if configure_logging:
        setup_logging(log_level=settings.log_level, json_format=settings.is_production)

    app = FastAPI(
        title="CareNotes API",
        description="Multi-tenant care home records: residents and beds",
        version=__version__,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
        openapi_url="/openapi.json" if settings.DEBUG else None,
        lifespan=_lifespan,
    )

    # Shared state for dependencies and middleware
    app.state.settings = settings
    app.state.database = database or Database(settings)
    app.state.suggestions = suggestions or build_suggestion_provider(settings)

    _configure_middleware(app, settings)
    _configure_exception_handlers(app)
    _configure_routers(app)

    return app


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Verify configuration and connectivity, then dispose of the engine on shutdown.

    Raises:
        ConfigurationError: If settings are invalid
        Exception: Whatever the driver raises if the database is unreachable
    """
    settings: Settings = app.state.settings
    database: Database = app.state.database

    logger.info("startup", environment=settings.ENVIRONMENT, version=__version__)
    validate_or_raise(settings)
    await database.verify()
    logger.info("database_verified")

    if settings.METRICS_ENABLED:
        get_metrics_manager().initialize(
            service_name="carenotes",
            service_version=__version__,
            environment=settings.ENVIRONMENT,
        )

    yield

    logger.info("shutdown")
    await database.dispose()


def _configure_middleware(app: FastAPI, settings: Settings) -> None:
    """Install the middleware stack, outermost first:

        Observability   metrics for every request, including rejected ones
        RequestLogging  request id, one log line per request
        ErrorHandling   exceptions to the error envelope
        CORS            only when CORS_ORIGINS is set
        Audit           outside auth so unauthenticated writes are recorded
        Authentication  bearer credential and capabilities
        TenantValidation
        RequestContext  binds the RequestContext contextvar
    """
    outermost_first: list[tuple[type, dict]] = [
        (ObservabilityMiddleware, {}),
        (RequestLoggingMiddleware, {}),
        (ErrorHandlingMiddleware, {}),
    ]
    if settings.CORS_ORIGINS:
        outermost_first.append(
            (
                CORSMiddleware,
                {
                    "allow_origins": settings.CORS_ORIGINS,
                    "allow_credentials": True,
                    "allow_methods": ["*"],
                    "allow_headers": ["*"],
                    "expose_headers": ["X-Request-ID"],
                },
            )
        )
    outermost_first += [
        (AuditMiddleware, {}),
        (AuthenticationMiddleware, {}),
        (TenantValidationMiddleware, {}),
        (RequestContextMiddleware, {}),
    ]
    # add_middleware wraps, so the last one added runs first
    for middleware, options in reversed(outermost_first):
        app.add_middleware(middleware, **options)


def _configure_exception_handlers(app: FastAPI) -> None:
    # Request validation is a 400 with a field breakdown, never a 422
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)


def _configure_routers(app: FastAPI) -> None:
    # Health and metrics at root level, no authentication
    app.include_router(health_router)
    app.include_router(v1_router)
