"""FastAPI dependencies for API endpoints."""

from collections.abc import Callable
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from carenotes.api.middleware.audit import get_audit_intent
from carenotes.config.settings import Settings
from carenotes.core.audit import AuditIntent, AuditLogger
from carenotes.core.context import RequestContext, get_current_context
from carenotes.core.exceptions import AuthorizationError
from carenotes.core.logging import get_logger
from carenotes.core.permissions import Operation, capability
from carenotes.core.suggestions import SuggestionProvider
from carenotes.db.dependencies import get_db
from carenotes.resources.definitions import ResourceDefinition
from carenotes.resources.registry import build_service
from carenotes.resources.service import ResourceService

logger = get_logger(__name__)

__all__ = [
    "get_audit_intent",
    "get_audit_logger",
    "get_db",
    "get_request_context",
    "get_request_id",
    "get_settings",
    "get_suggestion_provider",
    "require_capability",
    "service_dependency",
]


def get_settings(request: Request) -> Settings:
    """Settings the application was created with."""
    return request.app.state.settings


def get_request_context() -> RequestContext:
    """Get the current request context from ContextVar.

    This dependency requires RequestContextMiddleware to be active.

    Raises:
        ContextNotSetError: If middleware hasn't set the context
    """
    return get_current_context()


def get_request_id(request: Request) -> str:
    return str(getattr(request.state, "request_id", "unknown"))


def get_suggestion_provider(request: Request) -> SuggestionProvider | None:
    return getattr(request.app.state, "suggestions", None)


def get_audit_logger(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> AuditLogger:
    """AuditLogger bound to the request's database session."""
    return AuditLogger(db)


def require_capability(resource: str, operation: Operation | str) -> Callable[..., RequestContext]:
    """Dependency factory enforcing a capability before the handler runs.

    On denial the request's audit intent is marked ``denied`` so the audit
    middleware records it, whatever the HTTP method.

    Usage:
        @router.get("/residents")
        async def list_residents(
            ctx: Annotated[RequestContext, Depends(require_capability("residents", "read"))],
        ): ...
    """
    op = Operation(operation).value
    required = capability(resource, op)

    def dependency(
        request: Request,
        ctx: Annotated[RequestContext, Depends(get_request_context)],
    ) -> RequestContext:
        if ctx.can(resource, op):
            return ctx

        intent: AuditIntent = get_audit_intent(request)
        intent.denied = True
        if intent.operation is None:
            intent.describe(f"{resource}.{op}", resource, request.path_params.get("resource_id"))
        intent.event_data["required_capability"] = required
        logger.warning(
            "capability_denied",
            capability=required,
            actor_id=str(ctx.actor_id),
            roles=sorted(ctx.roles),
        )
        raise AuthorizationError(required)

    dependency.__name__ = f"require_{resource}_{op}"
    return dependency


def service_dependency(definition: ResourceDefinition) -> Callable[..., ResourceService]:
    """Dependency factory building the definition's service for a request."""

    def dependency(
        db: Annotated[AsyncSession, Depends(get_db)],
        settings: Annotated[Settings, Depends(get_settings)],
        suggestions: Annotated[SuggestionProvider | None, Depends(get_suggestion_provider)],
    ) -> ResourceService:
        return build_service(definition, db, settings, suggestions)

    dependency.__name__ = f"{definition.name}_service"
    return dependency
