"""Tenant validation middleware."""

from typing import Callable
from uuid import UUID

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from carenotes.api.middleware.auth import is_public_path
from carenotes.api.middleware.errors import error_response
from carenotes.api.schemas.errors import ErrorCode
from carenotes.core.exceptions import TenantInactiveError, TenantNotFoundError
from carenotes.core.logging import get_logger
from carenotes.core.tenant import TenantService

logger = get_logger(__name__)


class TenantValidationMiddleware(BaseHTTPMiddleware):
    """Middleware that checks the credential's tenant.

    With ``TENANT_ISOLATION_ENFORCED`` on, the tenant must exist and be
    active. An unknown tenant is answered with 401 because the credential
    does not resolve to a usable tenant; an inactive tenant with 403.

    Requires:
        request.state.tenant_id: Set by AuthenticationMiddleware
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if is_public_path(request.url.path):
            return await call_next(request)

        tenant_id: UUID | None = getattr(request.state, "tenant_id", None)
        if tenant_id is None or not request.app.state.settings.TENANT_ISOLATION_ENFORCED:
            return await call_next(request)

        try:
            await self._validate_tenant(request, tenant_id)
        except TenantNotFoundError:
            logger.warning("unknown_tenant", tenant_id=str(tenant_id))
            return error_response(
                request,
                401,
                ErrorCode.UNAUTHORIZED,
                "Credential tenant is not recognised",
                headers={"WWW-Authenticate": "Bearer"},
            )
        except TenantInactiveError:
            logger.warning("inactive_tenant", tenant_id=str(tenant_id))
            return error_response(
                request,
                403,
                ErrorCode.TENANT_INACTIVE,
                "Tenant is inactive",
                details={"tenant_id": str(tenant_id)},
            )

        return await call_next(request)

    async def _validate_tenant(self, request: Request, tenant_id: UUID) -> None:
        """Raises TenantNotFoundError or TenantInactiveError."""
        async with request.app.state.database.session() as session:
            await TenantService(session).validate_tenant_active(tenant_id)
