"""Authentication middleware for bearer credential validation."""

import re
from typing import Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from carenotes.api.middleware.errors import error_response
from carenotes.api.schemas.errors import ErrorCode
from carenotes.core.credentials import VerifiedCredential, verify_credential
from carenotes.core.exceptions import AuthenticationError
from carenotes.core.logging import get_logger
from carenotes.core.permissions import PermissionService

logger = get_logger(__name__)

# Paths that don't require authentication
PUBLIC_PATHS = {
    "/health",
    "/health/db",
    "/health/ready",
    "/metrics",
    "/docs",
    "/redoc",
    "/openapi.json",
}

PUBLIC_PREFIXES = ("/docs", "/redoc")

BEARER_PATTERN = re.compile(r"^Bearer\s+(.+)$", re.IGNORECASE)


def is_public_path(path: str) -> bool:
    return path in PUBLIC_PATHS or path.startswith(PUBLIC_PREFIXES)


class AuthenticationMiddleware(BaseHTTPMiddleware):
    """Middleware that validates the bearer credential.

    Verifies the signed credential, then resolves the credential's role
    names to capabilities for its tenant.

    Sets:
        request.state.actor_id: UUID of the authenticated actor
        request.state.actor_type: HUMAN or SERVICE
        request.state.tenant_id: Tenant named by the credential
        request.state.roles: Role names from the credential
        request.state.capabilities: Resolved CapabilitySet
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if is_public_path(request.url.path):
            return await call_next(request)

        auth_header = request.headers.get("Authorization")
        if not auth_header:
            return self._unauthorized(request, "Missing Authorization header")

        match = BEARER_PATTERN.match(auth_header)
        if not match:
            return self._unauthorized(request, "Invalid Authorization header format")

        try:
            credential = verify_credential(match.group(1).strip(), request.app.state.settings)
        except AuthenticationError as e:
            logger.info("authentication_failed", reason=e.reason, path=request.url.path)
            return self._unauthorized(request, e.reason)

        request.state.actor_id = credential.actor_id
        request.state.actor_type = credential.actor_type
        request.state.tenant_id = credential.tenant_id
        request.state.roles = credential.roles
        request.state.capabilities = await self._resolve_capabilities(request, credential)

        return await call_next(request)

    async def _resolve_capabilities(self, request: Request, credential: VerifiedCredential):
        async with request.app.state.database.session() as session:
            return await PermissionService(session).resolve(credential.tenant_id, credential.roles)

    def _unauthorized(self, request: Request, message: str) -> JSONResponse:
        return error_response(
            request,
            401,
            ErrorCode.UNAUTHORIZED,
            message,
            headers={"WWW-Authenticate": "Bearer"},
        )
