"""Request context middleware for propagating context through the request lifecycle."""

from typing import Callable
from uuid import UUID

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from uuid_utils.compat import uuid7

from carenotes.core.context import ActorType, create_context, request_context
from carenotes.core.permissions import CapabilitySet


def ensure_request_id(request: Request) -> UUID:
    """Return the request's id, assigning a fresh UUIDv7 on first use."""
    request_id = getattr(request.state, "request_id", None)
    if request_id is None:
        request_id = uuid7()
        request.state.request_id = request_id
    return request_id


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Middleware that sets up RequestContext for authenticated requests.

    Uses the ContextVar-based context management to propagate request
    context through async call chains. Requests that never authenticated
    (public paths) run without a context.

    Requires:
        request.state.tenant_id, actor_id, actor_type, roles, capabilities:
            Set by AuthenticationMiddleware
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = ensure_request_id(request)

        actor_id = getattr(request.state, "actor_id", None)
        if actor_id is None:
            return await call_next(request)

        ctx = create_context(
            tenant_id=request.state.tenant_id,
            actor_id=actor_id,
            actor_type=getattr(request.state, "actor_type", ActorType.HUMAN),
            roles=getattr(request.state, "roles", None),
            capabilities=getattr(request.state, "capabilities", None) or CapabilitySet(),
            request_id=request_id,
        )

        with request_context(ctx):
            return await call_next(request)
