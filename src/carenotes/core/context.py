"""Per-request identity: who is acting, for which tenant, with what capabilities.

The context middleware binds a ``RequestContext`` for each API request;
services receive it explicitly, while logging and other ambient code read
it from a contextvar:

    with request_context(create_context(tenant_id=t, actor_id=a)):
        get_current_context().assert_capability("residents", "update")
"""

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar, Token
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from uuid_utils.compat import uuid7

from carenotes.core.exceptions import AuthorizationError, ContextNotSetError
from carenotes.core.permissions import CapabilitySet


class ActorType(str, Enum):
    HUMAN = "human"
    SERVICE = "service"
    # seeding and other operator tasks; never accepted in a credential
    SYSTEM = "system"


SYSTEM_ACTOR_ID = UUID(int=0)


class RequestContext(BaseModel):
    """The acting identity for one request or system task."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    tenant_id: UUID
    actor_id: UUID
    actor_type: ActorType = ActorType.HUMAN
    roles: frozenset[str] = frozenset()
    capabilities: CapabilitySet = Field(default_factory=CapabilitySet)
    request_id: UUID = Field(default_factory=uuid7)
    initiated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def can(self, resource: str, operation: str) -> bool:
        return self.capabilities.allows(resource, operation)

    def assert_capability(self, resource: str, operation: str) -> None:
        """Raise AuthorizationError unless ``resource:operation`` is held."""
        if not self.can(resource, operation):
            raise AuthorizationError(f"{resource}:{operation}")

    def to_audit_dict(self) -> dict[str, Any]:
        """JSON-safe identity fields for audit event_data."""
        return {
            "request_id": str(self.request_id),
            "tenant_id": str(self.tenant_id),
            "actor_id": str(self.actor_id),
            "actor_type": self.actor_type.value,
            "roles": sorted(self.roles),
            "initiated_at": self.initiated_at.isoformat(),
        }


_current: ContextVar[RequestContext | None] = ContextVar("carenotes_request_context", default=None)


def get_current_context_or_none() -> RequestContext | None:
    return _current.get()


def get_current_context() -> RequestContext:
    """The bound context.

    Raises:
        ContextNotSetError: Outside ``request_context()`` or an API request
    """
    ctx = _current.get()
    if ctx is None:
        raise ContextNotSetError("No request context is bound")
    return ctx


def set_context(ctx: RequestContext) -> Token[RequestContext | None]:
    """Bind ``ctx`` until ``reset_context(token)``; prefer ``request_context()``."""
    return _current.set(ctx)


def reset_context(token: Token[RequestContext | None]) -> None:
    _current.reset(token)


@contextmanager
def request_context(ctx: RequestContext) -> Iterator[RequestContext]:
    """Bind ``ctx`` for the block. Tasks created inside inherit it."""
    token = _current.set(ctx)
    try:
        yield ctx
    finally:
        _current.reset(token)


def create_context(
    *,
    tenant_id: UUID,
    actor_id: UUID,
    actor_type: ActorType = ActorType.HUMAN,
    roles: set[str] | frozenset[str] | None = None,
    capabilities: CapabilitySet | None = None,
    request_id: UUID | None = None,
) -> RequestContext:
    """Build a context, generating a request id when none is given.

    Capabilities default to none; the authentication middleware resolves
    them from ``roles`` before building the context for a request.
    """
    return RequestContext(
        tenant_id=tenant_id,
        actor_id=actor_id,
        actor_type=actor_type,
        roles=frozenset(roles or ()),
        capabilities=capabilities or CapabilitySet(),
        request_id=request_id or uuid7(),
    )


def system_context(
    tenant_id: UUID,
    capabilities: CapabilitySet | None = None,
    request_id: UUID | None = None,
) -> RequestContext:
    """Context for operator tasks; holds every capability unless narrowed."""
    return create_context(
        tenant_id=tenant_id,
        actor_id=SYSTEM_ACTOR_ID,
        actor_type=ActorType.SYSTEM,
        roles={"system"},
        capabilities=capabilities or CapabilitySet.from_strings(["*"]),
        request_id=request_id,
    )
