"""Audit middleware: one audit record per mutating request and per denial."""

import re
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from carenotes.api.middleware.context import ensure_request_id
from carenotes.api.middleware.errors import map_exception
from carenotes.api.middleware.logging import get_client_ip
from carenotes.core.audit import AuditIntent, AuditLogger, outcome_for_status
from carenotes.core.logging import get_logger
from carenotes.observability.metrics import record_audit_write_failure

logger = get_logger(__name__)

MUTATING_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})

RESOURCE_PATH = re.compile(r"^/api/v1/(?P<resource>[a-z][a-z_-]*)(?:/(?P<id>[^/]+))?(?P<rest>/.*)?$")

METHOD_OPERATIONS = {"POST": "create", "PUT": "update", "PATCH": "update", "DELETE": "archive"}


def describe_from_path(method: str, path: str) -> AuditIntent:
    """Best-effort intent for requests that never reached a handler."""
    intent = AuditIntent()
    match = RESOURCE_PATH.match(path)
    if match is None:
        intent.operation = f"http.{method.lower()}"
        return intent

    operation = METHOD_OPERATIONS.get(method, method.lower())
    if match.group("rest") == "/purge" and method == "DELETE":
        operation = "purge"
    intent.describe(f"{match.group('resource')}.{operation}", match.group("resource"), match.group("id"))
    return intent


def get_audit_intent(request: Request) -> AuditIntent:
    """The request's audit intent, created on first use."""
    intent = getattr(request.state, "audit_intent", None)
    if intent is None:
        intent = AuditIntent()
        request.state.audit_intent = intent
    return intent


class AuditMiddleware(BaseHTTPMiddleware):
    """Writes exactly one AuditEvent for every mutating request and for
    every authorization denial, whatever the outcome.

    Sits outside authentication so unauthenticated attempts are recorded.
    The record is written through its own session, so it survives a
    handler rollback. A failed audit write is logged and counted but
    never replaces the response.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        ensure_request_id(request)
        intent = get_audit_intent(request)

        try:
            response = await call_next(request)
        except Exception as exc:
            mapping = map_exception(exc)
            if self._should_audit(request, intent):
                await self._write(request, intent, mapping.status_code, mapping.error_code.value)
            raise

        if self._should_audit(request, intent):
            await self._write(
                request,
                intent,
                response.status_code,
                getattr(request.state, "error_code", None) if response.status_code >= 400 else None,
            )
        return response

    def _should_audit(self, request: Request, intent: AuditIntent) -> bool:
        return request.method in MUTATING_METHODS or intent.denied

    async def _write(
        self,
        request: Request,
        intent: AuditIntent,
        status_code: int,
        error_code: str | None,
    ) -> None:
        if intent.operation is None:
            fallback = describe_from_path(request.method, request.url.path)
            intent.operation = fallback.operation
            intent.resource_type = intent.resource_type or fallback.resource_type
            intent.resource_id = intent.resource_id or fallback.resource_id

        outcome = outcome_for_status(status_code, denied=intent.denied)
        event_data = {"method": request.method, "path": request.url.path, **intent.event_data}
        if error_code is not None:
            event_data["error_code"] = error_code

        try:
            async with request.app.state.database.session() as session:
                await AuditLogger(session).log_event(
                    intent.operation,
                    request_id=request.state.request_id,
                    outcome=outcome,
                    event_data=event_data,
                    tenant_id=getattr(request.state, "tenant_id", None),
                    actor_id=getattr(request.state, "actor_id", None),
                    resource_type=intent.resource_type,
                    resource_id=intent.resource_id,
                    status_code=status_code,
                    ip_address=get_client_ip(request),
                    user_agent=request.headers.get("User-Agent"),
                )
                await session.commit()
        except Exception:
            record_audit_write_failure(intent.operation)
            logger.exception(
                "audit_write_failed",
                operation=intent.operation,
                status_code=status_code,
                request_id=str(request.state.request_id),
            )
