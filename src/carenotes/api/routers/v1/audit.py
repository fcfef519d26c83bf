"""Audit trail endpoint.

- GET /audit-events - Tenant-scoped, filterable, paginated audit records
"""

import math
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from carenotes.api.dependencies import get_audit_logger, get_settings, require_capability
from carenotes.api.schemas.audit import AuditEventResponse
from carenotes.api.schemas.errors import APIError
from carenotes.api.schemas.pagination import PageResponse
from carenotes.config.settings import Settings
from carenotes.core.audit import AuditLogger
from carenotes.core.context import RequestContext
from carenotes.db.models.audit import AuditOutcome

router = APIRouter(prefix="/audit-events", tags=["audit"])


@router.get(
    "",
    response_model=PageResponse[AuditEventResponse],
    summary="List audit events",
    description="Newest first. Always restricted to the caller's tenant.",
    responses={
        400: {"model": APIError, "description": "Invalid filter"},
        403: {"model": APIError, "description": "Missing audit:read"},
    },
)
async def list_audit_events(
    ctx: Annotated[RequestContext, Depends(require_capability("audit", "read"))],
    audit: Annotated[AuditLogger, Depends(get_audit_logger)],
    settings: Annotated[Settings, Depends(get_settings)],
    resource_type: str | None = None,
    resource_id: str | None = None,
    request_id: UUID | None = None,
    actor_id: UUID | None = None,
    outcome: AuditOutcome | None = None,
    operation: str | None = None,
    page: Annotated[int, Query(ge=1)] = 1,
    page_size: int | None = None,
) -> PageResponse[AuditEventResponse]:
    size = settings.clamp_page_size(page_size)
    filters = {
        "tenant_id": ctx.tenant_id,
        "resource_type": resource_type,
        "resource_id": resource_id,
        "request_id": request_id,
        "actor_id": actor_id,
        "outcome": outcome,
        "operation": operation,
    }
    filters = {k: v for k, v in filters.items() if v is not None}

    events = await audit.query_events(limit=size, offset=(page - 1) * size, **filters)
    total = await audit.count_events(**filters)

    return PageResponse[AuditEventResponse](
        items=[AuditEventResponse.model_validate(e) for e in events],
        page=page,
        page_size=size,
        total=total,
        total_pages=math.ceil(total / size) if total else 0,
        has_next=page * size < total,
        has_previous=page > 1,
    )
