"""Audit event response schema."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel

from carenotes.db.models.audit import AuditOutcome, AuditSeverity


class AuditEventResponse(BaseModel):
    audit_id: UUID
    request_id: UUID
    tenant_id: UUID | None = None
    actor_id: UUID | None = None
    operation: str
    resource_type: str | None = None
    resource_id: str | None = None
    outcome: AuditOutcome
    status_code: int | None = None
    severity: AuditSeverity
    event_data: dict[str, Any]
    created_at: datetime

    model_config = {"from_attributes": True}
