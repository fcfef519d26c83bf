"""Schema pieces shared by every resource type."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from carenotes.core.lifecycle import LifecycleStatus


class VersionedUpdate(BaseModel):
    """Base for update payloads. ``version`` is the version the client read."""

    version: int = Field(..., ge=1, description="Version the update is based on")
    status: LifecycleStatus | None = None


class ResourceResponse(BaseModel):
    """Common fields returned for every resource."""

    id: UUID
    tenant_id: UUID
    status: LifecycleStatus
    version: int
    created_at: datetime
    created_by: UUID
    updated_at: datetime
    updated_by: UUID

    model_config = {"from_attributes": True}
