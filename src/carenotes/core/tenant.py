"""Tenant registry.

Tenants are created and deactivated by operators (or seeding), never through
the public API. Every change is written to the audit trail.
"""

from typing import Any
from uuid import UUID

import pydantic
from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession
from uuid_utils.compat import uuid7

from carenotes.core.audit import AuditLogger
from carenotes.core.context import SYSTEM_ACTOR_ID
from carenotes.core.exceptions import TenantInactiveError, TenantNotFoundError, ValidationError
from carenotes.db.models.audit import AuditSeverity
from carenotes.db.models.tenant import Tenant
from carenotes.db.schemas.tenant import TenantCreate

MAX_LIST = 1000


def field_errors_from_pydantic(exc: pydantic.ValidationError) -> dict[str, list[str]]:
    """Group pydantic error messages by dotted field location."""
    errors: dict[str, list[str]] = {}
    for err in exc.errors():
        name = ".".join(str(part) for part in err["loc"]) or "body"
        errors.setdefault(name, []).append(err["msg"])
    return errors


class TenantService:
    """Create, look up and deactivate tenants.

    Changes are flushed, not committed; the caller owns the transaction.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit = AuditLogger(db)

    async def _first(self, query: Select[tuple[Tenant]]) -> Tenant | None:
        return (await self.db.execute(query)).scalar_one_or_none()

    async def _record(
        self,
        operation: str,
        tenant: Tenant,
        request_id: UUID | None,
        actor_id: UUID,
        severity: AuditSeverity | None = None,
        **event_data: Any,
    ) -> None:
        await self.audit.log_event(
            operation,
            request_id=request_id or uuid7(),
            event_data=event_data,
            severity=severity,
            tenant_id=tenant.tenant_id,
            actor_id=actor_id,
            resource_type="tenants",
            resource_id=str(tenant.tenant_id),
        )

    async def create_tenant(
        self,
        name: str,
        slug: str,
        request_id: UUID | None = None,
        actor_id: UUID = SYSTEM_ACTOR_ID,
    ) -> Tenant:
        """Register an active tenant.

        The slug is lowercased and must be unique across all tenants.

        Raises:
            ValidationError: Malformed name or slug, or slug already taken
        """
        try:
            data = TenantCreate(name=name, slug=slug)
        except pydantic.ValidationError as e:
            raise ValidationError("Invalid tenant", field_errors_from_pydantic(e)) from e

        if await self.get_tenant_by_slug(data.slug) is not None:
            raise ValidationError.for_field("slug", f"Slug '{data.slug}' is already in use")

        tenant = Tenant(name=data.name, slug=data.slug, is_active=True)
        self.db.add(tenant)
        await self.db.flush()
        await self._record(
            "tenants.create", tenant, request_id, actor_id, name=data.name, slug=data.slug
        )
        return tenant

    async def get_tenant(self, tenant_id: UUID) -> Tenant | None:
        return await self._first(select(Tenant).where(Tenant.tenant_id == tenant_id))

    async def get_tenant_by_slug(self, slug: str) -> Tenant | None:
        return await self._first(select(Tenant).where(Tenant.slug == slug.lower()))

    async def get_tenant_or_raise(self, tenant_id: UUID) -> Tenant:
        tenant = await self.get_tenant(tenant_id)
        if tenant is None:
            raise TenantNotFoundError(tenant_id)
        return tenant

    async def list_tenants(
        self, active_only: bool = True, limit: int = 100, offset: int = 0
    ) -> list[Tenant]:
        """Newest first; ``limit`` is capped at 1000."""
        query = select(Tenant)
        if active_only:
            query = query.where(Tenant.is_active.is_(True))
        query = (
            query.order_by(Tenant.created_at.desc(), Tenant.tenant_id.desc())
            .limit(min(limit, MAX_LIST))
            .offset(offset)
        )
        return list((await self.db.execute(query)).scalars())

    async def deactivate_tenant(
        self,
        tenant_id: UUID,
        request_id: UUID | None = None,
        actor_id: UUID = SYSTEM_ACTOR_ID,
    ) -> Tenant:
        """Mark a tenant inactive; its credentials are refused from then on.

        Deactivating an inactive tenant changes nothing and is not audited.

        Raises:
            TenantNotFoundError: If tenant does not exist
        """
        tenant = await self.get_tenant_or_raise(tenant_id)
        if not tenant.is_active:
            return tenant

        tenant.is_active = False
        await self.db.flush()
        await self._record(
            "tenants.deactivate",
            tenant,
            request_id,
            actor_id,
            severity=AuditSeverity.WARNING,
            slug=tenant.slug,
        )
        return tenant

    async def validate_tenant_active(self, tenant_id: UUID) -> Tenant:
        """Return the tenant if it exists and is active.

        Raises:
            TenantNotFoundError: If tenant does not exist
            TenantInactiveError: If tenant is deactivated
        """
        tenant = await self.get_tenant_or_raise(tenant_id)
        if not tenant.is_active:
            raise TenantInactiveError(tenant_id)
        return tenant
