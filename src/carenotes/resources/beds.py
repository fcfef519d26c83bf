"""Beds: rules and queries on top of the generic resource service."""

from typing import Any
from uuid import UUID

from sqlalchemy import exists

from carenotes.core.context import RequestContext
from carenotes.core.exceptions import ValidationError
from carenotes.core.lifecycle import LifecycleStatus
from carenotes.db.models.bed import Bed, BedType
from carenotes.db.models.resident import Resident
from carenotes.db.repositories.base import TenantScopedRepository
from carenotes.db.schemas.bed import BedCreate, BedPatch, BedReplace, BedResponse
from carenotes.resources.definitions import ResourceDefinition, status_filter
from carenotes.resources.service import ResourceService


class BedService(ResourceService[Bed]):
    """Bed rules: ``(ward, bed_number)`` is unique within a tenant, and a
    bed held by a non-archived resident cannot be archived."""

    def _residents(self, ctx: RequestContext) -> TenantScopedRepository[Resident]:
        return TenantScopedRepository(self.db, Resident, ctx.tenant_id)

    async def _check_unique(
        self, ward: str, bed_number: str, ctx: RequestContext, exclude_id: UUID | None = None
    ) -> None:
        taken = await self.repository(ctx).exists(
            Bed.ward == ward, Bed.bed_number == bed_number, exclude_id=exclude_id
        )
        if taken:
            raise ValidationError.for_field(
                "bed_number", f"Bed {bed_number} already exists on ward {ward}"
            )

    async def validate_create(self, values: dict[str, Any], ctx: RequestContext) -> dict[str, Any]:
        await self._check_unique(values["ward"], values["bed_number"], ctx)
        return values

    async def validate_update(
        self, obj: Bed, changes: dict[str, Any], ctx: RequestContext
    ) -> dict[str, Any]:
        ward = changes.get("ward", obj.ward)
        bed_number = changes.get("bed_number", obj.bed_number)
        if (ward, bed_number) != (obj.ward, obj.bed_number):
            await self._check_unique(ward, bed_number, ctx, exclude_id=obj.id)
        return changes

    async def before_archive(self, obj: Bed, ctx: RequestContext) -> None:
        occupied = await self._residents(ctx).exists(
            Resident.bed_id == obj.id, Resident.status != LifecycleStatus.ARCHIVED.value
        )
        if occupied:
            raise ValidationError.for_field("status", "Bed is assigned to a resident")

    async def before_purge(self, obj: Bed, ctx: RequestContext) -> None:
        if await self._residents(ctx).exists(Resident.bed_id == obj.id):
            raise ValidationError.for_field("id", "Bed is still referenced by resident records")

    async def availability(self, ctx: RequestContext) -> list[Bed]:
        """Active beds with no non-archived resident assigned."""
        occupant = exists().where(
            Resident.bed_id == Bed.id,
            Resident.tenant_id == ctx.tenant_id,
            Resident.status != LifecycleStatus.ARCHIVED.value,
        )
        stmt = (
            self.repository(ctx)
            .select()
            .where(Bed.status == LifecycleStatus.ACTIVE.value, ~occupant)
            .order_by(Bed.ward, Bed.bed_number)
        )
        async with self._persistence("availability", write=False):
            result = await self.db.execute(stmt)
            return list(result.scalars().all())


BEDS = ResourceDefinition(
    name="beds",
    model=Bed,
    create_schema=BedCreate,
    replace_schema=BedReplace,
    patch_schema=BedPatch,
    response_schema=BedResponse,
    service_class=BedService,
    required_fields=frozenset({"ward", "bed_number", "bed_type"}),
    filters={"status": status_filter, "ward": str, "bed_type": BedType},
    sortable=("created_at", "updated_at", "ward", "bed_number"),
    search_columns=("ward", "bed_number"),
    default_sort="ward",
)

__all__ = ["BEDS", "BedService"]
