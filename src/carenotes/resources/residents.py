"""Residents: rules and queries on top of the generic resource service."""

import re
from datetime import date
from typing import Any
from uuid import UUID

from carenotes.core.context import RequestContext
from carenotes.core.exceptions import ValidationError
from carenotes.core.lifecycle import LifecycleStatus
from carenotes.db.models.bed import Bed
from carenotes.db.models.resident import CareLevel, Gender, Resident
from carenotes.db.repositories.base import TenantScopedRepository
from carenotes.db.schemas.resident import (
    ResidentCreate,
    ResidentPatch,
    ResidentReplace,
    ResidentResponse,
    ResidentStatistics,
)
from carenotes.resources.definitions import ResourceDefinition, status_filter, uuid_filter
from carenotes.resources.service import ResourceService

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
NHS_SEPARATORS = re.compile(r"[\s-]")


def normalize_nhs_number(value: str) -> str:
    """Strip separators and verify the modulus 11 check digit.

    Raises:
        ValueError: If the number is not 10 digits or the check digit is wrong
    """
    digits = NHS_SEPARATORS.sub("", value)
    if not re.fullmatch(r"\d{10}", digits):
        raise ValueError("NHS number must be 10 digits")

    total = sum(int(d) * weight for d, weight in zip(digits[:9], range(10, 1, -1), strict=True))
    check = 11 - (total % 11)
    if check == 11:
        check = 0
    if check == 10 or check != int(digits[9]):
        raise ValueError("NHS number check digit is invalid")
    return digits


class ResidentService(ResourceService[Resident]):
    """Resident rules.

    - NHS numbers are normalised, checksummed and unique per tenant
    - Date of birth is in the past; admission is not before birth
    - A bed must belong to the tenant, be non-archived and not be
      held by another non-archived resident
    """

    async def _check(
        self,
        merged: dict[str, Any],
        changed: set[str],
        ctx: RequestContext,
        exclude_id: UUID | None = None,
    ) -> dict[str, Any]:
        errors: dict[str, list[str]] = {}
        normalized: dict[str, Any] = {}
        repo = self.repository(ctx)

        dob: date | None = merged.get("date_of_birth")
        if "date_of_birth" in changed and dob is not None and dob >= date.today():
            errors.setdefault("date_of_birth", []).append("Date of birth must be in the past")

        admitted: date | None = merged.get("admission_date")
        if (
            changed & {"date_of_birth", "admission_date"}
            and dob is not None
            and admitted is not None
            and admitted < dob
        ):
            errors.setdefault("admission_date", []).append(
                "Admission date cannot be before date of birth"
            )

        email = merged.get("email")
        if "email" in changed and email and not EMAIL_PATTERN.match(email):
            errors.setdefault("email", []).append("Invalid email format")

        nhs = merged.get("nhs_number")
        if "nhs_number" in changed and nhs:
            try:
                nhs = normalize_nhs_number(nhs)
            except ValueError as e:
                errors.setdefault("nhs_number", []).append(str(e))
            else:
                normalized["nhs_number"] = nhs
                if await repo.exists(Resident.nhs_number == nhs, exclude_id=exclude_id):
                    errors.setdefault("nhs_number", []).append(
                        "NHS number is already registered to another resident"
                    )

        bed_id = merged.get("bed_id")
        if "bed_id" in changed and bed_id is not None:
            errors.update(await self._check_bed(bed_id, ctx, exclude_id))

        if errors:
            raise ValidationError("Invalid resident", field_errors=errors)
        return normalized

    async def _check_bed(
        self, bed_id: UUID, ctx: RequestContext, exclude_id: UUID | None
    ) -> dict[str, list[str]]:
        bed = await TenantScopedRepository(self.db, Bed, ctx.tenant_id).get(bed_id)
        if bed is None:
            return {"bed_id": ["Bed does not exist"]}
        if bed.status == LifecycleStatus.ARCHIVED.value:
            return {"bed_id": ["Bed is archived"]}
        occupied = await self.repository(ctx).exists(
            Resident.bed_id == bed_id,
            Resident.status != LifecycleStatus.ARCHIVED.value,
            exclude_id=exclude_id,
        )
        if occupied:
            return {"bed_id": ["Bed is already assigned to another resident"]}
        return {}

    async def validate_create(self, values: dict[str, Any], ctx: RequestContext) -> dict[str, Any]:
        normalized = await self._check(values, set(values), ctx)
        return {**values, **normalized}

    async def validate_update(
        self, obj: Resident, changes: dict[str, Any], ctx: RequestContext
    ) -> dict[str, Any]:
        current = {
            "date_of_birth": obj.date_of_birth,
            "admission_date": obj.admission_date,
            "email": obj.email,
            "nhs_number": obj.nhs_number,
            "bed_id": obj.bed_id,
        }
        changed = {name for name, value in changes.items() if current.get(name, object()) != value}
        normalized = await self._check({**current, **changes}, changed, ctx, exclude_id=obj.id)
        return {**changes, **normalized}

    async def statistics(self, ctx: RequestContext) -> ResidentStatistics:
        """Counts of non-archived residents by status and by care level."""
        async with self._persistence("statistics", write=False):
            repo = self.repository(ctx)
            by_status = await repo.count_by("status")
            by_level = await repo.count_by("care_level")

        return ResidentStatistics(
            total=sum(by_status.values()),
            by_status={
                s.value: by_status.get(s.value, 0)
                for s in LifecycleStatus
                if s != LifecycleStatus.ARCHIVED
            },
            by_care_level={level.value: by_level.get(level.value, 0) for level in CareLevel},
        )


RESIDENTS = ResourceDefinition(
    name="residents",
    model=Resident,
    create_schema=ResidentCreate,
    replace_schema=ResidentReplace,
    patch_schema=ResidentPatch,
    response_schema=ResidentResponse,
    service_class=ResidentService,
    required_fields=frozenset(
        {"first_name", "last_name", "date_of_birth", "gender", "care_level", "admission_date"}
    ),
    sensitive_fields=frozenset({"date_of_birth", "nhs_number", "notes"}),
    filters={
        "status": status_filter,
        "care_level": CareLevel,
        "gender": Gender,
        "bed_id": uuid_filter,
    },
    sortable=("created_at", "updated_at", "last_name", "first_name", "admission_date"),
    search_columns=("first_name", "last_name", "preferred_name"),
    default_sort="last_name",
)

__all__ = ["RESIDENTS", "ResidentService", "normalize_nhs_number"]
