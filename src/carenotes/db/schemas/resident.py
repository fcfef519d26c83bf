"""Pydantic schemas for resident API validation."""

from datetime import date
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from carenotes.core.lifecycle import LifecycleStatus
from carenotes.db.models.resident import CareLevel, Gender
from carenotes.db.schemas.resource import ResourceResponse, VersionedUpdate


def _strip(v: str | None) -> str | None:
    if v is None:
        return v
    return v.strip()


class ResidentFields(BaseModel):
    """Writable resident fields as supplied on create and full update."""

    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    preferred_name: str | None = Field(None, max_length=100)
    date_of_birth: date
    gender: Gender
    nhs_number: str | None = Field(None, max_length=20, description="Spaces and hyphens allowed")
    care_level: CareLevel
    admission_date: date
    bed_id: UUID | None = None
    email: str | None = Field(None, max_length=255)
    notes: str | None = Field(None, max_length=10_000)

    @field_validator("first_name", "last_name", mode="after")
    @classmethod
    def require_non_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("preferred_name", "nhs_number", "email", mode="after")
    @classmethod
    def strip_optional(cls, v: str | None) -> str | None:
        v = _strip(v)
        return v or None


class ResidentCreate(ResidentFields):
    """Schema for creating a resident."""

    status: LifecycleStatus = LifecycleStatus.DRAFT


class ResidentReplace(ResidentFields, VersionedUpdate):
    """Schema for a full (PUT) update."""


class ResidentPatch(VersionedUpdate):
    """Schema for a partial (PATCH) update. Only supplied fields change."""

    first_name: str | None = Field(None, min_length=1, max_length=100)
    last_name: str | None = Field(None, min_length=1, max_length=100)
    preferred_name: str | None = Field(None, max_length=100)
    date_of_birth: date | None = None
    gender: Gender | None = None
    nhs_number: str | None = Field(None, max_length=20)
    care_level: CareLevel | None = None
    admission_date: date | None = None
    bed_id: UUID | None = None
    email: str | None = Field(None, max_length=255)
    notes: str | None = Field(None, max_length=10_000)

    @field_validator("first_name", "last_name", mode="after")
    @classmethod
    def require_non_blank(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("preferred_name", "nhs_number", "email", mode="after")
    @classmethod
    def strip_optional(cls, v: str | None) -> str | None:
        return _strip(v) or None


class ResidentResponse(ResourceResponse):
    """Resident as returned to callers. Sensitive fields may be null."""

    first_name: str
    last_name: str
    preferred_name: str | None = None
    date_of_birth: date | None = None
    gender: Gender
    nhs_number: str | None = None
    care_level: CareLevel
    admission_date: date
    bed_id: UUID | None = None
    email: str | None = None
    notes: str | None = None


class ResidentStatistics(BaseModel):
    """Counts over a tenant's non-archived residents."""

    total: int
    by_status: dict[str, int]
    by_care_level: dict[str, int]
