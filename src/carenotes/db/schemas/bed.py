"""Pydantic schemas for bed API validation."""

from pydantic import BaseModel, Field, field_validator

from carenotes.core.lifecycle import LifecycleStatus
from carenotes.db.models.bed import BedType
from carenotes.db.schemas.resource import ResourceResponse, VersionedUpdate


class BedFields(BaseModel):
    ward: str = Field(..., min_length=1, max_length=100)
    bed_number: str = Field(..., min_length=1, max_length=20)
    bed_type: BedType = BedType.STANDARD
    notes: str | None = Field(None, max_length=2_000)

    @field_validator("ward", "bed_number", mode="after")
    @classmethod
    def require_non_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class BedCreate(BedFields):
    status: LifecycleStatus = LifecycleStatus.DRAFT


class BedReplace(BedFields, VersionedUpdate):
    pass


class BedPatch(VersionedUpdate):
    ward: str | None = Field(None, min_length=1, max_length=100)
    bed_number: str | None = Field(None, min_length=1, max_length=20)
    bed_type: BedType | None = None
    notes: str | None = Field(None, max_length=2_000)

    @field_validator("ward", "bed_number", mode="after")
    @classmethod
    def require_non_blank(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class BedResponse(ResourceResponse):
    ward: str
    bed_number: str
    bed_type: BedType
    notes: str | None = None


class BedAvailability(BaseModel):
    """Active beds with no non-archived resident assigned."""

    total: int
    beds: list[BedResponse]
