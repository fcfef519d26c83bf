"""Resident model."""

from datetime import date
from enum import Enum
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, PortableUUID, TenantResourceMixin


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"
    PREFER_NOT_TO_SAY = "prefer_not_to_say"


class CareLevel(str, Enum):
    """Type of care a resident receives."""

    RESIDENTIAL = "residential"
    NURSING = "nursing"
    DEMENTIA = "dementia"
    MENTAL_HEALTH = "mental_health"
    LEARNING_DISABILITY = "learning_disability"
    PHYSICAL_DISABILITY = "physical_disability"
    PALLIATIVE = "palliative"
    RESPITE = "respite"


class Resident(TenantResourceMixin, Base):
    """A person living in a care home.

    ``date_of_birth``, ``nhs_number`` and ``notes`` are sensitive and are
    redacted for callers without the sensitive-read capability.
    """

    __tablename__ = "residents"

    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    preferred_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    date_of_birth: Mapped[date] = mapped_column(Date, nullable=False)
    gender: Mapped[str] = mapped_column(String(20), nullable=False)
    nhs_number: Mapped[str | None] = mapped_column(String(10), nullable=True)
    care_level: Mapped[str] = mapped_column(String(30), nullable=False)
    admission_date: Mapped[date] = mapped_column(Date, nullable=False)
    bed_id: Mapped[UUID | None] = mapped_column(
        PortableUUID(), ForeignKey("beds.id"), nullable=True
    )
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    version: Mapped[int] = mapped_column(nullable=False)

    __mapper_args__ = {"version_id_col": version}
    __table_args__ = (
        UniqueConstraint("tenant_id", "nhs_number", name="uq_residents_tenant_nhs"),
        Index("idx_residents_tenant_name", "tenant_id", "last_name", "first_name"),
        Index("idx_residents_bed", "bed_id"),
    )

    def __repr__(self) -> str:
        return f"<Resident(id={self.id}, status={self.status})>"
