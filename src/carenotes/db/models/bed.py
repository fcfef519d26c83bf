"""Bed model."""

from enum import Enum

from sqlalchemy import String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TenantResourceMixin


class BedType(str, Enum):
    """Physical bed category."""

    STANDARD = "standard"
    NURSING = "nursing"
    BARIATRIC = "bariatric"
    LOW = "low"
    SPECIALIST = "specialist"


class Bed(TenantResourceMixin, Base):
    """A physical bed on a ward."""

    __tablename__ = "beds"

    ward: Mapped[str] = mapped_column(String(100), nullable=False)
    bed_number: Mapped[str] = mapped_column(String(20), nullable=False)
    bed_type: Mapped[str] = mapped_column(String(20), nullable=False, default=BedType.STANDARD.value)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    version: Mapped[int] = mapped_column(nullable=False)

    __mapper_args__ = {"version_id_col": version}
    __table_args__ = (
        UniqueConstraint("tenant_id", "ward", "bed_number", name="uq_beds_tenant_ward_number"),
    )

    def __repr__(self) -> str:
        return f"<Bed(id={self.id}, ward={self.ward}, number={self.bed_number})>"
