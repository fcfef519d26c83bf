"""Care provider organisations."""

from uuid import UUID

from sqlalchemy import Index, String
from sqlalchemy.orm import Mapped, mapped_column
from uuid_utils.compat import uuid7

from .base import Base, PortableUUID, TimestampMixin


class Tenant(TimestampMixin, Base):
    """One care provider.

    Owns every resident, bed, role override and audit record that carries
    its id. Deactivation is the only way a tenant leaves service; rows are
    never deleted.
    """

    __tablename__ = "tenants"
    __table_args__ = (Index("idx_tenant_active", "is_active"),)

    tenant_id: Mapped[UUID] = mapped_column(PortableUUID(), primary_key=True, default=uuid7)
    name: Mapped[str] = mapped_column(String(255))
    slug: Mapped[str] = mapped_column(String(100), unique=True)
    is_active: Mapped[bool] = mapped_column(default=True)

    def __repr__(self) -> str:
        state = "active" if self.is_active else "inactive"
        return f"<Tenant {self.slug} {state}>"
