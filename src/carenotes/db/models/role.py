"""Role model: named capability bundles."""

from uuid import UUID

from sqlalchemy import ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from uuid_utils.compat import uuid7

from .base import Base, PortableUUID, TimestampMixin, json_document


class Role(TimestampMixin, Base):
    """A named set of capability strings.

    Rows with a NULL tenant_id are global. A tenant-specific row with the
    same name takes precedence for that tenant.
    """

    __tablename__ = "roles"

    role_id: Mapped[UUID] = mapped_column(PortableUUID(), primary_key=True, default=uuid7)
    tenant_id: Mapped[UUID | None] = mapped_column(
        PortableUUID(), ForeignKey("tenants.tenant_id"), nullable=True
    )
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    capabilities: Mapped[list[str]] = mapped_column(json_document(), nullable=False, default=list)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (UniqueConstraint("tenant_id", "name", name="uq_roles_tenant_name"),)

    def __repr__(self) -> str:
        scope = self.tenant_id or "global"
        return f"<Role(name={self.name}, scope={scope})>"
