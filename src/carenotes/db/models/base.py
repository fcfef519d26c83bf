"""Declarative base, portable column types and shared mixins.

Models run on PostgreSQL in production and on SQLite in tests, so column
types here pick the native representation where one exists.
"""

from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import JSON, DateTime, ForeignKey, String, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator, TypeEngine
from uuid_utils.compat import uuid7


def utc_now() -> datetime:
    return datetime.now(UTC)


def json_document() -> TypeEngine:
    """JSONB on PostgreSQL, JSON elsewhere."""
    return JSON().with_variant(JSONB(), "postgresql")


class PortableUUID(TypeDecorator):
    """Native UUID on PostgreSQL, 32-char hex elsewhere; also binds UUID strings."""

    impl = Uuid
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if isinstance(value, str):
            return UUID(value)
        return value


class UTCDateTime(TypeDecorator):
    """Timezone-aware datetime that comes back aware on every dialect.

    SQLite drops tzinfo on the way in; values are stored as UTC and
    re-tagged on the way out.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(UTC)
        return value

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value


class Base(DeclarativeBase):
    pass


class TimestampMixin:
    """Application-side UTC timestamps; updated_at moves on every ORM update."""

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=utc_now, onupdate=utc_now, nullable=False
    )


class TenantResourceMixin(TimestampMixin):
    """Columns shared by every tenant-owned resource.

    Concrete models declare the ``version`` column themselves and map it as
    ``version_id_col`` so the ORM bumps and checks it on every UPDATE.
    """

    id: Mapped[UUID] = mapped_column(PortableUUID(), primary_key=True, default=uuid7)
    tenant_id: Mapped[UUID] = mapped_column(
        PortableUUID(), ForeignKey("tenants.tenant_id"), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="draft", index=True)
    created_by: Mapped[UUID] = mapped_column(PortableUUID(), nullable=False)
    updated_by: Mapped[UUID] = mapped_column(PortableUUID(), nullable=False)
