"""Append-only audit trail rows."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from uuid_utils.compat import uuid7

from .base import Base, PortableUUID, UTCDateTime, json_document, utc_now


class AuditOutcome(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    DENIED = "denied"
    UNAUTHENTICATED = "unauthenticated"


class AuditSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AuditEvent(Base):
    """What was attempted, by whom, against which resource, and how it ended.

    Rows are only ever inserted. They carry no foreign keys so they survive
    purges of the records they describe; ``tenant_id`` and ``actor_id`` are
    null for requests that never authenticated.
    """

    __tablename__ = "audit_events"
    __table_args__ = (
        Index("idx_audit_tenant", "tenant_id"),
        Index("idx_audit_request", "request_id"),
        Index("idx_audit_operation", "operation"),
        Index("idx_audit_outcome", "outcome"),
        Index("idx_audit_created", "created_at"),
        Index("idx_audit_resource", "resource_type", "resource_id"),
    )

    # uuid7 ids sort by creation time
    audit_id: Mapped[UUID] = mapped_column(PortableUUID(), primary_key=True, default=uuid7)
    request_id: Mapped[UUID] = mapped_column(PortableUUID())
    tenant_id: Mapped[UUID | None] = mapped_column(PortableUUID())
    actor_id: Mapped[UUID | None] = mapped_column(PortableUUID())

    operation: Mapped[str] = mapped_column(String(100))
    resource_type: Mapped[str | None] = mapped_column(String(50))
    resource_id: Mapped[str | None] = mapped_column(String(255))

    outcome: Mapped[str] = mapped_column(String(20))
    status_code: Mapped[int | None] = mapped_column(Integer)
    severity: Mapped[str] = mapped_column(String(20), default=AuditSeverity.INFO.value)
    event_data: Mapped[dict] = mapped_column(json_document(), default=dict)

    ip_address: Mapped[str | None] = mapped_column(String(45))
    user_agent: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utc_now)

    def __repr__(self) -> str:
        return f"<AuditEvent {self.operation} {self.outcome} request={self.request_id}>"
