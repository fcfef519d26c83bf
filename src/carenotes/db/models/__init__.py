"""Database models for CareNotes."""

from .audit import AuditEvent, AuditOutcome, AuditSeverity
from .base import Base, TenantResourceMixin, TimestampMixin
from .bed import Bed, BedType
from .resident import CareLevel, Gender, Resident
from .role import Role
from .tenant import Tenant

__all__ = [
    "Base",
    "TimestampMixin",
    "TenantResourceMixin",
    "AuditEvent",
    "AuditOutcome",
    "AuditSeverity",
    "Bed",
    "BedType",
    "CareLevel",
    "Gender",
    "Resident",
    "Role",
    "Tenant",
]
