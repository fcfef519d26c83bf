"""Capability-based authorization.

Actors carry role names in their credential. Roles are rows in the
``roles`` table mapping a name to capability strings of the form
``<resource>:<operation>``. ``<resource>:*`` grants every operation on a
resource and ``*`` grants everything.

Usage:
    from carenotes.core.permissions import PermissionService

    service = PermissionService(session)
    capabilities = await service.resolve(tenant_id, {"nurse"})
    capabilities.allows("residents", "update")
"""

from collections.abc import Iterable
from enum import Enum
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from carenotes.core.logging import get_logger
from carenotes.db.models.role import Role

logger = get_logger(__name__)

WILDCARD = "*"


class Operation(str, Enum):
    """Operations a capability can grant on a resource."""

    CREATE = "create"
    READ = "read"
    READ_SENSITIVE = "read_sensitive"
    UPDATE = "update"
    ARCHIVE = "archive"
    PURGE = "purge"


def capability(resource: str, operation: Operation | str) -> str:
    """Format a capability string."""
    op = operation.value if isinstance(operation, Operation) else operation
    return f"{resource}:{op}"


def is_valid_capability(value: str) -> bool:
    if value == WILDCARD:
        return True
    resource, sep, operation = value.partition(":")
    return bool(sep and resource and operation) and ":" not in operation


class CapabilitySet:
    """Immutable set of capability strings with wildcard matching."""

    __slots__ = ("_capabilities",)

    def __init__(self, capabilities: Iterable[str] = ()):
        self._capabilities = frozenset(capabilities)

    @classmethod
    def from_strings(cls, values: Iterable[str]) -> "CapabilitySet":
        """Build a set, rejecting malformed capability strings.

        Raises:
            ValueError: If a value is not ``*`` or ``resource:operation``
        """
        values = list(values)
        invalid = [v for v in values if not is_valid_capability(v)]
        if invalid:
            raise ValueError(f"Invalid capability strings: {invalid}")
        return cls(values)

    def allows(self, resource: str, operation: Operation | str) -> bool:
        caps = self._capabilities
        return (
            WILDCARD in caps
            or f"{resource}:{WILDCARD}" in caps
            or capability(resource, operation) in caps
        )

    def union(self, other: "CapabilitySet") -> "CapabilitySet":
        return CapabilitySet(self._capabilities | other._capabilities)

    def __contains__(self, item: str) -> bool:
        return item in self._capabilities

    def __iter__(self):
        return iter(sorted(self._capabilities))

    def __len__(self) -> int:
        return len(self._capabilities)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CapabilitySet):
            return NotImplemented
        return self._capabilities == other._capabilities

    def __hash__(self) -> int:
        return hash(self._capabilities)

    def __repr__(self) -> str:
        return f"CapabilitySet({sorted(self._capabilities)!r})"


# Global roles installed by seeding. Tenants may override any of them by
# inserting a role row with the same name and their tenant_id.
DEFAULT_ROLES: dict[str, tuple[str, list[str]]] = {
    "administrator": ("Full access including purge", [WILDCARD]),
    "care_manager": (
        "Manages residents and beds, reads the audit trail",
        [
            "residents:create",
            "residents:read",
            "residents:read_sensitive",
            "residents:update",
            "residents:archive",
            "beds:create",
            "beds:read",
            "beds:update",
            "beds:archive",
            "audit:read",
        ],
    ),
    "nurse": (
        "Clinical staff with access to sensitive resident data",
        [
            "residents:create",
            "residents:read",
            "residents:read_sensitive",
            "residents:update",
            "beds:read",
            "beds:update",
        ],
    ),
    "carer": (
        "Care staff without sensitive data access",
        ["residents:read", "residents:update", "beds:read"],
    ),
    "auditor": ("Read-only access plus the audit trail", ["residents:read", "beds:read", "audit:read"]),
    "viewer": ("Read-only access", ["residents:read", "beds:read"]),
}


class PermissionService:
    """Resolves role names to capabilities for a tenant."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_roles(self, tenant_id: UUID, role_names: Iterable[str]) -> dict[str, Role]:
        """Load the effective role rows by name.

        Tenant-specific rows win over global rows of the same name.
        """
        names = set(role_names)
        if not names:
            return {}

        stmt = select(Role).where(
            Role.name.in_(names),
            or_(Role.tenant_id.is_(None), Role.tenant_id == tenant_id),
        )
        result = await self.db.execute(stmt)

        effective: dict[str, Role] = {}
        for role in result.scalars():
            current = effective.get(role.name)
            if current is None or (current.tenant_id is None and role.tenant_id is not None):
                effective[role.name] = role
        return effective

    async def resolve(self, tenant_id: UUID, role_names: Iterable[str]) -> CapabilitySet:
        """Resolve role names to the union of their capabilities.

        Unknown role names contribute nothing.
        """
        names = set(role_names)
        roles = await self.get_roles(tenant_id, names)

        unknown = names - roles.keys()
        if unknown:
            logger.warning("unknown_roles", tenant_id=str(tenant_id), roles=sorted(unknown))

        result = CapabilitySet()
        for role in roles.values():
            result = result.union(CapabilitySet(role.capabilities or ()))
        return result
