"""Unit tests for capability-based authorization."""

import pytest
from uuid_utils.compat import uuid7

from carenotes.core.permissions import (
    DEFAULT_ROLES,
    CapabilitySet,
    Operation,
    PermissionService,
    capability,
    is_valid_capability,
)
from carenotes.db.models.role import Role


class TestCapabilityStrings:
    """Tests for capability formatting and validation."""

    def test_capability_format(self):
        """Test capability string formatting from enum and str."""
        assert capability("residents", Operation.READ_SENSITIVE) == "residents:read_sensitive"
        assert capability("beds", "update") == "beds:update"

    @pytest.mark.parametrize("value", ["*", "residents:read", "beds:*", "audit:read"])
    def test_valid_capabilities(self, value):
        """Test accepted capability forms."""
        assert is_valid_capability(value)

    @pytest.mark.parametrize("value", ["", "residents", ":read", "residents:", "a:b:c"])
    def test_invalid_capabilities(self, value):
        """Test rejected capability forms."""
        assert not is_valid_capability(value)

    def test_from_strings_rejects_malformed(self):
        """Test that from_strings names the bad values."""
        with pytest.raises(ValueError, match="residents"):
            CapabilitySet.from_strings(["beds:read", "residents"])


class TestCapabilitySet:
    """Tests for CapabilitySet matching."""

    def test_exact_match(self):
        """Test that an exact capability is allowed and others are not."""
        caps = CapabilitySet.from_strings(["residents:read"])

        assert caps.allows("residents", "read")
        assert not caps.allows("residents", "update")
        assert not caps.allows("beds", "read")

    def test_resource_wildcard(self):
        """Test that resource:* grants every operation on that resource only."""
        caps = CapabilitySet.from_strings(["beds:*"])

        assert caps.allows("beds", Operation.PURGE)
        assert not caps.allows("residents", "read")

    def test_global_wildcard(self):
        """Test that * grants everything."""
        caps = CapabilitySet.from_strings(["*"])

        assert caps.allows("residents", "purge")
        assert caps.allows("audit", "read")

    def test_empty_set_denies(self):
        """Test that an empty set allows nothing."""
        assert not CapabilitySet().allows("residents", "read")

    def test_union_and_equality(self):
        """Test union, equality and iteration order."""
        a = CapabilitySet(["beds:read"])
        b = CapabilitySet(["residents:read"])

        combined = a.union(b)

        assert combined == CapabilitySet(["residents:read", "beds:read"])
        assert list(combined) == ["beds:read", "residents:read"]
        assert len(combined) == 2
        assert "beds:read" in combined


class TestDefaultRoles:
    """Tests for the seeded role table."""

    def test_all_default_capabilities_are_valid(self):
        """Test that every default role parses."""
        for _, capabilities in DEFAULT_ROLES.values():
            CapabilitySet.from_strings(capabilities)

    def test_only_administrator_can_purge(self):
        """Test that purge is reserved for the wildcard role."""
        for name, (_, capabilities) in DEFAULT_ROLES.items():
            caps = CapabilitySet(capabilities)
            assert caps.allows("residents", "purge") is (name == "administrator")

    def test_carer_cannot_read_sensitive(self):
        """Test that carers lack sensitive resident access."""
        caps = CapabilitySet(DEFAULT_ROLES["carer"][1])

        assert caps.allows("residents", "read")
        assert not caps.allows("residents", "read_sensitive")


@pytest.mark.asyncio
class TestPermissionService:
    """Tests for resolving role names against the roles table."""

    async def test_resolve_global_roles(self, db_session, tenant_a):
        """Test that capabilities of several roles are unioned."""
        service = PermissionService(db_session)

        caps = await service.resolve(tenant_a, {"carer", "auditor"})

        assert caps.allows("residents", "update")
        assert caps.allows("audit", "read")
        assert not caps.allows("residents", "read_sensitive")

    async def test_unknown_role_contributes_nothing(self, db_session, tenant_a):
        """Test that unknown role names resolve to nothing."""
        service = PermissionService(db_session)

        caps = await service.resolve(tenant_a, {"janitor"})

        assert len(caps) == 0

    async def test_no_roles(self, db_session, tenant_a):
        """Test that an empty role list resolves to an empty set."""
        caps = await PermissionService(db_session).resolve(tenant_a, [])

        assert caps == CapabilitySet()

    async def test_tenant_override_wins(self, db_session, tenant_a, tenant_b):
        """Test that a tenant-specific role replaces the global one for that tenant only."""
        db_session.add(Role(tenant_id=tenant_a, name="viewer", capabilities=["beds:read"]))
        await db_session.flush()
        service = PermissionService(db_session)

        overridden = await service.resolve(tenant_a, {"viewer"})
        default = await service.resolve(tenant_b, {"viewer"})

        assert not overridden.allows("residents", "read")
        assert overridden.allows("beds", "read")
        assert default.allows("residents", "read")

    async def test_other_tenant_role_not_visible(self, db_session, tenant_a):
        """Test that a role defined for another tenant does not apply."""
        db_session.add(Role(tenant_id=tenant_a, name="night_shift", capabilities=["*"]))
        await db_session.flush()

        caps = await PermissionService(db_session).resolve(uuid7(), {"night_shift"})

        assert len(caps) == 0
