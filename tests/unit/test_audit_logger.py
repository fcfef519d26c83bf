"""Unit tests for the audit logger."""

import pytest
from uuid_utils.compat import uuid7

from carenotes.core.audit import (
    MAX_QUERY_LIMIT,
    AuditIntent,
    AuditLogger,
    outcome_for_status,
    severity_for_outcome,
)
from carenotes.db.models.audit import AuditOutcome, AuditSeverity


class TestOutcomeClassification:
    """Tests for status to outcome mapping."""

    @pytest.mark.parametrize(
        "status_code,denied,expected",
        [
            (200, False, AuditOutcome.SUCCESS),
            (201, False, AuditOutcome.SUCCESS),
            (204, False, AuditOutcome.SUCCESS),
            (400, False, AuditOutcome.FAILURE),
            (401, False, AuditOutcome.UNAUTHENTICATED),
            (403, False, AuditOutcome.DENIED),
            (404, False, AuditOutcome.FAILURE),
            (409, False, AuditOutcome.FAILURE),
            (500, False, AuditOutcome.FAILURE),
            (400, True, AuditOutcome.DENIED),
        ],
    )
    def test_outcome_for_status(self, status_code, denied, expected):
        """Test each status class maps to the right outcome."""
        assert outcome_for_status(status_code, denied) == expected

    def test_severity(self):
        """Test severity derivation."""
        assert severity_for_outcome(AuditOutcome.SUCCESS, 201) == AuditSeverity.INFO
        assert severity_for_outcome(AuditOutcome.FAILURE, 409) == AuditSeverity.WARNING
        assert severity_for_outcome(AuditOutcome.FAILURE, 504) == AuditSeverity.ERROR
        assert severity_for_outcome(AuditOutcome.DENIED, None) == AuditSeverity.WARNING


class TestAuditIntent:
    """Tests for AuditIntent."""

    def test_describe(self):
        """Test that describe stores the id as a string."""
        intent = AuditIntent()
        resource_id = uuid7()

        intent.describe("residents.update", "residents", resource_id)

        assert intent.operation == "residents.update"
        assert intent.resource_type == "residents"
        assert intent.resource_id == str(resource_id)
        assert not intent.denied

    def test_describe_keeps_existing_id(self):
        """Test that describing without an id keeps a known id."""
        intent = AuditIntent(resource_id="abc")

        intent.describe("beds.create", "beds")

        assert intent.resource_id == "abc"


@pytest.mark.asyncio
class TestAuditLogger:
    """Tests for writing and querying audit events."""

    async def test_log_event(self, db_session):
        """Test that an event is written with derived severity."""
        audit = AuditLogger(db_session)
        request_id = uuid7()
        tenant_id = uuid7()

        event = await audit.log_event(
            "residents.create",
            request_id=request_id,
            tenant_id=tenant_id,
            actor_id=uuid7(),
            resource_type="residents",
            resource_id="r-1",
            status_code=201,
            event_data={"version": 1},
        )

        assert event.audit_id is not None
        assert event.outcome == "success"
        assert event.severity == "info"
        assert event.event_data == {"version": 1}
        assert event.created_at is not None

    async def test_log_failure_severity(self, db_session):
        """Test that a server failure is recorded as an error."""
        event = await AuditLogger(db_session).log_event(
            "beds.update", request_id=uuid7(), outcome="failure", status_code=504
        )

        assert event.severity == "error"

    async def test_unauthenticated_event_has_no_tenant(self, db_session):
        """Test that events without a tenant or actor can be written."""
        event = await AuditLogger(db_session).log_event(
            "http.post", request_id=uuid7(), outcome=AuditOutcome.UNAUTHENTICATED, status_code=401
        )

        assert event.tenant_id is None
        assert event.actor_id is None

    async def test_invalid_outcome_rejected(self, db_session):
        """Test that unknown outcomes are rejected."""
        with pytest.raises(ValueError):
            await AuditLogger(db_session).log_event("x", request_id=uuid7(), outcome="maybe")

    async def test_query_filters(self, db_session):
        """Test filtering by tenant, request and outcome."""
        audit = AuditLogger(db_session)
        tenant_a, tenant_b = uuid7(), uuid7()
        request_id = uuid7()
        await audit.log_event("residents.create", request_id=request_id, tenant_id=tenant_a)
        await audit.log_event(
            "residents.update", request_id=uuid7(), tenant_id=tenant_a, outcome="denied"
        )
        await audit.log_event("beds.create", request_id=uuid7(), tenant_id=tenant_b)

        assert len(await audit.query_events(tenant_id=tenant_a)) == 2
        assert await audit.count_events(tenant_id=tenant_b) == 1
        by_request = await audit.query_events(request_id=request_id)
        assert [e.operation for e in by_request] == ["residents.create"]
        denied = await audit.query_events(tenant_id=tenant_a, outcome=AuditOutcome.DENIED)
        assert [e.operation for e in denied] == ["residents.update"]

    async def test_query_newest_first(self, db_session):
        """Test that events come back newest first."""
        audit = AuditLogger(db_session)
        tenant_id = uuid7()
        for op in ("first", "second", "third"):
            await audit.log_event(op, request_id=uuid7(), tenant_id=tenant_id)

        events = await audit.query_events(tenant_id=tenant_id)

        assert [e.operation for e in events] == ["third", "second", "first"]

    async def test_query_pagination(self, db_session):
        """Test limit and offset."""
        audit = AuditLogger(db_session)
        tenant_id = uuid7()
        for i in range(5):
            await audit.log_event(f"op.{i}", request_id=uuid7(), tenant_id=tenant_id)

        page = await audit.query_events(limit=2, offset=2, tenant_id=tenant_id)

        assert len(page) == 2
        assert MAX_QUERY_LIMIT == 1000

    async def test_logger_has_no_mutation_api(self):
        """Test that the audit logger exposes no update or delete path."""
        assert not hasattr(AuditLogger, "update_event")
        assert not hasattr(AuditLogger, "delete_event")
