"""Audit logging service for accountability of mutations.

The HTTP layer records *what* a request intends to do in an ``AuditIntent``
on ``request.state``; the audit middleware turns the intent plus the final
response into exactly one ``AuditEvent``.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from carenotes.db.models.audit import AuditEvent, AuditOutcome, AuditSeverity

MAX_QUERY_LIMIT = 1000


@dataclass
class AuditIntent:
    """What a request is doing, filled in as the request is routed.

    Attributes:
        operation: Dotted operation name, e.g. ``residents.update``
        resource_type: Resource collection name
        resource_id: Target id once known
        denied: Set when authorization rejected the request
        event_data: Extra structured details (changed fields, transitions)
    """

    operation: str | None = None
    resource_type: str | None = None
    resource_id: str | None = None
    denied: bool = False
    event_data: dict[str, Any] = field(default_factory=dict)

    def describe(self, operation: str, resource_type: str, resource_id: Any = None) -> None:
        self.operation = operation
        self.resource_type = resource_type
        if resource_id is not None:
            self.resource_id = str(resource_id)


def outcome_for_status(status_code: int, denied: bool = False) -> AuditOutcome:
    """Classify a response status into an audit outcome."""
    if denied or status_code == 403:
        return AuditOutcome.DENIED
    if status_code == 401:
        return AuditOutcome.UNAUTHENTICATED
    if status_code < 400:
        return AuditOutcome.SUCCESS
    return AuditOutcome.FAILURE


def severity_for_outcome(outcome: AuditOutcome, status_code: int | None) -> AuditSeverity:
    if outcome == AuditOutcome.SUCCESS:
        return AuditSeverity.INFO
    if status_code is not None and status_code >= 500:
        return AuditSeverity.ERROR
    return AuditSeverity.WARNING


class AuditLogger:
    """Service for creating and querying audit events.

    Audit events are immutable, append-only records. This class offers
    no update or delete path.
    """

    def __init__(self, db: AsyncSession):
        """Initialize audit logger with database session.

        Args:
            db: Async SQLAlchemy session for database operations
        """
        self.db = db

    async def log_event(
        self,
        operation: str,
        request_id: UUID,
        outcome: AuditOutcome | str = AuditOutcome.SUCCESS,
        event_data: dict[str, Any] | None = None,
        severity: AuditSeverity | str | None = None,
        tenant_id: UUID | None = None,
        actor_id: UUID | None = None,
        resource_type: str | None = None,
        resource_id: str | None = None,
        status_code: int | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> AuditEvent:
        """Create an immutable audit log entry.

        The event is flushed, not committed; the caller owns the transaction.

        Args:
            operation: Operation name (``residents.create``, ``http.post``)
            request_id: Request id correlating the event with its request
            outcome: success, failure, denied or unauthenticated
            event_data: Structured event details (must be JSON serializable)
            severity: Severity level (default derived from outcome)
            tenant_id: Tenant ID (null when the request never authenticated)
            actor_id: Actor who triggered the event
            resource_type: Resource collection name
            resource_id: Target resource id
            status_code: HTTP status of the response
            ip_address: Client IP address
            user_agent: Client user agent string

        Returns:
            Created AuditEvent instance

        Example:
            >>> audit = AuditLogger(db_session)
            >>> event = await audit.log_event(
            ...     "residents.create",
            ...     request_id=uuid7(),
            ...     tenant_id=tenant_uuid,
            ...     actor_id=user_uuid,
            ...     resource_type="residents",
            ... )
        """
        outcome = AuditOutcome(outcome)
        if severity is None:
            severity = severity_for_outcome(outcome, status_code)

        event = AuditEvent(
            operation=operation,
            request_id=request_id,
            outcome=outcome.value,
            severity=AuditSeverity(severity).value,
            tenant_id=tenant_id,
            actor_id=actor_id,
            resource_type=resource_type,
            resource_id=resource_id,
            status_code=status_code,
            event_data=event_data or {},
            ip_address=ip_address,
            user_agent=user_agent,
        )

        self.db.add(event)
        await self.db.flush()

        return event

    def _filtered(
        self,
        query: Select,
        *,
        tenant_id: UUID | None = None,
        operation: str | None = None,
        resource_type: str | None = None,
        resource_id: str | None = None,
        request_id: UUID | None = None,
        actor_id: UUID | None = None,
        outcome: AuditOutcome | str | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> Select:
        if tenant_id is not None:
            query = query.where(AuditEvent.tenant_id == tenant_id)
        if operation is not None:
            query = query.where(AuditEvent.operation == operation)
        if resource_type is not None:
            query = query.where(AuditEvent.resource_type == resource_type)
        if resource_id is not None:
            query = query.where(AuditEvent.resource_id == resource_id)
        if request_id is not None:
            query = query.where(AuditEvent.request_id == request_id)
        if actor_id is not None:
            query = query.where(AuditEvent.actor_id == actor_id)
        if outcome is not None:
            query = query.where(AuditEvent.outcome == AuditOutcome(outcome).value)
        if start_date is not None:
            query = query.where(AuditEvent.created_at >= start_date)
        if end_date is not None:
            query = query.where(AuditEvent.created_at <= end_date)
        return query

    async def query_events(
        self,
        limit: int = 100,
        offset: int = 0,
        **filters: Any,
    ) -> list[AuditEvent]:
        """Query audit events with filters.

        Args:
            limit: Max results (capped at 1000)
            offset: Pagination offset
            **filters: tenant_id, operation, resource_type, resource_id,
                request_id, actor_id, outcome, start_date, end_date

        Returns:
            List of matching audit events, newest first
        """
        query = self._filtered(
            select(AuditEvent).order_by(
                AuditEvent.created_at.desc(),
                AuditEvent.audit_id.desc(),  # Secondary sort for equal timestamps
            ),
            **filters,
        )
        query = query.limit(min(limit, MAX_QUERY_LIMIT)).offset(offset)

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def count_events(self, **filters: Any) -> int:
        """Count audit events matching the same filters as query_events."""
        query = self._filtered(select(func.count(AuditEvent.audit_id)), **filters)
        result = await self.db.execute(query)
        return result.scalar() or 0
