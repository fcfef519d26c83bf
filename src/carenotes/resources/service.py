"""Generic resource service.

Business rules and persistence for one resource type. Services receive
the caller's ``RequestContext`` and never trust tenant or actor values
from client input.

Usage:
    service = ResidentService(db, RESIDENTS, settings)
    resident = await service.create(payload, ctx)
    page = await service.list(ctx, page=1, page_size=20)
"""

import asyncio
import math
from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar
from uuid import UUID

import pydantic
from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from carenotes.config.settings import Settings
from carenotes.core.context import RequestContext
from carenotes.core.exceptions import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    PersistenceTimeoutError,
    ValidationError,
)
from carenotes.core.lifecycle import (
    INITIAL_STATES,
    LifecycleStatus,
    assert_mutable,
    assert_transition,
)
from carenotes.core.logging import get_logger
from carenotes.core.permissions import Operation
from carenotes.core.suggestions import Suggestion, SuggestionContext, SuggestionProvider
from carenotes.core.tenant import field_errors_from_pydantic
from carenotes.db.models.base import Base, utc_now
from carenotes.db.repositories.base import TenantScopedRepository
from carenotes.observability.metrics import observe_resource_operation, record_persistence_timeout
from carenotes.resources.definitions import ResourceDefinition

logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=Base)

AUDIT_FIELDS = frozenset(
    {"id", "tenant_id", "version", "created_at", "created_by", "updated_at", "updated_by"}
)


def column_values(data: Mapping[str, Any]) -> dict[str, Any]:
    """Unwrap enum members so values bind as plain column values."""
    return {k: (v.value if isinstance(v, Enum) else v) for k, v in data.items()}


@dataclass
class Page(Generic[ModelT]):
    """One page of a tenant-scoped listing."""

    items: list[ModelT]
    page: int
    page_size: int
    total: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.page_size) if self.total else 0

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_previous(self) -> bool:
        return self.page > 1


class ResourceService(Generic[ModelT]):
    """CRUD, lifecycle and listing for one resource definition.

    Subclasses add resource rules through ``validate_create``,
    ``validate_update``, ``before_archive`` and ``before_purge``.

    Every persistence call runs under ``DATABASE_TIMEOUT_SECONDS``; failed
    writes roll the session back before the error propagates.
    """

    def __init__(
        self,
        db: AsyncSession,
        definition: ResourceDefinition,
        settings: Settings,
        suggestions: SuggestionProvider | None = None,
    ):
        self.db = db
        self.definition = definition
        self.settings = settings
        self.suggestions = suggestions

    @property
    def model(self) -> type[ModelT]:
        return self.definition.model

    def repository(self, ctx: RequestContext) -> TenantScopedRepository[ModelT]:
        return TenantScopedRepository(self.db, self.model, ctx.tenant_id)

    # =========================================================================
    # Hooks
    # =========================================================================

    async def validate_create(self, values: dict[str, Any], ctx: RequestContext) -> dict[str, Any]:
        """Check and normalise values for a new record.

        Raises:
            ValidationError: If a business rule is violated
        """
        return values

    async def validate_update(
        self, obj: ModelT, changes: dict[str, Any], ctx: RequestContext
    ) -> dict[str, Any]:
        """Check and normalise changes against the stored record.

        Raises:
            ValidationError: If a business rule is violated
        """
        return changes

    async def before_archive(self, obj: ModelT, ctx: RequestContext) -> None:
        """Refuse an archive that would break a business rule."""

    async def before_purge(self, obj: ModelT, ctx: RequestContext) -> None:
        """Refuse a purge that would break a business rule."""

    # =========================================================================
    # Persistence guard
    # =========================================================================

    async def _rollback(self) -> None:
        try:
            await self.db.rollback()
        except Exception:
            logger.exception("rollback_failed", resource=self.definition.name)

    @asynccontextmanager
    async def _persistence(self, operation: str, *, write: bool) -> AsyncIterator[None]:
        """Bound a unit of persistence work and translate storage failures."""
        timeout = self.settings.DATABASE_TIMEOUT_SECONDS
        try:
            async with asyncio.timeout(timeout):
                yield
        except TimeoutError as e:
            record_persistence_timeout(f"{self.definition.name}.{operation}")
            await self._rollback()
            raise PersistenceTimeoutError(f"{self.definition.name}.{operation}", timeout) from e
        except StaleDataError as e:
            await self._rollback()
            raise ConflictError() from e
        except IntegrityError as e:
            await self._rollback()
            logger.warning(
                "integrity_conflict", resource=self.definition.name, operation=operation
            )
            raise ConflictError("Resource conflicts with an existing record") from e
        except BaseException:
            if write:
                await self._rollback()
            raise

    def _parse(self, schema: type[BaseModel], data: BaseModel | Mapping[str, Any]) -> BaseModel:
        if isinstance(data, schema):
            return data
        if isinstance(data, BaseModel):
            data = data.model_dump(exclude_unset=True)
        try:
            return schema.model_validate(data)
        except pydantic.ValidationError as e:
            raise ValidationError(
                f"Invalid {self.definition.singular}", field_errors_from_pydantic(e)
            ) from e

    async def _get_or_404(self, resource_id: UUID, ctx: RequestContext) -> ModelT:
        obj = await self.repository(ctx).get(resource_id)
        if obj is None:
            raise NotFoundError(self.definition.name, resource_id)
        return obj

    # =========================================================================
    # Operations
    # =========================================================================

    async def create(self, data: BaseModel | Mapping[str, Any], ctx: RequestContext) -> ModelT:
        """Validate and persist a new record owned by the caller's tenant.

        Raises:
            ValidationError: If input is malformed or violates a rule
        """
        payload = self._parse(self.definition.create_schema, data)
        values = column_values(
            {k: v for k, v in payload.model_dump().items() if k not in AUDIT_FIELDS}
        )
        status = LifecycleStatus(values.pop("status", LifecycleStatus.DRAFT))
        if status not in INITIAL_STATES:
            raise ValidationError.for_field(
                "status",
                f"New {self.definition.name} must start as one of: "
                + ", ".join(sorted(s.value for s in INITIAL_STATES)),
            )

        with observe_resource_operation(self.definition.name, "create"):
            async with self._persistence("create", write=True):
                values = await self.validate_create(values, ctx)
                now = utc_now()
                obj = self.model(
                    **values,
                    tenant_id=ctx.tenant_id,
                    status=status.value,
                    created_by=ctx.actor_id,
                    updated_by=ctx.actor_id,
                    created_at=now,
                    updated_at=now,
                )
                await self.repository(ctx).add(obj)
                await self.db.commit()

        logger.info(
            "resource_created", resource=self.definition.name, resource_id=str(obj.id)
        )
        return obj

    async def get(self, resource_id: UUID, ctx: RequestContext) -> ModelT:
        """Fetch a record of the caller's tenant.

        Raises:
            NotFoundError: If absent or owned by another tenant
        """
        with observe_resource_operation(self.definition.name, "get"):
            async with self._persistence("get", write=False):
                return await self._get_or_404(resource_id, ctx)

    async def update(
        self,
        resource_id: UUID,
        data: BaseModel | Mapping[str, Any],
        ctx: RequestContext,
        *,
        replace: bool = False,
        event_data: dict[str, Any] | None = None,
    ) -> ModelT:
        """Apply a versioned update.

        Args:
            resource_id: Target record
            data: PATCH payload, or PUT payload when ``replace`` is set
            ctx: Caller context
            replace: Treat omitted optional fields as cleared
            event_data: Filled with changed field names and any transition

        Raises:
            NotFoundError: If absent or owned by another tenant
            ConflictError: If ``version`` is stale
            AuthorizationError: If the update archives the record and the
                caller lacks the archive capability
            InvalidTransitionError: If the record is archived or the status
                change is not in the lifecycle graph
            ValidationError: If the result would violate a rule
        """
        schema = self.definition.replace_schema if replace else self.definition.patch_schema
        payload = self._parse(schema, data)
        changes = column_values(payload.model_dump(exclude_unset=not replace))
        for name in AUDIT_FIELDS - {"version"}:
            changes.pop(name, None)
        expected_version = changes.pop("version")
        requested = changes.pop("status", None)
        if requested is not None and LifecycleStatus(requested) is LifecycleStatus.ARCHIVED:
            ctx.assert_capability(self.definition.name, Operation.ARCHIVE)

        null_required = sorted(
            name for name in self.definition.required_fields if name in changes and changes[name] is None
        )
        if null_required:
            raise ValidationError(
                f"Invalid {self.definition.singular}",
                field_errors={name: ["must not be null"] for name in null_required},
            )

        with observe_resource_operation(self.definition.name, "update"):
            async with self._persistence("update", write=True):
                obj = await self._get_or_404(resource_id, ctx)
                assert_mutable(obj.status)
                if obj.version != expected_version:
                    raise ConflictError(
                        expected_version=expected_version, current_version=obj.version
                    )

                transition: tuple[str, str] | None = None
                if requested is not None and LifecycleStatus(requested).value != obj.status:
                    assert_transition(obj.status, requested)
                    transition = (obj.status, LifecycleStatus(requested).value)
                    if transition[1] == LifecycleStatus.ARCHIVED.value:
                        await self.before_archive(obj, ctx)

                changes = await self.validate_update(obj, changes, ctx)
                changed = [name for name, value in changes.items() if getattr(obj, name) != value]
                for name in changed:
                    setattr(obj, name, changes[name])
                if transition is not None:
                    obj.status = transition[1]

                obj.updated_by = ctx.actor_id
                obj.updated_at = utc_now()
                await self.db.flush()
                await self.db.commit()

        if event_data is not None:
            event_data["changed_fields"] = sorted(changed)
            if transition is not None:
                event_data["transition"] = {"from": transition[0], "to": transition[1]}
        logger.info(
            "resource_updated",
            resource=self.definition.name,
            resource_id=str(obj.id),
            version=obj.version,
        )
        return obj

    async def list(
        self,
        ctx: RequestContext,
        *,
        page: int = 1,
        page_size: int | None = None,
        filters: Mapping[str, str] | None = None,
        search: str | None = None,
        sort: str | None = None,
        descending: bool = False,
    ) -> Page[ModelT]:
        """List the caller's tenant records.

        ``page_size`` is clamped to the server maximum whatever the caller
        asks for. Archived records are excluded unless ``status=archived``.

        Raises:
            ValidationError: If a filter value or the sort column is invalid
        """
        page = max(page, 1)
        size = self.settings.clamp_page_size(page_size)
        parsed = self.definition.parse_filters(filters or {})
        order_by = self.definition.check_sort(sort)
        term = search.strip() if search else None

        with observe_resource_operation(self.definition.name, "list"):
            async with self._persistence("list", write=False):
                items, total = await self.repository(ctx).page(
                    filters=parsed,
                    search=term or None,
                    search_columns=self.definition.search_columns,
                    order_by=order_by,
                    descending=descending,
                    limit=size,
                    offset=(page - 1) * size,
                )
        return Page(items=items, page=page, page_size=size, total=total)

    async def archive(
        self,
        resource_id: UUID,
        ctx: RequestContext,
        *,
        event_data: dict[str, Any] | None = None,
    ) -> ModelT:
        """Move a record to ``archived``. Archiving twice is a no-op.

        Raises:
            NotFoundError: If absent or owned by another tenant
        """
        with observe_resource_operation(self.definition.name, "archive"):
            async with self._persistence("archive", write=True):
                obj = await self._get_or_404(resource_id, ctx)
                if obj.status == LifecycleStatus.ARCHIVED.value:
                    if event_data is not None:
                        event_data["already_archived"] = True
                    return obj

                previous = obj.status
                assert_transition(previous, LifecycleStatus.ARCHIVED)
                await self.before_archive(obj, ctx)
                obj.status = LifecycleStatus.ARCHIVED.value
                obj.updated_by = ctx.actor_id
                obj.updated_at = utc_now()
                await self.db.flush()
                await self.db.commit()

        if event_data is not None:
            event_data["transition"] = {"from": previous, "to": LifecycleStatus.ARCHIVED.value}
        logger.info("resource_archived", resource=self.definition.name, resource_id=str(obj.id))
        return obj

    async def purge(self, resource_id: UUID, ctx: RequestContext) -> None:
        """Permanently delete an archived record. Audit history is kept.

        Raises:
            NotFoundError: If absent or owned by another tenant
            InvalidTransitionError: If the record is not archived
        """
        with observe_resource_operation(self.definition.name, "purge"):
            async with self._persistence("purge", write=True):
                obj = await self._get_or_404(resource_id, ctx)
                if obj.status != LifecycleStatus.ARCHIVED.value:
                    raise InvalidTransitionError(
                        obj.status,
                        "purged",
                        message=f"Only archived {self.definition.name} can be purged",
                    )
                await self.before_purge(obj, ctx)
                await self.repository(ctx).delete(obj)
                await self.db.commit()

        logger.warning("resource_purged", resource=self.definition.name, resource_id=str(resource_id))

    def suggestion_attributes(self, obj: ModelT) -> dict[str, Any]:
        """Non-sensitive fields shared with the suggestion collaborator."""
        data = self.definition.response_schema.model_validate(obj).model_dump(mode="json")
        excluded = self.definition.sensitive_fields | AUDIT_FIELDS | {"status"}
        return {k: v for k, v in data.items() if k not in excluded}

    async def suggest(self, resource_id: UUID, ctx: RequestContext) -> Suggestion | None:
        """Ask the optional collaborator about a record.

        Returns None when no collaborator is configured or it fails.

        Raises:
            NotFoundError: If absent or owned by another tenant
        """
        obj = await self.get(resource_id, ctx)
        if self.suggestions is None:
            return None

        context = SuggestionContext(
            tenant_id=ctx.tenant_id,
            resource_type=self.definition.name,
            resource_id=obj.id,
            status=obj.status,
            attributes=self.suggestion_attributes(obj),
        )
        try:
            async with asyncio.timeout(self.settings.SUGGESTIONS_TIMEOUT_SECONDS):
                return await self.suggestions.suggest(context)
        except TimeoutError:
            logger.warning("suggestion_timeout", resource=self.definition.name)
            return None
        except Exception:
            logger.exception("suggestion_failed", resource=self.definition.name)
            return None
