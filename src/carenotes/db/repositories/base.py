"""Tenant-scoped repository for resource models.

Every query issued through this class is filtered by the tenant the
repository was created for. There is no way to opt out, so a record owned
by another tenant is indistinguishable from a missing one.

Usage:
    from carenotes.db.repositories.base import TenantScopedRepository

    repo = TenantScopedRepository(db_session, Resident, tenant_id)
    resident = await repo.get(resident_id)
    items, total = await repo.page(filters={"care_level": "nursing"}, limit=20, offset=0)
"""

from collections.abc import Mapping, Sequence
from typing import Any, Generic, TypeVar
from uuid import UUID

from sqlalchemy import ColumnElement, Select, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from carenotes.core.lifecycle import LifecycleStatus
from carenotes.db.models.base import Base

ModelType = TypeVar("ModelType", bound=Base)


def escape_like(term: str) -> str:
    """Backslash-escape LIKE wildcards so the term matches literally."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class TenantScopedRepository(Generic[ModelType]):
    """Generic repository bound to one model and one tenant.

    Attributes:
        db: The database session
        model: The model class (must have ``id``, ``tenant_id`` and ``status``)
        tenant_id: The tenant every query is restricted to
    """

    def __init__(self, db: AsyncSession, model: type[ModelType], tenant_id: UUID):
        self.db = db
        self.model = model
        self.tenant_id = tenant_id

    def _scoped(self, stmt: Select) -> Select:
        return stmt.where(self.model.tenant_id == self.tenant_id)

    def select(self) -> Select:
        """A SELECT of the model already restricted to the tenant."""
        return self._scoped(select(self.model))

    async def get(self, pk: UUID) -> ModelType | None:
        """Get a record by id, or None if absent or owned by another tenant."""
        result = await self.db.execute(self.select().where(self.model.id == pk))
        return result.scalar_one_or_none()

    async def find_one(self, *conditions: ColumnElement[bool]) -> ModelType | None:
        result = await self.db.execute(self.select().where(*conditions).limit(1))
        return result.scalars().first()

    async def exists(
        self, *conditions: ColumnElement[bool], exclude_id: UUID | None = None
    ) -> bool:
        """Check whether any tenant record matches the conditions.

        Args:
            conditions: Extra WHERE clauses
            exclude_id: Ignore this record (the one being updated)
        """
        stmt = self._scoped(select(func.count(self.model.id))).where(*conditions)
        if exclude_id is not None:
            stmt = stmt.where(self.model.id != exclude_id)
        result = await self.db.execute(stmt)
        return (result.scalar() or 0) > 0

    def _apply_listing(
        self,
        stmt: Select,
        filters: Mapping[str, Any],
        search: str | None,
        search_columns: Sequence[str],
    ) -> Select:
        for name, value in filters.items():
            stmt = stmt.where(getattr(self.model, name) == value)

        # Archived rows are hidden unless explicitly asked for
        if "status" not in filters:
            stmt = stmt.where(self.model.status != LifecycleStatus.ARCHIVED.value)

        if search and search_columns:
            pattern = f"%{escape_like(search.lower())}%"
            stmt = stmt.where(
                or_(
                    *(
                        func.lower(getattr(self.model, col)).like(pattern, escape="\\")
                        for col in search_columns
                    )
                )
            )
        return stmt

    async def page(
        self,
        *,
        filters: Mapping[str, Any] | None = None,
        search: str | None = None,
        search_columns: Sequence[str] = (),
        order_by: str = "created_at",
        descending: bool = False,
        limit: int,
        offset: int,
    ) -> tuple[list[ModelType], int]:
        """List tenant records with filtering, search and pagination.

        Args:
            filters: Column equality filters (names must be model attributes)
            search: Case-insensitive substring matched against search_columns
            search_columns: Columns the search term applies to
            order_by: Column to sort on; ``id`` breaks ties
            descending: Sort direction
            limit: Page size
            offset: Rows to skip

        Returns:
            Tuple of (records on this page, total matching records)
        """
        filters = filters or {}

        count_stmt = self._apply_listing(
            self._scoped(select(func.count(self.model.id))), filters, search, search_columns
        )
        total = (await self.db.execute(count_stmt)).scalar() or 0

        column = getattr(self.model, order_by)
        ordering = (column.desc(), self.model.id.desc()) if descending else (column, self.model.id)
        stmt = (
            self._apply_listing(self.select(), filters, search, search_columns)
            .order_by(*ordering)
            .limit(limit)
            .offset(offset)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all()), total

    async def count_by(self, column: str, *, include_archived: bool = False) -> dict[str, int]:
        """Count tenant records grouped by a column."""
        col = getattr(self.model, column)
        stmt = self._scoped(select(col, func.count(self.model.id))).group_by(col)
        if not include_archived:
            stmt = stmt.where(self.model.status != LifecycleStatus.ARCHIVED.value)
        result = await self.db.execute(stmt)
        return {str(key): count for key, count in result.all()}

    async def add(self, obj: ModelType) -> ModelType:
        """Stage a new record and flush it. The caller commits."""
        if obj.tenant_id != self.tenant_id:
            raise ValueError("Record tenant does not match repository tenant")
        self.db.add(obj)
        await self.db.flush()
        return obj

    async def delete(self, obj: ModelType) -> None:
        """Delete a record and flush. The caller commits."""
        if obj.tenant_id != self.tenant_id:
            raise ValueError("Record tenant does not match repository tenant")
        await self.db.delete(obj)
        await self.db.flush()
