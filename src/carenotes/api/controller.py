"""Resource controller: translation between HTTP shapes and the resource service.

The controller parses input into schemas, records the audit intent, calls
the service and shapes the response, redacting sensitive fields the
caller may not see. It holds no business rules and never touches the
database session.
"""

from collections.abc import Mapping
from typing import Any, Literal
from uuid import UUID

import pydantic
from pydantic import BaseModel, Field

from carenotes.api.schemas.suggestion import SuggestionResponse
from carenotes.core.audit import AuditIntent
from carenotes.core.context import RequestContext
from carenotes.core.exceptions import ValidationError
from carenotes.core.lifecycle import LifecycleStatus
from carenotes.core.permissions import Operation
from carenotes.core.tenant import field_errors_from_pydantic
from carenotes.resources.definitions import ResourceDefinition
from carenotes.resources.service import Page, ResourceService


class ListQuery(BaseModel):
    """Query parameters shared by every list endpoint.

    ``page_size`` is not bounded here; the service clamps it.
    """

    page: int = Field(1, ge=1)
    page_size: int | None = None
    search: str | None = Field(None, max_length=200)
    sort: str | None = None
    order: Literal["asc", "desc"] = "asc"


def parse_query(schema: type[BaseModel], params: Mapping[str, str]) -> BaseModel:
    """Validate query parameters, raising ValidationError with a field breakdown."""
    known = {k: v for k, v in params.items() if k in schema.model_fields}
    try:
        return schema.model_validate(known)
    except pydantic.ValidationError as e:
        raise ValidationError("Invalid query parameters", field_errors_from_pydantic(e)) from e


class ResourceController:
    """Serves one resource definition for one request."""

    def __init__(
        self,
        definition: ResourceDefinition,
        service: ResourceService,
        ctx: RequestContext,
        intent: AuditIntent,
    ):
        self.definition = definition
        self.service = service
        self.ctx = ctx
        self.intent = intent

    @property
    def name(self) -> str:
        return self.definition.name

    def can_read_sensitive(self) -> bool:
        return self.ctx.can(self.name, Operation.READ_SENSITIVE)

    def render(self, obj: Any) -> dict[str, Any]:
        """Serialize a record, nulling sensitive fields the caller may not read."""
        data = self.definition.response_schema.model_validate(obj).model_dump(mode="json")
        if not self.can_read_sensitive():
            for name in self.definition.sensitive_fields:
                if name in data:
                    data[name] = None
        return data

    def render_page(self, page: Page) -> dict[str, Any]:
        return {
            "items": [self.render(item) for item in page.items],
            "page": page.page,
            "page_size": page.page_size,
            "total": page.total,
            "total_pages": page.total_pages,
            "has_next": page.has_next,
            "has_previous": page.has_previous,
        }

    async def create(self, payload: BaseModel) -> dict[str, Any]:
        self.intent.describe(f"{self.name}.create", self.name)
        obj = await self.service.create(payload, self.ctx)
        self.intent.resource_id = str(obj.id)
        self.intent.event_data["version"] = obj.version
        return self.render(obj)

    async def get(self, resource_id: UUID) -> dict[str, Any]:
        obj = await self.service.get(resource_id, self.ctx)
        return self.render(obj)

    async def list(self, params: Mapping[str, str]) -> dict[str, Any]:
        query = parse_query(ListQuery, params)
        page = await self.service.list(
            self.ctx,
            page=query.page,
            page_size=query.page_size,
            filters=params,
            search=query.search,
            sort=query.sort,
            descending=query.order == "desc",
        )
        return self.render_page(page)

    async def update(
        self, resource_id: UUID, payload: BaseModel, *, replace: bool = False
    ) -> dict[str, Any]:
        # a status change to archived is audited as an archive
        archiving = getattr(payload, "status", None) is LifecycleStatus.ARCHIVED
        operation = "archive" if archiving else "update"
        self.intent.describe(f"{self.name}.{operation}", self.name, resource_id)
        self.intent.event_data["replace"] = replace
        obj = await self.service.update(
            resource_id, payload, self.ctx, replace=replace, event_data=self.intent.event_data
        )
        self.intent.event_data["version"] = obj.version
        return self.render(obj)

    async def archive(self, resource_id: UUID) -> None:
        self.intent.describe(f"{self.name}.archive", self.name, resource_id)
        await self.service.archive(resource_id, self.ctx, event_data=self.intent.event_data)

    async def purge(self, resource_id: UUID) -> None:
        self.intent.describe(f"{self.name}.purge", self.name, resource_id)
        await self.service.purge(resource_id, self.ctx)

    async def suggestion(self, resource_id: UUID) -> SuggestionResponse:
        suggestion = await self.service.suggest(resource_id, self.ctx)
        return SuggestionResponse(resource_id=resource_id, suggestion=suggestion)
