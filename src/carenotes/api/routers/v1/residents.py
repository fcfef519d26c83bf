"""Resident endpoints beyond the generic resource routes."""

from typing import Annotated

from fastapi import APIRouter, Depends

from carenotes.api.dependencies import require_capability
from carenotes.api.routers.v1.resources import ServiceFactory, create_resource_router
from carenotes.core.context import RequestContext
from carenotes.db.schemas.resident import ResidentStatistics
from carenotes.resources.definitions import ResourceDefinition
from carenotes.resources.residents import RESIDENTS, ResidentService


def register_resident_routes(
    router: APIRouter, definition: ResourceDefinition, service_factory: ServiceFactory
) -> None:
    @router.get(
        "/statistics",
        response_model=ResidentStatistics,
        summary="Resident counts by status and care level",
    )
    async def resident_statistics(
        ctx: Annotated[RequestContext, Depends(require_capability(definition.name, "read"))],
        service: Annotated[ResidentService, Depends(service_factory)],
    ) -> ResidentStatistics:
        """Counts exclude archived residents."""
        return await service.statistics(ctx)


router = create_resource_router(RESIDENTS, extensions=[register_resident_routes])
