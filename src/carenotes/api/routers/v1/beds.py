"""Bed endpoints beyond the generic resource routes."""

from typing import Annotated

from fastapi import APIRouter, Depends

from carenotes.api.dependencies import require_capability
from carenotes.api.routers.v1.resources import ServiceFactory, create_resource_router
from carenotes.core.context import RequestContext
from carenotes.db.schemas.bed import BedAvailability, BedResponse
from carenotes.resources.beds import BEDS, BedService
from carenotes.resources.definitions import ResourceDefinition


def register_bed_routes(
    router: APIRouter, definition: ResourceDefinition, service_factory: ServiceFactory
) -> None:
    @router.get(
        "/availability",
        response_model=BedAvailability,
        summary="Active beds with no resident assigned",
    )
    async def bed_availability(
        ctx: Annotated[RequestContext, Depends(require_capability(definition.name, "read"))],
        service: Annotated[BedService, Depends(service_factory)],
    ) -> BedAvailability:
        beds = await service.availability(ctx)
        return BedAvailability(
            total=len(beds), beds=[BedResponse.model_validate(bed) for bed in beds]
        )


router = create_resource_router(BEDS, extensions=[register_bed_routes])
