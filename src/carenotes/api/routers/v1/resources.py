"""Generic resource router.

``create_resource_router`` binds the standard endpoints for one resource
definition:

- POST   /{resource}                      create
- GET    /{resource}                      list
- GET    /{resource}/{id}                 get
- PUT    /{resource}/{id}                 full update
- PATCH  /{resource}/{id}                 partial update
- DELETE /{resource}/{id}                 archive
- DELETE /{resource}/{id}/purge           hard delete of an archived record
- GET    /{resource}/{id}/suggestion      optional collaborator suggestion
"""

from collections.abc import Callable, Sequence
from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Depends, Request, Response, status

from carenotes.api.controller import ResourceController
from carenotes.api.dependencies import require_capability, service_dependency
from carenotes.api.middleware.audit import get_audit_intent
from carenotes.api.schemas.errors import APIError
from carenotes.api.schemas.pagination import PageResponse
from carenotes.api.schemas.suggestion import SuggestionResponse
from carenotes.core.context import RequestContext
from carenotes.core.permissions import Operation
from carenotes.resources.definitions import ResourceDefinition
from carenotes.resources.service import ResourceService

ServiceFactory = Callable[..., ResourceService]
RouterExtension = Callable[[APIRouter, ResourceDefinition, ServiceFactory], None]

ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: {"model": APIError, "description": "Validation error"},
    401: {"model": APIError, "description": "Missing or invalid credential"},
    403: {"model": APIError, "description": "Missing capability"},
    404: {"model": APIError, "description": "Not found in the caller's tenant"},
    504: {"model": APIError, "description": "Persistence timeout"},
}

WRITE_RESPONSES: dict[int | str, dict[str, Any]] = {
    **ERROR_RESPONSES,
    409: {"model": APIError, "description": "Invalid transition or stale version"},
}


def create_resource_router(
    definition: ResourceDefinition,
    service_factory: ServiceFactory | None = None,
    *,
    extensions: Sequence[RouterExtension] = (),
) -> APIRouter:
    """Build the router serving one resource collection.

    Args:
        definition: The resource to serve
        service_factory: FastAPI dependency returning the resource service
            (default: build the definition's service per request)
        extensions: Callables registering extra collection-level routes.
            They run before the ``/{id}`` routes so their paths win.

    Returns:
        Router to include under ``/api/v1``
    """
    service_factory = service_factory or service_dependency(definition)
    name = definition.name
    router = APIRouter(prefix=f"/{name}", tags=[name])

    create_schema = definition.create_schema
    replace_schema = definition.replace_schema
    patch_schema = definition.patch_schema
    response_schema = definition.response_schema

    def controller_for(operation: Operation) -> Callable[..., ResourceController]:
        def dependency(
            request: Request,
            ctx: Annotated[RequestContext, Depends(require_capability(name, operation))],
            service: Annotated[ResourceService, Depends(service_factory)],
        ) -> ResourceController:
            return ResourceController(definition, service, ctx, get_audit_intent(request))

        dependency.__name__ = f"{name}_{operation.value}_controller"
        return dependency

    Creator = Annotated[ResourceController, Depends(controller_for(Operation.CREATE))]
    Reader = Annotated[ResourceController, Depends(controller_for(Operation.READ))]
    Updater = Annotated[ResourceController, Depends(controller_for(Operation.UPDATE))]
    Archiver = Annotated[ResourceController, Depends(controller_for(Operation.ARCHIVE))]
    Purger = Annotated[ResourceController, Depends(controller_for(Operation.PURGE))]

    for extend in extensions:
        extend(router, definition, service_factory)

    @router.post(
        "",
        response_model=response_schema,
        status_code=status.HTTP_201_CREATED,
        summary=f"Create a {definition.singular}",
        responses=ERROR_RESPONSES,
    )
    async def create_resource(payload: create_schema, controller: Creator) -> dict[str, Any]:
        return await controller.create(payload)

    @router.get(
        "",
        response_model=PageResponse[response_schema],
        summary=f"List {name}",
        description=(
            "Tenant-scoped, paginated listing. `page_size` is clamped to the "
            "server maximum. Archived records are excluded unless "
            "`status=archived` is requested. Filters: "
            + ", ".join(f"`{f}`" for f in definition.filters)
        ),
        responses=ERROR_RESPONSES,
    )
    async def list_resources(request: Request, controller: Reader) -> dict[str, Any]:
        return await controller.list(request.query_params)

    @router.get(
        "/{resource_id}",
        response_model=response_schema,
        summary=f"Get a {definition.singular}",
        responses=ERROR_RESPONSES,
    )
    async def get_resource(resource_id: UUID, controller: Reader) -> dict[str, Any]:
        return await controller.get(resource_id)

    @router.put(
        "/{resource_id}",
        response_model=response_schema,
        summary=f"Replace a {definition.singular}",
        responses=WRITE_RESPONSES,
    )
    async def replace_resource(
        resource_id: UUID, payload: replace_schema, controller: Updater
    ) -> dict[str, Any]:
        return await controller.update(resource_id, payload, replace=True)

    @router.patch(
        "/{resource_id}",
        response_model=response_schema,
        summary=f"Update a {definition.singular}",
        responses=WRITE_RESPONSES,
    )
    async def patch_resource(
        resource_id: UUID, payload: patch_schema, controller: Updater
    ) -> dict[str, Any]:
        return await controller.update(resource_id, payload)

    @router.delete(
        "/{resource_id}",
        status_code=status.HTTP_204_NO_CONTENT,
        response_class=Response,
        summary=f"Archive a {definition.singular}",
        responses=WRITE_RESPONSES,
    )
    async def archive_resource(resource_id: UUID, controller: Archiver) -> Response:
        await controller.archive(resource_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @router.delete(
        "/{resource_id}/purge",
        status_code=status.HTTP_204_NO_CONTENT,
        response_class=Response,
        summary=f"Permanently delete an archived {definition.singular}",
        responses=WRITE_RESPONSES,
    )
    async def purge_resource(resource_id: UUID, controller: Purger) -> Response:
        await controller.purge(resource_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @router.get(
        "/{resource_id}/suggestion",
        response_model=SuggestionResponse,
        summary=f"Ask the suggestion collaborator about a {definition.singular}",
        responses=ERROR_RESPONSES,
    )
    async def resource_suggestion(resource_id: UUID, controller: Reader) -> SuggestionResponse:
        return await controller.suggestion(resource_id)

    return router
