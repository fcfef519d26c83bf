"""Resource types served on the generic service/controller/router pattern."""

from carenotes.resources.beds import BEDS, BedService
from carenotes.resources.definitions import ResourceDefinition
from carenotes.resources.registry import RESOURCES, build_service
from carenotes.resources.residents import RESIDENTS, ResidentService
from carenotes.resources.service import Page, ResourceService

__all__ = [
    "BEDS",
    "RESIDENTS",
    "RESOURCES",
    "BedService",
    "Page",
    "ResidentService",
    "ResourceDefinition",
    "ResourceService",
    "build_service",
]
