"""Registered resource types."""

from sqlalchemy.ext.asyncio import AsyncSession

from carenotes.config.settings import Settings
from carenotes.core.suggestions import SuggestionProvider
from carenotes.resources.beds import BEDS
from carenotes.resources.definitions import ResourceDefinition
from carenotes.resources.residents import RESIDENTS
from carenotes.resources.service import ResourceService

RESOURCES: dict[str, ResourceDefinition] = {d.name: d for d in (RESIDENTS, BEDS)}


def build_service(
    definition: ResourceDefinition,
    db: AsyncSession,
    settings: Settings,
    suggestions: SuggestionProvider | None = None,
) -> ResourceService:
    """Instantiate the service class a definition names."""
    return definition.service_class(db, definition, settings, suggestions)
