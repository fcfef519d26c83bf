"""Suggestion response schema."""

from uuid import UUID

from pydantic import BaseModel

from carenotes.core.suggestions import Suggestion


class SuggestionResponse(BaseModel):
    """``suggestion`` is null when no collaborator is configured or it failed."""

    resource_id: UUID
    suggestion: Suggestion | None = None
