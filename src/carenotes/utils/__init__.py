"""Utility modules for CareNotes."""

from carenotes.utils.exceptions import CareNotesError, ConfigurationError

__all__ = [
    "CareNotesError",
    "ConfigurationError",
]
