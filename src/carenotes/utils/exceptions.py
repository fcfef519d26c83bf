"""Base exceptions for CareNotes."""


class CareNotesError(Exception):
    """Base exception for all CareNotes errors."""

    pass


class ConfigurationError(CareNotesError):
    """Error in configuration or settings."""

    pass
