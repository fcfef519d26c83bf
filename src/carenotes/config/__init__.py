"""Configuration module for CareNotes."""

from carenotes.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
