"""Pydantic schemas for persisted entities."""
