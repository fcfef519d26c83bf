"""Repositories: the only code that issues queries for resource models."""

from carenotes.db.repositories.base import TenantScopedRepository

__all__ = ["TenantScopedRepository"]
