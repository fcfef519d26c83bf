"""Declarative description of a resource type.

A ``ResourceDefinition`` is everything the generic service, controller and
router need to serve one resource collection. Adding a resource type means
adding a model, its schemas and one definition.
"""

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any
from uuid import UUID

from pydantic import BaseModel

from carenotes.core.exceptions import ValidationError
from carenotes.core.lifecycle import LifecycleStatus
from carenotes.db.models.base import Base

if TYPE_CHECKING:
    from carenotes.resources.service import ResourceService

FilterParser = Callable[[str], Any]


@dataclass(frozen=True)
class ResourceDefinition:
    """Static description of one resource collection.

    Attributes:
        name: Collection name used in paths, capabilities and audit (``residents``)
        model: SQLAlchemy model
        create_schema: Body schema for POST
        replace_schema: Body schema for PUT (all fields plus version)
        patch_schema: Body schema for PATCH (optional fields plus version)
        response_schema: Outgoing representation
        service_class: Service type implementing resource rules
        required_fields: Columns a PATCH may not set to null
        sensitive_fields: Redacted unless the caller can ``read_sensitive``
        filters: Query parameters allowed as equality filters, with parsers
        sortable: Columns allowed in ``sort``
        search_columns: Columns matched by the ``search`` term
        default_sort: Sort column when none is requested
    """

    name: str
    model: type[Base]
    create_schema: type[BaseModel]
    replace_schema: type[BaseModel]
    patch_schema: type[BaseModel]
    response_schema: type[BaseModel]
    service_class: type["ResourceService"]
    required_fields: frozenset[str] = frozenset()
    sensitive_fields: frozenset[str] = frozenset()
    filters: Mapping[str, FilterParser] = field(default_factory=dict)
    sortable: tuple[str, ...] = ("created_at", "updated_at")
    search_columns: tuple[str, ...] = ()
    default_sort: str = "created_at"

    @property
    def singular(self) -> str:
        return self.name.removesuffix("s")

    def parse_filters(self, raw: Mapping[str, str]) -> dict[str, Any]:
        """Parse whitelisted filter query parameters.

        Unknown keys are ignored. Values that do not parse raise a
        ValidationError naming every bad parameter.

        Raises:
            ValidationError: If a filter value is malformed
        """
        parsed: dict[str, Any] = {}
        errors: dict[str, list[str]] = {}
        for name, parser in self.filters.items():
            value = raw.get(name)
            if value is None or value == "":
                continue
            try:
                result = parser(value)
            except ValueError:
                errors.setdefault(name, []).append(f"Invalid value for filter '{name}': {value}")
                continue
            parsed[name] = result.value if isinstance(result, Enum) else result
        if errors:
            raise ValidationError("Invalid filter parameters", field_errors=errors)
        return parsed

    def check_sort(self, sort: str | None) -> str:
        """Return the sort column, rejecting anything not whitelisted.

        Raises:
            ValidationError: If the column is not sortable
        """
        if sort is None:
            return self.default_sort
        if sort not in self.sortable:
            raise ValidationError.for_field(
                "sort", f"Cannot sort by '{sort}'. Allowed: {', '.join(self.sortable)}"
            )
        return sort


def status_filter(value: str) -> LifecycleStatus:
    return LifecycleStatus(value)


def uuid_filter(value: str) -> UUID:
    return UUID(value)
