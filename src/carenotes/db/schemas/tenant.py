"""Tenant input schema."""

import re
from typing import Annotated

from pydantic import AfterValidator, BaseModel, Field, StringConstraints

# a-z and 0-9 in runs joined by single hyphens: "oak-lodge", "home2"
_SLUG = re.compile(r"[a-z0-9]+(?:-[a-z0-9]+)*")


def _check_slug(value: str) -> str:
    if not _SLUG.fullmatch(value):
        raise ValueError("Slug must be lowercase letters and digits joined by single hyphens")
    return value


Slug = Annotated[
    str,
    StringConstraints(strip_whitespace=True, to_lower=True, min_length=1, max_length=100),
    AfterValidator(_check_slug),
]


class TenantCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    slug: Slug
