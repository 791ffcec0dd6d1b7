"""Base model for transit API payloads.

Every entity model inherits from :class:`TransitBaseModel` which provides:

* ``alias_generator=to_camel`` so camelCase API keys map
  automatically to snake_case fields.
* A ``model_validator(mode="before")`` that strips placeholder values
  (``""``, ``"--"``, NaN) so the field default is used.
* A ``raw`` dict that captures the original payload.
"""

from __future__ import annotations

import math
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from transitmap.ingestion.normalize import parse_coordinates, safe_str, to_int_set
from transitmap.models.geo import LatLng

_SENTINELS = frozenset({"", "--", "NaN", "nan"})


def parse_location(value: Any) -> LatLng | None:
    """Coerce a payload location into a :class:`LatLng` or ``None``."""
    if value is None or isinstance(value, LatLng):
        return value
    parsed = parse_coordinates(value)
    if parsed is None:
        return None
    return LatLng(lat=parsed[0], lon=parsed[1])


def parse_identifier(value: Any) -> str:
    text = safe_str(value)
    if text is None:
        raise ValueError("identifier must be non-empty")
    return text


Location = Annotated[LatLng | None, BeforeValidator(parse_location)]
"""Annotated type accepting ``[lat, lon]`` pairs; unusable values become ``None``."""

Identifier = Annotated[str, BeforeValidator(parse_identifier)]
"""Annotated type coercing numeric ids to strings and rejecting empty ones."""

TypeSet = Annotated[frozenset[int], BeforeValidator(to_int_set)]
"""Annotated type coercing a scalar or list of vehicle types to a frozen set."""


class TransitBaseModel(BaseModel):
    """Base for transit API payload models.

    Handles:
    * camelCase → snake_case via ``alias_generator=to_camel``
    * placeholder values (``""``, ``"--"``, NaN) → dropped so
      the field default is used instead
    * Stashes the original API dict in ``raw``
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    raw: dict[str, Any] = Field(default_factory=dict, exclude=True, repr=False)
    """Original API payload."""

    @model_validator(mode="before")
    @classmethod
    def _clean_values(cls, values: Any) -> Any:
        """Strip placeholder values and stash the raw payload."""
        if not isinstance(values, dict):
            return values
        cleaned: dict[str, Any] = {}
        for key, value in values.items():
            if value is None:
                continue
            if isinstance(value, str) and value.strip() in _SENTINELS:
                continue
            if isinstance(value, float) and math.isnan(value):
                continue
            cleaned[key] = value
        # Keep the caller's raw when constructing with kwargs.
        if "raw" not in values:
            cleaned["raw"] = dict(values)
        return cleaned
