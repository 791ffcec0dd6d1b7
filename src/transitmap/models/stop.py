"""Stop and bike-station models."""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, Field, field_validator, model_validator

from transitmap.ingestion.normalize import safe_str
from transitmap.models._base import Identifier, Location, TransitBaseModel, TypeSet


class Stop(TransitBaseModel):
    """A stop served by one or more vehicle types."""

    id: Identifier
    name: str = ""
    code: str | None = None
    """Short platform code, printed after the name when present."""
    location: Location = None
    types: TypeSet = Field(default_factory=frozenset, validation_alias=AliasChoices("types", "type"))
    """Vehicle types calling at this stop."""

    @field_validator("name", mode="before")
    @classmethod
    def _coerce_name(cls, value: Any) -> str:
        return safe_str(value) or ""

    @field_validator("code", mode="before")
    @classmethod
    def _coerce_code(cls, value: Any) -> str | None:
        return safe_str(value)

    @property
    def display_name(self) -> str:
        return f"{self.name} {self.code}" if self.code else self.name


class BikeStation(TransitBaseModel):
    """A bike-share station.

    The bikes endpoint sends fixed-shape tuples ``[id, name, [lat, lon], ...]``;
    mappings with the same keys are accepted too.
    """

    id: Identifier
    name: str = ""
    location: Location = None

    @model_validator(mode="before")
    @classmethod
    def _from_tuple(cls, values: Any) -> Any:
        if not isinstance(values, (list, tuple)):
            return values
        if not values:
            raise ValueError("bike station tuple is empty")
        items = list(values)
        return {
            "id": items[0],
            "name": items[1] if len(items) > 1 else None,
            "location": items[2] if len(items) > 2 else None,
            "raw": {"tuple": items},
        }

    @field_validator("name", mode="before")
    @classmethod
    def _coerce_name(cls, value: Any) -> str:
        return safe_str(value) or ""
