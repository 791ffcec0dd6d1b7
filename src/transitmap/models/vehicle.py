"""Live vehicle model."""

from __future__ import annotations

from typing import Annotated, Any

from pydantic import AliasChoices, BeforeValidator, Field, field_validator

from transitmap.ingestion.normalize import safe_float, safe_int, safe_str
from transitmap.models._base import Identifier, Location, TransitBaseModel

VehicleKey = tuple[int, str]
"""Composite identity of a vehicle within one city: ``(type, id)``."""

OptionalText = Annotated[str | None, BeforeValidator(safe_str)]


class Vehicle(TransitBaseModel):
    """A vehicle as reported by one ``positions`` snapshot.

    A vehicle lives until it is missing from the next snapshot; there is no
    explicit removal event.
    """

    type: int = Field(validation_alias=AliasChoices("type", "vehicleType"))
    """Route type of the vehicle (tram, bus, ...), as an integer code."""
    id: Identifier = Field(validation_alias=AliasChoices("id", "vehicleId"))
    """Operator vehicle id, unique per type. May contain spaces."""
    route: str = Field(default="", validation_alias=AliasChoices("route", "line"))
    """Route label shown to riders (e.g. ``"17"``)."""
    location: Location = Field(default=None, validation_alias=AliasChoices("location", "position"))
    """Current position, ``None`` when the feed has no fix."""
    bearing: float | None = Field(default=None, validation_alias=AliasChoices("bearing", "heading", "deg"))
    """Heading in degrees."""
    headsign: OptionalText = None
    brigade: OptionalText = None
    trip: OptionalText = None

    @field_validator("type", mode="before")
    @classmethod
    def _coerce_type(cls, value: Any) -> int:
        parsed = safe_int(value)
        if parsed is None:
            raise ValueError(f"vehicle type must be an integer, got {value!r}")
        return parsed

    @field_validator("route", mode="before")
    @classmethod
    def _coerce_route(cls, value: Any) -> str:
        return safe_str(value) or ""

    @field_validator("bearing", mode="before")
    @classmethod
    def _coerce_bearing(cls, value: Any) -> float | None:
        return safe_float(value)

    @property
    def key(self) -> VehicleKey:
        return self.type, self.id
