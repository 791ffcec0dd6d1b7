"""Geographic primitives: points, bounding boxes and the map viewport."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from transitmap.ingestion.normalize import parse_coordinates


class LatLng(BaseModel):
    """A WGS84 coordinate.

    Validates from ``[lat, lon]`` sequences as well as mappings, which is
    how both the feed and the one-shot endpoints encode locations.
    """

    model_config = ConfigDict(frozen=True)

    lat: float = Field(ge=-90.0, le=90.0)
    lon: float = Field(ge=-180.0, le=180.0)

    @model_validator(mode="before")
    @classmethod
    def _from_pair(cls, values: Any) -> Any:
        if isinstance(values, (list, tuple)):
            parsed = parse_coordinates(values)
            if parsed is None:
                raise ValueError(f"invalid coordinate pair: {values!r}")
            return {"lat": parsed[0], "lon": parsed[1]}
        return values


class Bounds(BaseModel):
    """Axis-aligned geographic bounding box.

    ``west > east`` denotes a box crossing the antimeridian.
    """

    model_config = ConfigDict(frozen=True)

    south: float = Field(ge=-90.0, le=90.0)
    west: float = Field(ge=-180.0, le=180.0)
    north: float = Field(ge=-90.0, le=90.0)
    east: float = Field(ge=-180.0, le=180.0)

    @model_validator(mode="after")
    def _check_latitudes(self) -> Bounds:
        if self.south > self.north:
            raise ValueError("south must not exceed north")
        return self

    @classmethod
    def from_points(cls, points: Iterable[LatLng]) -> Bounds | None:
        """Smallest box containing every point, or ``None`` for no points."""
        lats: list[float] = []
        lons: list[float] = []
        for point in points:
            lats.append(point.lat)
            lons.append(point.lon)
        if not lats:
            return None
        return cls(south=min(lats), west=min(lons), north=max(lats), east=max(lons))

    @property
    def crosses_antimeridian(self) -> bool:
        return self.west > self.east

    def contains(self, point: LatLng | None) -> bool:
        if point is None:
            return False
        if not self.south <= point.lat <= self.north:
            return False
        if self.crosses_antimeridian:
            return point.lon >= self.west or point.lon <= self.east
        return self.west <= point.lon <= self.east


class ViewportState(BaseModel):
    """Current map window as last reported by the map widget.

    ``bounds`` is ``None`` until the map has reported its first move.
    """

    model_config = ConfigDict(frozen=True)

    bounds: Bounds | None = None
    zoom: float = 0.0
    bearing: float = 0.0
