"""Data models for the transit API and the map view."""

from transitmap.models._base import TransitBaseModel, parse_location
from transitmap.models.criteria import FilterCriteria
from transitmap.models.geo import Bounds, LatLng, ViewportState
from transitmap.models.stop import BikeStation, Stop
from transitmap.models.vehicle import Vehicle, VehicleKey

__all__ = [
    "BikeStation",
    "Bounds",
    "FilterCriteria",
    "LatLng",
    "Stop",
    "TransitBaseModel",
    "Vehicle",
    "VehicleKey",
    "ViewportState",
    "parse_location",
]
