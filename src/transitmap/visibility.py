"""Viewport filter engine.

Derives which vehicles, stops and bike stations should be on screen from the
entity store, the map viewport, the active filter and the current selection.
Everything here is a pure function of its inputs and is simply re-run
whenever one of them changes.

Rules, in evaluation order:

1. A selection suppresses every ambient marker.
2. Density gate: stops and bike stations need ``marker_min_zoom``; vehicles
   need ``vehicle_min_zoom``, or an enabled filter whose in-bounds match
   count is at most ``filter_override_limit``.
3. Spatial containment in the viewport bounds. No location, not visible.
4. Criteria match for vehicles and stops. Bike stations have no route or
   type and are never criteria-filtered.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeVar

from transitmap.config import VisibilityThresholds
from transitmap.models.criteria import FilterCriteria
from transitmap.models.geo import Bounds, ViewportState
from transitmap.models.stop import BikeStation, Stop
from transitmap.models.vehicle import Vehicle
from transitmap.state.store import EntityStore

if TYPE_CHECKING:
    from transitmap.selection import Selection

_DEFAULT_THRESHOLDS = VisibilityThresholds()

TLocated = TypeVar("TLocated", Vehicle, Stop, BikeStation)


@dataclass(frozen=True)
class VisibleEntities:
    """Entity subsets to draw as ambient markers."""

    vehicles: tuple[Vehicle, ...] = ()
    stops: tuple[Stop, ...] = ()
    bikes: tuple[BikeStation, ...] = ()

    @property
    def total(self) -> int:
        return len(self.vehicles) + len(self.stops) + len(self.bikes)


def vehicle_matches(vehicle: Vehicle, criteria: FilterCriteria) -> bool:
    """Route and type membership; an empty dimension matches everything."""
    if criteria.routes and vehicle.route not in criteria.routes:
        return False
    return not criteria.types or vehicle.type in criteria.types


def stop_matches(stop: Stop, criteria: FilterCriteria) -> bool:
    """A stop matches when it serves at least one selected type."""
    return not criteria.types or not stop.types.isdisjoint(criteria.types)


def filter_vehicles(vehicles: Iterable[Vehicle], criteria: FilterCriteria) -> tuple[Vehicle, ...]:
    return tuple(vehicle for vehicle in vehicles if vehicle_matches(vehicle, criteria))


def within(entities: Iterable[TLocated], bounds: Bounds | None) -> tuple[TLocated, ...]:
    if bounds is None:
        return ()
    return tuple(entity for entity in entities if bounds.contains(entity.location))


def vehicles_pass_density_gate(
    zoom: float,
    criteria: FilterCriteria,
    filtered_count: int,
    thresholds: VisibilityThresholds = _DEFAULT_THRESHOLDS,
) -> bool:
    if zoom >= thresholds.vehicle_min_zoom:
        return True
    # A small, explicitly filtered set stays visible when zoomed out.
    return criteria.enabled and filtered_count <= thresholds.filter_override_limit


def compute_visible(
    store: EntityStore,
    viewport: ViewportState,
    criteria: FilterCriteria,
    selection: Selection | None = None,
    thresholds: VisibilityThresholds = _DEFAULT_THRESHOLDS,
) -> VisibleEntities:
    """Compute the ambient markers for the current inputs."""
    if selection is not None:
        return VisibleEntities()

    vehicles: tuple[Vehicle, ...] = ()
    if store.vehicles:
        candidates = within(filter_vehicles(store.vehicles, criteria), viewport.bounds)
        if vehicles_pass_density_gate(viewport.zoom, criteria, len(candidates), thresholds):
            vehicles = candidates

    stops: tuple[Stop, ...] = ()
    bikes: tuple[BikeStation, ...] = ()
    if viewport.zoom >= thresholds.marker_min_zoom:
        stops = within((stop for stop in store.stops if stop_matches(stop, criteria)), viewport.bounds)
        bikes = within(store.bikes, viewport.bounds)

    return VisibleEntities(vehicles=vehicles, stops=stops, bikes=bikes)
