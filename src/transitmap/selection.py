"""URL-driven selection of a single vehicle, stop or bike station.

The selection is never stored on its own. It is re-derived from the query
parameters and the entity store every time either changes, so a vehicle that
drops out of the feed is noticed on the next snapshot.

Query encoding::

    ?vehicle=<type>/<id>   spaces in <id> travel as "+"
    ?stop=<id>
    ?bike=<id>

Only one parameter is consulted at a time, in that order of precedence.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol
from urllib.parse import parse_qsl, urlencode

from transitmap.ingestion.normalize import safe_int
from transitmap.models.geo import Bounds, LatLng
from transitmap.models.stop import BikeStation, Stop
from transitmap.models.vehicle import Vehicle
from transitmap.notifications import NotificationCenter
from transitmap.state.events import EntityClass, SnapshotEvent
from transitmap.state.store import EntityStore

_logger = logging.getLogger(__name__)

VEHICLE_PARAM = "vehicle"
STOP_PARAM = "stop"
BIKE_PARAM = "bike"

_WHITESPACE = re.compile(r"\s")

# ------------------------------------------------------------------
# References parsed from the URL
# ------------------------------------------------------------------


@dataclass(frozen=True)
class VehicleRef:
    type: int | None
    """``None`` when the parameter could not be parsed; never resolves."""
    id: str


@dataclass(frozen=True)
class StopRef:
    id: str


@dataclass(frozen=True)
class BikeRef:
    id: str


SelectionRef = VehicleRef | StopRef | BikeRef


def escape_vehicle_id(vehicle_id: str) -> str:
    """Replace whitespace with the ``+`` placeholder used in links."""
    return _WHITESPACE.sub("+", vehicle_id)


def unescape_vehicle_id(vehicle_id: str) -> str:
    return vehicle_id.replace("+", " ")


def vehicle_param(vehicle: Vehicle) -> str:
    return f"{vehicle.type}/{escape_vehicle_id(vehicle.id)}"


def parse_vehicle_param(value: str) -> VehicleRef:
    type_text, sep, vehicle_id = value.partition("/")
    vehicle_type = safe_int(type_text) if sep and vehicle_id else None
    return VehicleRef(type=vehicle_type, id=unescape_vehicle_id(vehicle_id))


def parse_selection(params: Mapping[str, str]) -> SelectionRef | None:
    """Return the active reference; ``vehicle`` wins over ``stop`` over ``bike``."""
    if value := params.get(VEHICLE_PARAM):
        return parse_vehicle_param(value)
    if value := params.get(STOP_PARAM):
        return StopRef(id=value)
    if value := params.get(BIKE_PARAM):
        return BikeRef(id=value)
    return None


def query_for(entity: Vehicle | Stop | BikeStation) -> dict[str, str]:
    """Query parameters that deep-link to ``entity``."""
    if isinstance(entity, Vehicle):
        return {VEHICLE_PARAM: vehicle_param(entity)}
    if isinstance(entity, Stop):
        return {STOP_PARAM: entity.id}
    return {BIKE_PARAM: entity.id}


# ------------------------------------------------------------------
# Resolved selection
# ------------------------------------------------------------------


@dataclass(frozen=True)
class SelectedVehicle:
    vehicle: Vehicle
    entity_class: EntityClass = EntityClass.VEHICLE


@dataclass(frozen=True)
class SelectedStop:
    stop: Stop
    entity_class: EntityClass = EntityClass.STOP


@dataclass(frozen=True)
class SelectedBike:
    station: BikeStation
    entity_class: EntityClass = EntityClass.BIKE


Selection = SelectedVehicle | SelectedStop | SelectedBike


class SelectionFailure(StrEnum):
    VEHICLE_LOST = "vehicle_lost"
    VEHICLE_NOT_FOUND = "vehicle_not_found"
    STOP_NOT_FOUND = "stop_not_found"
    BIKE_NOT_FOUND = "bike_not_found"


FAILURE_MESSAGES: dict[SelectionFailure, str] = {
    SelectionFailure.VEHICLE_LOST: "Lost connection to the vehicle.",
    SelectionFailure.VEHICLE_NOT_FOUND: "Vehicle not found.",
    SelectionFailure.STOP_NOT_FOUND: "Stop not found.",
    SelectionFailure.BIKE_NOT_FOUND: "Bike station not found.",
}


@dataclass(frozen=True)
class SyncResult:
    selection: Selection | None = None
    failure: SelectionFailure | None = None


# ------------------------------------------------------------------
# Collaborators
# ------------------------------------------------------------------


class MapController(Protocol):
    """The map widget, as far as the core needs to drive it."""

    def jump_to(self, center: LatLng) -> None:
        """Recentre instantly, without animation."""
        ...

    def fit_bounds(self, bounds: Bounds) -> None:
        """Fit the viewport to ``bounds`` without animation."""
        ...


QueryListener = Callable[[dict[str, str]], None]


class QueryState:
    """The current URL query string and its history.

    ``push`` adds a history entry (marker clicks); ``replace`` overwrites
    the current one (invalid deep links).
    """

    def __init__(self, params: Mapping[str, str] | None = None) -> None:
        self._params: dict[str, str] = dict(params or {})
        self._history: list[dict[str, str]] = [dict(self._params)]
        self._listeners: list[QueryListener] = []

    @classmethod
    def from_query_string(cls, query: str) -> QueryState:
        """Parse ``query``; ``+`` decodes to a space as in form encoding."""
        return cls(dict(parse_qsl(query.lstrip("?"), keep_blank_values=False)))

    @property
    def params(self) -> dict[str, str]:
        return dict(self._params)

    @property
    def history(self) -> list[dict[str, str]]:
        return [dict(entry) for entry in self._history]

    def get(self, name: str) -> str | None:
        return self._params.get(name)

    def to_query_string(self) -> str:
        return urlencode(self._params, safe="/")

    def subscribe(self, listener: QueryListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def push(self, params: Mapping[str, str]) -> None:
        self._params = dict(params)
        self._history.append(dict(self._params))
        self._dispatch()

    def replace(self, params: Mapping[str, str]) -> None:
        self._params = dict(params)
        self._history[-1] = dict(self._params)
        self._dispatch()

    def _dispatch(self) -> None:
        snapshot = dict(self._params)
        for listener in list(self._listeners):
            listener(snapshot)


# ------------------------------------------------------------------
# Synchronizer
# ------------------------------------------------------------------


class SelectionSynchronizer:
    """Keeps the selected entity consistent with the URL and the store."""

    def __init__(
        self,
        store: EntityStore,
        query: QueryState,
        *,
        map_controller: MapController | None = None,
        notifications: NotificationCenter | None = None,
    ) -> None:
        self._store = store
        self._query = query
        self._map = map_controller
        self._notifications = notifications
        self._selection: Selection | None = None
        self._listeners: list[Callable[[Selection | None], None]] = []

    @property
    def selection(self) -> Selection | None:
        return self._selection

    def subscribe(self, listener: Callable[[Selection | None], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def on_query_change(self, _params: Mapping[str, str]) -> None:
        self.sync()

    def on_snapshot(self, event: SnapshotEvent) -> None:
        """Re-sync when the collection behind the active parameter changed."""
        ref = parse_selection(self._query.params)
        if ref is None:
            if self._selection is not None:
                self.sync()
            return
        if _ref_class(ref) == event.entity_class:
            self.sync()

    def sync(self) -> SyncResult:
        ref = parse_selection(self._query.params)
        if ref is None:
            self._set(None)
            return SyncResult()

        if isinstance(ref, VehicleRef):
            result = self._resolve_vehicle(ref)
        elif isinstance(ref, StopRef):
            result = self._resolve_stop(ref)
        else:
            result = self._resolve_bike(ref)

        if result.failure is not None:
            self._fail(result.failure)
        else:
            self._set(result.selection)
        return result

    def _resolve_vehicle(self, ref: VehicleRef) -> SyncResult:
        if not self._store.vehicles:
            return SyncResult()
        vehicle = self._lookup_vehicle(ref)
        if vehicle is not None:
            return SyncResult(selection=SelectedVehicle(vehicle))
        lost = isinstance(self._selection, SelectedVehicle)
        return SyncResult(failure=SelectionFailure.VEHICLE_LOST if lost else SelectionFailure.VEHICLE_NOT_FOUND)

    def _lookup_vehicle(self, ref: VehicleRef) -> Vehicle | None:
        if ref.type is None:
            return None
        vehicle = self._store.find_vehicle(ref.type, ref.id)
        if vehicle is not None:
            return vehicle
        # Compare in escaped form so "+" in the link matches either a space
        # or a literal "+" in the feed id.
        wanted = escape_vehicle_id(ref.id)
        vehicles = self._store.vehicles or ()
        return next(
            (v for v in vehicles if v.type == ref.type and escape_vehicle_id(v.id) == wanted),
            None,
        )

    def _resolve_stop(self, ref: StopRef) -> SyncResult:
        if not self._store.stops:
            return SyncResult()
        stop = self._store.find_stop(ref.id)
        if stop is None:
            return SyncResult(failure=SelectionFailure.STOP_NOT_FOUND)
        return SyncResult(selection=SelectedStop(stop))

    def _resolve_bike(self, ref: BikeRef) -> SyncResult:
        if not self._store.bikes:
            return SyncResult()
        station = self._store.find_bike(ref.id)
        if station is None:
            return SyncResult(failure=SelectionFailure.BIKE_NOT_FOUND)
        return SyncResult(selection=SelectedBike(station))

    def _fail(self, failure: SelectionFailure) -> None:
        _logger.info("Selection invalidated: %s params=%s", failure, self._query.params)
        self._set(None)
        self._query.replace({})
        if self._notifications is not None:
            self._notifications.error(FAILURE_MESSAGES[failure])

    def _set(self, selection: Selection | None) -> None:
        previous = self._selection
        self._selection = selection
        if isinstance(selection, SelectedBike) and selection != previous:
            self._recentre(selection.station)
        if selection != previous:
            for listener in list(self._listeners):
                listener(selection)

    def _recentre(self, station: BikeStation) -> None:
        if self._map is not None and station.location is not None:
            self._map.jump_to(station.location)


def _ref_class(ref: SelectionRef) -> EntityClass:
    if isinstance(ref, VehicleRef):
        return EntityClass.VEHICLE
    if isinstance(ref, StopRef):
        return EntityClass.STOP
    return EntityClass.BIKE
