"""In-memory entity store.

This is the only component allowed to replace the vehicle, stop and
bike-station collections.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import UTC, datetime

from transitmap.models.stop import BikeStation, Stop
from transitmap.models.vehicle import Vehicle, VehicleKey
from transitmap.state.events import EntityClass, SnapshotEvent, SnapshotSource

_logger = logging.getLogger(__name__)

SnapshotListener = Callable[[SnapshotEvent], None]


def _utcnow() -> datetime:
    return datetime.now(UTC)


class EntityStore:
    """Latest known snapshot of each entity class.

    Every collection is an immutable tuple that is swapped as a whole, so
    readers always see one consistent snapshot. Vehicles are ``None`` until
    the first feed snapshot arrives; stops and bike stations are empty until
    their one-shot fetch completes and are populated at most once.
    """

    def __init__(self, *, clock: Callable[[], datetime] = _utcnow) -> None:
        self._clock = clock
        self._vehicles: tuple[Vehicle, ...] | None = None
        self._vehicle_index: dict[VehicleKey, Vehicle] = {}
        self._stops: tuple[Stop, ...] = ()
        self._bikes: tuple[BikeStation, ...] = ()
        self._populated: set[EntityClass] = set()
        self._listeners: list[SnapshotListener] = []

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def vehicles(self) -> tuple[Vehicle, ...] | None:
        return self._vehicles

    @property
    def vehicles_loaded(self) -> bool:
        return self._vehicles is not None

    @property
    def stops(self) -> tuple[Stop, ...]:
        return self._stops

    @property
    def bikes(self) -> tuple[BikeStation, ...]:
        return self._bikes

    def is_populated(self, entity_class: EntityClass) -> bool:
        return entity_class in self._populated

    def find_vehicle(self, vehicle_type: int, vehicle_id: str) -> Vehicle | None:
        return self._vehicle_index.get((vehicle_type, vehicle_id))

    def find_stop(self, stop_id: str) -> Stop | None:
        return next((stop for stop in self._stops if stop.id == stop_id), None)

    def find_bike(self, station_id: str) -> BikeStation | None:
        return next((station for station in self._bikes if station.id == station_id), None)

    # ------------------------------------------------------------------
    # Write side
    # ------------------------------------------------------------------

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Register a listener; returns a callable that unregisters it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def replace_vehicles(self, vehicles: Iterable[Vehicle]) -> None:
        """Replace the whole vehicle collection with a new snapshot.

        Duplicate keys within one snapshot keep the last occurrence.
        """
        index: dict[VehicleKey, Vehicle] = {}
        for vehicle in vehicles:
            index[vehicle.key] = vehicle
        snapshot = tuple(index.values())

        self._vehicles = snapshot
        self._vehicle_index = index
        self._populated.add(EntityClass.VEHICLE)
        _logger.debug("Vehicle snapshot applied count=%d", len(snapshot))
        self._emit(EntityClass.VEHICLE, SnapshotSource.FEED, len(snapshot))

    def populate_stops(self, stops: Iterable[Stop]) -> bool:
        """Populate stops once per session. Returns ``False`` if ignored."""
        if EntityClass.STOP in self._populated:
            _logger.warning("Stops already populated for this session; ignoring update")
            return False
        self._stops = tuple(stops)
        self._populated.add(EntityClass.STOP)
        self._emit(EntityClass.STOP, SnapshotSource.FETCH, len(self._stops))
        return True

    def populate_bikes(self, bikes: Iterable[BikeStation]) -> bool:
        """Populate bike stations once per session. Returns ``False`` if ignored."""
        if EntityClass.BIKE in self._populated:
            _logger.warning("Bike stations already populated for this session; ignoring update")
            return False
        self._bikes = tuple(bikes)
        self._populated.add(EntityClass.BIKE)
        self._emit(EntityClass.BIKE, SnapshotSource.FETCH, len(self._bikes))
        return True

    def _emit(self, entity_class: EntityClass, source: SnapshotSource, count: int) -> None:
        event = SnapshotEvent(
            entity_class=entity_class,
            source=source,
            count=count,
            observed_at=self._clock(),
        )
        for listener in list(self._listeners):
            listener(event)
