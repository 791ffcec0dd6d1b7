from __future__ import annotations

import pytest

from transitmap.models import BikeStation, Bounds, LatLng, Stop, Vehicle
from transitmap.notifications import NotificationCenter
from transitmap.selection import (
    BikeRef,
    QueryState,
    SelectedBike,
    SelectedStop,
    SelectedVehicle,
    SelectionFailure,
    SelectionSynchronizer,
    StopRef,
    VehicleRef,
    escape_vehicle_id,
    parse_selection,
    parse_vehicle_param,
    query_for,
)
from transitmap.state.store import EntityStore


class _FakeMap:
    def __init__(self) -> None:
        self.jumps: list[LatLng] = []
        self.fits: list[Bounds] = []

    def jump_to(self, center: LatLng) -> None:
        self.jumps.append(center)

    def fit_bounds(self, bounds: Bounds) -> None:
        self.fits.append(bounds)


class _Notices:
    def __init__(self) -> None:
        self.center = NotificationCenter()
        self.messages: list[str] = []
        self.center.subscribe(lambda n, _key: self.messages.append(n.message) if n is not None else None)


def _wire(
    query: QueryState, store: EntityStore | None = None
) -> tuple[SelectionSynchronizer, EntityStore, _Notices, _FakeMap]:
    store = store or EntityStore()
    notices = _Notices()
    fake_map = _FakeMap()
    sync = SelectionSynchronizer(store, query, map_controller=fake_map, notifications=notices.center)
    store.subscribe(sync.on_snapshot)
    query.subscribe(sync.on_query_change)
    return sync, store, notices, fake_map


# ------------------------------------------------------------------
# Query parsing
# ------------------------------------------------------------------


def test_escape_replaces_whitespace_with_plus() -> None:
    assert escape_vehicle_id("AB 12") == "AB+12"
    assert escape_vehicle_id("A\tB") == "A+B"


def test_query_for_each_entity_class() -> None:
    assert query_for(Vehicle(type=2, id="AB 12", route="4")) == {"vehicle": "2/AB+12"}
    assert query_for(Stop(id="s1", name="Centrum")) == {"stop": "s1"}
    assert query_for(BikeStation(id="b1")) == {"bike": "b1"}


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("2/AB+12", VehicleRef(type=2, id="AB 12")),
        ("2/AB 12", VehicleRef(type=2, id="AB 12")),
        ("0/1001", VehicleRef(type=0, id="1001")),
        ("garbage", VehicleRef(type=None, id="")),
        ("x/1", VehicleRef(type=None, id="1")),
    ],
)
def test_parse_vehicle_param(value: str, expected: VehicleRef) -> None:
    assert parse_vehicle_param(value) == expected


def test_vehicle_parameter_takes_precedence() -> None:
    assert parse_selection({"vehicle": "0/a", "stop": "s1", "bike": "b1"}) == VehicleRef(type=0, id="a")
    assert parse_selection({"stop": "s1", "bike": "b1"}) == StopRef(id="s1")
    assert parse_selection({"bike": "b1"}) == BikeRef(id="b1")
    assert parse_selection({}) is None


def test_query_string_decodes_plus_as_space() -> None:
    query = QueryState.from_query_string("?vehicle=2/AB+12")
    assert query.get("vehicle") == "2/AB 12"


# ------------------------------------------------------------------
# Vehicle resolution
# ------------------------------------------------------------------


@pytest.mark.parametrize("query", [QueryState({"vehicle": "2/AB+12"}), QueryState.from_query_string("vehicle=2/AB+12")])
def test_vehicle_id_with_space_resolves_from_escaped_link(query: QueryState) -> None:
    sync, store, _notices, _map = _wire(query)

    store.replace_vehicles([Vehicle(type=2, id="AB 12", route="4", location=[52.0, 21.0])])

    assert isinstance(sync.selection, SelectedVehicle)
    assert sync.selection.vehicle.id == "AB 12"


def test_vehicle_id_with_literal_plus_resolves() -> None:
    sync, store, _notices, _map = _wire(QueryState({"vehicle": "2/AB+12"}))
    store.replace_vehicles([Vehicle(type=2, id="AB+12", route="4")])
    assert isinstance(sync.selection, SelectedVehicle)


def test_vehicle_type_must_match() -> None:
    sync, store, notices, _map = _wire(QueryState({"vehicle": "1/100"}))
    store.replace_vehicles([Vehicle(type=0, id="100", route="4")])
    assert sync.selection is None
    assert notices.messages == ["Vehicle not found."]


def test_selection_waits_for_first_snapshot() -> None:
    query = QueryState({"vehicle": "0/100"})
    sync, _store, notices, _map = _wire(query)

    assert sync.sync().failure is None
    assert sync.selection is None
    assert query.params == {"vehicle": "0/100"}
    assert notices.messages == []


def test_unknown_vehicle_link_replaces_url() -> None:
    query = QueryState({"vehicle": "0/404"})
    sync, store, notices, _map = _wire(query)

    store.replace_vehicles([Vehicle(type=0, id="100", route="4")])

    assert sync.selection is None
    assert query.params == {}
    assert query.history == [{}]
    assert notices.messages == ["Vehicle not found."]


def test_malformed_vehicle_param_is_not_found() -> None:
    query = QueryState({"vehicle": "garbage"})
    sync, store, notices, _map = _wire(query)
    store.replace_vehicles([Vehicle(type=0, id="100", route="4")])
    assert sync.selection is None
    assert notices.messages == ["Vehicle not found."]


def test_selected_vehicle_dropping_out_reports_lost() -> None:
    query = QueryState()
    sync, store, notices, _map = _wire(query)
    bus = Vehicle(type=0, id="100", route="4", location=[52.0, 21.0])
    store.replace_vehicles([bus])

    query.push(query_for(bus))
    assert isinstance(sync.selection, SelectedVehicle)

    store.replace_vehicles([Vehicle(type=0, id="200", route="4")])

    assert sync.selection is None
    assert query.params == {}
    # The failed entry is replaced, not pushed on top.
    assert query.history == [{}, {}]
    assert notices.messages == ["Lost connection to the vehicle."]


def test_selected_vehicle_follows_snapshots() -> None:
    query = QueryState({"vehicle": "0/100"})
    sync, store, _notices, _map = _wire(query)
    store.replace_vehicles([Vehicle(type=0, id="100", route="4", location=[52.0, 21.0])])
    store.replace_vehicles([Vehicle(type=0, id="100", route="4", location=[52.1, 21.1])])

    assert isinstance(sync.selection, SelectedVehicle)
    assert sync.selection.vehicle.location == LatLng(lat=52.1, lon=21.1)


# ------------------------------------------------------------------
# Stops and bike stations
# ------------------------------------------------------------------


def test_stop_resolves_after_fetch() -> None:
    sync, store, _notices, _map = _wire(QueryState({"stop": "s1"}))
    assert sync.selection is None

    store.populate_stops([Stop(id="s1", name="Centrum")])

    assert sync.selection == SelectedStop(Stop(id="s1", name="Centrum"))


def test_unknown_stop_reports_failure() -> None:
    query = QueryState({"stop": "nope"})
    sync, store, notices, _map = _wire(query)

    store.populate_stops([Stop(id="s1", name="Centrum")])

    assert sync.selection is None
    assert query.params == {}
    assert notices.messages == ["Stop not found."]


def test_empty_bike_collection_means_no_selection() -> None:
    query = QueryState({"bike": "b1"})
    sync, store, notices, _map = _wire(query)

    result = sync.sync()

    assert result.selection is None
    assert result.failure is None
    assert query.params == {"bike": "b1"}
    assert notices.messages == []


def test_unknown_bike_station_reports_failure() -> None:
    sync, store, notices, _map = _wire(QueryState({"bike": "b9"}))
    store.populate_bikes([BikeStation.model_validate(["b1", "Rondo", [52.0, 21.0]])])
    assert sync.selection is None
    assert notices.messages == ["Bike station not found."]


def test_bike_selection_recentres_once() -> None:
    query = QueryState({"bike": "b1"})
    sync, store, _notices, fake_map = _wire(query)
    store.populate_bikes([BikeStation.model_validate(["b1", "Rondo", [52.0, 21.0]])])

    assert isinstance(sync.selection, SelectedBike)
    assert fake_map.jumps == [LatLng(lat=52.0, lon=21.0)]

    sync.sync()
    assert len(fake_map.jumps) == 1


def test_vehicle_snapshot_does_not_resync_stop_selection() -> None:
    query = QueryState({"stop": "s1"})
    sync, store, _notices, _map = _wire(query)
    store.populate_stops([Stop(id="s1")])
    seen: list[object] = []
    sync.subscribe(seen.append)

    store.replace_vehicles([])

    assert seen == []
    assert sync.selection == SelectedStop(Stop(id="s1"))


def test_clearing_query_clears_selection() -> None:
    query = QueryState({"stop": "s1"})
    sync, store, _notices, _map = _wire(query)
    store.populate_stops([Stop(id="s1")])
    assert sync.selection is not None

    query.push({})

    assert sync.selection is None


def test_failure_enum_covers_every_message() -> None:
    from transitmap.selection import FAILURE_MESSAGES

    assert set(FAILURE_MESSAGES) == set(SelectionFailure)
