"""Tests for the viewport filter engine."""

from __future__ import annotations

import pytest

from transitmap.config import VisibilityThresholds
from transitmap.models import BikeStation, Bounds, FilterCriteria, Stop, Vehicle, ViewportState
from transitmap.selection import SelectedBike, SelectedStop, SelectedVehicle
from transitmap.state.store import EntityStore
from transitmap.visibility import (
    compute_visible,
    filter_vehicles,
    stop_matches,
    vehicle_matches,
    vehicles_pass_density_gate,
)

BOUNDS = Bounds(south=52.0, west=20.0, north=53.0, east=22.0)
INSIDE = [52.5, 21.0]
OUTSIDE = [54.0, 21.0]


def _vehicle(vehicle_id: str, *, vehicle_type: int = 0, route: str = "4", location: list | None = None) -> Vehicle:
    return Vehicle(type=vehicle_type, id=vehicle_id, route=route, location=location or INSIDE)


def _store(
    vehicles: list[Vehicle] | None = None,
    stops: list[Stop] | None = None,
    bikes: list[BikeStation] | None = None,
) -> EntityStore:
    store = EntityStore()
    if vehicles is not None:
        store.replace_vehicles(vehicles)
    store.populate_stops(stops or [])
    store.populate_bikes(bikes or [])
    return store


def _viewport(zoom: float, bounds: Bounds | None = BOUNDS) -> ViewportState:
    return ViewportState(bounds=bounds, zoom=zoom)


class TestCriteriaMatch:
    @pytest.mark.parametrize(
        ("criteria", "expected"),
        [
            (FilterCriteria(), True),
            (FilterCriteria(routes={"4"}), True),
            (FilterCriteria(routes={"15"}), False),
            (FilterCriteria(types={0}), True),
            (FilterCriteria(types={3}), False),
            (FilterCriteria(routes={"4"}, types={3}), False),
            (FilterCriteria(routes={"4", "15"}, types={0, 3}), True),
        ],
    )
    def test_vehicle_membership(self, criteria: FilterCriteria, expected: bool) -> None:
        assert vehicle_matches(_vehicle("1", vehicle_type=0, route="4"), criteria) is expected

    def test_stop_matches_on_type_intersection(self) -> None:
        stop = Stop(id="s", types=[0, 3])
        assert stop_matches(stop, FilterCriteria())
        assert stop_matches(stop, FilterCriteria(types={3, 11}))
        assert not stop_matches(stop, FilterCriteria(types={11}))

    def test_stop_ignores_route_dimension(self) -> None:
        stop = Stop(id="s", types=[0])
        assert stop_matches(stop, FilterCriteria(routes={"999"}))

    def test_filter_vehicles(self) -> None:
        vehicles = [_vehicle("1", route="4"), _vehicle("2", route="15")]
        assert [v.id for v in filter_vehicles(vehicles, FilterCriteria(routes={"15"}))] == ["2"]


class TestDensityGate:
    def test_vehicle_zoom_threshold(self) -> None:
        assert vehicles_pass_density_gate(14, FilterCriteria(), 5000)
        assert not vehicles_pass_density_gate(13.9, FilterCriteria(), 0)

    def test_filter_override(self) -> None:
        criteria = FilterCriteria(routes={"4"})
        assert vehicles_pass_density_gate(5, criteria, 100)
        assert not vehicles_pass_density_gate(5, criteria, 101)

    def test_thresholds_are_configurable(self) -> None:
        thresholds = VisibilityThresholds(vehicle_min_zoom=10, filter_override_limit=3)
        assert vehicles_pass_density_gate(10, FilterCriteria(), 5000, thresholds)
        assert not vehicles_pass_density_gate(5, FilterCriteria(types={0}), 4, thresholds)


class TestComputeVisible:
    @pytest.mark.parametrize("zoom", [0, 8, 13, 13.99])
    def test_no_vehicles_below_zoom_without_filter(self, zoom: float) -> None:
        store = _store([_vehicle(str(i)) for i in range(10)])
        visible = compute_visible(store, _viewport(zoom), FilterCriteria())
        assert visible.vehicles == ()

    def test_small_filtered_set_visible_when_zoomed_out(self) -> None:
        store = _store(
            [
                _vehicle("1", route="4"),
                _vehicle("2", route="4", location=OUTSIDE),
                _vehicle("3", route="15"),
            ]
        )
        visible = compute_visible(store, _viewport(10), FilterCriteria(routes={"4"}))
        assert [v.id for v in visible.vehicles] == ["1"]

    def test_large_filtered_set_hidden_when_zoomed_out(self) -> None:
        store = _store([_vehicle(str(i), route="4") for i in range(101)])
        visible = compute_visible(store, _viewport(10), FilterCriteria(routes={"4"}))
        assert visible.vehicles == ()

    def test_large_filtered_set_visible_at_vehicle_zoom(self) -> None:
        store = _store([_vehicle(str(i), route="4") for i in range(150)])
        visible = compute_visible(store, _viewport(14), FilterCriteria(routes={"4"}))
        assert len(visible.vehicles) == 150

    def test_out_of_bounds_and_unlocated_never_visible(self) -> None:
        unlocated = Vehicle(type=0, id="u", route="4")
        store = _store([_vehicle("in"), _vehicle("out", location=OUTSIDE), unlocated])
        visible = compute_visible(store, _viewport(16), FilterCriteria())
        assert [v.id for v in visible.vehicles] == ["in"]

    def test_nothing_visible_before_bounds_known(self) -> None:
        store = _store([_vehicle("1")], stops=[Stop(id="s", location=INSIDE)])
        visible = compute_visible(store, _viewport(16, bounds=None), FilterCriteria())
        assert visible.total == 0

    def test_vehicles_not_loaded_yields_nothing(self) -> None:
        visible = compute_visible(_store(), _viewport(16), FilterCriteria())
        assert visible.vehicles == ()

    def test_stops_and_bikes_need_marker_zoom(self) -> None:
        store = _store(
            stops=[Stop(id="s", location=INSIDE, types=[0])],
            bikes=[BikeStation(id="b", location=INSIDE)],
        )
        assert compute_visible(store, _viewport(14.5), FilterCriteria()).total == 0

        visible = compute_visible(store, _viewport(15), FilterCriteria())
        assert [s.id for s in visible.stops] == ["s"]
        assert [b.id for b in visible.bikes] == ["b"]

    def test_stops_filtered_by_type_bikes_never_filtered(self) -> None:
        store = _store(
            stops=[Stop(id="tram", location=INSIDE, types=[0]), Stop(id="bus", location=INSIDE, types=[3])],
            bikes=[BikeStation(id="b", location=INSIDE)],
        )
        visible = compute_visible(store, _viewport(16), FilterCriteria(types={3}))
        assert [s.id for s in visible.stops] == ["bus"]
        assert [b.id for b in visible.bikes] == ["b"]

    @pytest.mark.parametrize(
        "selection",
        [
            SelectedVehicle(Vehicle(type=0, id="1", route="4", location=INSIDE)),
            SelectedStop(Stop(id="s", location=INSIDE)),
            SelectedBike(BikeStation(id="b", location=INSIDE)),
        ],
    )
    def test_any_selection_suppresses_all_markers(self, selection: object) -> None:
        store = _store(
            [_vehicle("1"), _vehicle("2")],
            stops=[Stop(id="s", location=INSIDE)],
            bikes=[BikeStation(id="b", location=INSIDE)],
        )
        assert compute_visible(store, _viewport(18), FilterCriteria(), selection).total == 0  # type: ignore[arg-type]
