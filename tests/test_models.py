"""Tests for payload parsing into pydantic models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from transitmap.exceptions import TransitPayloadError
from transitmap.ingestion.feed import parse_positions
from transitmap.models import BikeStation, Bounds, FilterCriteria, LatLng, Stop, Vehicle


class TestVehicle:
    SAMPLE_PAYLOAD: dict = {
        "type": "3",
        "id": 1234,
        "route": 17,
        "location": [52.2297, 21.0122],
        "deg": "90",
        "headsign": "Dworzec Centralny",
        "brigade": "",
    }

    def test_parses_and_coerces(self) -> None:
        vehicle = Vehicle.model_validate(self.SAMPLE_PAYLOAD)
        assert vehicle.type == 3
        assert vehicle.id == "1234"
        assert vehicle.route == "17"
        assert vehicle.location == LatLng(lat=52.2297, lon=21.0122)
        assert vehicle.bearing == 90.0
        assert vehicle.headsign == "Dworzec Centralny"
        assert vehicle.key == (3, "1234")

    def test_placeholder_values_fall_back_to_defaults(self) -> None:
        vehicle = Vehicle.model_validate(self.SAMPLE_PAYLOAD)
        assert vehicle.brigade is None

    def test_raw_payload_is_kept(self) -> None:
        vehicle = Vehicle.model_validate(self.SAMPLE_PAYLOAD)
        assert vehicle.raw["id"] == 1234

    def test_unknown_type_is_preserved(self) -> None:
        vehicle = Vehicle.model_validate({"type": 715, "id": "X"})
        assert vehicle.type == 715

    @pytest.mark.parametrize("location", [None, "--", [], [95.0, 10.0], ["a", "b"]])
    def test_unusable_location_becomes_none(self, location: object) -> None:
        vehicle = Vehicle.model_validate({"type": 0, "id": "1", "location": location})
        assert vehicle.location is None

    def test_missing_id_is_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Vehicle.model_validate({"type": 0, "route": "1"})

    @pytest.mark.parametrize("value", [2.9, "2.5", -0.1])
    def test_fractional_type_is_rejected(self, value: object) -> None:
        with pytest.raises(ValidationError):
            Vehicle.model_validate({"type": value, "id": "1"})

    def test_integral_float_type_is_accepted(self) -> None:
        assert Vehicle.model_validate({"type": 2.0, "id": "1"}).type == 2

    def test_fractional_type_does_not_merge_identities(self) -> None:
        snapshot = parse_positions([{"type": 2, "id": "7"}, {"type": 2.9, "id": "7"}])
        assert [v.key for v in snapshot] == [(2, "7")]

    def test_ids_with_spaces_are_kept_verbatim(self) -> None:
        vehicle = Vehicle.model_validate({"type": 2, "id": "AB 12"})
        assert vehicle.id == "AB 12"


class TestStop:
    def test_single_type_is_wrapped_in_a_set(self) -> None:
        stop = Stop.model_validate({"id": "s1", "name": "Centrum", "type": 0, "location": [52.0, 21.0]})
        assert stop.types == frozenset({0})

    def test_display_name_includes_code(self) -> None:
        stop = Stop.model_validate({"id": "s1", "name": "Centrum", "code": "05", "type": [0, 3]})
        assert stop.display_name == "Centrum 05"
        assert stop.types == frozenset({0, 3})

    def test_display_name_without_code(self) -> None:
        stop = Stop.model_validate({"id": "s1", "name": "Centrum"})
        assert stop.display_name == "Centrum"


class TestBikeStation:
    def test_from_tuple(self) -> None:
        station = BikeStation.model_validate(["st-7", "Rondo ONZ", [52.233, 20.998], 12])
        assert station.id == "st-7"
        assert station.name == "Rondo ONZ"
        assert station.location == LatLng(lat=52.233, lon=20.998)
        assert station.raw["tuple"][3] == 12

    def test_from_mapping(self) -> None:
        station = BikeStation.model_validate({"id": "st-8", "location": [52.0, 21.0]})
        assert station.name == ""

    def test_empty_tuple_rejected(self) -> None:
        with pytest.raises(ValidationError):
            BikeStation.model_validate([])


class TestBounds:
    def test_contains(self) -> None:
        bounds = Bounds(south=52.0, west=20.0, north=53.0, east=21.0)
        assert bounds.contains(LatLng(lat=52.5, lon=20.5))
        assert not bounds.contains(LatLng(lat=53.5, lon=20.5))
        assert not bounds.contains(None)

    def test_contains_across_antimeridian(self) -> None:
        bounds = Bounds(south=-20.0, west=170.0, north=-10.0, east=-170.0)
        assert bounds.crosses_antimeridian
        assert bounds.contains(LatLng(lat=-15.0, lon=179.0))
        assert bounds.contains(LatLng(lat=-15.0, lon=-175.0))
        assert not bounds.contains(LatLng(lat=-15.0, lon=0.0))

    def test_from_points(self) -> None:
        bounds = Bounds.from_points([LatLng(lat=52.1, lon=21.3), LatLng(lat=52.4, lon=20.9)])
        assert bounds == Bounds(south=52.1, west=20.9, north=52.4, east=21.3)
        assert Bounds.from_points([]) is None

    def test_inverted_latitudes_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Bounds(south=10.0, west=0.0, north=5.0, east=1.0)


class TestFilterCriteria:
    def test_empty_is_disabled(self) -> None:
        assert not FilterCriteria().enabled

    def test_either_dimension_enables(self) -> None:
        assert FilterCriteria(routes={"17"}).enabled
        assert FilterCriteria(types=[3]).enabled

    def test_coerces_members(self) -> None:
        criteria = FilterCriteria.model_validate({"routes": [17, "N32"], "types": ["0", 3]})
        assert criteria.routes == frozenset({"17", "N32"})
        assert criteria.types == frozenset({0, 3})


class TestParsePositions:
    def test_malformed_entries_are_skipped(self) -> None:
        snapshot = parse_positions(
            [
                {"type": 0, "id": "1", "route": "4"},
                {"route": "no-id"},
                "garbage",
                {"type": 3, "id": "2", "route": "175"},
            ]
        )
        assert [v.id for v in snapshot] == ["1", "2"]

    def test_wrapped_payload(self) -> None:
        snapshot = parse_positions({"vehicles": [{"type": 0, "id": "1"}]})
        assert len(snapshot) == 1

    def test_non_list_rejected(self) -> None:
        with pytest.raises(TransitPayloadError):
            parse_positions("nope")
