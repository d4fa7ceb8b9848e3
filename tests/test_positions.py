from __future__ import annotations

from datetime import UTC, datetime

import pytest

from routewatch.exceptions import InvalidInputError
from routewatch.ingestion.normalize import epoch_seconds, is_placeholder, parse_timestamp, safe_float
from routewatch.ingestion.positions import decode_payload, parse_position
from routewatch.models import Coordinate, Position, Stop, TrackedRoute


def test_safe_float_rejects_placeholders() -> None:
    assert safe_float("12.5") == 12.5
    assert safe_float("--") is None
    assert safe_float(True) is None
    assert safe_float(float("inf")) is None
    assert safe_float("abc") is None


def test_epoch_seconds_and_milliseconds() -> None:
    assert epoch_seconds(1_770_928_447) == 1_770_928_447
    assert epoch_seconds(1_770_928_447_000) == 1_770_928_447
    assert epoch_seconds(0) is None


def test_parse_timestamp_accepts_iso_with_z() -> None:
    assert parse_timestamp("2026-01-01T08:00:00Z") == datetime(2026, 1, 1, 8, 0, tzinfo=UTC)
    assert parse_timestamp("not a time") is None


def test_out_of_range_epoch_is_dropped_not_raised() -> None:
    assert parse_timestamp(1e25) is None
    assert parse_timestamp(-1e25) is None

    position = parse_position({"lat": 0, "lng": 0, "timestamp": 1e25})
    assert position.timestamp is None
    assert position.raw["timestamp"] == 1e25


def test_is_placeholder() -> None:
    assert is_placeholder(" -- ")
    assert is_placeholder(float("nan"))
    assert is_placeholder(None)
    assert not is_placeholder(0)
    assert not is_placeholder("0")


def test_position_placeholders_fall_back_to_defaults() -> None:
    position = Position.model_validate({"lat": 1.0, "lng": 2.0, "speed": "--", "heading": "", "time": "null"})
    assert position.speed is None
    assert position.heading is None
    assert position.timestamp is None
    assert position.raw["speed"] == "--"


def test_parse_position_from_nested_json_bytes() -> None:
    position = parse_position(
        b'{"data": {"location": {"lat": "40.7", "lng": "-74.0"}}, "gpsSpeed": "31.5", '
        b'"direction": 90, "time": 1770928447000}'
    )

    assert position.latitude == 40.7
    assert position.longitude == -74.0
    assert position.speed == 31.5
    assert position.heading == 90
    assert position.timestamp == datetime.fromtimestamp(1_770_928_447, tz=UTC)
    assert position.raw["gpsSpeed"] == "31.5"


def test_parse_position_non_numeric_speed_is_none() -> None:
    position = parse_position({"latitude": 1, "longitude": 2, "speed": "fast"})
    assert position.speed is None


def test_parse_position_passes_through_models() -> None:
    position = Position(latitude=1.0, longitude=2.0)
    assert parse_position(position) is position


@pytest.mark.parametrize(
    "payload",
    [
        b"\xff\xfe",
        "not json",
        "[1, 2]",
        {"lng": 1.0},
        {"lat": "--", "lng": 1.0},
        {"lat": 91, "lng": 0},
    ],
)
def test_malformed_positions_raise_invalid_input(payload: object) -> None:
    with pytest.raises(InvalidInputError):
        parse_position(payload)  # type: ignore[arg-type]


def test_decode_payload_accepts_text() -> None:
    assert decode_payload('{"lat": 1}') == {"lat": 1}


def test_coordinate_accepts_pairs_and_rejects_out_of_range() -> None:
    assert Coordinate.model_validate((10, 20)) == Coordinate(latitude=10, longitude=20)
    assert Coordinate.model_validate({"lat": 1, "lon": 2}).as_param() == "1.000000,2.000000"
    with pytest.raises(ValueError):
        Coordinate(latitude=0, longitude=181)
    with pytest.raises(ValueError):
        Coordinate(latitude=float("nan"), longitude=0)


def test_tracked_route_validation() -> None:
    route = TrackedRoute.model_validate(
        {
            "routeId": "42",
            "routePath": [[0, 0], [0, 1]],
            "pendingStops": [{"stopId": "s1", "stopName": "Main", "stopLocation": {"lat": 0, "lng": 0.5}}],
        }
    )
    assert route.route_id == "42"
    assert route.label == "42"
    assert route.has_path is True
    assert route.stops[0].label == "Main"

    with pytest.raises(ValueError):
        TrackedRoute(route_id=" ")
    stop = Stop(stop_id="s", location=Coordinate(latitude=0, longitude=0))
    with pytest.raises(ValueError):
        TrackedRoute(route_id="r", stops=(stop, stop))
