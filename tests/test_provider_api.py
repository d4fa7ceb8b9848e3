from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

import pytest

from routewatch._api.directions import build_directions_params, parse_directions
from routewatch._api.distance_matrix import build_route_leg_params, parse_route_leg
from routewatch.config import RouteWatchConfig
from routewatch.exceptions import InvalidInputError, ProviderApiError, ProviderRateLimitError, ProviderUnavailableError
from routewatch.models import Coordinate, ManeuverKind
from routewatch.navigation import Navigator
from routewatch.provider import GoogleDirectionsProvider

_ORIGIN = Coordinate(latitude=40.7128, longitude=-74.006)
_DEST = Coordinate(latitude=40.7306, longitude=-73.9352)


class _StaticTransport:
    def __init__(self, body: dict[str, Any]) -> None:
        self._body = body
        self.requests: list[tuple[str, dict[str, str]]] = []

    async def get_json(self, endpoint: str, params: Mapping[str, str]) -> dict[str, Any]:
        self.requests.append((endpoint, dict(params)))
        return self._body


def _matrix_body(element: dict[str, Any], status: str = "OK") -> dict[str, Any]:
    return {"status": status, "rows": [{"elements": [element]}]}


def test_route_leg_params_request_traffic_for_departure_time() -> None:
    config = RouteWatchConfig(api_key="k")
    departure = datetime(2026, 1, 1, 8, 0, tzinfo=UTC)

    params = build_route_leg_params(config, _ORIGIN, _DEST, departure)

    assert params["origins"] == "40.712800,-74.006000"
    assert params["destinations"] == "40.730600,-73.935200"
    assert params["departure_time"] == str(int(departure.timestamp()))
    assert params["traffic_model"] == "best_guess"
    assert "key" not in params
    assert build_route_leg_params(config, _ORIGIN, _DEST, None)["departure_time"] == "now"


def test_route_leg_prefers_duration_in_traffic() -> None:
    leg = parse_route_leg(
        _matrix_body(
            {
                "status": "OK",
                "duration": {"value": 900, "text": "15 mins"},
                "duration_in_traffic": {"value": 1205, "text": "20 mins"},
                "distance": {"value": 7000, "text": "7 km"},
            }
        )
    )
    assert leg.duration_seconds == 1205
    assert leg.duration_text == "20 mins"
    assert leg.distance_meters == 7000


def test_route_leg_falls_back_to_plain_duration() -> None:
    leg = parse_route_leg(_matrix_body({"status": "OK", "duration": {"value": 900, "text": "15 mins"}}))
    assert leg.duration_seconds == 900


def test_route_leg_element_status_maps_to_api_error() -> None:
    with pytest.raises(ProviderApiError) as exc_info:
        parse_route_leg(_matrix_body({"status": "ZERO_RESULTS"}))
    assert exc_info.value.code == "ZERO_RESULTS"
    assert exc_info.value.endpoint == "/distancematrix/json"


def test_top_level_quota_status_maps_to_rate_limit() -> None:
    with pytest.raises(ProviderRateLimitError):
        parse_route_leg({"status": "OVER_QUERY_LIMIT", "error_message": "quota"})


def test_route_leg_without_elements_is_unavailable() -> None:
    with pytest.raises(ProviderUnavailableError):
        parse_route_leg({"status": "OK", "rows": []})


def test_directions_params_optimize_waypoints() -> None:
    config = RouteWatchConfig()
    params = build_directions_params(config, _ORIGIN, _DEST, [_ORIGIN, _DEST], optimize_waypoints=True)
    assert params["waypoints"] == "optimize:true|40.712800,-74.006000|40.730600,-73.935200"
    plain = build_directions_params(config, _ORIGIN, _DEST, [], optimize_waypoints=True)
    assert "waypoints" not in plain


def test_directions_flatten_steps_of_all_legs() -> None:
    body = {
        "status": "OK",
        "routes": [
            {
                "summary": "Broadway",
                "waypoint_order": [1, 0],
                "legs": [
                    {
                        "distance": {"value": 1000, "text": "1 km"},
                        "duration": {"value": 120, "text": "2 mins"},
                        "steps": [
                            {"html_instructions": "Head <b>north</b>", "distance": {"value": 400, "text": "0.4 km"}},
                            {
                                "html_instructions": "Turn <b>left</b><div>Destination on right</div>",
                                "maneuver": "turn-left",
                            },
                        ],
                    },
                    {
                        "distance": {"value": 500, "text": "0.5 km"},
                        "duration": {"value": 60, "text": "1 min"},
                        "steps": [{"html_instructions": "Take the ramp", "maneuver": "ramp-sideways"}],
                    },
                ],
            }
        ],
    }

    route = parse_directions(body, waypoint_count=2)

    assert [step.instruction_text for step in route.steps] == [
        "Head north",
        "Turn left Destination on right",
        "Take the ramp",
    ]
    assert [step.maneuver for step in route.steps] == [
        ManeuverKind.UNKNOWN,
        ManeuverKind.TURN_LEFT,
        ManeuverKind.UNKNOWN,
    ]
    assert route.waypoint_order == (1, 0)
    assert [leg.step_count for leg in route.legs] == [2, 1]
    assert route.total_duration_seconds == 180
    assert route.total_distance_meters == 1500


def test_directions_default_waypoint_order_is_input_order() -> None:
    body = {"status": "OK", "routes": [{"legs": []}]}
    assert parse_directions(body, waypoint_count=3).waypoint_order == (0, 1, 2)


def test_directions_without_route_is_api_error() -> None:
    with pytest.raises(ProviderApiError):
        parse_directions({"status": "ZERO_RESULTS", "routes": []})


@pytest.mark.asyncio
async def test_provider_route_leg_uses_transport() -> None:
    transport = _StaticTransport(_matrix_body({"status": "OK", "duration": {"value": 600, "text": "10 mins"}}))
    provider = GoogleDirectionsProvider(RouteWatchConfig(), transport)

    class _Point:
        latitude = 1.5
        longitude = 2.5

    leg = await provider.route_leg(_Point(), _DEST)

    assert leg.duration_seconds == 600
    endpoint, params = transport.requests[0]
    assert endpoint == "/distancematrix/json"
    assert params["origins"] == "1.500000,2.500000"
    assert params["departure_time"] == "now"


@pytest.mark.asyncio
async def test_provider_compute_route_requests_optimization() -> None:
    transport = _StaticTransport({"status": "OK", "routes": [{"legs": [], "waypoint_order": [0]}]})
    provider = GoogleDirectionsProvider(RouteWatchConfig(), transport)

    route = await provider.compute_route(_ORIGIN, _DEST, [_DEST])

    assert route.waypoint_order == (0,)
    endpoint, params = transport.requests[0]
    assert endpoint == "/directions/json"
    assert params["waypoints"].startswith("optimize:true|")


class _BadPoint:
    latitude = 91.0
    longitude = 0.0


@pytest.mark.asyncio
async def test_out_of_range_waypoint_is_invalid_input_and_never_sent() -> None:
    transport = _StaticTransport({"status": "OK", "routes": [{"legs": []}]})
    provider = GoogleDirectionsProvider(RouteWatchConfig(), transport)

    with pytest.raises(InvalidInputError):
        await provider.compute_route(_ORIGIN, _DEST, [_BadPoint()])
    with pytest.raises(InvalidInputError):
        await provider.route_leg(_BadPoint(), _DEST)
    assert transport.requests == []


@pytest.mark.asyncio
async def test_navigator_records_invalid_waypoint_as_last_error() -> None:
    transport = _StaticTransport({"status": "OK", "routes": [{"legs": []}]})
    navigator = Navigator(GoogleDirectionsProvider(RouteWatchConfig(), transport))

    assert await navigator.compute_route(_ORIGIN, _DEST, [_BadPoint()]) is None
    assert isinstance(navigator.last_error, InvalidInputError)
    assert navigator.last_route is None
