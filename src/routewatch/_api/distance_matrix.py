"""Single-leg travel time endpoint.

Endpoint:
  - /distancematrix/json (one origin, one destination, departure time)
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from routewatch._api._common import check_response, measure_text, measure_value, raise_for_status
from routewatch._transport import Transport
from routewatch.config import RouteWatchConfig
from routewatch.exceptions import ProviderUnavailableError
from routewatch.models.eta import RouteLeg
from routewatch.models.geo import Coordinate

_logger = logging.getLogger(__name__)

_ENDPOINT = "/distancematrix/json"


def build_route_leg_params(
    config: RouteWatchConfig,
    origin: Coordinate,
    destination: Coordinate,
    departure_time: datetime | None,
) -> dict[str, str]:
    """Build the query parameters for a traffic-aware leg estimate."""
    params: dict[str, str] = {
        "origins": origin.as_param(),
        "destinations": destination.as_param(),
        "mode": "driving",
        "language": config.language,
        "departure_time": "now" if departure_time is None else str(int(departure_time.timestamp())),
    }
    if config.traffic_model:
        params["traffic_model"] = config.traffic_model
    return params


def parse_route_leg(body: dict[str, Any]) -> RouteLeg:
    """Parse the single element of a distance matrix response."""
    check_response(_ENDPOINT, body)

    rows = body.get("rows")
    row = rows[0] if isinstance(rows, list) and rows else None
    elements = row.get("elements") if isinstance(row, dict) else None
    element = elements[0] if isinstance(elements, list) and elements else None
    if not isinstance(element, dict):
        raise ProviderUnavailableError(f"{_ENDPOINT} response has no matrix element", endpoint=_ENDPOINT)

    raise_for_status(endpoint=_ENDPOINT, status=str(element.get("status") or "UNKNOWN_ERROR"))

    # duration_in_traffic is only present when the request carried a departure time.
    duration_obj = element.get("duration_in_traffic")
    if measure_value(duration_obj) is None:
        _logger.debug("%s element has no duration_in_traffic; using duration", _ENDPOINT)
        duration_obj = element.get("duration")

    duration = measure_value(duration_obj)
    if duration is None or duration < 0:
        raise ProviderUnavailableError(f"{_ENDPOINT} element has no usable duration", endpoint=_ENDPOINT)

    return RouteLeg(
        duration_seconds=duration,
        duration_text=measure_text(duration_obj),
        distance_meters=measure_value(element.get("distance")),
    )


async def fetch_route_leg(
    config: RouteWatchConfig,
    transport: Transport,
    origin: Coordinate,
    destination: Coordinate,
    departure_time: datetime | None = None,
) -> RouteLeg:
    """Request a traffic-aware travel duration for ``origin -> destination``.

    Returns
    -------
    RouteLeg
        Duration (seconds and display text) and distance.
    """
    params = build_route_leg_params(config, origin, destination, departure_time)
    body = await transport.get_json(_ENDPOINT, params)
    leg = parse_route_leg(body)
    _logger.debug(
        "Route leg %s -> %s duration=%ss",
        origin.as_param(),
        destination.as_param(),
        leg.duration_seconds,
    )
    return leg
