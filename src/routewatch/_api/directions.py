"""Multi-leg route computation endpoint.

Endpoint:
  - /directions/json (origin, destination, optimized stopover waypoints)
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from routewatch._api._common import check_response, measure_text, measure_value, strip_html
from routewatch._transport import Transport
from routewatch.config import RouteWatchConfig
from routewatch.exceptions import ProviderUnavailableError
from routewatch.ingestion.normalize import safe_int
from routewatch.models.geo import Coordinate
from routewatch.models.navigation import ComputedRoute, LegSummary, ManeuverKind, NavigationStep

_logger = logging.getLogger(__name__)

_ENDPOINT = "/directions/json"


def build_directions_params(
    config: RouteWatchConfig,
    origin: Coordinate,
    destination: Coordinate,
    waypoints: Sequence[Coordinate],
    *,
    optimize_waypoints: bool,
) -> dict[str, str]:
    """Build the query parameters for a driving route with stopovers."""
    params: dict[str, str] = {
        "origin": origin.as_param(),
        "destination": destination.as_param(),
        "mode": "driving",
        "language": config.language,
    }
    if waypoints:
        parts = [waypoint.as_param() for waypoint in waypoints]
        if optimize_waypoints:
            parts.insert(0, "optimize:true")
        params["waypoints"] = "|".join(parts)
    return params


def _parse_step(step: dict[str, Any]) -> NavigationStep:
    return NavigationStep(
        maneuver=ManeuverKind(str(step.get("maneuver") or ManeuverKind.UNKNOWN.value)),
        instruction_text=strip_html(step.get("html_instructions") or step.get("instructions")),
        distance_meters=measure_value(step.get("distance")),
        distance_text=measure_text(step.get("distance")),
        duration_seconds=measure_value(step.get("duration")),
        duration_text=measure_text(step.get("duration")),
    )


def parse_directions(body: dict[str, Any], *, waypoint_count: int = 0) -> ComputedRoute:
    """Parse the first route of a directions response.

    Steps of every leg are flattened in travel order.
    """
    check_response(_ENDPOINT, body)

    routes = body.get("routes")
    route = routes[0] if isinstance(routes, list) and routes else None
    if not isinstance(route, dict):
        raise ProviderUnavailableError(f"{_ENDPOINT} response has no route", endpoint=_ENDPOINT)

    steps: list[NavigationStep] = []
    legs: list[LegSummary] = []
    for leg in route.get("legs") or []:
        if not isinstance(leg, dict):
            continue
        leg_steps = [_parse_step(step) for step in leg.get("steps") or [] if isinstance(step, dict)]
        steps.extend(leg_steps)
        legs.append(
            LegSummary(
                start_address=str(leg.get("start_address") or ""),
                end_address=str(leg.get("end_address") or ""),
                distance_meters=measure_value(leg.get("distance")),
                distance_text=measure_text(leg.get("distance")),
                duration_seconds=measure_value(leg.get("duration")),
                duration_text=measure_text(leg.get("duration")),
                step_count=len(leg_steps),
            )
        )

    order: list[int] = []
    for value in route.get("waypoint_order") or []:
        index = safe_int(value)
        if index is not None:
            order.append(index)
    if not order:
        order = list(range(waypoint_count))

    return ComputedRoute(
        steps=tuple(steps),
        legs=tuple(legs),
        waypoint_order=tuple(order),
        summary=str(route.get("summary") or ""),
    )


async def fetch_directions(
    config: RouteWatchConfig,
    transport: Transport,
    origin: Coordinate,
    destination: Coordinate,
    waypoints: Sequence[Coordinate] = (),
    *,
    optimize_waypoints: bool = True,
) -> ComputedRoute:
    """Compute a driving route through *waypoints*.

    When *optimize_waypoints* is set the provider may reorder the
    waypoints; callers must read ``waypoint_order`` rather than assume
    input order.
    """
    params = build_directions_params(
        config,
        origin,
        destination,
        waypoints,
        optimize_waypoints=optimize_waypoints,
    )
    body = await transport.get_json(_ENDPOINT, params)
    route = parse_directions(body, waypoint_count=len(waypoints))
    _logger.debug(
        "Directions computed legs=%d steps=%d waypoint_order=%s",
        len(route.legs),
        len(route.steps),
        list(route.waypoint_order),
    )
    return route
