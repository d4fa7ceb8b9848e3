"""Routing/ETA provider interface and the HTTP-backed implementation."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Protocol

from pydantic import ValidationError

from routewatch._api.directions import fetch_directions
from routewatch._api.distance_matrix import fetch_route_leg
from routewatch._transport import Transport
from routewatch.config import RouteWatchConfig
from routewatch.exceptions import InvalidInputError
from routewatch.geometry import LatLng
from routewatch.models.eta import RouteLeg
from routewatch.models.geo import Coordinate
from routewatch.models.navigation import ComputedRoute


class DirectionsProvider(Protocol):
    """External routing service consumed by the ETA engine and the navigator.

    Implementations raise :class:`~routewatch.exceptions.ProviderUnavailableError`
    (or a subclass) on any failure.
    """

    async def route_leg(
        self,
        origin: LatLng,
        destination: LatLng,
        departure_time: datetime | None = None,
    ) -> RouteLeg: ...

    async def compute_route(
        self,
        origin: LatLng,
        destination: LatLng,
        waypoints: Sequence[LatLng] = (),
        *,
        optimize_waypoints: bool = True,
    ) -> ComputedRoute: ...


def _as_coordinate(point: LatLng) -> Coordinate:
    if isinstance(point, Coordinate):
        return point
    try:
        return Coordinate(latitude=point.latitude, longitude=point.longitude)
    except ValidationError as exc:
        raise InvalidInputError(f"Invalid coordinate: {exc.errors()[0]['msg']}") from exc


class GoogleDirectionsProvider:
    """Provider backed by the Google Maps Distance Matrix and Directions web services.

    Construct once per session and share it; it holds no per-request state.
    """

    def __init__(self, config: RouteWatchConfig, transport: Transport) -> None:
        self._config = config
        self._transport = transport

    async def route_leg(
        self,
        origin: LatLng,
        destination: LatLng,
        departure_time: datetime | None = None,
    ) -> RouteLeg:
        return await fetch_route_leg(
            self._config,
            self._transport,
            _as_coordinate(origin),
            _as_coordinate(destination),
            departure_time,
        )

    async def compute_route(
        self,
        origin: LatLng,
        destination: LatLng,
        waypoints: Sequence[LatLng] = (),
        *,
        optimize_waypoints: bool = True,
    ) -> ComputedRoute:
        return await fetch_directions(
            self._config,
            self._transport,
            _as_coordinate(origin),
            _as_coordinate(destination),
            [_as_coordinate(waypoint) for waypoint in waypoints],
            optimize_waypoints=optimize_waypoints,
        )
