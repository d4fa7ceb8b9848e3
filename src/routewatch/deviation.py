"""Route deviation detection."""

from __future__ import annotations

from collections.abc import Sequence

from routewatch._constants import DEFAULT_DEVIATION_THRESHOLD_M
from routewatch.config import PathMatch
from routewatch.exceptions import InvalidInputError
from routewatch.geometry import LatLng, nearest_point_on_path, nearest_point_on_segments


def distance_from_path(
    position: LatLng,
    path: Sequence[LatLng] | None,
    *,
    mode: PathMatch = PathMatch.SEGMENT,
) -> float:
    """Distance in meters from *position* to the route *path*.

    Raises
    ------
    InvalidInputError
        If *path* is absent or empty.
    """
    if not path:
        raise InvalidInputError("Route path is missing; deviation cannot be evaluated")
    if mode == PathMatch.VERTEX:
        return nearest_point_on_path(position, path).distance_m
    return nearest_point_on_segments(position, path).distance_m


def is_off_route(
    position: LatLng,
    path: Sequence[LatLng] | None,
    threshold_meters: float = DEFAULT_DEVIATION_THRESHOLD_M,
    *,
    mode: PathMatch = PathMatch.SEGMENT,
) -> bool:
    """Return ``True`` when *position* is farther than *threshold_meters* from *path*.

    The comparison is strict: a vehicle exactly at the threshold is on
    route. Callers must catch :class:`InvalidInputError` for a missing
    path and treat the result as unknown.
    """
    return distance_from_path(position, path, mode=mode) > threshold_meters
