"""Geospatial utilities.

Pure functions over anything exposing ``latitude`` and ``longitude``
attributes in degrees (:class:`~routewatch.models.Coordinate`,
:class:`~routewatch.models.Position`).
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

from routewatch._constants import EARTH_RADIUS_M
from routewatch.exceptions import InvalidInputError
from routewatch.models.geo import Coordinate


class LatLng(Protocol):
    @property
    def latitude(self) -> float: ...

    @property
    def longitude(self) -> float: ...


@dataclass(frozen=True, slots=True)
class NearestPoint:
    """Closest path vertex to a point."""

    vertex: LatLng
    index: int
    distance_m: float


@dataclass(frozen=True, slots=True)
class SegmentMatch:
    """Closest point on a polyline to a point.

    ``fraction`` is the position of ``point`` along segment
    ``segment_index`` (0 at its start vertex, 1 at its end vertex).
    """

    point: Coordinate
    segment_index: int
    fraction: float
    distance_m: float


def _coords(point: LatLng) -> tuple[float, float]:
    try:
        lat = float(point.latitude)
        lng = float(point.longitude)
    except (AttributeError, TypeError, ValueError) as exc:
        raise InvalidInputError(f"Not a coordinate: {point!r}") from exc
    if not (math.isfinite(lat) and math.isfinite(lng)):
        raise InvalidInputError(f"Coordinate must be finite, got ({lat}, {lng})")
    return lat, lng


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Haversine distance in meters between two lat/lon points in degrees."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2.0) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2.0) ** 2
    # Rounding can push a marginally past 1 for antipodal points.
    a = min(1.0, max(0.0, a))
    c = 2.0 * math.atan2(math.sqrt(a), math.sqrt(1.0 - a))
    return EARTH_RADIUS_M * c


def distance_meters(a: LatLng, b: LatLng) -> float:
    """Great-circle distance between two coordinates.

    Non-negative, symmetric, and ``0.0`` when both points coincide.
    """
    lat1, lon1 = _coords(a)
    lat2, lon2 = _coords(b)
    if lat1 == lat2 and lon1 == lon2:
        return 0.0
    return haversine_m(lat1, lon1, lat2, lon2)


def nearest_point_on_path(point: LatLng, path: Sequence[LatLng]) -> NearestPoint:
    """Return the path vertex closest to *point*.

    Ties are broken by first occurrence in path order.

    Raises
    ------
    InvalidInputError
        If *path* is empty. An empty path means no deviation check is
        possible; it is never "zero distance".
    """
    if not path:
        raise InvalidInputError("Cannot search an empty path")

    best: NearestPoint | None = None
    for index, vertex in enumerate(path):
        distance = distance_meters(point, vertex)
        if best is None or distance < best.distance_m:
            best = NearestPoint(vertex=vertex, index=index, distance_m=distance)
    assert best is not None  # noqa: S101
    return best


def _project_onto_segment(
    lat: float,
    lng: float,
    start: tuple[float, float],
    end: tuple[float, float],
) -> tuple[float, float, float]:
    """Project a point onto a segment in a local equirectangular plane.

    Returns ``(fraction, lat, lng)`` of the closest segment point.
    """
    scale = math.cos(math.radians(lat))
    ax = (start[1] - lng) * scale
    ay = start[0] - lat
    bx = (end[1] - lng) * scale
    by = end[0] - lat
    dx = bx - ax
    dy = by - ay
    length_sq = dx * dx + dy * dy
    if length_sq == 0.0:
        return 0.0, start[0], start[1]
    fraction = -(ax * dx + ay * dy) / length_sq
    fraction = min(1.0, max(0.0, fraction))
    return (
        fraction,
        start[0] + (end[0] - start[0]) * fraction,
        start[1] + (end[1] - start[1]) * fraction,
    )


def nearest_point_on_segments(point: LatLng, path: Sequence[LatLng]) -> SegmentMatch:
    """Return the closest point on the polyline through *path*.

    A single-vertex path degenerates to that vertex. Ties are broken by
    first segment in path order.

    Raises
    ------
    InvalidInputError
        If *path* is empty.
    """
    if not path:
        raise InvalidInputError("Cannot search an empty path")

    lat, lng = _coords(point)
    vertices = [_coords(vertex) for vertex in path]
    if len(vertices) == 1:
        only = vertices[0]
        return SegmentMatch(
            point=Coordinate(latitude=only[0], longitude=only[1]),
            segment_index=0,
            fraction=0.0,
            distance_m=distance_meters(point, path[0]),
        )

    best: SegmentMatch | None = None
    for index in range(len(vertices) - 1):
        fraction, p_lat, p_lng = _project_onto_segment(lat, lng, vertices[index], vertices[index + 1])
        distance = 0.0 if (p_lat == lat and p_lng == lng) else haversine_m(lat, lng, p_lat, p_lng)
        if best is None or distance < best.distance_m:
            best = SegmentMatch(
                point=Coordinate(latitude=p_lat, longitude=p_lng),
                segment_index=index,
                fraction=fraction,
                distance_m=distance,
            )
    assert best is not None  # noqa: S101
    return best
