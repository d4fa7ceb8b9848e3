from __future__ import annotations

import math

import pytest

from routewatch.exceptions import InvalidInputError
from routewatch.geometry import distance_meters, nearest_point_on_path, nearest_point_on_segments
from routewatch.models import Coordinate


def _c(lat: float, lng: float) -> Coordinate:
    return Coordinate(latitude=lat, longitude=lng)


def test_distance_is_zero_for_identical_points() -> None:
    point = _c(40.7128, -74.0060)
    assert distance_meters(point, point) == 0.0


def test_distance_is_symmetric_and_positive() -> None:
    a = _c(40.7128, -74.0060)
    b = _c(40.7306, -73.9352)
    ab = distance_meters(a, b)
    assert ab > 0
    assert ab == pytest.approx(distance_meters(b, a))


def test_one_degree_of_longitude_at_equator() -> None:
    # 2 * pi * R / 360
    assert distance_meters(_c(0, 0), _c(0, 1)) == pytest.approx(111_194.93, rel=1e-4)


def test_distance_of_antipodal_points_is_half_circumference() -> None:
    assert distance_meters(_c(0, 0), _c(0, 180)) == pytest.approx(math.pi * 6_371_000, rel=1e-9)


def test_distance_rejects_non_finite_input() -> None:
    class _Point:
        latitude = float("nan")
        longitude = 0.0

    with pytest.raises(InvalidInputError):
        distance_meters(_Point(), _c(0, 0))


def test_nearest_vertex_returns_closest_and_index() -> None:
    path = [_c(0, 0), _c(0, 1), _c(0, 2)]
    nearest = nearest_point_on_path(_c(0.001, 1.1), path)
    assert nearest.index == 1
    assert nearest.vertex == path[1]
    assert nearest.distance_m == pytest.approx(distance_meters(_c(0.001, 1.1), path[1]))


def test_nearest_vertex_tie_goes_to_first_occurrence() -> None:
    path = [_c(0, -1), _c(0, 1)]
    nearest = nearest_point_on_path(_c(0, 0), path)
    assert nearest.index == 0


def test_nearest_vertex_on_point_of_path_is_zero() -> None:
    path = [_c(10, 10), _c(10.5, 10.5)]
    assert nearest_point_on_path(_c(10.5, 10.5), path).distance_m == 0.0


def test_empty_path_is_invalid_input() -> None:
    with pytest.raises(InvalidInputError):
        nearest_point_on_path(_c(0, 0), [])
    with pytest.raises(InvalidInputError):
        nearest_point_on_segments(_c(0, 0), [])


def test_segment_projection_uses_perpendicular_distance() -> None:
    path = [_c(0, 0), _c(0, 1)]
    match = nearest_point_on_segments(_c(0.01, 0.5), path)
    assert match.segment_index == 0
    assert match.fraction == pytest.approx(0.5)
    assert match.point.longitude == pytest.approx(0.5)
    assert match.distance_m == pytest.approx(1111.95, rel=1e-3)


def test_segment_projection_clamps_to_endpoints() -> None:
    path = [_c(0, 0), _c(0, 1)]
    match = nearest_point_on_segments(_c(0, 2), path)
    assert match.fraction == 1.0
    assert match.distance_m == pytest.approx(distance_meters(_c(0, 2), _c(0, 1)))


def test_segment_projection_single_vertex_path() -> None:
    match = nearest_point_on_segments(_c(0, 0.01), [_c(0, 0)])
    assert match.segment_index == 0
    assert match.distance_m == pytest.approx(distance_meters(_c(0, 0.01), _c(0, 0)))


def test_segment_distance_never_exceeds_vertex_distance() -> None:
    path = [_c(0, 0), _c(0.5, 0.5), _c(1, 0)]
    point = _c(0.3, 0.1)
    assert nearest_point_on_segments(point, path).distance_m <= nearest_point_on_path(point, path).distance_m
