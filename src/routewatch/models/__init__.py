"""Data models for positions, routes, arrival estimates and navigation."""

from routewatch.models._base import FeedModel
from routewatch.models.eta import RouteLeg, StopEta, remaining_minutes
from routewatch.models.geo import Coordinate, RoutePath, Stop
from routewatch.models.navigation import ComputedRoute, LegSummary, ManeuverKind, NavigationStep
from routewatch.models.position import Position
from routewatch.models.route import TrackedRoute
from routewatch.models.tracking import RouteTrackingState

__all__ = [
    "ComputedRoute",
    "Coordinate",
    "FeedModel",
    "LegSummary",
    "ManeuverKind",
    "NavigationStep",
    "Position",
    "RouteLeg",
    "RoutePath",
    "RouteTrackingState",
    "Stop",
    "StopEta",
    "TrackedRoute",
    "remaining_minutes",
]
