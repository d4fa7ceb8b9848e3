"""routewatch - Async fleet position tracking with deviation, speed and ETA alerts."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("routewatch")
except PackageNotFoundError:
    __version__ = "0+local"
from routewatch._mqtt import MqttPositionFeed
from routewatch.client import RouteWatchClient
from routewatch.config import PathMatch, RouteWatchConfig, ThresholdMatch
from routewatch.deviation import distance_from_path, is_off_route
from routewatch.eta import EtaEngine, due_thresholds
from routewatch.exceptions import (
    InvalidInputError,
    ProviderApiError,
    ProviderRateLimitError,
    ProviderUnavailableError,
    RouteWatchConfigError,
    RouteWatchError,
    SubscriptionError,
)
from routewatch.feed import InMemoryPositionFeed, PositionFeed, QueueSubscription
from routewatch.geometry import distance_meters, nearest_point_on_path, nearest_point_on_segments
from routewatch.models import (
    ComputedRoute,
    Coordinate,
    LegSummary,
    ManeuverKind,
    NavigationStep,
    Position,
    RouteLeg,
    RouteTrackingState,
    Stop,
    StopEta,
    TrackedRoute,
)
from routewatch.navigation import NavigationStepper, Navigator
from routewatch.notify import CallbackNotifier, ConsentNotifier, LoggingNotifier, Notifier, RecordingNotifier
from routewatch.provider import DirectionsProvider, GoogleDirectionsProvider
from routewatch.speed import is_speeding
from routewatch.state.events import TrackingEvent, TrackingEventKind
from routewatch.tracker import PositionStreamManager

__all__ = [
    "__version__",
    "CallbackNotifier",
    "ComputedRoute",
    "ConsentNotifier",
    "Coordinate",
    "DirectionsProvider",
    "EtaEngine",
    "GoogleDirectionsProvider",
    "InMemoryPositionFeed",
    "InvalidInputError",
    "LegSummary",
    "LoggingNotifier",
    "ManeuverKind",
    "MqttPositionFeed",
    "NavigationStep",
    "NavigationStepper",
    "Navigator",
    "Notifier",
    "PathMatch",
    "Position",
    "PositionFeed",
    "PositionStreamManager",
    "ProviderApiError",
    "ProviderRateLimitError",
    "ProviderUnavailableError",
    "QueueSubscription",
    "RecordingNotifier",
    "RouteLeg",
    "RouteTrackingState",
    "RouteWatchClient",
    "RouteWatchConfig",
    "RouteWatchConfigError",
    "RouteWatchError",
    "Stop",
    "StopEta",
    "SubscriptionError",
    "ThresholdMatch",
    "TrackedRoute",
    "TrackingEvent",
    "TrackingEventKind",
    "distance_from_path",
    "distance_meters",
    "due_thresholds",
    "is_off_route",
    "is_speeding",
    "nearest_point_on_path",
    "nearest_point_on_segments",
]
