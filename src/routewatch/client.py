"""High-level async client wiring feed, provider, tracker and navigator."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from typing import Any

import aiohttp

from routewatch._mqtt import MqttPositionFeed
from routewatch._transport import HttpTransport
from routewatch.config import RouteWatchConfig
from routewatch.eta import EtaEngine
from routewatch.exceptions import RouteWatchError
from routewatch.feed import InMemoryPositionFeed, PositionFeed
from routewatch.geometry import LatLng
from routewatch.models.eta import StopEta
from routewatch.models.navigation import ComputedRoute
from routewatch.models.route import TrackedRoute
from routewatch.models.tracking import RouteTrackingState
from routewatch.navigation import Navigator
from routewatch.notify import LoggingNotifier, Notifier
from routewatch.provider import DirectionsProvider, GoogleDirectionsProvider
from routewatch.state.events import TrackingEvent
from routewatch.tracker import PositionStreamManager

_logger = logging.getLogger(__name__)


class RouteWatchClient:
    """Async entry point for fleet tracking and navigation.

    Builds one HTTP session, one provider and one position feed per
    client and injects them into the tracker and the navigator.

    Usage::

        async with RouteWatchClient(RouteWatchConfig.from_env()) as client:
            client.track(route)
            await client.compute_route(origin, destination, waypoints)
    """

    def __init__(
        self,
        config: RouteWatchConfig,
        *,
        session: aiohttp.ClientSession | None = None,
        feed: PositionFeed | None = None,
        provider: DirectionsProvider | None = None,
        notifier: Notifier | None = None,
    ) -> None:
        self._config = config
        self._external_session = session is not None
        self._http_session = session
        self._feed = feed
        self._owns_feed = feed is None
        self._provider = provider
        self._notifier: Notifier = notifier or LoggingNotifier()
        self._eta: EtaEngine | None = None
        self._tracker: PositionStreamManager | None = None
        self._navigator: Navigator | None = None

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> RouteWatchClient:
        if self._provider is None:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            self._provider = GoogleDirectionsProvider(
                self._config,
                HttpTransport(self._config, self._http_session),
            )

        if self._feed is None:
            if self._config.mqtt_enabled:
                mqtt_feed = MqttPositionFeed(self._config)
                mqtt_feed.start()
                self._feed = mqtt_feed
            else:
                self._feed = InMemoryPositionFeed()

        self._eta = EtaEngine.from_config(self._config, self._provider, self._notifier)
        self._tracker = PositionStreamManager(
            self._feed,
            self._eta,
            config=self._config,
            notifier=self._notifier,
        )
        self._navigator = Navigator(self._provider)
        _logger.debug("RouteWatch client started feed=%s", type(self._feed).__name__)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        if self._tracker is not None:
            await self._tracker.close()
        if self._navigator is not None:
            self._navigator.stop()
        if self._owns_feed and isinstance(self._feed, MqttPositionFeed):
            self._feed.stop()
        if self._owns_feed:
            self._feed = None
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
            self._provider = None
        self._tracker = None
        self._navigator = None
        self._eta = None

    # ------------------------------------------------------------------
    # Components
    # ------------------------------------------------------------------

    @property
    def config(self) -> RouteWatchConfig:
        return self._config

    @property
    def feed(self) -> PositionFeed:
        if self._feed is None:
            raise RouteWatchError("Client not initialized. Use 'async with RouteWatchClient(...) as client:'")
        return self._feed

    @property
    def tracker(self) -> PositionStreamManager:
        if self._tracker is None:
            raise RouteWatchError("Client not initialized. Use 'async with RouteWatchClient(...) as client:'")
        return self._tracker

    @property
    def navigator(self) -> Navigator:
        if self._navigator is None:
            raise RouteWatchError("Client not initialized. Use 'async with RouteWatchClient(...) as client:'")
        return self._navigator

    @property
    def eta(self) -> EtaEngine:
        if self._eta is None:
            raise RouteWatchError("Client not initialized. Use 'async with RouteWatchClient(...) as client:'")
        return self._eta

    # ------------------------------------------------------------------
    # Convenience
    # ------------------------------------------------------------------

    def track(self, route: TrackedRoute | dict[str, Any]) -> None:
        self.tracker.track(route)

    def set_tracked_routes(self, routes: Iterable[TrackedRoute | dict[str, Any]]) -> None:
        self.tracker.set_tracked_routes(routes)

    def untrack(self, route_id: str) -> bool:
        return self.tracker.untrack(route_id)

    def add_listener(self, listener: Callable[[TrackingEvent], None]) -> Callable[[], None]:
        return self.tracker.add_listener(listener)

    def get_state(self, route_id: str) -> RouteTrackingState | None:
        return self.tracker.get_state(route_id)

    def stop_etas(self, route_id: str) -> dict[str, StopEta]:
        return self.tracker.stop_etas(route_id)

    async def compute_route(
        self,
        origin: LatLng,
        destination: LatLng,
        waypoints: Sequence[LatLng] = (),
    ) -> ComputedRoute | None:
        return await self.navigator.compute_route(origin, destination, waypoints)
