"""Position stream manager.

Owns one feed subscription and one consumer task per tracked route and
runs every position report through the deviation, speed and ETA
pipeline. Routes are independent: a failing stream or a slow provider
for one route never blocks another.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from routewatch._constants import (
    DEVIATION_NOTIFICATION_TITLE,
    SPEED_NOTIFICATION_TITLE,
    deviation_notification_body,
    speed_notification_body,
)
from routewatch.config import RouteWatchConfig
from routewatch.deviation import distance_from_path
from routewatch.eta import EtaEngine
from routewatch.exceptions import InvalidInputError, SubscriptionError
from routewatch.feed import PositionFeed, PositionSubscription
from routewatch.ingestion.positions import parse_position
from routewatch.models.eta import StopEta
from routewatch.models.geo import Stop
from routewatch.models.position import Position
from routewatch.models.route import TrackedRoute
from routewatch.models.tracking import RouteTrackingState
from routewatch.notify import Notifier
from routewatch.speed import is_speeding
from routewatch.state.events import TrackingEvent, TrackingEventKind
from routewatch.state.store import TrackingStore

_logger = logging.getLogger(__name__)

TrackingListener = Callable[[TrackingEvent], None]


@dataclass
class _RouteEntry:
    route: TrackedRoute
    subscription: PositionSubscription | None = None
    task: asyncio.Task[None] | None = None
    completed_stops: set[str] = field(default_factory=set)
    missing_path_logged: bool = False

    @property
    def is_live(self) -> bool:
        return self.task is not None and not self.task.done()

    def pending_stops(self) -> list[Stop]:
        return [stop for stop in self.route.stops if stop.stop_id not in self.completed_stops]


class PositionStreamManager:
    """Tracks a set of routes against a position feed.

    Parameters
    ----------
    feed : PositionFeed
        Source of per-route position subscriptions.
    eta_engine : EtaEngine
        Receives every position for every pending stop.
    config : RouteWatchConfig, optional
        Thresholds and alert settings. Defaults to ``RouteWatchConfig()``.
    notifier : Notifier, optional
        Target for deviation/speed transition alerts.
    store : TrackingStore, optional
        State store; a fresh one is created when omitted.
    """

    def __init__(
        self,
        feed: PositionFeed,
        eta_engine: EtaEngine,
        *,
        config: RouteWatchConfig | None = None,
        notifier: Notifier | None = None,
        store: TrackingStore | None = None,
    ) -> None:
        self._feed = feed
        self._eta = eta_engine
        self._config = config or RouteWatchConfig()
        self._notifier = notifier
        self._store = store or TrackingStore()
        self._routes: dict[str, _RouteEntry] = {}
        self._listeners: list[TrackingListener] = []

    # ------------------------------------------------------------------
    # Subscription lifecycle
    # ------------------------------------------------------------------

    @property
    def tracked_route_ids(self) -> frozenset[str]:
        return frozenset(self._routes)

    def get_route(self, route_id: str) -> TrackedRoute | None:
        entry = self._routes.get(route_id)
        return entry.route if entry is not None else None

    def is_live(self, route_id: str) -> bool:
        entry = self._routes.get(route_id)
        return entry is not None and entry.is_live

    def track(self, route: TrackedRoute | dict[str, Any]) -> None:
        """Start tracking *route*, or update its metadata if already tracked.

        Must be called from within the running event loop. A route whose
        stream died is re-subscribed; a live route is never subscribed
        twice.
        """
        loop = asyncio.get_running_loop()
        if not isinstance(route, TrackedRoute):
            route = TrackedRoute.model_validate(route)
        route_id = route.route_id

        entry = self._routes.get(route_id)
        if entry is not None and entry.is_live:
            entry.route = route
            _logger.debug("Updated metadata for tracked route=%s", route_id)
            return

        if entry is None:
            entry = _RouteEntry(route=route)
            self._routes[route_id] = entry
            self._store.open_route(route_id)
            self._eta.begin_trip(route_id)
            _logger.debug("Tracking route=%s stops=%d", route_id, len(route.stops))
            self._emit(TrackingEvent(kind=TrackingEventKind.TRACKING_STARTED, route_id=route_id))
        else:
            entry.route = route
            _logger.debug("Re-subscribing route=%s after stream failure", route_id)

        self._start_consumer(entry, loop)

    def set_tracked_routes(self, routes: Iterable[TrackedRoute | dict[str, Any]]) -> None:
        """Replace the tracked set, touching only the routes that changed."""
        wanted: dict[str, TrackedRoute] = {}
        for route in routes:
            parsed = route if isinstance(route, TrackedRoute) else TrackedRoute.model_validate(route)
            wanted[parsed.route_id] = parsed

        for route_id in [rid for rid in self._routes if rid not in wanted]:
            self.untrack(route_id)
        for route in wanted.values():
            self.track(route)

    def untrack(self, route_id: str) -> bool:
        """Stop tracking *route_id*. Returns ``False`` when it was not tracked.

        Teardown is synchronous: no listener sees an event for the route
        after the ``tracking_stopped`` event emitted here. The consumer is
        not cancelled; it exits once the update it is processing finishes,
        and the ETA results of that update are discarded.
        """
        entry = self._routes.pop(route_id, None)
        if entry is None:
            return False

        self._feed.unsubscribe(route_id)
        if entry.subscription is not None:
            entry.subscription.close()
        self._store.close_route(route_id)
        self._eta.end_trip(route_id)
        _logger.debug("Stopped tracking route=%s", route_id)
        self._emit(TrackingEvent(kind=TrackingEventKind.TRACKING_STOPPED, route_id=route_id))
        return True

    def _start_consumer(self, entry: _RouteEntry, loop: asyncio.AbstractEventLoop) -> None:
        route_id = entry.route.route_id
        try:
            subscription = self._feed.subscribe(route_id)
        except SubscriptionError as exc:
            _logger.warning("Subscription failed route=%s: %s", route_id, exc)
            self._emit(TrackingEvent(kind=TrackingEventKind.ERROR, route_id=route_id, error=str(exc)))
            return
        entry.subscription = subscription
        entry.task = loop.create_task(
            self._consume(entry, subscription),
            name=f"routewatch-track-{route_id}",
        )

    async def _consume(self, entry: _RouteEntry, subscription: PositionSubscription) -> None:
        route_id = entry.route.route_id
        try:
            async for position in subscription:
                if self._routes.get(route_id) is not entry:
                    break
                await self.handle_position(route_id, position)
        except SubscriptionError as exc:
            if self._routes.get(route_id) is entry:
                _logger.warning("Position stream failed route=%s: %s", route_id, exc)
                self._emit(TrackingEvent(kind=TrackingEventKind.ERROR, route_id=route_id, error=str(exc)))
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            if self._routes.get(route_id) is entry:
                _logger.warning("Position consumer crashed route=%s", route_id, exc_info=True)
                self._emit(TrackingEvent(kind=TrackingEventKind.ERROR, route_id=route_id, error=repr(exc)))
        finally:
            subscription.close()

    # ------------------------------------------------------------------
    # Per-update pipeline
    # ------------------------------------------------------------------

    async def handle_position(
        self,
        route_id: str,
        position: Position | dict[str, Any] | bytes | str,
    ) -> RouteTrackingState | None:
        """Apply one position report to *route_id*.

        Returns the new tracking state, or ``None`` when the route is not
        tracked (the update is dropped without side effects).
        """
        entry = self._routes.get(route_id)
        if entry is None:
            _logger.debug("Dropping position for untracked route=%s", route_id)
            return None
        position = parse_position(position)

        previous = self._store.get(route_id)
        off_route, deviation_m = self._evaluate_deviation(entry, position)
        speeding = is_speeding(position, self._config.speed_limit_mph)
        state = self._store.record(
            route_id,
            position,
            is_off_route=off_route,
            deviation_m=deviation_m,
            is_speeding=speeding,
        )
        if state is None:
            return None

        self._emit(TrackingEvent(kind=TrackingEventKind.POSITION, route_id=route_id, state=state))
        self._check_transitions(entry, previous, state)

        pending = entry.pending_stops()
        if pending:
            results = await asyncio.gather(
                *(self._eta.estimate_and_notify(route_id, position, stop) for stop in pending)
            )
            if self._routes.get(route_id) is entry:
                for stop_eta in results:
                    if stop_eta is not None:
                        self._emit(
                            TrackingEvent(kind=TrackingEventKind.ETA, route_id=route_id, state=state, stop_eta=stop_eta)
                        )
        return state

    def _evaluate_deviation(self, entry: _RouteEntry, position: Position) -> tuple[bool | None, float | None]:
        route = entry.route
        if not route.has_path:
            if not entry.missing_path_logged:
                _logger.warning("Route %s has no path; deviation is unknown", route.route_id)
                entry.missing_path_logged = True
            return None, None
        try:
            deviation_m = distance_from_path(position, route.path, mode=self._config.path_match)
        except InvalidInputError as exc:
            _logger.warning("Deviation check skipped route=%s: %s", route.route_id, exc)
            return None, None
        return deviation_m > self._config.deviation_threshold_m, deviation_m

    def _check_transitions(
        self,
        entry: _RouteEntry,
        previous: RouteTrackingState | None,
        state: RouteTrackingState,
    ) -> None:
        label = entry.route.label
        was_off = previous is not None and previous.is_off_route is True
        if state.is_off_route is True and not was_off:
            _logger.warning("Route %s went off route deviation=%.0fm", state.route_id, state.deviation_m or 0.0)
            self._alert(DEVIATION_NOTIFICATION_TITLE, deviation_notification_body(label))
        elif was_off and state.is_off_route is False:
            _logger.info("Route %s is back on route", state.route_id)

        was_speeding = previous is not None and previous.is_speeding
        if state.is_speeding and not was_speeding:
            _logger.warning("Route %s is speeding speed=%s", state.route_id, state.latest_position.speed)
            self._alert(SPEED_NOTIFICATION_TITLE, speed_notification_body(label))

    def _alert(self, title: str, body: str) -> None:
        if not self._config.alert_on_transitions or self._notifier is None:
            return
        try:
            self._notifier.notify(title, body)
        except Exception:
            _logger.warning("Notifier failed for %s", title, exc_info=True)

    # ------------------------------------------------------------------
    # Trip control
    # ------------------------------------------------------------------

    def complete_stop(self, route_id: str, stop_id: str) -> bool:
        """Mark *stop_id* as served; it receives no further ETA requests."""
        entry = self._routes.get(route_id)
        if entry is None or all(stop.stop_id != stop_id for stop in entry.route.stops):
            _logger.debug("complete_stop ignored route=%s stop=%s", route_id, stop_id)
            return False
        entry.completed_stops.add(stop_id)
        return True

    def start_new_trip(self, route_id: str) -> bool:
        """Reset fired thresholds and completed stops for *route_id*."""
        entry = self._routes.get(route_id)
        if entry is None:
            return False
        entry.completed_stops.clear()
        self._eta.begin_trip(route_id)
        _logger.debug("New trip started route=%s", route_id)
        return True

    # ------------------------------------------------------------------
    # Listeners and reads
    # ------------------------------------------------------------------

    def add_listener(self, listener: TrackingListener) -> Callable[[], None]:
        """Register *listener*; returns a callable that removes it."""
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    def _emit(self, event: TrackingEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                _logger.warning("Tracking listener failed for %s event", event.kind, exc_info=True)

    def get_state(self, route_id: str) -> RouteTrackingState | None:
        return self._store.get(route_id)

    def snapshot(self) -> dict[str, RouteTrackingState]:
        return self._store.snapshot()

    def stop_etas(self, route_id: str) -> dict[str, StopEta]:
        return self._eta.stop_etas(route_id)

    async def close(self) -> None:
        """Untrack every route, then cancel and await the consumer tasks.

        Unlike :meth:`untrack`, shutdown does not wait for in-flight
        provider requests.
        """
        tasks = [entry.task for entry in self._routes.values() if entry.task is not None]
        for route_id in list(self._routes):
            self.untrack(route_id)
        current = asyncio.current_task()
        pending = [task for task in tasks if task is not current and not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
