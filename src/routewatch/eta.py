"""Arrival estimation and threshold notifications.

For every (route, stop) pair the engine asks the provider for a
traffic-aware travel duration, turns it into an absolute arrival time and
raises at most one notification per configured minute threshold per stop
per trip.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Collection, Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from routewatch._constants import DEFAULT_ETA_THRESHOLDS, ETA_NOTIFICATION_TITLE, eta_notification_body
from routewatch.config import RouteWatchConfig, ThresholdMatch
from routewatch.exceptions import ProviderUnavailableError
from routewatch.geometry import LatLng
from routewatch.models.eta import StopEta, remaining_minutes
from routewatch.models.geo import Stop
from routewatch.notify import Notifier
from routewatch.provider import DirectionsProvider

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class ThresholdDecision:
    """Thresholds to notify now, and thresholds to retire silently."""

    notify: tuple[int, ...] = ()
    retire: tuple[int, ...] = ()

    @property
    def fired(self) -> frozenset[int]:
        return frozenset(self.notify) | frozenset(self.retire)


def due_thresholds(
    remaining_seconds: float,
    thresholds: Iterable[int],
    fired: Collection[int],
    match: ThresholdMatch = ThresholdMatch.EXACT,
) -> ThresholdDecision:
    """Decide which thresholds a new estimate fires.

    ``EXACT``: ``T`` is due when the half-up rounded remaining minutes
    equal ``T`` and ``T`` has not fired this trip. A coarse feed can skip
    a threshold entirely.

    ``AT_OR_BELOW``: the tightest unfired ``T`` with ``minutes <= T``
    notifies; larger unfired thresholds that were jumped over are
    retired without a notification.
    """
    minutes = remaining_minutes(remaining_seconds)
    pending = sorted({t for t in thresholds if t not in fired})

    if match == ThresholdMatch.EXACT:
        return ThresholdDecision(notify=tuple(t for t in pending if t == minutes))

    crossed = [t for t in pending if minutes <= t]
    if not crossed:
        return ThresholdDecision()
    return ThresholdDecision(notify=(crossed[0],), retire=tuple(crossed[1:]))


@dataclass
class _Trip:
    started_at: datetime
    stops: dict[str, StopEta] = field(default_factory=dict)


class EtaEngine:
    """Per-trip arrival estimates and threshold notifications.

    A route must have an open trip (:meth:`begin_trip`) for estimates to
    be recorded. Ending or restarting the trip while a provider request
    is in flight discards that request's result.
    """

    def __init__(
        self,
        provider: DirectionsProvider,
        notifier: Notifier | None = None,
        *,
        thresholds: Iterable[int] = DEFAULT_ETA_THRESHOLDS,
        match: ThresholdMatch = ThresholdMatch.EXACT,
        max_failures: int = 3,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._provider = provider
        self._notifier = notifier
        self._thresholds = tuple(sorted(set(thresholds), reverse=True))
        self._match = match
        self._max_failures = max_failures
        self._clock = clock
        self._trips: dict[str, _Trip] = {}

    @classmethod
    def from_config(
        cls,
        config: RouteWatchConfig,
        provider: DirectionsProvider,
        notifier: Notifier | None = None,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> EtaEngine:
        return cls(
            provider,
            notifier,
            thresholds=config.eta_thresholds,
            match=config.threshold_match,
            max_failures=config.eta_max_failures,
            clock=clock,
        )

    @property
    def thresholds(self) -> tuple[int, ...]:
        return self._thresholds

    # ------------------------------------------------------------------
    # Trip lifecycle
    # ------------------------------------------------------------------

    def begin_trip(self, route_id: str) -> None:
        """Start a new trip for *route_id*; fired thresholds start empty."""
        self._trips[route_id] = _Trip(started_at=self._clock())
        _logger.debug("ETA trip started route=%s", route_id)

    def end_trip(self, route_id: str) -> None:
        """Drop all estimates for *route_id*. In-flight results are discarded."""
        if self._trips.pop(route_id, None) is not None:
            _logger.debug("ETA trip ended route=%s", route_id)

    def has_trip(self, route_id: str) -> bool:
        return route_id in self._trips

    def get(self, route_id: str, stop_id: str) -> StopEta | None:
        trip = self._trips.get(route_id)
        if trip is None:
            return None
        return trip.stops.get(stop_id)

    def stop_etas(self, route_id: str) -> dict[str, StopEta]:
        trip = self._trips.get(route_id)
        if trip is None:
            return {}
        return dict(trip.stops)

    # ------------------------------------------------------------------
    # Estimation
    # ------------------------------------------------------------------

    async def estimate_and_notify(self, route_id: str, position: LatLng, stop: Stop) -> StopEta | None:
        """Refresh the arrival estimate for *stop* from *position*.

        Returns the updated :class:`StopEta`, the previous one when the
        provider failed, or ``None`` when the route has no open trip (or
        the trip ended while the request was in flight).
        """
        trip = self._trips.get(route_id)
        if trip is None:
            _logger.debug("No open trip for route=%s; skipping ETA for stop=%s", route_id, stop.stop_id)
            return None

        requested_at = self._clock()
        try:
            leg = await self._provider.route_leg(position, stop.location, requested_at)
        except ProviderUnavailableError as exc:
            if self._trips.get(route_id) is not trip:
                return None
            _logger.warning("ETA provider unavailable route=%s stop=%s: %s", route_id, stop.stop_id, exc)
            return self._record_failure(trip, route_id, stop)
        except Exception:
            if self._trips.get(route_id) is not trip:
                return None
            _logger.warning("ETA request failed route=%s stop=%s", route_id, stop.stop_id, exc_info=True)
            return self._record_failure(trip, route_id, stop)

        if self._trips.get(route_id) is not trip:
            _logger.debug("Discarding ETA for ended trip route=%s stop=%s", route_id, stop.stop_id)
            return None

        previous = trip.stops.get(stop.stop_id)
        fired = previous.fired_thresholds if previous is not None else frozenset()
        decision = due_thresholds(leg.duration_seconds, self._thresholds, fired, self._match)

        eta = StopEta(
            route_id=route_id,
            stop_id=stop.stop_id,
            stop_name=stop.name,
            estimated_arrival=requested_at + timedelta(seconds=leg.duration_seconds),
            remaining_seconds=leg.duration_seconds,
            duration_text=leg.duration_text or None,
            fired_thresholds=fired | decision.fired,
            consecutive_failures=0,
            available=True,
            updated_at=requested_at,
        )
        trip.stops[stop.stop_id] = eta

        for minutes in decision.notify:
            self._notify(ETA_NOTIFICATION_TITLE, eta_notification_body(stop.label, minutes))
        if decision.retire:
            _logger.debug(
                "Retired skipped thresholds route=%s stop=%s thresholds=%s",
                route_id,
                stop.stop_id,
                list(decision.retire),
            )
        return eta

    def _record_failure(self, trip: _Trip, route_id: str, stop: Stop) -> StopEta:
        previous = trip.stops.get(stop.stop_id)
        if previous is None:
            failed = StopEta(
                route_id=route_id,
                stop_id=stop.stop_id,
                stop_name=stop.name,
                consecutive_failures=1,
                available=False,
            )
        else:
            failures = previous.consecutive_failures + 1
            failed = previous.model_copy(
                update={
                    "consecutive_failures": failures,
                    "available": previous.available and failures < self._max_failures,
                }
            )
            if previous.available and not failed.available:
                _logger.warning(
                    "No ETA available route=%s stop=%s after %d failures",
                    route_id,
                    stop.stop_id,
                    failures,
                )
        trip.stops[stop.stop_id] = failed
        return failed

    def _notify(self, title: str, body: str) -> None:
        if self._notifier is None:
            _logger.debug("No notifier configured; dropping %s", title)
            return
        try:
            self._notifier.notify(title, body)
        except Exception:
            _logger.warning("Notifier failed for %s", title, exc_info=True)
