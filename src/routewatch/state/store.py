"""In-memory store for per-route tracking state.

This is the only component allowed to create or replace
:class:`~routewatch.models.tracking.RouteTrackingState` values.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime

from routewatch.models.position import Position
from routewatch.models.tracking import RouteTrackingState
from routewatch.state.policy import is_out_of_order

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class TrackingStore:
    """Latest derived state for every open route.

    A route must be opened before positions are recorded for it. Closing
    a route discards its state; records for closed routes are ignored.
    """

    def __init__(self, *, clock: Callable[[], datetime] = _utcnow) -> None:
        self._clock = clock
        self._open: set[str] = set()
        self._states: dict[str, RouteTrackingState] = {}

    def open_route(self, route_id: str) -> None:
        self._open.add(route_id)

    def close_route(self, route_id: str) -> None:
        self._open.discard(route_id)
        self._states.pop(route_id, None)

    def is_open(self, route_id: str) -> bool:
        return route_id in self._open

    def record(
        self,
        route_id: str,
        position: Position,
        *,
        is_off_route: bool | None,
        deviation_m: float | None,
        is_speeding: bool,
    ) -> RouteTrackingState | None:
        """Replace the state of *route_id* with one derived from *position*.

        Returns the new state, or ``None`` when the route is not open.
        """
        if route_id not in self._open:
            return None

        previous = self._states.get(route_id)
        out_of_order = 0
        update_count = 1
        if previous is not None:
            update_count = previous.update_count + 1
            out_of_order = previous.out_of_order_count
            if is_out_of_order(previous.latest_position.timestamp, position.timestamp):
                out_of_order += 1
                _logger.debug(
                    "Out-of-order position route=%s incoming=%s previous=%s",
                    route_id,
                    position.timestamp,
                    previous.latest_position.timestamp,
                )

        state = RouteTrackingState(
            route_id=route_id,
            latest_position=position,
            is_off_route=is_off_route,
            deviation_m=deviation_m,
            is_speeding=is_speeding,
            updated_at=self._clock(),
            update_count=update_count,
            out_of_order_count=out_of_order,
        )
        self._states[route_id] = state
        return state

    def get(self, route_id: str) -> RouteTrackingState | None:
        return self._states.get(route_id)

    def snapshot(self) -> dict[str, RouteTrackingState]:
        """Current state of every route that has received a position."""
        return dict(self._states)
