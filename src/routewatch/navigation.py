"""Turn-by-turn navigation over a computed route."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from routewatch.exceptions import RouteWatchError
from routewatch.geometry import LatLng
from routewatch.models.navigation import ComputedRoute, NavigationStep
from routewatch.provider import DirectionsProvider

_logger = logging.getLogger(__name__)


class NavigationStepper:
    """Bounded cursor over a sequence of navigation steps.

    ``0 <= index <= len(steps) - 1`` whenever there are steps. With no
    steps there is no active navigation and ``current_step`` is ``None``.
    :meth:`advance` and :meth:`retreat` never raise and are no-ops at
    the bounds.
    """

    def __init__(self, steps: Iterable[NavigationStep] = ()) -> None:
        self._steps: tuple[NavigationStep, ...] = tuple(steps)
        self._index = 0

    @property
    def steps(self) -> tuple[NavigationStep, ...]:
        return self._steps

    @property
    def index(self) -> int:
        return self._index

    @property
    def is_active(self) -> bool:
        return bool(self._steps)

    @property
    def current_step(self) -> NavigationStep | None:
        if not self._steps:
            return None
        return self._steps[self._index]

    @property
    def step_number(self) -> int:
        """1-based position of the current step (``0`` when inactive)."""
        return self._index + 1 if self._steps else 0

    @property
    def progress(self) -> float:
        if not self._steps:
            return 0.0
        return (self._index + 1) / len(self._steps)

    @property
    def has_next(self) -> bool:
        return self._index < len(self._steps) - 1

    @property
    def has_previous(self) -> bool:
        return self._index > 0

    def advance(self) -> NavigationStep | None:
        if self.has_next:
            self._index += 1
        return self.current_step

    def retreat(self) -> NavigationStep | None:
        if self.has_previous:
            self._index -= 1
        return self.current_step

    def reset(self, steps: Iterable[NavigationStep] = ()) -> None:
        """Replace the steps and move back to the first one."""
        self._steps = tuple(steps)
        self._index = 0

    def __len__(self) -> int:
        return len(self._steps)


class Navigator:
    """Computes routes through the provider and drives a :class:`NavigationStepper`.

    A failed computation leaves the current session untouched and records
    the error in :attr:`last_error`.
    """

    def __init__(self, provider: DirectionsProvider, stepper: NavigationStepper | None = None) -> None:
        self._provider = provider
        self._stepper = stepper or NavigationStepper()
        self._last_route: ComputedRoute | None = None
        self._last_error: Exception | None = None

    @property
    def stepper(self) -> NavigationStepper:
        return self._stepper

    @property
    def last_route(self) -> ComputedRoute | None:
        return self._last_route

    @property
    def last_error(self) -> Exception | None:
        return self._last_error

    async def compute_route(
        self,
        origin: LatLng,
        destination: LatLng,
        waypoints: Sequence[LatLng] = (),
    ) -> ComputedRoute | None:
        """Compute an optimized route and start stepping through it.

        Returns the computed route, or ``None`` on failure.
        """
        try:
            route = await self._provider.compute_route(
                origin,
                destination,
                waypoints,
                optimize_waypoints=True,
            )
        except RouteWatchError as exc:
            _logger.warning("Route computation failed: %s", exc)
            self._last_error = exc
            return None

        self._last_error = None
        self._last_route = route
        self._stepper.reset(route.steps)
        _logger.debug(
            "Navigation started steps=%d legs=%d waypoint_order=%s",
            len(route.steps),
            len(route.legs),
            list(route.waypoint_order),
        )
        return route

    def stop(self) -> None:
        """End navigation."""
        self._last_route = None
        self._stepper.reset()
