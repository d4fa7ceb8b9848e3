"""Position feed interfaces and the in-memory feed.

A feed hands out one :class:`PositionSubscription` per route id. The
subscription is an async iterator of :class:`~routewatch.models.Position`
that raises :class:`~routewatch.exceptions.SubscriptionError` when the
route's stream fails and stops iterating once closed.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable, Iterable
from typing import Any, Protocol

from routewatch.exceptions import InvalidInputError, SubscriptionError
from routewatch.ingestion.positions import parse_position
from routewatch.models.position import Position

_logger = logging.getLogger(__name__)

_CLOSED = object()


class PositionSubscription(Protocol):
    route_id: str

    def __aiter__(self) -> AsyncIterator[Position]: ...

    async def __anext__(self) -> Position: ...

    def close(self) -> None: ...


class PositionFeed(Protocol):
    """Source of live position reports keyed by route id."""

    def subscribe(self, route_id: str) -> PositionSubscription: ...

    def unsubscribe(self, route_id: str) -> None: ...


class QueueSubscription:
    """Subscription backed by an :class:`asyncio.Queue`.

    Producers call :meth:`push` / :meth:`fail` from the event loop thread.
    """

    def __init__(self, route_id: str, *, on_close: Callable[[QueueSubscription], None] | None = None) -> None:
        self.route_id = route_id
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._on_close = on_close
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def push(self, position: Position) -> None:
        if self._closed:
            return
        self._queue.put_nowait(position)

    def fail(self, error: BaseException) -> None:
        if self._closed:
            return
        self._queue.put_nowait(error)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)
        if self._on_close is not None:
            self._on_close(self)

    def __aiter__(self) -> QueueSubscription:
        return self

    async def __anext__(self) -> Position:
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        if isinstance(item, BaseException):
            raise item
        return item


class InMemoryPositionFeed:
    """Feed driven by explicit :meth:`publish` calls.

    Used for simulations, replays and tests. Publishing for a route with
    no subscriber is a no-op.
    """

    def __init__(self) -> None:
        self._subscriptions: dict[str, QueueSubscription] = {}

    @property
    def active_routes(self) -> frozenset[str]:
        return frozenset(self._subscriptions)

    def subscribe(self, route_id: str) -> QueueSubscription:
        existing = self._subscriptions.get(route_id)
        if existing is not None and not existing.closed:
            raise SubscriptionError(f"Route {route_id} already has a live subscription", route_id=route_id)
        subscription = QueueSubscription(route_id, on_close=self._forget)
        self._subscriptions[route_id] = subscription
        _logger.debug("In-memory feed subscribed route=%s", route_id)
        return subscription

    def unsubscribe(self, route_id: str) -> None:
        subscription = self._subscriptions.pop(route_id, None)
        if subscription is not None:
            subscription.close()
            _logger.debug("In-memory feed unsubscribed route=%s", route_id)

    def _forget(self, subscription: QueueSubscription) -> None:
        if self._subscriptions.get(subscription.route_id) is subscription:
            del self._subscriptions[subscription.route_id]

    def publish(self, route_id: str, payload: Position | dict[str, Any] | bytes | str) -> bool:
        """Deliver one position report. Returns ``False`` when nobody listens.

        Raises
        ------
        InvalidInputError
            When *payload* is not a usable position.
        """
        position = parse_position(payload)
        subscription = self._subscriptions.get(route_id)
        if subscription is None:
            _logger.debug("No subscriber for route=%s; dropping position", route_id)
            return False
        subscription.push(position)
        return True

    def replay(self, route_id: str, payloads: Iterable[Position | dict[str, Any] | bytes | str]) -> int:
        """Publish *payloads* in order, skipping malformed ones.

        Returns the number of positions delivered.
        """
        delivered = 0
        for payload in payloads:
            try:
                if self.publish(route_id, payload):
                    delivered += 1
            except InvalidInputError as exc:
                _logger.warning("Skipping malformed replay payload route=%s: %s", route_id, exc)
        return delivered

    def fail(self, route_id: str, message: str = "Position stream failed") -> None:
        """Make the route's subscription raise :class:`SubscriptionError`."""
        subscription = self._subscriptions.get(route_id)
        if subscription is not None:
            subscription.fail(SubscriptionError(message, route_id=route_id))
