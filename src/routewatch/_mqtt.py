"""MQTT-backed position feed.

Positions for a route arrive as JSON objects on ``{prefix}/{route_id}``.
paho-mqtt runs its network loop in a background thread; parsed positions
are handed to the asyncio loop with ``call_soon_threadsafe``.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
import threading
from collections.abc import Callable
from typing import Any, cast

import paho.mqtt.client as mqtt

from routewatch.config import RouteWatchConfig
from routewatch.exceptions import InvalidInputError, SubscriptionError
from routewatch.feed import QueueSubscription
from routewatch.ingestion.positions import parse_position

_logger = logging.getLogger(__name__)


def _build_client_id() -> str:
    return f"routewatch_{secrets.token_hex(6)}"


def topic_for(prefix: str, route_id: str) -> str:
    return f"{prefix.rstrip('/')}/{route_id}"


def route_id_from_topic(prefix: str, topic: str) -> str | None:
    """Return the route id encoded in *topic*, or ``None`` for foreign topics."""
    head = prefix.rstrip("/") + "/"
    if not topic.startswith(head):
        return None
    route_id = topic[len(head) :]
    if not route_id or "/" in route_id:
        return None
    return route_id


def _default_client_factory(client_id: str) -> mqtt.Client:
    return mqtt.Client(
        callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
        client_id=client_id,
        protocol=mqtt.MQTTv5,
    )


class MqttPositionFeed:
    """Threaded paho-mqtt feed that emits positions onto an asyncio loop.

    Call :meth:`start` from within the running loop before subscribing.
    Subscriptions requested before the broker connection is up are sent
    on connect (and re-sent on every reconnect).
    """

    def __init__(
        self,
        config: RouteWatchConfig,
        *,
        client_factory: Callable[[str], mqtt.Client] = _default_client_factory,
        logger: logging.Logger | None = None,
    ) -> None:
        self._config = config
        self._client_factory = client_factory
        self._logger = logger or _logger
        self._loop: asyncio.AbstractEventLoop | None = None
        self._client: mqtt.Client | None = None
        self._connected = False
        self._running = False
        self._subscriptions: dict[str, QueueSubscription] = {}
        # SUBACKs arrive on the network thread; mids are written on the loop thread.
        self._lock = threading.Lock()
        self._pending_mids: dict[int, str] = {}

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def active_routes(self) -> frozenset[str]:
        return frozenset(self._subscriptions)

    def topic(self, route_id: str) -> str:
        return topic_for(self._config.mqtt_topic_prefix, route_id)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Connect to the broker and start the network loop."""
        self.stop()
        self._loop = asyncio.get_running_loop()
        config = self._config
        client_id = _build_client_id()
        self._logger.debug(
            "MQTT feed start requested host=%s port=%s prefix=%s client_id=%s",
            config.mqtt_host,
            config.mqtt_port,
            config.mqtt_topic_prefix,
            client_id,
        )

        client = self._client_factory(client_id)
        client.enable_logger(self._logger)
        if config.mqtt_username:
            client.username_pw_set(config.mqtt_username, config.mqtt_password)
        if config.mqtt_tls:
            client.tls_set()

        client.on_connect = self._on_connect
        client.on_message = self._on_message
        client.on_subscribe = self._on_subscribe
        client.on_disconnect = self._on_disconnect

        client.connect_async(config.mqtt_host, config.mqtt_port, keepalive=config.mqtt_keepalive)
        client.loop_start()

        self._client = client
        self._running = True
        self._logger.debug("MQTT network loop started")

    def stop(self) -> None:
        """Disconnect and close every subscription."""
        client = self._client
        self._client = None
        was_running = self._running
        self._running = False
        self._connected = False
        with self._lock:
            self._pending_mids.clear()

        for subscription in list(self._subscriptions.values()):
            subscription.close()
        self._subscriptions.clear()

        if client is None:
            return
        try:
            if was_running:
                self._logger.debug("MQTT disconnect requested")
                client.disconnect()
        finally:
            client.loop_stop()
            self._logger.debug("MQTT network loop stopped")

    # ------------------------------------------------------------------
    # PositionFeed
    # ------------------------------------------------------------------

    def subscribe(self, route_id: str) -> QueueSubscription:
        existing = self._subscriptions.get(route_id)
        if existing is not None and not existing.closed:
            raise SubscriptionError(f"Route {route_id} already has a live subscription", route_id=route_id)
        subscription = QueueSubscription(route_id, on_close=self._forget)
        self._subscriptions[route_id] = subscription
        if self._client is not None and self._connected:
            self._send_subscribe(self._client, route_id)
        return subscription

    def unsubscribe(self, route_id: str) -> None:
        subscription = self._subscriptions.get(route_id)
        if subscription is not None:
            subscription.close()

    def _forget(self, subscription: QueueSubscription) -> None:
        route_id = subscription.route_id
        if self._subscriptions.get(route_id) is not subscription:
            return
        del self._subscriptions[route_id]
        client = self._client
        if client is not None and self._connected:
            self._logger.debug("MQTT unsubscribing topic=%s", self.topic(route_id))
            client.unsubscribe(self.topic(route_id))

    def _send_subscribe(self, client: mqtt.Client, route_id: str) -> None:
        topic = self.topic(route_id)
        self._logger.debug("MQTT subscribing topic=%s", topic)
        with self._lock:
            result, mid = client.subscribe(topic, qos=0)
            if result != mqtt.MQTT_ERR_SUCCESS:
                self._logger.warning("MQTT subscribe request failed topic=%s rc=%s", topic, result)
                self._fail_route(route_id, f"MQTT subscribe failed rc={result}")
                return
            self._pending_mids[mid] = route_id

    # ------------------------------------------------------------------
    # paho callbacks (network thread)
    # ------------------------------------------------------------------

    def _on_connect(
        self,
        client: mqtt.Client,
        _userdata: Any,
        _flags: Any,
        reason_code: Any,
        _properties: Any,
    ) -> None:
        if reason_code.value != 0:
            self._logger.warning("MQTT connect failed: %s", reason_code)
            return
        self._logger.debug("MQTT connected successfully reason=%s", reason_code)
        self._connected = True
        self._call_in_loop(self._resubscribe_all)

    def _on_message(self, _client: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
        self._logger.debug("Received PUBLISH topic=%s bytes=%d", msg.topic, len(msg.payload))
        self._call_in_loop(self._dispatch, msg.topic, bytes(msg.payload))

    def _on_subscribe(
        self,
        _client: mqtt.Client,
        _userdata: Any,
        mid: int,
        reason_code_list: list[Any],
        _properties: Any,
    ) -> None:
        with self._lock:
            route_id = self._pending_mids.pop(mid, None)
        if route_id is None:
            return
        failures = [code for code in reason_code_list if getattr(code, "is_failure", False)]
        if failures:
            self._logger.warning("MQTT subscription rejected route=%s reason=%s", route_id, failures[0])
            self._call_in_loop(self._fail_route, route_id, f"MQTT subscription rejected: {failures[0]}")

    def _on_disconnect(
        self,
        _client: mqtt.Client,
        _userdata: Any,
        _disconnect_flags: Any,
        reason_code: Any,
        _properties: Any,
    ) -> None:
        self._connected = False
        if self._running:
            self._logger.debug("MQTT disconnected: %s", reason_code)

    def _call_in_loop(self, callback: Callable[..., None], *args: Any) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(callback, *args)

    # ------------------------------------------------------------------
    # Loop-side handlers
    # ------------------------------------------------------------------

    def _resubscribe_all(self) -> None:
        client = self._client
        if client is None:
            return
        for route_id in list(self._subscriptions):
            self._send_subscribe(client, route_id)

    def _dispatch(self, topic: str, payload: bytes) -> None:
        route_id = route_id_from_topic(self._config.mqtt_topic_prefix, topic)
        subscription = self._subscriptions.get(route_id) if route_id is not None else None
        if subscription is None:
            self._logger.debug("Ignoring MQTT message for untracked topic=%s", topic)
            return
        try:
            position = parse_position(payload)
        except InvalidInputError as exc:
            self._logger.warning("Dropping malformed MQTT position topic=%s: %s", topic, exc)
            return
        subscription.push(position)

    def _fail_route(self, route_id: str, message: str) -> None:
        subscription = self._subscriptions.get(route_id)
        if subscription is not None:
            subscription.fail(SubscriptionError(message, route_id=route_id))
