"""Notification sinks.

The engine hands finished notifications to a :class:`Notifier` and never
waits on or retries delivery. Consent handling belongs to the notifier
(see :class:`ConsentNotifier`), not to the engine.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Protocol

_logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def notify(self, title: str, body: str) -> None: ...


class LoggingNotifier:
    """Writes notifications to the ``routewatch.notify`` logger."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or _logger

    def notify(self, title: str, body: str) -> None:
        self._logger.info("%s: %s", title, body)


class CallbackNotifier:
    """Forwards notifications to a plain ``(title, body)`` callable."""

    def __init__(self, callback: Callable[[str, str], None]) -> None:
        self._callback = callback

    def notify(self, title: str, body: str) -> None:
        self._callback(title, body)


@dataclass(frozen=True, slots=True)
class SentNotification:
    title: str
    body: str
    sent_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class RecordingNotifier:
    """Keeps every notification in memory (simulations, replays)."""

    def __init__(self) -> None:
        self.sent: list[SentNotification] = []

    def notify(self, title: str, body: str) -> None:
        self.sent.append(SentNotification(title=title, body=body))

    def titles(self) -> list[str]:
        return [item.title for item in self.sent]


class Permission(StrEnum):
    DEFAULT = "default"
    GRANTED = "granted"
    DENIED = "denied"


class ConsentNotifier:
    """Asks for delivery consent once per session and caches the answer.

    ``request_permission`` is called on the first notification while the
    permission is still ``DEFAULT``. A prompt that raises leaves the
    permission at ``DEFAULT`` so the next notification asks again.
    """

    def __init__(
        self,
        deliver: Notifier,
        request_permission: Callable[[], bool],
        *,
        permission: Permission = Permission.DEFAULT,
    ) -> None:
        self._deliver = deliver
        self._request_permission = request_permission
        self._permission = permission

    @property
    def permission(self) -> Permission:
        return self._permission

    def _ensure_permission(self) -> Permission:
        if self._permission != Permission.DEFAULT:
            return self._permission
        try:
            granted = self._request_permission()
        except Exception:
            _logger.warning("Notification permission prompt failed", exc_info=True)
            return Permission.DEFAULT
        self._permission = Permission.GRANTED if granted else Permission.DENIED
        _logger.debug("Notification permission resolved: %s", self._permission)
        return self._permission

    def notify(self, title: str, body: str) -> None:
        if self._ensure_permission() != Permission.GRANTED:
            _logger.debug("Notification dropped without consent title=%s", title)
            return
        self._deliver.notify(title, body)
