"""Custom exception hierarchy for routewatch."""

from __future__ import annotations


class RouteWatchError(Exception):
    """Base exception for all routewatch errors."""


class RouteWatchConfigError(RouteWatchError):
    """Invalid or missing configuration."""


class InvalidInputError(RouteWatchError, ValueError):
    """Empty or malformed path, position or feed payload.

    Callers recover by skipping the affected check, never by treating
    the input as a neutral value (an empty path is not "zero distance").
    """


class ProviderUnavailableError(RouteWatchError):
    """Routing/ETA provider call failed (network, non-200, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class ProviderApiError(ProviderUnavailableError):
    """Provider answered with a non-``OK`` status (application-level error)."""

    def __init__(
        self,
        message: str,
        *,
        code: str = "",
        endpoint: str = "",
    ) -> None:
        self.code = code
        super().__init__(message, endpoint=endpoint)


class ProviderRateLimitError(ProviderApiError):
    """Provider quota exhausted (``OVER_QUERY_LIMIT``).

    Not retried automatically; the next natural position update will
    try again.
    """


class SubscriptionError(RouteWatchError):
    """Position feed failure scoped to a single route."""

    def __init__(self, message: str, *, route_id: str = "") -> None:
        self.route_id = route_id
        super().__init__(message)
