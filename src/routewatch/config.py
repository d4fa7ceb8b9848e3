"""Client configuration for routewatch."""

from __future__ import annotations

import dataclasses
import os
from enum import StrEnum
from typing import Any

from routewatch._constants import (
    BASE_URL,
    DEFAULT_DEVIATION_THRESHOLD_M,
    DEFAULT_ETA_THRESHOLDS,
    DEFAULT_SPEED_LIMIT_MPH,
)
from routewatch.exceptions import RouteWatchConfigError


class PathMatch(StrEnum):
    """How a position is compared against a route path."""

    #: Distance to the closest polyline segment.
    SEGMENT = "segment"
    #: Distance to the closest path vertex only.
    VERTEX = "vertex"


class ThresholdMatch(StrEnum):
    """How remaining minutes are matched against notification thresholds."""

    #: Fire ``T`` only when the rounded remaining minutes equal ``T``.
    EXACT = "exact"
    #: Fire the tightest unfired ``T`` once remaining minutes are ``<= T``.
    AT_OR_BELOW = "at_or_below"


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_thresholds(value: str) -> tuple[int, ...]:
    parts = [part.strip() for part in value.split(",")]
    return tuple(int(part) for part in parts if part)


@dataclasses.dataclass(frozen=True)
class RouteWatchConfig:
    """Library configuration.

    Parameters
    ----------
    api_key : str
        Key for the routing/ETA provider.
    base_url : str
        Provider base URL. Defaults to the Google Maps web service root.
    language : str
        Language for instruction and duration texts.
    traffic_model : str
        Provider traffic model used for departure-time ETAs.
    request_timeout : float
        Total timeout in seconds for one provider request.
    deviation_threshold_m : float
        Distance from the route path beyond which a vehicle is off route.
    path_match : PathMatch
        Compare positions against path segments (default) or vertices.
    speed_limit_mph : float
        Speeds strictly above this value are violations.
    eta_thresholds : tuple of int
        Remaining-minute values that each notify once per trip.
    threshold_match : ThresholdMatch
        Exact rounded-minute matching (default) or at-or-below matching.
    eta_max_failures : int
        Consecutive provider failures after which a stop reports
        "no ETA available".
    alert_on_transitions : bool
        Notify when a route turns off-route or starts speeding.
    mqtt_enabled : bool
        Use the MQTT position feed when the client builds its own feed.
    mqtt_host : str
        MQTT broker host.
    mqtt_port : int
        MQTT broker port.
    mqtt_topic_prefix : str
        Topic prefix; positions for a route arrive on ``{prefix}/{route_id}``.
    mqtt_username : str or None
        Broker username.
    mqtt_password : str or None
        Broker password.
    mqtt_tls : bool
        Enable TLS towards the broker.
    mqtt_keepalive : int
        MQTT keepalive in seconds.
    """

    api_key: str = ""
    base_url: str = BASE_URL
    language: str = "en"
    traffic_model: str = "best_guess"
    request_timeout: float = 10.0
    deviation_threshold_m: float = DEFAULT_DEVIATION_THRESHOLD_M
    path_match: PathMatch = PathMatch.SEGMENT
    speed_limit_mph: float = DEFAULT_SPEED_LIMIT_MPH
    eta_thresholds: tuple[int, ...] = DEFAULT_ETA_THRESHOLDS
    threshold_match: ThresholdMatch = ThresholdMatch.EXACT
    eta_max_failures: int = 3
    alert_on_transitions: bool = True
    mqtt_enabled: bool = False
    mqtt_host: str = ""
    mqtt_port: int = 8883
    mqtt_topic_prefix: str = "fleet/positions"
    mqtt_username: str | None = None
    mqtt_password: str | None = None
    mqtt_tls: bool = True
    mqtt_keepalive: int = 120

    def __post_init__(self) -> None:
        if self.deviation_threshold_m < 0:
            raise RouteWatchConfigError(f"deviation_threshold_m must be >= 0, got {self.deviation_threshold_m}")
        if self.speed_limit_mph < 0:
            raise RouteWatchConfigError(f"speed_limit_mph must be >= 0, got {self.speed_limit_mph}")
        if any(minutes <= 0 for minutes in self.eta_thresholds):
            raise RouteWatchConfigError(f"eta_thresholds must be positive minutes, got {self.eta_thresholds}")
        if self.eta_max_failures < 1:
            raise RouteWatchConfigError(f"eta_max_failures must be >= 1, got {self.eta_max_failures}")
        if self.request_timeout <= 0:
            raise RouteWatchConfigError(f"request_timeout must be > 0, got {self.request_timeout}")
        if self.mqtt_enabled and not self.mqtt_host.strip():
            raise RouteWatchConfigError("mqtt_host is required when mqtt_enabled is set")
        # Accept plain strings for the enum fields (env vars, JSON configs).
        try:
            object.__setattr__(self, "path_match", PathMatch(self.path_match))
            object.__setattr__(self, "threshold_match", ThresholdMatch(self.threshold_match))
        except ValueError as exc:
            raise RouteWatchConfigError(str(exc)) from exc
        object.__setattr__(self, "eta_thresholds", tuple(sorted(set(self.eta_thresholds), reverse=True)))

    @classmethod
    def from_env(cls, **overrides: Any) -> RouteWatchConfig:
        """Create configuration from environment variables.

        Reads optional ``ROUTEWATCH_*`` variables. Explicit keyword
        arguments override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        RouteWatchConfig
            Populated configuration.
        """
        env = os.environ

        _ENV_STR_MAP = {
            "ROUTEWATCH_API_KEY": "api_key",
            "ROUTEWATCH_BASE_URL": "base_url",
            "ROUTEWATCH_LANGUAGE": "language",
            "ROUTEWATCH_TRAFFIC_MODEL": "traffic_model",
            "ROUTEWATCH_PATH_MATCH": "path_match",
            "ROUTEWATCH_THRESHOLD_MATCH": "threshold_match",
            "ROUTEWATCH_MQTT_HOST": "mqtt_host",
            "ROUTEWATCH_MQTT_TOPIC_PREFIX": "mqtt_topic_prefix",
            "ROUTEWATCH_MQTT_USERNAME": "mqtt_username",
            "ROUTEWATCH_MQTT_PASSWORD": "mqtt_password",
        }
        _ENV_FLOAT_MAP = {
            "ROUTEWATCH_REQUEST_TIMEOUT": "request_timeout",
            "ROUTEWATCH_DEVIATION_THRESHOLD_M": "deviation_threshold_m",
            "ROUTEWATCH_SPEED_LIMIT_MPH": "speed_limit_mph",
        }
        _ENV_INT_MAP = {
            "ROUTEWATCH_ETA_MAX_FAILURES": "eta_max_failures",
            "ROUTEWATCH_MQTT_PORT": "mqtt_port",
            "ROUTEWATCH_MQTT_KEEPALIVE": "mqtt_keepalive",
        }
        _ENV_BOOL_MAP = {
            "ROUTEWATCH_ALERT_ON_TRANSITIONS": ("alert_on_transitions", True),
            "ROUTEWATCH_MQTT_ENABLED": ("mqtt_enabled", False),
            "ROUTEWATCH_MQTT_TLS": ("mqtt_tls", True),
        }

        config_kwargs: dict[str, Any] = {}
        try:
            for env_key, field_name in _ENV_STR_MAP.items():
                val = env.get(env_key)
                if val is not None:
                    config_kwargs[field_name] = val
            for env_key, field_name in _ENV_FLOAT_MAP.items():
                val = env.get(env_key)
                if val is not None:
                    config_kwargs[field_name] = float(val)
            for env_key, field_name in _ENV_INT_MAP.items():
                val = env.get(env_key)
                if val is not None:
                    config_kwargs[field_name] = int(val)
            thresholds_env = env.get("ROUTEWATCH_ETA_THRESHOLDS")
            if thresholds_env is not None:
                config_kwargs["eta_thresholds"] = _env_thresholds(thresholds_env)
        except ValueError as exc:
            raise RouteWatchConfigError(f"Invalid ROUTEWATCH_* environment value: {exc}") from exc

        for env_key, (field_name, default) in _ENV_BOOL_MAP.items():
            if field_name not in overrides:
                config_kwargs[field_name] = _env_bool(env.get(env_key), default)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
