from __future__ import annotations

import pytest

from routewatch.config import PathMatch, RouteWatchConfig, ThresholdMatch
from routewatch.exceptions import RouteWatchConfigError


def test_defaults() -> None:
    config = RouteWatchConfig()
    assert config.deviation_threshold_m == 500.0
    assert config.speed_limit_mph == 45.0
    assert config.eta_thresholds == (20, 10, 5)
    assert config.path_match == PathMatch.SEGMENT
    assert config.threshold_match == ThresholdMatch.EXACT
    assert config.mqtt_enabled is False


def test_thresholds_are_deduplicated_and_sorted() -> None:
    assert RouteWatchConfig(eta_thresholds=(5, 20, 5, 10)).eta_thresholds == (20, 10, 5)


def test_enum_fields_accept_strings() -> None:
    config = RouteWatchConfig(path_match="vertex", threshold_match="at_or_below")  # type: ignore[arg-type]
    assert config.path_match is PathMatch.VERTEX
    assert config.threshold_match is ThresholdMatch.AT_OR_BELOW


@pytest.mark.parametrize(
    "kwargs",
    [
        {"deviation_threshold_m": -1},
        {"speed_limit_mph": -5},
        {"eta_thresholds": (10, 0)},
        {"eta_max_failures": 0},
        {"request_timeout": 0},
        {"mqtt_enabled": True, "mqtt_host": " "},
        {"path_match": "nearest"},
    ],
)
def test_invalid_values_raise_config_error(kwargs: dict[str, object]) -> None:
    with pytest.raises(RouteWatchConfigError):
        RouteWatchConfig(**kwargs)  # type: ignore[arg-type]


def test_from_env_reads_routewatch_variables(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ROUTEWATCH_API_KEY", "secret")
    monkeypatch.setenv("ROUTEWATCH_SPEED_LIMIT_MPH", "30")
    monkeypatch.setenv("ROUTEWATCH_ETA_THRESHOLDS", "15, 3")
    monkeypatch.setenv("ROUTEWATCH_THRESHOLD_MATCH", "at_or_below")
    monkeypatch.setenv("ROUTEWATCH_ALERT_ON_TRANSITIONS", "off")
    monkeypatch.setenv("ROUTEWATCH_MQTT_PORT", "1883")

    config = RouteWatchConfig.from_env(deviation_threshold_m=250.0)

    assert config.api_key == "secret"
    assert config.speed_limit_mph == 30.0
    assert config.eta_thresholds == (15, 3)
    assert config.threshold_match is ThresholdMatch.AT_OR_BELOW
    assert config.alert_on_transitions is False
    assert config.mqtt_port == 1883
    assert config.deviation_threshold_m == 250.0


def test_from_env_rejects_malformed_numbers(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ROUTEWATCH_MQTT_PORT", "eighty")
    with pytest.raises(RouteWatchConfigError):
        RouteWatchConfig.from_env()
