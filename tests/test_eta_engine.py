from __future__ import annotations

import asyncio
from collections.abc import Sequence
from datetime import UTC, datetime, timedelta

import pytest

from routewatch.config import ThresholdMatch
from routewatch.eta import EtaEngine, due_thresholds
from routewatch.exceptions import ProviderRateLimitError, ProviderUnavailableError
from routewatch.models import ComputedRoute, Coordinate, Position, RouteLeg, Stop, remaining_minutes
from routewatch.notify import RecordingNotifier

_NOW = datetime(2026, 1, 1, 8, 0, tzinfo=UTC)
_STOP = Stop(stop_id="s1", name="Main St", location=Coordinate(latitude=0.0, longitude=0.1))
_POSITION = Position(latitude=0.0, longitude=0.0)


class _ScriptedProvider:
    """Returns queued durations (seconds) or raises queued exceptions."""

    def __init__(self, results: Sequence[float | Exception]) -> None:
        self._results = list(results)
        self.calls: list[tuple[object, object, datetime | None]] = []

    async def route_leg(self, origin: object, destination: object, departure_time: datetime | None = None) -> RouteLeg:
        self.calls.append((origin, destination, departure_time))
        result = self._results.pop(0)
        if isinstance(result, Exception):
            raise result
        return RouteLeg(duration_seconds=result, duration_text=f"{round(result / 60)} mins")

    async def compute_route(self, *args: object, **kwargs: object) -> ComputedRoute:  # pragma: no cover
        raise NotImplementedError


class _GatedProvider:
    """Blocks every request until released."""

    def __init__(self, duration: float) -> None:
        self._duration = duration
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def route_leg(self, origin: object, destination: object, departure_time: datetime | None = None) -> RouteLeg:
        self.started.set()
        await self.release.wait()
        return RouteLeg(duration_seconds=self._duration)

    async def compute_route(self, *args: object, **kwargs: object) -> ComputedRoute:  # pragma: no cover
        raise NotImplementedError


def _engine(provider: object, notifier: RecordingNotifier, **kwargs: object) -> EtaEngine:
    engine = EtaEngine(provider, notifier, clock=lambda: _NOW, **kwargs)  # type: ignore[arg-type]
    engine.begin_trip("r1")
    return engine


async def _run(engine: EtaEngine, count: int) -> None:
    for _ in range(count):
        await engine.estimate_and_notify("r1", _POSITION, _STOP)


def test_remaining_minutes_rounds_half_up() -> None:
    assert remaining_minutes(1230) == 21
    assert remaining_minutes(1229) == 20
    assert remaining_minutes(1170) == 20
    assert remaining_minutes(1169) == 19
    assert remaining_minutes(30) == 1
    assert remaining_minutes(0) == 0


def test_due_thresholds_exact_match() -> None:
    assert due_thresholds(1205, (20, 10, 5), set()).notify == (20,)
    assert due_thresholds(1205, (20, 10, 5), {20}).notify == ()
    assert due_thresholds(900, (20, 10, 5), set()).notify == ()


def test_due_thresholds_at_or_below_retires_skipped_thresholds() -> None:
    decision = due_thresholds(240, (20, 10, 5), set(), ThresholdMatch.AT_OR_BELOW)
    assert decision.notify == (5,)
    assert set(decision.retire) == {10, 20}
    assert decision.fired == frozenset({5, 10, 20})


def test_due_thresholds_at_or_below_waits_above_largest() -> None:
    assert due_thresholds(1500, (20, 10, 5), set(), ThresholdMatch.AT_OR_BELOW).fired == frozenset()


@pytest.mark.asyncio
async def test_success_records_arrival_and_remaining_time() -> None:
    notifier = RecordingNotifier()
    provider = _ScriptedProvider([600])
    engine = _engine(provider, notifier)

    eta = await engine.estimate_and_notify("r1", _POSITION, _STOP)

    assert eta is not None
    assert eta.available is True
    assert eta.remaining_seconds == 600
    assert eta.estimated_arrival == _NOW + timedelta(seconds=600)
    assert eta.remaining_minutes == 10
    assert provider.calls[0][1] == _STOP.location
    assert provider.calls[0][2] == _NOW
    assert [n.body for n in notifier.sent] == ["Your bus will arrive at Main St in approximately 10 minutes"]


@pytest.mark.asyncio
async def test_threshold_notifies_once_per_trip() -> None:
    notifier = RecordingNotifier()
    engine = _engine(_ScriptedProvider([1205, 1200, 1195]), notifier)

    await _run(engine, 3)

    assert notifier.titles() == ["Bus Arrival Update"]
    eta = engine.get("r1", "s1")
    assert eta is not None
    assert eta.fired_thresholds == frozenset({20})


@pytest.mark.asyncio
async def test_countdown_fires_each_threshold_in_order() -> None:
    notifier = RecordingNotifier()
    engine = _engine(_ScriptedProvider([1500, 1200, 900, 600, 420, 300, 120]), notifier)

    await _run(engine, 7)

    assert [n.body[-10:] for n in notifier.sent] == ["20 minutes", "10 minutes", " 5 minutes"]


@pytest.mark.asyncio
async def test_exact_match_skips_threshold_jumped_over() -> None:
    notifier = RecordingNotifier()
    engine = _engine(_ScriptedProvider([1500, 900]), notifier)

    await _run(engine, 2)

    assert notifier.sent == []


@pytest.mark.asyncio
async def test_at_or_below_fires_single_notification_for_skipped_range() -> None:
    notifier = RecordingNotifier()
    engine = _engine(_ScriptedProvider([1500, 240, 200]), notifier, match=ThresholdMatch.AT_OR_BELOW)

    await _run(engine, 3)

    assert [n.body for n in notifier.sent] == ["Your bus will arrive at Main St in approximately 5 minutes"]
    eta = engine.get("r1", "s1")
    assert eta is not None
    assert eta.fired_thresholds == frozenset({5, 10, 20})


@pytest.mark.asyncio
async def test_new_trip_resets_fired_thresholds() -> None:
    notifier = RecordingNotifier()
    engine = _engine(_ScriptedProvider([1200, 1200]), notifier)

    await _run(engine, 1)
    engine.begin_trip("r1")
    await _run(engine, 1)

    assert len(notifier.sent) == 2


@pytest.mark.asyncio
async def test_provider_failure_keeps_previous_estimate() -> None:
    notifier = RecordingNotifier()
    engine = _engine(_ScriptedProvider([900, ProviderUnavailableError("down", status_code=503)]), notifier)

    first = await engine.estimate_and_notify("r1", _POSITION, _STOP)
    second = await engine.estimate_and_notify("r1", _POSITION, _STOP)

    assert first is not None and second is not None
    assert second.remaining_seconds == first.remaining_seconds
    assert second.estimated_arrival == first.estimated_arrival
    assert second.fired_thresholds == first.fired_thresholds
    assert second.consecutive_failures == 1
    assert second.available is True
    assert notifier.sent == []


@pytest.mark.asyncio
async def test_repeated_failures_report_no_eta_available() -> None:
    notifier = RecordingNotifier()
    failures: list[float | Exception] = [ProviderRateLimitError("quota", code="OVER_QUERY_LIMIT") for _ in range(3)]
    engine = _engine(_ScriptedProvider([900, *failures]), notifier, max_failures=3)

    await _run(engine, 3)
    eta = engine.get("r1", "s1")
    assert eta is not None and eta.available is True

    await _run(engine, 1)
    eta = engine.get("r1", "s1")
    assert eta is not None
    assert eta.available is False
    assert eta.consecutive_failures == 3


@pytest.mark.asyncio
async def test_first_request_failure_has_no_estimate() -> None:
    notifier = RecordingNotifier()
    engine = _engine(_ScriptedProvider([ProviderUnavailableError("down")]), notifier)

    eta = await engine.estimate_and_notify("r1", _POSITION, _STOP)

    assert eta is not None
    assert eta.available is False
    assert eta.estimated_arrival is None
    assert eta.fired_thresholds == frozenset()


@pytest.mark.asyncio
async def test_without_trip_nothing_is_requested() -> None:
    provider = _ScriptedProvider([600])
    engine = EtaEngine(provider, RecordingNotifier())

    assert await engine.estimate_and_notify("r1", _POSITION, _STOP) is None
    assert provider.calls == []


@pytest.mark.asyncio
async def test_result_after_trip_end_is_discarded() -> None:
    notifier = RecordingNotifier()
    provider = _GatedProvider(1200)
    engine = _engine(provider, notifier)

    task = asyncio.create_task(engine.estimate_and_notify("r1", _POSITION, _STOP))
    await provider.started.wait()
    engine.end_trip("r1")
    assert engine.has_trip("r1") is False
    provider.release.set()

    assert await task is None
    assert notifier.sent == []
    assert engine.stop_etas("r1") == {}


@pytest.mark.asyncio
async def test_result_from_replaced_trip_is_discarded() -> None:
    notifier = RecordingNotifier()
    provider = _GatedProvider(1200)
    engine = _engine(provider, notifier)

    task = asyncio.create_task(engine.estimate_and_notify("r1", _POSITION, _STOP))
    await provider.started.wait()
    engine.begin_trip("r1")
    provider.release.set()

    assert await task is None
    assert engine.get("r1", "s1") is None


@pytest.mark.asyncio
async def test_notifier_failure_does_not_lose_state() -> None:
    class _BrokenNotifier:
        def notify(self, title: str, body: str) -> None:
            raise RuntimeError("boom")

    engine = EtaEngine(_ScriptedProvider([1200]), _BrokenNotifier(), clock=lambda: _NOW)
    engine.begin_trip("r1")

    eta = await engine.estimate_and_notify("r1", _POSITION, _STOP)

    assert eta is not None
    assert eta.fired_thresholds == frozenset({20})
