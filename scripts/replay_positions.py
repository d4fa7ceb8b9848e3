#!/usr/bin/env python3
"""Replay recorded position reports through the tracker.

Reads a JSON-lines file (one position payload per line), feeds it through
an in-memory position feed for one route and prints every tracking event
and notification as it happens.

Example::

    python scripts/replay_positions.py positions.jsonl --route route.json

``route.json`` holds a route definition (``route_id``, ``name``, ``path``,
``stops``). ETA requests need ``ROUTEWATCH_API_KEY``; without it (or with
``--no-eta``) stops are ignored and only deviation/speed are evaluated.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

# Allow running from repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from routewatch import (  # noqa: E402
    CallbackNotifier,
    InMemoryPositionFeed,
    RouteWatchClient,
    RouteWatchConfig,
    TrackedRoute,
    TrackingEvent,
    TrackingEventKind,
)
from routewatch.exceptions import RouteWatchError  # noqa: E402


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Replay JSON-lines position reports through routewatch.",
    )
    parser.add_argument("positions", type=Path, help="JSON-lines file of position payloads.")
    parser.add_argument(
        "--route",
        type=Path,
        required=True,
        help="JSON file with the tracked route definition.",
    )
    parser.add_argument(
        "--no-eta",
        action="store_true",
        help="Skip ETA requests even when an API key is configured.",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=30.0,
        help="Seconds to wait for the replay to drain.",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logs.",
    )
    return parser.parse_args()


def _print_event(event: TrackingEvent) -> None:
    if event.kind == TrackingEventKind.POSITION and event.state is not None:
        state = event.state
        deviation = "unknown" if state.deviation_m is None else f"{state.deviation_m:.0f}m"
        print(
            f"[replay] {event.route_id} #{state.update_count} "
            f"({state.latest_position.latitude:.5f}, {state.latest_position.longitude:.5f}) "
            f"off_route={state.is_off_route} deviation={deviation} speeding={state.is_speeding}"
        )
    elif event.kind == TrackingEventKind.ETA and event.stop_eta is not None:
        eta = event.stop_eta
        remaining = "n/a" if eta.remaining_minutes is None else f"{eta.remaining_minutes} min"
        print(f"[replay]   eta {eta.stop_id}: {remaining} available={eta.available}")
    else:
        print(f"[replay] {event.kind} {event.route_id} {event.error or ''}".rstrip())


async def _replay(config: RouteWatchConfig, route: TrackedRoute, lines: list[str], timeout: float) -> int:
    notifier = CallbackNotifier(lambda title, body: print(f"[notify] {title}: {body}"))
    feed = InMemoryPositionFeed()
    positions_seen = 0
    drained = asyncio.Event()
    expected = 0

    def _on_event(event: TrackingEvent) -> None:
        nonlocal positions_seen
        _print_event(event)
        if event.kind == TrackingEventKind.POSITION:
            positions_seen += 1
            if positions_seen >= expected:
                drained.set()

    async with RouteWatchClient(config, feed=feed, notifier=notifier) as client:
        client.add_listener(_on_event)
        client.track(route)
        expected = feed.replay(route.route_id, lines)
        if expected == 0:
            return 0
        await asyncio.wait_for(drained.wait(), timeout=timeout)
    return expected


def _main() -> int:
    args = _parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        config = RouteWatchConfig.from_env()
        route = TrackedRoute.model_validate(json.loads(args.route.read_text(encoding="utf-8")))
    except (OSError, ValueError, RouteWatchError) as exc:
        print(f"[replay] Invalid input: {exc}", file=sys.stderr)
        return 2

    if args.no_eta or not config.api_key:
        if route.stops:
            print("[replay] ETA disabled; ignoring stops", file=sys.stderr)
        route = route.model_copy(update={"stops": ()})

    lines = [line for line in args.positions.read_text(encoding="utf-8").splitlines() if line.strip()]
    try:
        delivered = asyncio.run(_replay(config, route, lines, args.timeout))
    except TimeoutError:
        print("[replay] Timed out waiting for the replay to drain", file=sys.stderr)
        return 1

    print(f"[replay] Replayed {delivered}/{len(lines)} positions")
    return 0


if __name__ == "__main__":
    raise SystemExit(_main())
