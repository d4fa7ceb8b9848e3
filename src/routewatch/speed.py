"""Speed compliance check."""

from __future__ import annotations

from typing import Any

from routewatch._constants import DEFAULT_SPEED_LIMIT_MPH
from routewatch.ingestion.normalize import safe_float


def reported_speed(position: Any) -> float:
    """Speed in mph from a position; absent or non-numeric speed is ``0.0``."""
    speed = safe_float(getattr(position, "speed", None))
    return 0.0 if speed is None else speed


def is_speeding(position: Any, limit_mph: float = DEFAULT_SPEED_LIMIT_MPH) -> bool:
    """Return ``True`` when the reported speed is strictly above *limit_mph*.

    Missing telemetry never counts as a violation.
    """
    return reported_speed(position) > limit_mph
