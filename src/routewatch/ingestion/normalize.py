"""Lenient scalar parsing for feed and provider payloads.

Telemetry feeds send numbers as strings, use placeholder strings for
missing readings and mix epoch seconds with milliseconds. These helpers
turn all of that into ``None`` or a clean value instead of raising.
"""

from __future__ import annotations

import math
from datetime import UTC, datetime
from typing import Any

PLACEHOLDERS = frozenset({"", "--", "NaN", "nan", "null"})

# Epoch values above this are milliseconds.
_MS_THRESHOLD = 1e11


def is_placeholder(value: Any) -> bool:
    """Return True for ``None``, NaN and the placeholder strings."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() in PLACEHOLDERS
    return isinstance(value, float) and math.isnan(value)


def safe_float(value: Any) -> float | None:
    if isinstance(value, bool) or is_placeholder(value):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def safe_int(value: Any) -> int | None:
    number = safe_float(value)
    return None if number is None else int(number)


def epoch_seconds(value: Any) -> float | None:
    """Return a positive epoch in seconds, converting milliseconds."""
    number = safe_float(value)
    if number is None or number <= 0:
        return None
    return number / 1000.0 if number > _MS_THRESHOLD else number


def parse_timestamp(value: Any) -> datetime | None:
    """Coerce epoch numbers, ISO strings or datetimes to an aware UTC datetime."""
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=UTC)
    seconds = epoch_seconds(value)
    if seconds is not None:
        try:
            return datetime.fromtimestamp(seconds, tz=UTC)
        except (OverflowError, OSError, ValueError):
            return None
    if not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)
