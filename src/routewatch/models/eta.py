"""Arrival estimate models."""

from __future__ import annotations

import math
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


def remaining_minutes(remaining_seconds: float) -> int:
    """Round a remaining duration to whole minutes, halves rounding up.

    ``1230`` seconds (20.5 minutes) is 21 minutes, not banker's-rounded 20.
    """
    return math.floor(remaining_seconds / 60.0 + 0.5)


class RouteLeg(BaseModel):
    """Traffic-aware travel estimate for one origin/destination leg."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    duration_seconds: float
    duration_text: str = ""
    distance_meters: float | None = None


class StopEta(BaseModel):
    """Arrival estimate for one (route, stop) pair within the current trip.

    ``fired_thresholds`` only grows during a trip; a new trip starts
    from an empty set.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    route_id: str
    stop_id: str
    stop_name: str = ""
    estimated_arrival: datetime | None = None
    remaining_seconds: float | None = None
    duration_text: str | None = None
    fired_thresholds: frozenset[int] = Field(default_factory=frozenset)
    consecutive_failures: int = 0
    available: bool = False
    updated_at: datetime | None = None

    @property
    def remaining_minutes(self) -> int | None:
        if self.remaining_seconds is None:
            return None
        return remaining_minutes(self.remaining_seconds)
