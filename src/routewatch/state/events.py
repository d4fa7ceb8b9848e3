"""Events emitted by the position stream manager.

Listeners receive one :class:`TrackingEvent` per observable change.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from routewatch.models.eta import StopEta
from routewatch.models.tracking import RouteTrackingState


class TrackingEventKind(StrEnum):
    TRACKING_STARTED = "tracking_started"
    POSITION = "position"
    ETA = "eta"
    ERROR = "error"
    TRACKING_STOPPED = "tracking_stopped"


class TrackingEvent(BaseModel):
    """A route-scoped change notification."""

    model_config = ConfigDict(frozen=True)

    kind: TrackingEventKind
    route_id: str = Field(..., description="Tracked route id")
    state: RouteTrackingState | None = None
    stop_eta: StopEta | None = None
    error: str | None = Field(default=None, description="Diagnostic for error events")
    observed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("route_id")
    @classmethod
    def _normalize_route_id(cls, value: str) -> str:
        route_id = value.strip()
        if not route_id:
            raise ValueError("route_id must be non-empty")
        return route_id

    @field_validator("observed_at")
    @classmethod
    def _ensure_tz_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value
