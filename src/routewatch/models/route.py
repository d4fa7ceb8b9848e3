"""Tracked route metadata supplied by the caller."""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from routewatch.models.geo import RoutePath, Stop


class TrackedRoute(BaseModel):
    """A route the position stream manager should follow.

    ``path`` may be ``None`` or empty when no planned path is known; the
    deviation check is then reported as unknown rather than on-route.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )

    route_id: str = Field(validation_alias=AliasChoices("route_id", "routeId", "id"))
    name: str = Field(default="", validation_alias=AliasChoices("name", "routeName"))
    path: RoutePath | None = Field(default=None, validation_alias=AliasChoices("path", "routePath"))
    stops: tuple[Stop, ...] = Field(default=(), validation_alias=AliasChoices("stops", "pendingStops"))

    @field_validator("route_id", mode="before")
    @classmethod
    def _normalize_route_id(cls, value: Any) -> str:
        route_id = str(value).strip() if value is not None else ""
        if not route_id:
            raise ValueError("route_id must be non-empty")
        return route_id

    @field_validator("stops")
    @classmethod
    def _unique_stops(cls, value: tuple[Stop, ...]) -> tuple[Stop, ...]:
        seen: set[str] = set()
        for stop in value:
            if stop.stop_id in seen:
                raise ValueError(f"duplicate stop_id {stop.stop_id!r}")
            seen.add(stop.stop_id)
        return value

    @property
    def label(self) -> str:
        return self.name or self.route_id

    @property
    def has_path(self) -> bool:
        return bool(self.path)
