"""Coordinate, route path and stop models."""

from __future__ import annotations

import math
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator


def _check_finite(value: float, name: str) -> float:
    if not math.isfinite(value):
        raise ValueError(f"{name} must be finite, got {value}")
    return value


class Coordinate(BaseModel):
    """A WGS84 point in degrees.

    Accepts ``{"latitude": .., "longitude": ..}``, ``{"lat": .., "lng": ..}``
    or a ``(lat, lng)`` pair.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )

    latitude: float = Field(validation_alias=AliasChoices("latitude", "lat"))
    longitude: float = Field(validation_alias=AliasChoices("longitude", "lng", "lon"))

    @model_validator(mode="before")
    @classmethod
    def _from_pair(cls, values: Any) -> Any:
        if isinstance(values, (list, tuple)) and len(values) == 2:
            return {"latitude": values[0], "longitude": values[1]}
        return values

    @field_validator("latitude")
    @classmethod
    def _check_latitude(cls, value: float) -> float:
        _check_finite(value, "latitude")
        if not -90.0 <= value <= 90.0:
            raise ValueError(f"latitude must be within [-90, 90], got {value}")
        return value

    @field_validator("longitude")
    @classmethod
    def _check_longitude(cls, value: float) -> float:
        _check_finite(value, "longitude")
        if not -180.0 <= value <= 180.0:
            raise ValueError(f"longitude must be within [-180, 180], got {value}")
        return value

    def as_param(self) -> str:
        """``"lat,lng"`` form used in provider query strings."""
        return f"{self.latitude:.6f},{self.longitude:.6f}"


RoutePath = tuple[Coordinate, ...]
"""Ordered path vertices for a route. Immutable for the lifetime of a trip."""


class Stop(BaseModel):
    """A stop on a route for which arrival times are tracked."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )

    stop_id: str = Field(validation_alias=AliasChoices("stop_id", "stopId", "id"))
    name: str = Field(default="", validation_alias=AliasChoices("name", "stopName"))
    location: Coordinate = Field(validation_alias=AliasChoices("location", "stopLocation"))

    @field_validator("stop_id", mode="before")
    @classmethod
    def _normalize_stop_id(cls, value: Any) -> str:
        stop_id = str(value).strip() if value is not None else ""
        if not stop_id:
            raise ValueError("stop_id must be non-empty")
        return stop_id

    @property
    def label(self) -> str:
        return self.name or self.stop_id
