"""Vehicle position report model."""

from __future__ import annotations

from datetime import datetime
from typing import Any, ClassVar

from pydantic import AliasChoices, Field, field_validator

from routewatch.ingestion.normalize import parse_timestamp, safe_float
from routewatch.models._base import FeedModel
from routewatch.models.geo import Coordinate


class Position(FeedModel):
    """A single position report from the vehicle telemetry feed.

    Optional numeric fields are ``None`` when the value is absent or
    unparseable from the payload.

    Parameters
    ----------
    latitude : float
        Latitude in degrees.
    longitude : float
        Longitude in degrees.
    speed : float or None
        Ground speed in mph.
    heading : float or None
        Heading in degrees.
    timestamp : datetime or None
        Report time (UTC) as stated by the feed.
    raw : dict
        Full feed payload.
    """

    _NESTED_KEYS: ClassVar[tuple[str, ...]] = ("location", "data")

    latitude: float = Field(validation_alias=AliasChoices("latitude", "lat", "gpsLatitude"))
    longitude: float = Field(validation_alias=AliasChoices("longitude", "lng", "lon", "gpsLongitude"))
    speed: float | None = Field(default=None, validation_alias=AliasChoices("speed", "gpsSpeed", "speedMph"))
    heading: float | None = Field(default=None, validation_alias=AliasChoices("heading", "direction", "course"))
    timestamp: datetime | None = Field(
        default=None,
        validation_alias=AliasChoices("timestamp", "time", "gpsTimeStamp", "gpsTimestamp", "updatedAt"),
    )

    @field_validator("latitude", "longitude", mode="before")
    @classmethod
    def _coerce_coordinate(cls, value: Any) -> float | None:
        return safe_float(value)

    @field_validator("latitude")
    @classmethod
    def _check_latitude(cls, value: float) -> float:
        if not -90.0 <= value <= 90.0:
            raise ValueError(f"latitude must be within [-90, 90], got {value}")
        return value

    @field_validator("longitude")
    @classmethod
    def _check_longitude(cls, value: float) -> float:
        if not -180.0 <= value <= 180.0:
            raise ValueError(f"longitude must be within [-180, 180], got {value}")
        return value

    @field_validator("speed", "heading", mode="before")
    @classmethod
    def _coerce_floats(cls, value: Any) -> float | None:
        return safe_float(value)

    @field_validator("timestamp", mode="before")
    @classmethod
    def _coerce_timestamp(cls, value: Any) -> datetime | None:
        return parse_timestamp(value)

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(latitude=self.latitude, longitude=self.longitude)
