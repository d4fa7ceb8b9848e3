"""Turn-by-turn navigation models."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class ManeuverKind(StrEnum):
    """Maneuver reported for a navigation step.

    Values the provider sends that have no mapped member resolve to
    ``UNKNOWN`` instead of raising ``ValueError``.
    """

    UNKNOWN = "unknown"
    STRAIGHT = "straight"
    TURN_LEFT = "turn-left"
    TURN_RIGHT = "turn-right"
    TURN_SLIGHT_LEFT = "turn-slight-left"
    TURN_SLIGHT_RIGHT = "turn-slight-right"
    TURN_SHARP_LEFT = "turn-sharp-left"
    TURN_SHARP_RIGHT = "turn-sharp-right"
    UTURN_LEFT = "uturn-left"
    UTURN_RIGHT = "uturn-right"
    KEEP_LEFT = "keep-left"
    KEEP_RIGHT = "keep-right"
    MERGE = "merge"
    RAMP_LEFT = "ramp-left"
    RAMP_RIGHT = "ramp-right"
    FORK_LEFT = "fork-left"
    FORK_RIGHT = "fork-right"
    ROUNDABOUT_LEFT = "roundabout-left"
    ROUNDABOUT_RIGHT = "roundabout-right"
    FERRY = "ferry"
    FERRY_TRAIN = "ferry-train"

    @classmethod
    def _missing_(cls, value: object) -> ManeuverKind:
        if isinstance(value, str):
            normalized = value.strip().lower()
            for member in cls:
                if member.value == normalized:
                    return member
        return cls.UNKNOWN


class NavigationStep(BaseModel):
    """One maneuver of a computed route."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    maneuver: ManeuverKind = ManeuverKind.UNKNOWN
    instruction_text: str = ""
    distance_meters: float | None = None
    distance_text: str = ""
    duration_seconds: float | None = None
    duration_text: str = ""


class LegSummary(BaseModel):
    """Totals for one leg (origin or waypoint to the next stopover)."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    start_address: str = ""
    end_address: str = ""
    distance_meters: float | None = None
    distance_text: str = ""
    duration_seconds: float | None = None
    duration_text: str = ""
    step_count: int = 0


class ComputedRoute(BaseModel):
    """Result of a multi-leg route computation.

    ``steps`` is every leg's steps flattened in travel order.
    ``waypoint_order`` maps travel order to input waypoint indexes;
    the provider may reorder waypoints when optimizing.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    steps: tuple[NavigationStep, ...] = ()
    legs: tuple[LegSummary, ...] = ()
    waypoint_order: tuple[int, ...] = Field(default=())
    summary: str = ""

    @property
    def total_duration_seconds(self) -> float:
        return sum(leg.duration_seconds or 0.0 for leg in self.legs)

    @property
    def total_distance_meters(self) -> float:
        return sum(leg.distance_meters or 0.0 for leg in self.legs)
