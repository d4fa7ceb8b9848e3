"""Per-route derived tracking state."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from routewatch.models.position import Position


class RouteTrackingState(BaseModel):
    """Latest position of a tracked route plus the flags derived from it.

    ``is_off_route`` and ``is_speeding`` are always computed from
    ``latest_position``. ``is_off_route`` is ``None`` when the route has
    no usable path (deviation unknown, not assumed on-route).
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    route_id: str
    latest_position: Position
    is_off_route: bool | None = None
    deviation_m: float | None = None
    is_speeding: bool = False
    updated_at: datetime
    update_count: int = 1
    out_of_order_count: int = 0

    @property
    def deviation_known(self) -> bool:
        return self.is_off_route is not None
