"""Internal constants shared across the library."""

BASE_URL = "https://maps.googleapis.com/maps/api"
USER_AGENT = "routewatch/1"

#: Mean Earth radius used by the haversine distance.
EARTH_RADIUS_M = 6_371_000.0

DEFAULT_DEVIATION_THRESHOLD_M = 500.0
DEFAULT_SPEED_LIMIT_MPH = 45.0
DEFAULT_ETA_THRESHOLDS: tuple[int, ...] = (20, 10, 5)

# Provider statuses that mean "try again later" rather than "bad request".
RATE_LIMIT_STATUSES: frozenset[str] = frozenset({"OVER_QUERY_LIMIT", "OVER_DAILY_LIMIT"})

# ------------------------------------------------------------------
# Notification texts
# ------------------------------------------------------------------

ETA_NOTIFICATION_TITLE = "Bus Arrival Update"
DEVIATION_NOTIFICATION_TITLE = "Route Deviation Alert"
SPEED_NOTIFICATION_TITLE = "Speed Alert"


def eta_notification_body(stop_name: str, minutes: int) -> str:
    """Body text for a remaining-minutes threshold notification."""
    return f"Your bus will arrive at {stop_name} in approximately {minutes} minutes"


def deviation_notification_body(route_label: str) -> str:
    return f"Bus on route {route_label} has deviated from its designated path"


def speed_notification_body(route_label: str) -> str:
    return f"Bus on route {route_label} is exceeding the speed limit"
