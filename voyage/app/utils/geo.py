"""Great-circle helpers shared by engines and adapters."""

import math

from voyage.app.models.common import Geo
from voyage.app.models.route import RouteData

EARTH_RADIUS_NM = 3440.065


def haversine_nm(a: Geo, b: Geo) -> float:
    """Great-circle distance between two points in nautical miles."""
    lat1, lon1 = math.radians(a.lat), math.radians(a.lon)
    lat2, lon2 = math.radians(b.lat), math.radians(b.lon)

    dlat = lat2 - lat1
    dlon = lon2 - lon1

    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    return 2 * EARTH_RADIUS_NM * math.asin(min(1.0, math.sqrt(h)))


def interpolate(start: Geo, end: Geo, fraction: float) -> Geo:
    """Linear interpolation between two positions (adequate for short legs)."""
    return Geo(
        lat=start.lat + (end.lat - start.lat) * fraction,
        lon=start.lon + (end.lon - start.lon) * fraction,
    )


def cumulative_distances(waypoints: list[Geo]) -> list[float]:
    """Cumulative great-circle distance at each waypoint, starting at 0."""
    if not waypoints:
        return []
    distances = [0.0]
    for prev, cur in zip(waypoints, waypoints[1:]):
        distances.append(distances[-1] + haversine_nm(prev, cur))
    return distances


def waypoint_distances_along_route(route: RouteData) -> list[float]:
    """Waypoint positions along the route, scaled to the route's own distance.

    Route services report sailed distance, which differs from the sum of
    great-circle legs between reported waypoints.
    """
    raw = cumulative_distances(route.waypoints)
    if not raw:
        return []
    total = raw[-1]
    if total <= 0:
        return [0.0 for _ in raw]
    scale = route.distance_nm / total
    scaled = [d * scale for d in raw]
    scaled[-1] = route.distance_nm
    return scaled
