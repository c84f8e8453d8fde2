"""Vessel timeline: positions sampled at a fixed interval along the route."""

import math
from datetime import datetime, timedelta

from voyage.app.models.common import Geo
from voyage.app.models.route import TimelinePoint
from voyage.app.utils.geo import haversine_nm, interpolate


class TimelineError(Exception):
    """Vessel timeline could not be computed."""

    pass


def calculate_vessel_timeline(
    waypoints: list[Geo],
    speed_knots: float,
    departure_at: datetime,
    interval_hours: float = 12.0,
) -> list[TimelinePoint]:
    """Sample vessel positions every ``interval_hours`` along the waypoints.

    Every waypoint is included as well, so the timeline never skips a turn.

    Raises:
        TimelineError: On empty waypoints or non-positive speed/interval
    """
    if not waypoints:
        raise TimelineError("At least one waypoint is required")
    if speed_knots <= 0:
        raise TimelineError(f"Vessel speed must be positive, got {speed_knots}")
    if interval_hours <= 0:
        raise TimelineError(f"Sampling interval must be positive, got {interval_hours}")

    points = [
        TimelinePoint(
            position=waypoints[0],
            at=departure_at,
            distance_from_start_nm=0.0,
            segment_index=0,
        )
    ]

    cumulative = 0.0
    for index, (start, end) in enumerate(zip(waypoints, waypoints[1:])):
        leg_nm = haversine_nm(start, end)
        leg_hours = leg_nm / speed_knots
        hours_to_leg_start = cumulative / speed_knots

        samples = math.ceil(leg_hours / interval_hours) if leg_hours > 0 else 0
        for sample in range(1, samples):
            offset = sample * interval_hours
            if offset >= leg_hours:
                break
            fraction = offset / leg_hours
            points.append(
                TimelinePoint(
                    position=interpolate(start, end, fraction),
                    at=departure_at + timedelta(hours=hours_to_leg_start + offset),
                    distance_from_start_nm=cumulative + leg_nm * fraction,
                    segment_index=index,
                )
            )

        cumulative += leg_nm
        points.append(
            TimelinePoint(
                position=end,
                at=departure_at + timedelta(hours=cumulative / speed_knots),
                distance_from_start_nm=cumulative,
                segment_index=index,
            )
        )

    # Drop duplicates produced by repeated waypoints
    unique: list[TimelinePoint] = []
    seen: set[tuple[float, float, datetime]] = set()
    for point in points:
        key = (round(point.position.lat, 6), round(point.position.lon, 6), point.at)
        if key not in seen:
            seen.add(key)
            unique.append(point)
    return unique
