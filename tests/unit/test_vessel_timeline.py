"""Tests for vessel position sampling along a route."""

from datetime import timedelta

import pytest

from tests.factories import DEPARTURE, SGSIN_AEFJR_WAYPOINTS
from voyage.app.engines.timeline import TimelineError, calculate_vessel_timeline
from voyage.app.models.common import Geo
from voyage.app.utils.geo import cumulative_distances


def test_timeline_starts_at_departure_and_ends_at_destination() -> None:
    timeline = calculate_vessel_timeline(SGSIN_AEFJR_WAYPOINTS, 14.0, DEPARTURE, 12.0)

    total_nm = cumulative_distances(SGSIN_AEFJR_WAYPOINTS)[-1]
    assert timeline[0].at == DEPARTURE
    assert timeline[0].position == SGSIN_AEFJR_WAYPOINTS[0]
    assert timeline[-1].position == SGSIN_AEFJR_WAYPOINTS[-1]
    assert timeline[-1].distance_from_start_nm == pytest.approx(total_nm)
    elapsed_hours = (timeline[-1].at - DEPARTURE).total_seconds() / 3600
    assert elapsed_hours == pytest.approx(total_nm / 14.0)


def test_samples_are_ordered_and_spaced_by_interval() -> None:
    timeline = calculate_vessel_timeline(SGSIN_AEFJR_WAYPOINTS, 14.0, DEPARTURE, 12.0)

    gaps = [b.at - a.at for a, b in zip(timeline, timeline[1:])]
    assert all(timedelta(0) < gap <= timedelta(hours=12) for gap in gaps)
    distances = [p.distance_from_start_nm for p in timeline]
    assert distances == sorted(distances)


def test_every_waypoint_is_included() -> None:
    timeline = calculate_vessel_timeline(SGSIN_AEFJR_WAYPOINTS, 14.0, DEPARTURE, 48.0)

    positions = [p.position for p in timeline]
    for waypoint in SGSIN_AEFJR_WAYPOINTS:
        assert waypoint in positions


def test_single_waypoint_gives_single_point() -> None:
    timeline = calculate_vessel_timeline([Geo(lat=1.264, lon=103.84)], 14.0, DEPARTURE)

    assert len(timeline) == 1
    assert timeline[0].distance_from_start_nm == 0.0


def test_repeated_waypoints_are_deduplicated() -> None:
    a = Geo(lat=0.0, lon=0.0)
    b = Geo(lat=0.0, lon=1.0)

    timeline = calculate_vessel_timeline([a, a, b], 10.0, DEPARTURE, 12.0)

    assert [p.position for p in timeline] == [a, b]


@pytest.mark.parametrize(
    ("waypoints", "speed", "interval", "message"),
    [
        ([], 14.0, 12.0, "At least one waypoint"),
        ([Geo(lat=0.0, lon=0.0)], 0.0, 12.0, "speed must be positive"),
        ([Geo(lat=0.0, lon=0.0)], 14.0, 0.0, "interval must be positive"),
    ],
)
def test_invalid_input_raises(waypoints, speed, interval, message) -> None:
    with pytest.raises(TimelineError, match=message):
        calculate_vessel_timeline(waypoints, speed, DEPARTURE, interval)
