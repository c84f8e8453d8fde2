"""Fuel ledger: remaining-on-board (ROB) simulation along a route.

Walks the route leg by leg, charging consumption to VLSFO outside emission
control areas and to LSMGO inside them, optionally bunkering at the waypoint
nearest a port, and checks the safety margin at every point of the trace.
"""

import math
from dataclasses import dataclass

from voyage.app.models.bunker import FoundPort
from voyage.app.models.common import FuelQuantity, FuelType
from voyage.app.models.compliance import RouteSegment
from voyage.app.models.rob import RobTrace, RobWaypoint
from voyage.app.models.route import RouteData
from voyage.app.models.vessel import VesselProfile
from voyage.app.models.weather import WeatherConsumption
from voyage.app.utils.geo import waypoint_distances_along_route

DEFAULT_SAFETY_MARGIN_DAYS = 3.0
_EPSILON = 1e-9


@dataclass(frozen=True)
class _Leg:
    """Stretch between two consecutive trace points."""

    start_nm: float
    end_nm: float
    in_eca: bool
    end_label: str
    end_waypoint_index: int | None

    @property
    def distance_nm(self) -> float:
        return self.end_nm - self.start_nm


@dataclass(frozen=True)
class CapacityCheck:
    """Result of checking a bunker quantity against free tank space."""

    fits: bool
    available: FuelQuantity
    overflow: FuelQuantity


def leg_consumption(distance_nm: float, in_eca: bool, vessel: VesselProfile) -> FuelQuantity:
    """Base consumption for one leg, charged to the correct fuel grade."""
    if distance_nm <= 0:
        return FuelQuantity()
    days = distance_nm / (vessel.operational_speed_knots * 24)
    rate = vessel.effective_rate
    if in_eca:
        return FuelQuantity(vlsfo=0.0, lsmgo=(rate.vlsfo + rate.lsmgo) * days)
    return FuelQuantity(vlsfo=rate.vlsfo * days, lsmgo=rate.lsmgo * days)


def estimate_voyage_consumption(
    route: RouteData,
    vessel: VesselProfile,
    segments: list[RouteSegment] | None = None,
) -> FuelQuantity:
    """Weather-free consumption for the whole voyage, per fuel type."""
    segments = segments or [_full_route_segment(route)]
    total = FuelQuantity()
    for seg in segments:
        total = total.plus(leg_consumption(seg.distance_nm, seg.in_eca, vessel))
    return total


def validate_bunker_capacity(
    vessel: VesselProfile,
    rob: FuelQuantity,
    quantity: FuelQuantity,
) -> CapacityCheck:
    """Check whether a bunker quantity fits into the free tank space."""
    available = FuelQuantity(
        vlsfo=max(0.0, vessel.capacity.vlsfo - rob.vlsfo),
        lsmgo=max(0.0, vessel.capacity.lsmgo - rob.lsmgo),
    )
    overflow = FuelQuantity(
        vlsfo=max(0.0, quantity.vlsfo - available.vlsfo),
        lsmgo=max(0.0, quantity.lsmgo - available.lsmgo),
    )
    return CapacityCheck(
        fits=overflow.vlsfo <= _EPSILON and overflow.lsmgo <= _EPSILON,
        available=available,
        overflow=overflow,
    )


def safety_margin_days(rob: FuelQuantity, vessel: VesselProfile) -> float | None:
    """Days of steaming left on the scarcest fuel; None if nothing is consumed."""
    rate = vessel.effective_rate
    margins = [
        rob.get(fuel) / rate.get(fuel) for fuel in FuelType if rate.get(fuel) > 0
    ]
    return min(margins) if margins else None


def simulate(
    route: RouteData,
    vessel: VesselProfile,
    *,
    segments: list[RouteSegment] | None = None,
    weather_consumption: WeatherConsumption | None = None,
    bunker_port: FoundPort | None = None,
    bunker_quantity: FuelQuantity | None = None,
    safety_margin_days_required: float = DEFAULT_SAFETY_MARGIN_DAYS,
) -> RobTrace:
    """Simulate fuel remaining on board along the route.

    Args:
        route: Calculated route with waypoints
        vessel: Vessel profile (initial ROB, capacity, rates, speed)
        segments: ECA segmentation; defaults to one non-ECA segment
        weather_consumption: Weather impact spread proportionally over every leg
        bunker_port: Port to bunker at (applied at its nearest waypoint)
        bunker_quantity: Quantity to take on at bunker_port
        safety_margin_days_required: Minimum days of fuel required at every point

    Returns:
        RobTrace with per-waypoint ROB and an overall safety verdict
    """
    segments = segments or [_full_route_segment(route)]
    multiplier = 1.0
    if weather_consumption is not None:
        multiplier = 1.0 + weather_consumption.consumption_increase_percent / 100.0

    bunker_index: int | None = None
    if bunker_port is not None and bunker_quantity is not None:
        last_index = max(len(route.waypoints) - 1, 0)
        bunker_index = min(max(bunker_port.nearest_waypoint_index, 0), last_index)

    rob = vessel.initial_rob.model_copy()
    consumed = FuelQuantity()
    violations: list[str] = []
    bunkered: FuelQuantity | None = None
    points: list[RobWaypoint] = []

    def take_bunker(label: str) -> FuelQuantity:
        nonlocal rob, bunkered
        assert bunker_quantity is not None
        check = validate_bunker_capacity(vessel, rob, bunker_quantity)
        if not check.fits:
            violations.append(
                f"Bunker quantity exceeds available tank capacity at {label}: "
                f"overflow {check.overflow.vlsfo:.1f} MT VLSFO, {check.overflow.lsmgo:.1f} MT LSMGO"
            )
        added = FuelQuantity(
            vlsfo=min(bunker_quantity.vlsfo, check.available.vlsfo),
            lsmgo=min(bunker_quantity.lsmgo, check.available.lsmgo),
        )
        rob = rob.plus(added)
        bunkered = added
        return added

    def record(label: str, distance: float, waypoint_index: int | None, in_eca: bool,
               added: FuelQuantity | None) -> None:
        margin = safety_margin_days(rob, vessel)
        point_safe = True
        for fuel in FuelType:
            if rob.get(fuel) < -_EPSILON:
                point_safe = False
                violations.append(
                    f"Negative {fuel.value} ROB at {label}: {rob.get(fuel):.1f} MT"
                )
        if margin is not None and margin < safety_margin_days_required - _EPSILON:
            point_safe = False
            violations.append(
                f"Safety margin below {safety_margin_days_required:g} days at {label}: "
                f"{margin:.2f} days"
            )
        points.append(
            RobWaypoint(
                index=len(points),
                label=label,
                distance_from_origin_nm=distance,
                waypoint_index=waypoint_index,
                in_eca=in_eca,
                rob=rob.model_copy(),
                bunkered=added,
                safety_margin_days=margin,
                is_safe=point_safe,
            )
        )

    departure_label = f"Departure {route.origin_port_code}"
    added_at_departure = None
    if bunker_index == 0 and bunker_port is not None:
        added_at_departure = take_bunker(f"{departure_label} ({bunker_port.port.name})")
    record(departure_label, 0.0, 0, segments[0].in_eca, added_at_departure)

    for leg in _build_legs(route, segments):
        if leg.distance_nm <= _EPSILON:
            continue
        burn = leg_consumption(leg.distance_nm, leg.in_eca, vessel).scaled(multiplier)
        rob = rob.minus(burn)
        consumed = consumed.plus(burn)

        added = None
        if (
            bunker_index is not None
            and bunkered is None
            and leg.end_waypoint_index is not None
            and leg.end_waypoint_index >= bunker_index
            and bunker_port is not None
        ):
            added = take_bunker(f"{leg.end_label} ({bunker_port.port.name})")
        record(leg.end_label, leg.end_nm, leg.end_waypoint_index, leg.in_eca, added)

    minimum = FuelQuantity(
        vlsfo=min(p.rob.vlsfo for p in points),
        lsmgo=min(p.rob.lsmgo for p in points),
    )
    lowest = min(points, key=lambda p: p.rob.total)
    margins = [p.safety_margin_days for p in points if p.safety_margin_days is not None]

    return RobTrace(
        waypoints=points,
        initial_rob=vessel.initial_rob,
        final_rob=rob,
        minimum_rob=minimum,
        minimum_rob_location=lowest.label,
        total_consumption=consumed,
        safety_margin_days=min(margins) if margins else None,
        overall_safe=not violations,
        violations=violations,
        bunkered=bunkered,
    )


def _full_route_segment(route: RouteData) -> RouteSegment:
    return RouteSegment(
        segment_id="seg_0",
        from_label=route.origin_port_code,
        to_label=route.destination_port_code,
        distance_nm=route.distance_nm,
        in_eca=False,
    )


def _build_legs(route: RouteData, segments: list[RouteSegment]) -> list[_Leg]:
    """Split segments at route waypoints so the trace is waypoint by waypoint."""
    marks = waypoint_distances_along_route(route)
    # (distance, label, waypoint index); interior waypoints only
    waypoint_marks = [
        (d, f"Waypoint {i}", i) for i, d in enumerate(marks) if 0 < i < len(marks) - 1
    ]
    last_index = len(marks) - 1 if marks else None

    legs: list[_Leg] = []
    start = 0.0
    for seg_pos, seg in enumerate(segments):
        seg_end = start + seg.distance_nm
        is_last_segment = seg_pos == len(segments) - 1
        if is_last_segment:
            seg_end = max(seg_end, route.distance_nm)
        cursor = start
        for distance, label, index in waypoint_marks:
            if cursor + _EPSILON < distance < seg_end - _EPSILON:
                legs.append(_Leg(cursor, distance, seg.in_eca, label, index))
                cursor = distance
        if is_last_segment:
            end_label = f"Arrival {route.destination_port_code}"
            legs.append(_Leg(cursor, seg_end, seg.in_eca, end_label, last_index))
        else:
            end_index = _waypoint_at(marks, seg_end)
            legs.append(_Leg(cursor, seg_end, seg.in_eca, seg.to_label, end_index))
        start = seg_end
    return legs


def _waypoint_at(marks: list[float], distance: float) -> int | None:
    for i, d in enumerate(marks):
        if math.isclose(d, distance, abs_tol=1e-6):
            return i
    return None
