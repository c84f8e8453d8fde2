"""Multi-stop bunker planning under tank capacity constraints.

Decides whether one bunker stop can cover the voyage and, when it cannot,
enumerates stop sequences that move forward along the route, simulates fuel
on board through each sequence, and ranks the feasible ones by total cost.
"""

import itertools
import logging
from dataclasses import dataclass

from voyage.app.engines.bunker_analyzer import LSMGO_PRICE_ESTIMATE_FACTOR
from voyage.app.models.bunker import (
    BunkerPlan,
    BunkerStop,
    CapacityConstraint,
    FoundPort,
    MultiBunkerAnalysis,
    PortPrices,
)
from voyage.app.models.common import FuelQuantity, FuelType
from voyage.app.models.route import RouteData
from voyage.app.models.vessel import VesselProfile

logger = logging.getLogger(__name__)

DEPARTURE_MAX_PROGRESS = 0.20
MIN_MIDPOINT_PROGRESS = 0.30
MAX_MIDPOINT_PROGRESS = 0.80
MAX_MIDPOINT_DEVIATION_NM = 100.0
MAX_MIDPOINT_CANDIDATES = 6
DEFAULT_SAFETY_MARGIN_DAYS = 3.0
DEFAULT_VLSFO_PRICE = 600.0
TOP_PLANS = 3


@dataclass(frozen=True)
class _Candidate:
    found: FoundPort
    progress: float
    distance_along_nm: float
    prices: FuelQuantity


def route_progress(waypoint_index: int, total_waypoints: int) -> float:
    """Fraction of the route completed at a waypoint index."""
    if total_waypoints <= 1:
        return 0.0
    return waypoint_index / (total_waypoints - 1)


def _port_prices(code: str, prices: PortPrices) -> FuelQuantity | None:
    vlsfo = prices.price_for(code, FuelType.VLSFO)
    if vlsfo is None:
        return None
    lsmgo = prices.price_for(code, FuelType.LSMGO)
    return FuelQuantity(
        vlsfo=vlsfo.price_per_mt,
        lsmgo=lsmgo.price_per_mt if lsmgo else vlsfo.price_per_mt * LSMGO_PRICE_ESTIMATE_FACTOR,
    )


def _reserve(daily: FuelQuantity, safety_margin_days: float) -> FuelQuantity:
    return daily.scaled(safety_margin_days)


def _max_single_stop(
    vessel: VesselProfile,
    ports: list[FoundPort],
    prices: PortPrices,
) -> FuelQuantity:
    """Largest quantity deliverable at any one priced port, bounded by free tank space."""
    free = FuelQuantity(
        vlsfo=max(0.0, vessel.capacity.vlsfo - vessel.initial_rob.vlsfo),
        lsmgo=max(0.0, vessel.capacity.lsmgo - vessel.initial_rob.lsmgo),
    )
    priced = [p for p in ports if _port_prices(p.port.port_code, prices) is not None]
    if not priced:
        return free
    best = FuelQuantity()
    for found in priced:
        supply = found.port.max_supply_mt
        best = FuelQuantity(
            vlsfo=max(best.vlsfo, free.vlsfo if supply is None else min(supply, free.vlsfo)),
            lsmgo=max(best.lsmgo, free.lsmgo if supply is None else min(supply, free.lsmgo)),
        )
    return best


def needs_multi_stop_bunkering(
    voyage_consumption: FuelQuantity,
    vessel: VesselProfile,
    voyage_days: float,
    *,
    weather_factor: float = 1.0,
    safety_margin_days: float = DEFAULT_SAFETY_MARGIN_DAYS,
) -> bool:
    """Quick check: can a full tank plus reserve cover the voyage?"""
    if voyage_days <= 0:
        return False
    daily = voyage_consumption.scaled(weather_factor / voyage_days)
    reserve = _reserve(daily, safety_margin_days)
    for fuel in FuelType:
        needed = voyage_consumption.get(fuel) * weather_factor + reserve.get(fuel)
        if needed > vessel.capacity.get(fuel):
            return True
    return False


def plan(
    voyage_consumption: FuelQuantity,
    vessel: VesselProfile,
    candidate_ports: list[FoundPort],
    port_prices: PortPrices,
    *,
    route: RouteData,
    weather_factor: float = 1.0,
    safety_margin_days: float = DEFAULT_SAFETY_MARGIN_DAYS,
    force_multi_stop: bool = False,
    max_stops: int = 3,
) -> MultiBunkerAnalysis:
    """Decide whether multi-stop bunkering is required and rank stop sequences.

    Args:
        voyage_consumption: Weather-free voyage consumption per fuel type
        vessel: Vessel profile (initial ROB, capacity, speed)
        candidate_ports: Ports near the route
        port_prices: Quotes for candidate ports
        route: Route used to place ports by progress
        weather_factor: Multiplier on consumption (1 + weather increase)
        safety_margin_days: Reserve kept on board, in days of consumption
        force_multi_stop: Plan multiple stops even if one stop looks sufficient
        max_stops: Upper bound on stops per sequence (including departure)

    Returns:
        MultiBunkerAnalysis; best_plan is None with error set if nothing is feasible
    """
    speed = vessel.operational_speed_knots
    voyage_days = route.distance_nm / (speed * 24)
    if voyage_days <= 0:
        return MultiBunkerAnalysis(required=False, reason="Zero-distance voyage")

    daily = voyage_consumption.scaled(weather_factor / voyage_days)
    reserve = _reserve(daily, safety_margin_days)
    rob = vessel.initial_rob

    required_mt = FuelQuantity(
        vlsfo=voyage_consumption.vlsfo * weather_factor + reserve.vlsfo - rob.vlsfo,
        lsmgo=voyage_consumption.lsmgo * weather_factor + reserve.lsmgo - rob.lsmgo,
    )
    max_single = _max_single_stop(vessel, candidate_ports, port_prices)
    short_fuels = [
        fuel for fuel in FuelType if required_mt.get(fuel) > max_single.get(fuel) + 1e-9
    ]
    required = force_multi_stop or bool(short_fuels)

    if not required:
        return MultiBunkerAnalysis(required=False)

    constraint = CapacityConstraint(
        voyage_consumption_mt=voyage_consumption.scaled(weather_factor),
        vessel_capacity_mt=vessel.capacity,
        required_mt=required_mt,
        max_single_stop_mt=max_single,
    )
    if short_fuels:
        reason = (
            f"Voyage requires {required_mt.total:.0f} MT but a single stop can deliver "
            f"at most {max_single.total:.0f} MT"
        )
    else:
        reason = "Single-stop bunkering leaves the voyage below the safety margin"
    logger.info(f"Multi-stop bunkering required for {route.origin_port_code}->"
                f"{route.destination_port_code}: {reason}")

    total_waypoints = len(route.waypoints)
    candidates: list[_Candidate] = []
    for found in candidate_ports:
        prices = _port_prices(found.port.port_code, port_prices)
        if prices is None:
            continue
        progress = route_progress(found.nearest_waypoint_index, total_waypoints)
        candidates.append(
            _Candidate(
                found=found,
                progress=progress,
                distance_along_nm=progress * route.distance_nm,
                prices=prices,
            )
        )

    departure = _find_departure(candidates)
    if departure is None:
        return MultiBunkerAnalysis(
            required=True,
            reason=reason,
            capacity_constraint=constraint,
            error="No departure port with pricing found. Contact operations team.",
        )

    midpoints = _find_midpoints(candidates, departure)
    if not midpoints:
        return MultiBunkerAnalysis(
            required=True,
            reason=reason,
            capacity_constraint=constraint,
            error=(
                "No mid-voyage bunker ports found within 100nm of route with pricing. "
                "This voyage may require route modification. Contact operations team."
            ),
        )

    plans: list[BunkerPlan] = []
    for extra in range(1, max(2, max_stops)):
        for combo in itertools.combinations(midpoints, extra):
            ordered = sorted(combo, key=lambda c: c.progress)
            candidate_plan = _simulate_sequence(
                [departure, *ordered],
                vessel=vessel,
                route=route,
                daily=daily,
                reserve=reserve,
            )
            if candidate_plan is not None and candidate_plan.is_safe:
                plans.append(candidate_plan)

    if not plans:
        return MultiBunkerAnalysis(
            required=True,
            reason=reason,
            capacity_constraint=constraint,
            error=(
                f"No safe bunker plans found with up to {max(2, max_stops)} stops. "
                "This voyage may require route modification. Contact operations team."
            ),
        )

    plans.sort(key=lambda p: p.total_cost_usd)
    worst = plans[-1].total_cost_usd
    ranked = [
        p.model_copy(update={"rank": i, "savings_vs_worst": worst - p.total_cost_usd})
        for i, p in enumerate(plans, start=1)
    ][:TOP_PLANS]

    return MultiBunkerAnalysis(
        required=True,
        plans=ranked,
        best_plan=ranked[0],
        reason=reason,
        capacity_constraint=constraint,
    )


def _find_departure(candidates: list[_Candidate]) -> _Candidate | None:
    near_start = [c for c in candidates if c.progress <= DEPARTURE_MAX_PROGRESS]
    if near_start:
        return min(near_start, key=lambda c: c.found.distance_from_route_nm)
    fallback = [c for c in candidates if c.found.distance_from_route_nm < MAX_MIDPOINT_DEVIATION_NM]
    return fallback[0] if fallback else None


def _find_midpoints(candidates: list[_Candidate], departure: _Candidate) -> list[_Candidate]:
    midpoints = [
        c
        for c in candidates
        if MIN_MIDPOINT_PROGRESS <= c.progress <= MAX_MIDPOINT_PROGRESS
        and c.found.distance_from_route_nm <= MAX_MIDPOINT_DEVIATION_NM
        and c.found.port.port_code != departure.found.port.port_code
        and c.progress >= departure.progress
    ]
    midpoints.sort(key=lambda c: abs(c.progress - 0.5))
    return midpoints[:MAX_MIDPOINT_CANDIDATES]


def _simulate_sequence(
    stops: list[_Candidate],
    *,
    vessel: VesselProfile,
    route: RouteData,
    daily: FuelQuantity,
    reserve: FuelQuantity,
) -> BunkerPlan | None:
    """Walk a stop sequence.

    Returns None when the vessel cannot reach the departure stop, or reaches a
    later stop below the reserve.
    """
    speed = vessel.operational_speed_knots
    capacity = vessel.capacity
    rob = vessel.initial_rob
    position = 0.0
    previous_deviation = 0.0
    fuel_cost = 0.0
    plan_stops: list[BunkerStop] = []

    for i, stop in enumerate(stops):
        is_last = i == len(stops) - 1
        leg_nm = (
            max(0.0, stop.distance_along_nm - position)
            + previous_deviation
            + stop.found.distance_from_route_nm
        )
        arrival = rob.minus(daily.scaled(leg_nm / (speed * 24)))
        # Bunkering at departure is what restores the reserve, so only require fuel on board
        minimum = FuelQuantity() if i == 0 else reserve
        if arrival.vlsfo < minimum.vlsfo or arrival.lsmgo < minimum.lsmgo:
            return None

        if is_last:
            remaining_nm = (
                max(0.0, route.distance_nm - stop.distance_along_nm)
                + stop.found.distance_from_route_nm
            )
            needed = daily.scaled(remaining_nm / (speed * 24)).plus(reserve)
            take = FuelQuantity(
                vlsfo=max(0.0, min(needed.vlsfo - arrival.vlsfo, capacity.vlsfo - arrival.vlsfo)),
                lsmgo=max(0.0, min(needed.lsmgo - arrival.lsmgo, capacity.lsmgo - arrival.lsmgo)),
            )
        else:
            take = FuelQuantity(
                vlsfo=max(0.0, capacity.vlsfo - arrival.vlsfo),
                lsmgo=max(0.0, capacity.lsmgo - arrival.lsmgo),
            )
        supply = stop.found.port.max_supply_mt
        if supply is not None:
            take = FuelQuantity(vlsfo=min(take.vlsfo, supply), lsmgo=min(take.lsmgo, supply))

        departure_rob = arrival.plus(take)
        cost = take.vlsfo * stop.prices.vlsfo + take.lsmgo * stop.prices.lsmgo
        fuel_cost += cost

        plan_stops.append(
            BunkerStop(
                port_code=stop.found.port.port_code,
                port_name=stop.found.port.name,
                position_on_route="departure" if i == 0 else "midpoint",
                nearest_waypoint_index=stop.found.nearest_waypoint_index,
                distance_along_route_nm=stop.distance_along_nm,
                deviation_nm=stop.found.distance_from_route_nm,
                bunker_quantity=take,
                arrival_rob=arrival,
                departure_rob=departure_rob,
                fuel_prices=stop.prices,
                estimated_cost_usd=cost,
            )
        )
        rob = departure_rob
        position = stop.distance_along_nm
        previous_deviation = stop.found.distance_from_route_nm

    final_nm = max(0.0, route.distance_nm - position) + previous_deviation
    final_rob = rob.minus(daily.scaled(final_nm / (speed * 24)))

    total_deviation_nm = sum(s.found.distance_from_route_nm for s in stops)
    deviation_fuel = total_deviation_nm / (speed * 24) * daily.vlsfo
    mean_vlsfo_price = sum(s.prices.vlsfo for s in stops) / len(stops)
    deviation_cost = deviation_fuel * mean_vlsfo_price

    within_capacity = all(
        s.departure_rob.vlsfo <= capacity.vlsfo + 1e-6 and s.departure_rob.lsmgo <= capacity.lsmgo + 1e-6
        for s in plan_stops
    )
    is_safe = (
        within_capacity
        and final_rob.vlsfo >= reserve.vlsfo - 1e-6
        and final_rob.lsmgo >= reserve.lsmgo - 1e-6
    )

    return BunkerPlan(
        stops=plan_stops,
        total_cost_usd=fuel_cost + deviation_cost,
        deviation_cost_usd=deviation_cost,
        final_rob=final_rob,
        is_safe=is_safe,
    )
