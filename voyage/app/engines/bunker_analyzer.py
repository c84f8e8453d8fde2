"""Single-stop bunker option ranking.

Scores every priced port near the route by fuel cost plus the cost of
deviating from the route to reach it, discounted for stale price data.
"""

import logging
from typing import Any

from voyage.app.models.bunker import (
    BunkerAnalysis,
    BunkerRecommendation,
    FoundPort,
    PortPrices,
)
from voyage.app.models.common import FuelQuantity, FuelType
from voyage.app.models.vessel import VesselProfile

logger = logging.getLogger(__name__)

# LSMGO typically trades at a premium over VLSFO
LSMGO_PRICE_ESTIMATE_FACTOR = 1.4
# Share of deviation fuel burned as LSMGO by auxiliaries
DEVIATION_MGO_SHARE = 0.10


class NoValidBunkerOptionsError(Exception):
    """No candidate port has usable VLSFO pricing."""

    pass


def freshness_penalty(hours_since_update: float) -> float:
    """Ranking multiplier for price age; 1.0 means fully trusted."""
    if hours_since_update < 24:
        return 1.0
    if hours_since_update < 168:
        return 0.95
    if hours_since_update < 720:
        return 0.85
    if hours_since_update < 2160:
        return 0.70
    return 0.5


def _score_port(
    found: FoundPort,
    prices: PortPrices,
    required_quantity: FuelQuantity,
    vessel: VesselProfile,
) -> BunkerRecommendation | None:
    code = found.port.port_code
    vlsfo_quote = prices.price_for(code, FuelType.VLSFO)
    if vlsfo_quote is None:
        return None
    lsmgo_quote = prices.price_for(code, FuelType.LSMGO)

    vlsfo_price = vlsfo_quote.price_per_mt
    lsmgo_estimated = lsmgo_quote is None
    lsmgo_price = (
        vlsfo_price * LSMGO_PRICE_ESTIMATE_FACTOR if lsmgo_quote is None else lsmgo_quote.price_per_mt
    )

    fuel_cost = required_quantity.vlsfo * vlsfo_price + required_quantity.lsmgo * lsmgo_price

    # Round trip off the route and back
    deviation_nm = found.distance_from_route_nm * 2
    deviation_hours = deviation_nm / vessel.operational_speed_knots
    deviation_vlsfo = deviation_hours / 24 * vessel.effective_rate.vlsfo
    deviation_mgo = deviation_vlsfo * DEVIATION_MGO_SHARE
    deviation_cost = deviation_vlsfo * vlsfo_price + deviation_mgo * lsmgo_price

    age_hours = max(
        [vlsfo_quote.hours_since_update]
        + ([lsmgo_quote.hours_since_update] if lsmgo_quote is not None else [])
    )

    return BunkerRecommendation(
        port_code=code,
        port_name=found.port.name,
        distance_from_route_nm=found.distance_from_route_nm,
        nearest_waypoint_index=found.nearest_waypoint_index,
        bunker_quantity=required_quantity,
        vlsfo_price_per_mt=vlsfo_price,
        lsmgo_price_per_mt=lsmgo_price,
        lsmgo_price_estimated=lsmgo_estimated,
        fuel_cost_usd=fuel_cost,
        deviation_nm=deviation_nm,
        deviation_hours=deviation_hours,
        deviation_fuel_mt=deviation_vlsfo + deviation_mgo,
        deviation_cost_usd=deviation_cost,
        total_cost_usd=fuel_cost + deviation_cost,
        data_freshness_hours=age_hours,
        freshness_penalty=freshness_penalty(age_hours),
    )


def analyze_bunker_options(
    ports: list[FoundPort],
    prices: PortPrices,
    required_quantity: FuelQuantity,
    vessel: VesselProfile,
) -> BunkerAnalysis:
    """Rank single-stop bunker options by freshness-adjusted total cost.

    Args:
        ports: Candidate ports near the route
        prices: Quotes for those ports
        required_quantity: Quantity to buy per fuel type
        vessel: Vessel profile (speed and rates drive deviation cost)

    Returns:
        BunkerAnalysis with ranked recommendations

    Raises:
        NoValidBunkerOptionsError: If no port has a VLSFO price
    """
    scored = [
        rec
        for rec in (_score_port(p, prices, required_quantity, vessel) for p in ports)
        if rec is not None
    ]
    if not scored:
        raise NoValidBunkerOptionsError(
            f"None of {len(ports)} candidate ports has VLSFO pricing"
        )

    scored.sort(key=lambda r: r.total_cost_usd / r.freshness_penalty)

    most_expensive = max(r.total_cost_usd for r in scored)
    ranked = [
        rec.model_copy(
            update={"rank": i, "savings_vs_most_expensive": most_expensive - rec.total_cost_usd}
        )
        for i, rec in enumerate(scored, start=1)
    ]

    decision: dict[str, Any] = {
        "candidates": len(ports),
        "priced": len(ranked),
        "best": ranked[0].port_code,
        "best_total_usd": round(ranked[0].total_cost_usd, 2),
    }
    logger.info(f"Bunker options ranked: best={ranked[0].port_code}", extra={"structured": decision})

    return BunkerAnalysis(
        required_quantity=required_quantity,
        recommendations=ranked,
        best_option=ranked[0],
        worst_option=ranked[-1],
        max_savings_usd=most_expensive - min(r.total_cost_usd for r in ranked),
    )
