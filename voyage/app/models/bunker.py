"""Bunker port, price and plan models."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from voyage.app.models.common import FuelQuantity, FuelType, Geo
from voyage.app.models.route import Port


class FoundPort(BaseModel):
    """Bunker port located near the route."""

    port: Port
    distance_from_route_nm: float
    nearest_waypoint_index: int
    nearest_waypoint: Geo


class FuelPrice(BaseModel):
    """Quoted fuel price at a port."""

    port_code: str
    fuel_type: FuelType
    price_per_mt: float = Field(..., gt=0)
    currency: str = "USD"
    updated_at: datetime
    hours_since_update: float = 0.0
    is_fresh: bool = True


class PortPrices(BaseModel):
    """Prices for a set of ports."""

    prices_by_port: dict[str, list[FuelPrice]] = Field(default_factory=dict)
    ports_not_found: list[str] = Field(default_factory=list)
    stale_price_warnings: list[str] = Field(default_factory=list)

    def price_for(self, port_code: str, fuel: FuelType) -> FuelPrice | None:
        """Return the quote for one port and fuel type, if any."""
        for price in self.prices_by_port.get(port_code, []):
            if price.fuel_type == fuel:
                return price
        return None


class BunkerRecommendation(BaseModel):
    """Ranked single-stop bunkering option."""

    port_code: str
    port_name: str
    rank: int = 0
    distance_from_route_nm: float
    nearest_waypoint_index: int
    bunker_quantity: FuelQuantity
    vlsfo_price_per_mt: float
    lsmgo_price_per_mt: float
    lsmgo_price_estimated: bool = False
    fuel_cost_usd: float
    deviation_nm: float
    deviation_hours: float
    deviation_fuel_mt: float
    deviation_cost_usd: float
    total_cost_usd: float
    data_freshness_hours: float
    freshness_penalty: float
    savings_vs_most_expensive: float = 0.0


class BunkerAnalysis(BaseModel):
    """Ranked single-stop recommendations."""

    required_quantity: FuelQuantity
    recommendations: list[BunkerRecommendation] = Field(default_factory=list)
    best_option: BunkerRecommendation | None = None
    worst_option: BunkerRecommendation | None = None
    max_savings_usd: float = 0.0
    message: str | None = None


class BunkerStop(BaseModel):
    """One stop in a multi-stop bunker plan."""

    port_code: str
    port_name: str
    position_on_route: Literal["departure", "midpoint"]
    nearest_waypoint_index: int
    distance_along_route_nm: float
    deviation_nm: float
    bunker_quantity: FuelQuantity
    arrival_rob: FuelQuantity
    departure_rob: FuelQuantity
    fuel_prices: FuelQuantity
    estimated_cost_usd: float


class BunkerPlan(BaseModel):
    """Ordered bunker stops with total cost and feasibility."""

    stops: list[BunkerStop]
    total_cost_usd: float
    deviation_cost_usd: float = 0.0
    final_rob: FuelQuantity
    is_safe: bool
    rank: int = 0
    savings_vs_worst: float = 0.0


class CapacityConstraint(BaseModel):
    """Why a single stop cannot cover the voyage."""

    voyage_consumption_mt: FuelQuantity
    vessel_capacity_mt: FuelQuantity
    required_mt: FuelQuantity
    max_single_stop_mt: FuelQuantity


class MultiBunkerAnalysis(BaseModel):
    """Outcome of multi-stop bunker planning."""

    required: bool
    plans: list[BunkerPlan] = Field(default_factory=list)
    best_plan: BunkerPlan | None = None
    reason: str | None = None
    capacity_constraint: CapacityConstraint | None = None
    error: str | None = None
