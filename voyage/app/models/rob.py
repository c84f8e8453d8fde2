"""Remaining-on-board (ROB) fuel tracking models."""

from pydantic import BaseModel, Field

from voyage.app.models.common import FuelQuantity


class RobWaypoint(BaseModel):
    """Fuel on board at one point of the voyage."""

    index: int
    label: str
    distance_from_origin_nm: float
    waypoint_index: int | None = None
    in_eca: bool = False
    rob: FuelQuantity
    bunkered: FuelQuantity | None = None
    safety_margin_days: float | None = None  # None when no fuel is consumed
    is_safe: bool = True


class RobTrace(BaseModel):
    """Waypoint-by-waypoint ROB trace with a safety verdict."""

    waypoints: list[RobWaypoint]
    initial_rob: FuelQuantity
    final_rob: FuelQuantity
    minimum_rob: FuelQuantity
    minimum_rob_location: str
    total_consumption: FuelQuantity
    safety_margin_days: float | None = None
    overall_safe: bool
    violations: list[str] = Field(default_factory=list)
    bunkered: FuelQuantity | None = None

    @property
    def shortfall(self) -> FuelQuantity:
        """Fuel missing at arrival, per fuel type."""
        return FuelQuantity(
            vlsfo=max(0.0, -self.final_rob.vlsfo),
            lsmgo=max(0.0, -self.final_rob.lsmgo),
        )


class RobTracking(BaseModel):
    """ROB traces with and without the recommended bunker action."""

    without_bunker: RobTrace
    with_bunker: RobTrace | None = None
    bunker_port_code: str | None = None
    still_unsafe_after_bunker: bool = False
