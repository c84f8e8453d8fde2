"""Route, port and vessel timeline models."""

from datetime import datetime

from pydantic import BaseModel, Field

from voyage.app.models.common import FuelType, Geo


class Port(BaseModel):
    """Port catalog entry."""

    port_code: str
    name: str
    country: str | None = None
    geo: Geo
    fuel_capabilities: list[FuelType] = Field(default_factory=list)
    # Largest single delivery the port can supply, when known
    max_supply_mt: float | None = None


class RouteData(BaseModel):
    """Calculated sea route between two ports."""

    origin_port_code: str
    destination_port_code: str
    distance_nm: float = Field(..., ge=0)
    estimated_hours: float = Field(..., ge=0)
    waypoints: list[Geo]
    route_type: str = "direct route"
    origin_port_name: str | None = None
    destination_port_name: str | None = None


class TimelinePoint(BaseModel):
    """Vessel position sample along the route."""

    position: Geo
    at: datetime
    distance_from_start_nm: float
    segment_index: int
