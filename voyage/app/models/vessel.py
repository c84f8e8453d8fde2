"""Vessel reference data."""

from pydantic import BaseModel, Field

from voyage.app.models.common import FuelQuantity


class VesselProfile(BaseModel):
    """Read-only vessel characteristics used for fuel planning.

    ``consumption_rate`` holds the main-engine rate under ``vlsfo`` and the
    auxiliary rate under ``lsmgo``, both in MT/day at operational speed.
    """

    name: str
    initial_rob: FuelQuantity
    capacity: FuelQuantity
    consumption_rate: FuelQuantity
    fouling_factor: float = Field(default=1.0, ge=1.0)
    operational_speed_knots: float = Field(default=14.0, gt=0)

    @property
    def effective_rate(self) -> FuelQuantity:
        """Daily consumption with hull fouling applied."""
        return self.consumption_rate.scaled(self.fouling_factor)
