"""Marine weather models."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from voyage.app.models.common import Geo

Confidence = Literal["high", "medium", "low"]


class MarineConditions(BaseModel):
    """Sea and wind conditions at one position and time."""

    wave_height_m: float = Field(..., ge=0)
    wind_speed_knots: float = Field(..., ge=0)
    wind_direction_deg: float = 0.0
    sea_state: str


class WeatherSample(BaseModel):
    """Forecast aligned to one vessel timeline point."""

    position: Geo
    at: datetime
    conditions: MarineConditions
    confidence: Confidence


class WeatherAlert(BaseModel):
    """Severe weather along the voyage."""

    position: Geo
    at: datetime
    severity: Literal["warning", "severe"]
    description: str
    wave_height_m: float
    wind_speed_knots: float


class WeatherConsumption(BaseModel):
    """Fuel consumption increase attributable to weather."""

    base_consumption_mt: float
    weather_adjusted_consumption_mt: float
    additional_fuel_needed_mt: float
    consumption_increase_percent: float
    avg_multiplier: float
    avg_wave_height_m: float
    max_wave_height_m: float
    worst_conditions_at: datetime | None = None
    alerts: list[WeatherAlert] = Field(default_factory=list)
