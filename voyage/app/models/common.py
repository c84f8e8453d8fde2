"""Common types and enums shared across all models."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class Geo(BaseModel):
    """Geographic coordinates (WGS84)."""

    lat: float = Field(..., ge=-90, le=90)
    lon: float = Field(..., ge=-180, le=180)


class FuelType(str, Enum):
    """Fuel grade carried on board."""

    VLSFO = "VLSFO"
    LSMGO = "LSMGO"


class FuelQuantity(BaseModel):
    """Fuel mass in metric tons, per fuel type."""

    vlsfo: float = 0.0
    lsmgo: float = 0.0

    def get(self, fuel: FuelType) -> float:
        """Return the quantity for one fuel type."""
        return self.vlsfo if fuel == FuelType.VLSFO else self.lsmgo

    def plus(self, other: "FuelQuantity") -> "FuelQuantity":
        return FuelQuantity(vlsfo=self.vlsfo + other.vlsfo, lsmgo=self.lsmgo + other.lsmgo)

    def minus(self, other: "FuelQuantity") -> "FuelQuantity":
        return FuelQuantity(vlsfo=self.vlsfo - other.vlsfo, lsmgo=self.lsmgo - other.lsmgo)

    def scaled(self, factor: float) -> "FuelQuantity":
        return FuelQuantity(vlsfo=self.vlsfo * factor, lsmgo=self.lsmgo * factor)

    @property
    def total(self) -> float:
        return self.vlsfo + self.lsmgo


class StageName(str, Enum):
    """Pipeline stages the scheduler can route to."""

    route = "route"
    compliance = "compliance"
    weather = "weather"
    bunker = "bunker"
    finalize = "finalize"


class StageStatus(str, Enum):
    """Per-stage outcome recorded in voyage state."""

    pending = "pending"
    success = "success"
    failed = "failed"


class ErrorKind(str, Enum):
    """Failure taxonomy for stage and output errors."""

    missing_prerequisite = "missing_prerequisite"
    external_call_failure = "external_call_failure"
    infeasible_plan = "infeasible_plan"
    unsafe_voyage = "unsafe_voyage"
    internal = "internal"
    no_progress = "no_progress"
    circuit_breaker = "circuit_breaker"


class Provenance(BaseModel):
    """Provenance metadata for collaborator results."""

    source: str  # Collaborator identifier (e.g., "tool.weather.open_meteo_marine", "tool.fixtures.ports")
    ref_id: str | None = None
    source_url: str | None = None
    fetched_at: datetime
    cache_hit: bool | None = None
    response_digest: str | None = None
