"""Emission control area (ECA) compliance models."""

from typing import Literal

from pydantic import BaseModel, Field

from voyage.app.models.common import Geo

ZoneStatus = Literal["ACTIVE", "PROPOSED"]
SwitchAction = Literal["SWITCH_TO_MGO", "SWITCH_TO_VLSFO"]


class EcaZone(BaseModel):
    """ECA zone definition with polygon boundary as (lon, lat) pairs."""

    key: str
    name: str
    code: str
    status: ZoneStatus
    enacted_date: str
    sulfur_limit_percent: float
    boundary: list[tuple[float, float]]


class ZoneCrossing(BaseModel):
    """One contiguous passage of the route through a zone."""

    zone_name: str
    zone_code: str
    zone_status: ZoneStatus
    sulfur_limit_percent: float
    entry_point: Geo
    exit_point: Geo
    entry_distance_nm: float
    exit_distance_nm: float
    distance_in_zone_nm: float
    time_in_zone_hours: float
    entry_time_from_start_hours: float
    exit_time_from_start_hours: float
    estimated_mgo_consumption_mt: float


class FuelSwitchPoint(BaseModel):
    """Point along the route where the fuel grade changes."""

    action: SwitchAction
    location: Geo
    time_from_start_hours: float
    distance_from_origin_nm: float | None = None
    reason: str


class ComplianceData(BaseModel):
    """Zone-crossing summary derived from the route."""

    has_eca_zones: bool
    total_eca_distance_nm: float = 0.0
    total_eca_time_hours: float = 0.0
    zones_crossed: list[ZoneCrossing] = Field(default_factory=list)
    proposed_zones_crossed: list[ZoneCrossing] = Field(default_factory=list)
    total_mgo_required_mt: float = 0.0
    mgo_with_safety_margin_mt: float = 0.0
    safety_margin_percent: float = 0.0
    switching_points: list[FuelSwitchPoint] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class RouteSegment(BaseModel):
    """Contiguous stretch of route, tagged in-zone or out-of-zone."""

    segment_id: str
    from_label: str
    to_label: str
    distance_nm: float = Field(..., ge=0)
    in_eca: bool
    zone_name: str | None = None
