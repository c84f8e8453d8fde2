"""ECA zone validation using shapely polygon containment.

The route is densified into samples a few nautical miles apart and each
sample is tested against every zone polygon. Contiguous runs of in-zone
samples become zone crossings; runs inside any active zone become the fuel
switching windows.
"""

import json
import logging
import math
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel
from shapely.geometry import Point, Polygon
from shapely.prepared import prep

from voyage.app.adapters.provenance import provenance_for_engine
from voyage.app.models.common import Geo
from voyage.app.models.compliance import (
    ComplianceData,
    EcaZone,
    FuelSwitchPoint,
    ZoneCrossing,
)
from voyage.app.tools.executor import ToolResult
from voyage.app.utils.geo import haversine_nm, interpolate

logger = logging.getLogger(__name__)

FIXTURES_DIR = Path(__file__).parent.parent / "fixtures"

DENSIFY_STEP_NM = 5.0


class ComplianceRequest(BaseModel):
    """ECA check payload."""

    waypoints: list[Geo]
    route_distance_nm: float
    speed_knots: float = 14.0
    main_engine_mt_per_day: float = 30.0
    auxiliary_mt_per_day: float = 5.0
    mgo_safety_margin_percent: float = 12.0


@dataclass(frozen=True)
class _Sample:
    position: Geo
    distance_nm: float


@lru_cache
def load_eca_zones() -> tuple[EcaZone, ...]:
    """Load ECA zone definitions from fixtures."""
    with open(FIXTURES_DIR / "eca_zones.json") as f:
        data = json.load(f)
    return tuple(EcaZone(**zone) for zone in data["zones"])


def densify(waypoints: list[Geo], route_distance_nm: float, step_nm: float = DENSIFY_STEP_NM) -> list[_Sample]:
    """Sample the route every ``step_nm``, with distances scaled to the route distance."""
    if not waypoints:
        return []
    raw: list[tuple[Geo, float]] = [(waypoints[0], 0.0)]
    cumulative = 0.0
    for start, end in zip(waypoints, waypoints[1:]):
        leg = haversine_nm(start, end)
        steps = max(1, math.ceil(leg / step_nm))
        for k in range(1, steps + 1):
            fraction = k / steps
            raw.append((interpolate(start, end, fraction), cumulative + leg * fraction))
        cumulative += leg

    scale = route_distance_nm / cumulative if cumulative > 0 else 0.0
    return [_Sample(position=pos, distance_nm=d * scale) for pos, d in raw]


def _runs(flags: list[bool]) -> list[tuple[int, int]]:
    """Inclusive index ranges of consecutive True flags."""
    runs: list[tuple[int, int]] = []
    start: int | None = None
    for i, flag in enumerate(flags):
        if flag and start is None:
            start = i
        elif not flag and start is not None:
            runs.append((start, i - 1))
            start = None
    if start is not None:
        runs.append((start, len(flags) - 1))
    return runs


def _crossing(
    zone: EcaZone,
    samples: list[_Sample],
    run: tuple[int, int],
    request: ComplianceRequest,
) -> ZoneCrossing:
    first, last = samples[run[0]], samples[run[1]]
    distance = last.distance_nm - first.distance_nm
    hours = distance / request.speed_knots
    mgo = (request.main_engine_mt_per_day + request.auxiliary_mt_per_day) * hours / 24
    entry_hours = first.distance_nm / request.speed_knots
    return ZoneCrossing(
        zone_name=zone.name,
        zone_code=zone.code,
        zone_status=zone.status,
        sulfur_limit_percent=zone.sulfur_limit_percent,
        entry_point=first.position,
        exit_point=last.position,
        entry_distance_nm=first.distance_nm,
        exit_distance_nm=last.distance_nm,
        distance_in_zone_nm=distance,
        time_in_zone_hours=hours,
        entry_time_from_start_hours=entry_hours,
        exit_time_from_start_hours=entry_hours + hours,
        estimated_mgo_consumption_mt=mgo,
    )


def validate_eca_zones(request: ComplianceRequest) -> ToolResult[ComplianceData]:
    """Detect ECA crossings and fuel switching points along a route.

    Args:
        request: Route waypoints and distance, vessel speed and consumption

    Returns:
        ToolResult wrapping ComplianceData
    """
    zones = load_eca_zones()
    samples = densify(request.waypoints, request.route_distance_nm)
    points = [Point(s.position.lon, s.position.lat) for s in samples]

    active: list[ZoneCrossing] = []
    proposed: list[ZoneCrossing] = []
    warnings: list[str] = []
    # Which active zone (if any) contains each sample
    active_zone_at: list[EcaZone | None] = [None] * len(samples)

    for zone in zones:
        polygon = prep(Polygon(zone.boundary))
        flags = [polygon.contains(p) for p in points]
        crossings = [
            c for c in (_crossing(zone, samples, run, request) for run in _runs(flags))
            if c.distance_in_zone_nm > 0
        ]
        if not crossings:
            continue

        if zone.status == "ACTIVE":
            logger.info(f"Route crosses {zone.name}: {sum(c.distance_in_zone_nm for c in crossings):.1f} nm")
            active.extend(crossings)
            for i, inside in enumerate(flags):
                if inside and active_zone_at[i] is None:
                    active_zone_at[i] = zone
        else:
            proposed.extend(crossings)
            mgo = sum(c.estimated_mgo_consumption_mt for c in crossings)
            warnings.append(
                f"Route will cross proposed ECA: {zone.name} "
                f"(expected enforcement: {zone.enacted_date}). "
                f"Estimated MGO requirement: {mgo:.1f} MT when enacted."
            )

    switching: list[FuelSwitchPoint] = []
    total_distance = 0.0
    for start, end in _runs([z is not None for z in active_zone_at]):
        entry, exit_ = samples[start], samples[end]
        if exit_.distance_nm <= entry.distance_nm:
            continue
        total_distance += exit_.distance_nm - entry.distance_nm
        entered = active_zone_at[start]
        exited = active_zone_at[end]
        assert entered is not None and exited is not None
        switching.append(
            FuelSwitchPoint(
                action="SWITCH_TO_MGO",
                location=entry.position,
                time_from_start_hours=entry.distance_nm / request.speed_knots,
                distance_from_origin_nm=entry.distance_nm,
                reason=f"Entering {entered.name} - switch to MGO (≤{entered.sulfur_limit_percent}% sulfur)",
            )
        )
        switching.append(
            FuelSwitchPoint(
                action="SWITCH_TO_VLSFO",
                location=exit_.position,
                time_from_start_hours=exit_.distance_nm / request.speed_knots,
                distance_from_origin_nm=exit_.distance_nm,
                reason=f"Exiting {exited.name} - can switch back to VLSFO",
            )
        )

    total_hours = total_distance / request.speed_knots
    total_mgo = (request.main_engine_mt_per_day + request.auxiliary_mt_per_day) * total_hours / 24
    margin = request.mgo_safety_margin_percent

    data = ComplianceData(
        has_eca_zones=bool(active),
        total_eca_distance_nm=total_distance,
        total_eca_time_hours=total_hours,
        zones_crossed=active,
        proposed_zones_crossed=proposed,
        total_mgo_required_mt=total_mgo,
        mgo_with_safety_margin_mt=float(math.ceil(total_mgo * (1 + margin / 100))),
        safety_margin_percent=margin,
        switching_points=switching,
        warnings=warnings,
    )
    return ToolResult(value=data, provenance=provenance_for_engine("compliance.eca_zones"))
