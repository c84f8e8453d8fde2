"""Sea route adapter backed by the searoute maritime network."""

import asyncio
import logging
from typing import Any

import searoute as sr
from pydantic import BaseModel

from voyage.app.adapters.provenance import provenance_for_engine
from voyage.app.models.common import Geo
from voyage.app.models.route import Port, RouteData
from voyage.app.tools.executor import ToolResult

logger = logging.getLogger(__name__)


class RouteCalculationError(Exception):
    """Sea route could not be calculated."""

    pass


class RouteRequest(BaseModel):
    """Route lookup payload; also the memoization key."""

    origin: Port
    destination: Port
    speed_knots: float


def _flatten(coordinates: list[Any]) -> list[list[float]]:
    """Flatten LineString or MultiLineString coordinates to one (lon, lat) list."""
    if coordinates and isinstance(coordinates[0][0], (list, tuple)):
        flat: list[list[float]] = []
        for part in coordinates:
            flat.extend(part)
        return flat
    return coordinates


def _classify(distance_nm: float) -> str:
    if distance_nm == 0:
        return "same port"
    if distance_nm < 500:
        return "short sea"
    if distance_nm < 3000:
        return "regional"
    return "ocean passage"


async def calculate_route(request: RouteRequest) -> ToolResult[RouteData]:
    """Calculate the sea route between two ports.

    The searoute network search is CPU bound, so it runs in a worker thread.

    Args:
        request: Origin and destination ports with vessel speed

    Returns:
        ToolResult wrapping RouteData with provenance

    Raises:
        RouteCalculationError: If searoute fails or returns no geometry
    """
    origin = request.origin
    destination = request.destination
    ref = f"{origin.port_code}_{destination.port_code}"

    if origin.port_code == destination.port_code:
        return ToolResult(
            value=RouteData(
                origin_port_code=origin.port_code,
                destination_port_code=destination.port_code,
                distance_nm=0.0,
                estimated_hours=0.0,
                waypoints=[origin.geo],
                route_type=_classify(0.0),
                origin_port_name=origin.name,
                destination_port_name=destination.name,
            ),
            provenance=provenance_for_engine("route.searoute", ref),
        )

    start = [origin.geo.lon, origin.geo.lat]
    end = [destination.geo.lon, destination.geo.lat]
    logger.debug(f"Finding route between {origin.port_code} {start} and {destination.port_code} {end}")

    try:
        feature = await asyncio.to_thread(
            sr.searoute, start, end, units="naut", append_orig_dest=True
        )
    except Exception as e:
        logger.error(f"Error finding route {ref}: {e}")
        raise RouteCalculationError(f"searoute failed for {ref}: {e}") from e

    if not feature or "geometry" not in feature:
        raise RouteCalculationError(f"searoute returned no geometry for {ref}")

    coordinates = _flatten(feature["geometry"]["coordinates"])
    if len(coordinates) < 2:
        raise RouteCalculationError(f"searoute returned fewer than two points for {ref}")

    distance_nm = float(feature.get("properties", {}).get("length", 0.0))
    if distance_nm <= 0:
        raise RouteCalculationError(f"searoute returned non-positive distance for {ref}")

    waypoints = [Geo(lat=lat, lon=lon) for lon, lat in coordinates]
    logger.info(f"Route {ref}: {distance_nm:.0f} nm, {len(waypoints)} waypoints")

    return ToolResult(
        value=RouteData(
            origin_port_code=origin.port_code,
            destination_port_code=destination.port_code,
            distance_nm=distance_nm,
            estimated_hours=distance_nm / request.speed_knots,
            waypoints=waypoints,
            route_type=_classify(distance_nm),
            origin_port_name=origin.name,
            destination_port_name=destination.name,
        ),
        provenance=provenance_for_engine("route.searoute", ref),
    )
