"""Fixture-based adapters for ports, bunker prices, and vessel profiles."""

import json
from datetime import UTC, datetime
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from voyage.app.adapters.provenance import provenance_for_fixture
from voyage.app.models.bunker import FoundPort, FuelPrice, PortPrices
from voyage.app.models.common import FuelQuantity, FuelType, Geo
from voyage.app.models.route import Port
from voyage.app.models.vessel import VesselProfile
from voyage.app.tools.executor import ToolResult
from voyage.app.utils.geo import haversine_nm

FIXTURES_DIR = Path(__file__).parent.parent / "fixtures"

DEFAULT_VESSEL_NAME = "Default (no vessel specified)"


class UnknownPortError(Exception):
    """Port code is not in the port catalog."""

    pass


class PortSearch(BaseModel):
    """Bunker port search payload."""

    waypoints: list[Geo]
    max_deviation_nm: float = 150.0
    fuel_types: list[FuelType] = Field(default_factory=lambda: [FuelType.VLSFO])


class PriceRequest(BaseModel):
    """Bunker price lookup payload."""

    port_codes: list[str]
    fuel_types: list[FuelType] | None = None
    as_of: datetime | None = None


def _load(name: str) -> Any:
    with open(FIXTURES_DIR / name) as f:
        return json.load(f)


@lru_cache
def _port_catalog() -> dict[str, Port]:
    data = _load("ports.json")
    return {
        entry["port_code"]: Port(
            port_code=entry["port_code"],
            name=entry["name"],
            country=entry.get("country"),
            geo=Geo(**entry["geo"]),
            fuel_capabilities=[FuelType(f) for f in entry.get("fuel_capabilities", [])],
            max_supply_mt=entry.get("max_supply_mt"),
        )
        for entry in data["ports"]
    }


def lookup_port(port_code: str) -> ToolResult[Port]:
    """Resolve a port code from the port catalog.

    Raises:
        UnknownPortError: If the code is not in the catalog
    """
    code = port_code.strip().upper()
    port = _port_catalog().get(code)
    if port is None:
        raise UnknownPortError(f"Unknown port code: {port_code}")
    return ToolResult(value=port, provenance=provenance_for_fixture("fixtures.ports", code))


def find_bunker_ports(search: PortSearch) -> ToolResult[list[FoundPort]]:
    """Find bunker-capable ports within ``max_deviation_nm`` of any route waypoint.

    Args:
        search: Route waypoints, deviation limit, and required fuel types

    Returns:
        ToolResult wrapping FoundPort list sorted by distance from the route
    """
    found: list[FoundPort] = []
    for port in _port_catalog().values():
        if not port.fuel_capabilities:
            continue
        if not any(f in port.fuel_capabilities for f in search.fuel_types):
            continue

        best_index = -1
        best_distance = float("inf")
        for i, waypoint in enumerate(search.waypoints):
            distance = haversine_nm(port.geo, waypoint)
            if distance < best_distance:
                best_index = i
                best_distance = distance

        if best_index >= 0 and best_distance <= search.max_deviation_nm:
            found.append(
                FoundPort(
                    port=port,
                    distance_from_route_nm=best_distance,
                    nearest_waypoint_index=best_index,
                    nearest_waypoint=search.waypoints[best_index],
                )
            )

    found.sort(key=lambda p: p.distance_from_route_nm)
    return ToolResult(value=found, provenance=provenance_for_fixture("fixtures.ports", "near_route"))


def fetch_prices(request: PriceRequest) -> ToolResult[PortPrices]:
    """Fetch bunker prices for ports from fixtures.

    Prices older than 24 hours are flagged stale; the analyzer discounts them
    rather than dropping them.
    """
    data = _load("prices.json")
    as_of = request.as_of or datetime.now(UTC)
    if as_of.tzinfo is None:
        as_of = as_of.replace(tzinfo=UTC)

    prices_by_port: dict[str, list[FuelPrice]] = {}
    not_found: list[str] = []
    stale: list[str] = []

    for code in request.port_codes:
        quotes = data["prices"].get(code)
        if not quotes:
            not_found.append(code)
            continue
        port_prices: list[FuelPrice] = []
        for quote in quotes:
            fuel = FuelType(quote["fuel_type"])
            if request.fuel_types and fuel not in request.fuel_types:
                continue
            updated_at = datetime.fromisoformat(quote["updated_at"])
            if updated_at.tzinfo is None:
                updated_at = updated_at.replace(tzinfo=UTC)
            hours = max(0.0, (as_of - updated_at).total_seconds() / 3600)
            is_fresh = hours < 24
            if not is_fresh:
                stale.append(f"{code} {fuel.value} price is {hours:.0f} hours old")
            port_prices.append(
                FuelPrice(
                    port_code=code,
                    fuel_type=fuel,
                    price_per_mt=quote["price_per_mt"],
                    currency=quote.get("currency", "USD"),
                    updated_at=updated_at,
                    hours_since_update=hours,
                    is_fresh=is_fresh,
                )
            )
        prices_by_port[code] = port_prices

    return ToolResult(
        value=PortPrices(
            prices_by_port=prices_by_port,
            ports_not_found=not_found,
            stale_price_warnings=stale,
        ),
        provenance=provenance_for_fixture("fixtures.prices", ",".join(request.port_codes)),
    )


def default_vessel(speed_knots: float = 14.0) -> VesselProfile:
    """Fallback profile when the vessel is unknown or not given."""
    return VesselProfile(
        name=DEFAULT_VESSEL_NAME,
        initial_rob=FuelQuantity(vlsfo=850.0, lsmgo=100.0),
        capacity=FuelQuantity(vlsfo=2000.0, lsmgo=200.0),
        consumption_rate=FuelQuantity(vlsfo=30.0, lsmgo=3.0),
        fouling_factor=1.1,
        operational_speed_knots=speed_knots,
    )


def fetch_vessel(name: str) -> ToolResult[VesselProfile] | None:
    """Look up a vessel profile by name (case-insensitive); None if unknown."""
    data = _load("vessels.json")
    for entry in data["vessels"]:
        if entry["name"].lower() == name.strip().lower():
            vessel = VesselProfile(
                name=entry["name"],
                initial_rob=FuelQuantity(**entry["initial_rob"]),
                capacity=FuelQuantity(**entry["capacity"]),
                consumption_rate=FuelQuantity(**entry["consumption_rate"]),
                fouling_factor=entry.get("fouling_factor", 1.0),
                operational_speed_knots=entry.get("operational_speed_knots", 14.0),
            )
            return ToolResult(
                value=vessel,
                provenance=provenance_for_fixture("fixtures.vessels", entry["name"]),
            )
    return None
