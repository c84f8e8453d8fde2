"""Tests for fixture-backed port, price and vessel adapters."""

from datetime import UTC, datetime

import pytest

from tests.factories import SGSIN_AEFJR_WAYPOINTS
from voyage.app.adapters.fixtures import (
    DEFAULT_VESSEL_NAME,
    PortSearch,
    PriceRequest,
    UnknownPortError,
    default_vessel,
    fetch_prices,
    fetch_vessel,
    find_bunker_ports,
    lookup_port,
)
from voyage.app.models.common import FuelType


def test_lookup_port_normalizes_code() -> None:
    result = lookup_port(" sgsin ")

    assert result.value.port_code == "SGSIN"
    assert result.value.name == "Singapore"
    assert result.value.max_supply_mt == 5000
    assert result.provenance.source == "tool.fixtures.ports"
    assert result.provenance.ref_id == "fixtures.ports/SGSIN"


def test_lookup_unknown_port_raises() -> None:
    with pytest.raises(UnknownPortError, match="XXXXX"):
        lookup_port("XXXXX")


def test_find_bunker_ports_near_route() -> None:
    result = find_bunker_ports(PortSearch(waypoints=SGSIN_AEFJR_WAYPOINTS, max_deviation_nm=150.0))

    ports = result.value
    codes = [p.port.port_code for p in ports]
    assert "SGSIN" in codes
    assert "AEFJR" in codes
    assert "NLRTM" not in codes
    distances = [p.distance_from_route_nm for p in ports]
    assert distances == sorted(distances)
    assert all(d <= 150.0 for d in distances)

    singapore = next(p for p in ports if p.port.port_code == "SGSIN")
    assert singapore.nearest_waypoint_index == 0
    assert singapore.distance_from_route_nm == pytest.approx(0.0)


def test_find_bunker_ports_filters_by_fuel() -> None:
    search = PortSearch(
        waypoints=SGSIN_AEFJR_WAYPOINTS, max_deviation_nm=300.0, fuel_types=[FuelType.LSMGO]
    )

    codes = [p.port.port_code for p in find_bunker_ports(search).value]

    # Kochi only supplies VLSFO
    assert "INCOK" not in codes


def test_find_bunker_ports_with_tight_deviation() -> None:
    search = PortSearch(waypoints=SGSIN_AEFJR_WAYPOINTS, max_deviation_nm=1.0)

    codes = [p.port.port_code for p in find_bunker_ports(search).value]

    assert set(codes) == {"SGSIN", "AEFJR"}


def test_fetch_prices_flags_stale_quotes() -> None:
    as_of = datetime(2026, 10, 19, 0, 0, tzinfo=UTC)

    result = fetch_prices(PriceRequest(port_codes=["SGSIN", "LKHRI", "DJJIB"], as_of=as_of))

    prices = result.value
    assert prices.ports_not_found == ["DJJIB"]

    sgsin_vlsfo = prices.price_for("SGSIN", FuelType.VLSFO)
    assert sgsin_vlsfo is not None
    assert sgsin_vlsfo.price_per_mt == 620.0
    assert sgsin_vlsfo.hours_since_update == pytest.approx(16.0)
    assert sgsin_vlsfo.is_fresh is True

    hambantota = prices.price_for("LKHRI", FuelType.VLSFO)
    assert hambantota is not None
    assert hambantota.is_fresh is False
    assert prices.stale_price_warnings == ["LKHRI VLSFO price is 204 hours old"]
    assert prices.price_for("LKHRI", FuelType.LSMGO) is None


def test_fetch_prices_filters_fuel_types() -> None:
    result = fetch_prices(
        PriceRequest(
            port_codes=["SGSIN"],
            fuel_types=[FuelType.LSMGO],
            as_of=datetime(2026, 10, 18, 9, 0, tzinfo=UTC),
        )
    )

    quotes = result.value.prices_by_port["SGSIN"]
    assert [q.fuel_type for q in quotes] == [FuelType.LSMGO]


def test_fetch_vessel_is_case_insensitive() -> None:
    result = fetch_vessel("mv coastal runner")

    assert result is not None
    vessel = result.value
    assert vessel.name == "MV Coastal Runner"
    assert vessel.initial_rob.vlsfo == 100.0
    assert vessel.capacity.vlsfo == 650.0
    assert result.provenance.source == "tool.fixtures.vessels"


def test_fetch_unknown_vessel_returns_none() -> None:
    assert fetch_vessel("MV Flying Dutchman") is None


def test_default_vessel() -> None:
    vessel = default_vessel(speed_knots=12.0)

    assert vessel.name == DEFAULT_VESSEL_NAME
    assert vessel.operational_speed_knots == 12.0
    assert vessel.effective_rate.vlsfo == pytest.approx(33.0)
