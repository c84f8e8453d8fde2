"""Tests for single-stop bunker option ranking."""

from datetime import timedelta

import pytest

from tests.factories import NOW, make_vessel
from voyage.app.engines.bunker_analyzer import (
    LSMGO_PRICE_ESTIMATE_FACTOR,
    NoValidBunkerOptionsError,
    analyze_bunker_options,
    freshness_penalty,
)
from voyage.app.models.bunker import FoundPort, FuelPrice, PortPrices
from voyage.app.models.common import FuelQuantity, FuelType, Geo
from voyage.app.models.route import Port

REQUIRED = FuelQuantity(vlsfo=100.0, lsmgo=10.0)


def _port(code: str, deviation_nm: float = 0.0, index: int = 1) -> FoundPort:
    geo = Geo(lat=5.0, lon=80.0)
    return FoundPort(
        port=Port(port_code=code, name=f"Port {code}", geo=geo, fuel_capabilities=[FuelType.VLSFO]),
        distance_from_route_nm=deviation_nm,
        nearest_waypoint_index=index,
        nearest_waypoint=geo,
    )


def _price(code: str, fuel: FuelType, price: float, age_hours: float = 2.0) -> FuelPrice:
    return FuelPrice(
        port_code=code,
        fuel_type=fuel,
        price_per_mt=price,
        updated_at=NOW - timedelta(hours=age_hours),
        hours_since_update=age_hours,
        is_fresh=age_hours < 24,
    )


def _prices(*quotes: FuelPrice) -> PortPrices:
    by_port: dict[str, list[FuelPrice]] = {}
    for quote in quotes:
        by_port.setdefault(quote.port_code, []).append(quote)
    return PortPrices(prices_by_port=by_port)


@pytest.mark.parametrize(
    ("hours", "penalty"),
    [(1, 1.0), (48, 0.95), (200, 0.85), (1000, 0.70), (5000, 0.5)],
)
def test_freshness_penalty(hours: float, penalty: float) -> None:
    assert freshness_penalty(hours) == penalty


def test_cheapest_fresh_port_wins() -> None:
    prices = _prices(
        _price("AAAAA", FuelType.VLSFO, 600.0),
        _price("AAAAA", FuelType.LSMGO, 800.0),
        _price("BBBBB", FuelType.VLSFO, 650.0),
        _price("BBBBB", FuelType.LSMGO, 850.0),
    )

    analysis = analyze_bunker_options(
        [_port("BBBBB"), _port("AAAAA")], prices, REQUIRED, make_vessel()
    )

    assert analysis.best_option is not None
    assert analysis.best_option.port_code == "AAAAA"
    assert analysis.best_option.fuel_cost_usd == pytest.approx(100 * 600 + 10 * 800)
    assert analysis.worst_option is not None
    assert analysis.worst_option.port_code == "BBBBB"
    assert [r.rank for r in analysis.recommendations] == [1, 2]
    assert analysis.max_savings_usd == pytest.approx(100 * 50 + 10 * 50)
    assert analysis.required_quantity == REQUIRED


def test_deviation_adds_cost() -> None:
    prices = _prices(_price("AAAAA", FuelType.VLSFO, 600.0), _price("AAAAA", FuelType.LSMGO, 800.0))

    analysis = analyze_bunker_options([_port("AAAAA", deviation_nm=84.0)], prices, REQUIRED, make_vessel())

    best = analysis.best_option
    assert best is not None
    assert best.deviation_nm == pytest.approx(168.0)
    assert best.deviation_hours == pytest.approx(12.0)
    # Half a day at 30 MT/day plus the auxiliary share
    assert best.deviation_fuel_mt == pytest.approx(15.0 * 1.1)
    assert best.deviation_cost_usd == pytest.approx(15.0 * 600 + 1.5 * 800)
    assert best.total_cost_usd == pytest.approx(best.fuel_cost_usd + best.deviation_cost_usd)


def test_stale_prices_are_penalized() -> None:
    """Test that a slightly cheaper but month-old quote ranks below a fresh one."""
    prices = _prices(
        _price("FRESH", FuelType.VLSFO, 600.0),
        _price("STALE", FuelType.VLSFO, 580.0, age_hours=800.0),
    )
    required = FuelQuantity(vlsfo=100.0)

    analysis = analyze_bunker_options([_port("STALE"), _port("FRESH")], prices, required, make_vessel())

    assert analysis.best_option is not None
    assert analysis.best_option.port_code == "FRESH"
    stale = analysis.recommendations[1]
    assert stale.freshness_penalty == 0.70
    assert stale.data_freshness_hours == 800.0


def test_missing_lsmgo_price_is_estimated() -> None:
    prices = _prices(_price("AAAAA", FuelType.VLSFO, 600.0))

    analysis = analyze_bunker_options([_port("AAAAA")], prices, REQUIRED, make_vessel())

    best = analysis.best_option
    assert best is not None
    assert best.lsmgo_price_estimated is True
    assert best.lsmgo_price_per_mt == pytest.approx(600.0 * LSMGO_PRICE_ESTIMATE_FACTOR)


def test_ports_without_vlsfo_are_skipped() -> None:
    prices = _prices(
        _price("AAAAA", FuelType.VLSFO, 600.0),
        _price("MGOONLY", FuelType.LSMGO, 700.0),
    )

    analysis = analyze_bunker_options(
        [_port("MGOONLY"), _port("AAAAA")], prices, REQUIRED, make_vessel()
    )

    assert [r.port_code for r in analysis.recommendations] == ["AAAAA"]


def test_no_priced_ports_raises() -> None:
    prices = _prices(_price("MGOONLY", FuelType.LSMGO, 700.0))

    with pytest.raises(NoValidBunkerOptionsError, match="None of 2 candidate ports"):
        analyze_bunker_options([_port("MGOONLY"), _port("NOPRICE")], prices, REQUIRED, make_vessel())
