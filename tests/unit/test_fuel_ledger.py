"""Tests for the remaining-on-board fuel simulation."""

import pytest

from tests.factories import make_route, make_vessel
from voyage.app.engines.fuel_ledger import (
    estimate_voyage_consumption,
    leg_consumption,
    safety_margin_days,
    simulate,
    validate_bunker_capacity,
)
from voyage.app.models.bunker import FoundPort
from voyage.app.models.common import FuelQuantity, FuelType, Geo
from voyage.app.models.compliance import RouteSegment
from voyage.app.models.route import Port
from voyage.app.models.weather import WeatherConsumption

# 336 nm at 14 knots is exactly one day of steaming
ONE_DAY_ROUTE = make_route([Geo(lat=0.0, lon=0.0), Geo(lat=0.0, lon=5.0)], distance_nm=336.0)
THREE_POINT_ROUTE = make_route(
    [Geo(lat=0.0, lon=0.0), Geo(lat=0.0, lon=2.5), Geo(lat=0.0, lon=5.0)], distance_nm=336.0
)


def _found_port(index: int) -> FoundPort:
    geo = THREE_POINT_ROUTE.waypoints[index]
    return FoundPort(
        port=Port(
            port_code="XXPRT",
            name="Test Port",
            geo=geo,
            fuel_capabilities=[FuelType.VLSFO, FuelType.LSMGO],
        ),
        distance_from_route_nm=0.0,
        nearest_waypoint_index=index,
        nearest_waypoint=geo,
    )


def _half_eca() -> list[RouteSegment]:
    return [
        RouteSegment(segment_id="seg_0", from_label="SGSIN", to_label="Boundary 1", distance_nm=168.0, in_eca=False),
        RouteSegment(
            segment_id="seg_1",
            from_label="Boundary 1",
            to_label="AEFJR",
            distance_nm=168.0,
            in_eca=True,
            zone_name="North Sea SECA",
        ),
    ]


class TestConsumption:
    """Test per-leg and whole-voyage consumption."""

    def test_leg_outside_eca_burns_both_grades(self) -> None:
        burn = leg_consumption(336.0, False, make_vessel())

        assert burn.vlsfo == pytest.approx(30.0)
        assert burn.lsmgo == pytest.approx(3.0)

    def test_leg_inside_eca_burns_only_lsmgo(self) -> None:
        burn = leg_consumption(336.0, True, make_vessel())

        assert burn.vlsfo == 0.0
        assert burn.lsmgo == pytest.approx(33.0)

    def test_fouling_factor_increases_burn(self) -> None:
        burn = leg_consumption(336.0, False, make_vessel(fouling_factor=1.1))

        assert burn.vlsfo == pytest.approx(33.0)

    def test_zero_distance_burns_nothing(self) -> None:
        assert leg_consumption(0.0, False, make_vessel()) == FuelQuantity()

    def test_voyage_estimate_uses_segments(self) -> None:
        total = estimate_voyage_consumption(ONE_DAY_ROUTE, make_vessel(), _half_eca())

        assert total.vlsfo == pytest.approx(15.0)
        assert total.lsmgo == pytest.approx(1.5 + 16.5)


class TestSimulate:
    """Test the ROB trace."""

    def test_simple_voyage_is_safe(self) -> None:
        trace = simulate(ONE_DAY_ROUTE, make_vessel())

        assert [p.label for p in trace.waypoints] == ["Departure SGSIN", "Arrival AEFJR"]
        assert trace.final_rob.vlsfo == pytest.approx(820.0)
        assert trace.final_rob.lsmgo == pytest.approx(97.0)
        assert trace.total_consumption.total == pytest.approx(33.0)
        assert trace.safety_margin_days == pytest.approx(820.0 / 30.0)
        assert trace.overall_safe is True
        assert trace.violations == []

    def test_consumption_equals_rob_drop(self) -> None:
        trace = simulate(THREE_POINT_ROUTE, make_vessel(), segments=_half_eca())

        drop = trace.initial_rob.minus(trace.final_rob)
        assert drop.vlsfo == pytest.approx(trace.total_consumption.vlsfo)
        assert drop.lsmgo == pytest.approx(trace.total_consumption.lsmgo)

    def test_eca_legs_are_charged_to_lsmgo(self) -> None:
        trace = simulate(THREE_POINT_ROUTE, make_vessel(), segments=_half_eca())

        assert trace.total_consumption.vlsfo == pytest.approx(15.0)
        assert trace.total_consumption.lsmgo == pytest.approx(18.0)
        assert trace.waypoints[-1].in_eca is True
        assert trace.waypoints[-1].label == "Arrival AEFJR"

    def test_zero_distance_route(self) -> None:
        """Test that a same-port voyage yields a single departure point."""
        route = make_route([Geo(lat=1.264, lon=103.84)], destination="SGSIN", distance_nm=0.0)

        trace = simulate(route, make_vessel())

        assert len(trace.waypoints) == 1
        assert trace.total_consumption == FuelQuantity()
        assert trace.final_rob == trace.initial_rob
        assert trace.overall_safe is True

    def test_shortfall_is_reported(self) -> None:
        trace = simulate(ONE_DAY_ROUTE, make_vessel(rob=(20.0, 100.0)))

        assert trace.overall_safe is False
        assert trace.final_rob.vlsfo == pytest.approx(-10.0)
        assert trace.shortfall.vlsfo == pytest.approx(10.0)
        assert trace.shortfall.lsmgo == 0.0
        assert any("Negative VLSFO ROB at Arrival AEFJR" in v for v in trace.violations)
        assert trace.minimum_rob_location == "Arrival AEFJR"

    def test_safety_margin_violation(self) -> None:
        """Test that positive ROB below the margin is still unsafe."""
        trace = simulate(ONE_DAY_ROUTE, make_vessel(rob=(100.0, 100.0)))

        assert trace.final_rob.vlsfo > 0
        assert trace.overall_safe is False
        assert trace.waypoints[0].is_safe is True
        assert trace.waypoints[-1].is_safe is False
        assert any(v.startswith("Safety margin below 3 days") for v in trace.violations)

    def test_lower_margin_requirement_makes_it_safe(self) -> None:
        trace = simulate(
            ONE_DAY_ROUTE, make_vessel(rob=(100.0, 100.0)), safety_margin_days_required=2.0
        )

        assert trace.overall_safe is True

    def test_weather_increases_consumption(self) -> None:
        weather = WeatherConsumption(
            base_consumption_mt=33.0,
            weather_adjusted_consumption_mt=36.3,
            additional_fuel_needed_mt=3.3,
            consumption_increase_percent=10.0,
            avg_multiplier=1.1,
            avg_wave_height_m=3.0,
            max_wave_height_m=4.0,
        )

        trace = simulate(ONE_DAY_ROUTE, make_vessel(), weather_consumption=weather)

        assert trace.total_consumption.vlsfo == pytest.approx(33.0)
        assert trace.total_consumption.lsmgo == pytest.approx(3.3)


class TestBunkering:
    """Test bunkering during the simulation."""

    def test_bunker_at_midpoint(self) -> None:
        quantity = FuelQuantity(vlsfo=200.0)

        trace = simulate(
            THREE_POINT_ROUTE, make_vessel(), bunker_port=_found_port(1), bunker_quantity=quantity
        )

        mid = trace.waypoints[1]
        assert mid.label == "Waypoint 1 (Test Port)"
        assert mid.bunkered == quantity
        assert mid.rob.vlsfo == pytest.approx(850.0 - 15.0 + 200.0)
        assert trace.bunkered == quantity
        assert trace.final_rob.vlsfo == pytest.approx(850.0 - 30.0 + 200.0)

    def test_bunker_at_departure(self) -> None:
        trace = simulate(
            THREE_POINT_ROUTE,
            make_vessel(),
            bunker_port=_found_port(0),
            bunker_quantity=FuelQuantity(lsmgo=50.0),
        )

        assert trace.waypoints[0].bunkered == FuelQuantity(lsmgo=50.0)
        assert trace.waypoints[0].rob.lsmgo == pytest.approx(150.0)

    def test_bunker_over_capacity_is_capped(self) -> None:
        trace = simulate(
            THREE_POINT_ROUTE,
            make_vessel(),
            bunker_port=_found_port(1),
            bunker_quantity=FuelQuantity(vlsfo=5000.0),
        )

        assert trace.overall_safe is False
        assert any("exceeds available tank capacity" in v for v in trace.violations)
        assert trace.waypoints[1].rob.vlsfo == pytest.approx(2000.0)

    def test_capacity_check(self) -> None:
        vessel = make_vessel()
        rob = FuelQuantity(vlsfo=1500.0, lsmgo=150.0)

        ok = validate_bunker_capacity(vessel, rob, FuelQuantity(vlsfo=500.0, lsmgo=50.0))
        too_much = validate_bunker_capacity(vessel, rob, FuelQuantity(vlsfo=600.0))

        assert ok.fits is True
        assert ok.available == FuelQuantity(vlsfo=500.0, lsmgo=50.0)
        assert too_much.fits is False
        assert too_much.overflow.vlsfo == pytest.approx(100.0)


def test_safety_margin_days_uses_scarcest_fuel() -> None:
    vessel = make_vessel()

    assert safety_margin_days(FuelQuantity(vlsfo=300.0, lsmgo=6.0), vessel) == pytest.approx(2.0)


def test_safety_margin_days_without_consumption() -> None:
    vessel = make_vessel(rates=(0.0, 0.0))

    assert safety_margin_days(FuelQuantity(vlsfo=10.0), vessel) is None
