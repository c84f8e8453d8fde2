"""Tests for final report synthesis."""

import pytest

from tests.factories import DEPARTURE, make_route
from voyage.app.models.bunker import BunkerAnalysis
from voyage.app.models.common import ErrorKind, FuelQuantity, Geo, StageName, StageStatus
from voyage.app.models.compliance import ComplianceData
from voyage.app.models.intent import QueryIntent
from voyage.app.models.rob import RobTrace, RobTracking
from voyage.app.models.route import TimelinePoint
from voyage.app.orchestration import synth
from voyage.app.orchestration.state import StageError, VoyageState
from voyage.app.orchestration.synth import build_report, finalize_node

ROUTE = make_route([Geo(lat=1.264, lon=103.84), Geo(lat=25.12, lon=56.36)], distance_nm=3300.0)


def _trace(final_vlsfo: float, safe: bool) -> RobTrace:
    return RobTrace(
        waypoints=[],
        initial_rob=FuelQuantity(vlsfo=800.0, lsmgo=100.0),
        final_rob=FuelQuantity(vlsfo=final_vlsfo, lsmgo=60.0),
        minimum_rob=FuelQuantity(vlsfo=final_vlsfo, lsmgo=60.0),
        minimum_rob_location="Arrival AEFJR",
        total_consumption=FuelQuantity(vlsfo=800.0 - final_vlsfo, lsmgo=40.0),
        overall_safe=safe,
    )


def test_empty_state_still_reports(voyage_state: VoyageState) -> None:
    report = build_report(voyage_state)

    assert report.recommendation == ["No analysis could be completed for this voyage."]
    assert report.complete is False
    assert [m.stage for m in report.missing_analyses] == [
        StageName.route,
        StageName.compliance,
        StageName.weather,
        StageName.bunker,
    ]
    assert all(m.reason == "not attempted" for m in report.missing_analyses)


def test_missing_reason_uses_stage_error(voyage_state: VoyageState) -> None:
    voyage_state.stage_status[StageName.route] = StageStatus.failed
    voyage_state.stage_errors[StageName.route] = StageError(
        message="Tool route.searoute timed out after 15000ms", kind=ErrorKind.external_call_failure
    )

    report = build_report(voyage_state)

    route_missing = report.missing_analyses[0]
    assert route_missing.stage == StageName.route
    assert route_missing.reason == "Tool route.searoute timed out after 15000ms"


def test_missing_reason_falls_back_to_notice(voyage_state: VoyageState) -> None:
    voyage_state.notices.append("Stage weather marked failed after 3 attempts.")

    report = build_report(voyage_state)

    weather = next(m for m in report.missing_analyses if m.stage == StageName.weather)
    assert weather.reason == "Stage weather marked failed after 3 attempts."


def test_complete_report(voyage_state: VoyageState) -> None:
    voyage_state.intent = QueryIntent(needs_bunker=True)
    voyage_state.route = ROUTE
    voyage_state.vessel_timeline = [
        TimelinePoint(
            position=Geo(lat=1.264, lon=103.84),
            at=DEPARTURE,
            distance_from_start_nm=0.0,
            segment_index=0,
        )
    ]
    voyage_state.compliance = ComplianceData(has_eca_zones=False)
    voyage_state.bunker_analysis = BunkerAnalysis(required_quantity=FuelQuantity(), message="No bunkering required")
    voyage_state.rob_tracking = RobTracking(without_bunker=_trace(500.0, True))
    voyage_state.warnings.append("SGSIN VLSFO price is 28 hours old")

    report = build_report(voyage_state)

    assert report.recommendation[0].startswith("Route SGSIN -> AEFJR: 3,300 nm")
    assert report.recommendation[1] == "No emission control areas on the route; VLSFO throughout."
    assert "No bunkering required" in report.recommendation
    assert report.recommendation[-1] == "Arrival ROB 500 MT VLSFO / 60 MT LSMGO (safe)."
    assert report.warnings == ["SGSIN VLSFO price is 28 hours old"]
    assert report.complete is True
    assert report.missing_analyses == []


def test_unsafe_arrival_is_flagged(voyage_state: VoyageState) -> None:
    voyage_state.rob_tracking = RobTracking(
        without_bunker=_trace(-40.0, False),
        with_bunker=_trace(20.0, False),
        bunker_port_code="LKHRI",
        still_unsafe_after_bunker=True,
    )

    report = build_report(voyage_state)

    assert report.recommendation[-1] == "Arrival ROB 20 MT VLSFO / 60 MT LSMGO (UNSAFE)."


def test_route_only_request_is_complete_without_weather(voyage_state: VoyageState) -> None:
    voyage_state.intent = QueryIntent()
    voyage_state.route = ROUTE
    voyage_state.vessel_timeline = []
    voyage_state.compliance = ComplianceData(has_eca_zones=False)

    report = build_report(voyage_state)

    assert report.complete is True


@pytest.mark.asyncio
async def test_finalize_node_wraps_report(voyage_state: VoyageState) -> None:
    voyage_state.version = 4

    update = await finalize_node(voyage_state)

    assert update.stage == StageName.finalize
    assert update.status == StageStatus.success
    assert update.base_version == 4
    assert update.outputs["final_report"].complete is False


@pytest.mark.asyncio
async def test_finalize_node_survives_report_errors(
    voyage_state: VoyageState, monkeypatch: pytest.MonkeyPatch
) -> None:
    def broken(state):
        raise RuntimeError("template missing")

    monkeypatch.setattr(synth, "build_report", broken)

    update = await finalize_node(voyage_state)

    report = update.outputs["final_report"]
    assert report.complete is False
    assert report.notices[-1] == "Report assembly failed: template missing"
